# src/media_adapter/adapter.py
"""Build a command, run it, then parse the output or clean up after it."""

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from media_adapter import commands, parsing
from media_adapter.config import Settings, get_settings
from media_adapter.models import MediaInfo, OperationResult, ProbeResult, RunResult, Size
from media_adapter.paths import change_extension, delete_source, infer_padding, sorted_files
from media_adapter.runner import ToolRunner

logger = logging.getLogger(__name__)

AUDIO_EXTENSIONS = {
    "vorbis": "ogg",
    "mp2": "mp2",
    "aac": "m4a",
}


class MediaCommandAdapter:
    """Frame interpolation workflow steps on top of ffmpeg and ffprobe."""

    def __init__(self, runner: ToolRunner | None = None, settings: Settings | None = None):
        self.settings = settings or (runner.settings if runner else get_settings())
        self.runner = runner or ToolRunner(self.settings)

    # Helpers

    def _finish(
        self,
        run: RunResult,
        output_path,
        action: str,
        source=None,
        delete_src: bool = False,
    ) -> OperationResult:
        """Turn a run into an OperationResult; delete the source only on success."""
        if not run.success:
            markers = parsing.find_error_markers(run.output)
            detail = markers[-1] if markers else f"exit code {run.returncode}"
            if run.timed_out:
                detail = "timed out"
            logger.error(f"{action} failed: {detail}")
            return OperationResult(
                success=False,
                message=f"{action} failed: {detail}",
                output_path=str(output_path) if output_path else None,
                run=run,
            )

        if delete_src and source is not None:
            delete_source(source)
        return OperationResult(
            success=True,
            message=f"{action} done",
            output_path=str(output_path) if output_path else None,
            run=run,
        )

    def _for_each_file(self, files: list[Path], task) -> list[OperationResult]:
        """Run a per-file task, on a thread pool when more than one worker is configured."""
        if self.settings.workers <= 1 or len(files) <= 1:
            return [task(f) for f in files]
        with ThreadPoolExecutor(max_workers=self.settings.workers) as pool:
            return list(pool.map(task, files))

    # Frames

    def extract_frames(
        self,
        input_path,
        frames_dir,
        dedupe: bool = False,
        size: Size | None = None,
        delete_src: bool = False,
    ) -> OperationResult:
        Path(frames_dir).mkdir(parents=True, exist_ok=True)
        args = commands.build_extract_frames(input_path, frames_dir, dedupe=dedupe, size=size)
        logger.info(f"Extracting frames from {input_path} to {frames_dir}")
        run = self.runner.ffmpeg(args)
        return self._finish(run, frames_dir, "Frame extraction", input_path, delete_src)

    def extract_single_frame(
        self, input_path, frame_num: int, hdr: bool = False, delete_src: bool = False
    ) -> OperationResult:
        output = commands.single_frame_output_path(input_path, frame_num)
        run = self.runner.ffmpeg(commands.build_extract_single_frame(input_path, frame_num, hdr=hdr))
        return self._finish(run, output, f"Extracting frame {frame_num}", input_path, delete_src)

    def frames_to_video(
        self,
        frames_dir,
        output,
        fps,
        crf: int = 18,
        prefix: str = "",
        img_format: str = "png",
        h265: bool = False,
        loop_times: int = -1,
        delete_src: bool = False,
    ) -> OperationResult:
        """
        Encode a numbered frame sequence into an MP4.

        Raises:
            NoSampleFileError: If frames_dir holds no frame to infer numbering from
        """
        logger.info(f"Encoding MP4 video with CRF {crf}...")
        args = commands.build_frames_to_video(
            frames_dir,
            output,
            fps,
            crf=crf,
            prefix=prefix,
            img_format=img_format,
            h265=h265,
            loop_times=loop_times,
            threads=self.settings.enc_threads,
        )
        run = self.runner.ffmpeg(args)
        return self._finish(run, output, "Encoding", frames_dir, delete_src)

    def frames_to_apng(
        self, frames_dir, fps, optimize: bool = False, prefix: str = "", delete_src: bool = False
    ) -> OperationResult:
        output = commands.apng_output_path(frames_dir)
        run = self.runner.ffmpeg(commands.build_frames_to_apng(frames_dir, fps, optimize=optimize, prefix=prefix))
        return self._finish(run, output, "APNG encoding", frames_dir, delete_src)

    def frames_to_gif(
        self, frames_dir, fps, optimize: bool = False, prefix: str = "", delete_src: bool = False
    ) -> OperationResult:
        output = commands.gif_output_path(frames_dir)
        run = self.runner.ffmpeg(commands.build_frames_to_gif(frames_dir, fps, optimize=optimize, prefix=prefix))
        return self._finish(run, output, "GIF encoding", frames_dir, delete_src)

    # Video

    def convert_framerate(
        self, input_path, output, fps, crf: int = 18, h265: bool = False, delete_src: bool = False
    ) -> OperationResult:
        logger.info("Changing video frame rate...")
        run = self.runner.ffmpeg(commands.build_convert_framerate(input_path, output, fps, crf=crf, h265=h265))
        return self._finish(run, output, "Frame rate change", input_path, delete_src)

    def change_speed(self, input_path, speed_percent, delete_src: bool = False) -> OperationResult:
        output = commands.speed_output_path(input_path, speed_percent)
        run = self.runner.ffmpeg(commands.build_change_speed(input_path, speed_percent, output=output))
        return self._finish(run, output, "Speed change", input_path, delete_src)

    def loop(
        self,
        input_path,
        times: int,
        reencode: bool = False,
        h265: bool = False,
        crf: int = 18,
        delete_src: bool = False,
    ) -> OperationResult:
        output = commands.loop_output_path(input_path, times)
        args = commands.build_loop(input_path, times, output=output, reencode=reencode, h265=h265, crf=crf)
        run = self.runner.ffmpeg(args)
        return self._finish(run, output, "Looping", input_path, delete_src)

    def encode(
        self,
        input_path,
        vcodec: str,
        acodec: str = "",
        crf: int = 18,
        audio_kbps: int = -1,
        delete_src: bool = False,
    ) -> OperationResult:
        output = commands.encode_output_path(input_path)
        args = commands.build_encode(input_path, vcodec, acodec, crf=crf, audio_kbps=audio_kbps, output=output)
        run = self.runner.ffmpeg(args)
        return self._finish(run, output, "Encoding", input_path, delete_src)

    def concat(self, list_file, output, loop_times: int = -1) -> OperationResult:
        logger.info("Merging videos...")
        args = commands.build_concat(list_file, output, loop_times=loop_times)
        run = self.runner.ffmpeg(args, cwd=Path(list_file).parent)
        return self._finish(run, output, "Concatenation")

    # Audio

    def audio_extension(self, video_path) -> str:
        codec = self.get_audio_codec(video_path).value_or("")
        return AUDIO_EXTENSIONS.get(codec, "wav")

    def extract_audio(self, input_path, output) -> OperationResult:
        """Copy the audio stream out; a broken partial file is removed on failure."""
        output = change_extension(output, self.audio_extension(input_path))
        logger.info(f"Extracting audio from {input_path} to {output}")
        run = self.runner.ffmpeg(commands.build_extract_audio(input_path, output))

        if not run.success or run.mentions("error") or not os.path.exists(output):
            if os.path.exists(output):
                logger.warning(f"Removing broken audio file {output}")
                os.remove(output)
            logger.error(f"Audio extraction from {input_path} failed")
            return OperationResult(success=False, message="Audio extraction failed", output_path=output, run=run)
        return self._finish(run, output, "Audio extraction")

    def merge_audio(self, input_path, audio_path, loop_times: int = -1) -> OperationResult:
        """Mux audio into input_path in place, leaving it untouched on failure."""
        temp_path = commands.merge_audio_temp_path(input_path, audio_path)
        if temp_path.endswith(".mkv"):
            logger.info("Using MKV instead of MP4 to enable support for raw audio.")
        logger.info(f"Merging audio from {audio_path} into {input_path}")
        run = self.runner.ffmpeg(commands.build_merge_audio(input_path, audio_path, loop_times, output=temp_path))

        if not run.success or run.mentions("Invalid data") or not os.path.exists(temp_path):
            logger.error("Failed to merge audio!")
            if os.path.exists(temp_path):
                os.remove(temp_path)
            return OperationResult(success=False, message="Audio merge failed", output_path=None, run=run)

        os.replace(temp_path, input_path)
        return OperationResult(success=True, message="Audio merge done", output_path=str(input_path), run=run)

    # Alpha

    def extract_alpha_dir(self, rgb_dir, alpha_dir) -> list[OperationResult]:
        Path(alpha_dir).mkdir(parents=True, exist_ok=True)

        def task(file: Path) -> OperationResult:
            target = Path(alpha_dir) / file.name
            run = self.runner.ffmpeg(commands.build_extract_alpha(file, target))
            return self._finish(run, target, f"Alpha extraction of {file.name}")

        return self._for_each_file(sorted_files(rgb_dir), task)

    def remove_alpha(self, input_dir, output_dir, fill_color: str = "black") -> list[OperationResult]:
        """Flatten every frame onto a solid color; the flattened frame replaces the original."""
        Path(output_dir).mkdir(parents=True, exist_ok=True)

        def task(file: Path) -> OperationResult:
            temp = Path(output_dir) / f"_{file.name}"
            size = self.get_size(file)
            if not size.found:
                return OperationResult(success=False, message=f"Could not read size of {file.name}")
            args = commands.build_remove_alpha(file, temp, size.value.width, size.value.height, fill_color)
            result = self._finish(self.runner.ffmpeg(args), file, f"Alpha removal of {file.name}")
            if result.success and not temp.exists():
                logger.error(f"Alpha removal of {file.name} wrote no output")
                return OperationResult(
                    success=False,
                    message=f"Alpha removal of {file.name} failed: no output written",
                    output_path=str(file),
                    run=result.run,
                )
            if not result.success:
                if temp.exists():
                    temp.unlink()
                return result
            os.replace(temp, file)
            return result

        return self._for_each_file(sorted_files(input_dir), task)

    def merge_alpha(self, rgb_dir, alpha_dir, delete_alpha_dir: bool = False) -> OperationResult:
        rgb_padding = infer_padding(rgb_dir)
        alpha_padding = infer_padding(alpha_dir)
        run = self.runner.ffmpeg(commands.build_merge_alpha(rgb_dir, rgb_padding, alpha_dir, alpha_padding))
        return self._finish(run, rgb_dir, "Alpha merge", alpha_dir, delete_alpha_dir)

    # Probes

    def get_duration(self, input_path) -> ProbeResult[int]:
        logger.debug("Reading duration using ffprobe.")
        return parsing.parse_duration(self.runner.ffprobe(commands.build_get_duration(input_path)).output)

    def get_framerate(self, input_path) -> ProbeResult[float]:
        logger.debug("Reading FPS using ffmpeg.")
        # ffmpeg exits non-zero without an output file; the stream info is printed regardless
        return parsing.parse_framerate(self.runner.ffmpeg(commands.build_get_framerate(input_path)).output)

    def get_size(self, input_path) -> ProbeResult[Size]:
        return parsing.parse_size(self.runner.ffprobe(commands.build_get_size(input_path)).output)

    def get_audio_codec(self, input_path) -> ProbeResult[str]:
        return parsing.parse_audio_codec(self.runner.ffprobe(commands.build_get_audio_codec(input_path)).output)

    def get_frame_count(self, input_path) -> ProbeResult[int]:
        """Ask ffprobe first, fall back to counting frames in a full decode."""
        method = "slow" if self.settings.count_frames_slow else "probe"
        if method == "slow":
            logger.info("Counting total frames using ffprobe. This can take a moment...")
        else:
            logger.debug("Reading frame count using ffprobe.")
        run = self.runner.ffprobe(commands.build_get_frame_count(input_path, method))
        frames = parsing.parse_frame_count_probe(run.output, method)
        if frames.found:
            return frames

        logger.debug("Failed to get frame count using ffprobe. Reading frame count using ffmpeg.")
        run = self.runner.ffmpeg(commands.build_get_frame_count(input_path, "decode"))
        frames = parsing.parse_frame_count_decode(run.output)
        if not frames.found:
            logger.warning(f"Failed to get total frame count of {input_path}")
        return frames

    def get_media_info(self, input_path) -> MediaInfo:
        size = self.get_size(input_path)
        return MediaInfo(
            status="success",
            path=str(input_path),
            frame_count=self.get_frame_count(input_path).value,
            framerate=self.get_framerate(input_path).value,
            width=size.value.width if size.found else None,
            height=size.value.height if size.found else None,
            audio_codec=self.get_audio_codec(input_path).value,
            duration_ms=self.get_duration(input_path).value,
            message=f"Probed {Path(input_path).name}",
        )
