# src/media_adapter/commands.py
"""Argument string templates for ffmpeg and ffprobe, one per operation kind."""

from pathlib import Path
from typing import Callable

from media_adapter.models import Operation, OperationKind, Size
from media_adapter.paths import frame_pattern, infer_padding, wrap

FFMPEG = "ffmpeg"
FFPROBE = "ffprobe"

VIDEO_ENC_ARGS = '-pix_fmt yuv420p -movflags +faststart -vf "crop=trunc(iw/2)*2:trunc(ih/2)*2"'
PNG_COMPRESSION_ARG = "-compression_level 3"
PALETTE_FILTER = '-vf "split[s0][s1];[s0]palettegen[p];[s1][p]paletteuse"'
HDR_TONEMAP_FILTER = (
    "zscale=t=linear:npl=100,format=gbrpf32le,zscale=p=bt709,"
    "tonemap=tonemap=hable:desat=0,zscale=t=bt709:m=bt709:r=tv,format=yuv420p"
)
ALPHA_EXTRACT_FILTER = "format=yuva444p16le,alphaextract,format=yuv420p"

FRAME_COUNT_METHODS = ("probe", "slow", "decode")


def format_decimal(value, places: int | None = None) -> str:
    """Render a number with '.' as decimal separator, whatever the input looks like."""
    if isinstance(value, str):
        value = float(value.strip().replace(",", "."))
    if places is not None:
        return f"{float(value):.{places}f}"
    text = f"{float(value):.6f}".rstrip("0").rstrip(".")
    return text or "0"


def _join(*parts) -> str:
    """Join argument fragments, dropping disabled (empty) ones."""
    return " ".join(str(p) for p in parts if p not in (None, ""))


def _encoder(h265: bool) -> str:
    return "libx265" if h265 else "libx264"


def _loop_arg(loop_times: int) -> str:
    return f"-stream_loop {loop_times}" if loop_times > 0 else ""


def _split_ext(path) -> tuple[str, str]:
    p = Path(path)
    return str(p.with_suffix("")), p.suffix


# Derived output names

def loop_output_path(input_path, times: int) -> str:
    base, ext = _split_ext(input_path)
    return f"{base}-{times}xLoop{ext}"


def speed_output_path(input_path, speed_percent) -> str:
    base, ext = _split_ext(input_path)
    return f"{base}-{format_decimal(speed_percent)}pcSpeed{ext}"


def encode_output_path(input_path) -> str:
    base, _ = _split_ext(input_path)
    return f"{base}-convert.mp4"


def single_frame_output_path(input_path, frame_num: int) -> str:
    return f"{input_path}-frame{frame_num}.png"


def merge_audio_temp_path(input_path, audio_path) -> str:
    # Raw PCM audio does not fit in MP4
    if Path(audio_path).suffix.lower() == ".wav":
        return f"{input_path}-temp.mkv"
    return f"{input_path}-temp.mp4"


def apng_output_path(frames_dir) -> str:
    return f"{Path(frames_dir)}-anim.png"


def gif_output_path(frames_dir) -> str:
    return f"{Path(frames_dir)}.gif"


# Builders

def build_extract_frames(
    input_path,
    frames_dir,
    dedupe: bool = False,
    size: Size | tuple[int, int] | None = None,
) -> str:
    size_arg = ""
    if size is not None:
        width, height = (size.width, size.height) if isinstance(size, Size) else size
        if width > 1 and height > 1:
            size_arg = f"-s {width}x{height}"

    output = wrap(f"{Path(frames_dir).as_posix()}/%08d.png")
    if dedupe:
        return _join(
            "-i", wrap(input_path), "-copyts -r 1000", PNG_COMPRESSION_ARG,
            "-vsync 0 -frame_pts true -vf mpdecimate", size_arg, output,
        )
    return _join(
        "-i", wrap(input_path), PNG_COMPRESSION_ARG, "-vsync 0 -pix_fmt rgb24", size_arg, output,
    )


def build_extract_single_frame(input_path, frame_num: int, hdr: bool = False, output=None) -> str:
    output = output or single_frame_output_path(input_path, frame_num)
    vf = f"select=eq(n\\,{int(frame_num)})"
    if hdr:
        vf = f"{vf},{HDR_TONEMAP_FILTER}"
    return _join("-i", wrap(input_path), f'-vf "{vf}"', "-vframes 1", wrap(output))


def build_frames_to_video(
    frames_dir,
    output,
    fps,
    crf: int = 18,
    prefix: str = "",
    img_format: str = "png",
    h265: bool = False,
    loop_times: int = -1,
    threads: int = 0,
    padding: int | None = None,
) -> str:
    if padding is None:
        padding = infer_padding(frames_dir, img_format, prefix)
    pattern = frame_pattern(frames_dir, padding, img_format, prefix)
    return _join(
        _loop_arg(loop_times),
        f"-framerate {format_decimal(fps)}",
        "-i", wrap(pattern),
        f"-c:v {_encoder(h265)} -crf {int(crf)}",
        VIDEO_ENC_ARGS,
        f"-threads {int(threads)}" if threads > 0 else "",
        "-c:a copy",
        wrap(output),
    )


def _build_animation(frames_dir, fps, fmt_args: str, output, optimize: bool, prefix: str, padding) -> str:
    if padding is None:
        padding = infer_padding(frames_dir, "png", prefix)
    pattern = frame_pattern(frames_dir, padding, "png", prefix)
    return _join(
        f"-framerate {format_decimal(fps)}",
        "-i", wrap(pattern),
        fmt_args,
        PALETTE_FILTER if optimize else "",
        wrap(output),
    )


def build_frames_to_apng(
    frames_dir, fps, optimize: bool = False, prefix: str = "", output=None, padding: int | None = None
) -> str:
    output = output or apng_output_path(frames_dir)
    return _build_animation(frames_dir, fps, "-f apng -plays 0", output, optimize, prefix, padding)


def build_frames_to_gif(
    frames_dir, fps, optimize: bool = False, prefix: str = "", output=None, padding: int | None = None
) -> str:
    output = output or gif_output_path(frames_dir)
    return _build_animation(frames_dir, fps, "-f gif", output, optimize, prefix, padding)


def build_convert_framerate(input_path, output, fps, crf: int = 18, h265: bool = False) -> str:
    return _join(
        "-i", wrap(input_path),
        f"-filter:v fps=fps={format_decimal(fps)}",
        f"-c:v {_encoder(h265)} -crf {int(crf)}",
        "-pix_fmt yuv420p -movflags +faststart",
        wrap(output),
    )


def build_change_speed(input_path, speed_percent, output=None) -> str:
    percent = float(format_decimal(speed_percent))
    if percent <= 0:
        raise ValueError(f"Speed percentage must be > 0, got {speed_percent}")
    output = output or speed_output_path(input_path, speed_percent)
    scale = format_decimal(1.0 / (percent / 100.0), places=4)
    return _join("-itsscale", scale, "-i", wrap(input_path), "-c copy", wrap(output))


def build_loop(
    input_path,
    times: int,
    output=None,
    reencode: bool = False,
    h265: bool = False,
    crf: int = 18,
) -> str:
    output = output or loop_output_path(input_path, times)
    codec = f"-c:v {_encoder(h265)} -crf {int(crf)} -c:a copy" if reencode else "-c copy"
    return _join(f"-stream_loop {int(times)}", "-i", wrap(input_path), codec, wrap(output))


def build_encode(
    input_path,
    vcodec: str,
    acodec: str = "",
    crf: int = 18,
    audio_kbps: int = -1,
    output=None,
) -> str:
    output = output or encode_output_path(input_path)
    if acodec and acodec.strip():
        audio = _join(f"-c:a {acodec}", f"-b:a {int(audio_kbps)}k" if audio_kbps >= 0 else "")
    else:
        audio = "-an"
    return _join(
        "-i", wrap(input_path), f"-c:v {vcodec} -crf {int(crf)}", "-pix_fmt yuv420p", audio, wrap(output),
    )


def build_merge_audio(input_path, audio_path, loop_times: int = -1, output=None) -> str:
    output = output or merge_audio_temp_path(input_path, audio_path)
    # -1 loops the audio forever, -shortest then cuts it at the end of the video
    loop = f"-stream_loop {int(loop_times)}" if loop_times != 0 else ""
    return _join("-i", wrap(input_path), loop, "-i", wrap(audio_path), "-shortest -c copy", wrap(output))


def build_extract_audio(input_path, output) -> str:
    return _join("-loglevel panic", "-i", wrap(input_path), "-vn -acodec copy", wrap(output))


def build_merge_alpha(rgb_dir, rgb_padding: int, alpha_dir, alpha_padding: int) -> str:
    rgb_pattern = frame_pattern(rgb_dir, rgb_padding)
    alpha_pattern = frame_pattern(alpha_dir, alpha_padding)
    return _join(
        "-i", wrap(rgb_pattern),
        "-i", wrap(alpha_pattern),
        "-filter_complex [0:v:0][1:v:0]alphamerge[out] -map [out]",
        wrap(rgb_pattern),
    )


def build_extract_alpha(input_file, output_file) -> str:
    return _join("-i", wrap(input_file), f"-vf {ALPHA_EXTRACT_FILTER}", wrap(output_file))


def build_remove_alpha(input_file, output_file, width: int, height: int, fill_color: str = "black") -> str:
    return _join(
        f"-f lavfi -i color={fill_color}:s={int(width)}x{int(height)}",
        "-i", wrap(input_file),
        "-filter_complex overlay=0:0:shortest=1 -pix_fmt rgb24",
        wrap(output_file),
    )


def build_concat(list_file, output, loop_times: int = -1) -> str:
    # Runs with the list file's directory as working directory
    return _join(
        _loop_arg(loop_times),
        "-vsync 1 -f concat -i", wrap(Path(list_file).name),
        "-c copy -movflags +faststart",
        wrap(output),
    )


def build_get_duration(input_path) -> str:
    return _join(
        "-v panic -select_streams v:0 -show_entries format=duration -of csv=s=x:p=0 -sexagesimal",
        wrap(input_path),
    )


def build_get_framerate(input_path) -> str:
    return _join("-i", wrap(input_path))


def build_get_size(input_path) -> str:
    return _join(
        "-v panic -select_streams v:0 -show_entries stream=width,height -of csv=s=x:p=0",
        wrap(input_path),
    )


def build_get_frame_count(input_path, method: str = "probe") -> str:
    if method == "probe":
        args = "-v panic -select_streams v:0 -show_entries stream=nb_frames -of default=noprint_wrappers=1"
    elif method == "slow":
        args = (
            "-v panic -count_frames -select_streams v:0 -show_entries stream=nb_read_frames "
            "-of default=nokey=1:noprint_wrappers=1"
        )
    elif method == "decode":
        return _join("-loglevel panic -stats -i", wrap(input_path), "-map 0:v:0 -c copy -f null -")
    else:
        raise ValueError(f"Unknown frame count method: {method}. Expected one of {FRAME_COUNT_METHODS}")
    return _join(args, wrap(input_path))


def build_get_audio_codec(input_path) -> str:
    return _join("-v panic -show_streams -select_streams a -show_entries stream=codec_name", wrap(input_path))


_BUILDERS: dict[OperationKind, Callable[..., str]] = {
    OperationKind.EXTRACT_FRAMES: build_extract_frames,
    OperationKind.EXTRACT_SINGLE_FRAME: build_extract_single_frame,
    OperationKind.FRAMES_TO_VIDEO: build_frames_to_video,
    OperationKind.FRAMES_TO_APNG: build_frames_to_apng,
    OperationKind.FRAMES_TO_GIF: build_frames_to_gif,
    OperationKind.CONVERT_FRAMERATE: build_convert_framerate,
    OperationKind.CHANGE_SPEED: build_change_speed,
    OperationKind.LOOP: build_loop,
    OperationKind.ENCODE: build_encode,
    OperationKind.MERGE_AUDIO: build_merge_audio,
    OperationKind.EXTRACT_AUDIO: build_extract_audio,
    OperationKind.MERGE_ALPHA: build_merge_alpha,
    OperationKind.EXTRACT_ALPHA: build_extract_alpha,
    OperationKind.REMOVE_ALPHA: build_remove_alpha,
    OperationKind.CONCAT: build_concat,
    OperationKind.GET_DURATION: build_get_duration,
    OperationKind.GET_FRAMERATE: build_get_framerate,
    OperationKind.GET_SIZE: build_get_size,
    OperationKind.GET_FRAME_COUNT: build_get_frame_count,
    OperationKind.GET_AUDIO_CODEC: build_get_audio_codec,
}

_FFPROBE_KINDS = {
    OperationKind.GET_DURATION,
    OperationKind.GET_SIZE,
    OperationKind.GET_FRAME_COUNT,
    OperationKind.GET_AUDIO_CODEC,
}


def tool_for(operation: Operation) -> str:
    """Name the binary an operation's argument string is meant for."""
    if operation.kind == OperationKind.GET_FRAME_COUNT and operation.params.get("method") == "decode":
        return FFMPEG
    return FFPROBE if operation.kind in _FFPROBE_KINDS else FFMPEG


def build_command(operation: Operation) -> str:
    """
    Fill the template for an operation.

    Raises:
        NoSampleFileError: If a frame sequence template finds no frame to infer numbering from
        ValueError: If a parameter is out of range
        TypeError: If a required parameter is missing
    """
    builder = _BUILDERS[operation.kind]
    return builder(**operation.params)
