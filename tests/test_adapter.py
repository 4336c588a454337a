# tests/test_adapter.py
import pytest
import tempfile
from pathlib import Path
from unittest.mock import MagicMock
from media_adapter.adapter import MediaCommandAdapter
from media_adapter.config import Settings
from media_adapter.models import RunResult
from media_adapter.paths import NoSampleFileError


def ok(output="", tool="ffmpeg"):
    return RunResult(tool=tool, args="", returncode=0, output=output)


def failed(output="", tool="ffmpeg"):
    return RunResult(tool=tool, args="", returncode=1, output=output)


def make_adapter(ffmpeg=None, ffprobe=None, **settings):
    runner = MagicMock()
    runner.settings = Settings(**settings)
    runner.ffmpeg.side_effect = ffmpeg if isinstance(ffmpeg, list) else None
    runner.ffmpeg.return_value = ffmpeg if isinstance(ffmpeg, RunResult) else ok()
    runner.ffprobe.side_effect = ffprobe if isinstance(ffprobe, list) else None
    runner.ffprobe.return_value = ffprobe if isinstance(ffprobe, RunResult) else ok(tool="ffprobe")
    return MediaCommandAdapter(runner=runner), runner


def test_frame_count_fast_path():
    adapter, runner = make_adapter(ffprobe=ok("nb_frames=240\n", "ffprobe"))
    result = adapter.get_frame_count("a.mp4")
    assert result.value == 240
    assert "stream=nb_frames" in runner.ffprobe.call_args.args[0]
    runner.ffmpeg.assert_not_called()


def test_frame_count_falls_back_to_decode():
    adapter, runner = make_adapter(
        ffprobe=ok("nb_frames=N/A\n", "ffprobe"),
        ffmpeg=ok("frame=   80 fps=0.0\rframe=  150 fps=25 q=-1.0\n"),
    )
    result = adapter.get_frame_count("a.mp4")
    assert result.value == 150
    assert result.method == "decode"
    assert "-f null -" in runner.ffmpeg.call_args.args[0]


def test_frame_count_unknown():
    adapter, _ = make_adapter(ffprobe=ok("", "ffprobe"), ffmpeg=ok(""))
    result = adapter.get_frame_count("a.mp4")
    assert not result.found
    assert result.value_or(0) == 0


def test_frame_count_slow_mode():
    adapter, runner = make_adapter(ffprobe=ok("97\n", "ffprobe"), count_frames_slow=True)
    assert adapter.get_frame_count("a.mp4").value == 97
    assert "-count_frames" in runner.ffprobe.call_args.args[0]


def test_framerate_ignores_exit_code():
    output = "Stream #0:0: Video: h264, yuv420p, 1280x720, 29.97 fps, 29.97 tbr\nAt least one output file must be specified\n"
    adapter, _ = make_adapter(ffmpeg=failed(output))
    assert adapter.get_framerate("a.mp4").value == pytest.approx(29.97)


def test_media_info():
    adapter, _ = make_adapter(
        ffprobe=[
            ok("1920x1080\n", "ffprobe"),
            ok("nb_frames=100\n", "ffprobe"),
            ok("codec_name=aac\n", "ffprobe"),
            ok("0:00:04.000000\n", "ffprobe"),
        ],
        ffmpeg=ok("Stream #0:0: Video: h264, 25 fps, 25 tbr\n"),
    )
    info = adapter.get_media_info("a.mp4")
    assert (info.width, info.height) == (1920, 1080)
    assert info.frame_count == 100
    assert info.framerate == 25.0
    assert info.audio_codec == "aac"
    assert info.duration_ms == 4000


def test_build_and_probe_are_independent():
    with tempfile.TemporaryDirectory() as tmpdir:
        (Path(tmpdir) / "f00000001.png").touch()
        adapter, runner = make_adapter(ffprobe=ok("nb_frames=100\n", "ffprobe"))

        first_count = adapter.get_frame_count("a.mp4").value
        adapter.frames_to_video(tmpdir, "out.mp4", 29.97, crf=20, prefix="f", img_format="png")
        first_args = runner.ffmpeg.call_args.args[0]

        adapter.frames_to_video(tmpdir, "out.mp4", 29.97, crf=20, prefix="f", img_format="png")
        second_count = adapter.get_frame_count("a.mp4").value
        second_args = runner.ffmpeg.call_args.args[0]

    assert first_count == second_count == 100
    assert first_args == second_args


def test_frames_to_video_passes_threads_and_deletes_source():
    with tempfile.TemporaryDirectory() as tmpdir:
        frames = Path(tmpdir) / "frames"
        frames.mkdir()
        (frames / "00000001.png").touch()
        adapter, runner = make_adapter(enc_threads=6)

        result = adapter.frames_to_video(frames, Path(tmpdir) / "out.mp4", 30, delete_src=True)

        assert result.success
        assert "-threads 6" in runner.ffmpeg.call_args.args[0]
        assert not frames.exists()


def test_frames_to_video_keeps_source_on_failure():
    with tempfile.TemporaryDirectory() as tmpdir:
        (Path(tmpdir) / "00000001.png").touch()
        adapter, _ = make_adapter(ffmpeg=failed("Conversion failed! error"))

        result = adapter.frames_to_video(tmpdir, "out.mp4", 30, delete_src=True)

        assert not result.success
        assert "failed" in result.message
        assert Path(tmpdir).exists()


def test_frames_to_video_requires_sample_frame():
    with tempfile.TemporaryDirectory() as tmpdir:
        adapter, runner = make_adapter()
        with pytest.raises(NoSampleFileError):
            adapter.frames_to_video(tmpdir, "out.mp4", 30)
        runner.ffmpeg.assert_not_called()


def test_change_speed_output_name():
    adapter, runner = make_adapter()
    result = adapter.change_speed("/v/clip.mp4", 25)
    assert result.output_path == "/v/clip-25pcSpeed.mp4"
    assert runner.ffmpeg.call_args.args[0].startswith("-itsscale 4.0000 ")


def test_concat_runs_in_list_directory():
    adapter, runner = make_adapter()
    adapter.concat("/work/chunks/list.txt", "/out/final.mp4")
    assert runner.ffmpeg.call_args.kwargs["cwd"] == Path("/work/chunks")


def test_extract_audio_picks_extension_and_removes_broken_file():
    with tempfile.TemporaryDirectory() as tmpdir:
        broken = Path(tmpdir) / "audio.m4a"

        def write_broken(args, cwd=None):
            broken.touch()
            return failed("error while writing")

        adapter, runner = make_adapter(ffprobe=ok("codec_name=aac\n", "ffprobe"))
        runner.ffmpeg.side_effect = write_broken

        result = adapter.extract_audio("a.mp4", Path(tmpdir) / "audio")

        assert not result.success
        assert result.output_path == str(broken)
        assert not broken.exists()


def test_extract_audio_unknown_codec_defaults_to_wav():
    with tempfile.TemporaryDirectory() as tmpdir:
        expected = Path(tmpdir) / "audio.wav"

        def copy_audio(args, cwd=None):
            expected.write_text("pcm")
            return ok()

        adapter, runner = make_adapter(ffprobe=ok("", "ffprobe"))
        runner.ffmpeg.side_effect = copy_audio

        result = adapter.extract_audio("a.mp4", Path(tmpdir) / "audio.mka")

        assert result.success
        assert result.output_path == str(expected)


def test_extract_audio_error_marker_without_file_fails():
    with tempfile.TemporaryDirectory() as tmpdir:
        adapter, _ = make_adapter(ffprobe=ok("codec_name=aac\n", "ffprobe"), ffmpeg=ok("error opening output"))

        result = adapter.extract_audio("a.mp4", Path(tmpdir) / "audio")

        assert not result.success
        assert not (Path(tmpdir) / "audio.m4a").exists()


def test_extract_audio_clean_exit_without_file_fails():
    with tempfile.TemporaryDirectory() as tmpdir:
        adapter, _ = make_adapter(ffprobe=ok("codec_name=aac\n", "ffprobe"))

        result = adapter.extract_audio("a.mp4", Path(tmpdir) / "audio")

        assert not result.success


def test_merge_audio_replaces_input_on_success():
    with tempfile.TemporaryDirectory() as tmpdir:
        video = Path(tmpdir) / "clip.mp4"
        video.write_text("video")

        def mux(args, cwd=None):
            Path(f"{video}-temp.mp4").write_text("muxed")
            return ok()

        adapter, runner = make_adapter()
        runner.ffmpeg.side_effect = mux

        result = adapter.merge_audio(video, Path(tmpdir) / "audio.m4a")

        assert result.success
        assert video.read_text() == "muxed"
        assert not Path(f"{video}-temp.mp4").exists()


def test_merge_audio_failure_leaves_input():
    with tempfile.TemporaryDirectory() as tmpdir:
        video = Path(tmpdir) / "clip.mp4"
        video.write_text("video")

        def mux(args, cwd=None):
            Path(f"{video}-temp.mkv").write_text("partial")
            return ok("Invalid data found when processing input")

        adapter, runner = make_adapter()
        runner.ffmpeg.side_effect = mux

        result = adapter.merge_audio(video, Path(tmpdir) / "audio.wav")

        assert not result.success
        assert video.read_text() == "video"
        assert not Path(f"{video}-temp.mkv").exists()


def test_extract_alpha_dir_one_call_per_file():
    with tempfile.TemporaryDirectory() as tmpdir:
        rgb = Path(tmpdir) / "rgb"
        rgb.mkdir()
        for i in range(1, 4):
            (rgb / f"{i:08d}.png").touch()
        adapter, runner = make_adapter(workers=2)

        results = adapter.extract_alpha_dir(rgb, Path(tmpdir) / "alpha")

        assert len(results) == 3
        assert all(r.success for r in results)
        assert runner.ffmpeg.call_count == 3
        assert (Path(tmpdir) / "alpha").is_dir()


def test_remove_alpha_replaces_frames():
    with tempfile.TemporaryDirectory() as tmpdir:
        frames = Path(tmpdir)
        frame = frames / "00000001.png"
        frame.write_text("rgba")

        def overlay(args, cwd=None):
            (frames / "_00000001.png").write_text("rgb")
            return ok()

        adapter, runner = make_adapter(ffprobe=ok("320x240\n", "ffprobe"))
        runner.ffmpeg.side_effect = overlay

        results = adapter.remove_alpha(frames, frames)

        assert results[0].success
        assert "color=black:s=320x240" in runner.ffmpeg.call_args.args[0]
        assert frame.read_text() == "rgb"
        assert not (frames / "_00000001.png").exists()


def test_merge_alpha_deletes_alpha_dir():
    with tempfile.TemporaryDirectory() as tmpdir:
        rgb = Path(tmpdir) / "rgb"
        alpha = Path(tmpdir) / "alpha"
        rgb.mkdir()
        alpha.mkdir()
        (rgb / "00000001.png").touch()
        (alpha / "000001.png").touch()
        adapter, runner = make_adapter()

        result = adapter.merge_alpha(rgb, alpha, delete_alpha_dir=True)

        assert result.success
        assert "%06d.png" in runner.ffmpeg.call_args.args[0]
        assert not alpha.exists()


def test_merge_audio_clean_exit_without_output():
    with tempfile.TemporaryDirectory() as tmpdir:
        video = Path(tmpdir) / "clip.mp4"
        video.write_text("video")
        adapter, _ = make_adapter(ffmpeg=ok(""))

        result = adapter.merge_audio(video, Path(tmpdir) / "audio.m4a")

        assert not result.success
        assert result.output_path is None
        assert video.read_text() == "video"


def test_remove_alpha_keeps_frame_when_nothing_written():
    with tempfile.TemporaryDirectory() as tmpdir:
        frames = Path(tmpdir)
        frame = frames / "00000001.png"
        frame.write_text("rgba")
        adapter, _ = make_adapter(ffprobe=ok("320x240\n", "ffprobe"), ffmpeg=ok(""))

        results = adapter.remove_alpha(frames, frames / "out")

        assert not results[0].success
        assert "no output" in results[0].message
        assert frame.read_text() == "rgba"


def test_remove_alpha_failure_removes_partial_output():
    with tempfile.TemporaryDirectory() as tmpdir:
        frames = Path(tmpdir) / "frames"
        out = Path(tmpdir) / "out"
        frames.mkdir()
        frame = frames / "00000001.png"
        frame.write_text("rgba")

        def broken_overlay(args, cwd=None):
            (out / "_00000001.png").write_text("partial")
            return failed("Conversion failed!")

        adapter, runner = make_adapter(ffprobe=ok("320x240\n", "ffprobe"))
        runner.ffmpeg.side_effect = broken_overlay

        results = adapter.remove_alpha(frames, out)

        assert not results[0].success
        assert not (out / "_00000001.png").exists()
        assert frame.read_text() == "rgba"


def test_frame_count_slow_mode_is_labelled():
    adapter, _ = make_adapter(ffprobe=ok("97\n", "ffprobe"), count_frames_slow=True)
    assert adapter.get_frame_count("a.mp4").method == "slow"
