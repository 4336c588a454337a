# src/media_adapter/parsing.py
"""Scrape scalar facts out of ffmpeg/ffprobe console output."""

import logging
import math
import re

from media_adapter.models import ProbeResult, Size

logger = logging.getLogger(__name__)

ERROR_MARKERS = ("error", "Invalid data")

_LINE_SPLIT = re.compile(r"\r\n|\r|\n")
_FPS_FRAGMENT = re.compile(r"^([0-9]+(?:\.[0-9]+)?)(k?)\s+fps$")
_DECODE_FRAME = re.compile(r"frame=\s*([0-9]+)")
_CSV_SIZE = re.compile(r"^\s*([0-9]+)x([0-9]+)")
_KEY_WIDTH = re.compile(r"^\s*width=([0-9]+)\s*$", re.MULTILINE)
_KEY_HEIGHT = re.compile(r"^\s*height=([0-9]+)\s*$", re.MULTILINE)
_DIGITS = re.compile(r"[0-9]+")
_MAX_DIGITS = 18


def split_lines(output: str) -> list[str]:
    return [line for line in _LINE_SPLIT.split(output or "") if line.strip()]


def _to_int(text: str) -> int | None:
    """Plain ASCII digits to int; None when the text is not one or is too long to convert."""
    if len(text) > _MAX_DIGITS or not _DIGITS.fullmatch(text):
        return None
    try:
        return int(text)
    except (ValueError, OverflowError):
        return None


def parse_frame_count_probe(output: str, method: str = "probe") -> ProbeResult[int]:
    """
    Read the frame count from ffprobe stream output.

    Accepts the nb_frames key form as well as the bare number printed by
    the -count_frames mode; pass method="slow" for the latter.
    """
    lines = split_lines(output)
    keyed = [line for line in lines if "nb_frames=" in line or "nb_read_frames=" in line]
    candidates = keyed if keyed else lines[:1]
    for line in candidates:
        count = _to_int(line.split("=", 1)[-1].strip())
        if count is None:
            logger.debug(f"Frame count entry is not a number: {line[:80]!r}")
            return ProbeResult.missing()
        if count > 0:
            return ProbeResult.of(count, method)
        break
    return ProbeResult.missing()


def parse_frame_count_decode(output: str) -> ProbeResult[int]:
    """Highest frame= value across the progress lines of a full decode."""
    counts = [_to_int(m.group(1)) for m in _DECODE_FRAME.finditer(output or "")]
    counts = [c for c in counts if c is not None]
    if counts and max(counts) > 0:
        return ProbeResult.of(max(counts), "decode")
    return ProbeResult.missing()


def parse_framerate(output: str) -> ProbeResult[float]:
    """
    Find the frame rate in the stream description printed by `ffmpeg -i`.

    Input declaration lines are skipped since the filename may contain "fps".
    """
    for line in split_lines(output):
        if line.lstrip().startswith("Input #"):
            continue
        for fragment in line.split(","):
            match = _FPS_FRAGMENT.match(fragment.strip())
            if not match:
                continue
            logger.debug(f"FPS entry: {fragment.strip()}")
            try:
                value = float(match.group(1))
            except ValueError:
                return ProbeResult.missing()
            if match.group(2):
                value *= 1000
            if not math.isfinite(value):
                return ProbeResult.missing()
            return ProbeResult.of(value, "ffmpeg")
    return ProbeResult.missing()


def parse_size(output: str) -> ProbeResult[Size]:
    """Read WIDTHxHEIGHT (csv) or width=/height= (key) stream output."""
    text = output or ""
    match = _CSV_SIZE.match(text)
    if match:
        width, height = _to_int(match.group(1)), _to_int(match.group(2))
    else:
        width_match = _KEY_WIDTH.search(text)
        height_match = _KEY_HEIGHT.search(text)
        if not (width_match and height_match):
            return ProbeResult.missing()
        width, height = _to_int(width_match.group(1)), _to_int(height_match.group(1))

    if width is None or height is None or width <= 0 or height <= 0:
        return ProbeResult.missing()
    return ProbeResult.of(Size(width=width, height=height), "ffprobe")


def parse_audio_codec(output: str) -> ProbeResult[str]:
    for line in split_lines(output):
        if "codec_name=" in line:
            logger.debug(f"Audio codec entry: {line}")
            codec = line.split("=", 1)[1].strip()
            if codec:
                return ProbeResult.of(codec, "ffprobe")
    return ProbeResult.missing()


def ms_from_timestamp(timestamp: str) -> int:
    """
    Convert H:MM:SS.frac (or MM:SS.frac, or SS.frac) to milliseconds.

    Raises:
        ValueError: If the text is not a timestamp
    """
    parts = timestamp.strip().split(":")
    if not parts or len(parts) > 3:
        raise ValueError(f"Not a timestamp: {timestamp!r}")
    seconds = 0.0
    for part in parts:
        seconds = seconds * 60 + float(part)
    millis = seconds * 1000
    if not math.isfinite(millis) or millis < 0:
        raise ValueError(f"Timestamp out of range: {timestamp!r}")
    return int(round(millis))


def parse_duration(output: str) -> ProbeResult[int]:
    lines = split_lines(output)
    if not lines:
        return ProbeResult.missing()
    try:
        return ProbeResult.of(ms_from_timestamp(lines[0]), "ffprobe")
    except (ValueError, OverflowError):
        logger.debug(f"Duration entry is not a timestamp: {lines[0]!r}")
        return ProbeResult.missing()


def find_error_markers(output: str, markers=ERROR_MARKERS) -> list[str]:
    """Lines of tool output mentioning a known error marker (case-insensitive)."""
    lowered = [m.lower() for m in markers]
    return [line for line in split_lines(output) if any(m in line.lower() for m in lowered)]
