# src/media_adapter/paths.py
"""Path quoting, frame numbering and source cleanup helpers."""

import logging
import re
import shutil
from pathlib import Path

logger = logging.getLogger(__name__)


class NoSampleFileError(Exception):
    """No frame file exists to infer the filename numbering from."""
    pass


def wrap(path) -> str:
    """Quote a path for an argument string. Always quoted so output stays consistent."""
    text = str(path).replace('"', '\\"')
    return f'"{text}"'


def change_extension(path, ext: str) -> str:
    """Swap the extension of a path, keeping its directory and stem."""
    ext = ext if ext.startswith(".") or not ext else f".{ext}"
    return str(Path(path).with_suffix(ext))


def sorted_files(directory, pattern: str = "*") -> list[Path]:
    """List regular files in a directory sorted by name."""
    return sorted(p for p in Path(directory).glob(pattern) if p.is_file())


def filename_counter_length(sample, prefix: str = "") -> int:
    """
    Count the digits of the frame number in a sequential frame filename.

    "f00000001.png" with prefix "f" gives 8.
    """
    stem = Path(sample).stem
    if prefix and stem.startswith(prefix):
        stem = stem[len(prefix):]
    match = re.match(r"\d+", stem)
    if not match:
        raise NoSampleFileError(f"Cannot read a frame number from: {Path(sample).name}")
    return len(match.group(0))


def infer_padding(directory, ext: str = "png", prefix: str = "") -> int:
    """
    Determine the zero-padding width used by frames in a directory.

    Raises:
        NoSampleFileError: If no file with the given prefix and extension exists
    """
    candidates = sorted_files(directory, f"{prefix}*.{ext}")
    if not candidates:
        raise NoSampleFileError(
            f"No *.{ext} frames found in {directory}. Create at least one frame first."
        )
    return filename_counter_length(candidates[0], prefix)


def frame_pattern(directory, padding: int, ext: str = "png", prefix: str = "") -> str:
    """Build an ffmpeg image sequence pattern like DIR/f%08d.png."""
    return f"{Path(directory).as_posix()}/{prefix}%0{padding}d.{ext}"


def delete_source(path) -> bool:
    """
    Remove the input an operation was derived from.

    Directories are removed recursively, files unlinked. A missing path is a no-op.
    Returns True when something was deleted.
    """
    target = Path(path)
    logger.info(f"Deleting input file/dir: {target}")

    if target.is_dir():
        shutil.rmtree(target)
        return True
    if target.is_file():
        target.unlink()
        return True

    logger.debug(f"Nothing to delete at {target}")
    return False
