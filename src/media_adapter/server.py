# src/media_adapter/server.py
"""MCP server exposing video probing and frame extraction."""

import logging
import uuid
from pathlib import Path

from mcp.server.fastmcp import FastMCP

from media_adapter.adapter import MediaCommandAdapter
from media_adapter.config import get_settings
from media_adapter.models import FrameExtractionResponse, MediaInfo
from media_adapter.paths import NoSampleFileError, sorted_files
from media_adapter.runner import ToolNotFoundError

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Initialize MCP server
mcp = FastMCP("media-adapter")

# Initialize components
settings = get_settings()
adapter = MediaCommandAdapter(settings=settings)


@mcp.tool()
async def probe_video(path: str) -> dict:
    """
    Read frame count, frame rate, resolution, audio codec and duration
    of a local video file.

    Args:
        path: Path to the video file

    Returns:
        Dictionary with status and the probed values (null when unknown)
    """
    if not Path(path).is_file():
        return MediaInfo(status="error", path=path, message=f"File not found: {path}").model_dump()

    try:
        logger.info(f"Probing {path}")
        return adapter.get_media_info(path).model_dump()

    except ToolNotFoundError as e:
        logger.error(f"Tool error: {e}")
        return MediaInfo(status="error", path=path, message=str(e)).model_dump()

    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        return MediaInfo(status="error", path=path, message=f"Unexpected error: {str(e)}").model_dump()


@mcp.tool()
async def extract_video_frames(path: str, dedupe: bool = False) -> dict:
    """
    Extract every frame of a local video as numbered PNG files.

    Args:
        path: Path to the video file
        dedupe: Drop near-duplicate frames (mpdecimate). Default False

    Returns:
        Dictionary with status, output directory and frame count
    """
    if not Path(path).is_file():
        return FrameExtractionResponse(status="error", message=f"File not found: {path}").model_dump()

    frames_dir = Path(settings.frames_dir) / f"{Path(path).stem}_{uuid.uuid4().hex[:8]}"

    try:
        logger.info(f"Extracting frames to {frames_dir}")
        result = adapter.extract_frames(path, frames_dir, dedupe=dedupe)
        if not result.success:
            return FrameExtractionResponse(
                status="error", frames_dir=str(frames_dir), message=result.message
            ).model_dump()

        count = len(sorted_files(frames_dir, "*.png"))
        logger.info(f"Successfully extracted {count} frames")
        return FrameExtractionResponse(
            status="success",
            frames_dir=str(frames_dir),
            frames_extracted=count,
            message=f"Extracted {count} frames. Frames saved to {frames_dir}/",
        ).model_dump()

    except (ToolNotFoundError, NoSampleFileError) as e:
        logger.error(f"Extraction error: {e}")
        return FrameExtractionResponse(status="error", message=str(e)).model_dump()

    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        return FrameExtractionResponse(status="error", message=f"Unexpected error: {str(e)}").model_dump()


def main():
    """Run the MCP server."""
    mcp.run()


if __name__ == "__main__":
    main()
