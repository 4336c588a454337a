"""Command builder and output parser for ffmpeg-driven frame interpolation workflows."""

from media_adapter.adapter import MediaCommandAdapter
from media_adapter.commands import build_command, tool_for
from media_adapter.models import Operation, OperationKind, OperationResult, ProbeResult, RunResult, Size
from media_adapter.paths import NoSampleFileError, delete_source
from media_adapter.runner import ToolNotFoundError, ToolRunner

__all__ = [
    "MediaCommandAdapter",
    "NoSampleFileError",
    "Operation",
    "OperationKind",
    "OperationResult",
    "ProbeResult",
    "RunResult",
    "Size",
    "ToolNotFoundError",
    "ToolRunner",
    "build_command",
    "delete_source",
    "tool_for",
]
