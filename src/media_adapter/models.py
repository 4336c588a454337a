"""Pydantic models for operations, probe results and tool runs."""

from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class OperationKind(str, Enum):
    EXTRACT_FRAMES = "extract-frames"
    EXTRACT_SINGLE_FRAME = "extract-single-frame"
    FRAMES_TO_VIDEO = "frames-to-video"
    FRAMES_TO_APNG = "frames-to-apng"
    FRAMES_TO_GIF = "frames-to-gif"
    CONVERT_FRAMERATE = "convert-framerate"
    CHANGE_SPEED = "change-speed"
    LOOP = "loop"
    ENCODE = "encode"
    MERGE_AUDIO = "merge-audio"
    EXTRACT_AUDIO = "extract-audio"
    MERGE_ALPHA = "merge-alpha"
    EXTRACT_ALPHA = "extract-alpha"
    REMOVE_ALPHA = "remove-alpha"
    CONCAT = "concat"
    GET_DURATION = "get-duration"
    GET_FRAMERATE = "get-framerate"
    GET_SIZE = "get-size"
    GET_FRAME_COUNT = "get-frame-count"
    GET_AUDIO_CODEC = "get-audio-codec"


class Operation(BaseModel):
    """Which template to fill, plus the named values to fill it with."""
    kind: OperationKind
    params: dict[str, Any] = {}


class ProbeResult(BaseModel, Generic[T]):
    """A probed fact that was either found in tool output or not."""
    found: bool = False
    value: T | None = None
    method: str | None = None

    @classmethod
    def of(cls, value: T, method: str | None = None) -> "ProbeResult[T]":
        return cls(found=True, value=value, method=method)

    @classmethod
    def missing(cls) -> "ProbeResult[T]":
        return cls()

    def value_or(self, default: T) -> T:
        return self.value if self.found else default


class Size(BaseModel):
    width: int
    height: int

    def __str__(self) -> str:
        return f"{self.width}x{self.height}"


class RunResult(BaseModel):
    """Captured outcome of a single external tool invocation."""
    tool: str
    args: str
    returncode: int | None = None
    output: str = ""
    timed_out: bool = False

    @property
    def success(self) -> bool:
        return self.returncode == 0 and not self.timed_out

    def mentions(self, *markers: str) -> bool:
        """Case-insensitive check of the captured output for any marker."""
        text = self.output.lower()
        return any(marker.lower() in text for marker in markers)


class OperationResult(BaseModel):
    """Result of a build-and-run operation."""
    success: bool
    message: str
    output_path: str | None = None
    run: RunResult | None = None


class MediaInfo(BaseModel):
    """Response from the probe tool."""
    status: str  # "success" or "error"
    path: str | None = None
    frame_count: int | None = None
    framerate: float | None = None
    width: int | None = None
    height: int | None = None
    audio_codec: str | None = None
    duration_ms: int | None = None
    message: str


class FrameExtractionResponse(BaseModel):
    """Response from the frame extraction tool."""
    status: str  # "success" or "error"
    frames_dir: str | None = None
    frames_extracted: int = 0
    message: str
