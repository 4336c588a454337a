# src/media_adapter/config.py
"""Process-wide settings read from the environment."""

import os
import shutil
from functools import lru_cache

from pydantic import BaseModel, Field

ENV_PREFIX = "MEDIA_ADAPTER_"


def _tool_path(env_name: str, default: str) -> str:
    """
    Resolve an external binary.

    Order: explicit environment variable, then PATH lookup, then the bare name.
    """
    env_val = os.environ.get(ENV_PREFIX + env_name)
    if env_val:
        return env_val
    return shutil.which(default) or default


class Settings(BaseModel):
    """Options consumed by the command builder, runner and adapter."""
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"
    enc_threads: int = Field(default=0, ge=0)  # 0 = let ffmpeg decide
    count_frames_slow: bool = False
    timeout: float = Field(default=600.0, gt=0)
    workers: int = Field(default=1, ge=1)
    frames_dir: str = "/tmp/media-adapter-frames"

    @classmethod
    def from_env(cls) -> "Settings":
        values = {
            "ffmpeg_path": _tool_path("FFMPEG", "ffmpeg"),
            "ffprobe_path": _tool_path("FFPROBE", "ffprobe"),
        }
        optional = {
            "enc_threads": "ENC_THREADS",
            "count_frames_slow": "COUNT_FRAMES",
            "timeout": "TIMEOUT",
            "workers": "WORKERS",
            "frames_dir": "FRAMES_DIR",
        }
        for field, env_name in optional.items():
            raw = os.environ.get(ENV_PREFIX + env_name)
            if raw is not None and raw != "":
                values[field] = raw
        return cls(**values)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()


def reset_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    get_settings.cache_clear()
