# src/media_adapter/runner.py
"""Run ffmpeg/ffprobe argument strings and hand back what they printed."""

import logging
import os
import shlex
import subprocess

from media_adapter.commands import FFMPEG, FFPROBE
from media_adapter.config import Settings, get_settings
from media_adapter.models import RunResult

logger = logging.getLogger(__name__)


class ToolNotFoundError(Exception):
    """The external binary could not be started."""
    pass


class ToolRunner:
    """Invoke the external tools, one process per call, output returned per call."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    def binary_for(self, tool: str) -> str:
        if tool == FFMPEG:
            return self.settings.ffmpeg_path
        if tool == FFPROBE:
            return self.settings.ffprobe_path
        raise ValueError(f"Unknown tool: {tool}")

    def command_line(self, tool: str, args: str):
        """Turn an argument string into what subprocess expects on this platform."""
        binary = self.binary_for(tool)
        if tool == FFMPEG:
            args = f"-hide_banner -y {args}"
        if os.name == "nt":
            # Windows parses the command line itself
            return f'"{binary}" {args}'
        return [binary, *shlex.split(args)]

    def run(self, tool: str, args: str, cwd=None, timeout: float | None = None) -> RunResult:
        """
        Run a tool to completion and capture stdout and stderr together.

        Raises:
            ToolNotFoundError: If the binary is missing
        """
        timeout = timeout or self.settings.timeout
        cmd = self.command_line(tool, args)
        logger.debug(f"Running {tool} {args}")

        try:
            result = subprocess.run(
                cmd,
                cwd=str(cwd) if cwd else None,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                errors="replace",
                timeout=timeout,
            )
        except subprocess.TimeoutExpired as e:
            logger.error(f"{tool} timed out after {timeout} seconds")
            output = e.output or ""
            if isinstance(output, bytes):
                output = output.decode(errors="replace")
            return RunResult(tool=tool, args=args, output=output, timed_out=True)
        except FileNotFoundError:
            raise ToolNotFoundError(
                f"{tool} not found at {self.binary_for(tool)}. Install it or set MEDIA_ADAPTER_{tool.upper()}."
            )

        run = RunResult(tool=tool, args=args, returncode=result.returncode, output=result.stdout or "")
        if not run.success:
            logger.debug(f"{tool} exited with code {result.returncode}")
        return run

    def ffmpeg(self, args: str, cwd=None) -> RunResult:
        return self.run(FFMPEG, args, cwd=cwd)

    def ffprobe(self, args: str) -> RunResult:
        return self.run(FFPROBE, args)
