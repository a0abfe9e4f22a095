"""Async subprocess execution with timeout and captured output.

Used by the git-backed resolver to run ``git`` without blocking the event
loop that drives the per-file merge tasks.
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)


@dataclass
class SubprocessResult:
    """Result of subprocess execution."""

    returncode: int
    """Exit code of the process (``-1`` when it could not be started or timed out)."""

    stdout: bytes
    """Raw standard output."""

    stderr: str
    """Standard error, decoded leniently."""

    timed_out: bool = False
    """True if the process was killed because it exceeded the timeout."""

    duration_ms: float = 0.0
    """Wall-clock duration in milliseconds."""

    @property
    def success(self) -> bool:
        """True if the process exited with status 0 within the timeout."""
        return self.returncode == 0 and not self.timed_out

    @property
    def text(self) -> str:
        """Standard output decoded as UTF-8."""
        return self.stdout.decode("utf-8", errors="replace")


class SubprocessError(Exception):
    """Exception raised when subprocess execution fails."""

    def __init__(self, message: str, result: SubprocessResult) -> None:
        """Initialize with error message and result.

        Args:
            message: Error description.
            result: The SubprocessResult from the failed execution.
        """
        super().__init__(message)
        self.result = result


async def run_subprocess(
    command: Sequence[str],
    *,
    cwd: Path | None = None,
    timeout: float = 120.0,
    env: dict[str, str] | None = None,
    check: bool = False,
) -> SubprocessResult:
    """Run *command* and capture its output.

    Stdout is kept as bytes because callers read file contents through it
    and decide themselves whether the content is text.

    Args:
        command: Program and arguments.
        cwd: Working directory. Defaults to the current directory.
        timeout: Seconds before the process is killed.
        env: Extra environment variables, merged over the current environment.
        check: If True, raise SubprocessError on a non-zero exit or timeout.

    Raises:
        SubprocessError: If the program cannot be started, or on failure when
            ``check`` is set.
        ValueError: If command is empty or timeout is not positive.
    """
    if not command:
        raise ValueError("Command cannot be empty")
    if timeout <= 0:
        raise ValueError(f"Timeout must be positive, got {timeout}")

    work_dir = cwd.resolve() if cwd else Path.cwd()
    if not work_dir.exists():
        raise ValueError(f"Working directory does not exist: {work_dir}")

    full_env = {**os.environ, **env} if env else None
    printable = " ".join(str(c) for c in command)
    logger.debug("Running subprocess: %s (cwd=%s, timeout=%s)", printable, work_dir, timeout)

    start_time = time.perf_counter()
    try:
        process = await asyncio.create_subprocess_exec(
            *command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=work_dir,
            env=full_env,
        )
    except FileNotFoundError as exc:
        logger.error("Command not found: %s", command[0])
        raise SubprocessError(
            f"Command not found: {command[0]}",
            result=SubprocessResult(returncode=-1, stdout=b"", stderr=str(exc)),
        ) from exc

    timed_out = False
    try:
        stdout_bytes, stderr_bytes = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except TimeoutError:
        logger.warning("Subprocess timed out after %s seconds: %s", timeout, printable)
        timed_out = True
        try:
            process.kill()
            await process.wait()
        except ProcessLookupError:
            pass  # already exited
        stdout_bytes = b""
        stderr_bytes = b"Process timed out and was killed"

    duration_ms = (time.perf_counter() - start_time) * 1000
    returncode = -1 if timed_out else (process.returncode or 0)
    result = SubprocessResult(
        returncode=returncode,
        stdout=stdout_bytes,
        stderr=stderr_bytes.decode("utf-8", errors="replace"),
        timed_out=timed_out,
        duration_ms=duration_ms,
    )

    logger.debug(
        "Subprocess completed: returncode=%d, duration=%.2fms",
        returncode,
        duration_ms,
    )

    if check and not result.success:
        raise SubprocessError(
            f"Command failed with exit code {returncode}: {printable}",
            result=result,
        )
    return result
