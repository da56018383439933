"""Runner utilities for git-deployer.

Runs a single external command in a working directory and captures its
output. A non-zero exit is an ordinary result, and so is a process that
could not be started: callers always get a CommandResult back.
"""

import asyncio
from collections.abc import Sequence
from pathlib import Path

from .models import CommandResult


def _decode(data: bytes | None) -> str:
    return data.decode("utf-8", errors="replace") if data else ""


async def run_command(
    command: Sequence[str],
    cwd: Path | str,
    timeout: float | None = None,
) -> CommandResult:
    """Run ``command`` in ``cwd`` and wait for it to exit.

    Args:
        command: Argument vector; no shell is involved.
        cwd: Working directory for the process.
        timeout: Seconds to wait before killing the process (None = no limit).

    Returns:
        CommandResult with stdout/stderr. ``error`` is set when the process
        could not be started or was killed on timeout.
    """
    try:
        proc = await asyncio.create_subprocess_exec(
            *command,
            cwd=str(cwd),
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        return CommandResult(success=False, error=f"Failed to start {command[0]}: {e}")

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except TimeoutError:
        try:
            proc.kill()
            await proc.wait()
        except ProcessLookupError:
            pass
        return CommandResult(success=False, error=f"Command timed out after {timeout:g}s")

    return CommandResult(
        success=proc.returncode == 0,
        stdout=_decode(stdout),
        stderr=_decode(stderr),
    )
