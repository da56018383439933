"""Serial execution queue for external commands.

Every git invocation goes through one CommandQueue so that no two
commands ever touch the shared checkout at the same time. Jobs run in
submission order, one at a time, with a short settling pause between
consecutive jobs. Each job's future always resolves with a
CommandResult; failures are values, never exceptions.
"""

import asyncio
from collections import deque
from collections.abc import Awaitable, Callable, Sequence
from pathlib import Path

from .logging import get_logger, redact
from .models import CommandJob, CommandResult
from .runner import run_command

logger = get_logger("queue")

Runner = Callable[[Sequence[str], Path, float | None], Awaitable[CommandResult]]

MAX_LOGGED_LINES = 20
MAX_LOGGED_LINE_LENGTH = 200


def abbreviate_output(output: str) -> str:
    """Trim command output for the audit log."""
    lines = [line for line in output.splitlines() if line.strip()]
    if not lines:
        return ""
    shown = [
        line if len(line) <= MAX_LOGGED_LINE_LENGTH else line[:MAX_LOGGED_LINE_LENGTH] + "..."
        for line in lines[:MAX_LOGGED_LINES]
    ]
    if len(lines) > MAX_LOGGED_LINES:
        shown.append(f"... ({len(lines) - MAX_LOGGED_LINES} more lines)")
    if len(shown) == 1:
        return shown[0]
    return "\n" + "\n".join("   " + line for line in shown)


class CommandQueue:
    """FIFO of command jobs drained by a single worker task."""

    def __init__(
        self,
        runner: Runner = run_command,
        settle_delay: float = 0.1,
        timeout: float | None = None,
    ):
        self._runner = runner
        self.settle_delay = settle_delay
        self.timeout = timeout
        self._pending: deque[CommandJob] = deque()
        self._current: CommandJob | None = None
        self._in_flight = False
        self._worker: asyncio.Task[None] | None = None

    @property
    def pending(self) -> int:
        return len(self._pending)

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    def submit(self, command: Sequence[str], cwd: Path | str) -> "asyncio.Future[CommandResult]":
        """Queue a command. Must be called from a running event loop."""
        loop = asyncio.get_running_loop()
        job = CommandJob(command=tuple(command), cwd=Path(cwd), future=loop.create_future())
        self._pending.append(job)
        if not self._in_flight:
            self._in_flight = True
            self._worker = loop.create_task(self._drain())
        return job.future

    async def run(self, command: Sequence[str], cwd: Path | str) -> CommandResult:
        """Queue a command and wait for its result."""
        return await self.submit(command, cwd)

    async def join(self) -> None:
        """Wait until every queued job has been resolved."""
        while self._worker is not None:
            await asyncio.shield(self._worker)

    async def _drain(self) -> None:
        try:
            while self._pending:
                self._current = self._pending.popleft()
                result = await self._execute(self._current)
                if not self._current.future.done():
                    self._current.future.set_result(result)
                self._current = None
                if self._pending and self.settle_delay > 0:
                    await asyncio.sleep(self.settle_delay)
        finally:
            self._in_flight = False
            self._worker = None
            # Only reached with leftovers when the worker task is cancelled.
            leftovers = ([self._current] if self._current else []) + list(self._pending)
            self._current = None
            self._pending.clear()
            for job in leftovers:
                if not job.future.done():
                    job.future.set_result(
                        CommandResult(success=False, error="Command queue stopped")
                    )

    async def _execute(self, job: CommandJob) -> CommandResult:
        # Clone URLs may carry a token
        command_line = redact(" ".join(job.command))
        logger.info("Executing command", command=command_line, cwd=str(job.cwd))
        try:
            result = await self._runner(job.command, job.cwd, self.timeout)
        except Exception as e:
            result = CommandResult(success=False, error=f"{type(e).__name__}: {e}")

        if result.success:
            logger.info(
                "Command succeeded",
                command=command_line,
                output=redact(abbreviate_output(result.output)),
            )
        else:
            logger.error("Command failed", command=command_line, error=redact(result.message))
        return result
