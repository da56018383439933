"""Shared test doubles for git-deployer tests."""

from collections.abc import Sequence
from pathlib import Path

import pytest

from git_deployer.models import CommandResult


class ScriptedQueue:
    """Stands in for CommandQueue: answers commands from a script.

    Responses are keyed by the git arguments (without the executable).
    Unscripted commands succeed with empty output.
    """

    def __init__(self, responses: dict[tuple[str, ...], CommandResult] | None = None):
        self.responses = dict(responses or {})
        self.calls: list[tuple[str, ...]] = []

    def on(self, *args: str, stdout: str = "", stderr: str = "", success: bool = True):
        self.responses[args] = CommandResult(success=success, stdout=stdout, stderr=stderr)
        return self

    def fail(self, *args: str, stderr: str = "fatal: boom"):
        return self.on(*args, stderr=stderr, success=False)

    def environment(
        self,
        name: str,
        branch: str,
        head: str,
        deployed: str | None = None,
        behind: int = 0,
        ahead: int = 0,
    ):
        """Script branch tip, marker tag and ancestry answers for one environment."""
        self.on("rev-parse", "--verify", f"refs/remotes/origin/{branch}^{{commit}}", stdout=head)
        if deployed is None:
            return self.on("tag", "--list", name)
        self.on("tag", "--list", name, stdout=name + "\n")
        self.on("rev-parse", "--verify", f"refs/tags/{name}^{{commit}}", stdout=deployed + "\n")
        self.on("rev-list", "--count", f"{deployed}..{head}", stdout=f"{behind}\n")
        return self.on("rev-list", "--count", f"{head}..{deployed}", stdout=f"{ahead}\n")

    async def run(self, command: Sequence[str], cwd: Path | str) -> CommandResult:
        args = tuple(command[1:])
        self.calls.append(args)
        return self.responses.get(args, CommandResult(success=True))

    def called(self, *prefix: str) -> list[tuple[str, ...]]:
        """Calls whose arguments start with ``prefix``."""
        return [c for c in self.calls if c[: len(prefix)] == prefix]


@pytest.fixture
def scripted_queue() -> ScriptedQueue:
    return ScriptedQueue()
