"""Thin wrappers around git CLI commands.

Each method issues exactly one git invocation through the command queue.
A failed invocation raises GitCommandError so a multi-step operation
stops at its first failure.
"""

from collections.abc import Sequence
from pathlib import Path
from typing import Protocol

from .models import CommandResult

# Field and record separators for machine-readable log output
FIELD_SEP = "\x1f"
RECORD_SEP = "\x1e"
LOG_FORMAT = "%H%x1f%h%x1f%s%x1f%an%x1f%aI%x1e"

REMOTE_REF_MISSING = "remote ref does not exist"


class CommandRunner(Protocol):
    async def run(self, command: Sequence[str], cwd: Path | str) -> CommandResult: ...


class GitCommandError(Exception):
    """Raised when a git command fails."""

    def __init__(self, command: Sequence[str], message: str):
        self.command = list(command)
        self.message = message
        super().__init__(message)


class GitRepository:
    """Git commands against one working checkout."""

    def __init__(
        self,
        queue: CommandRunner,
        path: Path,
        git_command: str = "git",
        remote: str = "origin",
    ):
        self.queue = queue
        self.path = path
        self.git_command = git_command
        self.remote = remote

    def remote_branch_ref(self, branch: str) -> str:
        return f"refs/remotes/{self.remote}/{branch}"

    async def run(self, *args: str, check: bool = True) -> CommandResult:
        """Run ``git <args>`` in the checkout."""
        command = [self.git_command, *args]
        result = await self.queue.run(command, self.path)
        if check and not result.success:
            raise GitCommandError(command, result.message)
        return result

    async def clone(self, url: str) -> CommandResult:
        return await self.run("clone", url, ".")

    async def fetch_all(self) -> CommandResult:
        """Fetch every remote's branches and tags, overwriting local tags."""
        return await self.run("fetch", "--all", "--tags", "--force")

    async def checkout_remote_branch(self, branch: str) -> CommandResult:
        """Check out ``branch``, resetting it to its remote-tracking tip.

        Works after the remote branch was rebased or force-pushed, where a
        fast-forward pull of the stale local branch would abort.
        """
        return await self.run("checkout", "-B", branch, self.remote_branch_ref(branch))

    async def rev_parse_commit(self, ref: str) -> str:
        """Commit id ``ref`` points at, dereferencing annotated tags."""
        result = await self.run("rev-parse", "--verify", f"{ref}^{{commit}}")
        return result.stdout.strip()

    async def remote_branch_tip(self, branch: str) -> str:
        return await self.rev_parse_commit(self.remote_branch_ref(branch))

    async def tag_exists(self, name: str) -> bool:
        # --list takes a pattern, so compare lines exactly
        result = await self.run("tag", "--list", name)
        return name in (line.strip() for line in result.stdout.splitlines())

    async def tag_commit(self, name: str) -> str:
        return await self.rev_parse_commit(f"refs/tags/{name}")

    async def delete_local_tag(self, name: str) -> CommandResult:
        return await self.run("tag", "-d", name)

    async def delete_remote_tag(self, name: str) -> CommandResult:
        """Delete the tag on the remote; a tag missing there is not an error."""
        result = await self.run("push", self.remote, f":refs/tags/{name}", check=False)
        if not result.success and REMOTE_REF_MISSING not in result.message:
            raise GitCommandError([self.git_command, "push", self.remote], result.message)
        return result

    async def create_annotated_tag(self, name: str, message: str, target: str) -> CommandResult:
        return await self.run("tag", "-a", name, "-m", message, target)

    async def push_tag(self, name: str) -> CommandResult:
        return await self.run("push", self.remote, f"refs/tags/{name}")

    async def count_commits(self, exclude: str, include: str) -> int:
        """Number of commits reachable from ``include`` but not ``exclude``."""
        result = await self.run("rev-list", "--count", f"{exclude}..{include}")
        try:
            return int(result.stdout.strip())
        except ValueError as e:
            raise GitCommandError(
                ["rev-list", "--count"], f"Unexpected rev-list output: {result.stdout!r}"
            ) from e

    async def log(self, *revisions: str, since: str | None = None) -> str:
        """Delimiter-separated log records, newest first."""
        args = ["log", f"--format={LOG_FORMAT}"]
        if since:
            args.append(f"--since={since}")
        args.extend(revisions)
        args.append("--")
        result = await self.run(*args)
        return result.stdout
