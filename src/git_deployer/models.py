"""Data model for git-deployer.

Environment mappings, derived environment status, commit records and the
result shapes returned by commands and operations.
"""

import asyncio
import re
from dataclasses import asdict, dataclass
from enum import Enum
from pathlib import Path

_PR_MERGE_RE = re.compile(r"Merge pull request #(\d+)")


class DeployStatus(str, Enum):
    """Relationship between an environment's marker tag and its branch tip."""

    UP_TO_DATE = "up-to-date"
    PENDING_COMMITS = "pending-commits"
    AHEAD_OF_BRANCH = "ahead-of-branch"
    ERROR = "error"


@dataclass(frozen=True)
class EnvironmentMapping:
    """Environment name paired with the branch that feeds it."""

    name: str
    branch: str


@dataclass
class EnvironmentStatus:
    """Derived state of one environment. Never persisted."""

    name: str
    branch: str
    status: DeployStatus
    last_deployed_commit: str | None = None
    current_head_commit: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status != DeployStatus.ERROR

    def to_dict(self) -> dict:
        data = asdict(self)
        data["status"] = self.status.value
        if self.error is None:
            del data["error"]
        return data


@dataclass(frozen=True)
class Commit:
    """One commit from the repository history."""

    full_hash: str
    short_hash: str
    message: str
    author: str
    timestamp: str
    deployed: bool = False

    @property
    def pull_request_number(self) -> int | None:
        """PR number for GitHub merge commits, if the message names one."""
        m = _PR_MERGE_RE.search(self.message)
        return int(m.group(1)) if m else None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class CommandResult:
    """Outcome of one external command.

    ``success`` is False both for a non-zero exit and for a process that
    could not be started; in the latter case ``error`` carries the reason.
    """

    success: bool
    stdout: str = ""
    stderr: str = ""
    error: str | None = None

    @property
    def output(self) -> str:
        return self.stdout if self.stdout.strip() else self.stderr

    @property
    def message(self) -> str:
        if self.error:
            return self.error
        return (self.stderr.strip() or self.stdout.strip()) or "command failed"


@dataclass
class CommandJob:
    """A queued command awaiting execution."""

    command: tuple[str, ...]
    cwd: Path
    future: "asyncio.Future[CommandResult]"


@dataclass
class DeploymentResult:
    """Outcome of promoting one environment."""

    name: str
    deployed: bool
    output: str = ""
    error: str | None = None
    commit: str | None = None

    def to_dict(self) -> dict:
        data = asdict(self)
        if self.error is None:
            del data["error"]
        return data


@dataclass
class OperationResult:
    """Generic success/failure reply for non-environment operations."""

    success: bool
    output: str = ""
    error: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)
