"""Commit range reporting between an environment's tag and its branch."""

import re

from .git import FIELD_SEP, RECORD_SEP, GitRepository
from .logging import get_logger
from .models import Commit, EnvironmentMapping

logger = get_logger("commits")

FIELD_COUNT = 5
UNKNOWN = "unknown"

_GITHUB_REPO_RE = re.compile(r"github\.com[/:](.+?)(?:\.git)?/?$")


def parse_commit_record(record: str, deployed: bool = False) -> Commit:
    """Parse one log record; malformed records become a placeholder."""
    fields = record.split(FIELD_SEP)
    if len(fields) != FIELD_COUNT or not fields[0]:
        return Commit(
            full_hash=UNKNOWN,
            short_hash=UNKNOWN,
            message=f"<parse error: {record[:80]!r}>",
            author=UNKNOWN,
            timestamp="",
            deployed=deployed,
        )
    full_hash, short_hash, message, author, timestamp = fields
    return Commit(
        full_hash=full_hash,
        short_hash=short_hash,
        message=message,
        author=author,
        timestamp=timestamp,
        deployed=deployed,
    )


def parse_commit_log(output: str, deployed: bool = False) -> list[Commit]:
    """Split delimiter-separated log output into commits, keeping order."""
    commits = []
    for record in output.split(RECORD_SEP):
        record = record.strip("\r\n")
        if not record.strip():
            continue
        commit = parse_commit_record(record, deployed=deployed)
        if commit.full_hash == UNKNOWN:
            logger.warning("Unparseable commit record", record=record[:80])
        commits.append(commit)
    return commits


def pull_request_url(commit: Commit, repository_url: str) -> str | None:
    """GitHub pull request link for a merge commit, if one can be derived."""
    number = commit.pull_request_number
    if number is None or not repository_url:
        return None
    m = _GITHUB_REPO_RE.search(repository_url)
    if not m:
        return None
    return f"https://github.com/{m.group(1)}/pull/{number}"


class CommitReporter:
    """Lists commits relative to an environment's marker tag."""

    def __init__(self, git: GitRepository):
        self.git = git

    async def commits_between(
        self, mapping: EnvironmentMapping, ahead: bool = False
    ) -> list[Commit]:
        """Commits on the branch tip not yet promoted, newest first.

        With ``ahead``, the other direction: commits the tag carries that
        the branch no longer has, as after a branch reset. Returns an empty
        list when the environment has never been deployed. Raises
        GitCommandError when a git command fails.
        """
        await self.git.fetch_all()
        if not await self.git.tag_exists(mapping.name):
            return []
        deployed = await self.git.tag_commit(mapping.name)
        tip = self.git.remote_branch_ref(mapping.branch)
        if ahead:
            commits = parse_commit_log(await self.git.log(f"{tip}..{deployed}"), deployed=True)
        else:
            commits = parse_commit_log(await self.git.log(f"{deployed}..{tip}"))
        logger.info(
            "Commits retrieved", environment=mapping.name, ahead=ahead, count=len(commits)
        )
        return commits

    async def recent_deployed_commits(self, mapping: EnvironmentMapping, days: int) -> list[Commit]:
        """Commits already promoted to the environment within the last ``days`` days."""
        await self.git.fetch_all()
        if not await self.git.tag_exists(mapping.name):
            return []
        deployed = await self.git.tag_commit(mapping.name)
        output = await self.git.log(deployed, since=f"{days}.days")
        return parse_commit_log(output, deployed=True)
