"""Environment status evaluation.

Compares an environment's marker tag with the tip of its mapped branch
on the remote-tracking ref. Read-only: no checkout is performed, so
checking status never moves the shared working tree.
"""

from .git import GitCommandError, GitRepository
from .logging import get_logger
from .models import DeployStatus, EnvironmentMapping, EnvironmentStatus

logger = get_logger("status")


class StatusEvaluator:
    """Classifies environments as up-to-date, pending, ahead, or error."""

    def __init__(self, git: GitRepository):
        self.git = git

    async def evaluate(self, mapping: EnvironmentMapping, fetch: bool = True) -> EnvironmentStatus:
        """Compute the status of one environment. Never raises.

        Args:
            mapping: Environment name and branch.
            fetch: Fetch remote branches and tags first. Batch callers
                fetch once and pass False.
        """
        status = EnvironmentStatus(
            name=mapping.name, branch=mapping.branch, status=DeployStatus.ERROR
        )
        try:
            if fetch:
                await self.git.fetch_all()
            await self._classify_into(mapping, status)
        except GitCommandError as e:
            status.status = DeployStatus.ERROR
            status.error = e.message
            logger.error(
                "Status check failed",
                environment=mapping.name,
                branch=mapping.branch,
                error=e.message,
            )
            return status

        logger.info(
            "Status checked",
            environment=mapping.name,
            branch=mapping.branch,
            status=status.status.value,
        )
        return status

    async def classify(self, mapping: EnvironmentMapping) -> EnvironmentStatus:
        """Status from already-fetched refs."""
        return await self.evaluate(mapping, fetch=False)

    async def evaluate_all(self, mappings: list[EnvironmentMapping]) -> list[EnvironmentStatus]:
        """Status of every environment, sharing a single fetch."""
        try:
            await self.git.fetch_all()
        except GitCommandError as e:
            logger.error("Fetch failed, cannot check environments", error=e.message)
            return [
                EnvironmentStatus(
                    name=m.name, branch=m.branch, status=DeployStatus.ERROR, error=e.message
                )
                for m in mappings
            ]

        results = []
        for mapping in mappings:
            results.append(await self.evaluate(mapping, fetch=False))
        return results

    async def _classify_into(self, mapping: EnvironmentMapping, status: EnvironmentStatus) -> None:
        head = await self.git.remote_branch_tip(mapping.branch)
        status.current_head_commit = head

        if not await self.git.tag_exists(mapping.name):
            status.status = DeployStatus.PENDING_COMMITS
            return

        deployed = await self.git.tag_commit(mapping.name)
        status.last_deployed_commit = deployed

        if await self.git.count_commits(exclude=deployed, include=head) > 0:
            status.status = DeployStatus.PENDING_COMMITS
        elif await self.git.count_commits(exclude=head, include=deployed) > 0:
            # Deployed commit is no longer an ancestor of the branch tip
            status.status = DeployStatus.AHEAD_OF_BRANCH
        else:
            status.status = DeployStatus.UP_TO_DATE
