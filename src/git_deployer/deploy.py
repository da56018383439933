"""Deployment: move an environment's marker tag to its branch tip.

A deployment fetches, resets the local branch to its remote tip, deletes
any existing marker tag locally and on the remote, creates a fresh
annotated tag at the tip and pushes it. The first failing step ends the
attempt; nothing is retried.
"""

from collections.abc import Callable
from datetime import UTC, datetime

from .git import GitCommandError, GitRepository
from .logging import get_logger
from .models import DeploymentResult, DeployStatus, EnvironmentMapping
from .status import StatusEvaluator

logger = get_logger("deploy")

UP_TO_DATE_MESSAGE = "Environment is already up to date."


def _utc_now() -> datetime:
    return datetime.now(UTC)


def tag_message(environment: str, when: datetime) -> str:
    return f"Deployed to {environment} on {when.isoformat()}"


class DeploymentOperator:
    """Promotes environments by retagging their branch tips."""

    def __init__(
        self,
        git: GitRepository,
        evaluator: StatusEvaluator,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.git = git
        self.evaluator = evaluator
        self.clock = clock

    async def deploy(self, mapping: EnvironmentMapping, fetch: bool = True) -> DeploymentResult:
        """Promote one environment. Never raises."""
        name = mapping.name
        log = logger.bind(environment=name, branch=mapping.branch)
        try:
            if fetch:
                await self.git.fetch_all()
            await self.git.checkout_remote_branch(mapping.branch)
            tip = await self.git.remote_branch_tip(mapping.branch)

            if await self.git.tag_exists(name):
                log.info("Removing previous marker tag")
                await self.git.delete_local_tag(name)
                await self.git.delete_remote_tag(name)

            await self.git.create_annotated_tag(name, tag_message(name, self.clock()), tip)
            push = await self.git.push_tag(name)
        except GitCommandError as e:
            log.error("Deployment failed", error=e.message)
            return DeploymentResult(name=name, deployed=False, error=e.message)

        log.info("Deployed", commit=tip)
        return DeploymentResult(name=name, deployed=True, output=push.output, commit=tip)

    async def deploy_all_outdated(
        self, mappings: list[EnvironmentMapping]
    ) -> list[DeploymentResult]:
        """Deploy every environment whose tag is behind or off its branch.

        One shared fetch; environments already up to date are not
        checked out at all.
        """
        try:
            await self.git.fetch_all()
        except GitCommandError as e:
            logger.error("Fetch failed, nothing deployed", error=e.message)
            return [
                DeploymentResult(name=m.name, deployed=False, error=e.message) for m in mappings
            ]

        results = []
        for mapping in mappings:
            status = await self.evaluator.classify(mapping)
            if status.status == DeployStatus.UP_TO_DATE:
                results.append(
                    DeploymentResult(
                        name=mapping.name,
                        deployed=False,
                        output=UP_TO_DATE_MESSAGE,
                        commit=status.last_deployed_commit,
                    )
                )
            elif status.status == DeployStatus.ERROR:
                results.append(
                    DeploymentResult(name=mapping.name, deployed=False, error=status.error)
                )
            else:
                results.append(await self.deploy(mapping, fetch=False))

        deployed = [r.name for r in results if r.deployed]
        logger.info("Deploy all outdated finished", deployed=deployed, total=len(results))
        return results
