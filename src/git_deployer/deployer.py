"""Deployer: the operation boundary used by the CLI and MCP server.

Owns the command queue, reads settings, resolves the repository
checkout, and converts failures into result values. Only the bulk
operations raise, with SettingsError, when settings cannot be loaded.
"""

from pathlib import Path

from .command_queue import CommandQueue
from .commits import CommitReporter
from .config import DeployerConfig
from .deploy import DeploymentOperator
from .git import GitCommandError, GitRepository
from .logging import get_logger, redact
from .models import (
    Commit,
    DeploymentResult,
    DeployStatus,
    EnvironmentStatus,
    OperationResult,
)
from .paths import ensure_base_dir, resolve_repo_path
from .settings import Settings, SettingsError, SettingsStore
from .status import StatusEvaluator

logger = get_logger("deployer")

_OPERATION_ERRORS = (GitCommandError, SettingsError, OSError, ValueError)


def authenticated_url(repository_url: str, token: str) -> str:
    """Embed an access token into an https clone URL."""
    if token and repository_url.startswith("https://") and "@" not in repository_url:
        return repository_url.replace("https://", f"https://{token}@", 1)
    return repository_url


class Deployer:
    """Environment status, deployment, and commit queries for one repository."""

    def __init__(
        self,
        config: DeployerConfig,
        store: SettingsStore | None = None,
        queue: CommandQueue | None = None,
    ):
        self.config = config
        self.store = store or SettingsStore(config.settings_file)
        self.queue = queue or CommandQueue(
            settle_delay=config.settle_delay,
            timeout=config.command_timeout,
        )

    # === Plumbing ===

    def settings(self) -> Settings:
        return self.store.load()

    def repo_path(self, settings: Settings | None = None) -> Path:
        settings = settings or self.settings()
        return resolve_repo_path(settings.repository_url, self.config.base_dir)

    def _load_settings_or_raise(self) -> Settings:
        try:
            return self.settings()
        except SettingsError as e:
            logger.error("Cannot load settings", error=str(e))
            raise

    def git(self, settings: Settings | None = None) -> GitRepository:
        return GitRepository(
            self.queue,
            self.repo_path(settings),
            git_command=self.config.git_command,
            remote=self.config.remote,
        )

    def _components(self, settings: Settings):
        git = self.git(settings)
        evaluator = StatusEvaluator(git)
        return git, evaluator, DeploymentOperator(git, evaluator), CommitReporter(git)

    # === Repository initialization ===

    async def initialize_repository(self, settings: Settings | None = None) -> OperationResult:
        """Clone the configured repository, or refresh an existing checkout."""
        try:
            settings = settings or self.settings()
            if not settings.repository_url:
                raise SettingsError("No repository URL configured")
            ensure_base_dir(self.config.base_dir)
            git = self.git(settings)
            git.path.mkdir(parents=True, exist_ok=True)

            if (git.path / ".git").exists():
                logger.info(
                    "Repository already exists, fetching latest changes", path=str(git.path)
                )
                result = await git.fetch_all()
            else:
                logger.info("Cloning repository", path=str(git.path))
                result = await git.clone(
                    authenticated_url(settings.repository_url, settings.access_token)
                )
        except _OPERATION_ERRORS as e:
            logger.error("Repository initialization failed", error=redact(str(e)))
            return OperationResult(success=False, error=str(e))

        logger.info("Repository initialization completed")
        return OperationResult(success=True, output=result.output)

    async def apply_settings(self, settings: Settings) -> OperationResult:
        """Persist settings and re-initialize when the repository changed."""
        try:
            previous = self.settings()
        except SettingsError:
            previous = None
        try:
            self.store.save(settings)
        except OSError as e:
            logger.error("Failed to save settings", error=str(e))
            return OperationResult(success=False, error=str(e))

        url_changed = previous is None or previous.repository_url != settings.repository_url
        if settings.repository_url and (
            url_changed or not (self.repo_path(settings) / ".git").exists()
        ):
            return await self.initialize_repository(settings)
        return OperationResult(success=True, output="Settings saved")

    # === Environment operations ===

    async def check_status(self, environment: str) -> EnvironmentStatus:
        try:
            settings = self.settings()
            mapping = settings.mapping(environment)
        except SettingsError as e:
            return EnvironmentStatus(
                name=environment, branch="", status=DeployStatus.ERROR, error=str(e)
            )
        _, evaluator, _, _ = self._components(settings)
        return await evaluator.evaluate(mapping)

    async def check_all(self) -> list[EnvironmentStatus]:
        """Status of every mapped environment.

        Raises SettingsError when settings cannot be loaded, since there is
        no environment list to attach the error to.
        """
        settings = self._load_settings_or_raise()
        _, evaluator, _, _ = self._components(settings)
        return await evaluator.evaluate_all(settings.mappings())

    async def deploy(self, environment: str) -> DeploymentResult:
        try:
            settings = self.settings()
            mapping = settings.mapping(environment)
        except SettingsError as e:
            return DeploymentResult(name=environment, deployed=False, error=str(e))
        _, _, operator, _ = self._components(settings)
        return await operator.deploy(mapping)

    async def deploy_all_outdated(self) -> list[DeploymentResult]:
        """Raises SettingsError when settings cannot be loaded."""
        settings = self._load_settings_or_raise()
        _, _, operator, _ = self._components(settings)
        return await operator.deploy_all_outdated(settings.mappings())

    async def commits_between(self, environment: str, ahead: bool = False) -> list[Commit]:
        """Undeployed commits (or, with ``ahead``, commits only on the tag).

        An empty list on any failure.
        """
        try:
            settings = self.settings()
            mapping = settings.mapping(environment)
            _, _, _, reporter = self._components(settings)
            return await reporter.commits_between(mapping, ahead=ahead)
        except _OPERATION_ERRORS as e:
            logger.error("Failed to retrieve commits", environment=environment, error=str(e))
            return []

    async def recent_deployed_commits(
        self, environment: str, days: int | None = None
    ) -> list[Commit]:
        try:
            settings = self.settings()
            mapping = settings.mapping(environment)
            _, _, _, reporter = self._components(settings)
            return await reporter.recent_deployed_commits(
                mapping, days if days is not None else settings.recent_commit_days
            )
        except _OPERATION_ERRORS as e:
            logger.error(
                "Failed to retrieve deployed commits", environment=environment, error=str(e)
            )
            return []
