"""
git-deployer: track and promote deployment environments with marker tags.

Each environment maps to a branch; an annotated tag named after the
environment marks the last commit promoted there. Deploying moves the
tag to the branch tip and pushes it. All git commands run one at a time
through a serial queue.

Usage as library:
    from git_deployer import Deployer, DeployerConfig
    deployer = Deployer(DeployerConfig())
    await deployer.check_all()

Usage as CLI:
    git-deployer status              # Status of every environment
    git-deployer deploy prod         # Promote one environment
    git-deployer deploy --all-outdated
    git-deployer commits prod        # Commits waiting for prod
"""

from importlib.metadata import PackageNotFoundError, version

from .command_queue import CommandQueue
from .commits import CommitReporter, parse_commit_log, pull_request_url
from .config import DeployerConfig, RepositoryLock, build_config, load_config_from_yaml
from .deploy import DeploymentOperator
from .deployer import Deployer
from .git import GitCommandError, GitRepository
from .logging import add_log_listener, get_logger, setup_logging
from .models import (
    CommandResult,
    Commit,
    DeploymentResult,
    DeployStatus,
    EnvironmentMapping,
    EnvironmentStatus,
    OperationResult,
)
from .paths import ensure_base_dir, resolve_repo_path
from .runner import run_command
from .settings import Settings, SettingsError, SettingsStore, UnknownEnvironmentError
from .status import StatusEvaluator
from .validate import ValidationResult, format_results, validate_config, validate_settings

try:
    __version__ = version("git-deployer")
except PackageNotFoundError:
    __version__ = "0.0.0.dev"  # Fallback for development without install
__all__ = [
    # Core
    "CommandQueue",
    "run_command",
    "GitRepository",
    "GitCommandError",
    "StatusEvaluator",
    "DeploymentOperator",
    "CommitReporter",
    "parse_commit_log",
    "pull_request_url",
    "resolve_repo_path",
    "ensure_base_dir",
    # Facade
    "Deployer",
    # Models
    "CommandResult",
    "Commit",
    "DeploymentResult",
    "DeployStatus",
    "EnvironmentMapping",
    "EnvironmentStatus",
    "OperationResult",
    # Config & settings
    "DeployerConfig",
    "RepositoryLock",
    "build_config",
    "load_config_from_yaml",
    "Settings",
    "SettingsError",
    "SettingsStore",
    "UnknownEnvironmentError",
    # Validation
    "ValidationResult",
    "format_results",
    "validate_config",
    "validate_settings",
    # Logging
    "add_log_listener",
    "get_logger",
    "setup_logging",
]
