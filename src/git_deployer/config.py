"""Configuration module for git-deployer.

Contains DeployerConfig dataclass, file-based locking, config loading
from YAML, and config building from CLI arguments.
"""

import argparse
import contextlib
import fcntl
import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import TextIO

import yaml

from .logging import get_logger

logger = get_logger("config")

# === File Lock ===


class RepositoryLock:
    """File lock to prevent two deployer processes mutating one checkout."""

    def __init__(self, lock_path: Path):
        self.lock_path = lock_path
        self.lock_file: TextIO | None = None

    def acquire(self) -> bool:
        """Try to acquire lock. Returns True if successful."""
        self.lock_path.parent.mkdir(parents=True, exist_ok=True)
        self.lock_file = open(self.lock_path, "w")  # noqa: SIM115
        try:
            fcntl.flock(self.lock_file, fcntl.LOCK_EX | fcntl.LOCK_NB)
            self.lock_file.write(f"PID: {os.getpid()}\nStarted: {datetime.now().isoformat()}\n")
            self.lock_file.flush()
            return True
        except BlockingIOError:
            self.lock_file.close()
            self.lock_file = None
            return False

    def release(self):
        """Release the lock."""
        if self.lock_file:
            fcntl.flock(self.lock_file, fcntl.LOCK_UN)
            self.lock_file.close()
            self.lock_file = None
            with contextlib.suppress(FileNotFoundError):
                self.lock_path.unlink()

    def __enter__(self) -> "RepositoryLock":
        return self

    def __exit__(self, *exc: object) -> None:
        self.release()


# === Constants ===

APP_DIR = Path.home() / ".git-deployer"
CONFIG_FILE = APP_DIR / "config.yaml"
SETTINGS_FILE = APP_DIR / "settings.yaml"
REPOSITORIES_DIR = APP_DIR / "repositories"
LOCK_FILE_NAME = ".git-deployer.lock"


# === DeployerConfig ===


@dataclass
class DeployerConfig:
    """Deployer configuration"""

    # Git
    git_command: str = "git"  # Git executable
    remote: str = "origin"  # Remote holding branches and marker tags

    # Queue
    settle_delay_ms: int = 100  # Pause between consecutive queued commands
    command_timeout_seconds: int = 300  # Per-command timeout (0 = no timeout)

    # Paths
    base_dir: Path = REPOSITORIES_DIR
    settings_file: Path = SETTINGS_FILE

    log_level: str = "info"

    def __post_init__(self):
        """Resolve paths to absolute ones."""
        self.base_dir = Path(self.base_dir).expanduser().resolve()
        self.settings_file = Path(self.settings_file).expanduser().resolve()

    @property
    def lock_file(self) -> Path:
        return self.base_dir / LOCK_FILE_NAME

    @property
    def settle_delay(self) -> float:
        return self.settle_delay_ms / 1000

    @property
    def command_timeout(self) -> float | None:
        return float(self.command_timeout_seconds) if self.command_timeout_seconds > 0 else None


# === Config Loading ===


def load_config_from_yaml(config_path: Path = CONFIG_FILE) -> dict:
    """Load configuration from YAML file.

    Args:
        config_path: Path to the configuration file.

    Returns:
        Dictionary with configuration values.
    """
    if not config_path.exists():
        return {}

    try:
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}

        deployer_config = data.get("deployer", {}) or {}
        git = deployer_config.get("git", {}) or {}
        queue = deployer_config.get("queue", {}) or {}
        paths = deployer_config.get("paths", {}) or {}

        return {
            "git_command": git.get("command"),
            "remote": git.get("remote"),
            "settle_delay_ms": queue.get("settle_delay_ms"),
            "command_timeout_seconds": queue.get("command_timeout_seconds"),
            "base_dir": Path(paths["repositories"]) if paths.get("repositories") else None,
            "settings_file": Path(paths["settings"]) if paths.get("settings") else None,
            "log_level": deployer_config.get("log_level"),
        }
    except Exception as e:
        logger.warning("Failed to load config", path=str(config_path), error=str(e))
        return {}


def build_config(yaml_config: dict, args: argparse.Namespace) -> DeployerConfig:
    """Build DeployerConfig from YAML and CLI arguments.

    CLI arguments override YAML config.

    Args:
        yaml_config: Configuration loaded from YAML file.
        args: Parsed CLI arguments.

    Returns:
        DeployerConfig instance.
    """
    # Start with defaults
    config_kwargs = {}

    # Apply YAML config (only non-None values)
    for key, value in yaml_config.items():
        if value is not None:
            config_kwargs[key] = value

    # Override with CLI arguments
    if getattr(args, "base_dir", None):
        config_kwargs["base_dir"] = Path(args.base_dir)
    if getattr(args, "settings_file", None):
        config_kwargs["settings_file"] = Path(args.settings_file)
    if getattr(args, "remote", None):
        config_kwargs["remote"] = args.remote
    if getattr(args, "git_command", None):
        config_kwargs["git_command"] = args.git_command
    if getattr(args, "timeout", None) is not None:
        config_kwargs["command_timeout_seconds"] = args.timeout
    if getattr(args, "log_level", None):
        config_kwargs["log_level"] = args.log_level

    return DeployerConfig(**config_kwargs)
