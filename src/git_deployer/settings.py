"""Settings store for git-deployer.

Holds the access token, repository URL and environment -> branch
mappings in a YAML file. The rest of the package treats it as a plain
key-value collaborator.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from .logging import get_logger
from .models import EnvironmentMapping

logger = get_logger("settings")

DEFAULT_ENVIRONMENT_MAPPINGS: dict[str, str] = {
    "dev-test": "develop",
    "test": "release/test",
    "preprod": "release/candidate",
    "prod": "master",
}
DEFAULT_RECENT_COMMIT_DAYS = 7


class SettingsError(Exception):
    """Raised when the settings file cannot be read or is malformed."""


class UnknownEnvironmentError(SettingsError):
    """Raised when an environment name has no branch mapping."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown environment: {name}")


@dataclass
class Settings:
    """User settings"""

    access_token: str = ""
    repository_url: str = ""
    environment_mappings: dict[str, str] = field(
        default_factory=lambda: dict(DEFAULT_ENVIRONMENT_MAPPINGS)
    )
    recent_commit_days: int = DEFAULT_RECENT_COMMIT_DAYS

    def mappings(self) -> list[EnvironmentMapping]:
        return [
            EnvironmentMapping(name=name, branch=branch)
            for name, branch in self.environment_mappings.items()
        ]

    def mapping(self, name: str) -> EnvironmentMapping:
        """Look up one environment.

        Raises:
            UnknownEnvironmentError: If no branch is mapped to ``name``.
        """
        branch = self.environment_mappings.get(name)
        if not branch:
            raise UnknownEnvironmentError(name)
        return EnvironmentMapping(name=name, branch=branch)

    def to_dict(self) -> dict:
        return {
            "access_token": self.access_token,
            "repository_url": self.repository_url,
            "environment_mappings": dict(self.environment_mappings),
            "recent_commit_days": self.recent_commit_days,
        }


def settings_from_dict(data: dict) -> Settings:
    """Build Settings from parsed YAML, applying defaults for missing keys."""
    mappings = data.get("environment_mappings")
    if mappings is None:
        mappings = dict(DEFAULT_ENVIRONMENT_MAPPINGS)
    if not isinstance(mappings, dict):
        raise SettingsError("environment_mappings must be a mapping of name -> branch")

    days = data.get("recent_commit_days") or DEFAULT_RECENT_COMMIT_DAYS
    try:
        days = int(days)
    except (TypeError, ValueError) as e:
        raise SettingsError(f"recent_commit_days must be an integer: {days!r}") from e

    return Settings(
        access_token=str(data.get("access_token") or ""),
        repository_url=str(data.get("repository_url") or ""),
        environment_mappings={str(k): str(v) for k, v in mappings.items()},
        recent_commit_days=days,
    )


class SettingsStore:
    """YAML-file backed settings."""

    def __init__(self, path: Path):
        self.path = path

    def load(self) -> Settings:
        """Load settings, falling back to defaults when the file is missing.

        Raises:
            SettingsError: If the file exists but cannot be parsed.
        """
        if not self.path.exists():
            return Settings()

        try:
            data = yaml.safe_load(self.path.read_text()) or {}
        except (OSError, yaml.YAMLError) as e:
            raise SettingsError(f"Failed to read settings from {self.path}: {e}") from e

        if not isinstance(data, dict):
            raise SettingsError(f"Settings file {self.path} must contain a mapping")
        return settings_from_dict(data)

    def save(self, settings: Settings) -> None:
        """Write settings; the file holds a token so it is kept private."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        text = yaml.safe_dump(settings.to_dict(), sort_keys=False)
        fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w") as f:
            f.write(text)
        logger.info("Settings saved", path=str(self.path))

    def update_environment_mapping(self, name: str, branch: str) -> Settings:
        settings = self.load()
        settings.environment_mappings[name] = branch
        self.save(settings)
        return settings

    def remove_environment_mapping(self, name: str) -> bool:
        settings = self.load()
        if name not in settings.environment_mappings:
            return False
        del settings.environment_mappings[name]
        self.save(settings)
        return True
