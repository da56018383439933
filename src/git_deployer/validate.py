"""Validation for git-deployer config files and settings."""

import re
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from git_deployer.logging import get_logger
from git_deployer.settings import Settings

log = get_logger("validate")

# Known keys allowed under the deployer: section in config YAML.
KNOWN_DEPLOYER_KEYS: set[str] = {"git", "queue", "paths", "log_level"}
KNOWN_SECTION_KEYS: dict[str, set[str]] = {
    "git": {"command", "remote"},
    "queue": {"settle_delay_ms", "command_timeout_seconds"},
    "paths": {"repositories", "settings"},
}

# Characters git refuses in ref names (see git-check-ref-format)
_BAD_REF_CHARS_RE = re.compile(r"[\x00-\x20\x7f~^:?*\[\\]")


@dataclass
class ValidationResult:
    """Collects errors and warnings from validation checks."""

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """True when no errors were found."""
        return len(self.errors) == 0

    def merge(self, other: "ValidationResult") -> None:
        """Merge another result into this one."""
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)


def _levenshtein(s1: str, s2: str) -> int:
    """Compute the Levenshtein (edit) distance between two strings."""
    if len(s1) < len(s2):
        return _levenshtein(s2, s1)

    if not s2:
        return len(s1)

    prev_row = list(range(len(s2) + 1))
    for i, c1 in enumerate(s1):
        curr_row = [i + 1]
        for j, c2 in enumerate(s2):
            cost = 0 if c1 == c2 else 1
            curr_row.append(min(curr_row[j] + 1, prev_row[j + 1] + 1, prev_row[j] + cost))
        prev_row = curr_row

    return prev_row[-1]


def _suggest_key(unknown: str, known: set[str]) -> str | None:
    """Suggest the closest known key if Levenshtein distance <= 2."""
    best: str | None = None
    best_dist = 3  # only suggest if distance <= 2
    for k in sorted(known):  # sorted for deterministic results
        d = _levenshtein(unknown, k)
        if d < best_dist:
            best = k
            best_dist = d
    return best


def _unknown_key_error(path: str, key: str, known: set[str]) -> str:
    suggestion = _suggest_key(key, known)
    msg = f"Unknown config key '{path}.{key}'"
    if suggestion:
        msg += f"; did you mean '{suggestion}'?"
    return msg


def ref_name_problem(name: str) -> str | None:
    """Why ``name`` cannot be used as a tag or branch name, or None if it can."""
    if not name:
        return "is empty"
    if _BAD_REF_CHARS_RE.search(name):
        return "contains whitespace or one of ~ ^ : ? * [ \\"
    if ".." in name or "@{" in name or "//" in name:
        return "contains '..', '@{' or '//'"
    if name.startswith(("-", "/", ".")) or name.endswith(("/", ".", ".lock")):
        return "starts with '-', '/' or '.', or ends with '/', '.' or '.lock'"
    if any(part.startswith(".") for part in name.split("/")):
        return "has a path component starting with '.'"
    if name == "@":
        return "is '@'"
    return None


def validate_config(config_path: Path) -> ValidationResult:
    """Validate a deployer config YAML file.

    Checks:
    - File exists (missing = ok, use defaults)
    - YAML is parseable
    - Keys under ``deployer:`` and its sections are recognised
    """
    result = ValidationResult()

    if not config_path.exists():
        return result  # missing config is fine, defaults apply

    raw = config_path.read_text()
    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        result.errors.append(f"Failed to parse YAML in {config_path}: {exc}")
        return result

    if not isinstance(data, dict):
        return result

    section = data.get("deployer")
    if not isinstance(section, dict):
        return result

    for key, value in section.items():
        if key not in KNOWN_DEPLOYER_KEYS:
            result.errors.append(_unknown_key_error("deployer", key, KNOWN_DEPLOYER_KEYS))
            continue
        known = KNOWN_SECTION_KEYS.get(key)
        if known is None or not isinstance(value, dict):
            continue
        for sub_key in value:
            if sub_key not in known:
                result.errors.append(_unknown_key_error(f"deployer.{key}", sub_key, known))

    return result


def validate_settings(settings: Settings) -> ValidationResult:
    """Check settings before any git command is issued.

    Environment names become tag names and branches become ref names,
    so both must be valid refs.
    """
    result = ValidationResult()

    if not settings.repository_url:
        result.errors.append("No repository URL configured")
    elif settings.repository_url.startswith("https://") and not settings.access_token:
        result.warnings.append("No access token configured; pushes may require credentials")

    if not settings.environment_mappings:
        result.warnings.append("No environments configured")

    for name, branch in settings.environment_mappings.items():
        problem = ref_name_problem(name)
        if problem:
            result.errors.append(f"Environment name '{name}' {problem}")
        if not branch:
            result.errors.append(f"Environment '{name}' has no branch")
        else:
            problem = ref_name_problem(branch)
            if problem:
                result.errors.append(f"Branch '{branch}' of environment '{name}' {problem}")

    branches: dict[str, list[str]] = {}
    for name, branch in settings.environment_mappings.items():
        branches.setdefault(branch, []).append(name)
    for branch, names in branches.items():
        if len(names) > 1:
            result.warnings.append(
                f"Branch '{branch}' feeds several environments: {', '.join(names)}"
            )

    if settings.recent_commit_days < 1:
        result.errors.append("recent_commit_days must be at least 1")

    log.info(
        "validation_complete",
        environments=len(settings.environment_mappings),
        errors=len(result.errors),
        warnings=len(result.warnings),
    )
    return result


def format_results(result: ValidationResult) -> str:
    """Format validation results for terminal output."""
    lines: list[str] = []
    if result.errors:
        for e in result.errors:
            lines.append(f"  x {e}")
    if result.warnings:
        if lines:
            lines.append("")
        for w in result.warnings:
            lines.append(f"  ! {w}")
    n_err = len(result.errors)
    n_warn = len(result.warnings)
    err_word = "error" if n_err == 1 else "errors"
    warn_word = "warning" if n_warn == 1 else "warnings"
    lines.append(f"\n{n_err} {err_word}, {n_warn} {warn_word}")
    return "\n".join(lines)
