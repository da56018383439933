"""Local checkout locations, one per repository URL."""

import base64
import hashlib
import re
from pathlib import Path
from urllib.parse import urlparse

from .logging import get_logger

logger = get_logger("paths")

DEFAULT_REPO_NAME = "default-repo"
FINGERPRINT_LENGTH = 8

# scp-like syntax: git@github.com:org/repo.git
_SCP_LIKE_RE = re.compile(r"^[\w.-]+@[\w.-]+:(?!//)(.*)$")


def repository_name(repository_url: str) -> str:
    """Last non-empty path segment of the URL without a ``.git`` suffix."""
    m = _SCP_LIKE_RE.match(repository_url)
    path = m.group(1) if m else urlparse(repository_url).path
    parts = [p for p in re.split(r"[/\\]", path) if p]
    if not parts:
        return DEFAULT_REPO_NAME
    name = parts[-1].removesuffix(".git")
    return name or DEFAULT_REPO_NAME


def url_fingerprint(repository_url: str, length: int = FINGERPRINT_LENGTH) -> str:
    """Short filesystem-safe digest of the full URL."""
    digest = hashlib.sha256(repository_url.encode("utf-8")).digest()
    encoded = base64.urlsafe_b64encode(digest).decode("ascii")
    return re.sub(r"[-_=]", "", encoded)[:length]


def resolve_repo_path(repository_url: str | None, base_dir: Path) -> Path:
    """Working directory for a repository URL.

    Deterministic: the same URL always maps to the same directory, and
    distinct URLs get distinct fingerprints. An unset URL maps to
    ``<base_dir>/default-repo``.
    """
    if not repository_url:
        return base_dir / DEFAULT_REPO_NAME
    return base_dir / f"{repository_name(repository_url)}-{url_fingerprint(repository_url)}"


def ensure_base_dir(base_dir: Path) -> Path:
    """Create the repositories directory tree if it does not exist yet."""
    if not base_dir.exists():
        base_dir.mkdir(parents=True, exist_ok=True)
        logger.info("Created base repository directory", path=str(base_dir))
    return base_dir
