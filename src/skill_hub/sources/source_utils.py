"""Skill source parsing and git helper utilities."""

from __future__ import annotations

import os
import re
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse
from uuid import uuid4

from skill_hub.core.exceptions import SourceFetchError
from skill_hub.core.logging.logger import get_logger

logger = get_logger(__name__)

DEFAULT_GIT_HOST = "github.com"

_HOST_RE = re.compile(r"^[A-Za-z0-9-]+(\.[A-Za-z0-9-]+)+(:\d+)?$")
_SEGMENT_RE = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_.-]*$")
_SCP_LIKE_RE = re.compile(r"^[\w.-]+@[\w.-]+:")


@dataclass(frozen=True)
class SourceDescriptor:
    clone_url: str
    branch: str | None = None
    subpath: str | None = None


def parse_repo_source(source: str) -> SourceDescriptor:
    """Normalize a user supplied skill source.

    Accepts ``scheme://host/owner/repo``, ``host/owner/repo`` and
    ``owner/repo`` (each optionally followed by ``/tree/<branch>/<subpath>``).
    Anything else is returned verbatim as a local path.
    """
    raw = source.strip()
    if not raw or "\\" in raw:
        return SourceDescriptor(clone_url=source)

    parsed = urlparse(raw)
    if parsed.scheme and "://" in raw:
        if parsed.scheme == "file" or not parsed.netloc:
            return SourceDescriptor(clone_url=source)
        descriptor = _descriptor_from_parts(parsed.netloc, parsed.path.strip("/").split("/"))
        return descriptor or SourceDescriptor(clone_url=source)

    if raw.startswith(("/", ".", "~")):
        return SourceDescriptor(clone_url=source)

    parts = raw.strip("/").split("/")
    if len(parts) >= 3 and _HOST_RE.match(parts[0]):
        descriptor = _descriptor_from_parts(parts[0], parts[1:])
        if descriptor:
            return descriptor

    if len(parts) == 2 or (len(parts) >= 4 and parts[2] == "tree"):
        descriptor = _descriptor_from_parts(DEFAULT_GIT_HOST, parts)
        if descriptor:
            return descriptor

    return SourceDescriptor(clone_url=source)


def _descriptor_from_parts(host: str, parts: list[str]) -> SourceDescriptor | None:
    parts = [part for part in parts if part]
    if len(parts) < 2:
        return None
    owner, repo = parts[0], parts[1]
    if not _SEGMENT_RE.match(owner) or not _SEGMENT_RE.match(repo):
        return None
    if repo.endswith(".git"):
        repo = repo[: -len(".git")]
    if not repo:
        return None

    rest = parts[2:]
    branch: str | None = None
    subpath: str | None = None
    if len(rest) >= 2 and rest[0] == "tree":
        branch = rest[1]
        subpath = "/".join(rest[2:]) or None

    return SourceDescriptor(
        clone_url=f"https://{host.lower()}/{owner}/{repo}.git",
        branch=branch,
        subpath=subpath,
    )


def is_remote_source(descriptor: SourceDescriptor) -> bool:
    url = descriptor.clone_url
    parsed = urlparse(url)
    if parsed.scheme in {"http", "https", "ssh", "git"} and parsed.netloc:
        return True
    return bool(_SCP_LIKE_RE.match(url))


def resolve_local_repo(repo_url: str) -> Path | None:
    parsed = urlparse(repo_url)
    if parsed.scheme == "file":
        repo_path = Path(parsed.path)
    elif parsed.scheme in {"http", "https", "ssh", "git"} and parsed.netloc:
        return None
    else:
        repo_path = Path(repo_url)

    repo_path = repo_path.expanduser()
    if not repo_path.is_absolute():
        repo_path = repo_path.resolve()
    if repo_path.exists():
        return repo_path
    return None


def run_git(args: list[str]) -> None:
    try:
        result = subprocess.run(args, capture_output=True, text=True, check=False)
    except FileNotFoundError as exc:
        raise SourceFetchError(f"Git executable not found: {args[0]}") from exc
    if result.returncode != 0:
        stderr = result.stderr.strip() or result.stdout.strip()
        raise SourceFetchError(f"Git command failed: {' '.join(args)}", stderr)


def resolve_git_commit(repo_root: Path, revision: str | None, *, executable: str = "git") -> str | None:
    rev = revision or "HEAD"
    try:
        result = subprocess.run(
            [executable, "-C", str(repo_root), "rev-parse", f"{rev}^{{commit}}"],
            capture_output=True,
            text=True,
            check=False,
        )
    except FileNotFoundError:
        return None
    if result.returncode != 0:
        return None
    values = result.stdout.strip().splitlines()
    if not values:
        return None
    commit = values[0].strip()
    return commit or None


def fetch_repository(
    descriptor: SourceDescriptor,
    destination: Path,
    *,
    executable: str = "git",
    depth: int = 1,
) -> Path:
    """Clone ``descriptor`` into ``destination`` (which must not exist yet)."""
    clone_args = [executable, "clone"]
    if depth > 0:
        clone_args.extend(["--depth", str(depth)])
    if descriptor.branch:
        clone_args.extend(["--branch", descriptor.branch])
    clone_args.extend([descriptor.clone_url, str(destination)])

    logger.info(
        "Fetching skill repository",
        data={"url": descriptor.clone_url, "branch": descriptor.branch},
    )
    run_git(clone_args)
    return destination


def atomic_replace_directory(*, existing_dir: Path, staged_dir: Path) -> None:
    existing_dir = Path(os.path.abspath(existing_dir))
    staged_dir = staged_dir.resolve()
    parent = existing_dir.parent
    backup_dir = parent / f".{existing_dir.name}.backup-{uuid4().hex}"

    os.replace(existing_dir, backup_dir)
    try:
        os.replace(staged_dir, existing_dir)
    except Exception:
        os.replace(backup_dir, existing_dir)
        raise
    shutil.rmtree(backup_dir)
