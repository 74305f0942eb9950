"""Reusable git checkouts keyed by repository URL and branch.

Each cache entry lives in ``<cache_root>/<key>/`` and holds the checkout in
``repo/`` next to a ``.fetched_at`` marker with the fetch time in epoch
seconds. Fresh entries are staged beside the cache and swapped into place.
"""

from __future__ import annotations

import hashlib
import os
import shutil
import tempfile
import time
from pathlib import Path

from skill_hub.core.logging.logger import get_logger
from skill_hub.sources import source_utils
from skill_hub.sources.source_utils import SourceDescriptor, atomic_replace_directory

logger = get_logger(__name__)

CHECKOUT_DIRNAME = "repo"
FETCHED_AT_FILENAME = ".fetched_at"
_SECONDS_PER_DAY = 86400


def cache_key(descriptor: SourceDescriptor) -> str:
    raw = f"{descriptor.clone_url}#{descriptor.branch or ''}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()[:16]


def _fetched_at(entry: Path) -> float | None:
    try:
        return float((entry / FETCHED_AT_FILENAME).read_text(encoding="utf-8").strip())
    except (OSError, ValueError):
        return None


def checkout_repository(
    descriptor: SourceDescriptor,
    cache_root: Path,
    *,
    ttl_secs: int,
    executable: str = "git",
    depth: int = 1,
    refresh: bool = False,
) -> Path:
    """Return a checkout of ``descriptor``, cloning only when the cached one is stale.

    ``refresh`` forces a new clone even when the cached checkout is younger
    than ``ttl_secs``.
    """
    entry = cache_root / cache_key(descriptor)
    checkout = entry / CHECKOUT_DIRNAME
    fetched_at = _fetched_at(entry)
    if (
        not refresh
        and fetched_at is not None
        and checkout.is_dir()
        and time.time() - fetched_at < ttl_secs
    ):
        logger.debug(
            "Reusing cached checkout",
            data={"url": descriptor.clone_url, "branch": descriptor.branch, "path": str(checkout)},
        )
        return checkout

    cache_root.mkdir(parents=True, exist_ok=True)
    with tempfile.TemporaryDirectory(dir=cache_root, prefix=f".{entry.name}.fetch-") as tmp_dir:
        staged = Path(tmp_dir) / entry.name
        staged.mkdir()
        source_utils.fetch_repository(
            descriptor,
            staged / CHECKOUT_DIRNAME,
            executable=executable,
            depth=depth,
        )
        (staged / FETCHED_AT_FILENAME).write_text(f"{time.time()}\n", encoding="utf-8")
        if entry.exists():
            atomic_replace_directory(existing_dir=entry, staged_dir=staged)
        else:
            os.replace(staged, entry)
    return checkout


def cleanup_git_cache(cache_root: Path, *, max_age_days: int) -> int:
    """Remove cache entries older than ``max_age_days``; ``0`` keeps everything."""
    if max_age_days <= 0 or not cache_root.is_dir():
        return 0
    cutoff = time.time() - max_age_days * _SECONDS_PER_DAY
    removed = 0
    for entry in cache_root.iterdir():
        stamp = _fetched_at(entry)
        if stamp is None:
            stamp = entry.lstat().st_mtime
        if stamp >= cutoff:
            continue
        _remove_entry(entry)
        removed += 1
    if removed:
        logger.info("Pruned git cache", data={"path": str(cache_root), "removed": removed})
    return removed


def clear_git_cache(cache_root: Path) -> int:
    """Remove every cached checkout and return how many entries were deleted."""
    if not cache_root.is_dir():
        return 0
    removed = 0
    for entry in cache_root.iterdir():
        _remove_entry(entry)
        removed += 1
    logger.info("Cleared git cache", data={"path": str(cache_root), "removed": removed})
    return removed


def _remove_entry(entry: Path) -> None:
    if entry.is_dir() and not entry.is_symlink():
        shutil.rmtree(entry)
    else:
        entry.unlink()
