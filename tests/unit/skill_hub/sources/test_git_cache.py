from __future__ import annotations

import os
import time
from pathlib import Path

import pytest

from skill_hub.core.exceptions import SourceFetchError
from skill_hub.sources import git_cache, source_utils
from skill_hub.sources.source_utils import SourceDescriptor

DESCRIPTOR = SourceDescriptor(clone_url="https://github.com/owner/repo.git", branch="main")


@pytest.fixture
def clone_calls(monkeypatch: pytest.MonkeyPatch) -> list[list[str]]:
    calls: list[list[str]] = []

    def fake_run_git(args: list[str]) -> None:
        calls.append(args)
        destination = Path(args[-1])
        destination.mkdir(parents=True)
        (destination / "SKILL.md").write_text(f"fetch {len(calls)}", encoding="utf-8")

    monkeypatch.setattr(source_utils, "run_git", fake_run_git)
    return calls


def _age_entry(cache_root: Path, seconds: float) -> None:
    marker = cache_root / git_cache.cache_key(DESCRIPTOR) / git_cache.FETCHED_AT_FILENAME
    marker.write_text(f"{time.time() - seconds}\n", encoding="utf-8")


def test_cache_key_depends_on_url_and_branch() -> None:
    other_branch = SourceDescriptor(clone_url=DESCRIPTOR.clone_url, branch="dev")
    assert git_cache.cache_key(DESCRIPTOR) == git_cache.cache_key(
        SourceDescriptor(clone_url=DESCRIPTOR.clone_url, branch="main", subpath="skills/pdf")
    )
    assert git_cache.cache_key(DESCRIPTOR) != git_cache.cache_key(other_branch)


def test_checkout_is_reused_within_ttl(tmp_path: Path, clone_calls: list[list[str]]) -> None:
    first = git_cache.checkout_repository(DESCRIPTOR, tmp_path, ttl_secs=60)
    second = git_cache.checkout_repository(DESCRIPTOR, tmp_path, ttl_secs=60)

    assert first == second == tmp_path / git_cache.cache_key(DESCRIPTOR) / "repo"
    assert len(clone_calls) == 1
    assert (second / "SKILL.md").read_text(encoding="utf-8") == "fetch 1"
    assert sorted(path.name for path in tmp_path.iterdir()) == [git_cache.cache_key(DESCRIPTOR)]


def test_expired_checkout_is_fetched_again(tmp_path: Path, clone_calls: list[list[str]]) -> None:
    git_cache.checkout_repository(DESCRIPTOR, tmp_path, ttl_secs=60)
    _age_entry(tmp_path, 120)

    checkout = git_cache.checkout_repository(DESCRIPTOR, tmp_path, ttl_secs=60)

    assert len(clone_calls) == 2
    assert (checkout / "SKILL.md").read_text(encoding="utf-8") == "fetch 2"
    assert sorted(path.name for path in tmp_path.iterdir()) == [git_cache.cache_key(DESCRIPTOR)]


def test_refresh_bypasses_fresh_checkout(tmp_path: Path, clone_calls: list[list[str]]) -> None:
    git_cache.checkout_repository(DESCRIPTOR, tmp_path, ttl_secs=3600)

    checkout = git_cache.checkout_repository(DESCRIPTOR, tmp_path, ttl_secs=3600, refresh=True)

    assert len(clone_calls) == 2
    assert (checkout / "SKILL.md").read_text(encoding="utf-8") == "fetch 2"


def test_failed_fetch_keeps_previous_checkout(
    tmp_path: Path, clone_calls: list[list[str]], monkeypatch: pytest.MonkeyPatch
) -> None:
    checkout = git_cache.checkout_repository(DESCRIPTOR, tmp_path, ttl_secs=60)

    def offline(args: list[str]) -> None:
        raise SourceFetchError("git clone failed", "offline")

    monkeypatch.setattr(source_utils, "run_git", offline)
    with pytest.raises(SourceFetchError):
        git_cache.checkout_repository(DESCRIPTOR, tmp_path, ttl_secs=60, refresh=True)

    assert (checkout / "SKILL.md").read_text(encoding="utf-8") == "fetch 1"
    assert sorted(path.name for path in tmp_path.iterdir()) == [git_cache.cache_key(DESCRIPTOR)]


def test_cleanup_removes_only_stale_entries(tmp_path: Path, clone_calls: list[list[str]]) -> None:
    git_cache.checkout_repository(DESCRIPTOR, tmp_path, ttl_secs=60)
    fresh = SourceDescriptor(clone_url="https://github.com/owner/other.git")
    git_cache.checkout_repository(fresh, tmp_path, ttl_secs=60)
    _age_entry(tmp_path, 3 * 86400)
    leftover = tmp_path / ".abandoned.fetch-x"
    leftover.mkdir()
    old = time.time() - 3 * 86400
    os.utime(leftover, (old, old))

    assert git_cache.cleanup_git_cache(tmp_path, max_age_days=0) == 0
    removed = git_cache.cleanup_git_cache(tmp_path, max_age_days=2)

    assert removed == 2
    assert sorted(path.name for path in tmp_path.iterdir()) == [git_cache.cache_key(fresh)]


def test_clear_removes_everything_and_reports_count(tmp_path: Path, clone_calls: list[list[str]]) -> None:
    cache_root = tmp_path / "git-cache"
    assert git_cache.clear_git_cache(cache_root) == 0

    git_cache.checkout_repository(DESCRIPTOR, cache_root, ttl_secs=60)
    git_cache.checkout_repository(SourceDescriptor(clone_url="https://github.com/a/b.git"), cache_root, ttl_secs=60)

    assert git_cache.clear_git_cache(cache_root) == 2
    assert list(cache_root.iterdir()) == []
