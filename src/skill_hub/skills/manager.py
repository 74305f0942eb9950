from __future__ import annotations

import hashlib
import os
import re
import shutil
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING

from skill_hub.config import Settings, get_settings
from skill_hub.core.exceptions import (
    ConfigurationError,
    MultipleSkillsError,
    NoSkillsFoundError,
    SkillExistsError,
    SkillNotFoundError,
)
from skill_hub.core.logging.logger import get_logger
from skill_hub.skills.discovery import (
    SkillCandidate,
    list_skill_candidates,
    valid_candidates,
    validate_skill_dir,
)
from skill_hub.skills.locks import skill_lock
from skill_hub.skills.sync import COPY_IGNORE, resync_copy_targets
from skill_hub.sources import git_cache, source_utils
from skill_hub.sources.source_utils import SourceDescriptor, is_remote_source, parse_repo_source
from skill_hub.store import CENTRAL_REPO_PATH_KEY, SkillRecord, SkillStore, SourceType, now_ms

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = get_logger(__name__)

_SLUG_RE = re.compile(r"[^a-z0-9]+")


@dataclass(frozen=True)
class InstallResult:
    skill_id: str
    name: str
    central_path: Path


@dataclass(frozen=True)
class UpdateResult:
    skill_id: str
    name: str
    central_path: Path
    updated_targets: list[str] = field(default_factory=list)


def get_central_repo_path(store: SkillStore, settings: Settings | None = None) -> Path:
    """Resolve (and create) the central repository root."""
    raw = store.get_setting(CENTRAL_REPO_PATH_KEY)
    if not raw:
        raw = (settings or get_settings()).central_repo_path
    if not raw or not raw.strip():
        raise ConfigurationError(
            "Central repository path is not configured.",
            f"Set the '{CENTRAL_REPO_PATH_KEY}' setting or SKILL_HUB_CENTRAL_REPO_PATH.",
        )
    path = Path(raw.strip()).expanduser()
    if not path.is_absolute():
        raise ConfigurationError(f"Central repository path must be absolute: {raw}")
    if path.exists() and not path.is_dir():
        raise ConfigurationError(f"Central repository path is not a directory: {path}")
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise ConfigurationError(f"Cannot create central repository: {path}", str(exc)) from exc
    return path


def set_central_repo_path(store: SkillStore, path: Path) -> Path:
    path = path.expanduser()
    if not path.is_absolute():
        raise ConfigurationError(f"Central repository path must be absolute: {path}")
    if path.exists() and not path.is_dir():
        raise ConfigurationError(f"Central repository path is not a directory: {path}")
    path.mkdir(parents=True, exist_ok=True)
    store.set_setting(CENTRAL_REPO_PATH_KEY, str(path))
    return path


def slugify_skill_name(name: str) -> str:
    slug = _SLUG_RE.sub("-", name.strip().lower()).strip("-")
    if slug:
        return slug
    # Names without ASCII alphanumerics still need a stable directory name.
    return "skill-" + hashlib.sha1(name.strip().encode("utf-8")).hexdigest()[:10]


def list_managed_skills(store: SkillStore) -> list[SkillRecord]:
    return store.list_skills()


def list_local_skills(base_dir: Path, *, settings: Settings | None = None) -> list[SkillCandidate]:
    resolved_settings = settings or get_settings()
    return list_skill_candidates(
        Path(base_dir).expanduser(),
        max_depth=resolved_settings.discovery.max_depth,
    )


def install_local_skill(
    store: SkillStore,
    source_dir: Path,
    name: str | None = None,
    *,
    settings: Settings | None = None,
) -> InstallResult:
    central_root = get_central_repo_path(store, settings)
    source_dir = _require_directory(Path(source_dir))
    return _install_from_dir(
        store,
        central_root,
        source_dir,
        name=name,
        source_type="local",
        source_ref=str(source_dir),
    )


def install_local_skill_from_selection(
    store: SkillStore,
    base_dir: Path,
    subpath: str,
    name: str | None = None,
    *,
    settings: Settings | None = None,
) -> InstallResult:
    central_root = get_central_repo_path(store, settings)
    base_dir = _require_directory(Path(base_dir))
    skill_dir = _resolve_repo_subdir(base_dir, subpath)
    return _install_from_dir(
        store,
        central_root,
        skill_dir,
        name=name,
        source_type="local",
        source_ref=str(base_dir),
        subpath=_join_relative_paths(None, subpath),
    )


def import_existing_skill(
    store: SkillStore,
    source_path: Path,
    name: str | None = None,
    *,
    settings: Settings | None = None,
) -> InstallResult:
    """Adopt a skill that already lives in a tool directory."""
    return install_local_skill(store, Path(source_path).resolve(), name, settings=settings)


def list_git_skills(source: str, *, settings: Settings | None = None) -> list[SkillCandidate]:
    resolved_settings = settings or get_settings()
    descriptor = parse_repo_source(source)
    with _materialize_source(descriptor, resolved_settings) as (repo_root, _):
        base = _resolve_repo_subdir(repo_root, descriptor.subpath or ".")
        return list_skill_candidates(base, max_depth=resolved_settings.discovery.max_depth)


def install_git_skill(
    store: SkillStore,
    source: str,
    name: str | None = None,
    *,
    settings: Settings | None = None,
) -> InstallResult:
    """Install the single skill a source points at.

    Without a subpath in ``source`` the repository root wins when it is a
    valid skill; otherwise exactly one valid candidate must exist.
    """
    resolved_settings = settings or get_settings()
    central_root = get_central_repo_path(store, resolved_settings)
    descriptor = parse_repo_source(source)
    with _materialize_source(descriptor, resolved_settings) as (repo_root, revision):
        base = _resolve_repo_subdir(repo_root, descriptor.subpath or ".")
        selected = "."
        if not descriptor.subpath:
            selected = _auto_pick_candidate(
                list_skill_candidates(base, max_depth=resolved_settings.discovery.max_depth),
                source,
            )
        return _install_from_dir(
            store,
            central_root,
            _resolve_repo_subdir(base, selected),
            name=name,
            source_type="git",
            source_ref=_recorded_source_ref(descriptor, repo_root),
            subpath=_join_relative_paths(descriptor.subpath, selected),
            branch=descriptor.branch,
            revision=revision,
        )


def install_git_skill_from_selection(
    store: SkillStore,
    source: str,
    subpath: str,
    name: str | None = None,
    *,
    settings: Settings | None = None,
) -> InstallResult:
    resolved_settings = settings or get_settings()
    central_root = get_central_repo_path(store, resolved_settings)
    descriptor = parse_repo_source(source)
    with _materialize_source(descriptor, resolved_settings) as (repo_root, revision):
        base = _resolve_repo_subdir(repo_root, descriptor.subpath or ".")
        return _install_from_dir(
            store,
            central_root,
            _resolve_repo_subdir(base, subpath),
            name=name,
            source_type="git",
            source_ref=_recorded_source_ref(descriptor, repo_root),
            subpath=_join_relative_paths(descriptor.subpath, subpath),
            branch=descriptor.branch,
            revision=revision,
        )


def update_managed_skill_from_source(
    store: SkillStore,
    skill_id: str,
    *,
    settings: Settings | None = None,
) -> UpdateResult:
    """Refresh the central copy from the recorded source and re-push copy targets."""
    resolved_settings = settings or get_settings()
    if store.get_skill_by_id(skill_id) is None:
        raise SkillNotFoundError(skill_id)

    with skill_lock(skill_id):
        skill = store.get_skill_by_id(skill_id)
        if skill is None:
            raise SkillNotFoundError(skill_id)
        central_path = Path(skill.central_path)

        with _open_recorded_source(skill, resolved_settings) as (source_dir, revision):
            _, description = validate_skill_dir(source_dir)
            _refresh_central_copy(source_dir, central_path)

        refreshed = replace(
            skill,
            description=description,
            source_revision=revision or skill.source_revision,
            updated_at=now_ms(),
        )
        store.upsert_skill(refreshed)
        updated_targets = resync_copy_targets(store, refreshed)

    logger.info(
        "Skill updated from source",
        data={"skill_id": skill_id, "updated_targets": updated_targets},
    )
    return UpdateResult(
        skill_id=skill_id,
        name=refreshed.name,
        central_path=central_path,
        updated_targets=updated_targets,
    )


def _auto_pick_candidate(candidates: list[SkillCandidate], source: str) -> str:
    if candidates and candidates[0].subpath == "." and candidates[0].valid:
        return "."
    valid = valid_candidates(candidates)
    if not valid:
        raise NoSkillsFoundError("No installable skills found in repository.", source)
    if len(valid) > 1:
        raise MultipleSkillsError([candidate.subpath for candidate in valid])
    return valid[0].subpath


def _install_from_dir(
    store: SkillStore,
    central_root: Path,
    source_dir: Path,
    *,
    name: str | None,
    source_type: SourceType,
    source_ref: str,
    subpath: str | None = None,
    branch: str | None = None,
    revision: str | None = None,
) -> InstallResult:
    manifest_name, description = validate_skill_dir(source_dir)
    display_name = (name or "").strip() or manifest_name
    skill_id = slugify_skill_name(display_name)
    central_path = central_root / skill_id

    with skill_lock(skill_id):
        if store.get_skill_by_id(skill_id) is not None:
            raise SkillExistsError(skill_id)
        if store.get_skill_by_name(display_name) is not None:
            raise SkillExistsError(display_name)
        if central_path.exists() or central_path.is_symlink():
            raise SkillExistsError(skill_id)

        with tempfile.TemporaryDirectory(dir=central_root, prefix=f".{skill_id}.install-") as tmp_dir:
            staged_dir = Path(tmp_dir) / skill_id
            _copy_skill_source(source_dir, staged_dir)
            os.replace(staged_dir, central_path)

        timestamp = now_ms()
        record = SkillRecord(
            id=skill_id,
            name=display_name,
            description=description,
            central_path=str(central_path),
            source_type=source_type,
            source_ref=source_ref,
            source_subpath=subpath,
            source_branch=branch,
            source_revision=revision,
            created_at=timestamp,
            updated_at=timestamp,
        )
        try:
            store.upsert_skill(record)
        except Exception:
            shutil.rmtree(central_path, ignore_errors=True)
            raise

    logger.info(
        "Skill installed",
        data={"skill_id": skill_id, "name": display_name, "source": source_ref, "subpath": subpath},
    )
    return InstallResult(skill_id=skill_id, name=display_name, central_path=central_path)


def _recorded_source_ref(descriptor: SourceDescriptor, repo_root: Path) -> str:
    # Local repositories are recorded resolved so updates work from any directory.
    return descriptor.clone_url if is_remote_source(descriptor) else str(repo_root)


@contextmanager
def _materialize_source(
    descriptor: SourceDescriptor, settings: Settings, *, refresh: bool = False
) -> Iterator[tuple[Path, str | None]]:
    """Yield a local directory for ``descriptor`` plus its commit when known.

    Remote repositories come from the git checkout cache when
    ``git.cache_ttl_secs`` is positive (``refresh`` bypasses a fresh entry);
    otherwise they are cloned into a temporary directory that is removed when
    the context exits.
    """
    git = settings.git
    if not is_remote_source(descriptor):
        local_repo = source_utils.resolve_local_repo(descriptor.clone_url)
        if local_repo is None:
            raise FileNotFoundError(f"Skill source not found: {descriptor.clone_url}")
        local_repo = _require_directory(local_repo)
        revision = None
        if (local_repo / ".git").exists():
            revision = source_utils.resolve_git_commit(local_repo, None, executable=git.executable)
        yield local_repo, revision
        return

    if git.cache_ttl_secs > 0:
        cache_root = settings.resolved_git_cache_dir()
        git_cache.cleanup_git_cache(cache_root, max_age_days=git.cache_cleanup_days)
        with tempfile.TemporaryDirectory(prefix="skill-hub-checkout-") as tmp_dir:
            snapshot = Path(tmp_dir) / "repo"
            # The cached entry may be swapped by another fetch; read from a private snapshot.
            with skill_lock(f"git-cache:{git_cache.cache_key(descriptor)}"):
                cached = git_cache.checkout_repository(
                    descriptor,
                    cache_root,
                    ttl_secs=git.cache_ttl_secs,
                    executable=git.executable,
                    depth=git.clone_depth,
                    refresh=refresh,
                )
                revision = source_utils.resolve_git_commit(cached, "HEAD", executable=git.executable)
                shutil.copytree(cached, snapshot, symlinks=True, ignore=shutil.ignore_patterns(".git"))
            yield snapshot, revision
        return

    with tempfile.TemporaryDirectory(prefix="skill-hub-clone-") as tmp_dir:
        checkout = source_utils.fetch_repository(
            descriptor,
            Path(tmp_dir) / "repo",
            executable=git.executable,
            depth=git.clone_depth,
        )
        revision = source_utils.resolve_git_commit(checkout, "HEAD", executable=git.executable)
        yield checkout, revision


@contextmanager
def _open_recorded_source(
    skill: SkillRecord, settings: Settings
) -> Iterator[tuple[Path, str | None]]:
    if skill.source_type == "local":
        base = _require_directory(Path(skill.source_ref))
        yield _resolve_repo_subdir(base, skill.source_subpath or "."), None
        return

    descriptor = SourceDescriptor(clone_url=skill.source_ref, branch=skill.source_branch)
    with _materialize_source(descriptor, settings, refresh=True) as (repo_root, revision):
        yield _resolve_repo_subdir(repo_root, skill.source_subpath or "."), revision


def _refresh_central_copy(source_dir: Path, central_path: Path) -> None:
    central_path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.TemporaryDirectory(
        dir=central_path.parent,
        prefix=f".{central_path.name}.update-",
    ) as tmp_dir:
        staged_dir = Path(tmp_dir) / central_path.name
        _copy_skill_source(source_dir, staged_dir)
        if central_path.exists():
            source_utils.atomic_replace_directory(existing_dir=central_path, staged_dir=staged_dir)
        else:
            os.replace(staged_dir, central_path)


def _copy_skill_source(source_dir: Path, install_dir: Path) -> None:
    shutil.copytree(source_dir, install_dir, symlinks=True, ignore=COPY_IGNORE)


def _require_directory(path: Path) -> Path:
    path = path.expanduser().resolve()
    if not path.is_dir():
        raise FileNotFoundError(f"Skill source directory not found: {path}")
    return path


def _resolve_repo_subdir(repo_root: Path, repo_subdir: str) -> Path:
    repo_root = repo_root.resolve()
    source_dir = (repo_root / Path(repo_subdir)).resolve()
    try:
        source_dir.relative_to(repo_root)
    except ValueError as exc:
        raise ValueError("Skill path escapes repository root.") from exc
    return source_dir


def _join_relative_paths(base: str | None, leaf: str | None) -> str | None:
    base_clean = _clean_relative_path(base)
    leaf_clean = _clean_relative_path(leaf)
    if not base_clean:
        return leaf_clean
    if not leaf_clean:
        return base_clean
    return str(PurePosixPath(base_clean) / PurePosixPath(leaf_clean))


def _clean_relative_path(value: str | None) -> str | None:
    if not value:
        return None
    cleaned = str(value).strip().replace("\\", "/").strip("/")
    parts = [part for part in cleaned.split("/") if part not in {"", "."}]
    if not parts:
        return None
    return "/".join(parts)
