"""Fan-out of central skills into tool directories.

A target is either a physical copy of the central directory or a symbolic
link to it. Copies are refreshed on update; links already show the new
content and are never rewritten.
"""

from __future__ import annotations

import os
import shutil
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING
from uuid import uuid4

from skill_hub.config import Settings, get_settings
from skill_hub.core.exceptions import (
    SkillHubError,
    SkillNotFoundError,
    TargetExistsError,
    ToolNotFoundError,
    ToolNotInstalledError,
)
from skill_hub.core.logging.logger import get_logger
from skill_hub.skills.locks import skill_lock
from skill_hub.sources.source_utils import atomic_replace_directory
from skill_hub.store import SkillRecord, SkillStore, SkillTargetRecord, TargetMode, now_ms
from skill_hub.tools.adapters import (
    adapter_by_key,
    adapters_sharing_skills_dir,
    is_tool_installed,
    resolve_default_path,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from skill_hub.config import SyncMode

logger = get_logger(__name__)

COPY_IGNORE = shutil.ignore_patterns(".git")


@dataclass(frozen=True)
class SyncResult:
    skill_id: str
    tool: str
    target_path: Path
    mode: TargetMode
    shared_tools: list[str] = field(default_factory=list)
    """Every tool served by ``target_path``, including ``tool``."""


def _same_path(left: Path, right: Path) -> bool:
    try:
        return os.path.samefile(left, right)
    except OSError:
        return Path(os.path.abspath(left)) == Path(os.path.abspath(right))


def _remove_entry(path: Path) -> None:
    if path.is_symlink() or path.is_file():
        path.unlink()
    elif path.exists():
        shutil.rmtree(path)


def sync_dir_copy(source: Path, target: Path) -> None:
    """Replace ``target`` with a fresh copy of ``source``.

    The copy is staged beside the target and swapped in, so the previous
    content stays intact if copying fails.
    """
    if not source.is_dir():
        raise FileNotFoundError(f"Central skill directory not found: {source}")
    target.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.TemporaryDirectory(dir=target.parent, prefix=f".{target.name}.sync-") as tmp_dir:
        staged = Path(tmp_dir) / target.name
        shutil.copytree(source, staged, symlinks=True, ignore=COPY_IGNORE)
        if target.is_symlink() or target.is_file():
            target.unlink()
            os.replace(staged, target)
        elif target.exists():
            atomic_replace_directory(existing_dir=target, staged_dir=staged)
        else:
            os.replace(staged, target)


def sync_dir_symlink(source: Path, target: Path) -> None:
    """Point ``target`` at ``source``; an existing correct link is left alone."""
    if target.is_symlink() and _same_path(target, source):
        return
    target.parent.mkdir(parents=True, exist_ok=True)
    staged_link = target.parent / f".{target.name}.link-{uuid4().hex}"
    os.symlink(source, staged_link, target_is_directory=True)
    try:
        if target.exists() and not target.is_symlink() and target.is_dir():
            backup = target.parent / f".{target.name}.backup-{uuid4().hex}"
            os.replace(target, backup)
            try:
                os.replace(staged_link, target)
            except Exception:
                os.replace(backup, target)
                raise
            shutil.rmtree(backup)
        else:
            os.replace(staged_link, target)
    finally:
        if staged_link.is_symlink():
            staged_link.unlink()


def apply_sync(source: Path, target: Path, mode: SyncMode) -> TargetMode:
    """Materialize ``target`` and return the mode actually used."""
    if mode == "copy":
        sync_dir_copy(source, target)
        return "copy"
    if mode == "symlink":
        sync_dir_symlink(source, target)
        return "symlink"
    try:
        sync_dir_symlink(source, target)
        return "symlink"
    except (OSError, NotImplementedError) as exc:
        logger.info(
            "Symlink unavailable, falling back to copy",
            data={"target": str(target), "error": str(exc)},
        )
    sync_dir_copy(source, target)
    return "copy"


def target_dir_name(skill: SkillRecord) -> str:
    name = skill.name.strip()
    if not name or name in {".", ".."} or "/" in name or "\\" in name or "\0" in name:
        return Path(skill.central_path).name
    return name


def _resolve_mode(mode: SyncMode | None, tool: str, settings: Settings) -> SyncMode:
    requested = mode or settings.sync.default_mode
    if requested == "auto" and tool in settings.sync.copy_mode_tools:
        return "copy"
    return requested


def _owned_by_skill(target: Path, central_path: Path, records: Iterable[SkillTargetRecord]) -> bool:
    # A failed refresh leaves an error record; the copy still belongs to this skill.
    if target.is_symlink():
        return _same_path(target, central_path)
    return any(Path(record.target_path) == target for record in records)


def _record_attempt(
    store: SkillStore,
    skill_id: str,
    tools: Iterable[str],
    target: Path,
    mode: TargetMode | None,
    *,
    error: str | None,
    existing: dict[str, SkillTargetRecord],
    create: bool = True,
) -> None:
    synced_at = now_ms()
    for tool in tools:
        previous = existing.get(tool)
        if previous is None and not create:
            continue
        store.upsert_skill_target(
            SkillTargetRecord(
                id=previous.id if previous else uuid4().hex,
                skill_id=skill_id,
                tool=tool,
                target_path=str(target),
                mode=mode or (previous.mode if previous else "symlink"),
                status="error" if error else "ok",
                last_error=error,
                synced_at=synced_at if error is None else (previous.synced_at if previous else None),
            )
        )


def sync_skill_to_tool(
    store: SkillStore,
    skill_id: str,
    tool: str,
    *,
    mode: SyncMode | None = None,
    overwrite: bool = False,
    target_dir: Path | None = None,
    home: Path | None = None,
    settings: Settings | None = None,
) -> SyncResult:
    """Materialize a managed skill for ``tool`` and every tool sharing its directory."""
    resolved_settings = settings or get_settings()
    skill = store.get_skill_by_id(skill_id)
    if skill is None:
        raise SkillNotFoundError(skill_id)
    adapter = adapter_by_key(tool)
    if adapter is None:
        raise ToolNotFoundError(tool)

    shared_tools = [member.id for member in adapters_sharing_skills_dir(adapter)]
    base_home = home or resolved_settings.resolved_home_dir()
    tools_dir = target_dir or resolve_default_path(adapter, base_home)
    target = tools_dir / target_dir_name(skill)
    central_path = Path(skill.central_path)
    requested_mode = _resolve_mode(mode, tool, resolved_settings)

    with skill_lock(skill.id):
        existing = {record.tool: record for record in store.list_skill_targets(skill.id)}
        if target_dir is None and not is_tool_installed(adapter, base_home):
            missing = ToolNotInstalledError(tool)
            _record_attempt(
                store,
                skill.id,
                shared_tools,
                target,
                None,
                error=str(missing),
                existing=existing,
                create=False,
            )
            raise missing

        occupied = target.exists() or target.is_symlink()
        if occupied and not overwrite and not _owned_by_skill(target, central_path, existing.values()):
            error = TargetExistsError(str(target))
            _record_attempt(
                store,
                skill.id,
                shared_tools,
                target,
                None,
                error=str(error),
                existing=existing,
                create=False,
            )
            raise error

        try:
            applied_mode = apply_sync(central_path, target, requested_mode)
        except (OSError, SkillHubError) as exc:
            logger.error(
                "Skill sync failed",
                data={"skill_id": skill.id, "tool": tool, "target": str(target), "error": str(exc)},
            )
            failed_mode: TargetMode = "copy" if requested_mode == "copy" else "symlink"
            _record_attempt(
                store, skill.id, shared_tools, target, failed_mode, error=str(exc), existing=existing
            )
            raise

        _record_attempt(store, skill.id, shared_tools, target, applied_mode, error=None, existing=existing)

    logger.info(
        "Skill synced",
        data={
            "skill_id": skill.id,
            "tool": tool,
            "mode": applied_mode,
            "target": str(target),
            "shared_tools": shared_tools,
        },
    )
    return SyncResult(
        skill_id=skill.id,
        tool=tool,
        target_path=target,
        mode=applied_mode,
        shared_tools=shared_tools,
    )


def resync_copy_targets(store: SkillStore, skill: SkillRecord) -> list[str]:
    """Refresh every copy-mode target of ``skill``; return the tools that succeeded.

    A failing target is recorded with ``status="error"`` and the rest still run.
    Targets sharing one physical path are written once.
    """
    central_path = Path(skill.central_path)
    by_path: dict[str, list[SkillTargetRecord]] = {}
    for record in store.list_skill_targets(skill.id):
        if record.mode != "copy":
            continue
        by_path.setdefault(record.target_path, []).append(record)

    updated: list[str] = []
    for target_path, records in by_path.items():
        existing = {record.tool: record for record in records}
        target = Path(target_path)
        try:
            sync_dir_copy(central_path, target)
        except OSError as exc:
            logger.error(
                "Failed to refresh copy target",
                data={"skill_id": skill.id, "target": target_path, "error": str(exc)},
            )
            _record_attempt(store, skill.id, existing, target, "copy", error=str(exc), existing=existing)
            continue
        _record_attempt(store, skill.id, existing, target, "copy", error=None, existing=existing)
        updated.extend(record.tool for record in records)
    return updated


def unsync_skill_from_tool(
    store: SkillStore,
    skill_id: str,
    tool: str,
) -> list[str]:
    """Remove a skill from a tool directory and drop the matching target records.

    Returns the tools whose records were removed (the whole sharing group).
    """
    skill = store.get_skill_by_id(skill_id)
    if skill is None:
        raise SkillNotFoundError(skill_id)

    with skill_lock(skill.id):
        existing = {record.tool: record for record in store.list_skill_targets(skill.id)}
        record = existing.get(tool)
        if record is None:
            return []

        adapter = adapter_by_key(tool)
        group = [member.id for member in adapters_sharing_skills_dir(adapter)] if adapter else [tool]
        target = Path(record.target_path)
        central_path = Path(skill.central_path)

        if target.is_symlink():
            if _same_path(target, central_path):
                target.unlink()
        elif record.mode == "copy" and target.exists():
            _remove_entry(target)

        removed: list[str] = []
        for member in group:
            member_record = existing.get(member)
            if member_record is None or member_record.target_path != record.target_path:
                continue
            store.delete_skill_target(skill.id, member)
            removed.append(member)

    logger.info(
        "Skill unsynced",
        data={"skill_id": skill.id, "tool": tool, "target": str(target), "tools": removed},
    )
    return removed
