"""Scanning of tool skill directories and onboarding of existing skills."""

from __future__ import annotations

import hashlib
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from skill_hub.core.logging.logger import get_logger
from skill_hub.tools.adapters import (
    ToolAdapter,
    default_tool_adapters,
    is_tool_installed,
    resolve_default_path,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = get_logger(__name__)

# Entries a tool manages itself and that never hold user skills.
RESERVED_ENTRY_NAMES: dict[str, frozenset[str]] = {
    "codex": frozenset({".system"}),
}

# The application's own support directory; surfacing it would list the
# central repository as a user skill.
PRIVATE_SUPPORT_HINTS: tuple[str, ...] = ("Application Support/com.skill-hub.app/skills",)


@dataclass(frozen=True)
class DetectedSkill:
    tool: str
    name: str
    path: Path
    is_link: bool
    link_target: Path | None = None


@dataclass(frozen=True)
class ToolStatus:
    key: str
    label: str
    installed: bool
    skills_dir: Path


@dataclass(frozen=True)
class OnboardingVariant:
    tool: str
    path: Path
    fingerprint: str
    is_link: bool
    link_target: Path | None = None


@dataclass
class OnboardingGroup:
    name: str
    variants: list[OnboardingVariant] = field(default_factory=list)

    @property
    def has_conflict(self) -> bool:
        return len({variant.fingerprint for variant in self.variants}) > 1


@dataclass
class OnboardingPlan:
    groups: list[OnboardingGroup] = field(default_factory=list)

    @property
    def total_skills(self) -> int:
        return sum(len(group.variants) for group in self.groups)


def detect_link(path: Path) -> tuple[bool, Path | None]:
    """Report whether ``path`` itself is a symbolic link, and its target.

    Only the entry is inspected; a directory reached through a linked parent
    is not a link.
    """
    try:
        is_link = path.is_symlink()
    except OSError:
        return False, None
    if not is_link:
        return False, None
    try:
        raw_target = Path(os.readlink(path))
    except OSError:
        return True, None
    if not raw_target.is_absolute():
        raw_target = Path(os.path.normpath(path.parent / raw_target))
    return True, raw_target


def _under_private_dir(path: Path, ignore_roots: Sequence[Path]) -> bool:
    text = path.as_posix()
    if any(hint in text for hint in PRIVATE_SUPPORT_HINTS):
        return True
    for root in ignore_roots:
        root_text = Path(os.path.abspath(root)).as_posix().rstrip("/")
        if text == root_text or text.startswith(root_text + "/"):
            return True
    return False


def scan_tool_dir(
    tool: ToolAdapter,
    directory: Path,
    *,
    ignore_roots: Sequence[Path] = (),
) -> list[DetectedSkill]:
    results: list[DetectedSkill] = []
    if not directory.exists():
        return results

    reserved = RESERVED_ENTRY_NAMES.get(tool.id, frozenset())
    for entry in sorted(directory.iterdir(), key=lambda path: path.name):
        # is_dir() follows links, so linked skill directories are included.
        if not entry.is_dir():
            continue
        if entry.name in reserved:
            continue

        is_link, link_target = detect_link(entry)
        if _under_private_dir(Path(os.path.abspath(entry)), ignore_roots):
            continue
        if link_target is not None and _under_private_dir(link_target, ignore_roots):
            continue

        results.append(
            DetectedSkill(
                tool=tool.id,
                name=entry.name,
                path=entry,
                is_link=is_link,
                link_target=link_target,
            )
        )
    return results


def get_tool_status(home: Path | None = None) -> list[ToolStatus]:
    return [
        ToolStatus(
            key=adapter.id,
            label=adapter.display_name,
            installed=is_tool_installed(adapter, home),
            skills_dir=resolve_default_path(adapter, home),
        )
        for adapter in default_tool_adapters()
    ]


def compute_skill_content_fingerprint(skill_dir: Path) -> str:
    digest = hashlib.sha256()
    root = skill_dir.resolve()

    for path in sorted(root.rglob("*")):
        if ".git" in path.relative_to(root).parts:
            continue
        if not path.is_file():
            continue
        relative = path.relative_to(root).as_posix()
        digest.update(relative.encode("utf-8"))
        digest.update(b"\0")
        digest.update(path.read_bytes())
        digest.update(b"\0")

    return f"sha256:{digest.hexdigest()}"


def build_onboarding_plan(
    home: Path | None = None,
    *,
    central_root: Path | None = None,
    adapters: Sequence[ToolAdapter] | None = None,
) -> OnboardingPlan:
    """Group skills already present in installed tools by name.

    Entries inside or linking into the central repository are already managed
    and are left out. Directories shared by several tools are scanned once.
    """
    ignore_roots = [central_root] if central_root else []
    groups: dict[str, OnboardingGroup] = {}
    scanned_dirs: set[Path] = set()

    for adapter in adapters or default_tool_adapters():
        if not is_tool_installed(adapter, home):
            continue
        skills_dir = resolve_default_path(adapter, home)
        if skills_dir in scanned_dirs:
            continue
        scanned_dirs.add(skills_dir)

        for detected in scan_tool_dir(adapter, skills_dir, ignore_roots=ignore_roots):
            try:
                fingerprint = compute_skill_content_fingerprint(detected.path)
            except OSError as exc:
                logger.warning(
                    "Skipping unreadable skill directory",
                    data={"path": str(detected.path), "error": str(exc)},
                )
                continue
            group = groups.setdefault(detected.name, OnboardingGroup(name=detected.name))
            group.variants.append(
                OnboardingVariant(
                    tool=detected.tool,
                    path=detected.path,
                    fingerprint=fingerprint,
                    is_link=detected.is_link,
                    link_target=detected.link_target,
                )
            )

    return OnboardingPlan(groups=[groups[name] for name in sorted(groups)])
