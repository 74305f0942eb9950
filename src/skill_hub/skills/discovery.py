"""SKILL.md discovery and validation."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

import yaml

from skill_hub.core.exceptions import SkillInvalidError

SKILL_MANIFEST = "SKILL.md"
SKILLS_CONTAINER = "skills"
FRONTMATTER_DELIMITER = "---"
DEFAULT_MAX_DEPTH = 6

IGNORED_DIRECTORIES = frozenset({".git", "node_modules", "__pycache__", ".venv", "venv"})

InvalidReason = Literal["missing_skill_md", "invalid_frontmatter", "missing_name"]


@dataclass(frozen=True)
class SkillCandidate:
    subpath: str
    valid: bool
    name: str
    description: str | None = None
    reason: InvalidReason | None = None


def parse_frontmatter(text: str) -> dict[str, Any]:
    """Return the front matter mapping of a manifest.

    Raises ``SkillInvalidError("invalid_frontmatter")`` when the delimited
    block is absent or is not a YAML mapping.
    """
    lines = text.lstrip("\ufeff").splitlines()
    if not lines or lines[0].strip() != FRONTMATTER_DELIMITER:
        raise SkillInvalidError("invalid_frontmatter", "missing opening '---'")
    try:
        end = next(
            index
            for index, line in enumerate(lines[1:], start=1)
            if line.strip() == FRONTMATTER_DELIMITER
        )
    except StopIteration:
        raise SkillInvalidError("invalid_frontmatter", "missing closing '---'") from None

    block = "\n".join(lines[1:end])
    try:
        payload = yaml.safe_load(block) if block.strip() else {}
    except yaml.YAMLError as exc:
        raise SkillInvalidError("invalid_frontmatter", str(exc)) from exc
    if not isinstance(payload, dict):
        raise SkillInvalidError("invalid_frontmatter", "front matter is not a mapping")
    return payload


def _string_value(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_skill_md(path: Path) -> tuple[str, str | None]:
    """Parse one manifest file and return ``(name, description)``."""
    if not path.is_file():
        raise SkillInvalidError("missing_skill_md", str(path))
    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise SkillInvalidError("invalid_frontmatter", str(exc)) from exc

    payload = parse_frontmatter(text)
    name = _string_value(payload.get("name"))
    if name is None:
        raise SkillInvalidError("missing_name", str(path))
    return name, _string_value(payload.get("description"))


def validate_skill_dir(skill_dir: Path) -> tuple[str, str | None]:
    return parse_skill_md(skill_dir / SKILL_MANIFEST)


def _candidate_for(root: Path, skill_dir: Path) -> SkillCandidate:
    subpath = "." if skill_dir == root else skill_dir.relative_to(root).as_posix()
    try:
        name, description = validate_skill_dir(skill_dir)
    except SkillInvalidError as exc:
        return SkillCandidate(
            subpath=subpath,
            valid=False,
            name=skill_dir.name,
            reason=exc.reason,
        )
    return SkillCandidate(subpath=subpath, valid=True, name=name, description=description)


def _is_ignored(name: str) -> bool:
    return name in IGNORED_DIRECTORIES or name.startswith(".")


def _discover_directories(root: Path, max_depth: int) -> set[Path]:
    found: set[Path] = set()
    root_depth = len(root.parts)
    for current, dirnames, filenames in os.walk(root):
        current_path = Path(current)
        depth = len(current_path.parts) - root_depth
        dirnames[:] = sorted(name for name in dirnames if not _is_ignored(name))
        if depth >= max_depth:
            dirnames[:] = []

        if current_path != root and SKILL_MANIFEST in filenames:
            found.add(current_path)

        if current_path.name == SKILLS_CONTAINER:
            # Bundles under a skills/ container are reported even when incomplete.
            found.update(current_path / name for name in dirnames)
    return found


def list_skill_candidates(root: Path, *, max_depth: int = DEFAULT_MAX_DEPTH) -> list[SkillCandidate]:
    """Discover every skill candidate below ``root`` without writing anything."""
    root = root.resolve()
    if not root.is_dir():
        raise FileNotFoundError(f"Skill source directory not found: {root}")

    directories = _discover_directories(root, max_depth)
    candidates = [_candidate_for(root, root)]
    for directory in sorted(directories, key=lambda path: path.relative_to(root).as_posix()):
        candidates.append(_candidate_for(root, directory))
    return candidates


def valid_candidates(candidates: list[SkillCandidate]) -> list[SkillCandidate]:
    return [candidate for candidate in candidates if candidate.valid]
