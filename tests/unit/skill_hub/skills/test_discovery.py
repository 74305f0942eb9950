from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from skill_hub.core.exceptions import SkillInvalidError
from skill_hub.skills.discovery import (
    SkillCandidate,
    list_skill_candidates,
    parse_frontmatter,
    parse_skill_md,
    valid_candidates,
    validate_skill_dir,
)

if TYPE_CHECKING:
    from pathlib import Path


def _write_skill(skill_dir: Path, name: str | None, description: str = "desc") -> None:
    skill_dir.mkdir(parents=True, exist_ok=True)
    lines = ["---"]
    if name is not None:
        lines.append(f"name: {name}")
    lines.append(f"description: {description}")
    lines.extend(["---", "", "body"])
    (skill_dir / "SKILL.md").write_text("\n".join(lines), encoding="utf-8")


def test_parse_frontmatter_reads_mapping() -> None:
    payload = parse_frontmatter("---\nname: pdf\ndescription: Handle PDFs\n---\n# Body\n")
    assert payload == {"name": "pdf", "description": "Handle PDFs"}


def test_parse_frontmatter_accepts_byte_order_mark() -> None:
    assert parse_frontmatter("\ufeff---\nname: pdf\n---\n")["name"] == "pdf"


@pytest.mark.parametrize(
    "text",
    [
        "name: pdf\n",
        "---\nname: pdf\n",
        "---\n- a\n- b\n---\n",
        "---\nname: [unclosed\n---\n",
    ],
)
def test_parse_frontmatter_rejects_malformed_blocks(text: str) -> None:
    with pytest.raises(SkillInvalidError) as exc_info:
        parse_frontmatter(text)
    assert exc_info.value.reason == "invalid_frontmatter"
    assert str(exc_info.value).startswith("SKILL_INVALID|invalid_frontmatter")


def test_parse_skill_md_requires_name(tmp_path: Path) -> None:
    _write_skill(tmp_path / "nameless", None)
    with pytest.raises(SkillInvalidError) as exc_info:
        parse_skill_md(tmp_path / "nameless" / "SKILL.md")
    assert exc_info.value.reason == "missing_name"


def test_validate_skill_dir_reports_missing_manifest(tmp_path: Path) -> None:
    with pytest.raises(SkillInvalidError, match="SKILL_INVALID\\|missing_skill_md"):
        validate_skill_dir(tmp_path)


def test_validate_skill_dir_returns_name_and_description(tmp_path: Path) -> None:
    _write_skill(tmp_path, "pdf", "Handle PDFs")
    assert validate_skill_dir(tmp_path) == ("pdf", "Handle PDFs")


def test_list_skill_candidates_root_first_then_sorted(tmp_path: Path) -> None:
    _write_skill(tmp_path, "root-skill")
    _write_skill(tmp_path / "skills" / "b", "b")
    _write_skill(tmp_path / "skills" / "a", "a")
    _write_skill(tmp_path / "nested" / "deep" / "c", "c")

    candidates = list_skill_candidates(tmp_path)

    assert [candidate.subpath for candidate in candidates] == [
        ".",
        "nested/deep/c",
        "skills/a",
        "skills/b",
    ]
    assert candidates[0].name == "root-skill"
    assert all(candidate.valid for candidate in candidates)


def test_root_manifest_alone_yields_single_candidate(tmp_path: Path) -> None:
    _write_skill(tmp_path, "solo", "Only skill")
    (tmp_path / "docs").mkdir()
    (tmp_path / "docs" / "guide.md").write_text("# guide", encoding="utf-8")

    assert list_skill_candidates(tmp_path) == [
        SkillCandidate(subpath=".", valid=True, name="solo", description="Only skill")
    ]

def test_list_skill_candidates_reports_invalid_children_of_skills_container(tmp_path: Path) -> None:
    _write_skill(tmp_path / "skills" / "a", "a")
    (tmp_path / "skills" / "b").mkdir(parents=True)
    _write_skill(tmp_path / "skills" / "c", None)

    candidates = {candidate.subpath: candidate for candidate in list_skill_candidates(tmp_path)}

    assert candidates["."].valid is False
    assert candidates["."].reason == "missing_skill_md"
    assert candidates["skills/a"].valid is True
    assert candidates["skills/b"].reason == "missing_skill_md"
    assert candidates["skills/b"].name == "b"
    assert candidates["skills/c"].reason == "missing_name"
    assert [candidate.subpath for candidate in valid_candidates(list(candidates.values()))] == ["skills/a"]


def test_list_skill_candidates_skips_ignored_directories(tmp_path: Path) -> None:
    _write_skill(tmp_path / ".git" / "hooks", "hidden")
    _write_skill(tmp_path / "node_modules" / "pkg", "vendored")
    _write_skill(tmp_path / "real", "real")

    subpaths = [candidate.subpath for candidate in list_skill_candidates(tmp_path)]

    assert subpaths == [".", "real"]


def test_list_skill_candidates_respects_depth_limit(tmp_path: Path) -> None:
    _write_skill(tmp_path / "a" / "b" / "c", "deep")

    shallow = list_skill_candidates(tmp_path, max_depth=2)
    deep = list_skill_candidates(tmp_path, max_depth=6)

    assert [candidate.subpath for candidate in shallow] == ["."]
    assert "a/b/c" in [candidate.subpath for candidate in deep]


def test_list_skill_candidates_requires_existing_root(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        list_skill_candidates(tmp_path / "missing")
