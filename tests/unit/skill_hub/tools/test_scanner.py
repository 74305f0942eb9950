from __future__ import annotations

import os
from typing import TYPE_CHECKING

from skill_hub.tools.adapters import require_adapter
from skill_hub.tools.scanner import (
    build_onboarding_plan,
    compute_skill_content_fingerprint,
    detect_link,
    get_tool_status,
    scan_tool_dir,
)

if TYPE_CHECKING:
    from pathlib import Path


def _write_skill(skill_dir: Path, body: str = "body") -> None:
    skill_dir.mkdir(parents=True, exist_ok=True)
    (skill_dir / "SKILL.md").write_text(f"---\nname: {skill_dir.name}\n---\n{body}\n", encoding="utf-8")


def test_codex_system_entry_is_skipped(tmp_path: Path) -> None:
    skills_dir = tmp_path / "skills"
    _write_skill(skills_dir / ".system")
    _write_skill(skills_dir / "pdf")
    (skills_dir / "README.md").write_text("not a skill", encoding="utf-8")

    codex = [skill.name for skill in scan_tool_dir(require_adapter("codex"), skills_dir)]
    cursor = [skill.name for skill in scan_tool_dir(require_adapter("cursor"), skills_dir)]

    assert codex == ["pdf"]
    assert cursor == [".system", "pdf"]


def test_linked_skill_reports_target(tmp_path: Path) -> None:
    central = tmp_path / "elsewhere" / "pdf"
    _write_skill(central)
    skills_dir = tmp_path / "skills"
    skills_dir.mkdir()
    os.symlink(central, skills_dir / "pdf", target_is_directory=True)

    detected = scan_tool_dir(require_adapter("claude_code"), skills_dir)

    assert len(detected) == 1
    assert detected[0].is_link is True
    assert detected[0].link_target == central


def test_relative_link_target_is_resolved_against_parent(tmp_path: Path) -> None:
    _write_skill(tmp_path / "store" / "pdf")
    skills_dir = tmp_path / "skills"
    skills_dir.mkdir()
    os.symlink(os.path.join("..", "store", "pdf"), skills_dir / "pdf")

    is_link, target = detect_link(skills_dir / "pdf")

    assert is_link is True
    assert target == tmp_path / "store" / "pdf"


def test_plain_directory_is_not_a_link(tmp_path: Path) -> None:
    _write_skill(tmp_path / "pdf")
    assert detect_link(tmp_path / "pdf") == (False, None)


def test_private_support_directory_is_ignored(tmp_path: Path) -> None:
    private = tmp_path / "Library" / "Application Support" / "com.skill-hub.app" / "skills" / "pdf"
    _write_skill(private)
    skills_dir = tmp_path / "skills"
    skills_dir.mkdir()
    os.symlink(private, skills_dir / "pdf", target_is_directory=True)

    assert scan_tool_dir(require_adapter("claude_code"), skills_dir) == []


def test_entries_linking_into_ignore_roots_are_skipped(tmp_path: Path) -> None:
    central = tmp_path / "central"
    _write_skill(central / "pdf")
    skills_dir = tmp_path / "skills"
    skills_dir.mkdir()
    os.symlink(central / "pdf", skills_dir / "pdf", target_is_directory=True)
    _write_skill(skills_dir / "notes")

    detected = scan_tool_dir(require_adapter("claude_code"), skills_dir, ignore_roots=[central])

    assert [skill.name for skill in detected] == ["notes"]


def test_missing_directory_scans_empty(tmp_path: Path) -> None:
    assert scan_tool_dir(require_adapter("cursor"), tmp_path / "missing") == []


def test_get_tool_status_reports_installed_tools(tmp_path: Path) -> None:
    (tmp_path / ".claude").mkdir()

    statuses = {status.key: status for status in get_tool_status(tmp_path)}

    assert statuses["claude_code"].installed is True
    assert statuses["claude_code"].skills_dir == tmp_path / ".claude" / "skills"
    assert statuses["cursor"].installed is False


def test_fingerprint_ignores_git_metadata(tmp_path: Path) -> None:
    first = tmp_path / "a" / "pdf"
    second = tmp_path / "b" / "pdf"
    _write_skill(first)
    _write_skill(second)
    (second / ".git").mkdir()
    (second / ".git" / "HEAD").write_text("ref", encoding="utf-8")

    assert compute_skill_content_fingerprint(first) == compute_skill_content_fingerprint(second)


def test_onboarding_plan_groups_by_name_and_flags_conflicts(tmp_path: Path) -> None:
    home = tmp_path / "home"
    _write_skill(home / ".claude" / "skills" / "pdf", body="one")
    _write_skill(home / ".cursor" / "skills" / "pdf", body="two")
    _write_skill(home / ".cursor" / "skills" / "notes")
    _write_skill(home / ".config" / "agents" / "skills" / "shared")

    plan = build_onboarding_plan(home)

    groups = {group.name: group for group in plan.groups}
    assert sorted(groups) == ["notes", "pdf", "shared"]
    assert groups["pdf"].has_conflict is True
    assert {variant.tool for variant in groups["pdf"].variants} == {"claude_code", "cursor"}
    assert groups["notes"].has_conflict is False
    assert [variant.tool for variant in groups["shared"].variants] == ["amp"]
    assert plan.total_skills == 4


def test_onboarding_plan_skips_managed_links(tmp_path: Path) -> None:
    home = tmp_path / "home"
    central = tmp_path / "central"
    _write_skill(central / "pdf")
    skills_dir = home / ".claude" / "skills"
    skills_dir.mkdir(parents=True)
    os.symlink(central / "pdf", skills_dir / "pdf", target_is_directory=True)

    plan = build_onboarding_plan(home, central_root=central)

    assert plan.groups == []
