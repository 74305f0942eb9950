from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from skill_hub.core.exceptions import SkillExistsError
from skill_hub.store import SkillRecord, SkillTargetRecord, open_default_store

if TYPE_CHECKING:
    from pathlib import Path


def _record(skill_id: str, name: str, updated_at: int = 1) -> SkillRecord:
    return SkillRecord(
        id=skill_id,
        name=name,
        central_path=f"/central/{skill_id}",
        source_type="local",
        source_ref=f"/src/{skill_id}",
        created_at=1,
        updated_at=updated_at,
    )


def test_settings_round_trip(tmp_path: Path) -> None:
    store = open_default_store(tmp_path / "nested" / "skill_hub.db")

    assert store.get_setting("central_repo_path") is None
    store.set_setting("central_repo_path", "/a")
    store.set_setting("central_repo_path", "/b")

    assert store.get_setting("central_repo_path") == "/b"


def test_skill_lookup_by_name_is_case_insensitive(tmp_path: Path) -> None:
    store = open_default_store(tmp_path / "skill_hub.db")
    store.upsert_skill(_record("pdf", "PDF"))

    found = store.get_skill_by_name("pdf")

    assert found is not None
    assert found.id == "pdf"


def test_duplicate_name_with_different_id_is_rejected(tmp_path: Path) -> None:
    store = open_default_store(tmp_path / "skill_hub.db")
    store.upsert_skill(_record("pdf", "pdf"))

    with pytest.raises(SkillExistsError):
        store.upsert_skill(_record("pdf-2", "PDF"))


def test_upsert_updates_existing_skill_and_keeps_created_at(tmp_path: Path) -> None:
    store = open_default_store(tmp_path / "skill_hub.db")
    store.upsert_skill(_record("pdf", "pdf", updated_at=1))
    store.upsert_skill(
        SkillRecord(
            id="pdf",
            name="pdf",
            central_path="/central/pdf",
            source_type="git",
            source_ref="https://github.com/o/r.git",
            source_revision="abc",
            created_at=99,
            updated_at=5,
        )
    )

    record = store.get_skill_by_id("pdf")

    assert record is not None
    assert record.source_type == "git"
    assert record.source_revision == "abc"
    assert record.created_at == 1
    assert record.updated_at == 5


def test_list_skills_orders_most_recent_first(tmp_path: Path) -> None:
    store = open_default_store(tmp_path / "skill_hub.db")
    store.upsert_skill(_record("old", "old", updated_at=1))
    store.upsert_skill(_record("new", "new", updated_at=2))

    assert [record.id for record in store.list_skills()] == ["new", "old"]


def test_targets_are_unique_per_skill_and_tool(tmp_path: Path) -> None:
    store = open_default_store(tmp_path / "skill_hub.db")
    store.upsert_skill(_record("pdf", "pdf"))
    target = SkillTargetRecord(
        id="t1",
        skill_id="pdf",
        tool="cursor",
        target_path="/home/.cursor/skills/pdf",
        mode="copy",
        status="ok",
        synced_at=10,
    )
    store.upsert_skill_target(target)
    store.upsert_skill_target(
        SkillTargetRecord(
            id="t2",
            skill_id="pdf",
            tool="cursor",
            target_path="/home/.cursor/skills/pdf",
            mode="copy",
            status="error",
            last_error="disk full",
            synced_at=10,
        )
    )

    targets = store.list_skill_targets("pdf")

    assert len(targets) == 1
    assert targets[0].id == "t1"
    assert targets[0].status == "error"
    assert targets[0].last_error == "disk full"

    store.delete_skill_target("pdf", "cursor")
    assert store.get_skill_target("pdf", "cursor") is None
