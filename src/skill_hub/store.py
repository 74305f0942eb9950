"""Persistent records for managed skills and their sync targets.

The core only talks to the ``SkillStore`` protocol; ``SqliteSkillStore`` is
the bundled implementation.
"""

from __future__ import annotations

import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Literal, Protocol

from skill_hub.core.exceptions import SkillExistsError

if TYPE_CHECKING:
    from collections.abc import Iterator

CENTRAL_REPO_PATH_KEY = "central_repo_path"

SourceType = Literal["local", "git"]
TargetMode = Literal["copy", "symlink"]
TargetStatus = Literal["ok", "error"]


def now_ms() -> int:
    return int(datetime.now(UTC).timestamp() * 1000)


@dataclass(frozen=True)
class SkillRecord:
    id: str
    name: str
    central_path: str
    source_type: SourceType
    source_ref: str
    description: str | None = None
    source_subpath: str | None = None
    source_branch: str | None = None
    source_revision: str | None = None
    created_at: int = 0
    updated_at: int = 0


@dataclass(frozen=True)
class SkillTargetRecord:
    id: str
    skill_id: str
    tool: str
    target_path: str
    mode: TargetMode
    status: TargetStatus
    last_error: str | None = None
    synced_at: int | None = None


class SkillStore(Protocol):
    def get_setting(self, key: str) -> str | None: ...

    def set_setting(self, key: str, value: str) -> None: ...

    def get_skill_by_id(self, skill_id: str) -> SkillRecord | None: ...

    def get_skill_by_name(self, name: str) -> SkillRecord | None: ...

    def list_skills(self) -> list[SkillRecord]: ...

    def upsert_skill(self, skill: SkillRecord) -> None: ...

    def get_skill_target(self, skill_id: str, tool: str) -> SkillTargetRecord | None: ...

    def list_skill_targets(self, skill_id: str) -> list[SkillTargetRecord]: ...

    def upsert_skill_target(self, target: SkillTargetRecord) -> None: ...

    def delete_skill_target(self, skill_id: str, tool: str) -> None: ...


_SCHEMA = """
CREATE TABLE IF NOT EXISTS settings (
    key   TEXT PRIMARY KEY,
    value TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS skills (
    id              TEXT PRIMARY KEY,
    name            TEXT NOT NULL UNIQUE COLLATE NOCASE,
    description     TEXT,
    central_path    TEXT NOT NULL,
    source_type     TEXT NOT NULL,
    source_ref      TEXT NOT NULL,
    source_subpath  TEXT,
    source_branch   TEXT,
    source_revision TEXT,
    created_at      INTEGER NOT NULL,
    updated_at      INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS skill_targets (
    id          TEXT PRIMARY KEY,
    skill_id    TEXT NOT NULL REFERENCES skills(id) ON DELETE CASCADE,
    tool        TEXT NOT NULL,
    target_path TEXT NOT NULL,
    mode        TEXT NOT NULL,
    status      TEXT NOT NULL,
    last_error  TEXT,
    synced_at   INTEGER,
    UNIQUE (skill_id, tool)
);
"""

_SKILL_COLUMNS = (
    "id, name, description, central_path, source_type, source_ref, "
    "source_subpath, source_branch, source_revision, created_at, updated_at"
)
_TARGET_COLUMNS = "id, skill_id, tool, target_path, mode, status, last_error, synced_at"


class SqliteSkillStore:
    """SQLite backed store; writes are serialized by an in-process lock."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self._write_lock = threading.Lock()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        con = sqlite3.connect(self.db_path)
        try:
            con.execute("PRAGMA foreign_keys=ON")
            with con:
                yield con
        finally:
            con.close()

    def ensure_schema(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._write_lock, self._connect() as con:
            con.executescript(_SCHEMA)

    def get_setting(self, key: str) -> str | None:
        with self._connect() as con:
            row = con.execute("SELECT value FROM settings WHERE key = ?", (key,)).fetchone()
        return row[0] if row else None

    def set_setting(self, key: str, value: str) -> None:
        with self._write_lock, self._connect() as con:
            con.execute(
                "INSERT INTO settings(key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (key, value),
            )

    def get_skill_by_id(self, skill_id: str) -> SkillRecord | None:
        with self._connect() as con:
            row = con.execute(
                f"SELECT {_SKILL_COLUMNS} FROM skills WHERE id = ?", (skill_id,)
            ).fetchone()
        return _skill_from_row(row) if row else None

    def get_skill_by_name(self, name: str) -> SkillRecord | None:
        with self._connect() as con:
            row = con.execute(
                f"SELECT {_SKILL_COLUMNS} FROM skills WHERE name = ?", (name,)
            ).fetchone()
        return _skill_from_row(row) if row else None

    def list_skills(self) -> list[SkillRecord]:
        with self._connect() as con:
            rows = con.execute(
                f"SELECT {_SKILL_COLUMNS} FROM skills ORDER BY updated_at DESC, name"
            ).fetchall()
        return [_skill_from_row(row) for row in rows]

    def upsert_skill(self, skill: SkillRecord) -> None:
        try:
            with self._write_lock, self._connect() as con:
                con.execute(
                    f"""
                    INSERT INTO skills({_SKILL_COLUMNS})
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(id) DO UPDATE SET
                        name            = excluded.name,
                        description     = excluded.description,
                        central_path    = excluded.central_path,
                        source_type     = excluded.source_type,
                        source_ref      = excluded.source_ref,
                        source_subpath  = excluded.source_subpath,
                        source_branch   = excluded.source_branch,
                        source_revision = excluded.source_revision,
                        updated_at      = excluded.updated_at
                    """,
                    (
                        skill.id,
                        skill.name,
                        skill.description,
                        skill.central_path,
                        skill.source_type,
                        skill.source_ref,
                        skill.source_subpath,
                        skill.source_branch,
                        skill.source_revision,
                        skill.created_at,
                        skill.updated_at,
                    ),
                )
        except sqlite3.IntegrityError as exc:
            raise SkillExistsError(skill.name) from exc

    def get_skill_target(self, skill_id: str, tool: str) -> SkillTargetRecord | None:
        with self._connect() as con:
            row = con.execute(
                f"SELECT {_TARGET_COLUMNS} FROM skill_targets WHERE skill_id = ? AND tool = ?",
                (skill_id, tool),
            ).fetchone()
        return _target_from_row(row) if row else None

    def list_skill_targets(self, skill_id: str) -> list[SkillTargetRecord]:
        with self._connect() as con:
            rows = con.execute(
                f"SELECT {_TARGET_COLUMNS} FROM skill_targets WHERE skill_id = ? ORDER BY tool",
                (skill_id,),
            ).fetchall()
        return [_target_from_row(row) for row in rows]

    def upsert_skill_target(self, target: SkillTargetRecord) -> None:
        with self._write_lock, self._connect() as con:
            con.execute(
                f"""
                INSERT INTO skill_targets({_TARGET_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(skill_id, tool) DO UPDATE SET
                    target_path = excluded.target_path,
                    mode        = excluded.mode,
                    status      = excluded.status,
                    last_error  = excluded.last_error,
                    synced_at   = excluded.synced_at
                """,
                (
                    target.id,
                    target.skill_id,
                    target.tool,
                    target.target_path,
                    target.mode,
                    target.status,
                    target.last_error,
                    target.synced_at,
                ),
            )

    def delete_skill_target(self, skill_id: str, tool: str) -> None:
        with self._write_lock, self._connect() as con:
            con.execute(
                "DELETE FROM skill_targets WHERE skill_id = ? AND tool = ?",
                (skill_id, tool),
            )


def _skill_from_row(row: tuple) -> SkillRecord:
    (
        skill_id,
        name,
        description,
        central_path,
        source_type,
        source_ref,
        source_subpath,
        source_branch,
        source_revision,
        created_at,
        updated_at,
    ) = row
    return SkillRecord(
        id=skill_id,
        name=name,
        description=description,
        central_path=central_path,
        source_type=source_type,
        source_ref=source_ref,
        source_subpath=source_subpath,
        source_branch=source_branch,
        source_revision=source_revision,
        created_at=created_at,
        updated_at=updated_at,
    )


def _target_from_row(row: tuple) -> SkillTargetRecord:
    target_id, skill_id, tool, target_path, mode, status, last_error, synced_at = row
    return SkillTargetRecord(
        id=target_id,
        skill_id=skill_id,
        tool=tool,
        target_path=target_path,
        mode=mode,
        status=status,
        last_error=last_error,
        synced_at=synced_at,
    )


def open_default_store(db_path: Path) -> SqliteSkillStore:
    store = SqliteSkillStore(db_path)
    store.ensure_schema()
    return store
