"""Process-wide locks keyed by skill id."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

_registry_lock = threading.Lock()
_skill_locks: dict[str, threading.RLock] = {}


def _lock_for(key: str) -> threading.RLock:
    with _registry_lock:
        lock = _skill_locks.get(key)
        if lock is None:
            lock = threading.RLock()
            _skill_locks[key] = lock
        return lock


@contextmanager
def skill_lock(skill_id: str) -> Iterator[None]:
    """Serialize repository and sync operations touching one skill.

    Reentrant, so an update may re-sync its own targets while holding it.
    """
    lock = _lock_for(skill_id)
    with lock:
        yield
