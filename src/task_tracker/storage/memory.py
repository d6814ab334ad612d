"""In-memory storage backend for tests and local runs."""

from __future__ import annotations

import itertools
import threading
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from task_tracker.storage.models import NewTask, TaskRecord, UserRecord


class InMemoryTaskStorage:
    """Dict-backed implementation mirroring the PostgreSQL backend's row filtering."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._users: dict[str, UserRecord] = {}
        self._tasks: dict[str, TaskRecord] = {}
        # refresh token digest -> user id
        self._refresh_tokens: dict[str, str] = {}
        # Insertion order breaks created_at ties when listing.
        self._seq: dict[str, int] = {}
        self._counter = itertools.count()

    def migrate(self) -> None:
        return None

    def create_user(self, *, is_anonymous: bool = True) -> UserRecord:
        record = UserRecord(
            id=str(uuid4()),
            is_anonymous=is_anonymous,
            created_at=datetime.now(UTC),
        )
        with self._lock:
            self._users[record.id] = record
        return record

    def get_user(self, user_id: str) -> UserRecord | None:
        with self._lock:
            return self._users.get(user_id)

    def delete_user(self, user_id: str) -> bool:
        with self._lock:
            if self._users.pop(user_id, None) is None:
                return False
            # ON DELETE CASCADE
            for task_id in [t.id for t in self._tasks.values() if t.owner == user_id]:
                del self._tasks[task_id]
                del self._seq[task_id]
            for digest in [d for d, owner in self._refresh_tokens.items() if owner == user_id]:
                del self._refresh_tokens[digest]
            return True

    def add_refresh_token(self, user_id: str, token_hash: str) -> None:
        with self._lock:
            if user_id not in self._users:
                raise KeyError(f"User {user_id} does not exist")
            self._refresh_tokens[token_hash] = user_id

    def redeem_refresh_token(self, token_hash: str) -> str | None:
        """Consume a refresh token; each one can be redeemed once."""
        with self._lock:
            return self._refresh_tokens.pop(token_hash, None)

    def list_tasks(self, owner: str) -> list[TaskRecord]:
        with self._lock:
            rows = [t for t in self._tasks.values() if t.owner == owner]
            rows.sort(key=lambda t: (t.created_at, self._seq[t.id]), reverse=True)
            return [t.model_copy() for t in rows]

    def get_task(self, owner: str, task_id: str) -> TaskRecord | None:
        with self._lock:
            record = self._tasks.get(task_id)
            if record is None or record.owner != owner:
                return None
            return record.model_copy()

    def insert_task(self, owner: str, task: NewTask) -> TaskRecord:
        with self._lock:
            if owner not in self._users:
                raise KeyError(f"User {owner} does not exist")
            record = TaskRecord(
                id=str(uuid4()),
                owner=owner,
                title=task.title,
                description=task.description,
                priority=task.priority,
                due_date=task.due_date,
                is_complete=task.is_complete,
                created_at=datetime.now(UTC),
            )
            self._tasks[record.id] = record
            self._seq[record.id] = next(self._counter)
            return record.model_copy()

    def update_task(
        self, owner: str, task_id: str, changes: dict[str, Any]
    ) -> TaskRecord | None:
        with self._lock:
            current = self._tasks.get(task_id)
            if current is None or current.owner != owner:
                return None
            if not changes:
                return current.model_copy()
            updated = current.model_copy(update=changes)
            self._tasks[task_id] = updated
            return updated.model_copy()

    def delete_task(self, owner: str, task_id: str) -> bool:
        with self._lock:
            current = self._tasks.get(task_id)
            if current is None or current.owner != owner:
                return False
            del self._tasks[task_id]
            del self._seq[task_id]
            return True
