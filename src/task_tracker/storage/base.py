"""Storage interfaces for principals and owner-scoped task rows."""

from __future__ import annotations

from typing import Any, Protocol

from task_tracker.storage.models import NewTask, TaskRecord, UserRecord


class TaskStorage(Protocol):
    """Every task method takes the caller's principal and only touches its rows."""

    def migrate(self) -> None: ...

    def create_user(self, *, is_anonymous: bool = True) -> UserRecord: ...

    def get_user(self, user_id: str) -> UserRecord | None: ...

    def delete_user(self, user_id: str) -> bool: ...

    def add_refresh_token(self, user_id: str, token_hash: str) -> None: ...

    def redeem_refresh_token(self, token_hash: str) -> str | None: ...

    def list_tasks(self, owner: str) -> list[TaskRecord]: ...

    def get_task(self, owner: str, task_id: str) -> TaskRecord | None: ...

    def insert_task(self, owner: str, task: NewTask) -> TaskRecord: ...

    def update_task(
        self, owner: str, task_id: str, changes: dict[str, Any]
    ) -> TaskRecord | None: ...

    def delete_task(self, owner: str, task_id: str) -> bool: ...
