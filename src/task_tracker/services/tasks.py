"""Task operations scoped to the calling principal."""

from __future__ import annotations

import logging

from task_tracker.services import policies
from task_tracker.storage.base import TaskStorage
from task_tracker.storage.models import NewTask, TaskChanges, TaskRecord

logger = logging.getLogger(__name__)


class TaskNotAccessible(Exception):
    """Row is missing or belongs to someone else; callers cannot tell which."""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task {task_id} not found or not owned by caller")
        self.task_id = task_id


class TaskService:
    """Run storage calls under the ownership policies."""

    def __init__(self, storage: TaskStorage) -> None:
        self.storage = storage

    def list_tasks(self, caller: str) -> list[TaskRecord]:
        rows = policies.visible_rows(caller, self.storage.list_tasks(caller))
        logger.debug("tasks event=list caller=%s count=%s", caller, len(rows))
        return rows

    def create_task(self, caller: str, payload: NewTask) -> TaskRecord:
        owner = payload.owner if payload.owner is not None else caller
        policies.check_insert(caller, owner)
        record = self.storage.insert_task(owner, payload)
        logger.info(
            "tasks event=insert caller=%s task_id=%s priority=%s",
            caller,
            record.id,
            record.priority,
        )
        return record

    def update_task(self, caller: str, task_id: str, changes: TaskChanges) -> TaskRecord:
        current = self.storage.get_task(caller, task_id)
        if current is None:
            raise TaskNotAccessible(task_id)
        policies.check_update(caller, current)

        fields = changes.as_update()
        updated = self.storage.update_task(caller, task_id, fields)
        if updated is None:
            raise TaskNotAccessible(task_id)
        logger.info(
            "tasks event=update caller=%s task_id=%s fields=%s",
            caller,
            task_id,
            sorted(fields),
        )
        return updated

    def delete_task(self, caller: str, task_id: str) -> None:
        current = self.storage.get_task(caller, task_id)
        if current is None:
            raise TaskNotAccessible(task_id)
        policies.check_delete(caller, current)
        if not self.storage.delete_task(caller, task_id):
            raise TaskNotAccessible(task_id)
        logger.info("tasks event=delete caller=%s task_id=%s", caller, task_id)
