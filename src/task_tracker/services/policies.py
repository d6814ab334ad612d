"""Row ownership policies, one per operation kind.

Each policy passes only when the row's owner is the calling principal. Storage
queries already filter by owner; the task service still runs these checks on
every row it hands out or touches.
"""

from __future__ import annotations

import logging
from typing import Literal

from task_tracker.storage.models import TaskRecord

logger = logging.getLogger(__name__)

Operation = Literal["select", "insert", "update", "delete"]


class PolicyViolation(Exception):
    """Caller tried to read or write a row owned by another principal."""

    def __init__(self, operation: Operation, caller: str, owner: str | None) -> None:
        super().__init__(f"{operation} denied: row is not owned by the caller")
        self.operation = operation
        self.caller = caller
        self.owner = owner


def owns(caller: str, owner: str | None) -> bool:
    return bool(caller) and owner == caller


def check_select(caller: str, row: TaskRecord) -> None:
    _enforce("select", caller, row.owner)


def check_insert(caller: str, owner: str) -> None:
    _enforce("insert", caller, owner)


def check_update(caller: str, row: TaskRecord) -> None:
    _enforce("update", caller, row.owner)


def check_delete(caller: str, row: TaskRecord) -> None:
    _enforce("delete", caller, row.owner)


def visible_rows(caller: str, rows: list[TaskRecord]) -> list[TaskRecord]:
    """Apply the select policy as a filter, keeping order."""
    allowed = [row for row in rows if owns(caller, row.owner)]
    dropped = len(rows) - len(allowed)
    if dropped:
        logger.warning("policy event=select_filtered caller=%s dropped=%s", caller, dropped)
    return allowed


def _enforce(operation: Operation, caller: str, owner: str | None) -> None:
    if owns(caller, owner):
        return
    logger.warning(
        "policy event=denied operation=%s caller=%s owner=%s", operation, caller, owner
    )
    raise PolicyViolation(operation, caller, owner)
