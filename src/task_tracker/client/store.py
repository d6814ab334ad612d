"""Task store client bound to one session."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, get_args
from urllib.parse import quote

from pydantic import TypeAdapter, ValidationError as PydanticValidationError

from task_tracker.client.http import ApiResponse, BackendClient, TransportError
from task_tracker.client.session import Session
from task_tracker.errors import StoreError, ValidationError
from task_tracker.storage.models import Priority, TaskRecord

logger = logging.getLogger(__name__)

TASKS_PATH = "/rest/v1/tasks"
PRIORITIES: tuple[str, ...] = get_args(Priority)

_task_list = TypeAdapter(list[TaskRecord])


class TaskStoreClient:
    """Create, list and toggle the session principal's tasks.

    Nothing is cached: every ``list_tasks`` call is a fresh fetch.
    """

    def __init__(self, backend: BackendClient, session: Session) -> None:
        self.backend = backend
        self.session = session

    @property
    def principal(self) -> str:
        return self.session.principal

    def list_tasks(self) -> list[TaskRecord]:
        response = self._send("GET", TASKS_PATH)
        try:
            rows = _task_list.validate_python(response.payload or [])
        except PydanticValidationError as exc:
            raise StoreError("Backend returned malformed task rows") from exc

        owned = [row for row in rows if row.owner == self.principal]
        if len(owned) != len(rows):
            logger.warning(
                "store event=foreign_rows_dropped user_id=%s dropped=%s",
                self.principal,
                len(rows) - len(owned),
            )
        return owned

    def create_task(
        self,
        title: str,
        description: str | None = None,
        priority: Priority | None = None,
        due_date: date | str | None = None,
    ) -> TaskRecord:
        clean_title = (title or "").strip()
        if not clean_title:
            raise ValidationError("Title is required.")
        if priority is not None and priority not in PRIORITIES:
            raise ValidationError(f"Priority must be one of: {', '.join(PRIORITIES)}.")

        payload: dict[str, Any] = {
            "owner": self.principal,
            "title": clean_title,
            "description": (description or "").strip() or None,
            "priority": priority or "normal",
            "due_date": _due_date_value(due_date),
            "is_complete": False,
        }
        response = self._send("POST", TASKS_PATH, payload=payload)
        try:
            record = TaskRecord.model_validate(response.payload)
        except PydanticValidationError as exc:
            raise StoreError("Backend returned a malformed task row") from exc
        logger.info("store event=created user_id=%s task_id=%s", self.principal, record.id)
        return record

    def toggle_complete(self, task_id: str, current_state: bool) -> None:
        """Write ``not current_state``; concurrent toggles resolve last-write-wins."""
        path = f"{TASKS_PATH}/{quote(task_id, safe='')}"
        self._send("PATCH", path, payload={"is_complete": not current_state})
        logger.info(
            "store event=toggled user_id=%s task_id=%s is_complete=%s",
            self.principal,
            task_id,
            not current_state,
        )

    def _send(self, method: str, path: str, *, payload: Any = None) -> ApiResponse:
        try:
            response = self.backend.request(
                method,
                path,
                access_token=self.session.access_token,
                payload=payload,
            )
        except TransportError as exc:
            raise StoreError(str(exc)) from exc
        if not response.ok:
            raise StoreError(response.error_message(), status_code=response.status)
        return response


def _due_date_value(due_date: date | str | None) -> str | None:
    if due_date is None or due_date == "":
        return None
    if isinstance(due_date, date):
        return due_date.isoformat()
    try:
        return date.fromisoformat(due_date.strip()).isoformat()
    except ValueError as exc:
        raise ValidationError("Due date must be a YYYY-MM-DD date.") from exc
