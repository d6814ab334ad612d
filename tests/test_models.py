from __future__ import annotations

import pytest
from pydantic import ValidationError

from task_tracker.storage.models import NewTask, TaskChanges


@pytest.mark.parametrize("title", ["", "   ", None])
def test_new_task_requires_title(title) -> None:
    with pytest.raises(ValidationError):
        NewTask(title=title)


def test_new_task_rejects_unknown_priority_and_extra_fields() -> None:
    with pytest.raises(ValidationError):
        NewTask(title="x", priority="urgent")
    with pytest.raises(ValidationError):
        NewTask(title="x", created_at="2026-01-01T00:00:00Z")


def test_task_changes_only_reports_sent_fields() -> None:
    assert TaskChanges(is_complete=True).as_update() == {"is_complete": True}
    assert TaskChanges(description=None).as_update() == {"description": None}
    assert TaskChanges().as_update() == {}


@pytest.mark.parametrize("field", ["title", "priority", "is_complete"])
def test_task_changes_refuses_nulls_for_required_columns(field: str) -> None:
    with pytest.raises(ValidationError, match="cannot be null"):
        TaskChanges(**{field: None})


def test_task_changes_cannot_touch_owner() -> None:
    with pytest.raises(ValidationError):
        TaskChanges(owner="someone-else")
