from __future__ import annotations

import json
from datetime import date, timedelta
from typing import get_args

import pytest

from task_tracker.client.http import BackendClient, TransportError
from task_tracker.client.session import MemorySessionStore, SessionManager
from task_tracker.client.store import PRIORITIES, TaskStoreClient
from task_tracker.errors import StoreError, ValidationError
from task_tracker.storage.memory import InMemoryTaskStorage
from task_tracker.storage.models import Priority

from .conftest import API_KEY, BASE_URL, AppTransport


@pytest.fixture
def tasks(backend: BackendClient, session_manager: SessionManager) -> TaskStoreClient:
    return TaskStoreClient(backend, session_manager.ensure_session())


def _other_principal(backend: BackendClient) -> TaskStoreClient:
    session = SessionManager(backend, MemorySessionStore()).ensure_session()
    return TaskStoreClient(backend, session)


def test_empty_list_for_new_principal(tasks: TaskStoreClient) -> None:
    assert tasks.list_tasks() == []


def test_created_task_comes_back_first(tasks: TaskStoreClient) -> None:
    tasks.create_task("Walk the dog")
    tasks.create_task("Buy milk", priority="high")

    listed = tasks.list_tasks()

    first = listed[0]
    assert first.title == "Buy milk"
    assert first.priority == "high"
    assert first.is_complete is False
    assert first.owner == tasks.principal
    assert [t.title for t in listed] == ["Buy milk", "Walk the dog"]


def test_list_is_sorted_by_created_at_descending(tasks: TaskStoreClient) -> None:
    for index in range(5):
        tasks.create_task(f"task {index}")

    listed = tasks.list_tasks()

    assert [t.created_at for t in listed] == sorted((t.created_at for t in listed), reverse=True)
    assert listed[0].title == "task 4"


def test_every_listed_task_is_owned_by_the_session(
    tasks: TaskStoreClient, backend: BackendClient
) -> None:
    other = _other_principal(backend)
    tasks.create_task("mine")
    other.create_task("theirs")

    assert {t.owner for t in tasks.list_tasks()} == {tasks.principal}
    assert [t.title for t in other.list_tasks()] == ["theirs"]


@pytest.mark.parametrize("title", ["", "   ", "\n\t"])
def test_empty_title_is_rejected_without_a_request(
    tasks: TaskStoreClient, transport: AppTransport, storage: InMemoryTaskStorage, title: str
) -> None:
    calls_before = list(transport.calls)

    with pytest.raises(ValidationError, match="Title is required."):
        tasks.create_task(title)

    assert transport.calls == calls_before
    assert storage.list_tasks(tasks.principal) == []


def test_create_normalises_optional_fields(tasks: TaskStoreClient) -> None:
    due = date.today() + timedelta(days=3)

    record = tasks.create_task("  Pay rent ", description="   ", due_date=due.isoformat())

    assert record.title == "Pay rent"
    assert record.description is None
    assert record.priority == "normal"
    assert record.due_date == due


def test_create_rejects_bad_priority_and_due_date(tasks: TaskStoreClient) -> None:
    with pytest.raises(ValidationError, match="Priority"):
        tasks.create_task("x", priority="urgent")
    with pytest.raises(ValidationError, match="YYYY-MM-DD"):
        tasks.create_task("x", due_date="next friday")


def test_priorities_follow_the_task_model() -> None:
    assert PRIORITIES == get_args(Priority) == ("low", "normal", "high")


def test_toggle_flips_and_flips_back(tasks: TaskStoreClient) -> None:
    record = tasks.create_task("Read a book")

    tasks.toggle_complete(record.id, False)
    assert tasks.list_tasks()[0].is_complete is True

    tasks.toggle_complete(record.id, True)
    assert tasks.list_tasks()[0].is_complete is False


def test_toggle_with_stale_state_is_last_write_wins(tasks: TaskStoreClient) -> None:
    record = tasks.create_task("Race me")

    tasks.toggle_complete(record.id, False)
    tasks.toggle_complete(record.id, False)

    assert tasks.list_tasks()[0].is_complete is True


def test_toggle_of_foreign_task_is_an_authorization_failure(
    tasks: TaskStoreClient, backend: BackendClient
) -> None:
    other = _other_principal(backend)
    theirs = other.create_task("not yours")

    with pytest.raises(StoreError) as excinfo:
        tasks.toggle_complete(theirs.id, False)

    assert excinfo.value.status_code == 403
    assert excinfo.value.is_authorization_failure
    assert other.list_tasks()[0].is_complete is False


def test_toggle_of_missing_task_fails(tasks: TaskStoreClient) -> None:
    with pytest.raises(StoreError, match="not found or not owned"):
        tasks.toggle_complete("0b8f6b8e-0000-4000-8000-000000000000", False)


def test_transport_failure_becomes_store_error(tasks: TaskStoreClient) -> None:
    class Down:
        def send(self, method, url, *, headers, body, timeout_s):
            raise TransportError("Backend unreachable: timed out")

    offline = TaskStoreClient(
        BackendClient(base_url=BASE_URL, api_key=API_KEY, transport=Down()), tasks.session
    )

    with pytest.raises(StoreError, match="unreachable"):
        offline.list_tasks()
    with pytest.raises(StoreError):
        offline.create_task("queued nowhere")


def test_foreign_rows_from_a_misbehaving_backend_are_dropped(tasks: TaskStoreClient) -> None:
    mine = tasks.create_task("mine").model_dump(mode="json")
    foreign = dict(mine, id="other-id", owner="someone-else")

    class Leaky:
        def send(self, method, url, *, headers, body, timeout_s):
            return 200, json.dumps([mine, foreign]).encode("utf-8")

    leaky = TaskStoreClient(
        BackendClient(base_url=BASE_URL, api_key=API_KEY, transport=Leaky()), tasks.session
    )

    assert [t.id for t in leaky.list_tasks()] == [mine["id"]]


def test_revoked_principal_gets_store_error(
    tasks: TaskStoreClient, storage: InMemoryTaskStorage
) -> None:
    storage.delete_user(tasks.principal)

    with pytest.raises(StoreError) as excinfo:
        tasks.list_tasks()

    assert excinfo.value.status_code == 401
