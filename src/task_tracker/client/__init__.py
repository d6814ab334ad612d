"""Client library: anonymous sessions and the owner-scoped task store."""

from task_tracker.client.http import BackendClient, HttpTransport, TransportError, UrllibTransport
from task_tracker.client.session import (
    FileSessionStore,
    MemorySessionStore,
    Session,
    SessionManager,
    SessionStore,
)
from task_tracker.client.store import TaskStoreClient

__all__ = [
    "BackendClient",
    "FileSessionStore",
    "HttpTransport",
    "MemorySessionStore",
    "Session",
    "SessionManager",
    "SessionStore",
    "TaskStoreClient",
    "TransportError",
    "UrllibTransport",
]
