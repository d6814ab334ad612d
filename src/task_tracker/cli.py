"""Command-line presentation layer.

Each command establishes the session, performs one store operation, then
re-fetches and renders the list. Errors end the command with a single message
and exit status 1; nothing is retried.
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence
from typing import TextIO

from task_tracker.client.http import BackendClient, HttpTransport
from task_tracker.client.session import FileSessionStore, SessionManager, SessionStore
from task_tracker.client.store import PRIORITIES, TaskStoreClient
from task_tracker.config.settings import Settings, get_settings
from task_tracker.errors import StoreError, TaskTrackerError
from task_tracker.storage.models import TaskRecord

logger = logging.getLogger(__name__)


def render_tasks(tasks: Sequence[TaskRecord]) -> str:
    if not tasks:
        return "No tasks yet."
    blocks: list[str] = []
    for task in tasks:
        marker = "[x]" if task.is_complete else "[ ]"
        lines = [f"{marker} {task.title}  (id: {task.id})"]
        if task.description:
            lines.append(f"    {task.description}")
        if task.priority:
            lines.append(f"    Priority: {task.priority}")
        if task.due_date:
            lines.append(f"    Due: {task.due_date.isoformat()}")
        blocks.append("\n".join(lines))
    return "\n".join(blocks)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="task-tracker",
        description="Personal task tracker backed by an anonymous session.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("list", help="Show your tasks, newest first.")
    sub.add_parser("whoami", help="Print the principal of the current session.")

    add = sub.add_parser("add", help="Create a task.")
    add.add_argument("title")
    add.add_argument("--description", default=None)
    add.add_argument("--priority", choices=PRIORITIES, default="normal")
    add.add_argument("--due-date", default=None, help="YYYY-MM-DD")

    toggle = sub.add_parser("toggle", help="Flip a task between done and not done.")
    toggle.add_argument("task_id")

    serve = sub.add_parser("serve", help="Run the backend service.")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    return parser


def run(
    args: argparse.Namespace,
    *,
    settings: Settings,
    transport: HttpTransport | None = None,
    session_store: SessionStore | None = None,
    out: TextIO = sys.stdout,
) -> None:
    backend = BackendClient(
        base_url=settings.resolved_url(),
        api_key=settings.resolved_anon_key(),
        timeout_s=settings.http_timeout_s,
        transport=transport,
    )
    store = session_store or FileSessionStore(settings.session_file)
    session = SessionManager(backend, store).ensure_session()
    if args.command == "whoami":
        print(session.principal, file=out)
        return

    tasks = TaskStoreClient(backend, session)
    if args.command == "add":
        tasks.create_task(
            args.title,
            description=args.description,
            priority=args.priority,
            due_date=args.due_date,
        )
    elif args.command == "toggle":
        current = next((t for t in tasks.list_tasks() if t.id == args.task_id), None)
        if current is None:
            raise StoreError(f"Task {args.task_id} not found among your tasks.")
        tasks.toggle_complete(current.id, current.is_complete)

    print(render_tasks(tasks.list_tasks()), file=out)


def _serve(settings: Settings, host: str, port: int) -> None:
    import uvicorn

    uvicorn.run(
        "task_tracker.api.main:app",
        host=host,
        port=port,
        log_level=settings.log_level.lower(),
    )


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "serve":
        _serve(settings, args.host, args.port)
        return 0

    try:
        run(args, settings=settings)
    except (TaskTrackerError, RuntimeError, OSError) as exc:
        logger.debug("cli event=command_failed command=%s error=%r", args.command, exc)
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
