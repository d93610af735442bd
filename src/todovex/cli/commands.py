# src/todovex/cli/commands.py

"""Sub-command handlers for the `todovex` CLI."""

from __future__ import annotations

import argparse
import logging
import secrets
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta

from ..ai.search import create_sub_todo_with_embedding, create_todo_with_embedding, search_similar_todos
from ..auth.convert import to_millis
from ..core.models import AdapterSession, AdapterUser, Todo
from ..core.state import AppState
from ..errors import InvalidArgumentError, NotFoundError

logger = logging.getLogger(__name__)

CommandHandler = Callable[[AppState, argparse.Namespace], Awaitable[int]]


def _parse_due(raw: str | None) -> int:
    if not raw:
        return to_millis(datetime.now(UTC))
    try:
        day = datetime.strptime(raw, "%Y-%m-%d").replace(tzinfo=UTC)
    except ValueError as e:
        raise InvalidArgumentError(f"Invalid due date {raw!r}, expected YYYY-MM-DD") from e
    return to_millis(day)


def _format_todo(t: Todo) -> str:
    mark = "x" if t.is_completed else " "
    due = datetime.fromtimestamp(t.due_date / 1000, tz=UTC).strftime("%Y-%m-%d")
    line = f"{t.id}  [{mark}] {t.task_name}  (due {due}"
    if t.priority is not None:
        line += f", p{t.priority:g}"
    line += ")"
    if t.description:
        line += f"\n    {t.description}"
    return line


async def cmd_init(state: AppState, args: argparse.Namespace) -> int:
    label = state.tasks.ensure_system_label(state.settings.ai_label_id, name="AI")
    print(f"Task store: {state.settings.tasks_db_path}")
    print(f"AI label:   {label.id} ({label.name})")
    return 0


async def cmd_create_user(state: AppState, args: argparse.Namespace) -> int:
    existing = await state.auth.get_user_by_email(args.email)
    if existing is not None:
        print(f"User already exists: {existing.id}")
        return 1
    user = await state.auth.create_user(AdapterUser(email=args.email, name=args.name))
    print(user.id)
    return 0


async def cmd_create_session(state: AppState, args: argparse.Namespace) -> int:
    user = await state.auth.get_user(args.user_id)
    if user is None:
        raise NotFoundError(f"User not found: {args.user_id}")
    session = await state.auth.create_session(
        AdapterSession(
            session_token=secrets.token_hex(32),
            user_id=args.user_id,
            expires=datetime.now(UTC) + timedelta(days=args.days),
        )
    )
    print(session.session_token)
    return 0


async def cmd_whoami(state: AppState, args: argparse.Namespace) -> int:
    found = await state.auth.get_session_and_user(args.session_token)
    if found is None:
        print("No session.")
        return 1
    session, user = found
    expired = session.expires <= datetime.now(UTC)
    print(f"{user.email} ({user.id})")
    print(f"session expires {session.expires.isoformat()}" + (" [expired]" if expired else ""))
    return 1 if expired else 0


async def cmd_add_project(state: AppState, args: argparse.Namespace) -> int:
    project = state.tasks.create_project(name=args.name, user_id=args.user_id)
    print(project.id)
    return 0


async def cmd_projects(state: AppState, args: argparse.Namespace) -> int:
    for p in state.tasks.list_projects(args.user_id):
        print(f"{p.id}  {p.name}  [{p.type.value}]")
    return 0


async def cmd_add_todo(state: AppState, args: argparse.Namespace) -> int:
    if state.tasks.get_project(args.project_id) is None:
        raise NotFoundError("Project not found")
    label_id = args.label_id or state.settings.ai_label_id
    common = dict(
        user_id=args.user_id,
        project_id=args.project_id,
        label_id=label_id,
        task_name=args.task_name,
        description=args.description,
        due_date=_parse_due(args.due),
        priority=args.priority,
    )
    if args.parent_id:
        item: Todo = await create_sub_todo_with_embedding(
            state.tasks, state.embedder, parent_id=args.parent_id, **common
        )
    else:
        item = await create_todo_with_embedding(state.tasks, state.embedder, **common)
    print(item.id)
    return 0


async def cmd_todos(state: AppState, args: argparse.Namespace) -> int:
    completed: bool | None = None
    if args.completed:
        completed = True
    elif args.pending:
        completed = False
    if args.project_id:
        todos = state.tasks.list_todos_by_project(args.project_id)
    else:
        todos = state.tasks.list_todos(args.user_id, completed=completed)
    for t in todos:
        print(_format_todo(t))
    print(f"{len(todos)} of {state.tasks.count_todos(args.user_id)} todos")
    return 0


async def cmd_complete(state: AppState, args: argparse.Namespace) -> int:
    if not state.tasks.set_todo_completed(args.todo_id, not args.undo):
        raise NotFoundError(f"Todo not found: {args.todo_id}")
    return 0


async def cmd_suggest(state: AppState, args: argparse.Namespace) -> int:
    created = await state.pipeline.suggest_for_project(args.project_id, user_id=args.user_id)
    for t in created:
        print(_format_todo(t))
    print("New tasks have been suggested and added to your project.")
    return 0


async def cmd_suggest_subtasks(state: AppState, args: argparse.Namespace) -> int:
    task_name = args.task_name
    description = args.description
    if args.parent_id and (task_name is None or description is None):
        parent = state.tasks.get_todo(args.parent_id)
        if parent is not None:
            task_name = task_name if task_name is not None else parent.task_name
            description = description if description is not None else parent.description
    created = await state.pipeline.suggest_for_subtask(
        args.project_id, args.parent_id, task_name, description, user_id=args.user_id
    )
    for t in created:
        print(_format_todo(t))
    print("New subtasks have been suggested and added to your task.")
    return 0


async def cmd_search(state: AppState, args: argparse.Namespace) -> int:
    hits = await search_similar_todos(
        state.tasks, state.embedder, user_id=args.user_id, query=args.query, limit=args.limit
    )
    for h in hits:
        kind = "sub" if h.is_sub_todo else "todo"
        print(f"{h.score:.3f}  {kind:<4} {h.item.id}  {h.item.task_name}")
    if not hits:
        print("No matches.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="todovex", description="To-do manager with AI task suggestions.")
    parser.add_argument("--env-file", default=None, help="Path to a .env file (default: search upwards)")
    sub = parser.add_subparsers(dest="command", required=True)

    def add(name: str, handler: CommandHandler, help_text: str) -> argparse.ArgumentParser:
        p = sub.add_parser(name, help=help_text)
        p.set_defaults(handler=handler)
        return p

    add("init", cmd_init, "Create local stores and the AI system label")

    p = add("create-user", cmd_create_user, "Create a user through the auth adapter")
    p.add_argument("--email", required=True)
    p.add_argument("--name", default=None)

    p = add("create-session", cmd_create_session, "Issue a session token for a user")
    p.add_argument("--user-id", required=True)
    p.add_argument("--days", type=int, default=30)

    p = add("whoami", cmd_whoami, "Resolve a session token to its user")
    p.add_argument("session_token")

    p = add("add-project", cmd_add_project, "Create a project")
    p.add_argument("--user-id", required=True)
    p.add_argument("--name", required=True)

    p = add("projects", cmd_projects, "List a user's projects")
    p.add_argument("--user-id", required=True)

    p = add("add-todo", cmd_add_todo, "Create a todo (or sub-todo) with an embedding")
    p.add_argument("--user-id", required=True)
    p.add_argument("--project-id", required=True)
    p.add_argument("--task-name", required=True)
    p.add_argument("--description", default=None)
    p.add_argument("--priority", type=float, default=None)
    p.add_argument("--due", default=None, help="YYYY-MM-DD (default: now)")
    p.add_argument("--label-id", default=None)
    p.add_argument("--parent-id", default=None)

    p = add("todos", cmd_todos, "List todos")
    p.add_argument("--user-id", required=True)
    p.add_argument("--project-id", default=None)
    g = p.add_mutually_exclusive_group()
    g.add_argument("--completed", action="store_true")
    g.add_argument("--pending", action="store_true")

    p = add("complete", cmd_complete, "Mark a todo completed")
    p.add_argument("todo_id")
    p.add_argument("--undo", action="store_true", help="Mark as not completed")

    p = add("suggest", cmd_suggest, "Ask the AI for missing project todos")
    p.add_argument("--user-id", required=True)
    p.add_argument("--project-id", required=True)

    p = add("suggest-subtasks", cmd_suggest_subtasks, "Ask the AI for missing sub-tasks of a todo")
    p.add_argument("--user-id", required=True)
    p.add_argument("--project-id", required=True)
    p.add_argument("--parent-id", default=None)
    p.add_argument("--task-name", default=None, help="Default: the parent's task name")
    p.add_argument("--description", default=None, help="Default: the parent's description")

    p = add("search", cmd_search, "Semantic search over a user's todos")
    p.add_argument("--user-id", required=True)
    p.add_argument("--limit", type=int, default=10)
    p.add_argument("query")

    return parser
