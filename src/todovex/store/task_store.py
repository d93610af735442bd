# src/todovex/store/task_store.py

from __future__ import annotations

import contextlib
import json
import logging
import math
import sqlite3
import uuid
from pathlib import Path
from typing import Any

from ..core.models import Label, OwnerKind, Project, SubTodo, Todo

logger = logging.getLogger(__name__)

EMBEDDING_DIMENSIONS = 1536


def _new_id() -> str:
    return uuid.uuid4().hex


def _cosine(a: list[float], b: list[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    na = math.sqrt(sum(x * x for x in a))
    nb = math.sqrt(sum(y * y for y in b))
    if na == 0.0 or nb == 0.0:
        return 0.0
    return dot / (na * nb)


class TaskStore:
    """
    SQLite task store: projects, labels, todos and sub-todos.

    The schema is intentionally simple and migration-safe:
    - create table if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Embeddings are stored as JSON arrays; vector search is a per-user cosine
    scan over rows that carry one.

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(
        self,
        db_path: str | Path = "tasks.sqlite3",
        *,
        embedding_dimensions: int = EMBEDDING_DIMENSIONS,
    ) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._dims = int(embedding_dimensions)
        self._ensure_schema()
        try:
            total = self.count_todos()
        except Exception:
            total = -1
        logger.info("TaskStore ready db=%s todos=%s", self._db_path, total)

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(Exception):
            conn.execute("PRAGMA journal_mode=WAL")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS projects (
                    id TEXT PRIMARY KEY,
                    user_id TEXT,
                    name TEXT NOT NULL,
                    type TEXT NOT NULL DEFAULT 'user'
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS labels (
                    id TEXT PRIMARY KEY,
                    user_id TEXT,
                    name TEXT NOT NULL,
                    type TEXT NOT NULL DEFAULT 'user'
                )
                """
            )
            for table, parent_col in (("todos", ""), ("sub_todos", "parent_id TEXT NOT NULL,")):
                cur.execute(
                    f"""
                    CREATE TABLE IF NOT EXISTS {table} (
                        id TEXT PRIMARY KEY,
                        user_id TEXT NOT NULL,
                        project_id TEXT NOT NULL,
                        label_id TEXT NOT NULL,
                        {parent_col}
                        task_name TEXT NOT NULL,
                        description TEXT,
                        due_date INTEGER NOT NULL,
                        priority REAL,
                        is_completed INTEGER NOT NULL DEFAULT 0
                    )
                    """
                )

                # Migrations (safe): add missing columns.
                cur.execute(f"PRAGMA table_info({table})")
                cols = {row["name"] for row in cur.fetchall()}
                if "embedding" not in cols:
                    cur.execute(f"ALTER TABLE {table} ADD COLUMN embedding TEXT")
                    logger.info("TaskStore migration: added column %s.embedding", table)
                if "created_seq" not in cols:
                    cur.execute(f"ALTER TABLE {table} ADD COLUMN created_seq INTEGER NOT NULL DEFAULT 0")
                    logger.info("TaskStore migration: added column %s.created_seq", table)

            cur.execute("CREATE INDEX IF NOT EXISTS idx_todos_project ON todos(project_id)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_todos_user ON todos(user_id, is_completed)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_sub_todos_parent ON sub_todos(parent_id)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_sub_todos_user ON sub_todos(user_id)")

            conn.commit()
        finally:
            conn.close()

    def _check_embedding(self, embedding: list[float] | None) -> str | None:
        if embedding is None:
            return None
        if len(embedding) != self._dims:
            raise ValueError(f"embedding must have {self._dims} dimensions, got {len(embedding)}")
        return json.dumps([float(x) for x in embedding])

    @staticmethod
    def _str_to_embedding(s: str | None) -> list[float] | None:
        if not s:
            return None
        try:
            val = json.loads(s)
        except ValueError:
            return None
        return [float(x) for x in val] if isinstance(val, list) else None

    @staticmethod
    def _row_to_project(row: sqlite3.Row) -> Project:
        return Project(id=row["id"], user_id=row["user_id"], name=row["name"], type=OwnerKind(row["type"]))

    @staticmethod
    def _row_to_label(row: sqlite3.Row) -> Label:
        return Label(id=row["id"], user_id=row["user_id"], name=row["name"], type=OwnerKind(row["type"]))

    def _todo_fields(self, row: sqlite3.Row) -> dict[str, Any]:
        return {
            "id": row["id"],
            "user_id": row["user_id"],
            "project_id": row["project_id"],
            "label_id": row["label_id"],
            "task_name": row["task_name"],
            "description": row["description"],
            "due_date": int(row["due_date"]),
            "priority": float(row["priority"]) if row["priority"] is not None else None,
            "is_completed": bool(row["is_completed"]),
            "embedding": self._str_to_embedding(row["embedding"]),
        }

    def _row_to_todo(self, row: sqlite3.Row) -> Todo:
        return Todo(**self._todo_fields(row))

    def _row_to_sub_todo(self, row: sqlite3.Row) -> SubTodo:
        return SubTodo(parent_id=row["parent_id"], **self._todo_fields(row))

    @staticmethod
    def _next_seq(conn: sqlite3.Connection, table: str) -> int:
        (n,) = conn.execute(f"SELECT COALESCE(MAX(created_seq), 0) + 1 FROM {table}").fetchone()
        return int(n)

    # ---- projects / labels ----

    def create_project(
        self, *, name: str, user_id: str | None, type: OwnerKind = OwnerKind.USER, id: str | None = None
    ) -> Project:
        if not name or not name.strip():
            raise ValueError("name is required")
        project = Project(id=id or _new_id(), user_id=user_id, name=name.strip(), type=OwnerKind(type))
        conn = self._get_conn()
        try:
            conn.execute(
                "INSERT INTO projects(id, user_id, name, type) VALUES (?, ?, ?, ?)",
                (project.id, project.user_id, project.name, project.type.value),
            )
            conn.commit()
        finally:
            conn.close()
        logger.debug("Project created id=%s user=%s", project.id, user_id)
        return project

    def get_project(self, project_id: str) -> Project | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM projects WHERE id = ?", (project_id,)).fetchone()
            return self._row_to_project(row) if row else None
        finally:
            conn.close()

    def list_projects(self, user_id: str) -> list[Project]:
        """The user's own projects plus system projects (user_id IS NULL)."""
        conn = self._get_conn()
        try:
            rows = conn.execute(
                """
                SELECT *
                FROM projects
                WHERE user_id = ? OR user_id IS NULL
                ORDER BY type DESC, name ASC
                """,
                (user_id,),
            ).fetchall()
            return [self._row_to_project(r) for r in rows]
        finally:
            conn.close()

    def create_label(
        self, *, name: str, user_id: str | None, type: OwnerKind = OwnerKind.USER, id: str | None = None
    ) -> Label:
        if not name or not name.strip():
            raise ValueError("name is required")
        label = Label(id=id or _new_id(), user_id=user_id, name=name.strip(), type=OwnerKind(type))
        conn = self._get_conn()
        try:
            conn.execute(
                "INSERT INTO labels(id, user_id, name, type) VALUES (?, ?, ?, ?)",
                (label.id, label.user_id, label.name, label.type.value),
            )
            conn.commit()
        finally:
            conn.close()
        return label

    def get_label(self, label_id: str) -> Label | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM labels WHERE id = ?", (label_id,)).fetchone()
            return self._row_to_label(row) if row else None
        finally:
            conn.close()

    def list_labels(self, user_id: str) -> list[Label]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                "SELECT * FROM labels WHERE user_id = ? OR user_id IS NULL ORDER BY type DESC, name ASC",
                (user_id,),
            ).fetchall()
            return [self._row_to_label(r) for r in rows]
        finally:
            conn.close()

    def ensure_system_label(self, label_id: str, name: str = "AI") -> Label:
        existing = self.get_label(label_id)
        if existing is not None:
            return existing
        logger.info("Creating system label id=%s name=%s", label_id, name)
        return self.create_label(name=name, user_id=None, type=OwnerKind.SYSTEM, id=label_id)

    # ---- todos ----

    def count_todos(self, user_id: str | None = None) -> int:
        conn = self._get_conn()
        try:
            if user_id is None:
                (n,) = conn.execute("SELECT COUNT(*) FROM todos").fetchone()
            else:
                (n,) = conn.execute("SELECT COUNT(*) FROM todos WHERE user_id = ?", (user_id,)).fetchone()
            return int(n)
        finally:
            conn.close()

    def create_todo(
        self,
        *,
        user_id: str,
        project_id: str,
        label_id: str,
        task_name: str,
        due_date: int,
        description: str | None = None,
        priority: float | None = None,
        embedding: list[float] | None = None,
    ) -> Todo:
        if not task_name or not task_name.strip():
            raise ValueError("task_name is required")
        emb_str = self._check_embedding(embedding)
        todo = Todo(
            id=_new_id(),
            user_id=user_id,
            project_id=project_id,
            label_id=label_id,
            task_name=task_name.strip(),
            description=description,
            due_date=int(due_date),
            priority=priority,
            is_completed=False,
            embedding=list(embedding) if embedding is not None else None,
        )

        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO todos(
                    id, user_id, project_id, label_id, task_name, description,
                    due_date, priority, is_completed, embedding, created_seq
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, 0, ?, ?)
                """,
                (
                    todo.id,
                    user_id,
                    project_id,
                    label_id,
                    todo.task_name,
                    description,
                    todo.due_date,
                    priority,
                    emb_str,
                    self._next_seq(conn, "todos"),
                ),
            )
            conn.commit()
        finally:
            conn.close()
        logger.debug("Todo added id=%s project=%s embedded=%s", todo.id, project_id, emb_str is not None)
        return todo

    def get_todo(self, todo_id: str) -> Todo | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM todos WHERE id = ?", (todo_id,)).fetchone()
            return self._row_to_todo(row) if row else None
        finally:
            conn.close()

    def list_todos_by_project(self, project_id: str) -> list[Todo]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                "SELECT * FROM todos WHERE project_id = ? ORDER BY created_seq ASC", (project_id,)
            ).fetchall()
            return [self._row_to_todo(r) for r in rows]
        finally:
            conn.close()

    def list_todos(self, user_id: str, *, completed: bool | None = None) -> list[Todo]:
        sql = "SELECT * FROM todos WHERE user_id = ?"
        params: list[Any] = [user_id]
        if completed is not None:
            sql += " AND is_completed = ?"
            params.append(1 if completed else 0)
        sql += " ORDER BY due_date ASC, created_seq ASC"

        conn = self._get_conn()
        try:
            return [self._row_to_todo(r) for r in conn.execute(sql, params).fetchall()]
        finally:
            conn.close()

    def set_todo_completed(self, todo_id: str, completed: bool) -> bool:
        conn = self._get_conn()
        try:
            cur = conn.execute(
                "UPDATE todos SET is_completed = ? WHERE id = ?", (1 if completed else 0, todo_id)
            )
            conn.commit()
            return cur.rowcount == 1
        finally:
            conn.close()

    def delete_todo(self, todo_id: str) -> bool:
        """Delete a todo and its sub-todos."""
        conn = self._get_conn()
        try:
            conn.execute("DELETE FROM sub_todos WHERE parent_id = ?", (todo_id,))
            cur = conn.execute("DELETE FROM todos WHERE id = ?", (todo_id,))
            conn.commit()
            return cur.rowcount == 1
        finally:
            conn.close()

    # ---- sub-todos ----

    def create_sub_todo(
        self,
        *,
        user_id: str,
        project_id: str,
        label_id: str,
        parent_id: str,
        task_name: str,
        due_date: int,
        description: str | None = None,
        priority: float | None = None,
        embedding: list[float] | None = None,
    ) -> SubTodo:
        if not task_name or not task_name.strip():
            raise ValueError("task_name is required")
        emb_str = self._check_embedding(embedding)
        sub = SubTodo(
            id=_new_id(),
            user_id=user_id,
            project_id=project_id,
            label_id=label_id,
            parent_id=parent_id,
            task_name=task_name.strip(),
            description=description,
            due_date=int(due_date),
            priority=priority,
            is_completed=False,
            embedding=list(embedding) if embedding is not None else None,
        )

        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO sub_todos(
                    id, user_id, project_id, label_id, parent_id, task_name, description,
                    due_date, priority, is_completed, embedding, created_seq
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, 0, ?, ?)
                """,
                (
                    sub.id,
                    user_id,
                    project_id,
                    label_id,
                    parent_id,
                    sub.task_name,
                    description,
                    sub.due_date,
                    priority,
                    emb_str,
                    self._next_seq(conn, "sub_todos"),
                ),
            )
            conn.commit()
        finally:
            conn.close()
        logger.debug("SubTodo added id=%s parent=%s", sub.id, parent_id)
        return sub

    def get_sub_todo(self, sub_todo_id: str) -> SubTodo | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM sub_todos WHERE id = ?", (sub_todo_id,)).fetchone()
            return self._row_to_sub_todo(row) if row else None
        finally:
            conn.close()

    def list_sub_todos_by_parent(self, parent_id: str) -> list[SubTodo]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                "SELECT * FROM sub_todos WHERE parent_id = ? ORDER BY created_seq ASC", (parent_id,)
            ).fetchall()
            return [self._row_to_sub_todo(r) for r in rows]
        finally:
            conn.close()

    # ---- vector search ----

    def _nearest(self, table: str, user_id: str, vector: list[float], limit: int) -> list[tuple[sqlite3.Row, float]]:
        if len(vector) != self._dims:
            raise ValueError(f"query vector must have {self._dims} dimensions, got {len(vector)}")
        conn = self._get_conn()
        try:
            rows = conn.execute(
                f"SELECT * FROM {table} WHERE user_id = ? AND embedding IS NOT NULL", (user_id,)
            ).fetchall()
        finally:
            conn.close()

        scored: list[tuple[sqlite3.Row, float]] = []
        for row in rows:
            emb = self._str_to_embedding(row["embedding"])
            if emb is None or len(emb) != self._dims:
                continue
            scored.append((row, _cosine(vector, emb)))
        scored.sort(key=lambda x: x[1], reverse=True)
        return scored[: max(0, int(limit))]

    def search_todos(self, user_id: str, vector: list[float], limit: int = 10) -> list[tuple[Todo, float]]:
        return [(self._row_to_todo(r), s) for r, s in self._nearest("todos", user_id, vector, limit)]

    def search_sub_todos(
        self, user_id: str, vector: list[float], limit: int = 10
    ) -> list[tuple[SubTodo, float]]:
        return [(self._row_to_sub_todo(r), s) for r, s in self._nearest("sub_todos", user_id, vector, limit)]
