# src/todovex/core/ports.py

"""
Ports (interfaces) used by the core.

The adapter and the suggestion pipeline depend on Protocols instead of
concrete implementations. This keeps the store and the model provider
swappable and makes testing easier.
"""

from __future__ import annotations

from typing import Any, Protocol

from .models import Project, SubTodo, Todo

StoreArgs = dict[str, Any]


class StoreClient(Protocol):
    """Named query/mutation functions of the identity store (Convex-style RPC)."""

    async def query(self, name: str, args: StoreArgs) -> Any: ...
    async def mutation(self, name: str, args: StoreArgs) -> Any: ...
    async def aclose(self) -> None: ...


class ChatClient(Protocol):
    """One-shot chat completion that must answer with a single JSON object."""

    async def complete_json(self, system_prompt: str, user_content: str) -> str: ...


class Embedder(Protocol):
    async def embed(self, text: str) -> list[float]: ...


class TaskRepo(Protocol):
    # Suggestion pipeline reads
    def get_project(self, project_id: str) -> Project | None: ...
    def get_todo(self, todo_id: str) -> Todo | None: ...
    def list_todos_by_project(self, project_id: str) -> list[Todo]: ...
    def list_sub_todos_by_parent(self, parent_id: str) -> list[SubTodo]: ...

    # Writes
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
    ) -> Todo: ...

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
    ) -> SubTodo: ...

    # Vector search
    def search_todos(self, user_id: str, vector: list[float], limit: int = 10) -> list[tuple[Todo, float]]: ...
    def search_sub_todos(
        self, user_id: str, vector: list[float], limit: int = 10
    ) -> list[tuple[SubTodo, float]]: ...
