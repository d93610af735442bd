# src/todovex/ai/search.py

"""Embedding-backed todo creation and semantic search."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from ..core.models import SubTodo, Todo
from ..core.ports import Embedder, TaskRepo

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SearchHit:
    item: Todo
    score: float

    @property
    def is_sub_todo(self) -> bool:
        return isinstance(self.item, SubTodo)


async def create_todo_with_embedding(
    tasks: TaskRepo,
    embedder: Embedder,
    *,
    user_id: str,
    project_id: str,
    label_id: str,
    task_name: str,
    due_date: int,
    description: str | None = None,
    priority: float | None = None,
) -> Todo:
    embedding = await embedder.embed(task_name)
    return await asyncio.to_thread(
        lambda: tasks.create_todo(
            user_id=user_id,
            project_id=project_id,
            label_id=label_id,
            task_name=task_name,
            description=description,
            due_date=due_date,
            priority=priority,
            embedding=embedding,
        )
    )


async def create_sub_todo_with_embedding(
    tasks: TaskRepo,
    embedder: Embedder,
    *,
    user_id: str,
    project_id: str,
    label_id: str,
    parent_id: str,
    task_name: str,
    due_date: int,
    description: str | None = None,
    priority: float | None = None,
) -> SubTodo:
    embedding = await embedder.embed(task_name)
    return await asyncio.to_thread(
        lambda: tasks.create_sub_todo(
            user_id=user_id,
            project_id=project_id,
            label_id=label_id,
            parent_id=parent_id,
            task_name=task_name,
            description=description,
            due_date=due_date,
            priority=priority,
            embedding=embedding,
        )
    )


async def search_similar_todos(
    tasks: TaskRepo,
    embedder: Embedder,
    *,
    user_id: str,
    query: str,
    limit: int = 10,
) -> list[SearchHit]:
    """Nearest todos and sub-todos of one user, best match first."""
    query = (query or "").strip()
    if not query:
        return []
    vector = await embedder.embed(query)

    todos = await asyncio.to_thread(tasks.search_todos, user_id, vector, limit)
    subs = await asyncio.to_thread(tasks.search_sub_todos, user_id, vector, limit)

    hits = [SearchHit(item=t, score=s) for t, s in todos]
    hits.extend(SearchHit(item=t, score=s) for t, s in subs)
    hits.sort(key=lambda h: h.score, reverse=True)
    logger.debug("Search: user=%s query_chars=%d hits=%d", user_id, len(query), len(hits))
    return hits[:limit]
