# src/todovex/ai/pipeline.py

"""
AI suggestion pipeline.

Asks the chat model for to-dos missing from a project (or sub-tasks missing
from a parent todo), embeds every accepted candidate and persists it under
the system AI label.

Batch policy:
- every candidate is validated before any embedding or write; one invalid
  candidate aborts the whole batch,
- embeddings run concurrently (bounded), rows are written only after all
  of them succeeded, in the order the model returned them.

Not idempotent: "no duplicates" is only an instruction to the model.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from ..core.models import SubTodo, Todo
from ..core.ports import ChatClient, Embedder, TaskRepo
from ..errors import InvalidArgumentError, InvalidResponseError, NotFoundError, UpstreamError
from ..store.task_store import EMBEDDING_DIMENSIONS
from .prompts import SUGGEST_SUBTASKS_SYSTEM_PROMPT, SUGGEST_TODOS_SYSTEM_PROMPT

logger = logging.getLogger(__name__)

SUGGESTION_KEY = "todos"
DEFAULT_PRIORITY = 1


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True, slots=True)
class Candidate:
    task_name: str
    description: str


def parse_candidates(content: str) -> list[Candidate]:
    """Validate the model's JSON answer; raise InvalidResponseError on any bad shape."""
    try:
        parsed: Any = json.loads(content)
    except (TypeError, ValueError) as e:
        raise InvalidResponseError("AI response is not valid JSON") from e

    items = parsed.get(SUGGESTION_KEY) if isinstance(parsed, dict) else None
    if not isinstance(items, list):
        raise InvalidResponseError("Invalid response format from AI")

    out: list[Candidate] = []
    for i, item in enumerate(items):
        name = item.get("taskName") if isinstance(item, dict) else None
        if not isinstance(name, str) or not name.strip():
            raise InvalidResponseError(f"Invalid task name in AI response (item {i})")
        desc = item.get("description")
        out.append(Candidate(task_name=name.strip(), description=desc if isinstance(desc, str) else ""))
    return out


class SuggestionPipeline:
    def __init__(
        self,
        *,
        tasks: TaskRepo,
        chat: ChatClient,
        embedder: Embedder,
        ai_label_id: str,
        concurrency: int = 4,
        embedding_dimensions: int = EMBEDDING_DIMENSIONS,
        clock_ms: Callable[[], int] = _now_ms,
    ) -> None:
        self._tasks = tasks
        self._chat = chat
        self._embedder = embedder
        self._ai_label_id = ai_label_id
        self._concurrency = max(1, int(concurrency))
        self._dims = int(embedding_dimensions)
        self._clock_ms = clock_ms

    async def suggest_for_project(self, project_id: str, *, user_id: str) -> list[Todo]:
        project = await asyncio.to_thread(self._tasks.get_project, project_id)
        if project is None:
            raise NotFoundError("Project not found")
        existing = await asyncio.to_thread(self._tasks.list_todos_by_project, project_id)

        user_content = json.dumps(
            {"todos": [t.prompt_view() for t in existing], "projectName": project.name},
            ensure_ascii=False,
        )
        candidates = await self._request_candidates(SUGGEST_TODOS_SYSTEM_PROMPT, user_content)
        embeddings = await self._embed_all(candidates)

        due = self._clock_ms()
        created: list[Todo] = []
        for cand, emb in zip(candidates, embeddings):
            todo = await asyncio.to_thread(
                lambda c=cand, e=emb: self._tasks.create_todo(
                    user_id=user_id,
                    project_id=project_id,
                    label_id=self._ai_label_id,
                    task_name=c.task_name,
                    description=c.description,
                    priority=DEFAULT_PRIORITY,
                    due_date=due,
                    embedding=e,
                )
            )
            created.append(todo)

        logger.info(
            "Suggest: project=%s existing=%d created=%d", project_id, len(existing), len(created)
        )
        return created

    async def suggest_for_subtask(
        self,
        project_id: str,
        parent_id: str | None,
        task_name: str | None,
        description: str | None,
        *,
        user_id: str,
    ) -> list[SubTodo]:
        if not parent_id or not (task_name or "").strip() or not (description or "").strip():
            raise InvalidArgumentError("Missing required data for suggesting subtasks")

        project = await asyncio.to_thread(self._tasks.get_project, project_id)
        if project is None:
            raise NotFoundError("Project not found")
        parent = await asyncio.to_thread(self._tasks.get_todo, parent_id)
        if parent is None or parent.project_id != project_id:
            raise NotFoundError("Parent todo not found in project")
        existing = await asyncio.to_thread(self._tasks.list_sub_todos_by_parent, parent_id)

        user_content = json.dumps(
            {
                "todos": [t.prompt_view() for t in existing],
                "projectName": project.name,
                "parentTodo": {"taskName": task_name, "description": description},
            },
            ensure_ascii=False,
        )
        candidates = await self._request_candidates(SUGGEST_SUBTASKS_SYSTEM_PROMPT, user_content)
        embeddings = await self._embed_all(candidates)

        due = self._clock_ms()
        created: list[SubTodo] = []
        for cand, emb in zip(candidates, embeddings):
            sub = await asyncio.to_thread(
                lambda c=cand, e=emb: self._tasks.create_sub_todo(
                    user_id=user_id,
                    project_id=project_id,
                    label_id=self._ai_label_id,
                    parent_id=parent_id,
                    task_name=c.task_name,
                    description=c.description,
                    priority=DEFAULT_PRIORITY,
                    due_date=due,
                    embedding=e,
                )
            )
            created.append(sub)

        logger.info(
            "Suggest subtasks: parent=%s existing=%d created=%d", parent_id, len(existing), len(created)
        )
        return created

    # ---- helpers ----

    async def _request_candidates(self, system_prompt: str, user_content: str) -> list[Candidate]:
        content = await self._chat.complete_json(system_prompt, user_content)
        candidates = parse_candidates(content)
        logger.debug("Suggest: model returned %d candidates", len(candidates))
        return candidates

    async def _embed_all(self, candidates: list[Candidate]) -> list[list[float]]:
        sem = asyncio.Semaphore(self._concurrency)

        async def one(c: Candidate) -> list[float]:
            async with sem:
                vector = await self._embedder.embed(c.task_name)
            if len(vector) != self._dims:
                raise UpstreamError(
                    f"Embedding for {c.task_name!r} has {len(vector)} dimensions, expected {self._dims}"
                )
            return vector

        tasks = [asyncio.ensure_future(one(c)) for c in candidates]
        try:
            # gather keeps input order; the first failure propagates before any write.
            return list(await asyncio.gather(*tasks))
        except BaseException:
            # Abort the whole batch: no embedding request may start after the failure.
            for t in tasks:
                t.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
