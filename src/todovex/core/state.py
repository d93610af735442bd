# src/todovex/core/state.py

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..ai.pipeline import SuggestionPipeline
from ..auth.adapter import StoreAuthAdapter
from ..config import Settings
from ..store.task_store import TaskStore
from .ports import ChatClient, Embedder, StoreClient

logger = logging.getLogger(__name__)


@dataclass
class AppState:
    settings: Settings

    store: StoreClient
    auth: StoreAuthAdapter
    tasks: TaskStore
    chat: ChatClient
    embedder: Embedder
    pipeline: SuggestionPipeline

    async def aclose(self) -> None:
        """Best-effort shutdown (no exceptions should escape)."""
        for name in ("chat", "embedder", "store"):
            closer = getattr(getattr(self, name), "aclose", None)
            if not callable(closer):
                continue
            try:
                await closer()
            except Exception:
                logger.debug("%s close failed.", name, exc_info=True)
