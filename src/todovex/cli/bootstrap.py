# src/todovex/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- validates settings (missing secrets are fatal here, before any wiring),
- ensures local (gitignored) directories exist,
- wires concrete implementations into AppState (store/adapter/tasks/LLM).
"""

from __future__ import annotations

import logging

import httpx

from ..ai.pipeline import SuggestionPipeline
from ..auth.adapter import StoreAuthAdapter
from ..config import Settings
from ..core.ports import StoreClient
from ..core.state import AppState
from ..llm.client import OpenAIChatClient
from ..llm.embeddings import OpenAIEmbeddingClient
from ..store.identity_store import IdentityStore
from ..store.rpc import HttpStoreClient, LocalStoreClient
from ..store.task_store import TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings: Settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.identity_db_path.parent.mkdir(parents=True, exist_ok=True)
    settings.tasks_db_path.parent.mkdir(parents=True, exist_ok=True)


def _http_timeout(settings: Settings) -> httpx.Timeout:
    return httpx.Timeout(
        connect=settings.http_connect_timeout,
        read=settings.http_read_timeout,
        write=10.0,
        pool=settings.http_connect_timeout,
    )


def create_store_client(settings: Settings) -> StoreClient:
    if settings.store_url:
        logger.info("Identity store: remote %s", settings.store_url)
        return HttpStoreClient(settings.store_url, timeout=_http_timeout(settings))
    logger.info("Identity store: local %s", settings.identity_db_path)
    return LocalStoreClient(IdentityStore(settings.identity_db_path), secret=str(settings.auth_adapter_secret))


def create_app(settings: Settings) -> AppState:
    """
    Create AppState from the provided settings.

    Raises ConfigurationError when the adapter secret or the API key is missing.
    """
    settings.validate()
    _ensure_local_dirs(settings)

    store = create_store_client(settings)
    auth = StoreAuthAdapter(store, secret=settings.auth_adapter_secret)

    tasks = TaskStore(settings.tasks_db_path, embedding_dimensions=settings.embedding_dimensions)
    tasks.ensure_system_label(settings.ai_label_id, name="AI")

    chat = OpenAIChatClient(
        api_key=settings.openai_api_key,
        model=settings.chat_model,
        base_url=settings.openai_base_url,
        connect_timeout=settings.http_connect_timeout,
        read_timeout=settings.http_read_timeout,
    )
    embedder = OpenAIEmbeddingClient(
        api_key=settings.openai_api_key,
        model=settings.embedding_model,
        base_url=settings.openai_base_url,
        dimensions=settings.embedding_dimensions,
        timeout=_http_timeout(settings),
    )
    pipeline = SuggestionPipeline(
        tasks=tasks,
        chat=chat,
        embedder=embedder,
        ai_label_id=settings.ai_label_id,
        concurrency=settings.suggest_concurrency,
        embedding_dimensions=settings.embedding_dimensions,
    )

    return AppState(
        settings=settings,
        store=store,
        auth=auth,
        tasks=tasks,
        chat=chat,
        embedder=embedder,
        pipeline=pipeline,
    )
