# tests/conftest.py

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

import pytest

from todovex.ai.pipeline import SuggestionPipeline
from todovex.auth.adapter import StoreAuthAdapter
from todovex.config import Settings
from todovex.core.models import Project
from todovex.store.identity_store import IdentityStore
from todovex.store.rpc import LocalStoreClient
from todovex.store.task_store import TaskStore

from .fakes import FakeChatClient, FakeEmbedder, RecordingStoreClient

SECRET = "test-adapter-secret"
FIXED_NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=UTC)
FIXED_NOW_MS = 1714564800000


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    """
    Settings pointing every path at tmp_path.

    Built directly (not from the environment) to keep unit tests isolated.
    """
    return Settings(
        data_dir=tmp_path,
        identity_db_path=tmp_path / "identity.sqlite3",
        tasks_db_path=tmp_path / "tasks.sqlite3",
        auth_adapter_secret=SECRET,
        openai_api_key="sk-test",
    )


@pytest.fixture()
def identity_store(settings: Settings) -> IdentityStore:
    return IdentityStore(settings.identity_db_path)


@pytest.fixture()
def store_client(identity_store: IdentityStore) -> RecordingStoreClient:
    return RecordingStoreClient(LocalStoreClient(identity_store, secret=SECRET))


@pytest.fixture()
def adapter(store_client: RecordingStoreClient) -> StoreAuthAdapter:
    return StoreAuthAdapter(store_client, secret=SECRET, clock=lambda: FIXED_NOW)


@pytest.fixture()
def task_store(settings: Settings) -> TaskStore:
    """Real SQLite store: its correctness is part of what we test."""
    return TaskStore(settings.tasks_db_path)


@pytest.fixture()
def chat() -> FakeChatClient:
    return FakeChatClient()


@pytest.fixture()
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture()
def pipeline(
    task_store: TaskStore, chat: FakeChatClient, embedder: FakeEmbedder, settings: Settings
) -> SuggestionPipeline:
    task_store.ensure_system_label(settings.ai_label_id)
    return SuggestionPipeline(
        tasks=task_store,
        chat=chat,
        embedder=embedder,
        ai_label_id=settings.ai_label_id,
        concurrency=2,
        clock_ms=lambda: FIXED_NOW_MS,
    )


@pytest.fixture()
def project(task_store: TaskStore) -> Project:
    return task_store.create_project(name="Website relaunch", user_id="u1")
