# tests/test_cli.py

from __future__ import annotations

import json
from pathlib import Path

import pytest

import todovex.cli.main as cli_main
from todovex.ai.pipeline import SuggestionPipeline
from todovex.config import Settings
from todovex.core.state import AppState

from .conftest import SECRET
from .fakes import FakeChatClient, FakeEmbedder


@pytest.fixture()
def cli_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    for name in ("AUTH_ADAPTER_SECRET", "CONVEX_AUTH_ADAPTER_SECRET", "TODOVEX_STORE_URL", "CONVEX_URL"):
        monkeypatch.setenv(name, "placeholder")
        monkeypatch.delenv(name)
    monkeypatch.setenv("TODOVEX_AUTH_ADAPTER_SECRET", SECRET)
    monkeypatch.setenv("TODOVEX_OPENAI_API_KEY", "sk-test")
    monkeypatch.setenv("TODOVEX_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(cli_main, "setup_logging", lambda **kwargs: None)
    return tmp_path


@pytest.fixture()
def fake_ai(monkeypatch: pytest.MonkeyPatch) -> tuple[FakeChatClient, FakeEmbedder]:
    """Swap the provider clients for fakes after the real wiring ran."""
    chat = FakeChatClient()
    embedder = FakeEmbedder()
    real_create_app = cli_main.create_app

    def create_app(settings: Settings) -> AppState:
        state = real_create_app(settings)
        state.chat = chat
        state.embedder = embedder
        state.pipeline = SuggestionPipeline(
            tasks=state.tasks, chat=chat, embedder=embedder, ai_label_id=settings.ai_label_id
        )
        return state

    monkeypatch.setattr(cli_main, "create_app", create_app)
    return chat, embedder


def _run(capsys: pytest.CaptureFixture[str], cli_env: Path, *argv: str) -> tuple[int, str, str]:
    code = cli_main.main(["--env-file", str(cli_env / "missing.env"), *argv])
    out, err = capsys.readouterr()
    return code, out, err


def test_user_session_round_trip(cli_env: Path, capsys: pytest.CaptureFixture[str]) -> None:
    code, out, _ = _run(capsys, cli_env, "create-user", "--email", "ada@example.com", "--name", "Ada")
    assert code == 0
    user_id = out.strip()

    code, _, _ = _run(capsys, cli_env, "create-user", "--email", "ada@example.com")
    assert code == 1

    code, out, _ = _run(capsys, cli_env, "create-session", "--user-id", user_id)
    assert code == 0
    token = out.strip()

    code, out, _ = _run(capsys, cli_env, "whoami", token)
    assert code == 0
    assert f"ada@example.com ({user_id})" in out

    code, out, _ = _run(capsys, cli_env, "whoami", "bogus")
    assert code == 1
    assert "No session." in out


def test_session_for_unknown_user_fails(cli_env: Path, capsys: pytest.CaptureFixture[str]) -> None:
    code, _, err = _run(capsys, cli_env, "create-session", "--user-id", "ghost")
    assert code == 1
    assert "User not found" in err


def test_missing_secret_is_reported(
    cli_env: Path, capsys: pytest.CaptureFixture[str], monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.delenv("TODOVEX_AUTH_ADAPTER_SECRET")

    code, _, err = _run(capsys, cli_env, "init")

    assert code == 1
    assert "Configuration error" in err
    assert "TODOVEX_AUTH_ADAPTER_SECRET" in err


def test_projects_todos_and_suggest(
    cli_env: Path,
    capsys: pytest.CaptureFixture[str],
    fake_ai: tuple[FakeChatClient, FakeEmbedder],
) -> None:
    chat, embedder = fake_ai

    code, out, _ = _run(capsys, cli_env, "add-project", "--user-id", "u1", "--name", "Garden")
    assert code == 0
    project_id = out.strip()

    code, out, _ = _run(capsys, cli_env, "projects", "--user-id", "u1")
    assert f"{project_id}  Garden  [user]" in out

    code, out, _ = _run(
        capsys,
        cli_env,
        "add-todo",
        "--user-id", "u1",
        "--project-id", project_id,
        "--task-name", "Plant tomatoes",
        "--due", "2024-05-01",
    )
    assert code == 0
    todo_id = out.strip()
    assert embedder.calls == ["Plant tomatoes"]

    chat.next_content = json.dumps({"todos": [{"taskName": "Water daily", "description": "mornings"}]})
    code, out, _ = _run(capsys, cli_env, "suggest", "--user-id", "u1", "--project-id", project_id)
    assert code == 0
    assert "Water daily" in out
    assert json.loads(chat.calls[0][1])["todos"] == [{"taskName": "Plant tomatoes", "description": ""}]

    code, _, _ = _run(capsys, cli_env, "complete", todo_id)
    assert code == 0

    code, out, _ = _run(capsys, cli_env, "todos", "--user-id", "u1", "--completed")
    assert "[x] Plant tomatoes  (due 2024-05-01)" in out
    assert "1 of 2 todos" in out


def test_suggest_failure_prints_friendly_message(
    cli_env: Path,
    capsys: pytest.CaptureFixture[str],
    fake_ai: tuple[FakeChatClient, FakeEmbedder],
) -> None:
    chat, _ = fake_ai
    _, out, _ = _run(capsys, cli_env, "add-project", "--user-id", "u1", "--name", "Garden")
    project_id = out.strip()

    code, _, err = _run(
        capsys, cli_env, "suggest-subtasks", "--user-id", "u1", "--project-id", project_id
    )

    assert code == 1
    assert "Please provide all required task information before requesting suggestions." in err
    assert chat.calls == []
