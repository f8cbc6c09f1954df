from collections import deque
from typing import List, Tuple

import pytest

from src.app import AppSettings, build_study_service
from src.db import run_migrations_if_needed
from src.services import StudyService


def test_run_migrations_if_needed_invokes_upgrade(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: List[Tuple[object, str]] = []

    def fake_upgrade(config: object, target: str) -> None:
        calls.append((config, target))

    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
    monkeypatch.setenv("RUN_MIGRATIONS_ON_STARTUP", "true")
    monkeypatch.setattr("src.db.command.upgrade", fake_upgrade)

    run_migrations_if_needed()

    assert calls and calls[0][1] == "head"
    assert calls[0][0].get_main_option("sqlalchemy.url") == "sqlite+aiosqlite:///:memory:"


def test_run_migrations_if_needed_skips_when_disabled(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
    monkeypatch.setenv("RUN_MIGRATIONS_ON_STARTUP", "false")

    calls: deque[str] = deque()

    def fake_upgrade(_: object, target: str) -> None:
        calls.append(target)

    monkeypatch.setattr("src.db.command.upgrade", fake_upgrade)

    run_migrations_if_needed()

    assert not calls


def test_build_study_service_uses_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    session_factory = object()
    monkeypatch.setenv("SRS_PASS_THRESHOLD", "Hard")
    monkeypatch.setenv("CRAM_DEFAULT_LIMIT", "20")
    monkeypatch.setattr("src.app.runtime.run_migrations_if_needed", lambda: None)
    monkeypatch.setattr("src.app.runtime.get_session_factory", lambda: session_factory)

    service = build_study_service(AppSettings.from_env())

    assert isinstance(service, StudyService)
    assert service._policy.pass_threshold.value == "Hard"
    assert service._cram_limit == 20
    assert service._session_factory is session_factory


def test_build_study_service_reraises_migration_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    def broken() -> None:
        raise RuntimeError("database unreachable")

    monkeypatch.setattr("src.app.runtime.run_migrations_if_needed", broken)

    with pytest.raises(RuntimeError, match="database unreachable"):
        build_study_service(AppSettings.from_env())
