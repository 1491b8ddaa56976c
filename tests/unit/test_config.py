from __future__ import annotations

import pytest
from pydantic import ValidationError

from dbrecord.config import Settings, get_settings

DEFAULT_PORT = 5432
OVERRIDE_PORT = 6543


def test_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("DB_DIALECT", "DB_PORT", "FORM_SENT_PARAM", "FORM_CANCEL_PARAM", "LOG_JSON"):
        monkeypatch.delenv(name, raising=False)
    settings = Settings(_env_file=None)

    assert settings.db_dialect == "postgres"
    assert settings.db_port == DEFAULT_PORT
    assert settings.form_sent_param == "dbr.form_sent"
    assert settings.form_cancel_param == "dbr.cancel"
    assert settings.log_json is False


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DB_DIALECT", "sqlite")
    monkeypatch.setenv("SQLITE_PATH", "/tmp/records.db")
    monkeypatch.setenv("DB_PORT", str(OVERRIDE_PORT))
    monkeypatch.setenv("LOG_JSON", "true")

    settings = get_settings()

    assert settings.db_dialect == "sqlite"
    assert settings.sqlite_path == "/tmp/records.db"
    assert settings.db_port == OVERRIDE_PORT
    assert settings.log_json is True


def test_unknown_dialect_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DB_DIALECT", "oracle")
    with pytest.raises(ValidationError):
        Settings()


def test_settings_are_cached() -> None:
    assert get_settings() is get_settings()
