from pathlib import Path

import pytest

from ledger_ingest.core import settings


def test_read_config_file(tmp_path: Path) -> None:
    config = tmp_path / "config.yaml"
    config.write_text(
        "# ledger settings\n"
        "REPORTING_CURRENCY: COP\n"
        "OPENAI_MODEL: \"gpt-4o-mini\"  # default model\n"
        "EMPTY:\n",
        encoding="utf-8",
    )

    assert settings.read_config_file(str(config)) == {
        "REPORTING_CURRENCY": "COP",
        "OPENAI_MODEL": "gpt-4o-mini",
    }
    assert settings.read_config_file(str(tmp_path / "missing.yaml")) == {}


def test_get_env_int(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CLASSIFY_CONCURRENCY", "4")
    assert settings.get_env_int("CLASSIFY_CONCURRENCY", 8, min_value=1) == 4

    monkeypatch.setenv("CLASSIFY_CONCURRENCY", "zero")
    assert settings.get_env_int("CLASSIFY_CONCURRENCY", 8, min_value=1) == 8

    monkeypatch.setenv("CLASSIFY_CONCURRENCY", "0")
    assert settings.get_env_int("CLASSIFY_CONCURRENCY", 8, min_value=1) == 8


def test_mask_env_value() -> None:
    assert settings._mask_env_value("OPENAI_API_KEY", "sk-abcdef123") == "sk...23"
    assert settings._mask_env_value("REPORTING_CURRENCY", "COP") == "COP"
