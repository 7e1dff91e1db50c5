"""Tests for settings loading."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from taskmind.config import Settings, load_settings


def test_env_prefix(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TASKMIND_EXPAND_TIMEOUT_S", "30")
    monkeypatch.setenv("TASKMIND_DUPLICATE_CHILD_POLICY", "dedupe")

    settings = Settings()

    assert settings.expand_timeout_s == 30.0
    assert settings.duplicate_child_policy == "dedupe"


def test_load_settings_reads_env_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    env_file = tmp_path / "taskmind.env"
    env_file.write_text("TASKMIND_MODEL_MODE=local\nTASKMIND_LOCAL_MODEL=mistral\n", encoding="utf-8")
    monkeypatch.setenv("TASKMIND_ENV_FILE", str(env_file))

    settings = load_settings()

    assert settings.model_mode == "local"
    assert settings.effective_enrichment_model == "mistral"


def test_enrichment_model_defaults_to_generation_model() -> None:
    assert Settings(openai_model="gpt-4o").effective_enrichment_model == "gpt-4o"
    assert Settings(openai_model="gpt-4o", enrichment_model="gpt-4o-mini").effective_enrichment_model == "gpt-4o-mini"


def test_invalid_values_are_rejected() -> None:
    with pytest.raises(ValidationError):
        Settings(expand_timeout_s=0)
    with pytest.raises(ValidationError):
        Settings(id_collision_policy="overwrite")
