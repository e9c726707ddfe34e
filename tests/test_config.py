"""Tests for configuration loading and model list resolution."""

import os

import pytest

from keyrouter.config import (
    DEFAULT_MODELS,
    RouterConfig,
    get_model_config,
    load_config,
    parse_model_list,
    resolve_models,
)


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for var in ("DATABASE_URL", "GENERATIVE_MODELS", "GENERATIVE_MODEL", "LOG_LEVEL", "CREDENTIAL_ENCRYPTION_KEY"):
        monkeypatch.delenv(var, raising=False)
    return tmp_path / "missing.env"


def test_built_in_defaults(clean_env):
    config = load_config(str(clean_env))

    assert config.default_models == DEFAULT_MODELS
    assert len(DEFAULT_MODELS) == 4
    assert config.database_url.startswith("sqlite:///")
    assert config.log_level == "INFO"


def test_model_list_from_environment(clean_env, monkeypatch):
    monkeypatch.setenv("GENERATIVE_MODELS", "a, b,,c ")
    monkeypatch.setenv("GENERATIVE_MODEL", "ignored")

    assert load_config(str(clean_env)).default_models == ["a", "b", "c"]


def test_single_model_from_environment(clean_env, monkeypatch):
    monkeypatch.setenv("GENERATIVE_MODEL", "solo")

    assert load_config(str(clean_env)).default_models == ["solo"]


def test_postgres_url_is_normalized(clean_env, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgres://u:p@db/keys")

    assert load_config(str(clean_env)).database_url == "postgresql://u:p@db/keys"


def test_dotenv_file_is_loaded(clean_env, tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("GENERATIVE_MODELS=from-dotenv\n")

    try:
        assert load_config(str(env_file)).default_models == ["from-dotenv"]
    finally:
        os.environ.pop("GENERATIVE_MODELS", None)


def test_fallback_key_is_read_fresh(monkeypatch):
    config = RouterConfig()
    assert config.fallback_api_key is None

    monkeypatch.setenv("GEMINI_API_KEY", "  fallback  ")
    assert config.fallback_api_key == "fallback"


def test_validate_requires_encryption_key():
    with pytest.raises(ValueError):
        RouterConfig().validate()
    RouterConfig(encryption_key="k").validate()


def test_resolve_models_priority():
    assert resolve_models(["x", "y"], "z", ["d"]) == ["x", "y"]
    assert resolve_models(None, "z", ["d"]) == ["z"]
    assert resolve_models(None, None, ["d"]) == ["d"]
    assert resolve_models() == DEFAULT_MODELS


def test_model_helpers():
    assert parse_model_list(None) == []
    assert get_model_config(DEFAULT_MODELS[0]).recommended is True
    assert get_model_config("nope") is None


def test_blank_model_names_fall_through():
    assert resolve_models(["", "  "], None, ["d"]) == ["d"]
    assert resolve_models([" ", "x "], None, ["d"]) == ["x"]
    assert resolve_models([""], " solo ", ["d"]) == ["solo"]
    assert resolve_models(None, "   ", ["d"]) == ["d"]


def test_validate_warns_about_unknown_default_models(caplog):
    with caplog.at_level("WARNING", logger="keyrouter.config"):
        RouterConfig(encryption_key="k", default_models=["mystery-model", DEFAULT_MODELS[0]]).validate()

    assert "mystery-model" in caplog.text
    assert DEFAULT_MODELS[0] not in caplog.text
