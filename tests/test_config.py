"""
Environment settings and per-subsystem log files.
"""

import logging

import pytest

from banb.config import load_settings
from banb.logging_config import LOG_FILES, setup_logging


@pytest.fixture
def clean_env(monkeypatch):
    for name in (
        "DATABASE_URL", "LLM_PROVIDER", "GEMINI_API_KEY", "GENAI_API_KEY", "CHAT_RATE_LIMIT",
        "CHAT_RATE_WINDOW_SECONDS", "TOOL_TIMEOUT_SECONDS", "RATE_LIMIT_BACKEND", "JWT_SECRET", "CORS_ORIGINS",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults(clean_env):
    settings = load_settings()
    assert settings.llm_provider == "gemini"
    assert settings.chat_rate_limit == 10
    assert settings.chat_rate_window_seconds == 60
    assert settings.rate_limit_backend == "memory"
    assert settings.jwt_secret is None
    assert settings.cors_origins == ["*"]


def test_overrides_and_clamping(clean_env):
    clean_env.setenv("LLM_PROVIDER", "Gemini")
    clean_env.setenv("GENAI_API_KEY", "AIzaFromAlias")
    clean_env.setenv("CHAT_RATE_LIMIT", "0")
    clean_env.setenv("TOOL_TIMEOUT_SECONDS", "not-a-number")
    clean_env.setenv("CORS_ORIGINS", "http://a.test, http://b.test")
    settings = load_settings()
    assert settings.llm_provider == "gemini"
    assert settings.gemini_api_key == "AIzaFromAlias"
    assert settings.chat_rate_limit == 1
    assert settings.tool_timeout_seconds == 10.0
    assert settings.cors_origins == ["http://a.test", "http://b.test"]


def test_setup_logging_writes_one_file_per_subsystem(tmp_path):
    directory = setup_logging(str(tmp_path / "logs"), "debug")
    try:
        logging.getLogger("banb.gateway").info("hello gateway")
        for handler in logging.getLogger("banb.gateway").handlers:
            handler.flush()
        assert (directory / LOG_FILES["banb.gateway"]).read_text(encoding="utf-8").count("hello gateway") == 1
        assert logging.getLogger("banb.tools").level == logging.DEBUG
    finally:
        for name in LOG_FILES:
            logger = logging.getLogger(name)
            for handler in list(logger.handlers):
                logger.removeHandler(handler)
                handler.close()
            logger.setLevel(logging.NOTSET)
