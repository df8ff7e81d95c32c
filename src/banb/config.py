"""
banb/config.py

Environment-driven settings for the API, the MCP server and the agent.
Values are read once from the process environment (and a .env file when present).
"""

from dotenv import load_dotenv, find_dotenv
load_dotenv(find_dotenv(), override=False)

import os
import logging
from dataclasses import dataclass, field
from typing import List, Optional

logger = logging.getLogger("banb.config")


def _env_str(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def _env_float(name: str, default: float, minimum: float, maximum: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Invalid %s=%r, using default %s", name, raw, default)
        return default
    return max(minimum, min(maximum, value))


def _env_int(name: str, default: int, minimum: int, maximum: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Invalid %s=%r, using default %s", name, raw, default)
        return default
    return max(minimum, min(maximum, value))


@dataclass(frozen=True)
class Settings:
    database_url: str = "sqlite+aiosqlite:///./banb.db"
    llm_provider: str = "gemini"
    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.5-flash"
    llm_timeout_seconds: float = 30.0
    tool_timeout_seconds: float = 10.0
    chat_rate_limit: int = 10
    chat_rate_window_seconds: int = 60
    rate_limit_backend: str = "memory"
    redis_url: Optional[str] = None
    jwt_secret: Optional[str] = None
    etherscan_api_key: Optional[str] = None
    tool_gateway_url: Optional[str] = None
    mcp_host: str = "0.0.0.0"
    mcp_port: int = 9100
    log_level: str = "INFO"
    log_dir: str = "./logs"
    cors_origins: List[str] = field(default_factory=lambda: ["*"])


def load_settings() -> Settings:
    cors_raw = _env_str("CORS_ORIGINS", "*") or "*"
    return Settings(
        database_url=_env_str("DATABASE_URL", Settings.database_url),
        llm_provider=(_env_str("LLM_PROVIDER", "gemini") or "gemini").lower(),
        gemini_api_key=_env_str("GEMINI_API_KEY") or _env_str("GENAI_API_KEY"),
        gemini_model=_env_str("GEMINI_MODEL", Settings.gemini_model),
        llm_timeout_seconds=_env_float("LLM_TIMEOUT_SECONDS", 30.0, 1.0, 300.0),
        tool_timeout_seconds=_env_float("TOOL_TIMEOUT_SECONDS", 10.0, 0.5, 120.0),
        chat_rate_limit=_env_int("CHAT_RATE_LIMIT", 10, 1, 10_000),
        chat_rate_window_seconds=_env_int("CHAT_RATE_WINDOW_SECONDS", 60, 1, 86_400),
        rate_limit_backend=(_env_str("RATE_LIMIT_BACKEND", "memory") or "memory").lower(),
        redis_url=_env_str("REDIS_URL"),
        jwt_secret=_env_str("JWT_SECRET"),
        etherscan_api_key=_env_str("ETHERSCAN_API_KEY"),
        tool_gateway_url=_env_str("TOOL_GATEWAY_URL"),
        mcp_host=_env_str("MCP_HOST", "0.0.0.0"),
        mcp_port=_env_int("MCP_PORT", 9100, 1, 65535),
        log_level=(_env_str("LOG_LEVEL", "INFO") or "INFO").upper(),
        log_dir=_env_str("LOG_DIR", "./logs"),
        cors_origins=[o.strip() for o in cors_raw.split(",") if o.strip()],
    )
