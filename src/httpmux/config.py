"""
Configuration management for httpmux.

Loads request defaults from environment variables or a .env file. The
engine-wide defaults in httpmux.options never change; this config only
produces per-request overrides.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from httpmux.options import DEFAULT_USER_AGENT, Option


ENV_LOCATIONS = [
    Path.home() / ".httpmux" / ".env",
    Path.home() / ".config" / "httpmux" / ".env",
    Path.cwd() / ".env",
]


def _load_env_file() -> None:
    """Load the first .env file found in the common locations."""
    for env_path in ENV_LOCATIONS:
        if env_path.exists():
            load_dotenv(env_path)
            break


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}") from None


@dataclass
class EngineConfig:
    """Request defaults for the command line tools."""

    user_agent: str = DEFAULT_USER_AGENT
    connect_timeout_ms: int = 3000
    timeout_ms: int = 5000
    verify_tls: bool = False
    max_redirects: int = 10
    cookie_jar: str = ""

    # How long a batch waits for activity before driving the multiplexer again
    select_timeout: float = 1.0

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Load configuration from environment variables."""
        _load_env_file()
        select_timeout = os.getenv("HTTPMUX_SELECT_TIMEOUT")
        return cls(
            user_agent=os.getenv("HTTPMUX_USER_AGENT", DEFAULT_USER_AGENT),
            connect_timeout_ms=_env_int("HTTPMUX_CONNECT_TIMEOUT_MS", 3000),
            timeout_ms=_env_int("HTTPMUX_TIMEOUT_MS", 5000),
            verify_tls=_env_bool("HTTPMUX_VERIFY_TLS", False),
            max_redirects=_env_int("HTTPMUX_MAX_REDIRECTS", 10),
            cookie_jar=os.getenv("HTTPMUX_COOKIE_JAR", ""),
            select_timeout=float(select_timeout) if select_timeout else 1.0,
        )

    def to_options(self) -> dict[Option, Any]:
        """Per-request transport options for this configuration."""
        options: dict[Option, Any] = {
            Option.CONNECT_TIMEOUT_MS: self.connect_timeout_ms,
            Option.TIMEOUT_MS: self.timeout_ms,
            Option.VERIFY_PEER: self.verify_tls,
            Option.VERIFY_HOST: self.verify_tls,
            Option.MAX_REDIRECTS: self.max_redirects,
        }
        if self.cookie_jar:
            options[Option.COOKIE_FILE] = self.cookie_jar
            options[Option.COOKIE_JAR] = self.cookie_jar
        return options


_config: EngineConfig | None = None


def get_config() -> EngineConfig:
    """Get the loaded configuration, reading the environment on first use."""
    global _config
    if _config is None:
        _config = EngineConfig.from_env()
    return _config
