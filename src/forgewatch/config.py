"""
Forgewatch — Configuration
==========================
Version 1.0 — October 2026

Configuration classes for the console. Values come from the environment
(optionally a .env file) and may be overridden by CLI flags.
"""

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional
from urllib.parse import urlsplit, urlunsplit

from dotenv import load_dotenv


DEFAULT_BASE_URL = "http://localhost:3000"
DEFAULT_STREAM_PATH = "/api/ws"


@dataclass
class RetryConfig:
    """Reconnect backoff for the live stream."""
    max_retries: int = 5
    initial_delay: float = 1.0
    max_delay: float = 30.0
    exponential_base: float = 2.0
    jitter: float = 0.1  # fraction of each delay, applied +/-


@dataclass
class ConsoleConfig:
    """Main console configuration."""

    # Backend origin; every HTTP path and the stream URL are relative to it
    base_url: str = DEFAULT_BASE_URL
    stream_path: str = DEFAULT_STREAM_PATH

    # Live feed
    buffer_capacity: int = 100
    reconnect: bool = True
    retry_config: RetryConfig = field(default_factory=RetryConfig)

    # History mode
    poll_interval: float = 2.0  # seconds

    # HTTP
    request_timeout: float = 10.0  # seconds

    log_level: str = "INFO"

    @property
    def stream_url(self) -> str:
        """WebSocket URL derived from the base origin (http -> ws, https -> wss)."""
        parts = urlsplit(self.base_url)
        scheme = "wss" if parts.scheme == "https" else "ws"
        path = parts.path.rstrip("/") + self.stream_path
        return urlunsplit((scheme, parts.netloc, path, "", ""))

    def validate(self) -> "ConsoleConfig":
        if self.buffer_capacity < 1:
            raise ValueError(f"buffer_capacity must be >= 1, got {self.buffer_capacity}")
        if self.poll_interval <= 0:
            raise ValueError(f"poll_interval must be > 0, got {self.poll_interval}")
        if self.request_timeout <= 0:
            raise ValueError(f"request_timeout must be > 0, got {self.request_timeout}")
        if self.retry_config.max_retries < 0:
            raise ValueError("retry_config.max_retries must be >= 0")
        return self

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "ConsoleConfig":
        """Build a config from FORGEWATCH_* variables, falling back to defaults."""
        env = os.environ if env is None else env
        defaults = cls()

        retry = RetryConfig(
            max_retries=int(env.get("FORGEWATCH_MAX_RETRIES", defaults.retry_config.max_retries)),
        )

        return cls(
            base_url=env.get("FORGEWATCH_BASE_URL", defaults.base_url).rstrip("/"),
            stream_path=env.get("FORGEWATCH_STREAM_PATH", defaults.stream_path),
            buffer_capacity=int(env.get("FORGEWATCH_BUFFER_CAPACITY", defaults.buffer_capacity)),
            reconnect=_parse_bool(env.get("FORGEWATCH_RECONNECT"), defaults.reconnect),
            retry_config=retry,
            poll_interval=float(env.get("FORGEWATCH_POLL_INTERVAL", defaults.poll_interval)),
            request_timeout=float(env.get("FORGEWATCH_REQUEST_TIMEOUT", defaults.request_timeout)),
            log_level=env.get("FORGEWATCH_LOG_LEVEL", defaults.log_level).upper(),
        ).validate()


def _parse_bool(value: Optional[str], default: bool) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def load_config(dotenv_path: Optional[str] = None) -> ConsoleConfig:
    """Load .env (if any) into the process environment, then read the config."""
    load_dotenv(dotenv_path)
    return ConsoleConfig.from_env()
