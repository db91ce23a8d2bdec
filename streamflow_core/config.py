"""
Proxy Configuration
===================
Configuration for the signing and proxying endpoints, read from the environment.
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .exceptions import ConfigurationError

DEFAULT_USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64)"

# Long-lived server and edge deployments ship different ceilings
SERVER_MAX_CONCURRENT = 200
SERVER_REQUEST_TIMEOUT_MS = 30_000
EDGE_MAX_CONCURRENT = 100
EDGE_REQUEST_TIMEOUT_MS = 25_000

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _get_int(env: Mapping[str, str], name: str, default: int, minimum: int = 0) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")
    if value < minimum:
        raise ConfigurationError(f"{name} must be >= {minimum}, got {value}")
    return value


def _get_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"{name} must be a boolean, got {raw!r}")


@dataclass
class ProxyConfig:
    """Settings shared by the long-lived server and the edge function."""
    secret: Optional[str] = None
    host: str = "0.0.0.0"
    port: int = 4001
    max_concurrent: int = SERVER_MAX_CONCURRENT
    request_timeout_ms: int = SERVER_REQUEST_TIMEOUT_MS
    max_skew_seconds: int = 300
    max_redirects: int = 5
    keepalive_max_sockets: int = 500
    relay_buffer_bytes: int = 256 * 1024
    retry_after_seconds: int = 5
    block_html: bool = True
    allow_unsigned: bool = False
    static_root: str = "./public"
    default_user_agent: str = DEFAULT_USER_AGENT
    service_name: str = "streamflow-proxy"
    log_level: str = "INFO"
    log_json: bool = True

    @property
    def request_timeout(self) -> float:
        """Per-hop upstream timeout in seconds."""
        return self.request_timeout_ms / 1000.0

    @property
    def signing_enabled(self) -> bool:
        return bool(self.secret)

    @classmethod
    def from_env(
        cls,
        edge: bool = False,
        env: Optional[Mapping[str, str]] = None,
    ) -> "ProxyConfig":
        """
        Build configuration from environment variables.

        Args:
            edge: Use the edge-function defaults for concurrency and timeout
            env: Mapping to read instead of os.environ

        Raises:
            ConfigurationError: If a numeric or boolean variable is malformed
        """
        env = os.environ if env is None else env

        return cls(
            secret=env.get("STREAM_SECRET") or None,
            host=env.get("HOST", "0.0.0.0"),
            port=_get_int(env, "PORT", 4001, minimum=1),
            max_concurrent=_get_int(
                env,
                "MAX_CONCURRENT",
                EDGE_MAX_CONCURRENT if edge else SERVER_MAX_CONCURRENT,
                minimum=1,
            ),
            request_timeout_ms=_get_int(
                env,
                "REQUEST_TIMEOUT_MS",
                EDGE_REQUEST_TIMEOUT_MS if edge else SERVER_REQUEST_TIMEOUT_MS,
                minimum=1,
            ),
            max_skew_seconds=_get_int(env, "MAX_SKEW_SECONDS", 300),
            max_redirects=_get_int(env, "MAX_REDIRECTS", 5),
            keepalive_max_sockets=_get_int(env, "KEEPALIVE_MAX_SOCKETS", 500, minimum=1),
            relay_buffer_bytes=_get_int(env, "RELAY_BUFFER_BYTES", 256 * 1024, minimum=1),
            retry_after_seconds=_get_int(env, "RETRY_AFTER_SECONDS", 5),
            block_html=_get_bool(env, "BLOCK_HTML", True),
            allow_unsigned=_get_bool(env, "ALLOW_UNSIGNED", False),
            static_root=env.get("STATIC_ROOT", "./public"),
            default_user_agent=env.get("DEFAULT_USER_AGENT", DEFAULT_USER_AGENT),
            service_name=env.get("SERVICE_NAME", "streamflow-proxy"),
            log_level=env.get("LOG_LEVEL", "INFO"),
            log_json=_get_bool(env, "LOG_JSON", True),
        )
