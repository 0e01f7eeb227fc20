"""Client configuration for aisfeed."""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Callable
from typing import Any

from aisfeed._constants import (
    CONNECT_TIMEOUT_S,
    DEFAULT_SERVER_URI,
    DISPATCH_QUEUE_SIZE,
    DISPATCH_WORKERS,
    HEARTBEAT_S,
    MAX_RETRY_ATTEMPTS,
    RECONNECT_DELAY_S,
    SHUTDOWN_GRACE_S,
    SYNC_INTERVAL_S,
)
from aisfeed.exceptions import AisStreamConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_number(env_key: str, value: str, cast: Callable[[str], Any]) -> Any:
    try:
        return cast(value.strip())
    except ValueError as exc:
        raise AisStreamConfigError(f"{env_key} must be numeric, got {value!r}") from exc


@dataclasses.dataclass(frozen=True)
class AisStreamConfig:
    """Stream configuration.

    Parameters
    ----------
    server_uri : str
        WebSocket endpoint of the AIS stream service.  The feature is
        disabled when empty.
    api_key : str
        Pre-shared API key sent in every subscription frame.  The feature
        is disabled when empty.
    connect_timeout : float
        Seconds to wait for the WebSocket handshake before the attempt is
        counted as failed.  Must be positive.
    reconnect_delay : float
        Fixed delay in seconds between connection attempts.
    max_retry_attempts : int
        Maximum number of connection attempts before giving up.  The
        counter carries over remote disconnects.
    sync_interval : float
        Seconds between two registry synchronisations.
    dispatch_workers : int
        Size of the dispatcher worker pool.
    dispatch_queue_size : int
        Capacity of the dispatcher queue.  Reports arriving while the queue
        is full are dropped.
    shutdown_grace : float
        Seconds to wait for queued reports to drain on shutdown before
        workers are cancelled.
    heartbeat : float
        WebSocket ping interval in seconds.  ``0`` disables pings.
    prune_unresolved : bool
        Drop identifiers from the live subscription when the registry no
        longer resolves them.
    """

    server_uri: str = ""
    api_key: str = ""
    connect_timeout: float = CONNECT_TIMEOUT_S
    reconnect_delay: float = RECONNECT_DELAY_S
    max_retry_attempts: int = MAX_RETRY_ATTEMPTS
    sync_interval: float = SYNC_INTERVAL_S
    dispatch_workers: int = DISPATCH_WORKERS
    dispatch_queue_size: int = DISPATCH_QUEUE_SIZE
    shutdown_grace: float = SHUTDOWN_GRACE_S
    heartbeat: float = HEARTBEAT_S
    prune_unresolved: bool = True

    def __post_init__(self) -> None:
        if self.max_retry_attempts < 1:
            raise AisStreamConfigError(f"max_retry_attempts must be >= 1, got {self.max_retry_attempts}")
        if self.dispatch_workers < 1:
            raise AisStreamConfigError(f"dispatch_workers must be >= 1, got {self.dispatch_workers}")
        if self.dispatch_queue_size < 1:
            raise AisStreamConfigError(f"dispatch_queue_size must be >= 1, got {self.dispatch_queue_size}")
        if self.connect_timeout <= 0:
            raise AisStreamConfigError(f"connect_timeout must be > 0, got {self.connect_timeout}")
        for name in ("reconnect_delay", "sync_interval", "shutdown_grace", "heartbeat"):
            if getattr(self, name) < 0:
                raise AisStreamConfigError(f"{name} must not be negative")

    @property
    def is_configured(self) -> bool:
        """Whether both endpoint and API key are present."""
        return bool(self.server_uri.strip()) and bool(self.api_key.strip())

    @classmethod
    def from_env(cls, **overrides: Any) -> AisStreamConfig:
        """Create configuration from environment variables.

        Reads ``AISSTREAM_SERVER_URI``, ``AISSTREAM_API_KEY`` and the
        optional ``AISSTREAM_*`` tuning variables.  Explicit keyword
        arguments override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        AisStreamConfig
            Populated configuration.
        """
        env = os.environ

        config_kwargs: dict[str, Any] = {}

        uri = env.get("AISSTREAM_SERVER_URI")
        if uri is not None:
            config_kwargs["server_uri"] = uri.strip()
        api_key = env.get("AISSTREAM_API_KEY")
        if api_key is not None:
            config_kwargs["api_key"] = api_key.strip()

        _ENV_NUMERIC_MAP: dict[str, tuple[str, Callable[[str], Any]]] = {
            "AISSTREAM_CONNECT_TIMEOUT": ("connect_timeout", float),
            "AISSTREAM_RECONNECT_DELAY": ("reconnect_delay", float),
            "AISSTREAM_MAX_RETRY_ATTEMPTS": ("max_retry_attempts", int),
            "AISSTREAM_SYNC_INTERVAL": ("sync_interval", float),
            "AISSTREAM_DISPATCH_WORKERS": ("dispatch_workers", int),
            "AISSTREAM_DISPATCH_QUEUE_SIZE": ("dispatch_queue_size", int),
            "AISSTREAM_SHUTDOWN_GRACE": ("shutdown_grace", float),
            "AISSTREAM_HEARTBEAT": ("heartbeat", float),
        }
        for env_key, (field_name, cast) in _ENV_NUMERIC_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = _env_number(env_key, val, cast)

        if "prune_unresolved" not in overrides:
            config_kwargs["prune_unresolved"] = _env_bool(env.get("AISSTREAM_PRUNE_UNRESOLVED"), True)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)


def default_config(api_key: str, **overrides: Any) -> AisStreamConfig:
    """Configuration pointing at the public aisstream.io endpoint."""
    return AisStreamConfig(server_uri=DEFAULT_SERVER_URI, api_key=api_key, **overrides)
