from __future__ import annotations

import pytest

from aisfeed.config import AisStreamConfig, default_config
from aisfeed.exceptions import AisStreamConfigError

_ENV_KEYS = (
    "AISSTREAM_SERVER_URI",
    "AISSTREAM_API_KEY",
    "AISSTREAM_CONNECT_TIMEOUT",
    "AISSTREAM_RECONNECT_DELAY",
    "AISSTREAM_MAX_RETRY_ATTEMPTS",
    "AISSTREAM_SYNC_INTERVAL",
    "AISSTREAM_DISPATCH_WORKERS",
    "AISSTREAM_DISPATCH_QUEUE_SIZE",
    "AISSTREAM_SHUTDOWN_GRACE",
    "AISSTREAM_HEARTBEAT",
    "AISSTREAM_PRUNE_UNRESOLVED",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_defaults() -> None:
    config = AisStreamConfig()

    assert config.connect_timeout == 30.0
    assert config.reconnect_delay == 10.0
    assert config.max_retry_attempts == 3
    assert config.sync_interval == 300.0
    assert config.dispatch_workers == 10
    assert config.shutdown_grace == 5.0
    assert config.prune_unresolved is True
    assert not config.is_configured


def test_from_env_reads_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AISSTREAM_SERVER_URI", " wss://stream.example/v0/stream ")
    monkeypatch.setenv("AISSTREAM_API_KEY", "key")
    monkeypatch.setenv("AISSTREAM_MAX_RETRY_ATTEMPTS", "5")
    monkeypatch.setenv("AISSTREAM_RECONNECT_DELAY", "2.5")
    monkeypatch.setenv("AISSTREAM_PRUNE_UNRESOLVED", "off")

    config = AisStreamConfig.from_env()

    assert config.server_uri == "wss://stream.example/v0/stream"
    assert config.is_configured
    assert config.max_retry_attempts == 5
    assert config.reconnect_delay == 2.5
    assert config.prune_unresolved is False


def test_overrides_win_over_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AISSTREAM_API_KEY", "from-env")
    monkeypatch.setenv("AISSTREAM_SYNC_INTERVAL", "not-a-number")

    config = AisStreamConfig.from_env(api_key="explicit", sync_interval=60.0)

    assert config.api_key == "explicit"
    assert config.sync_interval == 60.0


def test_invalid_numeric_env_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AISSTREAM_DISPATCH_WORKERS", "ten")

    with pytest.raises(AisStreamConfigError, match="AISSTREAM_DISPATCH_WORKERS"):
        AisStreamConfig.from_env()


def test_unknown_bool_falls_back_to_default(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AISSTREAM_PRUNE_UNRESOLVED", "maybe")

    assert AisStreamConfig.from_env().prune_unresolved is True


@pytest.mark.parametrize(
    "kwargs",
    [
        {"max_retry_attempts": 0},
        {"dispatch_workers": 0},
        {"dispatch_queue_size": 0},
        {"reconnect_delay": -1.0},
    ],
)
def test_invalid_values_rejected(kwargs: dict[str, float]) -> None:
    with pytest.raises(AisStreamConfigError):
        AisStreamConfig(**kwargs)  # type: ignore[arg-type]


def test_blank_api_key_is_not_configured() -> None:
    assert not AisStreamConfig(server_uri="wss://stream.example", api_key="   ").is_configured


def test_default_config_points_at_public_endpoint() -> None:
    config = default_config("key", max_retry_attempts=1)

    assert config.server_uri == "wss://stream.aisstream.io/v0/stream"
    assert config.max_retry_attempts == 1


@pytest.mark.parametrize("timeout", [0, 0.0, -5.0])
def test_connect_timeout_must_be_positive(timeout: float) -> None:
    with pytest.raises(AisStreamConfigError, match="connect_timeout"):
        AisStreamConfig(connect_timeout=timeout)
