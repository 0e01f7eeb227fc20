"""Custom exception hierarchy for aisfeed."""

from __future__ import annotations


class AisStreamError(Exception):
    """Base exception for all aisfeed errors."""


class AisStreamConfigError(AisStreamError):
    """Invalid configuration value."""


class AisStreamConnectionError(AisStreamError):
    """WebSocket-level failure (connect, handshake, send)."""

    def __init__(
        self,
        message: str,
        *,
        uri: str = "",
    ) -> None:
        self.uri = uri
        super().__init__(message)


class AisStreamSubscriptionError(AisStreamError):
    """Subscription frame could not be delivered over the current socket.

    Raised when :meth:`AisStreamClient.update_subscription` is called on a
    client whose socket is not open.  The manager treats this as a lost
    connection and goes through the reconnect path.
    """
