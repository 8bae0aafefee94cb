"""
Error taxonomy for the team chat transport.

Transient conditions (handshake rejection, transport faults) are delivered to
"error" subscribers; contract violations (connecting without a token, sending
while not connected) are raised straight to the caller.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Transport error codes for categorization."""

    # Authentication errors (1xxx)
    AUTH_REQUIRED = "AUTH_1001"
    AUTH_REJECTED = "AUTH_1002"

    # Frame errors (2xxx)
    FRAME_INVALID = "FRAME_2001"
    FRAME_UNKNOWN_TYPE = "FRAME_2002"

    # WebSocket errors (6xxx)
    WS_CONNECTION_FAILED = "WS_6001"
    WS_CONNECTION_LOST = "WS_6002"
    WS_NOT_CONNECTED = "WS_6003"

    # Server-reported errors (7xxx)
    SERVER_ERROR = "SRV_7001"


class TeamChatError(Exception):
    """Base class for all transport errors.

    Attributes:
        code: Categorized error code
        recoverable: Whether the transport recovers on its own (reconnect or carry on)
        details: Optional structured context for logging
    """

    default_code: ErrorCode = ErrorCode.SERVER_ERROR
    default_recoverable: bool = True

    def __init__(
        self,
        message: str,
        code: ErrorCode | None = None,
        recoverable: bool | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.recoverable = self.default_recoverable if recoverable is None else recoverable
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Structured form for log context."""
        data: dict[str, Any] = {
            "code": self.code.value,
            "message": self.message,
            "recoverable": self.recoverable,
        }
        if self.details:
            data["details"] = self.details
        return data


class AuthenticationRequiredError(TeamChatError):
    """No bearer token available when connecting. Raised to the caller."""

    default_code = ErrorCode.AUTH_REQUIRED
    default_recoverable = False


class HandshakeRejectedError(TeamChatError):
    """Server sent an ``error`` frame or closed with the auth-failure code."""

    default_code = ErrorCode.SERVER_ERROR


class TransportError(TeamChatError):
    """Underlying socket failed to open or dropped abnormally."""

    default_code = ErrorCode.WS_CONNECTION_FAILED


class MalformedFrameError(TeamChatError):
    """Inbound payload could not be decoded. Logged, never propagated."""

    default_code = ErrorCode.FRAME_INVALID


class NotConnectedError(TeamChatError):
    """Outbound frame attempted while not connected. Raised to the caller."""

    default_code = ErrorCode.WS_NOT_CONNECTED
    default_recoverable = False


__all__ = [
    "AuthenticationRequiredError",
    "ErrorCode",
    "HandshakeRejectedError",
    "MalformedFrameError",
    "NotConnectedError",
    "TeamChatError",
    "TransportError",
]
