"""
Pydantic models for team chat domain objects.

These are the payloads handed to subscribers: delivered messages, the
per-connection session identity, presence and typing notifications.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ConnectionState(str, Enum):
    """Lifecycle states of a team chat connection."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CLOSED_PENDING_RECONNECT = "closed_pending_reconnect"


class ChatSender(BaseModel):
    """Sender details embedded in a chat message."""

    model_config = ConfigDict(frozen=True, extra="allow", populate_by_name=True)

    first_name: str | None = Field(default=None, alias="firstName")
    last_name: str | None = Field(default=None, alias="lastName")

    @property
    def display_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)


class ChatMessage(BaseModel):
    """A delivered conversation entry.

    Field names follow Python conventions; the wire uses camelCase aliases.
    Extra fields the server adds are kept so callers can read them.
    """

    model_config = ConfigDict(frozen=True, extra="allow", populate_by_name=True)

    id: str
    team_id: str = Field(alias="teamId")
    sender_id: str = Field(alias="senderId")
    message: str
    created_at: datetime = Field(alias="createdAt")
    sender: ChatSender | None = None
    thread_id: str | None = Field(default=None, alias="threadId")
    in_reply_to: str | None = Field(default=None, alias="inReplyTo")
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("metadata", mode="before")
    @classmethod
    def default_metadata(cls, v: Any) -> Any:
        """Stored messages may carry ``metadata: null``."""
        return {} if v is None else v

    @property
    def sender_name(self) -> str:
        """Display name of the sender, falling back to the sender id."""
        if self.sender is not None and self.sender.display_name:
            return self.sender.display_name
        return self.sender_id


class Session(BaseModel):
    """Server-confirmed identity for one connection epoch. Never persisted."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    team_id: str


class PresenceEvent(BaseModel):
    """A team member joined or left the conversation."""

    model_config = ConfigDict(frozen=True)

    user_id: str | None
    joined: bool


class TypingIndicator(BaseModel):
    """Opaque typing notification relayed by the server."""

    model_config = ConfigDict(frozen=True)

    data: dict[str, Any] = Field(default_factory=dict)

    @property
    def user_id(self) -> str | None:
        value = self.data.get("userId")
        return str(value) if value is not None else None

    @property
    def is_typing(self) -> bool:
        return bool(self.data.get("isTyping", False))


__all__ = [
    "ChatMessage",
    "ChatSender",
    "ConnectionState",
    "PresenceEvent",
    "Session",
    "TypingIndicator",
]
