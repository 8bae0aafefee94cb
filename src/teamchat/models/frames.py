"""
Wire frame models for the team chat protocol.

Every frame is a JSON object tagged by ``type``. Inbound frames form a
discriminated union validated in one pass by :data:`INBOUND_FRAME_ADAPTER`;
outbound frames serialize with their camelCase aliases.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from teamchat.core.constants import (
    FRAME_CONNECTED,
    FRAME_ERROR,
    FRAME_JOIN_TEAM,
    FRAME_NEW_MESSAGE,
    FRAME_PING,
    FRAME_PONG,
    FRAME_SEND_MESSAGE,
    FRAME_START_TYPING,
    FRAME_STOP_TYPING,
    FRAME_TEAM_JOINED,
    FRAME_TYPING_INDICATOR,
    FRAME_USER_JOINED,
    FRAME_USER_LEFT,
)
from teamchat.models.chat_models import ChatMessage


class WireFrame(BaseModel):
    """Base for all frames. Frames are immutable once built or received."""

    model_config = ConfigDict(frozen=True, extra="allow", populate_by_name=True)

    def to_json(self) -> str:
        """Serialize for the wire (aliases, no null fields)."""
        json_str: str = self.model_dump_json(by_alias=True, exclude_none=True)
        return json_str


# ============================================================================
# Server -> Client
# ============================================================================


class ConnectedFrame(WireFrame):
    """Token accepted; carries the server-confirmed user id."""

    type: Literal["connected"] = FRAME_CONNECTED
    user_id: str | None = Field(default=None, alias="userId")


class TeamJoinedFrame(WireFrame):
    """Join acknowledged; seeds the history view with recent messages.

    The batch validates as a whole: one invalid entry drops the frame.
    """

    type: Literal["team_joined"] = FRAME_TEAM_JOINED
    team: dict[str, Any] | None = None
    recent_messages: list[ChatMessage] = Field(default_factory=list, alias="recentMessages")


class NewMessageFrame(WireFrame):
    type: Literal["new_message"] = FRAME_NEW_MESSAGE
    data: ChatMessage


class UserJoinedFrame(WireFrame):
    type: Literal["user_joined"] = FRAME_USER_JOINED
    data: dict[str, Any] = Field(default_factory=dict)

    @property
    def user_id(self) -> str | None:
        value = self.data.get("userId")
        return str(value) if value is not None else None


class UserLeftFrame(WireFrame):
    type: Literal["user_left"] = FRAME_USER_LEFT
    data: dict[str, Any] = Field(default_factory=dict)

    @property
    def user_id(self) -> str | None:
        value = self.data.get("userId")
        return str(value) if value is not None else None


class TypingIndicatorFrame(WireFrame):
    type: Literal["typing_indicator"] = FRAME_TYPING_INDICATOR
    data: dict[str, Any] = Field(default_factory=dict)


class ErrorFrame(WireFrame):
    """Server-reported failure (bad token, join refused, send failed)."""

    type: Literal["error"] = FRAME_ERROR
    error: str | None = None


class PongFrame(WireFrame):
    """Heartbeat acknowledgment."""

    type: Literal["pong"] = FRAME_PONG


InboundFrame = Annotated[
    ConnectedFrame
    | TeamJoinedFrame
    | NewMessageFrame
    | UserJoinedFrame
    | UserLeftFrame
    | TypingIndicatorFrame
    | ErrorFrame
    | PongFrame,
    Field(discriminator="type"),
]

#: Validates a decoded JSON object into the matching inbound frame model
INBOUND_FRAME_ADAPTER: TypeAdapter[InboundFrame] = TypeAdapter(InboundFrame)


# ============================================================================
# Client -> Server
# ============================================================================


class JoinTeamFrame(WireFrame):
    """Handshake join request, sent exactly once per successful open."""

    type: Literal["join_team"] = FRAME_JOIN_TEAM
    team_id: str = Field(alias="teamId", min_length=1)


class SendMessageFrame(WireFrame):
    type: Literal["send_message"] = FRAME_SEND_MESSAGE
    message: str = Field(min_length=1)
    in_reply_to: str | None = Field(default=None, alias="inReplyTo")
    metadata: dict[str, Any] | None = None


class StartTypingFrame(WireFrame):
    type: Literal["start_typing"] = FRAME_START_TYPING


class StopTypingFrame(WireFrame):
    type: Literal["stop_typing"] = FRAME_STOP_TYPING


class PingFrame(WireFrame):
    type: Literal["ping"] = FRAME_PING


OutboundFrame = JoinTeamFrame | SendMessageFrame | StartTypingFrame | StopTypingFrame | PingFrame


__all__ = [
    "INBOUND_FRAME_ADAPTER",
    "ConnectedFrame",
    "ErrorFrame",
    "InboundFrame",
    "JoinTeamFrame",
    "NewMessageFrame",
    "OutboundFrame",
    "PingFrame",
    "PongFrame",
    "SendMessageFrame",
    "StartTypingFrame",
    "StopTypingFrame",
    "TeamJoinedFrame",
    "TypingIndicatorFrame",
    "UserJoinedFrame",
    "UserLeftFrame",
    "WireFrame",
]
