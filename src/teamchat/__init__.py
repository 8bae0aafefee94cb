"""
teamchat - Real-time team chat transport
========================================

Authenticated, reconnecting WebSocket session client for a team's chat
conversation.

Key Features:
    - **Single Connection**: One physical socket per client; reconnects never overlap
    - **Typed Frames**: Pydantic discriminated union for every wire frame
    - **Pub/Sub Events**: Per-kind subscriber registries with revocable handles
    - **Reconnection**: Fixed-delay retries by default, optional backoff with jitter
    - **Structured Logging**: Console plus JSON error logs with token redaction

Modules:
    core: Protocol constants and environment settings
    models: Pydantic models for frames, chat payloads and errors
    integrations: Frame codec, event dispatcher, reconnection policy, client
    utils: Logging and Prometheus metrics

Example:
    Join a team and print incoming messages::

        from teamchat import TeamChatClient

        async with TeamChatClient(token=access_token) as chat:
            chat.on_team_joined(lambda history: print(f"{len(history)} earlier messages"))
            chat.on_message(lambda msg: print(f"{msg.sender_name}: {msg.message}"))
            chat.connect("team-42")
            ...
            await chat.send_message("Hello team")
"""

from teamchat.core.constants import Settings, get_settings
from teamchat.integrations.event_dispatcher import EventDispatcher, EventKind, Subscription
from teamchat.integrations.reconnect_policy import ReconnectPolicy
from teamchat.integrations.team_chat_client import TeamChatClient
from teamchat.models.chat_models import ChatMessage, ConnectionState, PresenceEvent, Session, TypingIndicator
from teamchat.models.error_models import (
    AuthenticationRequiredError,
    ErrorCode,
    HandshakeRejectedError,
    MalformedFrameError,
    NotConnectedError,
    TeamChatError,
    TransportError,
)

__version__ = "1.0.0"

__all__ = [
    "AuthenticationRequiredError",
    "ChatMessage",
    "ConnectionState",
    "ErrorCode",
    "EventDispatcher",
    "EventKind",
    "HandshakeRejectedError",
    "MalformedFrameError",
    "NotConnectedError",
    "PresenceEvent",
    "ReconnectPolicy",
    "Session",
    "Settings",
    "Subscription",
    "TeamChatClient",
    "TeamChatError",
    "TransportError",
    "TypingIndicator",
    "get_settings",
]
