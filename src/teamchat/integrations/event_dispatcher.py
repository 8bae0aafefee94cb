"""Event dispatcher: per-kind subscriber registries with revocable handles.

Each event kind owns an independent registry. Dispatch snapshots the
registry before iterating, so handlers added or revoked during a pass only
take effect from the next event. A failing handler is logged and skipped;
nothing raised by a subscriber escapes the dispatch path.
"""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
from typing import Any

from teamchat.models.chat_models import ChatMessage, PresenceEvent, TypingIndicator
from teamchat.models.error_models import HandshakeRejectedError, TeamChatError
from teamchat.models.frames import (
    ConnectedFrame,
    ErrorFrame,
    InboundFrame,
    NewMessageFrame,
    PongFrame,
    TeamJoinedFrame,
    TypingIndicatorFrame,
    UserJoinedFrame,
    UserLeftFrame,
)
from teamchat.utils.logger import TransportLogger, logger as default_logger
from teamchat.utils.metrics import handler_errors_total

MessageHandler = Callable[[ChatMessage], None]
TeamJoinedHandler = Callable[[list[ChatMessage]], None]
ErrorHandler = Callable[[TeamChatError], None]
ConnectionHandler = Callable[[], None]
PresenceHandler = Callable[[PresenceEvent], None]
TypingHandler = Callable[[TypingIndicator], None]


class EventKind(str, Enum):
    """Events subscribers can register for."""

    MESSAGE = "message"
    TEAM_JOINED = "team-joined"
    ERROR = "error"
    CONNECT = "connect"
    DISCONNECT = "disconnect"
    PRESENCE = "presence"
    TYPING = "typing"


class Subscription:
    """Revocation handle returned by :meth:`EventDispatcher.subscribe`.

    Calling it removes exactly the handler it was issued for. Safe to call
    any number of times.
    """

    __slots__ = ("_registry", "kind")

    def __init__(self, kind: EventKind, registry: dict[Subscription, Callable[..., None]]) -> None:
        self.kind = kind
        self._registry = registry

    def __call__(self) -> None:
        self._registry.pop(self, None)

    @property
    def active(self) -> bool:
        return self in self._registry

    def __repr__(self) -> str:
        state = "active" if self.active else "revoked"
        return f"<Subscription {self.kind.value} {state}>"


class EventDispatcher:
    """Fans decoded frames and connection events out to subscribers."""

    def __init__(self, log: TransportLogger | None = None) -> None:
        self._log = log or default_logger
        self._registries: dict[EventKind, dict[Subscription, Callable[..., None]]] = {
            kind: {} for kind in EventKind
        }

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def subscribe(self, kind: EventKind | str, handler: Callable[..., None]) -> Subscription:
        """Register ``handler`` for ``kind`` and return its revocation handle."""
        kind = EventKind(kind)
        registry = self._registries[kind]
        subscription = Subscription(kind, registry)
        registry[subscription] = handler
        return subscription

    def on_message(self, handler: MessageHandler) -> Subscription:
        return self.subscribe(EventKind.MESSAGE, handler)

    def on_team_joined(self, handler: TeamJoinedHandler) -> Subscription:
        return self.subscribe(EventKind.TEAM_JOINED, handler)

    def on_error(self, handler: ErrorHandler) -> Subscription:
        return self.subscribe(EventKind.ERROR, handler)

    def on_connect(self, handler: ConnectionHandler) -> Subscription:
        return self.subscribe(EventKind.CONNECT, handler)

    def on_disconnect(self, handler: ConnectionHandler) -> Subscription:
        return self.subscribe(EventKind.DISCONNECT, handler)

    def on_presence(self, handler: PresenceHandler) -> Subscription:
        return self.subscribe(EventKind.PRESENCE, handler)

    def on_typing(self, handler: TypingHandler) -> Subscription:
        return self.subscribe(EventKind.TYPING, handler)

    def handler_count(self, kind: EventKind | str) -> int:
        return len(self._registries[EventKind(kind)])

    def clear(self) -> None:
        """Drop every registered handler."""
        for registry in self._registries.values():
            registry.clear()

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def emit(self, kind: EventKind, *args: Any) -> int:
        """Invoke every handler registered for ``kind`` at the moment of the call.

        Returns:
            Number of handlers invoked.
        """
        handlers = list(self._registries[kind].values())
        for handler in handlers:
            try:
                handler(*args)
            except Exception as e:
                handler_errors_total.labels(kind=kind.value).inc()
                self._log.error(f"Handler for '{kind.value}' raised: {e}", exc_info=True)
        return len(handlers)

    def emit_error(self, error: TeamChatError) -> int:
        return self.emit(EventKind.ERROR, error)

    def dispatch_frame(self, frame: InboundFrame) -> int:
        """Route a decoded inbound frame to the subscribers of its event kind.

        ``connected`` and ``pong`` are handshake/heartbeat bookkeeping and
        reach no subscriber.
        """
        if isinstance(frame, NewMessageFrame):
            return self.emit(EventKind.MESSAGE, frame.data)
        if isinstance(frame, TeamJoinedFrame):
            # One batch call, array order preserved
            return self.emit(EventKind.TEAM_JOINED, list(frame.recent_messages))
        if isinstance(frame, ErrorFrame):
            return self.emit_error(HandshakeRejectedError(frame.error or "WebSocket error"))
        if isinstance(frame, UserJoinedFrame):
            return self.emit(EventKind.PRESENCE, PresenceEvent(user_id=frame.user_id, joined=True))
        if isinstance(frame, UserLeftFrame):
            return self.emit(EventKind.PRESENCE, PresenceEvent(user_id=frame.user_id, joined=False))
        if isinstance(frame, TypingIndicatorFrame):
            return self.emit(EventKind.TYPING, TypingIndicator(data=dict(frame.data)))
        if isinstance(frame, (ConnectedFrame, PongFrame)):
            return 0

        self._log.info(f"No route for frame type {getattr(frame, 'type', type(frame).__name__)!r}")
        return 0


__all__ = [
    "ConnectionHandler",
    "ErrorHandler",
    "EventDispatcher",
    "EventKind",
    "MessageHandler",
    "PresenceHandler",
    "Subscription",
    "TeamJoinedHandler",
    "TypingHandler",
]
