"""WebSocket team chat client.

Owns one physical connection at a time to the team chat endpoint, performs
the join handshake on every open, feeds decoded frames to the event
dispatcher and re-dials after involuntary closes via the reconnection
policy.

Lifecycle::

    DISCONNECTED --connect()--> CONNECTING --open + join--> CONNECTED
    CONNECTED --close/error--> CLOSED_PENDING_RECONNECT --timer--> CONNECTING
    any state --disconnect()--> DISCONNECTED

``connect()`` and ``disconnect()`` return immediately and report outcomes
through the dispatcher. Every connection attempt runs in its own task and is
tagged with an epoch number; work belonging to a superseded epoch is
discarded, and a new dial waits for the previous task to finish closing its
socket so two connections never coexist.
"""

from __future__ import annotations

import asyncio
import uuid

from collections.abc import Callable
from typing import Any
from urllib.parse import quote

import websockets

from websockets.asyncio.client import ClientConnection
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK

from teamchat.core.constants import (
    CLIENT_ID_LENGTH,
    CLOSE_CODE_AUTH_FAILED,
    TOKEN_QUERY_PARAM,
    Settings,
    get_settings,
)
from teamchat.integrations.event_dispatcher import (
    ConnectionHandler,
    ErrorHandler,
    EventDispatcher,
    EventKind,
    MessageHandler,
    PresenceHandler,
    Subscription,
    TeamJoinedHandler,
    TypingHandler,
)
from teamchat.integrations.frame_codec import decode_frame, encode_frame
from teamchat.integrations.reconnect_policy import ReconnectPolicy
from teamchat.models.chat_models import ConnectionState, Session
from teamchat.models.error_models import (
    AuthenticationRequiredError,
    ErrorCode,
    HandshakeRejectedError,
    NotConnectedError,
    TeamChatError,
    TransportError,
)
from teamchat.models.frames import (
    ConnectedFrame,
    ErrorFrame,
    InboundFrame,
    JoinTeamFrame,
    OutboundFrame,
    PingFrame,
    PongFrame,
    SendMessageFrame,
    StartTypingFrame,
    StopTypingFrame,
    TeamJoinedFrame,
)
from teamchat.utils.logger import configure_logging, logger as default_logger
from teamchat.utils.metrics import connection_attempts_total, connection_state, frames_total

TokenProvider = Callable[[], str | None]


class TeamChatClient:
    """Authenticated, reconnecting team chat session client.

    Callers construct and hold their own instance; several clients (for
    example one per team) can run side by side on the same event loop.
    Calls into one instance must come from the event loop thread.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        token: str | None = None,
        token_provider: TokenProvider | None = None,
        dispatcher: EventDispatcher | None = None,
        reconnect_policy: ReconnectPolicy | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            settings: Transport settings (defaults to the cached environment settings)
            token: Bearer token; overrides ``settings.auth_token``
            token_provider: Called on every dial to fetch the current token; wins over ``token``
            dispatcher: Event dispatcher to publish to (a private one by default)
            reconnect_policy: Reconnection policy (built from settings by default)
        """
        self.settings = settings or get_settings()
        configure_logging(self.settings)
        self.client_id = str(uuid.uuid4())[:CLIENT_ID_LENGTH]
        self._log = default_logger.bind(self.client_id)

        self._token = token
        self._token_provider = token_provider
        self._dispatcher = dispatcher or EventDispatcher(log=self._log)
        self._reconnect = reconnect_policy or ReconnectPolicy.from_settings(self.settings, log=self._log)

        self._state = ConnectionState.DISCONNECTED
        self._team_id: str | None = None
        self._manual_disconnect = False
        self._session: Session | None = None

        # Connection epoch state
        self._epoch = 0
        self._task: asyncio.Task[None] | None = None
        self._ws: ClientConnection | None = None

        #: join_team frames sent on the current connection
        self.join_requests_sent = 0
        #: Event loop time of the last pong frame
        self.last_pong_at: float | None = None
        #: In-flight outbound writes
        self._sends: set[asyncio.Task[None]] = set()

    async def __aenter__(self) -> TeamChatClient:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def team_id(self) -> str | None:
        """Team the current (or most recent) connection is bound to."""
        return self._team_id

    @property
    def session(self) -> Session | None:
        """Server-confirmed identity; None until ``connected`` arrives on this connection."""
        return self._session

    @property
    def manual_disconnect(self) -> bool:
        """True when the most recent closure was requested via ``disconnect()``."""
        return self._manual_disconnect

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED and self._ws is not None

    @property
    def dispatcher(self) -> EventDispatcher:
        return self._dispatcher

    @property
    def reconnect_policy(self) -> ReconnectPolicy:
        return self._reconnect

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def on_message(self, handler: MessageHandler) -> Subscription:
        return self._dispatcher.on_message(handler)

    def on_team_joined(self, handler: TeamJoinedHandler) -> Subscription:
        return self._dispatcher.on_team_joined(handler)

    def on_error(self, handler: ErrorHandler) -> Subscription:
        return self._dispatcher.on_error(handler)

    def on_connect(self, handler: ConnectionHandler) -> Subscription:
        return self._dispatcher.on_connect(handler)

    def on_disconnect(self, handler: ConnectionHandler) -> Subscription:
        return self._dispatcher.on_disconnect(handler)

    def on_presence(self, handler: PresenceHandler) -> Subscription:
        return self._dispatcher.on_presence(handler)

    def on_typing(self, handler: TypingHandler) -> Subscription:
        return self._dispatcher.on_typing(handler)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def set_token(self, token: str | None) -> None:
        """Replace the bearer token used by subsequent dials."""
        self._token = token

    def connect(self, team_id: str) -> None:
        """Open a connection bound to ``team_id``, replacing any existing one.

        Returns immediately; the outcome is reported through "connect" or
        "error" subscribers. Must be called from a running event loop.

        Raises:
            ValueError: ``team_id`` is empty
            AuthenticationRequiredError: no bearer token is available
        """
        if not team_id:
            raise ValueError("team_id is required")

        token = self._resolve_token()
        if not token:
            self._log.error("No auth token available for team chat connection", team_id=team_id)
            raise AuthenticationRequiredError("No auth token available for team chat connection")

        was_connected = self._state is ConnectionState.CONNECTED
        self._reconnect.reset()
        self._invalidate()
        if was_connected:
            self._log.info(f"Replacing connection to team {self._team_id}", team_id=team_id)
            self._set_state(ConnectionState.DISCONNECTED)
            self._dispatcher.emit(EventKind.DISCONNECT)

        self._manual_disconnect = False
        self._start(team_id, token)

    def disconnect(self) -> None:
        """Close the connection and stop reconnecting until ``connect()`` is called again."""
        self._manual_disconnect = True
        self._reconnect.cancel()

        was_connected = self._state is ConnectionState.CONNECTED
        self._invalidate()
        self._set_state(ConnectionState.DISCONNECTED)
        self._log.info("Team chat disconnected by request", team_id=self._team_id)

        if was_connected:
            self._dispatcher.emit(EventKind.DISCONNECT)

    async def close(self) -> None:
        """Disconnect and wait until the socket and in-flight writes have finished."""
        self.disconnect()
        pending = {t for t in (self._task, *self._sends) if t is not None and not t.done()}
        if pending:
            await asyncio.wait(pending)

    # ------------------------------------------------------------------
    # Outbound frames
    # ------------------------------------------------------------------

    def send_message(
        self,
        message: str,
        in_reply_to: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> asyncio.Task[None]:
        """Send a chat message to the bound team.

        The state check happens at call time. The frame is handed to the
        socket in a task; await it to wait for the write and see failures.

        Returns:
            Task completing once the frame has been written

        Raises:
            NotConnectedError: not in the CONNECTED state; nothing is queued
        """
        ws = self._require_connection()
        frame = SendMessageFrame(message=message, in_reply_to=in_reply_to, metadata=metadata)
        return self._spawn_send(ws, frame)

    def send_typing(self, is_typing: bool) -> asyncio.Task[None]:
        """Tell the team this user started or stopped typing."""
        ws = self._require_connection()
        frame: OutboundFrame = StartTypingFrame() if is_typing else StopTypingFrame()
        return self._spawn_send(ws, frame)

    def ping(self) -> asyncio.Task[None]:
        """Send an application-level ping; the server answers with ``pong``."""
        ws = self._require_connection()
        return self._spawn_send(ws, PingFrame())

    def _require_connection(self) -> ClientConnection:
        if self._state is not ConnectionState.CONNECTED or self._ws is None:
            self._log.error("WebSocket is not connected", team_id=self._team_id)
            raise NotConnectedError("Cannot send message: WebSocket not connected")
        return self._ws

    def _spawn_send(self, ws: ClientConnection, frame: OutboundFrame) -> asyncio.Task[None]:
        task = asyncio.create_task(self._send(ws, frame), name=f"teamchat-send-{frame.type}")
        self._sends.add(task)
        task.add_done_callback(self._send_done)
        return task

    def _send_done(self, task: asyncio.Task[None]) -> None:
        self._sends.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self._log.warning(f"Outbound frame not delivered: {error}", team_id=self._team_id)

    async def _send(self, ws: ClientConnection, frame: OutboundFrame) -> None:
        payload = encode_frame(frame)
        try:
            await ws.send(payload)
        except ConnectionClosed as e:
            raise NotConnectedError("Cannot send message: WebSocket connection closed") from e
        frames_total.labels(direction="outbound", type=frame.type).inc()
        self._log.log_frame("outbound", frame.type, team_id=self._team_id)

    # ------------------------------------------------------------------
    # Connection epochs
    # ------------------------------------------------------------------

    def _resolve_token(self) -> str | None:
        if self._token_provider is not None:
            return self._token_provider()
        return self._token or self.settings.token

    def _build_url(self, token: str) -> str:
        return f"{self.settings.endpoint}?{TOKEN_QUERY_PARAM}={quote(token, safe='')}"

    def _set_state(self, state: ConnectionState) -> None:
        if state is self._state:
            return
        # DISCONNECTED is not counted
        if self._state is not ConnectionState.DISCONNECTED:
            connection_state.labels(state=self._state.value).dec()
        if state is not ConnectionState.DISCONNECTED:
            connection_state.labels(state=state.value).inc()
        self._log.debug(f"State {self._state.value} -> {state.value}", team_id=self._team_id)
        self._state = state

    def _invalidate(self) -> None:
        """Retire the current epoch: cancel its task and drop session state."""
        self._epoch += 1
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._ws = None
        self._session = None

    def _start(self, team_id: str, token: str) -> None:
        self._epoch += 1
        epoch = self._epoch
        self._team_id = team_id
        self.join_requests_sent = 0
        self._set_state(ConnectionState.CONNECTING)

        previous = self._task
        self._task = asyncio.create_task(
            self._run(epoch, team_id, token, previous),
            name=f"teamchat-{self.client_id}-{epoch}",
        )

    async def _run(
        self,
        epoch: int,
        team_id: str,
        token: str,
        previous: asyncio.Task[None] | None,
    ) -> None:
        # The previous socket must be fully closed before dialing again
        if previous is not None and not previous.done():
            await asyncio.wait({previous})
        if epoch != self._epoch:
            return

        url = self._build_url(token)
        connection_attempts_total.inc()
        self._log.info(f"Connecting to {url}", team_id=team_id)

        try:
            ws = await websockets.connect(
                url,
                open_timeout=self.settings.open_timeout,
                close_timeout=self.settings.close_timeout,
                max_size=self.settings.max_frame_size,
            )
        except Exception as e:
            self._log.error(f"Failed to open team chat connection: {e}", team_id=team_id)
            self._handle_close(epoch, TransportError(f"WebSocket connection error: {e}"))
            return

        error: TeamChatError | None = None
        heartbeat: asyncio.Task[None] | None = None
        try:
            await self._handshake(epoch, team_id, ws)
            heartbeat = self._start_heartbeat(epoch, ws)
            await self._receive(epoch, ws)
        except ConnectionClosed as e:
            error = self._close_error(e)
        except Exception as e:
            self._log.error(f"Team chat connection failed: {e}", exc_info=True, team_id=team_id)
            error = TransportError(f"WebSocket connection error: {e}", code=ErrorCode.WS_CONNECTION_LOST)
        finally:
            if heartbeat is not None:
                heartbeat.cancel()
            if self._ws is ws:
                self._ws = None
            await ws.close()

        self._handle_close(epoch, error)

    async def _handshake(self, epoch: int, team_id: str, ws: ClientConnection) -> None:
        """Send the one join request for this open, then announce the connection."""
        await ws.send(encode_frame(JoinTeamFrame(team_id=team_id)))
        self.join_requests_sent += 1
        frames_total.labels(direction="outbound", type="join_team").inc()
        self._log.log_frame("outbound", "join_team", team_id=team_id)

        if epoch != self._epoch:
            return

        self._ws = ws
        self._set_state(ConnectionState.CONNECTED)
        self._reconnect.reset()
        self._log.info("Team chat connected", team_id=team_id)
        self._dispatcher.emit(EventKind.CONNECT)

    async def _receive(self, epoch: int, ws: ClientConnection) -> None:
        async for raw in ws:
            if epoch != self._epoch:
                return
            frame = decode_frame(raw)
            if frame is None:
                continue
            self._handle_frame(frame)

    def _handle_frame(self, frame: InboundFrame) -> None:
        frames_total.labels(direction="inbound", type=frame.type).inc()
        self._log.log_frame("inbound", frame.type, team_id=self._team_id)

        if isinstance(frame, ConnectedFrame):
            self._log.info(f"Team chat authenticated, user ID: {frame.user_id}", team_id=self._team_id)
            if frame.user_id and self._team_id:
                self._session = Session(user_id=frame.user_id, team_id=self._team_id)
        elif isinstance(frame, TeamJoinedFrame):
            self._log.info(
                f"Joined team, received {len(frame.recent_messages)} recent messages", team_id=self._team_id
            )
        elif isinstance(frame, ErrorFrame):
            self._log.error(f"Team chat server error: {frame.error}", team_id=self._team_id)
        elif isinstance(frame, PongFrame):
            self.last_pong_at = asyncio.get_running_loop().time()

        self._dispatcher.dispatch_frame(frame)

    def _close_error(self, exc: ConnectionClosed) -> TeamChatError | None:
        """Map a websockets close to the error reported to subscribers (None for a clean close)."""
        rcvd = exc.rcvd
        if rcvd is not None and rcvd.code == CLOSE_CODE_AUTH_FAILED:
            return HandshakeRejectedError(
                rcvd.reason or "Authentication required",
                code=ErrorCode.AUTH_REJECTED,
                details={"close_code": rcvd.code},
            )
        if isinstance(exc, ConnectionClosedOK):
            return None
        details = {"close_code": rcvd.code} if rcvd is not None else {}
        return TransportError("WebSocket connection error", code=ErrorCode.WS_CONNECTION_LOST, details=details)

    def _handle_close(self, epoch: int, error: TeamChatError | None) -> None:
        """Involuntary close of the current epoch: notify, then arm the reconnect timer."""
        if epoch != self._epoch or self._manual_disconnect:
            return

        was_connected = self._state is ConnectionState.CONNECTED
        self._session = None
        self._set_state(ConnectionState.CLOSED_PENDING_RECONNECT)
        self._log.info("Team chat connection closed", team_id=self._team_id)

        if error is not None:
            self._dispatcher.emit_error(error)
        if was_connected:
            self._dispatcher.emit(EventKind.DISCONNECT)

        # A subscriber may have called connect() or disconnect() meanwhile
        if epoch != self._epoch or self._manual_disconnect:
            return
        if not self._reconnect.schedule(self._on_reconnect_timer):
            self._set_state(ConnectionState.DISCONNECTED)

    def _on_reconnect_timer(self) -> None:
        if self._manual_disconnect or self._team_id is None:
            return

        self._log.info("Attempting to reconnect team chat", team_id=self._team_id)
        token = self._resolve_token()
        if not token:
            self._log.error("No auth token available for reconnection", team_id=self._team_id)
            self._set_state(ConnectionState.DISCONNECTED)
            self._dispatcher.emit_error(
                AuthenticationRequiredError("No auth token available for team chat connection")
            )
            return

        self._start(self._team_id, token)

    # ------------------------------------------------------------------
    # Heartbeat
    # ------------------------------------------------------------------

    def _start_heartbeat(self, epoch: int, ws: ClientConnection) -> asyncio.Task[None] | None:
        interval = self.settings.heartbeat_interval
        if interval is None:
            return None
        return asyncio.create_task(self._heartbeat(epoch, ws, interval), name=f"teamchat-heartbeat-{epoch}")

    async def _heartbeat(self, epoch: int, ws: ClientConnection, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            if epoch != self._epoch or self._state is not ConnectionState.CONNECTED:
                return
            try:
                await self._send(ws, PingFrame())
            except NotConnectedError:
                return


__all__ = ["TeamChatClient", "TokenProvider"]
