"""Tests for team chat domain models and wire frames."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from pydantic import ValidationError

from teamchat.models.chat_models import (
    ChatMessage,
    ChatSender,
    ConnectionState,
    PresenceEvent,
    Session,
    TypingIndicator,
)
from teamchat.models.frames import JoinTeamFrame, SendMessageFrame, TeamJoinedFrame, UserJoinedFrame

from tests.conftest import chat_message


class TestConnectionState:
    """Tests for ConnectionState enum."""

    def test_values(self) -> None:
        assert [s.value for s in ConnectionState] == [
            "disconnected",
            "connecting",
            "connected",
            "closed_pending_reconnect",
        ]

    def test_is_str(self) -> None:
        assert ConnectionState.CONNECTED == "connected"


class TestChatMessage:
    """Tests for ChatMessage model."""

    def test_from_wire(self) -> None:
        msg = ChatMessage.model_validate(chat_message("m1", "hello"))

        assert msg.id == "m1"
        assert msg.team_id == "team-a"
        assert msg.sender_id == "user-2"
        assert msg.created_at == datetime(2025, 1, 15, 10, 30, tzinfo=timezone.utc)
        assert msg.thread_id is None
        assert msg.metadata == {}

    def test_reply_fields(self) -> None:
        payload = chat_message("m2") | {"threadId": "m1", "inReplyTo": "m1", "metadata": {"mentions": ["u3"]}}

        msg = ChatMessage.model_validate(payload)

        assert msg.thread_id == "m1"
        assert msg.in_reply_to == "m1"
        assert msg.metadata == {"mentions": ["u3"]}

    def test_null_metadata(self) -> None:
        msg = ChatMessage.model_validate(chat_message("m1") | {"metadata": None})

        assert msg.metadata == {}

    def test_extra_fields_preserved(self) -> None:
        msg = ChatMessage.model_validate(chat_message("m1") | {"editedAt": None})

        assert msg.model_extra == {"editedAt": None}

    def test_sender_name(self) -> None:
        msg = ChatMessage.model_validate(chat_message("m1"))

        assert msg.sender_name == "Ada Lovelace"

    def test_sender_name_falls_back_to_id(self) -> None:
        payload = chat_message("m1")
        del payload["sender"]

        assert ChatMessage.model_validate(payload).sender_name == "user-2"

    def test_missing_required_field(self) -> None:
        payload = chat_message("m1")
        del payload["createdAt"]

        with pytest.raises(ValidationError):
            ChatMessage.model_validate(payload)

    def test_frozen(self) -> None:
        msg = ChatMessage.model_validate(chat_message("m1"))

        with pytest.raises(ValidationError):
            msg.message = "changed"  # type: ignore[misc]


class TestChatSender:
    """Tests for ChatSender model."""

    def test_partial_name(self) -> None:
        assert ChatSender(firstName="Ada").display_name == "Ada"
        assert ChatSender().display_name == ""


class TestSessionModels:
    """Tests for session, presence and typing payloads."""

    def test_session_is_immutable(self) -> None:
        session = Session(user_id="u1", team_id="t1")

        with pytest.raises(ValidationError):
            session.team_id = "t2"  # type: ignore[misc]

    def test_presence_event(self) -> None:
        event = PresenceEvent(user_id="u1", joined=True)

        assert event.joined is True

    def test_typing_indicator(self) -> None:
        indicator = TypingIndicator(data={"userId": 42, "isTyping": True})

        assert indicator.user_id == "42"
        assert indicator.is_typing is True
        assert TypingIndicator().is_typing is False


class TestFrames:
    """Tests for frame model construction."""

    def test_join_team_requires_team(self) -> None:
        with pytest.raises(ValidationError):
            JoinTeamFrame(team_id="")

    def test_send_message_requires_text(self) -> None:
        with pytest.raises(ValidationError):
            SendMessageFrame(message="")

    def test_frames_accept_wire_names(self) -> None:
        frame = TeamJoinedFrame.model_validate({"recentMessages": [chat_message("m1")]})

        assert frame.type == "team_joined"
        assert frame.recent_messages[0].id == "m1"

    def test_presence_frame_user_id(self) -> None:
        assert UserJoinedFrame(data={"userId": "u1"}).user_id == "u1"
        assert UserJoinedFrame().user_id is None
