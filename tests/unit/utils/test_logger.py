"""Tests for logger module.

Tests logging configuration, credential redaction and structured context.
"""

from __future__ import annotations

import json
import logging
import logging.handlers
import sys

from collections.abc import Generator
from pathlib import Path

import pytest

from teamchat.core.constants import Settings
from teamchat.integrations.team_chat_client import TeamChatClient
from teamchat.models.error_models import AuthenticationRequiredError
from teamchat.utils.logger import (
    ColoredConsoleFormatter,
    ErrorFilter,
    RedactionFilter,
    TransportLogger,
    configure_logging,
    preview,
    redact,
    setup_logging,
)


def make_record(level: int = logging.INFO, msg: str = "test", args: tuple = ()) -> logging.LogRecord:
    return logging.LogRecord(
        name="test",
        level=level,
        pathname="",
        lineno=0,
        msg=msg,
        args=args,
        exc_info=None,
    )


@pytest.fixture
def scratch_logger() -> Generator[str, None, None]:
    """Name of a throwaway logger; handlers are closed afterwards."""
    name = "teamchat.scratch"
    yield name
    log = logging.getLogger(name)
    for handler in log.handlers:
        handler.close()
    log.handlers = []
    log.filters = []


class TestRedact:
    """Tests for credential redaction."""

    def test_token_query_param(self) -> None:
        assert redact("ws://host/ws/team-chat?token=abc.def") == "ws://host/ws/team-chat?token=[REDACTED]"

    def test_token_among_other_params(self) -> None:
        assert redact("wss://h/p?a=1&token=xyz&b=2") == "wss://h/p?a=1&token=[REDACTED]&b=2"

    def test_bearer_header(self) -> None:
        assert redact("Authorization: Bearer eyJhbGciOi.J9") == "Authorization: Bearer [REDACTED]"

    def test_password(self) -> None:
        assert redact("password=hunter2 ok") == "[REDACTED] ok"

    def test_plain_text_unchanged(self) -> None:
        assert redact("Team chat connected") == "Team chat connected"
        assert redact("") == ""


class TestPreview:
    """Tests for raw frame previews."""

    def test_short_text(self) -> None:
        assert preview('{"type": "pong"}') == '{"type": "pong"}'

    def test_truncates(self) -> None:
        assert preview("x" * 200, limit=10) == "x" * 10 + "..."

    def test_bytes_and_newlines(self) -> None:
        assert preview(b"line one\nline two") == "line one line two"


class TestFilters:
    """Tests for logging filters."""

    def test_error_filter(self) -> None:
        error_filter = ErrorFilter()

        assert error_filter.filter(make_record(logging.ERROR)) is True
        assert error_filter.filter(make_record(logging.CRITICAL)) is True
        assert error_filter.filter(make_record(logging.WARNING)) is False

    def test_redaction_filter_rewrites_message(self) -> None:
        record = make_record(msg="Connecting to %s", args=("ws://h/p?token=secret123",))

        assert RedactionFilter().filter(record) is True
        assert record.getMessage() == "Connecting to ws://h/p?token=[REDACTED]"

    def test_redaction_filter_leaves_clean_records(self) -> None:
        record = make_record(msg="joined %s", args=("team-a",))

        RedactionFilter().filter(record)

        assert record.msg == "joined %s"
        assert record.args == ("team-a",)


class TestColoredConsoleFormatter:
    """Tests for the console formatter."""

    def test_format(self) -> None:
        line = ColoredConsoleFormatter().format(make_record(logging.WARNING, "careful"))

        assert "[WARNING]" in line
        assert ColoredConsoleFormatter.YELLOW in line
        assert line.endswith("test - careful")

    def test_format_with_exception(self) -> None:
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = make_record(logging.ERROR, "failed")
            record.exc_info = sys.exc_info()

        line = ColoredConsoleFormatter().format(record)

        assert "RuntimeError: boom" in line


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_console_only(self, scratch_logger: str) -> None:
        log = setup_logging(scratch_logger, debug=False)

        assert len(log.handlers) == 1
        assert log.handlers[0].level == logging.INFO
        assert any(isinstance(f, RedactionFilter) for f in log.filters)

    def test_debug_level(self, scratch_logger: str) -> None:
        log = setup_logging(scratch_logger, debug=True)

        assert log.handlers[0].level == logging.DEBUG

    def test_debug_from_env(self, scratch_logger: str, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TEAMCHAT_DEBUG", "1")

        log = setup_logging(scratch_logger)

        assert log.handlers[0].level == logging.DEBUG

    def test_repeated_setup_does_not_stack_handlers(self, scratch_logger: str) -> None:
        setup_logging(scratch_logger)
        log = setup_logging(scratch_logger)

        assert len(log.handlers) == 1
        assert len(log.filters) == 1

    def test_json_error_log(self, scratch_logger: str, tmp_path: Path) -> None:
        """Test errors land in errors.jsonl as JSON with context and redaction."""
        log = setup_logging(scratch_logger, log_dir=tmp_path / "logs")

        log.info("not an error")
        log.error("Dial failed for ws://h/p?token=abc", extra={"client_id": "c1", "team_id": "t1"})
        for handler in log.handlers:
            handler.flush()

        lines = (tmp_path / "logs" / "errors.jsonl").read_text().splitlines()
        assert len(lines) == 1
        entry = json.loads(lines[0])
        assert entry["levelname"] == "ERROR"
        assert entry["message"] == "Dial failed for ws://h/p?token=[REDACTED]"
        assert entry["client_id"] == "c1"
        assert entry["team_id"] == "t1"


class TestTransportLogger:
    """Tests for TransportLogger."""

    def test_client_id_attached(self, caplog: pytest.LogCaptureFixture) -> None:
        log = TransportLogger(client_id="abc12345")

        with caplog.at_level(logging.INFO, logger="teamchat"):
            log.info("hello", team_id="team-a")

        record = caplog.records[-1]
        assert record.getMessage() == "hello"
        assert record.client_id == "abc12345"  # type: ignore[attr-defined]
        assert record.team_id == "team-a"  # type: ignore[attr-defined]

    def test_generated_client_id(self) -> None:
        assert len(TransportLogger().client_id) == 8

    def test_bind(self, caplog: pytest.LogCaptureFixture) -> None:
        bound = TransportLogger(client_id="base").bind("other")

        with caplog.at_level(logging.WARNING, logger="teamchat"):
            bound.warning("careful")

        assert caplog.records[-1].client_id == "other"  # type: ignore[attr-defined]

    def test_error_with_exc_info(self, caplog: pytest.LogCaptureFixture) -> None:
        log = TransportLogger(client_id="c1")

        with caplog.at_level(logging.ERROR, logger="teamchat"):
            try:
                raise ValueError("bad")
            except ValueError:
                log.error("failed", exc_info=True)

        assert caplog.records[-1].exc_info is not None

    def test_log_frame(self, caplog: pytest.LogCaptureFixture) -> None:
        log = TransportLogger(client_id="c1")

        with caplog.at_level(logging.DEBUG, logger="teamchat"):
            log.log_frame("outbound", "join_team", team_id="team-a")
            log.log_frame("inbound", "team_joined")

        messages = [r.getMessage() for r in caplog.records[-2:]]
        assert messages == ["-> join_team", "<- team_joined"]
        assert caplog.records[-2].frame_direction == "outbound"  # type: ignore[attr-defined]


class TestConfigureLogging:
    """Tests for applying Settings to the package logger."""

    @pytest.fixture(autouse=True)
    def restore_package_logging(self) -> Generator[None, None, None]:
        yield
        setup_logging()

    def test_debug_setting(self) -> None:
        log = configure_logging(Settings(debug=True))

        assert log.name == "teamchat"
        assert log.handlers[0].level == logging.DEBUG

    def test_log_dir_setting(self, tmp_path: Path) -> None:
        log = configure_logging(Settings(log_dir=tmp_path))

        assert any(isinstance(h, logging.handlers.RotatingFileHandler) for h in log.handlers)

    def test_client_applies_settings(self, tmp_path: Path) -> None:
        """Test a client built with log_dir writes its errors to errors.jsonl."""
        client = TeamChatClient(settings=Settings(log_dir=tmp_path))

        with pytest.raises(AuthenticationRequiredError):
            client.connect("team-a")
        for handler in logging.getLogger("teamchat").handlers:
            handler.flush()

        entries = [json.loads(line) for line in (tmp_path / "errors.jsonl").read_text().splitlines()]
        assert entries[-1]["message"] == "No auth token available for team chat connection"
        assert entries[-1]["client_id"] == client.client_id
        assert entries[-1]["team_id"] == "team-a"
