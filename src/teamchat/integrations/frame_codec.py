"""Frame codec for the team chat wire protocol.

Decoding is total: anything that is not a well-formed, known inbound frame
is logged, counted and turned into ``None`` so the connection survives.
Encoding is a pure mapping from an outbound frame model to JSON text.
"""

from __future__ import annotations

import json

from typing import Any

from pydantic import ValidationError

from teamchat.core.constants import FRAME_TYPE_KEY, INBOUND_FRAME_TYPES
from teamchat.models.error_models import ErrorCode, MalformedFrameError
from teamchat.models.frames import INBOUND_FRAME_ADAPTER, InboundFrame, OutboundFrame
from teamchat.utils.logger import logger, preview
from teamchat.utils.metrics import frames_dropped_total


def parse_frame(raw: str | bytes) -> InboundFrame:
    """Strict decode of one inbound frame.

    Raises:
        MalformedFrameError: payload is not JSON, not an object, has an
            unknown ``type`` or fails validation. ``details["reason"]``
            carries the metric label.
    """
    try:
        data: Any = json.loads(raw)
    # ValueError covers JSONDecodeError and UnicodeDecodeError; deep nesting raises RecursionError
    except (ValueError, RecursionError) as e:
        raise MalformedFrameError(f"Invalid JSON: {e}", details={"reason": "invalid_json"}) from e

    if not isinstance(data, dict):
        raise MalformedFrameError(
            f"Frame is not a JSON object: {type(data).__name__}", details={"reason": "not_object"}
        )

    frame_type = data.get(FRAME_TYPE_KEY)
    if not isinstance(frame_type, str) or frame_type not in INBOUND_FRAME_TYPES:
        raise MalformedFrameError(
            f"Unknown frame type: {frame_type!r}",
            code=ErrorCode.FRAME_UNKNOWN_TYPE,
            details={"reason": "unknown_type", "type": frame_type},
        )

    try:
        return INBOUND_FRAME_ADAPTER.validate_python(data)
    except ValidationError as e:
        raise MalformedFrameError(
            f"Invalid {frame_type} payload: {e.error_count()} validation error(s)",
            details={"reason": "invalid_payload", "type": frame_type},
        ) from e


def decode_frame(raw: str | bytes) -> InboundFrame | None:
    """Decode one inbound frame, returning None for anything unusable."""
    try:
        return parse_frame(raw)
    except MalformedFrameError as e:
        reason = e.details.get("reason", "invalid_payload")
        frames_dropped_total.labels(reason=reason).inc()
        if e.code == ErrorCode.FRAME_UNKNOWN_TYPE:
            logger.info(f"Ignoring unknown frame type: {preview(raw)}", frame_type=e.details.get("type"))
        else:
            logger.warning(f"Dropping malformed frame ({e.message}): {preview(raw)}")
        return None


def encode_frame(frame: OutboundFrame) -> str:
    """Serialize an outbound frame to wire JSON."""
    return frame.to_json()


__all__ = ["decode_frame", "encode_frame", "parse_frame"]
