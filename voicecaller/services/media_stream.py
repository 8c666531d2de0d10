"""Twilio Media Streams frame parsing and construction."""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class StreamEvent(str, Enum):
    """Events Twilio sends over a media stream."""

    CONNECTED = "connected"
    START = "start"
    MEDIA = "media"
    MARK = "mark"
    DTMF = "dtmf"
    STOP = "stop"
    UNKNOWN = "unknown"


@dataclass
class TelephonyFrame:
    """One decoded frame from the telephony leg."""

    event: StreamEvent
    stream_sid: str | None = None
    call_sid: str | None = None
    payload: str | None = None  # base64 audio for media frames
    custom_parameters: dict[str, str] = field(default_factory=dict)
    raw: dict[str, Any] = field(default_factory=dict)


def parse_frame(text: str) -> TelephonyFrame:
    """
    Decode a media stream text frame.

    Malformed JSON or unexpected events decode to ``StreamEvent.UNKNOWN``
    rather than raising, so one bad frame never tears down a call.
    """
    try:
        data = json.loads(text)
    except (TypeError, ValueError):
        return TelephonyFrame(event=StreamEvent.UNKNOWN)
    if not isinstance(data, dict):
        return TelephonyFrame(event=StreamEvent.UNKNOWN)

    try:
        event = StreamEvent(data.get("event"))
    except ValueError:
        event = StreamEvent.UNKNOWN

    body = data.get(event.value) if event != StreamEvent.UNKNOWN else None
    if body is not None and not isinstance(body, dict):
        return TelephonyFrame(event=StreamEvent.UNKNOWN, raw=data)
    body = body or {}

    stream_sid = data.get("streamSid")
    frame = TelephonyFrame(
        event=event,
        stream_sid=stream_sid if isinstance(stream_sid, str) else None,
        raw=data,
    )

    if event == StreamEvent.START:
        custom_parameters = body.get("customParameters")
        frame.stream_sid = body.get("streamSid") or frame.stream_sid
        frame.call_sid = body.get("callSid")
        if isinstance(custom_parameters, dict):
            frame.custom_parameters = dict(custom_parameters)
    elif event == StreamEvent.MEDIA:
        frame.payload = body.get("payload")
    elif event == StreamEvent.STOP:
        frame.call_sid = body.get("callSid")

    return frame


def media_frame(stream_sid: str, payload: str) -> str:
    """Outbound audio frame played to the callee."""
    return json.dumps({"event": "media", "streamSid": stream_sid, "media": {"payload": payload}})


def clear_frame(stream_sid: str) -> str:
    """Drop any audio Twilio has buffered but not yet played."""
    return json.dumps({"event": "clear", "streamSid": stream_sid})
