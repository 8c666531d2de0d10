"""
ElevenLabs Conversational AI message protocol.

Messages from the agent are decoded into a small tagged union. The
conversation id is not always in the same place, so all lookups go through
:func:`find_conversation_id`.
"""

import json
from dataclasses import dataclass, field
from typing import Any

# Known locations of the conversation id, checked in order
CONVERSATION_ID_PATHS: tuple[tuple[str, ...], ...] = (
    ("conversation_initiation_metadata_event", "conversation_id"),
    ("conversation_initiation_metadata", "conversation_id"),
    ("conversation_id",),
)


@dataclass(frozen=True)
class ConversationIdMatch:
    """Where a conversation id was found in a message."""

    value: str
    path: tuple[str, ...]


@dataclass
class AgentMessage:
    """Base for every decoded agent message."""

    raw: dict[str, Any] = field(default_factory=dict)


@dataclass
class ConversationMetadata(AgentMessage):
    conversation_id: str | None = None


@dataclass
class AgentAudio(AgentMessage):
    audio_base64: str = ""


@dataclass
class Interruption(AgentMessage):
    pass


@dataclass
class Ping(AgentMessage):
    event_id: Any = None


@dataclass
class AgentResponse(AgentMessage):
    text: str = ""


@dataclass
class UserTranscript(AgentMessage):
    text: str = ""


@dataclass
class UnknownMessage(AgentMessage):
    """Anything else; may still carry a conversation id."""

    message_type: str | None = None


def _lookup(data: Any, path: tuple[str, ...]) -> Any:
    for key in path:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


def _scan(data: Any, path: tuple[str, ...]) -> ConversationIdMatch | None:
    if isinstance(data, dict):
        for key, value in data.items():
            lowered = str(key).lower()
            if "conversation" in lowered and "id" in lowered and isinstance(value, str) and value:
                return ConversationIdMatch(value=value, path=(*path, str(key)))
        for key, value in data.items():
            match = _scan(value, (*path, str(key)))
            if match:
                return match
    elif isinstance(data, list):
        for index, item in enumerate(data):
            match = _scan(item, (*path, str(index)))
            if match:
                return match
    return None


def find_conversation_id(payload: dict[str, Any]) -> ConversationIdMatch | None:
    """Locate the conversation id in an agent message, if present."""
    for path in CONVERSATION_ID_PATHS:
        value = _lookup(payload, path)
        if isinstance(value, str) and value:
            return ConversationIdMatch(value=value, path=path)
    return _scan(payload, ())


def _section(data: dict[str, Any], key: str) -> dict[str, Any] | None:
    """Nested event object; empty when absent, None when not an object."""
    value = data.get(key)
    if value is None:
        return {}
    return value if isinstance(value, dict) else None


def decode_agent_message(raw: str | bytes) -> AgentMessage:
    """
    Decode one frame received from the agent socket.

    Anything with an unexpected shape decodes to ``UnknownMessage``.
    """
    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        return UnknownMessage()
    if not isinstance(data, dict):
        return UnknownMessage()

    message_type = data.get("type")

    if message_type == "conversation_initiation_metadata":
        match = find_conversation_id(data)
        return ConversationMetadata(raw=data, conversation_id=match.value if match else None)

    if message_type == "audio":
        audio_event = _section(data, "audio_event") or {}
        audio_chunk = _section(data, "audio") or {}
        audio = audio_event.get("audio_base_64") or audio_chunk.get("chunk")
        if isinstance(audio, str) and audio:
            return AgentAudio(raw=data, audio_base64=audio)
        return UnknownMessage(raw=data, message_type=message_type)

    if message_type == "interruption":
        return Interruption(raw=data)

    if message_type == "ping":
        event = _section(data, "ping_event")
        if event is None:
            return UnknownMessage(raw=data, message_type=message_type)
        return Ping(raw=data, event_id=event.get("event_id"))

    if message_type == "agent_response":
        event = _section(data, "agent_response_event")
        if event is None:
            return UnknownMessage(raw=data, message_type=message_type)
        return AgentResponse(raw=data, text=event.get("agent_response", ""))

    if message_type == "user_transcript":
        event = _section(data, "user_transcription_event")
        if event is None:
            return UnknownMessage(raw=data, message_type=message_type)
        return UserTranscript(raw=data, text=event.get("user_transcript", ""))

    return UnknownMessage(raw=data, message_type=message_type)


def user_audio_message(payload: str) -> str:
    """Forward a chunk of caller audio (base64) to the agent."""
    return json.dumps({"user_audio_chunk": payload})


def pong_message(event_id: Any) -> str:
    """Answer a keep-alive ping, echoing its event id."""
    return json.dumps({"type": "pong", "event_id": event_id})


def initiation_message(
    system_persona: str,
    first_message: str,
    knowledge_base_ids: list[str],
    dynamic_variables: dict[str, Any],
    voice_id: str | None = None,
) -> str:
    """
    Build the single configuration message sent right after connecting.

    Templates are sent as-is; ``{{first_name}}`` style placeholders are
    filled in by the provider from ``dynamic_variables``.
    """
    override: dict[str, Any] = {
        "agent": {
            "prompt": {
                "prompt": system_persona,
                "knowledge_base": [
                    {"type": "file", "id": doc_id} for doc_id in knowledge_base_ids
                ],
            },
            "first_message": first_message,
        },
    }
    if voice_id:
        override["tts"] = {"voice_id": voice_id}

    return json.dumps(
        {
            "type": "conversation_initiation_client_data",
            "conversation_config_override": override,
            "dynamic_variables": dynamic_variables,
        }
    )
