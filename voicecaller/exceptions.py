"""Exceptions raised by the call-bridging core."""


class VoiceCallerError(Exception):
    """Base class for application errors."""


class ConfigurationError(VoiceCallerError):
    """Raised when provider credentials or public URLs are not configured."""

    def __init__(self, missing: list[str]):
        self.missing = missing
        super().__init__(f"Missing required configuration: {', '.join(missing)}")


class TelephonyError(VoiceCallerError):
    """Raised when the telephony provider rejects or fails a dial request."""


class AgentSessionError(VoiceCallerError):
    """Raised when a speech-agent session cannot be negotiated or opened."""


class SessionAlreadyRegisteredError(VoiceCallerError):
    """Raised when a second call session is registered for one stream."""

    def __init__(self, stream_sid: str):
        self.stream_sid = stream_sid
        super().__init__(f"Call session already registered for stream {stream_sid}")
