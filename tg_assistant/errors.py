"""Exception taxonomy shared across the assistant.

Only the boundaries that talk to the outside world raise these; the reply
pipeline turns every one of them into a fixed user-facing string.
"""

from __future__ import annotations


class AssistantError(RuntimeError):
    """Base error for the assistant."""


class ConfigMissing(AssistantError, OSError):
    """A credential needed by one operation is not configured."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(
            f"Missing required configuration: {name}. "
            f"Set it in .env (local) or SSM Parameter Store /tg-assistant/{name} (AWS)."
        )


class TransportError(AssistantError):
    """DNS, connection or protocol failure before a response arrived."""


class RequestTimeout(TransportError, TimeoutError):
    """The request deadline fired before a response arrived."""


class AIUnavailable(AssistantError):
    """Every model endpoint failed for one call."""

    def __init__(self, last_error: Exception | None = None):
        self.last_error = last_error
        super().__init__(f"All model endpoints failed. Last error: {last_error}")


class Busy(AssistantError):
    """Admission rejected: the in-flight limit is reached."""


class TelegramSendError(AssistantError):
    """Telegram rejected an outbound call."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)
