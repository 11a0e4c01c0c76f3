"""Errors raised while talking to a chat-completions endpoint."""

from __future__ import annotations


class ChatError(Exception):
    """Structured error from a single chat request."""

    code = "chat_error"

    def __init__(self, message: str, code: str = ""):
        super().__init__(message)
        if code:
            self.code = code


class TransportFailure(ChatError):
    """Network or HTTP-level failure (connection refused, timeout, reset)."""

    code = "transport_failure"


class ApiRejection(ChatError):
    """The remote service answered with a non-success status."""

    code = "api_rejection"

    def __init__(self, description: str, status: int | None = None):
        self.status = status
        self.description = description
        message = f"{status}: {description}" if status is not None else description
        super().__init__(f"API error: {message}")


class DecodeFailure(ChatError):
    """A response body or stream event could not be decoded."""

    code = "decode_failure"


class ProtocolViolation(ChatError):
    """A stream event arrived that is not valid in the current state."""

    code = "protocol_violation"


class Refusal(ChatError):
    """The model explicitly declined to answer."""

    code = "refusal"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f'Model refused the request: "{reason}"')


class MissingField(ChatError):
    """A structured response lacks a required field."""

    code = "missing_field"

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Response is missing `{field}`")


class TokenizerUnavailable(ChatError):
    """The tokenizer encoding could not be loaded."""

    code = "tokenizer_unavailable"


class ConfigError(ChatError):
    """Invalid combination of configuration values."""

    code = "config_error"
