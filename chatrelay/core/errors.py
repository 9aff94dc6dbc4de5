"""Error taxonomy for the chat relay."""

from __future__ import annotations

from typing import Optional


class ChatRelayError(Exception):
    """Base error; ``code`` is stable, ``status_code`` is HTTP-like."""

    code = "CHAT_RELAY_ERROR"
    status_code = 500

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code


class EmptyMessageError(ChatRelayError):
    code = "EMPTY_MESSAGE"
    status_code = 400


class EmptyContentError(ChatRelayError):
    code = "EMPTY_CONTENT"
    status_code = 400


class UpstreamError(ChatRelayError):
    """The chat-completion call failed; the caller may retry the turn."""

    code = "UPSTREAM_ERROR"
    status_code = 502


class UpstreamTimeoutError(UpstreamError, TimeoutError):
    code = "TIMEOUT"
    status_code = 504


class InvalidCredentialsError(ChatRelayError):
    code = "INVALID_API_KEY"
    status_code = 401


class SummarizationError(ChatRelayError):
    """Internal and non-fatal: the turn proceeds with unsummarized history."""

    code = "SUMMARIZATION_FAILED"


class PersistenceError(ChatRelayError):
    """Internal and non-fatal: the in-memory copy stays authoritative."""

    code = "PERSISTENCE_FAILED"


class InvalidRoleError(ChatRelayError):
    code = "INVALID_ROLE"
    status_code = 400
