"""Core exception types shared across layers."""

from __future__ import annotations

from http import HTTPStatus

LLM_FAILURE_MESSAGE = "Sorry, something went wrong while preparing a response. Please try again."
RATE_LIMIT_MESSAGE = "Rate limits exceeded, please try again later."
PAYMENT_REQUIRED_MESSAGE = "Payment required, please add funds."


class StudyEngineError(Exception):
    """Base class for errors raised by the study engine."""


class LLMGatewayError(StudyEngineError):
    """Raised when the language model cannot produce a result.

    ``user_message`` is safe to show to an end user; the exception text may
    carry upstream details and is only logged.
    """

    status_code: int = HTTPStatus.BAD_GATEWAY
    user_message: str = LLM_FAILURE_MESSAGE

    def __init__(self, detail: str = "", *, status_code: int | None = None) -> None:
        super().__init__(detail or self.user_message)
        if status_code is not None:
            self.status_code = status_code


class RateLimitedError(LLMGatewayError):
    """The model provider rejected the call with a rate limit (429)."""

    status_code = HTTPStatus.TOO_MANY_REQUESTS
    user_message = RATE_LIMIT_MESSAGE


class PaymentRequiredError(LLMGatewayError):
    """The model provider account has run out of credit (402)."""

    status_code = HTTPStatus.PAYMENT_REQUIRED
    user_message = PAYMENT_REQUIRED_MESSAGE


class LLMTransportError(LLMGatewayError):
    """Network or protocol failure talking to the model provider."""


class NoteValidationError(StudyEngineError):
    """Raised when a note request is missing a required field."""


class NoteNotFoundError(StudyEngineError):
    """Raised when a note does not exist for the requesting device."""


class ConversationNotFoundError(StudyEngineError):
    """Raised when a conversation does not exist for the requesting device."""


class ReplayCancelledError(StudyEngineError):
    """Raised inside a replay that a newer replay has superseded."""


__all__ = [
    "LLM_FAILURE_MESSAGE",
    "PAYMENT_REQUIRED_MESSAGE",
    "RATE_LIMIT_MESSAGE",
    "StudyEngineError",
    "LLMGatewayError",
    "RateLimitedError",
    "PaymentRequiredError",
    "LLMTransportError",
    "NoteValidationError",
    "NoteNotFoundError",
    "ConversationNotFoundError",
    "ReplayCancelledError",
]
