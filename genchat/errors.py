"""
Classified provider errors.

Every provider failure is mapped onto a small fixed taxonomy by matching known
substrings in the error text. The classified error carries a localized message
that names the operation that failed, ready to be shown in a transcript.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Optional

from genchat.globals import log_exception
from genchat.prompts import DEFAULT_LANGUAGE


class ErrorKind(str, Enum):
    BILLING_UNAVAILABLE = "billing_unavailable"
    INVALID_CREDENTIAL = "invalid_credential"
    QUOTA_EXCEEDED = "quota_exceeded"
    UNKNOWN = "unknown"


class ErrorContext(str, Enum):
    CHAT = "chat"
    IMAGE = "image"
    VIDEO = "video"


class ClassifiedError(Exception):
    """Base class for provider failures that went through classification."""

    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(
        self,
        message: str,
        context: ErrorContext,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.message = message
        self.context = context
        self.cause = cause


class BillingUnavailableError(ClassifiedError):
    """The feature needs a paid tier. Downgrades the feature for good."""

    kind = ErrorKind.BILLING_UNAVAILABLE


class InvalidCredentialError(ClassifiedError):
    """The access credential is wrong; the user has to reconfigure it."""

    kind = ErrorKind.INVALID_CREDENTIAL


class QuotaExceededError(ClassifiedError):
    """Rate or usage limit hit. Safe to retry later."""

    kind = ErrorKind.QUOTA_EXCEEDED


class UnknownProviderError(ClassifiedError):
    kind = ErrorKind.UNKNOWN


# Substrings the provider is known to put into its error messages
BILLING_PATTERN = "billed users"
INVALID_KEY_PATTERN = "api key not valid"
QUOTA_PATTERN = "quota"

_CONTEXT_LABELS = {
    "pt-BR": {
        ErrorContext.CHAT: "resposta do chat",
        ErrorContext.IMAGE: "geração de imagem",
        ErrorContext.VIDEO: "geração de vídeo",
    },
    "en-US": {
        ErrorContext.CHAT: "chat reply",
        ErrorContext.IMAGE: "image generation",
        ErrorContext.VIDEO: "video generation",
    },
}

_FEATURE_NAMES = {
    "pt-BR": {
        ErrorContext.IMAGE: "geração de imagens",
        ErrorContext.VIDEO: "geração de vídeo",
        ErrorContext.CHAT: "esta funcionalidade",
    },
    "en-US": {
        ErrorContext.IMAGE: "Image generation",
        ErrorContext.VIDEO: "Video generation",
        ErrorContext.CHAT: "This feature",
    },
}

_MESSAGES = {
    "pt-BR": {
        ErrorKind.BILLING_UNAVAILABLE: (
            "A {feature} está indisponível. A API do Google requer que o "
            "faturamento esteja ativado para este recurso."
        ),
        ErrorKind.INVALID_CREDENTIAL: (
            "Sua chave de API é inválida. Por favor, verifique-a nas "
            "configurações e tente novamente."
        ),
        ErrorKind.QUOTA_EXCEEDED: (
            "Você atingiu sua cota de uso da API. Por favor, verifique seu plano "
            "ou tente novamente mais tarde."
        ),
        ErrorKind.UNKNOWN: (
            "Desculpe, ocorreu um erro inesperado durante a {label}. "
            "Por favor, tente novamente."
        ),
    },
    "en-US": {
        ErrorKind.BILLING_UNAVAILABLE: (
            "{feature} is unavailable. The Google API requires billing to be "
            "enabled for this feature."
        ),
        ErrorKind.INVALID_CREDENTIAL: (
            "Your API key is invalid. Please check it in the settings and try again."
        ),
        ErrorKind.QUOTA_EXCEEDED: (
            "You have reached your API usage quota. Please check your plan or "
            "try again later."
        ),
        ErrorKind.UNKNOWN: (
            "Sorry, an unexpected error occurred during the {label}. "
            "Please try again."
        ),
    },
}

_ERROR_TYPES = {
    ErrorKind.BILLING_UNAVAILABLE: BillingUnavailableError,
    ErrorKind.INVALID_CREDENTIAL: InvalidCredentialError,
    ErrorKind.QUOTA_EXCEEDED: QuotaExceededError,
    ErrorKind.UNKNOWN: UnknownProviderError,
}


def _nested_message(body: Any) -> str:
    """Digs the message out of `{"error": {"message": ...}}` shaped bodies."""
    if isinstance(body, list) and body:
        body = body[0]
    if not isinstance(body, dict):
        return ""
    inner = body.get("error")
    if isinstance(inner, dict) and inner.get("message"):
        return str(inner["message"])
    return ""


def extract_message(error: Any) -> str:
    """Best-effort message extraction. Only assumes the error has a message."""
    if isinstance(error, str):
        return error
    if isinstance(error, dict):
        return _nested_message(error) or str(error.get("message") or "")
    nested = _nested_message(getattr(error, "body", None))
    if nested:
        return nested
    message = getattr(error, "message", None)
    if message:
        return str(message)
    return str(error)


def match_kind(message: str) -> ErrorKind:
    lowered = message.lower()
    if BILLING_PATTERN in lowered:
        return ErrorKind.BILLING_UNAVAILABLE
    if INVALID_KEY_PATTERN in lowered:
        return ErrorKind.INVALID_CREDENTIAL
    if QUOTA_PATTERN in lowered:
        return ErrorKind.QUOTA_EXCEEDED
    return ErrorKind.UNKNOWN


def classify_error(
    error: Any, context: ErrorContext, language: str = DEFAULT_LANGUAGE
) -> ClassifiedError:
    """Maps a raw provider error onto the classified taxonomy."""
    if isinstance(error, ClassifiedError):
        return error
    if language not in _MESSAGES:
        language = DEFAULT_LANGUAGE

    label = _CONTEXT_LABELS[language][context]
    if isinstance(error, BaseException):
        log_exception(error, f"Error during {label}")
    else:
        logging.error(f"Error during {label}: {error!r}")

    kind = match_kind(extract_message(error))
    message = _MESSAGES[language][kind].format(
        label=label, feature=_FEATURE_NAMES[language][context]
    )
    cause = error if isinstance(error, BaseException) else None
    return _ERROR_TYPES[kind](message, context, cause)


class GenerationCancelled(Exception):
    """Raised when a caller-supplied cancellation event stops a generation."""
