from __future__ import annotations

import re
from dataclasses import dataclass


class GatewayError(Exception):
    """Base class for routing and registry failures."""


class AdapterCallError(GatewayError):
    """A single adapter invocation failed (transport, auth or malformed body)."""

    def __init__(self, provider: str, message: str, *, status_code: int | None = None) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.status_code = status_code


class AllProvidersFailedError(GatewayError):
    """Every candidate in the fallback order failed for a request kind."""

    def __init__(self, kind: str, original_error: str, attempted: list[str]) -> None:
        super().__init__(f"All services failed for {kind}. Original error: {original_error}")
        self.kind = kind
        self.original_error = original_error
        self.attempted = list(attempted)


class UnknownRequestKindError(GatewayError):
    def __init__(self, kind: str) -> None:
        super().__init__(f"Unknown request type: {kind}")
        self.kind = kind


class InvalidRequestOptionsError(GatewayError, ValueError):
    """A caller-supplied generation option could not be applied; raised before any adapter is tried."""

    def __init__(self, option: str, value: object) -> None:
        super().__init__(f"invalid value for option {option!r}: {value!r}")
        self.option = option
        self.value = value


class UnregisteredProviderError(GatewayError):
    def __init__(self, name: str) -> None:
        super().__init__(f"provider not registered: {name}")
        self.name = name


class DuplicateProviderError(GatewayError):
    def __init__(self, name: str) -> None:
        super().__init__(f"provider already registered: {name}")
        self.name = name


class ProviderNotFoundError(GatewayError, KeyError):
    def __init__(self, name: str) -> None:
        super().__init__(f"provider not found: {name}")
        self.name = name

    def __str__(self) -> str:
        return str(self.args[0])


_STATUS_RE = re.compile(r"\b([45]\d\d)\b")
_TRANSIENT_HINTS = ("timeout", "timed out", "temporar", "connection", "reset", "unavailable", "rate limit")
_PERMANENT_HINTS = ("auth", "unauthorized", "forbidden", "badrequest", "invalid api key", "permission")


@dataclass(slots=True)
class ErrorInfo:
    category: str
    component: str
    error_type: str
    message_signature: str
    retryable: bool
    http_status: int | None = None


def _normalize_message(message: str, max_len: int = 180) -> str:
    msg = message.lower()
    msg = re.sub(r"\s+", " ", msg)
    msg = re.sub(r"\d+", "#", msg)
    return msg.strip()[:max_len]


def classify_error(exc: Exception, *, category: str, component: str) -> ErrorInfo:
    message = str(exc)
    signature = _normalize_message(message)
    haystack = f"{exc.__class__.__name__.lower()} {signature}"

    status = getattr(exc, "status_code", None)
    if status is None:
        m = _STATUS_RE.search(message)
        status = int(m.group(1)) if m else None

    if isinstance(exc, TimeoutError) or any(h in haystack for h in _TRANSIENT_HINTS):
        retryable = True
    else:
        retryable = not any(h in haystack for h in _PERMANENT_HINTS)
    # 4xx other than 408/429 is permanent.
    if status is not None and 400 <= status < 500 and status not in (408, 429):
        retryable = False

    return ErrorInfo(
        category=category,
        component=component,
        error_type=exc.__class__.__name__,
        message_signature=signature,
        retryable=retryable,
        http_status=status,
    )


def compact_error_summary(exc: Exception, max_len: int = 220) -> str:
    msg = re.sub(r"\s+", " ", str(exc)).strip()[:max_len]
    return f"{exc.__class__.__name__}: {msg}"
