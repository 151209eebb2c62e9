"""
Error Taxonomy
==============

Every enrichment failure is reduced to one of five kinds:

- timeout:             the call did not resolve before the deadline (re-enqueue)
- service_unavailable: the enrichment service is down or overloaded
- quota_exceeded:      the account ran out of quota/credits or is rate limited
- validation_error:    the service rejected the item (terminal for that item)
- unknown:             anything else (generic retry)

`classify_exception` maps transport and SDK exceptions onto these kinds so the
orchestrator never has to look at raw `httpx`/`openai` errors.
"""

from __future__ import annotations

import asyncio
import json
from typing import Literal

import httpx
import openai
from pydantic import ValidationError

ErrorKind = Literal[
    "timeout",
    "service_unavailable",
    "quota_exceeded",
    "validation_error",
    "unknown",
]

RECOVERABLE_KINDS: frozenset[str] = frozenset(
    {"timeout", "service_unavailable", "quota_exceeded", "unknown"}
)

REMEDIATION_HINTS: dict[str, str] = {
    "timeout": (
        "Optimization timed out. Complex products may take longer - "
        "try reducing the number of products being optimized simultaneously."
    ),
    "service_unavailable": (
        "The AI service may be busy. Please try again in a moment."
    ),
    "quota_exceeded": (
        "Insufficient quota. Please check your plan or wait for credits to reset."
    ),
    "validation_error": (
        "The AI service rejected this product. Check its title and description."
    ),
    "unknown": "Optimization failed. Please try again.",
}


def is_recoverable(kind: ErrorKind) -> bool:
    return kind in RECOVERABLE_KINDS


def remediation_hint(kind: ErrorKind) -> str:
    return REMEDIATION_HINTS.get(kind, REMEDIATION_HINTS["unknown"])


# ============================================================================
# EXCEPTIONS
# ============================================================================


class BulkyError(Exception):
    """Base class for all application errors."""


class EnrichmentError(BulkyError):
    """An enrichment call failed with a known error kind."""

    def __init__(self, kind: ErrorKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message


class CatalogError(BulkyError):
    """Base class for catalog read/write failures."""


class CatalogUnavailableError(CatalogError):
    """The catalog API could not be reached or answered with an error status."""


class CatalogWriteError(CatalogError):
    """The catalog refused an update (Shopify `userErrors`)."""

    def __init__(self, user_errors: list[str]):
        self.user_errors = list(user_errors)
        super().__init__(", ".join(self.user_errors) or "Catalog update failed")


class RateLimitExceeded(BulkyError):
    """Too many publish requests for a tenant in the current window."""

    def __init__(self, action: str, limit: int, retry_after: float):
        super().__init__(f"Rate limit exceeded for {action} ({limit} per window)")
        self.action = action
        self.limit = limit
        self.retry_after = retry_after


# ============================================================================
# CLASSIFICATION
# ============================================================================


def classify_status(status_code: int) -> ErrorKind:
    """Map an HTTP status code returned by the enrichment service."""
    if status_code in (408, 504):
        return "timeout"
    if status_code in (402, 429):
        return "quota_exceeded"
    if status_code >= 500:
        return "service_unavailable"
    if status_code in (400, 404, 413, 422):
        return "validation_error"
    return "unknown"


def classify_exception(exc: BaseException) -> ErrorKind:
    """Reduce any exception raised during an enrichment call to an ErrorKind."""
    if isinstance(exc, EnrichmentError):
        return exc.kind

    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return "timeout"

    # OpenAI SDK (also used for OpenAI-compatible gateways such as OpenRouter)
    if isinstance(exc, openai.APITimeoutError):
        return "timeout"
    if isinstance(exc, openai.APIConnectionError):
        return "service_unavailable"
    if isinstance(exc, openai.APIStatusError):
        return classify_status(exc.status_code)

    # Raw HTTP transport
    if isinstance(exc, httpx.TimeoutException):
        return "timeout"
    if isinstance(exc, httpx.HTTPStatusError):
        return classify_status(exc.response.status_code)
    if isinstance(exc, httpx.TransportError):
        return "service_unavailable"

    # Unusable response body
    if isinstance(exc, (json.JSONDecodeError, ValidationError)):
        return "validation_error"

    return "unknown"


def describe_exception(exc: BaseException) -> str:
    """Short, user-presentable description of an exception."""
    message = str(exc).strip()
    return message or type(exc).__name__
