"""Core types for the AI gateway: vendors, quota scopes, errors and DTOs."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class AiVendor(str, Enum):
    """Supported upstream generative-text vendors."""

    GEMINI = "gemini"
    YANDEXGPT = "yandexgpt"


class QuotaScope(str, Enum):
    """Which quota window rejected a call."""

    MINUTE = "minute"
    DAY = "day"


class ReviewTone(str, Enum):
    POSITIVE = "positive"
    MIXED = "mixed"
    CRITICAL = "critical"


class CategoryContentKind(str, Enum):
    DESCRIPTION = "description"
    SEO = "seo"


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class AiRateLimitExceeded(Exception):
    """The shared upstream quota is exhausted for the given window.

    Never retried internally; the route layer turns it into HTTP 429.
    """

    def __init__(self, scope: QuotaScope, retry_after_seconds: int = 0):
        self.scope = scope
        self.retry_after_seconds = retry_after_seconds
        if scope == QuotaScope.MINUTE:
            message = "AI rate limit exceeded (per minute). Please wait."
        else:
            message = "AI rate limit exceeded (per day). Please try tomorrow."
        super().__init__(message)


class AiNotConfigured(Exception):
    """No credentials are configured for the selected vendor."""


class AiUpstreamError(Exception):
    """The vendor call failed: HTTP error, timeout or safety block."""

    def __init__(self, message: str, vendor: AiVendor, error_code: str = ""):
        super().__init__(message)
        self.vendor = vendor
        self.error_code = error_code


# ---------------------------------------------------------------------------
# DTOs
# ---------------------------------------------------------------------------


@dataclass
class RateLimitStatus:
    """Remaining quota for the admin status endpoint."""

    minute_remaining: int
    day_remaining: int
    minute_reset_in_ms: int
    day_reset_in_ms: int

    def to_dict(self) -> dict:
        return {
            "minute_remaining": self.minute_remaining,
            "day_remaining": self.day_remaining,
            "minute_reset_in_ms": self.minute_reset_in_ms,
            "day_reset_in_ms": self.day_reset_in_ms,
        }


@dataclass
class CompletionRequest:
    """A single prompt for a vendor adapter."""

    user_prompt: str
    system_prompt: str = ""
    model: str = ""
    temperature: float = 0.6
    max_tokens: int = 2000


@dataclass
class ChatTurn:
    role: str  # "user" | "assistant"
    content: str


@dataclass
class CatalogProduct:
    """Catalog product passed as context to the chat assistant."""

    name: str
    price: float
