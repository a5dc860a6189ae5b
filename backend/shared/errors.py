"""
Error taxonomy for upstream access.

UpstreamError: non-2xx response or transport failure from a provider.
DecodeError: provider answered, but the body is not the JSON shape we expect.
Anything else is treated as an internal error by the API layer.
"""
from __future__ import annotations

from typing import Optional


class LinewatchError(Exception):
    """Base class for errors raised by this service."""


class UpstreamError(LinewatchError):
    """Raised when a provider call fails or returns a non-success status."""

    def __init__(self, provider: str, detail: str, status: Optional[int] = None) -> None:
        self.provider = provider
        self.detail = detail
        self.status = status
        super().__init__(f"{provider} upstream error (status={status}): {detail}")


class DecodeError(UpstreamError):
    """Raised when a provider payload cannot be decoded into the expected shape."""

    def __init__(self, provider: str, detail: str) -> None:
        super().__init__(provider, detail, status=None)


def redact(text: str, *secrets: str) -> str:
    """Replace every non-empty secret in text with '***'."""
    for secret in secrets:
        if secret:
            text = text.replace(secret, "***")
    return text


def truncate(text: str, max_len: int) -> str:
    return text[:max_len] if max_len > 0 else text
