"""Error types for grid analysis."""

from __future__ import annotations


class GridmarkError(Exception):
    """Base exception for gridmark."""


class AddressError(GridmarkError, ValueError):
    """Raised for a malformed or out-of-range cell identifier."""


class ParseError(GridmarkError, ValueError):
    """Raised when a model response does not have the expected JSON shape."""

    def __init__(self, message: str, text: str = "") -> None:
        self.text = text
        super().__init__(message)


class ConfigError(GridmarkError, ValueError):
    """Raised for an unknown provider/model or missing credentials."""


class BackendError(GridmarkError):
    """Raised when a vision backend call fails (network, auth, rate limit)."""

    def __init__(self, provider: str, message: str, retryable: bool = False) -> None:
        self.provider = provider
        self.retryable = retryable
        super().__init__(f"[{provider}] {message}")
