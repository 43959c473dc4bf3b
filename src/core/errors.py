from __future__ import annotations


class CacheError(Exception):
    """Base error for the request cache."""


class ValidationError(CacheError):
    """Raised when a cache is misconfigured or called with invalid input."""


class NotFoundError(CacheError):
    """Raised when a requested resource or named cache is not found."""


class ExternalServiceError(CacheError):
    """Raised when the upstream API fails."""


class RequestAbortedError(CacheError):
    """Raised to every caller joined on a shared request that was aborted."""
