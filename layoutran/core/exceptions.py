"""
Exception hierarchy for layoutran.

Extraction and generation errors are fatal to a document's pipeline run and
carry the format and stage that failed. Translation errors are transient and
absorbed per block by the orchestrator.
"""

from __future__ import annotations
from typing import Optional, Dict, Any, List


class LayoutranError(Exception):
    """Base exception for all layoutran errors."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = False,
        suggestion: Optional[str] = None
    ):
        """
        Initialize error.

        Args:
            message: Human-readable error message
            details: Additional error details
            recoverable: Whether error can be recovered from
            suggestion: Suggested fix or workaround
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable
        self.suggestion = suggestion

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for JSON serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
            "suggestion": self.suggestion
        }

    def __str__(self) -> str:
        result = self.message
        if self.suggestion:
            result += f"\nSuggestion: {self.suggestion}"
        return result


class ExtractionError(LayoutranError):
    """Raised when a source document cannot be turned into a layout."""

    def __init__(
        self,
        message: str,
        source_format: Optional[str] = None,
        page: Optional[int] = None,
        original_error: Optional[Exception] = None
    ):
        details = {
            "stage": "extraction",
            "source_format": source_format,
            "page": page,
            "original_error": str(original_error) if original_error else None
        }
        suggestion = None
        if original_error is None and "no content" in message.lower():
            suggestion = "The document may be scanned; enable the OCR fallback (--ocr)"
        super().__init__(message, details, recoverable=False, suggestion=suggestion)
        self.stage = "extraction"
        self.source_format = source_format
        self.page = page
        self.original_error = original_error


class RateLimitExceeded(LayoutranError):
    """Raised when the token bucket or the provider refuses a call; retry later."""

    def __init__(self, message: str = "Rate limit exceeded", retry_after: float = 0.0,
                 provider: Optional[str] = None):
        details = {"retry_after": retry_after, "provider": provider}
        super().__init__(message, details, recoverable=True,
                         suggestion=f"Retry after {retry_after:.1f}s")
        self.retry_after = retry_after
        self.provider = provider


class TranslationProviderError(LayoutranError):
    """Raised when a translation backend fails."""

    def __init__(
        self,
        provider: str,
        message: str,
        retryable: bool = True,
        original_error: Optional[Exception] = None
    ):
        full_message = f"Backend '{provider}' failed: {message}"
        details = {
            "provider": provider,
            "retryable": retryable,
            "original_error": str(original_error) if original_error else None
        }
        super().__init__(full_message, details, recoverable=retryable)
        self.provider = provider
        self.retryable = retryable
        self.original_error = original_error


class PlaceholderMismatchError(LayoutranError):
    """Raised when protected tokens cannot be restored exactly."""

    def __init__(
        self,
        message: str,
        missing: Optional[List[str]] = None,
        unexpected: Optional[List[str]] = None
    ):
        details = {
            "missing": missing or [],
            "unexpected": unexpected or []
        }
        super().__init__(message, details, recoverable=False,
                         suggestion="The provider altered placeholder tokens; the block keeps its source text")
        self.missing = missing or []
        self.unexpected = unexpected or []


class GenerationError(LayoutranError):
    """Raised when an output document cannot be produced."""

    def __init__(
        self,
        message: str,
        target_format: Optional[str] = None,
        block_id: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        details = {
            "stage": "generation",
            "target_format": target_format,
            "block_id": block_id,
            "original_error": str(original_error) if original_error else None
        }
        super().__init__(message, details, recoverable=False)
        self.stage = "generation"
        self.target_format = target_format
        self.block_id = block_id
        self.original_error = original_error


class ConfigurationError(LayoutranError):
    """Raised when configuration is invalid."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        invalid_value: Optional[Any] = None,
        valid_values: Optional[List[Any]] = None
    ):
        details = {
            "config_key": config_key,
            "invalid_value": invalid_value,
            "valid_values": valid_values
        }

        suggestion = None
        if config_key and valid_values:
            suggestion = f"Valid values for {config_key}: {', '.join(map(str, valid_values))}"
        elif config_key:
            suggestion = f"Check configuration for '{config_key}'"

        super().__init__(message, details, recoverable=True, suggestion=suggestion)
        self.config_key = config_key
        self.invalid_value = invalid_value
        self.valid_values = valid_values


class CacheError(LayoutranError):
    """Raised when cache operations fail."""

    def __init__(
        self,
        message: str,
        cache_type: Optional[str] = None,
        operation: Optional[str] = None
    ):
        details = {
            "cache_type": cache_type,
            "operation": operation
        }
        suggestion = (
            "Cache errors are non-fatal. The system will continue without caching.\n"
            "To fix: Check disk space and permissions for cache directory."
        )
        super().__init__(message, details, recoverable=True, suggestion=suggestion)
        self.cache_type = cache_type
        self.operation = operation
