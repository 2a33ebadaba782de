"""Custom exception hierarchy for manifest analysis.

All analysis-specific exceptions inherit from ManifestAnalysisError,
enabling consistent error handling and structured error responses.

Exception hierarchy:
    ManifestAnalysisError (base)
    ├── ManifestParseError
    │   └── SchemaValidationError
    ├── DurationParseError
    ├── OpenEndedTimelineError
    ├── ManifestFetchError
    └── RetryableError

Structural differences between manifests are never raised: they are
reported as severity-tagged findings.
"""

from typing import Any


class ManifestAnalysisError(Exception):
    """Base exception for all analysis errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable error code for metrics/filtering
        details: Additional context as key-value pairs
    """

    def __init__(
        self,
        message: str,
        error_code: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize analysis error.

        Args:
            message: Human-readable error description
            error_code: Machine-readable error code (e.g., 'PARSE_ERROR')
            details: Additional context for debugging
        """
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for JSON serialization.

        Returns:
            Dictionary with error_code, error_message, and details.
            Note: Uses 'error_message' instead of 'message' to avoid conflicts
            with Python's logging module which reserves 'message' internally.
        """
        return {
            "error_code": self.error_code,
            "error_message": self.message,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.error_code!r}, {self.message!r})"


class ManifestParseError(ManifestAnalysisError):
    """Raised when a manifest document cannot be turned into a tree.

    This covers:
    - Empty documents
    - Malformed XML syntax
    - A root element other than MPD
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, "PARSE_ERROR", details)


class SchemaValidationError(ManifestParseError):
    """Raised when an MPD fails XSD schema validation."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, details)
        self.error_code = "SCHEMA_VALIDATION_ERROR"


class DurationParseError(ManifestAnalysisError):
    """Raised for a value that is not an ISO 8601 duration.

    The public duration parser never lets this escape; it is converted
    into a finding so processing continues.
    """

    def __init__(self, value: Any) -> None:
        super().__init__(
            f"Invalid ISO 8601 duration format: {value}",
            "DURATION_PARSE_ERROR",
            {"value": value},
        )


class OpenEndedTimelineError(ManifestAnalysisError):
    """Raised when a SegmentTimeline with r=-1 reaches the expander.

    Callers must check for open-ended repeats before expanding.
    """

    def __init__(self, entry_index: int) -> None:
        super().__init__(
            f"SegmentTimeline entry {entry_index} has an open-ended repeat",
            "OPEN_ENDED_TIMELINE",
            {"entry_index": entry_index},
        )


class ManifestFetchError(ManifestAnalysisError):
    """Raised when a manifest cannot be retrieved.

    This covers:
    - Unsupported URI schemes
    - Missing S3 objects
    - Non UTF-8 content
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, "MANIFEST_FETCH_ERROR", details)


class RetryableError(ManifestAnalysisError):
    """Raised for transient errors that should be retried."""

    def __init__(
        self,
        message: str,
        original_error: Exception | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize retryable error.

        Args:
            message: Error description
            original_error: The underlying exception that triggered this
            details: Additional context
        """
        error_details = details or {}
        if original_error:
            error_details["original_error"] = str(original_error)
            error_details["original_error_type"] = type(original_error).__name__

        super().__init__(message, "RETRYABLE_ERROR", error_details)
        self.original_error = original_error
