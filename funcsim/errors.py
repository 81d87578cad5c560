"""
Error types for the similarity engine.

Configuration problems are raised eagerly at construction time. Comparison
failures are collected by the scheduler and handed back to the caller as a
single aggregate error together with the partial results.
"""

from typing import Any, Dict, List, Optional


class FuncSimError(Exception):
    """
    Base exception for all similarity-engine errors.

    Carries a structured ``details`` dictionary for reporting.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """
        Initialize the error.

        Args:
            message: Error message
            details: Optional detailed error context
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(FuncSimError):
    """Raised when weights, limits or optimizer parameters are invalid."""

    def __init__(self, message: str,
                 field_name: Optional[str] = None,
                 value: Any = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.field_name = field_name
        self.value = value

        self.details.update({
            'field': field_name,
            'value': value
        })


class ParseError(FuncSimError):
    """Raised when a source file cannot be read or parsed."""

    def __init__(self, message: str,
                 file_path: Optional[str] = None,
                 line_number: Optional[int] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.file_path = file_path
        self.line_number = line_number

        self.details.update({
            'file_path': file_path,
            'line_number': line_number
        })


class ComparisonError(FuncSimError):
    """
    A single pairwise comparison failed.

    Workers wrap the underlying exception so the coordinator can report
    which pair was affected.
    """

    def __init__(self, message: str,
                 index_a: int,
                 index_b: int,
                 cause: Optional[BaseException] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.index_a = index_a
        self.index_b = index_b
        self.cause = cause

        self.details.update({
            'index_a': index_a,
            'index_b': index_b,
            'cause': repr(cause) if cause is not None else None
        })


class ComparisonRunError(FuncSimError):
    """
    Aggregate error for a comparison run.

    Returned, not raised, by the scheduler alongside the matches that did
    complete.
    """

    def __init__(self, failed: int,
                 total: int,
                 skipped: int = 0,
                 errors: Optional[List[ComparisonError]] = None,
                 details: Optional[Dict[str, Any]] = None):
        message = f"encountered {failed} errors during similarity calculation"
        if skipped:
            message += f" ({skipped} comparisons skipped)"
        super().__init__(message, details)
        self.failed = failed
        self.skipped = skipped
        self.total = total
        self.errors = errors or []

        self.details.update({
            'failed': failed,
            'skipped': skipped,
            'total': total
        })
