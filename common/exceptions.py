"""
Custom Exceptions for the Retrieval Pipeline.

This module defines a hierarchy of exceptions for precise error handling
across chunking, embedding, vector indexing and answer composition.

Exception Hierarchy:
    RetrievalError (base)
    ├── InvalidConfiguration
    ├── DimensionMismatch
    ├── DegenerateVector
    ├── EmptyIndex
    └── ServiceUnavailableError
        ├── EmbeddingUnavailable
        ├── CompletionUnavailable
        └── IndexUnavailable

Usage:
    from common.exceptions import (
        RetrievalError,
        DimensionMismatch,
        IndexUnavailable,
    )

    try:
        result = index.query(vector, top_k=5)
    except DimensionMismatch as e:
        print(f"Expected {e.expected} dimensions, got {e.actual}")
    except IndexUnavailable as e:
        print(f"Vector index down (timed out: {e.timed_out})")
    except RetrievalError as e:
        print(f"Retrieval failed: {e}")
"""

from __future__ import annotations

from typing import Optional


# =============================================================================
# BASE EXCEPTION
# =============================================================================


class RetrievalError(Exception):
    """
    Base exception for all retrieval-related errors.

    Attributes:
        message: Human-readable error description
        details: Additional technical details (optional)
    """

    def __init__(
        self,
        message: str = "A retrieval error occurred",
        details: Optional[str] = None,
    ):
        self.message = message
        self.details = details

        full_message = message
        if details:
            full_message = f"{message} | Details: {details}"

        super().__init__(full_message)


# =============================================================================
# CALLER ERRORS
# =============================================================================


class InvalidConfiguration(RetrievalError, ValueError):
    """
    Raised for invalid chunking or query parameters.

    This is a caller bug and is never retried.
    """

    def __init__(self, message: str = "Invalid configuration", details: Optional[str] = None):
        super().__init__(message, details)


class DimensionMismatch(RetrievalError, ValueError):
    """
    Raised when vectors of different lengths meet in one index or comparison.

    Usually signals that records were embedded with a different model
    than the one now in use.

    Attributes:
        expected: Dimension established by the index (or left operand)
        actual: Dimension of the offending vector
        record_id: Offending record ID, if known
    """

    def __init__(
        self,
        expected: int,
        actual: int,
        record_id: Optional[str] = None,
    ):
        self.expected = expected
        self.actual = actual
        self.record_id = record_id
        msg = f"Vector dimension mismatch: expected {expected}, got {actual}"
        if record_id is not None:
            msg = f"{msg} (record '{record_id}')"
        super().__init__(msg)


class DegenerateVector(RetrievalError, ValueError):
    """
    Raised when a zero-norm vector takes part in a cosine comparison.

    Cosine similarity is undefined for such vectors.
    """

    def __init__(self, record_id: Optional[str] = None):
        self.record_id = record_id
        msg = "Cosine similarity is undefined for a zero-norm vector"
        if record_id is not None:
            msg = f"{msg} (record '{record_id}')"
        super().__init__(msg)


class EmptyIndex(RetrievalError):
    """Raised by a query against an index without records (when configured to raise)."""

    def __init__(self, message: str = "Vector index contains no records"):
        super().__init__(message)


# =============================================================================
# EXTERNAL SERVICE ERRORS
# =============================================================================


class ServiceUnavailableError(RetrievalError):
    """
    Base class for failures of external collaborators.

    Wraps SDK/transport errors so callers only branch on our types.

    Attributes:
        service: Name of the failing collaborator (e.g. "ollama", "chroma")
        timed_out: True if the call exceeded its timeout
        original_error: The underlying exception
    """

    default_message = "External service unavailable"

    def __init__(
        self,
        message: Optional[str] = None,
        service: Optional[str] = None,
        timed_out: bool = False,
        original_error: Optional[Exception] = None,
    ):
        self.service = service
        self.timed_out = timed_out
        self.original_error = original_error

        msg = message or self.default_message
        if service:
            msg = f"{msg} [{service}]"
        if timed_out:
            msg = f"{msg} (timed out)"

        details = str(original_error) if original_error else None
        super().__init__(msg, details)


class EmbeddingUnavailable(ServiceUnavailableError):
    """Raised when the embedding model cannot produce a vector."""

    default_message = "Embedding service unavailable"


class CompletionUnavailable(ServiceUnavailableError):
    """Raised when the chat-completion model cannot produce an answer."""

    default_message = "Completion service unavailable"


class IndexUnavailable(ServiceUnavailableError):
    """Raised when the remote vector index rejects or fails a call."""

    default_message = "Vector index unavailable"


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================


def is_retryable(error: Exception) -> bool:
    """
    Check if an error is potentially recoverable by retrying.

    Returns True for external-service failures (including timeouts),
    False for caller errors and data errors.
    """
    return isinstance(error, ServiceUnavailableError)


def format_error_chain(error: Exception) -> str:
    """
    Format an exception and its chain for logging.

    Returns a multi-line string showing the error hierarchy.
    """
    lines = []
    current = error
    depth = 0

    while current is not None:
        prefix = "  " * depth + ("└─ " if depth > 0 else "")
        lines.append(f"{prefix}{type(current).__name__}: {current}")

        if getattr(current, "original_error", None):
            current = current.original_error
            depth += 1
        elif current.__cause__:
            current = current.__cause__
            depth += 1
        else:
            break

    return "\n".join(lines)
