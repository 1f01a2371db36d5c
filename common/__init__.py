"""
Shared infrastructure for the retrieval and generation components:
error taxonomy, logging setup, retry with backoff and bounded concurrency.
"""

from .concurrency import BoundedWorkerPool, TaskOutcome, call_with_timeout
from .exceptions import (
    CompletionUnavailable,
    DegenerateVector,
    DimensionMismatch,
    EmbeddingUnavailable,
    EmptyIndex,
    IndexUnavailable,
    InvalidConfiguration,
    RetrievalError,
    ServiceUnavailableError,
    format_error_chain,
    is_retryable,
)
from .logging_config import get_logger, setup_logging
from .retry import RetryPolicy, retry_call

__all__ = [
    "BoundedWorkerPool",
    "TaskOutcome",
    "call_with_timeout",
    "RetrievalError",
    "InvalidConfiguration",
    "DimensionMismatch",
    "DegenerateVector",
    "EmptyIndex",
    "ServiceUnavailableError",
    "EmbeddingUnavailable",
    "CompletionUnavailable",
    "IndexUnavailable",
    "is_retryable",
    "format_error_chain",
    "setup_logging",
    "get_logger",
    "RetryPolicy",
    "retry_call",
]
