# Base exception class
from .base import SingleTableError

from .domain_exceptions import (
    BatchIncomplete,
    ConflictError,
    ConnectionError,
    InvalidIndexSpec,
    ItemNotFoundError,
    MissingRequiredField,
    NoMatchingIndex,
    NotFoundError,
    RetryableError,
    UnknownIndex,
    ValidationError,
    ValidationRejected,
)

__all__ = [
    # Base exception
    "SingleTableError",

    # Domain exceptions (alphabetically ordered)
    "BatchIncomplete",
    "ConflictError",
    "ConnectionError",
    "InvalidIndexSpec",
    "ItemNotFoundError",
    "MissingRequiredField",
    "NoMatchingIndex",
    "NotFoundError",
    "RetryableError",
    "UnknownIndex",
    "ValidationError",
    "ValidationRejected",
]
