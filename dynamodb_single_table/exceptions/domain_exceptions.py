"""
Domain-Specific Exceptions for the single-table layer

This module consolidates every exception that extends the base
SingleTableError. They fall into four groups:

1. Data Validation Errors (rejected records, missing key fields)
2. Index Configuration and Resolution Errors
3. Batch Errors
4. Store Errors (mapped from botocore ClientError)
"""

from typing import Any, Dict, List, Optional, Sequence, Tuple

from .base import SingleTableError


# =============================================================================
# Data Validation Errors
# =============================================================================

class ValidationError(SingleTableError):
    """Raised when data validation fails.

    Used for:
    - Items read back from the table that do not fit their model
    - DynamoDB ValidationException responses
    """

    def __init__(self, message: str, errors: Optional[Any] = None, original_error: Optional[Exception] = None):
        """Initialize validation error.

        Args:
            message: Human-readable error message
            errors: Field-level validation errors
            original_error: The original exception that caused this error
        """
        self.errors = errors or {}
        context = {
            'validation_errors': self.errors
        }
        super().__init__(message, original_error, context)


class ValidationRejected(ValidationError):
    """Raised when the schema rejects a record before it is written."""

    def __init__(self, type_name: str, errors: Optional[List[Dict[str, Any]]] = None, original_error: Optional[Exception] = None):
        self.type_name = type_name
        message = f"{type_name} rejected by schema validation"
        super().__init__(message, errors or [], original_error)


class MissingRequiredField(ValidationError):
    """Raised when a partition key field is absent from the supplied fields.

    This is a caller bug and is never retried.
    """

    def __init__(self, field_name: str, index_tag: str, provided_fields: Sequence[str]):
        self.field_name = field_name
        self.index_tag = index_tag
        self.provided_fields = list(provided_fields)
        message = (
            f"Missing required key field '{field_name}' for index '{index_tag}', "
            f"provided fields: {', '.join(self.provided_fields) or '(none)'}"
        )
        super().__init__(message, {field_name: 'required'})


# =============================================================================
# Index Configuration and Resolution Errors
# =============================================================================

class InvalidIndexSpec(SingleTableError):
    """Raised at construction time when an index configuration is unusable."""

    def __init__(self, message: str, tag: Optional[str] = None):
        self.tag = tag
        context = {}
        if tag:
            context['tag'] = tag
        super().__init__(message, None, context)


class UnknownIndex(SingleTableError):
    """Raised when a where clause names an index tag that does not exist."""

    def __init__(self, tag: str, valid_tags: Sequence[str]):
        self.tag = tag
        self.valid_tags = list(valid_tags)
        message = (
            f'The index "{tag}" does not exist, the following are valid indexes: '
            f"{','.join(self.valid_tags)}"
        )
        super().__init__(message)


class NoMatchingIndex(SingleTableError):
    """Raised when no configured index can satisfy a where clause."""

    def __init__(self, type_name: str, args: Sequence[str], sort_by: Optional[str] = None):
        self.type_name = type_name
        self.args = list(args)
        self.sort_by = sort_by
        context: Dict[str, Any] = {'args': self.args}
        if sort_by:
            context['sort_by'] = sort_by
        super().__init__(f"There isn't an index configured on {type_name} for this query", None, context)


# =============================================================================
# Batch Errors
# =============================================================================

class BatchIncomplete(SingleTableError):
    """Raised when unprocessed batch work remains after the retry ceiling.

    ``unresolved`` lists ``(table_name, key)`` pairs so the caller may resubmit.
    """

    def __init__(self, operation: str, unresolved: List[Tuple[str, Dict[str, Any]]], attempts: int):
        self.operation = operation
        self.unresolved = unresolved
        self.attempts = attempts
        message = f"{operation} left {len(unresolved)} items unprocessed after {attempts} attempts"
        super().__init__(message, None, {'unresolved_count': len(unresolved)})


# =============================================================================
# Store Errors
# =============================================================================

class ItemNotFoundError(SingleTableError):
    """Raised when a specific item is not found in DynamoDB.

    Used for:
    - update() on a missing item without upsert
    - ResourceNotFoundException responses that identify a resource
    """

    def __init__(self, table_name: str, key: dict, original_error: Optional[Exception] = None):
        """Initialize item not found error.

        Args:
            table_name: Name of the DynamoDB table
            key: The key that was not found
            original_error: The original exception that caused this error
        """
        self.table_name = table_name
        self.key = key
        message = f"Item not found in table '{table_name}' with key: {key}"
        context = {
            'table_name': table_name,
            'key': key
        }
        super().__init__(message, original_error, context)


class NotFoundError(SingleTableError):
    """Raised when a DynamoDB resource (table, index) is not found."""

    def __init__(self, message: str, resource_type: Optional[str] = None, resource_name: Optional[str] = None, original_error: Optional[Exception] = None):
        self.resource_type = resource_type
        self.resource_name = resource_name
        context = {}
        if resource_type:
            context['resource_type'] = resource_type
        if resource_name:
            context['resource_name'] = resource_name
        super().__init__(message, original_error, context)


class ConflictError(SingleTableError):
    """Raised when a conditional operation fails due to existing data."""

    def __init__(self, message: str, resource_id: Optional[str] = None, original_error: Optional[Exception] = None):
        self.resource_id = resource_id
        context = {}
        if resource_id:
            context['resource_id'] = resource_id
        super().__init__(message, original_error, context)


class ConnectionError(SingleTableError):
    """Raised when connection to DynamoDB fails.

    Used for:
    - Network connectivity issues
    - Authentication/authorization failures
    - Unknown service errors
    """

    def __init__(self, message: str, original_error: Optional[Exception] = None, context: Optional[Dict[str, Any]] = None):
        super().__init__(message, original_error, context)


class RetryableError(SingleTableError):
    """Raised when an operation fails due to throttling or temporary unavailability."""

    def __init__(self, message: str, retry_after_seconds: Optional[int] = None, original_error: Optional[Exception] = None):
        self.retry_after_seconds = retry_after_seconds
        context = {}
        if retry_after_seconds:
            context['retry_after_seconds'] = retry_after_seconds
        super().__init__(message, original_error, context)
