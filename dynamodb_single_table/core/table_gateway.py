"""
Thin DynamoDB Table Gateway

This module is the only place that talks to boto3. It exposes the store
primitives the single-table layer needs, for any table of one DynamoDB
endpoint:

- get_item / put_item / delete_item
- query (raw pass-through)
- batch_get_item / batch_write_item (raw responses, so callers can see
  UnprocessedKeys / UnprocessedItems)
- describe_table / create_table / update_table for provisioning

Every botocore ClientError is mapped to a domain exception by
``map_dynamodb_error``; nothing is swallowed.

A gateway is created per process (or per test) and injected into each
Repository. It is never a module-level singleton.
"""

import logging
from typing import Any, Dict, List, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from ..config import DynamoDBConfig
from ..exceptions import (
    ConflictError,
    ConnectionError,
    ItemNotFoundError,
    NotFoundError,
    RetryableError,
    ValidationError,
)
from ..utils import build_projection_expression

logger = logging.getLogger(__name__)

PACKAGE_LOGGER = "dynamodb_single_table"

THROTTLING_ERROR_CODES = (
    'ProvisionedThroughputExceededException', 'RequestLimitExceeded',
    'ThrottlingException', 'TooManyRequestsException',
)
UNAVAILABLE_ERROR_CODES = (
    'InternalServerError', 'ServiceUnavailable', 'ServiceUnavailableException',
    'RequestTimeoutException',
)


def map_dynamodb_error(
    error: ClientError,
    operation: str,
    table_name: str,
    resource_id: Optional[str] = None
) -> Exception:
    """Map DynamoDB ClientError to domain-specific exceptions.

    Args:
        error: The boto3 ClientError
        operation: The operation that failed (e.g., "GetItem", "BatchWriteItem")
        table_name: The DynamoDB table name (or names, for batch calls)
        resource_id: Optional resource identifier for context

    Returns:
        Appropriate domain exception
    """
    error_code = error.response['Error']['Code']
    error_message = error.response['Error']['Message']

    context = f"{operation} on {table_name}"
    if resource_id:
        context += f" (resource: {resource_id})"

    full_message = f"{context}: {error_message}"

    if error_code == 'ConditionalCheckFailedException':
        return ConflictError(f"Conditional check failed - {full_message}", resource_id, original_error=error)

    elif error_code == 'ResourceNotFoundException':
        if resource_id:
            return ItemNotFoundError(table_name, {'resource_id': resource_id}, original_error=error)
        return NotFoundError(f"Table not found - {full_message}", 'table', table_name, original_error=error)

    elif error_code == 'ValidationException':
        return ValidationError(f"Validation failed - {full_message}", original_error=error)

    elif error_code in THROTTLING_ERROR_CODES:
        return RetryableError(f"Throttling - {full_message}", original_error=error)

    elif error_code in UNAVAILABLE_ERROR_CODES:
        return RetryableError(f"Service unavailable - {full_message}", original_error=error)

    elif error_code in ['UnrecognizedClientException', 'AccessDeniedException', 'ExpiredTokenException']:
        return ConnectionError(f"Authentication/authorization failed - {full_message}", original_error=error)

    elif error_code == 'ItemCollectionSizeLimitExceededException':
        return ValidationError(f"Item collection size limit exceeded - {full_message}", original_error=error)

    elif error_code == 'ResourceInUseException':
        return ConflictError(f"Resource in use - {full_message}", resource_id, original_error=error)

    logger.warning(f"Unknown DynamoDB error code '{error_code}' mapped to ConnectionError")
    return ConnectionError(f"DynamoDB operation failed - {full_message}", original_error=error)


class TableGateway:
    """
    Thin gateway for DynamoDB operations against the single table(s).

    The boto3 resource is created lazily on first use. Table handles are
    cached per table name.
    """

    def __init__(self, config: DynamoDBConfig):
        """Initialize table gateway.

        Args:
            config: DynamoDB configuration
        """
        self.config = config
        self._dynamodb = None
        self._tables: Dict[str, Any] = {}

        if config.enable_debug_logging:
            logging.getLogger(PACKAGE_LOGGER).setLevel(logging.DEBUG)

    @property
    def dynamodb(self):
        """Lazy initialization of DynamoDB resource."""
        if self._dynamodb is None:
            try:
                session = boto3.Session(
                    aws_access_key_id=self.config.aws_access_key_id,
                    aws_secret_access_key=self.config.aws_secret_access_key,
                    region_name=self.config.region_name
                )

                dynamodb_config = {
                    'region_name': self.config.region_name
                }

                if self.config.endpoint_url:
                    dynamodb_config['endpoint_url'] = self.config.endpoint_url

                boto_config = Config(
                    retries={'max_attempts': self.config.retries},
                    max_pool_connections=self.config.max_pool_connections,
                    read_timeout=self.config.timeout_seconds,
                    connect_timeout=self.config.timeout_seconds
                )
                dynamodb_config['config'] = boto_config

                self._dynamodb = session.resource('dynamodb', **dynamodb_config)
            except Exception as e:
                logger.error(f"Failed to create DynamoDB resource: {e}")
                raise ConnectionError(f"Failed to connect to DynamoDB: {e}", e) from e
        return self._dynamodb

    def table(self, table_name: str):
        """Get (and cache) the boto3 Table resource for ``table_name``."""
        if table_name not in self._tables:
            try:
                self._tables[table_name] = self.dynamodb.Table(table_name)
            except ConnectionError:
                raise
            except Exception as e:
                logger.error(f"Failed to access table '{table_name}': {e}")
                raise ConnectionError(f"Failed to access table '{table_name}': {e}", e) from e
        return self._tables[table_name]

    def get_item(
        self,
        table_name: str,
        key: Dict[str, Any],
        projection: Optional[List[str]] = None
    ) -> Optional[Dict[str, Any]]:
        """
        Fetch one item by its physical key.

        Args:
            table_name: Table to read from
            key: Physical primary key attributes
            projection: Attribute names to return (all when None)

        Returns:
            The stored item, or None when absent
        """
        get_kwargs: Dict[str, Any] = {'Key': key}
        proj_expr, expr_names = build_projection_expression(projection)
        if proj_expr:
            get_kwargs['ProjectionExpression'] = proj_expr
            get_kwargs['ExpressionAttributeNames'] = expr_names

        try:
            response = self.table(table_name).get_item(**get_kwargs)
        except ClientError as e:
            raise map_dynamodb_error(e, "GetItem", table_name) from e
        return response.get('Item')

    def put_item(self, table_name: str, item: Dict[str, Any]) -> None:
        """
        Put item into a table, overwriting any item with the same key.

        Args:
            table_name: Table to write to
            item: Item to store, key attributes included
        """
        try:
            self.table(table_name).put_item(Item=item)
            logger.debug(f"Put item in {table_name} with {len(item)} attributes")
        except ClientError as e:
            raise map_dynamodb_error(e, "PutItem", table_name) from e

    def delete_item(self, table_name: str, key: Dict[str, Any]) -> None:
        """
        Delete item from a table. Deleting a missing item is not an error.

        Args:
            table_name: Table to delete from
            key: Physical primary key of item to delete
        """
        try:
            self.table(table_name).delete_item(Key=key)
            logger.info(f"Deleted item from {table_name}: {key}")
        except ClientError as e:
            raise map_dynamodb_error(e, "DeleteItem", table_name) from e

    def query(self, table_name: str, **kwargs) -> Dict[str, Any]:
        """
        Execute DynamoDB Query operation.

        Raw pass-through to boto3 with error handling.

        Args:
            table_name: Table to query
            **kwargs: All boto3 query parameters (IndexName, KeyConditionExpression, ...)

        Returns:
            Raw DynamoDB response
        """
        try:
            return self.table(table_name).query(**kwargs)
        except ClientError as e:
            raise map_dynamodb_error(e, "Query", table_name) from e

    def batch_get_item(self, request_items: Dict[str, Dict[str, Any]]) -> Dict[str, Any]:
        """
        Execute one BatchGetItem call.

        Returns:
            Raw response with ``Responses`` and ``UnprocessedKeys``
        """
        try:
            return self.dynamodb.batch_get_item(RequestItems=request_items)
        except ClientError as e:
            raise map_dynamodb_error(e, "BatchGetItem", ", ".join(request_items)) from e

    def batch_write_item(self, request_items: Dict[str, List[Dict[str, Any]]]) -> Dict[str, Any]:
        """
        Execute one BatchWriteItem call.

        Returns:
            Raw response with ``UnprocessedItems``
        """
        try:
            return self.dynamodb.batch_write_item(RequestItems=request_items)
        except ClientError as e:
            raise map_dynamodb_error(e, "BatchWriteItem", ", ".join(request_items)) from e

    def describe_table(self, table_name: str) -> Optional[Dict[str, Any]]:
        """Return the table description, or None when the table does not exist."""
        try:
            return self.dynamodb.meta.client.describe_table(TableName=table_name)['Table']
        except ClientError as e:
            if e.response['Error']['Code'] == 'ResourceNotFoundException':
                return None
            raise map_dynamodb_error(e, "DescribeTable", table_name) from e

    def create_table(self, **kwargs) -> None:
        """Create a table and wait until it exists."""
        table_name = kwargs['TableName']
        client = self.dynamodb.meta.client
        try:
            client.create_table(**kwargs)
            client.get_waiter('table_exists').wait(TableName=table_name)
        except ClientError as e:
            raise map_dynamodb_error(e, "CreateTable", table_name) from e
        logger.info(f"Created table {table_name}")

    def update_table(self, **kwargs) -> None:
        """Update a table definition (e.g. add global secondary indexes)."""
        table_name = kwargs['TableName']
        try:
            self.dynamodb.meta.client.update_table(**kwargs)
        except ClientError as e:
            raise map_dynamodb_error(e, "UpdateTable", table_name) from e
        logger.info(f"Updated table {table_name}")


def create_table_gateway(config: Optional[DynamoDBConfig] = None) -> TableGateway:
    """
    Factory function to create a TableGateway instance.

    Args:
        config: DynamoDB configuration (read from the environment when None)

    Returns:
        Configured TableGateway instance
    """
    return TableGateway(config or DynamoDBConfig.from_env())
