"""
Core infrastructure components for DynamoDB operations.

This module contains the foundational components used by every repository:
- TableGateway: Thin wrapper over boto3 DynamoDB operations
- Factory functions for creating gateways
- Table provisioning for the single table
"""

from .provisioning import ensure_table, table_definition
from .table_gateway import TableGateway, create_table_gateway, map_dynamodb_error

__all__ = [
    "TableGateway",
    "create_table_gateway",
    "map_dynamodb_error",
    "ensure_table",
    "table_definition",
]
