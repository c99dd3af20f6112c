from .config import DynamoDBConfig
from .exceptions import (
    BatchIncomplete,
    ConflictError,
    ConnectionError,
    InvalidIndexSpec,
    ItemNotFoundError,
    MissingRequiredField,
    NoMatchingIndex,
    NotFoundError,
    RetryableError,
    SingleTableError,
    UnknownIndex,
    ValidationError,
    ValidationRejected,
)
from .models import (
    # Index configuration
    IndexDefinition,
    IndexKind,
    PrimaryIndexSpec,
    RepositoryConfig,
    SecondaryIndexSpec,
    # Queries
    QueryResult,
    WhereClause,
    # Batch operations
    BatchDelete,
    BatchGet,
    BatchPut,
)
from .core import (
    TableGateway,
    create_table_gateway,
    ensure_table,
    table_definition,
)
from .keys import KeyOptions, encode_index_key
from .directory import IndexDirectory, build_index_directory
from .planner import find_index_for_query
from .batch import batch_get, batch_write, run_batch
from .repository import Repository, RepositoryHooks

__version__ = "1.0.0"
__all__ = [
    # Configuration
    "DynamoDBConfig",
    "RepositoryConfig",
    "PrimaryIndexSpec",
    "SecondaryIndexSpec",

    # Exceptions
    "SingleTableError",
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

    # Indexes and keys
    "IndexKind",
    "IndexDefinition",
    "IndexDirectory",
    "build_index_directory",
    "KeyOptions",
    "encode_index_key",
    "find_index_for_query",

    # Queries
    "WhereClause",
    "QueryResult",

    # Batch operations
    "BatchGet",
    "BatchPut",
    "BatchDelete",
    "run_batch",
    "batch_get",
    "batch_write",

    # TableGateway architecture
    "TableGateway",
    "create_table_gateway",
    "ensure_table",
    "table_definition",

    # Repositories
    "Repository",
    "RepositoryHooks",
]
