from .batch import (
    BatchDelete,
    BatchGet,
    BatchOperation,
    BatchPut,
    BatchWriteOperation,
    key_identity,
)
from .index import (
    OBJECT_TYPE_ATTRIBUTE,
    IndexDefinition,
    IndexKind,
    PrimaryIndexSpec,
    RepositoryConfig,
    SecondaryIndexSpec,
)
from .query import QueryResult, WhereClause

__all__ = [
    # Index configuration
    "IndexKind",
    "IndexDefinition",
    "PrimaryIndexSpec",
    "SecondaryIndexSpec",
    "RepositoryConfig",
    "OBJECT_TYPE_ATTRIBUTE",

    # Queries
    "WhereClause",
    "QueryResult",

    # Batch operations
    "BatchGet",
    "BatchPut",
    "BatchDelete",
    "BatchOperation",
    "BatchWriteOperation",
    "key_identity",
]
