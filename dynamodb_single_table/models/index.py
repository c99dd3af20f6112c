"""
Index and repository configuration models.

``PrimaryIndexSpec``/``SecondaryIndexSpec``/``RepositoryConfig`` are what
callers write. ``IndexDefinition`` is the resolved, immutable form produced by
``build_index_directory``; nothing else constructs it.
"""

from enum import Enum
from typing import List, Optional, Tuple, Type

from pydantic import BaseModel, ConfigDict, Field

# Reserved physical attribute names
OBJECT_TYPE_ATTRIBUTE = "__objectType"
PRIMARY_HASH_KEY_ATTRIBUTE = "__hashKey"
PRIMARY_SORT_KEY_ATTRIBUTE = "__sortKey"
MAX_LOCAL_SECONDARY_INDEXES = 5


def lsi_name(which: int) -> str:
    """Name of local secondary index number ``which``."""
    return f"__lsi{which}"


def lsi_sort_key_attribute(which: int) -> str:
    return f"__lsi{which}"


def gsi_name(which: int) -> str:
    return f"__gsi{which}"


def gsi_attribute_name(which: int, key_type: str) -> str:
    """Attribute backing GSI ``which``; ``key_type`` is ``Hash`` or ``Sort``."""
    return f"__gsi{key_type}{which}"


class IndexKind(str, Enum):
    """How an index is stored and how its keys are encoded."""
    PRIMARY = "primary"
    LOCAL_SECONDARY = "local_secondary"
    GLOBAL_SECONDARY = "global_secondary"
    CUSTOM_GLOBAL_SECONDARY = "custom_global_secondary"


class IndexDefinition(BaseModel):
    """A resolved index of one object type."""

    tag: str
    kind: IndexKind
    hash_key_fields: Tuple[str, ...] = ()
    sort_key_fields: Tuple[str, ...] = ()
    hash_key_attribute: str
    sort_key_attribute: str
    hash_key_descriptor: str
    sort_key_descriptor: str
    index_name: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @property
    def descriptor(self) -> str:
        return self.hash_key_descriptor

    @property
    def is_custom(self) -> bool:
        return self.kind == IndexKind.CUSTOM_GLOBAL_SECONDARY

    @property
    def is_primary(self) -> bool:
        return self.kind == IndexKind.PRIMARY


class PrimaryIndexSpec(BaseModel):
    """Primary key layout of an object type."""

    tag: str = "primary"
    hash_key_fields: List[str]
    sort_key_fields: List[str] = Field(default_factory=list)
    hash_key_attribute: str = PRIMARY_HASH_KEY_ATTRIBUTE
    sort_key_attribute: str = PRIMARY_SORT_KEY_ATTRIBUTE


class SecondaryIndexSpec(BaseModel):
    """A named query pattern.

    The kind is inferred from which fields are set:

    - ``is_primary``: another tag for the primary index
    - ``hash_key_fields`` (+ ``which``): global secondary index
    - ``sort_key_fields`` only (+ ``which``): local secondary index
    - ``hash_key_attribute_name`` + ``sort_key_attribute_name``: custom global
      secondary index over attributes the caller computes
    """

    tag: str
    is_primary: bool = False
    which: Optional[int] = None
    hash_key_fields: Optional[List[str]] = None
    sort_key_fields: Optional[List[str]] = None
    hash_key_attribute_name: Optional[str] = None
    sort_key_attribute_name: Optional[str] = None
    index_name: Optional[str] = None


class RepositoryConfig(BaseModel):
    """Everything a Repository needs to know about one object type."""

    type_name: str
    item_schema: Type[BaseModel]
    table_name: Optional[str] = None
    primary_index: PrimaryIndexSpec
    secondary_indexes: List[SecondaryIndexSpec] = Field(default_factory=list)

    model_config = ConfigDict(arbitrary_types_allowed=True)
