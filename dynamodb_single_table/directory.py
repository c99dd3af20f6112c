"""
Index directory: the validated set of indexes of one object type.

Built once from a RepositoryConfig and never modified afterwards.
"""

import logging
from typing import Dict, List, Optional, Tuple

from .exceptions import InvalidIndexSpec
from .models.index import (
    MAX_LOCAL_SECONDARY_INDEXES,
    IndexDefinition,
    IndexKind,
    PrimaryIndexSpec,
    RepositoryConfig,
    SecondaryIndexSpec,
    gsi_attribute_name,
    gsi_name,
    lsi_name,
    lsi_sort_key_attribute,
)

logger = logging.getLogger(__name__)


class IndexDirectory:
    """Primary index plus secondary indexes of one object type, by tag and in order."""

    def __init__(self, type_name: str, indexes: List[IndexDefinition]):
        self.type_name = type_name
        self._indexes: Tuple[IndexDefinition, ...] = tuple(indexes)
        self._by_tag: Dict[str, IndexDefinition] = {index.tag: index for index in indexes}

    @property
    def primary(self) -> IndexDefinition:
        return self._indexes[0]

    @property
    def indexes(self) -> Tuple[IndexDefinition, ...]:
        """All indexes in declaration order, primary first."""
        return self._indexes

    @property
    def by_tag(self) -> Dict[str, IndexDefinition]:
        return dict(self._by_tag)

    @property
    def tags(self) -> List[str]:
        return [index.tag for index in self._indexes]

    def get(self, tag: str) -> Optional[IndexDefinition]:
        return self._by_tag.get(tag)

    def __iter__(self):
        return iter(self._indexes)

    def __len__(self) -> int:
        return len(self._indexes)

    def __repr__(self) -> str:
        return f"IndexDirectory(type_name={self.type_name!r}, tags={self.tags!r})"


def _primary_index(type_name: str, spec: PrimaryIndexSpec, tag: Optional[str] = None) -> IndexDefinition:
    return IndexDefinition(
        tag=tag or spec.tag,
        kind=IndexKind.PRIMARY,
        hash_key_fields=tuple(spec.hash_key_fields),
        sort_key_fields=tuple(spec.sort_key_fields),
        hash_key_attribute=spec.hash_key_attribute,
        sort_key_attribute=spec.sort_key_attribute,
        hash_key_descriptor=type_name,
        sort_key_descriptor=type_name,
    )


def _secondary_index(type_name: str, primary: PrimaryIndexSpec, spec: SecondaryIndexSpec) -> IndexDefinition:
    has_fields = bool(spec.hash_key_fields) or bool(spec.sort_key_fields)
    has_custom = spec.hash_key_attribute_name is not None or spec.sort_key_attribute_name is not None

    if spec.is_primary:
        if has_fields or has_custom or spec.which is not None:
            raise InvalidIndexSpec(
                f"Index '{spec.tag}' is declared as the primary index and as a secondary index",
                spec.tag,
            )
        return _primary_index(type_name, primary, tag=spec.tag)

    if has_custom:
        if has_fields:
            raise InvalidIndexSpec(
                f"Custom index '{spec.tag}' cannot also declare key fields", spec.tag
            )
        if spec.hash_key_attribute_name is None or spec.sort_key_attribute_name is None:
            raise InvalidIndexSpec(
                f"Custom index '{spec.tag}' must name both a hash and a sort key attribute", spec.tag
            )
        return IndexDefinition(
            tag=spec.tag,
            kind=IndexKind.CUSTOM_GLOBAL_SECONDARY,
            hash_key_attribute=spec.hash_key_attribute_name,
            sort_key_attribute=spec.sort_key_attribute_name,
            hash_key_descriptor=f"{type_name}-{spec.tag}",
            sort_key_descriptor=spec.tag,
            index_name=spec.index_name or spec.tag,
        )

    if spec.hash_key_fields:
        if spec.which is None or spec.which < 0:
            raise InvalidIndexSpec(
                f"Global secondary index '{spec.tag}' needs a non-negative index number", spec.tag
            )
        return IndexDefinition(
            tag=spec.tag,
            kind=IndexKind.GLOBAL_SECONDARY,
            hash_key_fields=tuple(spec.hash_key_fields),
            sort_key_fields=tuple(spec.sort_key_fields or ()),
            hash_key_attribute=gsi_attribute_name(spec.which, 'Hash'),
            sort_key_attribute=gsi_attribute_name(spec.which, 'Sort'),
            hash_key_descriptor=f"{type_name}-{spec.tag}",
            sort_key_descriptor=spec.tag,
            index_name=gsi_name(spec.which),
        )

    if spec.sort_key_fields:
        if spec.which is None or not 0 <= spec.which < MAX_LOCAL_SECONDARY_INDEXES:
            raise InvalidIndexSpec(
                f"Local secondary index '{spec.tag}' needs an index number between 0 and "
                f"{MAX_LOCAL_SECONDARY_INDEXES - 1}",
                spec.tag,
            )
        return IndexDefinition(
            tag=spec.tag,
            kind=IndexKind.LOCAL_SECONDARY,
            hash_key_fields=tuple(primary.hash_key_fields),
            sort_key_fields=tuple(spec.sort_key_fields),
            hash_key_attribute=primary.hash_key_attribute,
            sort_key_attribute=lsi_sort_key_attribute(spec.which),
            hash_key_descriptor=type_name,
            sort_key_descriptor=spec.tag,
            index_name=lsi_name(spec.which),
        )

    raise InvalidIndexSpec(
        f"Secondary index '{spec.tag}' has no hash key fields and no custom key attributes",
        spec.tag,
    )


def build_index_directory(config: RepositoryConfig) -> IndexDirectory:
    """Validate ``config`` and resolve every index it declares.

    Raises:
        InvalidIndexSpec: The configuration cannot be turned into indexes
    """
    if not config.primary_index.hash_key_fields:
        raise InvalidIndexSpec(
            f"Primary index of {config.type_name} needs at least one hash key field",
            config.primary_index.tag,
        )

    indexes = [_primary_index(config.type_name, config.primary_index)]
    seen_tags = {config.primary_index.tag}
    claimed_slots: Dict[Tuple[IndexKind, str], str] = {}

    for spec in config.secondary_indexes:
        if spec.tag in seen_tags:
            raise InvalidIndexSpec(f"Duplicate index tag '{spec.tag}' on {config.type_name}", spec.tag)
        seen_tags.add(spec.tag)

        index = _secondary_index(config.type_name, config.primary_index, spec)
        if index.index_name is not None:
            slot = (index.kind, index.index_name)
            if slot in claimed_slots:
                raise InvalidIndexSpec(
                    f"Indexes '{claimed_slots[slot]}' and '{spec.tag}' both use {index.index_name}",
                    spec.tag,
                )
            claimed_slots[slot] = spec.tag
        indexes.append(index)

    directory = IndexDirectory(config.type_name, indexes)
    logger.debug(f"Built index directory for {config.type_name}: {directory.tags}")
    return directory
