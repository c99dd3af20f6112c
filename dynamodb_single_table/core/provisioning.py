"""
Table provisioning for the single table.

Builds the CreateTable input that every object type stored in one table
needs, and creates or extends the table so it matches.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from ..directory import IndexDirectory
from ..exceptions import InvalidIndexSpec
from ..models.index import MAX_LOCAL_SECONDARY_INDEXES, IndexKind, lsi_name, lsi_sort_key_attribute
from .table_gateway import TableGateway

logger = logging.getLogger(__name__)


def _key_schema(hash_attribute: str, sort_attribute: Optional[str] = None) -> List[Dict[str, str]]:
    schema = [{'AttributeName': hash_attribute, 'KeyType': 'HASH'}]
    if sort_attribute:
        schema.append({'AttributeName': sort_attribute, 'KeyType': 'RANGE'})
    return schema


def _global_indexes(directories: Sequence[IndexDirectory]) -> Dict[str, Dict[str, Any]]:
    """Physical GSIs keyed by index name, merged across object types."""
    indexes: Dict[str, Dict[str, Any]] = {}
    for directory in directories:
        for index in directory.indexes:
            if index.kind not in (IndexKind.GLOBAL_SECONDARY, IndexKind.CUSTOM_GLOBAL_SECONDARY):
                continue
            has_sort = index.is_custom or bool(index.sort_key_fields)
            existing = indexes.get(index.index_name)
            if existing is None:
                indexes[index.index_name] = {
                    'hash': index.hash_key_attribute,
                    'sort': index.sort_key_attribute if has_sort else None,
                }
            elif existing['hash'] != index.hash_key_attribute:
                raise InvalidIndexSpec(
                    f"Index {index.index_name} is keyed on {existing['hash']} and {index.hash_key_attribute}",
                    index.tag,
                )
            elif has_sort and existing['sort'] is None:
                existing['sort'] = index.sort_key_attribute
    return indexes


def _gsi_definition(index_name: str, keys: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'IndexName': index_name,
        'KeySchema': _key_schema(keys['hash'], keys['sort']),
        'Projection': {'ProjectionType': 'ALL'},
    }


def table_definition(table_name: str, directories: Sequence[IndexDirectory]) -> Dict[str, Any]:
    """Build the CreateTable parameters for a table shared by ``directories``.

    The primary key gets a sort key when the object types declare primary sort
    key fields; hash-only and composite-key types cannot share a table.
    Declaring any local secondary index provisions all five LSI slots, since
    LSIs cannot be added after creation.

    Raises:
        InvalidIndexSpec: Object types disagree on a physical attribute or on
            whether the primary key has a sort key
    """
    if not directories:
        raise InvalidIndexSpec(f"No object types given for table {table_name}")

    primary = directories[0].primary
    for directory in directories[1:]:
        other = directory.primary
        if (other.hash_key_attribute, other.sort_key_attribute) != (primary.hash_key_attribute, primary.sort_key_attribute):
            raise InvalidIndexSpec(
                f"{directory.type_name} and {directories[0].type_name} use different primary key attributes",
                other.tag,
            )

    # Every type in a table writes the same primary key shape: a hash-only
    # type cannot share a table that has a RANGE key, and LSIs need one.
    with_sort = [d for d in directories if d.primary.sort_key_fields]
    without_sort = [d for d in directories if not d.primary.sort_key_fields]
    has_lsi = any(
        index.kind == IndexKind.LOCAL_SECONDARY for directory in directories for index in directory.indexes
    )
    if without_sort and (with_sort or has_lsi):
        directory = without_sort[0]
        raise InvalidIndexSpec(
            f"{directory.type_name} has no primary sort key fields but table {table_name} needs a sort key",
            directory.primary.tag,
        )
    has_sort_key = bool(with_sort)

    attributes = {primary.hash_key_attribute}
    definition: Dict[str, Any] = {
        'TableName': table_name,
        'KeySchema': _key_schema(primary.hash_key_attribute, primary.sort_key_attribute if has_sort_key else None),
        'BillingMode': 'PAY_PER_REQUEST',
    }
    if has_sort_key:
        attributes.add(primary.sort_key_attribute)

    if has_lsi:
        local_indexes = []
        for which in range(MAX_LOCAL_SECONDARY_INDEXES):
            attributes.add(lsi_sort_key_attribute(which))
            local_indexes.append({
                'IndexName': lsi_name(which),
                'KeySchema': _key_schema(primary.hash_key_attribute, lsi_sort_key_attribute(which)),
                'Projection': {'ProjectionType': 'ALL'},
            })
        definition['LocalSecondaryIndexes'] = local_indexes

    global_indexes = _global_indexes(directories)
    if global_indexes:
        definition['GlobalSecondaryIndexes'] = [
            _gsi_definition(index_name, keys) for index_name, keys in global_indexes.items()
        ]
        for keys in global_indexes.values():
            attributes.update(a for a in (keys['hash'], keys['sort']) if a)

    definition['AttributeDefinitions'] = [
        {'AttributeName': name, 'AttributeType': 'S'} for name in sorted(attributes)
    ]
    return definition


def ensure_table(gateway: TableGateway, table_name: str, directories: Sequence[IndexDirectory]) -> bool:
    """Create ``table_name`` if missing, otherwise add any missing GSIs.

    Returns:
        True when the table was created, False when it already existed
    """
    definition = table_definition(table_name, directories)
    description = gateway.describe_table(table_name)

    if description is None:
        logger.info(f"Table {table_name} not found, creating it")
        gateway.create_table(**definition)
        return True

    existing = {index['IndexName'] for index in description.get('GlobalSecondaryIndexes', [])}
    attribute_types = {a['AttributeName']: a for a in definition['AttributeDefinitions']}

    # UpdateTable accepts one GSI creation per call.
    for index in definition.get('GlobalSecondaryIndexes', []):
        if index['IndexName'] in existing:
            continue
        logger.info(f"Adding index {index['IndexName']} to {table_name}")
        gateway.update_table(
            TableName=table_name,
            AttributeDefinitions=[attribute_types[k['AttributeName']] for k in index['KeySchema']],
            GlobalSecondaryIndexUpdates=[{'Create': index}],
        )
    return False
