"""
Query planner: picks the index that can answer a where clause.

An index can answer a query when the query supplies all of its hash key
fields, and the remaining arguments are exactly the first ``k`` sort key
fields (a begins_with prefix). When ``sort_by`` is given it must be the next
sort key field after that prefix. The first qualifying index in declaration
order wins, so the primary index beats any secondary index that shares its
hash fields.
"""

import logging
from typing import Optional

from .directory import IndexDirectory
from .exceptions import UnknownIndex
from .models.index import IndexDefinition
from .models.query import WhereClause

logger = logging.getLogger(__name__)


def _index_accepts(index: IndexDefinition, where: WhereClause) -> bool:
    needed = set(where.args)

    if not all(field in needed for field in index.hash_key_fields):
        return False
    needed.difference_update(index.hash_key_fields)

    sort_position = len(needed)
    needed.difference_update(index.sort_key_fields[:sort_position])
    if needed:
        return False

    if where.sort_by is None:
        return True
    return (
        where.sort_by in index.sort_key_fields
        and index.sort_key_fields.index(where.sort_by) == sort_position
    )


def find_index_for_query(where: WhereClause, directory: IndexDirectory) -> Optional[IndexDefinition]:
    """Resolve the index for ``where``, or ``None`` when nothing fits.

    Raises:
        UnknownIndex: ``where.index`` names a tag that is not configured
    """
    if where.index:
        index = directory.get(where.index)
        if index is None:
            raise UnknownIndex(where.index, directory.tags)
        return index

    for index in directory.indexes:
        if _index_accepts(index, where):
            logger.debug(f"Resolved {sorted(where.args)} on {directory.type_name} to index '{index.tag}'")
            return index

    return None
