"""
Batch operation models.

A batch is a list of ``BatchGet``/``BatchPut``/``BatchDelete`` values, possibly
against several object types sharing one table. Two operations with the same
``identity`` are dispatched once.
"""

from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict

Identity = Tuple[str, Tuple[Tuple[str, Any], ...]]


def key_identity(table_name: str, key: Dict[str, Any]) -> Identity:
    """Hashable ``(table, key)`` identity used for deduplication."""
    return table_name, tuple(sorted(key.items()))


class _BatchOperation(BaseModel):
    table_name: str
    key: Dict[str, Any]

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    @property
    def identity(self) -> Identity:
        return key_identity(self.table_name, self.key)


class BatchGet(_BatchOperation):
    """Read one item. ``loader`` maps the fetched item to the caller's type."""

    fields_to_project: Optional[List[str]] = None
    loader: Optional[Callable[[Dict[str, Any]], Any]] = None


class BatchPut(_BatchOperation):
    """Write one item. ``result`` is what this occurrence resolves to."""

    item: Dict[str, Any]
    result: Any = None


class BatchDelete(_BatchOperation):
    """Delete one item; resolves to ``True``."""

    result: Any = True


BatchWriteOperation = Union[BatchPut, BatchDelete]
BatchOperation = Union[BatchGet, BatchPut, BatchDelete]
