"""
Shared helpers for request building and item shaping.
"""

import logging
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from pydantic import BaseModel
from pydantic_core import to_jsonable_python

logger = logging.getLogger(__name__)


def build_projection_expression(fields: Optional[List[str]]) -> Tuple[Optional[str], Optional[Dict[str, str]]]:
    """Build ProjectionExpression with ExpressionAttributeNames for DynamoDB operations.

    Expression attribute names keep reserved words (``name``, ``status``) and
    the ``__``-prefixed storage attributes safe.

    Args:
        fields: List of field names to project, None for all fields

    Returns:
        Tuple of (ProjectionExpression, ExpressionAttributeNames) or (None, None)

    Example:
        >>> build_projection_expression(['id', 'name'])
        ('#f0, #f1', {'#f0': 'id', '#f1': 'name'})
    """
    if not fields:
        return None, None

    expression_names = {}
    projection_parts = []

    for i, field in enumerate(fields):
        attr_name = f"#f{i}"
        expression_names[attr_name] = field
        projection_parts.append(attr_name)

    return ', '.join(projection_parts), expression_names


def merge_projections(projections: Iterable[Optional[List[str]]]) -> Optional[List[str]]:
    """Union of several projections, in first-seen order.

    ``None`` means "every attribute" and absorbs everything else.
    """
    merged: List[str] = []
    for projection in projections:
        if projection is None:
            return None
        for field in projection:
            if field not in merged:
                merged.append(field)
    return merged


def project_item(item: Dict[str, Any], fields: Optional[List[str]]) -> Dict[str, Any]:
    """Restrict ``item`` to ``fields`` (all of it when ``fields`` is None)."""
    if fields is None:
        return dict(item)
    return {field: item[field] for field in fields if field in item}


def strip_attributes(item: Dict[str, Any], attributes: Iterable[str]) -> Dict[str, Any]:
    """Return a copy of ``item`` without ``attributes``."""
    hidden = set(attributes)
    return {k: v for k, v in item.items() if k not in hidden}


def to_dynamodb_value(value: Any) -> Any:
    """Convert Python values into types the boto3 serializer accepts.

    Floats become Decimal, recursively through dicts and lists.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, dict):
        return {k: to_dynamodb_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [to_dynamodb_value(v) for v in value]
    return value


def to_plain_value(value: Any) -> Any:
    """Reduce ``value`` to the plain types keys and items are built from.

    Strings, numbers (Decimal included) and bools are kept as they are.
    Enums become their value; dates, datetimes, UUIDs and other rich types
    take pydantic's JSON form, so a raw lookup value and a dumped model field
    encode to the same key.
    """
    if isinstance(value, Enum):
        return to_plain_value(value.value)
    if value is None or isinstance(value, (str, bool, int, float, Decimal)):
        return value
    if isinstance(value, BaseModel):
        return to_plain_value(value.model_dump(exclude_none=True))
    if isinstance(value, Mapping):
        return {k: to_plain_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_plain_value(v) for v in value]
    return to_plain_value(to_jsonable_python(value))
