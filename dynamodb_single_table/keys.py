"""
Key codec: turns field values into the string keys stored on an item.

Composite keys look like ``<descriptor>#<field>-<value>#<field>-<value>``.
The sort key is a prefix chain: encoding stops at the first field that is not
supplied, which makes the same function serve exact lookups and begins_with
queries.

Non-negative numbers are zero-padded (``000000000000000042.50``) so that
DynamoDB's byte-wise string comparison orders them numerically. Negative
numbers keep their natural form and do not sort correctly.
"""

import math
from decimal import Decimal
from itertools import takewhile
from typing import Any, Dict, Mapping, Sequence

from pydantic import BaseModel, ConfigDict

from .config import DynamoDBConfig
from .exceptions import MissingRequiredField
from .models.index import IndexDefinition


class KeyOptions(BaseModel):
    """Encoding settings shared by every index of a repository."""

    separator: str = "#"
    pad_numbers: bool = True
    int_width: int = 18
    frac_width: int = 2

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_config(cls, config: DynamoDBConfig) -> 'KeyOptions':
        return cls(
            separator=config.composite_key_separator,
            pad_numbers=config.pad_numbers_in_indexes,
            int_width=config.padded_int_width,
            frac_width=config.padded_frac_width,
        )


DEFAULT_KEY_OPTIONS = KeyOptions()


def is_present(fields: Mapping[str, Any], name: str) -> bool:
    """A field counts as supplied when it is set to something other than None."""
    return fields.get(name) is not None


def _is_paddable(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        return False
    if isinstance(value, float) and not math.isfinite(value):
        return False
    if isinstance(value, Decimal) and not value.is_finite():
        return False
    return value >= 0


def pad_number(value: Any, int_width: int = 18, frac_width: int = 2) -> str:
    """Render a non-negative number as a fixed-width, order-preserving string.

    Example:
        >>> pad_number(42.5)
        '000000000000000042.50'
    """
    text = format(Decimal(str(value)), 'f')
    before, _, after = text.partition('.')
    return f"{before.rjust(int_width, '0')}.{after.ljust(frac_width, '0')}"


def stringify_value(value: Any, options: KeyOptions = DEFAULT_KEY_OPTIONS) -> str:
    if isinstance(value, bool):
        return str(value).lower()
    if options.pad_numbers and _is_paddable(value):
        return pad_number(value, options.int_width, options.frac_width)
    return str(value)


def dynamo_property(name: str, value: Any, options: KeyOptions = DEFAULT_KEY_OPTIONS) -> str:
    """Render one ``<field>-<value>`` segment, e.g. ``userId-2039848932``."""
    return f"{name}-{stringify_value(value, options)}"


def composite_key_value(
    fields: Mapping[str, Any],
    names: Sequence[str],
    descriptor: str,
    options: KeyOptions = DEFAULT_KEY_OPTIONS,
) -> str:
    """Join ``descriptor`` and one segment per name in ``names``."""
    return options.separator.join(
        [descriptor] + [dynamo_property(name, fields[name], options) for name in names]
    )


def hash_key_value(
    index: IndexDefinition,
    fields: Mapping[str, Any],
    options: KeyOptions = DEFAULT_KEY_OPTIONS,
) -> str:
    """Encode the partition key of ``index``.

    Raises:
        MissingRequiredField: A hash key field is not supplied
    """
    for name in index.hash_key_fields:
        if not is_present(fields, name):
            raise MissingRequiredField(name, index.tag, sorted(fields))
    return composite_key_value(fields, index.hash_key_fields, index.hash_key_descriptor, options)


def sort_key_prefix(
    index: IndexDefinition,
    fields: Mapping[str, Any],
    options: KeyOptions = DEFAULT_KEY_OPTIONS,
) -> str:
    """Encode the longest supplied prefix of the sort key fields."""
    supplied = list(takewhile(lambda name: is_present(fields, name), index.sort_key_fields))
    return composite_key_value(fields, supplied, index.sort_key_descriptor, options)


def encode_index_key(
    index: IndexDefinition,
    fields: Mapping[str, Any],
    options: KeyOptions = DEFAULT_KEY_OPTIONS,
) -> Dict[str, Any]:
    """Compute the physical key attributes ``index`` stores for ``fields``.

    Custom indexes are read straight off ``fields``. Other indexes always get
    a hash key; they get a sort key only when they declare sort key fields.

    Example:
        >>> encode_index_key(purchase_primary, {'userId': '1', 'itemId': 'couch'})
        {'__hashKey': 'Purchase#userId-1', '__sortKey': 'Purchase#itemId-couch'}
    """
    if index.is_custom:
        return {
            attribute: fields[attribute]
            for attribute in (index.hash_key_attribute, index.sort_key_attribute)
            if is_present(fields, attribute)
        }

    key = {index.hash_key_attribute: hash_key_value(index, fields, options)}
    if index.sort_key_fields:
        key[index.sort_key_attribute] = sort_key_prefix(index, fields, options)
    return key
