"""
Batch planner for BatchGetItem / BatchWriteItem.

Takes a caller-ordered list of get/put/delete operations (possibly for several
object types and tables) and:

1. deduplicates them by ``(table, key)`` so each key goes over the wire once;
2. splits reads and writes into chunks within the per-call item limits
   (``batch_get_chunk_size``, ``batch_write_chunk_size``);
3. resubmits UnprocessedKeys / UnprocessedItems with exponential backoff until
   nothing is left or ``batch_max_retries`` is used up, then raises
   ``BatchIncomplete`` with the keys that were never resolved;
4. returns one result per input operation, in input order. Gets resolve to the
   item (or ``None`` when absent), puts to their ``result``, deletes to
   ``True``.

Gets for the same key with different projections are fetched once with the
union of the projections; each occurrence only sees the fields it asked for.
DynamoDB applies a projection per table, so the union is taken per table in a
chunk, and the key attributes are always projected so responses can be
matched back to requests.
"""

import logging
import random
import time
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from .core.table_gateway import TableGateway
from .exceptions import BatchIncomplete, RetryableError
from .models.batch import (
    BatchDelete,
    BatchGet,
    BatchOperation,
    BatchPut,
    BatchWriteOperation,
    Identity,
    key_identity,
)
from .utils import build_projection_expression, merge_projections, project_item

logger = logging.getLogger(__name__)

BACKOFF_BASE_SECONDS = 0.05
BACKOFF_MAX_SECONDS = 2.0


def _backoff(attempt: int) -> float:
    """Exponential backoff with jitter."""
    delay = min(BACKOFF_BASE_SECONDS * (2 ** attempt), BACKOFF_MAX_SECONDS)
    return delay + random.uniform(0, BACKOFF_BASE_SECONDS)


def _chunks(items: Sequence[Any], size: int) -> Iterable[Sequence[Any]]:
    for i in range(0, len(items), size):
        yield items[i:i + size]


def _key_names_by_table(keys: Iterable[Tuple[str, Dict[str, Any]]]) -> Dict[str, Set[Tuple[str, ...]]]:
    names: Dict[str, Set[Tuple[str, ...]]] = {}
    for table_name, key in keys:
        names.setdefault(table_name, set()).add(tuple(sorted(key)))
    return names


def _extract_key(item: Dict[str, Any], key_names: Iterable[Tuple[str, ...]]) -> Optional[Dict[str, Any]]:
    for names in key_names:
        if all(name in item for name in names):
            return {name: item[name] for name in names}
    return None


# =============================================================================
# Reads
# =============================================================================

def _build_get_request(
    identities: Sequence[Identity],
    pending: Dict[Identity, Dict[str, Any]],
) -> Dict[str, Dict[str, Any]]:
    request_items: Dict[str, Dict[str, Any]] = {}
    projections: Dict[str, List[Optional[List[str]]]] = {}

    for identity in identities:
        entry = pending[identity]
        table_request = request_items.setdefault(entry['table_name'], {'Keys': []})
        table_request['Keys'].append(entry['key'])
        projections.setdefault(entry['table_name'], []).append(entry['projection'])

    for table_name, table_request in request_items.items():
        merged = merge_projections(projections[table_name])
        if merged is None:
            continue
        for key in table_request['Keys']:
            for name in key:
                if name not in merged:
                    merged.append(name)
        proj_expr, expr_names = build_projection_expression(merged)
        table_request['ProjectionExpression'] = proj_expr
        table_request['ExpressionAttributeNames'] = expr_names

    return request_items


def _dispatch_get_chunk(
    gateway: TableGateway,
    request_items: Dict[str, Dict[str, Any]],
    max_retries: int,
) -> List[Tuple[str, Dict[str, Any]]]:
    """Run one BatchGetItem chunk to completion, resubmitting UnprocessedKeys."""
    found: List[Tuple[str, Dict[str, Any]]] = []

    for attempt in range(max_retries + 1):
        try:
            response = gateway.batch_get_item(request_items)
        except RetryableError as e:
            if attempt == max_retries:
                logger.error(f"BatchGetItem still throttled after {max_retries} retries: {e}")
                break
            delay = _backoff(attempt)
            logger.warning(f"BatchGetItem throttled, backing off for {delay:.2f}s")
            time.sleep(delay)
            continue

        for table_name, items in response.get('Responses', {}).items():
            found.extend((table_name, item) for item in items)

        unprocessed = {
            table_name: table_request
            for table_name, table_request in response.get('UnprocessedKeys', {}).items()
            if table_request.get('Keys')
        }
        if not unprocessed:
            return found

        request_items = unprocessed
        if attempt < max_retries:
            unprocessed_count = sum(len(r['Keys']) for r in unprocessed.values())
            delay = _backoff(attempt)
            logger.warning(
                f"Retrying {unprocessed_count} unprocessed keys after {delay:.2f}s "
                f"(attempt {attempt + 1}/{max_retries + 1})"
            )
            time.sleep(delay)

    unresolved = [
        (table_name, key)
        for table_name, table_request in request_items.items()
        for key in table_request['Keys']
    ]
    logger.error(f"Failed to read {len(unresolved)} keys after {max_retries} retries")
    raise BatchIncomplete("BatchGetItem", unresolved, max_retries + 1)


def _run_gets(
    gateway: TableGateway,
    operations: Sequence[BatchGet],
    chunk_size: int,
    max_retries: int,
) -> List[Any]:
    pending: Dict[Identity, Dict[str, Any]] = {}
    for op in operations:
        entry = pending.get(op.identity)
        if entry is None:
            pending[op.identity] = {
                'table_name': op.table_name,
                'key': op.key,
                'projection': op.fields_to_project,
            }
        else:
            entry['projection'] = merge_projections([entry['projection'], op.fields_to_project])

    key_names = _key_names_by_table((entry['table_name'], entry['key']) for entry in pending.values())
    fetched: Dict[Identity, Dict[str, Any]] = {}

    for chunk in _chunks(list(pending), chunk_size):
        request_items = _build_get_request(chunk, pending)
        for table_name, item in _dispatch_get_chunk(gateway, request_items, max_retries):
            key = _extract_key(item, key_names.get(table_name, ()))
            if key is not None:
                fetched[key_identity(table_name, key)] = item

    logger.info(f"Batch get resolved {len(fetched)}/{len(pending)} unique keys for {len(operations)} requests")

    results = []
    for op in operations:
        item = fetched.get(op.identity)
        if item is None:
            results.append(None)
            continue
        value = project_item(item, op.fields_to_project)
        results.append(op.loader(value) if op.loader else value)
    return results


# =============================================================================
# Writes
# =============================================================================

def _write_request(op: BatchWriteOperation) -> Dict[str, Any]:
    if isinstance(op, BatchPut):
        return {'PutRequest': {'Item': op.item}}
    return {'DeleteRequest': {'Key': op.key}}


def _dispatch_write_chunk(
    gateway: TableGateway,
    request_items: Dict[str, List[Dict[str, Any]]],
    key_names: Dict[str, Set[Tuple[str, ...]]],
    max_retries: int,
) -> None:
    """Run one BatchWriteItem chunk to completion, resubmitting UnprocessedItems."""
    for attempt in range(max_retries + 1):
        try:
            response = gateway.batch_write_item(request_items)
        except RetryableError as e:
            if attempt == max_retries:
                logger.error(f"BatchWriteItem still throttled after {max_retries} retries: {e}")
                break
            delay = _backoff(attempt)
            logger.warning(f"BatchWriteItem throttled, backing off for {delay:.2f}s")
            time.sleep(delay)
            continue

        unprocessed = {
            table_name: requests
            for table_name, requests in response.get('UnprocessedItems', {}).items()
            if requests
        }
        if not unprocessed:
            return

        request_items = unprocessed
        if attempt < max_retries:
            unprocessed_count = sum(len(r) for r in unprocessed.values())
            delay = _backoff(attempt)
            logger.warning(
                f"Retrying {unprocessed_count} unprocessed items after {delay:.2f}s "
                f"(attempt {attempt + 1}/{max_retries + 1})"
            )
            time.sleep(delay)

    unresolved = []
    for table_name, requests in request_items.items():
        for request in requests:
            if 'DeleteRequest' in request:
                unresolved.append((table_name, request['DeleteRequest']['Key']))
            else:
                item = request['PutRequest']['Item']
                unresolved.append((table_name, _extract_key(item, key_names.get(table_name, ())) or item))
    logger.error(f"Failed to process {len(unresolved)} items after {max_retries} retries")
    raise BatchIncomplete("BatchWriteItem", unresolved, max_retries + 1)


def _run_writes(
    gateway: TableGateway,
    operations: Sequence[BatchWriteOperation],
    chunk_size: int,
    max_retries: int,
) -> List[Any]:
    # DynamoDB rejects a call that touches one key twice; the last write wins.
    latest: Dict[Identity, BatchWriteOperation] = {}
    for op in operations:
        latest[op.identity] = op

    key_names = _key_names_by_table((op.table_name, op.key) for op in latest.values())

    for chunk in _chunks(list(latest.values()), chunk_size):
        request_items: Dict[str, List[Dict[str, Any]]] = {}
        for op in chunk:
            request_items.setdefault(op.table_name, []).append(_write_request(op))
        _dispatch_write_chunk(gateway, request_items, key_names, max_retries)

    logger.info(f"Batch write applied {len(latest)} unique writes for {len(operations)} requests")
    return [op.result for op in operations]


# =============================================================================
# Entry points
# =============================================================================

def run_batch(
    gateway: TableGateway,
    operations: Sequence[BatchOperation],
    max_retries: Optional[int] = None,
) -> List[Any]:
    """Execute a mixed list of batch operations.

    Args:
        gateway: Store gateway; its config supplies chunk sizes and the retry ceiling
        operations: BatchGet / BatchPut / BatchDelete values in caller order
        max_retries: Override of ``config.batch_max_retries``

    Returns:
        One result per operation, same order and length as ``operations``

    Raises:
        BatchIncomplete: Unprocessed work remained after the last retry
    """
    config = gateway.config
    if max_retries is None:
        max_retries = config.batch_max_retries

    gets: List[Tuple[int, BatchGet]] = []
    writes: List[Tuple[int, BatchWriteOperation]] = []
    for position, op in enumerate(operations):
        if isinstance(op, BatchGet):
            gets.append((position, op))
        elif isinstance(op, (BatchPut, BatchDelete)):
            writes.append((position, op))
        else:
            raise TypeError(f"Unsupported batch operation: {type(op).__name__}")

    results: List[Any] = [None] * len(operations)

    if writes:
        values = _run_writes(gateway, [op for _, op in writes], config.batch_write_chunk_size, max_retries)
        for (position, _), value in zip(writes, values):
            results[position] = value

    if gets:
        values = _run_gets(gateway, [op for _, op in gets], config.batch_get_chunk_size, max_retries)
        for (position, _), value in zip(gets, values):
            results[position] = value

    return results


def batch_get(gateway: TableGateway, operations: Sequence[BatchGet], max_retries: Optional[int] = None) -> List[Any]:
    """Fetch many items; ``None`` marks items that do not exist."""
    return run_batch(gateway, operations, max_retries)


def batch_write(
    gateway: TableGateway,
    operations: Sequence[BatchWriteOperation],
    max_retries: Optional[int] = None,
) -> List[Any]:
    """Apply many puts and deletes."""
    return run_batch(gateway, operations, max_retries)


