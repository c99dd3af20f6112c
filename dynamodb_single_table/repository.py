"""
Repository: object-level operations for one type stored in the single table.

A Repository combines the index directory, the key codec and the query
planner, and is the only component that calls the store (through an injected
TableGateway). Objects are pydantic models; the model class doubles as the
schema every write is validated against before any network call.

Hooks (``RepositoryHooks``) are called after each store call with
``(args, result, request)``. They observe; their return value is ignored.
"""

import logging
from typing import Any, Callable, Dict, Generic, List, Mapping, Optional, Sequence, Set, Tuple, TypeVar, Union

from boto3.dynamodb.conditions import Key
from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from .batch import run_batch
from .core.table_gateway import TableGateway
from .directory import IndexDirectory, build_index_directory
from .exceptions import (
    ItemNotFoundError,
    MissingRequiredField,
    NoMatchingIndex,
    ValidationError,
    ValidationRejected,
)
from .keys import KeyOptions, encode_index_key, hash_key_value, is_present, sort_key_prefix
from .models.batch import BatchDelete, BatchGet, BatchPut
from .models.index import OBJECT_TYPE_ATTRIBUTE, IndexDefinition, RepositoryConfig
from .models.query import QueryResult, WhereClause
from .planner import find_index_for_query
from .utils import build_projection_expression, strip_attributes, to_dynamodb_value, to_plain_value

T = TypeVar('T', bound=BaseModel)

logger = logging.getLogger(__name__)

Fields = Union[BaseModel, Mapping[str, Any]]
WhereArg = Union[WhereClause, Mapping[str, Any]]


class RepositoryHooks(BaseModel):
    """Callbacks invoked after each store call as ``hook(args, result, request)``."""

    get: Optional[Callable[..., Any]] = None
    put: Optional[Callable[..., Any]] = None
    delete: Optional[Callable[..., Any]] = None
    query: Optional[Callable[..., Any]] = None
    dangerously_update: Optional[Callable[..., Any]] = None

    model_config = ConfigDict(arbitrary_types_allowed=True)


class RepositoryBatch(Generic[T]):
    """Builds batch operations for one repository; run them with ``run_batch``."""

    def __init__(self, repository: 'Repository[T]'):
        self._repository = repository

    def get(self, id: Fields, fields_to_project: Optional[List[str]] = None) -> BatchGet:
        repo = self._repository
        return BatchGet(
            table_name=repo.table_name,
            key=repo.get_key(id),
            fields_to_project=fields_to_project,
            loader=lambda item: repo._load(item, fields_to_project),
        )

    def put(self, thing: Fields) -> BatchPut:
        repo = self._repository
        model = repo.validate(thing)
        item = repo._format_model(model)
        return BatchPut(
            table_name=repo.table_name,
            key=repo._primary_key_of(item),
            item=item,
            result=model,
        )

    def delete(self, id: Fields) -> BatchDelete:
        repo = self._repository
        return BatchDelete(table_name=repo.table_name, key=repo.get_key(id))


class Repository(Generic[T]):
    """Typed access to one object type inside a shared DynamoDB table."""

    def __init__(self, config: RepositoryConfig, gateway: TableGateway, hooks: Optional[RepositoryHooks] = None):
        """Initialize repository.

        Args:
            config: Type name, schema and index layout of the object type
            gateway: Store gateway shared by every repository of the process
            hooks: Optional observers of store calls

        Raises:
            InvalidIndexSpec: The index layout in ``config`` is invalid
        """
        self.config = config
        self.gateway = gateway
        self.hooks = hooks or RepositoryHooks()
        self.directory: IndexDirectory = build_index_directory(config)
        self.key_options = KeyOptions.from_config(gateway.config)
        self.table_name = gateway.config.get_table_name(config.table_name)
        self.batch: RepositoryBatch[T] = RepositoryBatch(self)
        self.queries: Dict[str, Callable[[WhereArg], QueryResult]] = {
            index.tag: self._named_query(index) for index in self.directory.indexes
        }
        self._storage_attributes = self._reserved_attributes()

    @property
    def type_name(self) -> str:
        return self.config.type_name

    @property
    def model_class(self) -> type:
        """Return the pydantic model class of this object type."""
        return self.config.item_schema

    # -------------------------------------------------------------------------
    # Conversion
    # -------------------------------------------------------------------------

    def _reserved_attributes(self) -> Set[str]:
        attributes = {OBJECT_TYPE_ATTRIBUTE}
        for index in self.directory.indexes:
            if not index.is_custom:
                attributes.add(index.hash_key_attribute)
                attributes.add(index.sort_key_attribute)
        return attributes

    @staticmethod
    def _fields(thing: Fields) -> Dict[str, Any]:
        """Plain field values of a model or mapping, as keys are encoded from them."""
        if isinstance(thing, BaseModel):
            return to_plain_value(thing.model_dump(exclude_none=True))
        return to_plain_value(dict(thing))

    def validate(self, thing: Fields) -> T:
        """Validate ``thing`` against the schema.

        Raises:
            ValidationRejected: The schema rejected the record
        """
        try:
            return self.model_class.model_validate(self._fields(thing))
        except PydanticValidationError as e:
            logger.warning(f"{self.type_name} rejected by schema: {e.error_count()} errors")
            raise ValidationRejected(self.type_name, e.errors(), e) from e

    def _load(self, item: Dict[str, Any], fields_to_project: Optional[List[str]] = None) -> T:
        """Turn a stored item back into a model.

        Projected reads build the model without validation since required
        fields may be missing on purpose.
        """
        data = strip_attributes(item, self._storage_attributes)
        if fields_to_project:
            return self.model_class.model_construct(**data)
        try:
            return self.model_class.model_validate(data)
        except PydanticValidationError as e:
            logger.error(f"Failed to convert item to {self.type_name}: {e}")
            raise ValidationError(f"Failed to convert item to {self.type_name}: {e}", e.errors(), e) from e

    def _format_model(self, model: BaseModel) -> Dict[str, Any]:
        fields = self._fields(model)
        item = to_dynamodb_value(fields)
        item[OBJECT_TYPE_ATTRIBUTE] = self.type_name

        for index in self.directory.indexes:
            if index.is_custom:
                continue
            if not index.is_primary and not all(is_present(fields, f) for f in index.hash_key_fields):
                # Sparse: the item stays out of this index.
                continue
            item.update(encode_index_key(index, fields, self.key_options))
        return item

    def format_for_storage(self, thing: Fields) -> Dict[str, Any]:
        """Return a new item with the discriminator and every computed index key.

        Raises:
            ValidationRejected: The schema rejected the record
            MissingRequiredField: A primary key field is missing
        """
        return self._format_model(self.validate(thing))

    def _primary_key_of(self, item: Mapping[str, Any]) -> Dict[str, Any]:
        primary = self.directory.primary
        return {
            attribute: item[attribute]
            for attribute in (primary.hash_key_attribute, primary.sort_key_attribute)
            if attribute in item
        }

    def get_key(self, id: Fields) -> Dict[str, Any]:
        """Physical primary key for ``id``; every primary key field is required.

        Raises:
            MissingRequiredField: A hash or sort key field is missing
        """
        fields = self._fields(id)
        primary = self.directory.primary
        for name in primary.sort_key_fields:
            if not is_present(fields, name):
                raise MissingRequiredField(name, primary.tag, sorted(fields))
        return encode_index_key(primary, fields, self.key_options)

    def get_cursor(self, thing: Fields, index: Optional[IndexDefinition] = None) -> Dict[str, Any]:
        """Continuation token that starts a query right after ``thing``."""
        formatted = self.format_for_storage(thing)
        attributes = [self.directory.primary.hash_key_attribute, self.directory.primary.sort_key_attribute]
        if index is not None:
            attributes += [index.hash_key_attribute, index.sort_key_attribute]
        return {attribute: formatted[attribute] for attribute in attributes if attribute in formatted}

    def _notify(self, hook_name: str, args: Tuple[Any, ...], result: Any, request: Dict[str, Any]) -> None:
        hook = getattr(self.hooks, hook_name)
        if hook is not None:
            hook(args, result, request)

    # -------------------------------------------------------------------------
    # Single-item operations
    # -------------------------------------------------------------------------

    def _read_request(self, key: Dict[str, Any], fields_to_project: Optional[List[str]]) -> Dict[str, Any]:
        request: Dict[str, Any] = {'TableName': self.table_name, 'Key': key}
        proj_expr, expr_names = build_projection_expression(fields_to_project)
        if proj_expr:
            request['ProjectionExpression'] = proj_expr
            request['ExpressionAttributeNames'] = expr_names
        return request

    def get(self, id: Fields, fields_to_project: Optional[List[str]] = None) -> Optional[T]:
        """Get an item by its primary key fields.

        Args:
            id: Primary key fields (mapping or model)
            fields_to_project: Fields to fetch, all when None

        Returns:
            Model instance if found, None otherwise
        """
        key = self.get_key(id)
        item = self.gateway.get_item(self.table_name, key, fields_to_project)
        result = self._load(item, fields_to_project) if item is not None else None
        self._notify('get', (id, fields_to_project), result, self._read_request(key, fields_to_project))
        return result

    def put(self, thing: Fields) -> T:
        """Validate and store ``thing``, overwriting any item with the same key.

        Raises:
            ValidationRejected: The schema rejected ``thing``; nothing was sent
        """
        model = self.validate(thing)
        item = self._format_model(model)
        self.gateway.put_item(self.table_name, item)
        logger.info(f"Put {self.type_name} {self._primary_key_of(item)}")
        self._notify('put', (thing,), model, {'TableName': self.table_name, 'Item': item})
        return model

    def update(self, id: Fields, updates: Mapping[str, Any], upsert: bool = False) -> T:
        """Read the item, merge ``updates`` into it and write it back.

        This is not atomic: a write landing between the read and the write is
        overwritten.

        Raises:
            ItemNotFoundError: No item exists and ``upsert`` is False
            ValidationRejected: The merged record fails validation
        """
        key = self.get_key(id)
        existing = self.gateway.get_item(self.table_name, key)
        if existing is None:
            if not upsert:
                raise ItemNotFoundError(self.table_name, key)
            base = self._fields(id)
        else:
            base = strip_attributes(existing, self._storage_attributes)

        model = self.validate({**base, **dict(updates)})
        item = self._format_model(model)
        self.gateway.put_item(self.table_name, item)
        logger.info(f"Updated {self.type_name} {key}")
        self._notify(
            'dangerously_update',
            (id, updates, {'upsert': upsert}),
            model,
            {'TableName': self.table_name, 'Key': key},
        )
        return model

    def delete(self, id: Fields) -> bool:
        """Delete the item with the given primary key fields."""
        key = self.get_key(id)
        self.gateway.delete_item(self.table_name, key)
        self._notify('delete', (id,), True, {'TableName': self.table_name, 'Key': key})
        return True

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @staticmethod
    def _where(where: WhereArg) -> WhereClause:
        if isinstance(where, WhereClause):
            return where
        return WhereClause.model_validate(dict(where))

    def find_index_for_query(self, where: WhereArg) -> Optional[IndexDefinition]:
        return find_index_for_query(self._where(where), self.directory)

    def get_sort_key_and_hash_key_for_query(self, where: WhereArg, index: IndexDefinition) -> Tuple[Any, Any]:
        """Return ``(hash_key, sort_key_prefix)``; the prefix is None when unused."""
        args = self._fields(self._where(where).args)
        if index.is_custom:
            if not is_present(args, index.hash_key_attribute):
                raise MissingRequiredField(index.hash_key_attribute, index.tag, sorted(args))
            return args[index.hash_key_attribute], args.get(index.sort_key_attribute)

        hash_key = hash_key_value(index, args, self.key_options)
        sort_key = sort_key_prefix(index, args, self.key_options) if index.sort_key_fields else None
        return hash_key, sort_key

    def get_query_args(self, where: WhereArg, index: IndexDefinition) -> Dict[str, Any]:
        """Build the boto3 Query parameters for ``where`` against ``index``."""
        where = self._where(where)
        hash_key, sort_key = self.get_sort_key_and_hash_key_for_query(where, index)

        condition = Key(index.hash_key_attribute).eq(hash_key)
        if isinstance(sort_key, str):
            condition = condition & Key(index.sort_key_attribute).begins_with(sort_key)
        elif sort_key is not None:
            condition = condition & Key(index.sort_key_attribute).eq(sort_key)

        query_kwargs: Dict[str, Any] = {
            'KeyConditionExpression': condition,
            'Limit': where.limit or self.gateway.config.default_query_limit,
            'ScanIndexForward': where.sort == 'asc',
        }
        if index.index_name:
            query_kwargs['IndexName'] = index.index_name
        if where.cursor:
            query_kwargs['ExclusiveStartKey'] = where.cursor
        return query_kwargs

    def execute_query(self, where: WhereArg, index: IndexDefinition) -> QueryResult:
        """Run one page of ``where`` against an already chosen index."""
        where = self._where(where)
        query_kwargs = self.get_query_args(where, index)
        response = self.gateway.query(self.table_name, **query_kwargs)

        last_key = response.get('LastEvaluatedKey')
        result = QueryResult(
            results=[self._load(item) for item in response.get('Items', [])],
            next_page_args=where.model_copy(update={'cursor': last_key}) if last_key else None,
        )
        logger.debug(f"Query on {self.type_name}/{index.tag} returned {len(result.results)} items")
        self._notify('query', (where,), result, {'TableName': self.table_name, **query_kwargs})
        return result

    def query(self, where: WhereArg) -> QueryResult:
        """Pick an index for ``where`` and run one page of it.

        Raises:
            UnknownIndex: ``where.index`` is not a configured tag
            NoMatchingIndex: No index can answer ``where``
        """
        where = self._where(where)
        index = find_index_for_query(where, self.directory)
        if index is None:
            raise NoMatchingIndex(self.type_name, sorted(where.args), where.sort_by)
        return self.execute_query(where, index)

    def query_one(self, where: WhereArg) -> Optional[T]:
        """First result of ``where``, or None."""
        where = self._where(where).model_copy(update={'limit': 1})
        result = self.query(where)
        return result.results[0] if result.results else None

    def _named_query(self, index: IndexDefinition) -> Callable[[WhereArg], QueryResult]:
        def run(where: WhereArg) -> QueryResult:
            return self.execute_query(where, index)
        return run

    # -------------------------------------------------------------------------
    # Batch shortcuts
    # -------------------------------------------------------------------------

    def batch_get(self, ids: Sequence[Fields], fields_to_project: Optional[List[str]] = None) -> List[Optional[T]]:
        """Get many items; positions of missing items hold None."""
        return run_batch(self.gateway, [self.batch.get(id, fields_to_project) for id in ids])

    def batch_put(self, things: Sequence[Fields]) -> List[T]:
        """Validate and store many items."""
        return run_batch(self.gateway, [self.batch.put(thing) for thing in things])

    def batch_delete(self, ids: Sequence[Fields]) -> List[bool]:
        return run_batch(self.gateway, [self.batch.delete(id) for id in ids])
