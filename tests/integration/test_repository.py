"""
Repository tests against moto's in-process DynamoDB.

Exercises put/get/update/delete, index selection and pagination on the shared
table, sparse secondary indexes, custom indexes and lifecycle hooks.
"""

from datetime import date
from decimal import Decimal
from unittest.mock import Mock, patch

import pytest

from dynamodb_single_table import Repository, RepositoryHooks, WhereClause
from dynamodb_single_table.exceptions import (
    ItemNotFoundError,
    MissingRequiredField,
    NoMatchingIndex,
    UnknownIndex,
    ValidationRejected,
)
from tests.helpers.sample_models import PURCHASE_CONFIG, Purchase, Status, Ticket, User


def purchase_id(purchase):
    return {'userId': purchase.userId, 'itemId': purchase.itemId, 'id': purchase.id}


@pytest.fixture
def purchases(purchase_repo):
    """Three purchases for u1 and one for u2."""
    stored = [
        Purchase(userId='u1', itemId='couch', id='1', price=10, category='furniture'),
        Purchase(userId='u1', itemId='couch', id='2', price=30, category='furniture'),
        Purchase(userId='u1', itemId='lamp', id='3', price=20.5),
        Purchase(userId='u2', itemId='couch', id='4', price=15, skuHash='sku-1', skuSort='2024'),
    ]
    for purchase in stored:
        purchase_repo.put(purchase)
    return stored


def ids(result):
    return [purchase.id for purchase in result.results]


class TestPutAndGet:
    """Test writes, reads and the stored item shape."""

    def test_put_then_get(self, purchase_repo):
        purchase = Purchase(userId='u1', itemId='couch', id='1', price=42.5, category='furniture')

        stored = purchase_repo.put(purchase)
        fetched = purchase_repo.get({'userId': 'u1', 'itemId': 'couch', 'id': '1'})

        assert stored == purchase
        assert fetched == purchase

    def test_stored_item_shape(self, purchase_repo, gateway):
        purchase_repo.put({'userId': 'u1', 'itemId': 'couch', 'id': '1', 'price': 42.5, 'category': 'furniture'})

        item = gateway.get_item(purchase_repo.table_name, {
            '__hashKey': 'Purchase#userId-u1',
            '__sortKey': 'Purchase#itemId-couch#id-1',
        })

        assert item['__objectType'] == 'Purchase'
        assert item['__lsi0'] == 'byPrice#price-000000000000000042.50'
        assert item['__gsiHash0'] == 'Purchase-byItem#itemId-couch'
        assert item['__gsiSort0'] == 'byItem#userId-u1'
        assert item['__gsiHash1'] == 'Purchase-byCategory#category-furniture'
        assert item['price'] == Decimal('42.5')

    def test_secondary_index_is_sparse(self, purchase_repo):
        formatted = purchase_repo.format_for_storage(Purchase(userId='u1', itemId='lamp', id='3'))

        assert '__gsiHash1' not in formatted
        assert '__gsiSort1' not in formatted
        assert 'category' not in formatted

    def test_format_for_storage_returns_new_dict(self, purchase_repo):
        fields = {'userId': 'u1', 'itemId': 'lamp', 'id': '3'}

        formatted = purchase_repo.format_for_storage(fields)

        assert fields == {'userId': 'u1', 'itemId': 'lamp', 'id': '3'}
        assert formatted['__hashKey'] == 'Purchase#userId-u1'

    def test_get_missing_item(self, purchase_repo):
        assert purchase_repo.get({'userId': 'nobody', 'itemId': 'x', 'id': '0'}) is None

    def test_get_with_projection(self, purchase_repo, purchases):
        fetched = purchase_repo.get(purchase_id(purchases[0]), fields_to_project=['price'])

        assert fetched.model_fields_set == {'price'}
        assert fetched.price == 10

    def test_get_key_requires_every_primary_field(self, purchase_repo):
        with pytest.raises(MissingRequiredField) as exc_info:
            purchase_repo.get_key({'userId': 'u1', 'itemId': 'couch'})

        assert exc_info.value.field_name == 'id'

    def test_rejected_record_is_never_sent(self, purchase_repo, gateway):
        with patch.object(gateway, 'put_item') as mock_put:
            with pytest.raises(ValidationRejected) as exc_info:
                purchase_repo.put({'userId': 'u1', 'itemId': 'couch', 'id': '1', 'price': 'cheap'})

        mock_put.assert_not_called()
        assert exc_info.value.type_name == 'Purchase'
        assert exc_info.value.errors[0]['loc'] == ('price',)

    def test_hash_only_type(self, user_repo, gateway):
        user_repo.put(User(id='1', name='Creed'))

        item = gateway.get_item(user_repo.table_name, {'pk1': 'User#id-1'})

        assert '__sortKey' not in item
        assert user_repo.get({'id': '1'}) == User(id='1', name='Creed')


class TestUpdateAndDelete:
    """Test read-modify-write updates and deletes."""

    def test_update_merges_fields(self, purchase_repo, purchases):
        updated = purchase_repo.update(purchase_id(purchases[0]), {'price': 99})

        assert updated.price == 99
        assert updated.category == 'furniture'
        assert purchase_repo.get(purchase_id(purchases[0])).price == 99

    def test_update_recomputes_index_keys(self, purchase_repo, purchases):
        purchase_repo.update(purchase_id(purchases[2]), {'category': 'lighting'})

        result = purchase_repo.query({'args': {'category': 'lighting'}})

        assert ids(result) == ['3']

    def test_update_missing_item(self, purchase_repo):
        with pytest.raises(ItemNotFoundError):
            purchase_repo.update({'userId': 'u9', 'itemId': 'x', 'id': '9'}, {'price': 1})

    def test_update_with_upsert(self, purchase_repo):
        created = purchase_repo.update({'userId': 'u9', 'itemId': 'x', 'id': '9'}, {'price': 1}, upsert=True)

        assert created == Purchase(userId='u9', itemId='x', id='9', price=1)
        assert purchase_repo.get({'userId': 'u9', 'itemId': 'x', 'id': '9'}) == created

    def test_update_validates_merged_record(self, purchase_repo, purchases):
        with pytest.raises(ValidationRejected):
            purchase_repo.update(purchase_id(purchases[0]), {'price': 'free'})

    def test_delete(self, purchase_repo, purchases):
        assert purchase_repo.delete(purchase_id(purchases[0])) is True
        assert purchase_repo.get(purchase_id(purchases[0])) is None


class TestQuery:
    """Test index selection, ordering and pagination."""

    def test_query_by_hash_key_defaults_to_descending(self, purchase_repo, purchases):
        result = purchase_repo.query({'args': {'userId': 'u1'}})

        assert ids(result) == ['3', '2', '1']
        assert all(isinstance(p, Purchase) for p in result.results)

    def test_query_ascending(self, purchase_repo, purchases):
        result = purchase_repo.query(WhereClause(args={'userId': 'u1'}, sort='asc'))

        assert ids(result) == ['1', '2', '3']

    def test_query_by_sort_prefix(self, purchase_repo, purchases):
        result = purchase_repo.query({'args': {'userId': 'u1', 'itemId': 'couch'}, 'sort': 'asc'})

        assert ids(result) == ['1', '2']

    def test_query_sorted_by_local_index(self, purchase_repo, purchases):
        result = purchase_repo.query({'args': {'userId': 'u1'}, 'sort_by': 'price', 'sort': 'asc'})

        assert ids(result) == ['1', '3', '2']

    def test_query_global_index(self, purchase_repo, purchases):
        result = purchase_repo.query({'args': {'itemId': 'couch'}, 'sort': 'asc'})

        assert sorted(ids(result)) == ['1', '2', '4']

    def test_query_sparse_index_only_sees_indexed_items(self, purchase_repo, purchases):
        result = purchase_repo.query({'args': {'category': 'furniture'}, 'sort': 'asc'})

        assert ids(result) == ['1', '2']

    def test_pagination(self, purchase_repo, purchases):
        first = purchase_repo.query({'args': {'userId': 'u1'}, 'sort': 'asc', 'limit': 2})

        assert ids(first) == ['1', '2']
        assert first.next_page_args is not None
        assert first.next_page_args.cursor is not None

        second = purchase_repo.query(first.next_page_args)

        assert ids(second) == ['3']

    def test_default_limit(self, purchase_repo):
        for n in range(7):
            purchase_repo.put(Purchase(userId='u5', itemId='pen', id=str(n)))

        result = purchase_repo.query({'args': {'userId': 'u5'}})

        assert len(result.results) == 5
        assert result.next_page_args is not None

    def test_query_one(self, purchase_repo, purchases):
        first = purchase_repo.query_one({'args': {'userId': 'u1'}, 'sort': 'asc'})

        assert first.id == '1'
        assert purchase_repo.query_one({'args': {'userId': 'nobody'}}) is None

    def test_no_matching_index(self, purchase_repo):
        with pytest.raises(NoMatchingIndex):
            purchase_repo.query({'args': {'userId': 'u1', 'id': '1'}})

    def test_unknown_index(self, purchase_repo):
        with pytest.raises(UnknownIndex) as exc_info:
            purchase_repo.query({'args': {'userId': 'u1'}, 'index': 'byColor'})

        assert 'byPrice' in exc_info.value.valid_tags

    def test_custom_index(self, purchase_repo, purchases):
        by_tag = purchase_repo.queries['bySku']({'args': {'skuHash': 'sku-1'}})
        explicit = purchase_repo.query({'args': {'skuHash': 'sku-1'}, 'index': 'bySku'})

        assert ids(by_tag) == ids(explicit) == ['4']

    def test_named_queries(self, purchase_repo, purchases):
        result = purchase_repo.queries['byPrice']({'args': {'userId': 'u1'}, 'sort': 'asc'})

        assert set(purchase_repo.queries) == set(purchase_repo.directory.tags)
        assert ids(result) == ['1', '3', '2']

    def test_cursor_from_object(self, purchase_repo, purchases):
        index = purchase_repo.directory.get('byPrice')
        cursor = purchase_repo.get_cursor(purchases[0], index)

        assert set(cursor) == {'__hashKey', '__sortKey', '__lsi0'}

        result = purchase_repo.query({'args': {'userId': 'u1'}, 'sort_by': 'price', 'sort': 'asc', 'cursor': cursor})

        assert ids(result) == ['3', '2']


class TestEnumAndDateKeys:
    """Test lookups keyed by enum and date values, as callers pass them."""

    @pytest.fixture
    def ticket(self, ticket_repo):
        return ticket_repo.put(Ticket(userId='u1', id='1', status=Status.OPEN, openedAt=date(2024, 1, 2), title='Broken lamp'))

    def test_stored_sort_key_uses_plain_values(self, ticket_repo, ticket, gateway):
        item = gateway.get_item(ticket_repo.table_name, {
            '__hashKey': 'Ticket#userId-u1',
            '__sortKey': 'Ticket#status-open#openedAt-2024-01-02#id-1',
        })

        assert item['status'] == 'open'
        assert item['openedAt'] == '2024-01-02'
        assert item['__gsiHash2'] == 'Ticket-byStatus#status-open'

    def test_get_key_matches_stored_key(self, ticket_repo, ticket):
        key = ticket_repo.get_key({'userId': 'u1', 'status': Status.OPEN, 'openedAt': date(2024, 1, 2), 'id': '1'})

        assert key == {
            '__hashKey': 'Ticket#userId-u1',
            '__sortKey': 'Ticket#status-open#openedAt-2024-01-02#id-1',
        }
        assert ticket_repo.get_key(ticket) == key

    def test_get_with_enum_and_date(self, ticket_repo, ticket):
        fetched = ticket_repo.get({'userId': 'u1', 'status': Status.OPEN, 'openedAt': date(2024, 1, 2), 'id': '1'})

        assert fetched == ticket

    def test_query_with_enum_prefix(self, ticket_repo, ticket):
        ticket_repo.put(Ticket(userId='u1', id='2', status=Status.CLOSED, openedAt=date(2024, 1, 1)))

        result = ticket_repo.query({'args': {'userId': 'u1', 'status': Status.OPEN}})

        assert result.results == [ticket]

    def test_query_global_index_with_enum_and_date(self, ticket_repo, ticket):
        result = ticket_repo.query({'args': {'status': Status.OPEN, 'openedAt': date(2024, 1, 2)}})
        first = ticket_repo.query_one({'args': {'status': Status.OPEN}})

        assert result.results == [ticket]
        assert first == ticket

    def test_batch_get_with_enum_and_date(self, ticket_repo, ticket):
        fetched = ticket_repo.batch_get([
            {'userId': 'u1', 'status': Status.OPEN, 'openedAt': date(2024, 1, 2), 'id': '1'},
            {'userId': 'u1', 'status': Status.CLOSED, 'openedAt': date(2024, 1, 2), 'id': '1'},
        ])

        assert fetched == [ticket, None]

    def test_update_and_delete_with_enum_and_date(self, ticket_repo, ticket):
        ticket_id = {'userId': 'u1', 'status': Status.OPEN, 'openedAt': date(2024, 1, 2), 'id': '1'}

        updated = ticket_repo.update(ticket_id, {'title': 'Fixed lamp'})

        assert updated.title == 'Fixed lamp'
        assert ticket_repo.delete(ticket_id) is True
        assert ticket_repo.get(ticket_id) is None


class TestQueryArgs:
    """Test the boto3 Query parameters built for a where clause."""

    def test_primary_index_args(self, purchase_repo):
        where = WhereClause(args={'userId': 'u1'})
        index = purchase_repo.find_index_for_query(where)

        query_args = purchase_repo.get_query_args(where, index)

        assert index.tag == 'primary'
        assert 'IndexName' not in query_args
        assert query_args['Limit'] == 5
        assert query_args['ScanIndexForward'] is False
        assert 'ExclusiveStartKey' not in query_args

    def test_secondary_index_args(self, purchase_repo):
        where = WhereClause(args={'userId': 'u1'}, sort_by='price', sort='asc', limit=20, cursor={'k': 'v'})
        index = purchase_repo.find_index_for_query(where)

        query_args = purchase_repo.get_query_args(where, index)

        assert query_args['IndexName'] == '__lsi0'
        assert query_args['Limit'] == 20
        assert query_args['ScanIndexForward'] is True
        assert query_args['ExclusiveStartKey'] == {'k': 'v'}

    def test_hash_and_sort_key_for_query(self, purchase_repo):
        index = purchase_repo.directory.primary

        hash_key, sort_key = purchase_repo.get_sort_key_and_hash_key_for_query(
            {'args': {'userId': 'u1', 'itemId': 'couch'}}, index
        )

        assert hash_key == 'Purchase#userId-u1'
        assert sort_key == 'Purchase#itemId-couch'

    def test_custom_index_needs_its_hash_attribute(self, purchase_repo):
        index = purchase_repo.directory.get('bySku')

        with pytest.raises(MissingRequiredField) as exc_info:
            purchase_repo.get_query_args(WhereClause(args={'skuSort': '2024'}, index='bySku'), index)

        assert exc_info.value.field_name == 'skuHash'


class TestHooks:
    """Test lifecycle hooks."""

    @pytest.fixture
    def hooks(self):
        return RepositoryHooks(get=Mock(), put=Mock(), delete=Mock(), query=Mock(), dangerously_update=Mock())

    @pytest.fixture
    def hooked_repo(self, gateway, single_table, hooks):
        return Repository(PURCHASE_CONFIG, gateway, hooks)

    def test_hooks_receive_args_result_and_request(self, hooked_repo, hooks):
        purchase = Purchase(userId='u1', itemId='couch', id='1', price=5)
        purchase_key = purchase_id(purchase)

        hooked_repo.put(purchase)
        hooked_repo.get(purchase_key)
        hooked_repo.update(purchase_key, {'price': 6})
        hooked_repo.query({'args': {'userId': 'u1'}})
        hooked_repo.delete(purchase_key)

        args, result, request = hooks.put.call_args.args
        assert args == (purchase,)
        assert result == purchase
        assert request['TableName'] == hooked_repo.table_name
        assert request['Item']['__hashKey'] == 'Purchase#userId-u1'

        args, result, request = hooks.get.call_args.args
        assert args == (purchase_key, None)
        assert result == purchase
        assert request['Key'] == hooked_repo.get_key(purchase_key)

        args, result, _ = hooks.dangerously_update.call_args.args
        assert args == (purchase_key, {'price': 6}, {'upsert': False})
        assert result.price == 6

        args, result, request = hooks.query.call_args.args
        assert args[0].args == {'userId': 'u1'}
        assert [p.price for p in result.results] == [6]
        assert request['Limit'] == 5

        hooks.delete.assert_called_once()
        assert hooks.delete.call_args.args[1] is True

    def test_update_does_not_fire_get_hook(self, hooked_repo, hooks):
        hooked_repo.update({'userId': 'u1', 'itemId': 'x', 'id': '1'}, {'price': 1}, upsert=True)

        hooks.get.assert_not_called()
        hooks.dangerously_update.assert_called_once()

    def test_get_hook_sees_missing_items(self, hooked_repo, hooks):
        hooked_repo.get({'userId': 'u1', 'itemId': 'x', 'id': '404'})

        assert hooks.get.call_args.args[1] is None

    def test_hook_return_value_is_ignored(self, gateway, single_table):
        repo = Repository(PURCHASE_CONFIG, gateway, RepositoryHooks(put=Mock(return_value='ignored')))

        assert isinstance(repo.put(Purchase(userId='u1', itemId='x', id='1')), Purchase)
