"""
Test configuration and fixtures for the single-table layer.

Provides a test configuration, an in-process DynamoDB (moto) with the shared
tables provisioned, and repositories for the sample object types.
"""

import pytest
from moto import mock_aws

from dynamodb_single_table import (
    DynamoDBConfig,
    Repository,
    TableGateway,
    build_index_directory,
    ensure_table,
)
from tests.helpers.sample_models import (
    HASH_ONLY_TABLE,
    PERSON_CONFIG,
    PURCHASE_CONFIG,
    SINGLE_TABLE,
    THING_CONFIG,
    TICKET_CONFIG,
    USER_CONFIG,
)


@pytest.fixture
def dynamodb_config():
    """DynamoDB configuration for mocked testing."""
    return DynamoDBConfig(
        aws_access_key_id="test_key",
        aws_secret_access_key="test_secret",
        region_name="us-east-1",
        endpoint_url=None,  # Use default AWS endpoint for moto
        environment="test",
        table_prefix=""
    )


@pytest.fixture
def mock_dynamodb():
    """Run the test against moto's in-process DynamoDB."""
    with mock_aws():
        yield


@pytest.fixture
def gateway(dynamodb_config, mock_dynamodb):
    """TableGateway bound to the mocked DynamoDB."""
    return TableGateway(dynamodb_config)


@pytest.fixture
def single_table(gateway, dynamodb_config):
    """Create the shared table holding purchases and tickets."""
    table_name = dynamodb_config.get_table_name(SINGLE_TABLE)
    directories = [build_index_directory(c) for c in (PURCHASE_CONFIG, TICKET_CONFIG)]
    ensure_table(gateway, table_name, directories)
    return table_name


@pytest.fixture
def hash_only_table(gateway, dynamodb_config):
    """Create the hash-only table shared by users, people and things."""
    table_name = dynamodb_config.get_table_name(HASH_ONLY_TABLE)
    directories = [build_index_directory(c) for c in (USER_CONFIG, PERSON_CONFIG, THING_CONFIG)]
    ensure_table(gateway, table_name, directories)
    return table_name


@pytest.fixture
def purchase_repo(gateway, single_table):
    return Repository(PURCHASE_CONFIG, gateway)


@pytest.fixture
def user_repo(gateway, hash_only_table):
    return Repository(USER_CONFIG, gateway)


@pytest.fixture
def person_repo(gateway, hash_only_table):
    return Repository(PERSON_CONFIG, gateway)


@pytest.fixture
def thing_repo(gateway, hash_only_table):
    return Repository(THING_CONFIG, gateway)


@pytest.fixture
def ticket_repo(gateway, single_table):
    return Repository(TICKET_CONFIG, gateway)
