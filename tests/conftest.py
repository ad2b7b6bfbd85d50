"""
Test configuration and fixtures for the DynamoDB adapter.

Provides moto-backed tables, sample entity mappings and adapters wired to the
mocked resource, plus a Mock gateway for tests that count storage calls.
"""

import os
from datetime import datetime
from typing import Optional, Set
from unittest.mock import Mock

import boto3
import pytest
from moto import mock_aws
from pydantic import BaseModel

from dynamodb_adapter import (
    CollectionMapping,
    DynamoDBAdapter,
    DynamoDBConfig,
    DynamoDBGateway,
    Mapper,
)


# Entities

class User(BaseModel):
    id: Optional[str] = None
    name: Optional[str] = None
    age: Optional[int] = None
    active: Optional[bool] = None
    score: Optional[float] = None
    tags: Optional[Set[str]] = None
    created_at: Optional[datetime] = None


class Order(BaseModel):
    region: str
    order_id: int
    customer: Optional[str] = None
    subtotal: Optional[float] = None
    created_at: Optional[datetime] = None


USER_ATTRIBUTES = {
    'id': 'string',
    'name': 'string',
    'age': 'integer',
    'active': 'boolean',
    'score': 'float',
    'tags': 'set',
    'created_at': 'datetime',
}

ORDER_ATTRIBUTES = {
    'region': 'string',
    'order_id': 'integer',
    'customer': 'string',
    'subtotal': 'float',
    'created_at': 'datetime',
}

USERS_DESCRIPTION = {
    'TableName': 'users',
    'KeySchema': [
        {'AttributeName': 'id', 'KeyType': 'HASH'}
    ],
}

ORDERS_DESCRIPTION = {
    'TableName': 'orders',
    'KeySchema': [
        {'AttributeName': 'region', 'KeyType': 'HASH'},
        {'AttributeName': 'order_id', 'KeyType': 'RANGE'}
    ],
    'LocalSecondaryIndexes': [
        {
            'IndexName': 'ByCreatedAt',
            'KeySchema': [
                {'AttributeName': 'region', 'KeyType': 'HASH'},
                {'AttributeName': 'created_at', 'KeyType': 'RANGE'}
            ],
        }
    ],
    'GlobalSecondaryIndexes': [
        {
            'IndexName': 'ByCustomer',
            'KeySchema': [
                {'AttributeName': 'customer', 'KeyType': 'HASH'},
                {'AttributeName': 'created_at', 'KeyType': 'RANGE'}
            ],
        }
    ],
}


@pytest.fixture
def aws_credentials():
    """Fake AWS credentials so nothing can reach a real account."""
    env = {
        'AWS_ACCESS_KEY_ID': 'testing',
        'AWS_SECRET_ACCESS_KEY': 'testing',
        'AWS_SECURITY_TOKEN': 'testing',
        'AWS_SESSION_TOKEN': 'testing',
        'AWS_DEFAULT_REGION': 'us-east-1',
    }
    original = {key: os.environ.get(key) for key in env}
    os.environ.update(env)
    yield
    for key, value in original.items():
        if value is None:
            os.environ.pop(key, None)
        else:
            os.environ[key] = value


@pytest.fixture
def mock_config():
    """DynamoDB configuration for mocked testing (table name == collection name)."""
    return DynamoDBConfig(
        aws_access_key_id="test_key",
        aws_secret_access_key="test_secret",
        region_name="us-east-1",
        endpoint_url=None,
        environment="prod",
        table_prefix="",
        user_timezone=None
    )


@pytest.fixture
def user_mapping():
    return CollectionMapping('users', User, USER_ATTRIBUTES)


@pytest.fixture
def order_mapping():
    return CollectionMapping('orders', Order, ORDER_ATTRIBUTES, identity='order_id')


@pytest.fixture
def mapper(user_mapping, order_mapping):
    return Mapper(user_mapping, order_mapping)


@pytest.fixture
def mock_gateway():
    """Mock storage gateway describing the users and orders tables."""
    gateway = Mock()
    descriptions = {'users': USERS_DESCRIPTION, 'orders': ORDERS_DESCRIPTION}
    gateway.describe_table.side_effect = lambda table_name: descriptions[table_name]
    gateway.get_item.return_value = None
    gateway.query.return_value = {'Items': [], 'Count': 0, 'ScannedCount': 0}
    gateway.scan.return_value = {'Items': [], 'Count': 0, 'ScannedCount': 0}
    return gateway


@pytest.fixture
def mock_dynamodb_resource(aws_credentials):
    """Mock DynamoDB resource."""
    with mock_aws():
        yield boto3.resource('dynamodb', region_name='us-east-1')


@pytest.fixture
def users_table(mock_dynamodb_resource):
    """Create the users table (hash key only)."""
    return mock_dynamodb_resource.create_table(
        TableName='users',
        KeySchema=[
            {'AttributeName': 'id', 'KeyType': 'HASH'}
        ],
        AttributeDefinitions=[
            {'AttributeName': 'id', 'AttributeType': 'S'}
        ],
        BillingMode='PAY_PER_REQUEST'
    )


@pytest.fixture
def orders_table(mock_dynamodb_resource):
    """Create the orders table (hash + range key, one LSI and one GSI)."""
    return mock_dynamodb_resource.create_table(
        TableName='orders',
        KeySchema=[
            {'AttributeName': 'region', 'KeyType': 'HASH'},
            {'AttributeName': 'order_id', 'KeyType': 'RANGE'}
        ],
        AttributeDefinitions=[
            {'AttributeName': 'region', 'AttributeType': 'S'},
            {'AttributeName': 'order_id', 'AttributeType': 'N'},
            {'AttributeName': 'customer', 'AttributeType': 'S'},
            {'AttributeName': 'created_at', 'AttributeType': 'N'}
        ],
        LocalSecondaryIndexes=[
            {
                'IndexName': 'ByCreatedAt',
                'KeySchema': [
                    {'AttributeName': 'region', 'KeyType': 'HASH'},
                    {'AttributeName': 'created_at', 'KeyType': 'RANGE'}
                ],
                'Projection': {'ProjectionType': 'ALL'}
            }
        ],
        GlobalSecondaryIndexes=[
            {
                'IndexName': 'ByCustomer',
                'KeySchema': [
                    {'AttributeName': 'customer', 'KeyType': 'HASH'},
                    {'AttributeName': 'created_at', 'KeyType': 'RANGE'}
                ],
                'Projection': {'ProjectionType': 'ALL'}
            }
        ],
        BillingMode='PAY_PER_REQUEST'
    )


@pytest.fixture
def adapter(mock_config, mapper, mock_dynamodb_resource, users_table, orders_table):
    """Adapter wired to the moto resource."""
    gateway = DynamoDBGateway(mock_config, resource=mock_dynamodb_resource)
    return DynamoDBAdapter(mapper, mock_config, gateway=gateway)


@pytest.fixture
def mock_adapter(mock_config, mapper, mock_gateway):
    """Adapter wired to the Mock gateway."""
    return DynamoDBAdapter(mapper, mock_config, gateway=mock_gateway)
