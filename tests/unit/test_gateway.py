"""
Tests for the storage gateway (core/gateway.py) and DynamoDB error mapping.
"""

from unittest.mock import Mock, patch

import pytest
from botocore.exceptions import ClientError

from dynamodb_adapter.core import DynamoDBGateway, create_gateway, map_dynamodb_error
from dynamodb_adapter.exceptions import (
    ConflictError,
    ConnectionError,
    ItemNotFoundError,
    RetryableError,
    StorageError,
    ValidationError,
)


def create_client_error(error_code: str, message: str = "Test error") -> ClientError:
    """Helper to create ClientError for testing."""
    return ClientError(
        error_response={
            'Error': {
                'Code': error_code,
                'Message': message
            }
        },
        operation_name='TestOperation'
    )


@pytest.fixture
def mock_table():
    """Mock DynamoDB table resource."""
    table = Mock()
    table.query.return_value = {'Items': []}
    table.scan.return_value = {'Items': []}
    table.get_item.return_value = {}
    return table


@pytest.fixture
def mock_resource(mock_table):
    resource = Mock()
    resource.Table.return_value = mock_table
    resource.meta.client.describe_table.return_value = {
        'Table': {'TableName': 'users', 'KeySchema': [{'AttributeName': 'id', 'KeyType': 'HASH'}]}
    }
    return resource


@pytest.fixture
def gateway(mock_config, mock_resource):
    return DynamoDBGateway(mock_config, resource=mock_resource)


class TestErrorMapping:

    @pytest.mark.parametrize('code, expected', [
        ('ConditionalCheckFailedException', ConflictError),
        ('TransactionConflictException', ConflictError),
        ('ValidationException', ValidationError),
        ('ProvisionedThroughputExceededException', RetryableError),
        ('ThrottlingException', RetryableError),
        ('InternalServerError', RetryableError),
        ('AccessDeniedException', ConnectionError),
        ('ExpiredTokenException', ConnectionError),
        ('SomethingNew', ConnectionError),
    ])
    def test_codes(self, code, expected):
        error = create_client_error(code)

        result = map_dynamodb_error(error, 'GetItem', 'users')

        assert isinstance(result, expected)
        assert result.original_error is error
        assert 'GetItem on users' in str(result)

    def test_missing_table_vs_missing_resource(self):
        error = create_client_error('ResourceNotFoundException', 'Requested resource not found')

        assert isinstance(map_dynamodb_error(error, 'Query', 'users'), ConnectionError)
        assert isinstance(map_dynamodb_error(error, 'GetItem', 'users', 'id=u1'), ItemNotFoundError)

    def test_storage_faults_share_a_base(self):
        for code in ('ConditionalCheckFailedException', 'ThrottlingException', 'AccessDeniedException'):
            assert isinstance(map_dynamodb_error(create_client_error(code), 'PutItem', 'users'), StorageError)


class TestDynamoDBGateway:

    def test_lazy_resource_uses_config(self, mock_config):
        with patch('boto3.Session') as mock_session_class:
            mock_session = Mock()
            mock_session_class.return_value = mock_session

            gateway = DynamoDBGateway(mock_config)
            first = gateway.dynamodb
            second = gateway.dynamodb

            assert first is second
            mock_session_class.assert_called_once_with(
                aws_access_key_id="test_key",
                aws_secret_access_key="test_secret",
                region_name="us-east-1"
            )
            boto_config = mock_session.resource.call_args.kwargs['config']
            assert boto_config.read_timeout == 30.0
            assert boto_config.connect_timeout == 30.0

    def test_connection_failure(self, mock_config):
        with patch('boto3.Session', side_effect=Exception("no credentials")):
            gateway = DynamoDBGateway(mock_config)

            with pytest.raises(ConnectionError, match="Failed to connect to DynamoDB"):
                _ = gateway.dynamodb

    def test_table_handles_are_cached(self, gateway, mock_resource):
        assert gateway.table('users') is gateway.table('users')
        mock_resource.Table.assert_called_once_with('users')

    def test_put_item(self, gateway, mock_table):
        gateway.put_item('users', {'id': 'u1'})

        mock_table.put_item.assert_called_once_with(Item={'id': 'u1'})

    def test_update_item_with_attribute_updates(self, gateway, mock_table):
        gateway.update_item('users', {'id': 'u1'}, {'name': {'Action': 'DELETE'}})

        mock_table.update_item.assert_called_once_with(
            Key={'id': 'u1'},
            AttributeUpdates={'name': {'Action': 'DELETE'}}
        )

    def test_update_item_without_attributes(self, gateway, mock_table):
        gateway.update_item('users', {'id': 'u1'}, {})

        mock_table.update_item.assert_called_once_with(Key={'id': 'u1'})

    def test_get_item(self, gateway, mock_table):
        assert gateway.get_item('users', {'id': 'u1'}) is None

        mock_table.get_item.return_value = {'Item': {'id': 'u1'}}
        assert gateway.get_item('users', {'id': 'u1'}) == {'id': 'u1'}

    def test_batch_get_item(self, gateway, mock_resource):
        mock_resource.batch_get_item.return_value = {'Responses': {'users': []}, 'UnprocessedKeys': {}}
        request = {'users': {'Keys': [{'id': 'u1'}]}}

        assert gateway.batch_get_item(request)['UnprocessedKeys'] == {}
        mock_resource.batch_get_item.assert_called_once_with(RequestItems=request)

    def test_describe_table_returns_description(self, gateway, mock_resource):
        description = gateway.describe_table('users')

        assert description['TableName'] == 'users'
        mock_resource.meta.client.describe_table.assert_called_once_with(TableName='users')

    def test_client_errors_are_mapped_and_chained(self, gateway, mock_table):
        original = create_client_error('ConditionalCheckFailedException')
        mock_table.delete_item.side_effect = original

        with pytest.raises(ConflictError) as exc_info:
            gateway.delete_item('users', {'id': 'u1'})

        assert exc_info.value.__cause__ is original
        assert exc_info.value.resource_id == 'id=u1'

    def test_query_and_scan_errors(self, gateway, mock_table):
        mock_table.query.side_effect = create_client_error('ValidationException')
        mock_table.scan.side_effect = create_client_error('ProvisionedThroughputExceededException')

        with pytest.raises(ValidationError):
            gateway.query('users', Limit=1)
        with pytest.raises(RetryableError):
            gateway.scan('users')

    def test_create_gateway(self, mock_config, mock_resource):
        gateway = create_gateway(mock_config, mock_resource)

        assert isinstance(gateway, DynamoDBGateway)
        assert gateway.dynamodb is mock_resource
