import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from dynamodb_adapter.config import DynamoDBConfig


ENV = {
    "AWS_ACCESS_KEY_ID": "key-from-env",
    "AWS_SECRET_ACCESS_KEY": "secret-from-env",
    "AWS_REGION": "eu-central-1",
    "DYNAMODB_ENDPOINT_URL": "http://dynamodb.local:4566",
    "DYNAMODB_TABLE_PREFIX": "shop",
    "DYNAMODB_USER_TIMEZONE": "Europe/Berlin",
    "DYNAMODB_DEBUG_LOGGING": "TRUE",
    "ENVIRONMENT": "staging",
}


class TestDefaults:

    @pytest.fixture
    def config(self):
        with patch.dict(os.environ, {}, clear=True):
            yield DynamoDBConfig()

    def test_network_settings(self, config):
        assert config.region_name == "us-east-1"
        assert config.endpoint_url is None
        assert (config.max_pool_connections, config.retries, config.timeout_seconds) == (50, 3, 30.0)

    def test_batch_settings(self, config):
        assert config.batch_max_retries == 10
        assert config.batch_retry_base_delay == 0.05

    def test_naming_and_loading(self, config):
        assert config.environment == "prod"
        assert config.table_prefix == ""
        assert config.user_timezone is None
        assert config.enable_debug_logging is False


class TestEnvironment:

    def test_every_variable_is_read(self):
        with patch.dict(os.environ, ENV, clear=True):
            config = DynamoDBConfig.from_env()

        assert config.aws_access_key_id == "key-from-env"
        assert config.aws_secret_access_key == "secret-from-env"
        assert config.region_name == "eu-central-1"
        assert config.endpoint_url == "http://dynamodb.local:4566"
        assert config.table_prefix == "shop"
        assert config.user_timezone == "Europe/Berlin"
        assert config.environment == "staging"
        # flag parsing is case-insensitive
        assert config.enable_debug_logging is True

    def test_explicit_values_win(self):
        with patch.dict(os.environ, ENV, clear=True):
            config = DynamoDBConfig(region_name="ap-south-1", environment="prod")

        assert config.region_name == "ap-south-1"
        assert config.environment == "prod"


@pytest.mark.parametrize("prefix, environment, expected", [
    ("shop", "dev", "shop_dev_orders"),
    ("shop", "prod", "shop_orders"),
    ("", "test", "test_orders"),
    ("", "prod", "orders"),
])
def test_get_table_name(prefix, environment, expected):
    config = DynamoDBConfig(table_prefix=prefix, environment=environment)

    assert config.get_table_name("orders") == expected


@pytest.mark.parametrize("overrides, message", [
    ({"environment": "qa"}, "Environment must be one of"),
    ({"user_timezone": "Mars/Olympus_Mons"}, "Invalid timezone"),
    ({"region_name": ""}, "region name is required"),
    ({"batch_max_retries": -1}, "greater than or equal"),
    ({"timeout_seconds": 0}, "greater than"),
    ({"max_pool_connections": 0}, "greater than or equal"),
])
def test_rejected_values(overrides, message):
    with pytest.raises(ValidationError, match=message):
        DynamoDBConfig(**overrides)


def test_assignment_is_validated():
    config = DynamoDBConfig(environment="dev")

    with pytest.raises(ValidationError):
        config.environment = "qa"
    assert config.environment == "dev"


class TestBotoKwargs:

    def test_session_kwargs(self):
        config = DynamoDBConfig(aws_access_key_id="a", aws_secret_access_key="b", region_name="eu-west-3")

        assert config.session_kwargs() == {
            "aws_access_key_id": "a",
            "aws_secret_access_key": "b",
            "region_name": "eu-west-3",
        }

    def test_resource_kwargs_carry_client_limits(self):
        config = DynamoDBConfig(region_name="eu-west-3", retries=5, timeout_seconds=2.5, max_pool_connections=8)

        kwargs = config.resource_kwargs()

        assert kwargs["region_name"] == "eu-west-3"
        assert "endpoint_url" not in kwargs
        boto_config = kwargs["config"]
        assert boto_config.retries == {"max_attempts": 5}
        assert boto_config.connect_timeout == 2.5
        assert boto_config.read_timeout == 2.5
        assert boto_config.max_pool_connections == 8

    def test_resource_kwargs_with_endpoint(self):
        config = DynamoDBConfig.for_local_development()

        assert config.resource_kwargs()["endpoint_url"] == "http://localhost:8000"


def test_for_local_development():
    config = DynamoDBConfig.for_local_development()

    assert config.aws_access_key_id == "local"
    assert config.environment == "dev"
    assert config.enable_debug_logging is True
    assert config.get_table_name("users") == "dev_users"
