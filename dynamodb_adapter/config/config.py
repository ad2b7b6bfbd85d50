import os
from typing import Any, Dict, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from botocore.config import Config
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

# Load environment variables from .env file if it exists
load_dotenv()

ENVIRONMENTS = ('dev', 'test', 'staging', 'prod')


def _env_flag(name: str) -> bool:
    return os.getenv(name, "false").lower() == "true"


class DynamoDBConfig(BaseModel):
    """Settings for the adapter: credentials, endpoint, table naming and retry limits.

    Every field can be set through the environment (or a ``.env`` file):

    ========================== ==========================
    Field                      Variable
    ========================== ==========================
    aws_access_key_id          AWS_ACCESS_KEY_ID
    aws_secret_access_key      AWS_SECRET_ACCESS_KEY
    region_name                AWS_REGION
    endpoint_url               DYNAMODB_ENDPOINT_URL
    table_prefix               DYNAMODB_TABLE_PREFIX
    environment                ENVIRONMENT
    user_timezone              DYNAMODB_USER_TIMEZONE
    enable_debug_logging       DYNAMODB_DEBUG_LOGGING
    ========================== ==========================
    """

    # Credentials and endpoint
    aws_access_key_id: Optional[str] = Field(default_factory=lambda: os.getenv("AWS_ACCESS_KEY_ID"))
    aws_secret_access_key: Optional[str] = Field(default_factory=lambda: os.getenv("AWS_SECRET_ACCESS_KEY"))
    region_name: str = Field(default_factory=lambda: os.getenv("AWS_REGION", "us-east-1"))
    endpoint_url: Optional[str] = Field(
        default_factory=lambda: os.getenv("DYNAMODB_ENDPOINT_URL"),
        description="Override for DynamoDB Local, LocalStack or moto servers"
    )

    # Collection name -> table name
    table_prefix: str = Field(default_factory=lambda: os.getenv("DYNAMODB_TABLE_PREFIX", ""))
    environment: str = Field(
        default_factory=lambda: os.getenv("ENVIRONMENT", "prod"),
        description="Non-prod environments are inserted into table names"
    )

    # Network client (applies to every single call)
    max_pool_connections: int = Field(default=50, ge=1)
    retries: int = Field(default=3, ge=0, description="botocore retry attempts for a failed call")
    timeout_seconds: float = Field(default=30.0, gt=0, description="Connect and read timeout per call")

    # Unprocessed-keys loop of batch_find
    batch_max_retries: int = Field(
        default=10,
        ge=0,
        description="Follow-up BatchGetItem rounds allowed before RetryExhaustedError"
    )
    batch_retry_base_delay: float = Field(
        default=0.05,
        ge=0,
        description="First backoff delay in seconds; doubles each round"
    )

    # Entity loading
    user_timezone: Optional[str] = Field(
        default_factory=lambda: os.getenv("DYNAMODB_USER_TIMEZONE"),
        description="IANA timezone datetime attributes are loaded into (UTC when unset)"
    )

    enable_debug_logging: bool = Field(default_factory=lambda: _env_flag("DYNAMODB_DEBUG_LOGGING"))

    model_config = ConfigDict(
        validate_assignment=True
    )

    @field_validator('region_name')
    @classmethod
    def validate_region(cls, v):
        if not v:
            raise ValueError("AWS region name is required")
        return v

    @field_validator('environment')
    @classmethod
    def validate_environment(cls, v):
        if v not in ENVIRONMENTS:
            raise ValueError(f"Environment must be one of: {list(ENVIRONMENTS)}")
        return v

    @field_validator('user_timezone')
    @classmethod
    def validate_timezone(cls, v):
        if v is None:
            return v
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Invalid timezone: {v}. Please use a valid IANA timezone identifier.") from None
        return v

    def get_table_name(self, collection: str) -> str:
        """Table name for a collection: ``[prefix_][environment_]collection``.

        The environment part is left out in prod, so a prod adapter without a
        prefix uses collection names as table names.
        """
        parts = [self.table_prefix] if self.table_prefix else []
        if self.environment != "prod":
            parts.append(self.environment)
        parts.append(str(collection))
        return "_".join(parts)

    def session_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for ``boto3.Session``."""
        return {
            'aws_access_key_id': self.aws_access_key_id,
            'aws_secret_access_key': self.aws_secret_access_key,
            'region_name': self.region_name,
        }

    def resource_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for ``session.resource('dynamodb', ...)``."""
        kwargs: Dict[str, Any] = {
            'region_name': self.region_name,
            'config': Config(
                retries={'max_attempts': self.retries},
                max_pool_connections=self.max_pool_connections,
                connect_timeout=self.timeout_seconds,
                read_timeout=self.timeout_seconds
            ),
        }
        if self.endpoint_url:
            kwargs['endpoint_url'] = self.endpoint_url
        return kwargs

    @classmethod
    def from_env(cls) -> 'DynamoDBConfig':
        """Build the configuration purely from environment variables."""
        return cls()

    @classmethod
    def for_local_development(cls) -> 'DynamoDBConfig':
        """Configuration for DynamoDB Local on port 8000, with debug logging."""
        return cls(
            aws_access_key_id="local",
            aws_secret_access_key="local",
            region_name="us-east-1",
            endpoint_url="http://localhost:8000",
            environment="dev",
            enable_debug_logging=True
        )
