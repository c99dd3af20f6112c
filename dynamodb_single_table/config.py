import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

# Load environment variables from .env file if it exists
load_dotenv()


class DynamoDBConfig(BaseModel):
    """Configuration for DynamoDB connection and single-table key layout."""

    aws_access_key_id: Optional[str] = Field(
        default_factory=lambda: os.getenv("AWS_ACCESS_KEY_ID"),
        description="AWS access key ID"
    )

    aws_secret_access_key: Optional[str] = Field(
        default_factory=lambda: os.getenv("AWS_SECRET_ACCESS_KEY"),
        description="AWS secret access key"
    )

    region_name: str = Field(
        default_factory=lambda: os.getenv("AWS_REGION", "us-east-1"),
        description="AWS region name"
    )

    # DynamoDB specific settings
    endpoint_url: Optional[str] = Field(
        default_factory=lambda: os.getenv("DYNAMODB_ENDPOINT_URL"),
        description="DynamoDB endpoint URL (for local development)"
    )

    # Table configuration
    table_prefix: str = Field(
        default_factory=lambda: os.getenv("DYNAMODB_TABLE_PREFIX", ""),
        description="Prefix to add to all table names"
    )

    default_table_name: str = Field(
        default_factory=lambda: os.getenv("DYNAMODB_TABLE_NAME", "SingleTable"),
        description="Base name of the shared table when a repository does not name one"
    )

    # Connection settings
    max_pool_connections: int = Field(
        default=50,
        description="Maximum number of connections in the connection pool"
    )

    retries: int = Field(
        default=3,
        description="Number of retry attempts for failed requests"
    )

    timeout_seconds: float = Field(
        default=30.0,
        description="Request timeout in seconds"
    )

    # Environment settings
    environment: str = Field(
        default_factory=lambda: os.getenv("ENVIRONMENT", "dev"),
        description="Current environment (dev, test, staging, prod)"
    )

    # Logging settings
    enable_debug_logging: bool = Field(
        default_factory=lambda: os.getenv("DYNAMODB_DEBUG_LOGGING", "false").lower() == "true",
        description="Enable debug logging for DynamoDB operations"
    )

    # Key encoding
    composite_key_separator: str = Field(
        default="#",
        description="Separator placed between the descriptor and each field of a composite key"
    )

    pad_numbers_in_indexes: bool = Field(
        default=True,
        description="Zero-pad non-negative numbers so string order matches numeric order"
    )

    padded_int_width: int = Field(
        default=18,
        description="Width the integer part of a padded number is left-filled to"
    )

    padded_frac_width: int = Field(
        default=2,
        description="Width the fractional part of a padded number is right-filled to"
    )

    # Query and batch settings
    default_query_limit: int = Field(
        default=5,
        description="Page size used when a where clause has no limit"
    )

    batch_get_chunk_size: int = Field(
        default=100,
        description="Maximum keys per BatchGetItem call"
    )

    batch_write_chunk_size: int = Field(
        default=25,
        description="Maximum requests per BatchWriteItem call"
    )

    batch_max_retries: int = Field(
        default=3,
        description="Resubmissions of unprocessed batch work before giving up"
    )

    @field_validator('region_name')
    @classmethod
    def validate_region(cls, v):
        """Validate AWS region name."""
        if not v:
            raise ValueError("AWS region name is required")
        return v

    @field_validator('environment')
    @classmethod
    def validate_environment(cls, v):
        """Validate environment value."""
        valid_environments = ['dev', 'test', 'staging', 'prod']
        if v not in valid_environments:
            raise ValueError(f"Environment must be one of: {valid_environments}")
        return v

    @field_validator('composite_key_separator')
    @classmethod
    def validate_separator(cls, v):
        """Validate composite key separator."""
        if not v:
            raise ValueError("Composite key separator must not be empty")
        return v

    @field_validator(
        'padded_int_width', 'padded_frac_width', 'default_query_limit',
        'batch_get_chunk_size', 'batch_write_chunk_size'
    )
    @classmethod
    def validate_positive(cls, v):
        """Validate sizes and widths."""
        if v < 1:
            raise ValueError("Value must be a positive integer")
        return v

    @field_validator('batch_max_retries')
    @classmethod
    def validate_max_retries(cls, v):
        """Validate batch retry ceiling."""
        if v < 0:
            raise ValueError("batch_max_retries cannot be negative")
        return v

    def get_table_name(self, base_name: Optional[str] = None) -> str:
        """Get the full table name with prefix and environment.

        Args:
            base_name: Base table name, defaults to ``default_table_name``

        Returns:
            Full table name with prefix and environment
        """
        parts = []

        if self.table_prefix:
            parts.append(self.table_prefix)

        if self.environment != "prod":
            parts.append(self.environment)

        parts.append(base_name or self.default_table_name)

        return "_".join(parts)

    @classmethod
    def from_env(cls) -> 'DynamoDBConfig':
        """Create configuration from environment variables.

        Returns:
            DynamoDBConfig instance
        """
        return cls()

    @classmethod
    def for_local_development(cls) -> 'DynamoDBConfig':
        """Create configuration for local DynamoDB development.

        Returns:
            DynamoDBConfig instance configured for local development
        """
        return cls(
            aws_access_key_id="local",
            aws_secret_access_key="local",
            region_name="us-east-1",
            endpoint_url="http://localhost:8000",
            environment="dev",
            enable_debug_logging=True
        )

    model_config = ConfigDict(
        validate_assignment=True,
        use_enum_values=True
    )
