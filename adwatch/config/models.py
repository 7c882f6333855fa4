"""Configuration schema models using Pydantic."""

from enum import Enum

from pydantic import BaseModel, Field, field_validator


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Log output formats."""

    JSON = "json"
    KEY_VALUE = "key-value"


class WatchdogConfig(BaseModel):
    """Registration policy and event processing settings."""

    elevated_role: str = Field(
        "ROLE_VIP", min_length=1, description="Role a user needs to own active watchdogs"
    )
    allow_unfiltered_criteria: bool = Field(
        True, description="Accept watchdogs with no filter at all (they match every ad)"
    )
    max_workers: int = Field(
        4, ge=1, le=64, description="Ad events processed in parallel by the worker pool"
    )

    @field_validator("elevated_role")
    @classmethod
    def strip_role(cls, v: str) -> str:
        """Strip whitespace from the role name."""
        stripped = v.strip()
        if not stripped:
            raise ValueError("elevated_role cannot be empty")
        return stripped


class UserDirectoryConfig(BaseModel):
    """Connection settings for the user/role service."""

    base_url: str = Field(
        "http://localhost:8080/api", min_length=1, description="Base URL of the user service"
    )
    http_request_timeout: int = Field(
        10, ge=1, le=120, description="Request timeout for user lookups (seconds)"
    )
    user_agent: str = Field(
        "AdWatchdog/1.0", min_length=1, description="User-Agent string for HTTP requests"
    )

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Require an http(s) URL and drop the trailing slash."""
        stripped = v.strip().rstrip("/")
        if not stripped.startswith(("http://", "https://")):
            raise ValueError("base_url must start with http:// or https://")
        return stripped


class EmailConfig(BaseModel):
    """Alert email settings."""

    use_tls: bool = Field(True, description="Use TLS/STARTTLS for secure connection")
    max_retries: int = Field(
        3, ge=0, le=10, description="Number of retry attempts for failed email sends"
    )
    retry_backoff_multiplier: float = Field(
        2.0, ge=1.0, le=5.0, description="Exponential backoff multiplier for retries"
    )
    retry_initial_delay: float = Field(
        5, ge=0, le=60, description="Initial retry delay in seconds"
    )
    subject_prefix: str = Field(
        "[FoxBuy Watchdog]", description="Prefix prepended to every alert subject"
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: LogLevel = Field(LogLevel.INFO, description="Log level")
    format: LogFormat = Field(
        LogFormat.KEY_VALUE, description="Log output format (json or key-value)"
    )

    model_config = {"use_enum_values": True}


class AppConfig(BaseModel):
    """Root configuration object for the ad watchdog.

    Every section has defaults, so an empty mapping is a valid config.
    """

    watchdog: WatchdogConfig = Field(default_factory=WatchdogConfig)
    user_directory: UserDirectoryConfig = Field(default_factory=UserDirectoryConfig)
    email: EmailConfig = Field(default_factory=EmailConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
