# python
# app/core/config.py
"""Configuration settings for the Talkative chat API.

Uses Pydantic BaseSettings for environment variable management.
"""
from enum import Enum

from pydantic import AnyHttpUrl, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EnvironmentEnum(str, Enum):
    development = "development"
    testing = "testing"
    staging = "staging"
    production = "production"


class LogLevelEnum(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormatEnum(str, Enum):
    simple = "simple"
    json = "json"


class Settings(BaseSettings):
    # Pydantic v2 settings configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ===== Application Settings =====
    app_name: str = Field(default="Talkative Chat API", description="Application name")
    environment: EnvironmentEnum = Field(
        default=EnvironmentEnum.development, description="Environment type"
    )
    debug: bool = Field(default=False, description="Debug mode")
    version: str = Field(default="1.0.0", description="Application version")

    # ===== Database Settings =====
    database_url: str | None = Field(default=None, description="Database connection URL")

    # Test database URL
    test_database_url: str | None = Field(default=None, description="Test database URL")

    # ===== Authentication (Clerk) =====
    clerk_secret_key: str | None = Field(default=None, description="Clerk secret key")
    clerk_api_url: AnyHttpUrl = Field(default="https://api.clerk.com", description="Clerk API URL")
    jwt_verify_signature: bool = Field(
        default=False, description="Verify session token signatures against the Clerk key"
    )
    jwt_algorithms: str = Field(default="HS256,RS256", description="Accepted JWT algorithms")

    # ===== AI Providers (server-side fallback keys) =====
    openai_api_key: str | None = Field(default=None, description="OpenAI API key")
    anthropic_api_key: str | None = Field(default=None, description="Anthropic API key")
    azure_api_key: str | None = Field(default=None, description="Azure OpenAI API key")
    azure_resource_name: str | None = Field(default=None, description="Azure OpenAI resource name")
    azure_api_version: str = Field(default="2024-10-21", description="Azure OpenAI API version")
    openrouter_api_key: str | None = Field(default=None, description="OpenRouter API key")
    openrouter_base_url: str = Field(
        default="https://openrouter.ai/api/v1", description="OpenRouter API base URL"
    )
    google_api_key: str | None = Field(default=None, description="Google Gemini API key")
    deepseek_api_key: str | None = Field(default=None, description="DeepSeek API key")
    deepseek_base_url: str = Field(
        default="https://api.deepseek.com/v1", description="DeepSeek API base URL"
    )
    xai_api_key: str | None = Field(default=None, description="xAI API key")
    xai_base_url: str = Field(default="https://api.x.ai/v1", description="xAI API base URL")

    # ===== Generation =====
    max_output_tokens: int = Field(default=10000, description="Max tokens per text generation")
    ai_request_timeout: int = Field(default=120, description="AI request timeout in seconds")
    ai_max_retry_attempts: int = Field(default=3, description="Maximum retry attempts for AI helper calls")
    ai_retry_backoff_factor: float = Field(default=2.0, description="Exponential backoff multiplier")
    ai_retry_min_wait: int = Field(default=1, description="Minimum wait between retries (seconds)")
    ai_retry_max_wait: int = Field(default=10, description="Maximum wait between retries (seconds)")

    # ===== Title Generation =====
    title_generator_model: str = Field(
        default="meta-llama/llama-3.3-8b-instruct:free",
        description="OpenRouter model used to title new threads",
    )
    title_generator_openrouter_api_key: str | None = Field(
        default=None, description="Dedicated OpenRouter key for title generation"
    )
    title_max_length: int = Field(default=300, description="Maximum generated title length")
    title_fallback_length: int = Field(
        default=30, description="Characters of the first message used when titling fails"
    )

    # ===== File Storage Settings =====
    attachment_storage_dir: str = Field(
        default="./.data/attachments", description="Local attachment storage directory"
    )
    aws_access_key_id: str | None = Field(default=None, description="S3 access key ID")
    aws_secret_access_key: str | None = Field(default=None, description="S3 secret access key")
    s3_bucket_name: str | None = Field(default=None, description="S3 bucket name")
    s3_region: str = Field(default="us-east-1", description="S3 region")
    s3_endpoint_url: str | None = Field(
        default=None, description="S3 endpoint host (e.g. minio:9000 or s3.amazonaws.com)"
    )
    s3_secure: bool = Field(default=True, description="Use TLS for the S3 endpoint")

    # ===== Application Limits =====
    max_file_size: int = Field(default=10485760, description="Maximum file size in bytes (10MB)")

    # ===== CORS Settings =====
    allowed_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173,http://127.0.0.1:3000",
        description="Allowed CORS origins (comma-separated)",
    )

    @property
    def allowed_origins_list(self) -> list[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]

    # ===== Monitoring & Logging =====
    log_level: LogLevelEnum = Field(default=LogLevelEnum.INFO, description="Logging level")
    log_format: LogFormatEnum = Field(default=LogFormatEnum.json, description="Log format")

    # ===== Server Settings =====
    host: str = Field(default="127.0.0.1", description="Host to bind the server")
    port: int = Field(default=8000, description="Port to bind the server")
    public_base_url: str = Field(
        default="http://localhost:3000", description="Public frontend URL used in share and chat links"
    )

    # ===== Computed Properties =====
    @property
    def is_development(self) -> bool:
        return self.environment == EnvironmentEnum.development

    @property
    def is_production(self) -> bool:
        return self.environment == EnvironmentEnum.production

    @property
    def is_testing(self) -> bool:
        return self.environment == EnvironmentEnum.testing

    @property
    def jwt_algorithms_list(self) -> list[str]:
        return [alg.strip() for alg in self.jwt_algorithms.split(",") if alg.strip()]

    @property
    def storage_type(self) -> str:
        if self.aws_access_key_id and self.aws_secret_access_key and self.s3_bucket_name:
            return "s3"
        return "local"

    @property
    def server_provider_config(self) -> dict[str, bool]:
        """Which providers can be served with server-side credentials."""
        return {
            "openai": bool(self.openai_api_key),
            "anthropic": bool(self.anthropic_api_key),
            "azure": bool(self.azure_api_key and self.azure_resource_name),
            "openrouter": bool(self.openrouter_api_key),
            "google": bool(self.google_api_key),
            "deepseek": bool(self.deepseek_api_key),
            "xai": bool(self.xai_api_key),
        }

    # ===== Validation Methods =====
    @field_validator("environment", mode="before")
    @classmethod
    def validate_environment(cls, v):
        if v and isinstance(v, str):
            lv = v.lower()
            if lv in ["dev", "develop"]:
                return "development"
            if lv in ["prod"]:
                return "production"
        return v

    @field_validator("max_file_size")
    @classmethod
    def validate_file_size(cls, v):
        if v > 100 * 1024 * 1024:
            raise ValueError("Maximum file size cannot exceed 100MB")
        return v


settings = Settings()


def get_config_summary() -> dict:
    return {
        "app_name": settings.app_name,
        "version": settings.version,
        "environment": settings.environment,
        "debug": settings.debug,
        "database_configured": bool(settings.database_url),
        "auth_configured": bool(settings.clerk_secret_key),
        "storage_type": settings.storage_type,
        "providers": settings.server_provider_config,
    }


__all__ = [
    "settings",
    "Settings",
    "get_config_summary",
    "EnvironmentEnum",
    "LogLevelEnum",
    "LogFormatEnum",
]
