"""Configuration management for AgentDesk."""

import os
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Providers whose key variable does not follow the <PROVIDER>_API_KEY pattern
PROVIDER_API_KEY_ENV: dict[str, str] = {
    "xai": "XAI_API_KEY",
    "openai": "OPENAI_API_KEY",
    "google": "GOOGLE_GENERATIVE_AI_API_KEY",
    "groq": "GROQ_API_KEY",
}


def provider_api_key_env(provider: str) -> str:
    """Name of the environment variable holding the API key for a provider."""
    return PROVIDER_API_KEY_ENV.get(provider, f"{provider.upper()}_API_KEY")


class Settings(BaseSettings):
    """Application settings."""

    # API Settings
    api_host: str = Field(default="0.0.0.0", alias="API_HOST")
    api_port: int = Field(default=8000, alias="API_PORT")
    api_workers: int = Field(default=4, alias="API_WORKERS")
    api_allowed_origins: str | list[str] = Field(default=["*"], alias="API_ALLOWED_ORIGINS")

    # Database Settings
    database_url: str | None = Field(default=None, alias="DATABASE_URL")
    postgres_host: str = Field(default="localhost", alias="POSTGRES_HOST")
    postgres_port: int = Field(default=5432, alias="POSTGRES_PORT")
    postgres_db: str = Field(default="agentdesk", alias="POSTGRES_DB")
    postgres_user: str = Field(default="postgres", alias="POSTGRES_USER")
    postgres_password: str = Field(default="password", alias="POSTGRES_PASSWORD")
    db_echo: bool = Field(default=False, alias="DB_ECHO")

    # PostgreSQL Connection Pool Settings
    postgres_pool_size: int = Field(default=20, alias="POSTGRES_POOL_SIZE")
    postgres_max_overflow: int = Field(default=40, alias="POSTGRES_MAX_OVERFLOW")
    postgres_pool_recycle: int = Field(default=3600, alias="POSTGRES_POOL_RECYCLE")
    postgres_pool_pre_ping: bool = Field(default=True, alias="POSTGRES_POOL_PRE_PING")

    # LLM Provider API Keys
    anthropic_api_key: str | None = Field(default=None, alias="ANTHROPIC_API_KEY")
    openai_api_key: str | None = Field(default=None, alias="OPENAI_API_KEY")
    xai_api_key: str | None = Field(default=None, alias="XAI_API_KEY")
    google_generative_ai_api_key: str | None = Field(
        default=None, alias="GOOGLE_GENERATIVE_AI_API_KEY"
    )
    groq_api_key: str | None = Field(default=None, alias="GROQ_API_KEY")
    mistral_api_key: str | None = Field(default=None, alias="MISTRAL_API_KEY")
    deepseek_api_key: str | None = Field(default=None, alias="DEEPSEEK_API_KEY")

    # Agent Defaults
    default_provider: str = Field(default="anthropic", alias="DEFAULT_PROVIDER")
    default_model: str = Field(default="sonnet", alias="DEFAULT_MODEL")
    llm_timeout: int = Field(default=300, alias="LLM_TIMEOUT")
    llm_max_retries: int = Field(default=2, alias="LLM_MAX_RETRIES")
    chat_history_limit: int = Field(default=5, alias="CHAT_HISTORY_LIMIT")
    chat_max_steps: int = Field(default=5, alias="CHAT_MAX_STEPS")
    delegation_max_steps: int = Field(default=5, alias="DELEGATION_MAX_STEPS")
    schedule_max_steps: int = Field(default=10, alias="SCHEDULE_MAX_STEPS")

    # MCP Tool Server
    mcp_server_command: str | None = Field(default=None, alias="MCP_SERVER_COMMAND")
    mcp_request_timeout: int = Field(default=30, alias="MCP_REQUEST_TIMEOUT")

    # Scheduled Execution
    cron_secret: str | None = Field(default=None, alias="CRON_SECRET")

    # Agent Channel Webhook
    agent_webhook_secret: str | None = Field(default=None, alias="AGENT_WEBHOOK_SECRET")

    # Security
    auth_cookie_name: str = Field(default="agentdesk_session", alias="AUTH_COOKIE_NAME")
    api_key_expire_days: int | None = Field(default=None, alias="API_KEY_EXPIRE_DAYS")

    # Rate Limiting
    rate_limit_default: str = Field(default="200/minute", alias="RATE_LIMIT_DEFAULT")
    rate_limit_chat: str = Field(default="30/minute", alias="RATE_LIMIT_CHAT")
    rate_limit_storage_uri: str = Field(default="memory://", alias="RATE_LIMIT_STORAGE_URI")

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="text", alias="LOG_FORMAT")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("api_allowed_origins", mode="before")
    @classmethod
    def split_allowed_origins(cls, value: str | list[str]) -> list[str]:
        """Accept a comma-separated origin list from the environment."""
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @field_validator("log_format", mode="before")
    @classmethod
    def normalize_log_format(cls, value: str | None) -> str:
        if value is None:
            return "text"
        normalized = str(value).strip().lower()
        if normalized in {"text", "json"}:
            return normalized
        raise ValueError("LOG_FORMAT must be one of: text, json")

    @property
    def postgres_url(self) -> str:
        """Get PostgreSQL connection URL."""
        return (
            f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def sqlalchemy_url(self) -> str:
        """DATABASE_URL when set, otherwise the PostgreSQL URL."""
        return self.database_url or self.postgres_url

    def get_provider_api_key(self, provider: str) -> tuple[str, str | None]:
        """Return (env var name, key) for a provider.

        Known providers are read from settings (which includes the .env file);
        anything else falls back to the process environment.
        """
        env_var = provider_api_key_env(provider)
        attr = env_var.lower()
        value = getattr(self, attr, None) if attr in type(self).model_fields else None
        if not value:
            value = os.environ.get(env_var)
        return env_var, value or None


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
