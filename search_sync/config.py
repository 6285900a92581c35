"""Configuration management using pydantic-settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database settings
    db_server: str = "localhost"
    db_name: str = "testplanit"
    db_user: str = "testplanit"
    db_password: str = ""
    db_port: int = 5432
    db_pool_size: int = 10
    db_max_overflow: int = 20
    sql_echo: bool = False

    # Elasticsearch settings
    # Leave ELASTICSEARCH_NODE unset to run with search indexing disabled
    elasticsearch_node: str | None = None
    elasticsearch_request_timeout: float = 30.0
    elasticsearch_max_retries: int = 3

    # Redis settings (ARQ job queue)
    redis_url: str = "redis://localhost:6379/0"

    # Reindex worker settings
    reindex_batch_size: int = 100
    arq_reindex_max_jobs: int = 2
    arq_reindex_job_timeout: int = 86400  # hard cap on one run, not a stall check
    arq_reindex_max_tries: int = 2  # one retry after a crashed run
    arq_reindex_keep_result: int = 86400

    @property
    def database_url(self) -> str:
        """Build PostgreSQL async connection string."""
        from urllib.parse import quote_plus
        return (
            f"postgresql+asyncpg://{self.db_user}:{quote_plus(self.db_password)}"
            f"@{self.db_server}:{self.db_port}/{self.db_name}"
        )

    @property
    def search_enabled(self) -> bool:
        """True when an Elasticsearch endpoint is configured."""
        return bool(self.elasticsearch_node)


# Global settings instance
settings = Settings()
