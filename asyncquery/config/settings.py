from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    log_level: str = "INFO"

    db_host: str = "host.docker.internal"
    db_port: int = 5432
    db_database: str = "asyncquery"
    db_username: str = "asyncquery"
    db_password: str = "secret"
    db_pool_min_size: int = 1
    db_pool_max_size: int = 10

    worker_pool_size: int = 4
    worker_queue_size: int = 16
    job_poll_interval_seconds: int = 5

    persistence_max_attempts: int = 3
    persistence_retry_base_delay_seconds: float = 0.1
    persistence_retry_max_delay_seconds: float = 2.0

    query_max_run_seconds: int = 3600
    processing_timeout_seconds: int = 7200
    recovery_interval_seconds: int = 60

    jsonapi_backend: str = "http"
    jsonapi_base_url: str = "http://localhost:8080/api/v1"
    graphql_backend: str = "http"
    graphql_url: str = "http://localhost:8080/graphql/api/v1"
    backend_timeout_seconds: int = 30
    backend_principal_header: str = "X-Principal"
