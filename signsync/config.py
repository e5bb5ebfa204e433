from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    log_level: str = "INFO"

    base_url: str = "http://localhost:8000"
    database_url: str = "postgresql+psycopg://app:app@db:5432/app"
    redis_url: str = "redis://redis:6379/0"

    # every store call is bounded by these
    db_connect_timeout_s: int = 5
    db_statement_timeout_ms: int = 5000
    redis_timeout_s: float = 2.0

    # event ledger
    store_write_attempts: int = 2

    # signed document storage
    storage_backend: str = "local"
    storage_local_path: str = "/tmp/signsync-documents"
    storage_public_base_url: str | None = None
    s3_bucket: str = ""
    s3_region: str = ""
    s3_prefix: str = "signsync"
    s3_timeout_s: int = 10

    # dashboard feed (redis pub/sub)
    notifications_enabled: bool = True
    dashboard_channel: str = "signsync:dashboard"
    metrics_key: str = "signsync:metrics"

settings = Settings()
