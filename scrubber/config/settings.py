from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    log_level: str = "INFO"
    allowed_environments: list[str] = ["dev", "test", "staging"]

    db_host: str = "localhost"
    db_port: int = 5432
    db_database: str = "app"
    db_username: str = "app"
    db_password: str = "secret"
    db_extra_connections: dict[str, str] = {}
    db_pool_max_size: int = 4

    specs_path: str = "anonymize.json"
    locale: str = "en_US"
    faker_seed: int | None = None

    batch_size: int = Field(default=100, ge=1)
    dry_run: bool = False
    connections: list[str] = []
    fail_fast: bool = False
    on_store_error: str = "abort_entity"
    max_parallel_connections: int = Field(default=1, ge=1)
