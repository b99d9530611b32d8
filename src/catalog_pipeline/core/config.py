from __future__ import annotations

from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # DB
    database_url: str = Field(
        default="sqlite+pysqlite:///./catalog_pipeline.db",
        validation_alias="DATABASE_URL",
    )
    db_echo: bool = False

    log_level: str = "INFO"

    # Shared outbound HTTP timeout (seconds)
    http_timeout_s: float = 30.0

    # RAWG catalog
    rawg_api_key: str | None = Field(default=None, repr=False)
    rawg_base_url: str = "https://api.rawg.io/api"
    rawg_page_size: int = 40
    catalog_initial_sync_date: str = "2000-01-01"
    catalog_max_age_hours: int = 24

    # SteamSpy ranking
    steamspy_base_url: str = "https://steamspy.com"
    steamspy_extra_ca_path: Path | None = None
    trending_keep_snapshots: int = Field(
        default=56,
        validation_alias=AliasChoices("TRENDING_KEEP_SNAPSHOTS", "KEEP_SNAPSHOTS"),
    )
    trending_enforce_idempotency: bool = True

    # Identity resolution
    identity_auto_match_threshold: float = 0.55
    identity_search_page_size: int = 8
    identity_batch_size: int = 8
    identity_batch_pause_s: float = 0.08
    identity_batch_limit: int = 500

    # Fallback table locks only; advisory locks are released with their connection.
    job_lock_stale_after_s: float | None = None

    # Scheduler (crontab syntax, UTC)
    catalog_sync_cron: str = "0 3 * * *"
    trending_ingest_cron: str = "0 */6 * * *"
    identity_resolve_cron: str = "30 */6 * * *"
    scheduler_run_on_startup: bool = True

    # -----------------------------
    # Required-key helpers
    # -----------------------------

    def require_rawg_api_key(self) -> str:
        if not self.rawg_api_key:
            raise RuntimeError("RAWG_API_KEY is not set. Set it in the environment or .env file.")
        return self.rawg_api_key


settings = Settings()
