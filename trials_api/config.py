"""Application settings and environment configuration."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=False)

    env: str = "development"
    app_name: str = "Clinical Trials API"
    api_v1_prefix: str = "/v1"
    api_base_url: str = "http://localhost:10010"

    database_url: str = "sqlite:///./data/trials.db"
    elasticsearch_url: str = Field(default="http://localhost:9200")
    elasticsearch_index: str = Field(default="trials")
    elasticsearch_timeout_ms: int = Field(default=2000, ge=100, le=60000)
    elasticsearch_verify_certs: bool = False

    reindex_page_size: int = Field(default=1000, ge=1, le=10000)
    reindex_allow_partial_batches: bool = False
    reindex_refresh_on_complete: bool = True
    admin_reindex_enabled: bool = False

    trusted_hosts: str = Field(default="localhost,127.0.0.1,testserver")
    enable_docs: bool | None = None
    rate_limit_per_minute: int = Field(default=120, ge=1, le=10000)

    log_level: str = "INFO"
    log_format: Literal["json", "console"] = "json"

    @property
    def trusted_host_list(self) -> list[str]:
        """Parse comma-separated trusted hostnames for Host header validation."""
        hosts = [host.strip() for host in self.trusted_hosts.split(",") if host.strip()]
        return hosts or ["localhost", "127.0.0.1"]

    @property
    def docs_enabled(self) -> bool:
        """Enable docs by default in non-production environments only."""
        if self.enable_docs is not None:
            return bool(self.enable_docs)
        return self.env.lower() != "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
