"""Application configuration settings."""

from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Relay and client settings loaded from environment variables."""

    # Application
    app_name: str = "ColorMunch Relay"
    app_env: str = "development"
    debug: bool = True

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Kuler API - the key never leaves the relay
    kuler_api_key: str = ""
    themes_api: str = "https://kuler-api.adobe.com/feeds/rss/get.cfm"
    search_api: str = "https://kuler-api.adobe.com/rss/search.cfm"
    comments_api: str = "https://kuler-api.adobe.com/rss/comments.cfm"
    upstream_timeout_seconds: float = 15.0

    # Referer allow-list for the relay (empty = unrestricted)
    allowed_domains: str = ""

    # CORS
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"

    # Security
    allowed_hosts: str = "*"

    # Client side: where the relay lives and how hard to try
    relay_url: str = "http://localhost:8000/api/v1/relay"
    relay_timeout_seconds: float = 30.0
    relay_max_attempts: int = 5
    relay_retry_backoff: float = 0.0  # seconds, doubled per attempt; 0 retries immediately
    relay_retry_backoff_max: float = 2.0

    @property
    def upstream_endpoints(self) -> List[str]:
        """The only upstream base URLs the relay will forward to."""
        return [self.themes_api, self.search_api, self.comments_api]

    @property
    def allowed_domains_list(self) -> List[str]:
        """Get allowed referer domains as a list."""
        return [domain.strip().lower() for domain in self.allowed_domains.split(",") if domain.strip()]

    @property
    def allowed_hosts_list(self) -> List[str]:
        """Get allowed hosts as a list."""
        return [host.strip() for host in self.allowed_hosts.split(",")]

    @property
    def cors_origins_list(self) -> List[str]:
        """Get CORS origins as a list."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
