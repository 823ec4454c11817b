"""
NetShield - Configuration
"""

from __future__ import annotations

from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


# Default store: local SQLite through aiosqlite. "memory://" keeps everything in process.
DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./netshield.db"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Store
    database_url: str = DEFAULT_DATABASE_URL
    store_timeout_seconds: float = 5.0

    # Security (empty disables the key check on block management routes)
    api_key: str = ""

    # Server
    backend_host: str = "0.0.0.0"
    backend_port: int = 8000
    cors_origins: str = "*"

    # Classifier
    classifier_threshold: float = 0.4
    classifier_perturbation: float = 0.05
    classifier_seed: Optional[int] = None
    # Optional joblib bundle for the model-backed classifier
    model_path: str = ""

    # Aggregator views
    top_sources_k: int = 10
    top_attacks_k: int = 5
    alert_window_limit: int = 100

    # Notification de-duplication
    volume_threshold: int = 10
    volume_window_seconds: int = 60
    notified_ids_capacity: int = 1000

    # Auto-block policy
    auto_block_enabled: bool = True

    # Notification delivery
    notify_webhook_url: str = ""
    notify_min_severity: str = "HIGH"
    notify_timeout_seconds: int = 10
    notify_rate_limit_per_min: int = 20

    @property
    def cors_origin_list(self) -> List[str]:
        """Parse the comma-separated origin list."""
        if not self.cors_origins:
            return []
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def use_memory_store(self) -> bool:
        return self.database_url.startswith("memory://")


# Global settings instance
settings = Settings()
