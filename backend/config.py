"""
Configuration module for the notes application.
Loads environment variables and provides centralized config access.
"""

from pathlib import Path
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

# ============================================================
# Centralized Data Paths
# ============================================================
# All user data lives under <project>/data/ for easy backup/deletion.
PROJECT_ROOT = Path(__file__).parent.parent
DATA_DIR = PROJECT_ROOT / "data"

# Single-file SQLite store
SQLITE_DB_PATH = DATA_DIR / "notes.db"

DEFAULT_TAG_COLOR = "#3B82F6"


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Uses pydantic-settings for validation and type coercion.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ============================================================
    # Storage
    # ============================================================
    database_path: Path = SQLITE_DB_PATH

    # ============================================================
    # Notes / Tags
    # ============================================================
    default_tag_color: str = DEFAULT_TAG_COLOR

    # ============================================================
    # Images
    # ============================================================
    # Seconds an image may stay unreferenced before it is deleted.
    # Gives the editor's undo a chance to bring it back.
    image_grace_period_seconds: float = 5.0
    image_cache_max_age: int = 31536000  # 1 year, images are immutable
    max_image_bytes: int = 20 * 1024 * 1024

    # ============================================================
    # Server Configuration
    # ============================================================
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False
    log_level: str = "INFO"

    # ============================================================
    # CORS Configuration
    # ============================================================
    # Comma-separated origins for the browsing UI dev servers.
    cors_origins: str = "http://localhost:3000,http://localhost:5173"

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse the comma-separated CORS origins."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Uses lru_cache to avoid reloading env vars on every call.
    """
    return Settings()
