# checkin/core/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, List, Tuple
from pathlib import Path
import logging
from functools import lru_cache

# Configure logger
logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""
    # Application info
    PROJECT_NAME: str = "Check-In Question Manager"
    API_V1_STR: str = "/api/v1"
    VERSION: str = "1.0.0"

    # Set base directory for data files
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    DATA_DIR: Path = BASE_DIR / "data"
    LOGS_DIR: Path = BASE_DIR / "logs"

    # Database connection settings
    DATABASE_URL: Optional[str] = None
    DB_FILE: str = "checkin.db"
    DB_ECHO: bool = False  # Don't log SQL in production
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_TIMEOUT: int = 30  # Seconds to wait for a connection from pool
    DB_STATEMENT_TIMEOUT: int = 15  # Seconds, handed to the driver where supported

    # Question schema settings
    CHECKIN_TABLE: str = "check_ins"
    QUESTION_COLUMN_PREFIX: str = "q_"
    BASE_NAME_MAX_LENGTH: int = 50
    MAX_IDENTIFIER_LENGTH: int = 64  # MySQL column name limit

    # Tables that may be reordered: (table, order column, group column)
    REORDERABLE_SCOPES: List[Tuple[str, str, Optional[str]]] = [
        ("site_questions", "display_order", "site_id"),
    ]
    REORDER_LOCK_GROUP: bool = True  # SELECT ... FOR UPDATE on the group

    # Logging
    LOG_LEVEL: str = "INFO"
    SCHEMA_CHANGE_LOG_ENABLED: bool = True

    # Server settings
    HOST: str = "0.0.0.0"
    PORT: int = 8001

    @property
    def get_data_dir(self) -> Path:
        """Ensure data directory exists and return it"""
        if not self.DATA_DIR.exists():
            self.DATA_DIR.mkdir(parents=True)
        return self.DATA_DIR

    @property
    def get_logs_dir(self) -> Path:
        """Ensure logs directory exists and return it"""
        if not self.LOGS_DIR.exists():
            self.LOGS_DIR.mkdir(parents=True)
        return self.LOGS_DIR

    @property
    def SQLALCHEMY_DATABASE_URI(self) -> str:
        """Build SQLAlchemy database URI, falling back to a local SQLite file"""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"sqlite:///{self.get_data_dir / self.DB_FILE}"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )


# Cache the settings instance
@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


# Create settings instance for import
settings = get_settings()
