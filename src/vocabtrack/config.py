"""Configuration settings for vocabtrack."""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Define base directory
BASE_DIR = Path(__file__).parent.parent.parent

# Load environment variables from .env file
env_file = ".env.test" if os.getenv("ENV") == "test" else ".env"
load_dotenv(env_file)


# Staging and log locations
DATA_DIR = Path(os.getenv("DATA_DIR", "./data"))

# Practice settings
INPUT_HISTORY_SIZE = 20  # most recent input times kept per word
CONSISTENCY_WINDOW = 10  # input times used for the consistency factor
MAX_PRACTICE_WORDS = 5
MIN_SENTENCE_WORDS = 3

# Sync settings
SYNC_INTERVAL_SECONDS = 30
SYNC_MAX_RETRIES = 3


def ensure_directories() -> None:
    """Ensure all required directories exist."""
    DATA_DIR.mkdir(parents=True, exist_ok=True)


@dataclass
class DatabaseSettings:
    """Database configuration settings."""
    remote_url: str = os.getenv("REMOTE_DATABASE_URL", "sqlite:///vocabtrack.db")
    staging_url: str = os.getenv("STAGING_DATABASE_URL", "sqlite:///vocabtrack_staging.db")
    echo: bool = os.getenv("DATABASE_ECHO", "false").lower() == "true"


@dataclass
class LoggingSettings:
    """Logging configuration settings."""
    level: str = os.getenv("LOG_LEVEL", "INFO")
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    dir: Optional[str] = os.getenv("LOG_DIR") or None
    rotation: str = os.getenv("LOG_ROTATION", "midnight")
    interval: int = int(os.getenv("LOG_INTERVAL", "1"))
    backup_count: int = int(os.getenv("LOG_BACKUP_COUNT", "7"))


@dataclass
class PracticeSettings:
    """Practice selection settings."""
    max_practice_words: int = int(os.getenv("MAX_PRACTICE_WORDS", str(MAX_PRACTICE_WORDS)))
    input_history_size: int = int(os.getenv("INPUT_HISTORY_SIZE", str(INPUT_HISTORY_SIZE)))
    consistency_window: int = int(os.getenv("CONSISTENCY_WINDOW", str(CONSISTENCY_WINDOW)))
    min_sentence_words: int = int(os.getenv("MIN_SENTENCE_WORDS", str(MIN_SENTENCE_WORDS)))


@dataclass
class SyncSettings:
    """Offline sync queue settings."""
    interval_seconds: float = float(os.getenv("SYNC_INTERVAL_SECONDS", str(SYNC_INTERVAL_SECONDS)))
    max_retries: int = int(os.getenv("SYNC_MAX_RETRIES", str(SYNC_MAX_RETRIES)))
    remote_timeout: float = float(os.getenv("SYNC_REMOTE_TIMEOUT", "10"))
    lease_seconds: float = float(os.getenv("SYNC_LEASE_SECONDS", "0"))  # 0 disables the lease
    teardown_timeout: float = float(os.getenv("SYNC_TEARDOWN_TIMEOUT", "5"))


@dataclass
class MonitoringSettings:
    """Prometheus metrics settings."""
    enabled: bool = os.getenv("METRICS_ENABLED", "false").lower() == "true"
    port: int = int(os.getenv("METRICS_PORT", "9090"))


@dataclass
class AppSettings:
    """Settings for the headless sync runner."""
    user_id: Optional[str] = os.getenv("VOCAB_USER_ID") or None


def get_database_settings() -> DatabaseSettings:
    """Get database settings."""
    return DatabaseSettings()


def get_logging_settings() -> LoggingSettings:
    """Get logging settings."""
    return LoggingSettings()


def get_practice_settings() -> PracticeSettings:
    """Get practice settings."""
    return PracticeSettings()


def get_sync_settings() -> SyncSettings:
    """Get sync settings."""
    return SyncSettings()


def get_monitoring_settings() -> MonitoringSettings:
    """Get monitoring settings."""
    return MonitoringSettings()


def get_app_settings() -> AppSettings:
    """Get runner settings."""
    return AppSettings()


@dataclass
class Settings:
    """Main settings class that combines all configuration settings."""
    database: DatabaseSettings = field(default_factory=get_database_settings)
    logging: LoggingSettings = field(default_factory=get_logging_settings)
    practice: PracticeSettings = field(default_factory=get_practice_settings)
    sync: SyncSettings = field(default_factory=get_sync_settings)
    monitoring: MonitoringSettings = field(default_factory=get_monitoring_settings)
    app: AppSettings = field(default_factory=get_app_settings)

    def validate(self) -> None:
        """Validate settings and raise ValueError if invalid."""
        if self.practice.max_practice_words < 1:
            raise ValueError("MAX_PRACTICE_WORDS must be positive")

        if self.practice.input_history_size < 1:
            raise ValueError("INPUT_HISTORY_SIZE must be positive")

        if self.practice.consistency_window < 3:
            raise ValueError("CONSISTENCY_WINDOW must be at least 3")

        if self.sync.interval_seconds <= 0:
            raise ValueError("SYNC_INTERVAL_SECONDS must be positive")

        if self.sync.max_retries < 1:
            raise ValueError("SYNC_MAX_RETRIES must be positive")

        if self.sync.remote_timeout <= 0:
            raise ValueError("SYNC_REMOTE_TIMEOUT must be positive")

        if self.sync.lease_seconds < 0:
            raise ValueError("SYNC_LEASE_SECONDS cannot be negative")


# Create global settings instance
settings = Settings()
settings.validate()
