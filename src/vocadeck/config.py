"""Configuration settings for vocadeck."""
import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv


# Load environment variables from .env file
env_file = ".env.test" if os.getenv("ENV") == "test" else ".env"
load_dotenv(env_file)


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass
class SRSSettings:
    """Spaced repetition scheduling settings."""
    again_interval: int = int(os.getenv("AGAIN_INTERVAL", "0"))
    new_word_interval: int = int(os.getenv("NEW_WORD_INTERVAL", "1"))
    apply_new_word_interval: bool = _env_bool("APPLY_NEW_WORD_INTERVAL")
    mastered_interval: int = int(os.getenv("MASTERED_INTERVAL", "365"))
    ease_factor_default: float = float(os.getenv("EASE_FACTOR_DEFAULT", "2.5"))
    min_ease_factor: float = float(os.getenv("MIN_EASE_FACTOR", "1.3"))
    again_ease_penalty: float = float(os.getenv("AGAIN_EASE_PENALTY", "0.2"))
    hard_ease_penalty: float = float(os.getenv("HARD_EASE_PENALTY", "0.15"))
    easy_ease_bonus: float = float(os.getenv("EASY_EASE_BONUS", "0.15"))
    hard_interval_factor: float = float(os.getenv("HARD_INTERVAL_FACTOR", "0.6"))
    easy_bonus: float = float(os.getenv("EASY_BONUS", "1.3"))
    leech_threshold: int = int(os.getenv("LEECH_THRESHOLD", "4"))
    leech_removal_streak: int = int(os.getenv("LEECH_REMOVAL_STREAK", "2"))
    learning_max_interval: int = int(os.getenv("LEARNING_MAX_INTERVAL", "7"))
    strengthening_max_interval: int = int(os.getenv("STRENGTHENING_MAX_INTERVAL", "21"))
    consolidating_max_interval: int = int(os.getenv("CONSOLIDATING_MAX_INTERVAL", "60"))


@dataclass
class QueueSettings:
    """Queue building settings."""
    near_future_threshold: int = int(os.getenv("NEAR_FUTURE_THRESHOLD", "3"))  # days
    leech_min_gap: int = int(os.getenv("LEECH_MIN_GAP", "3"))
    # Not enforced by the merge, kept for reference
    leech_max_gap: int = int(os.getenv("LEECH_MAX_GAP", "5"))


@dataclass
class DatabaseSettings:
    """Database configuration settings."""
    url: str = os.getenv("DATABASE_URL", "sqlite:///vocadeck.db")
    echo: bool = _env_bool("DATABASE_ECHO")


@dataclass
class LoggingSettings:
    """Logging configuration settings."""
    level: str = os.getenv("LOG_LEVEL", "INFO")
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    dir: Optional[str] = os.getenv("LOG_DIR", None)
    rotation: str = os.getenv("LOG_ROTATION", "midnight")
    interval: int = int(os.getenv("LOG_INTERVAL", "1"))
    backup_count: int = int(os.getenv("LOG_BACKUP_COUNT", "7"))


@dataclass
class MonitoringSettings:
    """Prometheus exporter settings."""
    enabled: bool = _env_bool("METRICS_ENABLED")
    port: int = int(os.getenv("METRICS_PORT", "9090"))


def get_srs_settings() -> SRSSettings:
    """Get scheduling settings."""
    return SRSSettings()


def get_queue_settings() -> QueueSettings:
    """Get queue settings."""
    return QueueSettings()


def get_database_settings() -> DatabaseSettings:
    """Get database settings."""
    return DatabaseSettings()


def get_logging_settings() -> LoggingSettings:
    """Get logging settings."""
    return LoggingSettings()


def get_monitoring_settings() -> MonitoringSettings:
    """Get monitoring settings."""
    return MonitoringSettings()


@dataclass
class Settings:
    """Main settings class that combines all configuration settings."""
    srs: SRSSettings = field(default_factory=get_srs_settings)
    queue: QueueSettings = field(default_factory=get_queue_settings)
    database: DatabaseSettings = field(default_factory=get_database_settings)
    logging: LoggingSettings = field(default_factory=get_logging_settings)
    monitoring: MonitoringSettings = field(default_factory=get_monitoring_settings)

    def validate(self) -> None:
        """Validate settings and raise ValueError if invalid."""
        if self.srs.min_ease_factor <= 0:
            raise ValueError("MIN_EASE_FACTOR must be positive")

        if self.srs.min_ease_factor > self.srs.ease_factor_default:
            raise ValueError("MIN_EASE_FACTOR cannot be greater than EASE_FACTOR_DEFAULT")

        if self.srs.leech_threshold < 1:
            raise ValueError("LEECH_THRESHOLD must be positive")

        if self.srs.leech_removal_streak < 1:
            raise ValueError("LEECH_REMOVAL_STREAK must be positive")

        if not (
            0 < self.srs.learning_max_interval
            < self.srs.strengthening_max_interval
            < self.srs.consolidating_max_interval
        ):
            raise ValueError("Bucket interval thresholds must be positive and increasing")

        if self.queue.near_future_threshold < 1:
            raise ValueError("NEAR_FUTURE_THRESHOLD must be positive")

        if self.queue.leech_min_gap < 1:
            raise ValueError("LEECH_MIN_GAP must be positive")

        if self.queue.leech_min_gap > self.queue.leech_max_gap:
            raise ValueError("LEECH_MIN_GAP cannot be greater than LEECH_MAX_GAP")


# Create global settings instance
settings = Settings()
settings.validate()
