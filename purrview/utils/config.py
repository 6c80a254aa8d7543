"""Configuration management for PurrView."""

from pathlib import Path
from typing import Dict, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings


class DatabaseConfig(BaseModel):
    """Database configuration."""

    url: str = "sqlite:///data/db/purrview.db"
    echo: bool = False


class PricingConfig(BaseModel):
    """Retailer price checking configuration."""

    timeout_seconds: float = 10.0
    rate_limit_delay: float = 2.0
    monitor_batch_size: int = 60
    max_failures: int = 3


class NotificationsConfig(BaseModel):
    """Notification defaults."""

    expiry_days: int = 30
    default_snooze_days: int = 3
    page_size: int = 20


class AchievementsConfig(BaseModel):
    """Achievement checker configuration."""

    notify_on_unlock: bool = True


class ScheduleConfig(BaseModel):
    """Scheduling configuration."""

    cleanup_hour: int = 2
    price_monitor_day: str = "sun"
    price_monitor_hour: int = 2
    max_instances_per_job: int = 1
    misfire_grace_time_seconds: int = 300


class APIConfig(BaseModel):
    """API configuration."""

    host: str = "0.0.0.0"
    port: int = 8000
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    file: str = "data/logs/purrview.log"


class Config(BaseModel):
    """Main configuration model."""

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    pricing: PricingConfig = Field(default_factory=PricingConfig)
    notifications: NotificationsConfig = Field(default_factory=NotificationsConfig)
    achievements: AchievementsConfig = Field(default_factory=AchievementsConfig)
    schedule: ScheduleConfig = Field(default_factory=ScheduleConfig)
    api: APIConfig = Field(default_factory=APIConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


class Settings(BaseSettings):
    """Environment-based settings."""

    # Database
    database_url: str = ""

    # Auth: tokens are issued by the external auth provider and signed with secret_key
    secret_key: str = ""
    jwt_algorithm: str = "HS256"
    service_role_key: str = ""

    # Pricing
    price_timeout_seconds: Optional[float] = None

    # Logging
    log_level: str = ""

    # API
    api_host: str = ""
    api_port: Optional[int] = None

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


class ConfigManager:
    """Configuration manager for loading and merging config sources."""

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize configuration manager.

        Args:
            config_path: Path to YAML configuration file
        """
        load_dotenv()

        if config_path is None:
            config_path = Path(__file__).parent.parent.parent / "config" / "config.yaml"

        self.config_path = config_path
        self.yaml_config = self._load_yaml()

        self.env_settings = Settings()

        self.config = self._merge_config()

    def _load_yaml(self) -> Dict:
        """Load YAML configuration file."""
        if not self.config_path.exists():
            return {}

        with open(self.config_path, "r") as f:
            return yaml.safe_load(f) or {}

    def _merge_config(self) -> Config:
        """Merge YAML config with environment variables."""
        merged = self.yaml_config.copy()

        if self.env_settings.database_url:
            merged.setdefault("database", {})["url"] = self.env_settings.database_url

        if self.env_settings.price_timeout_seconds:
            merged.setdefault("pricing", {})[
                "timeout_seconds"
            ] = self.env_settings.price_timeout_seconds

        if self.env_settings.log_level:
            merged.setdefault("logging", {})["level"] = self.env_settings.log_level

        if self.env_settings.api_host:
            merged.setdefault("api", {})["host"] = self.env_settings.api_host

        if self.env_settings.api_port:
            merged.setdefault("api", {})["port"] = self.env_settings.api_port

        return Config(**merged)


# Global config instance
_config_manager: Optional[ConfigManager] = None


def get_config_manager() -> ConfigManager:
    """Get configuration manager instance."""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager


def get_config() -> Config:
    """Get global configuration instance."""
    return get_config_manager().config


def get_settings() -> Settings:
    """Get environment settings."""
    return get_config_manager().env_settings
