"""
Configuration for NotiZen.

Supports loading from:
1. Environment variables (highest priority)
2. YAML config file
3. Default values (fallback)
"""

import os
from datetime import time
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field

from notizen.models.digest import BatchingRule
from notizen.models.notification import CategoryRule


class HourWindow(BaseModel):
    """Inclusive range of local hours; wraps past midnight when start > end."""

    start_hour: int = Field(..., ge=0, le=23)
    end_hour: int = Field(..., ge=0, le=23)

    def contains(self, hour: int) -> bool:
        if self.start_hour <= self.end_hour:
            return self.start_hour <= hour <= self.end_hour
        return hour >= self.start_hour or hour <= self.end_hour


class ClassifierConfig(BaseModel):
    """Rule-based classifier configuration."""

    active_window: HourWindow = Field(default_factory=lambda: HourWindow(start_hour=9, end_hour=18))
    quiet_window: HourWindow = Field(default_factory=lambda: HourWindow(start_hour=23, end_hour=7))
    active_multiplier: float = 1.2
    quiet_multiplier: float = 0.7
    high_threshold: float = 0.7
    medium_threshold: float = 0.5


class BatteryConfig(BaseModel):
    """Drain estimator configuration."""

    history_capacity: int = Field(default=288, ge=2)  # 24h of 5-minute samples
    estimation_window: int = Field(default=12, ge=2)  # 1h of 5-minute samples
    default_full_charge_hours: float = Field(default=18.0, gt=0)
    sample_interval_seconds: int = 300


def _default_batching_rules() -> dict[str, BatchingRule]:
    return {
        "Social": BatchingRule(max_time_window=10 * 60, max_items_per_batch=5, group_similar_titles=True),
        "News": BatchingRule(max_time_window=30 * 60, max_items_per_batch=3),
        "Promotions": BatchingRule(
            max_time_window=60 * 60, max_items_per_batch=10, group_similar_titles=True
        ),
    }


class BatchingConfig(BaseModel):
    """Digest batching configuration."""

    default_rule: BatchingRule = Field(default_factory=BatchingRule)
    rules: dict[str, BatchingRule] = Field(default_factory=_default_batching_rules)
    digest_interval_seconds: float = Field(default=300.0, gt=0)
    digest_window_end: time = time(17, 0)


def _default_categories() -> list[CategoryRule]:
    return [
        CategoryRule(name="Finance", keywords=["bank", "payment", "transaction", "invoice", "wire"], weight=90),
        CategoryRule(name="Social", keywords=["mention", "reply", "friend", "post"], weight=40),
        CategoryRule(name="Work", keywords=["deadline", "project", "task"], weight=75),
        CategoryRule(name="Promotions", enabled=False, keywords=["sale", "discount", "offer", "coupon", "deal"], weight=25),
        CategoryRule(name="News", keywords=["breaking", "headline"], weight=20),
        CategoryRule(name="Health", keywords=["workout", "heart rate", "medication"], weight=60),
    ]


class StoreConfig(BaseModel):
    """LocalStore limits and retention."""

    default_categories: list[CategoryRule] = Field(default_factory=_default_categories)
    high_feed_limit: int = Field(default=20, ge=1)
    dashboard_limit: int = Field(default=8, ge=1)
    max_notifications: int = Field(default=500, ge=1)
    max_digests: int = Field(default=50, ge=1)
    notification_retention_hours: float = 48.0
    digest_retention_hours: float = 72.0


class SyncConfig(BaseModel):
    """Cross-device sync configuration."""

    device_id: str = "primary"
    shared_context_poll_seconds: float = Field(default=30.0, gt=0)
    notification_batch_limit: int = Field(default=100, ge=1)


class StorageConfig(BaseModel):
    """Blob storage backend configuration."""

    backend: str = "memory"  # memory, sqlite
    db_path: str = "data/notizen.db"


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    log_to_file: bool = False
    log_dir: str = "logs"
    file_rotation: str = "10 MB"
    file_retention: str = "7 days"
    compression: str = "zip"
    serialize: bool = True


class Config(BaseModel):
    """Main configuration."""

    classifier: ClassifierConfig = Field(default_factory=ClassifierConfig)
    battery: BatteryConfig = Field(default_factory=BatteryConfig)
    batching: BatchingConfig = Field(default_factory=BatchingConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_env(cls, env_file: str | Path | None = None) -> "Config":
        """
        Load configuration from environment variables.

        Priority: .env file -> system environment variables -> defaults

        Args:
            env_file: Optional path to .env file (default: .env in project root)

        Returns:
            Config instance

        Environment variables:
            NOTIZEN_DEVICE_ID: Device id used as the logical clock origin
            NOTIZEN_SHARED_CONTEXT_POLL_SECONDS: Shared context poll interval
            NOTIZEN_STORAGE_BACKEND: Blob storage backend (memory, sqlite)
            NOTIZEN_STORAGE_DB_PATH: SQLite database path
            NOTIZEN_DIGEST_INTERVAL_SECONDS: Periodic digest finalize interval
            NOTIZEN_DIGEST_WINDOW_END: Daily digest window end (HH:MM)
            NOTIZEN_BATTERY_HISTORY_CAPACITY: Snapshot ring buffer capacity
            NOTIZEN_BATTERY_ESTIMATION_WINDOW: Samples used for the drain rate
            NOTIZEN_BATTERY_FULL_CHARGE_HOURS: Default runtime of a full charge
            NOTIZEN_LOG_LEVEL: Log level
        """
        # Load .env file if provided or exists
        if env_file:
            load_dotenv(env_file)
        elif Path(".env").exists():
            load_dotenv()

        def get_env(key: str, default: Any = None) -> Any:
            """Get environment variable with type conversion."""
            value = os.getenv(key)
            if value is None:
                return default
            # If value is empty string, return default
            if value == "":
                return default
            # Convert boolean strings
            if isinstance(default, bool):
                return str(value).lower() in ("true", "1", "yes")
            # Convert numeric strings
            if isinstance(default, int):
                return int(value)
            if isinstance(default, float):
                return float(value)
            if isinstance(default, time):
                return time.fromisoformat(value)
            return value

        return cls(
            battery=BatteryConfig(
                history_capacity=get_env("NOTIZEN_BATTERY_HISTORY_CAPACITY", 288),
                estimation_window=get_env("NOTIZEN_BATTERY_ESTIMATION_WINDOW", 12),
                default_full_charge_hours=get_env("NOTIZEN_BATTERY_FULL_CHARGE_HOURS", 18.0),
            ),
            batching=BatchingConfig(
                digest_interval_seconds=get_env("NOTIZEN_DIGEST_INTERVAL_SECONDS", 300.0),
                digest_window_end=get_env("NOTIZEN_DIGEST_WINDOW_END", time(17, 0)),
            ),
            sync=SyncConfig(
                device_id=get_env("NOTIZEN_DEVICE_ID", "primary"),
                shared_context_poll_seconds=get_env("NOTIZEN_SHARED_CONTEXT_POLL_SECONDS", 30.0),
            ),
            storage=StorageConfig(
                backend=get_env("NOTIZEN_STORAGE_BACKEND", "memory"),
                db_path=get_env("NOTIZEN_STORAGE_DB_PATH", "data/notizen.db"),
            ),
            logging=LoggingConfig(
                level=get_env("NOTIZEN_LOG_LEVEL", "INFO"),
                log_to_file=get_env("NOTIZEN_LOG_TO_FILE", False),
                log_dir=get_env("NOTIZEN_LOG_DIR", "logs"),
                file_rotation=get_env("NOTIZEN_LOG_FILE_ROTATION", "10 MB"),
                file_retention=get_env("NOTIZEN_LOG_FILE_RETENTION", "7 days"),
                compression=get_env("NOTIZEN_LOG_COMPRESSION", "zip"),
                serialize=get_env("NOTIZEN_LOG_SERIALIZE", True),
            ),
        )

    @classmethod
    def from_yaml(cls, yaml_path: str | Path) -> "Config":
        """
        Load configuration from YAML file.

        Args:
            yaml_path: Path to YAML configuration file

        Returns:
            Config instance

        Raises:
            FileNotFoundError: If YAML file doesn't exist
            yaml.YAMLError: If YAML is invalid
        """
        yaml_path = Path(yaml_path)
        if not yaml_path.exists():
            raise FileNotFoundError(f"Config file not found: {yaml_path}")

        with open(yaml_path) as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)

    @classmethod
    def from_env_or_yaml(
        cls, yaml_path: str | Path | None = None, env_file: str | Path | None = None
    ) -> "Config":
        """
        Load configuration with priority: env vars > YAML > defaults.

        Args:
            yaml_path: Optional path to YAML config
            env_file: Optional path to .env file

        Returns:
            Config instance
        """
        # Start with YAML if provided
        if yaml_path and Path(yaml_path).exists():
            with open(yaml_path) as f:
                config_dict = yaml.safe_load(f) or {}
        else:
            config_dict = {}

        # Override with env vars if present
        env_config = cls.from_env(env_file=env_file)

        # Merge: env vars override YAML
        final_dict = {**config_dict}

        # Apply env overrides (non-default values)
        default = cls()
        for section in ("battery", "batching", "sync", "storage", "logging"):
            env_section = getattr(env_config, section)
            default_section = getattr(default, section)
            if env_section == default_section:
                continue
            merged = dict(config_dict.get(section) or {})
            for key, value in env_section.model_dump().items():
                if value != getattr(default_section, key):
                    merged[key] = value
            final_dict[section] = merged

        return cls(**final_dict) if final_dict else env_config


# Default config instance
default_config = Config()
