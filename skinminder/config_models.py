from __future__ import annotations

import logging
from datetime import time
from pathlib import Path
from typing import Literal, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from skinminder import ARGS_DIR, DATA_DIR

logger = logging.getLogger(__name__)


# =============================================================================
# NotificationsConfig (args/notifications.yaml)
# =============================================================================

class ScheduleConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    anchor_time: str = Field(default="09:00")
    weekly_weekday: int = Field(default=6, ge=0, le=6)  # Monday=0, Sunday=6
    monthly_day: int = Field(default=1, ge=1, le=31)
    timezone: Optional[str] = None  # None = system local time
    # category -> "HH:MM"; null follows the user's preferred time
    category_times: dict[str, Optional[str]] = Field(default_factory=dict)

    @field_validator("anchor_time")
    @classmethod
    def _check_anchor(cls, value: str) -> str:
        parse_clock_time(value)
        return value

    @field_validator("timezone")
    @classmethod
    def _check_timezone(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {value}") from e
        return value

    @field_validator("category_times")
    @classmethod
    def _check_category_times(cls, value: dict[str, Optional[str]]) -> dict[str, Optional[str]]:
        for clock in value.values():
            if clock is not None:
                parse_clock_time(clock)
        return value

    def anchor(self) -> time:
        return parse_clock_time(self.anchor_time)

    def category_anchors(self) -> dict[str, time | None]:
        return {
            key: parse_clock_time(clock) if clock is not None else None
            for key, clock in self.category_times.items()
        }

    def tzinfo(self) -> ZoneInfo | None:
        return ZoneInfo(self.timezone) if self.timezone else None


class StorageConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    db_path: Optional[str] = None  # None = data/skinminder.db
    preferences_key: str = Field(default="notification_preferences", min_length=1)
    authorization_key: str = Field(default="authorization_state", min_length=1)

    def resolved_db_path(self) -> Path:
        if not self.db_path:
            return DATA_DIR / "skinminder.db"
        path = Path(self.db_path)
        return path if path.is_absolute() else ARGS_DIR.parent / path


class TemplateConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    title: str = Field(min_length=1)
    body: str = Field(default="")


class DeliveryConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    retry_on_failure: bool = Field(default=True)


class LoggingConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    level: str = Field(default="INFO")
    format: Literal["console", "json"] = Field(default="console")

    @field_validator("level")
    @classmethod
    def _check_level(cls, value: str) -> str:
        if not isinstance(logging.getLevelName(value.upper()), int):
            raise ValueError(f"Unknown log level: {value}")
        return value.upper()


class NotificationsConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    schedule: ScheduleConfig = Field(default_factory=ScheduleConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    delivery: DeliveryConfig = Field(default_factory=DeliveryConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    templates: dict[str, TemplateConfig] = Field(default_factory=dict)


# =============================================================================
# Helpers
# =============================================================================

def parse_clock_time(value: str) -> time:
    """Parse an HH:MM string into a time, raising ValueError when malformed."""
    try:
        parts = value.split(":")
        if len(parts) != 2:
            raise ValueError()
        hour, minute = int(parts[0]), int(parts[1])
        return time(hour, minute)
    except (ValueError, AttributeError) as e:
        raise ValueError(f"Invalid time format: {value}. Use HH:MM") from e


_CONFIG_MAP: dict[str, type[BaseModel]] = {
    "notifications": NotificationsConfig,
}


def load_and_validate(
    config_name: str,
    model_class: type[BaseModel] | None = None,
    args_dir: Path | None = None,
) -> BaseModel:
    if model_class is None:
        model_class = _CONFIG_MAP.get(config_name)
        if model_class is None:
            raise ValueError(f"Unknown config: {config_name}. Available: {list(_CONFIG_MAP.keys())}")

    yaml_path = (args_dir or ARGS_DIR) / f"{config_name}.yaml"

    try:
        if yaml_path.exists():
            with open(yaml_path) as f:
                raw = yaml.safe_load(f) or {}
        else:
            raw = {}

        return model_class.model_validate(raw)
    except Exception as e:
        logger.warning(f"Config validation failed for {config_name}: {e}, using defaults")
        return model_class()


def load_notifications_config(args_dir: Path | None = None) -> NotificationsConfig:
    return load_and_validate("notifications", NotificationsConfig, args_dir=args_dir)
