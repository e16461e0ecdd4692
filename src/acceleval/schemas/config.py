"""Pydantic configuration schema for YAML input."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, ValidationError


class LoggingConfig(BaseModel):
    level: str = "INFO"


class ScoringConfig(BaseModel):
    default_min_score: float = 1.0
    default_max_score: float = 10.0
    required_evaluator_percentage: float = Field(default=75.0, ge=0, le=100)


class NotificationConfig(BaseModel):
    enabled: bool = True


class AppConfig(BaseModel):
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    notifications: NotificationConfig = Field(default_factory=NotificationConfig)

    def to_settings(self) -> dict[str, Any]:
        return {
            "scoring": self.scoring.model_dump(),
            "notifications": self.notifications.model_dump(),
        }


def load_config(raw: Any) -> AppConfig:
    if not isinstance(raw, dict):
        raise ValidationError.from_exception_data(
            "AppConfig",
            [{"type": "dict_type", "loc": ("config",), "input": raw}],
        )
    return AppConfig.model_validate(raw)
