"""Configuration management for t-pane."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Annotated
import os

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

SPLIT_MODES = {"horizontal", "vertical", "window"}


class TPaneSettings(BaseSettings):
    """Runtime configuration sourced from environment variables and optional .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    tmux_path: str | None = Field(default=None, validation_alias="TPANE_TMUX_PATH")
    project_dir: Path = Field(default_factory=Path.cwd, validation_alias="TPANE_PROJECT_DIR")
    state_dir_name: str = Field(default=".t-pane", validation_alias="TPANE_STATE_DIR_NAME")
    log_level: str = Field(default="INFO", validation_alias="TPANE_LOG_LEVEL")
    logging_disabled: bool = Field(default=False, validation_alias="T_PANE_DISABLE_LOGGING")

    pane_prefix: str = Field(default="claude", validation_alias="TPANE_PANE_PREFIX")
    split_direction: str = Field(default="horizontal", validation_alias="TPANE_SPLIT")
    split_percent: int = Field(default=40, validation_alias="TPANE_SPLIT_PERCENT")

    prompt_glyphs: Annotated[tuple[str, ...], NoDecode] = Field(
        default=("❯",), validation_alias="TPANE_PROMPT_GLYPHS"
    )
    prompt_pattern_paths: Annotated[tuple[Path, ...], NoDecode] = Field(
        default=(), validation_alias="TPANE_PROMPT_PATTERN_PATHS"
    )

    settle_delay: float = Field(default=0.5, validation_alias="TPANE_SETTLE_DELAY")
    poll_interval: float = Field(default=0.5, validation_alias="TPANE_POLL_INTERVAL")
    capture_timeout: float = Field(default=30.0, validation_alias="TPANE_CAPTURE_TIMEOUT")
    no_capture_delay: float = Field(default=0.5, validation_alias="TPANE_NO_CAPTURE_DELAY")

    task_timeout: float = Field(default=3600.0, validation_alias="TPANE_TASK_TIMEOUT")
    lock_timeout: float = Field(default=10.0, validation_alias="TPANE_LOCK_TIMEOUT")

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(
                "TPANE_LOG_LEVEL must be one of CRITICAL, ERROR, WARNING, INFO, DEBUG"
            )
        return normalized

    @field_validator("split_direction")
    @classmethod
    def _validate_split(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in SPLIT_MODES:
            raise ValueError(f"TPANE_SPLIT must be one of {sorted(SPLIT_MODES)}")
        return normalized

    @field_validator("split_percent")
    @classmethod
    def _validate_split_percent(cls, value: int) -> int:
        if not 10 <= value <= 90:
            raise ValueError("TPANE_SPLIT_PERCENT must be between 10 and 90")
        return value

    @field_validator("prompt_glyphs", mode="before")
    @classmethod
    def _parse_prompt_glyphs(cls, value):
        if value is None or value == "":
            return ("❯",)
        if isinstance(value, (list, tuple)):
            return tuple(str(item) for item in value if str(item))
        if isinstance(value, str):
            parts = [part.strip() for part in value.split(",") if part.strip()]
            return tuple(parts) or ("❯",)
        raise TypeError("TPANE_PROMPT_GLYPHS must be a list or a comma-separated string")

    @field_validator("prompt_pattern_paths", mode="before")
    @classmethod
    def _parse_pattern_paths(cls, value):
        if value is None or value == "":
            return ()
        if isinstance(value, (list, tuple)):
            return tuple(Path(str(item)) for item in value)
        if isinstance(value, str):
            parts = [part.strip() for part in value.split(os.pathsep) if part.strip()]
            return tuple(Path(part) for part in parts)
        raise TypeError(
            "TPANE_PROMPT_PATTERN_PATHS must be a list of paths or a path-separated string"
        )

    @field_validator("settle_delay", "poll_interval", "no_capture_delay")
    @classmethod
    def _validate_delay(cls, value: float) -> float:
        if value < 0:
            raise ValueError("Delays must be >= 0")
        return value

    @field_validator("capture_timeout", "task_timeout", "lock_timeout")
    @classmethod
    def _validate_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("Timeouts must be > 0")
        return value

    @property
    def state_dir(self) -> Path:
        return self.project_dir / self.state_dir_name

    @property
    def log_dir(self) -> Path:
        return self.state_dir / "logs"

    @property
    def task_dir(self) -> Path:
        return self.state_dir / "tasks"


@lru_cache(maxsize=1)
def get_settings() -> TPaneSettings:
    """Return cached settings instance."""

    settings = TPaneSettings()
    settings.project_dir = settings.project_dir.expanduser().resolve()
    settings.prompt_pattern_paths = tuple(
        path.expanduser().resolve() for path in settings.prompt_pattern_paths
    )
    return settings


__all__ = ["SPLIT_MODES", "TPaneSettings", "get_settings"]
