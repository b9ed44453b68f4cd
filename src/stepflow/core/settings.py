"""Settings management for stepflow with environment variable override support."""

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .models import CyclePolicy

logger = logging.getLogger(__name__)

CYCLE_POLICIES = ("error", "fallback")


class CompilerSettings(BaseModel):
    """Defaults baked into generated modules and deployment descriptors."""

    compatibility_date: str = Field(default="2024-01-01", pattern=r"^\d{4}-\d{2}-\d{2}$")
    main_module: str = Field(default="src/index.ts")
    cycle_policy: CyclePolicy = Field(
        default="error",
        description="What compile does with a cyclic graph: error (refuse) or fallback (declaration order)",
    )
    default_http_timeout_ms: int = Field(default=30000, gt=0)
    ai_cache_ttl: int = Field(default=3600, ge=0, description="Default cache TTL in seconds for ai-gateway nodes")
    default_ai_model: str = Field(default="@cf/meta/llama-3.1-8b-instruct")

    @field_validator("main_module")
    @classmethod
    def validate_main_module(cls, v: str) -> str:
        """Ensure the module path is relative."""
        if v.startswith("/"):
            raise ValueError(f"Invalid main_module: {v}. Must be a relative path")
        return v


class StepflowSettings(BaseModel):
    """Main settings configuration."""

    version: str = Field(default="1.0.0")
    compiler: CompilerSettings = Field(default_factory=CompilerSettings)


class SettingsManager:
    """Manages stepflow settings with environment variable override support."""

    def __init__(self, settings_path: Optional[Path] = None):
        self.settings_path = settings_path or Path.home() / ".stepflow" / "settings.json"
        self._settings: Optional[StepflowSettings] = None
        self._lock = threading.Lock()

    def load(self) -> StepflowSettings:
        """Load settings with environment variable overrides."""
        if self._settings is None:
            self._settings = self._load_from_file()
        settings = self._settings.model_copy(deep=True)
        self._apply_env_overrides(settings)
        return settings

    def reload(self) -> StepflowSettings:
        """Force reload settings from disk."""
        self._settings = None
        return self.load()

    def _load_from_file(self) -> StepflowSettings:
        """Load settings from file or return defaults."""
        if self.settings_path.exists():
            try:
                with open(self.settings_path, encoding="utf-8") as f:
                    data = json.load(f)
                return StepflowSettings(**data)
            except Exception as e:
                logger.warning(f"Failed to load settings from {self.settings_path} ({e}); using defaults")
        return StepflowSettings()

    def _apply_env_overrides(self, settings: StepflowSettings) -> None:
        """Apply STEPFLOW_* environment variable overrides."""
        env_policy = os.getenv("STEPFLOW_CYCLE_POLICY")
        if env_policy is not None:
            if env_policy.lower() in CYCLE_POLICIES:
                settings.compiler.cycle_policy = env_policy.lower()  # type: ignore[assignment]
            else:
                logger.warning(
                    f"Invalid STEPFLOW_CYCLE_POLICY: {env_policy}. Using: {settings.compiler.cycle_policy}"
                )

        env_date = os.getenv("STEPFLOW_COMPATIBILITY_DATE")
        if env_date:
            try:
                settings.compiler = settings.compiler.model_copy(
                    update={"compatibility_date": CompilerSettings(compatibility_date=env_date).compatibility_date}
                )
            except ValueError:
                logger.warning(f"Invalid STEPFLOW_COMPATIBILITY_DATE: {env_date}. Expected YYYY-MM-DD")

        env_timeout = os.getenv("STEPFLOW_HTTP_TIMEOUT_MS")
        if env_timeout:
            if env_timeout.isdigit() and int(env_timeout) > 0:
                settings.compiler.default_http_timeout_ms = int(env_timeout)
            else:
                logger.warning(f"Invalid STEPFLOW_HTTP_TIMEOUT_MS: {env_timeout}. Must be a positive integer")

    def save(self, settings: Optional[StepflowSettings] = None) -> None:
        """Save settings to file with an atomic replace."""
        with self._lock:
            if settings is None:
                settings = self._settings or self._load_from_file()

            self.settings_path.parent.mkdir(parents=True, exist_ok=True)
            temp_fd, temp_path = tempfile.mkstemp(dir=self.settings_path.parent, prefix=".settings.", suffix=".tmp")
            try:
                with open(temp_fd, "w", encoding="utf-8") as f:
                    json.dump(settings.model_dump(), f, indent=2)
                os.replace(temp_path, self.settings_path)
                self._settings = None
            except Exception:
                Path(temp_path).unlink(missing_ok=True)
                raise
