"""
Configuration Management
Loads settings from YAML files and environment variables
"""
import yaml
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Overdue detection must never lag the wall clock by more than this
MAX_OVERDUE_CHECK_SECONDS = 10


class Settings(BaseSettings):
    """Application settings loaded from environment"""

    environment: str = "development"
    debug: bool = True

    # API Settings
    api_prefix: str = "/api/v1"
    cors_origins: list[str] = ["http://localhost:3000"]

    # Stores: memory, supabase, http
    store_backend: str = "memory"
    supabase_url: Optional[str] = None
    supabase_service_key: Optional[str] = None
    leads_api_url: str = "http://localhost:5001"
    leads_api_token: Optional[str] = None
    leads_api_timeout: float = 10.0

    # Notifications: log, webhook, none
    notification_sink: str = "log"
    notification_webhook_url: Optional[str] = None

    # Timezone used for the clock time shown in priority text
    display_timezone: str = "UTC"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


class SchedulerConfig(BaseModel):
    """
    Cadence of the worklist refresh worker.

    All values are seconds. A single tick drives every job; each job runs
    when its own interval has elapsed since it last ran.
    """
    tick_seconds: float = Field(default=1.0, gt=0)
    overdue_check_seconds: float = Field(default=10.0, gt=0)
    priority_refresh_seconds: float = Field(default=15.0, gt=0)
    calls_refresh_seconds: float = Field(default=30.0, gt=0)
    leads_refresh_seconds: float = Field(default=120.0, gt=0)

    # Silent background fetch retries
    calls_retry_attempts: int = Field(default=2, ge=0)
    calls_retry_delay_seconds: float = Field(default=5.0, ge=0)
    leads_retry_attempts: int = Field(default=2, ge=0)
    leads_retry_delay_seconds: float = Field(default=10.0, ge=0)

    max_consecutive_errors: int = Field(default=10, ge=1)

    @model_validator(mode="after")
    def _check_overdue_latency(self) -> "SchedulerConfig":
        if self.overdue_check_seconds > MAX_OVERDUE_CHECK_SECONDS:
            raise ValueError(
                f"overdue_check_seconds must be <= {MAX_OVERDUE_CHECK_SECONDS} "
                f"(got {self.overdue_check_seconds})"
            )
        if self.tick_seconds > self.overdue_check_seconds:
            raise ValueError("tick_seconds must not exceed overdue_check_seconds")
        return self


class ConfigManager:
    """Manages loading and merging configuration from multiple sources"""

    def __init__(self, env: str = "development", config_dir: Optional[Path] = None):
        self.env = env
        self.config_dir = config_dir or Path(__file__).parent.parent.parent / "config"
        self._config: Dict[str, Any] = {}
        self._load_config()

    def _load_config(self) -> None:
        """Load configuration files in order of precedence"""
        # Load default config if exists
        default_path = self.config_dir / "default.yaml"
        if default_path.exists():
            self._config = self._load_yaml(default_path)

        # Load environment-specific config
        env_path = self.config_dir / f"{self.env}.yaml"
        if env_path.exists():
            env_config = self._load_yaml(env_path)
            self._deep_merge(self._config, env_config)

        # Substitute environment variables
        self._substitute_env_vars(self._config)

    def _load_yaml(self, path: Path) -> Dict:
        """Load YAML file"""
        with open(path, 'r') as f:
            return yaml.safe_load(f) or {}

    def _substitute_env_vars(self, config: Dict) -> None:
        """Replace ${VAR_NAME} with environment variable values"""
        for key, value in config.items():
            if isinstance(value, dict):
                self._substitute_env_vars(value)
            elif isinstance(value, str) and value.startswith("${") and value.endswith("}"):
                env_var = value[2:-1]
                config[key] = os.getenv(env_var, value)

    def _deep_merge(self, base: Dict, override: Dict) -> None:
        """Recursively merge override into base"""
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._deep_merge(base[key], value)
            else:
                base[key] = value

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation
        Example: config.get("scheduler.tick_seconds") -> 1
        """
        keys = key_path.split('.')
        value = self._config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value

    def get_scheduler_config(self) -> SchedulerConfig:
        """Build the validated scheduler section"""
        return SchedulerConfig(**(self.get("scheduler") or {}))


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance."""
    return Settings()
