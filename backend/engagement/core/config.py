"""
Configuration Management
Loads settings from YAML files and environment variables
"""
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic_settings import BaseSettings

from engagement.domain.models.lead import JobType
from engagement.domain.services.phone_numbers import parse_number_pool


class Settings(BaseSettings):
    """Application settings loaded from environment"""

    environment: str = "development"
    debug: bool = True

    # API Settings
    api_prefix: str = "/api/v1"
    cors_origins: list[str] = ["http://localhost:3000"]

    # Campaign clock
    timezone: str = "UTC"
    tick_interval_seconds: float = 60.0
    run_dispatcher_in_api: bool = False

    # Orchestration tuning
    event_dedup_seconds: float = 80.0
    notification_dedup_seconds: float = 60.0
    call_pacing_seconds: float = 0.5
    reminder_interval_days: int = 2
    fallback_hour: int = 10
    busy_offset_days: int = 2
    http_timeout_seconds: float = 10.0

    # Storage
    storage_backend: str = "memory"  # memory | supabase
    supabase_url: Optional[str] = None
    supabase_service_key: Optional[str] = None

    # Call provider (Retell)
    retell_api_key: Optional[str] = None
    retell_base_url: str = "https://api.retellai.com"
    retell_llm_id: Optional[str] = None
    retell_agent_id: Optional[str] = None
    from_phone_number: str = ""  # comma-separated caller ids

    # Language model (Groq)
    groq_api_key: Optional[str] = None
    groq_model: str = "llama-3.3-70b-versatile"

    # CRM (HubSpot)
    hubspot_access_token: Optional[str] = None
    hubspot_status_property: str = "engagement_status"

    # Mail (SMTP)
    smtp_host: Optional[str] = None
    smtp_port: int = 587
    smtp_user: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_from_email: Optional[str] = None
    smtp_from_name: str = "Lead Engagement"
    smtp_use_tls: bool = True

    # SMS (Vonage)
    vonage_api_key: Optional[str] = None
    vonage_api_secret: Optional[str] = None
    vonage_from_number: Optional[str] = None

    # Verification links
    verification_url: str = "http://localhost:3000/verify"
    link_encryption_key: Optional[str] = None
    link_encryption_keys_old: str = ""

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @property
    def from_numbers(self) -> List[str]:
        return parse_number_pool(self.from_phone_number)

    @property
    def old_link_keys(self) -> List[str]:
        return [k.strip() for k in self.link_encryption_keys_old.split(",") if k.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()


class ConfigManager:
    """Manages loading and merging configuration from multiple sources"""

    def __init__(self, env: str = "development", config_dir: Optional[Path] = None):
        self.env = env
        self.config_dir = Path(
            config_dir
            or os.getenv("ENGAGEMENT_CONFIG_DIR")
            or Path(__file__).parent.parent.parent / "config"
        )
        self._config: Dict[str, Any] = {}
        self._load_config()

    def _load_config(self) -> None:
        """Load configuration files in order of precedence"""
        default_path = self.config_dir / "default.yaml"
        if default_path.exists():
            self._config = self._load_yaml(default_path)

        env_path = self.config_dir / f"{self.env}.yaml"
        if env_path.exists():
            env_config = self._load_yaml(env_path)
            self._deep_merge(self._config, env_config)

        self._substitute_env_vars(self._config)

    def _load_yaml(self, path: Path) -> Dict:
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
        Example: config.get("job_schedules.initial.start_time") -> "09:00"
        """
        keys = key_path.split('.')
        value = self._config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value

    def job_schedule_defaults(self) -> Dict[str, Dict[str, Any]]:
        """First-boot JobSchedule fields per job type."""
        return self.get("job_schedules", {}) or {}

    def prompts(self) -> Dict[JobType, str]:
        """Conversation script per job type. Unresolved ${VAR} placeholders are skipped."""
        prompts = {}
        for job_type in JobType:
            prompt = self.get(f"prompts.{job_type.value}")
            if prompt and not (prompt.startswith("${") and prompt.endswith("}")):
                prompts[job_type] = prompt.strip()
        return prompts

    def agent_overrides(self) -> Dict[JobType, str]:
        """Per-job-type agent id overrides."""
        overrides = {}
        for job_type in JobType:
            agent_id = self.get(f"agents.{job_type.value}")
            if agent_id and not (agent_id.startswith("${") and agent_id.endswith("}")):
                overrides[job_type] = agent_id
        return overrides
