"""
Unit Tests for configuration loading
"""
import pytest

from engagement.core.config import ConfigManager, Settings
from engagement.domain.models.lead import JobType

DEFAULT_YAML = """
job_schedules:
  initial:
    enabled: false
    start_time: "09:00"
    call_limit: 100
prompts:
  initial: ${TEST_INITIAL_PROMPT}
  reminder: ${TEST_UNSET_PROMPT}
agents:
  reschedule: agent_reschedule
"""

ENV_YAML = """
job_schedules:
  initial:
    enabled: true
"""


@pytest.fixture
def config_dir(tmp_path):
    (tmp_path / "default.yaml").write_text(DEFAULT_YAML)
    (tmp_path / "production.yaml").write_text(ENV_YAML)
    return tmp_path


class TestConfigManager:

    def test_default_file(self, config_dir):
        config = ConfigManager(env="development", config_dir=config_dir)

        assert config.get("job_schedules.initial.start_time") == "09:00"
        assert config.get("job_schedules.initial.enabled") is False
        assert config.get("job_schedules.missing.start_time", "n/a") == "n/a"

    def test_environment_file_is_merged(self, config_dir):
        config = ConfigManager(env="production", config_dir=config_dir)

        initial = config.job_schedule_defaults()["initial"]
        assert initial["enabled"] is True
        assert initial["call_limit"] == 100

    def test_env_placeholders(self, config_dir, monkeypatch):
        monkeypatch.setenv("TEST_INITIAL_PROMPT", "  Introduce the offer.  ")
        monkeypatch.delenv("TEST_UNSET_PROMPT", raising=False)

        config = ConfigManager(config_dir=config_dir)

        assert config.prompts() == {JobType.INITIAL: "Introduce the offer."}

    def test_agent_overrides(self, config_dir):
        config = ConfigManager(config_dir=config_dir)

        assert config.agent_overrides() == {JobType.RESCHEDULE: "agent_reschedule"}

    def test_bundled_defaults_cover_every_job_type(self):
        config = ConfigManager()

        assert set(config.job_schedule_defaults()) == {job_type.value for job_type in JobType}


class TestSettings:

    def test_from_numbers(self):
        settings = Settings(_env_file=None, from_phone_number="+1 555 000 0001, 5550000002, bad")

        assert settings.from_numbers == ["+15550000001", "+15550000002"]

    def test_old_link_keys(self):
        settings = Settings(_env_file=None, link_encryption_keys_old="k1, ,k2")

        assert settings.old_link_keys == ["k1", "k2"]

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("EVENT_DEDUP_SECONDS", raising=False)
        monkeypatch.delenv("NOTIFICATION_DEDUP_SECONDS", raising=False)

        settings = Settings(_env_file=None)

        assert settings.event_dedup_seconds == 80.0
        assert settings.notification_dedup_seconds == 60.0
