"""Property-based tests for configuration models and the YAML loader."""

from pathlib import Path

import pytest
import structlog
from hypothesis import given
from hypothesis import strategies as st
from pydantic import ValidationError

from recordsync.exceptions import ConfigurationError
from recordsync.models import AppConfig, LoggingConfig, RetryConfig, SyncConfig
from recordsync.utils.config_loader import ConfigLoader

log = structlog.stdlib.get_logger()


@given(st.integers(min_value=1, max_value=100_000))
def test_batch_size_accepted_when_positive(batch_size: int):
    config = SyncConfig(batch_size=batch_size)
    assert config.batch_size == batch_size


@given(st.integers(max_value=0))
def test_batch_size_rejected_below_one(batch_size: int):
    with pytest.raises(ValidationError) as exc_info:
        SyncConfig(batch_size=batch_size)
    assert "batch_size" in str(exc_info.value)


@given(st.floats(max_value=0.0, allow_nan=False))
def test_poll_interval_must_be_positive(interval: float):
    with pytest.raises(ValidationError):
        SyncConfig(poll_interval=interval)


def test_defaults():
    config = AppConfig()

    assert config.sync.key_field == "name"
    assert config.sync.poll_interval == 10.0
    assert config.sync.full_sync_mode == "safe"
    assert config.retry.max_retries == 3
    assert config.logging.log_level == "INFO"


def test_rejects_unknown_full_sync_mode_and_log_level():
    with pytest.raises(ValidationError):
        SyncConfig(full_sync_mode="eventually")
    with pytest.raises(ValidationError):
        LoggingConfig(log_level="chatty")
    with pytest.raises(ValidationError):
        SyncConfig(key_field="$where")
    assert LoggingConfig(log_level="debug").log_level == "DEBUG"


def test_environment_variable_loading(monkeypatch):
    """Nested settings are read from RECORDSYNC_ prefixed environment variables."""
    log.info("test_environment_variable_loading")
    monkeypatch.setenv("RECORDSYNC_SYNC__BATCH_SIZE", "25")
    monkeypatch.setenv("RECORDSYNC_SYNC__POLL_INTERVAL", "2.5")
    monkeypatch.setenv("RECORDSYNC_SYNC__FULL_SYNC_MODE", "naive")
    monkeypatch.setenv("RECORDSYNC_RETRY__MAX_RETRIES", "5")
    monkeypatch.setenv("RECORDSYNC_LOGGING__JSON_LOGS", "false")

    config = AppConfig()

    assert config.sync.batch_size == 25
    assert config.sync.poll_interval == 2.5
    assert config.sync.full_sync_mode == "naive"
    assert config.retry.max_retries == 5
    assert config.logging.json_logs is False


class TestConfigLoader:
    def write(self, tmp_path: Path, text: str, name: str = "default.yaml") -> Path:
        path = tmp_path / name
        path.write_text(text)
        return path

    def test_loads_yaml_with_env_substitution(self, tmp_path, monkeypatch):
        monkeypatch.setenv("SYNC_BATCH", "42")
        path = self.write(
            tmp_path,
            "sync:\n"
            "  batch_size: ${SYNC_BATCH}\n"
            "  key_field: ${SYNC_KEY:-code}\n"
            "retry:\n"
            "  max_retries: 1\n",
        )

        config = ConfigLoader().load_config(str(path))

        assert config.sync.batch_size == 42
        assert config.sync.key_field == "code"
        assert config.retry.max_retries == 1

    def test_missing_env_var_is_a_configuration_error(self, tmp_path, monkeypatch):
        monkeypatch.delenv("NOT_SET_ANYWHERE", raising=False)
        path = self.write(tmp_path, "sync:\n  key_field: ${NOT_SET_ANYWHERE}\n")

        with pytest.raises(ConfigurationError, match="NOT_SET_ANYWHERE"):
            ConfigLoader().load_config(str(path))

    def test_invalid_values_are_configuration_errors(self, tmp_path):
        path = self.write(tmp_path, "sync:\n  poll_interval: -3\n")

        with pytest.raises(ConfigurationError, match="validation failed"):
            ConfigLoader().load_config(str(path))

    @pytest.mark.parametrize("text", ["", "[1, 2]", "sync: [unclosed\n"])
    def test_unusable_files(self, tmp_path, text):
        path = self.write(tmp_path, text)

        with pytest.raises(ConfigurationError):
            ConfigLoader().load_config(str(path))

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            ConfigLoader().load_config(str(tmp_path / "absent.yaml"))

    def test_environment_specific_file_with_default_fallback(self, tmp_path, monkeypatch):
        self.write(tmp_path, "sync:\n  batch_size: 7\n")
        self.write(tmp_path, "sync:\n  batch_size: 8\n", name="staging.yaml")
        loader = ConfigLoader(config_dir=tmp_path)

        monkeypatch.setenv("RECORDSYNC_ENV", "staging")
        assert loader.load_config().sync.batch_size == 8

        monkeypatch.setenv("RECORDSYNC_ENV", "production")
        assert loader.load_config().sync.batch_size == 7

    def test_no_config_directory(self, tmp_path):
        with pytest.raises(ConfigurationError):
            ConfigLoader(config_dir=tmp_path / "missing").load_config()

    def test_repository_default_config_is_valid(self, monkeypatch):
        monkeypatch.delenv("RECORDSYNC_ENV", raising=False)
        monkeypatch.delenv("RECORDSYNC_BATCH_SIZE", raising=False)

        config = ConfigLoader().load_config()

        assert config.sync.batch_size == 100
        assert config.sync.full_sync_mode == "safe"

    def test_validate_config_warnings(self):
        config = AppConfig(
            sync=SyncConfig(batch_size=20_000, poll_interval=0.1, max_concurrency=30_000),
            retry=RetryConfig(base_delay=10, max_delay=1),
        )

        warnings = ConfigLoader().validate_config(config)

        assert len(warnings) == 4
        assert ConfigLoader().validate_config(AppConfig()) == []
