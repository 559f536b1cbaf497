"""Property-based tests for configuration models and loading.

Feature: callsync
"""

import os
from pathlib import Path

import pytest
import structlog
from hypothesis import given
from hypothesis import strategies as st
from pydantic import ValidationError

from callsync.models import AppConfig, StorageConfig, WebhookConfig
from callsync.utils.config_loader import ConfigLoader, ConfigurationError

log = structlog.stdlib.get_logger()


@given(st.integers(min_value=0, max_value=10))
def test_property_11_max_retries_bounds(max_retries: int):
    """Property 11: retry counts within bounds are accepted.

    **Feature: callsync, Property 11: Webhook retry bounds**
    """
    config = WebhookConfig(max_retries=max_retries)

    assert config.max_retries == max_retries


@given(st.integers().filter(lambda x: x < 0 or x > 10))
def test_property_11_max_retries_bounds_validation_error(invalid_retries: int):
    """Test that retry counts outside bounds are rejected."""
    with pytest.raises(ValidationError) as exc_info:
        WebhookConfig(max_retries=invalid_retries)

    assert "max_retries" in str(exc_info.value)


@given(
    st.one_of(
        st.none(),
        st.sampled_from(
            [
                "https://discord.com/api/webhooks/1/abc",
                "https://hooks.example.org/calls",
            ]
        ),
    )
)
def test_property_12_remote_target_follows_url(url: str | None):
    """Property 12: a remote target is configured iff a webhook URL is set.

    **Feature: callsync, Property 12: Remote target detection**
    """
    config = AppConfig(webhook=WebhookConfig(url=url))

    assert config.has_remote_target() is (url is not None)


def test_mirror_path_defaults_under_data_dir():
    storage = StorageConfig(data_dir=Path("/var/lib/callsync"), snapshot_name="log.json")

    assert storage.primary_path == Path("/var/lib/callsync/log.json")
    assert storage.resolved_mirror_path == Path("/var/lib/callsync/mirror/log.json")

    explicit = StorageConfig(mirror_path=Path("/mnt/backup/log.json"))
    assert explicit.resolved_mirror_path == Path("/mnt/backup/log.json")


def test_environment_variable_loading(monkeypatch: pytest.MonkeyPatch):
    """Nested settings are read from CALLSYNC_ prefixed variables."""
    monkeypatch.setenv("CALLSYNC_WEBHOOK__URL", "https://hooks.example.org/calls")
    monkeypatch.setenv("CALLSYNC_WEBHOOK__MAX_RETRIES", "5")
    monkeypatch.setenv("CALLSYNC_STORAGE__DATA_DIR", "/tmp/callsync")
    monkeypatch.setenv("CALLSYNC_LIFECYCLE__SYNC_WITHOUT_REMOTE", "true")

    config = AppConfig()

    assert str(config.webhook.url) == "https://hooks.example.org/calls"
    assert config.webhook.max_retries == 5
    assert config.storage.data_dir == Path("/tmp/callsync")
    assert config.lifecycle.sync_without_remote is True
    assert config.has_remote_target()


def test_configuration_file_parsing(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """YAML files are parsed and ${VAR} references substituted."""
    monkeypatch.setenv("TEST_WEBHOOK_URL", "https://hooks.example.org/abc")
    config_file = tmp_path / "config.yaml"
    config_file.write_text(
        f"""
storage:
  data_dir: "{tmp_path / 'data'}"
  snapshot_name: "calls.json"

webhook:
  url: ${{TEST_WEBHOOK_URL}}
  username: "phone-bot"
  max_retries: 2

logging:
  log_level: "DEBUG"
  json_logs: false
"""
    )

    config = ConfigLoader().load_config(str(config_file))

    assert str(config.webhook.url) == "https://hooks.example.org/abc"
    assert config.webhook.username == "phone-bot"
    assert config.webhook.max_retries == 2
    assert config.storage.primary_path == tmp_path / "data" / "calls.json"
    assert config.logging.log_level == "DEBUG"
    assert config.logging.json_logs is False


def test_missing_environment_variable_is_reported(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("UNSET_WEBHOOK_URL", raising=False)
    config_file = tmp_path / "config.yaml"
    config_file.write_text("webhook:\n  url: ${UNSET_WEBHOOK_URL}\n")

    with pytest.raises(ConfigurationError, match="UNSET_WEBHOOK_URL"):
        ConfigLoader().load_config(str(config_file))


@pytest.mark.parametrize(
    "content",
    ["", "webhook: [unclosed", "- just\n- a list\n", "webhook:\n  max_retries: 99\n"],
)
def test_invalid_configuration_files_raise(tmp_path: Path, content: str):
    config_file = tmp_path / "config.yaml"
    config_file.write_text(content)

    with pytest.raises(ConfigurationError):
        ConfigLoader().load_config(str(config_file))


def test_missing_configuration_file_raises(tmp_path: Path):
    with pytest.raises(ConfigurationError, match="not found"):
        ConfigLoader().load_config(str(tmp_path / "absent.yaml"))


def test_default_path_uses_app_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    (tmp_path / "default.yaml").write_text("webhook:\n  username: default-bot\n")
    (tmp_path / "staging.yaml").write_text("webhook:\n  username: staging-bot\n")
    loader = ConfigLoader(config_dir=tmp_path)

    monkeypatch.setenv("APP_ENV", "staging")
    assert loader.load_config().webhook.username == "staging-bot"

    monkeypatch.setenv("APP_ENV", "production")
    assert loader.load_config().webhook.username == "default-bot"


def test_repository_default_config_is_valid(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("APP_ENV", raising=False)
    for key in list(os.environ):
        if key.startswith("CALLSYNC_"):
            monkeypatch.delenv(key)

    config = ConfigLoader().load_config()

    assert not config.has_remote_target()
    assert config.storage.snapshot_name == "calllog.json"


def test_validate_config_warnings(tmp_path: Path):
    loader = ConfigLoader()
    same = AppConfig(
        storage=StorageConfig(data_dir=tmp_path, mirror_path=tmp_path / "calllog.json")
    )
    warnings = loader.validate_config(same)

    assert any("mirror_path" in w for w in warnings)
    assert any("webhook.url" in w for w in warnings)

    ok = AppConfig(
        storage=StorageConfig(data_dir=tmp_path),
        webhook=WebhookConfig(url="https://hooks.example.org/calls"),
    )
    assert loader.validate_config(ok) == []
