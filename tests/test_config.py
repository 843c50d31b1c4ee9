import os

import pytest

from chatrelay.shared.config import Config
from chatrelay.shared.config_keys import ConfigKeys
from chatrelay.shared.exceptions import ConfigurationError


def _bump_mtime(path, seconds=10):
    st = path.stat()
    os.utime(path, (st.st_atime + seconds, st.st_mtime + seconds))


def test_load_applies_defaults(write_config, tmp_path):
    config = Config(str(write_config(gateway={"url": "http://127.0.0.1:8080/"})))
    config.load()
    assert config.get(ConfigKeys.GATEWAY_URL) == "http://127.0.0.1:8080"
    assert config.get(ConfigKeys.BOT_PRIVATE_LIMIT) == 100
    assert config.get(ConfigKeys.BOT_GROUP_LIMIT) == 100
    assert config.get(ConfigKeys.BOT_WELCOME_TO_GROUP) is False
    assert config.get(ConfigKeys.SESSION_MAX_ENTRIES) == 0
    assert (tmp_path / "logs").is_dir()


def test_env_overrides_yaml(write_config, monkeypatch):
    monkeypatch.setenv("BOT_PRIVATE_LIMIT", "5")
    monkeypatch.setenv("OPENAI_MODEL", "gpt-test")
    config = Config(str(write_config({"private_limit": 50})))
    config.load()
    assert config.get(ConfigKeys.BOT_PRIVATE_LIMIT) == 5
    assert config.get(ConfigKeys.OPENAI_MODEL) == "gpt-test"


def test_missing_required_section_fails(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("bot:\n  private_limit: 1\n", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        Config(str(path)).load()


def test_invalid_values_fail(write_config):
    config = Config(str(write_config({"group_limit": -1})))
    with pytest.raises(ConfigurationError):
        config.load()


def test_non_mapping_root_fails(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        Config(str(path)).load()


def test_get_default_and_required(make_config):
    config = make_config()
    assert config.get("bot.nope", "fallback") == "fallback"
    assert config.get_required(ConfigKeys.OPENAI_API_KEY) == "sk-test"
    with pytest.raises(ConfigurationError):
        config.get_required("bot.nope")


def test_get_before_load_returns_default():
    config = Config("does-not-exist.yaml")
    assert config.get(ConfigKeys.BOT_PRIVATE_LIMIT) is None
    assert config.get(ConfigKeys.BOT_PRIVATE_LIMIT, 3) == 3


def test_changed_file_is_reloaded(write_config):
    path = write_config({"private_limit": 1})
    config = Config(str(path))
    config.load()
    assert config.get(ConfigKeys.BOT_PRIVATE_LIMIT) == 1
    write_config({"private_limit": 7})
    _bump_mtime(path)
    assert config.get(ConfigKeys.BOT_PRIVATE_LIMIT) == 7


def test_broken_reload_keeps_previous_values(write_config):
    path = write_config({"private_limit": 1})
    config = Config(str(path))
    config.load()
    path.write_text("gateway: [unclosed\n", encoding="utf-8")
    _bump_mtime(path)
    assert config.get(ConfigKeys.BOT_PRIVATE_LIMIT) == 1
    assert config.reload_if_changed() is False
