import pytest
import yaml

from chatrelay.shared import config as config_module
from chatrelay.shared.config import Config


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in (*config_module._ENV_TO_KEY, "CONFIG_PATH"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def write_config(tmp_path):
    path = tmp_path / "config.yaml"

    def write(bot: dict | None = None, **sections):
        data = {
            "gateway": {"url": "http://gateway.test"},
            "openai": {"api_key": "sk-test"},
            "bot": bot or {},
            "log": {"path": str(tmp_path / "logs" / "chatrelay.log")},
        }
        data.update(sections)
        path.write_text(yaml.safe_dump(data, allow_unicode=True), encoding="utf-8")
        return path

    return write


@pytest.fixture
def make_config(write_config):
    def factory(**bot) -> Config:
        config = Config(str(write_config(bot)))
        config.load()
        return config

    return factory
