import os
from pathlib import Path
from typing import Any

import yaml
from loguru import logger
from pydantic import BaseModel, Field, ValidationError, field_validator

from .config_keys import ConfigKeys
from .exceptions import ConfigurationError

__all__ = ("AppConfig", "Config")

_MISSING = object()

_ENV_TO_KEY = {
    "GATEWAY_URL": ConfigKeys.GATEWAY_URL,
    "GATEWAY_ACCESS_TOKEN": ConfigKeys.GATEWAY_ACCESS_TOKEN,
    "OPENAI_API_KEY": ConfigKeys.OPENAI_API_KEY,
    "OPENAI_MODEL": ConfigKeys.OPENAI_MODEL,
    "OPENAI_API_BASE": ConfigKeys.OPENAI_API_BASE,
    "OPENAI_MAX_TOKENS": ConfigKeys.OPENAI_MAX_TOKENS,
    "OPENAI_TEMPERATURE": ConfigKeys.OPENAI_TEMPERATURE,
    "BOT_SYSTEM_PROMPT": ConfigKeys.BOT_SYSTEM_PROMPT,
    "BOT_REPLY_PREFIX": ConfigKeys.BOT_REPLY_PREFIX,
    "BOT_PRIVATE_TRIGGER_KEYWORD": ConfigKeys.BOT_PRIVATE_TRIGGER_KEYWORD,
    "BOT_PRIVATE_LIMIT": ConfigKeys.BOT_PRIVATE_LIMIT,
    "BOT_GROUP_LIMIT": ConfigKeys.BOT_GROUP_LIMIT,
    "BOT_WELCOME_TO_GROUP": ConfigKeys.BOT_WELCOME_TO_GROUP,
    "BOT_HELP_TEXT": ConfigKeys.BOT_HELP_TEXT,
    "SESSION_MAX_ENTRIES": ConfigKeys.SESSION_MAX_ENTRIES,
    "LOG_PATH": ConfigKeys.LOG_PATH,
    "LOG_LEVEL": ConfigKeys.LOG_LEVEL,
    "LOG_DUMP_EVENTS": ConfigKeys.LOG_DUMP_EVENTS,
}

_DEFAULT_HELP_TEXT = (
    "  你好 我是有时智能有时智障的GPT智能机器人 是否智障取决于你问我的问题 "
    "对于已知的事情我知道的很多 我可以用这些已知的事情帮你创作内容 \n"
    "  由于我是语言模型并非网络模型 所以我也会和人一样不知道今天的天气等等 \n"
    "  目前可以自定义私聊触发关键词、私聊回复前缀、ai模型、每日回答限制数"
)


class GatewayConfig(BaseModel):
    url: str
    access_token: str = ""

    @field_validator("url")
    @classmethod
    def _strip_url(cls, v: str) -> str:
        url = v.strip().rstrip("/")
        if not url:
            raise ValueError("gateway url must not be empty")
        return url


class OpenAIConfig(BaseModel):
    api_key: str
    model: str = "gpt-4o-mini"
    api_base: str = "https://api.openai.com/v1"
    max_tokens: int = Field(default=1000, gt=0)
    temperature: float = Field(default=0.7, ge=0, le=2)


class BotConfig(BaseModel):
    system_prompt: str = ""
    reply_prefix: str = ""
    private_trigger_keyword: str = ""
    private_limit: int = Field(default=100, ge=0)
    group_limit: int = Field(default=100, ge=0)
    welcome_to_group: bool = False
    help_text: str = _DEFAULT_HELP_TEXT
    private_limit_reply: str = (
        "出于安全与成本的考虑 GPT已超过今日最大使用次数 请联系管理员进行配置"
    )
    group_limit_reply: str = (
        "为了您的安全与费用，GPT已超过今日最大使用次数 请联系管理员进行配置"
    )


class SessionConfig(BaseModel):
    max_entries: int = Field(default=0, ge=0)


class LogConfig(BaseModel):
    path: str = "logs/chatrelay.log"
    level: str = "INFO"
    dump_events: bool = False

    @field_validator("level")
    @classmethod
    def _upper_level(cls, v: str) -> str:
        return v.strip().upper()


class AppConfig(BaseModel):
    gateway: GatewayConfig
    openai: OpenAIConfig
    bot: BotConfig = BotConfig()
    session: SessionConfig = SessionConfig()
    log: LogConfig = LogConfig()


def _read_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        loaded = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigurationError(f"cannot read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"invalid YAML in {path}: {e}") from e
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigurationError(f"config root must be a mapping: {path}")
    return loaded


def _apply_env(data: dict[str, Any]) -> None:
    for env_name, dotted in _ENV_TO_KEY.items():
        value = os.environ.get(env_name)
        if value is None:
            continue
        *parents, leaf = dotted.split(".")
        node = data
        for part in parents:
            if not isinstance(node.get(part), dict):
                node[part] = {}
            node = node[part]
        node[leaf] = value


def _lookup(data: Any, dotted: str) -> Any:
    for part in dotted.split("."):
        if not isinstance(data, dict):
            return None
        data = data.get(part)
    return data


class Config:
    """Validated, read-through view of ``config.yaml`` plus the environment.

    Every ``get`` checks the file's modification time first, so edits to the
    YAML take effect without a restart. A reload that fails validation is
    logged and the previous values stay in force.
    """

    def __init__(self, config_path: str | None = None):
        self.path = Path(config_path or os.environ.get("CONFIG_PATH", "config.yaml"))
        self.model: AppConfig | None = None
        self.data: dict[str, Any] = {}
        self._mtime: float | None = None

    def _current_mtime(self) -> float | None:
        try:
            return self.path.stat().st_mtime
        except OSError:
            return None

    def load(self) -> None:
        mtime = self._current_mtime()
        raw = _read_yaml(self.path)
        _apply_env(raw)
        try:
            model = AppConfig.model_validate(raw)
        except ValidationError as e:
            raise ConfigurationError(str(e)) from e
        log_dir = Path(model.log.path).parent
        try:
            log_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigurationError(f"failed to create log directory {log_dir}: {e}") from e
        self.model = model
        self.data = model.model_dump()
        self._mtime = mtime

    def reload_if_changed(self) -> bool:
        if self.model is None:
            return False
        mtime = self._current_mtime()
        if mtime == self._mtime:
            return False
        try:
            self.load()
        except ConfigurationError as e:
            self._mtime = mtime
            logger.warning(f"Config reload failed; keeping previous values: {e}")
            return False
        logger.info(f"Config reloaded: {self.path}")
        return True

    def get(self, key: str, default: Any = _MISSING) -> Any:
        if self.model is None:
            return None if default is _MISSING else default
        self.reload_if_changed()
        value = _lookup(self.data, key)
        if value is None and default is not _MISSING:
            return default
        return value

    def get_required(self, key: str, desc: str | None = None) -> Any:
        value = self.get(key)
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ConfigurationError(f"missing required config: {desc or key}")
        return value
