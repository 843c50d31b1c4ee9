from importlib import import_module
from typing import Any

_EXPORTS: dict[str, tuple[str, str]] = {
    "BotRunner": (".app.main", "BotRunner"),
    "ChatBot": (".bot.core", "ChatBot"),
    "Config": (".shared.config", "Config"),
    "ConfigKeys": (".shared.config_keys", "ConfigKeys"),
    "EventStream": (".clients.gateway.streaming", "EventStream"),
    "GatewayAPI": (".clients.gateway.gateway_api", "GatewayAPI"),
    "OpenAIAPI": (".clients.openai.openai_api", "OpenAIAPI"),
    "QuotaTracker": (".core.quota", "QuotaTracker"),
    "Scope": (".core.quota", "Scope"),
    "SessionStore": (".core.session", "SessionStore"),
}

__all__ = list(_EXPORTS)


def __getattr__(name: str) -> Any:
    try:
        module_name, attr_name = _EXPORTS[name]
    except KeyError:
        raise AttributeError(name) from None
    value = getattr(import_module(module_name, __name__), attr_name)
    globals()[name] = value
    return value


def __dir__() -> list[str]:
    return sorted(set(globals()) | set(_EXPORTS))
