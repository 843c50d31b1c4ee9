import json
import re
from typing import Any

import psutil
from loguru import logger
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)

__all__ = (
    "extract_group_id",
    "extract_group_name",
    "extract_message_id",
    "extract_message_text",
    "extract_nickname",
    "extract_user_id",
    "format_duration_hms",
    "format_log_text",
    "get_memory_usage",
    "is_at_message",
    "is_group_event",
    "is_join_group_event",
    "is_text_message",
    "maybe_log_event_dump",
    "redact_access_token",
    "retry_async",
)

_TOKEN_PARAM_RE = re.compile(r"([?&]access_token=)[^&#\s]+")
_TOKEN_HEADER_RE = re.compile(r"(Bearer\s+)\S+")


def redact_access_token(text: str) -> str:
    if not text:
        return text
    text = _TOKEN_PARAM_RE.sub(r"\1***", text)
    return _TOKEN_HEADER_RE.sub(r"\1***", text)


def retry_async(max_retries=3, retryable_exceptions=None):
    kwargs = {
        "stop": stop_after_attempt(max_retries),
        "wait": wait_random_exponential(multiplier=1, max=30),
        "reraise": True,
        "before_sleep": lambda retry_state: logger.info(
            f"Retry attempt #{retry_state.attempt_number}..."
        ),
    }
    if retryable_exceptions:
        kwargs["retry"] = retry_if_exception_type(retryable_exceptions)
    return retry(**kwargs)


def get_memory_usage() -> dict[str, Any]:
    process = psutil.Process()
    memory_info = process.memory_info()
    mb_factor = 1024 * 1024
    return {
        "rss_mb": round(memory_info.rss / mb_factor, 2),
        "vms_mb": round(memory_info.vms / mb_factor, 2),
        "percent": process.memory_percent(),
    }


def format_duration_hms(seconds: float) -> str:
    total = max(0, int(seconds))
    hours, rem = divmod(total, 3600)
    minutes, secs = divmod(rem, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def format_log_text(text: str, max_length: int = 50) -> str:
    if not text:
        return "None"
    suffix = "..." if len(text) > max_length else ""
    return f"{text[:max_length]}{suffix}"


def maybe_log_event_dump(enabled: bool, *, kind: str, payload: Any) -> None:
    if not enabled:
        return
    logger.opt(lazy=True).debug(
        "{} data: {}",
        lambda: kind,
        lambda: json.dumps(payload, ensure_ascii=False, indent=2),
    )


def _extract_str(data: Any, key: str) -> str | None:
    if not isinstance(data, dict):
        return None
    value = data.get(key)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        value = str(value)
    return value if isinstance(value, str) and value else None


def extract_message_id(event: dict[str, Any]) -> str | None:
    return _extract_str(event, "id")


def extract_message_text(event: dict[str, Any]) -> str:
    content = event.get("content")
    return content if isinstance(content, str) else ""


def extract_user_id(event: dict[str, Any]) -> str | None:
    return _extract_str(event.get("sender"), "id")


def extract_nickname(event: dict[str, Any]) -> str:
    return _extract_str(event.get("sender"), "nickname") or "unknown"


def extract_group_id(event: dict[str, Any]) -> str | None:
    return _extract_str(event.get("group"), "id")


def extract_group_name(event: dict[str, Any]) -> str | None:
    return _extract_str(event.get("group"), "nickname")


def is_text_message(event: dict[str, Any]) -> bool:
    return event.get("type", "text") == "text"


def is_join_group_event(event: dict[str, Any]) -> bool:
    return event.get("type") == "join_group"


def is_at_message(event: dict[str, Any]) -> bool:
    return bool(event.get("is_at"))


def is_group_event(event: dict[str, Any]) -> bool:
    scope = event.get("scope")
    if isinstance(scope, str) and scope:
        return scope == "group"
    return isinstance(event.get("group"), dict)
