import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Any

from cachetools import TTLCache
from loguru import logger

from ..clients.gateway import EventStream, GatewayAPI
from ..clients.openai import OpenAIAPI
from ..core.quota import QuotaTracker, Scope
from ..core.session import SessionStore
from ..shared.config import Config
from ..shared.config_keys import ConfigKeys
from ..shared.constants import (
    COMPLETION_ERROR_TEMPLATE,
    IDENTITY_LOCK_CACHE_MAX,
    IDENTITY_LOCK_TTL,
)
from ..shared.exceptions import ChatRelayError
from ..shared.utils import format_duration_hms, format_log_text, get_memory_usage
from .handlers import BotHandlers

__all__ = ("ChatBot",)

_LIMIT_REPLY_KEYS = {
    Scope.PRIVATE: ConfigKeys.BOT_PRIVATE_LIMIT_REPLY,
    Scope.GROUP: ConfigKeys.BOT_GROUP_LIMIT_REPLY,
}


class ChatBot:
    def __init__(self, config: Config):
        self.config = config
        self.gateway = GatewayAPI(
            config.get_required(ConfigKeys.GATEWAY_URL),
            config.get(ConfigKeys.GATEWAY_ACCESS_TOKEN, ""),
        )
        self.events = EventStream(
            self.gateway,
            log_dump_events=bool(config.get(ConfigKeys.LOG_DUMP_EVENTS)),
        )
        self.openai = OpenAIAPI(
            config.get_required(ConfigKeys.OPENAI_API_KEY),
            config.get(ConfigKeys.OPENAI_MODEL),
            config.get(ConfigKeys.OPENAI_API_BASE),
        )
        self.quota = QuotaTracker(config)
        self.sessions = SessionStore(
            max_entries=config.get(ConfigKeys.SESSION_MAX_ENTRIES, 0)
        )
        self.bot_user_id: str | None = None
        self.bot_nickname: str | None = None
        self._identity_locks: TTLCache[str, asyncio.Lock] = TTLCache(
            maxsize=IDENTITY_LOCK_CACHE_MAX, ttl=IDENTITY_LOCK_TTL
        )
        self.handlers = BotHandlers(self)
        self.running = False
        self._started_at: float | None = None
        self._events_task: asyncio.Task[None] | None = None
        logger.info("Bot initialized")

    @property
    def system_prompt(self) -> str:
        return self.config.get(ConfigKeys.BOT_SYSTEM_PROMPT, "")

    @property
    def ai_config(self) -> dict[str, Any]:
        return {
            "max_tokens": self.config.get(ConfigKeys.OPENAI_MAX_TOKENS),
            "temperature": self.config.get(ConfigKeys.OPENAI_TEMPERATURE),
        }

    def limit_reply(self, scope: Scope) -> str:
        return self.config.get(_LIMIT_REPLY_KEYS[scope], "")

    def lock_identity(self, identity: str) -> asyncio.Lock:
        lock = self._identity_locks.get(identity)
        if lock is None:
            lock = asyncio.Lock()
            self._identity_locks[identity] = lock
        return lock

    async def run_reply_pipeline(
        self,
        *,
        scope: Scope,
        identity: str,
        send_reply: Callable[[str], Awaitable[None]],
        build_request: Callable[[str], str],
        build_reply: Callable[[str], str],
        log_sent: Callable[[str], None],
    ) -> None:
        """Answer one admitted message.

        The quota is charged before anything else. Turns of one identity run
        one at a time, so each request carries the previous exchange; the
        session is only updated once the completion service produced a reply.
        """
        if not self.quota.admit(scope):
            await send_reply(self.limit_reply(scope))
            return
        async with self.lock_identity(identity):
            request_text = build_request(self.sessions.get(identity))
            if not request_text:
                logger.info("Message is empty after normalization; skipping")
                return
            try:
                reply = await self.openai.generate_text(
                    request_text, self.system_prompt, **self.ai_config
                )
            except (ChatRelayError, ValueError) as e:
                logger.warning(f"Completion request failed: {e}")
                await send_reply(COMPLETION_ERROR_TEMPLATE.format(error=e))
                return
            self.sessions.put(identity, request_text, reply)
            text = build_reply(reply)
            await send_reply(text)
        log_sent(text)

    async def start(self) -> None:
        if self.running:
            logger.warning("Bot is already running")
            return
        logger.info("Starting services...")
        self.running = True
        self._started_at = time.monotonic()
        self.openai.initialize()
        account = await self.gateway.get_current_user()
        self.bot_user_id = account.get("id")
        self.bot_nickname = account.get("nickname")
        logger.info(
            f"Connected to gateway: bot_id={self.bot_user_id}, nickname={self.bot_nickname}"
        )
        self.events.on_message(self.handlers.on_message)
        self._events_task = asyncio.create_task(self.events.connect(), name="gateway-events")
        logger.info("Services ready; awaiting new messages...")
        logger.debug(f"Memory usage: {get_memory_usage()['rss_mb']} MB")

    async def stop(self) -> None:
        if not self.running:
            logger.warning("Bot is already stopped")
            return
        logger.info("Stopping services...")
        self.running = False
        try:
            await self.events.close()
            if self._events_task is not None:
                self._events_task.cancel()
                await asyncio.gather(self._events_task, return_exceptions=True)
                self._events_task = None
            await self.gateway.close()
            await self.openai.close()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception(f"Error stopping bot: {e}")
        finally:
            uptime = time.monotonic() - (self._started_at or time.monotonic())
            logger.info(f"Services stopped after {format_duration_hms(uptime)}")

    @staticmethod
    def format_log_text(text: str, max_length: int = 50) -> str:
        return format_log_text(text, max_length)
