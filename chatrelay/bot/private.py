import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from loguru import logger

from ..core.pipeline import PrivateDecoration, build_reply, build_request
from ..core.quota import Scope
from ..core.session import make_identity
from ..shared.config_keys import ConfigKeys
from ..shared.exceptions import IdentityResolutionError
from ..shared.utils import (
    extract_message_id,
    extract_message_text,
    extract_nickname,
    extract_user_id,
    is_text_message,
)

if TYPE_CHECKING:
    from .core import ChatBot


@dataclass(slots=True)
class _PrivateContext:
    message_id: str
    user_id: str
    nickname: str
    text: str


class PrivateMessageHandler:
    def __init__(self, bot: "ChatBot"):
        self.bot = bot

    async def handle(self, event: dict[str, Any]) -> None:
        try:
            ctx = self._parse(event)
        except IdentityResolutionError as e:
            logger.warning(f"Init private message handler error: {e}")
            return
        try:
            await self._process(ctx, event)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Error handling private message")

    @staticmethod
    def _parse(event: dict[str, Any]) -> _PrivateContext:
        message_id = extract_message_id(event)
        user_id = extract_user_id(event)
        if not message_id or not user_id:
            raise IdentityResolutionError("private message without sender or id")
        return _PrivateContext(
            message_id=message_id,
            user_id=user_id,
            nickname=extract_nickname(event),
            text=extract_message_text(event),
        )

    async def _send_reply(self, ctx: _PrivateContext, text: str) -> None:
        await self.bot.gateway.reply_text(ctx.message_id, text)

    async def _process(self, ctx: _PrivateContext, event: dict[str, Any]) -> None:
        keyword = self.bot.config.get(ConfigKeys.BOT_PRIVATE_TRIGGER_KEYWORD, "")
        if ctx.text == keyword:
            await self._send_reply(ctx, self.bot.config.get(ConfigKeys.BOT_HELP_TEXT))
            return
        if self.bot.bot_user_id and ctx.user_id == self.bot.bot_user_id:
            return
        if not is_text_message(event):
            return
        if keyword and keyword not in ctx.text:
            logger.debug(f"Private message from {ctx.nickname} lacks trigger keyword")
            return
        logger.info(
            f"Received private message from {ctx.nickname}: {self.bot.format_log_text(ctx.text)}"
        )

        async def send_reply(text: str) -> None:
            await self._send_reply(ctx, text)

        def log_sent(text: str) -> None:
            logger.info(f"Replied to {ctx.nickname}: {self.bot.format_log_text(text)}")

        await self.bot.run_reply_pipeline(
            scope=Scope.PRIVATE,
            identity=make_identity(ctx.user_id),
            send_reply=send_reply,
            build_request=lambda context: build_request(
                ctx.text, context, strip_token=keyword
            ),
            build_reply=lambda reply: build_reply(
                reply,
                PrivateDecoration(
                    prefix=self.bot.config.get(ConfigKeys.BOT_REPLY_PREFIX, "")
                ),
            ),
            log_sent=log_sent,
        )
