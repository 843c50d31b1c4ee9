import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from loguru import logger

from ..core.pipeline import (
    GroupDecoration,
    build_reply,
    build_request,
    build_welcome_text,
    strip_self_mention,
)
from ..core.quota import Scope
from ..core.session import make_identity
from ..shared.config_keys import ConfigKeys
from ..shared.exceptions import IdentityResolutionError
from ..shared.utils import (
    extract_group_id,
    extract_group_name,
    extract_message_id,
    extract_message_text,
    extract_nickname,
    extract_user_id,
    is_at_message,
    is_join_group_event,
    is_text_message,
)

if TYPE_CHECKING:
    from .core import ChatBot


@dataclass(slots=True)
class _GroupContext:
    message_id: str
    group_id: str
    group_name: str
    user_id: str
    nickname: str
    text: str


class GroupMessageHandler:
    def __init__(self, bot: "ChatBot"):
        self.bot = bot

    async def handle(self, event: dict[str, Any]) -> None:
        if is_join_group_event(event):
            await self._welcome(event)
            return
        try:
            ctx = self._parse(event)
        except IdentityResolutionError as e:
            logger.warning(f"Init group message handler error: {e}")
            return
        if not is_text_message(event):
            return
        try:
            await self._process(ctx, event)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Error handling group message")

    async def _welcome(self, event: dict[str, Any]) -> None:
        if not self.bot.config.get(ConfigKeys.BOT_WELCOME_TO_GROUP):
            return
        message_id = extract_message_id(event)
        text = build_welcome_text(extract_message_text(event))
        if not message_id or not text:
            logger.debug("Join group event without invitee; skipping welcome")
            return
        logger.info(f"Welcoming new group member: {text}")
        try:
            await self.bot.gateway.reply_text(message_id, text)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Error sending group welcome")

    @staticmethod
    def _parse(event: dict[str, Any]) -> _GroupContext:
        message_id = extract_message_id(event)
        group_id = extract_group_id(event)
        user_id = extract_user_id(event)
        if not message_id or not group_id or not user_id:
            raise IdentityResolutionError("group message without group, sender or id")
        return _GroupContext(
            message_id=message_id,
            group_id=group_id,
            group_name=extract_group_name(event) or group_id,
            user_id=user_id,
            nickname=extract_nickname(event),
            text=extract_message_text(event),
        )

    async def _process(self, ctx: _GroupContext, event: dict[str, Any]) -> None:
        logger.info(
            f"Received group {ctx.group_name} {ctx.nickname} message: "
            f"{self.bot.format_log_text(ctx.text)}"
        )
        if not is_at_message(event):
            return
        self_mention = self.bot.bot_nickname

        async def send_reply(text: str) -> None:
            await self.bot.gateway.reply_text(ctx.message_id, text)

        def log_sent(text: str) -> None:
            logger.info(
                f"Replied to group {ctx.group_name} {ctx.nickname}: "
                f"{self.bot.format_log_text(text)}"
            )

        await self.bot.run_reply_pipeline(
            scope=Scope.GROUP,
            identity=make_identity(ctx.user_id, ctx.group_id),
            send_reply=send_reply,
            build_request=lambda context: build_request(
                ctx.text, context, self_mention=self_mention
            ),
            build_reply=lambda reply: build_reply(
                reply,
                GroupDecoration(
                    nickname=ctx.nickname,
                    question=strip_self_mention(ctx.text, self_mention),
                ),
            ),
            log_sent=log_sent,
        )
