from typing import TYPE_CHECKING, Any

from ..shared.utils import is_group_event
from .group import GroupMessageHandler
from .private import PrivateMessageHandler

if TYPE_CHECKING:
    from .core import ChatBot


class BotHandlers:
    def __init__(self, bot: "ChatBot"):
        self.bot = bot
        self.private = PrivateMessageHandler(bot)
        self.group = GroupMessageHandler(bot)

    async def on_message(self, event: dict[str, Any]) -> None:
        if is_group_event(event):
            await self.group.handle(event)
        else:
            await self.private.handle(event)
