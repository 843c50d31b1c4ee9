import asyncio
import signal

from dotenv import load_dotenv
from loguru import logger

from ..bot.core import ChatBot
from ..shared.config import Config
from ..shared.config_keys import ConfigKeys
from ..shared.exceptions import (
    APIConnectionError,
    AuthenticationError,
    ConfigurationError,
)

__all__ = ("BotRunner", "main")

_EXIT_CODES: tuple[tuple[type[Exception], int], ...] = (
    (ConfigurationError, 2),
    (AuthenticationError, 3),
    (APIConnectionError, 4),
)


def configure_logging(config: Config) -> None:
    logger.add(
        config.get(ConfigKeys.LOG_PATH),
        level=config.get(ConfigKeys.LOG_LEVEL),
        rotation="10 MB",
        compression="zip",
        encoding="utf-8",
        enqueue=True,
    )


class BotRunner:
    """Run one bot until SIGINT or SIGTERM, then stop it cleanly."""

    def __init__(self, config: Config | None = None):
        self.config = config
        self.bot: ChatBot | None = None
        self._stop_requested = asyncio.Event()

    def request_stop(self, reason: str) -> None:
        if not self._stop_requested.is_set():
            logger.info(f"Received {reason}; shutting down...")
            self._stop_requested.set()

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.request_stop, sig.name)
            except NotImplementedError:
                # Windows event loops have no add_signal_handler
                signal.signal(
                    sig,
                    lambda s, _: loop.call_soon_threadsafe(
                        self.request_stop, signal.Signals(s).name
                    ),
                )

    async def run(self) -> None:
        if self.config is None:
            load_dotenv()
            self.config = Config()
            self.config.load()
        configure_logging(self.config)
        logger.info("Starting bot...")
        self.bot = ChatBot(self.config)
        try:
            await self.bot.start()
            self._install_signal_handlers()
            await self._stop_requested.wait()
        finally:
            await self.bot.stop()


def main() -> int:
    try:
        asyncio.run(BotRunner().run())
    except KeyboardInterrupt:
        return 130
    except Exception as e:
        for error_type, code in _EXIT_CODES:
            if isinstance(e, error_type):
                logger.error(f"Startup error: {e}")
                return code
        logger.exception("Unhandled exception")
        return 1
    logger.info("Bye")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
