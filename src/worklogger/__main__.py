import asyncio
import logging

from worklogger.core.config import settings
from worklogger.core.logging_config import configure_logging
from worklogger.core.runtime import initialize_runtime, shutdown_runtime

logger = logging.getLogger(__name__)


async def start() -> None:
    configure_logging(default_level=settings.log_level)
    await initialize_runtime()
    try:
        await asyncio.Event().wait()
    finally:
        await shutdown_runtime()


def main() -> None:
    try:
        asyncio.run(start())
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")


if __name__ == "__main__":
    main()
