"""Main entry point for the agent fleet."""

import asyncio
import signal
from pathlib import Path

from dotenv import load_dotenv

from fleet.app import Application
from fleet.logging_config import get_logger, setup_logging

logger = get_logger(__name__)


async def serve() -> None:
    """Run the application until SIGINT or SIGTERM."""
    app = Application()
    stop_event = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    await app.start()
    try:
        await stop_event.wait()
        logger.info("Shutdown requested")
    finally:
        await app.stop()


def main():
    """Run the application."""
    project_root = Path(__file__).resolve().parent.parent
    load_dotenv(project_root / ".env")
    setup_logging()

    asyncio.run(serve())


if __name__ == "__main__":
    main()
