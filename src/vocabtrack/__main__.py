"""Headless sync runner: keeps the offline queue flushed for one user."""
import asyncio
import logging
import signal

from vocabtrack.app import VocabApp
from vocabtrack.config import ensure_directories, settings
from vocabtrack.logging_config import setup_logging

logger = logging.getLogger("vocabtrack")


async def shutdown(sig, loop):
    """Cancel outstanding tasks on a termination signal."""
    logger.info("Received exit signal %s...", sig.name)

    tasks = [t for t in asyncio.all_tasks() if t is not asyncio.current_task()]
    for task in tasks:
        task.cancel()

    logger.info("Cancelling %d outstanding tasks", len(tasks))
    await asyncio.gather(*tasks, return_exceptions=True)


async def main() -> None:
    """Run the sync loop until interrupted."""
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, lambda s=sig: asyncio.create_task(shutdown(s, loop)))

    app = VocabApp()
    if not app.auth.current_user_id():
        logger.error("VOCAB_USER_ID is not set, nothing to sync")
        return

    try:
        logger.info("Starting sync runner...")
        await app.start()

        while True:
            try:
                await asyncio.sleep(1)
            except asyncio.CancelledError:
                break
    finally:
        logger.info("Cleaning up...")
        await app.stop()


def run() -> None:
    ensure_directories()
    setup_logging("Starting vocabtrack sync runner ...", settings.logging.level)
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt, shutting down...")


if __name__ == "__main__":
    run()
