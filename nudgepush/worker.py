"""Worker process entry point for nudge consumption."""

import asyncio
import signal

from nudgepush.core.logging import get_logger, setup_logging
from nudgepush.messaging.consumer import NudgeConsumer
from nudgepush.notification.nudge_handler import get_nudge_handler, handle_nudge
from nudgepush.storage.redis_client import close_redis_pool, init_redis_pool

logger = get_logger(__name__)


class WorkerManager:
    """Runs the nudge consumer until a shutdown signal arrives."""

    def __init__(self):
        self._consumer: NudgeConsumer | None = None

    async def start(self) -> None:
        """Start consuming nudges."""
        setup_logging("worker")
        logger.info("Starting worker")

        await init_redis_pool()
        self._consumer = NudgeConsumer(handle_nudge)

        try:
            await self._consumer.start_consuming()
        except asyncio.CancelledError:
            logger.info("Consumer cancelled")
        finally:
            await self._cleanup()

    async def stop(self) -> None:
        """Signal the consumer to stop."""
        logger.info("Stopping worker")
        if self._consumer:
            self._consumer.stop()

    async def _cleanup(self) -> None:
        logger.info("Cleaning up resources")
        if self._consumer:
            await self._consumer.disconnect()
        await get_nudge_handler().close()
        await close_redis_pool()
        logger.info("Cleanup complete")


async def main() -> None:
    """Main entry point for worker process."""
    manager = WorkerManager()
    loop = asyncio.get_running_loop()

    def signal_handler():
        logger.info("Received shutdown signal")
        asyncio.create_task(manager.stop())

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler)

    await manager.start()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
