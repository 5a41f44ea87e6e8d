"""RabbitMQ consumer for newly created nudges."""

from typing import Any, Callable, Coroutine

import aio_pika
from aio_pika import IncomingMessage
from aio_pika.abc import AbstractRobustConnection
from pydantic import ValidationError

from nudgepush.core.config import get_settings
from nudgepush.core.errors import StoreError
from nudgepush.core.logging import get_logger
from nudgepush.models.nudge import NudgeEvent

logger = get_logger(__name__)

# Type alias for message handler
NudgeCallback = Callable[[NudgeEvent], Coroutine[Any, Any, None]]


class NudgeConsumer:
    """Delivers each nudge message on the queue to the handler once."""

    def __init__(self, handler: NudgeCallback):
        """Initialize consumer.

        Args:
            handler: Async function to handle incoming nudges
        """
        self._settings = get_settings()
        self._handler = handler
        self._connection: AbstractRobustConnection | None = None
        self._should_stop = False

    async def connect(self) -> None:
        """Connect to RabbitMQ."""
        self._connection = await aio_pika.connect_robust(
            self._settings.rabbitmq_url,
            reconnect_interval=5,
        )
        logger.info("Connected to RabbitMQ")

    async def disconnect(self) -> None:
        """Disconnect from RabbitMQ."""
        if self._connection:
            await self._connection.close()
            self._connection = None
            logger.info("Disconnected from RabbitMQ")

    async def start_consuming(self) -> None:
        """Start consuming nudge messages."""
        if not self._connection:
            await self.connect()

        channel = await self._connection.channel()
        await channel.set_qos(prefetch_count=10)

        queue = await channel.declare_queue(self._settings.rabbitmq_queue, durable=True)
        logger.info("Starting nudge consumption", queue=self._settings.rabbitmq_queue)

        async with queue.iterator() as queue_iter:
            async for message in queue_iter:
                if self._should_stop:
                    break
                await self.process_message(message)

    async def process_message(self, message: IncomingMessage) -> None:
        """Process a single message.

        Malformed messages are acked and dropped. Store failures reject the
        message with requeue so the broker redelivers it. Any other error is
        logged and the message acked.
        """
        async with message.process(ignore_processed=True):
            try:
                event = NudgeEvent.model_validate_json(message.body)
            except ValidationError as e:
                logger.warning(
                    "Invalid nudge message",
                    message_id=message.message_id,
                    errors=e.error_count(),
                )
                return

            try:
                await self._handler(event)
            except StoreError as e:
                logger.error("Store unavailable, nudge requeued", nudge_id=event.id, error=str(e))
                await message.reject(requeue=True)
            except Exception as e:
                logger.error("Error processing nudge", nudge_id=event.id, error=str(e), exc_info=True)

    def stop(self) -> None:
        """Signal consumer to stop."""
        self._should_stop = True
        logger.info("Consumer stop requested")
