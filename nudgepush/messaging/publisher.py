"""Publishes newly created nudges onto the queue."""

import aio_pika
from aio_pika import DeliveryMode, Message
from aio_pika.abc import AbstractRobustConnection

from nudgepush.core.config import get_settings
from nudgepush.core.logging import get_logger
from nudgepush.models.nudge import NudgeEvent

logger = get_logger(__name__)


class NudgePublisher:
    """RabbitMQ publisher for the nudge queue."""

    def __init__(self):
        self._settings = get_settings()
        self._connection: AbstractRobustConnection | None = None

    async def connect(self) -> None:
        if self._connection is None:
            self._connection = await aio_pika.connect_robust(self._settings.rabbitmq_url)

    async def close(self) -> None:
        if self._connection:
            await self._connection.close()
            self._connection = None

    async def publish(self, event: NudgeEvent) -> None:
        """Publish one nudge as a persistent JSON message."""
        await self.connect()
        async with self._connection.channel() as channel:
            await channel.declare_queue(self._settings.rabbitmq_queue, durable=True)
            await channel.default_exchange.publish(
                Message(
                    body=event.model_dump_json().encode(),
                    delivery_mode=DeliveryMode.PERSISTENT,
                    content_type="application/json",
                    message_id=event.id,
                ),
                routing_key=self._settings.rabbitmq_queue,
            )
        logger.info("Nudge published", nudge_id=event.id)
