import logging

import aio_pika

from .config import EXCHANGE_NAME, RABBIT_URL
from .events import DomainEvent, build_event, to_json

logger = logging.getLogger(__name__)


class RabbitDispatcher:
    """
    Fans booking events out over the topic exchange. Delivery is best-effort:
    a publish failure is logged and never reaches the scheduling engine,
    whose write has already been committed. Broadcasts and per-user
    notifications share the exchange; the latter carry a `user_id` header.
    """

    def __init__(self, url: str | None = RABBIT_URL, exchange_name: str = EXCHANGE_NAME):
        self.url = url
        self.exchange_name = exchange_name
        self.enabled = bool(url)
        self._connection: aio_pika.abc.AbstractRobustConnection | None = None
        self._exchange: aio_pika.abc.AbstractExchange | None = None

    async def start(self):
        """Declare the exchange up front. Raises if the broker is unreachable."""
        if self.enabled:
            await self._exchange_or_connect()

    async def _exchange_or_connect(self) -> aio_pika.abc.AbstractExchange:
        if self._exchange is not None and self._connection is not None and not self._connection.is_closed:
            return self._exchange

        connection = await aio_pika.connect_robust(self.url)
        try:
            channel = await connection.channel()
            exchange = await channel.declare_exchange(
                self.exchange_name,
                aio_pika.ExchangeType.TOPIC,
                durable=True,
            )
        except Exception:
            await connection.close()
            raise

        self._connection, self._exchange = connection, exchange
        return exchange

    async def emit(self, event: DomainEvent):
        body = to_json(build_event(event))
        if not self.enabled:
            logger.debug("events disabled, dropping %s: %s", event.routing_key, body)
            return

        msg = aio_pika.Message(
            body=body.encode("utf-8"),
            content_type="application/json",
            delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
            message_id=event.event_id,
            headers={"user_id": event.user_id} if event.user_id else None,
        )
        try:
            exchange = await self._exchange_or_connect()
            await exchange.publish(msg, routing_key=event.routing_key)
        except Exception:
            logger.exception("dropping %s %s: RabbitMQ publish failed", event.routing_key, event.event_id)

    async def close(self):
        connection, self._connection, self._exchange = self._connection, None, None
        if connection is not None and not connection.is_closed:
            await connection.close()
