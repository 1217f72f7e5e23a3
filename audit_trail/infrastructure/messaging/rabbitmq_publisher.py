# audit_trail/infrastructure/messaging/rabbitmq_publisher.py

import json

import aio_pika


class RabbitMQPublisher:
    def __init__(self, rabbitmq_url: str):
        self._url = rabbitmq_url
        self._connection = None
        self._channel = None

    async def connect(self):
        self._connection = await aio_pika.connect_robust(self._url)
        self._channel = await self._connection.channel()

    async def publish(
        self,
        exchange_name: str,
        routing_key: str,
        message: dict,
        message_id: str,
    ):

        if not self._channel:
            await self.connect()

        exchange = await self._channel.declare_exchange(
            exchange_name,
            aio_pika.ExchangeType.TOPIC,
            durable=True,
        )

        msg = aio_pika.Message(
            body=json.dumps(message, default=str).encode(),
            content_type="application/json",
            delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
            message_id=message_id or None,
        )

        await exchange.publish(msg, routing_key=routing_key)

    async def close(self):
        if self._connection:
            await self._connection.close()
        self._connection = None
        self._channel = None
