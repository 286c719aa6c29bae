import json
import logging
from typing import Any

from aiokafka import AIOKafkaProducer

logger = logging.getLogger(__name__)


def _serialize(value: dict[str, Any]) -> bytes:
    return json.dumps(value, default=str).encode("utf-8")


class KafkaProducer:
    def __init__(
        self,
        bootstrap_servers: str,
        topic: str,
        client_id: str = "shipping-service",
    ):
        self._bootstrap_servers = bootstrap_servers
        self._topic = topic
        self._client_id = client_id
        self._producer: AIOKafkaProducer | None = None

    async def start(self):
        self._producer = AIOKafkaProducer(
            bootstrap_servers=self._bootstrap_servers,
            client_id=self._client_id,
            value_serializer=_serialize,
            key_serializer=lambda k: k.encode("utf-8") if k else None,
        )
        await self._producer.start()
        logger.info(f"Kafka producer connected to {self._bootstrap_servers}")

    async def stop(self):
        if self._producer:
            await self._producer.stop()
            self._producer = None

    async def send_message(
        self,
        message: dict[str, Any],
        key: str | None = None,
        topic: str | None = None,
    ) -> None:
        """Publish one message and wait for the broker to acknowledge it."""
        if not self._producer:
            raise RuntimeError("Producer is not started. Call start() first.")

        await self._producer.send_and_wait(
            topic=topic or self._topic,
            value=message,
            key=key,
        )

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()
