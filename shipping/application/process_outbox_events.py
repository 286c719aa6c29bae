import logging

from shipping.core.models import OutboxEvent
from shipping.infrastructure.kafka_producer import KafkaProducer
from shipping.infrastructure.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


class ProcessOutboxEventsUseCase:
    def __init__(
        self,
        unit_of_work: UnitOfWork,
        kafka_producer: KafkaProducer,
        payments_topic: str,
        shipments_topic: str,
        emails_topic: str,
        batch_size: int = 100,
    ):
        self._unit_of_work = unit_of_work
        self._kafka_producer = kafka_producer
        self._payments_topic = payments_topic
        self._shipments_topic = shipments_topic
        self._emails_topic = emails_topic
        self._batch_size = batch_size

    def topic_for(self, event: OutboxEvent) -> str:
        if event.event_type.startswith("PAYMENT."):
            return self._payments_topic
        if event.event_type.startswith("EMAIL."):
            return self._emails_topic
        return self._shipments_topic

    async def __call__(self) -> int:
        async with self._unit_of_work() as uow:
            events = await uow.outbox.get_pending_events(limit=self._batch_size)

            if not events:
                return 0

        sent = 0
        async with self._kafka_producer as kp:
            for event in events:
                async with self._unit_of_work() as uow:
                    try:
                        await kp.send_message(
                            message={
                                "event_type": event.event_type,
                                "payload": event.payload,
                                "created_at": event.created_at.isoformat(),
                            },
                            key=event.id,
                            topic=self.topic_for(event),
                        )
                    except Exception:
                        # Left pending, picked up again on the next pass
                        logger.error(f"Failed to send event {event.id}", exc_info=True)
                        continue

                    await uow.outbox.mark_as_sent(event.id)
                    await uow.commit()
                    sent += 1

        return sent
