"""Owner-facing side effects written into the current unit of work.

Notifications are stored directly; emails and push updates go through the
outbox and reach the mailer and the socket gateway via Kafka.
"""

from typing import Any

from pydantic_core import to_jsonable_python

from shipping.core.models import (
    EventTypeEnum,
    Notification,
    NotificationPriorityEnum,
    NotificationTypeEnum,
    Shipment,
)
from shipping.core.notifications import render_notification
from shipping.infrastructure.repositories import (
    NotificationRepository,
    OutboxRepository,
)


async def create_notification(
    uow,
    user_id: str,
    notification_type: NotificationTypeEnum,
    data: dict[str, Any] | None = None,
    priority: NotificationPriorityEnum = NotificationPriorityEnum.MEDIUM,
    title: str | None = None,
    message: str | None = None,
) -> Notification:
    title, message = render_notification(notification_type, title, message)
    notification = await uow.notifications.create(
        NotificationRepository.CreateDTO(
            user_id=user_id,
            type=notification_type,
            title=title,
            message=message,
            data=data or {},
            priority=priority,
        )
    )
    await uow.outbox.create(
        OutboxRepository.CreateDTO(
            event_type=EventTypeEnum.NOTIFICATION_CREATED,
            payload=notification.model_dump(mode="json"),
        )
    )
    return notification


async def send_email(
    uow,
    event_type: EventTypeEnum,
    shipment: Shipment,
    recipient_email: str | None = None,
    **details: Any,
) -> None:
    await uow.outbox.create(
        OutboxRepository.CreateDTO(
            event_type=event_type,
            payload={
                "userId": shipment.user_id,
                "email": recipient_email,
                "shipment": shipment.model_dump(mode="json"),
                "details": to_jsonable_python(details),
            },
        )
    )


async def broadcast(
    uow, event_type: EventTypeEnum, user_id: str, payload: dict[str, Any]
) -> None:
    await uow.outbox.create(
        OutboxRepository.CreateDTO(
            event_type=event_type,
            payload=to_jsonable_python({"userId": user_id, **payload}),
        )
    )
