import logging
from datetime import datetime, timedelta

from shipping.core.errors import ForbiddenError, NotFoundError
from shipping.core.models import NOTIFICATION_TTL, NotificationPage, Pagination, utcnow
from shipping.infrastructure.repositories import DoesNotExist
from shipping.infrastructure.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


class NotificationsUseCase:
    def __init__(self, unit_of_work: UnitOfWork):
        self._unit_of_work = unit_of_work

    async def list_for_user(
        self, user_id: str, page: int = 1, limit: int = 20, unread_only: bool = False
    ) -> NotificationPage:
        async with self._unit_of_work() as uow:
            items = await uow.notifications.list_for_user(
                user_id, unread_only=unread_only, skip=(page - 1) * limit, limit=limit
            )
            total = await uow.notifications.count_for_user(user_id, unread_only=unread_only)

        return NotificationPage(items=items, pagination=Pagination.build(page, limit, total))

    async def mark_as_read(self, notification_id: str, user_id: str) -> None:
        async with self._unit_of_work() as uow:
            try:
                notification = await uow.notifications.get_by_id(notification_id)
            except DoesNotExist:
                raise NotFoundError("Notification not found") from None

            # Someone else's notification is reported as missing
            if notification.user_id != user_id:
                raise NotFoundError("Notification not found")

            await uow.notifications.mark_as_read(notification_id)
            await uow.commit()

    async def mark_all_as_read(self, user_id: str) -> int:
        async with self._unit_of_work() as uow:
            updated = await uow.notifications.mark_all_as_read(user_id)
            await uow.commit()

        logger.info(f"Marked {updated} notifications as read for user {user_id}")
        return updated

    async def unread_count(self, user_id: str) -> int:
        async with self._unit_of_work() as uow:
            return await uow.notifications.count_for_user(user_id, unread_only=True)

    async def delete(self, notification_id: str, user_id: str) -> None:
        async with self._unit_of_work() as uow:
            try:
                notification = await uow.notifications.get_by_id(notification_id)
            except DoesNotExist:
                raise NotFoundError("Notification not found") from None

            if notification.user_id != user_id:
                raise ForbiddenError("Not authorized to delete this notification")

            await uow.notifications.delete(notification_id)
            await uow.commit()

    async def delete_all(self, user_id: str) -> int:
        async with self._unit_of_work() as uow:
            deleted = await uow.notifications.delete_all_for_user(user_id)
            await uow.commit()

        logger.info(f"Deleted {deleted} notifications for user {user_id}")
        return deleted

    async def delete_old(
        self, user_id: str, now: datetime | None = None, age: timedelta = NOTIFICATION_TTL
    ) -> int:
        """Drop read notifications older than ``age``; unread ones are kept."""
        cutoff = (now or utcnow()) - age
        async with self._unit_of_work() as uow:
            deleted = await uow.notifications.delete_read_before(user_id, cutoff)
            await uow.commit()

        logger.info(f"Deleted {deleted} old notifications for user {user_id}")
        return deleted
