import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel
from sqlalchemy import (
    Integer,
    Row,
    and_,
    case,
    cast,
    delete,
    extract,
    func,
    insert,
    select,
    true,
    update,
)
from sqlalchemy.ext.asyncio import AsyncSession

from shipping.core.errors import ConcurrentModificationError
from shipping.core.models import (
    ACTIVE_STATUSES,
    NOTIFICATION_TTL,
    Contact,
    Cost,
    Delivery,
    EventTypeEnum,
    Insurance,
    MonthlyShipmentStats,
    Notification,
    NotificationPriorityEnum,
    NotificationTypeEnum,
    OutboxEvent,
    OutboxEventStatus,
    Package,
    Payment,
    PaymentMethodEnum,
    PaymentStatusEnum,
    PaymentStatusStats,
    Pickup,
    Shipment,
    ShipmentStatsOverview,
    ShipmentStatusEnum,
    ShipmentTypeEnum,
    TimelineEntry,
    utcnow,
)
from shipping.infrastructure.db_schema import (
    notifications_tbl,
    outbox_tbl,
    shipments_tbl,
)


class DoesNotExist(Exception):
    pass


def _as_uuid(value: str) -> uuid.UUID:
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise DoesNotExist from None


class ShipmentRepository:
    class CreateDTO(BaseModel):
        user_id: str | None = None
        tracking_number: str | None = None
        type: ShipmentTypeEnum
        status: ShipmentStatusEnum = ShipmentStatusEnum.PENDING
        sender: Contact = Contact()
        recipient: Contact = Contact()
        packages: list[Package] = []
        pickup: Pickup = Pickup()
        delivery: Delivery = Delivery()
        insurance: Insurance = Insurance()
        cost: Cost | None = None
        payment: Payment = Payment()
        timeline: list[TimelineEntry] = []
        is_draft: bool = False
        last_saved_step: int | None = None

    class Filter(BaseModel):
        user_id: str | None = None
        status: ShipmentStatusEnum | None = None
        type: ShipmentTypeEnum | None = None
        is_draft: bool | None = None
        payment_status: PaymentStatusEnum | None = None
        payment_method: PaymentMethodEnum | None = None
        created_before: datetime | None = None

    def __init__(self, session: AsyncSession):
        self._session = session

    @staticmethod
    def _construct(row: Row | None) -> Shipment:
        if row is None:
            raise DoesNotExist

        m = row._mapping
        return Shipment(
            id=str(m["id"]),
            user_id=m["user_id"],
            tracking_number=m["tracking_number"],
            type=m["type"],
            status=m["status"],
            sender=m["sender"],
            recipient=m["recipient"],
            packages=m["packages"],
            pickup=m["pickup"],
            delivery=m["delivery"],
            insurance=m["insurance"],
            cost=m["cost"],
            payment=m["payment"],
            timeline=m["timeline"],
            is_draft=m["is_draft"],
            last_saved_step=m["last_saved_step"],
            version=m["version"],
            created_at=m["created_at"],
            updated_at=m["updated_at"],
        )

    @staticmethod
    def _document(data: BaseModel) -> dict:
        """Column values shared by inserts and whole-document saves."""
        payment: Payment = data.payment
        return {
            "user_id": data.user_id,
            "tracking_number": data.tracking_number,
            "type": data.type,
            "status": data.status,
            "is_draft": data.is_draft,
            "last_saved_step": data.last_saved_step,
            "sender": data.sender.model_dump(mode="json"),
            "recipient": data.recipient.model_dump(mode="json"),
            "packages": [p.model_dump(mode="json") for p in data.packages],
            "pickup": data.pickup.model_dump(mode="json"),
            "delivery": data.delivery.model_dump(mode="json"),
            "insurance": data.insurance.model_dump(mode="json"),
            "cost": data.cost.model_dump(mode="json") if data.cost else None,
            "payment": payment.model_dump(mode="json"),
            "timeline": [e.model_dump(mode="json") for e in data.timeline],
            "payment_status": payment.effective_status,
            "payment_method": payment.method,
            "payment_created_at": payment.created_at,
            "cost_total": data.cost.total if data.cost else None,
        }

    async def create(self, shipment: CreateDTO) -> Shipment:
        shipment_id = uuid.uuid4()
        now = utcnow()
        stmt = insert(shipments_tbl).values(
            {
                "id": shipment_id,
                **self._document(shipment),
                "version": 1,
                "created_at": now,
                "updated_at": now,
            }
        )
        await self._session.execute(stmt)

        return await self.get_by_id(str(shipment_id))

    async def get_by_id(self, shipment_id: str) -> Shipment:
        stmt = select(shipments_tbl).where(shipments_tbl.c.id == _as_uuid(shipment_id))
        result = await self._session.execute(stmt)

        return self._construct(result.fetchone())

    async def get_by_tracking_number(self, tracking_number: str) -> Shipment:
        stmt = select(shipments_tbl).where(
            and_(
                shipments_tbl.c.tracking_number == tracking_number,
                shipments_tbl.c.is_draft.is_(False),
            )
        )
        result = await self._session.execute(stmt)

        return self._construct(result.fetchone())

    async def tracking_number_exists(self, tracking_number: str) -> bool:
        stmt = select(shipments_tbl.c.id).where(
            shipments_tbl.c.tracking_number == tracking_number
        )
        result = await self._session.execute(stmt)
        return result.fetchone() is not None

    async def save(self, shipment: Shipment) -> Shipment:
        """Write the whole document back if nobody saved it since it was loaded."""
        now = utcnow()
        stmt = (
            update(shipments_tbl)
            .where(
                and_(
                    shipments_tbl.c.id == _as_uuid(shipment.id),
                    shipments_tbl.c.version == shipment.version,
                )
            )
            .values(
                {
                    **self._document(shipment),
                    "version": shipment.version + 1,
                    "updated_at": now,
                }
            )
        )
        result = await self._session.execute(stmt)

        if result.rowcount == 0:
            # Raises DoesNotExist when the row is gone altogether
            await self.get_by_id(shipment.id)
            raise ConcurrentModificationError(
                f"Shipment {shipment.id} was modified by another request"
            )

        shipment.version += 1
        shipment.updated_at = now
        return shipment

    async def delete(self, shipment_id: str) -> None:
        stmt = delete(shipments_tbl).where(shipments_tbl.c.id == _as_uuid(shipment_id))
        await self._session.execute(stmt)

    @staticmethod
    def _where(filters: Filter):
        conditions = []
        if filters.user_id is not None:
            conditions.append(shipments_tbl.c.user_id == filters.user_id)
        if filters.status is not None:
            conditions.append(shipments_tbl.c.status == filters.status)
        if filters.type is not None:
            conditions.append(shipments_tbl.c.type == filters.type)
        if filters.is_draft is not None:
            conditions.append(shipments_tbl.c.is_draft.is_(filters.is_draft))
        if filters.payment_status is not None:
            conditions.append(shipments_tbl.c.payment_status == filters.payment_status)
        if filters.payment_method is not None:
            conditions.append(shipments_tbl.c.payment_method == filters.payment_method)
        if filters.created_before is not None:
            conditions.append(shipments_tbl.c.created_at < filters.created_before)
        return and_(true(), *conditions)

    async def find(
        self,
        filters: Filter,
        skip: int = 0,
        limit: int | None = None,
        newest_payment_first: bool = False,
    ) -> list[Shipment]:
        order_column = (
            shipments_tbl.c.payment_created_at
            if newest_payment_first
            else shipments_tbl.c.created_at
        )
        stmt = (
            select(shipments_tbl)
            .where(self._where(filters))
            .order_by(order_column.desc())
            .offset(skip)
        )
        if limit is not None:
            stmt = stmt.limit(limit)

        result = await self._session.execute(stmt)
        return [self._construct(row) for row in result.fetchall()]

    async def count(self, filters: Filter) -> int:
        stmt = select(func.count()).select_from(shipments_tbl).where(self._where(filters))
        result = await self._session.execute(stmt)
        return result.scalar_one()

    async def stats_for_user(self, user_id: str) -> ShipmentStatsOverview:
        stmt = select(
            func.count().label("total_shipments"),
            func.sum(
                case((shipments_tbl.c.status.in_(list(ACTIVE_STATUSES)), 1), else_=0)
            ).label("active_shipments"),
            func.sum(
                case((shipments_tbl.c.status == ShipmentStatusEnum.DELIVERED, 1), else_=0)
            ).label("completed_shipments"),
            func.sum(shipments_tbl.c.cost_total).label("total_spent"),
        ).where(
            and_(
                shipments_tbl.c.user_id == user_id,
                shipments_tbl.c.is_draft.is_(False),
            )
        )
        result = await self._session.execute(stmt)
        row = result.one()

        return ShipmentStatsOverview(
            total_shipments=row._mapping["total_shipments"],
            active_shipments=row._mapping["active_shipments"] or 0,
            completed_shipments=row._mapping["completed_shipments"] or 0,
            total_spent=row._mapping["total_spent"] or Decimal("0.00"),
        )

    async def monthly_stats_for_user(
        self, user_id: str, months: int = 12
    ) -> list[MonthlyShipmentStats]:
        """Shipment count and spend per calendar month, newest month first."""
        year = cast(extract("year", shipments_tbl.c.created_at), Integer)
        month = cast(extract("month", shipments_tbl.c.created_at), Integer)
        stmt = (
            select(
                year.label("year"),
                month.label("month"),
                func.count().label("count"),
                func.sum(shipments_tbl.c.cost_total).label("total"),
            )
            .where(
                and_(
                    shipments_tbl.c.user_id == user_id,
                    shipments_tbl.c.is_draft.is_(False),
                )
            )
            .group_by(year, month)
            .order_by(year.desc(), month.desc())
            .limit(months)
        )
        result = await self._session.execute(stmt)

        return [
            MonthlyShipmentStats(
                year=row._mapping["year"],
                month=row._mapping["month"],
                count=row._mapping["count"],
                total=row._mapping["total"] or Decimal("0.00"),
            )
            for row in result.fetchall()
        ]

    async def payment_stats(
        self, start_date: datetime, end_date: datetime
    ) -> list[PaymentStatusStats]:
        stmt = (
            select(
                shipments_tbl.c.payment_status,
                func.count().label("count"),
                func.sum(shipments_tbl.c.cost_total).label("total_amount"),
            )
            .where(
                and_(
                    shipments_tbl.c.is_draft.is_(False),
                    shipments_tbl.c.created_at >= start_date,
                    shipments_tbl.c.created_at <= end_date,
                )
            )
            .group_by(shipments_tbl.c.payment_status)
            .order_by(shipments_tbl.c.payment_status)
        )
        result = await self._session.execute(stmt)

        return [
            PaymentStatusStats(
                status=row._mapping["payment_status"],
                count=row._mapping["count"],
                total_amount=row._mapping["total_amount"] or Decimal("0.00"),
            )
            for row in result.fetchall()
        ]


class NotificationRepository:
    class CreateDTO(BaseModel):
        user_id: str
        type: NotificationTypeEnum
        title: str
        message: str
        data: dict = {}
        priority: NotificationPriorityEnum = NotificationPriorityEnum.MEDIUM
        expires_at: datetime | None = None

    def __init__(self, session: AsyncSession):
        self._session = session

    @staticmethod
    def _construct(row: Row | None) -> Notification:
        if row is None:
            raise DoesNotExist

        return Notification(
            id=str(row._mapping["id"]),
            user_id=row._mapping["user_id"],
            type=row._mapping["type"],
            title=row._mapping["title"],
            message=row._mapping["message"],
            data=row._mapping["data"],
            read=row._mapping["read"],
            read_at=row._mapping["read_at"],
            priority=row._mapping["priority"],
            expires_at=row._mapping["expires_at"],
            created_at=row._mapping["created_at"],
        )

    async def create(self, notification: CreateDTO) -> Notification:
        notification_id = uuid.uuid4()
        now = utcnow()
        stmt = insert(notifications_tbl).values(
            {
                "id": notification_id,
                "user_id": notification.user_id,
                "type": notification.type,
                "title": notification.title,
                "message": notification.message,
                "data": notification.data,
                "read": False,
                "priority": notification.priority,
                "expires_at": notification.expires_at or now + NOTIFICATION_TTL,
                "created_at": now,
            }
        )
        await self._session.execute(stmt)

        return await self.get_by_id(str(notification_id))

    async def get_by_id(self, notification_id: str) -> Notification:
        stmt = select(notifications_tbl).where(
            notifications_tbl.c.id == _as_uuid(notification_id)
        )
        result = await self._session.execute(stmt)

        return self._construct(result.fetchone())

    @staticmethod
    def _where(user_id: str, unread_only: bool):
        conditions = [notifications_tbl.c.user_id == user_id]
        if unread_only:
            conditions.append(notifications_tbl.c.read.is_(False))
        return and_(*conditions)

    async def list_for_user(
        self, user_id: str, unread_only: bool = False, skip: int = 0, limit: int = 20
    ) -> list[Notification]:
        stmt = (
            select(notifications_tbl)
            .where(self._where(user_id, unread_only))
            .order_by(notifications_tbl.c.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return [self._construct(row) for row in result.fetchall()]

    async def count_for_user(self, user_id: str, unread_only: bool = False) -> int:
        stmt = (
            select(func.count())
            .select_from(notifications_tbl)
            .where(self._where(user_id, unread_only))
        )
        result = await self._session.execute(stmt)
        return result.scalar_one()

    async def mark_as_read(self, notification_id: str) -> None:
        stmt = (
            update(notifications_tbl)
            .where(notifications_tbl.c.id == _as_uuid(notification_id))
            .values(read=True, read_at=utcnow())
        )
        await self._session.execute(stmt)

    async def mark_all_as_read(self, user_id: str) -> int:
        stmt = (
            update(notifications_tbl)
            .where(self._where(user_id, unread_only=True))
            .values(read=True, read_at=utcnow())
        )
        result = await self._session.execute(stmt)
        return result.rowcount

    async def delete(self, notification_id: str) -> None:
        stmt = delete(notifications_tbl).where(
            notifications_tbl.c.id == _as_uuid(notification_id)
        )
        await self._session.execute(stmt)

    async def delete_all_for_user(self, user_id: str) -> int:
        stmt = delete(notifications_tbl).where(notifications_tbl.c.user_id == user_id)
        result = await self._session.execute(stmt)
        return result.rowcount

    async def delete_read_before(self, user_id: str, cutoff: datetime) -> int:
        stmt = delete(notifications_tbl).where(
            and_(
                notifications_tbl.c.user_id == user_id,
                notifications_tbl.c.read.is_(True),
                notifications_tbl.c.created_at < cutoff,
            )
        )
        result = await self._session.execute(stmt)
        return result.rowcount


class OutboxRepository:
    class CreateDTO(BaseModel):
        event_type: EventTypeEnum
        payload: dict

    def __init__(self, session: AsyncSession):
        self._session = session

    @staticmethod
    def _construct(row: Row | None) -> OutboxEvent:
        if row is None:
            raise DoesNotExist

        return OutboxEvent(
            id=str(row._mapping["id"]),
            event_type=row._mapping["event_type"],
            payload=row._mapping["payload"],
            status=row._mapping["status"],
            created_at=row._mapping["created_at"],
        )

    async def create(self, event: CreateDTO) -> OutboxEvent:
        event_id = uuid.uuid4()
        stmt = insert(outbox_tbl).values(
            {
                "id": event_id,
                "event_type": event.event_type,
                "payload": event.payload,
                "status": OutboxEventStatus.PENDING,
                "created_at": utcnow(),
            }
        )
        await self._session.execute(stmt)

        return await self.get_by_id(str(event_id))

    async def get_pending_events(self, limit: int = 100) -> list[OutboxEvent]:
        stmt = (
            select(outbox_tbl)
            .where(outbox_tbl.c.status == OutboxEventStatus.PENDING)
            .order_by(outbox_tbl.c.created_at)
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        rows = result.fetchall()

        return [self._construct(row) for row in rows]

    async def get_by_id(self, event_id: str) -> OutboxEvent:
        stmt = select(outbox_tbl).where(outbox_tbl.c.id == _as_uuid(event_id))
        result = await self._session.execute(stmt)
        row = result.fetchone()

        return self._construct(row)

    async def mark_as_sent(self, event_id: str) -> None:
        stmt = (
            outbox_tbl.update()
            .where(outbox_tbl.c.id == _as_uuid(event_id))
            .values(status=OutboxEventStatus.SENT)
        )
        await self._session.execute(stmt)
