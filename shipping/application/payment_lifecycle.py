import logging
from datetime import datetime, timezone
from decimal import Decimal

from pydantic import BaseModel

from shipping.application.dispatch import broadcast, create_notification, send_email
from shipping.core.errors import (
    ForbiddenError,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
)
from shipping.core.models import (
    BankDetails,
    DateRange,
    EventTypeEnum,
    NotificationPriorityEnum,
    NotificationTypeEnum,
    Pagination,
    PaymentMethodEnum,
    PaymentStats,
    PaymentStatsSummary,
    PaymentStatusEnum,
    PaymentStatusView,
    Requester,
    Shipment,
    ShipmentPage,
    utcnow,
)
from shipping.core.payments import (
    initialize_bank_transfer,
    payment_status_view,
    refund_payment,
    verify_bank_transfer,
)
from shipping.infrastructure.repositories import DoesNotExist, ShipmentRepository
from shipping.infrastructure.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class BankTransferDTO(BaseModel):
    shipment_id: str
    account_name: str
    bank_name: str


class VerificationDTO(BaseModel):
    verified: bool
    notes: str | None = None
    rejection_reason: str | None = None


class RefundDTO(BaseModel):
    reason: str
    amount: Decimal | None = None


async def _load(uow, shipment_id: str) -> Shipment:
    try:
        return await uow.shipments.get_by_id(shipment_id)
    except DoesNotExist:
        raise NotFoundError("Shipment not found") from None


def _check_access(shipment: Shipment, requester: Requester) -> None:
    if requester.is_admin or shipment.user_id is None:
        return
    if not shipment.is_owned_by(requester.user_id):
        raise ForbiddenError("Not authorized to access this shipment")


class PaymentLifecycle:
    """Bank transfer payments: initiation, admin verification and refunds.

    Every transition is one load-mutate-save of the shipment document in a
    single unit of work, together with the owner's notification and the
    outbox events for email and push delivery. Guest shipments get no
    side effects.
    """

    def __init__(self, unit_of_work: UnitOfWork):
        self._unit_of_work = unit_of_work

    async def initialize(self, payment: BankTransferDTO, requester: Requester) -> Shipment:
        async with self._unit_of_work() as uow:
            shipment = await _load(uow, payment.shipment_id)
            _check_access(shipment, requester)

            if shipment.is_draft:
                raise InvalidStateError("Draft shipments cannot be paid")

            initialize_bank_transfer(
                shipment,
                BankDetails(account_name=payment.account_name, bank_name=payment.bank_name),
            )
            shipment = await uow.shipments.save(shipment)

            if shipment.user_id:
                await create_notification(
                    uow,
                    user_id=shipment.user_id,
                    notification_type=NotificationTypeEnum.PAYMENT_VERIFICATION,
                    data={
                        "shipmentId": shipment.id,
                        "trackingNumber": shipment.tracking_number,
                        "amount": str(shipment.cost.total),
                    },
                    priority=NotificationPriorityEnum.HIGH,
                )
                await send_email(uow, EventTypeEnum.EMAIL_PAYMENT_CONFIRMATION, shipment)
                await broadcast(
                    uow,
                    EventTypeEnum.PAYMENT_UPDATED,
                    shipment.user_id,
                    {
                        "shipmentId": shipment.id,
                        "status": shipment.payment.status,
                        "timestamp": shipment.payment.created_at,
                    },
                )

            await uow.commit()

        logger.info(f"Bank transfer initialized for shipment {shipment.id}")
        return shipment

    async def verify(
        self, shipment_id: str, verification: VerificationDTO, admin_id: str
    ) -> Shipment:
        async with self._unit_of_work() as uow:
            shipment = await _load(uow, shipment_id)
            verify_bank_transfer(
                shipment,
                verified=verification.verified,
                admin_id=admin_id,
                notes=verification.notes,
                rejection_reason=verification.rejection_reason,
            )
            shipment = await uow.shipments.save(shipment)

            if shipment.user_id:
                await create_notification(
                    uow,
                    user_id=shipment.user_id,
                    notification_type=(
                        NotificationTypeEnum.PAYMENT_CONFIRMED
                        if verification.verified
                        else NotificationTypeEnum.PAYMENT_REJECTED
                    ),
                    data={
                        "shipmentId": shipment.id,
                        "trackingNumber": shipment.tracking_number,
                        "amount": str(shipment.cost.total),
                        "rejectionReason": verification.rejection_reason,
                    },
                )
                if verification.verified:
                    await send_email(uow, EventTypeEnum.EMAIL_PAYMENT_CONFIRMATION, shipment)
                else:
                    await send_email(
                        uow,
                        EventTypeEnum.EMAIL_PAYMENT_REJECTION,
                        shipment,
                        reason=verification.rejection_reason,
                    )
                await broadcast(
                    uow,
                    EventTypeEnum.PAYMENT_UPDATED,
                    shipment.user_id,
                    {
                        "shipmentId": shipment.id,
                        "status": shipment.payment.status,
                        "verifiedAt": shipment.payment.verified_at,
                        "rejectionReason": shipment.payment.rejection_reason,
                    },
                )

            await uow.commit()

        logger.info(
            f"Payment for shipment {shipment.id} set to {shipment.payment.status} by {admin_id}"
        )
        return shipment

    async def refund(self, shipment_id: str, refund: RefundDTO, admin_id: str) -> Shipment:
        async with self._unit_of_work() as uow:
            shipment = await _load(uow, shipment_id)
            refund_payment(shipment, reason=refund.reason, admin_id=admin_id, amount=refund.amount)
            shipment = await uow.shipments.save(shipment)

            if shipment.user_id:
                await create_notification(
                    uow,
                    user_id=shipment.user_id,
                    notification_type=NotificationTypeEnum.PAYMENT_REFUNDED,
                    data={
                        "shipmentId": shipment.id,
                        "trackingNumber": shipment.tracking_number,
                        "amount": str(shipment.payment.refund_amount),
                        "reason": shipment.payment.refund_reason,
                    },
                )
                await send_email(
                    uow,
                    EventTypeEnum.EMAIL_REFUND_CONFIRMATION,
                    shipment,
                    amount=shipment.payment.refund_amount,
                    reason=shipment.payment.refund_reason,
                )
                await broadcast(
                    uow,
                    EventTypeEnum.PAYMENT_UPDATED,
                    shipment.user_id,
                    {
                        "shipmentId": shipment.id,
                        "status": PaymentStatusEnum.REFUNDED,
                        "refundedAt": shipment.payment.refunded_at,
                        "refundAmount": shipment.payment.refund_amount,
                        "reason": shipment.payment.refund_reason,
                    },
                )

            await uow.commit()

        logger.info(f"Refunded {shipment.payment.refund_amount} on shipment {shipment.id}")
        return shipment

    async def get_status(self, shipment_id: str, requester: Requester) -> PaymentStatusView:
        async with self._unit_of_work() as uow:
            shipment = await _load(uow, shipment_id)
        _check_access(shipment, requester)
        return payment_status_view(shipment)

    async def pending_bank_transfers(self, page: int = 1, limit: int = 20) -> ShipmentPage:
        filters = ShipmentRepository.Filter(
            payment_method=PaymentMethodEnum.BANK_TRANSFER,
            payment_status=PaymentStatusEnum.AWAITING_VERIFICATION,
        )
        async with self._unit_of_work() as uow:
            items = await uow.shipments.find(
                filters,
                skip=(page - 1) * limit,
                limit=limit,
                newest_payment_first=True,
            )
            total = await uow.shipments.count(filters)

        return ShipmentPage(items=items, pagination=Pagination.build(page, limit, total))

    async def payment_history(
        self,
        user_id: str,
        status: PaymentStatusEnum | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> ShipmentPage:
        filters = ShipmentRepository.Filter(user_id=user_id, payment_status=status)
        async with self._unit_of_work() as uow:
            items = await uow.shipments.find(filters, skip=(page - 1) * limit, limit=limit)
            total = await uow.shipments.count(filters)

        return ShipmentPage(items=items, pagination=Pagination.build(page, limit, total))

    async def payment_stats(
        self, start_date: datetime | None = None, end_date: datetime | None = None
    ) -> PaymentStats:
        """Per-status payment counts and amounts for shipments created in the range."""
        start_date = _as_utc(start_date or EPOCH)
        end_date = _as_utc(end_date or utcnow())
        if start_date > end_date:
            raise InvalidInputError("Start date must be before end date")

        async with self._unit_of_work() as uow:
            stats = await uow.shipments.payment_stats(start_date, end_date)

        return PaymentStats(
            stats=stats,
            summary=PaymentStatsSummary(
                total_payments=sum(s.count for s in stats),
                total_amount=sum((s.total_amount for s in stats), Decimal("0.00")),
            ),
            date_range=DateRange(start_date=start_date, end_date=end_date),
        )
