import logging
from enum import StrEnum

from pydantic import BaseModel

from shipping.application.dispatch import broadcast, create_notification, send_email
from shipping.core.calculator import ShippingCostCalculator
from shipping.core.delivery import estimate_delivery_date
from shipping.core.errors import (
    ForbiddenError,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
)
from shipping.core.models import (
    Contact,
    Cost,
    DeliveryOptions,
    EventTypeEnum,
    Insurance,
    NotificationTypeEnum,
    Package,
    Pagination,
    PaymentStatusEnum,
    Pickup,
    Requester,
    Shipment,
    ShipmentPage,
    ShipmentStats,
    ShipmentStatusEnum,
    ShipmentTypeEnum,
    TrackingView,
    utcnow,
)
from shipping.core.notifications import SHIPMENT_STATUS_MESSAGES
from shipping.core.timeline import describe_status
from shipping.core.tracking import is_valid_tracking_number, parse_tracking_number
from shipping.core.validation import (
    validate_addresses,
    validate_packages,
    validate_pickup_date,
)
from shipping.infrastructure.repositories import DoesNotExist, ShipmentRepository
from shipping.infrastructure.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


class CostRequestDTO(BaseModel):
    type: ShipmentTypeEnum
    packages: list[Package]
    insurance: Insurance = Insurance()


class SectionEnum(StrEnum):
    PACKAGES = "packages"
    SENDER = "sender"
    RECIPIENT = "recipient"
    PICKUP = "pickup"
    DELIVERY = "delivery"
    INSURANCE = "insurance"


class SectionDTO(BaseModel):
    packages: list[Package] | None = None
    sender: Contact | None = None
    recipient: Contact | None = None
    pickup: Pickup | None = None
    delivery: DeliveryOptions | None = None
    insurance: Insurance | None = None


class StatusUpdateDTO(BaseModel):
    status: ShipmentStatusEnum
    location: str | None = None
    description: str | None = None


class ManageShipmentsUseCase:
    """Reads and edits of submitted shipments."""

    def __init__(self, unit_of_work: UnitOfWork, calculator: ShippingCostCalculator):
        self._unit_of_work = unit_of_work
        self._calculator = calculator

    def calculate_cost(self, request: CostRequestDTO) -> Cost:
        validate_packages(request.packages)
        return self._calculator.shipping_cost(
            request.type, request.packages, request.insurance.type
        )

    @staticmethod
    async def _load_submitted(uow, shipment_id: str) -> Shipment:
        try:
            shipment = await uow.shipments.get_by_id(shipment_id)
        except DoesNotExist:
            raise NotFoundError("Shipment not found") from None
        if shipment.is_draft:
            raise NotFoundError("Shipment not found")
        return shipment

    async def get_shipment(self, shipment_id: str, requester: Requester) -> Shipment:
        async with self._unit_of_work() as uow:
            shipment = await self._load_submitted(uow, shipment_id)

        if (
            shipment.user_id
            and not shipment.is_owned_by(requester.user_id)
            and not requester.is_admin
        ):
            raise ForbiddenError("Not authorized to access this shipment")
        return shipment

    async def track(self, tracking_number: str) -> TrackingView:
        tracking_number = tracking_number.strip().upper()
        if not is_valid_tracking_number(tracking_number):
            raise InvalidInputError("Invalid tracking number format")

        async with self._unit_of_work() as uow:
            try:
                shipment = await uow.shipments.get_by_tracking_number(tracking_number)
            except DoesNotExist:
                raise NotFoundError("Invalid tracking number") from None

        info = parse_tracking_number(shipment.tracking_number)
        return TrackingView(
            tracking_number=shipment.tracking_number,
            formatted_tracking_number=info.formatted,
            issued_on=info.date,
            status=shipment.status,
            type=shipment.type,
            timeline=shipment.timeline,
            sender_address=shipment.sender.address,
            recipient_address=shipment.recipient.address,
            delivery=shipment.delivery,
            packages=shipment.packages,
            latest_update=shipment.latest_timeline_entry(),
            is_overdue=shipment.is_overdue(),
        )

    async def list_shipments(
        self,
        user_id: str,
        status: ShipmentStatusEnum | None = None,
        shipment_type: ShipmentTypeEnum | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> ShipmentPage:
        filters = ShipmentRepository.Filter(
            user_id=user_id, status=status, type=shipment_type, is_draft=False
        )
        async with self._unit_of_work() as uow:
            items = await uow.shipments.find(filters, skip=(page - 1) * limit, limit=limit)
            total = await uow.shipments.count(filters)

        return ShipmentPage(items=items, pagination=Pagination.build(page, limit, total))

    async def shipment_stats(self, user_id: str) -> ShipmentStats:
        async with self._unit_of_work() as uow:
            overview = await uow.shipments.stats_for_user(user_id)
            monthly = await uow.shipments.monthly_stats_for_user(user_id)

        return ShipmentStats(overview=overview, monthly=monthly)

    @staticmethod
    def _check_can_edit(shipment: Shipment, requester: Requester) -> None:
        if shipment.is_draft:
            # Guest drafts are open to anyone holding the id
            if shipment.user_id and not shipment.is_owned_by(requester.user_id):
                raise ForbiddenError("Not authorized to modify this shipment")
            return

        if not shipment.is_owned_by(requester.user_id) and not requester.is_admin:
            raise ForbiddenError("Not authorized to modify this shipment")
        if shipment.is_closed():
            raise InvalidStateError(f"Cannot modify a {shipment.status} shipment")

    def _revalidate(self, shipment: Shipment, section: SectionEnum) -> None:
        """Re-check a submitted shipment after one of its sections changed."""
        validate_addresses(shipment.type, shipment.sender, shipment.recipient)
        if section == SectionEnum.PICKUP:
            validate_pickup_date(shipment.pickup.date)

        if section in (SectionEnum.PACKAGES, SectionEnum.INSURANCE):
            shipment.cost = self._calculator.shipping_cost(
                shipment.type, shipment.packages, shipment.insurance.type
            )
        if section in (SectionEnum.PACKAGES, SectionEnum.PICKUP):
            shipment.delivery.estimated_date = estimate_delivery_date(
                shipment.type, shipment.packages, shipment.pickup.date
            )

    async def update_section(
        self,
        shipment_id: str,
        section: SectionEnum,
        update: SectionDTO,
        requester: Requester,
    ) -> Shipment:
        value = getattr(update, section.value)
        if value is None:
            raise InvalidInputError(f"{section.capitalize()} data is required")
        if section == SectionEnum.PACKAGES:
            validate_packages(value)

        async with self._unit_of_work() as uow:
            try:
                shipment = await uow.shipments.get_by_id(shipment_id)
            except DoesNotExist:
                raise NotFoundError("Shipment not found") from None

            self._check_can_edit(shipment, requester)
            if (
                section in (SectionEnum.PACKAGES, SectionEnum.INSURANCE)
                and shipment.payment.status != PaymentStatusEnum.PENDING
            ):
                raise InvalidStateError(
                    f"{section.capitalize()} cannot be changed once payment has started"
                )

            if section == SectionEnum.DELIVERY:
                shipment.delivery.options = shipment.delivery.options.model_copy(
                    update=value.model_dump(exclude_unset=True)
                )
            else:
                setattr(shipment, section.value, value)

            if not shipment.is_draft:
                self._revalidate(shipment, section)

            shipment = await uow.shipments.save(shipment)
            await uow.commit()

        logger.info(f"Updated {section} of shipment {shipment.id}")
        return shipment

    async def update_status(self, shipment_id: str, update: StatusUpdateDTO) -> Shipment:
        async with self._unit_of_work() as uow:
            shipment = await self._load_submitted(uow, shipment_id)

            if shipment.is_closed():
                raise InvalidStateError(f"Shipment is already {shipment.status}")
            if (
                update.status == ShipmentStatusEnum.CANCELLED
                and not shipment.can_be_cancelled()
            ):
                raise InvalidStateError("Shipment can no longer be cancelled")

            if update.status == ShipmentStatusEnum.DELIVERED:
                shipment.delivery.actual_date = utcnow()
            entry = shipment.add_timeline_entry(
                update.status,
                description=update.description or describe_status(update.status),
                location=update.location,
            )
            shipment = await uow.shipments.save(shipment)

            if shipment.user_id:
                await create_notification(
                    uow,
                    user_id=shipment.user_id,
                    notification_type=NotificationTypeEnum.SHIPMENT_STATUS,
                    message=SHIPMENT_STATUS_MESSAGES.get(update.status),
                    data={
                        "shipmentId": shipment.id,
                        "trackingNumber": shipment.tracking_number,
                        "status": update.status,
                    },
                )
                await send_email(uow, EventTypeEnum.EMAIL_STATUS_UPDATE, shipment)
                await broadcast(
                    uow,
                    EventTypeEnum.SHIPMENT_UPDATED,
                    shipment.user_id,
                    {
                        "shipmentId": shipment.id,
                        "trackingNumber": shipment.tracking_number,
                        "status": shipment.status,
                        "timeline": entry,
                    },
                )

            await uow.commit()

        logger.info(f"Shipment {shipment.id} moved to {shipment.status}")
        return shipment
