import logging

from pydantic import BaseModel

from shipping.application.dispatch import send_email
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
    Delivery,
    DeliveryOptions,
    EventTypeEnum,
    Insurance,
    Package,
    Pickup,
    Requester,
    Shipment,
    ShipmentStatusEnum,
    ShipmentTypeEnum,
    TimelineEntry,
)
from shipping.core.timeline import describe_status
from shipping.core.tracking import generate_tracking_number
from shipping.core.validation import (
    validate_addresses,
    validate_packages,
    validate_pickup_date,
)
from shipping.infrastructure.repositories import DoesNotExist, ShipmentRepository
from shipping.infrastructure.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)

TRACKING_NUMBER_ATTEMPTS = 10


class ShipmentDTO(BaseModel):
    type: ShipmentTypeEnum
    sender: Contact
    recipient: Contact
    packages: list[Package]
    pickup: Pickup
    delivery: DeliveryOptions = DeliveryOptions()
    insurance: Insurance = Insurance()


async def assign_tracking_number(uow, shipment_type: ShipmentTypeEnum) -> str:
    for _ in range(TRACKING_NUMBER_ATTEMPTS):
        candidate = generate_tracking_number(shipment_type)
        if not await uow.shipments.tracking_number_exists(candidate):
            return candidate
    raise InvalidStateError("Could not allocate a tracking number, please retry")


class CreateShipmentUseCase:
    def __init__(self, unit_of_work: UnitOfWork, calculator: ShippingCostCalculator):
        self._unit_of_work = unit_of_work
        self._calculator = calculator

    def _prepare(self, shipment: ShipmentDTO) -> ShipmentRepository.CreateDTO:
        validate_addresses(shipment.type, shipment.sender, shipment.recipient)
        validate_packages(shipment.packages)
        validate_pickup_date(shipment.pickup.date)

        cost = self._calculator.shipping_cost(
            shipment.type, shipment.packages, shipment.insurance.type
        )
        estimated_date = estimate_delivery_date(
            shipment.type, shipment.packages, shipment.pickup.date
        )

        return ShipmentRepository.CreateDTO(
            type=shipment.type,
            sender=shipment.sender,
            recipient=shipment.recipient,
            packages=shipment.packages,
            pickup=shipment.pickup,
            delivery=Delivery(estimated_date=estimated_date, options=shipment.delivery),
            insurance=shipment.insurance,
            cost=cost,
            is_draft=False,
        )

    async def __call__(
        self,
        shipment: ShipmentDTO,
        requester: Requester,
        draft_id: str | None = None,
    ) -> Shipment:
        """Validate, price and persist a shipment, optionally finalizing a draft."""
        data = self._prepare(shipment)
        data.user_id = requester.user_id
        data.timeline = [
            TimelineEntry(
                status=ShipmentStatusEnum.PENDING,
                description=describe_status(ShipmentStatusEnum.PENDING),
            )
        ]

        async with self._unit_of_work() as uow:
            data.tracking_number = await assign_tracking_number(uow, data.type)

            if draft_id is None:
                created = await uow.shipments.create(data)
            else:
                created = await self._finalize_draft(uow, draft_id, data, requester)

            await send_email(
                uow,
                EventTypeEnum.EMAIL_SHIPMENT_CONFIRMATION,
                created,
                # Guests get the confirmation at the sender address
                recipient_email=None if created.user_id else created.sender.email,
            )
            await uow.commit()

        logger.info(f"Created shipment {created.id} ({created.tracking_number})")
        return created

    @staticmethod
    async def _finalize_draft(
        uow, draft_id: str, data: ShipmentRepository.CreateDTO, requester: Requester
    ) -> Shipment:
        try:
            draft = await uow.shipments.get_by_id(draft_id)
        except DoesNotExist:
            raise NotFoundError("Draft not found") from None

        if not draft.is_draft:
            raise InvalidInputError("Shipment has already been submitted")
        if draft.user_id and not draft.is_owned_by(requester.user_id):
            raise ForbiddenError("Not authorized to modify this shipment")

        finalized = draft.model_copy(
            update={
                **data.model_dump(exclude={"user_id", "payment"}),
                "user_id": draft.user_id or requester.user_id,
                "last_saved_step": None,
            }
        )
        # model_copy skips validation; re-validate the nested documents
        finalized = Shipment.model_validate(finalized.model_dump())
        return await uow.shipments.save(finalized)
