import logging
from datetime import datetime, timedelta

from pydantic import BaseModel, Field

from shipping.application.dispatch import create_notification
from shipping.core.errors import ForbiddenError, InvalidInputError, NotFoundError
from shipping.core.models import (
    Address,
    Contact,
    Delivery,
    DeliveryOptions,
    Insurance,
    NotificationPriorityEnum,
    NotificationTypeEnum,
    Package,
    Pickup,
    Requester,
    Shipment,
    ShipmentStatusEnum,
    ShipmentTypeEnum,
    utcnow,
)
from shipping.infrastructure.repositories import DoesNotExist, ShipmentRepository
from shipping.infrastructure.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)

DRAFT_RETENTION = timedelta(days=7)


class Location(BaseModel):
    country: str
    city: str | None = None


class InitializeDTO(BaseModel):
    type: ShipmentTypeEnum
    origin: Location
    destination: Location


class DraftDTO(BaseModel):
    """Whatever part of the shipment form the user has filled in so far."""

    id: str | None = None
    type: ShipmentTypeEnum | None = None
    sender: Contact | None = None
    recipient: Contact | None = None
    packages: list[Package] | None = None
    pickup: Pickup | None = None
    delivery: DeliveryOptions | None = None
    insurance: Insurance | None = None


class SaveDraftDTO(BaseModel):
    step: int = Field(ge=1, le=7)
    data: DraftDTO


def _check_draft_owner(draft: Shipment, requester: Requester, message: str) -> None:
    # Guest drafts are open to anyone holding the id
    if draft.user_id and not draft.is_owned_by(requester.user_id):
        raise ForbiddenError(message)


class DraftsUseCase:
    def __init__(self, unit_of_work: UnitOfWork):
        self._unit_of_work = unit_of_work

    async def initialize(self, shipment: InitializeDTO, requester: Requester) -> Shipment:
        async with self._unit_of_work() as uow:
            draft = await uow.shipments.create(
                ShipmentRepository.CreateDTO(
                    user_id=requester.user_id,
                    type=shipment.type,
                    status=ShipmentStatusEnum.PENDING,
                    sender=Contact(
                        address=Address(
                            country=shipment.origin.country, city=shipment.origin.city
                        )
                    ),
                    recipient=Contact(
                        address=Address(
                            country=shipment.destination.country,
                            city=shipment.destination.city,
                        )
                    ),
                    is_draft=True,
                    last_saved_step=1,
                )
            )
            await uow.commit()

        logger.info(f"Initialized draft {draft.id}")
        return draft

    async def save(self, draft: SaveDraftDTO, requester: Requester) -> Shipment:
        # explicit nulls mean "not filled in yet"
        fields = draft.data.model_dump(
            exclude_unset=True, exclude_none=True, exclude={"id"}
        )
        delivery_options = fields.pop("delivery", None)

        async with self._unit_of_work() as uow:
            existing = None
            if draft.data.id is not None:
                try:
                    existing = await uow.shipments.get_by_id(draft.data.id)
                except DoesNotExist:
                    existing = None

            if existing is None:
                if draft.data.type is None:
                    raise InvalidInputError("Shipment type is required")
                if delivery_options is not None:
                    fields["delivery"] = Delivery(options=delivery_options)
                saved = await uow.shipments.create(
                    ShipmentRepository.CreateDTO(
                        **fields,
                        user_id=requester.user_id,
                        is_draft=True,
                        last_saved_step=draft.step,
                    )
                )
            else:
                _check_draft_owner(
                    existing, requester, "Not authorized to modify this shipment"
                )
                if not existing.is_draft:
                    raise InvalidInputError("Shipment has already been submitted")

                document = existing.model_dump()
                document.update(fields)
                if delivery_options is not None:
                    document["delivery"]["options"] = delivery_options
                document["last_saved_step"] = draft.step
                if requester.user_id:
                    document["user_id"] = requester.user_id
                saved = await uow.shipments.save(Shipment.model_validate(document))

            await uow.commit()

        logger.info(f"Saved draft {saved.id} at step {draft.step}")
        return saved

    async def get(self, draft_id: str, requester: Requester) -> Shipment:
        async with self._unit_of_work() as uow:
            try:
                draft = await uow.shipments.get_by_id(draft_id)
            except DoesNotExist:
                raise NotFoundError("Draft not found") from None

        if not draft.is_draft:
            raise NotFoundError("Draft not found")
        _check_draft_owner(draft, requester, "Not authorized to access this draft")
        return draft

    async def cleanup(
        self, now: datetime | None = None, retention: timedelta = DRAFT_RETENTION
    ) -> int:
        """Delete stale drafts, letting each owner know first."""
        cutoff = (now or utcnow()) - retention
        filters = ShipmentRepository.Filter(is_draft=True, created_before=cutoff)

        async with self._unit_of_work() as uow:
            drafts = await uow.shipments.find(filters)
            for draft in drafts:
                if draft.user_id:
                    await create_notification(
                        uow,
                        user_id=draft.user_id,
                        notification_type=NotificationTypeEnum.SYSTEM_NOTIFICATION,
                        title="Draft Shipment Deleted",
                        message=(
                            "Your draft shipment has been deleted due to inactivity. "
                            "Please create a new shipment if needed."
                        ),
                        data={"shipmentId": draft.id},
                        priority=NotificationPriorityEnum.LOW,
                    )
                await uow.shipments.delete(draft.id)
            await uow.commit()

        logger.info(f"Deleted {len(drafts)} drafts created before {cutoff.isoformat()}")
        return len(drafts)
