import logging
from datetime import datetime
from http import HTTPStatus

from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from shipping.application.container import ApplicationContainer
from shipping.application.create_shipment import CreateShipmentUseCase, ShipmentDTO
from shipping.application.drafts import DraftsUseCase, InitializeDTO, SaveDraftDTO
from shipping.application.manage_shipments import (
    CostRequestDTO,
    ManageShipmentsUseCase,
    SectionDTO,
    SectionEnum,
    StatusUpdateDTO,
)
from shipping.application.notifications import NotificationsUseCase
from shipping.application.payment_lifecycle import (
    BankTransferDTO,
    PaymentLifecycle,
    RefundDTO,
    VerificationDTO,
)
from shipping.core.errors import (
    ConcurrentModificationError,
    ForbiddenError,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
    ShippingError,
)
from shipping.core.models import (
    Cost,
    NotificationPage,
    PaymentStats,
    PaymentStatusEnum,
    PaymentStatusView,
    Requester,
    RoleEnum,
    Shipment,
    ShipmentPage,
    ShipmentStats,
    ShipmentStatusEnum,
    ShipmentTypeEnum,
    TrackingView,
)

logger = logging.getLogger(__name__)

router = APIRouter()

ERROR_STATUS_CODES = {
    InvalidInputError: HTTPStatus.BAD_REQUEST,
    InvalidStateError: HTTPStatus.BAD_REQUEST,
    NotFoundError: HTTPStatus.NOT_FOUND,
    ForbiddenError: HTTPStatus.FORBIDDEN,
    ConcurrentModificationError: HTTPStatus.CONFLICT,
}


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ShippingError)
    async def shipping_error_handler(request: Request, exc: ShippingError):
        return JSONResponse(
            status_code=ERROR_STATUS_CODES.get(type(exc), HTTPStatus.BAD_REQUEST),
            content={"detail": exc.message},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception in {request.url}: {exc}", exc_info=True)
        return JSONResponse(
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"},
        )


async def get_requester(
    x_user_id: str | None = Header(default=None),
    x_user_role: RoleEnum = Header(default=RoleEnum.USER),
) -> Requester:
    return Requester(user_id=x_user_id, role=x_user_role)


async def require_user(requester: Requester = Depends(get_requester)) -> Requester:
    if requester.user_id is None:
        raise HTTPException(
            status_code=HTTPStatus.UNAUTHORIZED, detail="Authentication required"
        )
    return requester


async def require_admin(requester: Requester = Depends(require_user)) -> Requester:
    if not requester.is_admin:
        raise ForbiddenError("Admin access required")
    return requester


class ShipmentCreateRequest(ShipmentDTO):
    draft_id: str | None = None


class ShipmentResponseModel(Shipment):
    pass


class CountResponseModel(BaseModel):
    count: int


# Shipments


@router.post(
    "/shipments/initialize",
    status_code=HTTPStatus.CREATED,
    response_model=ShipmentResponseModel,
)
@inject
async def initialize_shipment(
    shipment: InitializeDTO,
    requester: Requester = Depends(get_requester),
    drafts_use_case: DraftsUseCase = Depends(Provide[ApplicationContainer.drafts_use_case]),
):
    return await drafts_use_case.initialize(shipment, requester)


@router.post("/shipments/draft", response_model=ShipmentResponseModel)
@inject
async def save_draft(
    draft: SaveDraftDTO,
    requester: Requester = Depends(get_requester),
    drafts_use_case: DraftsUseCase = Depends(Provide[ApplicationContainer.drafts_use_case]),
):
    return await drafts_use_case.save(draft, requester)


@router.get("/shipments/draft/{draft_id}", response_model=ShipmentResponseModel)
@inject
async def get_draft(
    draft_id: str,
    requester: Requester = Depends(get_requester),
    drafts_use_case: DraftsUseCase = Depends(Provide[ApplicationContainer.drafts_use_case]),
):
    return await drafts_use_case.get(draft_id, requester)


@router.post("/shipments/calculate-cost", response_model=Cost)
@inject
async def calculate_cost(
    request: CostRequestDTO,
    manage_shipments_use_case: ManageShipmentsUseCase = Depends(
        Provide[ApplicationContainer.manage_shipments_use_case]
    ),
):
    return manage_shipments_use_case.calculate_cost(request)


@router.post(
    "/shipments",
    status_code=HTTPStatus.CREATED,
    response_model=ShipmentResponseModel,
)
@inject
async def create_shipment(
    shipment: ShipmentCreateRequest,
    requester: Requester = Depends(get_requester),
    create_shipment_use_case: CreateShipmentUseCase = Depends(
        Provide[ApplicationContainer.create_shipment_use_case]
    ),
):
    return await create_shipment_use_case(
        shipment=shipment, requester=requester, draft_id=shipment.draft_id
    )


@router.get("/shipments", response_model=ShipmentPage)
@inject
async def list_shipments(
    status: ShipmentStatusEnum | None = None,
    type: ShipmentTypeEnum | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    requester: Requester = Depends(require_user),
    manage_shipments_use_case: ManageShipmentsUseCase = Depends(
        Provide[ApplicationContainer.manage_shipments_use_case]
    ),
):
    return await manage_shipments_use_case.list_shipments(
        requester.user_id, status=status, shipment_type=type, page=page, limit=limit
    )


@router.get("/shipments/stats", response_model=ShipmentStats)
@inject
async def shipment_stats(
    requester: Requester = Depends(require_user),
    manage_shipments_use_case: ManageShipmentsUseCase = Depends(
        Provide[ApplicationContainer.manage_shipments_use_case]
    ),
):
    return await manage_shipments_use_case.shipment_stats(requester.user_id)


@router.get("/shipments/track/{tracking_number}", response_model=TrackingView)
@inject
async def track_shipment(
    tracking_number: str,
    manage_shipments_use_case: ManageShipmentsUseCase = Depends(
        Provide[ApplicationContainer.manage_shipments_use_case]
    ),
):
    return await manage_shipments_use_case.track(tracking_number)


@router.get("/shipments/{shipment_id}", response_model=ShipmentResponseModel)
@inject
async def get_shipment(
    shipment_id: str,
    requester: Requester = Depends(get_requester),
    manage_shipments_use_case: ManageShipmentsUseCase = Depends(
        Provide[ApplicationContainer.manage_shipments_use_case]
    ),
):
    return await manage_shipments_use_case.get_shipment(shipment_id, requester)


@router.put("/shipments/{shipment_id}/status", response_model=ShipmentResponseModel)
@inject
async def update_shipment_status(
    shipment_id: str,
    update: StatusUpdateDTO,
    admin: Requester = Depends(require_admin),
    manage_shipments_use_case: ManageShipmentsUseCase = Depends(
        Provide[ApplicationContainer.manage_shipments_use_case]
    ),
):
    return await manage_shipments_use_case.update_status(shipment_id, update)


@router.put("/shipments/{shipment_id}/{section}", response_model=ShipmentResponseModel)
@inject
async def update_shipment_section(
    shipment_id: str,
    section: SectionEnum,
    update: SectionDTO,
    requester: Requester = Depends(get_requester),
    manage_shipments_use_case: ManageShipmentsUseCase = Depends(
        Provide[ApplicationContainer.manage_shipments_use_case]
    ),
):
    return await manage_shipments_use_case.update_section(
        shipment_id, section, update, requester
    )


# Payments


@router.post("/payments/bank-transfer/initialize", response_model=ShipmentResponseModel)
@inject
async def initialize_bank_transfer(
    payment: BankTransferDTO,
    requester: Requester = Depends(get_requester),
    payment_lifecycle: PaymentLifecycle = Depends(
        Provide[ApplicationContainer.payment_lifecycle]
    ),
):
    return await payment_lifecycle.initialize(payment, requester)


@router.post(
    "/payments/bank-transfer/verify/{shipment_id}",
    response_model=ShipmentResponseModel,
)
@inject
async def verify_bank_transfer(
    shipment_id: str,
    verification: VerificationDTO,
    admin: Requester = Depends(require_admin),
    payment_lifecycle: PaymentLifecycle = Depends(
        Provide[ApplicationContainer.payment_lifecycle]
    ),
):
    return await payment_lifecycle.verify(shipment_id, verification, admin.user_id)


@router.get("/payments/bank-transfer/pending", response_model=ShipmentPage)
@inject
async def pending_bank_transfers(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    admin: Requester = Depends(require_admin),
    payment_lifecycle: PaymentLifecycle = Depends(
        Provide[ApplicationContainer.payment_lifecycle]
    ),
):
    return await payment_lifecycle.pending_bank_transfers(page=page, limit=limit)


@router.get("/payments/history", response_model=ShipmentPage)
@inject
async def payment_history(
    status: PaymentStatusEnum | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    requester: Requester = Depends(require_user),
    payment_lifecycle: PaymentLifecycle = Depends(
        Provide[ApplicationContainer.payment_lifecycle]
    ),
):
    return await payment_lifecycle.payment_history(
        requester.user_id, status=status, page=page, limit=limit
    )


@router.get("/payments/stats", response_model=PaymentStats)
@inject
async def payment_stats(
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    admin: Requester = Depends(require_admin),
    payment_lifecycle: PaymentLifecycle = Depends(
        Provide[ApplicationContainer.payment_lifecycle]
    ),
):
    return await payment_lifecycle.payment_stats(start_date=start_date, end_date=end_date)


@router.get("/payments/{shipment_id}/status", response_model=PaymentStatusView)
@inject
async def get_payment_status(
    shipment_id: str,
    requester: Requester = Depends(get_requester),
    payment_lifecycle: PaymentLifecycle = Depends(
        Provide[ApplicationContainer.payment_lifecycle]
    ),
):
    return await payment_lifecycle.get_status(shipment_id, requester)


@router.post("/payments/{shipment_id}/refund", response_model=ShipmentResponseModel)
@inject
async def refund_payment(
    shipment_id: str,
    refund: RefundDTO,
    admin: Requester = Depends(require_admin),
    payment_lifecycle: PaymentLifecycle = Depends(
        Provide[ApplicationContainer.payment_lifecycle]
    ),
):
    return await payment_lifecycle.refund(shipment_id, refund, admin.user_id)


# Notifications


@router.get("/notifications", response_model=NotificationPage)
@inject
async def list_notifications(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    unread_only: bool = False,
    requester: Requester = Depends(require_user),
    notifications_use_case: NotificationsUseCase = Depends(
        Provide[ApplicationContainer.notifications_use_case]
    ),
):
    return await notifications_use_case.list_for_user(
        requester.user_id, page=page, limit=limit, unread_only=unread_only
    )


@router.get("/notifications/unread-count", response_model=CountResponseModel)
@inject
async def unread_count(
    requester: Requester = Depends(require_user),
    notifications_use_case: NotificationsUseCase = Depends(
        Provide[ApplicationContainer.notifications_use_case]
    ),
):
    return CountResponseModel(
        count=await notifications_use_case.unread_count(requester.user_id)
    )


@router.put("/notifications/read-all", response_model=CountResponseModel)
@inject
async def mark_all_notifications_as_read(
    requester: Requester = Depends(require_user),
    notifications_use_case: NotificationsUseCase = Depends(
        Provide[ApplicationContainer.notifications_use_case]
    ),
):
    return CountResponseModel(
        count=await notifications_use_case.mark_all_as_read(requester.user_id)
    )


@router.put("/notifications/{notification_id}/read", status_code=HTTPStatus.NO_CONTENT)
@inject
async def mark_notification_as_read(
    notification_id: str,
    requester: Requester = Depends(require_user),
    notifications_use_case: NotificationsUseCase = Depends(
        Provide[ApplicationContainer.notifications_use_case]
    ),
):
    await notifications_use_case.mark_as_read(notification_id, requester.user_id)


@router.delete("/notifications/cleanup", response_model=CountResponseModel)
@inject
async def delete_old_notifications(
    requester: Requester = Depends(require_user),
    notifications_use_case: NotificationsUseCase = Depends(
        Provide[ApplicationContainer.notifications_use_case]
    ),
):
    return CountResponseModel(
        count=await notifications_use_case.delete_old(requester.user_id)
    )


@router.delete("/notifications", response_model=CountResponseModel)
@inject
async def delete_all_notifications(
    requester: Requester = Depends(require_user),
    notifications_use_case: NotificationsUseCase = Depends(
        Provide[ApplicationContainer.notifications_use_case]
    ),
):
    return CountResponseModel(
        count=await notifications_use_case.delete_all(requester.user_id)
    )


@router.delete("/notifications/{notification_id}", status_code=HTTPStatus.NO_CONTENT)
@inject
async def delete_notification(
    notification_id: str,
    requester: Requester = Depends(require_user),
    notifications_use_case: NotificationsUseCase = Depends(
        Provide[ApplicationContainer.notifications_use_case]
    ),
):
    await notifications_use_case.delete(notification_id, requester.user_id)
