"""Bank transfer payment state machine.

    pending -> awaiting_verification -> completed | failed
    completed (refunded=False) -> completed (refunded=True), shipment cancelled

Transitions mutate the shipment in memory; persisting it and notifying the
owner is up to the caller.
"""

from datetime import datetime
from decimal import Decimal

from shipping.core.errors import InvalidInputError, InvalidStateError
from shipping.core.models import (
    BankDetails,
    Payment,
    PaymentMethodEnum,
    PaymentStatusEnum,
    PaymentStatusView,
    Shipment,
    ShipmentStatusEnum,
    utcnow,
)

PAYMENT_VERIFIED_DESCRIPTION = "Payment verified, shipment ready for pickup"


def initialize_bank_transfer(
    shipment: Shipment, bank_details: BankDetails, now: datetime | None = None
) -> Shipment:
    if not (bank_details.account_name or "").strip() or not (
        bank_details.bank_name or ""
    ).strip():
        raise InvalidInputError("Account name and bank name are required")

    if shipment.payment.status != PaymentStatusEnum.PENDING:
        raise InvalidStateError("Payment already initialized")

    if shipment.cost is None:
        raise InvalidStateError("Shipment has no calculated cost")

    shipment.payment = Payment(
        status=PaymentStatusEnum.AWAITING_VERIFICATION,
        method=PaymentMethodEnum.BANK_TRANSFER,
        amount=shipment.cost.total,
        bank_details=BankDetails(
            account_name=bank_details.account_name.strip(),
            bank_name=bank_details.bank_name.strip(),
        ),
        created_at=now or utcnow(),
    )
    return shipment


def verify_bank_transfer(
    shipment: Shipment,
    verified: bool,
    admin_id: str,
    notes: str | None = None,
    rejection_reason: str | None = None,
    now: datetime | None = None,
) -> Shipment:
    payment = shipment.payment

    if payment.status != PaymentStatusEnum.AWAITING_VERIFICATION:
        raise InvalidStateError("Payment is not awaiting verification")

    if not verified and not (rejection_reason or "").strip():
        raise InvalidInputError(
            "Rejection reason is required when verification fails"
        )

    payment.status = (
        PaymentStatusEnum.COMPLETED if verified else PaymentStatusEnum.FAILED
    )
    payment.verified_at = now or utcnow()
    payment.verified_by = admin_id
    payment.notes = notes

    if verified:
        shipment.add_timeline_entry(
            ShipmentStatusEnum.AWAITING_PICKUP, PAYMENT_VERIFIED_DESCRIPTION
        )
    else:
        payment.rejection_reason = rejection_reason

    return shipment


def refund_payment(
    shipment: Shipment,
    reason: str,
    admin_id: str,
    amount: Decimal | None = None,
    now: datetime | None = None,
) -> Shipment:
    payment = shipment.payment

    if payment.status != PaymentStatusEnum.COMPLETED:
        raise InvalidStateError("Payment must be completed to process refund")

    if payment.refunded:
        raise InvalidStateError("Payment has already been refunded")

    if not (reason or "").strip():
        raise InvalidInputError("Refund reason is required")

    if amount is not None and amount <= 0:
        raise InvalidInputError("Amount must be greater than 0")

    payment.refunded = True
    payment.refunded_at = now or utcnow()
    payment.refunded_by = admin_id
    payment.refund_reason = reason
    payment.refund_amount = amount if amount is not None else shipment.cost.total

    shipment.add_timeline_entry(
        ShipmentStatusEnum.CANCELLED,
        f"Shipment cancelled and refunded: {reason}",
    )
    return shipment


def payment_status_view(shipment: Shipment) -> PaymentStatusView:
    payment = shipment.payment
    return PaymentStatusView(
        status=payment.status,
        method=payment.method,
        amount=shipment.cost.total if shipment.cost else None,
        created_at=payment.created_at,
        verified_at=payment.verified_at,
        refunded=payment.refunded,
        refunded_at=payment.refunded_at,
        refund_amount=payment.refund_amount,
        refund_reason=payment.refund_reason,
    )
