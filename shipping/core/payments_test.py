from decimal import Decimal

import pytest

from shipping.core.errors import InvalidInputError, InvalidStateError
from shipping.core.models import (
    BankDetails,
    Cost,
    PaymentMethodEnum,
    PaymentStatusEnum,
    Shipment,
    ShipmentStatusEnum,
    ShipmentTypeEnum,
)
from shipping.core.payments import (
    PAYMENT_VERIFIED_DESCRIPTION,
    initialize_bank_transfer,
    payment_status_view,
    refund_payment,
    verify_bank_transfer,
)

BANK_DETAILS = BankDetails(account_name="Ada Sender", bank_name="First Bank")


@pytest.fixture
def shipment() -> Shipment:
    return Shipment(
        id="5b0e4c8e-6f0c-4b47-9a8e-0c1f3c0b7a10",
        user_id="user-1",
        tracking_number="LOC-20250203-123",
        type=ShipmentTypeEnum.LOCAL,
        cost=Cost(
            base_amount=Decimal("100.00"),
            insurance=Decimal("0.00"),
            vat=Decimal("7.50"),
            total=Decimal("107.50"),
        ),
    )


@pytest.fixture
def awaiting_shipment(shipment: Shipment) -> Shipment:
    return initialize_bank_transfer(shipment, BANK_DETAILS)


@pytest.fixture
def paid_shipment(awaiting_shipment: Shipment) -> Shipment:
    return verify_bank_transfer(awaiting_shipment, verified=True, admin_id="admin-1")


class TestInitializeBankTransfer:
    def test_moves_payment_to_awaiting_verification(self, shipment: Shipment):
        # When
        initialize_bank_transfer(shipment, BANK_DETAILS)

        # Then
        assert shipment.payment.status == PaymentStatusEnum.AWAITING_VERIFICATION
        assert shipment.payment.method == PaymentMethodEnum.BANK_TRANSFER
        assert shipment.payment.amount == Decimal("107.50")
        assert shipment.payment.bank_details == BANK_DETAILS
        assert shipment.payment.created_at is not None

    @pytest.mark.parametrize(
        "details",
        [
            BankDetails(account_name="Ada", bank_name=None),
            BankDetails(account_name="  ", bank_name="First Bank"),
        ],
    )
    def test_requires_bank_details(self, shipment: Shipment, details: BankDetails):
        with pytest.raises(InvalidInputError, match="Account name and bank name are required"):
            initialize_bank_transfer(shipment, details)

    def test_cannot_initialize_twice(self, awaiting_shipment: Shipment):
        with pytest.raises(InvalidStateError, match="Payment already initialized"):
            initialize_bank_transfer(awaiting_shipment, BANK_DETAILS)


class TestVerifyBankTransfer:
    def test_approval_completes_payment_and_readies_pickup(
        self, awaiting_shipment: Shipment
    ):
        # Given
        timeline_length = len(awaiting_shipment.timeline)

        # When
        verify_bank_transfer(
            awaiting_shipment, verified=True, admin_id="admin-1", notes="Seen on statement"
        )

        # Then
        payment = awaiting_shipment.payment
        assert payment.status == PaymentStatusEnum.COMPLETED
        assert payment.verified_by == "admin-1"
        assert payment.notes == "Seen on statement"
        assert payment.verified_at is not None
        assert awaiting_shipment.status == ShipmentStatusEnum.AWAITING_PICKUP
        assert len(awaiting_shipment.timeline) == timeline_length + 1
        assert awaiting_shipment.timeline[-1].description == PAYMENT_VERIFIED_DESCRIPTION

    def test_rejection_records_reason_and_keeps_shipment_pending(
        self, awaiting_shipment: Shipment
    ):
        verify_bank_transfer(
            awaiting_shipment,
            verified=False,
            admin_id="admin-1",
            rejection_reason="Transfer not received",
        )

        assert awaiting_shipment.payment.status == PaymentStatusEnum.FAILED
        assert awaiting_shipment.payment.rejection_reason == "Transfer not received"
        assert awaiting_shipment.status == ShipmentStatusEnum.PENDING
        assert awaiting_shipment.timeline == []

    def test_rejection_requires_reason(self, awaiting_shipment: Shipment):
        with pytest.raises(InvalidInputError, match="Rejection reason is required"):
            verify_bank_transfer(awaiting_shipment, verified=False, admin_id="admin-1")

    @pytest.mark.parametrize("verified", [True, False])
    def test_only_awaiting_payments_can_be_verified(self, shipment: Shipment, verified):
        with pytest.raises(InvalidStateError, match="not awaiting verification"):
            verify_bank_transfer(
                shipment, verified=verified, admin_id="admin-1", rejection_reason="x"
            )

    def test_completed_payment_cannot_be_verified_again(self, paid_shipment: Shipment):
        with pytest.raises(InvalidStateError):
            verify_bank_transfer(paid_shipment, verified=True, admin_id="admin-1")


class TestRefundPayment:
    def test_refund_cancels_shipment(self, paid_shipment: Shipment):
        # When
        refund_payment(paid_shipment, reason="Customer request", admin_id="admin-1")

        # Then
        payment = paid_shipment.payment
        assert payment.status == PaymentStatusEnum.COMPLETED
        assert payment.refunded is True
        assert payment.effective_status == PaymentStatusEnum.REFUNDED
        assert payment.refund_amount == Decimal("107.50")
        assert payment.refunded_by == "admin-1"
        assert paid_shipment.status == ShipmentStatusEnum.CANCELLED
        assert (
            paid_shipment.timeline[-1].description
            == "Shipment cancelled and refunded: Customer request"
        )

    def test_partial_refund_amount(self, paid_shipment: Shipment):
        refund_payment(
            paid_shipment, reason="Damaged", admin_id="admin-1", amount=Decimal("50.00")
        )

        assert paid_shipment.payment.refund_amount == Decimal("50.00")

    def test_second_refund_is_rejected(self, paid_shipment: Shipment):
        refund_payment(paid_shipment, reason="Customer request", admin_id="admin-1")

        with pytest.raises(InvalidStateError, match="already been refunded"):
            refund_payment(paid_shipment, reason="Again", admin_id="admin-1")

    def test_refund_requires_completed_payment(self, awaiting_shipment: Shipment):
        with pytest.raises(InvalidStateError, match="must be completed"):
            refund_payment(awaiting_shipment, reason="Customer request", admin_id="admin-1")

    def test_refund_requires_reason(self, paid_shipment: Shipment):
        with pytest.raises(InvalidInputError, match="Refund reason is required"):
            refund_payment(paid_shipment, reason=" ", admin_id="admin-1")

    def test_refund_amount_must_be_positive(self, paid_shipment: Shipment):
        with pytest.raises(InvalidInputError, match="greater than 0"):
            refund_payment(
                paid_shipment, reason="Damaged", admin_id="admin-1", amount=Decimal("0")
            )


def test_payment_status_view(paid_shipment: Shipment):
    view = payment_status_view(paid_shipment)

    assert view.status == PaymentStatusEnum.COMPLETED
    assert view.amount == Decimal("107.50")
    assert view.refunded is False
