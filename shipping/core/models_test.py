from datetime import datetime, timedelta, timezone

import pytest

from shipping.core.models import (
    Address,
    Contact,
    Delivery,
    Pagination,
    Payment,
    PaymentStatusEnum,
    Pickup,
    Shipment,
    ShipmentStatusEnum,
    ShipmentTypeEnum,
)

NOW = datetime(2025, 2, 3, 10, 0, tzinfo=timezone.utc)


@pytest.fixture
def shipment() -> Shipment:
    return Shipment(
        id="s-1",
        user_id="user-1",
        type=ShipmentTypeEnum.LOCAL,
        delivery=Delivery(estimated_date=NOW),
    )


def test_add_timeline_entry_moves_status(shipment: Shipment):
    assert shipment.latest_timeline_entry() is None

    entry = shipment.add_timeline_entry(ShipmentStatusEnum.PICKED_UP, "Collected", "Lagos")

    assert shipment.status == ShipmentStatusEnum.PICKED_UP
    assert shipment.latest_timeline_entry() == entry
    assert entry.location == "Lagos"


@pytest.mark.parametrize(
    "status,cancellable",
    [
        (ShipmentStatusEnum.PENDING, True),
        (ShipmentStatusEnum.AWAITING_PICKUP, True),
        (ShipmentStatusEnum.IN_TRANSIT, False),
        (ShipmentStatusEnum.DELIVERED, False),
    ],
)
def test_can_be_cancelled(shipment: Shipment, status, cancellable):
    shipment.status = status

    assert shipment.can_be_cancelled() is cancellable


@pytest.mark.parametrize(
    "status,closed",
    [
        (ShipmentStatusEnum.OUT_FOR_DELIVERY, False),
        (ShipmentStatusEnum.DELIVERED, True),
        (ShipmentStatusEnum.CANCELLED, True),
    ],
)
def test_is_closed(shipment: Shipment, status, closed):
    shipment.status = status

    assert shipment.is_closed() is closed


def test_is_overdue(shipment: Shipment):
    assert shipment.is_overdue(NOW - timedelta(hours=1)) is False
    assert shipment.is_overdue(NOW + timedelta(hours=1)) is True

    shipment.add_timeline_entry(ShipmentStatusEnum.DELIVERED)
    assert shipment.is_overdue(NOW + timedelta(hours=1)) is False


def test_ownership(shipment: Shipment):
    assert shipment.is_owned_by("user-1")
    assert not shipment.is_owned_by("user-2")
    assert not shipment.is_owned_by(None)


def test_refunded_payment_reports_refunded():
    payment = Payment(status=PaymentStatusEnum.COMPLETED, refunded=True)

    assert payment.effective_status == PaymentStatusEnum.REFUNDED


def test_contact_normalization():
    contact = Contact(email=" Ada@Example.COM ", address=Address(country=" ng "))

    assert contact.email == "ada@example.com"
    assert contact.address.country == "NG"


def test_naive_pickup_date_is_utc():
    pickup = Pickup(date=datetime(2025, 2, 3, 10, 0))

    assert pickup.date == NOW


@pytest.mark.parametrize("total,pages", [(0, 0), (1, 1), (20, 2), (21, 3)])
def test_pagination_pages(total, pages):
    assert Pagination.build(page=1, limit=10, total=total).pages == pages
