import math
from datetime import datetime, timedelta

from shipping.core.errors import InvalidInputError
from shipping.core.models import Package, ShipmentTypeEnum

INTERNATIONAL_DELIVERY_DAYS = 5
LOCAL_DELIVERY_DAYS = 2
SATURDAY = 5


def is_weekend(value: datetime) -> bool:
    return value.weekday() >= SATURDAY


def delivery_days(shipment_type: ShipmentTypeEnum, packages: list[Package]) -> int:
    if shipment_type == ShipmentTypeEnum.INTERNATIONAL:
        days = INTERNATIONAL_DELIVERY_DAYS
    else:
        days = LOCAL_DELIVERY_DAYS

    if len(packages) > 1:
        days += math.ceil(len(packages) / 2)

    if any(package.needs_special_handling for package in packages):
        days += 1

    return days


def estimate_delivery_date(
    shipment_type: ShipmentTypeEnum,
    packages: list[Package],
    pickup_date: datetime,
) -> datetime:
    """Pickup date plus transit days, pushed off the weekend one day at a time."""
    if not packages:
        raise InvalidInputError("At least one package is required")

    estimated = pickup_date + timedelta(days=delivery_days(shipment_type, packages))

    while is_weekend(estimated):
        estimated += timedelta(days=1)

    return estimated
