from datetime import datetime, timedelta

from shipping.core.delivery import is_weekend
from shipping.core.errors import InvalidInputError
from shipping.core.models import (
    Contact,
    Package,
    PackageTypeEnum,
    ShipmentTypeEnum,
    utcnow,
)

MAX_PACKAGES = 10
MAX_DIMENSION_CM = 150
MAX_DOCUMENTS_WEIGHT_KG = 5
MAX_PACKAGE_WEIGHT_KG = 70
PICKUP_WINDOW = timedelta(days=30)


def validate_addresses(
    shipment_type: ShipmentTypeEnum, sender: Contact, recipient: Contact
) -> None:
    same_country = sender.address.country == recipient.address.country

    if shipment_type == ShipmentTypeEnum.INTERNATIONAL:
        if same_country:
            raise InvalidInputError(
                "International shipments must be between different countries"
            )
    elif not same_country:
        raise InvalidInputError("Local shipments must be within the same country")


def validate_pickup_date(pickup_date: datetime | None, now: datetime | None = None) -> None:
    if pickup_date is None:
        raise InvalidInputError("Pickup date is required")

    now = now or utcnow()

    if pickup_date < now:
        raise InvalidInputError("Pickup date cannot be in the past")

    if pickup_date > now + PICKUP_WINDOW:
        raise InvalidInputError("Pickup date cannot be more than 30 days in the future")

    if is_weekend(pickup_date):
        raise InvalidInputError("Pickup is not available on weekends")


def max_weight_for(package: Package) -> int:
    if package.type == PackageTypeEnum.DOCUMENTS:
        return MAX_DOCUMENTS_WEIGHT_KG
    return MAX_PACKAGE_WEIGHT_KG


def validate_packages(packages: list[Package] | None) -> None:
    """Check count, weight and dimension limits; the first violation is raised."""
    if not packages:
        raise InvalidInputError("At least one package is required")

    if len(packages) > MAX_PACKAGES:
        raise InvalidInputError(
            f"Maximum {MAX_PACKAGES} packages allowed per shipment"
        )

    for index, package in enumerate(packages, start=1):
        sides = (
            package.dimensions.length,
            package.dimensions.width,
            package.dimensions.height,
        )

        if package.weight <= 0:
            raise InvalidInputError(f"Package {index}: Weight must be greater than 0")

        if any(side <= 0 for side in sides):
            raise InvalidInputError(f"Package {index}: Invalid dimensions")

        if any(side > MAX_DIMENSION_CM for side in sides):
            raise InvalidInputError(
                f"Package {index}: Maximum dimension allowed is {MAX_DIMENSION_CM}cm"
            )

        max_weight = max_weight_for(package)
        if package.weight > max_weight:
            raise InvalidInputError(
                f"Package {index}: Maximum weight allowed is {max_weight}kg"
            )
