import random
import re
from datetime import date, datetime

from pydantic import BaseModel

from shipping.core.errors import InvalidInputError
from shipping.core.models import ShipmentTypeEnum, utcnow

TRACKING_NUMBER_RE = re.compile(r"^(INT|LOC)-(\d{8})-(\d{3})$")

_PREFIXES = {
    ShipmentTypeEnum.INTERNATIONAL: "INT",
    ShipmentTypeEnum.LOCAL: "LOC",
}


class TrackingNumberInfo(BaseModel):
    type: ShipmentTypeEnum
    date: date
    sequence: int
    formatted: str


def generate_tracking_number(
    shipment_type: ShipmentTypeEnum,
    now: datetime | None = None,
    rng: random.Random | None = None,
) -> str:
    """Build ``INT-YYYYMMDD-NNN`` / ``LOC-YYYYMMDD-NNN``."""
    now = now or utcnow()
    sequence = (rng or random).randrange(1000)
    return f"{_PREFIXES[shipment_type]}-{now:%Y%m%d}-{sequence:03d}"


def is_valid_tracking_number(tracking_number: str) -> bool:
    return TRACKING_NUMBER_RE.match(tracking_number) is not None


def _match(tracking_number: str) -> re.Match:
    match = TRACKING_NUMBER_RE.match(tracking_number)
    if match is None:
        raise InvalidInputError("Invalid tracking number format")
    return match


def format_tracking_number(tracking_number: str) -> str:
    prefix, digits, sequence = _match(tracking_number).groups()
    return f"{prefix}-{digits[:4]}-{digits[4:6]}-{digits[6:]}-{sequence}"


def parse_tracking_number(tracking_number: str) -> TrackingNumberInfo:
    prefix, digits, sequence = _match(tracking_number).groups()

    try:
        issued_on = datetime.strptime(digits, "%Y%m%d").date()
    except ValueError:
        raise InvalidInputError("Invalid tracking number format") from None

    return TrackingNumberInfo(
        type=(
            ShipmentTypeEnum.INTERNATIONAL if prefix == "INT" else ShipmentTypeEnum.LOCAL
        ),
        date=issued_on,
        sequence=int(sequence),
        formatted=format_tracking_number(tracking_number),
    )
