import random
from datetime import date, datetime, timezone

import pytest

from shipping.core.errors import InvalidInputError
from shipping.core.models import ShipmentTypeEnum
from shipping.core.tracking import (
    format_tracking_number,
    generate_tracking_number,
    is_valid_tracking_number,
    parse_tracking_number,
)

NOW = datetime(2025, 2, 5, 9, 30, tzinfo=timezone.utc)


def test_generated_numbers_carry_type_and_date():
    rng = random.Random(7)

    international = generate_tracking_number(ShipmentTypeEnum.INTERNATIONAL, now=NOW, rng=rng)
    local = generate_tracking_number(ShipmentTypeEnum.LOCAL, now=NOW, rng=rng)

    assert international.startswith("INT-20250205-")
    assert local.startswith("LOC-20250205-")
    assert is_valid_tracking_number(international)
    assert is_valid_tracking_number(local)


def test_parse_tracking_number():
    info = parse_tracking_number("INT-20250205-001")

    assert info.type == ShipmentTypeEnum.INTERNATIONAL
    assert info.date == date(2025, 2, 5)
    assert info.sequence == 1
    assert info.formatted == "INT-2025-02-05-001"


def test_format_tracking_number():
    assert format_tracking_number("LOC-20241231-042") == "LOC-2024-12-31-042"


@pytest.mark.parametrize(
    "tracking_number",
    ["", "ABC-20250205-001", "INT-2025025-001", "INT-20250205-01", "int-20250205-001"],
)
def test_malformed_numbers_are_invalid(tracking_number):
    assert not is_valid_tracking_number(tracking_number)
    with pytest.raises(InvalidInputError, match="Invalid tracking number format"):
        parse_tracking_number(tracking_number)


def test_impossible_date_is_rejected():
    with pytest.raises(InvalidInputError):
        parse_tracking_number("LOC-20250230-001")
