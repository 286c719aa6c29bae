from decimal import ROUND_HALF_UP, Decimal

from shipping.core.errors import InvalidInputError
from shipping.core.models import (
    Cost,
    Dimensions,
    InsuranceTypeEnum,
    Package,
    ShipmentTypeEnum,
)
from shipping.core.rates import (
    FRAGILE_SURCHARGE,
    HAZARDOUS_SURCHARGE,
    INTERNATIONAL_DISTANCE_FACTOR,
    PERISHABLE_SURCHARGE,
    VOLUMETRIC_DIVISOR,
    RateTable,
)

CENT = Decimal("0.01")


def round_money(value: float) -> Decimal:
    """Round a float to cents, half away from zero on its exact binary value."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


class ShippingCostCalculator:
    def __init__(self, rates: RateTable):
        self._rates = rates

    @property
    def rates(self) -> RateTable:
        return self._rates

    @staticmethod
    def volumetric_weight(dimensions: Dimensions) -> float:
        return (
            dimensions.length * dimensions.width * dimensions.height
        ) / VOLUMETRIC_DIVISOR

    def chargeable_weight(self, package: Package) -> float:
        return max(package.weight, self.volumetric_weight(package.dimensions))

    def total_chargeable_weight(self, packages: list[Package]) -> float:
        total = 0.0
        for package in packages:
            total += self.chargeable_weight(package)
        return total

    def base_shipping_cost(
        self, shipment_type: ShipmentTypeEnum, packages: list[Package]
    ) -> Decimal:
        if not packages:
            raise InvalidInputError("At least one package is required")

        cost = self.total_chargeable_weight(packages) * self._rates.base_rate(
            shipment_type
        )

        if shipment_type == ShipmentTypeEnum.INTERNATIONAL:
            cost *= INTERNATIONAL_DISTANCE_FACTOR

        # Surcharges compound on the running shipment cost, in package order.
        for package in packages:
            if package.is_fragile:
                cost *= FRAGILE_SURCHARGE
            if package.is_perishable:
                cost *= PERISHABLE_SURCHARGE
            if package.is_hazardous:
                cost *= HAZARDOUS_SURCHARGE

        return round_money(cost)

    def insurance_cost(
        self, insurance_type: InsuranceTypeEnum, base_amount: Decimal
    ) -> Decimal:
        if insurance_type == InsuranceTypeEnum.NONE:
            return Decimal("0.00")
        return round_money(float(base_amount) * self._rates.insurance_rate(insurance_type))

    def vat(self, base_amount: Decimal) -> Decimal:
        return round_money(float(base_amount) * self._rates.vat)

    def shipping_cost(
        self,
        shipment_type: ShipmentTypeEnum,
        packages: list[Package],
        insurance_type: InsuranceTypeEnum | None = None,
    ) -> Cost:
        base_amount = self.base_shipping_cost(shipment_type, packages)
        insurance = self.insurance_cost(
            insurance_type or InsuranceTypeEnum.NONE, base_amount
        )
        vat = self.vat(base_amount)
        total = (base_amount + insurance + vat).quantize(CENT, rounding=ROUND_HALF_UP)

        return Cost(base_amount=base_amount, insurance=insurance, vat=vat, total=total)
