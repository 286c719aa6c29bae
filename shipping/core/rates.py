import math

from pydantic import BaseModel, ConfigDict, field_validator

from shipping.core.models import InsuranceTypeEnum, ShipmentTypeEnum

VOLUMETRIC_DIVISOR = 5000
INTERNATIONAL_DISTANCE_FACTOR = 1.5
FRAGILE_SURCHARGE = 1.2
PERISHABLE_SURCHARGE = 1.15
HAZARDOUS_SURCHARGE = 1.3


class RateTable(BaseModel):
    model_config = ConfigDict(frozen=True)

    international: float = 20.0
    local: float = 10.0
    vat: float = 0.075
    insurance_basic: float = 0.01
    insurance_premium: float = 0.02

    @field_validator("*")
    @classmethod
    def _finite_non_negative(cls, value: float) -> float:
        if math.isnan(value) or math.isinf(value) or value < 0:
            raise ValueError("Invalid shipping rate configuration")
        return value

    def base_rate(self, shipment_type: ShipmentTypeEnum) -> float:
        if shipment_type == ShipmentTypeEnum.INTERNATIONAL:
            return self.international
        return self.local

    def insurance_rate(self, insurance_type: InsuranceTypeEnum) -> float:
        if insurance_type == InsuranceTypeEnum.BASIC:
            return self.insurance_basic
        if insurance_type == InsuranceTypeEnum.PREMIUM:
            return self.insurance_premium
        return 0.0
