from shipping.core.models import ShipmentStatusEnum

STATUS_DESCRIPTIONS = {
    ShipmentStatusEnum.PENDING: "Shipment created and pending payment",
    ShipmentStatusEnum.AWAITING_PICKUP: "Ready for pickup",
    ShipmentStatusEnum.PICKED_UP: "Package has been picked up",
    ShipmentStatusEnum.IN_TRANSIT: "Package is in transit",
    ShipmentStatusEnum.OUT_FOR_DELIVERY: "Package is out for delivery",
    ShipmentStatusEnum.DELIVERED: "Package has been delivered",
    ShipmentStatusEnum.CANCELLED: "Shipment has been cancelled",
}


def describe_status(status: ShipmentStatusEnum) -> str:
    return STATUS_DESCRIPTIONS.get(status, str(status))
