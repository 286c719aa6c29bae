from shipping.core.models import NotificationTypeEnum, ShipmentStatusEnum

NOTIFICATION_TEMPLATES: dict[NotificationTypeEnum, tuple[str, str]] = {
    NotificationTypeEnum.PAYMENT_VERIFICATION: (
        "Payment Verification Required",
        "Your bank transfer payment is awaiting verification.",
    ),
    NotificationTypeEnum.PAYMENT_CONFIRMED: (
        "Payment Confirmed",
        "Your payment has been verified and confirmed.",
    ),
    NotificationTypeEnum.PAYMENT_REJECTED: (
        "Payment Rejected",
        "Your payment could not be verified. Please contact support.",
    ),
    NotificationTypeEnum.PAYMENT_REFUNDED: (
        "Payment Refunded",
        "Your payment has been refunded.",
    ),
    NotificationTypeEnum.SHIPMENT_STATUS: (
        "Shipment Status Update",
        "Your shipment status has been updated.",
    ),
    NotificationTypeEnum.DRAFT_EXPIRY: (
        "Draft Expiring Soon",
        "Your shipment draft will expire in 2 days.",
    ),
    NotificationTypeEnum.PICKUP_REMINDER: (
        "Pickup Reminder",
        "Your shipment is scheduled for pickup tomorrow.",
    ),
    NotificationTypeEnum.DELIVERY_UPDATE: (
        "Delivery Update",
        "There is an update about your delivery.",
    ),
}

SHIPMENT_STATUS_MESSAGES = {
    ShipmentStatusEnum.AWAITING_PICKUP: "Your shipment is ready for pickup",
    ShipmentStatusEnum.PICKED_UP: "Your shipment has been picked up",
    ShipmentStatusEnum.IN_TRANSIT: "Your shipment is in transit",
    ShipmentStatusEnum.OUT_FOR_DELIVERY: "Your shipment is out for delivery",
    ShipmentStatusEnum.DELIVERED: "Your shipment has been delivered",
    ShipmentStatusEnum.CANCELLED: "Your shipment has been cancelled",
}


def render_notification(
    notification_type: NotificationTypeEnum,
    title: str | None = None,
    message: str | None = None,
) -> tuple[str, str]:
    """Fill in whatever the caller left out from the type's template."""
    default_title, default_message = NOTIFICATION_TEMPLATES.get(
        notification_type, (str(notification_type), "")
    )
    return title or default_title, message or default_message
