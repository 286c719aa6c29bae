from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from enum import StrEnum

from pydantic import BaseModel, Field, field_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ShipmentTypeEnum(StrEnum):
    INTERNATIONAL = "international"
    LOCAL = "local"


class ShipmentStatusEnum(StrEnum):
    PENDING = "pending"
    AWAITING_PICKUP = "awaiting_pickup"
    PICKED_UP = "picked_up"
    IN_TRANSIT = "in_transit"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


NON_CANCELLABLE_STATUSES = frozenset(
    {
        ShipmentStatusEnum.PICKED_UP,
        ShipmentStatusEnum.IN_TRANSIT,
        ShipmentStatusEnum.OUT_FOR_DELIVERY,
        ShipmentStatusEnum.DELIVERED,
        ShipmentStatusEnum.CANCELLED,
    }
)

ACTIVE_STATUSES = frozenset(
    {
        ShipmentStatusEnum.PENDING,
        ShipmentStatusEnum.AWAITING_PICKUP,
        ShipmentStatusEnum.PICKED_UP,
        ShipmentStatusEnum.IN_TRANSIT,
        ShipmentStatusEnum.OUT_FOR_DELIVERY,
    }
)

# no further status changes once reached
CLOSED_STATUSES = frozenset({ShipmentStatusEnum.DELIVERED, ShipmentStatusEnum.CANCELLED})


class PackageTypeEnum(StrEnum):
    PARCEL = "parcel"
    DOCUMENTS = "documents"
    PALLET = "pallet"
    CONTAINER = "container"
    OTHER = "other"


class InsuranceTypeEnum(StrEnum):
    NONE = "none"
    BASIC = "basic"
    PREMIUM = "premium"


class PaymentStatusEnum(StrEnum):
    PENDING = "pending"
    AWAITING_VERIFICATION = "awaiting_verification"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentMethodEnum(StrEnum):
    BANK_TRANSFER = "bank_transfer"


class Dimensions(BaseModel):
    length: float
    width: float
    height: float


class Package(BaseModel):
    type: PackageTypeEnum = PackageTypeEnum.PARCEL
    weight: float
    dimensions: Dimensions
    description: str | None = None
    is_fragile: bool = False
    is_perishable: bool = False
    is_hazardous: bool = False
    special_instructions: str | None = None

    @property
    def needs_special_handling(self) -> bool:
        return self.is_fragile or self.is_perishable or self.is_hazardous


class Address(BaseModel):
    street: str | None = None
    city: str | None = None
    country: str | None = None
    postal_code: str | None = None
    tax_id: str | None = None

    @field_validator("country")
    @classmethod
    def _upper_country(cls, value: str | None) -> str | None:
        return value.strip().upper() if value else value


class Contact(BaseModel):
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    address: Address = Field(default_factory=Address)

    @field_validator("email")
    @classmethod
    def _lower_email(cls, value: str | None) -> str | None:
        return value.strip().lower() if value else value


class Pickup(BaseModel):
    location: Address | None = None
    date: datetime | None = None
    instructions: str | None = None

    @field_validator("date")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        # naive pickup dates are UTC
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class TimeWindow(BaseModel):
    start: datetime | None = None
    end: datetime | None = None


class DeliveryOptions(BaseModel):
    time_window: TimeWindow | None = None
    special_instructions: str | None = None
    requires_signature: bool = True


class Delivery(BaseModel):
    estimated_date: datetime | None = None
    actual_date: datetime | None = None
    options: DeliveryOptions = Field(default_factory=DeliveryOptions)


class Insurance(BaseModel):
    type: InsuranceTypeEnum = InsuranceTypeEnum.NONE
    coverage: Decimal = Field(default=Decimal("0"), ge=0)


class Cost(BaseModel):
    base_amount: Decimal = Field(ge=0)
    insurance: Decimal = Field(default=Decimal("0"), ge=0)
    vat: Decimal = Field(ge=0)
    total: Decimal = Field(ge=0)


class BankDetails(BaseModel):
    account_name: str | None = None
    bank_name: str | None = None


class Payment(BaseModel):
    status: PaymentStatusEnum = PaymentStatusEnum.PENDING
    method: PaymentMethodEnum | None = None
    amount: Decimal | None = None
    bank_details: BankDetails | None = None
    created_at: datetime | None = None
    verified_at: datetime | None = None
    verified_by: str | None = None
    notes: str | None = None
    rejection_reason: str | None = None
    refunded: bool = False
    refunded_at: datetime | None = None
    refunded_by: str | None = None
    refund_reason: str | None = None
    refund_amount: Decimal | None = None

    @property
    def effective_status(self) -> PaymentStatusEnum:
        if self.refunded:
            return PaymentStatusEnum.REFUNDED
        return self.status


class TimelineEntry(BaseModel):
    status: ShipmentStatusEnum
    location: str | None = None
    description: str | None = None
    timestamp: datetime = Field(default_factory=utcnow)


class Shipment(BaseModel):
    id: str
    user_id: str | None = None
    tracking_number: str | None = None
    type: ShipmentTypeEnum
    status: ShipmentStatusEnum = ShipmentStatusEnum.PENDING
    sender: Contact = Field(default_factory=Contact)
    recipient: Contact = Field(default_factory=Contact)
    packages: list[Package] = Field(default_factory=list)
    pickup: Pickup = Field(default_factory=Pickup)
    delivery: Delivery = Field(default_factory=Delivery)
    insurance: Insurance = Field(default_factory=Insurance)
    cost: Cost | None = None
    payment: Payment = Field(default_factory=Payment)
    timeline: list[TimelineEntry] = Field(default_factory=list)
    is_draft: bool = False
    last_saved_step: int | None = Field(default=None, ge=1, le=7)
    version: int = 1
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def add_timeline_entry(
        self,
        status: ShipmentStatusEnum,
        description: str | None = None,
        location: str | None = None,
    ) -> TimelineEntry:
        """Append to the timeline and move the shipment to ``status``."""
        entry = TimelineEntry(status=status, location=location, description=description)
        self.timeline.append(entry)
        self.status = status
        return entry

    def latest_timeline_entry(self) -> TimelineEntry | None:
        return self.timeline[-1] if self.timeline else None

    def is_owned_by(self, user_id: str | None) -> bool:
        return self.user_id is not None and self.user_id == user_id

    def is_closed(self) -> bool:
        return self.status in CLOSED_STATUSES

    def can_be_cancelled(self) -> bool:
        return self.status not in NON_CANCELLABLE_STATUSES

    def is_overdue(self, now: datetime | None = None) -> bool:
        if self.delivery.estimated_date is None:
            return False
        now = now or utcnow()
        return (
            now > self.delivery.estimated_date
            and self.status != ShipmentStatusEnum.DELIVERED
        )


class TrackingView(BaseModel):
    tracking_number: str
    formatted_tracking_number: str
    issued_on: date
    status: ShipmentStatusEnum
    type: ShipmentTypeEnum
    timeline: list[TimelineEntry]
    sender_address: Address
    recipient_address: Address
    delivery: Delivery
    packages: list[Package]
    latest_update: TimelineEntry | None
    is_overdue: bool


class PaymentStatusView(BaseModel):
    status: PaymentStatusEnum
    method: PaymentMethodEnum | None
    amount: Decimal | None
    created_at: datetime | None
    verified_at: datetime | None
    refunded: bool
    refunded_at: datetime | None
    refund_amount: Decimal | None
    refund_reason: str | None


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        return cls(page=page, limit=limit, total=total, pages=-(-total // limit))


class ShipmentPage(BaseModel):
    items: list[Shipment]
    pagination: Pagination


class ShipmentStatsOverview(BaseModel):
    total_shipments: int = 0
    active_shipments: int = 0
    completed_shipments: int = 0
    total_spent: Decimal = Decimal("0.00")


class MonthlyShipmentStats(BaseModel):
    year: int
    month: int
    count: int
    total: Decimal


class ShipmentStats(BaseModel):
    overview: ShipmentStatsOverview
    monthly: list[MonthlyShipmentStats]


class PaymentStatusStats(BaseModel):
    status: PaymentStatusEnum
    count: int
    total_amount: Decimal


class PaymentStatsSummary(BaseModel):
    total_payments: int
    total_amount: Decimal


class DateRange(BaseModel):
    start_date: datetime
    end_date: datetime


class PaymentStats(BaseModel):
    stats: list[PaymentStatusStats]
    summary: PaymentStatsSummary
    date_range: DateRange


class NotificationTypeEnum(StrEnum):
    PAYMENT_VERIFICATION = "payment_verification"
    PAYMENT_CONFIRMED = "payment_confirmed"
    PAYMENT_REJECTED = "payment_rejected"
    PAYMENT_REFUNDED = "payment_refunded"
    SHIPMENT_STATUS = "shipment_status"
    DRAFT_EXPIRY = "draft_expiry"
    PICKUP_REMINDER = "pickup_reminder"
    DELIVERY_UPDATE = "delivery_update"
    SYSTEM_NOTIFICATION = "system_notification"


class NotificationPriorityEnum(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


NOTIFICATION_TTL = timedelta(days=30)


class Notification(BaseModel):
    id: str
    user_id: str
    type: NotificationTypeEnum
    title: str
    message: str
    data: dict
    read: bool
    read_at: datetime | None = None
    priority: NotificationPriorityEnum
    expires_at: datetime | None = None
    created_at: datetime


class NotificationPage(BaseModel):
    items: list[Notification]
    pagination: Pagination


class EventTypeEnum(StrEnum):
    PAYMENT_UPDATED = "PAYMENT.UPDATED"
    SHIPMENT_UPDATED = "SHIPMENT.UPDATED"
    NOTIFICATION_CREATED = "NOTIFICATION.CREATED"
    EMAIL_SHIPMENT_CONFIRMATION = "EMAIL.SHIPMENT_CONFIRMATION"
    EMAIL_PAYMENT_CONFIRMATION = "EMAIL.PAYMENT_CONFIRMATION"
    EMAIL_PAYMENT_REJECTION = "EMAIL.PAYMENT_REJECTION"
    EMAIL_REFUND_CONFIRMATION = "EMAIL.REFUND_CONFIRMATION"
    EMAIL_STATUS_UPDATE = "EMAIL.STATUS_UPDATE"


class OutboxEventStatus(StrEnum):
    PENDING = "PENDING"
    SENT = "SENT"


class OutboxEvent(BaseModel):
    id: str
    event_type: EventTypeEnum
    payload: dict
    status: OutboxEventStatus
    created_at: datetime


class RoleEnum(StrEnum):
    USER = "user"
    ADMIN = "admin"


class Requester(BaseModel):
    """Caller identity as asserted by the API gateway; anonymous for guests."""

    user_id: str | None = None
    role: RoleEnum = RoleEnum.USER

    @property
    def is_admin(self) -> bool:
        return self.role == RoleEnum.ADMIN
