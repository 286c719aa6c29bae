from sqlalchemy import (
    DECIMAL,
    JSON,
    Boolean,
    Column,
    DateTime,
    Integer,
    MetaData,
    Table,
    Text,
    Uuid,
)

from shipping.core.models import utcnow

metadata = MetaData()

shipments_tbl = Table(
    "shipments",
    metadata,
    Column("id", Uuid(as_uuid=True), primary_key=True),
    Column("user_id", Text, nullable=True, index=True),
    Column("tracking_number", Text, nullable=True, unique=True),
    Column("type", Text, nullable=False),
    Column("status", Text, nullable=False, index=True),
    Column("is_draft", Boolean, nullable=False, default=False, index=True),
    Column("last_saved_step", Integer, nullable=True),
    Column("sender", JSON, nullable=False),
    Column("recipient", JSON, nullable=False),
    Column("packages", JSON, nullable=False),
    Column("pickup", JSON, nullable=False),
    Column("delivery", JSON, nullable=False),
    Column("insurance", JSON, nullable=False),
    Column("cost", JSON, nullable=True),
    Column("payment", JSON, nullable=False),
    Column("timeline", JSON, nullable=False),
    # payment and cost fields copied out of the document for filtering and stats
    Column("payment_status", Text, nullable=False, index=True),
    Column("payment_method", Text, nullable=True),
    Column("payment_created_at", DateTime(timezone=True), nullable=True),
    Column("cost_total", DECIMAL(10, 2), nullable=True),
    Column("version", Integer, nullable=False, default=1),
    Column("created_at", DateTime(timezone=True), nullable=False, default=utcnow),
    Column("updated_at", DateTime(timezone=True), nullable=False, default=utcnow),
)

notifications_tbl = Table(
    "notifications",
    metadata,
    Column("id", Uuid(as_uuid=True), primary_key=True),
    Column("user_id", Text, nullable=False, index=True),
    Column("type", Text, nullable=False),
    Column("title", Text, nullable=False),
    Column("message", Text, nullable=False),
    Column("data", JSON, nullable=False),
    Column("read", Boolean, nullable=False, default=False),
    Column("read_at", DateTime(timezone=True), nullable=True),
    Column("priority", Text, nullable=False),
    Column("expires_at", DateTime(timezone=True), nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False, default=utcnow),
)

outbox_tbl = Table(
    "outbox",
    metadata,
    Column("id", Uuid(as_uuid=True), primary_key=True),
    Column("event_type", Text, nullable=False),
    Column("payload", JSON, nullable=False),
    Column("status", Text, nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False, default=utcnow),
)
