"""SQLAlchemy ORM models for rentals, obligations, payment events and invoices"""

import uuid

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


class RentalRecord(Base):
    """Recurring lease of one or more items"""

    __tablename__ = "rental"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    rental_code = Column(String(32), nullable=False, unique=True)
    customer_name = Column(Text, nullable=False)
    customer_email = Column(Text, nullable=False)
    customer_phone = Column(Text, nullable=False)
    owner_ref = Column(Text, nullable=False, index=True)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    total_monthly_cents = Column(BigInteger, nullable=False)
    total_deposit_cents = Column(BigInteger, nullable=False, default=0)
    status = Column(String(16), nullable=False, default="Active", index=True)
    last_reminder_sent_at = Column(DateTime(timezone=True), nullable=True)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    items = relationship(
        "RentalItemRecord",
        back_populates="rental",
        cascade="all, delete-orphan",
        order_by="RentalItemRecord.position",
    )
    obligations = relationship("PaymentObligationRecord", back_populates="rental", cascade="all, delete-orphan")


class RentalItemRecord(Base):
    """Line item of a rental"""

    __tablename__ = "rental_item"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    rental_id = Column(Uuid, ForeignKey("rental.id", ondelete="CASCADE"), nullable=False)
    position = Column(Integer, nullable=False, default=0)
    item_ref = Column(Text, nullable=True)
    item_name = Column(Text, nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    monthly_rate_cents = Column(BigInteger, nullable=False)
    deposit_cents = Column(BigInteger, nullable=False, default=0)

    rental = relationship("RentalRecord", back_populates="items")


class PaymentObligationRecord(Base):
    """One month's rent requirement"""

    __tablename__ = "payment_obligation"
    __table_args__ = (UniqueConstraint("rental_id", "month_key", name="uq_obligation_rental_month"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    rental_id = Column(Uuid, ForeignKey("rental.id", ondelete="CASCADE"), nullable=False, index=True)
    month_key = Column(String(7), nullable=False)
    amount_cents = Column(BigInteger, nullable=False)
    paid_cents = Column(BigInteger, nullable=False, default=0)
    due_date = Column(Date, nullable=False, index=True)
    paid_date = Column(DateTime(timezone=True), nullable=True)
    status = Column(String(16), nullable=False, default="Pending", index=True)
    payment_method = Column(Text, nullable=True)
    notes = Column(Text, nullable=False, default="")
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    rental = relationship("RentalRecord", back_populates="obligations")


class PaymentEventRecord(Base):
    """A payment recorded against an obligation"""

    __tablename__ = "payment_event"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    # No FK to payment_obligation: deleting an obligation must not touch payment history
    obligation_id = Column(Uuid, nullable=False, index=True)
    rental_id = Column(Uuid, nullable=False, index=True)
    amount_cents = Column(BigInteger, nullable=False)
    payment_method = Column(Text, nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=False)
    resulting_status = Column(String(16), nullable=False)
    reference = Column(Text, nullable=True, unique=True)
    notes = Column(Text, nullable=False, default="")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class InvoiceRecord(Base):
    """Numbered invoice for one settling payment event"""

    __tablename__ = "invoice"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    invoice_number = Column(String(32), nullable=False, unique=True)
    payment_event_id = Column(Uuid, nullable=False, unique=True)
    rental_id = Column(Uuid, nullable=False, index=True)
    obligation_id = Column(Uuid, nullable=False)
    amount_cents = Column(BigInteger, nullable=False)
    generated_at = Column(DateTime(timezone=True), nullable=False)
    delivered = Column(Boolean, nullable=False, default=False)


class InvoiceCounterRecord(Base):
    """Per-day invoice sequence. The row lock taken by the increment serializes allocations."""

    __tablename__ = "invoice_counter"

    date_bucket = Column(String(8), primary_key=True)
    current_value = Column(BigInteger, nullable=False, default=0)
