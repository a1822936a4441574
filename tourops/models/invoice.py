import uuid
import enum
from datetime import datetime
from sqlalchemy import Column, String, Date, Numeric, Text, ForeignKey, DateTime, Integer, UniqueConstraint, Index
from sqlalchemy.orm import relationship
from ..database import Base


class InvoiceStatus(str, enum.Enum):
    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    OVERDUE = "overdue"
    VOID = "void"


class Invoice(Base):
    __tablename__ = "invoices"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    company_id = Column(String(36), nullable=False, index=True)
    agent_id = Column(String(36), ForeignKey("agents.id", ondelete="RESTRICT"), nullable=False)
    invoice_number = Column(String(30), nullable=False)

    date_from = Column(Date, nullable=True)
    date_to = Column(Date, nullable=True)
    total_amount = Column(Numeric(12, 2), default=0)
    status = Column(String(20), default=InvoiceStatus.DRAFT.value, nullable=False)

    due_date = Column(Date, nullable=True)
    due_days = Column(Integer, nullable=True)
    notes = Column(Text, nullable=True)

    sent_at = Column(DateTime, nullable=True)
    paid_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    agent = relationship("Agent")
    items = relationship("InvoiceItem", back_populates="invoice", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("company_id", "invoice_number", name="uq_invoice_company_number"),
    )

    @property
    def is_active(self) -> bool:
        return self.status != InvoiceStatus.VOID.value

    def __repr__(self):
        return f"<Invoice {self.invoice_number} ({self.status})>"


class InvoiceItem(Base):
    """
    Links one booking to one invoice.

    A booking may sit on several invoices historically, but on at most one
    non-void invoice at a time. That rule is enforced by the settlement
    service, not by a storage constraint.
    """
    __tablename__ = "invoice_items"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    invoice_id = Column(String(36), ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False)
    booking_id = Column(String(36), ForeignKey("bookings.id", ondelete="RESTRICT"), nullable=False)
    amount = Column(Numeric(10, 2), default=0)
    created_at = Column(DateTime, default=datetime.utcnow)

    invoice = relationship("Invoice", back_populates="items")
    booking = relationship("Booking")

    __table_args__ = (
        UniqueConstraint("invoice_id", "booking_id", name="uq_invoice_item_invoice_booking"),
        Index("ix_invoice_item_booking", "booking_id"),
    )
