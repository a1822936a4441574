import uuid
from datetime import datetime
from sqlalchemy import Column, String, Date, Numeric, Text, ForeignKey, DateTime, Index, Integer, Boolean
from sqlalchemy.orm import relationship, validates
from ..database import Base
from ..exceptions import ValidationError
import enum


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    VOID = "void"


class PaymentType(str, enum.Enum):
    """How the customer pays for the tour"""
    REGULAR = "regular"
    FOC = "foc"      # Free of charge
    INSP = "insp"    # Inspection trip for partners


# Excluded from every operational and financial aggregation
INACTIVE_STATUSES = (BookingStatus.CANCELLED.value, BookingStatus.VOID.value)

# The only statuses that count towards revenue and agent statements
FINANCIAL_STATUSES = (BookingStatus.CONFIRMED.value, BookingStatus.COMPLETED.value)


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    company_id = Column(String(36), nullable=False, index=True)
    booking_number = Column(String(50), nullable=True)
    voucher_number = Column(String(50), nullable=True)

    program_id = Column(String(36), ForeignKey("programs.id", ondelete="RESTRICT"), nullable=False)
    agent_id = Column(String(36), ForeignKey("agents.id", ondelete="SET NULL"), nullable=True)
    agent_staff_id = Column(String(36), ForeignKey("agent_staff.id", ondelete="SET NULL"), nullable=True)
    hotel_id = Column(String(36), ForeignKey("hotels.id", ondelete="SET NULL"), nullable=True)
    driver_id = Column(String(36), ForeignKey("drivers.id", ondelete="SET NULL"), nullable=True)
    boat_id = Column(String(36), ForeignKey("boats.id", ondelete="SET NULL"), nullable=True)

    # Direct overrides, only consulted when the boat has no lock for the day
    # or when the booking has no boat at all
    guide_id = Column(String(36), ForeignKey("guides.id", ondelete="SET NULL"), nullable=True)
    restaurant_id = Column(String(36), ForeignKey("restaurants.id", ondelete="SET NULL"), nullable=True)

    customer_name = Column(String(200), nullable=False)
    customer_email = Column(String(255), nullable=True)
    customer_phone = Column(String(30), nullable=True)

    activity_date = Column(Date, nullable=False)
    adults = Column(Integer, default=0, nullable=False)
    children = Column(Integer, default=0, nullable=False)
    infants = Column(Integer, default=0, nullable=False)

    # Stored as entered, "HH:MM" or "HH:MM:SS"
    pickup_time = Column(String(8), nullable=True)
    custom_pickup_location = Column(String(255), nullable=True)
    room_number = Column(String(20), nullable=True)

    # Cash the driver/guide collects on pickup
    collect_money = Column(Numeric(10, 2), default=0)

    status = Column(String(20), default=BookingStatus.PENDING.value, nullable=False)
    payment_type = Column(String(20), default=PaymentType.REGULAR.value, nullable=False)
    is_direct_booking = Column(Boolean, default=False, nullable=False)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Soft Delete
    deleted_at = Column(DateTime, nullable=True, index=True)

    # Relationships
    program = relationship("Program")
    agent = relationship("Agent")
    agent_staff = relationship("AgentStaff")
    hotel = relationship("Hotel")
    driver = relationship("Driver")
    boat = relationship("Boat")
    guide = relationship("Guide")
    restaurant = relationship("Restaurant")

    __table_args__ = (
        Index("ix_booking_company_activity_date", "company_id", "activity_date"),
        Index("ix_booking_boat_activity_date", "boat_id", "activity_date"),
    )

    @validates("company_id")
    def validate_company_id(self, key, value):
        """company_id scopes every join and may never move to another tenant"""
        current = self.__dict__.get("company_id")
        if current is not None and value != current:
            raise ValidationError("company_id of a booking cannot be changed")
        return value

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def is_active(self) -> bool:
        return self.status not in INACTIVE_STATUSES and not self.is_deleted

    @property
    def total_pax(self) -> int:
        return (self.adults or 0) + (self.children or 0) + (self.infants or 0)

    def __repr__(self):
        return f"<Booking {self.customer_name} - {self.activity_date}>"
