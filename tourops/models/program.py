"""
Program Model

A bookable tour product. Pricing is either flat (one price per booking) or
per head (adult and child selling prices; infants travel free).
"""

import uuid
import enum
from datetime import datetime
from sqlalchemy import Column, String, Numeric, DateTime, Text
from ..database import Base


class PricingType(str, enum.Enum):
    FLAT = "flat"
    PER_HEAD = "per_head"


class Program(Base):
    __tablename__ = "programs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    company_id = Column(String(36), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    nickname = Column(String(50), nullable=True)
    description = Column(Text, nullable=True)

    pricing_type = Column(String(20), default=PricingType.FLAT.value, nullable=False)
    base_price = Column(Numeric(10, 2), nullable=True)
    adult_selling_price = Column(Numeric(10, 2), nullable=True)
    child_selling_price = Column(Numeric(10, 2), nullable=True)

    default_pickup_time = Column(String(8), nullable=True)
    status = Column(String(20), default="active")

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def display_name(self) -> str:
        return self.nickname or self.name

    def __repr__(self):
        return f"<Program {self.name} ({self.pricing_type})>"
