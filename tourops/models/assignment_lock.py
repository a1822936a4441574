"""
Boat Assignment Lock Model

The day-scoped pairing of one boat with a guide and a restaurant.
Exactly one row per (company_id, activity_date, boat_id); re-assignment
overwrites the row in place.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Date, ForeignKey, DateTime, Boolean, UniqueConstraint, Index
from sqlalchemy.orm import relationship
from ..database import Base


class BoatAssignmentLock(Base):
    __tablename__ = "boat_assignment_locks"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    company_id = Column(String(36), nullable=False)
    activity_date = Column(Date, nullable=False)
    boat_id = Column(String(36), ForeignKey("boats.id", ondelete="CASCADE"), nullable=False)

    program_id = Column(String(36), ForeignKey("programs.id", ondelete="SET NULL"), nullable=True)
    guide_id = Column(String(36), ForeignKey("guides.id", ondelete="SET NULL"), nullable=True)
    restaurant_id = Column(String(36), ForeignKey("restaurants.id", ondelete="SET NULL"), nullable=True)

    is_locked = Column(Boolean, default=False, nullable=False)
    locked_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    boat = relationship("Boat")
    program = relationship("Program")
    guide = relationship("Guide")
    restaurant = relationship("Restaurant")

    __table_args__ = (
        UniqueConstraint("company_id", "activity_date", "boat_id", name="uq_boat_lock_company_date_boat"),
        Index("ix_boat_lock_guide_date", "guide_id", "activity_date"),
    )

    def __repr__(self):
        return f"<BoatAssignmentLock boat={self.boat_id} date={self.activity_date}>"
