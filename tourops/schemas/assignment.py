"""
Assignment Schemas

Pydantic models for boat lock requests and responses.
"""

from datetime import date
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator


class AssignmentSet(BaseModel):
    """Schema for setting the guide/restaurant of a boat on a date"""
    activity_date: date
    boat_id: str = Field(..., min_length=1, max_length=36)
    guide_id: Optional[str] = Field(None, max_length=36)
    restaurant_id: Optional[str] = Field(None, max_length=36)
    program_id: Optional[str] = Field(None, max_length=36)
    is_locked: bool = False

    @field_validator('guide_id', 'restaurant_id', 'program_id', mode='before')
    @classmethod
    def blank_to_none(cls, v):
        """Forms send "" for "no selection" """
        if isinstance(v, str) and not v.strip():
            return None
        return v


class BoatAssignmentResponse(BaseModel):
    boat_id: str
    activity_date: date
    guide_id: Optional[str] = None
    restaurant_id: Optional[str] = None
    program_id: Optional[str] = None
    is_locked: bool = False
    boat_name: Optional[str] = None
    guide_name: Optional[str] = None
    restaurant_name: Optional[str] = None

    @classmethod
    def from_assignment(cls, assignment) -> "BoatAssignmentResponse":
        return cls(
            boat_id=assignment.boat_id,
            activity_date=assignment.activity_date,
            guide_id=assignment.guide_id,
            restaurant_id=assignment.restaurant_id,
            program_id=assignment.program_id,
            is_locked=assignment.is_locked,
            boat_name=assignment.boat.name if assignment.boat else None,
            guide_name=assignment.guide.display_name if assignment.guide else None,
            restaurant_name=assignment.restaurant.name if assignment.restaurant else None,
        )


class BoatFanOut(BaseModel):
    """Put bookings on a boat, or take them off with boat_id=null"""
    booking_ids: List[str] = Field(..., min_length=1)
    boat_id: Optional[str] = Field(None, max_length=36)


class GuideCustomer(BaseModel):
    booking_id: str
    customer_name: str
    adults: int
    children: int
    infants: int
    hotel_name: Optional[str] = None
    pickup_time: str = ""
    program_name: Optional[str] = None
    agent_name: Optional[str] = None
    is_direct_booking: bool = False
    collect_money: Decimal = Decimal("0")
    notes: Optional[str] = None


class GuideAssignmentResponse(BaseModel):
    boat_id: str
    boat_name: str
    restaurant_id: Optional[str] = None
    restaurant_name: Optional[str] = None
    activity_date: date
    total_pax: int = 0
    customers: List[GuideCustomer] = []
