"""
Pricing Schemas

Pydantic models for price resolution responses.
"""

from decimal import Decimal
from typing import Optional
from pydantic import BaseModel


class PriceBreakdownResponse(BaseModel):
    pricing_type: str
    source: str
    adults: int
    children: int
    infants: int
    flat_rate: Optional[Decimal] = None
    adult_rate: Optional[Decimal] = None
    child_rate: Optional[Decimal] = None
    infant_rate: Decimal
    total: Decimal
    currency: str

    class Config:
        from_attributes = True


class BookingPriceResponse(BaseModel):
    """Resolved price of one booking"""
    booking_id: str
    amount: Decimal
    amount_minor: int
    currency: str
    breakdown: PriceBreakdownResponse
