"""
Pricing API Router
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session, joinedload

from ..database import get_db
from ..exceptions import NotFoundError
from ..models.booking import Booking
from ..utils.dependencies import get_company_id
from ..services.pricing_resolver import PricingResolver
from ..schemas.pricing import BookingPriceResponse, PriceBreakdownResponse

router = APIRouter(prefix="/api/pricing", tags=["Pricing"])


@router.get("/bookings/{booking_id}", response_model=BookingPriceResponse)
async def get_booking_price(
    booking_id: str,
    company_id: str = Depends(get_company_id),
    db: Session = Depends(get_db)
):
    """
    Resolve what the booking's agent (or the direct customer) owes.

    422 when the program has no rate that can price it.
    """
    booking = db.query(Booking).options(joinedload(Booking.program)).filter(
        Booking.id == booking_id,
        Booking.company_id == company_id,
        Booking.deleted_at.is_(None),
    ).first()
    if not booking:
        raise NotFoundError(f"Booking not found: {booking_id}")

    resolved = PricingResolver(db).resolve_for_booking(booking)
    return BookingPriceResponse(
        booking_id=booking.id,
        amount=resolved.amount,
        amount_minor=resolved.amount_minor,
        currency=resolved.breakdown.currency,
        breakdown=PriceBreakdownResponse.model_validate(resolved.breakdown),
    )
