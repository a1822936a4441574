"""
Assignments API Router

Boat locks (boat -> guide + restaurant per day) and the "set boat" action.
"""

from datetime import date
from decimal import Decimal
from typing import List
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from ..database import get_db
from ..exceptions import ValidationError
from ..utils.dependencies import get_company_id
from ..utils.formatting import normalize_pickup_time
from ..utils.logging_config import get_logger
from ..utils.rate_limiter import limiter, get_rate_limit
from ..services.assignment_store import ResourceLockStore
from ..schemas.assignment import (
    AssignmentSet,
    BoatAssignmentResponse,
    BoatFanOut,
    GuideAssignmentResponse,
    GuideCustomer,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/api/assignments", tags=["Assignments"])


def _pickup_time(booking) -> str:
    try:
        return normalize_pickup_time(booking.pickup_time)
    except ValidationError:
        logger.warning(f"Booking {booking.id} has an unreadable pickup time {booking.pickup_time!r}")
        return ""


def _guide_customer(booking) -> GuideCustomer:
    return GuideCustomer(
        booking_id=booking.id,
        customer_name=booking.customer_name,
        adults=booking.adults or 0,
        children=booking.children or 0,
        infants=booking.infants or 0,
        hotel_name=booking.hotel.name if booking.hotel else booking.custom_pickup_location,
        pickup_time=_pickup_time(booking),
        program_name=booking.program.name if booking.program else None,
        agent_name=booking.agent.name if booking.agent else None,
        is_direct_booking=bool(booking.is_direct_booking),
        collect_money=booking.collect_money or Decimal("0"),
        notes=booking.notes,
    )


@router.get("", response_model=List[BoatAssignmentResponse])
async def list_assignments(
    activity_date: date = Query(...),
    company_id: str = Depends(get_company_id),
    db: Session = Depends(get_db)
):
    """Every boat lock of the day; boats without a lock are not listed"""
    assignments = ResourceLockStore(db).get_assignments_for_date(company_id, activity_date)
    return [
        BoatAssignmentResponse.from_assignment(a)
        for a in sorted(assignments.values(), key=lambda a: a.boat.name if a.boat else a.boat_id)
    ]


@router.put("", response_model=BoatAssignmentResponse)
@limiter.limit(get_rate_limit("assignment_write"))
async def set_assignment(
    request: Request,
    data: AssignmentSet,
    company_id: str = Depends(get_company_id),
    db: Session = Depends(get_db)
):
    """Set (or replace) the guide and restaurant of a boat for a date"""
    assignment = ResourceLockStore(db).set_assignment(
        company_id,
        data.activity_date,
        data.boat_id,
        guide_id=data.guide_id,
        restaurant_id=data.restaurant_id,
        program_id=data.program_id,
        is_locked=data.is_locked,
    )
    return BoatAssignmentResponse.from_assignment(assignment)


@router.delete("/{activity_date}/{boat_id}")
async def clear_assignment(
    activity_date: date,
    boat_id: str,
    company_id: str = Depends(get_company_id),
    db: Session = Depends(get_db)
):
    removed = ResourceLockStore(db).clear_assignment(company_id, activity_date, boat_id)
    return {"removed": removed}


@router.get("/guide/{guide_id}", response_model=List[GuideAssignmentResponse])
async def guide_assignments(
    guide_id: str,
    activity_date: date = Query(...),
    company_id: str = Depends(get_company_id),
    db: Session = Depends(get_db)
):
    """Guide portal: boats, restaurant and passengers for the day"""
    assignments = ResourceLockStore(db).get_assignments_for_guide(guide_id, activity_date, company_id=company_id)
    return [
        GuideAssignmentResponse(
            boat_id=a.boat.id,
            boat_name=a.boat.name,
            restaurant_id=a.restaurant.id if a.restaurant else None,
            restaurant_name=a.restaurant.name if a.restaurant else None,
            activity_date=a.activity_date,
            total_pax=a.total_pax,
            customers=[_guide_customer(b) for b in a.customers],
        )
        for a in assignments
    ]


@router.post("/bookings/boat")
@limiter.limit(get_rate_limit("assignment_write"))
async def assign_bookings_to_boat(
    request: Request,
    data: BoatFanOut,
    company_id: str = Depends(get_company_id),
    db: Session = Depends(get_db)
):
    """Put bookings on a boat (boat_id=null takes them off)"""
    updated = ResourceLockStore(db).assign_boat(company_id, data.booking_ids, data.boat_id)
    return {"updated": updated}
