"""
Booking read interface.

Every query is scoped by company, excludes soft-deleted rows, and eagerly
resolves the booking's program/hotel/driver/boat/guide/restaurant/agent/
agent_staff so callers never trigger lazy loads per row.
"""

from datetime import date
from typing import Iterable, List, Optional

from sqlalchemy import false
from sqlalchemy.orm import Session, joinedload

from ..models.booking import Booking, INACTIVE_STATUSES, FINANCIAL_STATUSES
from ..exceptions import ValidationError

EAGER_RELATIONS = (
    Booking.program,
    Booking.hotel,
    Booking.driver,
    Booking.boat,
    Booking.guide,
    Booking.restaurant,
    Booking.agent,
    Booking.agent_staff,
)


def booking_query(
    db: Session,
    company_id: Optional[str],
    activity_date: Optional[date] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    statuses: Optional[Iterable[str]] = None,
    exclude_statuses: Optional[Iterable[str]] = INACTIVE_STATUSES,
    boat_ids: Optional[Iterable[str]] = None,
    agent_id: Optional[str] = None,
    eager: bool = True,
):
    """Build the filtered booking query; callers add ordering/limits."""
    if not company_id:
        raise ValidationError("company_id is required")

    query = db.query(Booking).filter(
        Booking.company_id == company_id,
        Booking.deleted_at.is_(None),
    )

    if activity_date is not None:
        query = query.filter(Booking.activity_date == activity_date)
    if date_from is not None:
        query = query.filter(Booking.activity_date >= date_from)
    if date_to is not None:
        query = query.filter(Booking.activity_date <= date_to)

    if statuses is not None:
        query = query.filter(Booking.status.in_(list(statuses)))
    if exclude_statuses:
        query = query.filter(Booking.status.notin_(list(exclude_statuses)))

    if boat_ids is not None:
        boat_ids = list(boat_ids)
        if not boat_ids:
            return query.filter(false())
        query = query.filter(Booking.boat_id.in_(boat_ids))

    if agent_id is not None:
        query = query.filter(Booking.agent_id == agent_id)

    if eager:
        query = query.options(*[joinedload(rel) for rel in EAGER_RELATIONS])

    return query


def operational_bookings(db: Session, company_id: str, activity_date: date) -> List[Booking]:
    """Bookings that physically run on the date: not void, not cancelled, not deleted."""
    return (
        booking_query(db, company_id, activity_date=activity_date)
        .order_by(Booking.customer_name)
        .all()
    )


def financial_bookings(
    db: Session,
    company_id: str,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    agent_id: Optional[str] = None,
) -> List[Booking]:
    """Bookings that count for money: confirmed or completed only."""
    return (
        booking_query(
            db,
            company_id,
            date_from=date_from,
            date_to=date_to,
            statuses=FINANCIAL_STATUSES,
            agent_id=agent_id,
        )
        .order_by(Booking.activity_date, Booking.customer_name)
        .all()
    )
