"""
Resource Lock Store

Owns the day-scoped pairing boat -> (guide, restaurant) per company.

- At most one lock per (company_id, activity_date, boat_id). Writes are an
  atomic upsert on that key, so re-assignment replaces and never duplicates.
- Concurrent operators assigning the same boat race last-write-wins.
- Reads never synthesize defaults: a boat without a lock has no entry.
"""

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session, joinedload

from ..models.assignment_lock import BoatAssignmentLock
from ..models.booking import Booking
from ..models.resources import Boat, Guide, Restaurant
from ..models.program import Program
from ..exceptions import ValidationError, NotFoundError, missing_ids
from ..utils.db_helpers import is_postgres, store_guard
from ..utils.formatting import parse_activity_date
from ..utils.logging_config import get_logger
from .booking_queries import booking_query

logger = get_logger(__name__)


@dataclass
class BoatAssignment:
    """Read model of one lock row with its resolved guide/restaurant"""
    boat_id: str
    activity_date: date
    guide_id: Optional[str]
    restaurant_id: Optional[str]
    program_id: Optional[str] = None
    is_locked: bool = False
    boat: Optional[Boat] = None
    guide: Optional[Guide] = None
    restaurant: Optional[Restaurant] = None

    @classmethod
    def from_lock(cls, lock: BoatAssignmentLock) -> "BoatAssignment":
        return cls(
            boat_id=lock.boat_id,
            activity_date=lock.activity_date,
            guide_id=lock.guide_id,
            restaurant_id=lock.restaurant_id,
            program_id=lock.program_id,
            is_locked=bool(lock.is_locked),
            boat=lock.boat,
            guide=lock.guide,
            restaurant=lock.restaurant,
        )


@dataclass
class GuideAssignment:
    """What a guide sees for one day: the boat, its restaurant and passengers"""
    boat: Boat
    restaurant: Optional[Restaurant]
    activity_date: date
    customers: List[Booking] = field(default_factory=list)

    @property
    def total_pax(self) -> int:
        return sum(b.total_pax for b in self.customers)


class ResourceLockStore:
    """
    Boat assignment locks for one database session.

    Usage:
        store = ResourceLockStore(db)
        store.set_assignment(company_id, "2026-01-21", boat_id, guide_id, restaurant_id)
    """

    def __init__(self, db: Session):
        self.db = db

    # ============ Writes ============

    def set_assignment(
        self,
        company_id: str,
        activity_date,
        boat_id: str,
        guide_id: Optional[str] = None,
        restaurant_id: Optional[str] = None,
        program_id: Optional[str] = None,
        is_locked: bool = False,
    ) -> BoatAssignment:
        """
        Upsert the lock for (company, date, boat).

        Any previous guide/restaurant pairing for that key is replaced.

        Raises:
            ValidationError: boat_id/company_id missing, date invalid, or a
                referenced boat/guide/restaurant/program is not the company's
        """
        if not company_id:
            raise ValidationError("company_id is required")
        if not boat_id:
            raise ValidationError("boat_id is required")
        day = parse_activity_date(activity_date)

        with store_guard(self.db, "set_assignment"):
            self._validate_refs(company_id, boat_id, guide_id, restaurant_id, program_id)

            now = datetime.utcnow()
            values = {
                "company_id": company_id,
                "activity_date": day,
                "boat_id": boat_id,
                "guide_id": guide_id,
                "restaurant_id": restaurant_id,
                "program_id": program_id,
                "is_locked": bool(is_locked),
                "locked_at": now if is_locked else None,
                "updated_at": now,
            }
            self._upsert(values)
            self.db.commit()

            lock = self._get_lock(company_id, day, boat_id)

        logger.assignment_set(company_id, day.isoformat(), boat_id, guide_id, restaurant_id)
        return BoatAssignment.from_lock(lock)

    def clear_assignment(self, company_id: str, activity_date, boat_id: str) -> bool:
        """Remove the lock for (company, date, boat). Returns whether one existed."""
        if not boat_id:
            raise ValidationError("boat_id is required")
        day = parse_activity_date(activity_date)

        with store_guard(self.db, "clear_assignment"):
            deleted = self.db.query(BoatAssignmentLock).filter(
                BoatAssignmentLock.company_id == company_id,
                BoatAssignmentLock.activity_date == day,
                BoatAssignmentLock.boat_id == boat_id,
            ).delete(synchronize_session=False)
            self.db.commit()

        if deleted:
            logger.info(f"Boat assignment cleared: {boat_id} on {day.isoformat()}")
        return bool(deleted)

    def assign_boat(self, company_id: str, booking_ids: Iterable[str], boat_id: Optional[str]) -> int:
        """
        Put bookings on a boat (or take them off with boat_id=None).

        Raises:
            NotFoundError: a booking id is not one of the company's bookings
            ValidationError: the boat is not the company's
        """
        booking_ids = list(dict.fromkeys(booking_ids))
        if not booking_ids:
            return 0

        with store_guard(self.db, "assign_boat"):
            if boat_id is not None:
                self._validate_refs(company_id, boat_id, None, None, None)

            bookings = self.db.query(Booking).filter(
                Booking.company_id == company_id,
                Booking.id.in_(booking_ids),
                Booking.deleted_at.is_(None),
            ).all()

            unknown = missing_ids(booking_ids, [b.id for b in bookings])
            if unknown:
                raise NotFoundError(f"Unknown bookings: {', '.join(unknown)}")

            changed = 0
            for booking in bookings:
                if booking.boat_id != boat_id:
                    booking.boat_id = boat_id
                    changed += 1
            self.db.commit()

        logger.info(f"Assigned {changed} booking(s) to boat {boat_id}")
        return changed

    # ============ Reads ============

    def get_assignments_for_date(self, company_id: str, activity_date) -> Dict[str, BoatAssignment]:
        """Every lock of the day keyed by boat_id. Boats without a lock are absent."""
        day = parse_activity_date(activity_date)

        with store_guard(self.db, "get_assignments_for_date"):
            locks = self.db.query(BoatAssignmentLock).options(
                joinedload(BoatAssignmentLock.boat),
                joinedload(BoatAssignmentLock.guide),
                joinedload(BoatAssignmentLock.restaurant),
            ).filter(
                BoatAssignmentLock.company_id == company_id,
                BoatAssignmentLock.activity_date == day,
            ).all()

        return {lock.boat_id: BoatAssignment.from_lock(lock) for lock in locks}

    def get_assignments_for_guide(
        self,
        guide_id: str,
        activity_date,
        company_id: Optional[str] = None,
        include_customers: bool = True,
    ) -> List[GuideAssignment]:
        """
        Boats a guide leads on a date, with the restaurant and passengers.

        Returns an empty list when the guide has nothing that day.
        """
        if not guide_id:
            raise ValidationError("guide_id is required")
        day = parse_activity_date(activity_date)

        with store_guard(self.db, "get_assignments_for_guide"):
            query = self.db.query(BoatAssignmentLock).options(
                joinedload(BoatAssignmentLock.boat),
                joinedload(BoatAssignmentLock.restaurant),
            ).filter(
                BoatAssignmentLock.guide_id == guide_id,
                BoatAssignmentLock.activity_date == day,
            )
            if company_id:
                query = query.filter(BoatAssignmentLock.company_id == company_id)
            locks = query.all()

            if not locks:
                return []

            customers_by_boat: Dict[str, List[Booking]] = {}
            if include_customers:
                for lock in locks:
                    customers_by_boat[lock.boat_id] = (
                        booking_query(self.db, lock.company_id, activity_date=day, boat_ids=[lock.boat_id])
                        .order_by(Booking.customer_name)
                        .all()
                    )

        assignments = [
            GuideAssignment(
                boat=lock.boat,
                restaurant=lock.restaurant,
                activity_date=day,
                customers=customers_by_boat.get(lock.boat_id, []),
            )
            for lock in locks
        ]
        assignments.sort(key=lambda a: (a.boat.name if a.boat else ""))
        return assignments

    # ============ Internals ============

    def _get_lock(self, company_id: str, day: date, boat_id: str) -> BoatAssignmentLock:
        lock = self.db.query(BoatAssignmentLock).options(
            joinedload(BoatAssignmentLock.boat),
            joinedload(BoatAssignmentLock.guide),
            joinedload(BoatAssignmentLock.restaurant),
        ).filter(
            BoatAssignmentLock.company_id == company_id,
            BoatAssignmentLock.activity_date == day,
            BoatAssignmentLock.boat_id == boat_id,
        ).populate_existing().one()
        return lock

    def _upsert(self, values: dict) -> None:
        """INSERT ... ON CONFLICT (company_id, activity_date, boat_id) DO UPDATE"""
        dialect = postgresql if is_postgres(self.db) else sqlite
        stmt = dialect.insert(BoatAssignmentLock).values(
            id=str(uuid.uuid4()), created_at=values["updated_at"], **values
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["company_id", "activity_date", "boat_id"],
            set_={
                "guide_id": stmt.excluded.guide_id,
                "restaurant_id": stmt.excluded.restaurant_id,
                "program_id": stmt.excluded.program_id,
                "is_locked": stmt.excluded.is_locked,
                "locked_at": stmt.excluded.locked_at,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        self.db.execute(stmt)

    def _validate_refs(
        self,
        company_id: str,
        boat_id: Optional[str],
        guide_id: Optional[str],
        restaurant_id: Optional[str],
        program_id: Optional[str],
    ) -> None:
        checks = (
            (Boat, boat_id, "boat"),
            (Guide, guide_id, "guide"),
            (Restaurant, restaurant_id, "restaurant"),
            (Program, program_id, "program"),
        )
        for model, ref_id, label in checks:
            if ref_id is None:
                continue
            exists = self.db.query(model.id).filter(
                model.id == ref_id,
                model.company_id == company_id,
            ).first()
            if exists is None:
                raise ValidationError(f"Unknown {label} for this company: {ref_id}")


def get_lock_store(db: Session) -> ResourceLockStore:
    """Factory function to get a lock store instance"""
    return ResourceLockStore(db)
