"""
Daily Manifest Compiler

Merges a day's bookings with the boat locks of that day (and optionally with
resolved prices) into one derived, non-persisted manifest.

Effective guide/restaurant of a booking:
1. Booking on a boat that has a lock -> the lock's guide/restaurant
2. Otherwise the booking's own guide_id/restaurant_id, when set
3. Otherwise unassigned

Rows are ordered by pickup time (HH:MM, missing last), then customer name,
then booking id, independent of the order the store returns them in.
"""

import enum
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..config import settings
from ..models.booking import Booking, PaymentType
from ..models.resources import Guide, Restaurant
from ..exceptions import ValidationError
from ..utils.db_helpers import store_guard
from ..utils.formatting import normalize_pickup_time, parse_activity_date, pickup_time_range
from ..utils.logging_config import get_logger
from .assignment_store import BoatAssignment, ResourceLockStore
from .booking_queries import operational_bookings
from .pricing_resolver import PricingResolver, ResolvedPrice, ZERO

logger = get_logger(__name__)

UNASSIGNED = "Unassigned"
DIRECT_AGENT_LABEL = "Direct"

PAYMENT_LABELS = {
    PaymentType.FOC.value: "FOC",
    PaymentType.INSP.value: "INSP",
}


# ============================================================================
# EFFECTIVE ASSIGNMENT
# ============================================================================

class AssignmentSource(str, enum.Enum):
    LOCKED = "locked"
    DIRECT_OVERRIDE = "direct_override"
    UNASSIGNED = "unassigned"


@dataclass(frozen=True)
class EffectiveAssignment:
    """Where a row's guide/restaurant came from, and what they are"""
    source: AssignmentSource
    guide: Optional[Guide] = None
    restaurant: Optional[Restaurant] = None

    @classmethod
    def locked(cls, guide: Optional[Guide], restaurant: Optional[Restaurant]) -> "EffectiveAssignment":
        return cls(AssignmentSource.LOCKED, guide, restaurant)

    @classmethod
    def direct_override(cls, guide: Optional[Guide], restaurant: Optional[Restaurant]) -> "EffectiveAssignment":
        return cls(AssignmentSource.DIRECT_OVERRIDE, guide, restaurant)

    @classmethod
    def unassigned(cls) -> "EffectiveAssignment":
        return cls(AssignmentSource.UNASSIGNED)

    @property
    def guide_id(self) -> Optional[str]:
        return self.guide.id if self.guide is not None else None

    @property
    def restaurant_id(self) -> Optional[str]:
        return self.restaurant.id if self.restaurant is not None else None


def resolve_effective_assignment(booking: Booking, locks: Dict[str, BoatAssignment]) -> EffectiveAssignment:
    lock = locks.get(booking.boat_id) if booking.boat_id else None
    if lock is not None:
        return EffectiveAssignment.locked(lock.guide, lock.restaurant)
    if booking.guide_id or booking.restaurant_id:
        return EffectiveAssignment.direct_override(booking.guide, booking.restaurant)
    return EffectiveAssignment.unassigned()


# ============================================================================
# ROWS AND GROUPS
# ============================================================================

def _name(obj) -> str:
    return obj.display_name if obj is not None else ""


@dataclass
class DailyManifestRow:
    booking_id: str
    booking_number: str
    voucher_number: str
    customer_name: str
    customer_phone: str
    customer_email: str
    status: str

    program_id: str
    program_name: str
    adults: int
    children: int
    infants: int

    pickup_time: str  # normalised HH:MM, "" when unset
    pickup_window: str
    hotel_id: Optional[str]
    hotel_name: str
    room_number: str
    custom_pickup_location: str

    driver_id: Optional[str]
    driver_name: str
    boat_id: Optional[str]
    boat_name: str
    boat_capacity: int
    boat_captain: str
    assignment: EffectiveAssignment

    agent_id: Optional[str]
    agent_name: str
    agent_staff_name: str
    is_direct_booking: bool
    payment_type: str
    payment_label: str
    collect_money: Decimal
    notes: str

    price: Optional[Decimal] = None
    price_breakdown: Optional[dict] = None
    price_error: Optional[str] = None

    @property
    def total_pax(self) -> int:
        return self.adults + self.children + self.infants

    @property
    def guide_id(self) -> Optional[str]:
        return self.assignment.guide_id

    @property
    def restaurant_id(self) -> Optional[str]:
        return self.assignment.restaurant_id

    @property
    def guide_name(self) -> str:
        return _name(self.assignment.guide)

    @property
    def restaurant_name(self) -> str:
        return _name(self.assignment.restaurant)

    @property
    def pickup_location(self) -> str:
        """Hotel when known, the free-text location otherwise"""
        return self.hotel_name or self.custom_pickup_location

    def sort_key(self) -> Tuple:
        return (
            0 if self.pickup_time else 1,
            self.pickup_time,
            self.customer_name.casefold(),
            self.customer_name,
            self.booking_id,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "booking_id": self.booking_id,
            "booking_number": self.booking_number,
            "voucher_number": self.voucher_number,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "status": self.status,
            "program_id": self.program_id,
            "program_name": self.program_name,
            "adults": self.adults,
            "children": self.children,
            "infants": self.infants,
            "total_pax": self.total_pax,
            "pickup_time": self.pickup_time,
            "pickup_window": self.pickup_window,
            "hotel_name": self.hotel_name,
            "room_number": self.room_number,
            "pickup_location": self.pickup_location,
            "driver_id": self.driver_id,
            "driver_name": self.driver_name,
            "boat_id": self.boat_id,
            "boat_name": self.boat_name,
            "guide_id": self.guide_id,
            "guide_name": self.guide_name,
            "restaurant_id": self.restaurant_id,
            "restaurant_name": self.restaurant_name,
            "assignment_source": self.assignment.source.value,
            "agent_id": self.agent_id,
            "agent_name": self.agent_name,
            "agent_staff_name": self.agent_staff_name,
            "is_direct_booking": self.is_direct_booking,
            "payment_label": self.payment_label,
            "collect_money": str(self.collect_money),
            "notes": self.notes,
            "price": str(self.price) if self.price is not None else None,
            "price_error": self.price_error,
        }


@dataclass
class ManifestTotals:
    bookings: int = 0
    adults: int = 0
    children: int = 0
    infants: int = 0
    collect_money: Decimal = ZERO

    @property
    def total_pax(self) -> int:
        return self.adults + self.children + self.infants

    @classmethod
    def from_rows(cls, rows: List[DailyManifestRow]) -> "ManifestTotals":
        totals = cls()
        for row in rows:
            totals.bookings += 1
            totals.adults += row.adults
            totals.children += row.children
            totals.infants += row.infants
            totals.collect_money += row.collect_money
        return totals

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bookings": self.bookings,
            "adults": self.adults,
            "children": self.children,
            "infants": self.infants,
            "total_pax": self.total_pax,
            "collect_money": str(self.collect_money),
        }


@dataclass
class ManifestGroup:
    key: Optional[str]
    label: str
    rows: List[DailyManifestRow] = field(default_factory=list)
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def totals(self) -> ManifestTotals:
        return ManifestTotals.from_rows(self.rows)

    @property
    def is_unassigned(self) -> bool:
        return self.key is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "label": self.label,
            "details": self.details,
            "totals": self.totals.to_dict(),
            "rows": [row.to_dict() for row in self.rows],
        }


@dataclass
class Manifest:
    company_id: str
    activity_date: date
    rows: List[DailyManifestRow]
    locks: Dict[str, BoatAssignment] = field(default_factory=dict)
    includes_pricing: bool = False

    @property
    def totals(self) -> ManifestTotals:
        return ManifestTotals.from_rows(self.rows)

    # ============ Grouped views ============

    def by_boat(self) -> List[ManifestGroup]:
        groups = self._group(lambda r: r.boat_id, lambda r: r.boat_name)
        for group in groups:
            if group.key is None:
                continue
            lock = self.locks.get(group.key)
            capacity = group.rows[0].boat_capacity
            group.details = {
                "captain_name": group.rows[0].boat_captain,
                "capacity": capacity,
                "total_pax": group.totals.total_pax,
                "over_capacity": bool(capacity) and group.totals.total_pax > capacity,
                "guide_name": _name(lock.guide) if lock else "",
                "restaurant_name": _name(lock.restaurant) if lock else "",
                "is_locked": lock.is_locked if lock else False,
            }
        return groups

    def by_pickup_time(self) -> List[ManifestGroup]:
        return self._group(lambda r: r.pickup_time or None, lambda r: r.pickup_time, sort_by_label=False)

    def by_driver(self) -> List[ManifestGroup]:
        return self._group(lambda r: r.driver_id, lambda r: r.driver_name)

    def by_program(self) -> List[ManifestGroup]:
        return self._group(lambda r: r.program_id, lambda r: r.program_name)

    def by_agent(self) -> List[ManifestGroup]:
        """Direct bookings form their own "Direct" group, after the agents"""
        groups = self._group(
            lambda r: None if r.is_direct_booking or not r.agent_id else r.agent_id,
            lambda r: r.agent_name,
        )
        for group in groups:
            if group.key is None:
                group.key = "direct"
                group.label = DIRECT_AGENT_LABEL
        return groups

    def group_by(self, view: str) -> List[ManifestGroup]:
        views: Dict[str, Callable[[], List[ManifestGroup]]] = {
            "boat": self.by_boat,
            "pickup_time": self.by_pickup_time,
            "driver": self.by_driver,
            "agent": self.by_agent,
            "program": self.by_program,
        }
        if view not in views:
            raise ValidationError(f"Unknown manifest view: {view!r}. Use one of {', '.join(views)}")
        return views[view]()

    def _group(
        self,
        key_fn: Callable[[DailyManifestRow], Optional[str]],
        label_fn: Callable[[DailyManifestRow], str],
        sort_by_label: bool = True,
    ) -> List[ManifestGroup]:
        """Rows keep manifest order inside a group; keyless rows go to "Unassigned" last"""
        groups: Dict[Optional[str], ManifestGroup] = {}
        for row in self.rows:
            key = key_fn(row)
            group = groups.get(key)
            if group is None:
                label = label_fn(row) if key is not None else UNASSIGNED
                group = groups[key] = ManifestGroup(key=key, label=label or key)
            group.rows.append(row)

        assigned = [g for k, g in groups.items() if k is not None]
        if sort_by_label:
            assigned.sort(key=lambda g: (g.label.casefold(), g.key))
        else:
            assigned.sort(key=lambda g: g.key)
        if None in groups:
            assigned.append(groups[None])
        return assigned

    def to_dict(self) -> Dict[str, Any]:
        return {
            "company_id": self.company_id,
            "activity_date": self.activity_date.isoformat(),
            "includes_pricing": self.includes_pricing,
            "totals": self.totals.to_dict(),
            "rows": [row.to_dict() for row in self.rows],
        }


# ============================================================================
# COMPILER
# ============================================================================

class ManifestCompiler:
    """
    Stateless per call. With a session factory the bookings and the locks
    are read concurrently on separate sessions; a failure of either read
    aborts the whole compilation.
    """

    def __init__(
        self,
        db: Session,
        session_factory: Optional[Callable[[], Session]] = None,
        pricing: Optional[PricingResolver] = None,
        parallel: Optional[bool] = None,
    ):
        self.db = db
        self.session_factory = session_factory
        self.pricing = pricing or PricingResolver(db)
        self.parallel = settings.manifest_parallel_reads if parallel is None else parallel

    def compile(self, company_id: str, activity_date, include_pricing: bool = False) -> Manifest:
        if not company_id:
            raise ValidationError("company_id is required")
        day = parse_activity_date(activity_date)
        started = time.perf_counter()

        with store_guard(self.db, "compile manifest"):
            bookings, locks = self._read(company_id, day)

        prices: Dict[str, Any] = {}
        if include_pricing:
            prices = self.pricing.price_bookings(bookings)

        rows = [self._build_row(booking, locks, prices.get(booking.id)) for booking in bookings]
        rows.sort(key=DailyManifestRow.sort_key)

        manifest = Manifest(
            company_id=company_id,
            activity_date=day,
            rows=rows,
            locks=locks,
            includes_pricing=include_pricing,
        )
        duration_ms = round((time.perf_counter() - started) * 1000, 2)
        logger.manifest_compiled(company_id, day.isoformat(), len(rows), duration_ms)
        return manifest

    # ============ Reads ============

    def _read(self, company_id: str, day: date) -> Tuple[List[Booking], Dict[str, BoatAssignment]]:
        if not (self.parallel and self.session_factory):
            return (
                operational_bookings(self.db, company_id, day),
                ResourceLockStore(self.db).get_assignments_for_date(company_id, day),
            )

        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="manifest") as pool:
            bookings_future = pool.submit(self._isolated, operational_bookings, company_id, day)
            locks_future = pool.submit(
                self._isolated,
                lambda session, c, d: ResourceLockStore(session).get_assignments_for_date(c, d),
                company_id,
                day,
            )
            # Both reads finish before either result is used; any error propagates
            bookings = bookings_future.result()
            locks = locks_future.result()
        return bookings, locks

    def _isolated(self, read, company_id: str, day: date):
        session = self.session_factory()
        try:
            return read(session, company_id, day)
        finally:
            session.close()

    # ============ Rows ============

    def _build_row(
        self,
        booking: Booking,
        locks: Dict[str, BoatAssignment],
        resolved: Optional[Any],
    ) -> DailyManifestRow:
        pickup_time = self._pickup_time(booking)
        agent_name = DIRECT_AGENT_LABEL if booking.is_direct_booking else _agent_name(booking)

        row = DailyManifestRow(
            booking_id=booking.id,
            booking_number=booking.booking_number or "",
            voucher_number=booking.voucher_number or "",
            customer_name=booking.customer_name or "",
            customer_phone=booking.customer_phone or "",
            customer_email=booking.customer_email or "",
            status=booking.status,
            program_id=booking.program_id,
            program_name=_name(booking.program),
            adults=booking.adults or 0,
            children=booking.children or 0,
            infants=booking.infants or 0,
            pickup_time=pickup_time,
            pickup_window=pickup_time_range(pickup_time, settings.pickup_window_minutes) if pickup_time else "",
            hotel_id=booking.hotel_id,
            hotel_name=booking.hotel.name if booking.hotel else "",
            room_number=booking.room_number or "",
            custom_pickup_location=booking.custom_pickup_location or "",
            driver_id=booking.driver_id,
            driver_name=_name(booking.driver),
            boat_id=booking.boat_id,
            boat_name=booking.boat.name if booking.boat else "",
            boat_capacity=(booking.boat.capacity or 0) if booking.boat else 0,
            boat_captain=(booking.boat.captain_name or "") if booking.boat else "",
            assignment=resolve_effective_assignment(booking, locks),
            agent_id=booking.agent_id,
            agent_name=agent_name,
            agent_staff_name=_staff_name(booking),
            is_direct_booking=bool(booking.is_direct_booking),
            payment_type=booking.payment_type or PaymentType.REGULAR.value,
            payment_label=PAYMENT_LABELS.get(booking.payment_type, ""),
            collect_money=Decimal(str(booking.collect_money or 0)),
            notes=booking.notes or "",
        )

        if isinstance(resolved, ResolvedPrice):
            row.price = resolved.amount
            row.price_breakdown = resolved.breakdown.to_dict()
        elif resolved is not None:
            row.price_error = str(resolved)
        return row

    @staticmethod
    def _pickup_time(booking: Booking) -> str:
        try:
            return normalize_pickup_time(booking.pickup_time)
        except ValidationError:
            logger.warning(f"Booking {booking.id} has an unreadable pickup time {booking.pickup_time!r}")
            return ""


def _agent_name(booking: Booking) -> str:
    return booking.agent.name if booking.agent else ""


def _staff_name(booking: Booking) -> str:
    staff = booking.agent_staff
    if staff is None:
        return ""
    return staff.full_name or ""


def get_manifest_compiler(db: Session, session_factory=None) -> ManifestCompiler:
    """Factory function to get a manifest compiler instance"""
    return ManifestCompiler(db, session_factory=session_factory)
