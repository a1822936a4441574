"""
Pricing Resolver

Computes what an agent (or a direct customer) owes for one booking from:
- Program defaults (flat base_price, or adult/child selling prices)
- The agent's per-program override, when the booking has an agent

Pricing Formula:
1. flat:     amount = override.agent_price ?? program.base_price
2. per_head: adult_rate = override.adult_agent_price ?? program.adult_selling_price
             child_rate = override.child_agent_price ?? program.child_selling_price
             amount = adults * adult_rate + children * child_rate   (infants free)
3. A booking without an agent always uses program defaults.

All arithmetic is Decimal, rounded to 2 places (ROUND_HALF_UP).
"""

from dataclasses import dataclass, asdict
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Optional, Tuple, Union

from sqlalchemy.orm import Session

from ..config import settings
from ..models.agent import AgentPricing
from ..models.booking import Booking
from ..models.program import Program, PricingType
from ..exceptions import MissingPricingData, ValidationError, TourOpsError
from ..utils.db_helpers import store_guard

TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0")

# Older program rows use the booking-form vocabulary
PRICING_TYPE_ALIASES = {
    "flat": PricingType.FLAT,
    "single": PricingType.FLAT,
    "per_head": PricingType.PER_HEAD,
    "adult_child": PricingType.PER_HEAD,
}


@dataclass
class PriceBreakdown:
    """Rates actually used, kept so invoices and displays never re-resolve"""
    pricing_type: str
    source: str  # "agent_override" | "program_default"
    adults: int
    children: int
    infants: int
    flat_rate: Optional[Decimal]
    adult_rate: Optional[Decimal]
    child_rate: Optional[Decimal]
    infant_rate: Decimal
    total: Decimal
    currency: str

    def to_dict(self) -> dict:
        data = asdict(self)
        for key in ("flat_rate", "adult_rate", "child_rate", "infant_rate", "total"):
            if data[key] is not None:
                data[key] = str(data[key])
        return data


@dataclass
class ResolvedPrice:
    amount: Decimal
    breakdown: PriceBreakdown

    @property
    def amount_minor(self) -> int:
        return to_minor_units(self.amount)


def to_decimal(value) -> Optional[Decimal]:
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def to_minor_units(amount: Union[Decimal, int, float, str], exponent: int = 2) -> int:
    """1250.50 -> 125050 (satang/cents) for payment collaborators"""
    value = to_decimal(amount) * (Decimal(10) ** exponent)
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(amount_minor: int, exponent: int = 2) -> Decimal:
    return (Decimal(int(amount_minor)) / (Decimal(10) ** exponent)).quantize(
        Decimal(1).scaleb(-exponent)
    )


def normalize_pricing_type(value) -> PricingType:
    key = value.value if isinstance(value, PricingType) else str(value or "").strip().lower()
    try:
        return PRICING_TYPE_ALIASES[key]
    except KeyError:
        raise ValidationError(f"Unknown pricing type: {value!r}")


def resolve_price(booking, program, agent_override=None, currency: Optional[str] = None) -> ResolvedPrice:
    """
    Resolve the price of one booking.

    Args:
        booking: anything with agent_id, adults, children, infants
        program: anything with pricing_type, base_price, adult/child_selling_price
        agent_override: the AgentPricing row for (booking.agent_id, program.id), if any

    Raises:
        MissingPricingData: a rate needed to price the booking is not configured
        ValidationError: the override belongs to another agent/program
    """
    if program is None:
        raise ValidationError("program is required to resolve a price")

    pricing_type = normalize_pricing_type(program.pricing_type)
    program_id = getattr(program, "id", None)

    # Direct bookings never use an override
    override = agent_override if getattr(booking, "agent_id", None) else None
    if override is not None:
        _check_override_matches(booking, program, override)

    adults = int(getattr(booking, "adults", 0) or 0)
    children = int(getattr(booking, "children", 0) or 0)
    infants = int(getattr(booking, "infants", 0) or 0)
    if adults < 0 or children < 0 or infants < 0:
        raise ValidationError("passenger counts cannot be negative")

    if pricing_type == PricingType.FLAT:
        override_rate = to_decimal(override.agent_price) if override is not None else None
        flat_rate = override_rate if override_rate is not None else to_decimal(program.base_price)
        if flat_rate is None:
            raise MissingPricingData(
                f"Program {program_id} has no base price configured", program_id=program_id
            )
        source = "agent_override" if override_rate is not None else "program_default"
        total = flat_rate
        adult_rate = child_rate = None
    else:
        program_adult = to_decimal(program.adult_selling_price)
        program_child = to_decimal(program.child_selling_price)
        if program_adult is None and program_child is None:
            raise MissingPricingData(
                f"Program {program_id} is priced per head but has no adult or child price",
                program_id=program_id,
            )

        override_adult = to_decimal(override.adult_agent_price) if override is not None else None
        override_child = to_decimal(override.child_agent_price) if override is not None else None
        adult_rate = override_adult if override_adult is not None else program_adult
        child_rate = override_child if override_child is not None else program_child

        if adults and adult_rate is None:
            raise MissingPricingData(
                f"Program {program_id} has no adult price for {adults} adult(s)", program_id=program_id
            )
        if children and child_rate is None:
            raise MissingPricingData(
                f"Program {program_id} has no child price for {children} child(ren)", program_id=program_id
            )

        source = "agent_override" if (override_adult is not None or override_child is not None) else "program_default"
        total = adults * (adult_rate or ZERO) + children * (child_rate or ZERO)
        flat_rate = None

    total = total.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)

    breakdown = PriceBreakdown(
        pricing_type=pricing_type.value,
        source=source,
        adults=adults,
        children=children,
        infants=infants,
        flat_rate=flat_rate,
        adult_rate=adult_rate,
        child_rate=child_rate,
        infant_rate=ZERO,
        total=total,
        currency=currency or settings.currency,
    )
    return ResolvedPrice(amount=total, breakdown=breakdown)


def _check_override_matches(booking, program, override) -> None:
    override_agent = getattr(override, "agent_id", None)
    override_program = getattr(override, "program_id", None)
    if override_agent is not None and override_agent != booking.agent_id:
        raise ValidationError("Agent pricing override belongs to a different agent")
    program_id = getattr(program, "id", None)
    if override_program is not None and program_id is not None and override_program != program_id:
        raise ValidationError("Agent pricing override belongs to a different program")


class PricingResolver:
    """
    Database-backed resolver: looks up programs and agent overrides.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_override(self, agent_id: Optional[str], program_id: str) -> Optional[AgentPricing]:
        if not agent_id:
            return None
        with store_guard(self.db, "get_override"):
            return self.db.query(AgentPricing).filter(
                AgentPricing.agent_id == agent_id,
                AgentPricing.program_id == program_id,
            ).first()

    def load_overrides(self, agent_ids: Iterable[str]) -> Dict[Tuple[str, str], AgentPricing]:
        """All overrides of the given agents keyed by (agent_id, program_id)"""
        agent_ids = sorted({a for a in agent_ids if a})
        if not agent_ids:
            return {}
        with store_guard(self.db, "load_overrides"):
            rows = self.db.query(AgentPricing).filter(AgentPricing.agent_id.in_(agent_ids)).all()
        return {(row.agent_id, row.program_id): row for row in rows}

    def resolve_price(self, booking, program, agent_override=None) -> ResolvedPrice:
        return resolve_price(booking, program, agent_override)

    def resolve_for_booking(self, booking: Booking) -> ResolvedPrice:
        """Resolve using the booking's own program and its agent's override"""
        program = booking.program
        if program is None:
            with store_guard(self.db, "resolve_for_booking"):
                program = self.db.query(Program).filter(Program.id == booking.program_id).first()
        override = self.get_override(booking.agent_id, booking.program_id)
        return resolve_price(booking, program, override)

    def price_bookings(
        self, bookings: List[Booking]
    ) -> Dict[str, Union[ResolvedPrice, TourOpsError]]:
        """
        Resolve many bookings with one override query.

        Failures are returned per booking, not raised, so a report can show
        which bookings cannot be priced.
        """
        overrides = self.load_overrides(b.agent_id for b in bookings)
        results: Dict[str, Union[ResolvedPrice, TourOpsError]] = {}
        for booking in bookings:
            override = overrides.get((booking.agent_id, booking.program_id))
            try:
                results[booking.id] = resolve_price(booking, booking.program, override)
            except (MissingPricingData, ValidationError) as e:
                results[booking.id] = e
        return results


def get_pricing_resolver(db: Session) -> PricingResolver:
    """Factory function to get a pricing resolver instance"""
    return PricingResolver(db)
