"""
Finance views: what is left to invoice, what is invoiced but unpaid, agent
statements and revenue per program.

Only confirmed/completed bookings that are not soft-deleted count. Amounts of
billed bookings come from the stored invoice item; unbilled bookings are
priced through the Pricing Resolver. Bookings that cannot be priced are
reported, never counted as zero.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from ..models.agent import Agent
from ..models.booking import Booking
from ..models.invoice import InvoiceItem, InvoiceStatus
from ..exceptions import NotFoundError, ValidationError
from ..utils.db_helpers import store_guard
from .booking_queries import financial_bookings
from .pricing_resolver import PricingResolver, ResolvedPrice, ZERO
from .settlement_linker import SettlementLinker, can_be_invoiced

UNPAID_STATUSES = (InvoiceStatus.DRAFT.value, InvoiceStatus.SENT.value, InvoiceStatus.OVERDUE.value)


@dataclass
class FinanceSummary:
    amount_to_invoice: Decimal = ZERO
    bookings_to_invoice: int = 0
    invoiced_unpaid_amount: Decimal = ZERO
    invoices_awaiting_payment: int = 0
    unpriced_booking_ids: List[str] = field(default_factory=list)

    @property
    def total_unpaid(self) -> Decimal:
        return self.amount_to_invoice + self.invoiced_unpaid_amount


@dataclass
class StatementLine:
    booking: Booking
    amount: Optional[Decimal]
    billed: bool
    invoice_number: Optional[str] = None
    invoice_status: Optional[str] = None
    error: Optional[str] = None


@dataclass
class AgentStatement:
    agent: Agent
    date_from: Optional[date]
    date_to: Optional[date]
    lines: List[StatementLine] = field(default_factory=list)

    @property
    def total_amount(self) -> Decimal:
        return sum((line.amount for line in self.lines if line.amount is not None), ZERO)

    @property
    def billed_amount(self) -> Decimal:
        return sum((line.amount for line in self.lines if line.billed and line.amount is not None), ZERO)

    @property
    def unbilled_amount(self) -> Decimal:
        return self.total_amount - self.billed_amount

    @property
    def total_pax(self) -> int:
        return sum(line.booking.total_pax for line in self.lines)


@dataclass
class ProgramRevenue:
    program_id: str
    program_name: str
    bookings: int = 0
    pax: int = 0
    revenue: Decimal = ZERO
    unpriced: int = 0


class FinanceService:
    def __init__(self, db: Session):
        self.db = db
        self.pricing = PricingResolver(db)
        self.linker = SettlementLinker(db, self.pricing)

    def finance_summary(
        self,
        company_id: str,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> FinanceSummary:
        bookings = financial_bookings(self.db, company_id, date_from, date_to)
        billed = self.linker.get_billed_items(company_id)
        billed_ids = set(billed)

        summary = FinanceSummary()
        to_invoice = [b for b in bookings if can_be_invoiced(b, billed_ids)]
        for booking_id, resolved in self.pricing.price_bookings(to_invoice).items():
            if isinstance(resolved, ResolvedPrice):
                summary.amount_to_invoice += resolved.amount
                summary.bookings_to_invoice += 1
            else:
                summary.unpriced_booking_ids.append(booking_id)

        # Unpaid invoices are counted as a whole, not only for the bookings in range
        unpaid_invoices = set()
        for item in billed.values():
            if item.invoice.status in UNPAID_STATUSES:
                unpaid_invoices.add(item.invoice_id)
                summary.invoiced_unpaid_amount += Decimal(str(item.amount or 0))
        summary.invoices_awaiting_payment = len(unpaid_invoices)
        summary.unpriced_booking_ids.sort()
        return summary

    def agent_statement(
        self,
        company_id: str,
        agent_id: str,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> AgentStatement:
        if not agent_id:
            raise ValidationError("agent_id is required")
        if date_from and date_to and date_from > date_to:
            raise ValidationError("date_from must not be after date_to")

        with store_guard(self.db, "agent_statement"):
            agent = self.db.query(Agent).filter(
                Agent.id == agent_id,
                Agent.company_id == company_id,
            ).first()
        if agent is None:
            raise NotFoundError(f"Agent not found: {agent_id}")

        bookings = financial_bookings(self.db, company_id, date_from, date_to, agent_id=agent_id)
        billed = self._billed_for(company_id, [b.id for b in bookings])
        prices = self.pricing.price_bookings([b for b in bookings if b.id not in billed])

        statement = AgentStatement(agent=agent, date_from=date_from, date_to=date_to)
        for booking in bookings:
            item = billed.get(booking.id)
            if item is not None:
                statement.lines.append(StatementLine(
                    booking=booking,
                    amount=Decimal(str(item.amount or 0)),
                    billed=True,
                    invoice_number=item.invoice.invoice_number,
                    invoice_status=item.invoice.status,
                ))
                continue

            resolved = prices[booking.id]
            if isinstance(resolved, ResolvedPrice):
                statement.lines.append(StatementLine(booking=booking, amount=resolved.amount, billed=False))
            else:
                statement.lines.append(StatementLine(booking=booking, amount=None, billed=False, error=str(resolved)))
        return statement

    def revenue_by_program(
        self,
        company_id: str,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> List[ProgramRevenue]:
        """Revenue per program, highest first"""
        bookings = financial_bookings(self.db, company_id, date_from, date_to)
        billed = self._billed_for(company_id, [b.id for b in bookings])
        prices = self.pricing.price_bookings([b for b in bookings if b.id not in billed])

        revenue: Dict[str, ProgramRevenue] = {}
        for booking in bookings:
            entry = revenue.get(booking.program_id)
            if entry is None:
                name = booking.program.display_name if booking.program else booking.program_id
                entry = revenue[booking.program_id] = ProgramRevenue(booking.program_id, name)
            entry.bookings += 1
            entry.pax += booking.total_pax

            if booking.id in billed:
                entry.revenue += Decimal(str(billed[booking.id].amount or 0))
            elif isinstance(prices[booking.id], ResolvedPrice):
                entry.revenue += prices[booking.id].amount
            else:
                entry.unpriced += 1

        return sorted(revenue.values(), key=lambda r: (-r.revenue, r.program_name))

    def _billed_for(self, company_id: str, booking_ids: List[str]) -> Dict[str, InvoiceItem]:
        if not booking_ids:
            return {}
        items = self.linker.get_billed_items(company_id)
        wanted = set(booking_ids)
        return {booking_id: item for booking_id, item in items.items() if booking_id in wanted}


def get_finance_service(db: Session) -> FinanceService:
    """Factory function to get a finance service instance"""
    return FinanceService(db)
