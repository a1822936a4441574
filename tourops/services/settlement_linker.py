"""
Settlement Linker

Links bookings to invoice line items and answers "is this booking billed?".

Billed-once invariant: a booking sits on at most one non-void invoice. The
check and the insert run in one transaction:
1. Claim the invoice row (UPDATE ... on every dialect, FOR UPDATE on PostgreSQL)
2. Lock the booking rows in id order
3. Re-read the billed set for exactly those bookings
4. Reject the whole batch on any overlap, otherwise insert the items
A concurrent attach of the same booking blocks on step 2 until the first
transaction commits, then sees its items in step 3.
"""

import logging
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Set

from sqlalchemy import and_, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from ..config import settings
from ..models.agent import Agent, AgentType
from ..models.booking import Booking, FINANCIAL_STATUSES
from ..models.invoice import Invoice, InvoiceItem, InvoiceStatus
from ..exceptions import (
    AlreadyBilledError, InvoiceStateError, NotFoundError, ValidationError, missing_ids
)
from ..utils.db_helpers import acquire_row_lock, lock_rows, store_guard
from ..utils.logging_config import get_logger
from .pricing_resolver import PricingResolver, ResolvedPrice

logger = get_logger(__name__)


def can_be_invoiced(booking: Booking, billed_set: Set[str]) -> bool:
    """
    Bookings that can go on an agent invoice.

    Not when already billed, a direct booking, without agent, or from an
    agent of type "direct" (walk-in desk, website).
    """
    if booking.id in billed_set:
        return False
    if booking.is_direct_booking:
        return False
    if not booking.agent_id:
        return False
    agent = booking.agent
    if agent is not None and agent.agent_type == AgentType.DIRECT.value:
        return False
    return True


class SettlementLinker:
    def __init__(self, db: Session, pricing: Optional[PricingResolver] = None):
        self.db = db
        self.pricing = pricing or PricingResolver(db)

    # ============ Billed state ============

    def get_billed_booking_ids(self, company_id: str) -> Set[str]:
        """Booking ids on any non-void invoice of the company"""
        if not company_id:
            raise ValidationError("company_id is required")
        with store_guard(self.db, "get_billed_booking_ids"):
            rows = self.db.query(InvoiceItem.booking_id).join(Invoice).filter(
                Invoice.company_id == company_id,
                Invoice.status != InvoiceStatus.VOID.value,
            ).all()
        return {row[0] for row in rows}

    @staticmethod
    def is_unbilled(booking_id: str, billed_set: Set[str]) -> bool:
        return booking_id not in billed_set

    def get_billed_items(self, company_id: str) -> Dict[str, InvoiceItem]:
        """booking_id -> the active invoice item holding it (with its invoice loaded)"""
        with store_guard(self.db, "get_billed_items"):
            items = self.db.query(InvoiceItem).join(Invoice).options(
                joinedload(InvoiceItem.invoice)
            ).filter(
                Invoice.company_id == company_id,
                Invoice.status != InvoiceStatus.VOID.value,
            ).all()
        return {item.booking_id: item for item in items}

    # ============ Attaching ============

    def attach_to_invoice(
        self,
        invoice_id: str,
        booking_ids: Iterable[str],
        amounts: Optional[Dict[str, Decimal]] = None,
    ) -> List[InvoiceItem]:
        """
        Attach bookings to an invoice, all or nothing.

        Amounts default to the resolved price of each booking.

        Raises:
            AlreadyBilledError: a booking is on another active invoice; nothing is written
            NotFoundError: unknown invoice or booking
            InvoiceStateError: the invoice is no longer a draft (sent, paid, overdue or void)
            ValidationError: booking of another agent or not billable status
            MissingPricingData: a booking cannot be priced
        """
        booking_ids = list(dict.fromkeys(booking_ids))
        if not invoice_id:
            raise ValidationError("invoice_id is required")
        if not booking_ids:
            raise ValidationError("booking_ids cannot be empty")

        with store_guard(self.db, "attach_to_invoice"):
            try:
                invoice = self._claim_invoice(invoice_id)
                items = self._attach_locked(invoice, booking_ids, amounts)
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        logger.invoice_attached(invoice_id, [item.booking_id for item in items])
        return items

    def create_invoice(
        self,
        company_id: str,
        agent_id: str,
        booking_ids: Iterable[str],
        due_days: Optional[int] = None,
        notes: Optional[str] = None,
        today: Optional[date] = None,
    ) -> Invoice:
        """
        Create a draft invoice for one agent and attach the bookings to it
        in the same transaction.
        """
        booking_ids = list(dict.fromkeys(booking_ids))
        if not company_id or not agent_id:
            raise ValidationError("company_id and agent_id are required")
        if not booking_ids:
            raise ValidationError("booking_ids cannot be empty")
        due_days = settings.invoice_due_days if due_days is None else due_days
        if due_days < 0:
            raise ValidationError("due_days cannot be negative")
        today = today or date.today()

        with store_guard(self.db, "create_invoice"):
            try:
                agent = self.db.query(Agent).filter(
                    Agent.id == agent_id,
                    Agent.company_id == company_id,
                ).first()
                if agent is None:
                    raise NotFoundError(f"Agent not found: {agent_id}")
                if agent.agent_type == AgentType.DIRECT.value:
                    raise ValidationError("Direct booking channels are not invoiced")

                invoice = Invoice(
                    company_id=company_id,
                    agent_id=agent_id,
                    invoice_number=self._next_invoice_number(company_id, today),
                    status=InvoiceStatus.DRAFT.value,
                    total_amount=Decimal("0"),
                    due_days=due_days,
                    due_date=today + timedelta(days=due_days),
                    notes=notes,
                )
                self.db.add(invoice)
                self.db.flush()

                self._attach_locked(invoice, booking_ids, None)
                self.db.commit()
            except IntegrityError:
                self.db.rollback()
                raise InvoiceStateError("Invoice number already taken, retry the request")
            except Exception:
                self.db.rollback()
                raise

        logger.log_with_context(
            logging.INFO,
            f"Invoice {invoice.invoice_number} created",
            entity_type="invoice",
            entity_id=invoice.id,
            agent_id=agent_id,
            total_amount=str(invoice.total_amount),
        )
        return invoice

    # ============ Invoice state ============

    def void_invoice(self, invoice_id: str, company_id: Optional[str] = None) -> Invoice:
        """Void an invoice; its bookings become billable again. Void is terminal."""
        invoice = self._transition(invoice_id, company_id, InvoiceStatus.VOID, allowed_from=None)
        logger.warning(f"Invoice {invoice.invoice_number} voided, {len(invoice.items)} booking(s) released")
        return invoice

    def mark_invoice_sent(self, invoice_id: str, company_id: Optional[str] = None) -> Invoice:
        return self._transition(
            invoice_id, company_id, InvoiceStatus.SENT,
            allowed_from={InvoiceStatus.DRAFT.value, InvoiceStatus.SENT.value},
        )

    def mark_invoice_paid(self, invoice_id: str, company_id: Optional[str] = None) -> Invoice:
        return self._transition(
            invoice_id, company_id, InvoiceStatus.PAID,
            allowed_from={InvoiceStatus.DRAFT.value, InvoiceStatus.SENT.value, InvoiceStatus.OVERDUE.value},
        )

    def get_invoice(self, invoice_id: str, company_id: Optional[str] = None) -> Invoice:
        with store_guard(self.db, "get_invoice"):
            query = self.db.query(Invoice).options(joinedload(Invoice.items)).filter(Invoice.id == invoice_id)
            if company_id:
                query = query.filter(Invoice.company_id == company_id)
            invoice = query.first()
        if invoice is None:
            raise NotFoundError(f"Invoice not found: {invoice_id}")
        return invoice

    # ============ Internals ============

    def _claim_invoice(self, invoice_id: str) -> Invoice:
        """Write-touch the invoice so concurrent attaches to it serialize"""
        touched = self.db.query(Invoice).filter(Invoice.id == invoice_id).update(
            {"updated_at": datetime.utcnow()}, synchronize_session=False
        )
        if not touched:
            raise NotFoundError(f"Invoice not found: {invoice_id}")
        invoice = acquire_row_lock(self.db, Invoice, Invoice.id == invoice_id)
        if invoice.status != InvoiceStatus.DRAFT.value:
            raise InvoiceStateError(
                f"Invoice {invoice.invoice_number} is {invoice.status}; bookings can only be added to a draft"
            )
        return invoice

    def _attach_locked(
        self,
        invoice: Invoice,
        booking_ids: List[str],
        amounts: Optional[Dict[str, Decimal]],
    ) -> List[InvoiceItem]:
        bookings = lock_rows(
            self.db, Booking,
            Booking.id.in_(booking_ids),
            Booking.company_id == invoice.company_id,
            Booking.deleted_at.is_(None),
        )
        unknown = missing_ids(booking_ids, [b.id for b in bookings])
        if unknown:
            raise NotFoundError(f"Unknown bookings: {', '.join(unknown)}")

        for booking in bookings:
            if booking.status not in FINANCIAL_STATUSES:
                raise ValidationError(f"Booking {booking.id} is {booking.status} and cannot be billed")
            if booking.is_direct_booking:
                raise ValidationError(f"Booking {booking.id} is a direct booking and is not invoiced")
            if booking.agent_id != invoice.agent_id:
                raise ValidationError(f"Booking {booking.id} does not belong to the invoice's agent")

        # Re-read the billed state of exactly these bookings, after locking them
        existing = self.db.query(InvoiceItem.booking_id, Invoice.id, Invoice.invoice_number).join(Invoice).filter(
            InvoiceItem.booking_id.in_(booking_ids),
            Invoice.status != InvoiceStatus.VOID.value,
        ).all()

        already_here = {row[0] for row in existing if row[1] == invoice.id}
        conflicts = {row[0]: row[2] for row in existing if row[1] != invoice.id}
        if conflicts:
            logger.warning(f"Rejected attach to invoice {invoice.invoice_number}: {sorted(conflicts)} already billed")
            raise AlreadyBilledError(conflicts)

        to_attach = [b for b in bookings if b.id not in already_here]
        prices = self._amounts_for(to_attach, amounts)

        items = []
        for booking in to_attach:
            item = InvoiceItem(invoice_id=invoice.id, booking_id=booking.id, amount=prices[booking.id])
            self.db.add(item)
            items.append(item)
        self.db.flush()

        self._refresh_totals(invoice)
        return items

    def _amounts_for(self, bookings: List[Booking], amounts: Optional[Dict[str, Decimal]]) -> Dict[str, Decimal]:
        result: Dict[str, Decimal] = {}
        missing = []
        for booking in bookings:
            if amounts and booking.id in amounts:
                result[booking.id] = Decimal(str(amounts[booking.id]))
            else:
                missing.append(booking)

        if missing:
            for booking_id, resolved in self.pricing.price_bookings(missing).items():
                if not isinstance(resolved, ResolvedPrice):
                    raise resolved
                result[booking_id] = resolved.amount
        return result

    def _refresh_totals(self, invoice: Invoice) -> None:
        total, date_from, date_to = self.db.query(
            func.coalesce(func.sum(InvoiceItem.amount), 0),
            func.min(Booking.activity_date),
            func.max(Booking.activity_date),
        ).join(Booking, Booking.id == InvoiceItem.booking_id).filter(
            InvoiceItem.invoice_id == invoice.id
        ).one()
        invoice.total_amount = Decimal(str(total))
        invoice.date_from = date_from
        invoice.date_to = date_to
        self.db.flush()

    def _next_invoice_number(self, company_id: str, today: date) -> str:
        """<PREFIX>-YYYYMM-NNNN, sequential per company per month"""
        prefix = f"{settings.invoice_number_prefix}-{today.strftime('%Y%m')}-"
        latest = self.db.query(Invoice.invoice_number).filter(
            Invoice.company_id == company_id,
            Invoice.invoice_number.like(f"{prefix}%"),
        ).order_by(Invoice.invoice_number.desc()).first()

        next_number = 1
        if latest:
            suffix = latest[0][len(prefix):]
            if suffix.isdigit():
                next_number = int(suffix) + 1
        return f"{prefix}{next_number:04d}"

    def _transition(
        self,
        invoice_id: str,
        company_id: Optional[str],
        target: InvoiceStatus,
        allowed_from: Optional[Set[str]],
    ) -> Invoice:
        with store_guard(self.db, f"invoice -> {target.value}"):
            conditions = [Invoice.id == invoice_id]
            if company_id:
                conditions.append(Invoice.company_id == company_id)
            invoice = acquire_row_lock(self.db, Invoice, and_(*conditions))
            if invoice is None:
                raise NotFoundError(f"Invoice not found: {invoice_id}")
            if invoice.status == InvoiceStatus.VOID.value:
                raise InvoiceStateError(f"Invoice {invoice.invoice_number} is void")
            if allowed_from is not None and invoice.status not in allowed_from:
                raise InvoiceStateError(
                    f"Invoice {invoice.invoice_number} cannot go from {invoice.status} to {target.value}"
                )

            invoice.status = target.value
            now = datetime.utcnow()
            if target == InvoiceStatus.SENT and invoice.sent_at is None:
                invoice.sent_at = now
            if target == InvoiceStatus.PAID:
                invoice.paid_at = now
            self.db.commit()
            self.db.refresh(invoice)
        return invoice


def get_settlement_linker(db: Session) -> SettlementLinker:
    """Factory function to get a settlement linker instance"""
    return SettlementLinker(db)
