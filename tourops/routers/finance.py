"""
Finance API Router

Billed state, invoices, agent statements and revenue.
"""

from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from ..config import settings
from ..database import get_db
from ..exceptions import ValidationError
from ..utils.dependencies import get_company_id
from ..utils.rate_limiter import limiter, get_rate_limit
from ..services.settlement_linker import SettlementLinker
from ..services.finance_service import FinanceService
from ..schemas.finance import (
    AgentStatementResponse,
    AlreadyBilledResponse,
    BilledBookingsResponse,
    DateRange,
    FinanceSummaryResponse,
    InvoiceAttach,
    InvoiceCreate,
    InvoiceResponse,
    ProgramRevenueResponse,
    StatementLineResponse,
)

router = APIRouter(prefix="/api/finance", tags=["Finance"])

BILLING_CONFLICT = {409: {"model": AlreadyBilledResponse, "description": "Booking already billed"}}


def _date_range(date_from: Optional[date], date_to: Optional[date]) -> DateRange:
    try:
        return DateRange(date_from=date_from, date_to=date_to)
    except ValueError as e:
        raise ValidationError(str(e))


@router.get("/billed", response_model=BilledBookingsResponse)
async def billed_bookings(
    company_id: str = Depends(get_company_id),
    db: Session = Depends(get_db)
):
    billed = SettlementLinker(db).get_billed_booking_ids(company_id)
    return BilledBookingsResponse(booking_ids=sorted(billed), count=len(billed))


@router.get("/summary", response_model=FinanceSummaryResponse)
async def finance_summary(
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    company_id: str = Depends(get_company_id),
    db: Session = Depends(get_db)
):
    period = _date_range(date_from, date_to)
    summary = FinanceService(db).finance_summary(company_id, period.date_from, period.date_to)
    return FinanceSummaryResponse(
        amount_to_invoice=summary.amount_to_invoice,
        bookings_to_invoice=summary.bookings_to_invoice,
        invoiced_unpaid_amount=summary.invoiced_unpaid_amount,
        invoices_awaiting_payment=summary.invoices_awaiting_payment,
        total_unpaid=summary.total_unpaid,
        unpriced_booking_ids=summary.unpriced_booking_ids,
        currency=settings.currency,
    )


@router.get("/agents/{agent_id}/statement", response_model=AgentStatementResponse)
async def agent_statement(
    agent_id: str,
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    company_id: str = Depends(get_company_id),
    db: Session = Depends(get_db)
):
    period = _date_range(date_from, date_to)
    statement = FinanceService(db).agent_statement(company_id, agent_id, period.date_from, period.date_to)
    return AgentStatementResponse(
        agent_id=statement.agent.id,
        agent_name=statement.agent.name,
        date_from=statement.date_from,
        date_to=statement.date_to,
        lines=[
            StatementLineResponse(
                booking_id=line.booking.id,
                booking_number=line.booking.booking_number,
                customer_name=line.booking.customer_name,
                activity_date=line.booking.activity_date,
                program_name=line.booking.program.display_name if line.booking.program else None,
                adults=line.booking.adults or 0,
                children=line.booking.children or 0,
                infants=line.booking.infants or 0,
                amount=line.amount,
                billed=line.billed,
                invoice_number=line.invoice_number,
                invoice_status=line.invoice_status,
                error=line.error,
            )
            for line in statement.lines
        ],
        total_amount=statement.total_amount,
        billed_amount=statement.billed_amount,
        unbilled_amount=statement.unbilled_amount,
        total_pax=statement.total_pax,
        currency=settings.currency,
    )


@router.get("/revenue/programs", response_model=List[ProgramRevenueResponse])
async def revenue_by_program(
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    company_id: str = Depends(get_company_id),
    db: Session = Depends(get_db)
):
    period = _date_range(date_from, date_to)
    return FinanceService(db).revenue_by_program(company_id, period.date_from, period.date_to)


# ==================
# Invoices
# ==================

@router.post("/invoices", response_model=InvoiceResponse, status_code=201, responses=BILLING_CONFLICT)
@limiter.limit(get_rate_limit("invoice_write"))
async def create_invoice(
    request: Request,
    data: InvoiceCreate,
    company_id: str = Depends(get_company_id),
    db: Session = Depends(get_db)
):
    invoice = SettlementLinker(db).create_invoice(
        company_id, data.agent_id, data.booking_ids, due_days=data.due_days, notes=data.notes
    )
    db.refresh(invoice)
    return invoice


@router.get("/invoices/{invoice_id}", response_model=InvoiceResponse)
async def get_invoice(
    invoice_id: str,
    company_id: str = Depends(get_company_id),
    db: Session = Depends(get_db)
):
    return SettlementLinker(db).get_invoice(invoice_id, company_id)


@router.post("/invoices/{invoice_id}/items", response_model=InvoiceResponse, responses=BILLING_CONFLICT)
@limiter.limit(get_rate_limit("invoice_write"))
async def attach_to_invoice(
    request: Request,
    invoice_id: str,
    data: InvoiceAttach,
    company_id: str = Depends(get_company_id),
    db: Session = Depends(get_db)
):
    linker = SettlementLinker(db)
    # Tenant check before the write
    linker.get_invoice(invoice_id, company_id)
    linker.attach_to_invoice(invoice_id, data.booking_ids)
    db.expire_all()
    return linker.get_invoice(invoice_id, company_id)


@router.post("/invoices/{invoice_id}/void", response_model=InvoiceResponse)
async def void_invoice(
    invoice_id: str,
    company_id: str = Depends(get_company_id),
    db: Session = Depends(get_db)
):
    return SettlementLinker(db).void_invoice(invoice_id, company_id)


@router.post("/invoices/{invoice_id}/sent", response_model=InvoiceResponse)
async def mark_invoice_sent(
    invoice_id: str,
    company_id: str = Depends(get_company_id),
    db: Session = Depends(get_db)
):
    return SettlementLinker(db).mark_invoice_sent(invoice_id, company_id)


@router.post("/invoices/{invoice_id}/paid", response_model=InvoiceResponse)
async def mark_invoice_paid(
    invoice_id: str,
    company_id: str = Depends(get_company_id),
    db: Session = Depends(get_db)
):
    return SettlementLinker(db).mark_invoice_paid(invoice_id, company_id)
