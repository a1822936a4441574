"""
Finance Schemas

Invoices, agent statements and finance summary.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional
from pydantic import BaseModel, Field, model_validator


class InvoiceCreate(BaseModel):
    agent_id: str = Field(..., min_length=1, max_length=36)
    booking_ids: List[str] = Field(..., min_length=1)
    due_days: Optional[int] = Field(None, ge=0, le=365)
    notes: Optional[str] = Field(None, max_length=2000)


class InvoiceAttach(BaseModel):
    booking_ids: List[str] = Field(..., min_length=1)


class InvoiceItemResponse(BaseModel):
    id: str
    booking_id: str
    amount: Decimal

    class Config:
        from_attributes = True


class InvoiceResponse(BaseModel):
    id: str
    invoice_number: str
    agent_id: str
    status: str
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    total_amount: Decimal
    due_date: Optional[date] = None
    due_days: Optional[int] = None
    notes: Optional[str] = None
    sent_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    items: List[InvoiceItemResponse] = []

    class Config:
        from_attributes = True


class BilledBookingsResponse(BaseModel):
    booking_ids: List[str]
    count: int


class FinanceSummaryResponse(BaseModel):
    amount_to_invoice: Decimal
    bookings_to_invoice: int
    invoiced_unpaid_amount: Decimal
    invoices_awaiting_payment: int
    total_unpaid: Decimal
    unpriced_booking_ids: List[str] = []
    currency: str


class DateRange(BaseModel):
    date_from: Optional[date] = None
    date_to: Optional[date] = None

    @model_validator(mode='after')
    def validate_dates(self):
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise ValueError("date_from must not be after date_to")
        return self


class StatementLineResponse(BaseModel):
    booking_id: str
    booking_number: Optional[str] = None
    customer_name: str
    activity_date: date
    program_name: Optional[str] = None
    adults: int
    children: int
    infants: int
    amount: Optional[Decimal] = None
    billed: bool
    invoice_number: Optional[str] = None
    invoice_status: Optional[str] = None
    error: Optional[str] = None


class AgentStatementResponse(BaseModel):
    agent_id: str
    agent_name: str
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    lines: List[StatementLineResponse]
    total_amount: Decimal
    billed_amount: Decimal
    unbilled_amount: Decimal
    total_pax: int
    currency: str


class ProgramRevenueResponse(BaseModel):
    program_id: str
    program_name: str
    bookings: int
    pax: int
    revenue: Decimal
    unpriced: int

    class Config:
        from_attributes = True


class AlreadyBilledResponse(BaseModel):
    detail: str
    error: str
    conflicts: Dict[str, str]
