# Models package
from .program import Program, PricingType
from .resources import Hotel, Driver, Boat, Guide, Restaurant
from .agent import Agent, AgentStaff, AgentPricing, AgentType
from .booking import Booking, BookingStatus, PaymentType, INACTIVE_STATUSES, FINANCIAL_STATUSES
from .assignment_lock import BoatAssignmentLock
from .invoice import Invoice, InvoiceItem, InvoiceStatus

__all__ = [
    "Program", "PricingType",
    "Hotel", "Driver", "Boat", "Guide", "Restaurant",
    "Agent", "AgentStaff", "AgentPricing", "AgentType",
    "Booking", "BookingStatus", "PaymentType", "INACTIVE_STATUSES", "FINANCIAL_STATUSES",
    "BoatAssignmentLock",
    "Invoice", "InvoiceItem", "InvoiceStatus",
]
