# Services package
from .assignment_store import ResourceLockStore, BoatAssignment, GuideAssignment, get_lock_store
from .pricing_resolver import (
    PricingResolver, PriceBreakdown, ResolvedPrice,
    resolve_price, get_pricing_resolver
)
from .settlement_linker import SettlementLinker, can_be_invoiced, get_settlement_linker
from .finance_service import FinanceService, FinanceSummary, AgentStatement, ProgramRevenue, get_finance_service
from .manifest_compiler import (
    ManifestCompiler,
    Manifest,
    ManifestGroup,
    ManifestTotals,
    DailyManifestRow,
    EffectiveAssignment,
    AssignmentSource,
    resolve_effective_assignment,
    get_manifest_compiler
)
from .email_service import ResendEmailSender, EmailMessage, EmailResult, send_pickup_email, get_email_sender

__all__ = [
    "ResourceLockStore", "BoatAssignment", "GuideAssignment", "get_lock_store",
    "PricingResolver", "PriceBreakdown", "ResolvedPrice", "resolve_price", "get_pricing_resolver",
    "SettlementLinker", "can_be_invoiced", "get_settlement_linker",
    "FinanceService", "FinanceSummary", "AgentStatement", "ProgramRevenue", "get_finance_service",
    "ManifestCompiler", "Manifest", "ManifestGroup", "ManifestTotals", "DailyManifestRow",
    "EffectiveAssignment", "AssignmentSource", "resolve_effective_assignment", "get_manifest_compiler",
    "ResendEmailSender", "EmailMessage", "EmailResult", "send_pickup_email", "get_email_sender",
]
