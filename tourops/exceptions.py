"""Exceptions raised by the booking operations core."""

from typing import Dict, Iterable, List, Optional


class TourOpsError(Exception):
    """Base exception for tour operations."""

    def to_dict(self) -> dict:
        return {"detail": str(self), "error": type(self).__name__}


class ValidationError(TourOpsError):
    """Malformed input: bad date, missing required identifier."""


class NotFoundError(TourOpsError):
    """A referenced record does not exist for this company."""


class MissingPricingData(TourOpsError):
    """The program has no rate that can price this booking."""

    def __init__(self, message: str, program_id: Optional[str] = None):
        super().__init__(message)
        self.program_id = program_id

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["program_id"] = self.program_id
        return data


class AlreadyBilledError(TourOpsError):
    """One or more bookings already sit on another active invoice."""

    def __init__(self, conflicts: Dict[str, str]):
        self.conflicts = dict(conflicts)
        ids = ", ".join(sorted(self.conflicts))
        super().__init__(f"Bookings already billed on another invoice: {ids}")

    @property
    def booking_ids(self) -> List[str]:
        return sorted(self.conflicts)

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["conflicts"] = self.conflicts
        return data


class InvoiceStateError(TourOpsError):
    """Invalid invoice state transition."""


class StoreUnavailable(TourOpsError):
    """The relational store could not be reached or timed out."""


def missing_ids(requested: Iterable[str], found: Iterable[str]) -> List[str]:
    found_set = set(found)
    return sorted({i for i in requested if i not in found_set})
