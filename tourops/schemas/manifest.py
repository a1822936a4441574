"""
Manifest Schemas
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class ManifestTotalsResponse(BaseModel):
    bookings: int
    adults: int
    children: int
    infants: int
    total_pax: int
    collect_money: str


class ManifestResponse(BaseModel):
    company_id: str
    activity_date: str
    includes_pricing: bool
    totals: ManifestTotalsResponse
    rows: List[Dict[str, Any]]


class ManifestGroupResponse(BaseModel):
    key: Optional[str] = None
    label: str
    details: Dict[str, Any] = {}
    totals: ManifestTotalsResponse
    rows: List[Dict[str, Any]]


class ManifestViewResponse(BaseModel):
    activity_date: str
    view: str
    groups: List[ManifestGroupResponse]


class PickupEmailRequest(BaseModel):
    company_name: str = Field(..., min_length=1, max_length=200)
    contact_info: str = Field("", max_length=1000)


class EmailResultResponse(BaseModel):
    success: bool
    mock: bool = False
    message_id: Optional[str] = None
    error: Optional[str] = None
