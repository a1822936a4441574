"""
Request dependencies.

Tenant identity is resolved upstream (auth gateway / session layer); this
service trusts the X-Company-ID header it is given.
"""

from typing import Optional
from fastapi import Header

from ..exceptions import ValidationError
from .logging_config import company_id_var


async def get_company_id(x_company_id: Optional[str] = Header(None, alias="X-Company-ID")) -> str:
    """Resolved tenant of the request"""
    if not x_company_id or not x_company_id.strip():
        raise ValidationError("X-Company-ID header is required")
    company_id = x_company_id.strip()
    company_id_var.set(company_id)
    return company_id
