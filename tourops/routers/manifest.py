"""
Manifest API Router

Daily operations manifest, its grouped views, exports and pickup emails.
"""

from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import PlainTextResponse, StreamingResponse
from sqlalchemy.orm import Session
import io

from ..database import get_db, get_session_factory
from ..exceptions import NotFoundError
from ..utils.dependencies import get_company_id
from ..utils.rate_limiter import limiter, get_rate_limit
from ..services.manifest_compiler import Manifest, ManifestCompiler, ManifestGroup
from ..services.manifest_export import (
    generate_manifest_excel,
    generate_manifest_pdf,
    generate_view_pdf,
    group_csv,
    group_header_lines,
    group_text,
    group_title,
    manifest_csv,
    manifest_text,
    view_csv,
    view_text,
    VIEW_COLUMNS,
    VIEW_TITLES,
)
from ..services.email_service import EmailSender, get_email_sender, send_pickup_email
from ..schemas.manifest import (
    EmailResultResponse,
    ManifestResponse,
    ManifestViewResponse,
    PickupEmailRequest,
)

router = APIRouter(prefix="/api/manifest", tags=["Manifest"])

UNASSIGNED_KEY = "unassigned"


def get_compiler(
    db: Session = Depends(get_db),
    session_factory=Depends(get_session_factory)
) -> ManifestCompiler:
    return ManifestCompiler(db, session_factory=session_factory)


def _find_group(manifest: Manifest, view: str, key: str) -> ManifestGroup:
    for group in manifest.group_by(view):
        if group.key == key or (group.key is None and key == UNASSIGNED_KEY):
            return group
    raise NotFoundError(f"No {view} group {key!r} on {manifest.activity_date.isoformat()}")


def _filename(prefix: str, activity_date: date, ext: str) -> str:
    return f"{prefix}_{activity_date.isoformat()}.{ext}"


@router.get("", response_model=ManifestResponse)
async def get_manifest(
    activity_date: date = Query(...),
    include_pricing: bool = Query(False),
    company_id: str = Depends(get_company_id),
    compiler: ManifestCompiler = Depends(get_compiler)
):
    """Flat manifest rows sorted by pickup time, then customer name"""
    return compiler.compile(company_id, activity_date, include_pricing=include_pricing).to_dict()


@router.get("/views/{view}", response_model=ManifestViewResponse)
async def get_manifest_view(
    view: str,
    activity_date: date = Query(...),
    include_pricing: bool = Query(False),
    company_id: str = Depends(get_company_id),
    compiler: ManifestCompiler = Depends(get_compiler)
):
    """Grouped view: boat, pickup_time, driver, agent or program"""
    manifest = compiler.compile(company_id, activity_date, include_pricing=include_pricing)
    return {
        "activity_date": manifest.activity_date.isoformat(),
        "view": view,
        "groups": [group.to_dict() for group in manifest.group_by(view)],
    }


# ============ Exports ============

@router.get("/export/csv")
@limiter.limit(get_rate_limit("export"))
async def export_manifest_csv(
    request: Request,
    activity_date: date = Query(...),
    view: Optional[str] = Query(None, description="boat, pickup_time, driver, agent or program"),
    key: Optional[str] = Query(None, description="Group key within the view, 'unassigned' for the rest"),
    include_pricing: bool = Query(False),
    company_id: str = Depends(get_company_id),
    compiler: ManifestCompiler = Depends(get_compiler)
):
    manifest = compiler.compile(company_id, activity_date, include_pricing=include_pricing)
    if view and key:
        content = group_csv(manifest, _find_group(manifest, view, key), view)
        filename = _filename(f"{view}_{key}", manifest.activity_date, "csv")
    elif view:
        content = view_csv(manifest, view)
        filename = _filename(f"{view}_reports", manifest.activity_date, "csv")
    else:
        content = manifest_csv(manifest, include_price=include_pricing)
        filename = _filename("full_report", manifest.activity_date, "csv")

    return StreamingResponse(
        io.BytesIO(content.encode("utf-8-sig")),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f"attachment; filename={filename}"}
    )


@router.get("/export/text", response_class=PlainTextResponse)
@limiter.limit(get_rate_limit("export"))
async def export_manifest_text(
    request: Request,
    activity_date: date = Query(...),
    view: Optional[str] = Query(None),
    key: Optional[str] = Query(None),
    company_id: str = Depends(get_company_id),
    compiler: ManifestCompiler = Depends(get_compiler)
):
    """Plain text for messaging apps"""
    manifest = compiler.compile(company_id, activity_date)
    if view and key:
        return group_text(manifest, _find_group(manifest, view, key), view)
    if view:
        return view_text(manifest, view)
    return manifest_text(manifest)


@router.get("/export/pdf")
@limiter.limit(get_rate_limit("export"))
async def export_manifest_pdf(
    request: Request,
    activity_date: date = Query(...),
    view: Optional[str] = Query(None),
    key: Optional[str] = Query(None),
    include_pricing: bool = Query(False),
    company_id: str = Depends(get_company_id),
    compiler: ManifestCompiler = Depends(get_compiler)
):
    manifest = compiler.compile(company_id, activity_date, include_pricing=include_pricing)
    if view and key:
        group = _find_group(manifest, view, key)
        pdf_bytes = generate_manifest_pdf(
            manifest,
            rows=group.rows,
            keys=VIEW_COLUMNS.get(view, VIEW_COLUMNS["agent"]),
            title=f"{VIEW_TITLES.get(view, view.title())}: {group_title(group, view)}",
            include_price=include_pricing,
            header_lines=group_header_lines(group, view),
        )
        filename = _filename(f"{view}_{key}", manifest.activity_date, "pdf")
    elif view:
        pdf_bytes = generate_view_pdf(manifest, view, include_price=include_pricing)
        filename = _filename(f"{view}_reports", manifest.activity_date, "pdf")
    else:
        pdf_bytes = generate_manifest_pdf(manifest, include_price=include_pricing)
        filename = _filename("full_report", manifest.activity_date, "pdf")

    return StreamingResponse(
        io.BytesIO(pdf_bytes),
        media_type="application/pdf",
        headers={"Content-Disposition": f"attachment; filename={filename}"}
    )


@router.get("/export/xlsx")
@limiter.limit(get_rate_limit("export"))
async def export_manifest_excel(
    request: Request,
    activity_date: date = Query(...),
    view: Optional[str] = Query(None),
    include_pricing: bool = Query(False),
    company_id: str = Depends(get_company_id),
    compiler: ManifestCompiler = Depends(get_compiler)
):
    manifest = compiler.compile(company_id, activity_date, include_pricing=include_pricing)
    excel_bytes = generate_manifest_excel(manifest, view=view, include_price=include_pricing)

    return StreamingResponse(
        io.BytesIO(excel_bytes),
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f"attachment; filename={_filename('manifest', manifest.activity_date, 'xlsx')}"}
    )


# ============ Notifications ============

@router.post("/bookings/{booking_id}/pickup-email", response_model=EmailResultResponse)
@limiter.limit(get_rate_limit("email"))
async def send_booking_pickup_email(
    request: Request,
    booking_id: str,
    data: PickupEmailRequest,
    company_id: str = Depends(get_company_id),
    db: Session = Depends(get_db),
    sender: EmailSender = Depends(get_email_sender)
):
    """Email the customer their pickup window"""
    result = send_pickup_email(db, company_id, booking_id, sender, data.company_name, data.contact_info)
    return EmailResultResponse(
        success=result.success,
        mock=result.mock,
        message_id=result.message_id,
        error=result.error,
    )
