"""
Manifest exports: CSV, plain text, PDF (ReportLab) and Excel (openpyxl).

Every exporter consumes the manifest's flat, already ordered rows and a list
of column keys. CSV fields go through escape_csv; fixed-width PDF columns go
through truncate_text using MANIFEST_COLUMN_LIMITS.
"""

import io
from dataclasses import dataclass
from xml.sax.saxutils import escape
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..config import settings
from ..exceptions import ValidationError
from ..utils.formatting import csv_line, format_amount, format_display_date, truncate_text, wrap_text
from .manifest_compiler import DailyManifestRow, Manifest, ManifestGroup, ManifestTotals


@dataclass(frozen=True)
class Column:
    header: str
    value: Callable[[int, DailyManifestRow], Any]
    total: Optional[str] = None  # ManifestTotals attribute summed in this column


def _plain_amount(amount: Optional[Decimal]) -> str:
    """CSV money: 1250 or 1250.50, no separators"""
    if amount is None:
        return ""
    value = Decimal(str(amount))
    if value == value.to_integral_value():
        return str(int(value))
    return f"{value:.2f}"


COLUMNS: Dict[str, Column] = {
    "index": Column("#", lambda i, r: i),
    "booking_number": Column("Booking #", lambda i, r: r.booking_number),
    "voucher": Column("Voucher", lambda i, r: r.voucher_number),
    "customer": Column("Customer", lambda i, r: r.customer_name),
    "program": Column("Program", lambda i, r: r.program_name),
    "adults": Column("A", lambda i, r: r.adults, total="adults"),
    "children": Column("C", lambda i, r: r.children, total="children"),
    "infants": Column("I", lambda i, r: r.infants, total="infants"),
    "hotel": Column("Hotel", lambda i, r: r.pickup_location),
    "room": Column("Room", lambda i, r: r.room_number),
    "pickup": Column("Pickup", lambda i, r: r.pickup_time),
    "driver": Column("Driver", lambda i, r: r.driver_name),
    "boat": Column("Boat", lambda i, r: r.boat_name),
    "guide": Column("Guide", lambda i, r: r.guide_name),
    "restaurant": Column("Restaurant", lambda i, r: r.restaurant_name),
    "agent": Column("Agent", lambda i, r: r.agent_name),
    "staff": Column("Staff", lambda i, r: r.agent_staff_name),
    "type": Column("Type", lambda i, r: r.payment_label),
    "collect": Column("Collect", lambda i, r: r.collect_money, total="collect_money"),
    "notes": Column("Notes", lambda i, r: r.notes),
    "price": Column("Price", lambda i, r: r.price),
}

FULL_REPORT_COLUMNS = [
    "index", "booking_number", "voucher", "customer", "program", "adults", "children", "infants",
    "hotel", "room", "pickup", "driver", "boat", "guide", "restaurant", "agent", "staff", "type",
    "collect", "notes",
]

# Column layout of the per-group reports
VIEW_COLUMNS = {
    "program": [
        "index", "customer", "adults", "children", "infants", "hotel", "agent", "staff", "boat",
        "guide", "restaurant", "type", "collect", "notes",
    ],
    "driver": [
        "index", "customer", "program", "adults", "children", "infants", "hotel", "room", "pickup",
        "type", "collect", "notes",
    ],
    "boat": [
        "index", "customer", "program", "adults", "children", "infants", "hotel", "guide",
        "restaurant", "agent", "type", "collect", "notes",
    ],
    "pickup_time": FULL_REPORT_COLUMNS,
    "agent": FULL_REPORT_COLUMNS,
}

VIEW_TITLES = {
    "program": "Program",
    "driver": "Driver",
    "boat": "Boat",
    "pickup_time": "Pickup",
    "agent": "Agent",
}

# Max characters per fixed-width column (PDF and text)
MANIFEST_COLUMN_LIMITS = {
    "booking_number": 11,
    "voucher": 11,
    "customer": 18,
    "program": 16,
    "hotel": 20,
    "room": 6,
    "driver": 12,
    "boat": 12,
    "guide": 12,
    "restaurant": 12,
    "agent": 14,
    "staff": 10,
    "notes": 48,
}

# Columns that wrap onto a second line in the PDF instead of being cut at once
WRAPPED_COLUMNS = ("customer", "hotel", "notes")


def _columns(keys: Sequence[str], include_price: bool = False) -> List[str]:
    keys = list(keys)
    unknown = [k for k in keys if k not in COLUMNS]
    if unknown:
        raise ValidationError(f"Unknown manifest columns: {', '.join(unknown)}")
    if include_price and "price" not in keys:
        keys.append("price")
    return keys


def _csv_value(key: str, index: int, row: DailyManifestRow) -> Any:
    if key == "price":
        # Unpriceable rows never show a number
        return "" if row.price_error else _plain_amount(row.price)
    value = COLUMNS[key].value(index, row)
    if key == "collect":
        return _plain_amount(value)
    return value


def _totals_line(keys: List[str], totals: ManifestTotals) -> str:
    cells: List[Any] = []
    for position, key in enumerate(keys):
        attr = COLUMNS[key].total
        if position == 0:
            cells.append(f"Total: {totals.bookings} bookings")
        elif attr == "collect_money":
            cells.append(_plain_amount(totals.collect_money))
        elif attr:
            cells.append(getattr(totals, attr))
        else:
            cells.append("")
    return csv_line(cells)


# ============================================================================
# CSV
# ============================================================================

def rows_to_csv(rows: List[DailyManifestRow], keys: Sequence[str], include_price: bool = False) -> List[str]:
    """Header line plus one escaped line per row"""
    keys = _columns(keys, include_price)
    lines = [csv_line(COLUMNS[k].header for k in keys)]
    for index, row in enumerate(rows, 1):
        lines.append(csv_line(_csv_value(k, index, row) for k in keys))
    return lines


def manifest_csv(manifest: Manifest, keys: Sequence[str] = FULL_REPORT_COLUMNS, include_price: bool = False) -> str:
    """
    Full report: header, one line per booking, a blank line, the date line
    and the totals line.
    """
    keys = _columns(keys, include_price and manifest.includes_pricing)
    lines = rows_to_csv(manifest.rows, keys)
    lines.append("")
    lines.append(csv_line(["FULL REPORT", "", "", f"Date: {format_display_date(manifest.activity_date)}"]))
    lines.append(_totals_line(keys, manifest.totals))
    return "\n".join(lines)


def group_csv(manifest: Manifest, group: ManifestGroup, view: str) -> str:
    """One boat/driver/program/... report in the column layout of its view"""
    keys = _columns(VIEW_COLUMNS.get(view, FULL_REPORT_COLUMNS))
    lines = rows_to_csv(group.rows, keys)
    lines.append("")
    lines.append(csv_line([
        f"{VIEW_TITLES.get(view, view.title())}: {group_title(group, view)}",
        f"Date: {format_display_date(manifest.activity_date)}",
    ]))
    lines.append(_totals_line(keys, group.totals))
    return "\n".join(lines)


def group_title(group: ManifestGroup, view: str) -> str:
    captain = group.details.get("captain_name") if view == "boat" else None
    return f"{group.label} (Captain: {captain})" if captain else group.label


def group_header_lines(group: ManifestGroup, view: str) -> List[str]:
    """Guide and restaurant of a boat's lock"""
    lines = []
    if view == "boat":
        if group.details.get("guide_name"):
            lines.append(f"Guide: {group.details['guide_name']}")
        if group.details.get("restaurant_name"):
            lines.append(f"Restaurant: {group.details['restaurant_name']}")
    return lines


def view_csv(manifest: Manifest, view: str) -> str:
    """Every group report of a view, separated by a blank line"""
    return "\n\n".join(group_csv(manifest, group, view) for group in manifest.group_by(view))


# ============================================================================
# TEXT (messaging apps)
# ============================================================================

SEPARATOR = "-" * 30


def _pax(adults: int, children: int, infants: int) -> str:
    return f"{adults}A {children}C {infants}I"


def manifest_text(manifest: Manifest, title: str = "FULL OPERATION REPORT") -> str:
    return _text_report(title, manifest.activity_date, manifest.rows, manifest.totals)


def group_text(manifest: Manifest, group: ManifestGroup, view: str) -> str:
    header = [f"{VIEW_TITLES.get(view, view.title())}: {group_title(group, view)}"]
    header.extend(group_header_lines(group, view))
    return _text_report(f"{VIEW_TITLES.get(view, view.title()).upper()} REPORT", manifest.activity_date,
                        group.rows, group.totals, header)


def view_text(manifest: Manifest, view: str) -> str:
    return "\n\n".join(group_text(manifest, group, view) for group in manifest.group_by(view))


def _text_report(title, activity_date, rows, totals, header_lines=None) -> str:
    lines = [title, SEPARATOR]
    lines.extend(header_lines or [])
    lines.append(f"Date: {format_display_date(activity_date)}")
    lines.append(f"{totals.bookings} bookings | {_pax(totals.adults, totals.children, totals.infants)}")
    if totals.collect_money > 0:
        lines.append(f"Total Collect: {format_amount(totals.collect_money)} {settings.currency}")
    lines.append(SEPARATOR)
    lines.append("")

    for index, row in enumerate(rows, 1):
        first = f"{index}. {row.customer_name}"
        if row.booking_number:
            first += f" ({row.booking_number})"
        if row.voucher_number:
            first += f" [{row.voucher_number}]"
        lines.append(first)
        lines.append(f"   Program: {row.program_name or '-'}")
        lines.append(f"   {_pax(row.adults, row.children, row.infants)}")
        hotel = f"   Hotel: {row.pickup_location or '-'}"
        if row.room_number:
            hotel += f" | Room: {row.room_number}"
        lines.append(hotel)
        lines.append(f"   Pickup: {row.pickup_window or 'TBD'}")
        for label, value in (
            ("Driver", row.driver_name),
            ("Boat", row.boat_name),
            ("Guide", row.guide_name),
            ("Restaurant", row.restaurant_name),
        ):
            if value:
                lines.append(f"   {label}: {value}")
        agent = f"   Agent: {row.agent_name or '-'}"
        if row.agent_staff_name:
            agent += f" | Staff: {row.agent_staff_name}"
        lines.append(agent)
        if row.payment_label:
            lines.append(f"   Type: {row.payment_label}")
        if row.collect_money:
            lines.append(f"   Collect: {format_amount(row.collect_money)} {settings.currency}")
        if row.notes:
            lines.append(f"   Notes: {row.notes}")
        lines.append("")

    return "\n".join(lines)


# ============================================================================
# PDF
# ============================================================================

def _cell(key: str, index: int, row: DailyManifestRow, limits: Dict[str, int]) -> str:
    if key == "price":
        return "-" if row.price_error or row.price is None else format_amount(row.price)
    value = COLUMNS[key].value(index, row)
    if key == "collect":
        return format_amount(value) if value else "-"
    if key in ("index", "adults", "children", "infants"):
        return str(value)

    text = str(value) if value else ""
    limit = limits.get(key)
    if limit is None:
        return text or "-"
    if key in WRAPPED_COLUMNS:
        return "\n".join(wrap_text(text, limit))
    return truncate_text(text, limit)


def _pdf_styles():
    from reportlab.lib import colors
    from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle

    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        'ManifestTitle',
        parent=styles['Heading1'],
        fontSize=12,
        spaceAfter=4,
        alignment=1,
    )
    subtitle_style = ParagraphStyle(
        'ManifestSubtitle',
        parent=styles['Normal'],
        fontSize=8,
        spaceAfter=2,
        alignment=1,
        textColor=colors.HexColor('#64748b'),
    )
    return title_style, subtitle_style


def _pdf_section(
    activity_date,
    title: str,
    rows: List[DailyManifestRow],
    keys: List[str],
    limits: Dict[str, int],
    usable_width: float,
    header_lines: Sequence[str] = (),
) -> list:
    """Title, date, totals and the row table of one report"""
    from reportlab.lib import colors
    from reportlab.lib.units import mm
    from reportlab.platypus import Table, TableStyle, Paragraph, Spacer

    title_style, subtitle_style = _pdf_styles()
    totals = ManifestTotals.from_rows(rows)

    elements = [Paragraph(escape(title), title_style)]
    for line in header_lines:
        elements.append(Paragraph(escape(line), subtitle_style))
    elements.append(Paragraph(f"Date: {format_display_date(activity_date)}", subtitle_style))
    elements.append(Paragraph(
        f"{totals.bookings} bookings | {_pax(totals.adults, totals.children, totals.infants)} | "
        f"Collect: {format_amount(totals.collect_money)} {settings.currency}",
        subtitle_style,
    ))
    elements.append(Spacer(1, 4*mm))

    data = [[COLUMNS[k].header for k in keys]]
    for index, row in enumerate(rows, 1):
        data.append([_cell(k, index, row, limits) for k in keys])

    # Width proportional to the column's character limit
    weights = [limits.get(k, 4) for k in keys]
    col_widths = [usable_width * w / sum(weights) for w in weights]

    table = Table(data, colWidths=col_widths, repeatRows=1)
    table.setStyle(TableStyle([
        # Header
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#f0f0f0')),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.HexColor('#3c3c3c')),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        # Body
        ('FONTNAME', (0, 1), (-1, -1), 'Helvetica'),
        ('VALIGN', (0, 0), (-1, -1), 'TOP'),
        # General
        ('FONTSIZE', (0, 0), (-1, -1), 6),
        ('LEADING', (0, 0), (-1, -1), 7),
        ('PADDING', (0, 0), (-1, -1), 2),
        ('LINEBELOW', (0, 0), (-1, -1), 0.25, colors.HexColor('#e2e8f0')),
        ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.white, colors.HexColor('#fafafa')]),
    ]))
    elements.append(table)
    return elements


def _build_pdf(title: str, sections: List[list]) -> bytes:
    """Landscape A4; each section starts on a new page"""
    from reportlab.lib.pagesizes import A4, landscape
    from reportlab.lib.units import mm
    from reportlab.platypus import SimpleDocTemplate, PageBreak

    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=landscape(A4),
        rightMargin=5*mm,
        leftMargin=5*mm,
        topMargin=10*mm,
        bottomMargin=10*mm,
        title=title,
    )

    elements = []
    for position, section in enumerate(sections):
        if position:
            elements.append(PageBreak())
        elements.extend(section)

    doc.build(elements)
    buffer.seek(0)
    return buffer.getvalue()


def _usable_width() -> float:
    from reportlab.lib.pagesizes import A4, landscape
    from reportlab.lib.units import mm
    return landscape(A4)[0] - 10*mm


def _limits(column_limits: Optional[Dict[str, int]]) -> Dict[str, int]:
    limits = dict(MANIFEST_COLUMN_LIMITS)
    limits.update(column_limits or {})
    return limits


def generate_manifest_pdf(
    manifest: Manifest,
    rows: Optional[List[DailyManifestRow]] = None,
    keys: Sequence[str] = FULL_REPORT_COLUMNS,
    title: str = "FULL OPERATION REPORT",
    column_limits: Optional[Dict[str, int]] = None,
    include_price: bool = False,
    header_lines: Sequence[str] = (),
) -> bytes:
    """Landscape A4 table of the rows, long text cut to fixed-width columns"""
    rows = manifest.rows if rows is None else rows
    keys = _columns(keys, include_price and manifest.includes_pricing)
    section = _pdf_section(
        manifest.activity_date, title, rows, keys, _limits(column_limits), _usable_width(), header_lines
    )
    return _build_pdf(title, [section])


def generate_view_pdf(
    manifest: Manifest,
    view: str,
    column_limits: Optional[Dict[str, int]] = None,
    include_price: bool = False,
) -> bytes:
    """
    Every group of a view in one document, one group per page.

    Boat pages also name the guide and restaurant of the boat's lock.
    """
    keys = _columns(VIEW_COLUMNS.get(view, FULL_REPORT_COLUMNS), include_price and manifest.includes_pricing)
    limits = _limits(column_limits)
    width = _usable_width()
    view_title = VIEW_TITLES.get(view, view.title())

    sections = [
        _pdf_section(
            manifest.activity_date,
            f"{view_title}: {group_title(group, view)}",
            group.rows,
            keys,
            limits,
            width,
            group_header_lines(group, view),
        )
        for group in manifest.group_by(view)
    ]
    title = f"{view_title.upper()} REPORTS"
    if not sections:
        sections = [_pdf_section(manifest.activity_date, title, [], keys, limits, width)]
    return _build_pdf(title, sections)


# ============================================================================
# EXCEL
# ============================================================================

def _sheet_title(label: str, used: set) -> str:
    """Excel sheet names: max 31 chars, no []:*?/\\ and unique"""
    cleaned = "".join("_" if ch in '[]:*?/\\' else ch for ch in label).strip() or "Sheet"
    base = cleaned[:31]
    title, n = base, 2
    while title in used:
        suffix = f" ({n})"
        title = base[:31 - len(suffix)] + suffix
        n += 1
    used.add(title)
    return title


def generate_manifest_excel(
    manifest: Manifest,
    view: Optional[str] = None,
    include_price: bool = False,
) -> bytes:
    """
    One "Full Report" sheet, plus one sheet per group when a view is given.
    """
    from openpyxl import Workbook
    from openpyxl.styles import Font, Alignment, PatternFill
    from openpyxl.utils import get_column_letter

    wb = Workbook()
    used_titles: set = set()

    header_fill = PatternFill(start_color="3b82f6", end_color="3b82f6", fill_type="solid")
    header_font = Font(bold=True, color="FFFFFF", size=11)
    header_alignment = Alignment(horizontal='center', vertical='center')
    alt_fill = PatternFill(start_color="f8fafc", end_color="f8fafc", fill_type="solid")

    def write_sheet(ws, title: str, rows: List[DailyManifestRow], keys: List[str]):
        ws.merge_cells(start_row=1, start_column=1, end_row=1, end_column=len(keys))
        title_cell = ws.cell(row=1, column=1, value=f"{title} - {format_display_date(manifest.activity_date)}")
        title_cell.font = Font(size=14, bold=True, color="1e293b")
        title_cell.alignment = Alignment(horizontal='center', vertical='center')

        row_num = 3
        for col_num, key in enumerate(keys, 1):
            cell = ws.cell(row=row_num, column=col_num, value=COLUMNS[key].header)
            cell.fill = header_fill
            cell.font = header_font
            cell.alignment = header_alignment
        row_num += 1

        values = []
        for index, row in enumerate(rows, 1):
            line = []
            for key in keys:
                if key == "price":
                    value = None if row.price_error else row.price
                else:
                    value = COLUMNS[key].value(index, row)
                if isinstance(value, Decimal):
                    value = float(value)
                line.append(value if value != "" else None)
            values.append(line)

        for row_idx, line in enumerate(values):
            for col_num, value in enumerate(line, 1):
                cell = ws.cell(row=row_num, column=col_num, value=value)
                if isinstance(value, str) and value.startswith("="):
                    # Names and notes are text, never formulas
                    cell.data_type = "s"
                if row_idx % 2 == 1:
                    cell.fill = alt_fill
            row_num += 1

        totals = ManifestTotals.from_rows(rows)
        ws.cell(row=row_num + 1, column=1, value=f"Total: {totals.bookings} bookings").font = Font(bold=True)
        for col_num, key in enumerate(keys, 1):
            attr = COLUMNS[key].total
            if attr:
                total = getattr(totals, attr)
                ws.cell(row=row_num + 1, column=col_num,
                        value=float(total) if isinstance(total, Decimal) else total).font = Font(bold=True)

        for col_num, key in enumerate(keys, 1):
            longest = max(
                [len(COLUMNS[key].header)] + [len(str(line[col_num - 1] or "")) for line in values]
            )
            ws.column_dimensions[get_column_letter(col_num)].width = min(longest + 4, 50)

    price = include_price and manifest.includes_pricing
    ws = wb.active
    ws.title = _sheet_title("Full Report", used_titles)
    write_sheet(ws, "Full Operation Report", manifest.rows, _columns(FULL_REPORT_COLUMNS, price))

    if view:
        keys = _columns(VIEW_COLUMNS.get(view, FULL_REPORT_COLUMNS), price)
        for group in manifest.group_by(view):
            sheet = wb.create_sheet(_sheet_title(group.label, used_titles))
            write_sheet(sheet, f"{VIEW_TITLES.get(view, view.title())}: {group.label}", group.rows, keys)

    buffer = io.BytesIO()
    wb.save(buffer)
    buffer.seek(0)
    return buffer.getvalue()
