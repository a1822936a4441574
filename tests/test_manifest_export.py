"""
Tests for the manifest exports (CSV, text, PDF, Excel)
"""

import csv
import io
import re

import pytest
from decimal import Decimal

from openpyxl import load_workbook

from tourops.exceptions import ValidationError
from tourops.services.assignment_store import ResourceLockStore
from tourops.services.manifest_compiler import ManifestCompiler
from tourops.services.manifest_export import (
    FULL_REPORT_COLUMNS,
    _sheet_title,
    generate_manifest_excel,
    generate_manifest_pdf,
    generate_view_pdf,
    group_csv,
    group_text,
    manifest_csv,
    manifest_text,
    rows_to_csv,
    view_csv,
    view_text,
)

from conftest import ACTIVITY_DATE, COMPANY_ID

FULL_HEADER = "#,Booking #,Voucher,Customer,Program,A,C,I,Hotel,Room,Pickup,Driver,Boat,Guide,Restaurant,Agent,Staff,Type,Collect,Notes"


@pytest.fixture
def manifest(db, seed):
    program = seed.program()
    boat = seed.boat("Sea Star", captain_name="Somchai")
    guide = seed.guide("Anan")
    hotel = seed.hotel()
    ResourceLockStore(db).set_assignment(COMPANY_ID, ACTIVITY_DATE, boat.id, guide.id)

    seed.booking(
        program, "Sean O'Brien, Jr.", adults=2, children=1, boat_id=boat.id, hotel_id=hotel.id,
        pickup_time="08:30", booking_number="BK-001", collect_money=Decimal("1500"),
        notes='Says "vegetarian"\nno shellfish',
    )
    seed.booking(program, "Mary Jane", adults=1, infants=1, pickup_time="09:00", collect_money=Decimal("200.50"))

    return ManifestCompiler(db, parallel=False).compile(COMPANY_ID, ACTIVITY_DATE)


def parse(text):
    return list(csv.reader(io.StringIO(text)))


class TestCsvExport:

    def test_full_report_header(self, manifest):
        assert manifest_csv(manifest).split("\n")[0] == FULL_HEADER

    def test_special_characters_survive_a_csv_reader(self, manifest):
        records = parse(manifest_csv(manifest))

        first = records[1]
        assert first[3] == "Sean O'Brien, Jr."
        assert first[19] == 'Says "vegetarian"\nno shellfish'
        assert first[18] == "1500"
        assert records[2][18] == "200.50"

    def test_footer_lines(self, manifest):
        records = parse(manifest_csv(manifest))

        assert records[3] == []
        assert records[4] == ["FULL REPORT", "", "", "Date: 27 Dec 2025"]
        totals = records[5]
        assert totals[0] == "Total: 2 bookings"
        assert totals[5:8] == ["3", "1", "1"]
        assert totals[18] == "1700.50"

    def test_price_column_is_blank_on_error(self, db, seed):
        seed.booking(seed.program("Sunset Dinner", base_price=None), "Unpriced")
        seed.booking(seed.program(), "Priced")
        manifest = ManifestCompiler(db, parallel=False).compile(COMPANY_ID, ACTIVITY_DATE, include_pricing=True)

        records = parse(manifest_csv(manifest, include_price=True))

        assert records[0][-1] == "Price"
        prices = {r[3]: r[-1] for r in records[1:3]}
        assert prices == {"Priced": "1000", "Unpriced": ""}

    def test_price_column_needs_priced_manifest(self, manifest):
        assert "Price" not in manifest_csv(manifest, include_price=True).split("\n")[0]

    def test_boat_group_report(self, manifest):
        group = manifest.by_boat()[0]

        records = parse(group_csv(manifest, group, "boat"))

        assert records[0][:3] == ["#", "Customer", "Program"]
        assert records[-2] == ["Boat: Sea Star (Captain: Somchai)", "Date: 27 Dec 2025"]
        assert records[-1][0] == "Total: 1 bookings"

    def test_unknown_column_raises(self, manifest):
        with pytest.raises(ValidationError):
            rows_to_csv(manifest.rows, ["customer", "shoe_size"])

    def test_view_csv_joins_group_reports(self, manifest):
        text = view_csv(manifest, "boat")

        records = parse(text)
        assert records.count(["#", "Customer", "Program", "A", "C", "I", "Hotel", "Guide", "Restaurant",
                              "Agent", "Type", "Collect", "Notes"]) == 2
        assert ["Boat: Sea Star (Captain: Somchai)", "Date: 27 Dec 2025"] in records
        assert ["Boat: Unassigned", "Date: 27 Dec 2025"] in records
        assert "\n\n#,Customer,Program" in text

    def test_view_csv_unknown_view_raises(self, manifest):
        with pytest.raises(ValidationError):
            view_csv(manifest, "shoe")


class TestTextExport:

    def test_full_text_report(self, manifest):
        text = manifest_text(manifest)

        assert text.startswith("FULL OPERATION REPORT")
        assert "Date: 27 Dec 2025" in text
        assert "2 bookings | 3A 1C 1I" in text
        assert "1. Sean O'Brien, Jr. (BK-001)" in text
        assert "Pickup: 08:30 AM - 08:45 AM" in text
        assert "Guide: Anan" in text
        assert "Total Collect: 1,700.50 THB" in text

    def test_boat_text_report_names_guide(self, manifest):
        group = manifest.by_boat()[0]
        text = group_text(manifest, group, "boat")

        assert text.startswith("BOAT REPORT")
        assert "Boat: Sea Star (Captain: Somchai)" in text
        assert "Guide: Anan" in text
        assert "Mary Jane" not in text

    def test_view_text_has_every_group(self, manifest):
        text = view_text(manifest, "boat")

        assert text.count("BOAT REPORT") == 2
        assert "Boat: Sea Star (Captain: Somchai)" in text
        assert "Boat: Unassigned" in text


class TestPdfExport:

    def test_generates_pdf(self, manifest):
        pdf = generate_manifest_pdf(manifest)
        assert pdf.startswith(b"%PDF")

    def test_markup_in_title_is_escaped(self, manifest):
        pdf = generate_manifest_pdf(manifest, rows=manifest.rows[:1], title="Boat: <Sea & Star>")
        assert pdf.startswith(b"%PDF")

    def test_custom_column_limits(self, manifest):
        pdf = generate_manifest_pdf(manifest, keys=FULL_REPORT_COLUMNS, column_limits={"customer": 5})
        assert pdf.startswith(b"%PDF")

    def test_view_pdf_puts_each_group_on_its_own_page(self, manifest):
        pdf = generate_view_pdf(manifest, "boat")

        assert pdf.startswith(b"%PDF")
        assert len(re.findall(rb"/Type /Page\b", pdf)) == 2

    def test_view_pdf_of_empty_day(self, db):
        empty = ManifestCompiler(db, parallel=False).compile(COMPANY_ID, ACTIVITY_DATE)
        assert generate_view_pdf(empty, "driver").startswith(b"%PDF")


class TestExcelExport:

    def test_full_report_sheet(self, manifest):
        data = generate_manifest_excel(manifest)

        assert data.startswith(b"PK")
        wb = load_workbook(io.BytesIO(data))
        assert wb.sheetnames == ["Full Report"]
        ws = wb["Full Report"]
        assert ws.cell(row=3, column=4).value == "Customer"
        assert ws.cell(row=4, column=4).value == "Sean O'Brien, Jr."

    def test_one_sheet_per_group(self, manifest):
        wb = load_workbook(io.BytesIO(generate_manifest_excel(manifest, view="boat")))
        assert wb.sheetnames == ["Full Report", "Sea Star", "Unassigned"]

    def test_formula_like_text_stays_text(self, db, seed):
        seed.booking(seed.program(), '=HYPERLINK("http://x")', pickup_time="08:00", notes="=1+2")
        manifest = ManifestCompiler(db, parallel=False).compile(COMPANY_ID, ACTIVITY_DATE)

        ws = load_workbook(io.BytesIO(generate_manifest_excel(manifest)))["Full Report"]

        name = ws.cell(row=4, column=4)
        notes = ws.cell(row=4, column=FULL_REPORT_COLUMNS.index("notes") + 1)
        assert name.value == '=HYPERLINK("http://x")'
        assert name.data_type == "s"
        assert notes.value == "=1+2"
        assert notes.data_type == "s"

    def test_sheet_titles_are_cleaned_and_unique(self):
        used = set()
        assert _sheet_title("Tours: A/B [Morning]", used) == "Tours_ A_B _Morning_"
        assert _sheet_title("Sea Star", used) == "Sea Star"
        assert _sheet_title("Sea Star", used) == "Sea Star (2)"
        long_title = _sheet_title("x" * 40, used)
        assert len(long_title) == 31
        assert len(_sheet_title("x" * 40, used)) == 31
        assert _sheet_title("", used) == "Sheet"
