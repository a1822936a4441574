"""
API tests: routers, error mapping and middleware, on the test database
"""

import pytest
from decimal import Decimal

from tourops.main import app
from tourops.services.email_service import EmailResult, get_email_sender

from conftest import ACTIVITY_DATE, COMPANY_ID

DAY = ACTIVITY_DATE.isoformat()


class FakeSender:
    def __init__(self):
        self.sent = []

    def send(self, message):
        self.sent.append(message)
        return EmailResult(success=True, status_code=200, message_id="msg-42")


class TestTenantHeader:

    def test_missing_company_header_is_rejected(self, client):
        response = client.get("/api/manifest", params={"activity_date": DAY})
        assert response.status_code == 422
        assert response.json()["error"] == "ValidationError"

    def test_blank_company_header_is_rejected(self, client):
        response = client.get("/api/finance/billed", headers={"X-Company-ID": "  "})
        assert response.status_code == 422


class TestAssignmentsApi:

    def test_set_and_list_assignment(self, client, headers, seed):
        boat = seed.boat()
        guide = seed.guide()

        response = client.put("/api/assignments", headers=headers, json={
            "activity_date": DAY, "boat_id": boat.id, "guide_id": guide.id, "restaurant_id": "",
        })
        assert response.status_code == 200
        assert response.json()["guide_name"] == "Anan"
        assert response.json()["restaurant_id"] is None

        listed = client.get("/api/assignments", headers=headers, params={"activity_date": DAY}).json()
        assert [a["boat_id"] for a in listed] == [boat.id]

    def test_unknown_guide_is_422(self, client, headers, seed):
        boat = seed.boat()
        response = client.put("/api/assignments", headers=headers, json={
            "activity_date": DAY, "boat_id": boat.id, "guide_id": "no-such-guide",
        })
        assert response.status_code == 422

    def test_clear_assignment(self, client, headers, seed):
        boat = seed.boat()
        client.put("/api/assignments", headers=headers, json={"activity_date": DAY, "boat_id": boat.id})

        response = client.delete(f"/api/assignments/{DAY}/{boat.id}", headers=headers)

        assert response.json() == {"removed": True}

    def test_guide_view(self, client, headers, seed):
        boat = seed.boat()
        guide = seed.guide()
        seed.booking(seed.program(), "Zoe Turner", boat_id=boat.id)
        client.put("/api/assignments", headers=headers, json={
            "activity_date": DAY, "boat_id": boat.id, "guide_id": guide.id,
        })

        response = client.get(f"/api/assignments/guide/{guide.id}", headers=headers, params={"activity_date": DAY})

        assert response.status_code == 200
        body = response.json()
        assert body[0]["boat_name"] == "Sea Star"
        assert body[0]["customers"][0]["customer_name"] == "Zoe Turner"

    def test_guide_view_shows_hh_mm_pickup(self, client, headers, seed):
        boat = seed.boat()
        guide = seed.guide()
        seed.booking(seed.program(), "Zoe Turner", boat_id=boat.id, pickup_time="14:05:00")
        client.put("/api/assignments", headers=headers, json={
            "activity_date": DAY, "boat_id": boat.id, "guide_id": guide.id,
        })

        body = client.get(f"/api/assignments/guide/{guide.id}", headers=headers,
                          params={"activity_date": DAY}).json()

        assert body[0]["customers"][0]["pickup_time"] == "14:05"

    def test_guide_view_carries_collect_notes_and_channel(self, client, headers, seed):
        boat = seed.boat()
        guide = seed.guide()
        agent = seed.agent()
        program = seed.program()
        seed.booking(program, "Anna Berg", agent=agent, boat_id=boat.id,
                     collect_money=Decimal("1500"), notes="Vegetarian lunch")
        seed.booking(program, "Walk In", boat_id=boat.id, is_direct_booking=True)
        client.put("/api/assignments", headers=headers, json={
            "activity_date": DAY, "boat_id": boat.id, "guide_id": guide.id,
        })

        body = client.get(f"/api/assignments/guide/{guide.id}", headers=headers,
                          params={"activity_date": DAY}).json()
        customers = {c["customer_name"]: c for c in body[0]["customers"]}

        anna = customers["Anna Berg"]
        assert Decimal(anna["collect_money"]) == Decimal("1500")
        assert anna["notes"] == "Vegetarian lunch"
        assert anna["program_name"] == "Phi Phi Island"
        assert anna["agent_name"] == "Andaman Travel"
        assert anna["is_direct_booking"] is False
        assert customers["Walk In"]["is_direct_booking"] is True
        assert customers["Walk In"]["agent_name"] is None
        assert customers["Walk In"]["pickup_time"] == ""

    def test_assign_bookings_to_boat(self, client, headers, seed):
        boat = seed.boat()
        booking = seed.booking(seed.program())

        response = client.post("/api/assignments/bookings/boat", headers=headers, json={
            "booking_ids": [booking.id], "boat_id": boat.id,
        })

        assert response.json() == {"updated": 1}


class TestPricingApi:

    def test_booking_price(self, client, headers, seed):
        booking = seed.booking(seed.per_head_program(), adults=2, children=1)

        response = client.get(f"/api/pricing/bookings/{booking.id}", headers=headers)

        assert response.status_code == 200
        body = response.json()
        assert Decimal(body["amount"]) == Decimal("1250.00")
        assert body["amount_minor"] == 125000
        assert body["breakdown"]["pricing_type"] == "per_head"

    def test_unknown_booking_is_404(self, client, headers):
        assert client.get("/api/pricing/bookings/missing", headers=headers).status_code == 404

    def test_missing_pricing_data_is_422(self, client, headers, seed):
        program = seed.program("Sunset Dinner", base_price=None)
        booking = seed.booking(program)

        response = client.get(f"/api/pricing/bookings/{booking.id}", headers=headers)

        assert response.status_code == 422
        assert response.json()["error"] == "MissingPricingData"
        assert response.json()["program_id"] == program.id


class TestFinanceApi:

    @pytest.fixture
    def billable(self, seed):
        agent = seed.agent()
        program = seed.program(base_price=Decimal("1000"))
        return agent, [seed.booking(program, name, agent=agent) for name in ("X", "Y")]

    def test_create_invoice(self, client, headers, billable):
        agent, bookings = billable

        response = client.post("/api/finance/invoices", headers=headers, json={
            "agent_id": agent.id, "booking_ids": [b.id for b in bookings],
        })

        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "draft"
        assert Decimal(body["total_amount"]) == Decimal("2000.00")
        assert len(body["items"]) == 2

        billed = client.get("/api/finance/billed", headers=headers).json()
        assert billed["count"] == 2

    def test_billing_twice_is_409_with_conflicts(self, client, headers, billable):
        agent, bookings = billable
        client.post("/api/finance/invoices", headers=headers, json={
            "agent_id": agent.id, "booking_ids": [bookings[0].id],
        })
        second = client.post("/api/finance/invoices", headers=headers, json={
            "agent_id": agent.id, "booking_ids": [bookings[1].id],
        }).json()

        response = client.post(f"/api/finance/invoices/{second['id']}/items", headers=headers, json={
            "booking_ids": [bookings[0].id],
        })

        assert response.status_code == 409
        assert bookings[0].id in response.json()["conflicts"]

    def test_invoice_lifecycle(self, client, headers, billable):
        agent, bookings = billable
        invoice = client.post("/api/finance/invoices", headers=headers, json={
            "agent_id": agent.id, "booking_ids": [bookings[0].id],
        }).json()

        assert client.post(f"/api/finance/invoices/{invoice['id']}/sent", headers=headers).json()["status"] == "sent"
        assert client.post(f"/api/finance/invoices/{invoice['id']}/paid", headers=headers).json()["status"] == "paid"
        assert client.post(f"/api/finance/invoices/{invoice['id']}/void", headers=headers).json()["status"] == "void"
        assert client.post(f"/api/finance/invoices/{invoice['id']}/paid", headers=headers).status_code == 409

    def test_invoice_of_other_company_is_404(self, client, billable):
        agent, bookings = billable
        invoice = client.post("/api/finance/invoices", headers={"X-Company-ID": COMPANY_ID}, json={
            "agent_id": agent.id, "booking_ids": [bookings[0].id],
        }).json()

        response = client.get(f"/api/finance/invoices/{invoice['id']}", headers={"X-Company-ID": "company-2"})

        assert response.status_code == 404

    def test_summary_and_statement(self, client, headers, billable):
        agent, _ = billable

        summary = client.get("/api/finance/summary", headers=headers).json()
        assert Decimal(summary["amount_to_invoice"]) == Decimal("2000.00")
        assert summary["currency"] == "THB"

        statement = client.get(f"/api/finance/agents/{agent.id}/statement", headers=headers).json()
        assert len(statement["lines"]) == 2
        assert statement["total_pax"] == 4

    def test_inverted_date_range_is_422(self, client, headers):
        response = client.get("/api/finance/summary", headers=headers, params={
            "date_from": "2025-12-31", "date_to": "2025-12-01",
        })
        assert response.status_code == 422

    def test_revenue_by_program(self, client, headers, billable):
        revenue = client.get("/api/finance/revenue/programs", headers=headers).json()
        assert revenue[0]["program_name"] == "Phi Phi Island"
        assert revenue[0]["bookings"] == 2


class TestManifestApi:

    @pytest.fixture
    def day(self, seed):
        program = seed.program()
        boat = seed.boat()
        seed.booking(program, "Late", pickup_time="10:00", boat_id=boat.id)
        seed.booking(program, "Early", pickup_time="07:30")
        return boat

    def test_manifest_rows_in_pickup_order(self, client, headers, day):
        response = client.get("/api/manifest", headers=headers, params={"activity_date": DAY})

        assert response.status_code == 200
        body = response.json()
        assert [r["customer_name"] for r in body["rows"]] == ["Early", "Late"]
        assert body["totals"]["bookings"] == 2

    def test_boat_view(self, client, headers, day):
        response = client.get("/api/manifest/views/boat", headers=headers, params={"activity_date": DAY})

        groups = response.json()["groups"]
        assert [g["label"] for g in groups] == ["Sea Star", "Unassigned"]
        assert groups[-1]["key"] is None

    def test_unknown_view_is_422(self, client, headers, day):
        response = client.get("/api/manifest/views/shoe", headers=headers, params={"activity_date": DAY})
        assert response.status_code == 422

    def test_invalid_date_is_422(self, client, headers):
        response = client.get("/api/manifest", headers=headers, params={"activity_date": "2025-02-30"})
        assert response.status_code == 422

    def test_csv_export(self, client, headers, day):
        response = client.get("/api/manifest/export/csv", headers=headers, params={"activity_date": DAY})

        assert response.status_code == 200
        assert response.content.startswith(b"\xef\xbb\xbf#,Booking #")
        assert "full_report_2025-12-27.csv" in response.headers["content-disposition"]

    def test_group_csv_export(self, client, headers, day):
        response = client.get("/api/manifest/export/csv", headers=headers, params={
            "activity_date": DAY, "view": "boat", "key": day.id,
        })
        assert "Boat: Sea Star (Captain: Somchai)" in response.content.decode("utf-8-sig")

    def test_view_csv_export_has_every_group(self, client, headers, day):
        response = client.get("/api/manifest/export/csv", headers=headers, params={
            "activity_date": DAY, "view": "boat",
        })

        assert response.status_code == 200
        assert "boat_reports_2025-12-27.csv" in response.headers["content-disposition"]
        body = response.content.decode("utf-8-sig")
        assert "Boat: Sea Star (Captain: Somchai)" in body
        assert "Boat: Unassigned" in body

    def test_view_pdf_export(self, client, headers, day):
        response = client.get("/api/manifest/export/pdf", headers=headers, params={
            "activity_date": DAY, "view": "driver",
        })

        assert response.status_code == 200
        assert response.content.startswith(b"%PDF")
        assert "driver_reports_2025-12-27.pdf" in response.headers["content-disposition"]

    def test_view_text_export(self, client, headers, day):
        response = client.get("/api/manifest/export/text", headers=headers, params={
            "activity_date": DAY, "view": "boat",
        })
        assert response.text.count("BOAT REPORT") == 2

    def test_unknown_group_is_404(self, client, headers, day):
        response = client.get("/api/manifest/export/csv", headers=headers, params={
            "activity_date": DAY, "view": "boat", "key": "no-such-boat",
        })
        assert response.status_code == 404

    def test_text_export(self, client, headers, day):
        response = client.get("/api/manifest/export/text", headers=headers, params={"activity_date": DAY})
        assert response.text.startswith("FULL OPERATION REPORT")

    def test_pdf_export(self, client, headers, day):
        response = client.get("/api/manifest/export/pdf", headers=headers, params={"activity_date": DAY})
        assert response.status_code == 200
        assert response.content.startswith(b"%PDF")

    def test_excel_export(self, client, headers, day):
        response = client.get("/api/manifest/export/xlsx", headers=headers, params={
            "activity_date": DAY, "view": "boat",
        })
        assert response.status_code == 200
        assert response.content.startswith(b"PK")


class TestPickupEmailApi:

    def test_sends_through_configured_sender(self, client, headers, seed):
        sender = FakeSender()
        app.dependency_overrides[get_email_sender] = lambda: sender
        booking = seed.booking(seed.program(), customer_email="john@example.com", pickup_time="08:30")

        response = client.post(f"/api/manifest/bookings/{booking.id}/pickup-email", headers=headers, json={
            "company_name": "Andaman Tours",
        })

        assert response.status_code == 200
        assert response.json()["message_id"] == "msg-42"
        assert sender.sent[0].to == "john@example.com"

    def test_without_customer_email_is_422(self, client, headers, seed):
        app.dependency_overrides[get_email_sender] = FakeSender
        booking = seed.booking(seed.program(), pickup_time="08:30")

        response = client.post(f"/api/manifest/bookings/{booking.id}/pickup-email", headers=headers, json={
            "company_name": "Andaman Tours",
        })

        assert response.status_code == 422


class TestHealthAndMiddleware:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_ready(self, client):
        response = client.get("/health/ready")
        assert response.status_code == 200
        assert response.json()["database"]["status"] == "up"

    def test_request_id_and_security_headers(self, client):
        response = client.get("/", headers={"X-Request-ID": "abc123"})

        assert response.headers["X-Request-ID"] == "abc123"
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"

    def test_generated_request_id(self, client):
        assert len(client.get("/").headers["X-Request-ID"]) == 8
