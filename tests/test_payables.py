"""Vendor payables: three-way matching, approval, disputes and payments."""
from decimal import Decimal

import pytest

from erp_services.exceptions import InvalidStateTransitionError
from erp_services.models.payable_models import MatchingStatus, PayableItemRequest, PayableStatus, PayableType
from erp_services.services.payable_service import check_transition, three_way_match


def item(po_qty, invoice_qty, received_qty=None, unit_price=1000):
    return PayableItemRequest(
        description="Kabel NYY 4x16",
        po_qty=Decimal(po_qty),
        invoice_qty=Decimal(invoice_qty),
        received_qty=None if received_qty is None else Decimal(received_qty),
        unit_price=Decimal(unit_price),
    )


class TestThreeWayMatch:
    def test_all_quantities_agree(self):
        result = three_way_match(PayableType.GOODS, [item(10, 10, 10), item(5, 5, 5)])
        assert result.matching_status == MatchingStatus.MATCHED
        assert result.po_matched and result.gr_matched
        assert result.line_matches == [True, True]

    def test_missing_receipt_is_pending(self):
        result = three_way_match(PayableType.GOODS, [item(10, 10, 10), item(5, 5)])
        assert result.matching_status == MatchingStatus.PENDING
        assert result.po_matched is True
        assert result.gr_matched is False
        assert result.line_matches == [True, False]

    def test_short_receipt_is_mismatch(self):
        result = three_way_match(PayableType.GOODS, [item(10, 10, 8)])
        assert result.matching_status == MatchingStatus.MISMATCH
        assert result.gr_matched is False

    def test_mismatch_wins_over_pending(self):
        result = three_way_match(PayableType.GOODS, [item(10, 12, 12), item(5, 5)])
        assert result.matching_status == MatchingStatus.MISMATCH
        assert result.po_matched is False

    def test_services_skip_goods_receipt(self):
        result = three_way_match(PayableType.SERVICES, [item(1, 1)])
        assert result.matching_status == MatchingStatus.MATCHED
        assert result.gr_matched is True


class TestTransitions:
    @pytest.mark.parametrize("current,target", [
        ("DRAFT", PayableStatus.APPROVED),
        ("APPROVED", PayableStatus.PAID),
        ("PARTIALLY_PAID", PayableStatus.DISPUTE),
        ("DISPUTE", PayableStatus.DRAFT),
    ])
    def test_allowed(self, current, target):
        check_transition(current, target)

    @pytest.mark.parametrize("current,target", [
        ("PAID", PayableStatus.DISPUTE),
        ("DRAFT", PayableStatus.PAID),
        ("DISPUTE", PayableStatus.APPROVED),
    ])
    def test_rejected(self, current, target):
        with pytest.raises(InvalidStateTransitionError):
            check_transition(current, target)


def payable_body(number="VINV-001", **overrides):
    body = {
        "vendor_invoice_number": number,
        "po_number": "PO-001",
        "gr_number": "GR-001",
        "vendor_name": "PT Sinar Baja",
        "invoice_date": "2025-03-01",
        "due_date": "2025-03-31",
        "tax_ppn": 11000,
        "tax_pph23": 2000,
        "items": [{"description": "Besi beton", "po_qty": 10, "received_qty": 10, "invoice_qty": 10, "unit_price": 10000}],
    }
    body.update(overrides)
    return body


@pytest.fixture
def finance_headers(make_headers):
    return make_headers("FINANCE_ADMIN")


async def create_payable(client, headers, **overrides):
    response = await client.post("/payables", json=payable_body(**overrides), headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


class TestPayables:
    async def test_create_computes_totals_and_match(self, client, finance_headers):
        payable = await create_payable(client, finance_headers)
        assert payable["subtotal"] == 100000.0
        assert payable["total_amount"] == 109000.0
        assert payable["outstanding_amount"] == 109000.0
        assert payable["status"] == "DRAFT"
        assert payable["matching_status"] == "MATCHED"
        assert payable["items"][0]["matched"] is True

    async def test_due_date_from_payment_term(self, client, finance_headers, admin_headers):
        await client.post(
            "/payment-terms",
            json={"term_code": "NET14", "term_name": "Net 14", "days_until_due": 14},
            headers=admin_headers,
        )
        payable = await create_payable(client, finance_headers, due_date=None, payment_term_code="NET14")
        assert payable["due_date"] == "2025-03-15"
        assert payable["payment_terms"] == "NET14"

    async def test_due_date_or_term_required(self, client, finance_headers):
        response = await client.post("/payables", json=payable_body(due_date=None), headers=finance_headers)
        assert response.status_code == 400

    async def test_duplicate_vendor_invoice(self, client, finance_headers):
        await create_payable(client, finance_headers)
        response = await client.post("/payables", json=payable_body(), headers=finance_headers)
        assert response.status_code == 409

    async def test_withholding_cannot_exceed_total(self, client, finance_headers):
        response = await client.post(
            "/payables", json=payable_body(tax_ppn=0, tax_pph23=200000), headers=finance_headers
        )
        assert response.status_code == 400

    async def test_only_matched_payables_are_approved(self, client, finance_headers):
        items = [{"description": "Besi beton", "po_qty": 10, "received_qty": 8, "invoice_qty": 10, "unit_price": 10000}]
        payable = await create_payable(client, finance_headers, items=items)
        assert payable["matching_status"] == "MISMATCH"

        response = await client.post(f"/payables/{payable['id']}/approve", headers=finance_headers)
        assert response.status_code == 400

        items[0]["received_qty"] = 10
        response = await client.put(f"/payables/{payable['id']}", json={"items": items}, headers=finance_headers)
        assert response.json()["data"]["matching_status"] == "MATCHED"

        response = await client.post(f"/payables/{payable['id']}/approve", headers=finance_headers)
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "APPROVED"

    async def test_procurement_cannot_approve(self, client, finance_headers, make_headers):
        payable = await create_payable(client, finance_headers)
        response = await client.post(f"/payables/{payable['id']}/approve", headers=make_headers("PROCUREMENT_ADMIN"))
        assert response.status_code == 403

    async def test_payments_until_paid(self, client, finance_headers):
        payable = await create_payable(client, finance_headers)
        await client.post(f"/payables/{payable['id']}/approve", headers=finance_headers)

        response = await client.post(
            f"/payables/{payable['id']}/payments",
            json={"amount": 9000, "payment_date": "2025-03-05", "reference": "TRF-1"},
            headers=finance_headers,
        )
        assert response.status_code == 201
        assert response.json()["data"]["status"] == "PARTIALLY_PAID"
        assert response.json()["data"]["outstanding_amount"] == 100000.0

        response = await client.post(
            f"/payables/{payable['id']}/payments",
            json={"amount": 100001, "payment_date": "2025-03-06"},
            headers=finance_headers,
        )
        assert response.status_code == 400

        response = await client.post(
            f"/payables/{payable['id']}/payments",
            json={"amount": 100000, "payment_date": "2025-03-06"},
            headers=finance_headers,
        )
        paid = response.json()["data"]
        assert paid["status"] == "PAID"
        assert paid["paid_amount"] == 109000.0
        assert [payment["reference"] for payment in paid["payments"]] == ["TRF-1", None]

    async def test_payment_on_draft_is_rejected(self, client, finance_headers):
        payable = await create_payable(client, finance_headers)
        response = await client.post(
            f"/payables/{payable['id']}/payments",
            json={"amount": 1000, "payment_date": "2025-03-05"},
            headers=finance_headers,
        )
        assert response.status_code == 400
        assert response.json()["error"] == "INVALID_STATE_TRANSITION"

    async def test_dispute_and_resolve(self, client, finance_headers):
        payable = await create_payable(client, finance_headers)
        response = await client.post(
            f"/payables/{payable['id']}/dispute", json={"reason": "Harga tidak sesuai PO"}, headers=finance_headers
        )
        assert response.json()["data"]["status"] == "DISPUTE"
        assert response.json()["data"]["dispute_reason"] == "Harga tidak sesuai PO"

        response = await client.post(f"/payables/{payable['id']}/approve", headers=finance_headers)
        assert response.status_code == 400

        response = await client.post(f"/payables/{payable['id']}/resolve", headers=finance_headers)
        assert response.json()["data"]["status"] == "DRAFT"
        assert response.json()["data"]["dispute_reason"] is None

    async def test_approved_payable_is_locked(self, client, finance_headers):
        payable = await create_payable(client, finance_headers)
        await client.post(f"/payables/{payable['id']}/approve", headers=finance_headers)

        response = await client.put(f"/payables/{payable['id']}", json={"notes": "x"}, headers=finance_headers)
        assert response.status_code == 400
        response = await client.delete(f"/payables/{payable['id']}", headers=finance_headers)
        assert response.status_code == 400

    async def test_summary_buckets_by_due_date(self, client, finance_headers):
        await create_payable(client, finance_headers, number="V-1", invoice_date="2025-02-01", due_date="2025-03-01")
        await create_payable(client, finance_headers, number="V-2", due_date="2025-03-14")
        await create_payable(client, finance_headers, number="V-3", due_date="2025-04-30")

        response = await client.get("/payables/summary", headers=finance_headers)
        summary = response.json()["data"]
        assert summary == {
            "total_payable": 327000.0,
            "due_this_week": 109000.0,
            "overdue": 109000.0,
            "open_count": 3,
        }

    async def test_list_filters(self, client, finance_headers):
        await create_payable(client, finance_headers, number="V-1")
        items = [{"description": "Jasa", "po_qty": 1, "invoice_qty": 1, "unit_price": 500}]
        await create_payable(client, finance_headers, number="V-2", items=items)

        response = await client.get("/payables", params={"matching_status": "PENDING"}, headers=finance_headers)
        assert [payable["vendor_invoice_number"] for payable in response.json()["data"]] == ["V-2"]


class TestPaidPayablesAfterDispute:
    @pytest.fixture
    async def resolved(self, client, finance_headers):
        payable = await create_payable(client, finance_headers)
        await client.post(f"/payables/{payable['id']}/approve", headers=finance_headers)
        await client.post(
            f"/payables/{payable['id']}/payments",
            json={"amount": 5000, "payment_date": "2025-03-05", "reference": "TRF-1"},
            headers=finance_headers,
        )
        await client.post(f"/payables/{payable['id']}/dispute", json={"reason": "Kurang kirim"}, headers=finance_headers)
        response = await client.post(f"/payables/{payable['id']}/resolve", headers=finance_headers)
        data = response.json()["data"]
        assert data["status"] == "DRAFT"
        assert data["paid_amount"] == 5000.0
        return data

    async def test_cannot_delete_once_paid(self, client, finance_headers, resolved):
        response = await client.delete(f"/payables/{resolved['id']}", headers=finance_headers)
        assert response.status_code == 400

        response = await client.get(f"/payables/{resolved['id']}", headers=finance_headers)
        assert response.status_code == 200
        assert len(response.json()["data"]["payments"]) == 1

    async def test_total_cannot_drop_below_paid(self, client, finance_headers, resolved):
        items = [{"description": "Besi beton", "po_qty": 1, "received_qty": 1, "invoice_qty": 1, "unit_price": 1}]
        response = await client.put(
            f"/payables/{resolved['id']}",
            json={"items": items, "tax_ppn": 0, "tax_pph23": 0},
            headers=finance_headers,
        )
        assert response.status_code == 400

        response = await client.get(f"/payables/{resolved['id']}", headers=finance_headers)
        data = response.json()["data"]
        assert data["total_amount"] == 109000.0
        assert data["outstanding_amount"] == 104000.0

    async def test_reapproved_payable_pays_the_remainder(self, client, finance_headers, resolved):
        response = await client.post(f"/payables/{resolved['id']}/approve", headers=finance_headers)
        assert response.json()["data"]["status"] == "APPROVED"

        response = await client.post(
            f"/payables/{resolved['id']}/payments",
            json={"amount": 104000, "payment_date": "2025-03-20"},
            headers=finance_headers,
        )
        assert response.json()["data"]["status"] == "PAID"
        assert response.json()["data"]["outstanding_amount"] == 0.0
