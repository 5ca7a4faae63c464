"""Chart of accounts and double-entry journal tests."""
from decimal import Decimal
from types import SimpleNamespace

import pytest

from erp_services.exceptions import UnbalancedJournalError, ValidationFailedError
from erp_services.services.journal_service import compute_journal_totals, validate_journal_lines


def line(account_id=1, debit=None, credit=None):
    return SimpleNamespace(account_id=account_id, debit=debit, credit=credit)


async def create_account(client, headers, code, name, account_type):
    response = await client.post(
        "/chart-of-accounts",
        json={"account_code": code, "account_name": name, "account_type": account_type},
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]


class TestJournalBalance:
    """Pure balance checks on journal lines."""

    def test_balanced_journal_is_accepted(self):
        totals = validate_journal_lines([line(1, debit=100), line(2, debit=50), line(3, credit=150)])
        assert totals.total_debit == Decimal("150")
        assert totals.total_credit == Decimal("150")
        assert totals.is_balanced

    def test_unbalanced_journal_reports_difference(self):
        with pytest.raises(UnbalancedJournalError) as excinfo:
            validate_journal_lines([line(1, debit=100), line(2, debit=50), line(3, credit=140)])
        assert excinfo.value.difference == Decimal("10")
        assert excinfo.value.details["difference"] == 10.0

    def test_difference_below_one_cent_is_balanced(self):
        totals = compute_journal_totals([line(1, debit="100.005"), line(2, credit="100")])
        assert totals.is_balanced

    def test_single_line_is_rejected(self):
        with pytest.raises(ValidationFailedError):
            compute_journal_totals([line(1, debit=100)])

    def test_line_with_both_amounts_is_rejected(self):
        with pytest.raises(ValidationFailedError):
            compute_journal_totals([line(1, debit=10, credit=10), line(2, credit=10)])

    def test_line_without_amount_is_rejected(self):
        with pytest.raises(ValidationFailedError):
            compute_journal_totals([line(1), line(2, credit=10)])

    def test_line_without_account_is_rejected(self):
        with pytest.raises(ValidationFailedError):
            compute_journal_totals([line(None, debit=10), line(2, credit=10)])


class TestChartOfAccounts:
    """CRUD on /chart-of-accounts."""

    async def test_create_and_list_ordered_by_code(self, client, admin_headers):
        await create_account(client, admin_headers, "4000", "Revenue", "Revenue")
        await create_account(client, admin_headers, "1000", "Cash", "Asset")

        response = await client.get("/chart-of-accounts", headers=admin_headers)
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert [account["account_code"] for account in body["data"]] == ["1000", "4000"]

    async def test_filter_by_type_and_search(self, client, admin_headers):
        await create_account(client, admin_headers, "1000", "Cash", "Asset")
        await create_account(client, admin_headers, "1100", "Bank BCA", "Asset")
        await create_account(client, admin_headers, "5000", "HPP Material", "CostOfService")

        response = await client.get(
            "/chart-of-accounts", params={"account_type": "Asset", "search": "bca"}, headers=admin_headers
        )
        assert [account["account_name"] for account in response.json()["data"]] == ["Bank BCA"]

    async def test_missing_field_is_rejected_without_write(self, client, admin_headers):
        response = await client.post(
            "/chart-of-accounts", json={"account_code": "1000", "account_type": "Asset"}, headers=admin_headers
        )
        assert response.status_code == 400
        assert response.json()["success"] is False

        listing = await client.get("/chart-of-accounts", headers=admin_headers)
        assert listing.json()["data"] == []

    async def test_duplicate_code_conflicts_and_keeps_original(self, client, admin_headers):
        await create_account(client, admin_headers, "1000", "Cash", "Asset")
        response = await client.post(
            "/chart-of-accounts",
            json={"account_code": "1000", "account_name": "Other", "account_type": "Expense"},
            headers=admin_headers,
        )
        assert response.status_code == 409

        listing = await client.get("/chart-of-accounts", headers=admin_headers)
        assert [account["account_name"] for account in listing.json()["data"]] == ["Cash"]

    async def test_unknown_account_is_404(self, client, admin_headers):
        response = await client.get("/chart-of-accounts/999", headers=admin_headers)
        assert response.status_code == 404
        assert response.json()["error"] == "NOT_FOUND"

    async def test_update_account(self, client, admin_headers):
        account = await create_account(client, admin_headers, "1000", "Cash", "Asset")
        response = await client.put(
            f"/chart-of-accounts/{account['id']}", json={"account_name": "Petty Cash"}, headers=admin_headers
        )
        assert response.status_code == 200
        assert response.json()["data"]["account_name"] == "Petty Cash"

    async def test_delete_unused_account(self, client, admin_headers):
        account = await create_account(client, admin_headers, "1000", "Cash", "Asset")
        response = await client.delete(f"/chart-of-accounts/{account['id']}", headers=admin_headers)
        assert response.status_code == 200
        assert (await client.get(f"/chart-of-accounts/{account['id']}", headers=admin_headers)).status_code == 404

    async def test_delete_referenced_account_is_blocked(self, client, admin_headers):
        cash = await create_account(client, admin_headers, "1000", "Cash", "Asset")
        revenue = await create_account(client, admin_headers, "4000", "Revenue", "Revenue")
        await client.post(
            "/journal-entries",
            json={
                "transaction_date": "2025-01-15",
                "lines": [
                    {"account_id": cash["id"], "debit": 500},
                    {"account_id": revenue["id"], "credit": 500},
                ],
            },
            headers=admin_headers,
        )

        response = await client.delete(f"/chart-of-accounts/{cash['id']}", headers=admin_headers)
        assert response.status_code == 400
        assert "journal entries" in response.json()["message"]
        assert (await client.get(f"/chart-of-accounts/{cash['id']}", headers=admin_headers)).status_code == 200

    async def test_writes_need_finance_role(self, client, make_headers):
        response = await client.post(
            "/chart-of-accounts",
            json={"account_code": "1000", "account_name": "Cash", "account_type": "Asset"},
            headers=make_headers("SALES"),
        )
        assert response.status_code == 403

    async def test_reads_need_token(self, client):
        response = await client.get("/chart-of-accounts")
        assert response.status_code == 401


class TestJournalEntries:
    """Journal transactions through /journal-entries."""

    @pytest.fixture
    async def accounts(self, client, admin_headers):
        cash = await create_account(client, admin_headers, "1000", "Cash", "Asset")
        bank = await create_account(client, admin_headers, "1100", "Bank", "Asset")
        revenue = await create_account(client, admin_headers, "4000", "Revenue", "Revenue")
        return cash, bank, revenue

    async def test_balanced_transaction_is_saved(self, client, admin_headers, accounts):
        cash, bank, revenue = accounts
        response = await client.post(
            "/journal-entries",
            json={
                "transaction_date": "2025-01-15",
                "description": "Project payment",
                "lines": [
                    {"account_id": cash["id"], "debit": 100},
                    {"account_id": bank["id"], "debit": 50},
                    {"account_id": revenue["id"], "credit": 150},
                ],
            },
            headers=admin_headers,
        )
        assert response.status_code == 201, response.text
        data = response.json()["data"]
        assert data["total_debit"] == 150.0
        assert data["total_credit"] == 150.0
        assert len(data["lines"]) == 3
        assert {entry["transaction_id"] for entry in data["lines"]} == {data["transaction_id"]}

    async def test_unbalanced_transaction_is_rejected(self, client, admin_headers, accounts):
        cash, bank, revenue = accounts
        response = await client.post(
            "/journal-entries",
            json={
                "transaction_date": "2025-01-15",
                "lines": [
                    {"account_id": cash["id"], "debit": 100},
                    {"account_id": bank["id"], "debit": 50},
                    {"account_id": revenue["id"], "credit": 140},
                ],
            },
            headers=admin_headers,
        )
        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "UNBALANCED_JOURNAL"
        assert body["details"]["difference"] == 10.0

        listing = await client.get("/journal-entries", headers=admin_headers)
        assert listing.json()["pagination"]["total"] == 0

    async def test_unknown_account_in_line_is_404(self, client, admin_headers, accounts):
        cash, _, _ = accounts
        response = await client.post(
            "/journal-entries",
            json={
                "transaction_date": "2025-01-15",
                "lines": [{"account_id": cash["id"], "debit": 10}, {"account_id": 999, "credit": 10}],
            },
            headers=admin_headers,
        )
        assert response.status_code == 404

    async def test_validate_does_not_write(self, client, admin_headers, accounts):
        cash, _, revenue = accounts
        response = await client.post(
            "/journal-entries/validate",
            json={"lines": [{"account_id": cash["id"], "debit": 100}, {"account_id": revenue["id"], "credit": 90}]},
            headers=admin_headers,
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["is_balanced"] is False
        assert data["difference"] == 10.0

        listing = await client.get("/journal-entries", headers=admin_headers)
        assert listing.json()["pagination"]["total"] == 0

    async def test_transaction_lookup_balance_and_delete(self, client, admin_headers, accounts):
        cash, _, revenue = accounts
        created = await client.post(
            "/journal-entries",
            json={
                "transaction_date": "2025-01-15",
                "lines": [{"account_id": cash["id"], "debit": 250}, {"account_id": revenue["id"], "credit": 250}],
            },
            headers=admin_headers,
        )
        transaction_id = created.json()["data"]["transaction_id"]

        fetched = await client.get(f"/journal-entries/transactions/{transaction_id}", headers=admin_headers)
        assert fetched.status_code == 200

        balance = await client.get(f"/journal-entries/account/{cash['id']}/balance", headers=admin_headers)
        assert balance.json()["data"]["balance"] == 250.0

        by_account = await client.get(f"/journal-entries/account/{revenue['id']}", headers=admin_headers)
        assert len(by_account.json()["data"]) == 1

        deleted = await client.delete(f"/journal-entries/transactions/{transaction_id}", headers=admin_headers)
        assert deleted.status_code == 200
        assert deleted.json()["data"]["deleted_lines"] == 2
        missing = await client.get(f"/journal-entries/transactions/{transaction_id}", headers=admin_headers)
        assert missing.status_code == 404

    async def test_entries_for_unknown_account_is_404(self, client, admin_headers):
        response = await client.get("/journal-entries/account/999", headers=admin_headers)
        assert response.status_code == 404

    async def test_patch_changes_description_only(self, client, admin_headers, accounts):
        cash, _, revenue = accounts
        created = await client.post(
            "/journal-entries",
            json={
                "transaction_date": "2025-01-15",
                "lines": [{"account_id": cash["id"], "debit": 80}, {"account_id": revenue["id"], "credit": 80}],
            },
            headers=admin_headers,
        )
        entry = created.json()["data"]["lines"][0]

        response = await client.patch(
            f"/journal-entries/{entry['id']}",
            json={"description": "Corrected memo", "debit": 1},
            headers=admin_headers,
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["description"] == "Corrected memo"
        assert data["debit"] == entry["debit"]

    async def test_list_filters_and_paginates(self, client, admin_headers, accounts):
        cash, _, revenue = accounts
        for day in ("2025-01-10", "2025-02-10", "2025-03-10"):
            await client.post(
                "/journal-entries",
                json={
                    "transaction_date": day,
                    "lines": [{"account_id": cash["id"], "debit": 10}, {"account_id": revenue["id"], "credit": 10}],
                },
                headers=admin_headers,
            )

        response = await client.get(
            "/journal-entries",
            params={"account_id": cash["id"], "start_date": "2025-02-01", "page": 1, "limit": 1},
            headers=admin_headers,
        )
        body = response.json()
        assert body["pagination"]["total"] == 2
        assert body["pagination"]["totalPages"] == 2
        assert body["pagination"]["hasNext"] is True
        assert body["data"][0]["transaction_date"] == "2025-03-10"
        assert body["data"][0]["account_code"] == "1000"
