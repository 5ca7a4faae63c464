"""Discount policies, overhead allocations, pricing rules and payment terms."""


class TestDiscountPolicies:
    async def test_create_and_lookup_by_role(self, client, admin_headers):
        response = await client.post(
            "/discount-policies",
            json={"user_role": "SALES", "max_discount_percentage": 10, "requires_approval_above": 5},
            headers=admin_headers,
        )
        assert response.status_code == 201
        assert response.json()["data"]["max_discount_percentage"] == 10.0

        response = await client.get("/discount-policies/role/SALES", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["data"]["requires_approval_above"] == 5.0

    async def test_percentage_out_of_bounds_is_rejected(self, client, admin_headers):
        response = await client.post(
            "/discount-policies",
            json={"user_role": "SALES", "max_discount_percentage": 120},
            headers=admin_headers,
        )
        assert response.status_code == 400
        assert response.json()["success"] is False

        response = await client.get("/discount-policies", headers=admin_headers)
        assert response.json()["data"] == []

    async def test_threshold_above_maximum_is_rejected(self, client, admin_headers):
        response = await client.post(
            "/discount-policies",
            json={"user_role": "SALES", "max_discount_percentage": 10, "requires_approval_above": 15},
            headers=admin_headers,
        )
        assert response.status_code == 400

    async def test_one_policy_per_role(self, client, admin_headers):
        body = {"user_role": "SALES_MANAGER", "max_discount_percentage": 20}
        assert (await client.post("/discount-policies", json=body, headers=admin_headers)).status_code == 201
        response = await client.post("/discount-policies", json=body, headers=admin_headers)
        assert response.status_code == 409
        assert response.json()["error"] == "CONFLICT"

    async def test_unknown_role_lookup_is_400(self, client, admin_headers):
        response = await client.get("/discount-policies/role/JANITOR", headers=admin_headers)
        assert response.status_code == 400

    async def test_missing_policy_lookup_is_404(self, client, admin_headers):
        response = await client.get("/discount-policies/role/CEO", headers=admin_headers)
        assert response.status_code == 404

    async def test_check_discount(self, client, admin_headers, make_headers):
        await client.post(
            "/discount-policies",
            json={"user_role": "SALES", "max_discount_percentage": 10, "requires_approval_above": 5},
            headers=admin_headers,
        )
        sales = make_headers("SALES")

        response = await client.post(
            "/discount-policies/check", json={"user_role": "SALES", "discount_percentage": 7}, headers=sales
        )
        result = response.json()["data"]
        assert result["allowed"] is True
        assert result["requires_approval"] is True

        response = await client.post(
            "/discount-policies/check", json={"user_role": "SALES", "discount_percentage": 12}, headers=sales
        )
        result = response.json()["data"]
        assert result["allowed"] is False
        assert result["requires_approval"] is False

    async def test_update_cannot_push_threshold_over_maximum(self, client, admin_headers):
        response = await client.post(
            "/discount-policies",
            json={"user_role": "SALES", "max_discount_percentage": 10, "requires_approval_above": 5},
            headers=admin_headers,
        )
        policy_id = response.json()["data"]["id"]

        response = await client.put(
            f"/discount-policies/{policy_id}", json={"max_discount_percentage": 4}, headers=admin_headers
        )
        assert response.status_code == 400

        response = await client.put(
            f"/discount-policies/{policy_id}", json={"max_discount_percentage": 15}, headers=admin_headers
        )
        assert response.status_code == 200
        assert response.json()["data"]["max_discount_percentage"] == 15.0

    async def test_writes_need_finance_role(self, client, make_headers):
        response = await client.post(
            "/discount-policies",
            json={"user_role": "SALES", "max_discount_percentage": 10},
            headers=make_headers("SALES"),
        )
        assert response.status_code == 403

        response = await client.post(
            "/discount-policies",
            json={"user_role": "SALES", "max_discount_percentage": 10},
            headers=make_headers("FINANCE_ADMIN"),
        )
        assert response.status_code == 201


class TestOverheadAllocations:
    async def test_crud(self, client, admin_headers):
        response = await client.post(
            "/overhead-allocations",
            json={"cost_category": "Office Rent", "target_percentage": 5, "allocation_percentage_to_hpp": 40},
            headers=admin_headers,
        )
        assert response.status_code == 201
        allocation_id = response.json()["data"]["id"]

        response = await client.get("/overhead-allocations/category/Office Rent", headers=admin_headers)
        assert response.json()["data"]["allocation_percentage_to_hpp"] == 40.0

        response = await client.put(
            f"/overhead-allocations/{allocation_id}", json={"allocation_percentage_to_hpp": 55}, headers=admin_headers
        )
        assert response.json()["data"]["allocation_percentage_to_hpp"] == 55.0

        response = await client.delete(f"/overhead-allocations/{allocation_id}", headers=admin_headers)
        assert response.status_code == 200
        response = await client.get(f"/overhead-allocations/{allocation_id}", headers=admin_headers)
        assert response.status_code == 404

    async def test_required_percentage_cannot_be_cleared(self, client, admin_headers):
        response = await client.post(
            "/overhead-allocations",
            json={"cost_category": "Utilities", "allocation_percentage_to_hpp": 30},
            headers=admin_headers,
        )
        allocation_id = response.json()["data"]["id"]
        response = await client.put(
            f"/overhead-allocations/{allocation_id}",
            json={"allocation_percentage_to_hpp": None},
            headers=admin_headers,
        )
        assert response.status_code == 400


class TestPricingRules:
    async def test_lookup_by_category(self, client, admin_headers):
        await client.post(
            "/pricing-rules", json={"category": "Electrical", "markup_percentage": 25}, headers=admin_headers
        )
        response = await client.get("/pricing-rules/category/Electrical", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["data"]["markup_percentage"] == 25.0

        response = await client.get("/pricing-rules/category/Plumbing", headers=admin_headers)
        assert response.status_code == 404

    async def test_rename_onto_existing_category_conflicts(self, client, admin_headers):
        await client.post(
            "/pricing-rules", json={"category": "Electrical", "markup_percentage": 25}, headers=admin_headers
        )
        response = await client.post(
            "/pricing-rules", json={"category": "Mechanical", "markup_percentage": 20}, headers=admin_headers
        )
        rule_id = response.json()["data"]["id"]

        response = await client.put(f"/pricing-rules/{rule_id}", json={"category": "Electrical"}, headers=admin_headers)
        assert response.status_code == 409


class TestPaymentTerms:
    async def test_due_date(self, client, admin_headers):
        response = await client.post(
            "/payment-terms",
            json={"term_code": "NET30", "term_name": "Net 30 days", "days_until_due": 30},
            headers=admin_headers,
        )
        term_id = response.json()["data"]["id"]

        response = await client.get(
            f"/payment-terms/{term_id}/due-date", params={"invoice_date": "2025-01-15"}, headers=admin_headers
        )
        assert response.status_code == 200
        assert response.json()["data"]["due_date"] == "2025-02-14"

    async def test_due_date_for_unknown_term(self, client, admin_headers):
        response = await client.get(
            "/payment-terms/42/due-date", params={"invoice_date": "2025-01-15"}, headers=admin_headers
        )
        assert response.status_code == 404

    async def test_negative_days_rejected(self, client, admin_headers):
        response = await client.post(
            "/payment-terms",
            json={"term_code": "BAD", "term_name": "Bad", "days_until_due": -1},
            headers=admin_headers,
        )
        assert response.status_code == 400
