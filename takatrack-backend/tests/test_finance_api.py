"""
Tests for authentication and the finance CRUD endpoints
"""
from datetime import date, timedelta

import pytest

from conftest import category_id


@pytest.fixture
def expense_payload(db):
    return {
        "type": "expense",
        "category_id": category_id(db, "Food & Dining"),
        "amount": 25.5,
        "date": date.today().isoformat(),
        "note": "Lunch",
    }


class TestAuth:
    def test_register_returns_token_and_user_role(self, client):
        response = client.post("/auth/register", json={
            "name": "Aisyah", "email": "aisyah@example.com", "password": "password123",
        })

        assert response.status_code == 201
        body = response.json()
        assert body["token_type"] == "bearer"
        assert body["user"]["roles"] == ["user"]

    def test_duplicate_email_rejected(self, client, user):
        response = client.post("/auth/register", json={
            "name": "Again", "email": "user@example.com", "password": "password123",
        })
        assert response.status_code == 400

    def test_login_and_me(self, client, user):
        login = client.post("/auth/login", json={"email": "user@example.com", "password": "password123"})
        assert login.status_code == 200

        headers = {"Authorization": f"Bearer {login.json()['access_token']}"}
        me = client.get("/auth/me", headers=headers)
        assert me.json()["email"] == "user@example.com"

    def test_wrong_password(self, client, user):
        response = client.post("/auth/login", json={"email": "user@example.com", "password": "wrong-password"})
        assert response.status_code == 401

    def test_invalid_token(self, client):
        response = client.get("/auth/me", headers={"Authorization": "Bearer not-a-token"})
        assert response.status_code == 401

    def test_logout_and_refresh(self, client, auth_headers):
        assert client.post("/auth/logout", headers=auth_headers).json() == {"message": "Successfully logged out"}

        refreshed = client.post("/auth/refresh", headers=auth_headers)
        assert refreshed.status_code == 200
        assert refreshed.json()["user"]["email"] == "user@example.com"

    def test_update_profile(self, client, auth_headers, other_headers):
        updated = client.put("/auth/profile", headers=auth_headers, json={"name": "New Name", "settings": {"currency": "MYR"}})
        assert updated.json()["name"] == "New Name"

        taken = client.put("/auth/profile", headers=auth_headers, json={"email": "other@example.com"})
        assert taken.status_code == 400

    def test_change_password(self, client, auth_headers):
        bad = client.put("/auth/password", headers=auth_headers, json={
            "current_password": "nope-nope", "new_password": "newpassword1",
        })
        assert bad.status_code == 400

        ok = client.put("/auth/password", headers=auth_headers, json={
            "current_password": "password123", "new_password": "newpassword1",
        })
        assert ok.status_code == 200
        login = client.post("/auth/login", json={"email": "user@example.com", "password": "newpassword1"})
        assert login.status_code == 200


class TestTransactions:
    """CRUD, filters and ownership."""

    def test_create_and_get(self, client, auth_headers, expense_payload):
        created = client.post("/transactions/", headers=auth_headers, json=expense_payload)

        assert created.status_code == 201
        body = created.json()
        assert body["category_name"] == "Food & Dining"
        assert body["currency"] == "USD"

        fetched = client.get(f"/transactions/{body['transaction_id']}", headers=auth_headers)
        assert fetched.json()["amount"] == 25.5

    def test_amount_must_be_positive(self, client, auth_headers, expense_payload):
        response = client.post("/transactions/", headers=auth_headers, json={**expense_payload, "amount": 0})
        assert response.status_code == 422
        assert "amount" in response.json()["errors"]

    def test_other_users_transaction_forbidden(self, client, auth_headers, other_headers, expense_payload):
        transaction_id = client.post("/transactions/", headers=auth_headers, json=expense_payload).json()["transaction_id"]

        assert client.get(f"/transactions/{transaction_id}", headers=other_headers).status_code == 403
        assert client.put(
            f"/transactions/{transaction_id}", headers=other_headers, json={"amount": 1}
        ).status_code == 403
        assert client.delete(f"/transactions/{transaction_id}", headers=other_headers).status_code == 403

    def test_admin_can_read_any_transaction(self, client, auth_headers, admin_headers, expense_payload):
        transaction_id = client.post("/transactions/", headers=auth_headers, json=expense_payload).json()["transaction_id"]
        assert client.get(f"/transactions/{transaction_id}", headers=admin_headers).status_code == 200

    def test_missing_transaction(self, client, auth_headers):
        assert client.get("/transactions/9999", headers=auth_headers).status_code == 404

    def test_list_filters_sorting_and_pagination(self, client, auth_headers, db, expense_payload):
        for amount in (10, 30, 20):
            client.post("/transactions/", headers=auth_headers, json={**expense_payload, "amount": amount})
        client.post("/transactions/", headers=auth_headers, json={
            **expense_payload, "type": "income", "category_id": category_id(db, "Salary"), "amount": 500,
        })

        expenses = client.get(
            "/transactions/?type=expense&sort_by=amount&sort_order=asc&per_page=2", headers=auth_headers
        ).json()

        assert expenses["total"] == 3
        assert [t["amount"] for t in expenses["transactions"]] == [10, 20]
        assert expenses["has_more"] is True

    def test_summary(self, client, auth_headers, db, expense_payload):
        client.post("/transactions/", headers=auth_headers, json=expense_payload)
        client.post("/transactions/", headers=auth_headers, json={
            **expense_payload, "type": "income", "category_id": category_id(db, "Salary"), "amount": 100,
        })

        summary = client.get("/transactions/summary", headers=auth_headers).json()

        assert summary["total_income"] == 100
        assert summary["total_expenses"] == 25.5
        assert summary["net_balance"] == 74.5
        assert summary["transaction_count"] == 2

    def test_delete(self, client, auth_headers, expense_payload):
        transaction_id = client.post("/transactions/", headers=auth_headers, json=expense_payload).json()["transaction_id"]

        assert client.delete(f"/transactions/{transaction_id}", headers=auth_headers).status_code == 204
        assert client.get(f"/transactions/{transaction_id}", headers=auth_headers).status_code == 404


class TestCategories:
    def test_lists_system_categories(self, client, auth_headers):
        categories = client.get("/categories/?type=income", headers=auth_headers).json()
        assert {c["name"] for c in categories} == {"Salary", "Freelance", "Investment", "Other Income"}
        assert all(c["is_system"] for c in categories)

    def test_private_category_is_hidden_from_others(self, client, auth_headers, other_headers):
        created = client.post("/categories/", headers=auth_headers, json={"name": "Pets", "type": "expense"})
        assert created.status_code == 201

        category_id_ = created.json()["category_id"]
        assert client.get(f"/categories/{category_id_}", headers=other_headers).status_code == 403
        assert "Pets" not in {c["name"] for c in client.get("/categories/", headers=other_headers).json()}

    def test_system_category_read_only_for_users(self, client, auth_headers, admin_headers, db):
        system_id = category_id(db, "Shopping")
        assert client.put(f"/categories/{system_id}", headers=auth_headers, json={"icon": "bag"}).status_code == 403
        assert client.put(f"/categories/{system_id}", headers=admin_headers, json={"icon": "bag"}).status_code == 200

    def test_category_in_use_cannot_be_deleted(self, client, auth_headers, expense_payload):
        category = client.post("/categories/", headers=auth_headers, json={"name": "Pets", "type": "expense"}).json()
        client.post("/transactions/", headers=auth_headers, json={**expense_payload, "category_id": category["category_id"]})

        response = client.delete(f"/categories/{category['category_id']}", headers=auth_headers)
        assert response.status_code == 400


class TestAccounts:
    def test_crud(self, client, auth_headers, other_headers):
        created = client.post("/accounts/", headers=auth_headers, json={
            "name": "Maybank Savings", "type": "savings", "balance": 1500, "currency": "myr",
        })
        assert created.status_code == 201
        account = created.json()
        assert account["currency"] == "MYR"

        updated = client.put(f"/accounts/{account['account_id']}", headers=auth_headers, json={"balance": 1700})
        assert updated.json()["balance"] == 1700
        assert client.get(f"/accounts/{account['account_id']}", headers=other_headers).status_code == 403
        assert len(client.get("/accounts/", headers=auth_headers).json()) == 1
        assert client.delete(f"/accounts/{account['account_id']}", headers=auth_headers).status_code == 204

    def test_invalid_type(self, client, auth_headers):
        response = client.post("/accounts/", headers=auth_headers, json={"name": "X", "type": "piggybank"})
        assert response.status_code == 422


class TestBudgets:
    def test_spent_amount_is_derived(self, client, auth_headers, db, expense_payload):
        food_id = category_id(db, "Food & Dining")
        budget = client.post("/budgets/", headers=auth_headers, json={
            "category_id": food_id, "month": date.today().isoformat(), "limit_amount": 100,
        })
        assert budget.status_code == 201
        assert budget.json()["month"] == date.today().replace(day=1).isoformat()

        client.post("/transactions/", headers=auth_headers, json={**expense_payload, "amount": 85})
        fetched = client.get(f"/budgets/{budget.json()['budget_id']}", headers=auth_headers).json()

        assert fetched["spent_amount"] == 85
        assert fetched["remaining_amount"] == 15
        assert fetched["percentage_used"] == 85.0
        assert fetched["status"] == "at_risk"

    def test_duplicate_month_rejected(self, client, auth_headers, db):
        payload = {"category_id": category_id(db, "Shopping"), "month": "2024-06-10", "limit_amount": 200}
        assert client.post("/budgets/", headers=auth_headers, json=payload).status_code == 201
        assert client.post("/budgets/", headers=auth_headers, json={**payload, "month": "2024-06-25"}).status_code == 400

    def test_income_category_rejected(self, client, auth_headers, db):
        response = client.post("/budgets/", headers=auth_headers, json={
            "category_id": category_id(db, "Salary"), "month": "2024-06-01", "limit_amount": 200,
        })
        assert response.status_code == 400

    def test_list_envelope(self, client, auth_headers, db):
        client.post("/budgets/", headers=auth_headers, json={
            "category_id": category_id(db, "Shopping"), "month": "2024-06-01", "limit_amount": 200,
        })
        body = client.get("/budgets/", headers=auth_headers).json()
        assert body["total"] == 1
        assert body["has_more"] is False
        assert body["budgets"][0]["category_name"] == "Shopping"


class TestGoals:
    def test_contribution_completes_goal(self, client, auth_headers):
        target_date = (date.today() + timedelta(days=90)).isoformat()
        goal = client.post("/goals/", headers=auth_headers, json={
            "name": "Holiday", "target_amount": 1000, "target_date": target_date,
        }).json()
        assert goal["progress_percentage"] == 0
        assert goal["days_remaining"] == 90

        halfway = client.post(f"/goals/{goal['goal_id']}/contribute", headers=auth_headers, json={"amount": 500}).json()
        assert halfway["progress_percentage"] == 50.0
        assert halfway["monthly_required"] == round(500 / 3, 2)

        done = client.post(f"/goals/{goal['goal_id']}/contribute", headers=auth_headers, json={"amount": 500}).json()
        assert done["status"] == "completed"

        again = client.post(f"/goals/{goal['goal_id']}/contribute", headers=auth_headers, json={"amount": 1})
        assert again.status_code == 400

    def test_past_target_date_rejected(self, client, auth_headers):
        response = client.post("/goals/", headers=auth_headers, json={
            "name": "Old", "target_amount": 100, "target_date": "2000-01-01",
        })
        assert response.status_code == 422
