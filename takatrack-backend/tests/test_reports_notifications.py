"""
Tests for monthly reports, exports and in-app notifications
"""
import csv
import io

import pytest

from conftest import category_id


@pytest.fixture
def june_transactions(client, auth_headers, db):
    rows = [
        ("income", "Salary", 3000, "2024-06-01", "June salary"),
        ("expense", "Food & Dining", 40, "2024-06-03", "Groceries"),
        ("expense", "Food & Dining", 60, "2024-06-20", None),
        ("expense", "Shopping", 250, "2024-06-30", "Shoes"),
        ("expense", "Shopping", 99, "2024-07-01", "Next month"),
    ]
    for type_, category, amount, day, note in rows:
        response = client.post("/transactions/", headers=auth_headers, json={
            "type": type_, "category_id": category_id(db, category), "amount": amount, "date": day, "note": note,
        })
        assert response.status_code == 201


class TestMonthlyReport:
    def test_totals_and_breakdown(self, client, auth_headers, june_transactions):
        report = client.get("/reports/monthly?month=2024-06", headers=auth_headers).json()

        assert report["month"] == "2024-06"
        assert report["from_date"] == "2024-06-01"
        assert report["to_date"] == "2024-06-30"
        assert report["total_income"] == 3000
        assert report["total_expenses"] == 350
        assert report["net"] == 2650
        assert [entry["category"] for entry in report["by_category"]] == ["Salary", "Shopping", "Food & Dining"]
        assert report["by_category"][2]["count"] == 2
        assert len(report["transactions"]) == 4

    def test_bad_month_format(self, client, auth_headers):
        response = client.get("/reports/monthly?month=June", headers=auth_headers)
        assert response.status_code == 422
        assert response.json()["detail"] == "Month must be in YYYY-MM format"


class TestExport:
    def test_csv_download(self, client, auth_headers, june_transactions):
        response = client.get("/reports/export?from_date=2024-06-01&to_date=2024-06-30", headers=auth_headers)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert response.headers["content-disposition"].startswith("attachment; filename=transactions_")

        rows = list(csv.DictReader(io.StringIO(response.text)))
        assert len(rows) == 4
        assert rows[0]["category"] == "Shopping"
        assert rows[0]["note"] == "Shoes"
        assert rows[-1]["type"] == "income"

    def test_json_export(self, client, auth_headers, june_transactions):
        body = client.get("/reports/export?format=json", headers=auth_headers).json()

        assert body["total"] == 5
        assert set(body["transactions"][0]) == {
            "transaction_id", "date", "type", "category", "amount", "currency", "note", "source",
        }

    def test_unknown_format(self, client, auth_headers):
        assert client.get("/reports/export?format=xml", headers=auth_headers).status_code == 422


class TestNotifications:
    """List, read state and deletion."""

    def test_test_notification_and_unread_count(self, client, auth_headers):
        created = client.post("/notifications/test", headers=auth_headers)
        assert created.status_code == 201
        assert created.json()["type"] == "system"
        assert created.json()["is_read"] is False

        assert client.get("/notifications/unread-count", headers=auth_headers).json() == {"unread_count": 1}

    def test_mark_read(self, client, auth_headers):
        notification_id = client.post("/notifications/test", headers=auth_headers).json()["notification_id"]

        read = client.put(f"/notifications/{notification_id}/read", headers=auth_headers).json()

        assert read["is_read"] is True
        assert read["read_at"] is not None
        listing = client.get("/notifications/?is_read=false", headers=auth_headers).json()
        assert listing["total"] == 0
        assert listing["unread_count"] == 0

    def test_mark_all_read(self, client, auth_headers):
        for _ in range(3):
            client.post("/notifications/test", headers=auth_headers)

        response = client.put("/notifications/mark-all-read", headers=auth_headers)

        assert response.json()["updated"] == 3
        assert client.get("/notifications/unread-count", headers=auth_headers).json()["unread_count"] == 0

    def test_pagination(self, client, auth_headers):
        for _ in range(3):
            client.post("/notifications/test", headers=auth_headers)

        page = client.get("/notifications/?skip=0&limit=2", headers=auth_headers).json()

        assert len(page["notifications"]) == 2
        assert page["total"] == 3
        assert page["has_more"] is True

    def test_other_users_notification(self, client, auth_headers, other_headers):
        notification_id = client.post("/notifications/test", headers=auth_headers).json()["notification_id"]

        assert client.put(f"/notifications/{notification_id}/read", headers=other_headers).status_code == 403
        assert client.delete(f"/notifications/{notification_id}", headers=other_headers).status_code == 403

    def test_delete(self, client, auth_headers):
        notification_id = client.post("/notifications/test", headers=auth_headers).json()["notification_id"]

        assert client.delete(f"/notifications/{notification_id}", headers=auth_headers).status_code == 204
        assert client.get("/notifications/", headers=auth_headers).json()["total"] == 0
