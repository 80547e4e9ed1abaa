"""
Tests for the analysis, classification, history and insights endpoints under /ai
"""
import httpx

import models
from conftest import completion
from services.ai_insights import mock_insights

EXPENSES = [
    {"amount": 120, "category": "Food", "description": "Dinner at restaurant"},
    {"amount": 60, "category": "Transport", "description": "Uber ride"},
]

SUMMARY = {
    "totals_by_category": {"Food": {"income": 0, "expenses": 420.5}},
    "last_3_months_avg": {"Food": 390},
    "user_goal": "Save for a car",
}


class TestSpendingInsights:
    def test_summary_and_stored_analysis(self, client, auth_headers, db):
        response = client.post("/ai/spending-insights", headers=auth_headers, json={"expenses": EXPENSES})

        assert response.status_code == 200
        body = response.json()
        assert body["summary"] == {"total_expenses": 2, "total_amount": 180}
        assert body["insights"]["top_category"] == "Food & Dining"

        conversation = db.query(models.AiConversation).one()
        assert conversation.type == "analysis"
        assert conversation.answer == "Analyzed 2 expenses. Top category: Food & Dining"

    def test_empty_list_rejected(self, client, auth_headers):
        response = client.post("/ai/spending-insights", headers=auth_headers, json={"expenses": []})
        assert response.status_code == 422


class TestClassifyExpense:
    def test_keyword_match(self, client, auth_headers):
        response = client.post("/ai/classify-expense", headers=auth_headers, json={"description": "Taxi to the airport"})

        assert response.status_code == 200
        assert response.json()["category"] == "Transportation"
        assert response.json()["method"] == "keyword_workflow"

    def test_falls_back_to_first_visible_category(self, client, auth_headers):
        response = client.post("/ai/classify-expense", headers=auth_headers, json={"description": "Mystery item"})

        body = response.json()
        assert body["method"] == "fallback"
        assert body["category"] == "Bills & Utilities"


class TestConversations:
    def test_lists_only_own_conversations(self, client, auth_headers, other_headers):
        client.post("/ai/spending-insights", headers=auth_headers, json={"expenses": EXPENSES})
        client.post("/ai/spending-insights", headers=other_headers, json={"expenses": EXPENSES[:1]})

        conversations = client.get("/ai/conversations", headers=auth_headers).json()["conversations"]

        assert len(conversations) == 1
        assert conversations[0]["type"] == "analysis"
        assert set(conversations[0]) == {"id", "question", "answer", "type", "created_at"}


class TestLegacyInsights:
    def test_without_model_key_uses_mock_insights(self, client, auth_headers, db):
        response = client.post("/ai/insights", headers=auth_headers, json={"summary": SUMMARY})

        assert response.status_code == 200
        assert response.json()["status"] == "failed"
        assert response.json()["insights"] == mock_insights()
        assert db.query(models.AiRequest).one().cost == 0.0

    def test_model_reply_is_recorded(self, client, auth_headers, use_gateway, db):
        prompts = []

        def handler(request):
            prompts.append(request.read().decode())
            return httpx.Response(200, json=completion("Cut dining out by 10%."))

        use_gateway(handler)
        response = client.post("/ai/insights", headers=auth_headers, json={"summary": SUMMARY})

        body = response.json()
        assert body["status"] == "success"
        assert body["insights"] == "Cut dining out by 10%."
        assert "Save for a car" in prompts[0]

        ai_request = db.query(models.AiRequest).filter(models.AiRequest.request_id == body["request_id"]).one()
        assert ai_request.cost == 0.01
        assert ai_request.input_summary["user_goal"] == "Save for a car"
