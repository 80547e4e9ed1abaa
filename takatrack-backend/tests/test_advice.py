"""
Tests for the advice path: quick responses, question rules, fallbacks and the workflow
"""
import dataclasses
from datetime import date

import httpx
import pytest

import models
from conftest import category_id, completion, make_gateway
from services.advice_workflow import MAX_ANSWER_LENGTH, AdviceWorkflow, WorkflowState
from services.conversation_store import ConversationStore
from services.question_rules import (
    DEFAULT_FALLBACK_ANSWER,
    detect_question_type,
    fallback_answer,
    is_complex_question,
)
from services.quick_responses import QUICK_RESPONSES, match_quick_response
from services.repetition_guard import PERSONALIZATION_NOTE, apply_repetition_note, is_repetitive

COMPLEX_QUESTION = (
    "Can you analyze my spending and help me build a long-term budget strategy so I can put more "
    "money into savings every month?"
)


def add_transaction(client, headers, db, type_, amount, category):
    response = client.post("/transactions/", headers=headers, json={
        "type": type_,
        "category_id": category_id(db, category),
        "amount": amount,
        "date": date.today().isoformat(),
    })
    assert response.status_code == 201, response.text


class TestQuickResponses:
    """Canned answers for greetings and common questions."""

    def test_match_is_case_and_whitespace_insensitive(self):
        assert match_quick_response("  Hello  ") == QUICK_RESPONSES["hello"]
        assert match_quick_response("How can I save money") == QUICK_RESPONSES["how can i save money"]

    def test_no_match_for_other_questions(self):
        assert match_quick_response("hello, can you check my rent?") is None

    def test_endpoint_serves_quick_response_without_model_call(self, client, auth_headers, use_gateway, db):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json=completion("should not be used"))

        use_gateway(handler)
        response = client.post("/ai/advice", headers=auth_headers, json={"question": "hi"})

        assert response.status_code == 200
        assert response.json() == {"answer": QUICK_RESPONSES["hi"], "context_used": False}
        assert calls == []
        assert db.query(models.AiConversation).count() == 0


class TestQuestionRules:
    """Keyword tables are walked top to bottom."""

    def test_budget_wins_over_debt(self):
        assert detect_question_type("Should my budget cover paying off debt?") == "budget"

    def test_debt_detected(self):
        assert detect_question_type("How do I pay off my credit card faster?") == "debt"

    def test_default_type_is_general(self):
        assert detect_question_type("What is a good weekend plan?") == "general"

    def test_complexity_needs_length_and_keyword(self):
        assert is_complex_question(COMPLEX_QUESTION)
        assert not is_complex_question("Analyze my budget")
        assert not is_complex_question("x" * 150)

    def test_fallback_answer_by_keyword(self):
        assert "budgeting" in fallback_answer("help me budget")
        assert fallback_answer("what about the weather") == DEFAULT_FALLBACK_ANSWER


class TestRepetitionGuard:
    def test_similar_answer_gets_note(self):
        previous = "Try to save 20% of your income every month and track your expenses."
        answer = "Try to save 20% of your income every month and track your expense."
        assert is_repetitive(answer, [previous])
        assert apply_repetition_note(answer, [previous]) == answer + PERSONALIZATION_NOTE

    def test_different_answer_unchanged(self):
        answer = "Pay off your highest-interest card first."
        assert apply_repetition_note(answer, ["Consider an index fund for retirement."]) == answer

    def test_no_history_unchanged(self):
        assert apply_repetition_note("Anything", []) == "Anything"


class TestAdviceEndpoint:
    """POST /ai/advice single-call path."""

    def test_model_answer_is_stored(self, client, auth_headers, use_gateway, db):
        use_gateway(lambda request: httpx.Response(200, json=completion("Cook at home twice a week.")))

        response = client.post("/ai/advice", headers=auth_headers, json={"question": "Is my rent too high?"})

        assert response.status_code == 200
        assert response.json() == {"answer": "Cook at home twice a week.", "context_used": True}
        conversation = db.query(models.AiConversation).one()
        assert conversation.type == "advice"
        assert conversation.meta_data["tokens_used"] == 42
        assert "system_prompt_used" in conversation.meta_data

    def test_timeout_falls_back(self, client, auth_headers, use_gateway, db):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        use_gateway(handler)
        response = client.post("/ai/advice", headers=auth_headers, json={"question": "Should I invest now?"})

        assert response.status_code == 200
        body = response.json()
        assert body["context_used"] is False
        assert body["answer"] == fallback_answer("Should I invest now?")
        assert db.query(models.AiConversation).count() == 0

    def test_server_error_falls_back(self, client, auth_headers, use_gateway):
        use_gateway(lambda request: httpx.Response(503, json={"error": "unavailable"}))

        response = client.post("/ai/advice", headers=auth_headers, json={"question": "Is my rent too high?"})

        assert response.status_code == 200
        assert response.json()["context_used"] is False
        assert response.json()["answer"]

    def test_missing_api_key_falls_back(self, client, auth_headers):
        response = client.post("/ai/advice", headers=auth_headers, json={"question": "Any debt tips?"})

        assert response.status_code == 200
        assert response.json()["context_used"] is False

    def test_blank_question_rejected(self, client, auth_headers):
        response = client.post("/ai/advice", headers=auth_headers, json={"question": "   "})

        assert response.status_code == 422
        assert response.json()["error"] == "Validation Error"
        assert "question" in response.json()["errors"]

    def test_too_long_question_rejected(self, client, auth_headers):
        response = client.post("/ai/advice", headers=auth_headers, json={"question": "a" * 1001})
        assert response.status_code == 422

    def test_requires_authentication(self, client):
        response = client.post("/ai/advice", json={"question": "hi"})
        assert response.status_code == 401


class TestAdviceWorkflow:
    """Complex questions go through the multi-step workflow."""

    def test_end_to_end_workflow(self, client, auth_headers, use_gateway, db):
        add_transaction(client, auth_headers, db, "income", 3500, "Salary")
        add_transaction(client, auth_headers, db, "expense", 1200, "Bills & Utilities")
        add_transaction(client, auth_headers, db, "expense", 800, "Food & Dining")

        prompts = []

        def handler(request):
            prompts.append(request.read().decode())
            return httpx.Response(200, json=completion("Put $500 a month into savings."))

        use_gateway(handler)
        response = client.post("/ai/advice", headers=auth_headers, json={"question": COMPLEX_QUESTION})

        assert response.status_code == 200
        body = response.json()
        assert body["context_used"] is True
        assert body["workflow_state"] == "completed"
        assert body["question_type"] == "budget"
        assert len(body["reasoning_steps"]) >= 4
        assert body["answer"] == "Put $500 a month into savings."
        assert "3,500.00" in prompts[0]
        assert "2,000.00" in prompts[0]

        conversation = db.query(models.AiConversation).one()
        assert conversation.type == "advice"
        assert conversation.question == COMPLEX_QUESTION
        assert conversation.meta_data["question_type"] == "budget"

    def test_workflow_fallback_when_model_fails(self, client, auth_headers, use_gateway):
        use_gateway(lambda request: httpx.Response(500))

        response = client.post("/ai/advice", headers=auth_headers, json={"question": COMPLEX_QUESTION})

        body = response.json()
        assert response.status_code == 200
        assert body["workflow_state"] == "completed"
        assert body["context_used"] is False
        assert "AI request failed, using fallback response" in body["reasoning_steps"]
        assert body["answer"] == fallback_answer(COMPLEX_QUESTION)

    def test_workflow_timeout_reports_no_context(self, client, auth_headers, use_gateway):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        use_gateway(handler)
        body = client.post("/ai/advice", headers=auth_headers, json={"question": COMPLEX_QUESTION}).json()

        assert body["workflow_state"] == "completed"
        assert body["context_used"] is False
        assert body["answer"] == fallback_answer(COMPLEX_QUESTION)

    def test_save_failure_keeps_answer(self, db, user):
        class BrokenStore(ConversationStore):
            def save(self, *args, **kwargs):
                raise RuntimeError("disk full")

        gateway = make_gateway(lambda request: httpx.Response(200, json=completion("Automate your savings.")))
        result = AdviceWorkflow(db, gateway, store=BrokenStore(db)).run(user[1]["user_id"], COMPLEX_QUESTION)

        assert result.workflow_state == "completed"
        assert result.answer == "Automate your savings."
        assert result.reasoning_steps[-1] == "Failed to save conversation"
        assert db.query(models.AiConversation).count() == 0

    def test_personalization_note_survives_truncation(self, db, user):
        long_answer = "x" * 1500

        class RepeatingStore(ConversationStore):
            def recent_answers(self, *args, **kwargs):
                return [long_answer]

        gateway = make_gateway(lambda request: httpx.Response(200, json=completion(long_answer)))
        result = AdviceWorkflow(db, gateway, store=RepeatingStore(db)).run(user[1]["user_id"], COMPLEX_QUESTION)

        assert len(result.answer) == MAX_ANSWER_LENGTH
        assert result.answer.endswith(PERSONALIZATION_NOTE)
        assert "..." + PERSONALIZATION_NOTE in result.answer

    def test_long_answers_are_truncated(self, db, user):
        gateway = make_gateway(lambda request: httpx.Response(200, json=completion("x" * 1500)))
        result = AdviceWorkflow(db, gateway).run(user[1]["user_id"], COMPLEX_QUESTION)

        assert len(result.answer) == 1000
        assert result.answer.endswith("...")

    def test_failing_step_returns_error_state(self, db, user):
        def broken_context(db, user_id):
            raise RuntimeError("database unavailable")

        gateway = make_gateway(lambda request: httpx.Response(200, json=completion("unused")))
        result = AdviceWorkflow(db, gateway, context_builder=broken_context).run(user[1]["user_id"], COMPLEX_QUESTION)

        assert result.workflow_state == "error"
        assert result.question_type == "error"
        assert result.reasoning_steps[-1] == "Workflow failed"
        assert "database unavailable" not in result.answer

    def test_state_is_not_mutated_between_steps(self, db, user):
        gateway = make_gateway(lambda request: httpx.Response(200, json=completion("Advice")))
        workflow = AdviceWorkflow(db, gateway)

        initial = WorkflowState(user_id=user[1]["user_id"], question=COMPLEX_QUESTION)
        analyzed = workflow.analyze_question(initial)

        assert initial.reasoning_steps == ()
        assert initial.question_type is None
        assert analyzed.question_type == "budget"
        with pytest.raises(dataclasses.FrozenInstanceError):
            analyzed.step = "tampered"
