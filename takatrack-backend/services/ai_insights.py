"""
Legacy insights generator, audited through AiRequest rows
"""
from typing import Any, Dict
from sqlalchemy.orm import Session
import models
from services.llm_gateway import LLMGateway
import logging

logger = logging.getLogger(__name__)

REQUEST_COST = 0.01

INSIGHTS_SYSTEM_PROMPT = (
    "You are a personal finance advisor. Provide helpful, actionable insights based on the "
    "user's financial data. Keep responses concise and practical."
)

MOCK_INSIGHTS = [
    "Consider setting up automatic transfers to your savings account to build your emergency fund.",
    "Your spending on dining out seems high this month. Try meal planning to reduce costs.",
    "Great job on your income this month! Consider investing some of the surplus.",
    "Track your daily expenses for a week to identify any unnecessary spending patterns.",
    "Set up a budget for each category to better control your spending.",
]


def mock_insights() -> str:
    return "\n\n".join(MOCK_INSIGHTS[:3])


def build_insights_prompt(summary: Dict[str, Any]) -> str:
    lines = ["Based on the following financial summary, provide 3-5 actionable insights:", "", "Category Totals:"]
    for category, data in summary.get("totals_by_category", {}).items():
        lines.append(f"- {category}: Income: ${data.get('income', 0)}, Expenses: ${data.get('expenses', 0)}")

    lines.extend(["", "Last 3 Months Average:"])
    for category, average in summary.get("last_3_months_avg", {}).items():
        lines.append(f"- {category}: ${average}")

    if summary.get("user_goal"):
        lines.extend(["", f"User Goal: {summary['user_goal']}"])
    return "\n".join(lines)


def generate_insights(db: Session, user_id: int, summary: Dict[str, Any], gateway: LLMGateway) -> models.AiRequest:
    """
    Create a pending AiRequest, ask the model for insights and record the outcome.

    The request row ends as `success` with the model text, or `failed` with the mock insights.
    """
    ai_request = models.AiRequest(user_id=user_id, input_summary=summary, status="pending")
    db.add(ai_request)
    db.commit()
    db.refresh(ai_request)

    reply = gateway.complete(
        [
            {"role": "system", "content": INSIGHTS_SYSTEM_PROMPT},
            {"role": "user", "content": build_insights_prompt(summary)},
        ],
        fallback_for="",
        max_tokens=500,
        temperature=0.7,
        top_p=1.0,
    )

    if reply.ok:
        ai_request.response = reply.content
        ai_request.status = "success"
        ai_request.cost = REQUEST_COST
    else:
        logger.warning(f"Insights request {ai_request.request_id} fell back to mock insights")
        ai_request.response = mock_insights()
        ai_request.status = "failed"

    db.commit()
    db.refresh(ai_request)
    return ai_request
