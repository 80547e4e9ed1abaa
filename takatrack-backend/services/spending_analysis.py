"""
Spending analysis workflow
Groups a batch of expenses, finds the heavy categories and drafts recommendations
"""
from typing import Any, Dict, List
from services.question_rules import categorize_description
import logging

logger = logging.getLogger(__name__)

SAVING_OPPORTUNITY_SHARE = 0.2
FORECAST_GROWTH = 1.1
TOP_CATEGORY_LIMIT = 3


def _category_for(expense: Dict[str, Any]) -> str:
    # The description wins; the client-supplied category is used when it says nothing useful
    category = categorize_description(expense.get("description"))
    if category == "Other" and expense.get("category"):
        return expense["category"]
    return category


def analyze_spending(expenses: List[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Run the analysis steps over `expenses` (dicts with amount, category, description).

    Returns:
        dict with top_categories, saving_suggestions, forecasted_spending,
        recommendations, workflow_state and reasoning_steps
    """
    steps: List[str] = []

    steps.append("Categorizing expenses...")
    categorized: Dict[str, List[Dict[str, Any]]] = {}
    for expense in expenses:
        categorized.setdefault(_category_for(expense), []).append(expense)
    steps.append("Expenses categorized successfully")

    steps.append("Identifying spending patterns...")
    patterns = {}
    for category, items in categorized.items():
        total = sum(float(item["amount"]) for item in items)
        patterns[category] = {
            "total_amount": round(total, 2),
            "transaction_count": len(items),
            "average_amount": round(total / len(items), 2),
        }
    steps.append("Spending patterns identified")

    steps.append("Generating insights...")
    ranked = sorted(patterns.items(), key=lambda item: item[1]["total_amount"], reverse=True)
    total_spending = round(sum(data["total_amount"] for data in patterns.values()), 2)
    saving_opportunities = [
        category for category, data in ranked
        if data["total_amount"] > total_spending * SAVING_OPPORTUNITY_SHARE
    ]
    steps.append("Insights generated successfully")

    steps.append("Creating recommendations...")
    recommendations = []
    if saving_opportunities:
        recommendations.append(f"Consider reducing spending in: {', '.join(saving_opportunities)}")
    if total_spending > 0:
        recommendations.append(
            f"Your total spending is ${total_spending:,.2f}. Consider setting a monthly budget."
        )
    steps.append("Recommendations created")

    steps.append("Formatting final analysis...")
    logger.info(f"Analyzed {len(expenses)} expenses across {len(patterns)} categories")

    return {
        "top_category": ranked[0][0] if ranked else None,
        "top_categories": dict(ranked[:TOP_CATEGORY_LIMIT]),
        "saving_suggestions": saving_opportunities,
        "forecasted_spending": round(total_spending * FORECAST_GROWTH, 2),
        "total_spending": total_spending,
        "recommendations": recommendations,
        "workflow_state": "completed",
        "reasoning_steps": steps,
    }
