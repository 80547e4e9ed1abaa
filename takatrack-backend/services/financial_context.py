"""
Financial Context Builder
Summarises a user's recent transactions into the figures the advice prompts use
"""
from dataclasses import dataclass, field, asdict
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Tuple
from sqlalchemy.orm import Session, joinedload
import models

CONTEXT_WINDOW_DAYS = 30
TOP_CATEGORY_LIMIT = 3
RECENT_TRANSACTION_LIMIT = 5


@dataclass(frozen=True)
class FinancialContext:
    total_income: float = 0.0
    total_expenses: float = 0.0
    net_balance: float = 0.0
    top_expense_categories: List[Tuple[str, float]] = field(default_factory=list)
    transaction_count: int = 0
    recent_transactions: List[Dict] = field(default_factory=list)

    def as_dict(self) -> Dict:
        data = asdict(self)
        data["top_expense_categories"] = [
            {"category": name, "amount": amount} for name, amount in self.top_expense_categories
        ]
        return data

    def to_prompt_block(self) -> str:
        """Render the context as the bullet list embedded in advice prompts."""
        lines = [
            "User's Financial Context:",
            f"- Total Income: ${self.total_income:,.2f}",
            f"- Total Expenses: ${self.total_expenses:,.2f}",
            f"- Net Balance: ${self.net_balance:,.2f}",
            f"- Top Expense Categories: {', '.join(name for name, _ in self.top_expense_categories)}",
            f"- Transaction Count: {self.transaction_count}",
        ]
        if self.net_balance > 0:
            lines.append("- Financial Status: Positive cash flow")
        else:
            lines.append("- Financial Status: Negative cash flow (spending exceeds income)")
        if self.top_expense_categories:
            top_name, top_amount = self.top_expense_categories[0]
            lines.append(f"- Largest Expense: {top_name} (${top_amount:,.2f})")
        return "\n".join(lines)


def summarize_transactions(transactions: Iterable[models.Transaction]) -> FinancialContext:
    """
    Aggregate transactions into a FinancialContext.

    Top expense categories are ordered by summed amount, largest first.
    Equal totals keep the order in which their category was first seen.
    """
    transactions = list(transactions)
    if not transactions:
        return FinancialContext()

    total_income = 0.0
    total_expenses = 0.0
    # dicts keep insertion order, which the stable sort below relies on
    expense_by_category: Dict[str, float] = {}

    for transaction in transactions:
        if transaction.type == "income":
            total_income += transaction.amount
        elif transaction.type == "expense":
            total_expenses += transaction.amount
            name = transaction.category.name if transaction.category else "Uncategorized"
            expense_by_category[name] = expense_by_category.get(name, 0.0) + transaction.amount

    top_categories = sorted(expense_by_category.items(), key=lambda item: item[1], reverse=True)

    recent = [
        {
            "type": t.type,
            "amount": t.amount,
            "category": t.category.name if t.category else "Uncategorized",
            "date": t.date.isoformat() if t.date else None,
        }
        for t in transactions[:RECENT_TRANSACTION_LIMIT]
    ]

    return FinancialContext(
        total_income=total_income,
        total_expenses=total_expenses,
        net_balance=total_income - total_expenses,
        top_expense_categories=top_categories[:TOP_CATEGORY_LIMIT],
        transaction_count=len(transactions),
        recent_transactions=recent,
    )


def build_financial_context(db: Session, user_id: int, now: Optional[datetime] = None) -> FinancialContext:
    """
    Build the context from the user's transactions recorded in the last 30 days.

    Args:
        db: Database session
        user_id: Owner of the transactions
        now: Reference time (defaults to the current UTC time)

    Returns:
        FinancialContext, all zeros when there are no transactions
    """
    now = now or models.utcnow()
    since = now - timedelta(days=CONTEXT_WINDOW_DAYS)

    transactions = (
        db.query(models.Transaction)
        .options(joinedload(models.Transaction.category))
        .filter(
            models.Transaction.user_id == user_id,
            models.Transaction.created_at >= since,
        )
        .order_by(models.Transaction.created_at.desc(), models.Transaction.transaction_id.desc())
        .all()
    )

    return summarize_transactions(transactions)
