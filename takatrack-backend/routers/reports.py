from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session, joinedload
from typing import Optional
from datetime import date, datetime
import csv
import io
import models
import schemas
from database import get_db
from routers.utils import get_current_user
from routers.exceptions import BusinessRuleError
from routers.budgets import month_bounds

router = APIRouter()

EXPORT_COLUMNS = ["transaction_id", "date", "type", "category", "amount", "currency", "note", "source"]


def parse_month(month: Optional[str]) -> date:
    """Parse YYYY-MM, defaulting to the current month."""
    if not month:
        return date.today().replace(day=1)
    try:
        return datetime.strptime(month, "%Y-%m").date()
    except ValueError:
        raise BusinessRuleError("Month must be in YYYY-MM format")


def transactions_between(db: Session, user_id: int, from_date: Optional[date], to_date: Optional[date]):
    query = db.query(models.Transaction).options(joinedload(models.Transaction.category)).filter(
        models.Transaction.user_id == user_id
    )
    if from_date:
        query = query.filter(models.Transaction.date >= from_date)
    if to_date:
        query = query.filter(models.Transaction.date <= to_date)
    return query.order_by(models.Transaction.date.desc(), models.Transaction.transaction_id.desc()).all()


def export_row(transaction: models.Transaction) -> dict:
    return {
        "transaction_id": transaction.transaction_id,
        "date": transaction.date.isoformat(),
        "type": transaction.type,
        "category": transaction.category_name,
        "amount": transaction.amount,
        "currency": transaction.currency,
        "note": transaction.note or "",
        "source": transaction.source,
    }


@router.get("/monthly")
def get_monthly_report(
    month: Optional[str] = Query(None, description="Report month as YYYY-MM"),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user)
):
    """
    Income, expenses and per-category breakdown for one month.

    Categories are listed by total, largest first.
    """
    start, end = month_bounds(parse_month(month))
    transactions = transactions_between(db, current_user.user_id, start, end)

    total_income = sum(t.amount for t in transactions if t.type == "income")
    total_expenses = sum(t.amount for t in transactions if t.type == "expense")

    breakdown = {}
    for t in transactions:
        key = (t.category_name or "Uncategorized", t.type)
        entry = breakdown.setdefault(key, {"category": key[0], "type": t.type, "total": 0.0, "count": 0})
        entry["total"] += t.amount
        entry["count"] += 1

    return {
        "month": start.strftime("%Y-%m"),
        "from_date": start,
        "to_date": end,
        "total_income": total_income,
        "total_expenses": total_expenses,
        "net": total_income - total_expenses,
        "by_category": sorted(breakdown.values(), key=lambda entry: entry["total"], reverse=True),
        "transactions": [schemas.TransactionResponse.model_validate(t).model_dump() for t in transactions],
    }


@router.get("/export")
def export_transactions(
    format: schemas.ExportFormatEnum = Query(schemas.ExportFormatEnum.csv),
    from_date: Optional[date] = Query(None),
    to_date: Optional[date] = Query(None),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user)
):
    """Export transactions as a CSV download or a JSON list"""
    rows = [export_row(t) for t in transactions_between(db, current_user.user_id, from_date, to_date)]

    if format == schemas.ExportFormatEnum.json:
        return {"transactions": rows, "total": len(rows)}

    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=EXPORT_COLUMNS)
    writer.writeheader()
    writer.writerows(rows)
    buffer.seek(0)

    filename = f"transactions_{date.today().isoformat()}.csv"
    return StreamingResponse(
        iter([buffer.getvalue()]),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"}
    )
