from fastapi import APIRouter, Depends, status, Query
from sqlalchemy import asc, desc, func
from sqlalchemy.orm import Session, joinedload
from typing import Optional
from datetime import date
import logging
import models
import schemas
from database import get_db
from routers.utils import get_current_user, ensure_owner
from routers.categories import get_usable_category
from services import gamification

logger = logging.getLogger(__name__)
router = APIRouter()

SORTABLE_FIELDS = {
    "date": models.Transaction.date,
    "amount": models.Transaction.amount,
    "created_at": models.Transaction.created_at,
    "type": models.Transaction.type,
}


# ============ HELPER FUNCTIONS ============

def validate_links(db: Session, user: models.User, category_id: Optional[int], account_id: Optional[int]):
    """Make sure the referenced category and account are usable by `user`."""
    if category_id is not None:
        get_usable_category(db, category_id, user)
    if account_id is not None:
        account = db.query(models.Account).filter(models.Account.account_id == account_id).first()
        ensure_owner(account, user, "Account")


def record_expense_streak(db: Session, user_id: int) -> None:
    """Logging an expense counts towards the expense-logging streak."""
    try:
        gamification.log_streak(db, user_id)
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to update streak for user {user_id}: {e}", exc_info=True)


def filtered_transactions(
    db: Session,
    user_id: int,
    type: Optional[schemas.TransactionTypeEnum] = None,
    category_id: Optional[int] = None,
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
):
    query = db.query(models.Transaction).filter(models.Transaction.user_id == user_id)
    if type:
        query = query.filter(models.Transaction.type == type.value)
    if category_id:
        query = query.filter(models.Transaction.category_id == category_id)
    if from_date:
        query = query.filter(models.Transaction.date >= from_date)
    if to_date:
        query = query.filter(models.Transaction.date <= to_date)
    return query


# ============ CRUD ENDPOINTS ============

@router.get("/", response_model=schemas.TransactionList)
def get_transactions(
    type: Optional[schemas.TransactionTypeEnum] = Query(None, description="Filter by income or expense"),
    category_id: Optional[int] = Query(None, description="Filter by category"),
    from_date: Optional[date] = Query(None, description="Earliest transaction date (inclusive)"),
    to_date: Optional[date] = Query(None, description="Latest transaction date (inclusive)"),
    sort_by: str = Query("date", description="One of: date, amount, created_at, type"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    page: int = Query(1, ge=1),
    per_page: int = Query(15, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user)
):
    """
    Get the user's transactions with filtering, sorting and pagination.

    Unknown sort fields fall back to `date`.
    """
    query = filtered_transactions(db, current_user.user_id, type, category_id, from_date, to_date)
    total = query.count()

    column = SORTABLE_FIELDS.get(sort_by, models.Transaction.date)
    direction = asc if sort_order == "asc" else desc
    transactions = (
        query.options(joinedload(models.Transaction.category))
        .order_by(direction(column), direction(models.Transaction.transaction_id))
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )

    return schemas.TransactionList(
        transactions=[schemas.TransactionResponse.model_validate(t) for t in transactions],
        total=total,
        page=page,
        per_page=per_page,
        has_more=page * per_page < total
    )


@router.post("/", response_model=schemas.TransactionResponse, status_code=status.HTTP_201_CREATED)
def create_transaction(
    transaction: schemas.TransactionCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user)
):
    """Create a transaction; expenses also advance the logging streak"""
    validate_links(db, current_user, transaction.category_id, transaction.account_id)

    data = transaction.model_dump()
    data["type"] = transaction.type.value
    data["source"] = transaction.source.value
    db_transaction = models.Transaction(user_id=current_user.user_id, **data)

    db.add(db_transaction)
    db.commit()
    db.refresh(db_transaction)
    logger.info(f"Created {db_transaction.type} transaction {db_transaction.transaction_id} for user {current_user.user_id}")

    if db_transaction.type == "expense":
        record_expense_streak(db, current_user.user_id)
        db.refresh(db_transaction)

    return db_transaction


@router.get("/summary", response_model=schemas.TransactionSummary)
def get_transaction_summary(
    from_date: Optional[date] = Query(None),
    to_date: Optional[date] = Query(None),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user)
):
    """Income, expense and per-category totals for the selected period"""
    base = filtered_transactions(db, current_user.user_id, from_date=from_date, to_date=to_date)

    rows = (
        base.join(models.Category, models.Transaction.category_id == models.Category.category_id)
        .with_entities(
            models.Transaction.category_id,
            models.Category.name,
            models.Transaction.type,
            func.sum(models.Transaction.amount),
            func.count(models.Transaction.transaction_id),
        )
        .group_by(models.Transaction.category_id, models.Category.name, models.Transaction.type)
        .order_by(func.sum(models.Transaction.amount).desc())
        .all()
    )

    by_category = [
        schemas.CategoryTotal(
            category_id=category_id, category_name=name, type=tx_type, total=float(total), count=count
        )
        for category_id, name, tx_type, total, count in rows
    ]
    total_income = sum(c.total for c in by_category if c.type == schemas.TransactionTypeEnum.income)
    total_expenses = sum(c.total for c in by_category if c.type == schemas.TransactionTypeEnum.expense)

    return schemas.TransactionSummary(
        total_income=total_income,
        total_expenses=total_expenses,
        net_balance=total_income - total_expenses,
        transaction_count=sum(c.count for c in by_category),
        by_category=by_category,
    )


@router.get("/{transaction_id}", response_model=schemas.TransactionResponse)
def get_transaction(
    transaction_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user)
):
    transaction = db.query(models.Transaction).filter(models.Transaction.transaction_id == transaction_id).first()
    return ensure_owner(transaction, current_user, "Transaction")


@router.put("/{transaction_id}", response_model=schemas.TransactionResponse)
def update_transaction(
    transaction_id: int,
    transaction_update: schemas.TransactionUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user)
):
    transaction = db.query(models.Transaction).filter(models.Transaction.transaction_id == transaction_id).first()
    ensure_owner(transaction, current_user, "Transaction")

    update_data = transaction_update.model_dump(exclude_unset=True)
    validate_links(db, current_user, update_data.get("category_id"), update_data.get("account_id"))
    for field in ("type", "source"):
        if update_data.get(field) is not None:
            update_data[field] = update_data[field].value

    for field, value in update_data.items():
        setattr(transaction, field, value)

    db.commit()
    db.refresh(transaction)
    return transaction


@router.delete("/{transaction_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_transaction(
    transaction_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user)
):
    transaction = db.query(models.Transaction).filter(models.Transaction.transaction_id == transaction_id).first()
    ensure_owner(transaction, current_user, "Transaction")

    db.delete(transaction)
    db.commit()
    return None
