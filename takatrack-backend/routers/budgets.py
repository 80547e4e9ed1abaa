# ============ IMPORTS ============
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy import and_, desc, func
from sqlalchemy.orm import Session
from typing import Optional
from datetime import date, timedelta
import models
import schemas
from database import get_db
from routers.utils import get_current_user, ensure_owner
from routers.categories import get_usable_category

# ============ ROUTER SETUP ============
# Note: No prefix here since it's added in main.py
router = APIRouter()

AT_RISK_PERCENTAGE = 80.0

# ============ HELPER FUNCTIONS ============

def month_bounds(month: date):
    """First and last day of the month containing `month`."""
    start = month.replace(day=1)
    next_month = (start + timedelta(days=32)).replace(day=1)
    return start, next_month - timedelta(days=1)


def calculate_spent(db: Session, user_id: int, category_id: int, month: date) -> float:
    """
    Total expense amount for a user in a category during the budget month.

    Args:
        db: Database session
        user_id: User ID to filter expenses
        category_id: Budget category
        month: Any day in the budget month

    Returns:
        float: Total expense amount
    """
    start, end = month_bounds(month)
    total = db.query(func.sum(models.Transaction.amount)).filter(
        and_(
            models.Transaction.user_id == user_id,
            models.Transaction.type == "expense",
            models.Transaction.category_id == category_id,
            models.Transaction.date >= start,
            models.Transaction.date <= end,
        )
    ).scalar()
    return float(total) if total else 0.0


def calculate_budget_utilization(db: Session, budget: models.Budget) -> dict:
    """
    Calculate spending metrics for a budget.

    Returns:
        dict: spent_amount, remaining_amount, percentage_used, status
    """
    spent_amount = calculate_spent(db, budget.user_id, budget.category_id, budget.month)
    remaining_amount = budget.limit_amount - spent_amount
    percentage_used = (spent_amount / budget.limit_amount) * 100 if budget.limit_amount > 0 else 0

    if spent_amount >= budget.limit_amount:
        budget_status = "over_budget"
    elif percentage_used >= AT_RISK_PERCENTAGE:
        budget_status = "at_risk"
    else:
        budget_status = "on_track"

    return {
        "spent_amount": spent_amount,
        "remaining_amount": remaining_amount,
        "percentage_used": round(percentage_used, 2),
        "status": budget_status,
    }


def to_budget_response(db: Session, budget: models.Budget) -> schemas.BudgetResponse:
    budget_dict = {
        "budget_id": budget.budget_id,
        "user_id": budget.user_id,
        "category_id": budget.category_id,
        "category_name": budget.category.name if budget.category else None,
        "month": budget.month,
        "limit_amount": budget.limit_amount,
        "created_at": budget.created_at,
        **calculate_budget_utilization(db, budget),
    }
    return schemas.BudgetResponse.model_validate(budget_dict)


def ensure_unique_month(db: Session, user_id: int, category_id: int, month: date, exclude_id: Optional[int] = None):
    query = db.query(models.Budget).filter(
        models.Budget.user_id == user_id,
        models.Budget.category_id == category_id,
        models.Budget.month == month,
    )
    if exclude_id is not None:
        query = query.filter(models.Budget.budget_id != exclude_id)
    if query.first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="A budget for this category and month already exists"
        )


# ============ CRUD ENDPOINTS ============

@router.get("/", response_model=schemas.BudgetList)
def get_budgets(
    skip: int = Query(0, ge=0, description="Number of budgets to skip"),
    limit: int = Query(100, ge=1, le=1000, description="Number of budgets to return"),
    month: Optional[date] = Query(None, description="Only budgets for the month containing this date"),
    category_id: Optional[int] = Query(None, description="Filter by category"),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Get all budgets for the authenticated user with optional filtering and pagination.

    Returns:
        schemas.BudgetList: Paginated list of budgets with spending metrics
    """
    query = db.query(models.Budget).filter(models.Budget.user_id == current_user.user_id)
    if month:
        query = query.filter(models.Budget.month == month.replace(day=1))
    if category_id:
        query = query.filter(models.Budget.category_id == category_id)

    total = query.count()
    budgets = query.order_by(desc(models.Budget.month), models.Budget.budget_id).offset(skip).limit(limit).all()

    return schemas.BudgetList(
        budgets=[to_budget_response(db, budget) for budget in budgets],
        total=total,
        skip=skip,
        limit=limit,
        has_more=skip + limit < total
    )


@router.post("/", response_model=schemas.BudgetResponse, status_code=status.HTTP_201_CREATED)
def create_budget(
    budget: schemas.BudgetCreate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Create a monthly budget for one category"""
    category = get_usable_category(db, budget.category_id, current_user)
    if category.type != "expense":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Budgets can only be set on expense categories"
        )
    ensure_unique_month(db, current_user.user_id, budget.category_id, budget.month)

    db_budget = models.Budget(user_id=current_user.user_id, **budget.model_dump())
    db.add(db_budget)
    db.commit()
    db.refresh(db_budget)
    return to_budget_response(db, db_budget)


@router.get("/{budget_id}", response_model=schemas.BudgetResponse)
def get_budget(
    budget_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    budget = db.query(models.Budget).filter(models.Budget.budget_id == budget_id).first()
    ensure_owner(budget, current_user, "Budget")
    return to_budget_response(db, budget)


@router.put("/{budget_id}", response_model=schemas.BudgetResponse)
def update_budget(
    budget_id: int,
    budget_update: schemas.BudgetUpdate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    budget = db.query(models.Budget).filter(models.Budget.budget_id == budget_id).first()
    ensure_owner(budget, current_user, "Budget")

    update_data = budget_update.model_dump(exclude_unset=True)
    if "category_id" in update_data:
        get_usable_category(db, update_data["category_id"], current_user)
    ensure_unique_month(
        db,
        budget.user_id,
        update_data.get("category_id", budget.category_id),
        update_data.get("month", budget.month),
        exclude_id=budget.budget_id,
    )

    for field, value in update_data.items():
        setattr(budget, field, value)

    db.commit()
    db.refresh(budget)
    return to_budget_response(db, budget)


@router.delete("/{budget_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_budget(
    budget_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    budget = db.query(models.Budget).filter(models.Budget.budget_id == budget_id).first()
    ensure_owner(budget, current_user, "Budget")

    db.delete(budget)
    db.commit()
    return None
