from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import date
import models
import schemas
from database import get_db
from routers.utils import get_current_user, ensure_owner

router = APIRouter()


# ============ HELPER FUNCTIONS ============

def calculate_goal_metrics(goal: models.Goal, today: Optional[date] = None) -> dict:
    """
    Calculate progress metrics for a goal.

    Returns:
        dict: progress_percentage, remaining_amount, days_remaining, monthly_required
    """
    today = today or date.today()
    progress_percentage = min(100.0, goal.saved_amount / goal.target_amount * 100) if goal.target_amount > 0 else 0.0
    remaining_amount = max(0.0, goal.target_amount - goal.saved_amount)

    days_remaining = None
    monthly_required = None
    if goal.target_date:
        days_remaining = max(0, (goal.target_date - today).days)
        months_remaining = max(1, days_remaining / 30)
        monthly_required = round(remaining_amount / months_remaining, 2)

    return {
        "progress_percentage": round(progress_percentage, 2),
        "remaining_amount": remaining_amount,
        "days_remaining": days_remaining,
        "monthly_required": monthly_required,
    }


def to_goal_response(goal: models.Goal) -> schemas.GoalResponse:
    goal_dict = {
        "goal_id": goal.goal_id,
        "user_id": goal.user_id,
        "name": goal.name,
        "target_amount": goal.target_amount,
        "saved_amount": goal.saved_amount,
        "target_date": goal.target_date,
        "status": goal.status,
        "created_at": goal.created_at,
        **calculate_goal_metrics(goal),
    }
    return schemas.GoalResponse.model_validate(goal_dict)


def get_owned_goal(db: Session, goal_id: int, user: models.User) -> models.Goal:
    goal = db.query(models.Goal).filter(models.Goal.goal_id == goal_id).first()
    return ensure_owner(goal, user, "Goal")


# ============ ENDPOINTS ============

@router.post("/", response_model=schemas.GoalResponse, status_code=status.HTTP_201_CREATED)
def create_goal(
    goal: schemas.GoalCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user)
):
    """Create a savings goal"""
    data = goal.model_dump()
    data["status"] = goal.status.value
    if data["saved_amount"] >= data["target_amount"]:
        data["status"] = "completed"

    db_goal = models.Goal(user_id=current_user.user_id, **data)
    db.add(db_goal)
    db.commit()
    db.refresh(db_goal)
    return to_goal_response(db_goal)


@router.get("/", response_model=List[schemas.GoalResponse])
def get_goals(
    status_filter: Optional[schemas.GoalStatusEnum] = Query(None, alias="status"),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user)
):
    """Get the user's goals, optionally by status"""
    query = db.query(models.Goal).filter(models.Goal.user_id == current_user.user_id)
    if status_filter:
        query = query.filter(models.Goal.status == status_filter.value)
    goals = query.order_by(models.Goal.created_at.desc(), models.Goal.goal_id.desc()).all()
    return [to_goal_response(goal) for goal in goals]


@router.get("/{goal_id}", response_model=schemas.GoalResponse)
def get_goal(
    goal_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user)
):
    return to_goal_response(get_owned_goal(db, goal_id, current_user))


@router.put("/{goal_id}", response_model=schemas.GoalResponse)
def update_goal(
    goal_id: int,
    goal_update: schemas.GoalUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user)
):
    goal = get_owned_goal(db, goal_id, current_user)

    update_data = goal_update.model_dump(exclude_unset=True)
    if update_data.get("status") is not None:
        update_data["status"] = update_data["status"].value
    for field, value in update_data.items():
        setattr(goal, field, value)

    db.commit()
    db.refresh(goal)
    return to_goal_response(goal)


@router.post("/{goal_id}/contribute", response_model=schemas.GoalResponse)
def contribute_to_goal(
    goal_id: int,
    contribution: schemas.GoalContribution,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user)
):
    """Add money to a goal; reaching the target completes it"""
    goal = get_owned_goal(db, goal_id, current_user)
    if goal.status == "completed":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Goal is already completed"
        )

    goal.saved_amount += contribution.amount
    if goal.saved_amount >= goal.target_amount:
        goal.status = "completed"

    db.commit()
    db.refresh(goal)
    return to_goal_response(goal)


@router.delete("/{goal_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_goal(
    goal_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user)
):
    goal = get_owned_goal(db, goal_id, current_user)
    db.delete(goal)
    db.commit()
    return None
