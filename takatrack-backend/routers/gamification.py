from fastapi import APIRouter, Depends, HTTPException, status, Query
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from datetime import date
import logging
import models
import schemas
from database import get_db
from routers.utils import get_current_user, ensure_owner
from routers.exceptions import ResourceNotFoundError
from services import gamification
from services.gamification import GamificationError, AlreadySpunError

logger = logging.getLogger(__name__)
router = APIRouter()


# ============ HELPER FUNCTIONS ============

def streak_payload(streak: models.UserStreak, today: date) -> dict:
    return {
        **schemas.StreakResponse.model_validate(streak).model_dump(),
        "can_log_today": streak.last_logged_date != today,
    }


def user_goal_payload(goal: models.UserGoal) -> dict:
    response = schemas.UserGoalResponse.model_validate(goal)
    response.progress_percentage = gamification.goal_progress_percentage(goal)
    return response.model_dump()


def level_payload(level_row: models.UserLevel) -> dict:
    return {
        "current_level": level_row.current_level,
        "current_title": level_row.current_title,
        "total_coins": level_row.total_coins,
        "total_badges": level_row.total_badges,
        "progress": gamification.level_progress(level_row),
    }


def reward_payload(reward: models.UserReward) -> dict:
    return schemas.RewardResponse.model_validate(reward).model_dump()


def spin_payload(spin: models.DailySpin) -> dict:
    return {
        "spin_id": spin.spin_id,
        "spin_date": spin.spin_date,
        "reward_type": spin.reward_type,
        "reward_value": spin.reward_value,
        "coins_earned": spin.coins_earned,
        "is_claimed": spin.is_claimed,
        "reward_id": spin.reward_id,
        "reward_name": spin.reward.reward_name if spin.reward else None,
    }


# ============ STREAKS ============

@router.get("/streak")
def get_streak(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user)
):
    """Current expense-logging streak"""
    streak = gamification.get_streak(db, current_user.user_id)
    return streak_payload(streak, date.today())


@router.post("/streak")
def log_streak(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user)
):
    """Record today's activity for the streak"""
    today = date.today()
    streak, new_badges = gamification.log_streak(db, current_user.user_id, today=today)
    return {**streak_payload(streak, today), "new_badges": new_badges}


# ============ GOALS ============

@router.get("/goals")
def get_goals(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user)
):
    """Active and completed gamified goals"""
    return {
        "active_goals": [user_goal_payload(g) for g in gamification.active_goals(db, current_user.user_id)],
        "completed_goals": [user_goal_payload(g) for g in gamification.completed_goals(db, current_user.user_id)],
    }


@router.post("/goals", status_code=status.HTTP_201_CREATED)
def create_goal(
    goal: schemas.UserGoalCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user)
):
    db_goal = models.UserGoal(
        user_id=current_user.user_id,
        goal_name=goal.goal_name,
        description=goal.description,
        target_amount=goal.target_amount,
        current_amount=0.0,
        start_date=date.today(),
        target_date=goal.target_date,
        goal_type=goal.goal_type.value,
        status="active",
        milestones=[],
    )
    db.add(db_goal)
    db.commit()
    db.refresh(db_goal)
    logger.info(f"User {current_user.user_id} created gamified goal {db_goal.user_goal_id}")
    return user_goal_payload(db_goal)


@router.post("/goals/{goal_id}/progress")
def add_goal_progress(
    goal_id: int,
    progress: schemas.UserGoalProgress,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user)
):
    """Add an amount to a goal; milestones and completion grant rewards"""
    goal = db.query(models.UserGoal).filter(models.UserGoal.user_goal_id == goal_id).first()
    ensure_owner(goal, current_user, "Goal")

    try:
        goal, granted = gamification.add_goal_progress(db, goal, progress.amount)
    except GamificationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return {
        "goal": user_goal_payload(goal),
        "rewards": [reward_payload(reward) for reward in granted],
        "completed": goal.status == "completed",
    }


# ============ LEVEL ============

@router.get("/level")
def get_level(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user)
):
    """Level, title and progress towards the next level"""
    return level_payload(gamification.recompute_level(db, current_user.user_id))


# ============ DAILY SPIN ============

@router.post("/spin")
def spin(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user)
):
    """Spin the daily wheel; the reward must be claimed afterwards"""
    try:
        daily_spin = gamification.perform_spin(db, current_user.user_id)
    except AlreadySpunError as e:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"success": False, "can_spin": False, "message": str(e)}
        )

    reward = daily_spin.reward
    return {
        "success": True,
        "can_spin": False,
        "spin": spin_payload(daily_spin),
        "reward": reward_payload(reward) if reward else None,
    }


@router.get("/spin/can-spin")
def can_spin(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user)
):
    return {"can_spin": gamification.can_spin_today(db, current_user.user_id)}


@router.get("/spin/history")
def get_spin_history(
    limit: int = Query(30, ge=1, le=365),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user)
):
    return {
        "spins": [spin_payload(s) for s in gamification.spin_history(db, current_user.user_id, limit)],
        "stats": gamification.spin_stats(db, current_user.user_id),
    }


# ============ REWARDS ============

@router.get("/rewards")
def get_rewards(
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user)
):
    return {
        "recent_rewards": [reward_payload(r) for r in gamification.recent_rewards(db, current_user.user_id, limit)],
        "unclaimed_rewards": [reward_payload(r) for r in gamification.unclaimed_rewards(db, current_user.user_id)],
        "stats": gamification.reward_stats(db, current_user.user_id),
    }


@router.post("/rewards/{reward_id}/claim")
def claim_reward(
    reward_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user)
):
    reward = db.query(models.UserReward).filter(
        models.UserReward.reward_id == reward_id,
        models.UserReward.user_id == current_user.user_id
    ).first()
    if not reward:
        raise ResourceNotFoundError("Reward")

    try:
        reward = gamification.claim_reward(db, reward)
    except GamificationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    level_row = gamification.recompute_level(db, current_user.user_id)
    return {"reward": reward_payload(reward), "level": level_payload(level_row)}


# ============ DASHBOARD ============

@router.get("/dashboard")
def get_dashboard(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user)
):
    """Everything the gamification screen shows, in one call"""
    today = date.today()
    user_id = current_user.user_id
    return {
        "streak": streak_payload(gamification.get_streak(db, user_id), today),
        "level": level_payload(gamification.recompute_level(db, user_id)),
        "active_goals": [user_goal_payload(g) for g in gamification.active_goals(db, user_id)],
        "can_spin": gamification.can_spin_today(db, user_id, today),
        "recent_rewards": [reward_payload(r) for r in gamification.recent_rewards(db, user_id, 5)],
    }
