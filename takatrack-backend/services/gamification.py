"""
Gamification Service
Streaks, daily spins, rewards, levels and gamified savings goals.

Functions that depend on the calendar take a `today` argument so callers
and tests can pin the date; it defaults to the current date.
"""
import random
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
import models
from services.notifications import create_notification
import logging

logger = logging.getLogger(__name__)

DEFAULT_STREAK_TYPE = "expense_logging"


class GamificationError(ValueError):
    """Base class for rule violations reported back to the client as 400."""


class AlreadySpunError(GamificationError):
    def __init__(self):
        super().__init__("You have already spun today!")


class AlreadyClaimedError(GamificationError):
    def __init__(self):
        super().__init__("Reward already claimed")


class GoalNotActiveError(GamificationError):
    def __init__(self):
        super().__init__("Only active goals can receive progress")


# ============ LEVELS ============

# (level, title, coins needed)
LEVELS: List[Tuple[int, str, int]] = [
    (1, "Saver", 0),
    (2, "Budgeter", 100),
    (3, "Smart Spender", 300),
    (4, "Financial Planner", 600),
    (5, "Money Manager", 1000),
    (6, "Investment Starter", 1500),
    (7, "Wealth Builder", 2200),
    (8, "Financial Expert", 3000),
    (9, "Money Master", 4000),
    (10, "Finance Guru", 5000),
]


def level_for_coins(coins: int) -> Tuple[int, str]:
    current = LEVELS[0]
    for entry in LEVELS:
        if coins >= entry[2]:
            current = entry
    return current[0], current[1]


def level_progress(level_row: models.UserLevel) -> Dict[str, Any]:
    """Progress towards the next level; the top level reports 100%."""
    index = level_row.current_level - 1
    current_threshold = LEVELS[index][2]
    if level_row.current_level >= len(LEVELS):
        return {
            "current_level": level_row.current_level,
            "next_level": None,
            "next_title": None,
            "coins_needed": 0,
            "progress_percentage": 100.0,
        }

    next_level, next_title, next_threshold = LEVELS[index + 1]
    span = next_threshold - current_threshold
    percentage = (level_row.total_coins - current_threshold) / span * 100
    return {
        "current_level": level_row.current_level,
        "next_level": next_level,
        "next_title": next_title,
        "coins_needed": max(0, next_threshold - level_row.total_coins),
        "progress_percentage": round(max(0.0, min(100.0, percentage)), 2),
    }


def recompute_level(db: Session, user_id: int) -> models.UserLevel:
    """
    Recalculate coins, badges and level from the user's claimed rewards.

    Only the UserLevel row is written, so calling it repeatedly is harmless.
    """
    claimed = db.query(models.UserReward).filter(
        models.UserReward.user_id == user_id,
        models.UserReward.claimed_at.isnot(None),
    )
    total_coins = int(claimed.with_entities(func.coalesce(func.sum(models.UserReward.coins_earned), 0)).scalar())
    total_badges = claimed.filter(models.UserReward.badge_name.isnot(None)).count()
    level, title = level_for_coins(total_coins)

    level_row = db.query(models.UserLevel).filter(models.UserLevel.user_id == user_id).first()
    if not level_row:
        level_row = models.UserLevel(user_id=user_id)
        db.add(level_row)

    level_row.total_coins = total_coins
    level_row.total_badges = total_badges
    level_row.current_level = level
    level_row.current_title = title
    db.commit()
    db.refresh(level_row)
    return level_row


# ============ REWARDS ============

def _grant_reward(
    db: Session,
    user_id: int,
    reward_type: str,
    reward_name: str,
    description: str,
    coins: int,
    badge_name: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    claimed: bool = True,
) -> models.UserReward:
    reward = models.UserReward(
        user_id=user_id,
        reward_type=reward_type,
        reward_name=reward_name,
        description=description,
        coins_earned=coins,
        badge_name=badge_name,
        meta_data=metadata or {},
        claimed_at=models.utcnow() if claimed else None,
    )
    db.add(reward)
    return reward


def claim_reward(db: Session, reward: models.UserReward) -> models.UserReward:
    """
    Mark a reward as claimed and refresh the user's level.

    Raises:
        AlreadyClaimedError: If the reward was claimed before
    """
    if reward.claimed_at is not None:
        raise AlreadyClaimedError()

    reward.claimed_at = models.utcnow()
    spin = db.query(models.DailySpin).filter(models.DailySpin.reward_id == reward.reward_id).first()
    if spin:
        spin.is_claimed = True
    db.commit()
    db.refresh(reward)

    recompute_level(db, reward.user_id)
    return reward


def recent_rewards(db: Session, user_id: int, limit: int = 20) -> List[models.UserReward]:
    return (
        db.query(models.UserReward)
        .filter(models.UserReward.user_id == user_id)
        .order_by(models.UserReward.created_at.desc(), models.UserReward.reward_id.desc())
        .limit(limit)
        .all()
    )


def unclaimed_rewards(db: Session, user_id: int) -> List[models.UserReward]:
    return (
        db.query(models.UserReward)
        .filter(models.UserReward.user_id == user_id, models.UserReward.claimed_at.is_(None))
        .order_by(models.UserReward.created_at.desc())
        .all()
    )


def reward_stats(db: Session, user_id: int) -> Dict[str, Any]:
    rewards = db.query(models.UserReward).filter(models.UserReward.user_id == user_id).all()
    claimed = [r for r in rewards if r.claimed_at is not None]
    by_type: Dict[str, int] = {}
    for reward in rewards:
        by_type[reward.reward_type] = by_type.get(reward.reward_type, 0) + 1
    return {
        "total_rewards": len(rewards),
        "claimed_rewards": len(claimed),
        "unclaimed_rewards": len(rewards) - len(claimed),
        "total_coins_earned": sum(r.coins_earned for r in claimed),
        "total_badges": sum(1 for r in claimed if r.badge_name),
        "rewards_by_type": by_type,
    }


# ============ STREAKS ============

# (days, badge key, display name, coins, description)
STREAK_BADGES = [
    (7, "7_day_streak", "7 Day Streak", 50, "Keep it up! You've logged expenses for 7 consecutive days."),
    (30, "30_day_streak", "30 Day Streak", 200, "Amazing! You've maintained your streak for 30 days."),
    (100, "100_day_streak", "100 Day Streak", 1000, "Incredible! You're a streak master!"),
]


def get_streak(db: Session, user_id: int, streak_type: str = DEFAULT_STREAK_TYPE) -> models.UserStreak:
    """Return the user's streak row, creating an empty one on first access."""
    streak = db.query(models.UserStreak).filter(
        models.UserStreak.user_id == user_id,
        models.UserStreak.streak_type == streak_type,
    ).first()
    if not streak:
        streak = models.UserStreak(user_id=user_id, streak_type=streak_type, streak_count=0, badges_earned=[])
        db.add(streak)
        db.commit()
        db.refresh(streak)
    return streak


def log_streak(
    db: Session,
    user_id: int,
    streak_type: str = DEFAULT_STREAK_TYPE,
    today: Optional[date] = None,
) -> Tuple[models.UserStreak, List[str]]:
    """
    Record activity for `today`.

    Logging twice on one day changes nothing. A log on the day after the
    previous one extends the streak; any longer gap restarts it at 1.

    Returns:
        (streak row, badge keys newly earned by this call)
    """
    today = today or date.today()
    streak = get_streak(db, user_id, streak_type)

    if streak.last_logged_date == today:
        return streak, []

    if streak.last_logged_date == today - timedelta(days=1):
        streak.streak_count += 1
    else:
        streak.streak_count = 1
    streak.last_logged_date = today

    earned = list(streak.badges_earned or [])
    new_badges = []
    for days, key, name, coins, description in STREAK_BADGES:
        if streak.streak_count >= days and key not in earned:
            new_badges.append(key)
            _grant_reward(db, user_id, "streak_badge", name, description, coins, badge_name=key)
            create_notification(
                db, user_id, "achievement", f"Badge earned: {name}", description,
                {"badge": key, "coins": coins}, commit=False,
            )
    # Reassign so the JSON column is flagged as changed
    streak.badges_earned = earned + new_badges
    db.commit()
    db.refresh(streak)

    if new_badges:
        logger.info(f"User {user_id} earned streak badges: {new_badges}")
        recompute_level(db, user_id)
    return streak, new_badges


# ============ DAILY SPIN ============

@dataclass(frozen=True)
class SpinOutcome:
    reward_type: str
    reward_value: str
    name: str
    description: str
    coins: int
    weight: int


SPIN_TABLE: List[SpinOutcome] = [
    SpinOutcome("coins", "10", "Small Coin Bonus", "You earned 10 coins!", 10, 40),
    SpinOutcome("coins", "25", "Coin Bonus", "You earned 25 coins!", 25, 30),
    SpinOutcome("coins", "50", "Big Coin Bonus", "You earned 50 coins!", 50, 15),
    SpinOutcome("badge", "lucky_spinner", "Lucky Spinner Badge", "You earned a Lucky Spinner badge!", 30, 10),
    SpinOutcome("coins", "100", "Mega Coin Bonus", "You earned 100 coins!", 100, 3),
    SpinOutcome("bonus", "double_coins", "Double Coins Bonus", "Your next 3 transactions will earn double coins!", 0, 2),
]


def draw_spin_outcome(rng: random.Random) -> SpinOutcome:
    """Weighted draw from SPIN_TABLE."""
    return rng.choices(SPIN_TABLE, weights=[outcome.weight for outcome in SPIN_TABLE], k=1)[0]


def can_spin_today(db: Session, user_id: int, today: Optional[date] = None) -> bool:
    today = today or date.today()
    return not db.query(models.DailySpin).filter(
        models.DailySpin.user_id == user_id,
        models.DailySpin.spin_date == today,
    ).first()


def perform_spin(
    db: Session,
    user_id: int,
    rng: Optional[random.Random] = None,
    today: Optional[date] = None,
) -> models.DailySpin:
    """
    Spin the wheel once for `today`.

    Creates the DailySpin row and an unclaimed reward. The unique
    (user_id, spin_date) constraint backs up the pre-check when two
    requests race.

    Raises:
        AlreadySpunError: If the user already spun today
    """
    today = today or date.today()
    if not can_spin_today(db, user_id, today):
        raise AlreadySpunError()

    outcome = draw_spin_outcome(rng or random.Random())
    reward = _grant_reward(
        db, user_id, "daily_spin", outcome.name, outcome.description, outcome.coins,
        badge_name=outcome.reward_value if outcome.reward_type == "badge" else None,
        metadata={"spin_date": today.isoformat(), "reward_value": outcome.reward_value},
        claimed=False,
    )
    db.flush()

    spin = models.DailySpin(
        user_id=user_id,
        spin_date=today,
        reward_type=outcome.reward_type,
        reward_value=outcome.reward_value,
        coins_earned=outcome.coins,
        is_claimed=False,
        reward_id=reward.reward_id,
    )
    db.add(spin)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise AlreadySpunError()
    db.refresh(spin)

    logger.info(f"User {user_id} spun the wheel: {outcome.name}")
    return spin


def spin_history(db: Session, user_id: int, limit: int = 30) -> List[models.DailySpin]:
    return (
        db.query(models.DailySpin)
        .filter(models.DailySpin.user_id == user_id)
        .order_by(models.DailySpin.spin_date.desc())
        .limit(limit)
        .all()
    )


def spin_stats(db: Session, user_id: int) -> Dict[str, Any]:
    spins = db.query(models.DailySpin).filter(models.DailySpin.user_id == user_id).all()
    total_coins = sum(spin.coins_earned for spin in spins)
    return {
        "total_spins": len(spins),
        "total_coins_earned": total_coins,
        "badge_spins": sum(1 for spin in spins if spin.reward_type == "badge"),
        "average_coins_per_spin": round(total_coins / len(spins), 2) if spins else 0,
    }


# ============ GOALS ============

GOAL_MILESTONES = (25, 50, 75)


def goal_progress_percentage(goal: models.UserGoal) -> float:
    if goal.target_amount <= 0:
        return 0.0
    return min(100.0, round(goal.current_amount / goal.target_amount * 100, 2))


def goal_completion_coins(goal: models.UserGoal, today: date) -> int:
    """100 base coins plus one per 1000 of target, boosted 1.5x when finished early."""
    multiplier = 1.5 if goal.target_date > today else 1.0
    return int(100 + goal.target_amount / 1000 * multiplier)


def add_goal_progress(
    db: Session,
    goal: models.UserGoal,
    amount: float,
    today: Optional[date] = None,
) -> Tuple[models.UserGoal, List[models.UserReward]]:
    """
    Add `amount` to an active goal, awarding milestone and completion rewards once each.

    Raises:
        GoalNotActiveError: If the goal is not active

    Returns:
        (goal, rewards granted by this call)
    """
    today = today or date.today()
    if goal.status != "active":
        raise GoalNotActiveError()

    goal.current_amount += amount
    granted = []

    progress = goal_progress_percentage(goal)
    reached = list(goal.milestones or [])
    for milestone in GOAL_MILESTONES:
        if progress >= milestone and milestone not in reached:
            reached.append(milestone)
            granted.append(_grant_reward(
                db, goal.user_id, "goal_milestone", f"{milestone}% Progress",
                f"You've reached {milestone}% of your goal '{goal.goal_name}'.", milestone,
                metadata={"user_goal_id": goal.user_goal_id, "milestone": milestone},
            ))
    goal.milestones = reached

    if goal.current_amount >= goal.target_amount:
        goal.status = "completed"
        goal.completed_at = models.utcnow()
        coins = goal_completion_coins(goal, today)
        granted.append(_grant_reward(
            db, goal.user_id, "goal_completion", f"Goal Achieved: {goal.goal_name}",
            f"Congratulations! You've achieved your goal of {goal.target_amount:,.2f}.", coins,
            metadata={"user_goal_id": goal.user_goal_id},
        ))
        create_notification(
            db, goal.user_id, "achievement", "Goal achieved!",
            f"You completed '{goal.goal_name}' and earned {coins} coins.",
            {"user_goal_id": goal.user_goal_id, "coins": coins}, commit=False,
        )

    db.commit()
    db.refresh(goal)
    if granted:
        recompute_level(db, goal.user_id)
    return goal, granted


def active_goals(db: Session, user_id: int) -> List[models.UserGoal]:
    return (
        db.query(models.UserGoal)
        .filter(models.UserGoal.user_id == user_id, models.UserGoal.status == "active")
        .order_by(models.UserGoal.target_date.asc())
        .all()
    )


def completed_goals(db: Session, user_id: int) -> List[models.UserGoal]:
    return (
        db.query(models.UserGoal)
        .filter(models.UserGoal.user_id == user_id, models.UserGoal.status == "completed")
        .order_by(models.UserGoal.completed_at.desc())
        .all()
    )
