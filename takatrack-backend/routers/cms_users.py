from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy import or_
from sqlalchemy.orm import Session
from typing import Optional
import logging
import models
import schemas
from database import get_db
from routers.utils import hash_password, require_admin
from routers.exceptions import ResourceNotFoundError, BusinessRuleError
from services.access_control import resolve_roles

logger = logging.getLogger(__name__)
router = APIRouter()

GAMIFICATION_MODELS = (
    models.DailySpin,
    models.UserReward,
    models.UserStreak,
    models.UserLevel,
    models.UserGoal,
    models.AiRequest,
)


def get_user_or_404(db: Session, user_id: int) -> models.User:
    user = db.query(models.User).filter(models.User.user_id == user_id).first()
    if not user:
        raise ResourceNotFoundError("User")
    return user


def ensure_email_available(db: Session, email: str, exclude_id: Optional[int] = None) -> None:
    query = db.query(models.User).filter(models.User.email == email)
    if exclude_id is not None:
        query = query.filter(models.User.user_id != exclude_id)
    if query.first():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already registered")


@router.get("/", response_model=schemas.AdminUserList)
def get_users(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    search: Optional[str] = Query(None, description="Search name or email"),
    role: Optional[str] = Query(None, description="Only users holding this role"),
    db: Session = Depends(get_db)
):
    query = db.query(models.User)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(models.User.name.ilike(pattern), models.User.email.ilike(pattern)))
    if role:
        query = query.filter(models.User.roles.any(models.Role.name == role))

    total = query.count()
    users = query.order_by(models.User.user_id).offset(skip).limit(limit).all()
    return schemas.AdminUserList(users=users, total=total, skip=skip, limit=limit, has_more=skip + limit < total)


@router.post("/", response_model=schemas.UserResponse, status_code=status.HTTP_201_CREATED)
def create_user(user: schemas.AdminUserCreate, db: Session = Depends(get_db)):
    ensure_email_available(db, user.email)
    db_user = models.User(
        name=user.name,
        email=user.email,
        password=hash_password(user.password),
        roles=resolve_roles(db, user.roles),
    )
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    logger.info(f"Admin created user {db_user.user_id} with roles {user.roles}")
    return db_user


@router.get("/{user_id}", response_model=schemas.UserResponse)
def get_user(user_id: int, db: Session = Depends(get_db)):
    return get_user_or_404(db, user_id)


@router.put("/{user_id}", response_model=schemas.UserResponse)
def update_user(user_id: int, user_update: schemas.AdminUserUpdate, db: Session = Depends(get_db)):
    user = get_user_or_404(db, user_id)

    if user_update.email is not None:
        ensure_email_available(db, user_update.email, exclude_id=user.user_id)
        user.email = user_update.email
    if user_update.name is not None:
        user.name = user_update.name
    if user_update.password is not None:
        user.password = hash_password(user_update.password)
    if user_update.roles is not None:
        user.roles = resolve_roles(db, user_update.roles)

    db.commit()
    db.refresh(user)
    return user


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_admin)
):
    user = get_user_or_404(db, user_id)
    if user.user_id == current_user.user_id:
        raise BusinessRuleError("You cannot delete your own account")

    # Gamification and audit tables have no ORM cascade; spins go before the rewards they point at
    for model in GAMIFICATION_MODELS:
        db.query(model).filter(model.user_id == user.user_id).delete(synchronize_session=False)
    db.delete(user)
    db.commit()
    return None
