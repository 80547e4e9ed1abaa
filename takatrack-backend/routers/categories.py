from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy import or_
from sqlalchemy.orm import Session
from typing import List, Optional
import models
import schemas
from database import get_db
from routers.utils import get_current_user, ensure_owner, ADMIN_ROLES
from routers.exceptions import NotOwnerError, ResourceNotFoundError

router = APIRouter()

# Seeded on startup as system categories (user_id NULL)
DEFAULT_CATEGORIES = [
    ("Salary", "income", "#10B981", "briefcase"),
    ("Freelance", "income", "#3B82F6", "laptop"),
    ("Investment", "income", "#8B5CF6", "trending-up"),
    ("Other Income", "income", "#6B7280", "plus-circle"),
    ("Food & Dining", "expense", "#EF4444", "utensils"),
    ("Transportation", "expense", "#F59E0B", "car"),
    ("Shopping", "expense", "#EC4899", "shopping-bag"),
    ("Entertainment", "expense", "#8B5CF6", "film"),
    ("Bills & Utilities", "expense", "#06B6D4", "file-text"),
    ("Healthcare", "expense", "#10B981", "heart"),
    ("Education", "expense", "#3B82F6", "book"),
    ("Other Expense", "expense", "#6B7280", "more-horizontal"),
]


def seed_default_categories(db: Session) -> None:
    """Insert the system categories that are missing."""
    existing = {
        name for (name,) in db.query(models.Category.name).filter(models.Category.user_id.is_(None)).all()
    }
    for name, category_type, color, icon in DEFAULT_CATEGORIES:
        if name not in existing:
            db.add(models.Category(user_id=None, name=name, type=category_type, color=color, icon=icon))
    db.commit()


def visible_categories_query(db: Session, user: models.User):
    """System categories plus the user's own."""
    return db.query(models.Category).filter(
        or_(models.Category.user_id == user.user_id, models.Category.user_id.is_(None))
    )


def get_usable_category(db: Session, category_id: int, user: models.User) -> models.Category:
    """
    Fetch a category the user may attach transactions or budgets to.

    Raises:
        ResourceNotFoundError: If the category does not exist
        NotOwnerError: If it is another user's private category
    """
    category = db.query(models.Category).filter(models.Category.category_id == category_id).first()
    if category is None:
        raise ResourceNotFoundError("Category")
    if category.user_id is not None and category.user_id != user.user_id:
        raise NotOwnerError("Category")
    return category


def get_editable_category(db: Session, category_id: int, user: models.User) -> models.Category:
    category = db.query(models.Category).filter(models.Category.category_id == category_id).first()
    if category is not None and category.user_id is None:
        # System categories are shared; only admins may change them
        if not user.has_role(*ADMIN_ROLES):
            raise NotOwnerError("Category")
        return category
    return ensure_owner(category, user, "Category")


@router.get("/", response_model=List[schemas.CategoryResponse])
def get_categories(
    type: Optional[schemas.TransactionTypeEnum] = Query(None, description="Filter by income or expense"),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user)
):
    """Get the system categories and the user's own categories"""
    query = visible_categories_query(db, current_user)
    if type:
        query = query.filter(models.Category.type == type.value)
    return query.order_by(models.Category.type, models.Category.name).all()


@router.post("/", response_model=schemas.CategoryResponse, status_code=status.HTTP_201_CREATED)
def create_category(
    category: schemas.CategoryCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user)
):
    """Create a personal category"""
    duplicate = visible_categories_query(db, current_user).filter(
        models.Category.name == category.name,
        models.Category.type == category.type.value
    ).first()
    if duplicate:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"A {category.type.value} category named '{category.name}' already exists"
        )

    data = category.model_dump()
    data["type"] = category.type.value
    db_category = models.Category(user_id=current_user.user_id, **data)
    db.add(db_category)
    db.commit()
    db.refresh(db_category)
    return db_category


@router.get("/{category_id}", response_model=schemas.CategoryResponse)
def get_category(
    category_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user)
):
    return get_usable_category(db, category_id, current_user)


@router.put("/{category_id}", response_model=schemas.CategoryResponse)
def update_category(
    category_id: int,
    category_update: schemas.CategoryUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user)
):
    category = get_editable_category(db, category_id, current_user)

    update_data = category_update.model_dump(exclude_unset=True)
    if update_data.get("type") is not None:
        update_data["type"] = update_data["type"].value
    for field, value in update_data.items():
        setattr(category, field, value)

    db.commit()
    db.refresh(category)
    return category


@router.delete("/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_category(
    category_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user)
):
    """Delete a category that no transaction uses"""
    category = get_editable_category(db, category_id, current_user)

    in_use = db.query(models.Transaction).filter(models.Transaction.category_id == category_id).first()
    if in_use:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Category is used by existing transactions"
        )

    db.query(models.Budget).filter(models.Budget.category_id == category_id).delete(synchronize_session=False)
    db.delete(category)
    db.commit()
    return None
