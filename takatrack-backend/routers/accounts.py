from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.orm import Session
from typing import List, Optional
import logging
import models
import schemas
from database import get_db
from routers.utils import get_current_user, ensure_owner

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/", response_model=schemas.AccountResponse, status_code=status.HTTP_201_CREATED)
def create_account(
    account: schemas.AccountCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user)
):
    """Create a new account for the current user"""
    db_account = models.Account(
        user_id=current_user.user_id,
        **account.model_dump()
    )

    db.add(db_account)
    db.commit()
    db.refresh(db_account)

    logger.info(f"[create_account] Created account: account_id={db_account.account_id}, type={db_account.type}")
    return db_account


@router.get("/", response_model=List[schemas.AccountResponse])
def get_accounts(
    is_active: Optional[bool] = Query(None, description="Filter by active flag"),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user)
):
    """Get all accounts for the current user"""
    query = db.query(models.Account).filter(models.Account.user_id == current_user.user_id)
    if is_active is not None:
        query = query.filter(models.Account.is_active == is_active)
    return query.order_by(models.Account.name).all()


@router.get("/{account_id}", response_model=schemas.AccountResponse)
def get_account(
    account_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user)
):
    """Get a specific account by ID"""
    account = db.query(models.Account).filter(models.Account.account_id == account_id).first()
    return ensure_owner(account, current_user, "Account")


@router.put("/{account_id}", response_model=schemas.AccountResponse)
def update_account(
    account_id: int,
    account_update: schemas.AccountUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user)
):
    """Update an account"""
    account = db.query(models.Account).filter(models.Account.account_id == account_id).first()
    ensure_owner(account, current_user, "Account")

    for field, value in account_update.model_dump(exclude_unset=True).items():
        setattr(account, field, value)

    db.commit()
    db.refresh(account)
    return account


@router.delete("/{account_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_account(
    account_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user)
):
    """
    Delete an account.

    Transactions that referenced it are kept and simply lose the link.
    """
    account = db.query(models.Account).filter(models.Account.account_id == account_id).first()
    ensure_owner(account, current_user, "Account")

    db.query(models.Transaction).filter(
        models.Transaction.account_id == account_id
    ).update({models.Transaction.account_id: None}, synchronize_session=False)
    db.delete(account)
    db.commit()
    return None
