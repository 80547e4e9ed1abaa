from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from datetime import timedelta
import logging
import models
import schemas
from database import get_db
from routers.utils import (
    get_current_user,
    create_access_token,
    hash_password,
    verify_password,
    ACCESS_TOKEN_EXPIRE_MINUTES,
)

logger = logging.getLogger(__name__)
router = APIRouter()


def authenticate_user(db: Session, email: str, password: str):
    """
    Authenticate a user by email and password.
    Returns user if authentication successful, None otherwise.
    """
    user = db.query(models.User).filter(models.User.email == email).first()
    if not user or not verify_password(password, user.password):
        return None
    return user


def issue_token(user: models.User) -> dict:
    access_token = create_access_token(
        data={"user_id": user.user_id, "email": user.email},
        expires_delta=timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES),
    )
    return {
        "access_token": access_token,
        "token_type": "bearer",
        "user": schemas.UserResponse.model_validate(user),
    }


# Endpoints


@router.post("/register", response_model=schemas.Token, status_code=status.HTTP_201_CREATED)
async def register(user_data: schemas.UserRegister, db: Session = Depends(get_db)):
    """
    Register a new user account.

    Returns JWT token for immediate login after registration.
    New accounts get the `user` role.
    """
    existing_user = db.query(models.User).filter(models.User.email == user_data.email).first()
    if existing_user:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered"
        )

    new_user = models.User(
        name=user_data.name,
        email=user_data.email,
        password=hash_password(user_data.password),
        settings={},
    )
    user_role = db.query(models.Role).filter(models.Role.name == "user").first()
    if user_role:
        new_user.roles.append(user_role)

    db.add(new_user)
    db.commit()
    db.refresh(new_user)

    logger.info(f"Registered user {new_user.user_id}")
    return issue_token(new_user)


@router.post("/login", response_model=schemas.Token)
async def login(user_data: schemas.UserLogin, db: Session = Depends(get_db)):
    """
    Authenticate user and return JWT token.

    The token should be included in subsequent requests as:
    Authorization: Bearer <token>
    """
    user = authenticate_user(db, user_data.email, user_data.password)
    if not user:
        logger.warning(f"Failed login attempt for {user_data.email}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return issue_token(user)


@router.post("/logout")
async def logout(current_user: models.User = Depends(get_current_user)):
    """
    Logout endpoint.

    Tokens are stateless, so the client discards its copy.
    """
    return {"message": "Successfully logged out"}


@router.get("/me", response_model=schemas.UserResponse)
async def get_me(current_user: models.User = Depends(get_current_user)):
    """Get the authenticated user."""
    return current_user


@router.post("/refresh", response_model=schemas.Token)
async def refresh_token(current_user: models.User = Depends(get_current_user)):
    """Issue a fresh token for a still-valid one."""
    return issue_token(current_user)


@router.put("/profile", response_model=schemas.UserResponse)
async def update_profile(
    profile: schemas.ProfileUpdate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Update name, email or settings of the authenticated user."""
    update_data = profile.model_dump(exclude_unset=True)

    if "email" in update_data and update_data["email"] != current_user.email:
        taken = db.query(models.User).filter(
            models.User.email == update_data["email"],
            models.User.user_id != current_user.user_id
        ).first()
        if taken:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Email already registered"
            )

    for field, value in update_data.items():
        setattr(current_user, field, value)

    db.commit()
    db.refresh(current_user)
    return current_user


@router.put("/password")
async def change_password(
    payload: schemas.PasswordChange,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Change the password after checking the current one."""
    if not verify_password(payload.current_password, current_user.password):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Current password is incorrect"
        )

    current_user.password = hash_password(payload.new_password)
    db.commit()
    return {"message": "Password updated successfully"}
