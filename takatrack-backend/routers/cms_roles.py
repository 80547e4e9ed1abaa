from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List
import models
import schemas
from database import get_db
from routers.exceptions import ResourceNotFoundError, BusinessRuleError
from services.access_control import PROTECTED_ROLE, resolve_permissions

router = APIRouter()


def get_role_or_404(db: Session, role_id: int) -> models.Role:
    role = db.query(models.Role).filter(models.Role.role_id == role_id).first()
    if not role:
        raise ResourceNotFoundError("Role")
    return role


def get_user_or_404(db: Session, user_id: int) -> models.User:
    user = db.query(models.User).filter(models.User.user_id == user_id).first()
    if not user:
        raise ResourceNotFoundError("User")
    return user


def ensure_unique_name(db: Session, name: str, exclude_id: int = None) -> None:
    query = db.query(models.Role).filter(models.Role.name == name)
    if exclude_id is not None:
        query = query.filter(models.Role.role_id != exclude_id)
    if query.first():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Role '{name}' already exists")


@router.get("/", response_model=List[schemas.RoleResponse])
def get_roles(db: Session = Depends(get_db)):
    return db.query(models.Role).order_by(models.Role.name).all()


@router.get("/permissions", response_model=List[schemas.PermissionResponse])
def get_permissions(db: Session = Depends(get_db)):
    return db.query(models.Permission).order_by(models.Permission.name).all()


@router.post("/", response_model=schemas.RoleResponse, status_code=status.HTTP_201_CREATED)
def create_role(role: schemas.RoleCreate, db: Session = Depends(get_db)):
    ensure_unique_name(db, role.name)
    db_role = models.Role(
        name=role.name,
        description=role.description,
        permissions=resolve_permissions(db, role.permissions),
    )
    db.add(db_role)
    db.commit()
    db.refresh(db_role)
    return db_role


@router.get("/{role_id}", response_model=schemas.RoleResponse)
def get_role(role_id: int, db: Session = Depends(get_db)):
    return get_role_or_404(db, role_id)


@router.put("/{role_id}", response_model=schemas.RoleResponse)
def update_role(role_id: int, role_update: schemas.RoleUpdate, db: Session = Depends(get_db)):
    """Rename a role or replace its permission set"""
    role = get_role_or_404(db, role_id)

    if role_update.name is not None and role_update.name != role.name:
        if role.name == PROTECTED_ROLE:
            raise BusinessRuleError("Cannot rename super-admin role")
        ensure_unique_name(db, role_update.name, exclude_id=role.role_id)
        role.name = role_update.name
    if role_update.description is not None:
        role.description = role_update.description
    if role_update.permissions is not None:
        role.permissions = resolve_permissions(db, role_update.permissions)

    db.commit()
    db.refresh(role)
    return role


@router.delete("/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_role(role_id: int, db: Session = Depends(get_db)):
    role = get_role_or_404(db, role_id)
    if role.name == PROTECTED_ROLE:
        raise BusinessRuleError("Cannot delete super-admin role")

    db.delete(role)
    db.commit()
    return None


@router.post("/{role_id}/assign", response_model=schemas.UserResponse)
def assign_role(role_id: int, assignment: schemas.RoleAssignment, db: Session = Depends(get_db)):
    role = get_role_or_404(db, role_id)
    user = get_user_or_404(db, assignment.user_id)
    if role not in user.roles:
        user.roles.append(role)
        db.commit()
        db.refresh(user)
    return user


@router.post("/{role_id}/remove", response_model=schemas.UserResponse)
def remove_role(role_id: int, assignment: schemas.RoleAssignment, db: Session = Depends(get_db)):
    role = get_role_or_404(db, role_id)
    user = get_user_or_404(db, assignment.user_id)
    if role in user.roles:
        user.roles.remove(role)
        db.commit()
        db.refresh(user)
    return user
