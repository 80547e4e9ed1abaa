"""
Built-in roles and permissions, seeded on startup
"""
from typing import Dict, List
from sqlalchemy.orm import Session
import models
import logging

logger = logging.getLogger(__name__)

CRUD = ("view", "create", "edit", "delete")

PERMISSION_ACTIONS: Dict[str, tuple] = {
    "cms.pages": CRUD + ("publish",),
    "cms.posts": CRUD + ("publish",),
    "cms.media": ("view", "upload", "edit", "delete"),
    "cms.roles": CRUD + ("assign",),
    "cms.users": CRUD,
    "cms.settings": ("view", "edit"),
    "finance.transactions": CRUD,
    "finance.categories": CRUD,
    "finance.accounts": CRUD,
    "finance.budgets": CRUD,
    "finance.goals": CRUD,
    "finance.reports": ("view", "export"),
}

PERMISSIONS: List[str] = [
    f"{resource}.{action}" for resource, actions in PERMISSION_ACTIONS.items() for action in actions
]

FINANCE_RESOURCES = ("transactions", "categories", "accounts", "budgets", "goals")


def _grant(prefix: str, resources, actions) -> List[str]:
    return [f"{prefix}.{resource}.{action}" for resource in resources for action in actions]


ROLE_PERMISSIONS: Dict[str, List[str]] = {
    "super-admin": PERMISSIONS,
    "admin": [name for name in PERMISSIONS if not name.startswith("cms.roles.")],
    "editor": (
        _grant("cms", ("pages", "posts"), ("view", "create", "edit", "publish"))
        + _grant("cms", ("media",), ("view", "upload", "edit"))
        + _grant("finance", FINANCE_RESOURCES, ("view", "create", "edit"))
        + ["finance.reports.view"]
    ),
    "author": (
        _grant("cms", ("pages", "posts"), ("view", "create", "edit"))
        + _grant("cms", ("media",), ("view", "upload"))
        + _grant("finance", FINANCE_RESOURCES, ("view", "create", "edit"))
    ),
    "viewer": (
        _grant("cms", ("pages", "posts", "media"), ("view",))
        + _grant("finance", FINANCE_RESOURCES + ("reports",), ("view",))
    ),
    "user": _grant("finance", FINANCE_RESOURCES, ("view", "create", "edit")),
}

PROTECTED_ROLE = "super-admin"


def seed_roles(db: Session) -> None:
    """Create missing permissions and built-in roles; existing grants are left alone."""
    permissions = {p.name: p for p in db.query(models.Permission).all()}
    for name in PERMISSIONS:
        if name not in permissions:
            permissions[name] = models.Permission(name=name)
            db.add(permissions[name])

    existing_roles = {r.name for r in db.query(models.Role).all()}
    for role_name, granted in ROLE_PERMISSIONS.items():
        if role_name in existing_roles:
            continue
        db.add(models.Role(name=role_name, permissions=[permissions[name] for name in granted]))
        logger.info(f"Seeded role {role_name} with {len(granted)} permissions")

    db.commit()


def resolve_permissions(db: Session, names: List[str]) -> List[models.Permission]:
    """Look up permissions by name; unknown names are ignored."""
    if not names:
        return []
    return db.query(models.Permission).filter(models.Permission.name.in_(names)).all()


def resolve_roles(db: Session, names: List[str]) -> List[models.Role]:
    if not names:
        return []
    return db.query(models.Role).filter(models.Role.name.in_(names)).all()
