from fastapi import APIRouter, Depends, status, Query
from sqlalchemy import or_
from sqlalchemy.orm import Session
from typing import List, Optional
import models
import schemas
from database import get_db
from routers.utils import require_admin, unique_slug
from routers.exceptions import ResourceNotFoundError, BusinessRuleError

router = APIRouter()


def get_page_or_404(db: Session, page_id: int) -> models.Page:
    page = db.query(models.Page).filter(models.Page.page_id == page_id).first()
    if not page:
        raise ResourceNotFoundError("Page")
    return page


def check_parent(db: Session, parent_id: Optional[int], page_id: Optional[int] = None) -> None:
    if parent_id is None:
        return
    if parent_id == page_id:
        raise BusinessRuleError("A page cannot be its own parent")
    get_page_or_404(db, parent_id)


def apply_status(page: models.Page, new_status: str) -> None:
    """Set the status, stamping published_at the first time a page goes live."""
    page.status = new_status
    if new_status == "published" and page.published_at is None:
        page.published_at = models.utcnow()


@router.get("/", response_model=schemas.PageList)
def get_pages(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    status_filter: Optional[schemas.PublishStatusEnum] = Query(None, alias="status"),
    parent_id: Optional[int] = Query(None),
    featured: Optional[bool] = Query(None),
    search: Optional[str] = Query(None, description="Search title, excerpt and content"),
    db: Session = Depends(get_db)
):
    query = db.query(models.Page)
    if status_filter:
        query = query.filter(models.Page.status == status_filter.value)
    if parent_id is not None:
        query = query.filter(models.Page.parent_id == parent_id)
    if featured is not None:
        query = query.filter(models.Page.featured.is_(featured))
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(
            models.Page.title.ilike(pattern),
            models.Page.excerpt.ilike(pattern),
            models.Page.content.ilike(pattern),
        ))

    total = query.count()
    pages = query.order_by(models.Page.sort_order, models.Page.title).offset(skip).limit(limit).all()
    return schemas.PageList(pages=pages, total=total, skip=skip, limit=limit, has_more=skip + limit < total)


@router.get("/published", response_model=List[schemas.PageResponse])
def get_published_pages(db: Session = Depends(get_db)):
    return (
        db.query(models.Page)
        .filter(models.Page.status == "published")
        .order_by(models.Page.sort_order, models.Page.title)
        .all()
    )


@router.get("/slug/{slug}", response_model=schemas.PageResponse)
def get_page_by_slug(slug: str, db: Session = Depends(get_db)):
    page = db.query(models.Page).filter(models.Page.slug == slug).first()
    if not page:
        raise ResourceNotFoundError("Page")
    return page


@router.post("/", response_model=schemas.PageResponse, status_code=status.HTTP_201_CREATED)
def create_page(
    page: schemas.PageCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_admin)
):
    """Create a page; the slug is derived from the title unless given"""
    check_parent(db, page.parent_id)

    data = page.model_dump(exclude={"slug", "status"})
    db_page = models.Page(
        **data,
        slug=unique_slug(db, models.Page, page.slug or page.title),
        created_by=current_user.user_id,
        updated_by=current_user.user_id,
    )
    apply_status(db_page, page.status.value)
    db.add(db_page)
    db.commit()
    db.refresh(db_page)
    return db_page


@router.get("/{page_id}", response_model=schemas.PageResponse)
def get_page(page_id: int, db: Session = Depends(get_db)):
    return get_page_or_404(db, page_id)


@router.put("/{page_id}", response_model=schemas.PageResponse)
def update_page(
    page_id: int,
    page_update: schemas.PageUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_admin)
):
    page = get_page_or_404(db, page_id)

    update_data = page_update.model_dump(exclude_unset=True)
    if "parent_id" in update_data:
        check_parent(db, update_data["parent_id"], page.page_id)
    if update_data.get("slug"):
        update_data["slug"] = unique_slug(db, models.Page, update_data["slug"], exclude_id=page.page_id)
    else:
        update_data.pop("slug", None)
    new_status = update_data.pop("status", None)

    for field, value in update_data.items():
        setattr(page, field, value)
    if new_status is not None:
        apply_status(page, new_status.value)
    page.updated_by = current_user.user_id

    db.commit()
    db.refresh(page)
    return page


@router.delete("/{page_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_page(page_id: int, db: Session = Depends(get_db)):
    """Delete a page that has no child pages"""
    page = get_page_or_404(db, page_id)
    if page.children:
        raise BusinessRuleError("Cannot delete a page that has child pages")

    db.delete(page)
    db.commit()
    return None
