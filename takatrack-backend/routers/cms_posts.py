from fastapi import APIRouter, Depends, status, Query
from sqlalchemy import or_
from sqlalchemy.orm import Session
from typing import List, Optional
import models
import schemas
from database import get_db
from routers.utils import require_admin, unique_slug
from routers.exceptions import ResourceNotFoundError

router = APIRouter()


def get_post_or_404(db: Session, post_id: int) -> models.Post:
    post = db.query(models.Post).filter(models.Post.post_id == post_id).first()
    if not post:
        raise ResourceNotFoundError("Post")
    return post


def apply_status(post: models.Post, new_status: str) -> None:
    post.status = new_status
    if new_status == "published" and post.published_at is None:
        post.published_at = models.utcnow()


def collect_terms(posts: List[models.Post], attribute: str) -> List[str]:
    """Sorted unique values of a JSON list column across `posts`."""
    terms = set()
    for post in posts:
        terms.update(getattr(post, attribute) or [])
    return sorted(terms)


@router.get("/", response_model=schemas.PostList)
def get_posts(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    status_filter: Optional[schemas.PublishStatusEnum] = Query(None, alias="status"),
    type: Optional[str] = Query(None),
    tag: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    featured: Optional[bool] = Query(None),
    search: Optional[str] = Query(None, description="Search title, excerpt and content"),
    db: Session = Depends(get_db)
):
    """
    List posts with filters.

    Tag and category filters run in Python since they live in JSON lists.
    """
    query = db.query(models.Post)
    if status_filter:
        query = query.filter(models.Post.status == status_filter.value)
    if type:
        query = query.filter(models.Post.type == type)
    if featured is not None:
        query = query.filter(models.Post.featured.is_(featured))
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(
            models.Post.title.ilike(pattern),
            models.Post.excerpt.ilike(pattern),
            models.Post.content.ilike(pattern),
        ))

    posts = query.order_by(models.Post.created_at.desc(), models.Post.post_id.desc()).all()
    if tag:
        posts = [post for post in posts if tag in (post.tags or [])]
    if category:
        posts = [post for post in posts if category in (post.categories or [])]

    total = len(posts)
    return schemas.PostList(
        posts=posts[skip:skip + limit], total=total, skip=skip, limit=limit, has_more=skip + limit < total
    )


@router.get("/published", response_model=List[schemas.PostResponse])
def get_published_posts(
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db)
):
    return (
        db.query(models.Post)
        .filter(models.Post.status == "published")
        .order_by(models.Post.published_at.desc(), models.Post.post_id.desc())
        .limit(limit)
        .all()
    )


@router.get("/tags", response_model=List[str])
def get_tags(db: Session = Depends(get_db)):
    return collect_terms(db.query(models.Post).all(), "tags")


@router.get("/categories", response_model=List[str])
def get_post_categories(db: Session = Depends(get_db)):
    return collect_terms(db.query(models.Post).all(), "categories")


@router.get("/slug/{slug}", response_model=schemas.PostResponse)
def get_post_by_slug(slug: str, db: Session = Depends(get_db)):
    post = db.query(models.Post).filter(models.Post.slug == slug).first()
    if not post:
        raise ResourceNotFoundError("Post")
    return post


@router.post("/", response_model=schemas.PostResponse, status_code=status.HTTP_201_CREATED)
def create_post(
    post: schemas.PostCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_admin)
):
    data = post.model_dump(exclude={"slug", "status"})
    db_post = models.Post(
        **data,
        slug=unique_slug(db, models.Post, post.slug or post.title),
        author_id=current_user.user_id,
    )
    apply_status(db_post, post.status.value)
    db.add(db_post)
    db.commit()
    db.refresh(db_post)
    return db_post


@router.get("/{post_id}", response_model=schemas.PostResponse)
def get_post(post_id: int, db: Session = Depends(get_db)):
    return get_post_or_404(db, post_id)


@router.put("/{post_id}", response_model=schemas.PostResponse)
def update_post(
    post_id: int,
    post_update: schemas.PostUpdate,
    db: Session = Depends(get_db)
):
    post = get_post_or_404(db, post_id)

    update_data = post_update.model_dump(exclude_unset=True)
    if update_data.get("slug"):
        update_data["slug"] = unique_slug(db, models.Post, update_data["slug"], exclude_id=post.post_id)
    else:
        update_data.pop("slug", None)
    new_status = update_data.pop("status", None)
    for field in ("tags", "categories"):
        if field in update_data and update_data[field] is None:
            update_data[field] = []

    for field, value in update_data.items():
        setattr(post, field, value)
    if new_status is not None:
        apply_status(post, new_status.value)

    db.commit()
    db.refresh(post)
    return post


@router.delete("/{post_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_post(post_id: int, db: Session = Depends(get_db)):
    post = get_post_or_404(db, post_id)
    db.delete(post)
    db.commit()
    return None
