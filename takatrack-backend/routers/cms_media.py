from fastapi import APIRouter, Depends, HTTPException, status, Query, UploadFile, File, Form
from sqlalchemy import distinct, or_
from sqlalchemy.orm import Session
from typing import List, Optional
import logging
import models
import schemas
from database import get_db
from routers.utils import require_admin
from routers.exceptions import ResourceNotFoundError
from services.media_storage import save_upload, delete_stored_file

logger = logging.getLogger(__name__)
router = APIRouter()

MAX_FILES_PER_UPLOAD = 10


def get_media_or_404(db: Session, media_id: int) -> models.Media:
    media = db.query(models.Media).filter(models.Media.media_id == media_id).first()
    if not media:
        raise ResourceNotFoundError("Media")
    return media


async def store_media(
    db: Session,
    file: UploadFile,
    user: models.User,
    folder: Optional[str],
    alt_text: Optional[str] = None,
    title: Optional[str] = None,
) -> models.Media:
    stored = await save_upload(file, folder)
    media = models.Media(
        filename=stored.filename,
        original_filename=stored.original_filename,
        mime_type=stored.mime_type,
        path=stored.path,
        url=stored.url,
        size=stored.size,
        width=stored.width,
        height=stored.height,
        alt_text=alt_text,
        title=title or stored.original_filename,
        folder=folder,
        is_public=True,
        uploaded_by=user.user_id,
    )
    db.add(media)
    return media


@router.get("/", response_model=schemas.MediaList)
def get_media(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    folder: Optional[str] = Query(None),
    mime_type: Optional[str] = Query(None, description="Exact type or prefix such as image/"),
    search: Optional[str] = Query(None),
    db: Session = Depends(get_db)
):
    query = db.query(models.Media)
    if folder:
        query = query.filter(models.Media.folder == folder)
    if mime_type:
        query = query.filter(models.Media.mime_type.startswith(mime_type))
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(
            models.Media.original_filename.ilike(pattern),
            models.Media.title.ilike(pattern),
            models.Media.alt_text.ilike(pattern),
        ))

    total = query.count()
    media = query.order_by(models.Media.created_at.desc(), models.Media.media_id.desc()).offset(skip).limit(limit).all()
    return schemas.MediaList(media=media, total=total, skip=skip, limit=limit, has_more=skip + limit < total)


@router.post("/upload", response_model=schemas.MediaResponse, status_code=status.HTTP_201_CREATED)
async def upload_media(
    file: UploadFile = File(...),
    folder: Optional[str] = Form(None),
    alt_text: Optional[str] = Form(None),
    title: Optional[str] = Form(None),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_admin)
):
    """Upload a single file (max 10 MB)"""
    media = await store_media(db, file, current_user, folder, alt_text, title)
    db.commit()
    db.refresh(media)
    return media


@router.post("/upload-multiple", response_model=List[schemas.MediaResponse], status_code=status.HTTP_201_CREATED)
async def upload_multiple_media(
    files: List[UploadFile] = File(...),
    folder: Optional[str] = Form(None),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_admin)
):
    """Upload up to 10 files at once"""
    if len(files) > MAX_FILES_PER_UPLOAD:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"At most {MAX_FILES_PER_UPLOAD} files can be uploaded at once"
        )

    created = []
    for file in files:
        created.append(await store_media(db, file, current_user, folder))
    db.commit()
    for media in created:
        db.refresh(media)

    logger.info(f"User {current_user.user_id} uploaded {len(created)} media files")
    return created


@router.get("/folders", response_model=List[str])
def get_folders(db: Session = Depends(get_db)):
    rows = db.query(distinct(models.Media.folder)).filter(models.Media.folder.isnot(None)).all()
    return sorted(folder for (folder,) in rows)


@router.get("/types", response_model=List[str])
def get_types(db: Session = Depends(get_db)):
    rows = db.query(distinct(models.Media.mime_type)).all()
    return sorted(mime_type for (mime_type,) in rows)


@router.get("/{media_id}", response_model=schemas.MediaResponse)
def get_media_item(media_id: int, db: Session = Depends(get_db)):
    return get_media_or_404(db, media_id)


@router.put("/{media_id}", response_model=schemas.MediaResponse)
def update_media(
    media_id: int,
    media_update: schemas.MediaUpdate,
    db: Session = Depends(get_db)
):
    """Update alt text, title, description, folder or visibility"""
    media = get_media_or_404(db, media_id)
    for field, value in media_update.model_dump(exclude_unset=True).items():
        setattr(media, field, value)
    db.commit()
    db.refresh(media)
    return media


@router.delete("/{media_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_media(media_id: int, db: Session = Depends(get_db)):
    """Delete the stored file and its row"""
    media = get_media_or_404(db, media_id)
    delete_stored_file(media.path)
    db.delete(media)
    db.commit()
    return None
