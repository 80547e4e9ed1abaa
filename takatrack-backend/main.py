from fastapi import FastAPI, Depends
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from dotenv import load_dotenv
import logging
import os
import models
from database import engine, SessionLocal
from routers import (
    auth, accounts, categories, transactions, budgets, goals, ai, gamification, reports, notifications,
    cms_pages, cms_posts, cms_media, cms_roles, cms_users,
)
from routers.categories import seed_default_categories
from routers.utils import require_admin
from services.access_control import seed_roles

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def init_db():
    """Create tables and seed built-in roles and system categories."""
    models.Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        seed_roles(db)
        seed_default_categories(db)
    finally:
        db.close()


init_db()

app = FastAPI(
    title="TakaTrack API",
    version="1.0.0",
    description="Personal finance tracker with gamification, CMS and AI advice",
)

# Cannot use "*" with allow_credentials=True, so origins are listed explicitly
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:5173,http://localhost:3000").split(",")
    if origin.strip()
]
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
    allow_headers=["*"],
    max_age=3600,
)


# ============ ERROR HANDLERS ============

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request, exc):
    """Group validation messages by field name."""
    errors = {}
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        field = ".".join(location) or "request"
        errors.setdefault(field, []).append(error.get("msg", "Invalid value"))
    return JSONResponse(
        status_code=422,
        content={"error": "Validation Error", "message": "The given data was invalid.", "errors": errors}
    )


@app.exception_handler(Exception)
async def general_exception_handler(request, exc):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal Server Error", "message": "Something went wrong. Please try again later."}
    )


# ============ ROUTERS ============

app.include_router(auth.router, prefix="/auth", tags=["Authentication"])
app.include_router(accounts.router, prefix="/accounts", tags=["Accounts"])
app.include_router(categories.router, prefix="/categories", tags=["Categories"])
app.include_router(transactions.router, prefix="/transactions", tags=["Transactions"])
app.include_router(budgets.router, prefix="/budgets", tags=["Budgets"])
app.include_router(goals.router, prefix="/goals", tags=["Goals"])
app.include_router(ai.router, prefix="/ai", tags=["AI"])
app.include_router(gamification.router, prefix="/gamification", tags=["Gamification"])
app.include_router(reports.router, prefix="/reports", tags=["Reports"])
app.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])

# Every CMS route requires the admin or super-admin role
cms_dependencies = [Depends(require_admin)]
app.include_router(cms_pages.router, prefix="/cms/pages", tags=["CMS Pages"], dependencies=cms_dependencies)
app.include_router(cms_posts.router, prefix="/cms/posts", tags=["CMS Posts"], dependencies=cms_dependencies)
app.include_router(cms_media.router, prefix="/cms/media", tags=["CMS Media"], dependencies=cms_dependencies)
app.include_router(cms_roles.router, prefix="/cms/roles", tags=["CMS Roles"], dependencies=cms_dependencies)
app.include_router(cms_users.router, prefix="/cms/users", tags=["CMS Users"], dependencies=cms_dependencies)

# Mount static file serving for uploaded media
UPLOAD_DIR = os.getenv("UPLOAD_DIR", "uploads")
if os.path.exists(UPLOAD_DIR):
    app.mount("/files", StaticFiles(directory=UPLOAD_DIR), name="files")


@app.get("/")
async def root():
    return {"message": "TakaTrack API", "version": "1.0.0", "docs": "/docs"}
