import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import get_settings
from database import get_db
from errors import InvalidOperation, UpstreamServiceError
from permissions import has_capability
from repositories import RoleRepository, UserRepository, WidgetRepository
from routers import API_PREFIX, auth, dashboard, goals, news, roles, time_tracker, translation, users, weather
from schemas import User
from security import get_password_hash

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def seed_defaults() -> None:
    """Create the widget and role catalogues, and an Admin when no users exist."""
    current = get_settings()
    db = get_db()
    WidgetRepository(db)
    role_repo = RoleRepository(db)
    user_repo = UserRepository(db, role_repo)
    if user_repo.count() == 0 and current.admin_email and current.admin_password:
        admin_role = next((r for r in role_repo.get_all() if has_capability(r, "can_access_settings")), None)
        user_repo.add(User(
            name="Administrator",
            email=current.admin_email,
            password_hash=get_password_hash(current.admin_password),
            role=admin_role.name if admin_role else "Admin",
            role_id=admin_role.id if admin_role else None,
            is_email_verified=True,
        ))
        logger.info(f"Seeded administrator account {current.admin_email}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    seed_defaults()
    logger.info(f"Dashboard API ready, data directory {get_settings().data_dir}")
    yield


# App setup
app = FastAPI(title="Workday Dashboard API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

for module in (auth, users, roles, dashboard, goals, time_tracker, weather, news, translation):
    app.include_router(module.router, prefix=API_PREFIX)


@app.exception_handler(InvalidOperation)
async def invalid_operation_handler(request: Request, exc: InvalidOperation):
    return JSONResponse(status_code=400, content={"detail": exc.message, "field": exc.field})


@app.exception_handler(UpstreamServiceError)
async def upstream_error_handler(request: Request, exc: UpstreamServiceError):
    logger.error(f"Upstream service failure on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=503,
        content={"detail": f"The {exc.service} service is temporarily unavailable. Please try again later."},
    )


@app.get("/")
def read_root():
    return {"message": "Workday Dashboard backend running"}


@app.get("/api/version")
def version():
    return {"version": os.getenv("APP_VERSION", "0.1.0")}


# Health/test
@app.get("/test")
def test_storage():
    response = {
        "backend": "✅ Running",
        "storage": "❌ Not Available",
        "data_dir": None,
        "collections": [],
    }
    db = get_db()
    response["data_dir"] = str(db.data_dir)
    try:
        response["collections"] = db.list_collection_names()[:10]
        response["storage"] = "✅ Connected & Working"
    except OSError as e:
        response["storage"] = f"⚠️  Data directory error: {str(e)[:50]}"
    return response


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
