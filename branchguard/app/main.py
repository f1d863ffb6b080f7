from contextlib import asynccontextmanager
import os

from dotenv import load_dotenv

# .env must be loaded before modules that read configuration at import time
load_dotenv()

import structlog
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from .logging_config import configure_logging
from .routers.auth import router as auth_router
from .routers.branch_protection import router as branch_protection_router
from .routers.health import router as health_router
from .routers.metrics import router as metrics_router
from .routers.pulls import router as pulls_router
from .routers.repos import router as repos_router
from branchguard import __version__ as BG_VERSION
from branchguard.utils.errors import (
    BranchGuardError,
    branchguard_exception_handler,
    general_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from . import storage as storage_manager
from . import db

configure_logging()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    sqlite_path = os.getenv("BG_SQLITE_PATH", db.DB_PATH)
    sqlite_dir = os.path.dirname(sqlite_path)
    if sqlite_dir and not os.path.exists(sqlite_dir):
        os.makedirs(sqlite_dir, exist_ok=True)

    storage_manager.get_storage()
    db.init_db()
    logger.info("BranchGuard starting up", version=BG_VERSION, sqlite_path=db.DB_PATH)
    yield
    logger.info("BranchGuard shutting down")

app = FastAPI(
    title="BranchGuard",
    description="Branch protection rules and push authorization",
    version=BG_VERSION,
    lifespan=lifespan,
)

allowed_origins = os.getenv("BG_ALLOWED_ORIGINS", "*")
if allowed_origins == "*":
    origins = ["*"]
else:
    origins = [origin.strip() for origin in allowed_origins.split(",")]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

app.add_exception_handler(BranchGuardError, branchguard_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)


@app.get("/")
async def root():
    return {
        "name": "BranchGuard API",
        "version": BG_VERSION,
        "description": "Branch protection rules and push authorization",
        "endpoints": {
            "health": "/readyz",
            "register": "POST /v1/auth/register",
            "rules": "/v1/repos/{repo_id}/branch-protection",
            "can_push": "POST /v1/repos/{repo_id}/branch-protection/can-push",
        },
    }

app.include_router(health_router)
app.include_router(metrics_router)
app.include_router(auth_router)
app.include_router(repos_router)
app.include_router(branch_protection_router)
app.include_router(pulls_router)
