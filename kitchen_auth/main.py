import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from kitchen_auth.core.config import CORS_ORIGINS, DATABASE_URL, LOCKOUT_BACKEND
from kitchen_auth.core.database import Base, SessionLocal, engine
from kitchen_auth.core.errors import register_exception_handlers
from kitchen_auth.core.logging_setup import configure_logging
from kitchen_auth.core.startup_checks import (
    ensure_migrations_applied,
    validate_database_environment,
    validate_secrets_environment,
)
from kitchen_auth.middleware.request_context import RequestContextMiddleware
import kitchen_auth.models  # garante que os models são importados antes do create_all
from kitchen_auth.routers.auth import router as auth_router
from kitchen_auth.routers.join_requests import router as join_requests_router
from kitchen_auth.routers.team import router as team_router
from kitchen_auth.services.lockout import build_lockout_tracker
from kitchen_auth.services.tokens import TokenIssuer

configure_logging()

logger = logging.getLogger(__name__)
STARTUP_PREFIX = "[STARTUP]"
REPO_ROOT = Path(__file__).resolve().parents[1]
ALEMBIC_CONFIG_PATH = Path(
    os.getenv("ALEMBIC_CONFIG", str(REPO_ROOT / "alembic.ini"))
)


def _startup_tasks() -> None:
    try:
        validate_database_environment()
        validate_secrets_environment()
        if DATABASE_URL.startswith("sqlite"):
            Base.metadata.create_all(bind=engine)
        ensure_migrations_applied(engine=engine, alembic_config_path=ALEMBIC_CONFIG_PATH)
    except Exception:
        logger.exception("%s ERROR startup failed", STARTUP_PREFIX)
        raise


@asynccontextmanager
async def lifespan(_: FastAPI):
    _startup_tasks()
    yield


app = FastAPI(
    title="Kitchen Auth API",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestContextMiddleware)

register_exception_handlers(app)

# Estado compartilhado injetado nas dependências (deps.get_token_issuer / get_lockout_tracker)
app.state.token_issuer = TokenIssuer()
app.state.lockout_tracker = build_lockout_tracker(LOCKOUT_BACKEND, SessionLocal)

# Routers
app.include_router(auth_router)
app.include_router(join_requests_router)
app.include_router(team_router)

