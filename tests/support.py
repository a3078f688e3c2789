from __future__ import annotations

from typing import Optional

from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from kitchen_auth.core.database import Base, get_db
from kitchen_auth.core.errors import register_exception_handlers
import kitchen_auth.models  # noqa: F401
from kitchen_auth.routers.auth import router as auth_router
from kitchen_auth.routers.join_requests import router as join_requests_router
from kitchen_auth.routers.team import router as team_router
from kitchen_auth.services.lockout import InMemoryLockoutTracker, LockoutTracker
from kitchen_auth.services.tokens import TokenFamily, TokenIssuer
from tests.fixtures_data import TEST_SECRETS


def build_session_factory() -> sessionmaker:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def build_token_issuer(now=None) -> TokenIssuer:
    secrets = {TokenFamily(name): value for name, value in TEST_SECRETS.items()}
    if now is None:
        return TokenIssuer(secrets=secrets, algorithm="HS256")
    return TokenIssuer(secrets=secrets, algorithm="HS256", now=now)


def build_app(
    session_factory: sessionmaker,
    *,
    token_issuer: Optional[TokenIssuer] = None,
    lockout_tracker: Optional[LockoutTracker] = None,
) -> FastAPI:
    app = FastAPI()
    register_exception_handlers(app)
    app.include_router(auth_router)
    app.include_router(join_requests_router)
    app.include_router(team_router)
    app.state.token_issuer = token_issuer or build_token_issuer()
    app.state.lockout_tracker = lockout_tracker or InMemoryLockoutTracker(max_attempts=5, lockout_seconds=900)

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    return app


def build_client(session_factory: sessionmaker, **kwargs) -> TestClient:
    return TestClient(build_app(session_factory, **kwargs))


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}
