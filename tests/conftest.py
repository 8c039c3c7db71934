"""
Digital Ledger Backend: Test Configuration (conftest.py)
=========================================================

What:  Shared pytest fixtures for the entire test suite.
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixture Hierarchy (all function-scoped):
    ├── clock:              FakeClock driving the rate-limit store
    ├── rate_limit_store:   InMemoryRateLimitStore on the fake clock
    ├── dev_settings / prod_settings: explicit Settings, no .env file
    ├── dev_client / prod_client: HTTPX AsyncClient over the stub router
    ├── db_engine / db_session: in-memory SQLite (aiosqlite) with all tables
    └── auth_client:        the real health + auth routers on the test database

The stub router exercises the pipeline without a database: it echoes
sanitized input, fails on demand and fakes a login outcome.
"""

import os

# Override settings for testing BEFORE any ledger imports
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["PASSWORD_HASH_ROUNDS"] = "4"  # fast bcrypt
os.environ.pop("NODE_ENV", None)

from typing import Any, AsyncGenerator, Dict  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from fastapi import APIRouter, Body, Form, Request  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from ledger.config import Settings  # noqa: E402
from ledger.database import Base, get_db_session  # noqa: E402
from ledger.exceptions import AuthenticationError  # noqa: E402
from ledger.main import create_app  # noqa: E402
from ledger.models import User  # noqa: E402,F401
from ledger.security.rate_limit import InMemoryRateLimitStore  # noqa: E402
from ledger.security.sanitizer import SanitizedRoute  # noqa: E402

PROD_ORIGIN = "https://ledger.example"
PROD_SECRET = "s" * 48
STUB_PASSWORD = "correct-horse"


class FakeClock:
    """Manually advanced wall clock for the rate-limit store."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ══════════════════════════════════════════════════════════════════════════
# Stub Router
# ══════════════════════════════════════════════════════════════════════════

stub_router = APIRouter(route_class=SanitizedRoute)


@stub_router.get("/api/ping")
async def ping() -> Dict[str, Any]:
    return {"ok": True}


@stub_router.post("/api/echo")
async def echo(payload: Dict[str, Any] = Body(...)) -> Dict[str, Any]:
    return payload


@stub_router.get("/api/query")
async def query(q: str = "") -> Dict[str, Any]:
    return {"q": q}


@stub_router.get("/api/items/{name}")
async def item(name: str) -> Dict[str, Any]:
    return {"name": name}


@stub_router.post("/api/form")
async def form(name: str = Form(...)) -> Dict[str, Any]:
    return {"name": name}


@stub_router.post("/api/raw")
async def raw(request: Request) -> Dict[str, Any]:
    return {"body": (await request.body()).decode("utf-8")}


@stub_router.get("/api/boom")
async def boom() -> Dict[str, Any]:
    raise RuntimeError("database exploded")


@stub_router.post("/api/auth/login")
async def stub_login(payload: Dict[str, Any] = Body(...)) -> Dict[str, Any]:
    if payload.get("password") != STUB_PASSWORD:
        raise AuthenticationError()
    return {"ok": True}


@stub_router.post("/api/auth/register")
async def stub_register() -> Dict[str, Any]:
    return {"ok": True}


@stub_router.post("/api/auth/change-password")
async def stub_change_password() -> Dict[str, Any]:
    return {"message": "Password updated successfully"}


@stub_router.get("/api/health")
@stub_router.get("/health")
async def stub_health() -> Dict[str, Any]:
    return {"status": "healthy"}


# ══════════════════════════════════════════════════════════════════════════
# Settings & Rate Limiting
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def rate_limit_store(clock) -> InMemoryRateLimitStore:
    return InMemoryRateLimitStore(clock=clock)


@pytest.fixture
def dev_settings() -> Settings:
    return Settings(_env_file=None, node_env="development", log_level="WARNING")


@pytest.fixture
def prod_settings() -> Settings:
    return Settings(
        _env_file=None,
        node_env="production",
        allowed_origins=PROD_ORIGIN,
        session_secret=PROD_SECRET,
        log_level="WARNING",
    )


def make_client(app, **kwargs) -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test", **kwargs)


@pytest_asyncio.fixture
async def dev_client(dev_settings, rate_limit_store) -> AsyncGenerator[AsyncClient, None]:
    app = create_app(dev_settings, rate_limit_store=rate_limit_store, routers=[stub_router])
    async with make_client(app) as client:
        yield client


@pytest_asyncio.fixture
async def prod_client(prod_settings, rate_limit_store) -> AsyncGenerator[AsyncClient, None]:
    """Production app behind a TLS-terminating proxy (X-Forwarded-Proto: https)."""
    app = create_app(prod_settings, rate_limit_store=rate_limit_store, routers=[stub_router])
    async with make_client(app, headers={"X-Forwarded-Proto": "https"}) as client:
        yield client


# ══════════════════════════════════════════════════════════════════════════
# Database
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def db_engine():
    # StaticPool: every session shares the one in-memory database
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def auth_client(dev_settings, rate_limit_store, session_factory) -> AsyncGenerator[AsyncClient, None]:
    app = create_app(dev_settings, rate_limit_store=rate_limit_store)

    async def override_get_db_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = override_get_db_session
    async with make_client(app) as client:
        yield client


@pytest.fixture
def stub_app(rate_limit_store):
    """Build a stub app for custom settings, sharing the test's rate-limit store."""

    def build(settings: Settings):
        return create_app(settings, rate_limit_store=rate_limit_store, routers=[stub_router])

    return build
