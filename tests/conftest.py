"""Pytest fixtures for API tests"""

import json
from functools import partial
from collections.abc import AsyncGenerator, Callable
from pathlib import Path
from typing import Any

import pytest
from fastapi import APIRouter, FastAPI
from httpx import ASGITransport, AsyncClient
from starlette.authentication import AuthCredentials, AuthenticationBackend, SimpleUser
from starlette.middleware.authentication import AuthenticationMiddleware

from studymate.api.v1 import controllers as default_controllers
from studymate.db import DatabaseContextFactory
from studymate.main import create_app
from studymate.middleware.authorization import authorize

# 测试数据库 URL
TEST_DATABASE_URL = "sqlite+aiosqlite://"

secure_router = APIRouter(prefix="/secure", tags=["secure"])


@secure_router.get("")
@authorize()
async def secure_endpoint():
    return {"ok": True}


@secure_router.get("/admin")
@authorize("admin")
async def admin_endpoint():
    return {"ok": True}


class HeaderAuthBackend(AuthenticationBackend):
    """Authenticates requests carrying an X-Test-User header"""

    async def authenticate(self, conn):
        name = conn.headers.get("X-Test-User")
        if not name:
            return None
        return AuthCredentials(["authenticated"]), SimpleUser(name)


def write_document(root: Path, data: dict[str, Any], name: str = "appsettings.json") -> Path:
    """Write a settings document under <root>/appsettings"""
    directory = root / "appsettings"
    directory.mkdir(exist_ok=True)
    path = directory / name
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


@pytest.fixture
def write_settings(tmp_path: Path) -> Callable[..., Path]:
    """Write settings documents into tmp_path"""
    return partial(write_document, tmp_path)


@pytest.fixture
def content_root(tmp_path: Path) -> Path:
    write_document(tmp_path, {"ConnectionStrings": {"DefaultConnection": TEST_DATABASE_URL}})
    return tmp_path


@pytest.fixture
def make_app(content_root: Path) -> Callable[..., FastAPI]:
    """Build a fully assembled app for the given environment"""

    def factory(environment: str = "Development", **environ: str) -> FastAPI:
        return create_app(
            content_root,
            environ={"STUDYMATE_ENVIRONMENT": environment, **environ},
            controllers=[*default_controllers, secure_router],
            policies={"admin": lambda user: user.display_name == "admin"},
        )

    return factory


@pytest.fixture
async def client(make_app) -> AsyncGenerator[AsyncClient, None]:
    """HTTPS client against a Development app"""
    app = make_app()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="https://test") as ac:
        yield ac


@pytest.fixture
async def authenticated_client(make_app) -> AsyncGenerator[AsyncClient, None]:
    """HTTPS client whose requests may authenticate through X-Test-User"""
    app = make_app()
    app.add_middleware(AuthenticationMiddleware, backend=HeaderAuthBackend())
    async with AsyncClient(transport=ASGITransport(app=app), base_url="https://test") as ac:
        yield ac
    await app.state.services.get(DatabaseContextFactory).dispose()
