"""Pytest fixtures and configuration."""

from __future__ import annotations

import json
import os
from collections.abc import AsyncGenerator
from dataclasses import dataclass, field
from itertools import count
from typing import TYPE_CHECKING, Any

os.environ.setdefault("APP_ENV", "development")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from src.provisioning.core.config import Settings, get_settings
from src.provisioning.db.session import Base, get_db
from src.provisioning.main import app
from src.provisioning.repositories.user_repository import UserRepository
from src.provisioning.services.bulk_provisioning_service import BulkProvisioningService
from src.provisioning.services.clients import ServiceClients, get_service_clients
from src.provisioning.services.credential_service import CredentialProvisioner
from src.provisioning.services.profile_service import ProfileProvisioner
from src.provisioning.services.resource_resolver import RemoteResourceResolver
from src.provisioning.services.row_orchestrator import RowOrchestrator

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

# Test database URL (in-memory SQLite for tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

SERVICE_NAMES = ("departments", "specializations", "auth", "patients", "doctors", "nurses")


# ---------------------------------------------------------------------------
# In-process fake of the remote services
# ---------------------------------------------------------------------------

@dataclass
class RecordedCall:
    service: str
    method: str
    path: str
    body: dict[str, Any]


@dataclass
class FakeRemoteServices:
    """Find-or-create, auth and profile services behind ``httpx.MockTransport``.

    ``fail(service, ...)`` switches a service to answer with an error status
    or to time out; ``restore(service)`` switches it back.
    """

    departments: dict[str, str] = field(default_factory=dict)
    specializations: dict[tuple[str, str], str] = field(default_factory=dict)
    credentials: dict[int, dict[str, Any]] = field(default_factory=dict)
    profiles: dict[str, list[dict[str, Any]]] = field(
        default_factory=lambda: {"patients": [], "doctors": [], "nurses": []}
    )
    calls: list[RecordedCall] = field(default_factory=list)
    failures: dict[str, int | str] = field(default_factory=dict)
    _ids: count = field(default_factory=lambda: count(1))

    def fail(self, service: str, status_code: int = 503, *, timeout: bool = False) -> None:
        self.failures[service] = "timeout" if timeout else status_code

    def restore(self, service: str) -> None:
        self.failures.pop(service, None)

    def calls_to(self, service: str) -> list[RecordedCall]:
        return [c for c in self.calls if c.service == service]

    def transport(self, service: str) -> httpx.MockTransport:
        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content) if request.content else {}
            self.calls.append(RecordedCall(service, request.method, request.url.path, body))

            failure = self.failures.get(service)
            if failure == "timeout":
                raise httpx.ReadTimeout("timed out", request=request)
            if failure is not None:
                return httpx.Response(failure, json={"message": f"{service} unavailable"})

            return getattr(self, f"_handle_{service}")(body)

        return httpx.MockTransport(handler)

    def _handle_departments(self, body: dict[str, Any]) -> httpx.Response:
        key = body["name"].strip().lower()
        if key not in self.departments:
            self.departments[key] = f"dep-{next(self._ids)}"
        return httpx.Response(200, json={"id": self.departments[key], "name": body["name"]})

    def _handle_specializations(self, body: dict[str, Any]) -> httpx.Response:
        key = (body["name"].strip().lower(), body["departmentId"])
        if key not in self.specializations:
            self.specializations[key] = f"spec-{next(self._ids)}"
        return httpx.Response(200, json={"data": {"id": self.specializations[key]}})

    def _handle_auth(self, body: dict[str, Any]) -> httpx.Response:
        if any(c["email"] == body["email"] for c in self.credentials.values()):
            return httpx.Response(409, json={"message": "Email already registered"})
        self.credentials[body["userId"]] = body
        return httpx.Response(201, json={"id": body["userId"]})

    def _profile(self, service: str, body: dict[str, Any]) -> httpx.Response:
        self.profiles[service].append(body)
        return httpx.Response(201, json={"id": len(self.profiles[service])})

    def _handle_patients(self, body: dict[str, Any]) -> httpx.Response:
        return self._profile("patients", body)

    def _handle_doctors(self, body: dict[str, Any]) -> httpx.Response:
        return self._profile("doctors", body)

    def _handle_nurses(self, body: dict[str, Any]) -> httpx.Response:
        return self._profile("nurses", body)


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

@pytest.fixture
def test_settings() -> Settings:
    """Settings pointing at the fake services, with a cheap bcrypt cost."""
    return Settings(
        APP_ENV="development",
        DATABASE_URL=TEST_DATABASE_URL,
        BCRYPT_ROUNDS=4,
        BULK_MAX_ROWS=50,
        **{f"{name.upper()}_SERVICE_URL": f"http://{name}.test" for name in SERVICE_NAMES},
    )


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture(scope="function")
async def test_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(test_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async_session_factory = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )

    async with async_session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def user_repo(db_session: AsyncSession) -> UserRepository:
    return UserRepository(db_session)


# ---------------------------------------------------------------------------
# Remote services and the provisioning saga
# ---------------------------------------------------------------------------

@pytest.fixture
def fake_services() -> FakeRemoteServices:
    return FakeRemoteServices()


@pytest_asyncio.fixture
async def service_clients(
    fake_services: FakeRemoteServices,
) -> AsyncGenerator[ServiceClients, None]:
    """Client bundle whose every service is served by ``fake_services``."""
    clients = ServiceClients(**{
        name: httpx.AsyncClient(
            base_url=f"http://{name}.test",
            transport=fake_services.transport(name),
        )
        for name in SERVICE_NAMES
    })
    yield clients
    await clients.aclose()


@pytest.fixture
def build_orchestrator(service_clients: ServiceClients, test_settings: Settings):
    """Factory for an orchestrator over a given store and settings."""

    def _build(store, settings: Settings | None = None) -> RowOrchestrator:
        settings = settings or test_settings
        return RowOrchestrator(
            store=store,
            resolver=RemoteResourceResolver(
                service_clients.departments, service_clients.specializations
            ),
            credentials=CredentialProvisioner(service_clients.auth),
            profiles=ProfileProvisioner(
                service_clients.patients,
                service_clients.doctors,
                service_clients.nurses,
                settings,
            ),
            settings=settings,
        )

    return _build


@pytest.fixture
def orchestrator(build_orchestrator, user_repo: UserRepository) -> RowOrchestrator:
    return build_orchestrator(user_repo)


@pytest.fixture
def bulk_service(orchestrator: RowOrchestrator) -> BulkProvisioningService:
    return BulkProvisioningService(orchestrator)


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture(scope="function")
async def client(
    test_engine: AsyncEngine,
    test_settings: Settings,
    service_clients: ServiceClients,
) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client with overridden dependencies."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async_session_factory = async_sessionmaker(
            test_engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autocommit=False,
            autoflush=False,
        )
        async with async_session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_service_clients] = lambda: service_clients

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
