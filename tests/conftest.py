import inspect
import os
import uuid
from unittest.mock import MagicMock

# Settings are read at import time by app.main and the routers.
os.environ["SUPABASE_URL"] = "https://test-project.supabase.co"
os.environ["SUPABASE_KEY"] = "test-anon-key"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SUPABASE_JWT_SECRET"] = "test-jwt-secret"
os.environ["SUPABASE_SERVICE_ROLE_KEY"] = "test-service-role-key"

import anyio
import pytest
from fastapi import Depends
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel, create_engine

from app.core.auth import get_current_profile
from app.core.browser_session import get_provider_registry
from app.core.storage_utils import SupabaseStorage
from app.database import get_session
from app.main import app
from app.models.profile import Profile
from app.routers import courses as courses_router
from app.routers import upload as upload_router
from app.routers import users as users_router
from app.session.provider import AuthProvider
from app.session.registry import ProviderRegistry
from app.session.resolver import ProfileResolver

from fakes import FakeIdentityService, make_profile

SUPABASE_URL = os.environ["SUPABASE_URL"]
SITE_URL = "http://testserver"


def pytest_configure(config: pytest.Config) -> None:
    # Tests use @pytest.mark.asyncio, but we intentionally rely on anyio.
    config.addinivalue_line(
        "markers",
        "asyncio: run async tests using anyio (project-local hook)",
    )


@pytest.hookimpl(tryfirst=True)
def pytest_pyfunc_call(pyfuncitem: pytest.Function) -> bool | None:
    """Run @pytest.mark.asyncio tests with anyio.

    This avoids adding an external pytest-asyncio dependency.
    """
    if pyfuncitem.get_closest_marker("asyncio") is None:
        return None

    test_func = pyfuncitem.obj
    if not inspect.iscoroutinefunction(test_func):
        return None

    funcargs = {
        name: pyfuncitem.funcargs[name] for name in pyfuncitem._fixtureinfo.argnames
    }

    async def _run_async_test() -> None:
        await test_func(**funcargs)

    anyio.run(_run_async_test)
    return True


@pytest.fixture(name="engine")
def engine_fixture(tmp_path):
    """File-backed SQLite: worker threads get their own connections."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}",
        connect_args={"check_same_thread": False},
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture(name="session")
def session_fixture(engine):
    with Session(engine) as session:
        yield session


def _persist(session: Session, profile: Profile) -> Profile:
    session.add(profile)
    session.commit()
    session.refresh(profile)
    return profile


@pytest.fixture(name="student")
def student_fixture(session: Session):
    """Approved Estudiante."""
    return _persist(
        session,
        make_profile(str(uuid.uuid4()), nombre="Sofia", email="sofia@example.com", habilitado=True),
    )


@pytest.fixture(name="pending_student")
def pending_student_fixture(session: Session):
    """Estudiante waiting for approval."""
    return _persist(
        session,
        make_profile(str(uuid.uuid4()), nombre="Pablo", email="pablo@example.com", habilitado=False),
    )


@pytest.fixture(name="barbero")
def barbero_fixture(session: Session):
    """Barbero not yet approved (instructors get in anyway)."""
    return _persist(
        session,
        make_profile(str(uuid.uuid4()), nombre="Bruno", email="bruno@example.com", rol="barbero", habilitado=False),
    )


@pytest.fixture(name="admin")
def admin_fixture(session: Session):
    return _persist(
        session,
        make_profile(str(uuid.uuid4()), nombre="Alicia", email="alicia@example.com", rol="Administrador", habilitado=True),
    )


@pytest.fixture(name="identity")
def identity_fixture():
    return FakeIdentityService()


@pytest.fixture(name="resolver")
def resolver_fixture(engine):
    return ProfileResolver(session_factory=lambda: Session(engine))


@pytest.fixture(name="registry")
def registry_fixture(identity: FakeIdentityService, resolver: ProfileResolver):
    """Registry whose providers talk to the fake identity service."""

    async def factory() -> AuthProvider:
        return AuthProvider(identity, resolver, site_url=SITE_URL)

    registry = ProviderRegistry(factory, idle_seconds=3600)
    yield registry
    anyio.run(registry.close)


@pytest.fixture(name="storage_client")
def storage_client_fixture():
    """Mock Supabase client; every bucket shares `storage.from_.return_value`."""
    return MagicMock()


@pytest.fixture(name="storage")
def storage_fixture(storage_client: MagicMock):
    return SupabaseStorage(client_factory=lambda: storage_client, base_url=SUPABASE_URL)


@pytest.fixture(name="bucket")
def bucket_fixture(storage_client: MagicMock):
    return storage_client.storage.from_.return_value


@pytest.fixture(autouse=True)
def _route_storage(monkeypatch, storage: SupabaseStorage):
    """Point the routers' services at the mock storage client."""
    monkeypatch.setattr(courses_router.service, "storage", storage)
    monkeypatch.setattr(users_router.service, "storage", storage)
    monkeypatch.setattr(upload_router.service, "storage", storage)


@pytest.fixture(name="browser")
def browser_fixture(engine, registry: ProviderRegistry):
    """
    Test client acting as a browser: identity comes from the session
    cookie and the fake identity service.
    """

    def get_session_override():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = get_session_override
    app.dependency_overrides[get_provider_registry] = lambda: registry

    client = TestClient(app)
    yield client

    app.dependency_overrides.clear()


@pytest.fixture(name="api_as")
def api_as_fixture(engine, registry: ProviderRegistry):
    """
    Factory for API clients authenticated as a given profile.

    `api_as(None)` gives an anonymous client.
    """

    def get_session_override():
        with Session(engine) as session:
            yield session

    def make(profile: Profile | None) -> TestClient:
        profile_id = profile.id if profile is not None else None

        # Re-read in the request's session so services can write it back.
        def get_current_profile_override(session: Session = Depends(get_session)):
            if profile_id is None:
                return None
            return session.get(Profile, profile_id)

        app.dependency_overrides[get_session] = get_session_override
        app.dependency_overrides[get_provider_registry] = lambda: registry
        app.dependency_overrides[get_current_profile] = get_current_profile_override
        return TestClient(app)

    yield make

    app.dependency_overrides.clear()
