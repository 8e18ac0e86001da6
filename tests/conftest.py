"""Pytest configuration and fixtures."""
import os

# Configure the app before anything imports app.config
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("PLATFORM_HOSTS", "localhost,127.0.0.1,platform.test")
os.environ.setdefault("PLATFORM_INGRESS_IP", "216.24.57.1")

import asyncio
import time
import uuid
from typing import Optional

import pytest
from httpx import AsyncClient, ASGITransport

from app.db.base_class import Base
from app.db.session import SessionLocal, engine
from app.models.tenant import DomainStatus, Tenant
from app.services.certificate_provisioner import ProvisionResult
from app.services.domain_cache import domain_cache
from app.services.domain_provisioning import DomainProvisioningOrchestrator

PLATFORM_HOST = "platform.test"
INGRESS_IP = "216.24.57.1"


# --- Fakes for external collaborators ---

class FakeDNSVerifier:
    def __init__(self, pointed: bool = False):
        self.pointed = pointed
        self.calls = 0

    async def points_to_platform(self, domain: str) -> bool:
        self.calls += 1
        return self.pointed


class FakeProber:
    def __init__(self, accessible: bool = False):
        self.accessible = accessible
        self.calls = 0

    async def is_accessible(self, domain: str) -> bool:
        self.calls += 1
        return self.accessible


class FakeProvisioner:
    def __init__(self, success: bool = True, known: Optional[set] = None, lookup_error: Optional[str] = None):
        self.success = success
        self.known: set = set(known or ())
        self.lookup_error = lookup_error
        self.registered: list[str] = []
        self.looked_up: list[str] = []
        self.removed: list[str] = []

    async def register(self, domain: str) -> ProvisionResult:
        self.registered.append(domain)
        if self.success:
            self.known.add(domain)
            return ProvisionResult(success=True, data={"name": domain})
        return ProvisionResult(success=False, error="provider unavailable")

    async def get_registration(self, domain: str) -> ProvisionResult:
        self.looked_up.append(domain)
        if self.lookup_error:
            return ProvisionResult(success=False, error=self.lookup_error)
        if domain in self.known:
            return ProvisionResult(success=True, data={"name": domain})
        return ProvisionResult(success=False, error="Domain not found on hosting provider")

    async def remove(self, domain: str) -> ProvisionResult:
        self.removed.append(domain)
        return ProvisionResult(success=True)


# --- Per-test fixtures ---

@pytest.fixture(autouse=True)
def database():
    """Fresh tables and an empty resolution cache for every test."""
    import app.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    domain_cache.clear()
    yield
    domain_cache.clear()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def dns_verifier():
    return FakeDNSVerifier()


@pytest.fixture
def prober():
    return FakeProber()


@pytest.fixture
def provisioner():
    return FakeProvisioner()


@pytest.fixture
def orchestrator(dns_verifier, prober, provisioner):
    return DomainProvisioningOrchestrator(
        dns_verifier=dns_verifier,
        prober=prober,
        provisioner=provisioner,
        session_factory=SessionLocal,
        cache=domain_cache,
    )


@pytest.fixture
async def client(orchestrator):
    """Async HTTP client against the FastAPI app with fake external checks."""
    from app.main import app as fastapi_app
    from app.api.deps import get_orchestrator

    fastapi_app.dependency_overrides[get_orchestrator] = lambda: orchestrator

    transport = ASGITransport(app=fastapi_app)
    async with AsyncClient(transport=transport, base_url=f"http://{PLATFORM_HOST}") as ac:
        yield ac

    await orchestrator.wait_for_background()
    fastapi_app.dependency_overrides.clear()


# --- Helpers ---

def create_tenant(
    db,
    slug: str,
    domain: Optional[str] = None,
    status: DomainStatus = DomainStatus.PENDING,
    certificate_issued_at=None,
) -> Tenant:
    tenant = Tenant(
        id=uuid.uuid4(),
        slug=slug,
        name=slug.replace("-", " ").title(),
        domain=domain,
        domain_status=status,
        certificate_issued_at=certificate_issued_at,
    )
    db.add(tenant)
    db.commit()
    db.refresh(tenant)
    return tenant


async def run_with_heartbeat(awaitable, interval: float = 0.05):
    """Await ``awaitable`` while a ticker measures how long the event loop goes unserviced."""
    gaps: list[float] = []
    stop = asyncio.Event()

    async def tick():
        last = time.perf_counter()
        while not stop.is_set():
            await asyncio.sleep(interval)
            now = time.perf_counter()
            gaps.append(now - last)
            last = now

    ticker = asyncio.create_task(tick())
    try:
        result = await awaitable
    finally:
        stop.set()
        await ticker
    return result, gaps


def slow_directory_read(monkeypatch, delay: float = 0.3):
    """Make every tenant lookup block its thread for ``delay`` seconds."""
    from app.crud import crud_tenant

    original = crud_tenant.get

    def slow_get(db, tenant_id):
        time.sleep(delay)
        return original(db, tenant_id)

    monkeypatch.setattr(crud_tenant, "get", slow_get)


def reload_tenant(db, tenant_id) -> Tenant:
    db.expire_all()
    return db.query(Tenant).filter(Tenant.id == tenant_id).first()
