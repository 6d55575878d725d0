"""Shared test fixtures."""

from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient

from itmanager.config.settings import Settings
from itmanager.remote.client import RemoteDatabase
from itmanager.storage.local_store import InMemoryLocalStorage
from itmanager.storage.session_store import SessionStore
from itmanager.web.app import create_app
from itmanager.web.dependencies import get_registry
from itmanager.web.workspaces import WorkspaceRegistry
from itmanager.workspace import Workspace
from tests.fakes import FakeSupabase

ALICE = ("u-alice", "alice@example.com", "alice-pass")


@pytest.fixture()
def fake() -> FakeSupabase:
    """Remote database seeded with two tenants and a handful of users.

    - alice: tenants T1 (Acme, primary) and T2 (Beta).
    - bob: system access but no tenant.
    - carol: no access to this system.
    - dave: inactive account.
    """
    db = FakeSupabase()
    db.add_client("T1", "Acme Corp")
    db.add_client("T2", "Beta Ltd")
    db.add_user(*ALICE, name="Alice", profile="Admin", clients=[("T1", True), ("T2", False)])
    db.add_user("u-bob", "bob@example.com", "bob-pass", clients=[])
    db.add_user("u-carol", "carol@example.com", "carol-pass", system_access=False, clients=[("T1", True)])
    db.add_user("u-dave", "dave@example.com", "dave-pass", is_active=False, clients=[("T1", True)])
    return db


@pytest.fixture()
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        supabase_url="http://fake.local",
        supabase_key="anon-key",
        secret_key="test-secret",
        storage_dir=str(tmp_path / "sessions"),
        no_tenant_signout_delay=0.01,
        debug=True,
    )


@pytest.fixture()
async def remote(fake: FakeSupabase):
    client = RemoteDatabase("http://fake.local", "anon-key", transport=fake.transport())
    yield client
    await client.aclose()


@pytest.fixture()
def storage() -> InMemoryLocalStorage:
    return InMemoryLocalStorage()


@pytest.fixture()
def store(storage: InMemoryLocalStorage) -> SessionStore:
    return SessionStore(storage)


@pytest.fixture()
async def workspace(remote: RemoteDatabase, storage: InMemoryLocalStorage, settings: Settings):
    ws = Workspace(remote, storage, settings)
    yield ws
    await ws.close()


@pytest.fixture()
async def ready_workspace(workspace: Workspace) -> Workspace:
    """A workspace signed in as alice with tenant T1 pinned."""
    await workspace.sign_in(ALICE[1], ALICE[2])
    return workspace


@pytest.fixture()
async def caching_workspace(remote: RemoteDatabase, storage: InMemoryLocalStorage, settings: Settings):
    """Signed in as alice with T1 pinned, keeping list reads for a minute."""
    ws = Workspace(remote, storage, settings.model_copy(update={"tenant_cache_ttl": 60.0}))
    await ws.sign_in(ALICE[1], ALICE[2])
    yield ws
    await ws.close()


@pytest.fixture()
def storages() -> dict[str, InMemoryLocalStorage]:
    return {}


@pytest.fixture()
async def registry(settings: Settings, fake: FakeSupabase, storages: dict[str, InMemoryLocalStorage]):
    reg = WorkspaceRegistry(
        settings,
        remote_factory=lambda: RemoteDatabase(
            settings.supabase_url, settings.supabase_key, transport=fake.transport()
        ),
        storage_factory=lambda key: storages.setdefault(key, InMemoryLocalStorage()),
    )
    yield reg
    await reg.close_all()


@pytest.fixture()
def app(registry: WorkspaceRegistry):
    """Create a fresh app instance wired to the fake remote."""
    application = create_app()
    application.dependency_overrides[get_registry] = lambda: registry
    return application


@pytest.fixture()
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as http:
        yield http


@pytest.fixture()
async def authed_client(client: AsyncClient):
    """An AsyncClient with a valid session cookie for alice."""
    resp = await client.post(
        "/api/auth/login", json={"email": ALICE[1], "password": ALICE[2]}
    )
    assert resp.status_code == 200, resp.text
    return client
