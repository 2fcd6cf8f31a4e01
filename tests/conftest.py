import os

# Cheap bcrypt and no real database for the test run
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["ADMIN_USERNAME"] = "admin"
os.environ["ADMIN_PASSWORD"] = "password123"
os.environ.pop("DATABASE_URL", None)

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from tierlist.main import app
from tierlist.notifications import WebhookDispatcher, get_dispatcher
from tierlist.schemas import PlayerCreate
from tierlist.security import hash_password
from tierlist.storage import PERMISSION_FIELDS, MemStorage, SQLStorage, get_storage

DISCORD_WEBHOOK = "https://discord.com/api/webhooks/123456/abcdef"


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class RecordingSender:
    def __init__(self, result=True):
        self.result = result
        self.calls = []

    async def __call__(self, webhook_url, player, tiers):
        self.calls.append((webhook_url, player, tiers))
        return self.result


def player_data(roblox_id="1", username="Player 1", **kwargs):
    kwargs.setdefault("avatar_url", f"https://example.com/avatars/{roblox_id}.png")
    return PlayerCreate(roblox_id=roblox_id, username=username, **kwargs)


@pytest_asyncio.fixture
async def mem_storage():
    storage = MemStorage()
    await storage.initialize()
    return storage


@pytest_asyncio.fixture(params=["memory", "sql"])
async def any_storage(request, tmp_path):
    if request.param == "memory":
        storage = MemStorage()
    else:
        storage = SQLStorage(f"sqlite+aiosqlite:///{tmp_path / 'tierlist.db'}")
    await storage.initialize()
    yield storage
    await storage.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sender():
    return RecordingSender()


@pytest.fixture
def dispatcher(mem_storage, sender, clock):
    return WebhookDispatcher(mem_storage, sender=sender, clock=clock, batch_window=2.0, cooldown=5.0)


@pytest_asyncio.fixture
async def client(mem_storage, dispatcher):
    app.dependency_overrides[get_storage] = lambda: mem_storage
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def make_admin(mem_storage):
    async def _make_admin(username, password="secret123", **flags):
        data = {field: False for field in PERMISSION_FIELDS}
        data.update(flags)
        data.update(username=username, password=hash_password(password))
        data.setdefault("is_super_admin", False)
        return await mem_storage.create_admin(data)

    return _make_admin


@pytest.fixture
def login(client):
    async def _login(username, password="secret123"):
        response = await client.post("/login", json={"username": username, "password": password})
        assert response.status_code == 200, response.text
        return {"Authorization": f"Bearer {response.json()['access_token']}"}

    return _login


@pytest_asyncio.fixture
async def super_headers(login):
    return await login("admin", "password123")
