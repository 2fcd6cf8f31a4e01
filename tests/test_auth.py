import pytest

from tierlist.auth import Permission, authorize
from tierlist.routers import admins as admins_router
from tierlist.schemas import Admin, SiteSettings
from tierlist.security import create_access_token

from conftest import player_data


def make_principal(**flags):
    return Admin(id=1, username="someone", **flags)


def test_authorize_super_admin_has_every_permission():
    admin = make_principal(is_super_admin=True, can_manage_players=False, can_manage_tiers=False)

    assert all(authorize(admin, permission) for permission in Permission)


def test_authorize_checks_the_single_flag():
    admin = make_principal(can_manage_players=False, can_manage_tiers=True, can_view_admins=True)

    assert not authorize(admin, Permission.MANAGE_PLAYERS)
    assert authorize(admin, Permission.MANAGE_TIERS)
    assert authorize(admin, Permission.VIEW_ADMINS)
    assert not authorize(admin, Permission.MANAGE_ADMINS)


@pytest.mark.asyncio
async def test_login_sets_session_cookie(client):
    response = await client.post("/login", json={"username": "admin", "password": "password123"})

    assert response.status_code == 200
    assert "session" in response.cookies
    assert "password" not in response.json()["user"]

    user = await client.get("/user")
    assert user.status_code == 200
    assert user.json()["username"] == "admin"
    assert user.json()["is_super_admin"] is True
    assert "password" not in user.json()


@pytest.mark.asyncio
async def test_login_rejects_bad_credentials(client):
    wrong_password = await client.post("/login", json={"username": "admin", "password": "nope"})
    unknown_user = await client.post("/login", json={"username": "ghost", "password": "nope"})
    empty = await client.post("/login", json={"username": "", "password": ""})

    assert wrong_password.status_code == 401
    assert unknown_user.status_code == 401
    assert empty.status_code == 400


@pytest.mark.asyncio
async def test_user_requires_session(client):
    response = await client.get("/user")

    assert response.status_code == 401
    assert response.json()["detail"] == "Not authenticated"


@pytest.mark.asyncio
async def test_invalid_or_orphaned_token_is_rejected(client):
    garbage = await client.get("/user", headers={"Authorization": "Bearer not-a-jwt"})
    orphan = await client.get("/user", headers={"Authorization": f"Bearer {create_access_token({'sub': '999'})}"})

    assert garbage.status_code == 401
    assert orphan.status_code == 401


@pytest.mark.asyncio
async def test_logout_ends_session(client):
    await client.post("/login", json={"username": "admin", "password": "password123"})

    response = await client.post("/logout")

    assert response.status_code == 200
    assert (await client.get("/user")).status_code == 401


@pytest.mark.asyncio
async def test_revoked_permission_applies_on_next_request(client, make_admin, login, mem_storage):
    editor = await make_admin("editor", can_manage_players=True)
    headers = await login("editor")

    first = await client.post(
        "/players",
        json=player_data("1", "Chopper").model_dump(),
        headers=headers,
    )
    mem_storage.admins[editor.id] = mem_storage.admins[editor.id].model_copy(update={"can_manage_players": False})
    second = await client.post(
        "/players",
        json=player_data("2", "Jinbe").model_dump(),
        headers=headers,
    )

    assert first.status_code == 201
    assert second.status_code == 403


@pytest.mark.asyncio
async def test_create_and_list_admins(client, super_headers):
    created = await client.post(
        "/admins",
        json={"username": "moderator", "password": "hunter22", "can_view_admins": True},
        headers=super_headers,
    )
    duplicate = await client.post(
        "/admins",
        json={"username": "moderator", "password": "hunter22"},
        headers=super_headers,
    )
    too_short = await client.post("/admins", json={"username": "mo", "password": "123"}, headers=super_headers)
    listed = await client.get("/admins", headers=super_headers)

    assert created.status_code == 201
    assert created.json()["can_view_admins"] is True
    assert "password" not in created.json()
    assert duplicate.status_code == 400
    assert too_short.status_code == 400
    assert [a["username"] for a in listed.json()] == ["admin", "moderator"]
    assert all("password" not in a for a in listed.json())

    # The new admin can log in with the password it was given
    login = await client.post("/login", json={"username": "moderator", "password": "hunter22"})
    assert login.status_code == 200


@pytest.mark.asyncio
async def test_admin_routes_are_super_admin_only(client, make_admin, login, mem_storage):
    await make_admin("manager", can_manage_admins=True, can_view_admins=True)
    manager = await login("manager")

    listed = await client.get("/admins", headers=manager)
    escalated = await client.post(
        "/admins",
        json={"username": "rogue", "password": "secret123", "is_super_admin": True},
        headers=manager,
    )
    anonymous = await client.get("/admins")

    assert listed.status_code == 403
    assert escalated.status_code == 403
    assert anonymous.status_code == 401
    assert await mem_storage.get_admin_by_username("rogue") is None


@pytest.mark.asyncio
async def test_site_settings(client, make_admin, login, monkeypatch):
    monkeypatch.setattr(admins_router, "site_settings", SiteSettings())
    await make_admin("designer", can_change_settings=True)
    await make_admin("editor", can_manage_players=True)

    denied = await client.post("/settings", json={"logo_url": "https://example.com/x.png"}, headers=await login("editor"))
    updated = await client.post("/settings", json={"logo_url": "https://example.com/logo.png"}, headers=await login("designer"))
    current = await client.get("/settings")

    assert denied.status_code == 403
    assert updated.status_code == 200
    assert current.json() == {"logo_url": "https://example.com/logo.png"}


@pytest.mark.asyncio
async def test_database_info_and_reset(client, make_admin, login, super_headers, mem_storage):
    await mem_storage.create_player(player_data("1", "Vivi"))
    await make_admin("editor", can_manage_players=True, can_delete_data=True)

    denied = await client.post("/database/reset", headers=await login("editor"))
    info = await client.get("/database", headers=super_headers)
    reset = await client.post("/database/reset", headers=super_headers)

    assert denied.status_code == 403
    assert info.json() == {"backend": "memory"}
    assert reset.json()["success"] is True
    assert await mem_storage.get_players() == []
    assert len(await mem_storage.get_admins()) == 2
