from fastapi import APIRouter, Depends, HTTPException, status
from typing import List
import logging
import os

from tierlist.auth import Permission, require_permission, require_super_admin
from tierlist.schemas import Admin, AdminCreate, SiteSettings
from tierlist.security import hash_password
from tierlist.storage import Storage, get_storage

router = APIRouter()
logger = logging.getLogger(__name__)

site_settings = SiteSettings(logo_url=os.getenv("SITE_LOGO_URL", ""))


def public_admin(admin) -> Admin:
    return Admin.model_validate(admin, from_attributes=True)


@router.get("/admins", response_model=List[Admin])
async def get_admins(
    storage: Storage = Depends(get_storage),
    admin=Depends(require_super_admin),
):
    return [public_admin(a) for a in await storage.get_admins()]


@router.post("/admins", response_model=Admin, status_code=status.HTTP_201_CREATED)
async def create_admin(
    new_admin: AdminCreate,
    storage: Storage = Depends(get_storage),
    admin=Depends(require_super_admin),
):
    if await storage.get_admin_by_username(new_admin.username):
        raise HTTPException(status_code=400, detail="Username already exists")

    data = new_admin.model_dump()
    data["password"] = hash_password(new_admin.password)
    created = await storage.create_admin(data)

    logger.info(f"Admin {created.username} created by {admin.username}")
    return public_admin(created)


@router.get("/settings", response_model=SiteSettings)
async def get_settings():
    return site_settings


@router.post("/settings", response_model=SiteSettings)
async def update_settings(
    settings: SiteSettings,
    admin=Depends(require_permission(Permission.CHANGE_SETTINGS)),
):
    global site_settings
    site_settings = settings
    logger.info(f"Site settings updated by {admin.username}")
    return site_settings


@router.get("/database")
async def database_info(
    storage: Storage = Depends(get_storage),
    admin=Depends(require_permission(Permission.MANAGE_DATABASE)),
):
    return await storage.describe()


@router.post("/database/reset")
async def reset_database(
    storage: Storage = Depends(get_storage),
    admin=Depends(require_permission(Permission.MANAGE_DATABASE)),
):
    await storage.reset()
    logger.warning(f"⚠️ All players and tiers removed by {admin.username}")
    return {"success": True, "message": "All players and tiers deleted."}
