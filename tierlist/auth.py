from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.security import OAuth2PasswordBearer
from enum import Enum
from typing import Optional
import logging
import os

from tierlist.schemas import Admin, AdminInDB, LoginCredentials, LoginResponse
from tierlist.security import ACCESS_TOKEN_EXPIRE_MINUTES, create_access_token, decode_access_token, verify_password
from tierlist.storage import Storage, get_storage

logger = logging.getLogger(__name__)

SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "session")
SESSION_COOKIE_SECURE = os.getenv("SESSION_COOKIE_SECURE", "false").lower() in ("1", "true", "yes")

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="login", auto_error=False)


class Permission(str, Enum):
    MANAGE_PLAYERS = "can_manage_players"
    MANAGE_TIERS = "can_manage_tiers"
    MANAGE_ADMINS = "can_manage_admins"
    DELETE_DATA = "can_delete_data"
    VIEW_ADMINS = "can_view_admins"
    MANAGE_DATABASE = "can_manage_database"
    CHANGE_SETTINGS = "can_change_settings"


def authorize(admin: Admin, permission: Permission) -> bool:
    """Super admins hold every permission; everyone else needs the flag itself."""
    return bool(admin.is_super_admin or getattr(admin, permission.value, False))


# ✅ Auth dependencies
async def get_current_admin(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme),
    storage: Storage = Depends(get_storage),
) -> AdminInDB:
    token = token or request.cookies.get(SESSION_COOKIE_NAME)
    admin_id = decode_access_token(token) if token else None
    if admin_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")

    # Permissions are read fresh on every request
    admin = await storage.get_admin_by_id(admin_id)
    if admin is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return admin


def require_permission(permission: Permission):
    async def checker(admin: AdminInDB = Depends(get_current_admin)) -> AdminInDB:
        if not authorize(admin, permission):
            logger.warning(f"Admin {admin.username} denied: missing {permission.value}")
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Permission denied")
        return admin

    return checker


async def require_super_admin(admin: AdminInDB = Depends(get_current_admin)) -> AdminInDB:
    if not admin.is_super_admin:
        logger.warning(f"Admin {admin.username} denied: super admin only")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Permission denied")
    return admin


# ✅ Endpoints
router = APIRouter()


@router.post("/login", response_model=LoginResponse)
async def login(credentials: LoginCredentials, response: Response, storage: Storage = Depends(get_storage)):
    admin = await storage.get_admin_by_username(credentials.username)
    if not admin or not verify_password(credentials.password, admin.password):
        logger.warning(f"Failed login attempt for {credentials.username}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    token = create_access_token({"sub": str(admin.id)})
    response.set_cookie(
        SESSION_COOKIE_NAME,
        token,
        max_age=ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        httponly=True,
        secure=SESSION_COOKIE_SECURE,
        samesite="lax",
    )
    logger.info(f"Admin {admin.username} logged in")
    return {"access_token": token, "token_type": "bearer", "user": Admin.model_validate(admin, from_attributes=True)}


@router.post("/logout")
async def logout(response: Response):
    response.delete_cookie(SESSION_COOKIE_NAME)
    return {"message": "Logged out"}


@router.get("/user", response_model=Admin)
async def current_user(admin: AdminInDB = Depends(get_current_admin)):
    return admin
