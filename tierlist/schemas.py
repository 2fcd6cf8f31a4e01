from typing import Optional, List
from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from enum import Enum
import re

DEFAULT_COMBAT_TITLE = "Pirate"
DEFAULT_REGION = "NA"
OVERALL = "overall"  # virtual category, never stored
DISCORD_WEBHOOK_PREFIX = "https://discord.com/api/webhooks/"

BOUNTY_PATTERN = re.compile(r"\d+(\.\d+)?[KMB]?", re.IGNORECASE)


class Category(str, Enum):
    melee = "melee"
    fruit = "fruit"
    sword = "sword"
    gun = "gun"
    bounty = "bounty"


# Display order of tiers inside a PlayerWithTiers
CATEGORY_ORDER = {c: i for i, c in enumerate(Category)}


class TierGrade(str, Enum):
    SS = "SS"
    S = "S"
    A = "A"
    B = "B"
    C = "C"
    D = "D"
    E = "E"


def is_valid_bounty(value: str) -> bool:
    return bool(BOUNTY_PATTERN.fullmatch(value or ""))


def is_valid_webhook_url(url: Optional[str]) -> bool:
    return bool(url) and url.startswith(DISCORD_WEBHOOK_PREFIX)


def _check_bounty(value):
    if value is not None and not is_valid_bounty(value):
        raise ValueError("Bounty must be a number with optional K, M, or B suffix (e.g., 30M, 321K)")
    return value


def _check_webhook_url(value):
    if value is None or value.strip() == "":
        return None
    if not is_valid_webhook_url(value):
        raise ValueError("If provided, webhook URL must be a valid Discord webhook URL")
    return value


class PlayerCreate(BaseModel):
    roblox_id: str = Field(min_length=1, max_length=50)
    username: str = Field(min_length=1, max_length=100)
    avatar_url: str = Field(min_length=1)
    combat_title: str = DEFAULT_COMBAT_TITLE
    points: int = 0
    bounty: str = "0"
    region: str = DEFAULT_REGION
    webhook_url: Optional[str] = None

    @field_validator("bounty")
    @classmethod
    def check_bounty(cls, value):
        return _check_bounty(value)

    @field_validator("webhook_url")
    @classmethod
    def check_webhook_url(cls, value):
        return _check_webhook_url(value)


class PlayerUpdate(BaseModel):
    roblox_id: Optional[str] = Field(default=None, min_length=1, max_length=50)
    username: Optional[str] = Field(default=None, min_length=1, max_length=100)
    avatar_url: Optional[str] = None
    combat_title: Optional[str] = None
    points: Optional[int] = None
    bounty: Optional[str] = None
    region: Optional[str] = None
    webhook_url: Optional[str] = None

    @field_validator("bounty")
    @classmethod
    def check_bounty(cls, value):
        return _check_bounty(value)

    @field_validator("webhook_url")
    @classmethod
    def check_webhook_url(cls, value):
        return _check_webhook_url(value)


class Player(BaseModel):
    id: int
    roblox_id: str
    username: str
    avatar_url: str
    combat_title: str = DEFAULT_COMBAT_TITLE
    points: int = 0
    bounty: str = "0"
    region: str = DEFAULT_REGION
    webhook_url: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TierCreate(BaseModel):
    player_id: int
    category: Category
    tier: TierGrade


class Tier(BaseModel):
    id: int
    player_id: int
    category: Category
    tier: TierGrade
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PlayerWithTiers(BaseModel):
    player: Player
    tiers: List[Tier] = []


class RankedPlayer(BaseModel):
    rank: int
    rank_label: str
    player: Player
    tiers: List[Tier] = []


class AdminBase(BaseModel):
    username: str
    is_super_admin: bool = False
    can_manage_players: bool = True
    can_manage_tiers: bool = True
    can_manage_admins: bool = False
    can_delete_data: bool = False
    can_view_admins: bool = False
    can_manage_database: bool = False
    can_change_settings: bool = False


class AdminCreate(AdminBase):
    username: str = Field(min_length=3, max_length=100)
    password: str = Field(min_length=6)


class Admin(AdminBase):
    """Admin as exposed over the API: never carries the password hash."""

    id: int

    class Config:
        from_attributes = True


class AdminInDB(Admin):
    password: str


class LoginCredentials(BaseModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: Admin


class SiteSettings(BaseModel):
    logo_url: str = ""
