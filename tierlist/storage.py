"""
Persistence gateway for players, tiers and admins.

Two interchangeable stores implement :class:`Storage`: ``MemStorage`` (volatile,
used when no database is configured or the database cannot be reached) and
``SQLStorage`` (async SQLAlchemy, any URL the installed drivers support).
Routes talk to a :class:`StorageProxy`, which waits for the chosen store to
finish initializing before forwarding each call.

Lookups that find nothing return ``None``; callers decide whether that is an
error.
"""

from abc import ABC, abstractmethod
from collections import defaultdict
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Dict, List, Optional, Union
import asyncio
import logging
import os

from sqlalchemy import and_, delete, select
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError

from tierlist import models, schemas
from tierlist.database import Base, DATABASE_URL, make_engine, make_sessionmaker
from tierlist.security import hash_password

logger = logging.getLogger(__name__)

# ✅ Load Admin Credentials Securely
ADMIN_USERNAME = os.getenv("ADMIN_USERNAME", "admin")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "password123")

# Player columns that may be cleared by an update
NULLABLE_PLAYER_FIELDS = {"webhook_url"}

PERMISSION_FIELDS = (
    "can_manage_players",
    "can_manage_tiers",
    "can_manage_admins",
    "can_delete_data",
    "can_view_admins",
    "can_manage_database",
    "can_change_settings",
)

CategoryFilter = Optional[Union[str, schemas.Category]]


class StorageError(Exception):
    """The backing store failed (unreachable database, rejected statement)."""


def utcnow():
    return datetime.now(timezone.utc)


def sort_tiers(tiers: List[schemas.Tier]) -> List[schemas.Tier]:
    return sorted(tiers, key=lambda t: schemas.CATEGORY_ORDER[t.category])


def player_changes(changes: dict) -> dict:
    """Drop ``None`` values except for fields that may legitimately be cleared."""
    return {
        key: value
        for key, value in changes.items()
        if value is not None or key in NULLABLE_PLAYER_FIELDS
    }


def normalize_category(category: CategoryFilter) -> Optional[schemas.Category]:
    if category is None or category == "" or category == schemas.OVERALL:
        return None
    return schemas.Category(category)


class Storage(ABC):
    backend = "abstract"

    # Player methods
    @abstractmethod
    async def get_players(self) -> List[schemas.Player]: ...

    @abstractmethod
    async def get_player_by_id(self, player_id: int) -> Optional[schemas.Player]: ...

    @abstractmethod
    async def get_player_by_roblox_id(self, roblox_id: str) -> Optional[schemas.Player]: ...

    @abstractmethod
    async def create_player(self, data: schemas.PlayerCreate) -> schemas.Player: ...

    @abstractmethod
    async def update_player(self, player_id: int, changes: dict) -> Optional[schemas.Player]: ...

    @abstractmethod
    async def delete_player(self, player_id: int) -> bool: ...

    @abstractmethod
    async def search_players(self, query: str) -> List[schemas.Player]: ...

    # Tier methods
    @abstractmethod
    async def get_tiers(self) -> List[schemas.Tier]: ...

    @abstractmethod
    async def get_tiers_by_player_id(self, player_id: int) -> List[schemas.Tier]: ...

    @abstractmethod
    async def get_tiers_by_category(self, category: schemas.Category) -> List[schemas.Tier]: ...

    @abstractmethod
    async def get_tier_by_player_and_category(
        self, player_id: int, category: schemas.Category
    ) -> Optional[schemas.Tier]: ...

    @abstractmethod
    async def upsert_tier(self, data: schemas.TierCreate) -> schemas.Tier: ...

    @abstractmethod
    async def update_tier(
        self, player_id: int, category: schemas.Category, grade: schemas.TierGrade
    ) -> Optional[schemas.Tier]: ...

    @abstractmethod
    async def delete_tier(self, tier_id: int) -> bool: ...

    # Admin methods
    @abstractmethod
    async def get_admin_by_id(self, admin_id: int) -> Optional[schemas.AdminInDB]: ...

    @abstractmethod
    async def get_admin_by_username(self, username: str) -> Optional[schemas.AdminInDB]: ...

    @abstractmethod
    async def create_admin(self, data: dict) -> schemas.AdminInDB: ...

    @abstractmethod
    async def get_admins(self) -> List[schemas.AdminInDB]: ...

    # Lifecycle
    @abstractmethod
    async def reset(self) -> None:
        """Remove every player and tier. Admins are kept."""

    async def initialize(self) -> None:
        await seed_default_admin(self)

    async def describe(self) -> dict:
        return {"backend": self.backend}

    async def close(self) -> None:
        pass

    # Combined methods
    async def get_players_with_tiers(self, category: CategoryFilter = None) -> List[schemas.PlayerWithTiers]:
        """
        Pair every player with its tiers.

        With a real category only that category's tiers are attached and
        players without one are left out. Without a category (or with
        ``overall``) every player is returned, even with no tiers at all.
        Sorted by points, highest first.
        """
        wanted = normalize_category(category)
        players = await self.get_players()
        tiers = await self.get_tiers()

        by_player = defaultdict(list)
        for tier in tiers:
            by_player[tier.player_id].append(tier)

        result = []
        for player in players:
            player_tiers = sort_tiers(by_player.get(player.id, []))
            if wanted is not None:
                player_tiers = [t for t in player_tiers if t.category == wanted]
                if not player_tiers:
                    continue
            result.append(schemas.PlayerWithTiers(player=player, tiers=player_tiers))

        result.sort(key=lambda entry: entry.player.points or 0, reverse=True)
        return result

    async def get_player_with_tiers(self, player_id: int) -> Optional[schemas.PlayerWithTiers]:
        player = await self.get_player_by_id(player_id)
        if player is None:
            return None
        tiers = await self.get_tiers_by_player_id(player_id)
        return schemas.PlayerWithTiers(player=player, tiers=tiers)


async def seed_default_admin(storage: Storage) -> None:
    if await storage.get_admin_by_username(ADMIN_USERNAME):
        return

    data = {field: True for field in PERMISSION_FIELDS}
    data.update(
        username=ADMIN_USERNAME,
        password=hash_password(ADMIN_PASSWORD),
        is_super_admin=True,
    )
    await storage.create_admin(data)
    logger.info(f"Default admin '{ADMIN_USERNAME}' created")


class MemStorage(Storage):
    """Volatile store. Data is lost when the process exits."""

    backend = "memory"

    def __init__(self):
        self.players: Dict[int, schemas.Player] = {}
        self.tiers: Dict[int, schemas.Tier] = {}
        self.admins: Dict[int, schemas.AdminInDB] = {}
        self._next_player_id = 1
        self._next_tier_id = 1
        self._next_admin_id = 1

    # Player methods
    async def get_players(self):
        return [p.model_copy() for p in self.players.values()]

    async def get_player_by_id(self, player_id):
        player = self.players.get(player_id)
        return player.model_copy() if player else None

    async def get_player_by_roblox_id(self, roblox_id):
        for player in self.players.values():
            if player.roblox_id == roblox_id:
                return player.model_copy()
        return None

    async def create_player(self, data):
        player = schemas.Player(id=self._next_player_id, created_at=utcnow(), **data.model_dump())
        self._next_player_id += 1
        self.players[player.id] = player
        return player.model_copy()

    async def update_player(self, player_id, changes):
        player = self.players.get(player_id)
        if player is None:
            return None
        updated = player.model_copy(update=player_changes(changes))
        self.players[player_id] = updated
        return updated.model_copy()

    async def delete_player(self, player_id):
        if player_id not in self.players:
            return False
        for tier_id in [t.id for t in self.tiers.values() if t.player_id == player_id]:
            del self.tiers[tier_id]
        del self.players[player_id]
        return True

    async def search_players(self, query):
        needle = query.lower()
        return [p.model_copy() for p in self.players.values() if needle in p.username.lower()]

    # Tier methods
    async def get_tiers(self):
        return [t.model_copy() for t in self.tiers.values()]

    async def get_tiers_by_player_id(self, player_id):
        return sort_tiers([t.model_copy() for t in self.tiers.values() if t.player_id == player_id])

    async def get_tiers_by_category(self, category):
        category = schemas.Category(category)
        return [t.model_copy() for t in self.tiers.values() if t.category == category]

    async def get_tier_by_player_and_category(self, player_id, category):
        category = schemas.Category(category)
        for tier in self.tiers.values():
            if tier.player_id == player_id and tier.category == category:
                return tier.model_copy()
        return None

    async def upsert_tier(self, data):
        existing = await self.get_tier_by_player_and_category(data.player_id, data.category)
        if existing:
            return await self.update_tier(data.player_id, data.category, data.tier)

        tier = schemas.Tier(
            id=self._next_tier_id,
            player_id=data.player_id,
            category=data.category,
            tier=data.tier,
            updated_at=utcnow(),
        )
        self._next_tier_id += 1
        self.tiers[tier.id] = tier
        return tier.model_copy()

    async def update_tier(self, player_id, category, grade):
        existing = await self.get_tier_by_player_and_category(player_id, category)
        if existing is None:
            return None
        updated = existing.model_copy(update={"tier": schemas.TierGrade(grade), "updated_at": utcnow()})
        self.tiers[updated.id] = updated
        return updated.model_copy()

    async def delete_tier(self, tier_id):
        return self.tiers.pop(tier_id, None) is not None

    # Admin methods
    async def get_admin_by_id(self, admin_id):
        admin = self.admins.get(admin_id)
        return admin.model_copy() if admin else None

    async def get_admin_by_username(self, username):
        for admin in self.admins.values():
            if admin.username == username:
                return admin.model_copy()
        return None

    async def create_admin(self, data):
        admin = schemas.AdminInDB(id=self._next_admin_id, **data)
        self._next_admin_id += 1
        self.admins[admin.id] = admin
        return admin.model_copy()

    async def get_admins(self):
        return [a.model_copy() for a in self.admins.values()]

    async def reset(self):
        self.tiers.clear()
        self.players.clear()


class SQLStorage(Storage):
    """Relational store over an async SQLAlchemy engine."""

    backend = "sql"

    def __init__(self, database_url: str):
        self.database_url = database_url
        self.engine = make_engine(database_url)
        self.SessionLocal = make_sessionmaker(self.engine)

    @asynccontextmanager
    async def _session(self):
        async with self.SessionLocal() as session:
            try:
                yield session
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error(f"Database error: {e}", exc_info=True)
                raise StorageError("Database operation failed") from e

    async def initialize(self):
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except SQLAlchemyError as e:
            raise StorageError(f"Unable to initialize database: {e}") from e
        await super().initialize()

    async def describe(self):
        url = make_url(self.database_url).render_as_string(hide_password=True)
        return {"backend": self.backend, "url": url}

    async def close(self):
        await self.engine.dispose()

    # Player methods
    async def get_players(self):
        async with self._session() as session:
            result = await session.execute(select(models.Player).order_by(models.Player.id))
            return [schemas.Player.model_validate(p) for p in result.scalars().all()]

    async def get_player_by_id(self, player_id):
        async with self._session() as session:
            player = await session.get(models.Player, player_id)
            return schemas.Player.model_validate(player) if player else None

    async def get_player_by_roblox_id(self, roblox_id):
        async with self._session() as session:
            result = await session.execute(select(models.Player).where(models.Player.roblox_id == roblox_id))
            player = result.scalars().first()
            return schemas.Player.model_validate(player) if player else None

    async def create_player(self, data):
        async with self._session() as session:
            player = models.Player(**data.model_dump())
            session.add(player)
            await session.commit()
            await session.refresh(player)
            return schemas.Player.model_validate(player)

    async def update_player(self, player_id, changes):
        async with self._session() as session:
            player = await session.get(models.Player, player_id)
            if player is None:
                return None

            for key, value in player_changes(changes).items():
                if hasattr(player, key):
                    setattr(player, key, value)

            await session.commit()
            await session.refresh(player)
            return schemas.Player.model_validate(player)

    async def delete_player(self, player_id):
        async with self._session() as session:
            player = await session.get(models.Player, player_id)
            if player is None:
                return False

            # ✅ Delete the player's tiers, then the player, in one transaction
            await session.execute(delete(models.Tier).where(models.Tier.player_id == player_id))
            await session.delete(player)
            await session.commit()
            return True

    async def search_players(self, query):
        async with self._session() as session:
            result = await session.execute(
                select(models.Player)
                .where(models.Player.username.ilike(f"%{query}%"))
                .order_by(models.Player.id)
            )
            return [schemas.Player.model_validate(p) for p in result.scalars().all()]

    # Tier methods
    async def get_tiers(self):
        async with self._session() as session:
            result = await session.execute(select(models.Tier).order_by(models.Tier.id))
            return [schemas.Tier.model_validate(t) for t in result.scalars().all()]

    async def get_tiers_by_player_id(self, player_id):
        async with self._session() as session:
            result = await session.execute(select(models.Tier).where(models.Tier.player_id == player_id))
            return sort_tiers([schemas.Tier.model_validate(t) for t in result.scalars().all()])

    async def get_tiers_by_category(self, category):
        category = schemas.Category(category)
        async with self._session() as session:
            result = await session.execute(
                select(models.Tier).where(models.Tier.category == category.value).order_by(models.Tier.id)
            )
            return [schemas.Tier.model_validate(t) for t in result.scalars().all()]

    async def _find_tier(self, session, player_id, category):
        result = await session.execute(
            select(models.Tier).where(
                and_(models.Tier.player_id == player_id, models.Tier.category == category.value)
            )
        )
        return result.scalars().first()

    async def get_tier_by_player_and_category(self, player_id, category):
        category = schemas.Category(category)
        async with self._session() as session:
            tier = await self._find_tier(session, player_id, category)
            return schemas.Tier.model_validate(tier) if tier else None

    async def upsert_tier(self, data):
        async with self._session() as session:
            tier = await self._find_tier(session, data.player_id, data.category)
            if tier:
                tier.tier = data.tier.value
                tier.updated_at = utcnow()
            else:
                tier = models.Tier(
                    player_id=data.player_id,
                    category=data.category.value,
                    tier=data.tier.value,
                    updated_at=utcnow(),
                )
                session.add(tier)

            await session.commit()
            await session.refresh(tier)
            return schemas.Tier.model_validate(tier)

    async def update_tier(self, player_id, category, grade):
        category = schemas.Category(category)
        async with self._session() as session:
            tier = await self._find_tier(session, player_id, category)
            if tier is None:
                return None
            tier.tier = schemas.TierGrade(grade).value
            tier.updated_at = utcnow()
            await session.commit()
            await session.refresh(tier)
            return schemas.Tier.model_validate(tier)

    async def delete_tier(self, tier_id):
        async with self._session() as session:
            tier = await session.get(models.Tier, tier_id)
            if tier is None:
                return False
            await session.delete(tier)
            await session.commit()
            return True

    # Admin methods
    async def get_admin_by_id(self, admin_id):
        async with self._session() as session:
            admin = await session.get(models.Admin, admin_id)
            return schemas.AdminInDB.model_validate(admin) if admin else None

    async def get_admin_by_username(self, username):
        async with self._session() as session:
            result = await session.execute(select(models.Admin).where(models.Admin.username == username))
            admin = result.scalars().first()
            return schemas.AdminInDB.model_validate(admin) if admin else None

    async def create_admin(self, data):
        async with self._session() as session:
            admin = models.Admin(**data)
            session.add(admin)
            await session.commit()
            await session.refresh(admin)
            return schemas.AdminInDB.model_validate(admin)

    async def get_admins(self):
        async with self._session() as session:
            result = await session.execute(select(models.Admin).order_by(models.Admin.id))
            return [schemas.AdminInDB.model_validate(a) for a in result.scalars().all()]

    async def reset(self):
        async with self._session() as session:
            await session.execute(delete(models.Tier))
            await session.execute(delete(models.Player))
            await session.commit()


async def initialize_storage(database_url: Optional[str] = DATABASE_URL) -> Storage:
    """
    Build the store for ``database_url``. Without a URL, or when the database
    cannot be initialized, fall back to a volatile ``MemStorage``.
    """
    if database_url:
        sql_storage = None
        try:
            sql_storage = SQLStorage(database_url)
            await sql_storage.initialize()
            logger.info("Using SQL storage")
            return sql_storage
        except Exception as e:
            logger.warning(f"Failed to initialize SQL storage: {e}", exc_info=True)
            if sql_storage is not None:
                await sql_storage.close()
    else:
        logger.warning("DATABASE_URL is not set")

    logger.warning("Falling back to in-memory storage")
    mem_storage = MemStorage()
    await mem_storage.initialize()
    return mem_storage


class StorageProxy:
    """
    Stand-in for the real store while it is still initializing.

    Every ``Storage`` method can be called on the proxy; the call waits for
    the initialization task and is forwarded to the resulting store.
    """

    def __init__(self, factory):
        self._factory = factory
        self._task = None
        self._storage = None

    def start(self):
        if self._task is None:
            self._task = asyncio.ensure_future(self._factory())
        return self._task

    async def get_storage(self) -> Storage:
        if self._storage is None:
            self._storage = await self.start()
        return self._storage

    async def close(self):
        if self._storage is not None:
            await self._storage.close()

    def __getattr__(self, name):
        if name.startswith("_") or not callable(getattr(Storage, name, None)):
            raise AttributeError(name)

        async def forward(*args, **kwargs):
            storage = await self.get_storage()
            return await getattr(storage, name)(*args, **kwargs)

        forward.__name__ = name
        return forward


storage = StorageProxy(initialize_storage)


# ✅ Dependency to get the storage
def get_storage():
    return storage
