from fastapi import APIRouter, Depends, HTTPException, Response, status
from typing import List, Optional
import logging

from tierlist.auth import Permission, require_permission
from tierlist.schemas import Category, OVERALL, Player, PlayerCreate, PlayerUpdate, PlayerWithTiers
from tierlist.storage import Storage, get_storage

router = APIRouter()
logger = logging.getLogger(__name__)


def parse_category(category: Optional[str]) -> Optional[str]:
    """Validate a ``category`` query value; ``None`` and ``overall`` mean no filter."""
    if category is None or category == OVERALL:
        return category
    if category not in {c.value for c in Category}:
        raise HTTPException(status_code=400, detail="Invalid category")
    return category


@router.get("", response_model=List[PlayerWithTiers])
async def get_players(category: Optional[str] = None, storage: Storage = Depends(get_storage)):
    return await storage.get_players_with_tiers(parse_category(category))


@router.get("/search", response_model=List[Player])
async def search_players(q: Optional[str] = None, storage: Storage = Depends(get_storage)):
    if not q:
        raise HTTPException(status_code=400, detail="Search query is required")
    return await storage.search_players(q)


@router.get("/{player_id}", response_model=PlayerWithTiers)
async def get_player(player_id: int, storage: Storage = Depends(get_storage)):
    logger.info(f"Fetching player with ID: {player_id}")

    player = await storage.get_player_with_tiers(player_id)
    if not player:
        logger.warning(f"Player {player_id} not found.")
        raise HTTPException(status_code=404, detail="Player not found")
    return player


@router.post("", response_model=Player)
async def upsert_player(
    player: PlayerCreate,
    response: Response,
    storage: Storage = Depends(get_storage),
    admin=Depends(require_permission(Permission.MANAGE_PLAYERS)),
):
    existing = await storage.get_player_by_roblox_id(player.roblox_id)

    # ✅ Known Roblox id: only the supplied fields change
    if existing:
        updated = await storage.update_player(existing.id, player.model_dump(exclude_unset=True))
        logger.info(f"Player {updated.username} (ID: {updated.id}) updated by {admin.username}")
        return updated

    created = await storage.create_player(player)
    logger.info(f"Player {created.username} (ID: {created.id}) created by {admin.username}")
    response.status_code = status.HTTP_201_CREATED
    return created


@router.put("/{player_id}", response_model=Player)
async def update_player(
    player_id: int,
    player_update: PlayerUpdate,
    storage: Storage = Depends(get_storage),
    admin=Depends(require_permission(Permission.MANAGE_PLAYERS)),
):
    changes = player_update.model_dump(exclude_unset=True)

    roblox_id = changes.get("roblox_id")
    if roblox_id:
        owner = await storage.get_player_by_roblox_id(roblox_id)
        if owner and owner.id != player_id:
            raise HTTPException(status_code=400, detail="Roblox ID already belongs to another player")

    updated = await storage.update_player(player_id, changes)
    if not updated:
        raise HTTPException(status_code=404, detail="Player not found")
    return updated


@router.delete("/{player_id}")
async def delete_player(
    player_id: int,
    storage: Storage = Depends(get_storage),
    admin=Depends(require_permission(Permission.DELETE_DATA)),
):
    player = await storage.get_player_by_id(player_id)
    if not player:
        raise HTTPException(status_code=404, detail="Player not found")

    # ✅ Tiers go with the player
    deleted = await storage.delete_player(player_id)
    logger.info(f"Player {player.username} (ID: {player_id}) deleted by {admin.username}")
    return {"success": deleted, "message": f"Player {player.username} and their tiers deleted successfully."}
