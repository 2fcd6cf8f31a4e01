from fastapi import APIRouter, Depends, HTTPException, Response, status
from typing import List, Optional
import logging

from tierlist.auth import Permission, require_permission
from tierlist.notifications import WebhookDispatcher, get_dispatcher
from tierlist.schemas import Category, Tier, TierCreate, is_valid_webhook_url
from tierlist.storage import Storage, get_storage

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("", response_model=List[Tier])
async def get_tiers(category: Optional[Category] = None, storage: Storage = Depends(get_storage)):
    if category is None:
        return await storage.get_tiers()
    return await storage.get_tiers_by_category(category)


@router.post("", response_model=Tier)
async def upsert_tier(
    tier: TierCreate,
    response: Response,
    storage: Storage = Depends(get_storage),
    dispatcher: WebhookDispatcher = Depends(get_dispatcher),
    admin=Depends(require_permission(Permission.MANAGE_TIERS)),
):
    player = await storage.get_player_by_id(tier.player_id)
    if not player:
        raise HTTPException(status_code=404, detail="Player not found")

    existing = await storage.get_tier_by_player_and_category(tier.player_id, tier.category)
    saved = await storage.upsert_tier(tier)
    logger.info(
        f"{tier.category.value} tier of {player.username} set to {saved.tier.value} by {admin.username}"
    )

    if is_valid_webhook_url(player.webhook_url):
        dispatcher.notify(player.id)

    if not existing:
        response.status_code = status.HTTP_201_CREATED
    return saved


@router.delete("/{tier_id}")
async def delete_tier(
    tier_id: int,
    storage: Storage = Depends(get_storage),
    admin=Depends(require_permission(Permission.DELETE_DATA)),
):
    deleted = await storage.delete_tier(tier_id)
    if not deleted:
        raise HTTPException(status_code=404, detail=f"Tier {tier_id} not found.")

    logger.info(f"Tier {tier_id} deleted by {admin.username}")
    return {"success": True, "message": f"Tier {tier_id} deleted successfully."}
