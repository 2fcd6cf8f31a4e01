"""
Discord webhook notifications for tier changes.

Tier writes call :meth:`WebhookDispatcher.notify`. Writes for the same player
inside the batch window collapse into one message that carries the player's
tiers as they are when the window closes. A player that received a message
less than ``cooldown`` seconds ago is skipped. Delivery is best effort:
failures are logged and never reach the request that changed the tier.
"""

from datetime import datetime
from typing import Awaitable, Callable, Dict, List, Optional
import asyncio
import logging
import os
import time

import httpx
import pytz

from tierlist.schemas import Player, Tier, is_valid_webhook_url
from tierlist.storage import Storage, StorageError, storage

logger = logging.getLogger(__name__)

BATCH_WINDOW_SECONDS = float(os.getenv("WEBHOOK_BATCH_SECONDS", 2))
COOLDOWN_SECONDS = float(os.getenv("WEBHOOK_COOLDOWN_SECONDS", 5))
POLL_INTERVAL_SECONDS = float(os.getenv("WEBHOOK_POLL_SECONDS", 0.5))
REQUEST_TIMEOUT_SECONDS = float(os.getenv("WEBHOOK_TIMEOUT_SECONDS", 10))
BOT_NAME = os.getenv("WEBHOOK_BOT_NAME", "Tier List")
BOT_AVATAR_URL = os.getenv("WEBHOOK_BOT_AVATAR_URL")

DEFAULT_COLOR = 10197915  # Gray
TIER_COLORS = {
    "SS": 14423100,  # Pink
    "S": 15277667,  # Orange
    "A": 16737095,  # Yellow
    "B": 4312575,  # Light blue
    "C": 3066993,  # Green
    "D": 9807270,  # Purple
    "E": 10197915,  # Gray
}

Sender = Callable[[str, Player, List[Tier]], Awaitable[bool]]


def build_webhook_payload(player: Player, tiers: List[Tier]) -> dict:
    fields = [
        {
            "name": f"{tier.category.value.capitalize()} Tier",
            "value": f"**{tier.tier.value}**",
            "inline": True,
        }
        for tier in tiers
    ]
    color = TIER_COLORS.get(tiers[0].tier.value, DEFAULT_COLOR) if tiers else DEFAULT_COLOR

    payload = {
        "username": BOT_NAME,
        "embeds": [
            {
                "title": f"{player.username} | {player.combat_title}",
                "thumbnail": {"url": player.avatar_url},
                "color": color,
                "fields": fields,
                "footer": {"text": f"{BOT_NAME} updates"},
                "timestamp": datetime.now(pytz.utc).isoformat(),
            }
        ],
    }
    if BOT_AVATAR_URL:
        payload["avatar_url"] = BOT_AVATAR_URL
    return payload


async def send_discord_webhook(
    webhook_url: str,
    player: Player,
    tiers: List[Tier],
    client: Optional[httpx.AsyncClient] = None,
) -> bool:
    if not is_valid_webhook_url(webhook_url):
        logger.warning(f"Invalid Discord webhook URL for player {player.id}")
        return False

    if not tiers:
        logger.info(f"No tiers to report for player {player.id}, skipping webhook")
        return False

    payload = build_webhook_payload(player, tiers)
    try:
        if client is None:
            async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT_SECONDS) as own_client:
                response = await own_client.post(webhook_url, json=payload)
        else:
            response = await client.post(webhook_url, json=payload)
        response.raise_for_status()
    except httpx.HTTPError as e:
        logger.error(f"Error sending Discord webhook for player {player.id}: {e}")
        return False

    logger.info(f"Webhook sent for player {player.username} ({len(tiers)} tiers)")
    return True


class WebhookDispatcher:
    def __init__(
        self,
        storage: Storage,
        sender: Sender = send_discord_webhook,
        clock: Callable[[], float] = time.monotonic,
        batch_window: float = BATCH_WINDOW_SECONDS,
        cooldown: float = COOLDOWN_SECONDS,
        poll_interval: float = POLL_INTERVAL_SECONDS,
    ):
        self.storage = storage
        self.sender = sender
        self.clock = clock
        self.batch_window = batch_window
        self.cooldown = cooldown
        self.poll_interval = poll_interval
        # player id -> time at which the batched message goes out
        self.pending: Dict[int, float] = {}
        # player id -> time of the last successful send
        self.recent: Dict[int, float] = {}
        self._task: Optional[asyncio.Task] = None

    def notify(self, player_id: int) -> None:
        """Schedule a message for ``player_id``, pushing back any pending one."""
        self.pending[player_id] = self.clock() + self.batch_window

    async def flush_due(self) -> int:
        """Send every batch whose window has closed. Returns the number sent."""
        now = self.clock()
        self._prune(now)

        due = [player_id for player_id, deadline in self.pending.items() if deadline <= now]
        sent = 0
        for player_id in due:
            del self.pending[player_id]
            if await self._dispatch(player_id, now):
                sent += 1
        return sent

    def _prune(self, now: float) -> None:
        expired = [player_id for player_id, sent_at in self.recent.items() if now - sent_at >= self.cooldown]
        for player_id in expired:
            del self.recent[player_id]

    async def _dispatch(self, player_id: int, now: float) -> bool:
        if player_id in self.recent:
            logger.info(f"Webhook for player {player_id} sent recently, skipping duplicate")
            return False

        try:
            player = await self.storage.get_player_by_id(player_id)
            tiers = await self.storage.get_tiers_by_player_id(player_id) if player else []
        except StorageError as e:
            logger.error(f"Could not load player {player_id} for webhook: {e}")
            return False

        if player is None or not is_valid_webhook_url(player.webhook_url):
            return False
        if not tiers:
            logger.info(f"Player {player_id} has no tiers, skipping webhook")
            return False

        delivered = await self.sender(player.webhook_url, player, tiers)
        if delivered:
            self.recent[player_id] = now
        return delivered

    async def run(self) -> None:
        while True:
            try:
                await self.flush_due()
            except Exception:
                logger.exception("Webhook flush failed")
            await asyncio.sleep(self.poll_interval)

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.ensure_future(self.run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None


dispatcher = WebhookDispatcher(storage)


def get_dispatcher():
    return dispatcher
