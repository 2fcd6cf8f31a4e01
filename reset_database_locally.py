import asyncio
import os
from dotenv import load_dotenv

load_dotenv()

from tierlist.database import Base
from tierlist.schemas import Category, PlayerCreate, TierCreate, TierGrade
from tierlist.storage import SQLStorage

DEMO_PLAYERS = [
    # roblox_id, username, points, bounty, tiers
    ("1001", "Alpha", 320, "30M", {Category.melee: TierGrade.SS, Category.sword: TierGrade.S}),
    ("1002", "Bravo", 280, "12.5M", {Category.fruit: TierGrade.A, Category.gun: TierGrade.B}),
    ("1003", "Charlie", 280, "900K", {Category.melee: TierGrade.B}),
    ("1004", "Delta", 150, "321K", {}),
]


async def drop_and_recreate_all_tables(database_url: str):
    storage = SQLStorage(database_url)

    async with storage.engine.begin() as conn:
        print("⚠️ Dropping all tables...")
        await conn.run_sync(Base.metadata.drop_all)
        print("✅ All tables dropped.")

    print("🔁 Recreating all tables and seeding the default admin...")
    await storage.initialize()
    print("✅ Tables recreated.")

    # 👇 Insert demo players after tables are created
    print("👤 Adding demo players...")
    for roblox_id, username, points, bounty, tiers in DEMO_PLAYERS:
        player = await storage.create_player(PlayerCreate(
            roblox_id=roblox_id,
            username=username,
            avatar_url=f"https://www.roblox.com/headshot-thumbnail/image?userId={roblox_id}&width=420&height=420",
            points=points,
            bounty=bounty,
        ))
        for category, grade in tiers.items():
            await storage.upsert_tier(TierCreate(player_id=player.id, category=category, tier=grade))
    print("✅ Demo players inserted.")

    await storage.close()


if __name__ == "__main__":
    url = os.getenv("DATABASE_URL")
    if not url:
        raise SystemExit("DATABASE_URL is not set")
    asyncio.run(drop_and_recreate_all_tables(url))
