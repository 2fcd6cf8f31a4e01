from fastapi import FastAPI, Depends, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from typing import List, Optional
import uvicorn
import logging
import os
from dotenv import load_dotenv

# ✅ Load environment variables
load_dotenv()

# ✅ Initialize FastAPI app with redirect_slashes=False to avoid automatic redirects
app = FastAPI(title="Tier List API", redirect_slashes=False)

# ✅ Allow all hosts (or specify your own domain)
app.add_middleware(TrustedHostMiddleware, allowed_hosts=["*"])

# ✅ Import internal modules
from tierlist.auth import router as auth_router
from tierlist.notifications import dispatcher
from tierlist.ranking import format_rank, rank_players
from tierlist.routers.admins import router as admins_router
from tierlist.routers.players import parse_category, router as players_router
from tierlist.routers.tiers import router as tiers_router
from tierlist.schemas import RankedPlayer
from tierlist.storage import Storage, StorageError, get_storage

# ✅ Configure logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# ✅ CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("CORS_ORIGINS", "*").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ✅ Error handling
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"detail": "Invalid request data", "errors": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(StorageError)
async def storage_exception_handler(request: Request, exc: StorageError):
    logger.error(f"Storage failure on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Internal Server Error"})


# ✅ Health check
@app.get("/")
async def home():
    return {"message": "Tier List API is running!"}


# ✅ Initialize storage and start the webhook dispatcher on startup
@app.on_event("startup")
async def startup():
    get_storage().start()
    dispatcher.start()


@app.on_event("shutdown")
async def shutdown():
    await dispatcher.stop()
    await get_storage().close()


# ✅ Rankings endpoint
@app.get("/rankings", response_model=List[RankedPlayer])
async def get_rankings(category: Optional[str] = None, storage: Storage = Depends(get_storage)):
    entries = await storage.get_players_with_tiers(parse_category(category))
    return [
        {"rank": rank, "rank_label": format_rank(rank), "player": e.player, "tiers": e.tiers}
        for rank, e in rank_players(entries)
    ]


# ✅ Register routers
app.include_router(players_router, prefix="/players", tags=["Players"])
app.include_router(tiers_router, prefix="/tiers", tags=["Tiers"])
app.include_router(admins_router, tags=["Admin"])
app.include_router(auth_router, tags=["Auth"])

# ✅ Uvicorn entry point with proxy headers enabled
if __name__ == "__main__":
    # Optional: Allow from specific IP or set via environment variable
    forwarded_ips = os.getenv("FORWARDED_ALLOW_IPS", "*")

    uvicorn.run(
        "tierlist.main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", 8080)),
        proxy_headers=True,           # ✅ Trust proxy headers
        forwarded_allow_ips=forwarded_ips,  # ✅ Accept X-Forwarded-* headers
    )
