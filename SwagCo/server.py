# server.py
import logging

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# --- Load .env file ---
# Used for local development. In production variables are set directly.
load_dotenv()

# --- Logging Configuration ---
logging.basicConfig(
    level=logging.INFO,
    format="[%(asctime)s] [%(levelname)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
log = logging.getLogger(__name__)

from settings import settings  # noqa: E402
from db import Base, engine  # noqa: E402
import models  # noqa: E402,F401  (registers tables on Base.metadata)
from artwork import router as artwork_router  # noqa: E402
from campaigns import router as campaigns_router  # noqa: E402
from discounts import router as discounts_router  # noqa: E402
from drafts import router as drafts_router  # noqa: E402
from garments import router as garments_router  # noqa: E402
from orders import router as orders_router  # noqa: E402
from quotes import router as quotes_router  # noqa: E402

# --- App Initialization ---
app = FastAPI(
    title=f"{settings.PROJECT_NAME} API",
    description="Storefront API: catalog, quotes, discounts, orders, payments, artwork, campaigns and drafts.",
    version="1.0.0",
)

# --- CORS Middleware ---
origins = [origin.strip() for origin in settings.CORS_ORIGINS.split(",") if origin.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Database Startup Event ---
@app.on_event("startup")
async def on_startup():
    """Create database tables on startup."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    log.info("Database tables verified/created.")


# --- Routers ---
# Every router is mounted under /api, e.g. /api/quote, /api/artwork/generate
for router in (
    garments_router, quotes_router, discounts_router, orders_router,
    artwork_router, campaigns_router, drafts_router,
):
    app.include_router(router, prefix=settings.API_PREFIX)


@app.get("/health", tags=["Health"])
async def health():
    return {"status": "ok", "service": settings.PROJECT_NAME}
