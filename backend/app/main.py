import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings
from app.core.database import async_session, check_connection
from app.api.routes.marketplace import router as marketplace_router
from app.api.routes.users import router as users_router
from app.services.cache import CacheService
from app.services.chain import ChainReader
from app.services.store import ReconciliationStore
from app.services.sync import DriftSweeper, SyncController

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: chain client, mirror store, sync controller
    chain = ChainReader.from_settings(settings)
    await chain.connect()

    store = ReconciliationStore(async_session)
    controller = SyncController(chain, store, platform_fee_bps=settings.PLATFORM_FEE_BPS)

    app.state.chain = chain
    app.state.store = store
    app.state.controller = controller

    sweeper = None
    if settings.HEAL_SWEEP_INTERVAL_SEC > 0:
        sweeper = DriftSweeper(
            controller,
            interval=settings.HEAL_SWEEP_INTERVAL_SEC,
            batch_size=settings.HEAL_SWEEP_BATCH,
        )
        await sweeper.start()

    yield

    # Shutdown
    if sweeper is not None:
        await sweeper.stop()
    await chain.close()
    await CacheService.close()


app = FastAPI(title=settings.PROJECT_NAME, debug=settings.DEBUG, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(marketplace_router, prefix="/api/v1")
app.include_router(users_router, prefix="/api/v1")


@app.get("/health")
async def health():
    db_status = await check_connection()

    chain = getattr(app.state, "chain", None)
    chain_ready = chain is not None and chain.is_ready

    return {
        "status": "ok" if db_status == "connected" and chain_ready else "degraded",
        "db": db_status,
        "chain": "ready" if chain_ready else "unavailable",
        "cache": "connected" if await CacheService.health_check() else "unavailable",
    }
