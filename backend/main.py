import logging
from contextlib import asynccontextmanager

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import CACHE_DIR, CACHE_VERSION, FETCH_TIMEOUT_SECONDS, FRONTEND_ORIGINS, GONG_AUDIO_URL, LOG_LEVEL, SETTINGS_FILE, SITE_URL
from .controllers import classes, offline, participants, relay, scheduled, settings
from .database import init_db
from .services.offline_cache import CacheStorage, OfflineCache, make_aiohttp_fetcher
from .services.relay import PlaybackRelay
from .settings_store import SettingsStore

logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    app.state.scheduler = AsyncIOScheduler(timezone="UTC")
    app.state.scheduler.start()
    app.state.relay = PlaybackRelay(app.state.scheduler)
    app.state.offline_cache = OfflineCache(
        CacheStorage(CACHE_DIR),
        SITE_URL,
        version=CACHE_VERSION,
        fetch=make_aiohttp_fetcher(FETCH_TIMEOUT_SECONDS),
        audio_urls=[GONG_AUDIO_URL],
    )
    app.state.offline_cache.activate()
    app.state.settings_store = SettingsStore(SETTINGS_FILE)
    logger.info("Database initialized, scheduler started.")
    yield
    app.state.scheduler.shutdown(wait=False)
    logger.info("Application shutting down.")


app = FastAPI(title="Scheduled Yoga Class Backend", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=FRONTEND_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(classes.router)
app.include_router(participants.router)
app.include_router(scheduled.router)
app.include_router(relay.router)
app.include_router(offline.router)
app.include_router(settings.router)
