import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from .. import schemas
from ..database import get_db
from ..dependencies import get_offline_cache
from ..services import yoga_service
from ..services.offline_cache import CacheRequest, DisallowedOrigin, OfflineCache

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/offline", tags=["offline"])


def _known_audio_urls(db: Session) -> List[str]:
    urls = [t.audio_url for t in yoga_service.fetch_class_types(db)]
    return urls + yoga_service.fetch_posture_audio_urls(db)


@router.get("/fetch")
async def cached_fetch(
    url: str = Query(..., min_length=1),
    mode: str = Query("no-cors"),
    accept: Optional[str] = Header(None),
    cache: OfflineCache = Depends(get_offline_cache),
    db: Session = Depends(get_db),
):
    """Only the site itself and the hosts serving class audio can be fetched."""
    cache.allow_origins(_known_audio_urls(db))
    try:
        result = await cache.handle(CacheRequest(url, mode=mode, accept=accept))
    except DisallowedOrigin as e:
        logger.warning("%s", e)
        raise HTTPException(status_code=400, detail="URL is not served by this site")
    headers = {k: v for k, v in result.headers.items() if k != "content-type"}
    headers["X-Cache-Source"] = result.source
    return Response(
        content=result.body,
        status_code=result.status,
        media_type=result.content_type,
        headers=headers,
    )


@router.post("/install", response_model=schemas.CacheLifecycleOut)
async def install_cache(
    cache: OfflineCache = Depends(get_offline_cache),
    db: Session = Depends(get_db),
):
    audio_urls = _known_audio_urls(db)
    cached = await cache.install(audio_urls)
    return schemas.CacheLifecycleOut(caches=cache.cache_names, cached_urls=cached)


@router.post("/activate", response_model=schemas.CacheLifecycleOut)
def activate_cache(cache: OfflineCache = Depends(get_offline_cache)):
    removed = cache.activate()
    return schemas.CacheLifecycleOut(caches=cache.cache_names, removed=removed)
