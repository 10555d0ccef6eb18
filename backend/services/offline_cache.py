"""
Offline asset cache.

Serves previously fetched pages, static bundle assets and audio when the
upstream site is unreachable. Three named caches (static, audio, pages) are
versioned by a suffix; activating a new version removes every other cache.
"""
import asyncio
import hashlib
import json
import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Awaitable, Callable, Dict, Iterable, List, Optional
from urllib.parse import urljoin, urlparse

import aiofiles
import aiohttp

logger = logging.getLogger(__name__)

PRACTICE_PATH = "/yoga/bikram-26/practice"
OFFLINE_PATH = "/offline"

SHELL_PAGES = ["/", PRACTICE_PATH, OFFLINE_PATH]
SHELL_ASSETS = ["/manifest.json", "/icon-192x192.png", "/icon-512x512.png", "/apple-touch-icon.png"]

AUDIO_EXTENSIONS = (".mp3", ".wav")
AUDIO_PATH_MARKERS = ("/posture-audio/", "/posture_audio/")
STATIC_PREFIX = "/_next/static/"
DATA_PREFIXES = ("/api/", "/rest/v1/")

# headers that describe the transfer rather than the content
KEPT_HEADERS = ("content-type", "cache-control", "etag", "last-modified")

OFFLINE_HTML = (
    b"<!DOCTYPE html><html><head><title>Offline</title></head>"
    b"<body><h1>You are offline</h1>"
    b"<p>This page is not available offline. Please reconnect and try again.</p>"
    b"</body></html>"
)
EMPTY_DATA_PAYLOAD = json.dumps({"data": [], "offline": True}).encode("utf-8")


class NetworkError(Exception):
    pass


class DisallowedOrigin(ValueError):
    pass


def origin_of(url: str) -> str:
    parsed = urlparse(url)
    return f"{parsed.scheme.lower()}://{parsed.netloc.lower()}"


@dataclass
class CacheRequest:
    url: str
    mode: str = "no-cors"
    accept: Optional[str] = None

    @property
    def path(self) -> str:
        return urlparse(self.url).path

    @property
    def is_navigation(self) -> bool:
        return self.mode == "navigate"


@dataclass
class CachedResponse:
    status: int
    body: bytes
    headers: Dict[str, str] = field(default_factory=dict)
    source: str = "network"

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def content_type(self) -> Optional[str]:
        return self.headers.get("content-type")


Fetcher = Callable[[CacheRequest], Awaitable[CachedResponse]]


def make_aiohttp_fetcher(timeout: float = 10.0) -> Fetcher:
    async def fetch(request: CacheRequest) -> CachedResponse:
        headers = {"Accept": request.accept} if request.accept else {}
        try:
            async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=timeout)) as session:
                async with session.get(request.url, headers=headers) as resp:
                    body = await resp.read()
                    kept = {k.lower(): v for k, v in resp.headers.items() if k.lower() in KEPT_HEADERS}
                    return CachedResponse(resp.status, body, kept)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise NetworkError(f"{request.url}: {e}") from e

    return fetch


class CacheStorage:
    """One directory per named cache, one meta/body file pair per URL."""

    def __init__(self, root: Path):
        self.root = Path(root)

    def _entry(self, cache_name: str, url: str) -> Path:
        digest = hashlib.sha256(url.encode("utf-8")).hexdigest()
        return self.root / cache_name / digest

    def keys(self) -> List[str]:
        if not self.root.exists():
            return []
        return sorted(p.name for p in self.root.iterdir() if p.is_dir())

    def delete(self, cache_name: str) -> bool:
        path = self.root / cache_name
        if not path.exists():
            return False
        shutil.rmtree(path)
        return True

    async def put(self, cache_name: str, url: str, response: CachedResponse) -> None:
        entry = self._entry(cache_name, url)
        entry.parent.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(entry.with_suffix(".body"), "wb") as f:
            await f.write(response.body)
        meta = {"url": url, "status": response.status, "headers": response.headers}
        async with aiofiles.open(entry.with_suffix(".json"), "w") as f:
            await f.write(json.dumps(meta))

    async def match(self, cache_name: str, url: str) -> Optional[CachedResponse]:
        entry = self._entry(cache_name, url)
        meta_path = entry.with_suffix(".json")
        body_path = entry.with_suffix(".body")
        if not meta_path.exists() or not body_path.exists():
            return None
        async with aiofiles.open(meta_path, "r") as f:
            meta = json.loads(await f.read())
        async with aiofiles.open(body_path, "rb") as f:
            body = await f.read()
        return CachedResponse(meta["status"], body, meta.get("headers", {}), source="cache")

    async def match_any(self, url: str, cache_names: Iterable[str]) -> Optional[CachedResponse]:
        for name in cache_names:
            cached = await self.match(name, url)
            if cached is not None:
                return cached
        return None


class OfflineCache:
    def __init__(
        self,
        storage: CacheStorage,
        site_url: str,
        version: str = "v1",
        fetch: Optional[Fetcher] = None,
        audio_urls: Iterable[str] = (),
    ):
        self.storage = storage
        self.site_url = site_url.rstrip("/")
        self.version = version
        self.fetch = fetch or make_aiohttp_fetcher()
        self.audio_urls = list(audio_urls)
        self.allowed_origins = {origin_of(self.site_url)}
        self.allow_origins(self.audio_urls)
        self.static_cache = f"yoga-static-{version}"
        self.audio_cache = f"yoga-audio-{version}"
        self.pages_cache = f"yoga-pages-{version}"

    @property
    def cache_names(self) -> List[str]:
        return [self.static_cache, self.audio_cache, self.pages_cache]

    def resolve(self, url: str) -> str:
        if url.startswith("/"):
            return urljoin(self.site_url + "/", url.lstrip("/"))
        return url

    def allow_origins(self, urls: Iterable[str]) -> None:
        for url in urls:
            if url and not url.startswith("/"):
                self.allowed_origins.add(origin_of(url))

    def is_allowed(self, url: str) -> bool:
        return origin_of(self.resolve(url)) in self.allowed_origins

    def classify(self, request: CacheRequest) -> str:
        path = request.path.lower()
        if path.endswith(AUDIO_EXTENSIONS) or any(marker in path for marker in AUDIO_PATH_MARKERS):
            return "audio"
        if path.startswith(STATIC_PREFIX):
            return "static"
        if request.is_navigation:
            return "navigation"
        if path.startswith(DATA_PREFIXES) or "application/json" in (request.accept or ""):
            return "data"
        return "other"

    async def install(self, extra_audio_urls: Iterable[str] = ()) -> List[str]:
        """Pre-cache the app shell and known audio. Failed URLs are skipped."""
        extra_audio_urls = list(extra_audio_urls)
        self.allow_origins(extra_audio_urls)
        targets = [(self.pages_cache, self.resolve(p), "navigate") for p in SHELL_PAGES]
        targets += [(self.static_cache, self.resolve(p), "no-cors") for p in SHELL_ASSETS]
        for url in self.audio_urls + extra_audio_urls:
            targets.append((self.audio_cache, self.resolve(url), "no-cors"))

        cached = []
        for cache_name, url, mode in targets:
            try:
                response = await self.fetch(CacheRequest(url, mode=mode))
            except NetworkError as e:
                logger.warning("Pre-cache failed for %s: %s", url, e)
                continue
            if not response.ok:
                logger.warning("Pre-cache got %s for %s", response.status, url)
                continue
            await self.storage.put(cache_name, url, response)
            cached.append(url)
        logger.info("Installed %d of %d offline assets", len(cached), len(targets))
        return cached

    def activate(self) -> List[str]:
        removed = []
        for name in self.storage.keys():
            if name not in self.cache_names:
                self.storage.delete(name)
                removed.append(name)
        if removed:
            logger.info("Removed stale caches: %s", ", ".join(removed))
        return removed

    async def handle(self, request: CacheRequest) -> CachedResponse:
        if not self.is_allowed(request.url):
            raise DisallowedOrigin(f"Refusing to fetch {request.url}: origin is not the site or a known audio host")
        request = CacheRequest(self.resolve(request.url), request.mode, request.accept)
        kind = self.classify(request)
        if kind == "audio":
            return await self._audio(request)
        if kind == "static":
            return await self._cache_first(self.static_cache, request)
        if kind == "navigation":
            return await self._navigation(request)
        if kind == "data":
            return await self._data(request)
        return await self._default(request)

    async def _audio(self, request: CacheRequest) -> CachedResponse:
        cached = await self.storage.match(self.audio_cache, request.url)
        if cached is not None:
            return cached
        try:
            response = await self.fetch(request)
        except NetworkError as e:
            logger.warning("Audio unavailable offline: %s", e)
            return CachedResponse(503, b"Audio not available offline", {"content-type": "text/plain"}, "offline")
        if response.ok:
            await self.storage.put(self.audio_cache, request.url, response)
        return response

    async def _cache_first(self, cache_name: str, request: CacheRequest) -> CachedResponse:
        cached = await self.storage.match(cache_name, request.url)
        if cached is not None:
            return cached
        try:
            response = await self.fetch(request)
        except NetworkError as e:
            logger.warning("Static asset unavailable offline: %s", e)
            return CachedResponse(503, b"", {}, "offline")
        if response.ok:
            await self.storage.put(cache_name, request.url, response)
        return response

    async def _navigation(self, request: CacheRequest) -> CachedResponse:
        try:
            response = await self.fetch(request)
        except NetworkError as e:
            logger.info("Navigation offline, falling back to cache: %s", e)
        else:
            if response.ok:
                await self.storage.put(self.pages_cache, request.url, response)
            return response

        cached = await self.storage.match(self.pages_cache, request.url)
        if cached is not None:
            return cached
        if request.path.startswith(PRACTICE_PATH):
            cached = await self.storage.match(self.pages_cache, self.resolve(PRACTICE_PATH))
            if cached is not None:
                return cached
        cached = await self.storage.match(self.pages_cache, self.resolve(OFFLINE_PATH))
        if cached is not None:
            return cached
        return CachedResponse(503, OFFLINE_HTML, {"content-type": "text/html; charset=utf-8"}, "offline")

    async def _data(self, request: CacheRequest) -> CachedResponse:
        try:
            response = await self.fetch(request)
        except NetworkError as e:
            logger.info("Data request offline: %s", e)
        else:
            if response.ok:
                await self.storage.put(self.pages_cache, request.url, response)
            return response

        cached = await self.storage.match(self.pages_cache, request.url)
        if cached is not None:
            return cached
        return CachedResponse(200, EMPTY_DATA_PAYLOAD, {"content-type": "application/json"}, "offline")

    async def _default(self, request: CacheRequest) -> CachedResponse:
        cached = await self.storage.match_any(request.url, self.cache_names)
        if cached is not None:
            return cached
        try:
            response = await self.fetch(request)
        except NetworkError as e:
            logger.warning("Request failed offline: %s", e)
            return CachedResponse(503, b"", {}, "offline")
        if response.status == 200:
            await self.storage.put(self.static_cache, request.url, response)
        return response
