from fastapi import Request
from starlette.requests import HTTPConnection

from .services.offline_cache import OfflineCache
from .services.relay import PlaybackRelay
from .settings_store import SettingsStore


def get_relay(connection: HTTPConnection) -> PlaybackRelay:
    # HTTPConnection so the getter also resolves for WebSocket routes
    return connection.app.state.relay


def get_offline_cache(request: Request) -> OfflineCache:
    return request.app.state.offline_cache


def get_settings_store(request: Request) -> SettingsStore:
    return request.app.state.settings_store
