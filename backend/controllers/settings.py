from fastapi import APIRouter, Depends

from .. import schemas
from ..dependencies import get_settings_store
from ..settings_store import SettingsStore

router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("", response_model=schemas.SettingsModel)
def read_settings(store: SettingsStore = Depends(get_settings_store)):
    return store.get()


@router.put("", response_model=schemas.SettingsModel)
def write_settings(payload: schemas.SettingsUpdate, store: SettingsStore = Depends(get_settings_store)):
    return store.update(payload)
