import json
import logging
import threading
from pathlib import Path

from pydantic import ValidationError

from .schemas import SettingsModel, SettingsUpdate

logger = logging.getLogger(__name__)


class SettingsStore:
    """
    Language and audio-player preferences, persisted as a JSON file and handed
    to request handlers through a dependency.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = threading.Lock()
        self._settings = self._load()

    def _load(self) -> SettingsModel:
        if not self.path.exists():
            return SettingsModel()
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return SettingsModel.model_validate(json.load(f))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning("Ignoring unreadable settings file %s: %s", self.path, e)
            return SettingsModel()

    def get(self) -> SettingsModel:
        return self._settings.model_copy(deep=True)

    def update(self, changes: SettingsUpdate) -> SettingsModel:
        with self._lock:
            data = self._settings.model_dump()
            updates = changes.model_dump(exclude_unset=True, exclude_none=True)
            audio = updates.pop("audio", None)
            data.update(updates)
            if audio:
                data["audio"].update(audio)
            self._settings = SettingsModel.model_validate(data)
            self._save()
        return self.get()

    def _save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(self._settings.model_dump(), f, indent=4)
