"""Saved-but-not-submitted stage form data kept in a local key-value store."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Protocol

from nalevel.onboarding.stages import OnboardingStage

logger = logging.getLogger(__name__)

DRAFTS_KEY = "onboarding-drafts"


class _NoDraft:
    """Sentinel type returned when a stage has no saved draft."""

    _instance: "_NoDraft | None" = None

    def __new__(cls) -> "_NoDraft":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NO_DRAFT"


NO_DRAFT = _NoDraft()


class KeyValueStore(Protocol):
    """String key-value storage scoped to one device or session."""

    def get_item(self, key: str) -> str | None:
        ...

    def set_item(self, key: str, value: str) -> None:
        ...


class MemoryKeyValueStore:
    """In-process key-value store."""

    def __init__(self) -> None:
        self._items: dict[str, str] = {}

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value


class FileKeyValueStore:
    """Key-value store persisted as a single JSON object on disk."""

    def __init__(self, path: Path) -> None:
        self._path = path

    def _read_all(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable key-value file %s: %s", self._path, exc)
            return {}
        if not isinstance(payload, dict):
            return {}
        return {str(key): value for key, value in payload.items() if isinstance(value, str)}

    def get_item(self, key: str) -> str | None:
        return self._read_all().get(key)

    def set_item(self, key: str, value: str) -> None:
        items = self._read_all()
        items[key] = value
        self._path.parent.mkdir(parents=True, exist_ok=True)
        staging = self._path.with_name(self._path.name + ".tmp")
        staging.write_text(json.dumps(items, ensure_ascii=False, indent=2), encoding="utf-8")
        staging.replace(self._path)


class DraftStore:
    """Reads and writes per-stage drafts under a single storage key."""

    def __init__(self, storage: KeyValueStore, key: str = DRAFTS_KEY) -> None:
        self._storage = storage
        self._key = key

    def _read(self) -> Dict[str, Any]:
        raw = self._storage.get_item(self._key)
        if not raw:
            return {}
        try:
            drafts = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Draft storage under %r is corrupt; treating it as empty.", self._key)
            return {}
        if not isinstance(drafts, dict):
            logger.warning("Draft storage under %r is not an object; treating it as empty.", self._key)
            return {}
        return drafts

    def _write(self, drafts: Dict[str, Any]) -> None:
        self._storage.set_item(self._key, json.dumps(drafts, ensure_ascii=False, default=str))

    def save_draft(self, stage: OnboardingStage, data: Any) -> None:
        """Store ``data`` for ``stage`` without touching other stages' drafts."""

        drafts = self._read()
        drafts[OnboardingStage(stage).value] = data
        self._write(drafts)

    def load_draft(self, stage: OnboardingStage) -> Any:
        """Return the saved draft for ``stage`` or ``NO_DRAFT``."""

        drafts = self._read()
        key = OnboardingStage(stage).value
        if key not in drafts:
            return NO_DRAFT
        return drafts[key]

    def clear_draft(self, stage: OnboardingStage) -> None:
        drafts = self._read()
        key = OnboardingStage(stage).value
        if key in drafts:
            del drafts[key]
            self._write(drafts)
