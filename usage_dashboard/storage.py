"""Durable client-side storage for the persisted part of a session.

Only the ``{token, user}`` pair survives a restart. It lives under a single
storage key, either in a JSON file on disk or in memory.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from usage_dashboard.config import STORAGE_KEY

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PersistedSession:
    token: str | None = None
    user: dict[str, Any] | None = None

    def to_payload(self) -> dict[str, Any]:
        return {"token": self.token, "user": self.user}

    @classmethod
    def from_payload(cls, payload: Any) -> "PersistedSession":
        if not isinstance(payload, dict):
            return cls()
        token = payload.get("token")
        user = payload.get("user")
        return cls(
            token=token if isinstance(token, str) and token else None,
            user=user if isinstance(user, dict) else None,
        )


class SessionStorage(ABC):
    """Persistence boundary for ``{token, user}``."""

    key: str = STORAGE_KEY

    @abstractmethod
    def load(self) -> PersistedSession:
        """Return the stored pair, or an empty one when nothing is stored."""

    @abstractmethod
    def save(self, session: PersistedSession) -> None:
        """Replace the stored pair."""

    @abstractmethod
    def clear(self) -> None:
        """Remove the stored pair."""

    def get_token(self) -> str | None:
        return self.load().token


class MemorySessionStorage(SessionStorage):
    def __init__(self, initial: PersistedSession | None = None) -> None:
        self._items: dict[str, dict[str, Any]] = {}
        if initial is not None:
            self.save(initial)

    def load(self) -> PersistedSession:
        return PersistedSession.from_payload(self._items.get(self.key))

    def save(self, session: PersistedSession) -> None:
        self._items[self.key] = session.to_payload()

    def clear(self) -> None:
        self._items.pop(self.key, None)


class FileSessionStorage(SessionStorage):
    """JSON document on disk holding the session under ``STORAGE_KEY``."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def load(self) -> PersistedSession:
        document = self._read_document()
        return PersistedSession.from_payload(document.get(self.key))

    def save(self, session: PersistedSession) -> None:
        document = self._read_document()
        document[self.key] = session.to_payload()
        self._write_document(document)

    def clear(self) -> None:
        document = self._read_document()
        if document.pop(self.key, None) is not None:
            self._write_document(document)

    def _read_document(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable session file at %s: %s", self.path, exc)
            return {}
        return raw if isinstance(raw, dict) else {}

    def _write_document(self, document: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(document), encoding="utf-8")
