from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from ..db.upsert import batch_upsert
from ..models.settings import SETTING_DESCRIPTIONS, Settings
from ..storage.local_store import LocalStore

"""Explicit context objects: operator settings and the cached identity session.

Both are created once per CLI run and passed to the services that need them.
``SettingsContext.reload`` re-reads the backend on demand; an identity session
ends with ``sign_out``.
"""

__all__ = [
    "SESSION_KEY",
    "SettingsContext",
    "SettingsSaveError",
    "IdentitySession",
]

logger = logging.getLogger(__name__)

SESSION_KEY = "google_user"


class SettingsSaveError(Exception):
    pass


class SettingsContext:
    """Current settings, starting from defaults and refreshed from the ``settings`` table."""

    def __init__(self, defaults: Settings | None = None) -> None:
        self._defaults = defaults or Settings()
        self.settings = self._defaults

    @property
    def threshold(self) -> int:
        return self.settings.CRITICAL_DAYS_THRESHOLD

    def reload(self, cursor: Any) -> Settings:
        """Re-read settings; on backend failure fall back to defaults."""
        try:
            cursor.execute("SELECT key, value FROM settings")
            rows = cursor.fetchall()
        except Exception as e:
            logger.warning("could not load settings, using defaults: %s", e)
            self.settings = self._defaults
            return self.settings
        self.settings = self._defaults.merged({k: v for k, v in rows})
        return self.settings

    def save(self, cursor: Any, changes: dict[str, Any]) -> Settings:
        """Upsert the changed keys (with descriptions) in one transaction.

        Raises:
            SettingsSaveError: unknown key or backend failure
        """
        unknown = sorted(set(changes) - set(Settings.keys()))
        if unknown:
            raise SettingsSaveError(f"unknown settings: {unknown}")
        rows = [
            (key, "" if value is None else str(value), SETTING_DESCRIPTIONS.get(key, ""))
            for key, value in changes.items()
        ]
        try:
            cursor.execute("BEGIN")
            batch_upsert(cursor, "settings", ["key", "value", "description"], rows, conflict_columns=["key"])
            cursor.execute("COMMIT")
        except Exception as e:
            try:
                cursor.execute("ROLLBACK")
            except Exception as rollback_e:
                logger.debug("rollback failed: %s", rollback_e)
            raise SettingsSaveError(f"error saving settings: {e}") from e
        self.settings = self.settings.merged(changes)
        return self.settings


@dataclass(frozen=True)
class IdentitySession:
    """Signed-in operator restored from the cached identity record."""
    access_token: str
    user_id: str | None = None
    email: str | None = None
    name: str | None = None
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def restore(cls, store: LocalStore) -> IdentitySession | None:
        """Session from the ``google_user`` key, or None without an access token."""
        data = store.get_json(SESSION_KEY)
        if not isinstance(data, dict):
            return None
        token = data.get("access_token")
        if not token:
            return None
        return cls(
            access_token=str(token),
            user_id=data.get("id"),
            email=data.get("email"),
            name=data.get("name"),
            raw=data,
        )

    @staticmethod
    def sign_out(store: LocalStore) -> bool:
        return store.remove(SESSION_KEY)
