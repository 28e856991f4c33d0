"""
RTDB Sweeper — Firebase RTDB store adapter.

Wraps one firebase-admin app per configured database. Every instance is
built once at startup and handed to the sweeper explicitly.
"""

import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Optional

import firebase_admin
from firebase_admin import credentials, db as firebase_db

from sweeper.config import ConfigurationError, InstanceConfig

logger = logging.getLogger(__name__)

DEFAULT_CRED_FILE = "/etc/secrets/firebase-key.json"


class StoreError(RuntimeError):
    """A read or write against the store failed."""


@dataclass(frozen=True)
class Snapshot:
    """Immutable view of one subtree as returned by a single read."""

    path: str
    value: Any

    def exists(self) -> bool:
        if self.value is None:
            return False
        if isinstance(self.value, (dict, list)):
            return any(True for _ in self.children())
        return True

    def children(self) -> Iterator[tuple[str, Any]]:
        """Immediate children in stable order. RTDB arrays are walked by index."""
        if isinstance(self.value, dict):
            for key in sorted(self.value):
                yield str(key), self.value[key]
        elif isinstance(self.value, list):
            for i, child in enumerate(self.value):
                if child is not None:
                    yield str(i), child

    def for_each(self, fn: Callable[[str, Any], None]) -> None:
        for key, value in self.children():
            fn(key, value)


def load_credential(cfg: InstanceConfig):
    """
    Resolve a service-account credential.

    Order: explicit/GOOGLE_APPLICATION_CREDENTIALS file path (default
    /etc/secrets/firebase-key.json) if it exists, then inline JSON.
    Raises ConfigurationError when neither is usable.
    """
    cred_file = cfg.cred_file or DEFAULT_CRED_FILE
    source: Any = None
    if os.path.exists(cred_file):
        source = cred_file
    elif cfg.service_account_json:
        try:
            source = json.loads(cfg.service_account_json)
        except ValueError as e:
            raise ConfigurationError(
                f"[{cfg.label}] FIREBASE_SERVICE_ACCOUNT_JSON is not valid JSON."
            ) from e

    if source is not None:
        try:
            return credentials.Certificate(source)
        except (ValueError, OSError) as e:
            raise ConfigurationError(f"[{cfg.label}] Invalid service account key: {e}") from e

    raise ConfigurationError(
        f"[{cfg.label}] No Firebase credentials found. Provide FIREBASE_CRED_FILE "
        "(or GOOGLE_APPLICATION_CREDENTIALS) to a service-account JSON path, "
        "or FIREBASE_SERVICE_ACCOUNT_JSON."
    )


class RealtimeDatabaseStore:
    """Store backed by a single Firebase Realtime Database."""

    def __init__(self, label: str, app: "firebase_admin.App"):
        self.label = label
        self._app = app

    @classmethod
    def from_config(cls, cfg: InstanceConfig) -> "RealtimeDatabaseStore":
        """Initialize (or reuse) the named firebase-admin app for ``cfg``."""
        try:
            app = firebase_admin.get_app(cfg.label)
        except ValueError:
            cred = load_credential(cfg)
            try:
                app = firebase_admin.initialize_app(
                    cred, {"databaseURL": cfg.db_url}, name=cfg.label
                )
            except ValueError as e:
                raise ConfigurationError(f"[{cfg.label}] Firebase init failed: {e}") from e
            logger.info("✅ Firebase app %s initialized (%s)", cfg.label, cfg.db_url)
        return cls(cfg.label, app)

    def get(self, path: str) -> Snapshot:
        try:
            value = firebase_db.reference(path, app=self._app).get()
        except Exception as e:
            logger.error("Firebase read %s/%s failed: %s", self.label, path, e)
            raise StoreError(f"read {path} failed: {e}") from e
        return Snapshot(path=path, value=value)

    def multi_update(self, updates: dict[str, Optional[Any]]) -> None:
        """Apply all writes in one root-level update; None deletes a path."""
        if not updates:
            return
        try:
            firebase_db.reference("/", app=self._app).update(updates)
        except Exception as e:
            logger.error(
                "Firebase multi-path update on %s (%d paths) failed: %s",
                self.label, len(updates), e,
            )
            raise StoreError(f"multi-path update failed: {e}") from e

    def is_ready(self) -> bool:
        try:
            return firebase_admin.get_app(self.label) is self._app
        except ValueError:
            return False


def init_stores(instances: list[InstanceConfig]) -> list[RealtimeDatabaseStore]:
    """Build one store per configured instance. Raises ConfigurationError."""
    return [RealtimeDatabaseStore.from_config(cfg) for cfg in instances]
