"""Storage backend strategies, selected by ``STORAGE_BACKEND``.

Usage:
    backend = create_backend(app.config)
"""

from prosync.services.backends.base import COLLECTIONS, StorageBackend
from prosync.services.backends.local import LocalJSONBackend
from prosync.services.backends.relational import RelationalBackend

BACKENDS = {
    LocalJSONBackend.name: LocalJSONBackend,
    RelationalBackend.name: RelationalBackend,
}


def create_backend(config) -> StorageBackend:
    """Build the backend named by ``config["STORAGE_BACKEND"]``."""
    name = (config.get("STORAGE_BACKEND") or "local").lower()
    if name == LocalJSONBackend.name:
        return LocalJSONBackend(config["LOCAL_STORE_DIR"])
    if name == RelationalBackend.name:
        return RelationalBackend()
    raise RuntimeError(f"Unknown STORAGE_BACKEND {name!r}; expected one of {sorted(BACKENDS)}")


__all__ = ["BACKENDS", "COLLECTIONS", "StorageBackend", "create_backend"]
