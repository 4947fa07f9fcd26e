"""
Storage module.

Exports the session store and the upload object store.
"""

from storage.session_store import (
    SessionStore,
    InMemorySessionStore,
    SessionTransaction,
)
from storage.object_store import (
    ObjectStore,
    LocalObjectStore,
    safe_filename,
)

__all__ = [
    "SessionStore",
    "InMemorySessionStore",
    "SessionTransaction",
    "ObjectStore",
    "LocalObjectStore",
    "safe_filename",
]
