"""
Snapshot Cache of directory candidates.

Responsibilities:
- Keep one bounded listing of staff users per process so a bulk import
  does not list the whole directory for every row.
- Refresh the listing when it is empty, older than 60 seconds, or was
  captured from a different directory source or for a different branch.

Non-Responsibilities:
- No scoring.
- No substring lookups.
- No ownership of a directory: callers pass theirs on every read.

Invariant:
The (users, captured_at, source, scope) snapshot is replaced as a whole,
by one reference assignment. Directory I/O never happens under the lock.
"""

import threading
import time
from dataclasses import dataclass
from typing import Callable, Hashable, Optional, Tuple

from recaptacion.logger import get_logger
from storage.repositories.users import CandidateUser, UserDirectory

logger = get_logger()

STALENESS_SECONDS = 60.0
SNAPSHOT_LIMIT = 1000


@dataclass(frozen=True)
class Snapshot:
    users: Tuple[CandidateUser, ...]
    captured_at: float
    scope: Optional[int]
    source: Hashable = None


def source_key(directory: UserDirectory) -> Hashable:
    """
    Identity of the data behind a directory.

    Directories exposing ``source_key`` (the SQL one returns its database
    URL) share snapshots across instances; others are keyed by identity.
    """
    key = getattr(directory, "source_key", None)
    return key if key is not None else ("instance", id(directory))


class SnapshotCache:
    def __init__(
        self,
        directory: Optional[UserDirectory] = None,
        clock: Callable[[], float] = time.monotonic,
        staleness: float = STALENESS_SECONDS,
        limit: int = SNAPSHOT_LIMIT,
    ):
        self.default_directory = directory
        self.clock = clock
        self.staleness = staleness
        self.limit = limit
        self._snapshot: Optional[Snapshot] = None
        self._lock = threading.Lock()

    @property
    def snapshot(self) -> Optional[Snapshot]:
        return self._snapshot

    def _is_fresh(self, snap: Optional[Snapshot], source: Hashable, scope: Optional[int], now: float) -> bool:
        return (
            snap is not None
            and len(snap.users) > 0
            and snap.source == source
            and snap.scope == scope
            and now - snap.captured_at < self.staleness
        )

    def get(
        self,
        scope: Optional[int] = None,
        directory: Optional[UserDirectory] = None,
    ) -> Tuple[CandidateUser, ...]:
        """
        Return the candidate users for scope, refetching when stale.

        Args:
            scope: Optional branch (local_id) filter
            directory: Directory to list on refresh (default: the one
                given at construction)

        Returns:
            Tuple of CandidateUser ordered by id ascending
        """
        directory = directory if directory is not None else self.default_directory
        if directory is None:
            raise ValueError("SnapshotCache.get needs a directory")
        source = source_key(directory)

        snap = self._snapshot
        now = self.clock()
        if self._is_fresh(snap, source, scope, now):
            return snap.users

        logger.record_directory_query()
        users = tuple(directory.list_all(scope=scope, limit=self.limit))
        fresh = Snapshot(users=users, captured_at=now, scope=scope, source=source)
        with self._lock:
            self._snapshot = fresh
        logger.record_snapshot_refresh()
        logger.debug("User snapshot refreshed", scope=scope, users=len(users))
        return users

    def invalidate(self) -> None:
        with self._lock:
            self._snapshot = None


_global_cache: Optional[SnapshotCache] = None
_global_lock = threading.Lock()


def get_snapshot_cache() -> SnapshotCache:
    """
    Get or create the process-wide snapshot cache.

    It holds no directory; resolvers pass their own on every read, so
    concurrent imports never share a session.
    """
    global _global_cache

    with _global_lock:
        if _global_cache is None:
            _global_cache = SnapshotCache()
        return _global_cache


def reset_snapshot_cache():
    """Drop the process-wide cache (useful for testing)."""
    global _global_cache
    _global_cache = None
