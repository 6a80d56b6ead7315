"""Process-wide cache of relevance scores keyed by (user, moment).

Entries expire after a fixed TTL.  Expired entries are purged when read and
whenever the same user is written, and each user keeps at most
``max_entries_per_user`` scores, oldest dropped first.  The number of users
tracked is bounded too; the least recently used user's scores are dropped
first.  Scores are advisory, so concurrent writers simply overwrite each
other.
"""

import threading
from collections import OrderedDict
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

SCORE_CACHE_TTL = timedelta(minutes=30)
DEFAULT_MAX_USERS = 10_000
DEFAULT_MAX_ENTRIES_PER_USER = 2_000


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ScoreCacheEntry:
    user_id: str
    moment_id: str
    score: float
    cached_at: datetime


class ScoreCache:
    def __init__(
        self,
        ttl: timedelta = SCORE_CACHE_TTL,
        max_users: int = DEFAULT_MAX_USERS,
        max_entries_per_user: int = DEFAULT_MAX_ENTRIES_PER_USER,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.ttl = ttl
        self.max_users = max_users
        self.max_entries_per_user = max_entries_per_user
        self._clock = clock
        self._lock = threading.Lock()
        self._users: OrderedDict[str, dict[str, ScoreCacheEntry]] = OrderedDict()

    def now(self) -> datetime:
        return self._clock()

    def _is_fresh(self, entry: ScoreCacheEntry, now: datetime) -> bool:
        return now - entry.cached_at < self.ttl

    def get(self, user_id: str, moment_id: str) -> float | None:
        """Return the cached score, or ``None`` when absent or expired."""
        now = self.now()
        with self._lock:
            entries = self._users.get(user_id)
            if entries is None:
                return None
            entry = entries.get(moment_id)
            if entry is None:
                return None
            if not self._is_fresh(entry, now):
                del entries[moment_id]
                return None
            self._users.move_to_end(user_id)
            return entry.score

    def get_many(self, user_id: str, moment_ids: Iterable[str]) -> dict[str, float]:
        """Return fresh cached scores for whichever of *moment_ids* have one."""
        found: dict[str, float] = {}
        for moment_id in moment_ids:
            score = self.get(user_id, moment_id)
            if score is not None:
                found[moment_id] = score
        return found

    def set(self, user_id: str, moment_id: str, score: float) -> None:
        self.set_many(user_id, {moment_id: score})

    def set_many(self, user_id: str, scores: dict[str, float]) -> None:
        if not scores:
            return
        now = self.now()
        with self._lock:
            entries = self._users.setdefault(user_id, {})
            for moment_id in [m for m, e in entries.items() if not self._is_fresh(e, now)]:
                del entries[moment_id]
            for moment_id, score in scores.items():
                # Re-insert so dict order stays oldest-write first.
                entries.pop(moment_id, None)
                entries[moment_id] = ScoreCacheEntry(user_id, moment_id, score, now)
            while len(entries) > self.max_entries_per_user:
                del entries[next(iter(entries))]
            self._users.move_to_end(user_id)
            while len(self._users) > self.max_users:
                self._users.popitem(last=False)

    def clear_user(self, user_id: str) -> None:
        with self._lock:
            self._users.pop(user_id, None)

    def clear_all(self) -> None:
        with self._lock:
            self._users.clear()

    def evict_moment(self, moment_id: str) -> None:
        """Drop every user's cached score for one moment."""
        with self._lock:
            for entries in self._users.values():
                entries.pop(moment_id, None)

    def __len__(self) -> int:
        with self._lock:
            return sum(len(entries) for entries in self._users.values())
