"""Background upkeep of embeddings, summaries and interest profiles.

These run after content or profile changes, off the serving path.  Each
step is independent: a failing step is logged and the remaining steps
still run.
"""

import asyncio
import logging
from collections import OrderedDict
from collections.abc import Callable
from datetime import datetime, timedelta

from .content import RECENT_CAPTIONS_LIMIT, get_moment, get_recent_captions, get_user
from .embeddings import (
    delete_moment_embedding,
    embedding_counts,
    upsert_moment_embedding,
    upsert_user_embedding,
)
from .interests import generate_and_store_interest_profile, interest_profile_count
from .scoring import ScoreCache
from .scoring.cache import utcnow
from .summaries import delete_moment_summary, generate_and_store_moment_summary

logger = logging.getLogger(__name__)


async def refresh_moment(es, ai, score_cache: ScoreCache, moment_id: str) -> dict[str, bool]:
    """Bring a moment's embedding and summary up to date with its caption.

    Cached scores for the moment are dropped so no user keeps a score
    computed for an older caption.
    """
    moment = await get_moment(es, moment_id)
    if moment is None:
        logger.info("Refresh skipped: unknown moment %s", moment_id)
        return {"embedding": False, "summary": False}

    score_cache.evict_moment(moment_id)

    status = {}
    try:
        status["embedding"] = await upsert_moment_embedding(es, ai, moment.id, moment.caption)
    except Exception:
        logger.exception("Embedding refresh failed for moment %s", moment_id)
        status["embedding"] = False
    try:
        status["summary"] = await generate_and_store_moment_summary(
            es, ai, moment.id, moment.caption
        )
    except Exception:
        logger.exception("Summary refresh failed for moment %s", moment_id)
        status["summary"] = False
    return status


async def refresh_user(es, ai, user_id: str) -> dict[str, bool]:
    """Bring a user's embedding and interest profile up to date."""
    user = await get_user(es, user_id)
    if user is None:
        logger.info("Refresh skipped: unknown user %s", user_id)
        return {"embedding": False, "interests": False}

    status = {}
    try:
        captions = await get_recent_captions(es, user_id, RECENT_CAPTIONS_LIMIT)
        status["embedding"] = await upsert_user_embedding(es, ai, user_id, user.bio, captions)
    except Exception:
        logger.exception("Embedding refresh failed for user %s", user_id)
        status["embedding"] = False
    try:
        status["interests"] = await generate_and_store_interest_profile(es, ai, user_id)
    except Exception:
        logger.exception("Interest profile refresh failed for user %s", user_id)
        status["interests"] = False
    return status


async def delete_moment_artifacts(es, score_cache: ScoreCache, moment_id: str) -> None:
    """Cascade a moment deletion to everything derived from it."""
    score_cache.evict_moment(moment_id)
    await delete_moment_embedding(es, moment_id)
    await delete_moment_summary(es, moment_id)


async def collect_stats(es, score_cache: ScoreCache) -> dict[str, int]:
    counts = await embedding_counts(es)
    return {
        "moment_embeddings": counts["moments"],
        "user_embeddings": counts["users"],
        "interest_profiles": await interest_profile_count(es),
        "cached_scores": len(score_cache),
    }


# ---------------------------------------------------------------------------
# Lazy profile creation
# ---------------------------------------------------------------------------

# Minimum gap between two refresh attempts for the same user.
PROFILE_REFRESH_COOLDOWN = timedelta(minutes=10)
MAX_TRACKED_USERS = 10_000


class ProfileRefresher:
    """Runs ``refresh_user`` in the background for viewers missing a profile.

    Serving never awaits the refresh.  A user with a refresh in flight, or
    one attempted within ``cooldown``, is not scheduled again, so a user
    without any content does not trigger work on every request.
    """

    def __init__(
        self,
        cooldown: timedelta = PROFILE_REFRESH_COOLDOWN,
        max_tracked_users: int = MAX_TRACKED_USERS,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.cooldown = cooldown
        self.max_tracked_users = max_tracked_users
        self._clock = clock
        self._tasks: dict[str, asyncio.Task] = {}
        self._last_attempt: OrderedDict[str, datetime] = OrderedDict()

    def schedule(self, es, ai, user_id: str) -> bool:
        """Start a refresh for *user_id* unless one is running or recent."""
        if user_id in self._tasks:
            return False
        now = self._clock()
        last = self._last_attempt.get(user_id)
        if last is not None and now - last < self.cooldown:
            return False

        self._last_attempt[user_id] = now
        self._last_attempt.move_to_end(user_id)
        while len(self._last_attempt) > self.max_tracked_users:
            self._last_attempt.popitem(last=False)

        task = asyncio.create_task(self._run(es, ai, user_id))
        self._tasks[user_id] = task
        task.add_done_callback(lambda _: self._tasks.pop(user_id, None))
        logger.info("Scheduled profile refresh for user %s", user_id)
        return True

    async def _run(self, es, ai, user_id: str) -> None:
        try:
            await refresh_user(es, ai, user_id)
        except Exception:
            logger.exception("Background profile refresh failed for user %s", user_id)

    def in_flight(self) -> int:
        return len(self._tasks)

    async def wait(self) -> None:
        """Wait for every scheduled refresh to finish."""
        await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)

    async def aclose(self) -> None:
        for task in list(self._tasks.values()):
            task.cancel()
        await self.wait()
