"""Read access to moments and user profiles stored in Elasticsearch.

The relational source of truth is owned by the surrounding application;
this module only reads the ``moments`` and ``users`` indices it keeps in
sync.
"""

import logging

from ..models import Moment, UserProfile
from .elasticsearch import MOMENTS_INDEX, USERS_INDEX, find_by_id, hit_sources

logger = logging.getLogger(__name__)

# Largest pool pulled for a single feed or explore request.
DEFAULT_POOL_SIZE = 200

# How many recent captions describe a user's profile.
RECENT_CAPTIONS_LIMIT = 10


def moment_from_source(src: dict) -> Moment:
    return Moment(
        id=src["moment_id"],
        user_id=src["user_id"],
        caption=src.get("caption"),
        type=src.get("type") or "image",
        created_at=src["created_at"],
        author_display_name=src.get("author_display_name"),
    )


async def list_moments(es, limit: int = DEFAULT_POOL_SIZE) -> list[Moment]:
    """Return the newest moments, most recent first."""
    resp = await es.search(
        index=MOMENTS_INDEX,
        query={"match_all": {}},
        size=limit,
        sort=[{"created_at": "desc"}],
    )
    moments: list[Moment] = []
    for src in hit_sources(resp):
        try:
            moments.append(moment_from_source(src))
        except (KeyError, ValueError):
            logger.warning("Skipping malformed moment document: %s", src.get("moment_id"))
    return moments


async def get_moment(es, moment_id: str) -> Moment | None:
    src = await find_by_id(es, MOMENTS_INDEX, moment_id)
    if src is None:
        return None
    return moment_from_source(src)


async def get_user(es, user_id: str) -> UserProfile | None:
    src = await find_by_id(es, USERS_INDEX, user_id)
    if src is None:
        return None
    return UserProfile(
        id=src.get("user_id") or user_id,
        display_name=src.get("display_name"),
        bio=src.get("bio"),
    )


async def get_recent_captions(
    es,
    user_id: str,
    n: int = RECENT_CAPTIONS_LIMIT,
) -> list[str]:
    """Return up to *n* non-empty captions of the user's newest moments."""
    resp = await es.search(
        index=MOMENTS_INDEX,
        query={"bool": {"filter": [{"term": {"user_id": user_id}}]}},
        size=n * 2,
        sort=[{"created_at": "desc"}],
        _source=["caption"],
    )
    captions = [src.get("caption") for src in hit_sources(resp)]
    return [c for c in captions if c and c.strip()][:n]
