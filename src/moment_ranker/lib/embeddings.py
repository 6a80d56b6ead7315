"""Embedding cache for moments and user profiles.

One vector is kept per moment and one per user, each stored with the hash
of the text it was computed from.  An upsert whose text hashes to the
stored value returns immediately without calling the embedding service;
a failed or empty embedding leaves the stored document untouched.
"""

import logging
from datetime import datetime, timezone

from .elasticsearch import (
    MOMENT_EMBEDDINGS_INDEX,
    USER_EMBEDDINGS_INDEX,
    find_by_id,
    hit_count,
)
from .hashing import content_hash

logger = logging.getLogger(__name__)

# How many recent captions take part in a user's profile text.
PROFILE_CAPTIONS_LIMIT = 10

PROFILE_SEPARATOR = " | "


def build_user_profile_text(bio: str | None, recent_captions: list[str]) -> str:
    """Concatenate bio and up to ten recent captions into one profile text."""
    parts = [bio or ""] + [c for c in recent_captions if c][:PROFILE_CAPTIONS_LIMIT]
    return PROFILE_SEPARATOR.join(p for p in parts if p)


async def _upsert_vector(
    es,
    ai,
    index: str,
    doc_id: str,
    text: str,
    id_field: str,
    hash_field: str,
) -> bool:
    text_hash = content_hash(text)

    existing = await find_by_id(es, index, doc_id)
    if existing is not None and existing.get(hash_field) == text_hash:
        return True

    vector = await ai.embed(text)
    if not vector:
        logger.warning("No embedding returned for %s %s; keeping stored vector", index, doc_id)
        return False

    await es.index(
        index=index,
        id=doc_id,
        document={
            id_field: doc_id,
            "vector": vector,
            hash_field: text_hash,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        },
    )
    return True


async def upsert_moment_embedding(es, ai, moment_id: str, caption: str | None) -> bool:
    """Store the caption embedding for a moment unless it is already current."""
    if not caption or not caption.strip():
        return False
    return await _upsert_vector(
        es, ai, MOMENT_EMBEDDINGS_INDEX, moment_id, caption, "moment_id", "content_hash"
    )


async def upsert_user_embedding(
    es,
    ai,
    user_id: str,
    bio: str | None,
    recent_captions: list[str],
) -> bool:
    """Store the profile embedding for a user unless it is already current."""
    profile_text = build_user_profile_text(bio, recent_captions)
    if not profile_text.strip():
        return False
    return await _upsert_vector(
        es, ai, USER_EMBEDDINGS_INDEX, user_id, profile_text, "user_id", "profile_hash"
    )


async def get_user_embedding(es, user_id: str) -> list[float] | None:
    src = await find_by_id(es, USER_EMBEDDINGS_INDEX, user_id)
    if src is None:
        return None
    return src.get("vector") or None


async def has_user_embedding(es, user_id: str) -> bool:
    return await get_user_embedding(es, user_id) is not None


async def delete_moment_embedding(es, moment_id: str) -> None:
    await es.delete_by_query(
        index=MOMENT_EMBEDDINGS_INDEX,
        query={"ids": {"values": [moment_id]}},
    )


async def embedding_counts(es) -> dict[str, int]:
    """Return how many moment and user embeddings are stored."""
    moments = await es.count(index=MOMENT_EMBEDDINGS_INDEX)
    users = await es.count(index=USER_EMBEDDINGS_INDEX)
    return {"moments": hit_count(moments), "users": hit_count(users)}
