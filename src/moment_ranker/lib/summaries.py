"""Precomputed thematic digests of moment captions.

Summaries shorten the prompts sent to the relevance scorer.  A summary is
never recomputed for a caption whose hash matches the stored one.
"""

import logging
from datetime import datetime, timezone

from .elasticsearch import MOMENT_SUMMARIES_INDEX, hit_sources
from .hashing import content_hash

logger = logging.getLogger(__name__)

SUMMARY_MAX_TOKENS = 60

SUMMARY_SYSTEM_PROMPT = (
    "You describe the themes of social media posts. Reply with one short sentence "
    "(max 25 words) naming the mood and subject of the post. No hashtags."
)


async def generate_and_store_moment_summary(es, ai, moment_id: str, caption: str | None) -> bool:
    """Store a thematic summary for the caption unless one is already current."""
    if not caption or not caption.strip():
        return False

    caption_hash = content_hash(caption)
    existing = await get_moment_summaries(es, [moment_id], with_hash=True)
    current = existing.get(moment_id)
    if current is not None and current[1] == caption_hash:
        return True

    summary = await ai.complete(
        f"Post caption:\n{caption}\n\nSummarize the post's themes:",
        system=SUMMARY_SYSTEM_PROMPT,
        max_tokens=SUMMARY_MAX_TOKENS,
    )
    if not summary:
        logger.warning("Summary generation failed for moment %s", moment_id)
        return False

    await es.index(
        index=MOMENT_SUMMARIES_INDEX,
        id=moment_id,
        document={
            "moment_id": moment_id,
            "summary_text": summary,
            "caption_hash": caption_hash,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        },
    )
    return True


async def get_moment_summaries(es, moment_ids: list[str], with_hash: bool = False) -> dict:
    """Return stored summaries keyed by moment id.

    Values are summary strings, or ``(summary, caption_hash)`` tuples when
    *with_hash* is set.  Moments without a summary are absent.
    """
    if not moment_ids:
        return {}

    resp = await es.search(
        index=MOMENT_SUMMARIES_INDEX,
        query={"ids": {"values": moment_ids}},
        size=len(moment_ids),
    )
    summaries: dict = {}
    for src in hit_sources(resp):
        moment_id = src.get("moment_id")
        text = src.get("summary_text")
        if not moment_id or not text:
            continue
        summaries[moment_id] = (text, src.get("caption_hash")) if with_hash else text
    return summaries


async def delete_moment_summary(es, moment_id: str) -> None:
    await es.delete_by_query(
        index=MOMENT_SUMMARIES_INDEX,
        query={"ids": {"values": [moment_id]}},
    )
