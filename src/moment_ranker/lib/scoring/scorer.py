"""Relevance scoring of candidate moments against a textual interest profile.

Per request:

1. Candidates with a fresh cached score reuse it.
2. The rest are sent to the completion service in batches of
   ``SCORING_BATCH_SIZE``, each batch an independent request.
3. The JSON reply is validated item by item.  Ids missing from the reply, or
   whose entry fails validation, get ``NEUTRAL_SCORE``; every score is
   clamped to [0, 1].
4. Scores from a reply (defaults included) are cached so a malformed reply is
   not retried within the TTL.
5. A batch whose request fails outright scores ``NEUTRAL_SCORE`` for all of
   its candidates without being cached; sibling batches are unaffected.
"""

import asyncio
import json
import logging
import math

from pydantic import BaseModel, ValidationError, field_validator

from ...models import Moment, MomentScore
from .cache import ScoreCache

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Tunables
# ---------------------------------------------------------------------------

NEUTRAL_SCORE = 0.5
SCORING_BATCH_SIZE = 10
SCORING_MAX_TOKENS = 500
# Batches in flight at once for one request.
MAX_CONCURRENT_BATCHES = 4

SCORING_SYSTEM_PROMPT = (
    "You are a content recommendation system for a mindfulness-focused social platform.\n"
    "Score each post on relevance to the user's interests on a scale of 0.0 to 1.0.\n"
    "Consider thematic alignment, mood compatibility, and content quality.\n"
    'Respond in JSON format: { "scores": [{"id": "post_id", "score": 0.8}, ...] }'
)


class ScoreItem(BaseModel):
    """One entry of the scoring reply."""

    id: str
    score: float

    @field_validator("id", mode="before")
    @classmethod
    def numeric_id_as_str(cls, value):
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


def clamp_score(score: float) -> float:
    if math.isnan(score):
        return NEUTRAL_SCORE
    return max(0.0, min(1.0, score))


def build_scoring_prompt(
    interest_text: str,
    batch: list[Moment],
    summaries: dict[str, str] | None = None,
) -> str:
    summaries = summaries or {}
    descriptions = []
    for idx, moment in enumerate(batch, start=1):
        lines = [
            f"Post {idx} (ID: {moment.id}):",
            f"- Author: {moment.author_display_name or 'Unknown'}",
            f"- Caption: {moment.caption or 'No caption'}",
            f"- Type: {moment.type}",
        ]
        summary = summaries.get(moment.id)
        if summary:
            lines.append(f"- Summary: {summary}")
        descriptions.append("\n".join(lines))

    posts = "\n\n".join(descriptions)
    return (
        f"User Interests:\n{interest_text}\n\n"
        f"Posts to score:\n{posts}\n\n"
        "Return JSON with scores for each post ID:"
    )


def parse_scores(content: str, batch_ids: list[str]) -> dict[str, float]:
    """Reconcile a scoring reply with the ids that were asked for.

    Accepts ``{"scores": [{"id": ..., "score": ...}]}``, a ``{"<id>": <score>}``
    mapping under ``scores``, or the same mapping at the top level.  Unknown
    ids are ignored; every requested id gets a score.
    """
    wanted = set(batch_ids)
    scores: dict[str, float] = {}

    try:
        parsed = json.loads(content)
    except (TypeError, ValueError):
        logger.warning("Scoring reply is not valid JSON")
        parsed = {}

    raw_items: list = []
    if isinstance(parsed, dict):
        nested = parsed.get("scores")
        if isinstance(nested, list):
            raw_items = nested
        else:
            mapping = nested if isinstance(nested, dict) else parsed
            raw_items = [{"id": k, "score": v} for k, v in mapping.items()]

    for raw in raw_items:
        try:
            item = ScoreItem.model_validate(raw)
        except ValidationError:
            continue
        if item.id in wanted and item.id not in scores:
            scores[item.id] = clamp_score(item.score)

    missing = [moment_id for moment_id in batch_ids if moment_id not in scores]
    if missing:
        logger.info("Scoring reply omitted %d of %d ids", len(missing), len(batch_ids))
    for moment_id in missing:
        scores[moment_id] = NEUTRAL_SCORE
    return scores


async def _score_batch(
    ai,
    interest_text: str,
    batch: list[Moment],
    summaries: dict[str, str],
) -> tuple[dict[str, float], bool]:
    """Score one batch.  The flag is ``True`` when the reply should be cached."""
    batch_ids = [m.id for m in batch]
    try:
        content = await ai.complete(
            build_scoring_prompt(interest_text, batch, summaries),
            system=SCORING_SYSTEM_PROMPT,
            max_tokens=SCORING_MAX_TOKENS,
            json_response=True,
        )
    except Exception:
        logger.exception("Scoring batch of %d moments failed", len(batch))
        content = None

    if content is None:
        return {moment_id: NEUTRAL_SCORE for moment_id in batch_ids}, False
    return parse_scores(content, batch_ids), True


async def score_moments_for_user(
    ai,
    cache: ScoreCache,
    user_id: str,
    interest_text: str,
    candidates: list[Moment],
    summaries: dict[str, str] | None = None,
) -> list[MomentScore]:
    """Return one relevance score per candidate, in candidate order."""
    if not candidates:
        return []
    if not interest_text:
        return [MomentScore(moment_id=m.id, score=NEUTRAL_SCORE) for m in candidates]

    scores = cache.get_many(user_id, [m.id for m in candidates])

    to_score: list[Moment] = []
    queued: set[str] = set()
    for moment in candidates:
        if moment.id not in scores and moment.id not in queued:
            to_score.append(moment)
            queued.add(moment.id)

    if to_score:
        batches = [
            to_score[i:i + SCORING_BATCH_SIZE]
            for i in range(0, len(to_score), SCORING_BATCH_SIZE)
        ]
        semaphore = asyncio.Semaphore(MAX_CONCURRENT_BATCHES)

        async def run(batch: list[Moment]) -> tuple[dict[str, float], bool]:
            async with semaphore:
                return await _score_batch(ai, interest_text, batch, summaries or {})

        for batch_scores, cacheable in await asyncio.gather(*(run(b) for b in batches)):
            if cacheable:
                cache.set_many(user_id, batch_scores)
            scores.update(batch_scores)

    return [MomentScore(moment_id=m.id, score=scores[m.id]) for m in candidates]
