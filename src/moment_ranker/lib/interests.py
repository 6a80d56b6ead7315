"""Interest profile generation.

Derives a short textual summary of what a user cares about from their bio
and recent captions.  The summary is the textual stand-in for the user
embedding and is only consulted when vector ranking is unavailable.

Generation is a maintenance operation: it runs after profile or content
changes, never on the serving path, and is skipped when the hash of the
source text matches the stored profile.
"""

import logging
from datetime import datetime, timezone

from .content import RECENT_CAPTIONS_LIMIT, get_recent_captions, get_user
from .elasticsearch import INTEREST_PROFILES_INDEX, find_by_id, hit_count
from .hashing import content_hash

logger = logging.getLogger(__name__)

# Token cap for the generated summary.
INTEREST_MAX_TOKENS = 300

INTEREST_SYSTEM_PROMPT = (
    "You are a content recommendation system for a mindfulness-focused social platform.\n"
    "Analyze the user's profile and recent posts to identify their interests, themes "
    "they engage with, and content preferences.\n"
    "Focus on topics like: mindfulness, slow living, nature, creativity, wellness, "
    "hobbies, lifestyle, art, photography themes.\n"
    "Respond with a concise summary of their interests (max 200 words) that can be "
    "used to match relevant content."
)


def build_interest_source(
    bio: str | None,
    display_name: str | None,
    recent_captions: list[str],
) -> str:
    """Render the profile text the summary is generated (and hashed) from.

    Returns an empty string when there is neither a bio nor any caption.
    """
    captions = [c for c in recent_captions if c][:RECENT_CAPTIONS_LIMIT]
    if not (bio and bio.strip()) and not captions:
        return ""

    user_info = "\n".join(
        line
        for line in [
            f"Bio: {bio}" if bio else "",
            f"Name: {display_name}" if display_name else "",
        ]
        if line
    )
    caption_lines = "\n- ".join(captions) or "No recent posts"
    return f"User Profile:\n{user_info}\n\nRecent post captions:\n- {caption_lines}"


async def generate_and_store_interest_profile(es, ai, user_id: str) -> bool:
    """Regenerate the user's interest profile if its source text changed.

    Returns ``True`` when a current profile is stored after the call.
    """
    user = await get_user(es, user_id)
    if user is None:
        logger.info("Interest profile skipped: unknown user %s", user_id)
        return False

    captions = await get_recent_captions(es, user_id, RECENT_CAPTIONS_LIMIT)
    source = build_interest_source(user.bio, user.display_name, captions)
    if not source:
        logger.info("Interest profile skipped: user %s has no bio or captions", user_id)
        return False

    profile_hash = content_hash(source)
    existing = await find_by_id(es, INTEREST_PROFILES_INDEX, user_id)
    if existing is not None and existing.get("profile_hash") == profile_hash:
        return True

    interests = await ai.complete(
        f"{source}\n\nSummarize this user's interests and content preferences:",
        system=INTEREST_SYSTEM_PROMPT,
        max_tokens=INTEREST_MAX_TOKENS,
    )
    if not interests:
        logger.warning("Interest profile generation failed for user %s", user_id)
        return False

    await es.index(
        index=INTEREST_PROFILES_INDEX,
        id=user_id,
        document={
            "user_id": user_id,
            "interest_text": interests,
            "profile_hash": profile_hash,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        },
    )
    logger.info("Stored interest profile for user %s", user_id)
    return True


async def get_stored_interests(es, user_id: str) -> str | None:
    src = await find_by_id(es, INTEREST_PROFILES_INDEX, user_id)
    if src is None:
        return None
    return src.get("interest_text") or None


async def interest_profile_count(es) -> int:
    return hit_count(await es.count(index=INTEREST_PROFILES_INDEX))
