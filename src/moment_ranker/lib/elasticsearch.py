"""Shared Elasticsearch utilities.

Index names, mappings and helpers for working with Elasticsearch responses
that are used across the content store, the embedding cache and the
routers.
"""

import logging
import os

from elastic_transport import ObjectApiResponse
from elasticsearch import AsyncElasticsearch

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Index names
# ---------------------------------------------------------------------------

MOMENTS_INDEX = "moments"
USERS_INDEX = "users"
MOMENT_EMBEDDINGS_INDEX = "moment_embeddings"
USER_EMBEDDINGS_INDEX = "user_embeddings"
INTEREST_PROFILES_INDEX = "interest_profiles"
MOMENT_SUMMARIES_INDEX = "moment_summaries"

DEFAULT_ELASTICSEARCH_URL = "http://localhost:9200"


def unwrap_es_response(resp) -> dict:
    """Unwrap an Elasticsearch response (ObjectApiResponse or plain dict)."""
    if isinstance(resp, ObjectApiResponse):
        return resp.body
    if isinstance(resp, dict):
        return resp
    logger.error("Unexpected Elasticsearch response type: %s", type(resp))
    raise TypeError(f"Unexpected Elasticsearch response type: {type(resp)}")


def hit_sources(resp) -> list[dict]:
    """Return the ``_source`` of every hit in a search response."""
    data = unwrap_es_response(resp)
    return [hit.get("_source") or {} for hit in data.get("hits", {}).get("hits", [])]


def hit_count(resp) -> int:
    """Return the ``count`` of a count response."""
    return int(unwrap_es_response(resp).get("count", 0))


async def find_by_id(es, index: str, doc_id: str) -> dict | None:
    """Fetch the ``_source`` of a single document by id, or ``None``.

    Uses an ``ids`` search rather than ``get`` so a missing document is an
    empty result instead of a ``NotFoundError``.
    """
    resp = await es.search(index=index, query={"ids": {"values": [doc_id]}}, size=1)
    sources = hit_sources(resp)
    return sources[0] if sources else None


def create_client() -> AsyncElasticsearch:
    """Build the application-scoped client from the environment."""
    url = os.environ.get("ELASTICSEARCH_URL", DEFAULT_ELASTICSEARCH_URL)
    api_key = os.environ.get("ELASTICSEARCH_API_KEY") or None
    return AsyncElasticsearch(url, api_key=api_key)


def index_mappings(dims: int) -> dict[str, dict]:
    """Explicit mappings for every index this service reads or writes."""
    vector = {"type": "dense_vector", "dims": dims, "index": True, "similarity": "cosine"}
    return {
        MOMENTS_INDEX: {
            "properties": {
                "moment_id": {"type": "keyword"},
                "user_id": {"type": "keyword"},
                "caption": {"type": "text"},
                "type": {"type": "keyword"},
                "created_at": {"type": "date"},
                "author_display_name": {"type": "keyword"},
            }
        },
        USERS_INDEX: {
            "properties": {
                "user_id": {"type": "keyword"},
                "display_name": {"type": "keyword"},
                "bio": {"type": "text"},
            }
        },
        MOMENT_EMBEDDINGS_INDEX: {
            "properties": {
                "moment_id": {"type": "keyword"},
                "vector": vector,
                "content_hash": {"type": "keyword"},
                "updated_at": {"type": "date"},
            }
        },
        USER_EMBEDDINGS_INDEX: {
            "properties": {
                "user_id": {"type": "keyword"},
                "vector": {"type": "dense_vector", "dims": dims, "index": False},
                "profile_hash": {"type": "keyword"},
                "updated_at": {"type": "date"},
            }
        },
        INTEREST_PROFILES_INDEX: {
            "properties": {
                "user_id": {"type": "keyword"},
                "interest_text": {"type": "text", "index": False},
                "profile_hash": {"type": "keyword"},
                "updated_at": {"type": "date"},
            }
        },
        MOMENT_SUMMARIES_INDEX: {
            "properties": {
                "moment_id": {"type": "keyword"},
                "summary_text": {"type": "text", "index": False},
                "caption_hash": {"type": "keyword"},
                "updated_at": {"type": "date"},
            }
        },
    }


async def ensure_indices(es, dims: int) -> None:
    """Create any missing index with its mapping.

    Failures are logged and skipped: an unreachable cluster at startup must
    not stop the API from serving chronological results.
    """
    for index, mappings in index_mappings(dims).items():
        try:
            if await es.indices.exists(index=index):
                continue
            await es.indices.create(index=index, mappings=mappings)
            logger.info("Created Elasticsearch index %s", index)
        except Exception:
            logger.exception("Failed to ensure Elasticsearch index %s", index)
