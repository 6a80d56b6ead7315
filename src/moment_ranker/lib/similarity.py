"""Nearest-neighbour retrieval of moments for a user's profile embedding.

Runs a kNN search against the ``moment_embeddings`` index using the stored
user vector as the query.  An empty result means the signal is unavailable
(no user embedding yet), not that nothing matched.
"""

import logging

from ..models import SimilarMoment
from .elasticsearch import MOMENT_EMBEDDINGS_INDEX, unwrap_es_response
from .embeddings import get_user_embedding

logger = logging.getLogger(__name__)


def score_to_similarity(score: float) -> float:
    """Convert an Elasticsearch cosine ``_score`` back to cosine similarity.

    For ``cosine`` vector fields Elasticsearch reports ``(1 + cos) / 2``.
    """
    return max(-1.0, min(1.0, 2.0 * score - 1.0))


def similarity_to_relevance(similarity: float) -> float:
    """Map a cosine similarity in [-1, 1] onto a relevance score in [0, 1]."""
    return max(0.0, min(1.0, (similarity + 1.0) / 2.0))


async def find_similar_moments(
    es,
    user_id: str,
    limit: int,
    exclude_ids: list[str] | None = None,
    candidate_ids: list[str] | None = None,
) -> list[SimilarMoment]:
    """Return moments nearest to the user's embedding, most similar first.

    ``exclude_ids`` removes moments already shown; ``candidate_ids``, when
    given, restricts the search to a known pool.
    """
    if limit <= 0:
        return []

    user_vector = await get_user_embedding(es, user_id)
    if user_vector is None:
        logger.info("No user embedding for %s", user_id)
        return []

    knn: dict = {
        "field": "vector",
        "query_vector": user_vector,
        "k": limit,
        "num_candidates": max(100, limit * 10),
    }
    filters = []
    if candidate_ids:
        filters.append({"terms": {"moment_id": candidate_ids}})
    if exclude_ids:
        filters.append({"bool": {"must_not": [{"terms": {"moment_id": exclude_ids}}]}})
    if filters:
        knn["filter"] = filters

    resp = await es.search(
        index=MOMENT_EMBEDDINGS_INDEX,
        query={"knn": knn},
        size=limit,
        _source=["moment_id"],
    )
    data = unwrap_es_response(resp)

    results: list[SimilarMoment] = []
    for hit in data.get("hits", {}).get("hits", []):
        moment_id = (hit.get("_source") or {}).get("moment_id")
        score = hit.get("_score")
        if not moment_id or score is None:
            continue
        results.append(
            SimilarMoment(moment_id=moment_id, similarity=score_to_similarity(float(score)))
        )
    results.sort(key=lambda r: -r.similarity)
    return results[:limit]
