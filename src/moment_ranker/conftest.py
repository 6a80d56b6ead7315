"""Shared fakes for the unit and router tests.

``FakeEs`` is a small in-memory stand-in for ``AsyncElasticsearch`` that
understands the handful of query shapes this service sends (``ids``,
``terms``, ``term`` filters, ``match_all`` and ``knn``).  ``FakeAI`` records
every call and returns canned embeddings and completions.
"""

import json
import re
from datetime import datetime, timedelta, timezone

import pytest

from .models import Moment

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Fake Elasticsearch
# ---------------------------------------------------------------------------

def _matches_filter(src: dict, clause: dict) -> bool:
    if "term" in clause:
        field, value = next(iter(clause["term"].items()))
        return src.get(field) == value
    if "terms" in clause:
        field, values = next(iter(clause["terms"].items()))
        return src.get(field) in values
    if "bool" in clause:
        for inner in clause["bool"].get("filter", []):
            if not _matches_filter(src, inner):
                return False
        for inner in clause["bool"].get("must_not", []):
            if _matches_filter(src, inner):
                return False
        return True
    return True


class FakeEs:
    def __init__(self):
        self.docs: dict[str, dict[str, dict]] = {}
        # Cosine ``_score`` per moment id, returned for kNN queries.
        self.knn_scores: dict[str, float] = {}
        self.failing: set[str] = set()
        self.calls: list[dict] = []

    def put(self, index: str, doc_id: str, source: dict) -> None:
        self.docs.setdefault(index, {})[doc_id] = dict(source)

    def calls_for(self, method: str, index: str | None = None) -> list[dict]:
        return [
            c for c in self.calls
            if c["method"] == method and (index is None or c["index"] == index)
        ]

    def _check(self, method: str, index: str, **kwargs) -> None:
        self.calls.append({"method": method, "index": index, **kwargs})
        if index in self.failing:
            raise ConnectionError(f"{index} unavailable")

    async def search(self, *, index=None, query=None, size=10, sort=None, _source=None, **kwargs):
        self._check("search", index, query=query, size=size, sort=sort)
        docs = self.docs.get(index, {})
        query = query or {"match_all": {}}

        if "ids" in query:
            wanted = query["ids"]["values"]
            hits = [{"_id": i, "_source": docs[i]} for i in wanted if i in docs]
        elif "knn" in query:
            knn = query["knn"]
            hits = []
            for doc_id, src in docs.items():
                if doc_id not in self.knn_scores:
                    continue
                if not all(_matches_filter(src, f) for f in knn.get("filter", [])):
                    continue
                hits.append({"_id": doc_id, "_score": self.knn_scores[doc_id], "_source": src})
            hits.sort(key=lambda h: -h["_score"])
            hits = hits[:knn["k"]]
        elif "bool" in query:
            hits = [
                {"_id": i, "_source": src}
                for i, src in docs.items()
                if _matches_filter(src, query)
            ]
        else:
            hits = [{"_id": i, "_source": src} for i, src in docs.items()]

        for clause in reversed(sort or []):
            field, direction = next(iter(clause.items()))
            hits.sort(key=lambda h: h["_source"].get(field) or "", reverse=direction == "desc")
        return {"hits": {"hits": hits[:size]}}

    async def index(self, *, index=None, id=None, document=None, **kwargs):
        self._check("index", index, id=id, document=document)
        self.put(index, id, document)
        return {"result": "updated"}

    async def count(self, *, index=None, **kwargs):
        self._check("count", index)
        return {"count": len(self.docs.get(index, {}))}

    async def delete_by_query(self, *, index=None, query=None, **kwargs):
        self._check("delete_by_query", index, query=query)
        docs = self.docs.get(index, {})
        deleted = 0
        for doc_id in query["ids"]["values"]:
            if docs.pop(doc_id, None) is not None:
                deleted += 1
        return {"deleted": deleted}


# ---------------------------------------------------------------------------
# Fake AI client
# ---------------------------------------------------------------------------

PROMPT_ID_PATTERN = re.compile(r"\(ID: ([^)]+)\)")


def prompt_ids(prompt: str) -> list[str]:
    return PROMPT_ID_PATTERN.findall(prompt)


class FakeAI:
    def __init__(self, vector: list[float] | None = None, completion: str | None = "A summary"):
        self.enabled = True
        self.embedding_dimensions = 3
        self.vector = vector if vector is not None else [0.1, 0.2, 0.3]
        self.completion = completion
        # Optional callable(prompt, system) -> str | None overriding ``completion``.
        self.responder = None
        self.embed_calls: list[str] = []
        self.complete_calls: list[dict] = []

    async def embed(self, text: str):
        self.embed_calls.append(text)
        return self.vector

    async def complete(self, prompt, system=None, max_tokens=500, json_response=False):
        self.complete_calls.append(
            {"prompt": prompt, "system": system, "json_response": json_response}
        )
        if self.responder is not None:
            return self.responder(prompt, system)
        return self.completion

    @property
    def scoring_calls(self) -> list[dict]:
        return [c for c in self.complete_calls if c["json_response"]]


def scores_reply(scores: dict[str, float]) -> str:
    return json.dumps({"scores": [{"id": k, "score": v} for k, v in scores.items()]})


class RecordingRefresher:
    """Stands in for ``ProfileRefresher`` in router tests; never starts tasks."""

    def __init__(self):
        self.scheduled: list[str] = []

    def schedule(self, es, ai, user_id: str) -> bool:
        if user_id in self.scheduled:
            return False
        self.scheduled.append(user_id)
        return True


# ---------------------------------------------------------------------------
# Builders and fixtures
# ---------------------------------------------------------------------------

def make_moment(idx: int, hours_old: float = 0.0, caption: str | None = None, **kwargs) -> Moment:
    return Moment(
        id=kwargs.pop("id", f"m{idx}"),
        user_id=kwargs.pop("user_id", "author1"),
        caption=caption if caption is not None else f"caption {idx}",
        created_at=NOW - timedelta(hours=hours_old),
        **kwargs,
    )


def moment_source(moment: Moment) -> dict:
    return {
        "moment_id": moment.id,
        "user_id": moment.user_id,
        "caption": moment.caption,
        "type": moment.type,
        "created_at": moment.created_at.isoformat(),
        "author_display_name": moment.author_display_name,
    }


@pytest.fixture
def fake_es():
    return FakeEs()


@pytest.fixture
def fake_ai():
    return FakeAI()
