"""Tests for the feed and explore router."""

import pytest
from fastapi.testclient import TestClient

from ..conftest import (
    FakeAI,
    FakeEs,
    RecordingRefresher,
    make_moment,
    moment_source,
    prompt_ids,
    scores_reply,
)
from ..lib.elasticsearch import INTEREST_PROFILES_INDEX, MOMENTS_INDEX, USER_EMBEDDINGS_INDEX
from ..lib.scoring import ScoreCache
from ..main import app


@pytest.fixture(autouse=True)
def fake_app_state(monkeypatch):
    monkeypatch.setenv("API_KEY", "testkey")
    es = FakeEs()
    for i in range(12):
        moment = make_moment(i, hours_old=i)
        es.put(MOMENTS_INDEX, moment.id, moment_source(moment))
    app.state.es = es
    app.state.ai = FakeAI()
    app.state.score_cache = ScoreCache()
    app.state.profile_refresher = RecordingRefresher()
    yield app.state
    for name in ("es", "ai", "score_cache", "profile_refresher"):
        try:
            delattr(app.state, name)
        except AttributeError:
            pass


HEADERS = {"X-API-Key": "testkey"}


def test_feed_without_signal_is_newest_first():
    client = TestClient(app, headers=HEADERS)
    resp = client.get("/feed", params={"user_id": "u1", "limit": 5})
    assert resp.status_code == 200
    data = resp.json()
    assert [m["id"] for m in data["moments"]] == ["m0", "m1", "m2", "m3", "m4"]
    assert data["next_offset"] == 5
    assert data["total"] == 12


def test_feed_last_page():
    client = TestClient(app, headers=HEADERS)
    resp = client.get("/feed", params={"user_id": "u1", "offset": 10, "limit": 5})
    data = resp.json()
    assert [m["id"] for m in data["moments"]] == ["m10", "m11"]
    assert data["next_offset"] is None


def test_feed_ranked_by_interests(fake_app_state):
    fake_app_state.es.put(
        INTEREST_PROFILES_INDEX, "u1", {"user_id": "u1", "interest_text": "old things"}
    )
    fake_app_state.ai.responder = lambda prompt, system: scores_reply(
        {i: 1.0 if i == "m11" else 0.0 for i in prompt_ids(prompt)}
    )

    client = TestClient(app, headers=HEADERS)
    data = client.get("/feed", params={"user_id": "u1", "limit": 3}).json()

    assert data["moments"][0]["id"] == "m11"


def test_feed_requires_user_id():
    client = TestClient(app, headers=HEADERS)
    assert client.get("/feed").status_code == 422


def test_feed_store_failure_is_502(fake_app_state):
    fake_app_state.es.failing.add(MOMENTS_INDEX)
    client = TestClient(app, headers=HEADERS)
    resp = client.get("/feed", params={"user_id": "u1"})
    assert resp.status_code == 502


def test_explore_seeded_pages_are_disjoint():
    client = TestClient(app, headers=HEADERS)
    first = client.get("/explore", params={"limit": 5}).json()
    seed = first["seed"]
    second = client.get("/explore", params={"limit": 5, "offset": 5, "seed": seed}).json()
    third = client.get("/explore", params={"limit": 5, "offset": 10, "seed": seed}).json()

    ids = [m["id"] for page in (first, second, third) for m in page["moments"]]
    assert len(ids) == 12
    assert len(set(ids)) == 12
    assert third["next_offset"] is None


def test_explore_requires_api_key():
    client = TestClient(app)
    assert client.get("/explore").status_code == 401


def test_feed_for_viewer_without_profile_schedules_one_refresh(fake_app_state):
    client = TestClient(app, headers=HEADERS)
    client.get("/feed", params={"user_id": "u1"})
    client.get("/feed", params={"user_id": "u1"})
    assert fake_app_state.profile_refresher.scheduled == ["u1"]


def test_feed_with_profile_schedules_nothing(fake_app_state):
    fake_app_state.es.put(
        INTEREST_PROFILES_INDEX, "u1", {"user_id": "u1", "interest_text": "old things"}
    )
    fake_app_state.es.put(USER_EMBEDDINGS_INDEX, "u1", {"user_id": "u1", "vector": [0.1, 0.2, 0.3]})
    client = TestClient(app, headers=HEADERS)
    client.get("/feed", params={"user_id": "u1"})
    assert fake_app_state.profile_refresher.scheduled == []
