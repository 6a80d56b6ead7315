"""Tests for the moment and user embedding cache."""

import pytest

from ..conftest import FakeAI
from .elasticsearch import MOMENT_EMBEDDINGS_INDEX, USER_EMBEDDINGS_INDEX
from .embeddings import (
    build_user_profile_text,
    delete_moment_embedding,
    embedding_counts,
    get_user_embedding,
    has_user_embedding,
    upsert_moment_embedding,
    upsert_user_embedding,
)
from .hashing import content_hash


class FailingEmbedAI(FakeAI):
    async def embed(self, text):
        self.embed_calls.append(text)
        return None


def test_profile_text_joins_bio_and_captions():
    captions = [f"c{i}" for i in range(12)]
    text = build_user_profile_text("gardener", ["", *captions])
    assert text.startswith("gardener | c0 | c1")
    assert text.endswith("c9")
    assert "c10" not in text


def test_profile_text_without_bio():
    assert build_user_profile_text(None, ["a", "b"]) == "a | b"
    assert build_user_profile_text("", []) == ""


class TestUpsertMomentEmbedding:
    @pytest.mark.asyncio
    async def test_stores_vector_and_hash(self, fake_es, fake_ai):
        assert await upsert_moment_embedding(fake_es, fake_ai, "m1", "slow morning") is True

        doc = fake_es.docs[MOMENT_EMBEDDINGS_INDEX]["m1"]
        assert doc["moment_id"] == "m1"
        assert doc["vector"] == [0.1, 0.2, 0.3]
        assert doc["content_hash"] == content_hash("slow morning")
        assert "updated_at" in doc

    @pytest.mark.asyncio
    async def test_unchanged_caption_skips_the_service(self, fake_es, fake_ai):
        await upsert_moment_embedding(fake_es, fake_ai, "m1", "slow morning")
        fake_ai.embed_calls.clear()

        assert await upsert_moment_embedding(fake_es, fake_ai, "m1", "slow morning") is True
        assert fake_ai.embed_calls == []
        assert len(fake_es.calls_for("index", MOMENT_EMBEDDINGS_INDEX)) == 1

    @pytest.mark.asyncio
    async def test_changed_caption_is_reembedded(self, fake_es):
        ai = FakeAI(vector=[1.0, 0.0, 0.0])
        await upsert_moment_embedding(fake_es, ai, "m1", "first")
        ai.vector = [0.0, 1.0, 0.0]
        await upsert_moment_embedding(fake_es, ai, "m1", "second")

        doc = fake_es.docs[MOMENT_EMBEDDINGS_INDEX]["m1"]
        assert doc["vector"] == [0.0, 1.0, 0.0]
        assert doc["content_hash"] == content_hash("second")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("caption", [None, "", "   \n"])
    async def test_blank_caption_is_rejected(self, fake_es, fake_ai, caption):
        assert await upsert_moment_embedding(fake_es, fake_ai, "m1", caption) is False
        assert fake_ai.embed_calls == []
        assert fake_es.calls == []

    @pytest.mark.asyncio
    async def test_failed_embedding_keeps_stored_vector(self, fake_es):
        fake_es.put(
            MOMENT_EMBEDDINGS_INDEX,
            "m1",
            {"moment_id": "m1", "vector": [0.5, 0.5, 0.5], "content_hash": "old"},
        )
        ai = FailingEmbedAI()

        assert await upsert_moment_embedding(fake_es, ai, "m1", "new caption") is False
        assert len(ai.embed_calls) == 1
        assert fake_es.docs[MOMENT_EMBEDDINGS_INDEX]["m1"]["vector"] == [0.5, 0.5, 0.5]
        assert fake_es.calls_for("index") == []


class TestUpsertUserEmbedding:
    @pytest.mark.asyncio
    async def test_stores_profile_vector(self, fake_es, fake_ai):
        ok = await upsert_user_embedding(fake_es, fake_ai, "u1", "potter", ["clay", "kiln"])

        assert ok is True
        assert fake_ai.embed_calls == ["potter | clay | kiln"]
        doc = fake_es.docs[USER_EMBEDDINGS_INDEX]["u1"]
        assert doc["profile_hash"] == content_hash("potter | clay | kiln")
        assert await get_user_embedding(fake_es, "u1") == [0.1, 0.2, 0.3]
        assert await has_user_embedding(fake_es, "u1") is True

    @pytest.mark.asyncio
    async def test_unchanged_profile_skips_the_service(self, fake_es, fake_ai):
        await upsert_user_embedding(fake_es, fake_ai, "u1", "potter", ["clay"])
        await upsert_user_embedding(fake_es, fake_ai, "u1", "potter", ["clay"])
        assert len(fake_ai.embed_calls) == 1

    @pytest.mark.asyncio
    async def test_empty_profile_is_rejected(self, fake_es, fake_ai):
        assert await upsert_user_embedding(fake_es, fake_ai, "u1", "  ", []) is False
        assert fake_ai.embed_calls == []
        assert await has_user_embedding(fake_es, "u1") is False


@pytest.mark.asyncio
async def test_delete_and_count(fake_es, fake_ai):
    await upsert_moment_embedding(fake_es, fake_ai, "m1", "a")
    await upsert_moment_embedding(fake_es, fake_ai, "m2", "b")
    await upsert_user_embedding(fake_es, fake_ai, "u1", "bio", [])

    assert await embedding_counts(fake_es) == {"moments": 2, "users": 1}
    await delete_moment_embedding(fake_es, "m1")
    assert await embedding_counts(fake_es) == {"moments": 1, "users": 1}
