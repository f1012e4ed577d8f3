"""
Tests for filter rendering and the LanceDB-backed store.
"""
import pytest

from chatify_ai.src.core.message_search import build_visibility_filter
from chatify_ai.src.database.vector_store import ChatVectorStore, render_where


class TestRenderWhere:

    def test_single_equality(self):
        assert render_where({"sender_id": {"$eq": "u1"}}) == "sender_id = 'u1'"

    def test_nested_groups(self):
        spec = build_visibility_filter("u1", "private")

        assert render_where(spec) == "(conversation_type = 'private' AND (sender_id = 'u1' OR receiver_id = 'u1'))"

    def test_range_operators_on_one_field(self):
        where = render_where({"timestamp": {"$gte": "2024-05-01T00:00:00.000Z", "$lte": "2024-05-02T00:00:00.000Z"}})

        assert where == "(timestamp >= '2024-05-01T00:00:00.000Z' AND timestamp <= '2024-05-02T00:00:00.000Z')"

    def test_quotes_are_escaped(self):
        assert render_where({"sender_id": {"$eq": "o'brien"}}) == "sender_id = 'o''brien'"

    def test_unknown_operator_is_rejected(self):
        with pytest.raises(ValueError):
            render_where({"sender_id": {"$regex": ".*"}})

    def test_unknown_field_is_rejected(self):
        with pytest.raises(ValueError):
            render_where({"text; DROP TABLE": {"$eq": "x"}})

    def test_empty_group_is_rejected(self):
        with pytest.raises(ValueError):
            render_where({"$or": []})


class TestChatVectorStore:

    @pytest.fixture
    def store(self, tmp_path):
        return ChatVectorStore(db_path=str(tmp_path / "lancedb"), table_name="test_messages", dimensions=3)

    @staticmethod
    def _meta(sender, receiver, timestamp="2024-05-01T09:30:00.000Z"):
        return {"sender_id": sender, "receiver_id": receiver, "group_id": None, "conversation_type": "private", "timestamp": timestamp}

    def test_upsert_replaces_existing_entry(self, store):
        store.upsert("m1", [1.0, 0.0, 0.0], "first", self._meta("u1", "u2"))
        store.upsert("m1", [1.0, 0.0, 0.0], "edited", self._meta("u1", "u2"))

        assert store.count() == 1
        rows = store.query([1.0, 0.0, 0.0], limit=5)
        assert rows[0][0] == "edited"

    def test_query_filters_and_scores(self, store):
        store.upsert("m1", [1.0, 0.0, 0.0], "mine", self._meta("u1", "u2"))
        store.upsert("m2", [0.9, 0.1, 0.0], "not mine", self._meta("u3", "u4"))

        rows = store.query([1.0, 0.0, 0.0], build_visibility_filter("u1"), limit=5)

        assert [r[0] for r in rows] == ["mine"]
        assert rows[0][1]["message_id"] == "m1"
        assert rows[0][2] == pytest.approx(1.0, abs=1e-4)

    def test_dimension_mismatch_is_rejected(self, store):
        with pytest.raises(ValueError):
            store.upsert("m1", [1.0, 0.0], "short", self._meta("u1", "u2"))

    def test_delete(self, store):
        store.upsert("m1", [1.0, 0.0, 0.0], "bye", self._meta("u1", "u2"))
        store.delete("m1")

        assert store.count() == 0
