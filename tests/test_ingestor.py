"""
Unit tests for message indexing, deletion and bulk re-import.
"""
import json

import pytest

from chatify_ai.src.core.errors import ProviderError, ValidationError
from chatify_ai.src.core.ingestor import MessageIndexer
from chatify_ai.src.core.models import IndexedMessage


@pytest.fixture
def indexer(mock_embeddings, fake_store, tmp_path):
    return MessageIndexer(mock_embeddings, fake_store, source_dir=tmp_path / "exports", concurrency=2, hash_cache_path=tmp_path / "processed" / "hashes.json")


def _write_export(path, records):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(r if isinstance(r, str) else json.dumps(r) for r in records) + "\n", encoding="utf-8")


class TestIndex:

    @pytest.mark.asyncio
    async def test_blank_text_is_a_no_op(self, indexer, mock_embeddings, fake_store):
        result = await indexer.index(IndexedMessage(message_id="m1", text="   ", sender_id="u1"))

        assert result.indexed is False
        assert result.reason == "No text content"
        mock_embeddings.embed.assert_not_awaited()
        assert fake_store.count() == 0

    @pytest.mark.asyncio
    async def test_message_is_cleaned_normalised_and_stored(self, indexer, mock_embeddings, fake_store):
        message = IndexedMessage(message_id=42, text="  hello\u200b there ", sender_id="u1", receiver_id="u2", timestamp="2024-05-01T11:30:00+02:00")

        result = await indexer.index(message)

        assert result.indexed is True
        assert result.message_id == "42"
        mock_embeddings.embed.assert_awaited_once_with("hello there")
        row = fake_store.rows["42"]
        assert row["text"] == "hello there"
        assert row["meta"]["timestamp"] == "2024-05-01T09:30:00.000Z"
        assert row["meta"]["conversation_type"] == "private"
        assert row["vector"] == [0.1, 0.2, 0.3]

    @pytest.mark.asyncio
    async def test_missing_timestamp_defaults_to_now(self, indexer, fake_store):
        await indexer.index(IndexedMessage(message_id="m1", text="hi", sender_id="u1"))

        timestamp = fake_store.rows["m1"]["meta"]["timestamp"]
        assert timestamp.endswith("Z") and len(timestamp) == 24

    @pytest.mark.asyncio
    async def test_reindex_replaces_entry(self, indexer, fake_store):
        await indexer.index(IndexedMessage(message_id="m1", text="first", sender_id="u1"))
        await indexer.index(IndexedMessage(message_id="m1", text="edited", sender_id="u1"))

        assert fake_store.count() == 1
        assert fake_store.rows["m1"]["text"] == "edited"

    @pytest.mark.asyncio
    async def test_bad_timestamp_is_a_validation_error(self, indexer, mock_embeddings):
        with pytest.raises(ValidationError):
            await indexer.index(IndexedMessage(message_id="m1", text="hi", sender_id="u1", timestamp="yesterday"))

        mock_embeddings.embed.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_embedding_failure_propagates(self, indexer, mock_embeddings):
        mock_embeddings.embed.side_effect = ProviderError("embeddings", "quota")

        with pytest.raises(ProviderError):
            await indexer.index(IndexedMessage(message_id="m1", text="hi", sender_id="u1"))

    @pytest.mark.asyncio
    async def test_delete(self, indexer, fake_store):
        await indexer.index(IndexedMessage(message_id="m1", text="bye", sender_id="u1"))

        result = await indexer.delete("m1")

        assert result.model_dump(by_alias=True) == {"deleted": True, "messageId": "m1"}
        assert fake_store.count() == 0


class TestBulkReimport:

    @pytest.mark.asyncio
    async def test_missing_source_dir(self, indexer):
        summary = await indexer.run()

        assert summary["total_files"] == 0
        assert summary["messages_indexed"] == 0

    @pytest.mark.asyncio
    async def test_run_indexes_and_skips_malformed_lines(self, indexer, fake_store, tmp_path):
        _write_export(tmp_path / "exports" / "chat_a.jsonl", [
            {"messageId": "m1", "text": "hi", "senderId": "u1", "receiverId": "u2"},
            "{not json",
            {"messageId": "m2", "text": "", "senderId": "u2", "receiverId": "u1"},
            {"text": "no ids"},
            {"messageId": "m3", "text": "group hello", "senderId": "u1", "groupId": "g1", "conversationType": "group"},
        ])

        summary = await indexer.run()

        assert summary["total_files"] == 1
        assert summary["files_processed"] == 1
        assert summary["messages_indexed"] == 2
        assert summary["messages_skipped"] == 3
        assert set(fake_store.rows) == {"m1", "m3"}
        assert fake_store.rows["m3"]["meta"]["group_id"] == "g1"

    @pytest.mark.asyncio
    async def test_unchanged_file_is_skipped_on_next_run(self, mock_embeddings, fake_store, tmp_path):
        _write_export(tmp_path / "exports" / "chat_a.jsonl", [{"messageId": "m1", "text": "hi", "senderId": "u1"}])
        cache = tmp_path / "processed" / "hashes.json"

        first = await MessageIndexer(mock_embeddings, fake_store, source_dir=tmp_path / "exports", hash_cache_path=cache).run()
        second = await MessageIndexer(mock_embeddings, fake_store, source_dir=tmp_path / "exports", hash_cache_path=cache).run()

        assert first["files_processed"] == 1
        assert second["files_skipped"] == 1
        assert mock_embeddings.embed.await_count == 1

    @pytest.mark.asyncio
    async def test_failed_file_is_retried(self, indexer, mock_embeddings, tmp_path):
        _write_export(tmp_path / "exports" / "chat_a.jsonl", [{"messageId": "m1", "text": "hi", "senderId": "u1"}])
        mock_embeddings.embed.side_effect = ProviderError("embeddings", "quota")

        first = await indexer.run()
        mock_embeddings.embed.side_effect = None
        second = await indexer.run()

        assert first["messages_skipped"] == 1
        assert second["files_processed"] == 1
        assert second["messages_indexed"] == 1

    @pytest.mark.asyncio
    async def test_clear_hash_cache(self, indexer, tmp_path):
        _write_export(tmp_path / "exports" / "chat_a.jsonl", [{"messageId": "m1", "text": "hi", "senderId": "u1"}])
        await indexer.run()

        indexer.clear_hash_cache()

        assert not (tmp_path / "processed" / "hashes.json").exists()
        assert (await indexer.run())["files_processed"] == 1
