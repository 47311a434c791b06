"""Tests for agentloop.storage - records, in-memory and Postgres stores"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from agentloop.storage import Database, InMemoryMessageStore, MessageRecord, PostgresMessageStore


def _record(conversation_id="conv1", role="user", content="hi", **kwargs):
    return MessageRecord(conversation_id=conversation_id, role=role, content=content, **kwargs)


class TestMessageRecord:

    def test_defaults(self):
        a, b = _record(), _record()
        assert a.id != b.id
        assert a.timestamp > 0
        assert a.tool_call_id is None

    def test_dict_round_trip(self):
        record = _record(role="tool", content="42", tool_call_id="c1", tool_name="calc")
        assert MessageRecord.from_dict(record.to_dict()) == record

    def test_from_row_with_null_content(self):
        record = MessageRecord.from_dict({
            "id": "r1", "conversation_id": "c", "role": "assistant", "content": None, "timestamp": 5,
        })
        assert record.content == ""
        assert record.timestamp == 5


class TestInMemoryStore:

    @pytest.mark.asyncio
    async def test_insertion_order_per_conversation(self):
        store = InMemoryMessageStore()
        await store.insert(_record(content="1"))
        await store.insert(_record("other", content="x"))
        await store.insert(_record(content="2"))

        assert [r.content for r in store.get_messages("conv1")] == ["1", "2"]
        assert [r.content for r in store.get_messages("other")] == ["x"]
        assert len(store.all_records()) == 3

    @pytest.mark.asyncio
    async def test_get_returns_copy(self):
        store = InMemoryMessageStore()
        await store.insert(_record())
        store.get_messages("conv1").clear()
        assert len(store.get_messages("conv1")) == 1

    @pytest.mark.asyncio
    async def test_clear(self):
        store = InMemoryMessageStore()
        await store.insert(_record())
        store.clear()
        assert store.get_messages("conv1") == []


class TestPostgresStore:

    @pytest.fixture
    def db(self):
        db = MagicMock(spec=Database)
        db.execute = AsyncMock(return_value="INSERT 0 1")
        db.fetch = AsyncMock(return_value=[])
        return db

    @pytest.mark.asyncio
    async def test_ensure_table(self, db):
        await PostgresMessageStore(db).ensure_table()
        sql = db.execute.await_args.args[0]
        assert "CREATE TABLE IF NOT EXISTS agent_messages" in sql

    @pytest.mark.asyncio
    async def test_insert_uses_positional_parameters(self, db):
        record = _record(role="meta", content="stopped", tool_name="stopped")

        await PostgresMessageStore(db).insert(record)

        query, *values = db.execute.await_args.args
        assert query.startswith("INSERT INTO agent_messages (id, conversation_id, role, content")
        assert "VALUES ($1, $2, $3, $4, $5, $6, $7, $8)" in query
        assert values == list(record.to_dict().values())

    @pytest.mark.asyncio
    async def test_get_messages_ordered_by_seq(self, db):
        row = _record(content="stored").to_dict()
        db.fetch.return_value = [row]

        records = await PostgresMessageStore(db).get_messages("conv1")

        query, conversation_id = db.fetch.await_args.args
        assert "ORDER BY seq" in query
        assert conversation_id == "conv1"
        assert records[0].content == "stored"

    @pytest.mark.asyncio
    async def test_delete_conversation(self, db):
        await PostgresMessageStore(db).delete_conversation("conv1")
        assert db.execute.await_args.args[1] == "conv1"

    def test_uninitialized_pool_raises(self):
        with pytest.raises(RuntimeError):
            Database(dsn="postgresql://localhost/test").pool


class TestDatabase:

    @pytest.mark.asyncio
    async def test_pool_lifecycle(self):
        pool = MagicMock()
        pool.close = AsyncMock()
        with patch("asyncpg.create_pool", AsyncMock(return_value=pool)) as create_pool:
            async with Database(dsn="postgresql://localhost/test", max_size=4) as db:
                assert db.is_initialized
                assert db.pool is pool
                # second initialize is a no-op
                await db.initialize()

        create_pool.assert_awaited_once_with(
            "postgresql://localhost/test", min_size=1, max_size=4, command_timeout=30.0,
        )
        pool.close.assert_awaited_once()
        assert not db.is_initialized
