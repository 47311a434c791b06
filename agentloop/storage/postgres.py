"""
Postgres-backed message store.

Records are appended to a single ``agent_messages`` table. A BIGSERIAL
``seq`` column preserves insertion order within a conversation, independent
of timestamp resolution.

Usage:
    db = Database(dsn="postgresql://...")
    await db.initialize()
    store = PostgresMessageStore(db)
    await store.ensure_table()
"""

import logging
from typing import Any, Dict, List

from .database import Database
from .models import MessageRecord

logger = logging.getLogger(__name__)


class Repository:
    """
    Base class for table-scoped data access.

    Subclasses define TABLE_NAME, CREATE_TABLE_SQL, and domain methods.
    """

    TABLE_NAME: str = ""
    CREATE_TABLE_SQL: str = ""

    def __init__(self, db: Database):
        self._db = db

    @property
    def db(self) -> Database:
        return self._db

    async def ensure_table(self) -> None:
        """Create the table if it does not exist. Call once at startup."""
        if self.CREATE_TABLE_SQL:
            await self._db.execute(self.CREATE_TABLE_SQL)
            logger.debug(f"Ensured table: {self.TABLE_NAME}")

    async def _insert(self, data: Dict[str, Any]) -> None:
        columns = list(data.keys())
        placeholders = [f"${i+1}" for i in range(len(columns))]
        query = (
            f"INSERT INTO {self.TABLE_NAME} ({', '.join(columns)}) "
            f"VALUES ({', '.join(placeholders)})"
        )
        await self._db.execute(query, *data.values())


class PostgresMessageStore(Repository):
    """Durable append-only MessageStore on top of asyncpg."""

    TABLE_NAME = "agent_messages"
    CREATE_TABLE_SQL = """
        CREATE TABLE IF NOT EXISTS agent_messages (
            seq             BIGSERIAL PRIMARY KEY,
            id              TEXT NOT NULL UNIQUE,
            conversation_id TEXT NOT NULL,
            role            TEXT NOT NULL,
            content         TEXT NOT NULL,
            timestamp       BIGINT NOT NULL,
            tool_call_id    TEXT,
            tool_name       TEXT,
            tool_calls      TEXT
        );
        CREATE INDEX IF NOT EXISTS idx_agent_messages_conversation
            ON agent_messages (conversation_id, seq);
    """

    async def insert(self, record: MessageRecord) -> None:
        await self._insert(record.to_dict())

    async def get_messages(self, conversation_id: str) -> List[MessageRecord]:
        """Load a conversation's records oldest first (used to seed history)."""
        rows = await self._db.fetch(
            f"SELECT * FROM {self.TABLE_NAME} WHERE conversation_id = $1 ORDER BY seq",
            conversation_id,
        )
        return [MessageRecord.from_dict(dict(r)) for r in rows]

    async def delete_conversation(self, conversation_id: str) -> None:
        await self._db.execute(
            f"DELETE FROM {self.TABLE_NAME} WHERE conversation_id = $1",
            conversation_id,
        )
