"""
agentloop Storage - Message persistence backends

- MessageRecord: persisted message form
- InMemoryMessageStore: process-local store
- Database / PostgresMessageStore: asyncpg-backed durable store
"""

from .models import MessageRecord
from .memory import InMemoryMessageStore
from .database import Database
from .postgres import PostgresMessageStore, Repository

__all__ = [
    "MessageRecord",
    "InMemoryMessageStore",
    "Database",
    "PostgresMessageStore",
    "Repository",
]
