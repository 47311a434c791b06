"""
In-memory message store, used for tests and embedded single-process use.
"""

import logging
from collections import defaultdict
from typing import Dict, List

from .models import MessageRecord

logger = logging.getLogger(__name__)


class InMemoryMessageStore:
    """Append-only message store keeping records per conversation in insertion order."""

    def __init__(self) -> None:
        self._records: Dict[str, List[MessageRecord]] = defaultdict(list)

    async def insert(self, record: MessageRecord) -> None:
        self._records[record.conversation_id].append(record)
        logger.debug(
            f"Stored {record.role} record for conversation={record.conversation_id} "
            f"({len(record.content)} chars)"
        )

    def get_messages(self, conversation_id: str) -> List[MessageRecord]:
        """Return a copy of the records of *conversation_id*, oldest first."""
        return list(self._records.get(conversation_id, []))

    def all_records(self) -> List[MessageRecord]:
        return [r for records in self._records.values() for r in records]

    def clear(self) -> None:
        self._records.clear()
