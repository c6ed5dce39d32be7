"""SQLite-backed conversation store.

Keeps chat messages in a ``chat_messages`` table keyed by conversation id,
in the same database file as the document table.  Single-tenant: anyone
who knows a conversation id can continue it.
"""

from __future__ import annotations

from pathlib import Path

import aiosqlite
import structlog

from src.interfaces.conversation_store import IConversationStore
from src.models.document import ConversationTurn
from src.utils.errors import StorageError

logger = structlog.get_logger(logger_name=__name__)

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS chat_messages (
    id               INTEGER PRIMARY KEY AUTOINCREMENT,
    conversation_id  TEXT    NOT NULL,
    role             TEXT    NOT NULL,
    content          TEXT    NOT NULL,
    created_at       TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
);
"""

_CREATE_INDEX_SQL = (
    "CREATE INDEX IF NOT EXISTS idx_chat_messages_conversation "
    "ON chat_messages(conversation_id, id);"
)

# Newest N by autoincrement id, re-sorted oldest first for the prompt.
_SELECT_RECENT_SQL = """\
SELECT role, content FROM (
    SELECT id, role, content FROM chat_messages
    WHERE conversation_id = ?
    ORDER BY id DESC
    LIMIT ?
) ORDER BY id ASC;
"""


class SQLiteConversationStore(IConversationStore):
    """SQLite-backed chat message persistence."""

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute(_CREATE_TABLE_SQL)
                await db.execute(_CREATE_INDEX_SQL)
                await db.commit()
        except aiosqlite.Error as exc:
            raise StorageError(
                message=f"Could not initialize chat_messages table: {exc}",
                provider_name="sqlite",
            ) from exc
        logger.info("conversation_db_initialized", path=str(self._db_path))

    async def get_recent_messages(
        self, conversation_id: str, limit: int = 10
    ) -> list[ConversationTurn]:
        if limit <= 0:
            return []
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                cursor = await db.execute(_SELECT_RECENT_SQL, (conversation_id, limit))
                rows = await cursor.fetchall()
        except aiosqlite.Error as exc:
            raise StorageError(
                message=f"Could not load conversation {conversation_id}: {exc}",
                provider_name="sqlite",
            ) from exc
        return [ConversationTurn(role=row["role"], content=row["content"]) for row in rows]

    async def append_messages(
        self, conversation_id: str, turns: list[ConversationTurn]
    ) -> None:
        if not turns:
            return
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.executemany(
                    "INSERT INTO chat_messages (conversation_id, role, content) VALUES (?, ?, ?)",
                    [(conversation_id, t.role, t.content) for t in turns],
                )
                await db.commit()
        except aiosqlite.Error as exc:
            raise StorageError(
                message=f"Could not save conversation {conversation_id}: {exc}",
                provider_name="sqlite",
            ) from exc
        logger.debug(
            "conversation_messages_appended",
            conversation_id=conversation_id,
            count=len(turns),
        )
