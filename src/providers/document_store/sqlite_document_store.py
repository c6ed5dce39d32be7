"""SQLite-backed document store.

Persists one row per ingested PDF to a local SQLite database at
``data/docchat.db``.  Uses ``aiosqlite`` for async I/O.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import aiosqlite
import structlog

from src.interfaces.document_store import IDocumentStore
from src.models.document import Document, DocumentCreate
from src.utils.errors import StorageError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/docchat.db")

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS documents (
    id               TEXT    PRIMARY KEY,
    title            TEXT    NOT NULL,
    filename         TEXT    NOT NULL,
    file_size_bytes  INTEGER NOT NULL,
    page_count       INTEGER NOT NULL,
    content          TEXT    NOT NULL,
    upload_date      TEXT    NOT NULL
);
"""

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_documents_upload_date ON documents(upload_date);",
]

_INSERT_SQL = """\
INSERT INTO documents (id, title, filename, file_size_bytes, page_count, content, upload_date)
VALUES (?, ?, ?, ?, ?, ?, ?);
"""

_SELECT_COLUMNS = "id, title, filename, file_size_bytes, page_count, content, upload_date"


class SQLiteDocumentStore(IDocumentStore):
    """SQLite-backed document persistence."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create the documents table and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute(_CREATE_TABLE_SQL)
                for idx_sql in _CREATE_INDICES_SQL:
                    await db.execute(idx_sql)
                await db.commit()
        except aiosqlite.Error as exc:
            raise StorageError(
                message=f"Could not initialize document table: {exc}",
                provider_name="sqlite",
            ) from exc
        logger.info("document_db_initialized", path=str(self._db_path))

    async def insert(self, meta: DocumentCreate) -> Document:
        document = Document(
            id=meta.id,
            title=meta.title,
            filename=meta.filename,
            file_size_bytes=meta.file_size_bytes,
            page_count=meta.page_count,
            content=meta.content,
            upload_date=datetime.now(timezone.utc),
        )
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute(
                    _INSERT_SQL,
                    (
                        document.id,
                        document.title,
                        document.filename,
                        document.file_size_bytes,
                        document.page_count,
                        document.content,
                        document.upload_date.isoformat(),
                    ),
                )
                await db.commit()
        except aiosqlite.Error as exc:
            raise StorageError(
                message=f"Could not insert document {meta.id}: {exc}",
                provider_name="sqlite",
            ) from exc

        logger.info("document_row_inserted", document_id=document.id, title=document.title)
        return document

    async def get(self, document_id: str) -> Document | None:
        rows = await self._fetch(
            f"SELECT {_SELECT_COLUMNS} FROM documents WHERE id = ?", (document_id,)
        )
        return rows[0] if rows else None

    async def list_all(self) -> list[Document]:
        return await self._fetch(
            f"SELECT {_SELECT_COLUMNS} FROM documents ORDER BY upload_date DESC", ()
        )

    async def delete(self, document_id: str) -> bool:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                cursor = await db.execute("DELETE FROM documents WHERE id = ?", (document_id,))
                await db.commit()
                removed = cursor.rowcount > 0
        except aiosqlite.Error as exc:
            raise StorageError(
                message=f"Could not delete document {document_id}: {exc}",
                provider_name="sqlite",
            ) from exc
        logger.info("document_row_deleted", document_id=document_id, removed=removed)
        return removed

    async def count(self) -> int:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                cursor = await db.execute("SELECT COUNT(*) FROM documents")
                row = await cursor.fetchone()
        except aiosqlite.Error as exc:
            raise StorageError(
                message=f"Could not count documents: {exc}",
                provider_name="sqlite",
            ) from exc
        return int(row[0]) if row else 0

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _fetch(self, sql: str, params: tuple) -> list[Document]:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                cursor = await db.execute(sql, params)
                rows = await cursor.fetchall()
        except aiosqlite.Error as exc:
            raise StorageError(
                message=f"Document query failed: {exc}",
                provider_name="sqlite",
            ) from exc
        return [self._row_to_document(row) for row in rows]

    @staticmethod
    def _row_to_document(row: aiosqlite.Row) -> Document:
        return Document(
            id=row["id"],
            title=row["title"],
            filename=row["filename"],
            file_size_bytes=row["file_size_bytes"],
            page_count=row["page_count"],
            content=row["content"],
            upload_date=datetime.fromisoformat(row["upload_date"]),
        )
