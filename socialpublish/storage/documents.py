"""
Generic key/value/tag document storage.

Documents hold a JSON payload, a `kind` and a unique `search_key`. They are
used for posts, OAuth tokens and OAuth state nonces.
"""

import sqlite3
import uuid as uuid_lib
from datetime import datetime
from typing import List, Optional, Sequence

from pydantic import BaseModel, Field

from .database import Database, from_millis, now_millis


class DocumentTag(BaseModel):
    name: str
    kind: str


class Document(BaseModel):
    uuid: str
    search_key: str
    kind: str
    payload: str
    tags: List[DocumentTag] = Field(default_factory=list)
    created_at: datetime


class DocumentsDatabase:
    """Async access to the documents and document_tags tables."""

    def __init__(self, db: Database):
        self.db = db

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def create_or_update(
        self,
        kind: str,
        payload: str,
        search_key: Optional[str] = None,
        tags: Sequence[DocumentTag] = (),
    ) -> Document:
        """
        Insert a document, or replace the payload of an existing one.

        Args:
            kind: Document kind, e.g. "post" or "twitter-oauth-token".
            payload: Serialized JSON payload.
            search_key: Unique lookup key; defaults to "{kind}:{uuid}".
            tags: Tags to attach; they replace existing tags on update.

        Returns:
            The stored document.
        """
        return await self.db.run(self._create_or_update, kind, payload, search_key, list(tags))

    def _create_or_update(
        self,
        kind: str,
        payload: str,
        search_key: Optional[str],
        tags: List[DocumentTag],
    ) -> Document:
        with self.db.transaction() as conn:
            existing = None
            if search_key is not None:
                existing = conn.execute(
                    "SELECT * FROM documents WHERE search_key = ?",
                    (search_key,),
                ).fetchone()

            if existing is not None:
                document_uuid = existing["uuid"]
                created_at = existing["created_at"]
                conn.execute(
                    "UPDATE documents SET payload = ?, kind = ? WHERE uuid = ?",
                    (payload, kind, document_uuid),
                )
                conn.execute(
                    "DELETE FROM document_tags WHERE document_uuid = ?",
                    (document_uuid,),
                )
            else:
                document_uuid = str(uuid_lib.uuid4())
                search_key = search_key or f"{kind}:{document_uuid}"
                created_at = now_millis()
                conn.execute(
                    "INSERT INTO documents (uuid, search_key, kind, payload, created_at) "
                    "VALUES (?, ?, ?, ?, ?)",
                    (document_uuid, search_key, kind, payload, created_at),
                )

            conn.executemany(
                "INSERT OR IGNORE INTO document_tags (document_uuid, name, kind) VALUES (?, ?, ?)",
                [(document_uuid, tag.name, tag.kind) for tag in tags],
            )

            return Document(
                uuid=document_uuid,
                search_key=existing["search_key"] if existing is not None else search_key,
                kind=kind,
                payload=payload,
                tags=tags,
                created_at=from_millis(created_at),
            )

    async def delete_by_key(self, search_key: str) -> bool:
        """Delete a document and its tags, returning whether it existed."""
        return await self.db.run(self._delete_by_key, search_key)

    def _delete_by_key(self, search_key: str) -> bool:
        with self.db.transaction() as conn:
            row = conn.execute(
                "SELECT uuid FROM documents WHERE search_key = ?",
                (search_key,),
            ).fetchone()
            if row is None:
                return False
            conn.execute("DELETE FROM document_tags WHERE document_uuid = ?", (row["uuid"],))
            conn.execute("DELETE FROM documents WHERE uuid = ?", (row["uuid"],))
            return True

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def search_by_key(self, search_key: str) -> Optional[Document]:
        return await self.db.run(self._search_one, "search_key", search_key)

    async def search_by_uuid(self, document_uuid: str) -> Optional[Document]:
        return await self.db.run(self._search_one, "uuid", document_uuid)

    async def get_all(self, kind: str, order_by_created_desc: bool = True) -> List[Document]:
        """
        List every document of a kind.

        Args:
            kind: Document kind to list.
            order_by_created_desc: Newest first when True, oldest first otherwise.
        """
        return await self.db.run(self._get_all, kind, order_by_created_desc)

    def _search_one(self, column: str, value: str) -> Optional[Document]:
        with self.db.transaction() as conn:
            row = conn.execute(
                f"SELECT * FROM documents WHERE {column} = ?",
                (value,),
            ).fetchone()
            if row is None:
                return None
            return self._to_document(conn, row)

    def _get_all(self, kind: str, order_by_created_desc: bool) -> List[Document]:
        direction = "DESC" if order_by_created_desc else "ASC"
        with self.db.transaction() as conn:
            rows = conn.execute(
                f"SELECT * FROM documents WHERE kind = ? ORDER BY created_at {direction}, rowid {direction}",
                (kind,),
            ).fetchall()
            return [self._to_document(conn, row) for row in rows]

    @staticmethod
    def _to_document(conn: sqlite3.Connection, row: sqlite3.Row) -> Document:
        tag_rows = conn.execute(
            "SELECT name, kind FROM document_tags WHERE document_uuid = ? ORDER BY rowid",
            (row["uuid"],),
        ).fetchall()
        return Document(
            uuid=row["uuid"],
            search_key=row["search_key"],
            kind=row["kind"],
            payload=row["payload"],
            tags=[DocumentTag(name=tag["name"], kind=tag["kind"]) for tag in tag_rows],
            created_at=from_millis(row["created_at"]),
        )
