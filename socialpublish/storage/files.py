"""
Persistence of upload metadata.
"""

import sqlite3
import uuid as uuid_lib
from typing import Optional

from pydantic import BaseModel

from ..types.files import Upload
from .database import Database, from_millis, now_millis

UPLOADS_NAMESPACE = uuid_lib.UUID("5b9ba0d0-8825-4c51-a34e-f849613dbcac")


class UploadPayload(BaseModel):
    """Metadata of a file about to be recorded."""

    hash: str
    original_name: str
    mimetype: str
    size: int
    alt_text: Optional[str] = None
    image_width: Optional[int] = None
    image_height: Optional[int] = None


def upload_uuid(payload: UploadPayload) -> str:
    """
    Deterministic identifier for an upload.

    The same bytes uploaded with the same name, alt text and dimensions
    always map to the same UUID.
    """
    name = (
        f"h:{payload.hash}/n:{payload.original_name}/a:{payload.alt_text or ''}"
        f"/w:{payload.image_width or ''}/h:{payload.image_height or ''}/m:{payload.mimetype}"
    )
    return str(uuid_lib.uuid5(UPLOADS_NAMESPACE, name))


class FilesDatabase:
    """Async access to the uploads table."""

    def __init__(self, db: Database):
        self.db = db

    async def create_file(self, payload: UploadPayload) -> Upload:
        """Record an upload, returning the existing row for duplicates."""
        return await self.db.run(self._create_file, payload)

    async def get_file_by_uuid(self, file_uuid: str) -> Optional[Upload]:
        return await self.db.run(self._get_file_by_uuid, file_uuid)

    def _create_file(self, payload: UploadPayload) -> Upload:
        file_uuid = upload_uuid(payload)
        with self.db.transaction() as conn:
            row = conn.execute("SELECT * FROM uploads WHERE uuid = ?", (file_uuid,)).fetchone()
            if row is not None:
                return self._to_upload(row)

            created_at = now_millis()
            conn.execute(
                "INSERT INTO uploads "
                "(uuid, hash, originalname, mimetype, size, altText, imageWidth, imageHeight, createdAt) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    file_uuid,
                    payload.hash,
                    payload.original_name,
                    payload.mimetype,
                    payload.size,
                    payload.alt_text,
                    payload.image_width,
                    payload.image_height,
                    created_at,
                ),
            )
            return Upload(
                uuid=file_uuid,
                created_at=from_millis(created_at),
                **payload.model_dump(),
            )

    def _get_file_by_uuid(self, file_uuid: str) -> Optional[Upload]:
        with self.db.transaction() as conn:
            row = conn.execute("SELECT * FROM uploads WHERE uuid = ?", (file_uuid,)).fetchone()
            return self._to_upload(row) if row is not None else None

    @staticmethod
    def _to_upload(row: sqlite3.Row) -> Upload:
        return Upload(
            uuid=row["uuid"],
            hash=row["hash"],
            original_name=row["originalname"],
            mimetype=row["mimetype"],
            size=row["size"],
            alt_text=row["altText"],
            image_width=row["imageWidth"],
            image_height=row["imageHeight"],
            created_at=from_millis(row["createdAt"]),
        )
