"""
Type definitions for uploaded files and stored OAuth tokens.
"""

import time
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

# Tokens are treated as expired this many seconds early
TOKEN_EXPIRY_BUFFER_SECONDS = 300


class Upload(BaseModel):
    """A row of the uploads table."""

    uuid: str
    hash: str
    original_name: str
    mimetype: str
    size: int
    alt_text: Optional[str] = None
    image_width: Optional[int] = None
    image_height: Optional[int] = None
    created_at: datetime


class StoredImage(BaseModel):
    """Image bytes read back from storage, ready for re-upload."""

    uuid: str
    hash: str
    mimetype: str
    data: bytes
    alt_text: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def file_name(self) -> str:
        extension = "png" if self.mimetype == "image/png" else "jpg"
        return f"{self.uuid}.{extension}"


class FileUploadResponse(BaseModel):
    uuid: str
    url: str


# -----------------------------------------------------------------------------
# OAuth Tokens
# -----------------------------------------------------------------------------


class TwitterOAuthToken(BaseModel):
    """OAuth1 access token pair."""

    key: str
    secret: str


class LinkedInOAuthToken(BaseModel):
    """OAuth2 token set as returned by LinkedIn, plus when it was obtained."""

    model_config = ConfigDict(populate_by_name=True)

    access_token: str
    expires_in: int
    refresh_token: Optional[str] = None
    refresh_token_expires_in: Optional[int] = None
    obtained_at: float = Field(default_factory=time.time)

    def is_expired(self, now: Optional[float] = None) -> bool:
        """True when the access token expires within the safety buffer."""
        current = time.time() if now is None else now
        return current >= self.obtained_at + self.expires_in - TOKEN_EXPIRY_BUFFER_SECONDS
