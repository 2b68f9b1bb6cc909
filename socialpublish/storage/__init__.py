"""SQLite-backed storage for documents, uploads and posts."""

from .database import Database
from .documents import Document, DocumentsDatabase, DocumentTag
from .files import FilesDatabase, UploadPayload
from .posts import PostsDatabase

__all__ = [
    "Database",
    "Document",
    "DocumentsDatabase",
    "DocumentTag",
    "FilesDatabase",
    "PostsDatabase",
    "UploadPayload",
]
