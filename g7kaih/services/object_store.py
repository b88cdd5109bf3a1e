"""
Object store for uploaded activity files (Supabase Storage).
"""

import os
from dataclasses import dataclass
from typing import Optional, Protocol
from uuid import uuid4

from supabase import Client

from g7kaih.core.config import settings
from g7kaih.core.database import get_supabase


@dataclass(frozen=True)
class StoredObject:
    url: str
    public_id: str


class ObjectStore(Protocol):
    def store(
        self,
        data: bytes,
        filename: str,
        folder: str,
        content_type: Optional[str] = None,
    ) -> StoredObject:
        ...


def object_key(filename: str, folder: str, token: Optional[str] = None) -> str:
    """`{folder}/{token}-{stem}{ext}`; the token is a fresh uuid4 unless given."""
    stem, ext = os.path.splitext(os.path.basename(filename or "file"))
    return f"{folder.strip('/')}/{token or uuid4().hex}-{stem or 'file'}{ext.lower()}"


class SupabaseObjectStore:
    def __init__(self, db: Client, bucket: str):
        self.db = db
        self.bucket = bucket

    def store(self, data, filename, folder, content_type=None):
        path = object_key(filename, folder)
        bucket = self.db.storage.from_(self.bucket)
        # no upsert: a key collision must fail instead of replacing another upload
        bucket.upload(path, data, {"content-type": content_type or "application/octet-stream"})
        return StoredObject(url=bucket.get_public_url(path), public_id=path)


def get_object_store() -> ObjectStore:
    return SupabaseObjectStore(get_supabase(), settings.STORAGE_BUCKET)
