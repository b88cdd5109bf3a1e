"""
Ingestion Coordinator — turns one student submission into activity rows.

Flow for a single request:
1. reject early (missing kegiatan, unknown kegiatan, window closed)
2. reserve today's activity header through the Submission Gate
3. bind submitted values to the category schema and insert them in one batch
4. upload attachments one by one, then insert their metadata in one batch

Values and uploads live in different systems with no shared transaction.
Per-item problems become warnings; rows written before a later failure stay.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from g7kaih.core import clock as clock_module
from g7kaih.core.config import settings
from g7kaih.core.errors import AlreadySubmittedError, NotFoundError, UnexpectedError, ValidationError
from g7kaih.schemas.aktivitas import CategoryValuesIn
from g7kaih.services.field_schema import (
    FieldDefinition,
    ImageField,
    MultiselectField,
    TextImageField,
    accepts,
    build_category_schema,
    field_kind,
)
from g7kaih.services.object_store import ObjectStore
from g7kaih.services.store import ActivityStore
from g7kaih.services.submission_gate import SubmissionGate

logger = logging.getLogger(__name__)

ATTACHMENT_PREFIX = "file:"


@dataclass
class Attachment:
    category_id: str
    field_key: str
    filename: str
    data: bytes
    content_type: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class IngestionResult:
    activity_id: str
    inserted_count: int
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "activityId": self.activity_id,
            "insertedCount": self.inserted_count,
            "warnings": self.warnings,
        }


def parse_attachment_name(name: str) -> Optional[tuple[str, str]]:
    """Split a multipart part name `file:{categoryId}:{fieldKey}`."""
    if not name or not name.startswith(ATTACHMENT_PREFIX):
        return None
    category_id, sep, field_key = name[len(ATTACHMENT_PREFIX):].partition(":")
    if not sep or not category_id or not field_key:
        return None
    return category_id, field_key


def _stringify(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def normalize_value(definition: FieldDefinition, value: Any) -> Optional[str]:
    """Text encoding of a submitted value for aktivitas_field_values.value."""
    kind = field_kind(definition)
    if isinstance(kind, ImageField):
        # bytes live in aktivitas_field_files
        return None
    if value is None:
        return None
    if isinstance(kind, MultiselectField):
        items = value if isinstance(value, (list, tuple)) else [value]
        return ",".join(_stringify(item) for item in items if item is not None)
    if isinstance(kind, TextImageField):
        if isinstance(value, dict) and "text" in value:
            text = value["text"]
            return None if text is None else _stringify(text)
        return _stringify(value)
    return _stringify(value)


def _megabytes(size: int) -> str:
    return f"{size / (1024 * 1024):.1f} MB"


class IngestionCoordinator:
    def __init__(
        self,
        store: ActivityStore,
        gate: SubmissionGate,
        object_store: ObjectStore,
        max_upload_bytes: int = settings.MAX_UPLOAD_BYTES,
        folder: str = settings.STORAGE_FOLDER,
    ):
        self.store = store
        self.gate = gate
        self.object_store = object_store
        self.max_upload_bytes = max_upload_bytes
        self.folder = folder

    def ingest(
        self,
        student_id: str,
        kegiatan_id: Optional[str],
        groups: Iterable[CategoryValuesIn],
        attachments: Iterable[Attachment] = (),
        name: Optional[str] = None,
        content: Optional[str] = None,
    ) -> IngestionResult:
        groups = list(groups)
        attachments = list(attachments)

        if not kegiatan_id or not str(kegiatan_id).strip():
            raise ValidationError("kegiatanid wajib diisi")
        kegiatan_id = str(kegiatan_id).strip()

        kegiatan = self.store.get_kegiatan(kegiatan_id)
        if not kegiatan:
            raise NotFoundError("Kegiatan tidak ditemukan")

        window = self.gate.check_window(kegiatan_id, student_id)
        if not window.can_submit:
            raise AlreadySubmittedError(window.last_submitted_at)

        activity_name = self.activity_name(name, kegiatan)
        activity_id = self.gate.reserve(kegiatan_id, student_id, activity_name, content)

        referenced = {g.categoryid for g in groups} | {a.category_id for a in attachments}
        lookup = self.field_lookup(kegiatan_id, referenced)
        warnings: list[str] = []
        stamp = self.gate.clock().isoformat()

        value_rows = []
        for group in groups:
            for submitted in group.fields:
                definition = lookup.get((group.categoryid, submitted.key))
                if definition is None:
                    warnings.append(f"unknown field: category={group.categoryid} key={submitted.key}")
                    continue
                value_rows.append({
                    "activityid": activity_id,
                    "categoryid": group.categoryid,
                    "fieldid": definition.storage_id,
                    "field_key": definition.key,
                    "value": normalize_value(definition, submitted.value),
                    "validated_by_teacher": False,
                    "validated_by_parent": False,
                    "created_at": stamp,
                    "updated_at": stamp,
                })

        try:
            self.store.insert_field_values(value_rows)
        except Exception as e:
            logger.exception("Failed to insert field values for activity %s", activity_id)
            raise UnexpectedError("Gagal menyimpan nilai aktivitas") from e

        file_rows = []
        uploaded = set()
        for attachment in attachments:
            row = self._upload(activity_id, attachment, lookup, warnings)
            if row:
                file_rows.append(row)
                uploaded.add((attachment.category_id, attachment.field_key))

        if file_rows:
            try:
                self.store.insert_field_files(file_rows)
            except Exception as e:
                logger.exception("Failed to insert file metadata for activity %s", activity_id)
                raise UnexpectedError("Gagal menyimpan metadata file") from e

        warnings.extend(self._missing_required(lookup, value_rows, uploaded))

        for warning in warnings:
            logger.warning("activity %s: %s", activity_id, warning)

        return IngestionResult(
            activity_id=activity_id,
            inserted_count=len(value_rows),
            warnings=warnings,
        )

    def activity_name(self, name: Optional[str], kegiatan: dict) -> str:
        if name and name.strip():
            return name.strip()
        stamp = self.gate.clock().astimezone(clock_module.local_zone()).strftime("%d/%m/%Y %H:%M")
        return f"{kegiatan.get('kegiatanname') or 'Aktivitas'} - {stamp}"

    def field_lookup(self, kegiatan_id: str, category_ids: set) -> dict[tuple[str, str], FieldDefinition]:
        lookup = {}
        for row in self.store.get_category_rows(kegiatan_id):
            schema = build_category_schema(row)
            if schema.category_id not in category_ids:
                continue
            for definition in schema.fields:
                lookup[(schema.category_id, definition.key)] = definition
        return lookup

    def _upload(self, activity_id, attachment, lookup, warnings) -> Optional[dict]:
        where = f"category={attachment.category_id} key={attachment.field_key}"
        definition = lookup.get((attachment.category_id, attachment.field_key))
        if definition is None:
            warnings.append(f"unknown file field: {where}")
            return None
        kind = field_kind(definition)
        if not isinstance(kind, (ImageField, TextImageField)):
            warnings.append(f"field does not accept files: {where} type={definition.type.value}")
            return None
        if attachment.size == 0:
            warnings.append(f"empty file skipped: {where} filename={attachment.filename}")
            return None
        if not accepts(kind.accept, attachment.content_type, attachment.filename):
            warnings.append(
                f"file type not accepted: {where} filename={attachment.filename} "
                f"content_type={attachment.content_type} accept={kind.accept}"
            )
            return None
        if attachment.size > self.max_upload_bytes:
            warnings.append(
                f"file too large: {where} filename={attachment.filename} "
                f"({_megabytes(attachment.size)} > {_megabytes(self.max_upload_bytes)})"
            )
            return None

        try:
            stored = self.object_store.store(
                attachment.data,
                attachment.filename,
                f"{self.folder}/{activity_id}",
                content_type=attachment.content_type,
            )
        except Exception as e:
            logger.warning("Upload failed for activity %s (%s): %s", activity_id, where, e)
            warnings.append(f"upload failed: {where} filename={attachment.filename}: {e}")
            return None

        return {
            "activityid": activity_id,
            "fieldid": definition.storage_id,
            "filename": attachment.filename,
            "storage_url": stored.url,
            "storage_public_id": stored.public_id,
            "content_type": attachment.content_type or "application/octet-stream",
        }

    @staticmethod
    def _missing_required(lookup, value_rows, uploaded) -> list[str]:
        answered = {
            (row["categoryid"], row["field_key"])
            for row in value_rows
            if row["value"] not in (None, "")
        }
        missing = []
        for (category_id, key), definition in lookup.items():
            if not definition.required:
                continue
            if (category_id, key) in answered or (category_id, key) in uploaded:
                continue
            missing.append(f"missing required field: category={category_id} key={key}")
        return missing
