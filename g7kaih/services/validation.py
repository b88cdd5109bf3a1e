"""
Teacher / parent acknowledgment of submitted field values.

Two independent flags per field value; the status is derived, never stored.
Either flag can be set or cleared at any time and neither touches the other.
"""

import math
from enum import Enum
from typing import Optional

from g7kaih.core import clock as clock_module
from g7kaih.core.clock import Clock
from g7kaih.core.errors import ForbiddenError, NotFoundError, ValidationError
from g7kaih.services.store import ActivityStore

TEACHER_FLAG = "validated_by_teacher"
PARENT_FLAG = "validated_by_parent"
MAX_PAGE_SIZE = 100


class ValidationStatus(str, Enum):
    PENDING = "pending"
    TEACHER_VALIDATED = "teacher_validated"
    PARENT_VALIDATED = "parent_validated"
    FULLY_VALIDATED = "fully_validated"


def derive_status(by_teacher: bool, by_parent: bool) -> ValidationStatus:
    if by_teacher and by_parent:
        return ValidationStatus.FULLY_VALIDATED
    if by_teacher:
        return ValidationStatus.TEACHER_VALIDATED
    if by_parent:
        return ValidationStatus.PARENT_VALIDATED
    return ValidationStatus.PENDING


def status_of(row: dict) -> ValidationStatus:
    return derive_status(bool(row.get(TEACHER_FLAG)), bool(row.get(PARENT_FLAG)))


# (teacher flag, parent flag) that yield each status
STATUS_FLAGS = {
    ValidationStatus.PENDING: (False, False),
    ValidationStatus.TEACHER_VALIDATED: (True, False),
    ValidationStatus.PARENT_VALIDATED: (False, True),
    ValidationStatus.FULLY_VALIDATED: (True, True),
}

# short names accepted by the listing query string
STATUS_ALIASES = {
    "teacher": ValidationStatus.TEACHER_VALIDATED,
    "parent": ValidationStatus.PARENT_VALIDATED,
    "both": ValidationStatus.FULLY_VALIDATED,
}


def parse_status_filter(value: Optional[str]) -> Optional[ValidationStatus]:
    if not value or not value.strip():
        return None
    name = value.strip().lower()
    if name in STATUS_ALIASES:
        return STATUS_ALIASES[name]
    try:
        return ValidationStatus(name)
    except ValueError:
        raise ValidationError(
            "validationStatus tidak valid. Gunakan pending, teacher, parent, atau both",
            validationStatus=value,
        )


class ValidationService:
    def __init__(self, store: ActivityStore, clock: Optional[Clock] = None):
        self.store = store
        self.clock = clock or clock_module.now

    def get(self, field_value_id: str) -> dict:
        row = self.store.get_field_value(field_value_id)
        if not row:
            raise NotFoundError("Field value tidak ditemukan")
        return row

    def set_teacher_validation(self, field_value_id: str, validated: bool) -> dict:
        """Supervision of the owning student is checked by the caller."""
        row = self.get(field_value_id)
        return self._apply(row, TEACHER_FLAG, validated)

    def set_parent_validation(self, field_value_id: str, validated: bool, parent_id: str) -> dict:
        row = self.get(field_value_id)
        parent = self.store.get_profile(parent_id) or {}
        linked_student = parent.get("parent_of_userid")
        if not linked_student or linked_student != row.get("student_id"):
            raise ForbiddenError("Orang tua tidak terhubung dengan siswa pemilik aktivitas ini")
        return self._apply(row, PARENT_FLAG, validated)

    def _apply(self, row: dict, flag: str, validated: bool) -> dict:
        validated = bool(validated)
        if bool(row.get(flag)) == validated:
            return row
        updated = self.store.update_field_value(
            row["id"],
            {flag: validated, "updated_at": self.clock().isoformat()},
        )
        return {**row, **updated, flag: validated}

    def list_for_student(
        self,
        student_id: str,
        status: Optional[ValidationStatus] = None,
        page: int = 1,
        limit: int = 20,
    ) -> dict:
        """Paged field values of one student, optionally narrowed to one status."""
        page = max(1, page)
        limit = max(1, min(MAX_PAGE_SIZE, limit))
        teacher, parent = STATUS_FLAGS[status] if status else (None, None)
        rows, total = self.store.list_field_values_for_student(
            student_id,
            teacher=teacher,
            parent=parent,
            offset=(page - 1) * limit,
            limit=limit,
        )
        total_pages = math.ceil(total / limit)
        return {
            "values": [{**row, "status": status_of(row).value} for row in rows],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "totalPages": total_pages,
                "hasNext": page < total_pages,
                "hasPrev": page > 1,
            },
            "filters": {"validationStatus": status.value if status else None},
        }
