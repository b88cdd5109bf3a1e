"""
Orang tua router — the linked student's field values, filterable by validation state.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from g7kaih.core.dependencies import get_validation_service
from g7kaih.core.errors import NotFoundError, ValidationError
from g7kaih.core.security import require_role
from g7kaih.services.reports import student_summary
from g7kaih.services.store import ActivityStore, get_store
from g7kaih.services.validation import ValidationService, parse_status_filter
from g7kaih.utils.response import success_response

router = APIRouter(prefix="/api/orangtua", tags=["Orang Tua"])


@router.get("/siswa/activities")
async def get_child_field_values(
    validation_status: Optional[str] = Query(None, alias="validationStatus",
                                             description="pending | teacher | parent | both"),
    page: int = Query(1),
    limit: int = Query(20),
    user: dict = Depends(require_role(["parent"])),
    store: ActivityStore = Depends(get_store),
    service: ValidationService = Depends(get_validation_service),
):
    student_id = user.get("parent_of_userid")
    if not student_id:
        raise ValidationError("Akun orang tua belum terhubung dengan siswa")

    student = store.get_profile(student_id)
    if not student or student.get("rolename") != "student":
        raise NotFoundError("Siswa tidak ditemukan")

    listing = service.list_for_student(student_id, parse_status_filter(validation_status), page, limit)
    return success_response(data={"student": student_summary(student), **listing})
