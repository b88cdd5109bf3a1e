"""
Teacher router — daily inactive-student report and per-student field values.
"""

import re
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

from g7kaih.core import clock as clock_module
from g7kaih.core.clock import Clock
from g7kaih.core.dependencies import get_alias_resolver, get_clock, get_validation_service
from g7kaih.core.errors import ForbiddenError, NotFoundError, ValidationError
from g7kaih.core.security import can_supervise, require_role
from g7kaih.services.aliases import AliasResolver
from g7kaih.services.reports import daily_inactive_report, student_summary
from g7kaih.services.store import ActivityStore, get_store
from g7kaih.services.validation import ValidationService, parse_status_filter
from g7kaih.utils.response import success_response

router = APIRouter(prefix="/api/teacher", tags=["Teacher"])

DATE_PATTERN = re.compile(r"\d{4}-\d{2}-\d{2}")


@router.get("/reports/daily-inactive")
async def get_daily_inactive(
    day: Optional[str] = Query(None, alias="date", description="YYYY-MM-DD, defaults to today"),
    user: dict = Depends(require_role(["teacher", "guruwali", "admin"])),
    store: ActivityStore = Depends(get_store),
    resolver: AliasResolver = Depends(get_alias_resolver),
    clock: Clock = Depends(get_clock),
):
    if day:
        if not DATE_PATTERN.fullmatch(day):
            raise ValidationError("Format tanggal tidak valid. Gunakan YYYY-MM-DD")
        try:
            target = date.fromisoformat(day)
        except ValueError:
            raise ValidationError("Format tanggal tidak valid. Gunakan YYYY-MM-DD")
    else:
        target = clock_module.today(clock)

    return success_response(data=daily_inactive_report(store, resolver, target))


@router.get("/students/{student_id}/activities")
async def get_student_field_values(
    student_id: str,
    validation_status: Optional[str] = Query(None, alias="validationStatus",
                                             description="pending | teacher | parent | both"),
    page: int = Query(1),
    limit: int = Query(20),
    user: dict = Depends(require_role(["teacher", "guruwali", "admin"])),
    store: ActivityStore = Depends(get_store),
    service: ValidationService = Depends(get_validation_service),
):
    student = store.get_profile(student_id)
    if not student or student.get("rolename") != "student":
        raise NotFoundError("Siswa tidak ditemukan")
    if not can_supervise(store, user, student_id):
        raise ForbiddenError("Guru tidak membina siswa ini")

    listing = service.list_for_student(student_id, parse_status_filter(validation_status), page, limit)
    return success_response(data={"student": student_summary(student), **listing})
