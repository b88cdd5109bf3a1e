"""
Aktivitas router — student submission, activity detail, teacher/parent validation.
"""

import json
import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError as SchemaValidationError
from starlette.datastructures import UploadFile

from g7kaih.core.dependencies import get_coordinator, get_validation_service
from g7kaih.core.errors import ForbiddenError, NotFoundError, ValidationError
from g7kaih.core.security import can_supervise, can_view_student, require_role
from g7kaih.schemas.aktivitas import AktivitasSubmit, ValidationToggle
from g7kaih.services.ingestion import Attachment, IngestionCoordinator, parse_attachment_name
from g7kaih.services.store import ActivityStore, get_store
from g7kaih.services.validation import PARENT_FLAG, TEACHER_FLAG, ValidationService, status_of
from g7kaih.utils.response import success_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/aktivitas", tags=["Aktivitas"])

FORM_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")


async def read_submission(request: Request) -> tuple[AktivitasSubmit, list[Attachment]]:
    """Accept either multipart (values JSON + file parts) or a plain JSON body."""
    content_type = request.headers.get("content-type", "")
    attachments = []

    if content_type.startswith(FORM_TYPES):
        form = await request.form()
        raw_values = form.get("values") or "[]"
        try:
            values = json.loads(raw_values)
        except ValueError:
            raise ValidationError("values harus berupa JSON array")
        payload = {
            "kegiatanid": form.get("kegiatanid"),
            "activityname": form.get("activityname"),
            "activitycontent": form.get("activitycontent"),
            "values": values,
        }
        for name, part in form.multi_items():
            if not isinstance(part, UploadFile):
                continue
            target = parse_attachment_name(name)
            if target is None:
                logger.warning("Ignoring file part with unexpected name %r", name)
                continue
            category_id, field_key = target
            attachments.append(
                Attachment(
                    category_id=category_id,
                    field_key=field_key,
                    filename=part.filename or "file",
                    data=await part.read(),
                    content_type=part.content_type,
                )
            )
    else:
        try:
            payload = await request.json()
        except ValueError:
            raise ValidationError("Body harus berupa JSON")

    if not isinstance(payload, dict):
        raise ValidationError("Format pengiriman tidak valid")
    try:
        submission = AktivitasSubmit.model_validate(payload)
    except SchemaValidationError as e:
        raise ValidationError("Format pengiriman tidak valid", details=str(e))
    return submission, attachments


@router.post("")
async def submit_aktivitas(
    request: Request,
    user: dict = Depends(require_role(["student"])),
    coordinator: IngestionCoordinator = Depends(get_coordinator),
):
    submission, attachments = await read_submission(request)
    result = coordinator.ingest(
        student_id=user["user_id"],
        kegiatan_id=submission.kegiatanid,
        groups=submission.values,
        attachments=attachments,
        name=submission.activityname,
        content=submission.activitycontent,
    )
    return JSONResponse(status_code=status.HTTP_201_CREATED, content=result.to_dict())


@router.post("/validate")
async def validate_field_value(
    body: ValidationToggle,
    user: dict = Depends(require_role(["teacher", "guruwali", "admin", "parent"])),
    service: ValidationService = Depends(get_validation_service),
    store: ActivityStore = Depends(get_store),
):
    if user["role"] == "parent":
        row = service.set_parent_validation(body.field_value_id, body.is_validated, user["user_id"])
        flag, actor = PARENT_FLAG, "orang tua"
    else:
        current = service.get(body.field_value_id)
        if not can_supervise(store, user, current.get("student_id")):
            raise ForbiddenError("Guru tidak membina siswa pemilik aktivitas ini")
        row = service.set_teacher_validation(body.field_value_id, body.is_validated)
        flag, actor = TEACHER_FLAG, "guru"

    return success_response(
        data={
            "fieldValueId": body.field_value_id,
            "isValidated": bool(row.get(flag)),
            "validatedByTeacher": bool(row.get(TEACHER_FLAG)),
            "validatedByParent": bool(row.get(PARENT_FLAG)),
            "status": status_of(row).value,
        },
        message=f"Validasi oleh {actor} diperbarui",
    )


@router.get("/{activity_id}")
async def get_aktivitas(
    activity_id: str,
    user: dict = Depends(require_role(["student", "parent", "teacher", "guruwali", "admin"])),
    store: ActivityStore = Depends(get_store),
):
    activity = store.get_activity(activity_id)
    if not activity:
        raise NotFoundError("Aktivitas tidak ditemukan")
    if not can_view_student(store, user, activity.get("userid")):
        raise ForbiddenError("Tidak memiliki akses ke aktivitas ini")

    values = []
    for row in store.list_field_values(activity_id):
        values.append({**row, "status": status_of(row).value})

    return success_response(data={
        **activity,
        "values": values,
        "files": store.list_field_files(activity_id),
    })
