"""
Kegiatan router — read-only form schema and the student's daily submission window.
"""

from fastapi import APIRouter, Depends, Query

from g7kaih.core.dependencies import get_gate
from g7kaih.core.errors import NotFoundError
from g7kaih.core.security import get_current_user, require_role
from g7kaih.services.field_schema import build_category_schema
from g7kaih.services.store import ActivityStore, get_store
from g7kaih.services.submission_gate import SubmissionGate
from g7kaih.utils.response import success_response

router = APIRouter(prefix="/api", tags=["Kegiatan"])


@router.get("/kegiatan/{kegiatan_id}")
async def get_kegiatan_form(
    kegiatan_id: str,
    user: dict = Depends(get_current_user),
    store: ActivityStore = Depends(get_store),
):
    """Kegiatan with its categories and normalized input fields."""
    kegiatan = store.get_kegiatan(kegiatan_id)
    if not kegiatan:
        raise NotFoundError("Kegiatan tidak ditemukan")

    categories = [build_category_schema(row).to_dict() for row in store.get_category_rows(kegiatan_id)]
    return success_response(data={**kegiatan, "categories": categories})


@router.get("/submission-window")
async def get_submission_window(
    kegiatanid: str = Query(..., description="Kegiatan to check"),
    user: dict = Depends(require_role(["student"])),
    gate: SubmissionGate = Depends(get_gate),
):
    window = gate.check_window(kegiatanid, user["user_id"])
    return success_response(data=window.to_dict())
