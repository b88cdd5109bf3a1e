"""
Supabase access for the activity pipeline.

Routers and services never build PostgREST queries themselves; they go
through ActivityStore so the same calls can be served by an in-memory
double in tests.
"""

import logging
from datetime import date
from typing import Iterable, Optional

from postgrest.exceptions import APIError
from supabase import Client

from g7kaih.core.database import get_supabase

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"

PROFILE_COLUMNS = (
    "userid, username, email, kelas, roleid, guruwali_userid, parent_of_userid, "
    "role:roleid(rolename)"
)


class DuplicateActivity(Exception):
    """Storage rejected an activity because one already exists for that day."""


def _role_name(profile: dict) -> Optional[str]:
    linked = profile.pop("role", None)
    if isinstance(linked, list):
        linked = linked[0] if linked else None
    if isinstance(linked, dict):
        return linked.get("rolename")
    return None


class ActivityStore:
    def __init__(self, db: Client):
        self.db = db

    # ---- Schema source (read-only) ----

    def get_kegiatan(self, kegiatan_id: str) -> Optional[dict]:
        result = (
            self.db.table("kegiatan")
            .select("kegiatanid, kegiatanname, created_at")
            .eq("kegiatanid", kegiatan_id)
            .limit(1)
            .execute()
        )
        return result.data[0] if result.data else None

    def get_category_rows(self, kegiatan_id: str) -> list[dict]:
        """Categories linked to a kegiatan with their raw `inputs` schema."""
        result = (
            self.db.table("kegiatan_categories")
            .select("categoryid, category:categoryid(categoryid, categoryname, inputs)")
            .eq("kegiatanid", kegiatan_id)
            .execute()
        )
        rows = []
        for join in result.data or []:
            category = join.get("category")
            if category:
                rows.append(category)
        return rows

    # ---- Activities ----

    def find_activity(self, kegiatan_id: str, student_id: str, submitted_date: date) -> Optional[dict]:
        result = (
            self.db.table("aktivitas")
            .select("activityid, created_at, submitted_date")
            .eq("kegiatanid", kegiatan_id)
            .eq("userid", student_id)
            .eq("submitted_date", submitted_date.isoformat())
            .order("created_at", desc=True)
            .limit(1)
            .execute()
        )
        return result.data[0] if result.data else None

    def insert_activity(self, row: dict) -> dict:
        try:
            result = self.db.table("aktivitas").insert(row).execute()
        except APIError as e:
            if e.code == UNIQUE_VIOLATION:
                raise DuplicateActivity(str(e)) from e
            raise
        return result.data[0]

    def get_activity(self, activity_id: str) -> Optional[dict]:
        result = (
            self.db.table("aktivitas")
            .select(
                "activityid, activityname, activitycontent, kegiatanid, userid, status, "
                "submitted_date, created_at, kegiatan:kegiatanid(kegiatanname)"
            )
            .eq("activityid", activity_id)
            .limit(1)
            .execute()
        )
        if not result.data:
            return None
        activity = result.data[0]
        kegiatan = activity.pop("kegiatan", None) or {}
        activity["kegiatanname"] = kegiatan.get("kegiatanname")
        return activity

    def list_activities_for_users(self, user_ids: Iterable[str]) -> list[dict]:
        """Activity headers for the given users, each with its category names."""
        ids = list(user_ids)
        if not ids:
            return []
        result = (
            self.db.table("aktivitas")
            .select(
                "activityid, userid, kegiatanid, created_at, "
                "aktivitas_field_values(category:categoryid(categoryname))"
            )
            .in_("userid", ids)
            .execute()
        )
        rows = []
        for act in result.data or []:
            names = set()
            for fv in act.pop("aktivitas_field_values", None) or []:
                category = fv.get("category") or {}
                if category.get("categoryname"):
                    names.add(category["categoryname"])
            act["categories"] = sorted(names)
            rows.append(act)
        return rows

    def list_activities_on_date(self, submitted_date: date) -> list[dict]:
        result = (
            self.db.table("aktivitas")
            .select("activityid, activityname, userid, created_at")
            .eq("submitted_date", submitted_date.isoformat())
            .execute()
        )
        return result.data or []

    # ---- Field values / files ----

    def insert_field_values(self, rows: list[dict]) -> list[dict]:
        if not rows:
            return []
        result = self.db.table("aktivitas_field_values").insert(rows).execute()
        return result.data or []

    def insert_field_files(self, rows: list[dict]) -> list[dict]:
        if not rows:
            return []
        result = self.db.table("aktivitas_field_files").insert(rows).execute()
        return result.data or []

    def get_field_value(self, field_value_id: str) -> Optional[dict]:
        """Field value with the owning activity's student as `student_id`."""
        result = (
            self.db.table("aktivitas_field_values")
            .select("*, aktivitas:activityid(userid)")
            .eq("id", field_value_id)
            .limit(1)
            .execute()
        )
        if not result.data:
            return None
        row = result.data[0]
        owner = row.pop("aktivitas", None) or {}
        row["student_id"] = owner.get("userid")
        return row

    def update_field_value(self, field_value_id: str, data: dict) -> dict:
        result = (
            self.db.table("aktivitas_field_values")
            .update(data)
            .eq("id", field_value_id)
            .execute()
        )
        return result.data[0] if result.data else {}

    def list_field_values(self, activity_id: str) -> list[dict]:
        result = (
            self.db.table("aktivitas_field_values")
            .select("*")
            .eq("activityid", activity_id)
            .order("created_at")
            .execute()
        )
        return result.data or []

    def list_field_values_for_student(
        self,
        student_id: str,
        teacher: Optional[bool] = None,
        parent: Optional[bool] = None,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[dict], int]:
        """One page of a student's field values, newest first, plus the unpaged total.

        `teacher` / `parent` filter on the validation flags when not None.
        """
        query = (
            self.db.table("aktivitas_field_values")
            .select(
                "id, activityid, categoryid, fieldid, field_key, value, "
                "validated_by_teacher, validated_by_parent, created_at, updated_at, "
                "aktivitas!inner(userid, activityname, kegiatanid, submitted_date), "
                "category:categoryid(categoryname)",
                count="exact",
            )
            .eq("aktivitas.userid", student_id)
        )
        if teacher is not None:
            query = query.eq("validated_by_teacher", teacher)
        if parent is not None:
            query = query.eq("validated_by_parent", parent)
        result = query.order("created_at", desc=True).range(offset, offset + limit - 1).execute()

        rows = []
        for row in result.data or []:
            activity = row.pop("aktivitas", None) or {}
            category = row.pop("category", None) or {}
            row["activityname"] = activity.get("activityname")
            row["kegiatanid"] = activity.get("kegiatanid")
            row["submitted_date"] = activity.get("submitted_date")
            row["categoryname"] = category.get("categoryname")
            rows.append(row)
        return rows, result.count or 0

    def list_field_files(self, activity_id: str) -> list[dict]:
        result = (
            self.db.table("aktivitas_field_files")
            .select("activityid, fieldid, filename, storage_url, storage_public_id, content_type")
            .eq("activityid", activity_id)
            .execute()
        )
        return result.data or []

    # ---- Profiles ----

    def get_profile(self, user_id: str) -> Optional[dict]:
        result = (
            self.db.table("user_profiles")
            .select(PROFILE_COLUMNS)
            .eq("userid", user_id)
            .limit(1)
            .execute()
        )
        if not result.data:
            return None
        profile = result.data[0]
        profile["rolename"] = _role_name(profile)
        return profile

    def list_students(self, guruwali_id: Optional[str] = None) -> list[dict]:
        query = (
            self.db.table("user_profiles")
            .select("userid, username, email, kelas, created_at, role:roleid!inner(rolename)")
            .eq("role.rolename", "student")
        )
        if guruwali_id:
            query = query.eq("guruwali_userid", guruwali_id)
        result = query.order("username").execute()
        students = []
        for profile in result.data or []:
            profile.pop("role", None)
            students.append(profile)
        return students


def get_store() -> ActivityStore:
    return ActivityStore(get_supabase())
