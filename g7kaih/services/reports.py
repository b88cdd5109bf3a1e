"""
Reporting views over student activity.

Both reports read through the alias resolver so a student with two accounts
shows up once, with the activity of both accounts counted.
"""

import re
from datetime import date, datetime
from typing import Optional

from dateutil import parser as date_parser

from g7kaih.services.aliases import AliasResolver, StudentStats
from g7kaih.services.store import ActivityStore


def name_from_email(email: Optional[str]) -> Optional[str]:
    if not email:
        return None
    local = str(email).split("@")[0]
    words = [w for w in re.split(r"[._-]+", local) if w]
    if not words:
        return None
    return " ".join(w[:1].upper() + w[1:] for w in words)


def student_summary(profile: dict) -> dict:
    return {
        "userid": profile.get("userid"),
        "username": profile.get("username") or name_from_email(profile.get("email")),
        "email": profile.get("email"),
        "kelas": profile.get("kelas"),
    }


def activity_status(last_activity: Optional[str], now: datetime) -> str:
    if not last_activity:
        return "inactive"
    days = (now - date_parser.isoparse(last_activity)).total_seconds() / 86400
    if days <= 1:
        return "active"
    if days <= 7:
        return "completed"
    return "inactive"


def collect_stats(store: ActivityStore, resolver: AliasResolver, student_ids) -> dict[str, StudentStats]:
    """Per-person stats, keyed by alias primary."""
    raw: dict[str, StudentStats] = {}
    for activity in store.list_activities_for_users(sorted(resolver.expand(student_ids))):
        raw.setdefault(activity["userid"], StudentStats()).record(
            activity.get("created_at"), activity.get("categories") or []
        )
    return resolver.aggregate(raw)


def build_student_cards(
    store: ActivityStore,
    resolver: AliasResolver,
    guruwali_id: str,
    now: datetime,
) -> list[dict]:
    profiles = store.list_students(guruwali_id)
    if not profiles:
        return []

    stats = collect_stats(store, resolver, [p["userid"] for p in profiles])

    cards = []
    for profile in resolver.dedupe_for_display(profiles):
        student_id = profile["userid"]
        summary = stats.get(resolver.primary_of(student_id)) or StudentStats()
        cards.append({
            "id": student_id,
            "name": (
                resolver.display_name(student_id)
                or profile.get("username")
                or name_from_email(profile.get("email"))
                or "Unknown Student"
            ),
            "class": profile.get("kelas") or "Tidak diketahui",
            "email": profile.get("email"),
            "activitiesCount": summary.count,
            "lastActivity": summary.last_activity,
            "status": activity_status(summary.last_activity, now),
            "categories": sorted(summary.categories),
            "guruWaliId": guruwali_id,
        })

    cards.sort(key=lambda c: c["activitiesCount"], reverse=True)
    return cards


def daily_inactive_report(store: ActivityStore, resolver: AliasResolver, day: date) -> dict:
    students = resolver.dedupe_for_display(store.list_students())
    activities = store.list_activities_on_date(day)

    active_people = {resolver.primary_of(a["userid"]) for a in activities}
    active, inactive = [], []
    for student in students:
        entry = {
            "userid": student["userid"],
            "username": student.get("username"),
            "kelas": student.get("kelas"),
            "email": student.get("email"),
        }
        primary = resolver.primary_of(student["userid"])
        if primary in active_people:
            entry["activities"] = [
                a for a in activities if resolver.primary_of(a["userid"]) == primary
            ]
            active.append(entry)
        else:
            inactive.append(entry)

    total = len(students)
    return {
        "date": day.isoformat(),
        "totalStudents": total,
        "activeStudents": len(active),
        "inactiveStudents": inactive,
        "activeStudentsList": active,
        "activeRate": round(len(active) / total * 100) if total else 0,
    }
