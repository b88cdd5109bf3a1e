"""
Submission Gate — at most one activity per (kegiatan, student) per calendar day.

`check_window` is the advisory pre-check used before any upload work starts.
`reserve` is authoritative: it relies on the unique index on
(kegiatanid, userid, submitted_date) and turns its violation into
AlreadySubmittedError.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional

from g7kaih.core import clock as clock_module
from g7kaih.core.clock import Clock
from g7kaih.core.errors import AlreadySubmittedError
from g7kaih.services.store import ActivityStore, DuplicateActivity

logger = logging.getLogger(__name__)


@dataclass
class SubmissionWindow:
    can_submit: bool
    today: date
    last_submitted_at: Optional[str] = None
    last_submitted_date: Optional[date] = None

    def to_dict(self) -> dict:
        return {
            "canSubmit": self.can_submit,
            "today": self.today.isoformat(),
            "lastSubmittedAt": self.last_submitted_at,
            "lastSubmittedDate": self.last_submitted_date.isoformat() if self.last_submitted_date else None,
        }


class SubmissionGate:
    def __init__(self, store: ActivityStore, clock: Optional[Clock] = None):
        self.store = store
        self.clock = clock or clock_module.now

    def today(self) -> date:
        return clock_module.today(self.clock)

    def check_window(self, kegiatan_id: str, student_id: str) -> SubmissionWindow:
        today = self.today()
        existing = self.store.find_activity(kegiatan_id, student_id, today)
        if existing:
            return SubmissionWindow(
                can_submit=False,
                today=today,
                last_submitted_at=existing.get("created_at"),
                last_submitted_date=today,
            )
        return SubmissionWindow(can_submit=True, today=today)

    def reserve(
        self,
        kegiatan_id: str,
        student_id: str,
        name: str,
        content: Optional[str] = None,
    ) -> str:
        """Insert today's activity header and return its id."""
        current = self.clock()
        today = clock_module.today(lambda: current)
        row = {
            "kegiatanid": kegiatan_id,
            "userid": student_id,
            "activityname": name,
            "activitycontent": content,
            "status": "completed",
            "submitted_date": today.isoformat(),
            "created_at": current.isoformat(),
        }
        try:
            created = self.store.insert_activity(row)
        except DuplicateActivity:
            logger.info(
                "Concurrent submission rejected: kegiatan=%s student=%s date=%s",
                kegiatan_id, student_id, today,
            )
            existing = self.store.find_activity(kegiatan_id, student_id, today)
            raise AlreadySubmittedError(existing.get("created_at") if existing else None)
        return created["activityid"]
