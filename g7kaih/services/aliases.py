"""
Identity Alias Resolver.

Some students own two accounts. Admins record those pairs by hand as alias
groups (one primary id plus its members); reporting views use the groups to
fetch activity for every account and to show one card per person. Account
rows themselves are never merged.

Alias config file format:

    [
        {"primary": "6f07ae03-...", "members": ["eca885ad-..."], "display_name": "..."}
    ]
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

from dateutil import parser as date_parser
from pydantic import BaseModel, TypeAdapter

logger = logging.getLogger(__name__)


class AliasGroup(BaseModel):
    primary: str
    members: list[str] = []
    display_name: Optional[str] = None

    @property
    def ids(self) -> set[str]:
        return {self.primary, *self.members}


@dataclass
class StudentStats:
    count: int = 0
    last_activity: Optional[str] = None
    categories: set[str] = field(default_factory=set)

    def record(self, created_at: Optional[str], categories: Iterable[str] = ()) -> None:
        self.count += 1
        self.last_activity = latest(self.last_activity, created_at)
        self.categories.update(c for c in categories if c)


def latest(a: Optional[str], b: Optional[str]) -> Optional[str]:
    """The later of two ISO timestamps; None loses."""
    if not a:
        return b
    if not b:
        return a
    return b if date_parser.isoparse(b) > date_parser.isoparse(a) else a


def load_alias_groups(path: Optional[str]) -> list[AliasGroup]:
    if not path:
        return []
    source = Path(path)
    if not source.exists():
        logger.warning("Alias config %s not found; alias resolution disabled", path)
        return []
    raw = json.loads(source.read_text(encoding="utf-8"))
    return TypeAdapter(list[AliasGroup]).validate_python(raw)


class AliasResolver:
    def __init__(self, groups: Iterable[AliasGroup] = ()):
        self.groups = list(groups)
        self._primary_by_id: dict[str, str] = {}
        for group in self.groups:
            for member in group.ids:
                existing = self._primary_by_id.setdefault(member, group.primary)
                if existing != group.primary:
                    logger.warning(
                        "Student %s listed under aliases %s and %s; keeping %s",
                        member, existing, group.primary, existing,
                    )

    def primary_of(self, student_id: str) -> str:
        return self._primary_by_id.get(student_id, student_id)

    def display_name(self, student_id: str) -> Optional[str]:
        primary = self.primary_of(student_id)
        for group in self.groups:
            if group.primary == primary:
                return group.display_name
        return None

    def expand(self, ids: Iterable[str]) -> set[str]:
        expanded = set(ids)
        for group in self.groups:
            members = group.ids
            if members & expanded:
                expanded |= members
        return expanded

    def aggregate(self, stats_by_id: dict[str, StudentStats]) -> dict[str, StudentStats]:
        folded: dict[str, StudentStats] = {}
        for student_id, stats in stats_by_id.items():
            primary = self.primary_of(student_id)
            target = folded.setdefault(primary, StudentStats())
            target.count += stats.count
            target.last_activity = latest(target.last_activity, stats.last_activity)
            target.categories |= stats.categories
        return folded

    def dedupe_for_display(self, profiles: Iterable[dict], key: str = "userid") -> list[dict]:
        seen = set()
        result = []
        for profile in profiles:
            primary = self.primary_of(profile.get(key))
            if primary in seen:
                continue
            seen.add(primary)
            result.append(profile)
        return result
