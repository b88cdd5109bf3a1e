import itertools
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from g7kaih.core.config import settings
from g7kaih.core.dependencies import get_alias_resolver, get_clock, get_report_cache
from g7kaih.main import app
from g7kaih.services.aliases import AliasResolver
from g7kaih.services.cache import NullCache
from g7kaih.services.object_store import StoredObject, get_object_store, object_key
from g7kaih.services.store import DuplicateActivity, get_store


class InMemoryStore:
    """Serves the ActivityStore calls from plain dicts."""

    def __init__(self):
        self._ids = itertools.count(1)
        self.kegiatan = {}
        self.categories = {}
        self.kegiatan_categories = {}
        self.profiles = {}
        self.activities = []
        self.field_values = []
        self.field_files = []
        # lookups that miss rows already written, as a concurrent request would
        self.stale_reads = 0

    def _next_id(self, prefix):
        return f"{prefix}-{next(self._ids)}"

    # ---- seeding ----

    def add_kegiatan(self, kegiatan_id, name, category_ids=()):
        self.kegiatan[kegiatan_id] = {"kegiatanid": kegiatan_id, "kegiatanname": name}
        self.kegiatan_categories[kegiatan_id] = list(category_ids)

    def add_category(self, category_id, name, inputs):
        self.categories[category_id] = {"categoryid": category_id, "categoryname": name, "inputs": inputs}

    def add_profile(self, user_id, role, username=None, **extra):
        self.profiles[user_id] = {
            "userid": user_id,
            "username": username,
            "email": extra.pop("email", f"{user_id}@sekolah.sch.id"),
            "kelas": extra.pop("kelas", None),
            "guruwali_userid": extra.pop("guruwali_userid", None),
            "parent_of_userid": extra.pop("parent_of_userid", None),
            "rolename": role,
            **extra,
        }

    def add_activity(self, user_id, kegiatan_id, created_at, submitted_date=None, categories=()):
        stamp = datetime.fromisoformat(created_at)
        row = {
            "activityid": self._next_id("act"),
            "kegiatanid": kegiatan_id,
            "userid": user_id,
            "activityname": "seed",
            "activitycontent": None,
            "status": "completed",
            "submitted_date": submitted_date or stamp.date().isoformat(),
            "created_at": created_at,
        }
        self.activities.append(row)
        for category_id in categories:
            self.field_values.append({
                "id": self._next_id("fv"),
                "activityid": row["activityid"],
                "categoryid": category_id,
                "fieldid": "seed",
                "field_key": "seed",
                "value": "x",
                "validated_by_teacher": False,
                "validated_by_parent": False,
            })
        return row

    # ---- ActivityStore surface ----

    def get_kegiatan(self, kegiatan_id):
        row = self.kegiatan.get(kegiatan_id)
        return dict(row) if row else None

    def get_category_rows(self, kegiatan_id):
        return [dict(self.categories[c]) for c in self.kegiatan_categories.get(kegiatan_id, []) if c in self.categories]

    def find_activity(self, kegiatan_id, student_id, submitted_date):
        if self.stale_reads:
            self.stale_reads -= 1
            return None
        matches = [
            a for a in self.activities
            if a["kegiatanid"] == kegiatan_id
            and a["userid"] == student_id
            and a["submitted_date"] == submitted_date.isoformat()
        ]
        if not matches:
            return None
        return dict(max(matches, key=lambda a: a["created_at"]))

    def insert_activity(self, row):
        for existing in self.activities:
            if (existing["kegiatanid"], existing["userid"], existing["submitted_date"]) == (
                row["kegiatanid"], row["userid"], row["submitted_date"]
            ):
                raise DuplicateActivity("duplicate key value violates unique constraint")
        created = {"activityid": self._next_id("act"), **row}
        self.activities.append(created)
        return dict(created)

    def get_activity(self, activity_id):
        for a in self.activities:
            if a["activityid"] == activity_id:
                kegiatan = self.kegiatan.get(a["kegiatanid"]) or {}
                return {**a, "kegiatanname": kegiatan.get("kegiatanname")}
        return None

    def list_activities_for_users(self, user_ids):
        ids = set(user_ids)
        rows = []
        for a in self.activities:
            if a["userid"] not in ids:
                continue
            names = {
                self.categories[fv["categoryid"]]["categoryname"]
                for fv in self.field_values
                if fv["activityid"] == a["activityid"] and fv["categoryid"] in self.categories
            }
            rows.append({
                "activityid": a["activityid"],
                "userid": a["userid"],
                "kegiatanid": a["kegiatanid"],
                "created_at": a["created_at"],
                "categories": sorted(names),
            })
        return rows

    def list_activities_on_date(self, submitted_date):
        return [
            {k: a[k] for k in ("activityid", "activityname", "userid", "created_at")}
            for a in self.activities
            if a["submitted_date"] == submitted_date.isoformat()
        ]

    def insert_field_values(self, rows):
        created = []
        for row in rows:
            stored = {"id": self._next_id("fv"), **row}
            self.field_values.append(stored)
            created.append(dict(stored))
        return created

    def insert_field_files(self, rows):
        self.field_files.extend(dict(r) for r in rows)
        return [dict(r) for r in rows]

    def get_field_value(self, field_value_id):
        for fv in self.field_values:
            if fv["id"] == field_value_id:
                owner = next((a for a in self.activities if a["activityid"] == fv["activityid"]), {})
                return {**fv, "student_id": owner.get("userid")}
        return None

    def update_field_value(self, field_value_id, data):
        for fv in self.field_values:
            if fv["id"] == field_value_id:
                fv.update(data)
                return dict(fv)
        return {}

    def list_field_values(self, activity_id):
        return [dict(fv) for fv in self.field_values if fv["activityid"] == activity_id]

    def list_field_values_for_student(self, student_id, teacher=None, parent=None, offset=0, limit=20):
        owned = {a["activityid"]: a for a in self.activities if a["userid"] == student_id}
        matches = [
            fv for fv in self.field_values
            if fv["activityid"] in owned
            and (teacher is None or fv["validated_by_teacher"] == teacher)
            and (parent is None or fv["validated_by_parent"] == parent)
        ]
        matches.sort(key=lambda fv: fv.get("created_at") or "", reverse=True)
        rows = []
        for fv in matches[offset:offset + limit]:
            activity = owned[fv["activityid"]]
            category = self.categories.get(fv["categoryid"]) or {}
            rows.append({
                **fv,
                "activityname": activity["activityname"],
                "kegiatanid": activity["kegiatanid"],
                "submitted_date": activity["submitted_date"],
                "categoryname": category.get("categoryname"),
            })
        return rows, len(matches)

    def list_field_files(self, activity_id):
        return [dict(f) for f in self.field_files if f["activityid"] == activity_id]

    def get_profile(self, user_id):
        profile = self.profiles.get(user_id)
        return dict(profile) if profile else None

    def list_students(self, guruwali_id=None):
        students = [
            {k: v for k, v in p.items() if k != "rolename"}
            for p in self.profiles.values()
            if p["rolename"] == "student" and (guruwali_id is None or p["guruwali_userid"] == guruwali_id)
        ]
        return sorted(students, key=lambda p: p.get("username") or "")


class FakeObjectStore:
    def __init__(self, fail=False):
        self.fail = fail
        self.stored = []

    def store(self, data, filename, folder, content_type=None):
        if self.fail:
            raise RuntimeError("bucket offline")
        key = object_key(filename, folder)
        self.stored.append((key, data, content_type))
        return StoredObject(url=f"https://storage.test/{key}", public_id=key)


class MutableClock:
    def __init__(self, current):
        self.current = current

    def __call__(self):
        return self.current

    def advance(self, **kwargs):
        self.current = self.current + timedelta(**kwargs)


DAILY_INPUTS = [
    {"key": "catatan", "label": "Catatan", "type": "text", "required": True, "order": 1},
    {"key": "foto", "label": "Foto", "type": "image", "order": 2, "config": {"accept": "image/*"}},
    {"key": "jam", "label": "Jam bangun", "type": "TIME", "order": 0},
    {"key": "bukti", "label": "Bukti", "type": "text_image", "order": 3},
]

SPORT_INPUTS = '[{"key": "jenis", "label": "Jenis", "type": "multiselect", "config": {"options": "Lari, Renang\\nSepeda"}}]'


def seed(store):
    store.add_category("c1", "Bangun Pagi", DAILY_INPUTS)
    store.add_category("c2", "Berolahraga", SPORT_INPUTS)
    store.add_kegiatan("k1", "Kebiasaan Pagi", ["c1", "c2"])

    store.add_profile("g1", "guruwali", "Bu Ani")
    store.add_profile("g2", "guruwali", "Pak Budi")
    store.add_profile("t1", "teacher", "Pak Guru")
    store.add_profile("a1", "admin", "Admin")
    store.add_profile("s1", "student", "Dewi", kelas="7A", guruwali_userid="g1")
    store.add_profile("s2", "student", "Eko", kelas="7A", guruwali_userid="g1")
    store.add_profile("s3", "student", "Fajar", kelas="7B", guruwali_userid="g2")
    store.add_profile("p1", "parent", "Ibu Dewi", parent_of_userid="s1")
    store.add_profile("p3", "parent", "Ayah Fajar", parent_of_userid="s3")
    store.add_profile("x1", None, "Tanpa Peran")
    return store


@pytest.fixture
def store():
    return seed(InMemoryStore())


@pytest.fixture
def clock():
    # 08:00 in Jakarta
    return MutableClock(datetime(2024, 5, 10, 1, 0, tzinfo=timezone.utc))


@pytest.fixture
def object_store():
    return FakeObjectStore()


@pytest.fixture
def resolver():
    return AliasResolver()


@pytest.fixture
def client(store, clock, object_store, resolver, monkeypatch):
    monkeypatch.setattr(settings, "AUTH_MODE", "mock")
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_object_store] = lambda: object_store
    app.dependency_overrides[get_alias_resolver] = lambda: resolver
    app.dependency_overrides[get_report_cache] = lambda: NullCache()
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def auth(user_id):
    return {"Authorization": f"Bearer mock-{user_id}"}
