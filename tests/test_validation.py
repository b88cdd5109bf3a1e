import pytest

from g7kaih.core.errors import ForbiddenError, NotFoundError, ValidationError
from g7kaih.services.validation import (
    ValidationService,
    ValidationStatus,
    derive_status,
    parse_status_filter,
    status_of,
)


@pytest.fixture
def field_value_id(store):
    activity = store.add_activity("s1", "k1", "2024-05-10T08:00:00+07:00", categories=["c1"])
    return store.list_field_values(activity["activityid"])[0]["id"]


@pytest.mark.parametrize(
    "teacher, parent, expected",
    [
        (False, False, ValidationStatus.PENDING),
        (True, False, ValidationStatus.TEACHER_VALIDATED),
        (False, True, ValidationStatus.PARENT_VALIDATED),
        (True, True, ValidationStatus.FULLY_VALIDATED),
    ],
)
def test_status_truth_table(teacher, parent, expected):
    assert derive_status(teacher, parent) == expected


def test_flags_are_independent_and_reversible(store, clock, field_value_id):
    service = ValidationService(store, clock)

    row = service.set_teacher_validation(field_value_id, True)
    assert status_of(row) == ValidationStatus.TEACHER_VALIDATED

    row = service.set_parent_validation(field_value_id, True, "p1")
    assert status_of(row) == ValidationStatus.FULLY_VALIDATED

    row = service.set_teacher_validation(field_value_id, False)
    assert status_of(row) == ValidationStatus.PARENT_VALIDATED
    assert store.get_field_value(field_value_id)["validated_by_parent"] is True


def test_unchanged_flag_is_not_written(store, clock, field_value_id):
    service = ValidationService(store, clock)
    before = store.get_field_value(field_value_id)
    service.set_teacher_validation(field_value_id, False)
    assert "updated_at" not in store.get_field_value(field_value_id)
    assert store.get_field_value(field_value_id) == before


def test_update_stamps_updated_at(store, clock, field_value_id):
    ValidationService(store, clock).set_teacher_validation(field_value_id, True)
    assert store.get_field_value(field_value_id)["updated_at"] == clock().isoformat()


def test_unlinked_parent_is_forbidden(store, clock, field_value_id):
    service = ValidationService(store, clock)
    with pytest.raises(ForbiddenError):
        service.set_parent_validation(field_value_id, True, "p3")
    assert store.get_field_value(field_value_id)["validated_by_parent"] is False


def test_unknown_field_value(store, clock):
    with pytest.raises(NotFoundError):
        ValidationService(store, clock).set_teacher_validation("fv-missing", True)


def test_status_filter_accepts_short_and_full_names():
    assert parse_status_filter("teacher") == ValidationStatus.TEACHER_VALIDATED
    assert parse_status_filter(" BOTH ") == ValidationStatus.FULLY_VALIDATED
    assert parse_status_filter("parent_validated") == ValidationStatus.PARENT_VALIDATED
    assert parse_status_filter("") is None
    assert parse_status_filter(None) is None
    with pytest.raises(ValidationError):
        parse_status_filter("done")


def test_list_for_student_filters_and_clamps_paging(store, clock, field_value_id):
    service = ValidationService(store, clock)
    service.set_parent_validation(field_value_id, True, "p1")

    listing = service.list_for_student("s1", ValidationStatus.PARENT_VALIDATED, page=0, limit=500)
    assert [v["id"] for v in listing["values"]] == [field_value_id]
    assert listing["values"][0]["status"] == "parent_validated"
    assert listing["pagination"]["page"] == 1
    assert listing["pagination"]["limit"] == 100

    assert service.list_for_student("s1", ValidationStatus.PENDING)["values"] == []
    assert service.list_for_student("s2")["pagination"]["total"] == 0
