from datetime import timedelta

import pytest

from aptitude_app.core.errors import LoadError, LoadErrorReason, StorageError
from aptitude_app.core.services.json_storage import JsonRecordFile
from aptitude_app.core.services.scheduled_tests import ScheduledTestRegistry


@pytest.fixture
def registry(clock):
    return ScheduledTestRegistry(clock=clock)


def _create(registry, clock, **overrides):
    fields = dict(
        title="Weekly Aptitude",
        start_date=clock.now() - timedelta(hours=1),
        end_date=clock.now() + timedelta(hours=1),
        duration_minutes=30,
        topics=["Mathematics", "Science"],
        question_count=10,
    )
    fields.update(overrides)
    return registry.create_scheduled_test(**fields)


def test_create_and_fetch(registry, clock):
    created = _create(registry, clock, description="  Covers chapters 1-3 ")
    assert created.id
    assert created.created_at == clock.now()
    assert created.description == "Covers chapters 1-3"
    assert registry.get_scheduled_test_by_id(created.id) == created
    assert registry.get_scheduled_test_by_id("missing") is None


@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"title": "  "}, "Title"),
        ({"duration_minutes": 0}, "Duration"),
        ({"question_count": 0}, "Question count"),
        ({"topics": []}, "Please select at least one topic."),
        ({"topics": ["  "]}, "Please select at least one topic."),
    ],
)
def test_create_validation(registry, clock, overrides, message):
    with pytest.raises(ValueError, match=message):
        _create(registry, clock, **overrides)


def test_end_must_follow_start(registry, clock):
    with pytest.raises(ValueError):
        _create(registry, clock, start_date=clock.now(), end_date=clock.now())


def test_update(registry, clock):
    created = _create(registry, clock)
    updated = registry.update_scheduled_test(created.id, is_active=False, title="Renamed")
    assert updated.title == "Renamed"
    assert not updated.is_active
    assert updated.created_at == created.created_at

    with pytest.raises(ValueError):
        registry.update_scheduled_test(created.id, created_at=clock.now())
    with pytest.raises(ValueError):
        registry.update_scheduled_test(created.id, question_count=-5)
    with pytest.raises(KeyError):
        registry.update_scheduled_test("missing", title="x")


def test_list_newest_first_and_delete(registry, clock):
    first = _create(registry, clock, title="First")
    clock.advance(60)
    second = _create(registry, clock, title="Second")
    assert [t.id for t in registry.list_scheduled_tests()] == [second.id, first.id]

    registry.delete_scheduled_test(first.id)
    assert [t.id for t in registry.list_scheduled_tests()] == [second.id]
    with pytest.raises(KeyError):
        registry.delete_scheduled_test(first.id)


def test_active_tests(registry, clock):
    open_now = _create(registry, clock, title="Open")
    _create(registry, clock, title="Later", start_date=clock.now() + timedelta(days=1),
            end_date=clock.now() + timedelta(days=2))
    _create(registry, clock, title="Disabled", is_active=False)

    assert [t.id for t in registry.get_active_scheduled_tests()] == [open_now.id]


def test_resolve_available_test_reasons(registry, clock):
    open_now = _create(registry, clock)
    future = _create(registry, clock, start_date=clock.now() + timedelta(hours=2),
                     end_date=clock.now() + timedelta(hours=3))
    disabled = _create(registry, clock, is_active=False)

    assert registry.resolve_available_test(open_now.id).id == open_now.id

    cases = [
        ("missing", LoadErrorReason.NOT_FOUND),
        (disabled.id, LoadErrorReason.DEACTIVATED),
        (future.id, LoadErrorReason.NOT_STARTED),
    ]
    for test_id, reason in cases:
        with pytest.raises(LoadError) as excinfo:
            registry.resolve_available_test(test_id)
        assert excinfo.value.reason is reason

    clock.advance(2 * 3600)
    with pytest.raises(LoadError) as excinfo:
        registry.resolve_available_test(open_now.id)
    assert excinfo.value.reason is LoadErrorReason.EXPIRED
    assert str(excinfo.value) == "This test is no longer available."


def test_persistence(tmp_path, clock):
    path = tmp_path / "scheduled_tests.json"
    registry = ScheduledTestRegistry(JsonRecordFile(path), clock=clock)
    created = _create(registry, clock)

    reloaded = ScheduledTestRegistry(JsonRecordFile(path), clock=clock)
    assert reloaded.get_scheduled_test_by_id(created.id) == created


def test_failed_write_leaves_registry_unchanged(tmp_path, clock, monkeypatch):
    storage = JsonRecordFile(tmp_path / "scheduled_tests.json")
    registry = ScheduledTestRegistry(storage, clock=clock)
    created = _create(registry, clock)

    def fail(rows):
        raise StorageError("disk full")

    monkeypatch.setattr(storage, "save", fail)

    with pytest.raises(StorageError):
        _create(registry, clock, title="Never saved")
    with pytest.raises(StorageError):
        registry.update_scheduled_test(created.id, title="Renamed")
    with pytest.raises(StorageError):
        registry.delete_scheduled_test(created.id)

    assert registry.list_scheduled_tests() == [created]
