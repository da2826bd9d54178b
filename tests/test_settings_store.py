# tests/test_settings_store.py

from __future__ import annotations

import threading
from datetime import timedelta

import pytest

from task_agent.errors import ConcurrentModificationError, InvariantViolationError, ValidationError
from task_agent.tasks.settings_store import SettingsStore
from task_agent.tasks.tuning import TuningSettings

from .conftest import START


def test_defaults() -> None:
    s = TuningSettings(updated_at=START)
    assert s.max_active_tasks == 10
    assert s.escalation_threshold_hours == 24
    assert s.minimum_confidence_threshold == 0.75
    assert s.default_snooze_duration == timedelta(hours=4)
    assert s.recommendation_validity_duration == timedelta(hours=1)
    assert not s.auto_apply_recommendations
    assert s.auto_escalate_overdue_tasks
    assert s.auto_awaken_snoozed_tasks
    s.validate_consistency()


@pytest.mark.parametrize(
    "kwargs",
    [
        {"max_active_tasks": 0},
        {"max_active_tasks": 101},
        {"escalation_threshold_hours": 0},
        {"escalation_threshold_hours": 169},
        {"minimum_confidence_threshold": -0.01},
        {"minimum_confidence_threshold": 1.01},
        {"default_snooze_duration": timedelta(seconds=59)},
        {"default_snooze_duration": timedelta(days=31)},
        {"recommendation_validity_duration": timedelta(seconds=30)},
        {"recommendation_validity_duration": timedelta(hours=25)},
    ],
)
def test_bounds_rejected(kwargs) -> None:
    with pytest.raises(ValidationError):
        TuningSettings(**kwargs)


def test_cross_field_rules() -> None:
    s = TuningSettings(minimum_confidence_threshold=0.4)
    s.validate_consistency()
    with pytest.raises(InvariantViolationError):
        s.with_flags(auto_apply_recommendations=True).validate_consistency()

    long_validity = TuningSettings(
        default_snooze_duration=timedelta(hours=1),
        recommendation_validity_duration=timedelta(hours=2),
    )
    with pytest.raises(InvariantViolationError):
        long_validity.validate_consistency()


def test_with_methods_copy_on_write() -> None:
    s = TuningSettings(updated_at=START)
    later = START + timedelta(minutes=1)
    s2 = s.with_max_active_tasks(15, now=later)
    assert s.max_active_tasks == 10
    assert s2.max_active_tasks == 15
    assert s2.updated_at == later
    assert s2.same_values(s.with_max_active_tasks(15, now=START))
    assert not s2.same_values(s)


def test_ensure_exists_is_idempotent(settings_store: SettingsStore) -> None:
    assert settings_store.get() is None
    first = settings_store.ensure_exists()
    second = settings_store.ensure_exists()
    assert first == second
    assert settings_store.count_rows() == 1


def test_save_round_trips_all_fields(settings_store: SettingsStore) -> None:
    s = TuningSettings(
        max_active_tasks=7,
        escalation_threshold_hours=12,
        minimum_confidence_threshold=0.6,
        default_snooze_duration=timedelta(hours=2),
        recommendation_validity_duration=timedelta(minutes=30),
        auto_apply_recommendations=True,
        auto_escalate_overdue_tasks=False,
        auto_awaken_snoozed_tasks=False,
        updated_at=START,
    )
    settings_store.save(s)
    settings_store.save(s.with_max_active_tasks(8, now=START + timedelta(seconds=1)))

    loaded = settings_store.get()
    assert loaded is not None
    assert loaded.max_active_tasks == 8
    assert loaded.default_snooze_duration == timedelta(hours=2)
    assert loaded.recommendation_validity_duration == timedelta(minutes=30)
    assert loaded.auto_apply_recommendations is True
    assert loaded.auto_awaken_snoozed_tasks is False
    assert loaded.updated_at == START + timedelta(seconds=1)
    assert settings_store.count_rows() == 1


def test_out_of_bounds_update_leaves_stored_value(settings_store: SettingsStore) -> None:
    current = settings_store.ensure_exists()
    for bad in (0, 101):
        with pytest.raises(ValidationError):
            settings_store.save(current.with_max_active_tasks(bad))
    assert settings_store.get() == current


def test_compare_and_swap(settings_store: SettingsStore) -> None:
    base = settings_store.ensure_exists()
    mine = base.with_max_active_tasks(12, now=START)
    theirs = base.with_max_active_tasks(20, now=START + timedelta(seconds=5))

    settings_store.save(theirs, expected_updated_at=base.updated_at)
    with pytest.raises(ConcurrentModificationError):
        settings_store.save(mine, expected_updated_at=base.updated_at)
    assert settings_store.get().max_active_tasks == 20


def test_concurrent_writers_keep_single_row(settings_store: SettingsStore) -> None:
    settings_store.ensure_exists()
    errors: list[Exception] = []

    def writer(n: int) -> None:
        try:
            for i in range(10):
                settings_store.save(TuningSettings(max_active_tasks=1 + (n * 10 + i) % 100))
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=writer, args=(n,)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert settings_store.count_rows() == 1
