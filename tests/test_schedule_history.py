# tests/test_schedule_history.py
from datetime import date

from delivery_ledger.database.repositories import ClientsRepo, ScheduleSnapshot
from delivery_ledger.modules.billing.schedule_history import items_for_day, schedule_at, weekday_key

from conftest import make_client, plan


def _history():
    # deliberately out of order
    return [
        ScheduleSnapshot("2024-02-01", plan(mon={"p1": 3})),
        ScheduleSnapshot("2024-01-01", plan(mon={"p1": 1})),
        ScheduleSnapshot("2024-03-01", plan(tue={"p2": 2})),
    ]


def test_empty_history_uses_current_schedule():
    current = plan(fri={"p1": 4})
    client = make_client(schedule=current)
    assert schedule_at(client, "2024-05-10") == current


def test_date_before_all_snapshots_resolves_to_oldest():
    client = make_client(history=_history())
    assert schedule_at(client, "2023-06-01") == plan(mon={"p1": 1})


def test_date_after_all_snapshots_resolves_to_newest():
    client = make_client(history=_history())
    assert schedule_at(client, "2025-01-01") == plan(tue={"p2": 2})


def test_latest_snapshot_on_or_before_target_wins():
    client = make_client(history=_history())
    assert schedule_at(client, "2024-01-31") == plan(mon={"p1": 1})
    assert schedule_at(client, "2024-02-01") == plan(mon={"p1": 3})
    assert schedule_at(client, date(2024, 2, 29)) == plan(mon={"p1": 3})


def test_items_for_day_by_weekday():
    schedule = plan(mon={"p1": 2})
    assert weekday_key(date(2024, 1, 1)) == "mon"
    assert [i.product_id for i in items_for_day(schedule, date(2024, 1, 1))] == ["p1"]
    assert items_for_day(schedule, date(2024, 1, 3)) == []
    assert items_for_day({}, date(2024, 1, 1)) == []


def test_same_date_snapshots_resolve_to_the_last_appended():
    history = [
        ScheduleSnapshot("2024-01-01", plan(mon={"p1": 5})),
        ScheduleSnapshot("2024-01-01", plan(mon={"p1": 9})),
    ]
    client = make_client(history=history)
    assert schedule_at(client, "2024-01-08") == plan(mon={"p1": 9})
    assert schedule_at(client, "2024-01-01") == plan(mon={"p1": 9})
    assert schedule_at(client, "2023-12-01") == plan(mon={"p1": 9})


def test_unsorted_history_with_shared_dates():
    history = [
        ScheduleSnapshot("2024-02-01", plan(mon={"p1": 3})),
        ScheduleSnapshot("2024-01-01", plan(mon={"p1": 1})),
        ScheduleSnapshot("2024-02-01", plan(mon={"p1": 7})),
        ScheduleSnapshot("2024-01-01", plan(mon={"p1": 2})),
    ]
    client = make_client(history=history)
    assert schedule_at(client, "2024-01-15") == plan(mon={"p1": 2})
    assert schedule_at(client, "2024-02-05") == plan(mon={"p1": 7})


def test_plan_edited_twice_in_one_day_bills_the_second(seeded, conn):
    repo = ClientsRepo(conn)
    repo.append_schedule_snapshot("c1", plan(mon={"p1": 5}), "2024-01-01")
    repo.append_schedule_snapshot("c1", plan(mon={"p1": 9}), "2024-01-01")
    client = repo.get("c1")
    assert client.delivery_schedule == plan(mon={"p1": 9.0})
    assert schedule_at(client, "2024-01-08") == client.delivery_schedule
