# tests/test_loads.py
from datetime import date, timedelta

import pytest

from delivery_ledger.database.repositories import LoadRecord, LoadsRepo, ReturnItem
from delivery_ledger.modules.loads.production import production_suggestions
from delivery_ledger.modules.loads.service import LoadService
from delivery_ledger.modules.loads.utilization import (
    complete_load,
    daily_load_report,
    load_totals,
    scheduled_load_for_day,
    utilization_level,
)

from conftest import PRODUCTS, make_client, plan


def _completed(load_id, driver, day, product, sold, returned):
    return LoadRecord(
        load_id=load_id,
        driver_id=driver,
        date=day,
        status="completed",
        load_items={product: sold + returned},
        return_items=[ReturnItem(product, returned, sold)],
    )


# --------------------------- utilization ---------------------------

def test_load_totals():
    assert load_totals({"p1": 60, "p2": 40}, [ReturnItem("p1", 10, 50), ReturnItem("p2", 10, 30)]) == (100, 80, 20, 80)
    assert load_totals({}, []) == (0, 0, 0, 0)
    assert load_totals({"p1": 3}, [ReturnItem("p1", 1, 2)])[3] == 67


def test_complete_load_returns_completed_copy():
    load = LoadRecord("L1", "d1", "2024-01-01", status="in_route", load_items={"p1": 10})
    done = complete_load(load, [ReturnItem("p1", 2, 8)], "2024-01-01T18:00:00.000000Z")
    assert done.status == "completed"
    assert (done.total_loaded, done.total_sold, done.total_returned, done.utilization_rate) == (10, 8, 2, 80)
    assert load.status == "in_route"
    assert load.return_items == []


@pytest.mark.parametrize("rate, level", [(100, "good"), (80, "good"), (79, "fair"), (60, "fair"), (59, "poor"), (0, "poor")])
def test_utilization_level(rate, level):
    assert utilization_level(rate) == level


def test_daily_report_flags_high_returns():
    loads = [
        _completed("L1", "d1", "2024-01-01", "p1", sold=79, returned=21),
        _completed("L2", "d2", "2024-01-01", "p2", sold=80, returned=20),
        _completed("L3", "d1", "2024-01-02", "p1", sold=1, returned=99),
    ]
    report = daily_load_report("2024-01-01", loads, PRODUCTS, {"d1": "Rui", "d2": "Ana"})
    assert [d.driver_name for d in report.drivers] == ["Ana", "Rui"]
    assert (report.total_loaded, report.total_sold, report.total_returned) == (200, 159, 41)
    assert report.utilization_rate == 80
    lines = {l.product_id: l for l in report.product_breakdown}
    assert lines["p1"].alert_high_return is True
    assert lines["p2"].alert_high_return is False
    assert lines["p1"].utilization_rate == 79


def test_daily_report_counts_loads_still_on_the_road():
    loads = [LoadRecord("L1", "d1", "2024-01-01", status="in_route", load_items={"p1": 30})]
    report = daily_load_report("2024-01-01", loads, PRODUCTS)
    assert report.total_loaded == 30
    assert report.utilization_rate == 0
    assert report.product_breakdown[0].alert_high_return is False


def test_scheduled_load_for_day():
    clients = [
        make_client("a", schedule=plan(mon={"p1": 2})),
        make_client("b", schedule=plan(mon={"p1": 3, "p2": 1.5})),
        make_client("c", schedule=plan(mon={"p1": 9}), dynamic=True),
        make_client("d", schedule=plan(mon={"p1": 9}), skipped={"2024-01-01"}),
        make_client("e", schedule=plan(mon={"p1": 9}), status="INACTIVE"),
        make_client("f", schedule=plan(mon={"gone": 9})),
    ]
    assert scheduled_load_for_day(clients, PRODUCTS, "2024-01-01") == {"p1": 5, "p2": 2}
    assert scheduled_load_for_day(clients, PRODUCTS, "2024-01-02") == {}


# --------------------------- production ---------------------------

def _week(sold_per_day, start=date(2024, 1, 1), product="p1"):
    return [
        _completed(f"L{n}", "d1", (start + timedelta(days=n)).isoformat(), product, sold=s, returned=2)
        for n, s in enumerate(sold_per_day)
    ]


def test_production_suggestion_over_full_week():
    loads = _week([10, 10, 10, 10, 12, 12, 12])
    loads.append(_completed("old", "d1", "2023-12-31", "p1", sold=500, returned=0))
    loads.append(LoadRecord("open", "d1", "2024-01-07", status="in_route", load_items={"p1": 500}))
    by_id = {s.product_id: s for s in production_suggestions(loads, PRODUCTS, "2024-01-07")}
    p1 = by_id["p1"]
    assert p1.data_points == 7
    assert p1.avg_daily == pytest.approx(10.86, abs=0.01)
    assert p1.avg_returned == 2
    assert p1.suggested_quantity == 12
    assert p1.trend == "up"
    assert p1.confidence == "high"


def test_product_without_data_falls_back_to_target():
    by_id = {s.product_id: s for s in production_suggestions(_week([10] * 7), PRODUCTS, "2024-01-07")}
    p2 = by_id["p2"]
    assert p2.data_points == 0
    assert p2.suggested_quantity == 20
    assert p2.confidence == "low"
    assert p2.trend == "stable"


def test_drivers_on_the_same_day_form_one_data_point():
    loads = [
        _completed("A", "d1", "2024-01-05", "p1", sold=6, returned=1),
        _completed("B", "d2", "2024-01-05", "p1", sold=4, returned=1),
        _completed("C", "d1", "2024-01-06", "p1", sold=10, returned=0),
        _completed("D", "d1", "2024-01-07", "p1", sold=10, returned=0),
    ]
    p1 = next(s for s in production_suggestions(loads, PRODUCTS, "2024-01-07") if s.product_id == "p1")
    assert p1.data_points == 3
    assert p1.avg_daily == 10
    assert p1.suggested_quantity == 11
    assert p1.confidence == "medium"
    assert p1.trend == "stable"


def test_downward_trend():
    p1 = production_suggestions(_week([12, 12, 12, 12, 10, 10, 10]), PRODUCTS, "2024-01-07")
    assert next(s for s in p1 if s.product_id == "p1").trend == "down"


# --------------------------- service ---------------------------

def test_service_completes_and_reports(seeded, conn):
    repo = LoadsRepo(conn)
    repo.save(LoadRecord("L1", "d1", "2024-01-01", status="in_route", load_items={"p1": 50, "p2": 10}))
    svc = LoadService(conn)
    done = svc.complete("L1", [ReturnItem("p1", 5, 45), ReturnItem("p2", 4, 6)])
    assert done.utilization_rate == 85

    stored = repo.get("L1")
    assert stored.status == "completed"
    assert stored.total_sold == 51
    assert {ri.product_id: (ri.returned, ri.sold) for ri in stored.return_items} == {"p1": (5, 45), "p2": (4, 6)}

    report = svc.daily_report("2024-01-01")
    assert report.total_loaded == 60
    assert [l.alert_high_return for l in report.product_breakdown] == [False, True]

    suggestions = {s.product_id: s for s in svc.production_suggestions("2024-01-01")}
    assert suggestions["p1"].suggested_quantity == 50
    assert suggestions["p1"].data_points == 1


def test_service_refuses_unknown_or_completed_loads(seeded, conn):
    from delivery_ledger.database.repositories import LoadsDomainError

    LoadsRepo(conn).save(LoadRecord("L1", "d1", "2024-01-01", status="in_route", load_items={"p1": 5}))
    svc = LoadService(conn)
    with pytest.raises(LoadsDomainError):
        svc.complete("nope", [])
    with pytest.raises(LoadsDomainError):
        svc.complete("L1", [ReturnItem("p2", 0, 1)])
    svc.complete("L1", [ReturnItem("p1", 0, 5)])
    with pytest.raises(LoadsDomainError):
        svc.complete("L1", [ReturnItem("p1", 0, 5)])


def test_service_scheduled_load(seeded, conn):
    assert LoadService(conn).scheduled_load("d1", "2024-01-03") == {"p2": 4}
