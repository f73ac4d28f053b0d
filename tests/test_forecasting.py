# tests/test_forecasting.py
from datetime import date, timedelta

import pytest

from delivery_ledger.database.repositories import (
    ClientsDomainError,
    ConsumptionItem,
    ConsumptionRepo,
    make_consumption_record,
)
from delivery_ledger.modules.forecasting.consumption_stats import client_history, product_stats
from delivery_ledger.modules.forecasting.service import ForecastService
from delivery_ledger.modules.forecasting.predictor import (
    PredictorSettings,
    driver_load_summary,
    predict,
)

from conftest import PRODUCTS, make_client

MONDAY = date(2024, 1, 1)


def _records(quantities, *, client_id="c1", product_id="p1", start=MONDAY, step=7, price=1.0):
    out = []
    for n, q in enumerate(quantities):
        day = (start + timedelta(days=n * step)).isoformat()
        out.append(
            make_consumption_record(
                f"{client_id}-{n}",
                client_id,
                "d1",
                day,
                [ConsumptionItem(product_id, q, price)],
                created_at=f"{day}T10:00:00.000000Z",
            )
        )
    return out


# ---------------------------- stats ----------------------------

def test_basic_statistics():
    stats = product_stats(_records([4, 6, 4, 6]), "p1", "Pão")
    assert stats.total_orders == 4
    assert stats.total_quantity == 20
    assert stats.average_quantity == 5
    assert stats.min_quantity == 4
    assert stats.max_quantity == 6
    assert stats.std_deviation == pytest.approx(1.0)
    assert stats.last_order_date == "2024-01-22"


def test_product_never_ordered_gives_empty_stats():
    stats = product_stats(_records([4, 6]), "p2")
    assert stats.total_orders == 0
    assert stats.last_order_date is None
    assert stats.trend == "stable"


@pytest.mark.parametrize(
    "quantities, expected",
    [
        ([2, 2, 2, 4, 4, 4, 4, 4], "increasing"),
        ([4, 4, 4, 2, 2, 2, 2, 2], "decreasing"),
        ([10, 10, 10.5, 10.5, 10.5, 10.5, 10.5], "stable"),
        ([1, 2, 3, 4, 5], "stable"),  # nothing older than the recent five
        ([1, 9, 9, 9], "stable"),     # too few orders
    ],
)
def test_trend(quantities, expected):
    assert product_stats(_records(quantities), "p1").trend == expected


def test_by_day_of_week_breakdown():
    recs = _records([2, 4], start=MONDAY) + _records([6], start=MONDAY + timedelta(days=1), client_id="x")
    stats = product_stats(recs, "p1")
    by_day = {d.day_of_week: (d.average_quantity, d.order_count) for d in stats.by_day_of_week}
    assert by_day == {0: (3, 2), 1: (6, 1)}


def test_repeated_product_in_one_record_counts_once():
    rec = make_consumption_record(
        "r1", "c1", "d1", "2024-01-01", [ConsumptionItem("p1", 2, 1.0), ConsumptionItem("p1", 3, 1.0)]
    )
    stats = product_stats([rec], "p1")
    assert stats.total_orders == 1
    assert stats.total_quantity == 5


def test_client_history():
    client = make_client("c1", name="Ana", dynamic=True)
    recs = (
        _records([2, 2, 2], start=MONDAY + timedelta(days=2))  # Wednesdays
        + _records([1], client_id="c1b", start=MONDAY)
        + [make_consumption_record("m", "c1", "d1", "2024-01-01", [ConsumptionItem("p2", 4, 0.5)])]
    )
    history = client_history(client, recs, PRODUCTS)
    assert history.total_deliveries == 4
    assert history.first_delivery_date == "2024-01-01"
    assert history.last_delivery_date == "2024-01-17"
    assert history.preferred_days == [2, 0]
    assert [s.product_name for s in history.product_stats] == ["Viana", "Pão"]
    assert history.average_total_value == 2.0


# -------------------------- prediction --------------------------

def test_two_orders_is_not_enough_history():
    client = make_client(dynamic=True)
    p = predict(client, _records([5, 5]), PRODUCTS, "2024-03-11")
    assert p.has_history is False
    assert p.predicted_items == []
    assert p.predicted_total_value == 0.0


def test_ten_orders_mean_five_sd_one():
    client = make_client(dynamic=True)
    p = predict(client, _records([4, 6] * 5), PRODUCTS, "2024-03-11")
    assert p.has_history is True
    assert p.confidence == "high"
    assert p.day_of_week == 0
    [item] = p.predicted_items
    assert item.product_name == "Pão"
    assert item.avg_quantity == 5
    assert item.recommended_quantity == 6
    assert item.min_quantity == 4
    assert item.max_quantity == 6
    assert p.predicted_total_value == 6.0


def test_weekday_without_data_falls_back_to_overall_average():
    client = make_client(dynamic=True)
    recs = _records([2, 2, 2]) + _records([8, 8, 8], start=MONDAY + timedelta(days=4))
    tuesday = predict(client, recs, PRODUCTS, "2024-02-06")
    friday = predict(client, recs, PRODUCTS, "2024-02-09")
    assert tuesday.predicted_items[0].avg_quantity == 5
    assert friday.predicted_items[0].avg_quantity == 8


def test_minimum_is_never_below_one():
    client = make_client(dynamic=True)
    p = predict(client, _records([1, 1, 1, 9]), PRODUCTS, "2024-03-11")
    assert p.predicted_items[0].min_quantity == 1


def test_value_uses_client_price():
    client = make_client(dynamic=True, custom_prices={"p1": 0.5})
    p = predict(client, _records([4, 6] * 5), PRODUCTS, "2024-03-11")
    assert p.predicted_total_value == 3.0


@pytest.mark.parametrize("count, expected", [(3, "low"), (4, "low"), (5, "medium"), (9, "medium"), (10, "high")])
def test_confidence_tiers(count, expected):
    client = make_client(dynamic=True)
    assert predict(client, _records([5] * count), PRODUCTS, "2024-06-03").confidence == expected


def test_settings_raise_history_threshold():
    client = make_client(dynamic=True)
    p = predict(client, _records([5] * 4), PRODUCTS, "2024-06-03", PredictorSettings(min_history_records=5))
    assert p.has_history is False


def test_driver_load_summary_adds_up_dynamic_clients():
    clients = [
        make_client("a", name="Ana", dynamic=True),
        make_client("b", name="Bia", dynamic=True),
        make_client("c", name="Caio", dynamic=True, status="INACTIVE"),
        make_client("d", name="Duda", dynamic=True, driver_id="d2"),
        make_client("e", name="Edu"),
    ]
    recs = []
    for cid in ("a", "b", "c", "d"):
        recs += _records([4, 6] * 5, client_id=cid)
    summary = driver_load_summary("d1", clients, recs, PRODUCTS, "2024-03-11")
    assert summary.dynamic_clients_count == 2
    assert [p.client_id for p in summary.predictions] == ["a", "b"]
    [line] = summary.recommended_load
    assert (line.min_total, line.avg_total, line.max_total, line.recommended_total) == (8, 10, 12, 12)
    assert summary.total_recommended_value == 12.0


# --------------------------- service ---------------------------

def test_service_reads_consumption_store(seeded, conn):
    repo = ConsumptionRepo(conn)
    for record in _records([4, 6] * 5, client_id="c2"):
        repo.add(record)
    svc = ForecastService(conn)

    history = svc.client_history("c2")
    assert (history.client_name, history.total_deliveries) == ("Bruno", 10)
    assert history.preferred_days == [0]

    p = svc.predict("c2", "2024-03-11")
    assert p.predicted_items[0].recommended_quantity == 6
    assert svc.driver_load_summary("d1", "2024-03-11").recommended_load[0].recommended_total == 6

    with pytest.raises(ClientsDomainError):
        svc.predict("ghost", "2024-03-11")
