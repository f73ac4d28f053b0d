# tests/test_settlement.py
import pytest

from delivery_ledger.database.repositories import (
    DeliveriesRepo,
    DeliveryItem,
    DeliveryRecord,
    PaymentRecord,
    PaymentsDomainError,
    PaymentsRepo,
    Route,
    SettlementRecord,
    SettlementsDomainError,
)
from delivery_ledger.modules.settlement.reconciler import (
    MODE_CALENDAR,
    MODE_SINCE_LAST,
    calculate_settlement,
    latest_confirmed,
)
from delivery_ledger.modules.settlement.service import SettlementService

from conftest import make_client

WEEK = "2024-01-01"
CLIENTS = [
    make_client("c1", name="Ana", route_id="r1"),
    make_client("c2", name="Bruno", route_id="r1"),
    make_client("c3", name="Carla", route_id=None),
]
ROUTES = [Route("r1", "Centro", "d1")]


def _pay(pid, client, amount, method, day, created=None, driver="d1"):
    return PaymentRecord(
        payment_id=pid,
        driver_id=driver,
        client_id=client,
        date=day,
        amount=amount,
        method=method,
        created_at=created or f"{day}T12:00:00.000000Z",
    )


def _delivered(did, client, day, total, *, at=None, status="delivered", route="r1"):
    return DeliveryRecord(
        did, day, "d1", client, items=[DeliveryItem("p1", total, 1.0, total)], total_value=total,
        status=status, route_id=route, delivered_at=at or f"{day}T09:00:00.000000Z",
    )


def _confirmed(sid, at, seq, driver="d1"):
    return SettlementRecord(sid, driver, WEEK, "2024-01-07", status="confirmed", confirmed_at=at, seq=seq)


# ----------------------------- pure -----------------------------

def test_cash_and_mbway_split():
    payments = [
        _pay("1", "c1", 10.0, "Dinheiro", "2024-01-02"),
        _pay("2", "c2", 5.0, "MBWay", "2024-01-03"),
    ]
    calc = calculate_settlement("d1", WEEK, payments, [], [], CLIENTS, ROUTES)
    assert calc.mode == MODE_CALENDAR
    assert calc.period_start == WEEK
    assert calc.week_end_date == "2024-01-07"
    assert calc.cash_total == 10
    assert calc.mbway_total == 5
    assert calc.total_received == 15
    assert calc.total_to_settle == 10


def test_calendar_week_bounds_and_driver_filter():
    payments = [
        _pay("1", "c1", 10.0, "Dinheiro", "2024-01-07"),
        _pay("2", "c1", 99.0, "Dinheiro", "2024-01-08"),
        _pay("3", "c1", 99.0, "Dinheiro", "2023-12-31"),
        _pay("4", "c1", 99.0, "Dinheiro", "2024-01-03", driver="d2"),
    ]
    calc = calculate_settlement("d1", WEEK, payments, [], [], CLIENTS, ROUTES)
    assert calc.total_received == 10
    assert calc.payments_count == 1


def test_other_methods_and_deliveries():
    payments = [
        _pay("1", "c1", 3.0, "Transferência", "2024-01-02"),
        _pay("2", "c1", 2.0, "Cartão", "2024-01-02"),
        _pay("3", "c2", 1.5, "Outro", "2024-01-02"),
    ]
    deliveries = [
        _delivered("a", "c1", "2024-01-02", 7.0),
        _delivered("b", "c2", "2024-01-02", 4.0, status="pending"),
        _delivered("c", "c2", "2024-01-03", 1.0, status="not_delivered"),
    ]
    calc = calculate_settlement("d1", WEEK, payments, deliveries, [], CLIENTS, ROUTES)
    assert calc.transfer_total == 3
    assert calc.other_total == 3.5
    assert calc.total_to_settle == 0
    assert calc.total_delivered == 7
    assert calc.deliveries_count == 1


def test_route_totals_and_client_audit_list():
    payments = [
        _pay("1", "c1", 10.0, "Dinheiro", "2024-01-02"),
        _pay("2", "c1", 5.0, "MBWay", "2024-01-04"),
        _pay("3", "c2", 4.0, "Dinheiro", "2024-01-02"),
        _pay("4", "c3", 2.0, "Dinheiro", "2024-01-02"),
    ]
    deliveries = [_delivered("a", "c1", "2024-01-02", 7.0)]
    calc = calculate_settlement("d1", WEEK, payments, deliveries, [], CLIENTS, ROUTES)

    routes = {r.route_id: r for r in calc.route_totals}
    assert routes["r1"].route_name == "Centro"
    assert routes["r1"].total_received == 19
    assert routes["r1"].total_delivered == 7
    assert routes["r1"].clients_paid == 2
    assert routes[""].route_name == "(no route)"
    assert routes[""].clients_paid == 1

    ana = calc.client_payments[0]
    assert ana.client_name == "Ana"
    assert ana.total_paid == 15
    assert ana.method == "Dinheiro, MBWay"
    assert ana.payment_dates == ["2024-01-02", "2024-01-04"]
    assert ana.route_name == "Centro"


def test_since_last_settlement_ignores_calendar():
    t = "2024-01-03T12:00:00.000000Z"
    payments = [
        _pay("1", "c1", 10.0, "Dinheiro", "2024-01-03", created="2024-01-03T11:59:59.999999Z"),
        _pay("2", "c1", 7.0, "Dinheiro", "2024-01-03", created="2024-01-03T12:00:00.000000Z"),
        _pay("3", "c1", 4.0, "Dinheiro", "2024-01-03", created="2024-01-03T12:00:00.000001Z"),
        _pay("4", "c2", 6.0, "Dinheiro", "2024-02-20"),
    ]
    deliveries = [
        _delivered("a", "c1", "2024-01-03", 3.0, at="2024-01-03T10:00:00.000000Z"),
        _delivered("b", "c1", "2024-01-03", 2.0, at="2024-01-03T13:00:00.000000Z"),
    ]
    calc = calculate_settlement("d1", WEEK, payments, deliveries, [_confirmed("s1", t, 1)], CLIENTS, ROUTES)
    assert calc.mode == MODE_SINCE_LAST
    assert calc.period_start == t
    assert calc.total_received == 10
    assert calc.total_delivered == 2


def test_latest_confirmed_uses_time_then_store_order():
    older = _confirmed("s1", "2024-01-03T12:00:00.000000Z", 5)
    tie_a = _confirmed("s2", "2024-01-10T12:00:00.000000Z", 6)
    tie_b = _confirmed("s3", "2024-01-10T12:00:00.000000Z", 7)
    pending = SettlementRecord("s4", "d1", WEEK, "2024-01-07", status="pending", seq=8)
    other = _confirmed("s5", "2025-01-01T00:00:00.000000Z", 9, driver="d2")
    assert latest_confirmed("d1", [tie_b, older, pending, tie_a, other]).settlement_id == "s3"
    assert latest_confirmed("d3", [older]) is None


def test_payments_after_the_cutoff_wait_for_the_next_period():
    cutoff = "2024-01-03T12:00:00.000000Z"
    payments = [
        _pay("1", "c1", 10.0, "Dinheiro", "2024-01-03", created="2024-01-03T11:00:00.000000Z"),
        _pay("2", "c1", 4.0, "Dinheiro", "2024-01-03", created="2024-01-03T12:00:00.000001Z"),
    ]
    deliveries = [_delivered("a", "c1", "2024-01-03", 3.0, at="2024-01-03T12:30:00.000000Z")]
    first = calculate_settlement("d1", WEEK, payments, deliveries, [], CLIENTS, ROUTES, until=cutoff)
    assert first.total_received == 10
    assert first.total_delivered == 0

    nxt = calculate_settlement("d1", WEEK, payments, deliveries, [_confirmed("s1", cutoff, 1)], CLIENTS, ROUTES)
    assert nxt.total_received == 4
    assert nxt.total_delivered == 3


def test_calculation_is_idempotent():
    payments = [_pay("1", "c1", 10.0, "Dinheiro", "2024-01-02")]
    args = ("d1", WEEK, payments, [_delivered("a", "c1", "2024-01-02", 7.0)], [], CLIENTS, ROUTES)
    assert calculate_settlement(*args) == calculate_settlement(*args)


# ----------------------------- service -----------------------------

@pytest.fixture()
def week_payments(seeded, conn):
    repo = PaymentsRepo(conn)
    repo.record_payment(driver_id="d1", client_id="c1", amount=10, method="Dinheiro",
                        date="2024-01-02", route_id="r1", created_at="2024-01-02T10:00:00.000000Z")
    repo.record_payment(driver_id="d1", client_id="c2", amount=5, method="MBWay",
                        date="2024-01-03", route_id="r1", created_at="2024-01-03T10:00:00.000000Z")
    DeliveriesRepo(conn).save(_delivered("a", "c1", "2024-01-02", 7.0))
    return repo


def test_confirm_closes_the_period(week_payments, conn):
    svc = SettlementService(conn)
    before = svc.calculate("d1", WEEK)
    assert (before.cash_total, before.mbway_total, before.total_to_settle) == (10, 5, 10)

    record = svc.confirm("d1", WEEK, "admin", amount_delivered=9.5, observations="  short  ")
    assert record.settlement_id.startswith("settlement-d1-2024-01-01-")
    assert record.status == "confirmed"
    assert record.seq is not None
    assert record.variance == -0.5
    assert record.observations == "short"
    assert [c.client_name for c in record.client_payments] == ["Ana", "Bruno"]

    stored = svc.history("d1")[0]
    assert stored.total_to_settle == 10
    assert stored.route_totals[0].route_name == "Centro"

    after = svc.calculate("d1", WEEK)
    assert after.mode == MODE_SINCE_LAST
    assert after.total_received == 0
    assert after.total_delivered == 0

    week_payments.record_payment(driver_id="d1", client_id="c1", amount=3, method="Dinheiro", date="2024-01-04")
    assert svc.calculate("d1", WEEK).total_to_settle == 3


def test_second_confirm_in_same_week_adds_a_record(week_payments, conn):
    svc = SettlementService(conn)
    first = svc.confirm("d1", WEEK, "admin")
    week_payments.record_payment(driver_id="d1", client_id="c1", amount=4, method="Dinheiro", date="2024-01-05")
    second = svc.confirm("d1", WEEK, "admin")
    assert first.settlement_id != second.settlement_id
    assert second.total_to_settle == 4
    assert [s.settlement_id for s in svc.history("d1")] == [second.settlement_id, first.settlement_id]


def test_denominations_give_amount_delivered(week_payments, conn):
    record = SettlementService(conn).confirm("d1", WEEK, "admin", denominations={"5": 2, "0.5": 1, "1": 0})
    assert record.amount_delivered == 10.5
    assert record.variance == 0.5
    assert record.denominations == {"5.00": 2, "0.50": 1}


@pytest.mark.parametrize(
    "kwargs",
    [
        {"amount_delivered": -1},
        {"denominations": {"3": 1}},
        {"denominations": {"5": -1}},
        {"denominations": {"5": 1.5}},
    ],
)
def test_confirm_rejects_bad_counts(week_payments, conn, kwargs):
    svc = SettlementService(conn)
    with pytest.raises(SettlementsDomainError):
        svc.confirm("d1", WEEK, "admin", **kwargs)
    assert svc.history("d1") == []


def test_cancel_latest_reopens_period(week_payments, conn):
    svc = SettlementService(conn)
    record = svc.confirm("d1", WEEK, "admin")
    svc.cancel(record.settlement_id)
    assert svc.history("d1") == []
    again = svc.calculate("d1", WEEK)
    assert again.mode == MODE_CALENDAR
    assert again.total_to_settle == 10


def test_only_latest_settlement_can_be_cancelled(week_payments, conn):
    svc = SettlementService(conn)
    first = svc.confirm("d1", WEEK, "admin")
    second = svc.confirm("d1", WEEK, "admin")
    with pytest.raises(SettlementsDomainError):
        svc.cancel(first.settlement_id)
    with pytest.raises(SettlementsDomainError):
        svc.cancel("missing")
    svc.cancel(second.settlement_id)
    svc.cancel(first.settlement_id)
    assert svc.history("d1") == []


def test_payment_backdated_into_a_confirmed_period_is_refused(week_payments, conn):
    svc = SettlementService(conn)
    record = svc.confirm("d1", WEEK, "admin")
    with pytest.raises(PaymentsDomainError):
        week_payments.record_payment(driver_id="d1", client_id="c1", amount=2, method="Dinheiro",
                                     date="2024-01-04", created_at="2024-01-04T10:00:00.000000Z")
    with pytest.raises(PaymentsDomainError):
        week_payments.record_payment(driver_id="d1", client_id="c1", amount=2, method="Dinheiro",
                                     date="2024-01-04", created_at=record.confirmed_at)
    assert svc.calculate("d1", WEEK).total_to_settle == 0

    # other drivers are unaffected
    week_payments.record_payment(driver_id="d2", client_id="c1", amount=2, method="Dinheiro",
                                 date="2024-01-04", created_at="2024-01-04T10:00:00.000000Z")


def test_cancelling_the_settlement_reopens_backdating(week_payments, conn):
    svc = SettlementService(conn)
    record = svc.confirm("d1", WEEK, "admin")
    svc.cancel(record.settlement_id)
    week_payments.record_payment(driver_id="d1", client_id="c1", amount=2, method="Dinheiro",
                                 date="2024-01-04", created_at="2024-01-04T10:00:00.000000Z")
    assert svc.calculate("d1", WEEK).total_to_settle == 12
