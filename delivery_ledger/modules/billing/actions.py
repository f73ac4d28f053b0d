# delivery_ledger/modules/billing/actions.py
from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from typing import Any, Callable, Optional

from ...utils.helpers import today_str
from ...utils.loggers import get_logger

log = get_logger(__name__)


@dataclass
class ActionResult:
    success: bool
    id: Optional[str] = None        # created payment id (if any)
    message: Optional[str] = None   # user-facing message
    payload: Optional[dict] = None  # any extra data (echoed input, etc.)


# ------- dependency factories (DI-friendly) ---------------------------------

def _get_payments_repo(conn: sqlite3.Connection):
    from ...database.repositories.payments_repo import PaymentsRepo
    return PaymentsRepo(conn)


def _get_clients_repo(conn: sqlite3.Connection):
    from ...database.repositories.clients_repo import ClientsRepo
    return ClientsRepo(conn)


# ======================= Actions: Register Payment ===========================

def register_payment(
    *,
    conn: sqlite3.Connection,
    client_id: str,
    amount: float,
    method: str,
    date: Optional[str] = None,        # 'YYYY-MM-DD' (today if None)
    paid_until: Optional[str] = None,  # defaults to the payment date
    created_at: Optional[str] = None,
    # DI overrides (useful for tests)
    repo_factory: Callable[[sqlite3.Connection], Any] = _get_payments_repo,
    clients_factory: Callable[[sqlite3.Connection], Any] = _get_clients_repo,
) -> ActionResult:
    """
    Record a client payment and move the client's paid-through date.

    Two separate writes: the payment row first, then the client's
    last_payment_date / current_balance. If the second write fails the
    payment stays recorded and the result is a failure carrying its id, so
    the caller can retry the client update alone.
    """
    from ...database.repositories.clients_repo import DomainError as ClientsDomainError
    from ...database.repositories.payments_repo import DomainError as PaymentsDomainError

    payload = {"client_id": client_id, "amount": amount, "method": method, "date": date}
    clients = clients_factory(conn)
    client = clients.get(client_id)
    if client is None:
        log.warning("register_payment: unknown client %s", client_id)
        return ActionResult(success=False, message=f"Client {client_id} not found.", payload=payload)

    day = date or today_str()
    through = paid_until or day

    # 1) Payment row (repo validates amount, method and dates)
    repo = repo_factory(conn)
    try:
        payment_id = repo.record_payment(
            driver_id=client.driver_id,
            client_id=client_id,
            amount=amount,
            method=method,
            date=day,
            paid_until=through,
            route_id=client.route_id,
            created_at=created_at,
        )
    except (PaymentsDomainError, sqlite3.Error) as e:
        log.warning("register_payment rejected for client %s: %s", client_id, e)
        return ActionResult(success=False, message=str(e), payload=payload)

    log.info("Payment %s recorded: client=%s amount=%.2f method=%s", payment_id, client_id, float(amount), method)

    # 2) Client bookkeeping
    try:
        clients.mark_paid_through(client_id, through, balance=0.0)
    except (ClientsDomainError, sqlite3.Error) as e:
        log.exception("Payment %s stored but client %s was not updated", payment_id, client_id)
        return ActionResult(
            success=False,
            id=payment_id,
            message=f"Payment recorded, but the client could not be updated: {e}",
            payload=payload,
        )

    return ActionResult(success=True, id=payment_id, message="Payment recorded.", payload=payload)
