import threading
from decimal import Decimal

from pos_pricing.engine import CartLine, LatestCallGate, PricingContext, price


def test_only_latest_ticket_is_accepted():
    gate = LatestCallGate()
    first = gate.issue()
    second = gate.issue()

    # The newer call finishes first; the older result arrives late
    assert gate.accept(second, "second") is True
    assert gate.accept(first, "first") is False

    assert gate.latest == "second"
    assert gate.latest_ticket == second
    assert gate.is_current(second)
    assert not gate.is_current(first)


def test_nothing_accepted_yet():
    gate = LatestCallGate()
    assert gate.latest is None
    assert gate.latest_ticket is None


def test_superseded_before_completion():
    gate = LatestCallGate()
    ticket = gate.issue()
    gate.issue()
    assert gate.accept(ticket, "stale") is False
    assert gate.latest is None


def test_concurrent_quotes_keep_last_initiated(catalog, level_rule):
    gate = LatestCallGate()
    tickets = []
    lock = threading.Lock()

    def run(qty):
        with lock:
            ticket = gate.issue()
            tickets.append((ticket, qty))
        quote = price([CartLine('P1', qty)], PricingContext(price_level_id='L1'), catalog, [level_rule])
        gate.accept(ticket, quote)

    threads = [threading.Thread(target=run, args=(qty,)) for qty in range(1, 8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    last_ticket, last_qty = max(tickets)
    assert gate.latest_ticket == last_ticket
    assert gate.latest.grand_total == Decimal('90.00') * last_qty
