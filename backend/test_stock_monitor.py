import asyncio
import threading
from datetime import datetime, timedelta

import pytest

from app.models.product import Product
from app.services import inventory_service
from app.services.stock_monitor import AlertDedup, AlertType, StockAlertMonitor, StockSnapshot
from app.services.stock_scheduler import start_stock_scheduler, stop_stock_scheduler


def snap(product_id=1, stock=5, min_stock=10, **kw) -> StockSnapshot:
    return StockSnapshot(product_id=product_id, name=f"Drug {product_id}", sku=f"SKU{product_id}",
                         stock=stock, min_stock=min_stock, **kw)


class FakeNotifier:
    def __init__(self, fail_for=()):
        self.sent = []
        self.fail_for = set(fail_for)

    async def notify(self, snapshot):
        self.sent.append(snapshot)
        if snapshot.product_id in self.fail_for:
            raise RuntimeError("channel down")


class Catalog:
    """Mutable low-stock listing standing in for the database."""

    def __init__(self, *snapshots):
        self.snapshots = list(snapshots)

    def __call__(self):
        return list(self.snapshots)


def run(coro):
    return asyncio.run(coro)


def test_alert_fires_once_per_stock_state_and_again_after_reset():
    catalog = Catalog(snap(stock=5))
    notifier = FakeNotifier()
    monitor = StockAlertMonitor(catalog, notifier)

    assert run(monitor.check_low_stock()) == 1
    assert run(monitor.check_low_stock()) == 0
    assert len(notifier.sent) == 1

    monitor.reset_product_notification(1)
    assert run(monitor.check_low_stock()) == 1
    assert len(notifier.sent) == 2


def test_new_stock_level_is_a_new_state():
    catalog = Catalog(snap(stock=5))
    notifier = FakeNotifier()
    monitor = StockAlertMonitor(catalog, notifier)
    run(monitor.check_low_stock())

    catalog.snapshots = [snap(stock=3)]
    run(monitor.check_low_stock())
    catalog.snapshots = [snap(stock=0)]
    run(monitor.check_low_stock())

    assert [s.stock for s in notifier.sent] == [5, 3, 0]
    assert [s.alert_type for s in notifier.sent] == [AlertType.LOW_STOCK, AlertType.LOW_STOCK, AlertType.OUT_OF_STOCK]


def test_reset_matches_exact_product_id():
    catalog = Catalog(snap(product_id=1), snap(product_id=12), snap(product_id=123))
    monitor = StockAlertMonitor(catalog, FakeNotifier())
    run(monitor.check_low_stock())

    monitor.reset_product_notification(1)

    assert (1, 5) not in monitor.notified
    assert (12, 5) in monitor.notified
    assert (123, 5) in monitor.notified


def test_dispatch_failure_still_marks_state_and_does_not_stop_tick():
    catalog = Catalog(snap(product_id=1), snap(product_id=2))
    notifier = FakeNotifier(fail_for={1})
    monitor = StockAlertMonitor(catalog, notifier)

    assert run(monitor.check_low_stock()) == 2
    assert [s.product_id for s in notifier.sent] == [1, 2]
    assert run(monitor.check_low_stock()) == 0


def test_fetch_failure_aborts_tick_without_raising():
    def broken():
        raise RuntimeError("db unreachable")

    notifier = FakeNotifier()
    monitor = StockAlertMonitor(broken, notifier)

    assert run(monitor.check_low_stock()) == 0
    assert notifier.sent == []
    assert not monitor.is_running
    assert monitor.last_tick_at is not None


def test_fetch_timeout_aborts_tick():
    release = threading.Event()

    def slow():
        release.wait(5)
        return [snap()]

    notifier = FakeNotifier()
    monitor = StockAlertMonitor(slow, notifier, fetch_timeout=0.05)
    # unblock the worker thread soon after the timeout so the loop can shut down
    threading.Timer(0.3, release.set).start()

    assert run(monitor.check_low_stock()) == 0
    assert notifier.sent == []


def test_overlapping_tick_is_skipped():
    class SlowNotifier(FakeNotifier):
        def __init__(self):
            super().__init__()
            self.gate = None

        async def notify(self, snapshot):
            await self.gate.wait()
            await super().notify(snapshot)

    notifier = SlowNotifier()
    monitor = StockAlertMonitor(Catalog(snap()), notifier)

    async def scenario():
        notifier.gate = asyncio.Event()
        first = asyncio.create_task(monitor.check_low_stock())
        while not monitor.is_running:
            await asyncio.sleep(0)
        second = await monitor.check_low_stock()
        notifier.gate.set()
        return await first, second

    first, second = run(scenario())
    assert (first, second) == (1, 0)
    assert len(notifier.sent) == 1


def test_dedup_evicts_oldest_at_capacity():
    clock = iter(datetime(2026, 3, 19) + timedelta(minutes=i) for i in range(10))
    dedup = AlertDedup(capacity=3, clock=lambda: next(clock))

    for key in [(1, 5), (2, 5), (3, 5), (4, 5)]:
        dedup.mark(key)

    assert list(dedup) == [(2, 5), (3, 5), (4, 5)]
    assert len(dedup) == 3
    assert dedup.sent_at((2, 5)) == datetime(2026, 3, 19, 0, 1)


def test_marking_twice_keeps_original_timestamp():
    times = iter([datetime(2026, 3, 19, 9), datetime(2026, 3, 19, 10)])
    dedup = AlertDedup(capacity=10, clock=lambda: next(times))
    dedup.mark((1, 5))
    dedup.mark((1, 5))
    assert dedup.sent_at((1, 5)) == datetime(2026, 3, 19, 9)


def test_capacity_must_be_positive():
    with pytest.raises(ValueError):
        AlertDedup(capacity=0)


def test_low_stock_snapshots_read_active_products_ascending(db, dolo, supplier):
    db.add_all([
        Product(sku="A", brand="Empty", generic="X", form="TAB", strength="1mg", mrp=1, stock=0, min_stock=5),
        Product(sku="B", brand="Plenty", generic="X", form="TAB", strength="1mg", mrp=1, stock=50, min_stock=5),
        Product(sku="C", brand="Retired", generic="X", form="TAB", strength="1mg", mrp=1, stock=1, min_stock=5,
                is_active=False),
    ])
    db.commit()

    snapshots = inventory_service.low_stock_snapshots()

    assert [s.sku for s in snapshots] == ["A", "DOLO-650MG-TAB"]
    assert snapshots[0].alert_type == AlertType.OUT_OF_STOCK
    assert snapshots[1].supplier_name == "Sun Pharma"
    assert snapshots[1].supplier_phone == "+91 98200 11111"
    assert snapshots[1].name == "Dolo 650mg TAB"


def test_scheduler_ticks_until_stopped():
    class CountingMonitor:
        def __init__(self):
            self.ticks = 0

        async def check_low_stock(self):
            self.ticks += 1
            return 0

    monitor = CountingMonitor()

    async def scenario():
        task = start_stock_scheduler(monitor, interval=0.01, initial_delay=0)
        assert start_stock_scheduler(monitor) is task
        while monitor.ticks < 3:
            await asyncio.sleep(0.01)
        await stop_stock_scheduler()
        return task

    task = run(scenario())
    assert task.cancelled()


def test_reset_during_dispatch_is_not_lost():
    class ResettingNotifier(FakeNotifier):
        """Simulates a product edit landing while the alert is in flight."""

        def __init__(self):
            super().__init__()
            self.monitor = None

        async def notify(self, snapshot):
            await super().notify(snapshot)
            if len(self.sent) == 1:
                self.monitor.reset_product_notification(snapshot.product_id)

    notifier = ResettingNotifier()
    monitor = StockAlertMonitor(Catalog(snap(stock=5)), notifier)
    notifier.monitor = monitor

    assert run(monitor.check_low_stock()) == 1
    assert (1, 5) not in monitor.notified
    assert run(monitor.check_low_stock()) == 1
    assert run(monitor.check_low_stock()) == 0
    assert len(notifier.sent) == 2


def test_mark_with_stale_generation_is_ignored():
    dedup = AlertDedup(capacity=10)
    generation = dedup.generation(1)
    dedup.forget_product(1)

    assert dedup.mark((1, 5), generation) is False
    assert (1, 5) not in dedup
    assert dedup.mark((1, 5), dedup.generation(1)) is True
    assert (1, 5) in dedup


def test_default_clock_is_timezone_aware():
    dedup = AlertDedup(capacity=10)
    dedup.mark((1, 5))
    assert dedup.sent_at((1, 5)).tzinfo is not None
