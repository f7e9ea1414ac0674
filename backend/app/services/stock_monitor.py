"""
Low-stock monitor with alert de-duplication.

Each tick reads active products at or below their reorder threshold and
alerts once per distinct (product, stock level) state. The same product at
the same stock is skipped on later ticks until something resets it: a new
stock value is a new state, and any edit to the product's stock or threshold
forgets every state recorded for that product.

The de-dup set lives in process memory only. A restart clears it, so
persisting low-stock conditions alert again on the first tick after boot.
"""
import asyncio
import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, Iterator, List, Optional, Protocol, Tuple

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 1000

AlertKey = Tuple[int, int]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AlertType:
    LOW_STOCK = "low_stock"
    OUT_OF_STOCK = "out_of_stock"


@dataclass(frozen=True)
class StockSnapshot:
    """What the monitor needs to know about a product at scan time."""
    product_id: int
    name: str
    sku: str
    stock: int
    min_stock: int
    unit: str = "units"
    category: str = ""
    supplier_name: Optional[str] = None
    supplier_phone: Optional[str] = None

    @property
    def alert_type(self) -> str:
        return AlertType.OUT_OF_STOCK if self.stock == 0 else AlertType.LOW_STOCK

    @property
    def key(self) -> AlertKey:
        return (self.product_id, self.stock)


class AlertNotifier(Protocol):
    async def notify(self, snapshot: StockSnapshot) -> None:
        ...


class AlertDedup:
    """
    Bounded record of (product_id, stock) states already alerted.

    Eviction is FIFO by insertion order once capacity is exceeded. Guarded by
    a lock because resets arrive from request threads while ticks run on the
    event loop.

    Each product carries a reset generation. A tick reads it before
    dispatching and marks through `mark(key, generation)`, which is a no-op
    when a reset happened in between.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY, clock: Callable[[], datetime] = _utcnow):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._clock = clock
        self._sent: "OrderedDict[AlertKey, datetime]" = OrderedDict()
        self._resets: Dict[int, int] = {}
        self._lock = threading.Lock()

    def __contains__(self, key: AlertKey) -> bool:
        with self._lock:
            return key in self._sent

    def __len__(self) -> int:
        with self._lock:
            return len(self._sent)

    def __iter__(self) -> Iterator[AlertKey]:
        with self._lock:
            return iter(list(self._sent))

    def sent_at(self, key: AlertKey) -> Optional[datetime]:
        with self._lock:
            return self._sent.get(key)

    def generation(self, product_id: int) -> int:
        with self._lock:
            return self._resets.get(product_id, 0)

    def mark(self, key: AlertKey, generation: Optional[int] = None) -> bool:
        """Record a state as alerted. False when the product was reset since `generation` was read."""
        with self._lock:
            if generation is not None and self._resets.get(key[0], 0) != generation:
                return False
            if key in self._sent:
                return True
            self._sent[key] = self._clock()
            while len(self._sent) > self.capacity:
                evicted, _ = self._sent.popitem(last=False)
                logger.debug(f"[StockMonitor] Evicted oldest alert state {evicted}")
            return True

    def forget_product(self, product_id: int) -> int:
        with self._lock:
            self._resets[product_id] = self._resets.get(product_id, 0) + 1
            stale = [key for key in self._sent if key[0] == product_id]
            for key in stale:
                del self._sent[key]
            return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._sent.clear()


class StockAlertMonitor:
    """
    Scan-and-alert state machine.

    Args:
        fetch_low_stock: blocking callable returning active products with stock <= min_stock
        notifier: dispatches one alert (fans out to recipients, never raises for a single recipient)
        capacity: bound on remembered alert states
        fetch_timeout: seconds allowed for fetch_low_stock before the tick is abandoned
    """

    def __init__(
        self,
        fetch_low_stock: Callable[[], List[StockSnapshot]],
        notifier: AlertNotifier,
        capacity: int = DEFAULT_CAPACITY,
        fetch_timeout: float = 30.0,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._fetch_low_stock = fetch_low_stock
        self.notifier = notifier
        self.fetch_timeout = fetch_timeout
        self.notified = AlertDedup(capacity=capacity, clock=clock)
        self._tick_running = False
        self.last_tick_at: Optional[datetime] = None
        self._clock = clock

    @property
    def is_running(self) -> bool:
        return self._tick_running

    async def check_low_stock(self) -> int:
        """
        Run one tick. Returns the number of alerts dispatched.

        Never raises: a failed product fetch aborts the tick and is logged so
        the scheduler keeps its cadence. A tick that starts while another is
        still running is skipped.
        """
        if self._tick_running:
            logger.warning("[StockMonitor] Previous stock check still running, skipping this tick")
            return 0

        self._tick_running = True
        try:
            return await self._tick()
        finally:
            self._tick_running = False
            self.last_tick_at = self._clock()

    async def _tick(self) -> int:
        loop = asyncio.get_running_loop()
        try:
            products = await asyncio.wait_for(
                loop.run_in_executor(None, self._fetch_low_stock),
                timeout=self.fetch_timeout,
            )
        except Exception as e:
            logger.error(f"[StockMonitor] Stock check aborted, could not load products: {e!r}")
            return 0

        logger.info(f"[StockMonitor] Stock check: found {len(products)} low stock products")

        dispatched = 0
        for snapshot in products:
            generation = self.notified.generation(snapshot.product_id)
            if snapshot.key in self.notified:
                continue
            try:
                await self.notifier.notify(snapshot)
            except Exception as e:
                logger.error(f"[StockMonitor] Alert dispatch failed for product {snapshot.product_id}: {e}")
            if not self.notified.mark(snapshot.key, generation):
                logger.info(f"[StockMonitor] Product {snapshot.product_id} was reset during dispatch, not marking")
            dispatched += 1
        return dispatched

    def reset_product_notification(self, product_id: int) -> None:
        """Forget every alert state for a product so the next tick re-evaluates it."""
        removed = self.notified.forget_product(product_id)
        if removed:
            logger.info(f"[StockMonitor] Reset {removed} alert state(s) for product {product_id}")
