"""
Stock monitor timer. Runs in the asyncio loop alongside FastAPI.

A single task sleeps for the configured interval between ticks, so ticks
never overlap; StockAlertMonitor additionally skips a tick that starts while
another is in flight.
"""
import asyncio
import logging
from typing import Optional

from app.core.config import settings
from app.services.inventory_service import low_stock_snapshots
from app.services.stock_monitor import StockAlertMonitor
from app.telegram.alerts import TelegramAlertNotifier

logger = logging.getLogger(__name__)

INITIAL_DELAY_SECONDS = 10

_monitor: Optional[StockAlertMonitor] = None
_scheduler_task: Optional[asyncio.Task] = None


def get_stock_monitor() -> StockAlertMonitor:
    """Process-wide monitor; the de-dup state lives here."""
    global _monitor
    if _monitor is None:
        notifier = TelegramAlertNotifier(
            token=settings.TELEGRAM_BOT_TOKEN,
            chat_ids=settings.TELEGRAM_ADMIN_CHAT_IDS,
            timeout=settings.NOTIFY_TIMEOUT_SECONDS,
        )
        _monitor = StockAlertMonitor(
            fetch_low_stock=low_stock_snapshots,
            notifier=notifier,
            capacity=settings.STOCK_ALERT_CACHE_SIZE,
        )
    return _monitor


async def _stock_scheduler_loop(monitor: StockAlertMonitor, interval: float, initial_delay: float):
    logger.info(f"[StockMonitor] Scheduler started. Interval: {interval}s")

    # Let the server finish starting
    await asyncio.sleep(initial_delay)

    while True:
        logger.info("[StockMonitor] Running scheduled stock check...")
        dispatched = await monitor.check_low_stock()
        if dispatched:
            logger.info(f"[StockMonitor] Dispatched {dispatched} stock alert(s)")
        await asyncio.sleep(interval)


def start_stock_scheduler(
    monitor: Optional[StockAlertMonitor] = None,
    interval: Optional[float] = None,
    initial_delay: float = INITIAL_DELAY_SECONDS,
) -> asyncio.Task:
    """Start the background timer. Called from the FastAPI lifespan."""
    global _scheduler_task
    if _scheduler_task is not None and not _scheduler_task.done():
        return _scheduler_task

    _scheduler_task = asyncio.create_task(_stock_scheduler_loop(
        monitor or get_stock_monitor(),
        interval if interval is not None else settings.STOCK_CHECK_INTERVAL_SECONDS,
        initial_delay,
    ))
    logger.info("[StockMonitor] Stock check scheduler initialized")
    return _scheduler_task


async def stop_stock_scheduler() -> None:
    """Cancel the timer and wait for it to unwind. Called on FastAPI shutdown."""
    global _scheduler_task
    task, _scheduler_task = _scheduler_task, None
    if task is None:
        return
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass
    logger.info("[StockMonitor] Scheduler stopped")
