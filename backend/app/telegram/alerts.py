"""
Stock alerts over Telegram.

One alert fans out to every configured admin chat. Each chat is sent to
independently under its own timeout, and every attempt (sent or failed)
leaves a NotificationLog row.
"""
import asyncio
import logging
from typing import Callable, Iterable, List, Optional

from telegram import Bot
from telegram.constants import ParseMode
from telegram.helpers import escape_markdown

from app.db.session import SessionLocal
from app.models.notification_log import NotificationLog
from app.services.stock_monitor import AlertType, StockSnapshot

logger = logging.getLogger(__name__)

DeliveryLog = Callable[[StockSnapshot, str, str, Optional[str]], None]


def _md(value) -> str:
    return escape_markdown(str(value), version=1)


def _supplier_block(snapshot: StockSnapshot) -> str:
    if not snapshot.supplier_name:
        return ""
    return f"*Supplier:* {_md(snapshot.supplier_name)}\n*Phone:* {_md(snapshot.supplier_phone or '-')}"


def format_alert(snapshot: StockSnapshot) -> str:
    if snapshot.alert_type == AlertType.OUT_OF_STOCK:
        return (
            "🚨 *OUT OF STOCK ALERT*\n\n"
            f"*Product:* {_md(snapshot.name)}\n"
            f"*SKU:* {_md(snapshot.sku)}\n"
            f"*Schedule:* {_md(snapshot.category or '-')}\n\n"
            f"{_supplier_block(snapshot)}\n\n"
            "⚠️ *URGENT: This product is now out of stock!*"
        )
    return (
        "⚠️ *Low Stock Alert*\n\n"
        f"*Product:* {_md(snapshot.name)}\n"
        f"*SKU:* {_md(snapshot.sku)}\n"
        f"*Current Stock:* {snapshot.stock} {_md(snapshot.unit)}\n"
        f"*Minimum Level:* {snapshot.min_stock} {_md(snapshot.unit)}\n"
        f"*Schedule:* {_md(snapshot.category or '-')}\n\n"
        f"{_supplier_block(snapshot)}\n\n"
        "🔔 Please reorder soon!"
    )


def format_low_stock_list(snapshots: List[StockSnapshot]) -> str:
    """Reply body for the /lowstock command."""
    if not snapshots:
        return "✅ All products are well stocked!"

    lines = ["⚠️ *Low Stock Alert*", "", f"Found {len(snapshots)} product(s) with low stock:", ""]
    for index, s in enumerate(snapshots, start=1):
        lines.append(f"{index}. *{_md(s.name)}*")
        lines.append(f"   SKU: {_md(s.sku)}")
        lines.append(f"   Stock: {s.stock} {_md(s.unit)}")
        lines.append(f"   Min Level: {s.min_stock} {_md(s.unit)}")
        if s.supplier_name:
            lines.append(f"   Supplier: {_md(s.supplier_name)}")
        lines.append("")
    return "\n".join(lines)


def _summary(snapshot: StockSnapshot) -> str:
    if snapshot.alert_type == AlertType.OUT_OF_STOCK:
        return f"Out of stock alert for {snapshot.name}"
    return f"Low stock alert for {snapshot.name}"


def log_delivery(snapshot: StockSnapshot, chat_id: str, status: str, error: Optional[str] = None) -> None:
    """Persist one delivery attempt. Never raises."""
    db = SessionLocal()
    try:
        db.add(NotificationLog(
            message=_summary(snapshot)[:512],
            product_id=snapshot.product_id,
            type=snapshot.alert_type,
            status=status,
            chat_id=str(chat_id),
            error_message=error,
        ))
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"[Telegram] Failed to write notification log for {chat_id}: {e}")
    finally:
        db.close()


class TelegramAlertNotifier:
    """
    AlertNotifier that posts Markdown messages to the admin chats.

    Args:
        token: bot token; empty disables the channel
        chat_ids: recipients; empty disables the channel
        timeout: seconds allowed per recipient send
        delivery_log: called once per recipient with the outcome
        bot_factory: builds the async Bot for a token
    """

    def __init__(
        self,
        token: str,
        chat_ids: Iterable[str],
        timeout: float = 10.0,
        delivery_log: DeliveryLog = log_delivery,
        bot_factory: Callable[[str], Bot] = Bot,
    ):
        self.token = token
        self.chat_ids = [str(c) for c in chat_ids]
        self.timeout = timeout
        self._delivery_log = delivery_log
        self._bot_factory = bot_factory

    @property
    def is_configured(self) -> bool:
        return bool(self.token) and bool(self.chat_ids)

    async def notify(self, snapshot: StockSnapshot) -> None:
        if not self.is_configured:
            logger.warning("[Telegram] Bot not configured, skipping stock alert")
            return

        message = format_alert(snapshot)
        pending = list(self.chat_ids)
        try:
            async with self._bot_factory(self.token) as bot:
                while pending:
                    chat_id = pending.pop(0)
                    await self._send_one(bot, chat_id, snapshot, message)
        except Exception as e:
            logger.error(f"[Telegram] Alert channel unavailable: {e}")
            for chat_id in pending:
                self._delivery_log(snapshot, chat_id, "failed", str(e))

    async def _send_one(self, bot: Bot, chat_id: str, snapshot: StockSnapshot, message: str) -> None:
        try:
            await asyncio.wait_for(
                bot.send_message(chat_id=chat_id, text=message, parse_mode=ParseMode.MARKDOWN),
                timeout=self.timeout,
            )
        except Exception as e:
            reason = "timed out" if isinstance(e, asyncio.TimeoutError) else str(e)
            logger.error(f"[Telegram] Failed to send {snapshot.alert_type} alert to {chat_id}: {reason}")
            self._delivery_log(snapshot, chat_id, "failed", reason)
            return

        logger.info(f"[Telegram] {_summary(snapshot)} sent to {chat_id}")
        self._delivery_log(snapshot, chat_id, "sent", None)
