"""Command handlers for the stock bot: /start, /help, /lowstock."""
import asyncio
import logging

from telegram import Update
from telegram.constants import ParseMode
from telegram.ext import ContextTypes

from app.services.inventory_service import low_stock_snapshots
from app.telegram.alerts import format_low_stock_list

logger = logging.getLogger(__name__)

WELCOME_TEXT = (
    "🏪 *Welcome to the Pharmacy Billing Bot*\n\n"
    "I'll help you monitor your inventory stock levels.\n\n"
    "*Available Commands:*\n"
    "/lowstock - View all low stock products\n"
    "/help - Show this help message\n\n"
    "You'll receive automatic alerts when products are running low."
)

HELP_TEXT = (
    "📋 *Pharmacy Billing Bot - Help*\n\n"
    "*Commands:*\n"
    "/lowstock - View all products with low stock\n"
    "/start - Show welcome message\n"
    "/help - Show this help\n\n"
    "*Automatic Alerts:*\n"
    "You'll receive notifications when:\n"
    "• Product stock falls below minimum level\n"
    "• Product is out of stock"
)


async def handle_start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /start command"""
    chat_id = update.effective_chat.id if update.effective_chat else None
    await update.message.reply_text(
        f"{WELCOME_TEXT}\n\n📱 Your Chat ID: `{chat_id}`",
        parse_mode=ParseMode.MARKDOWN,
    )


async def handle_help(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    await update.message.reply_text(HELP_TEXT, parse_mode=ParseMode.MARKDOWN)


async def handle_lowstock(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """List active products at or below their threshold, emptiest first."""
    try:
        loop = asyncio.get_running_loop()
        snapshots = await loop.run_in_executor(None, low_stock_snapshots)
    except Exception as e:
        logger.error(f"[Telegram] Error fetching low stock products: {e}")
        await update.message.reply_text("❌ Error fetching low stock products. Please try again later.")
        return

    await update.message.reply_text(format_low_stock_list(snapshots), parse_mode=ParseMode.MARKDOWN)
