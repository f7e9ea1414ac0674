"""
Optional command bot. Polls in its own thread and event loop so that the
FastAPI loop is never blocked by Telegram long-polling.

Stock alerts do not depend on this bot: the alert notifier opens its own
short-lived Bot per dispatch.
"""
import asyncio
import logging
import threading
from typing import Optional

from telegram import error
from telegram.ext import Application, CommandHandler

from app.core.config import settings
from app.telegram.handlers import handle_help, handle_lowstock, handle_start

logger = logging.getLogger(__name__)

_bot_app: Optional[Application] = None
_bot_loop: Optional[asyncio.AbstractEventLoop] = None


def build_application(token: str) -> Application:
    app = Application.builder().token(token).build()
    app.add_handler(CommandHandler("start", handle_start))
    app.add_handler(CommandHandler("help", handle_help))
    app.add_handler(CommandHandler("lowstock", handle_lowstock))
    return app


async def _start_polling_with_retry(app: Application, max_retries: int = 3, initial_backoff: int = 2) -> bool:
    for attempt in range(max_retries):
        try:
            logger.info(f"[Telegram] Starting polling (attempt {attempt + 1}/{max_retries})...")
            await app.updater.start_polling(drop_pending_updates=True)
            logger.info("[Telegram] Polling started successfully")
            return True
        except error.Conflict as e:
            if attempt < max_retries - 1:
                backoff = initial_backoff * (2 ** attempt)
                logger.warning(f"[Telegram] Conflict detected: {e}. Retrying in {backoff}s")
                await asyncio.sleep(backoff)
            else:
                logger.error(f"[Telegram] Failed after {max_retries} retries, bot disabled: {e}")
                return False
    return False


def _run_bot():
    global _bot_app, _bot_loop
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    _bot_loop = loop

    try:
        _bot_app = build_application(settings.TELEGRAM_BOT_TOKEN)
        loop.run_until_complete(_bot_app.initialize())
        loop.run_until_complete(_bot_app.start())
        if loop.run_until_complete(_start_polling_with_retry(_bot_app)):
            loop.run_forever()
    except Exception as e:
        logger.error(f"[Telegram] Bot error: {e}")
    finally:
        if _bot_app:
            try:
                if _bot_app.updater and _bot_app.updater.running:
                    loop.run_until_complete(_bot_app.updater.stop())
                if _bot_app.running:
                    loop.run_until_complete(_bot_app.stop())
                loop.run_until_complete(_bot_app.shutdown())
            except Exception as e:
                logger.warning(f"[Telegram] Error during bot shutdown: {e}")
        loop.close()
        _bot_app = None
        _bot_loop = None


def start_bot_background() -> bool:
    """Start the command bot thread when a token is set and polling is enabled."""
    if not settings.TELEGRAM_BOT_TOKEN or not settings.TELEGRAM_BOT_POLLING:
        return False
    t = threading.Thread(target=_run_bot, name="telegram-bot", daemon=True)
    t.start()
    return True


def stop_bot_background():
    """Stop polling. Called on FastAPI shutdown."""
    loop = _bot_loop
    if loop is not None and loop.is_running():
        loop.call_soon_threadsafe(loop.stop)
