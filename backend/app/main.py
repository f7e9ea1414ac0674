"""
Pharmacy billing backend.

ARCHITECTURE:
- FastAPI: invoices, products, auth, audit log
- SQLAlchemy: SQLite by default, any SQLAlchemy URL via DATABASE_URL
- Stock monitor: timer in the app's event loop, alerts admins on Telegram
- Telegram command bot (optional): /start, /help, /lowstock
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.routes import audit_logs, auth, invoices, products
from app.core.config import settings
from app.db.init_db import init_db
from app.services.stock_scheduler import get_stock_monitor, start_stock_scheduler, stop_stock_scheduler
from app.telegram.bot import start_bot_background, stop_bot_background

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
    1. Initialize database tables (and the first admin)
    2. Start the stock monitor timer (if enabled)
    3. Start Telegram command bot polling (if token provided and polling enabled)

    Shutdown:
    1. Stop the stock monitor timer
    2. Stop Telegram bot
    """
    logger.info("[*] Initializing database...")
    init_db()
    logger.info("[OK] Database initialized")

    if settings.STOCK_MONITOR_ENABLED:
        start_stock_scheduler()
    else:
        logger.warning("[WARN] Stock monitor disabled (STOCK_MONITOR_ENABLED=false)")

    if start_bot_background():
        logger.info("[OK] Telegram command bot started")
    else:
        logger.info("[*] Telegram command bot disabled")

    yield

    try:
        await stop_stock_scheduler()
        stop_bot_background()
    except Exception as e:
        logger.error(f"[ERROR] Shutdown error: {e}")


app = FastAPI(
    title="Pharmacy Billing API",
    description="GST invoicing, product catalog and low-stock alerts.",
    version="0.1.0",
    lifespan=lifespan,
)

# SECURITY: Restrict CORS to specific methods and headers (not wildcards)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=[
        "Content-Type",
        "Authorization",
        "Accept",
        "Origin",
    ],
    max_age=600,  # Cache preflight for 10 minutes
    expose_headers=["Content-Type", "Content-Disposition"],
)


@app.middleware("http")
async def add_security_headers(request, call_next):
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"  # Prevent MIME sniffing
    response.headers["X-Frame-Options"] = "DENY"  # Prevent clickjacking
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    return response

app.include_router(auth.router, prefix="/auth", tags=["auth"])
app.include_router(invoices.router, prefix="/invoices", tags=["invoices"])
app.include_router(products.router, prefix="/products", tags=["products"])
app.include_router(audit_logs.router, prefix="/audit-logs", tags=["audit-logs"])


@app.get("/health")
def health():
    monitor = get_stock_monitor()
    return {
        "status": "ok",
        "stock_monitor": {
            "enabled": settings.STOCK_MONITOR_ENABLED,
            "tick_running": monitor.is_running,
            "last_tick_at": monitor.last_tick_at.isoformat() if monitor.last_tick_at else None,
            "tracked_alerts": len(monitor.notified),
        },
    }
