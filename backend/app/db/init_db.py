"""Create all tables. Run on app startup.

SECURITY: The first admin gets ADMIN_PASSWORD if set, otherwise a random
password printed once. Change it after first login.
"""
import logging
import secrets

from app.core.config import settings
from app.core.security import get_password_hash
from app.db.base import Base
from app.db.session import engine, SessionLocal
from app.models import user, supplier, product, invoice, audit_log, notification_log  # noqa: F401 - register models
from app.models.user import User, UserRole

logger = logging.getLogger(__name__)


def init_db():
    Base.metadata.create_all(bind=engine)

    # Create default admin user if no users exist
    db = SessionLocal()
    try:
        if db.query(User).count() == 0:
            password = settings.ADMIN_PASSWORD or secrets.token_urlsafe(16)
            db.add(User(
                name="Administrator",
                email=settings.ADMIN_EMAIL,
                hashed_password=get_password_hash(password),
                role=UserRole.ADMIN,
            ))
            db.commit()
            logger.info(f"[DB] Default admin user created: {settings.ADMIN_EMAIL}")

            if not settings.ADMIN_PASSWORD:
                # Print to console (only on initial setup)
                print("\n" + "="*70)
                print("⚠️  DEFAULT ADMIN USER CREATED")
                print("="*70)
                print(f"Email:    {settings.ADMIN_EMAIL}")
                print(f"Password: {password}")
                print("\n🔐 SECURITY: Change this password immediately after first login!")
                print("="*70 + "\n")
    finally:
        db.close()
