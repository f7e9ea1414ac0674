from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Text
from sqlalchemy.sql import func
from app.db.base import Base


class NotificationLog(Base):
    """One row per alert dispatch attempt per recipient."""
    __tablename__ = "notification_logs"

    id = Column(Integer, primary_key=True, index=True)
    message = Column(String(512), nullable=False)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="SET NULL"), nullable=True, index=True)
    type = Column(String(32), nullable=False, default="low_stock")  # low_stock | out_of_stock
    status = Column(String(16), nullable=False, default="pending", index=True)  # sent | failed | pending
    chat_id = Column(String(64), nullable=True)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
