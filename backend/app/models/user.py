from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.sql import func
from app.db.base import Base


class UserRole:
    ADMIN = "admin"
    MANAGER = "manager"
    PHARMACY = "pharmacy"
    HOSPITAL = "hospital"
    STAFF = "staff"

    ALL = (ADMIN, MANAGER, PHARMACY, HOSPITAL, STAFF)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    role = Column(String(32), nullable=False, default=UserRole.STAFF)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
