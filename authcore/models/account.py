from sqlalchemy import Boolean, Column, DateTime, Integer, String

from authcore.database import Base


class AccountEntry(Base):
    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True)
    username = Column(String(64), nullable=False, unique=True)
    email = Column(String(255), nullable=False, unique=True)
    password_salt = Column(String(128), nullable=False, default="")
    password_digest = Column(String(256), nullable=False)
    full_name = Column(String(100), nullable=True)
    phone = Column(String(32), nullable=True)
    role = Column(String(16), nullable=False, default="user")
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
