from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String

from authcore.database import Base


class SessionEntry(Base):
    __tablename__ = "auth_sessions"

    id = Column(Integer, primary_key=True)
    token = Column(String(128), nullable=False, unique=True, index=True)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)
    user_snapshot = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
