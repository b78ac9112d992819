from sqlalchemy import Column, DateTime, Index, Integer, String, UniqueConstraint

from authcore.database import Base


class OtpEntry(Base):
    __tablename__ = "otp_codes"

    id = Column(Integer, primary_key=True)
    identity = Column(String(255), nullable=False)
    purpose = Column(String(32), nullable=False)
    code = Column(String(10), nullable=False)
    issued_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("identity", "purpose", name="uq_otp_identity_purpose"),
        Index("ix_otp_issued_at", "issued_at"),
    )
