from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.sql import func

from educonnect.db.database import Base


class TokenBlacklist(Base):
    """Access tokens revoked before expiry (logout)."""

    __tablename__ = "token_blacklist"

    id = Column(Integer, primary_key=True, index=True)
    jti = Column(String(64), unique=True, index=True, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    reason = Column(String(50), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
