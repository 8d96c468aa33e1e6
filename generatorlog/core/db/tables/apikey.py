from sqlalchemy import String, Integer, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime

from generatorlog.core.clock import utcnow
from generatorlog.core.db.tables.base import Base


class ApiKey(Base):
    """
    Stores hashed API keys used by devices to toggle a generator.

    Security design:
    - key_hash: SHA-256 hex digest of the raw key; the raw key is never stored
    - hint: last 4 characters of the raw key, shown in listings
    - last_used_at: cleared whenever the key is reset
    """

    __tablename__ = "api_key"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("user.id", ondelete="CASCADE"), index=True)
    key_hash: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    hint: Mapped[str] = mapped_column(String(4))
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    last_used_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True, default=None)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
