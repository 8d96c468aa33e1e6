from sqlalchemy import String, Integer, Float, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime

from generatorlog.core.clock import utcnow
from generatorlog.core.db.tables.base import Base


class ServiceRecord(Base):
    """Maintenance (oil change) performed on a generator."""

    __tablename__ = "service_record"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    generator_id: Mapped[int] = mapped_column(Integer, ForeignKey("generator.id", ondelete="CASCADE"), index=True)
    performed_at: Mapped[datetime] = mapped_column(DateTime, index=True)
    hours_at_service: Mapped[float] = mapped_column(Float)
    notes: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
