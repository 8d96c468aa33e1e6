from sqlalchemy import String, Integer, Float, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime

from generatorlog.core.clock import utcnow
from generatorlog.core.db.tables.base import Base


class Generator(Base):
    """
    A physical generator and its run state.

    is_running is True exactly when current_start_time is set. Both are only
    written by the toggle state machine; usage log corrections recompute
    total_hours alone.
    """

    __tablename__ = "generator"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("user.id", ondelete="CASCADE"), index=True)
    name: Mapped[str] = mapped_column(String(255))

    # Maintenance schedule
    service_interval_months: Mapped[int] = mapped_column(Integer, default=6)
    service_interval_hours: Mapped[float] = mapped_column(Float, default=100.0)
    last_service_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True, default=None)
    last_service_hours: Mapped[float | None] = mapped_column(Float, nullable=True, default=None)
    installed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True, default=None)

    # Run state
    total_hours: Mapped[float] = mapped_column(Float, default=0.0)
    is_running: Mapped[bool] = mapped_column(Boolean, default=False)
    current_start_time: Mapped[datetime | None] = mapped_column(DateTime, nullable=True, default=None)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)
