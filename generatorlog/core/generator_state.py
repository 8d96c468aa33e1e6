"""
Generator run-state machine and usage-log bookkeeping.

A generator is either Stopped or Running. toggle() flips it: starting records
the start time, stopping closes the run, adds its duration to total_hours and
appends one usage log entry in the same transaction.

Concurrent toggles of one generator are serialized with a compare-and-set
UPDATE: the write only applies if the row still holds the state that was read.
A writer that loses the race re-reads and tries again, so two simultaneous
stops can never both close the same run.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Literal

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from generatorlog.core.access import Principal
from generatorlog.core.clock import Clock, utcnow
from generatorlog.core.db.tables.generator import Generator
from generatorlog.core.db.tables.usagelog import UsageLog
from generatorlog.core.logger import get_logger
from generatorlog.core.outcome import ErrorKind, Outcome

logger = get_logger(__name__)

SECONDS_PER_HOUR = 3600.0


@dataclass(frozen=True)
class RunState:
    is_running: bool
    current_start_time: datetime | None
    total_hours: float


@dataclass(frozen=True)
class ToggleResult:
    status: Literal["started", "stopped"]
    is_running: bool
    total_hours: float
    start_time: datetime | None = None
    duration_hours: float | None = None


def duration_hours(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / SECONDS_PER_HOUR


def get_owned_generator(session: Session, principal: Principal, generator_id: int) -> Generator | None:
    """A generator owned by the principal; missing and foreign ids both give None."""
    return session.execute(
        select(Generator).where(
            Generator.id == generator_id,
            Generator.user_id == principal.user_id,
        )
    ).scalar()


class GeneratorRunStateMachine:
    MAX_ATTEMPTS = 5

    def __init__(self, session: Session, clock: Clock = utcnow):
        self.session = session
        self._clock = clock

    def read_state(self, principal: Principal, generator_id: int) -> RunState | None:
        row = self.session.execute(
            select(Generator.is_running, Generator.current_start_time, Generator.total_hours).where(
                Generator.id == generator_id,
                Generator.user_id == principal.user_id,
            )
        ).one_or_none()
        if row is None:
            return None
        return RunState(is_running=row.is_running, current_start_time=row.current_start_time, total_hours=row.total_hours)

    def toggle(self, principal: Principal, generator_id: int) -> Outcome[ToggleResult]:
        """Flip a generator owned by principal between Stopped and Running."""
        for attempt in range(1, self.MAX_ATTEMPTS + 1):
            state = self.read_state(principal, generator_id)
            if state is None:
                return Outcome.fail(ErrorKind.NOT_FOUND, "Generator not found")

            now = self._clock()
            if state.is_running:
                result = self._try_stop(generator_id, state, now)
            else:
                result = self._try_start(generator_id, state, now)

            if result is not None:
                return Outcome.success(result)

            logger.warning(f"Generator {generator_id} changed during toggle, retrying (attempt {attempt})")

        logger.error(f"Generator {generator_id} toggle gave up after {self.MAX_ATTEMPTS} attempts")
        return Outcome.fail(ErrorKind.INTERNAL, "Internal server error")

    def _try_start(self, generator_id: int, state: RunState, now: datetime) -> ToggleResult | None:
        updated = self.session.execute(
            update(Generator)
            .where(Generator.id == generator_id, Generator.is_running.is_(False))
            .values(is_running=True, current_start_time=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if updated.rowcount != 1:
            self.session.rollback()
            return None

        self.session.commit()
        logger.info(f"Generator {generator_id} started")
        return ToggleResult(status="started", is_running=True, start_time=now, total_hours=state.total_hours)

    def _try_stop(self, generator_id: int, state: RunState, now: datetime) -> ToggleResult | None:
        start = state.current_start_time
        if start is None:
            # Running without a start time; treat the run as empty
            start = now
        hours = duration_hours(start, now)

        stmt = update(Generator).where(Generator.id == generator_id, Generator.is_running.is_(True))
        if state.current_start_time is None:
            stmt = stmt.where(Generator.current_start_time.is_(None))
        else:
            stmt = stmt.where(Generator.current_start_time == state.current_start_time)

        updated = self.session.execute(
            stmt.values(
                is_running=False,
                current_start_time=None,
                total_hours=Generator.total_hours + hours,
                updated_at=now,
            ).execution_options(synchronize_session=False)
        )
        if updated.rowcount != 1:
            self.session.rollback()
            return None

        self.session.add(UsageLog(generator_id=generator_id, start_time=start, end_time=now, duration_hours=hours))
        self.session.commit()

        total = self.session.execute(select(Generator.total_hours).where(Generator.id == generator_id)).scalar_one()
        logger.info(f"Generator {generator_id} stopped after {hours:.3f}h")
        return ToggleResult(status="stopped", is_running=False, duration_hours=hours, total_hours=total)


def recalculate_total_hours(session: Session, generator_id: int) -> float:
    """
    Reset total_hours to the sum of closed usage log durations.

    Used after manual log corrections; the run state is left alone. Does not commit.
    """
    total = session.execute(
        select(func.coalesce(func.sum(UsageLog.duration_hours), 0.0)).where(
            UsageLog.generator_id == generator_id
        )
    ).scalar_one()
    session.execute(
        update(Generator)
        .where(Generator.id == generator_id)
        .values(total_hours=float(total), updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    return float(total)
