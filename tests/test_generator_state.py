"""
Tests for the generator run-state machine.
"""
from datetime import datetime

import pytest
from sqlalchemy import select

from generatorlog.core.access import Principal
from generatorlog.core.db.tables.generator import Generator
from generatorlog.core.db.tables.usagelog import UsageLog
from generatorlog.core.generator_state import GeneratorRunStateMachine, recalculate_total_hours
from generatorlog.core.outcome import ErrorKind


@pytest.fixture
def principal(owner):
    return Principal(user_id=owner.id, email=owner.email)


@pytest.fixture
def machine(db_session, clock):
    return GeneratorRunStateMachine(db_session, clock=clock)


def usage_logs(db_session, generator_id):
    return db_session.execute(
        select(UsageLog).where(UsageLog.generator_id == generator_id).order_by(UsageLog.id)
    ).scalars().all()


class TestToggle:
    """Tests for GeneratorRunStateMachine.toggle"""

    def test_start_then_stop_accumulates_hours(self, machine, principal, owner, make_generator, clock, db_session):
        generator = make_generator(owner, total_hours=125.5)

        started = machine.toggle(principal, generator.id)
        assert started.ok
        assert started.value.status == "started"
        assert started.value.is_running is True
        assert started.value.start_time == datetime(2026, 2, 13, 16, 0)
        assert started.value.total_hours == 125.5

        clock.advance(hours=2, minutes=30)
        stopped = machine.toggle(principal, generator.id)
        assert stopped.ok
        assert stopped.value.status == "stopped"
        assert stopped.value.is_running is False
        assert stopped.value.duration_hours == pytest.approx(2.5)
        assert stopped.value.total_hours == pytest.approx(128.0)

        logs = usage_logs(db_session, generator.id)
        assert len(logs) == 1
        assert logs[0].start_time == datetime(2026, 2, 13, 16, 0)
        assert logs[0].end_time == datetime(2026, 2, 13, 18, 30)
        assert logs[0].duration_hours == pytest.approx(2.5)

        db_session.refresh(generator)
        assert generator.is_running is False
        assert generator.current_start_time is None

    def test_never_toggled_generator(self, machine, principal, owner, make_generator):
        generator = make_generator(owner)

        state = machine.read_state(principal, generator.id)
        assert state.is_running is False
        assert state.current_start_time is None
        assert state.total_hours == 0.0

    def test_foreign_generator_not_found(self, machine, other_user, make_generator, principal, db_session):
        generator = make_generator(other_user)

        outcome = machine.toggle(principal, generator.id)
        assert not outcome.ok
        assert outcome.failure.kind is ErrorKind.NOT_FOUND

        db_session.refresh(generator)
        assert generator.is_running is False

    def test_missing_generator_not_found(self, machine, principal):
        outcome = machine.toggle(principal, 9999)
        assert outcome.failure.kind is ErrorKind.NOT_FOUND
        assert outcome.failure.message == "Generator not found"

    def test_gives_up_when_state_keeps_changing(self, machine, principal, owner, make_generator, monkeypatch):
        generator = make_generator(owner)
        monkeypatch.setattr(machine, "_try_start", lambda *args: None)

        outcome = machine.toggle(principal, generator.id)
        assert outcome.failure.kind is ErrorKind.INTERNAL


class TestCompareAndSet:
    """A writer holding a stale snapshot must not apply its change"""

    def test_stale_stop_is_rejected(self, machine, principal, owner, make_generator, clock, db_session):
        generator = make_generator(owner, total_hours=10.0)
        machine.toggle(principal, generator.id)
        clock.advance(hours=1)

        stale = machine.read_state(principal, generator.id)
        assert machine.toggle(principal, generator.id).value.status == "stopped"

        assert machine._try_stop(generator.id, stale, clock()) is None

        db_session.refresh(generator)
        assert generator.total_hours == pytest.approx(11.0)
        assert len(usage_logs(db_session, generator.id)) == 1

    def test_stale_start_is_rejected(self, machine, principal, owner, make_generator, clock, db_session):
        generator = make_generator(owner)

        stale = machine.read_state(principal, generator.id)
        machine.toggle(principal, generator.id)
        start_time = clock()
        clock.advance(minutes=5)

        assert machine._try_start(generator.id, stale, clock()) is None

        db_session.refresh(generator)
        assert generator.current_start_time == start_time

    def test_stale_stop_after_restart_is_rejected(self, machine, principal, owner, make_generator, clock):
        generator = make_generator(owner)
        machine.toggle(principal, generator.id)
        stale = machine.read_state(principal, generator.id)

        clock.advance(hours=1)
        machine.toggle(principal, generator.id)
        clock.advance(hours=1)
        machine.toggle(principal, generator.id)

        # Running again, but from a different start time
        assert machine._try_stop(generator.id, stale, clock()) is None


def test_recalculate_total_hours(db_session, owner, make_generator):
    generator = make_generator(owner, total_hours=99.0)
    db_session.add_all([
        UsageLog(generator_id=generator.id, start_time=datetime(2026, 1, 1, 8), end_time=datetime(2026, 1, 1, 10), duration_hours=2.0),
        UsageLog(generator_id=generator.id, start_time=datetime(2026, 1, 2, 8), end_time=datetime(2026, 1, 2, 9, 30), duration_hours=1.5),
        UsageLog(generator_id=generator.id, start_time=datetime(2026, 1, 3, 8)),
    ])
    db_session.flush()

    assert recalculate_total_hours(db_session, generator.id) == pytest.approx(3.5)
    db_session.commit()

    refreshed = db_session.get(Generator, generator.id)
    db_session.refresh(refreshed)
    assert refreshed.total_hours == pytest.approx(3.5)
