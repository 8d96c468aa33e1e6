"""
Usage log corrections.

Owners may add, edit and remove past runs. Each change recomputes the
generator's total hours from the log; the live run state is never touched.
"""
from sqlalchemy import select
from sqlalchemy.orm import Session
from fastapi import APIRouter, Depends, Response, status

from generatorlog.api.dependencies import get_current_principal
from generatorlog.api.errors import ApiError
from generatorlog.api.v0.generator.main import get_generator_or_404
from generatorlog.api.v0.usage_logs.models import UsageLogCreate, UsageLogResponse, UsageLogUpdate
from generatorlog.core.access import Principal
from generatorlog.core.db.session import get_db
from generatorlog.core.db.tables.usagelog import UsageLog
from generatorlog.core.generator_state import duration_hours, recalculate_total_hours
from generatorlog.core.logger import get_logger
from generatorlog.core.outcome import ErrorKind, Failure

logger = get_logger(__name__)

router = APIRouter(prefix="/generators/{generator_id}/logs")


def get_log_or_404(session: Session, generator_id: int, log_id: int) -> UsageLog:
    log = session.execute(
        select(UsageLog).where(UsageLog.id == log_id, UsageLog.generator_id == generator_id)
    ).scalar()

    if not log:
        raise ApiError(Failure(ErrorKind.NOT_FOUND, "Log entry not found"))
    return log


@router.get("", response_model=list[UsageLogResponse])
def list_logs(
    generator_id: int,
    principal: Principal = Depends(get_current_principal),
    session: Session = Depends(get_db),
):
    get_generator_or_404(session, principal, generator_id)

    return session.execute(
        select(UsageLog).where(UsageLog.generator_id == generator_id).order_by(UsageLog.start_time)
    ).scalars().all()


@router.post("", response_model=UsageLogResponse, status_code=status.HTTP_201_CREATED)
def create_log(
    generator_id: int,
    log_data: UsageLogCreate,
    principal: Principal = Depends(get_current_principal),
    session: Session = Depends(get_db),
):
    get_generator_or_404(session, principal, generator_id)

    log = UsageLog(
        generator_id=generator_id,
        start_time=log_data.start_time,
        end_time=log_data.end_time,
        duration_hours=duration_hours(log_data.start_time, log_data.end_time) if log_data.end_time else None,
    )
    session.add(log)
    session.flush()
    recalculate_total_hours(session, generator_id)
    session.commit()
    session.refresh(log)

    logger.info(f"Usage log {log.id} added to generator {generator_id}")
    return log


@router.put("/{log_id}", response_model=UsageLogResponse)
def update_log(
    generator_id: int,
    log_id: int,
    log_data: UsageLogUpdate,
    principal: Principal = Depends(get_current_principal),
    session: Session = Depends(get_db),
):
    get_generator_or_404(session, principal, generator_id)
    log = get_log_or_404(session, generator_id, log_id)

    update_data = log_data.model_dump(exclude_unset=True)
    new_start = update_data.get("start_time", log.start_time)
    new_end = update_data["end_time"] if "end_time" in update_data else log.end_time

    if new_end is not None and new_end <= new_start:
        raise ApiError(Failure(ErrorKind.INVALID_INPUT, "endTime must be after startTime"))

    log.start_time = new_start
    log.end_time = new_end
    log.duration_hours = duration_hours(new_start, new_end) if new_end else None
    session.flush()
    recalculate_total_hours(session, generator_id)
    session.commit()
    session.refresh(log)

    logger.info(f"Usage log {log_id} of generator {generator_id} corrected")
    return log


@router.delete("/{log_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_log(
    generator_id: int,
    log_id: int,
    principal: Principal = Depends(get_current_principal),
    session: Session = Depends(get_db),
):
    get_generator_or_404(session, principal, generator_id)
    log = get_log_or_404(session, generator_id, log_id)

    session.delete(log)
    session.flush()
    recalculate_total_hours(session, generator_id)
    session.commit()

    logger.info(f"Usage log {log_id} removed from generator {generator_id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
