"""
Service (oil change) history.

The generator's last_service_date / last_service_hours always mirror the
most recent record, so adding or removing records re-syncs them.
"""
from sqlalchemy import select
from sqlalchemy.orm import Session
from fastapi import APIRouter, Depends, Response, status

from generatorlog.api.dependencies import get_clock, get_current_principal
from generatorlog.api.errors import ApiError
from generatorlog.api.v0.generator.main import get_generator_or_404
from generatorlog.api.v0.service_records.models import ServiceRecordCreate, ServiceRecordResponse
from generatorlog.core.access import Principal
from generatorlog.core.clock import Clock
from generatorlog.core.db.session import get_db
from generatorlog.core.db.tables.generator import Generator
from generatorlog.core.db.tables.servicerecord import ServiceRecord
from generatorlog.core.logger import get_logger
from generatorlog.core.outcome import ErrorKind, Failure

logger = get_logger(__name__)

router = APIRouter(prefix="/generators/{generator_id}/service-records")


def sync_last_service(session: Session, generator: Generator) -> None:
    """Copy the latest record's date and hours onto the generator. Does not commit."""
    latest = session.execute(
        select(ServiceRecord)
        .where(ServiceRecord.generator_id == generator.id)
        .order_by(ServiceRecord.performed_at.desc(), ServiceRecord.id.desc())
        .limit(1)
    ).scalar()

    generator.last_service_date = latest.performed_at if latest else None
    generator.last_service_hours = latest.hours_at_service if latest else None


@router.get("", response_model=list[ServiceRecordResponse])
def list_service_records(
    generator_id: int,
    principal: Principal = Depends(get_current_principal),
    session: Session = Depends(get_db),
):
    get_generator_or_404(session, principal, generator_id)

    return session.execute(
        select(ServiceRecord)
        .where(ServiceRecord.generator_id == generator_id)
        .order_by(ServiceRecord.performed_at.desc(), ServiceRecord.id.desc())
    ).scalars().all()


@router.post("", response_model=ServiceRecordResponse, status_code=status.HTTP_201_CREATED)
def create_service_record(
    generator_id: int,
    record_data: ServiceRecordCreate,
    principal: Principal = Depends(get_current_principal),
    session: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Log a service at the generator's current total hours."""
    generator = get_generator_or_404(session, principal, generator_id)

    record = ServiceRecord(
        generator_id=generator_id,
        performed_at=record_data.performed_at or clock(),
        hours_at_service=generator.total_hours,
        notes=record_data.notes,
    )
    session.add(record)
    session.flush()
    sync_last_service(session, generator)
    session.commit()
    session.refresh(record)

    logger.info(f"Service record {record.id} added to generator {generator_id}")
    return record


@router.delete("/{record_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_service_record(
    generator_id: int,
    record_id: int,
    principal: Principal = Depends(get_current_principal),
    session: Session = Depends(get_db),
):
    generator = get_generator_or_404(session, principal, generator_id)

    record = session.execute(
        select(ServiceRecord).where(
            ServiceRecord.id == record_id,
            ServiceRecord.generator_id == generator_id,
        )
    ).scalar()
    if not record:
        raise ApiError(Failure(ErrorKind.NOT_FOUND, "Service record not found"))

    session.delete(record)
    session.flush()
    sync_last_service(session, generator)
    session.commit()

    logger.info(f"Service record {record_id} removed from generator {generator_id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
