"""
Generator endpoints.

/generators/... is the owner's (session cookie) view: configuration, state
and a manual toggle. /generator/toggle is the device endpoint, authorized by
API key and rate limited per client.
"""
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session
from fastapi import APIRouter, Depends, status

from generatorlog.api.dependencies import (
    get_api_key_principal,
    get_clock,
    get_current_principal,
    get_state_machine,
)
from generatorlog.api.errors import ApiError, unwrap
from generatorlog.api.v0.generator.models import (
    GeneratorCreate,
    GeneratorResponse,
    GeneratorUpdate,
    MaintenanceStatus,
    ToggleRequest,
    ToggleResponse,
)
from generatorlog.core.access import Principal
from generatorlog.core.clock import Clock
from generatorlog.core.db.session import get_db
from generatorlog.core.db.tables.generator import Generator
from generatorlog.core.generator_state import GeneratorRunStateMachine, get_owned_generator
from generatorlog.core.logger import get_logger
from generatorlog.core.maintenance import hours_since_service, is_service_due, months_since_service
from generatorlog.core.outcome import ErrorKind, Failure

logger = get_logger(__name__)

router = APIRouter(prefix="/generators")
device_router = APIRouter(prefix="/generator")

GENERATOR_NOT_FOUND = Failure(ErrorKind.NOT_FOUND, "Generator not found")


def get_generator_or_404(session: Session, principal: Principal, generator_id: int) -> Generator:
    generator = get_owned_generator(session, principal, generator_id)
    if generator is None:
        raise ApiError(GENERATOR_NOT_FOUND)
    return generator


def to_response(generator: Generator, now: datetime) -> GeneratorResponse:
    # Fall back to the creation date when no install date was given
    installed_at = generator.installed_at or generator.created_at
    maintenance = MaintenanceStatus(
        hours_since_service=hours_since_service(generator.total_hours, generator.last_service_hours),
        months_since_service=months_since_service(generator.last_service_date, installed_at, now),
        due=is_service_due(
            generator.total_hours,
            generator.last_service_hours,
            generator.service_interval_hours,
            generator.last_service_date,
            installed_at,
            generator.service_interval_months,
            now,
        ),
    )
    return GeneratorResponse(
        id=generator.id,
        name=generator.name,
        service_interval_months=generator.service_interval_months,
        service_interval_hours=generator.service_interval_hours,
        total_hours=generator.total_hours,
        last_service_date=generator.last_service_date,
        last_service_hours=generator.last_service_hours,
        installed_at=generator.installed_at,
        is_running=generator.is_running,
        current_start_time=generator.current_start_time,
        created_at=generator.created_at,
        updated_at=generator.updated_at,
        maintenance=maintenance,
    )


@router.post("", response_model=GeneratorResponse, status_code=status.HTTP_201_CREATED)
def create_generator(
    generator_data: GeneratorCreate,
    principal: Principal = Depends(get_current_principal),
    session: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Register the caller's generator. Each account tracks a single generator."""
    existing = session.execute(
        select(Generator.id).where(Generator.user_id == principal.user_id)
    ).scalar()
    if existing:
        raise ApiError(Failure(ErrorKind.CONFLICT, "A generator is already registered for this account"))

    generator = Generator(user_id=principal.user_id, **generator_data.model_dump())
    session.add(generator)
    session.commit()
    session.refresh(generator)

    logger.info(f"Generator {generator.id} created for user {principal.user_id}")
    return to_response(generator, clock())


@router.get("", response_model=list[GeneratorResponse])
def list_generators(
    principal: Principal = Depends(get_current_principal),
    session: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    generators = session.execute(
        select(Generator).where(Generator.user_id == principal.user_id).order_by(Generator.id)
    ).scalars().all()
    now = clock()
    return [to_response(g, now) for g in generators]


@router.get("/{generator_id}", response_model=GeneratorResponse)
def get_generator(
    generator_id: int,
    principal: Principal = Depends(get_current_principal),
    session: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    return to_response(get_generator_or_404(session, principal, generator_id), clock())


@router.put("/{generator_id}", response_model=GeneratorResponse)
def update_generator(
    generator_id: int,
    generator_data: GeneratorUpdate,
    principal: Principal = Depends(get_current_principal),
    session: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    generator = get_generator_or_404(session, principal, generator_id)

    for field, value in generator_data.model_dump(exclude_unset=True).items():
        setattr(generator, field, value)

    session.commit()
    session.refresh(generator)
    return to_response(generator, clock())


@router.post("/{generator_id}/toggle", response_model=ToggleResponse, response_model_exclude_none=True)
def toggle_owned_generator(
    generator_id: int,
    principal: Principal = Depends(get_current_principal),
    machine: GeneratorRunStateMachine = Depends(get_state_machine),
):
    """Start or stop a generator from the owner's dashboard."""
    return unwrap(machine.toggle(principal, generator_id))


@device_router.post("/toggle", response_model=ToggleResponse, response_model_exclude_none=True)
def toggle_generator(
    toggle_request: ToggleRequest,
    principal: Principal = Depends(get_api_key_principal),
    machine: GeneratorRunStateMachine = Depends(get_state_machine),
):
    """
    Start or stop a generator from a device.

    Requires the x-api-key header. Throttling and key checks happen before
    the generator is looked up; a generator belonging to another account is
    reported as not found.
    """
    return unwrap(machine.toggle(principal, toggle_request.generator_id))
