"""
FastAPI dependencies for the GeneratorLog API.

Provides dependency injection for:
- Settings and clock
- Session store, access guard and run-state machine
- Authentication (session cookie or API key, the latter rate limited)
"""
from fastapi import BackgroundTasks, Depends, Request
from sqlalchemy.orm import Session, sessionmaker

from generatorlog.api.errors import unwrap
from generatorlog.core.access import AccessGuard, Principal, record_api_key_use
from generatorlog.core.clock import Clock, utcnow
from generatorlog.core.config import Settings, get_settings
from generatorlog.core.db.session import get_db, get_session_factory
from generatorlog.core.generator_state import GeneratorRunStateMachine
from generatorlog.core.logger import get_logger
from generatorlog.core.rate_limit import RateLimiter, get_real_client_ip
from generatorlog.core.sessions import SessionStore

logger = get_logger(__name__)

API_KEY_HEADER = "x-api-key"


def get_clock() -> Clock:
    return utcnow


def get_session_store(
    session: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    clock: Clock = Depends(get_clock),
) -> SessionStore:
    return SessionStore(session, settings.session_max_age_seconds, clock=clock)


def get_access_guard(
    session: Session = Depends(get_db),
    sessions: SessionStore = Depends(get_session_store),
) -> AccessGuard:
    return AccessGuard(session, sessions)


def get_rate_limiter(request: Request) -> RateLimiter:
    """The application's toggle rate limiter, created by create_app()."""
    return request.app.state.rate_limiter


def get_state_machine(
    session: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> GeneratorRunStateMachine:
    return GeneratorRunStateMachine(session, clock=clock)


def get_current_principal(
    request: Request,
    guard: AccessGuard = Depends(get_access_guard),
    settings: Settings = Depends(get_settings),
) -> Principal:
    """Dependency to authenticate a user via the HttpOnly session cookie"""
    session_id = request.cookies.get(settings.session_cookie_name)
    return unwrap(guard.authorize_session(session_id))


def get_api_key_principal(
    request: Request,
    background_tasks: BackgroundTasks,
    guard: AccessGuard = Depends(get_access_guard),
    limiter: RateLimiter = Depends(get_rate_limiter),
    session_factory: sessionmaker = Depends(get_session_factory),
    clock: Clock = Depends(get_clock),
) -> Principal:
    """
    Dependency to authenticate a device via the x-api-key header.

    The client is counted against the rate limiter before the key is looked
    at. The key's last-used time is written after the response is sent.
    """
    unwrap(AccessGuard.throttle(limiter, get_real_client_ip(request)))

    principal = unwrap(guard.authorize_api_key(request.headers.get(API_KEY_HEADER)))
    background_tasks.add_task(record_api_key_use, session_factory, principal.api_key_id, clock)
    return principal
