"""
Access guard: who is calling, and may the request proceed.

Callers are identified either by a session cookie (browser) or by an API key
(device). Every failure to identify a caller is reported as the same
UNAUTHENTICATED outcome, whatever the cause.
"""
from dataclasses import dataclass

from sqlalchemy import select, update
from sqlalchemy.orm import Session, sessionmaker

from generatorlog.core.clock import Clock, utcnow
from generatorlog.core.db.tables.apikey import ApiKey
from generatorlog.core.db.tables.user import User
from generatorlog.core.logger import get_logger
from generatorlog.core.outcome import NOT_AUTHENTICATED, ErrorKind, Outcome
from generatorlog.core.rate_limit import RateLimiter, RateLimitResult
from generatorlog.core.security import DUMMY_API_KEY_HASH, hash_api_key, verify_api_key
from generatorlog.core.sessions import SessionStore

logger = get_logger(__name__)


@dataclass(frozen=True)
class Principal:
    """An authenticated caller, threaded explicitly into protected operations."""
    user_id: int
    email: str
    name: str | None = None
    session_id: str | None = None
    api_key_id: int | None = None


class AccessGuard:
    def __init__(self, session: Session, sessions: SessionStore):
        self.session = session
        self.sessions = sessions

    def authorize_session(self, session_id: str | None) -> Outcome[Principal]:
        """Resolve a session cookie value to a principal."""
        user = self.sessions.resolve(session_id)
        if user is None:
            return Outcome(failure=NOT_AUTHENTICATED)
        return Outcome.success(
            Principal(user_id=user.id, email=user.email, name=user.name, session_id=session_id)
        )

    def authorize_api_key(self, raw_key: str | None) -> Outcome[Principal]:
        """
        Resolve a raw API key to the principal owning it.

        The lookup goes through the key's SHA-256 digest; the constant-time
        comparison runs against a dummy digest when nothing matches.
        """
        if not raw_key:
            return Outcome(failure=NOT_AUTHENTICATED)

        api_key = self.session.execute(
            select(ApiKey).where(ApiKey.key_hash == hash_api_key(raw_key))
        ).scalar()

        is_valid = verify_api_key(raw_key, api_key.key_hash if api_key else DUMMY_API_KEY_HASH)
        if api_key is None or not is_valid:
            return Outcome(failure=NOT_AUTHENTICATED)

        user = self.session.get(User, api_key.user_id)
        if user is None:
            return Outcome(failure=NOT_AUTHENTICATED)

        return Outcome.success(
            Principal(user_id=user.id, email=user.email, name=user.name, api_key_id=api_key.id)
        )

    @staticmethod
    def throttle(limiter: RateLimiter, client_id: str) -> Outcome[RateLimitResult]:
        """Count a request against the client's window."""
        result = limiter.check_limit(client_id)
        if not result.allowed:
            logger.warning(f"Rate limit exceeded for client {client_id}")
            return Outcome.fail(
                ErrorKind.RATE_LIMITED,
                "Too many requests - rate limit exceeded",
                retry_after=result.retry_after,
            )
        return Outcome.success(result)


def record_api_key_use(session_factory: sessionmaker, api_key_id: int, clock: Clock = utcnow) -> None:
    """
    Stamp last_used_at on an API key.

    Runs after the response has been sent; a failure here is logged and
    never affects the request that used the key.
    """
    db = session_factory()
    try:
        db.execute(update(ApiKey).where(ApiKey.id == api_key_id).values(last_used_at=clock()))
        db.commit()
    except Exception:
        db.rollback()
        logger.exception(f"Failed to record use of API key {api_key_id}")
    finally:
        db.close()
