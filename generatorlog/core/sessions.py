"""
Server-side login sessions.

A session is an opaque 256-bit id bound to a user and an expiry time. The id
travels in an HttpOnly, SameSite=Strict cookie; see session_cookie_params().
"""
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from generatorlog.core.clock import Clock, utcnow
from generatorlog.core.config import Settings
from generatorlog.core.db.tables.user import User
from generatorlog.core.db.tables.usersession import UserSession
from generatorlog.core.logger import get_logger
from generatorlog.core.security import new_session_id

logger = get_logger(__name__)


@dataclass(frozen=True)
class SessionUser:
    """Public identity of a user resolved from a session."""
    id: int
    email: str
    name: str | None


class SessionStore:
    def __init__(self, session: Session, lifetime_seconds: int, clock: Clock = utcnow):
        self.session = session
        self.lifetime = timedelta(seconds=lifetime_seconds)
        self._clock = clock

    def create(self, user_id: int) -> str:
        """Mint and persist a new session for user_id; returns its id."""
        now = self._clock()
        self.purge_expired()

        session_id = new_session_id()
        self.session.add(UserSession(id=session_id, user_id=user_id, expires_at=now + self.lifetime))
        self.session.commit()
        return session_id

    def resolve(self, session_id: str | None) -> SessionUser | None:
        """
        Look up the user bound to a live session.

        Unknown, expired and empty ids all return None.
        """
        if not session_id:
            return None

        user = self.session.execute(
            select(User)
            .join(UserSession, UserSession.user_id == User.id)
            .where(
                UserSession.id == session_id,
                UserSession.expires_at > self._clock(),
            )
        ).scalar()

        if user is None:
            return None
        return SessionUser(id=user.id, email=user.email, name=user.name)

    def revoke(self, session_id: str | None) -> None:
        """Delete a session. Unknown ids are ignored."""
        if not session_id:
            return
        self.session.execute(delete(UserSession).where(UserSession.id == session_id))
        self.session.commit()

    def revoke_all_for_user(self, user_id: int, keep: str | None = None) -> int:
        """Delete every session of a user except `keep`. Returns the number removed."""
        stmt = delete(UserSession).where(UserSession.user_id == user_id)
        if keep:
            stmt = stmt.where(UserSession.id != keep)
        result = self.session.execute(stmt)
        self.session.commit()
        return result.rowcount

    def purge_expired(self) -> int:
        """Sweep sessions whose expiry has passed. Does not commit."""
        result = self.session.execute(
            delete(UserSession).where(UserSession.expires_at <= self._clock())
        )
        if result.rowcount:
            logger.debug(f"Purged {result.rowcount} expired sessions")
        return result.rowcount


def session_cookie_params(settings: Settings) -> dict:
    """Cookie attributes shared by login, enrollment and logout."""
    return {
        "key": settings.session_cookie_name,
        "httponly": True,
        "secure": settings.is_production,
        "samesite": "strict",
        "path": "/",
    }
