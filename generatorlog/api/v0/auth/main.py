from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from fastapi import APIRouter, Depends, Request, Response, status

from generatorlog.api.dependencies import get_current_principal, get_session_store
from generatorlog.api.errors import ApiError
from generatorlog.api.v0.auth.models import (
    EnrollRequest,
    LoginRequest,
    PasswordChangeRequest,
    UserResponse,
)
from generatorlog.core.access import Principal
from generatorlog.core.config import Settings, get_settings
from generatorlog.core.db.session import get_db
from generatorlog.core.db.tables.user import User
from generatorlog.core.logger import get_logger
from generatorlog.core.outcome import ErrorKind, Failure
from generatorlog.core.rate_limit import auth_limiter
from generatorlog.core.security import hash_password, verify_password_or_dummy
from generatorlog.core.sessions import SessionStore, session_cookie_params

logger = get_logger(__name__)

router = APIRouter(prefix="/auth")

INVALID_LOGIN = Failure(ErrorKind.UNAUTHENTICATED, "Invalid email or password")
EMAIL_TAKEN = Failure(ErrorKind.CONFLICT, "Email already registered")


def set_session_cookie(response: Response, session_id: str, settings: Settings) -> None:
    response.set_cookie(
        value=session_id,
        max_age=settings.session_max_age_seconds,
        **session_cookie_params(settings),
    )


@router.post("/enroll", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
@auth_limiter.limit("5/minute")
def enroll(
    request: Request,
    response: Response,
    enroll_request: EnrollRequest,
    session: Session = Depends(get_db),
    sessions: SessionStore = Depends(get_session_store),
    settings: Settings = Depends(get_settings),
):
    """
    Create an account and log it in.

    Rate limited to 5 requests per minute per IP.
    Only the scrypt credential is stored; the session id is returned in an
    HttpOnly cookie.
    """
    email = enroll_request.email
    logger.info(f"Enrollment attempt: {email}")

    existing = session.execute(select(User).where(User.email == email)).scalar()
    if existing:
        logger.warning(f"Enrollment failed - email already registered: {email}")
        raise ApiError(EMAIL_TAKEN)

    user = User(
        email=email,
        name=enroll_request.name,
        password_hash=hash_password(enroll_request.password),
    )

    try:
        session.add(user)
        session.commit()
    except IntegrityError:
        session.rollback()
        logger.warning(f"Enrollment failed - concurrent registration of {email}")
        raise ApiError(EMAIL_TAKEN)

    session.refresh(user)
    set_session_cookie(response, sessions.create(user.id), settings)

    logger.info(f"User enrolled: {user.id}")
    return user


@router.post("/login", response_model=UserResponse)
@auth_limiter.limit("10/minute")
def login(
    request: Request,
    response: Response,
    login_request: LoginRequest,
    session: Session = Depends(get_db),
    sessions: SessionStore = Depends(get_session_store),
    settings: Settings = Depends(get_settings),
):
    """
    Verify e-mail and password and start a session.

    Rate limited to 10 requests per minute per IP.
    Unknown e-mail addresses are checked against a dummy credential so the
    response time does not reveal whether an account exists.
    """
    user = session.execute(select(User).where(User.email == login_request.email)).scalar()

    is_valid = verify_password_or_dummy(
        login_request.password,
        user.password_hash if user else None,
    )
    if user is None or not is_valid:
        logger.warning(f"Login failed for {login_request.email}")
        raise ApiError(INVALID_LOGIN)

    set_session_cookie(response, sessions.create(user.id), settings)

    logger.info(f"Login succeeded for user {user.id}")
    return user


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout(
    request: Request,
    sessions: SessionStore = Depends(get_session_store),
    settings: Settings = Depends(get_settings),
):
    """
    Revoke the current session (if any) and clear the cookie.

    Always answers 204, whether or not the caller was logged in.
    """
    sessions.revoke(request.cookies.get(settings.session_cookie_name))

    response = Response(status_code=status.HTTP_204_NO_CONTENT)
    response.delete_cookie(**session_cookie_params(settings))
    return response


@router.get("/me", response_model=UserResponse)
def me(
    principal: Principal = Depends(get_current_principal),
    session: Session = Depends(get_db),
):
    user = session.get(User, principal.user_id)
    if user is None:
        raise ApiError(Failure(ErrorKind.UNAUTHENTICATED, "Not authenticated"))
    return user


@router.post("/password", status_code=status.HTTP_204_NO_CONTENT)
@auth_limiter.limit("5/minute")
def change_password(
    request: Request,
    password_request: PasswordChangeRequest,
    principal: Principal = Depends(get_current_principal),
    session: Session = Depends(get_db),
    sessions: SessionStore = Depends(get_session_store),
):
    """
    Replace the caller's password.

    Rate limited to 5 requests per minute per IP.
    Every other session of the user is revoked; the current one stays valid.
    """
    user = session.get(User, principal.user_id)
    is_valid = verify_password_or_dummy(
        password_request.current_password,
        user.password_hash if user else None,
    )
    if user is None or not is_valid:
        logger.warning(f"Password change rejected for user {principal.user_id}")
        raise ApiError(Failure(ErrorKind.UNAUTHENTICATED, "Current password is incorrect"))

    user.password_hash = hash_password(password_request.new_password)
    session.commit()

    revoked = sessions.revoke_all_for_user(user.id, keep=principal.session_id)
    logger.info(f"Password changed for user {user.id}; revoked {revoked} other sessions")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
