from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from fastapi import APIRouter, Depends

from generatorlog.api.dependencies import get_current_principal
from generatorlog.api.errors import ApiError
from generatorlog.api.v0.profile.models import ProfileResponse, ProfileUpdate
from generatorlog.core.access import Principal
from generatorlog.core.db.session import get_db
from generatorlog.core.db.tables.user import User
from generatorlog.core.logger import get_logger
from generatorlog.core.outcome import NOT_AUTHENTICATED, ErrorKind, Failure

logger = get_logger(__name__)

router = APIRouter(prefix="/profile")

EMAIL_IN_USE = Failure(ErrorKind.CONFLICT, "Email already in use")


def get_user_or_401(session: Session, principal: Principal) -> User:
    user = session.get(User, principal.user_id)
    if user is None:
        raise ApiError(NOT_AUTHENTICATED)
    return user


@router.get("", response_model=ProfileResponse)
def get_profile(
    principal: Principal = Depends(get_current_principal),
    session: Session = Depends(get_db),
):
    return get_user_or_401(session, principal)


@router.put("", response_model=ProfileResponse)
def update_profile(
    profile_update: ProfileUpdate,
    principal: Principal = Depends(get_current_principal),
    session: Session = Depends(get_db),
):
    """Update name and/or e-mail. An e-mail owned by another account is rejected."""
    user = get_user_or_401(session, principal)
    update_data = profile_update.model_dump(exclude_unset=True)

    new_email = update_data.get("email")
    if new_email and new_email != user.email:
        taken = session.execute(
            select(User.id).where(User.email == new_email, User.id != user.id)
        ).scalar()
        if taken:
            raise ApiError(EMAIL_IN_USE)

    if "name" in update_data:
        user.name = update_data["name"]
    if new_email:
        user.email = new_email

    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise ApiError(EMAIL_IN_USE)

    session.refresh(user)
    logger.info(f"Profile updated for user {user.id}")
    return user
