"""
API key endpoints.

Raw keys are returned exactly once, by create and reset; only their SHA-256
digest and last four characters are stored.
"""
from sqlalchemy import select
from sqlalchemy.orm import Session
from fastapi import APIRouter, Depends, Response, status

from generatorlog.api.dependencies import get_current_principal
from generatorlog.api.errors import ApiError
from generatorlog.api.v0.api_keys.models import (
    ApiKeyCreate,
    ApiKeyListItem,
    ApiKeySecretResponse,
)
from generatorlog.core.access import Principal
from generatorlog.core.db.session import get_db
from generatorlog.core.db.tables.apikey import ApiKey
from generatorlog.core.logger import get_logger
from generatorlog.core.outcome import ErrorKind, Failure
from generatorlog.core.security import format_hint, new_api_key

logger = get_logger(__name__)

router = APIRouter(prefix="/api-keys")

KEY_NOT_FOUND = Failure(ErrorKind.NOT_FOUND, "API key not found")


def get_owned_key_or_404(session: Session, principal: Principal, key_id: int) -> ApiKey:
    """A key owned by the caller; someone else's key is reported as missing."""
    api_key = session.execute(
        select(ApiKey).where(ApiKey.id == key_id, ApiKey.user_id == principal.user_id)
    ).scalar()

    if not api_key:
        raise ApiError(KEY_NOT_FOUND)
    return api_key


def secret_response(api_key: ApiKey, raw: str) -> ApiKeySecretResponse:
    return ApiKeySecretResponse(
        id=api_key.id,
        name=api_key.name,
        key=raw,
        hint=format_hint(api_key.hint),
        created_at=api_key.created_at,
    )


@router.post("", response_model=ApiKeySecretResponse, status_code=status.HTTP_201_CREATED)
def create_api_key(
    key_request: ApiKeyCreate,
    principal: Principal = Depends(get_current_principal),
    session: Session = Depends(get_db),
):
    material = new_api_key()
    api_key = ApiKey(
        user_id=principal.user_id,
        key_hash=material.hash,
        hint=material.hint,
        name=key_request.name,
    )
    session.add(api_key)
    session.commit()
    session.refresh(api_key)

    logger.info(f"API key {api_key.id} ({format_hint(api_key.hint)}) created for user {principal.user_id}")
    return secret_response(api_key, material.raw)


@router.get("", response_model=list[ApiKeyListItem])
def list_api_keys(
    principal: Principal = Depends(get_current_principal),
    session: Session = Depends(get_db),
):
    keys = session.execute(
        select(ApiKey).where(ApiKey.user_id == principal.user_id).order_by(ApiKey.id)
    ).scalars().all()

    return [
        ApiKeyListItem(
            id=k.id,
            name=k.name,
            hint=format_hint(k.hint),
            last_used_at=k.last_used_at,
            created_at=k.created_at,
        )
        for k in keys
    ]


@router.delete("/{key_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_api_key(
    key_id: int,
    principal: Principal = Depends(get_current_principal),
    session: Session = Depends(get_db),
):
    api_key = get_owned_key_or_404(session, principal, key_id)
    session.delete(api_key)
    session.commit()

    logger.info(f"API key {key_id} deleted by user {principal.user_id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{key_id}/reset", response_model=ApiKeySecretResponse)
def reset_api_key(
    key_id: int,
    principal: Principal = Depends(get_current_principal),
    session: Session = Depends(get_db),
):
    """
    Issue a new raw value for an existing key.

    Hash and hint are replaced in a single update, so the previous raw value
    stops working immediately. Name and id are kept; last-used is cleared.
    """
    api_key = get_owned_key_or_404(session, principal, key_id)

    material = new_api_key()
    api_key.key_hash = material.hash
    api_key.hint = material.hint
    api_key.last_used_at = None
    session.commit()
    session.refresh(api_key)

    logger.info(f"API key {api_key.id} reset to {format_hint(api_key.hint)} by user {principal.user_id}")
    return secret_response(api_key, material.raw)
