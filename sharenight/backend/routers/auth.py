"""Anonymous sign-in.

ShareNight has no accounts: a client asks for an anonymous user id once and
sends it back in the ``X-User-Id`` header on every request.
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, status
from loguru import logger

from sharenight.backend.models.api import AnonymousUserResponse

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/anonymous", response_model=AnonymousUserResponse, status_code=status.HTTP_201_CREATED)
async def sign_in_anonymously() -> AnonymousUserResponse:
    user_id = uuid.uuid4().hex
    logger.debug("Issued anonymous user {}", user_id)
    return AnonymousUserResponse(user_id=user_id)
