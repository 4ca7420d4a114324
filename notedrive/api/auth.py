"""Authentication API endpoints."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends

from notedrive.api.deps import get_auth_manager
from notedrive.schemas.auth import (
    ChallengeRequest,
    ChallengeResponse,
    TokenResponse,
    VerifyRequest,
)
from notedrive.services.auth_service import AuthManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


@router.post("/challenge", response_model=ChallengeResponse)
def create_challenge(
    body: ChallengeRequest,
    auth_manager: Annotated[AuthManager, Depends(get_auth_manager)],
) -> ChallengeResponse:
    """Issue a single-use challenge for an authorized public key."""
    issued = auth_manager.create_challenge(body.public_key)
    return ChallengeResponse(
        challenge=issued.challenge,
        public_key=issued.public_key,
        expires_at=issued.expires_at,
    )


@router.post("/verify", response_model=TokenResponse)
def verify_challenge(
    body: VerifyRequest,
    auth_manager: Annotated[AuthManager, Depends(get_auth_manager)],
) -> TokenResponse:
    """Exchange a signed challenge for a bearer token."""
    issued = auth_manager.verify_challenge(body.challenge, body.public_key, body.signature)
    return TokenResponse(token=issued.token, expires_at=issued.expires_at)
