"""Authentication request/response schemas."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ChallengeRequest(BaseModel):
    """Request a challenge for an OpenSSH public key line."""

    public_key: str = Field(max_length=16384)


class ChallengeResponse(BaseModel):
    challenge: str
    public_key: str
    expires_at: int


class VerifyRequest(BaseModel):
    """Signed challenge. ``signature`` is base64."""

    challenge: str = Field(min_length=1, max_length=256)
    public_key: str = Field(min_length=1, max_length=16384)
    signature: str = Field(min_length=1, max_length=4096)


class TokenResponse(BaseModel):
    token: str
    expires_at: int
