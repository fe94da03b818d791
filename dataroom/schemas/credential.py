"""Viewer credential and preview session schemas."""

from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import Optional


def _normalize_email(v: str) -> str:
    v = v.strip().lower()
    local, _, domain = v.partition('@')
    if not local or not domain or '.' not in domain:
        raise ValueError("Invalid email address")
    return v


class EmailCodeCreate(BaseModel):
    email: str = Field(..., max_length=255)
    link_id: str
    invited: bool = False

    @field_validator('email')
    @classmethod
    def validate_email(cls, v: str) -> str:
        return _normalize_email(v)


class EmailCodeResponse(BaseModel):
    code: str
    expires_in: int


class EmailCodeVerify(BaseModel):
    code: str = Field(..., min_length=1, max_length=64)


class EmailCodeVerifyResponse(BaseModel):
    email: str
    link_id: str
    invited: bool


class OtpCreate(BaseModel):
    email: str = Field(..., max_length=255)

    @field_validator('email')
    @classmethod
    def validate_email(cls, v: str) -> str:
        return _normalize_email(v)


class OtpCreateResponse(BaseModel):
    """The code itself is only echoed back outside production."""
    sent: bool
    expires_in: int
    code: Optional[str] = None


class OtpVerify(BaseModel):
    email: str = Field(..., max_length=255)
    code: str = Field(..., min_length=1, max_length=16)
    link_id: Optional[str] = None

    @field_validator('email')
    @classmethod
    def validate_email(cls, v: str) -> str:
        return _normalize_email(v)


class OtpVerifyResponse(BaseModel):
    verified: bool
    verification_token: Optional[str] = None
    expires_in: Optional[int] = None


class LinkVerificationCheck(BaseModel):
    token: str
    link_id: str
    email: str

    @field_validator('email')
    @classmethod
    def validate_email(cls, v: str) -> str:
        return _normalize_email(v)


class PreviewSessionCreate(BaseModel):
    link_id: str


class PreviewSessionResponse(BaseModel):
    token: str
    expires_at: datetime


class PreviewSessionVerify(BaseModel):
    token: str = Field(..., min_length=1)
    link_id: str


class PreviewSessionVerifyResponse(BaseModel):
    user_id: str
    link_id: str
    expires_at: datetime
