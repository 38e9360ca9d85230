"""Credential verification: signed bearer tokens or an anonymous API key."""

from __future__ import annotations

from typing import Mapping

import jwt
from fastapi import Depends, Request
from pydantic import BaseModel, ConfigDict, ValidationError

from src.common.logging import get_logger
from src.common.metrics import AUTH_FAILURES

from . import deps
from .errors import AuthenticationRequired

logger = get_logger(__name__)

JWT_ALGORITHM = "HS256"
BEARER_PREFIX = "Bearer "
API_KEY_HEADER = "apikey"

ANON_SUBJECT = "anon-user"
ANON_ROLE = "anon"


class IdentityClaims(BaseModel):
    """Normalized identity of the caller for a single request."""

    model_config = ConfigDict(frozen=True)

    subject: str
    email: str | None = None
    role: str | None = None
    expiry: int | None = None
    audience: str | list[str] | None = None
    issuer: str | None = None


ANONYMOUS = IdentityClaims(subject=ANON_SUBJECT, role=ANON_ROLE)


def record_failure(exc: AuthenticationRequired) -> None:
    AUTH_FAILURES.labels("music_stream", exc.reason).inc()
    logger.info("auth_rejected", reason=exc.reason)


def decode_token(token: str, secret: str, *, leeway: int = 0) -> IdentityClaims:
    if not secret:
        raise AuthenticationRequired("no_secret")
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[JWT_ALGORITHM],
            leeway=leeway,
            options={
                "require": ["exp", "sub"],
                "verify_aud": False,
                "verify_nbf": False,
                "verify_iat": False,
            },
        )
    except jwt.ExpiredSignatureError as exc:
        raise AuthenticationRequired("expired") from exc
    except jwt.InvalidSignatureError as exc:
        raise AuthenticationRequired("invalid_signature") from exc
    except jwt.MissingRequiredClaimError as exc:
        raise AuthenticationRequired("invalid_claims") from exc
    except (jwt.PyJWTError, TypeError, ValueError) as exc:
        # Non-numeric time claims can surface as TypeError from PyJWT.
        raise AuthenticationRequired("malformed") from exc

    try:
        return IdentityClaims(
            subject=payload["sub"],
            email=payload.get("email"),
            role=payload.get("role"),
            expiry=payload["exp"],
            audience=payload.get("aud"),
            issuer=payload.get("iss"),
        )
    except ValidationError as exc:
        raise AuthenticationRequired("invalid_claims") from exc


def verify_credentials(
    headers: Mapping[str, str], secret: str, *, leeway: int = 0
) -> IdentityClaims:
    """Return the caller's identity or raise :class:`AuthenticationRequired`.

    A ``Bearer`` authorization header is authoritative: if its token does
    not verify, the request is rejected even when an API key is present.
    Any non-empty ``apikey`` value maps to the anonymous identity.
    """

    authorization = headers.get("authorization")
    if authorization and authorization.startswith(BEARER_PREFIX):
        return decode_token(authorization[len(BEARER_PREFIX):], secret, leeway=leeway)

    if headers.get(API_KEY_HEADER):
        return ANONYMOUS

    raise AuthenticationRequired("missing")


async def require_identity(
    request: Request, settings: deps.Settings = Depends(deps.get_app_settings)
) -> IdentityClaims:
    try:
        return verify_credentials(
            request.headers, settings.jwt_secret, leeway=settings.jwt_leeway_sec
        )
    except AuthenticationRequired as exc:
        record_failure(exc)
        raise


async def optional_identity(
    request: Request, settings: deps.Settings = Depends(deps.get_app_settings)
) -> IdentityClaims | None:
    try:
        return verify_credentials(
            request.headers, settings.jwt_secret, leeway=settings.jwt_leeway_sec
        )
    except AuthenticationRequired:
        return None
