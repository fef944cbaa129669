import json
from functools import lru_cache
from typing import Any
from urllib import request

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from app.core.config import get_settings


_bearer = HTTPBearer(auto_error=False)


class TokenError(RuntimeError):
    pass


@lru_cache(maxsize=1)
def _fetch_jwks() -> dict[str, Any]:
    domain = get_settings().auth0_domain
    if not domain:
        raise TokenError("auth0_domain_missing")
    url = f"https://{domain}/.well-known/jwks.json"
    try:
        with request.urlopen(url, timeout=10) as response:
            return json.loads(response.read().decode("utf-8"))
    except Exception as exc:  # pragma: no cover - network boundary
        raise TokenError(f"jwks_fetch_failed:{exc}") from exc


def _resolve_signing_key(token: str) -> Any:
    try:
        header = jwt.get_unverified_header(token)
    except JWTError as exc:
        raise TokenError("token_header_invalid") from exc
    kid = header.get("kid")
    for key in _fetch_jwks().get("keys", []):
        if key.get("kid") == kid:
            return key
    raise TokenError("signing_key_not_found")


def decode_access_token(token: str) -> dict[str, Any]:
    settings = get_settings()
    key = _resolve_signing_key(token)
    try:
        return jwt.decode(
            token,
            key,
            algorithms=settings.auth0_algorithms,
            audience=settings.auth0_audience or None,
            issuer=f"https://{settings.auth0_domain}/" if settings.auth0_domain else None,
            options={"verify_aud": bool(settings.auth0_audience)},
        )
    except JWTError as exc:
        raise TokenError(f"token_invalid:{exc}") from exc


def _unauthorized(reason: str) -> HTTPException:
    return HTTPException(
        status_code=401,
        detail={
            "error_code": "unauthorized",
            "message": "Authentication required",
            "retryable": False,
            "detail": reason,
        },
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
) -> str:
    if credentials is None or not credentials.credentials:
        raise _unauthorized("bearer_token_missing")
    try:
        claims = decode_access_token(credentials.credentials)
    except TokenError as exc:
        raise _unauthorized(str(exc)) from exc
    subject = claims.get("sub")
    if not isinstance(subject, str) or not subject:
        raise _unauthorized("token_subject_missing")
    return subject
