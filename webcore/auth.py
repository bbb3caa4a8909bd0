"""Authenticators that turn a bearer token into a verified JWT claim."""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Iterable, Mapping, Protocol

import httpx

from .context import X_REQUEST_ID_CONTEXT, Context, JwtClaim, Role, new_http_client_context
from .errors import (
    ERR_FORBIDDEN_MULTIPLE_SESSION_DETECTED,
    ERR_UNAUTHORIZED_ACCESS,
    ERR_UNAUTHORIZED_ACCESS_JTI_404,
    ERR_UNAUTHORIZED_ACCESS_PRIVILEGES_404,
    ERR_UNAUTHORIZED_ACCESS_PRIVILEGES_INVALID_FORMAT,
    ERR_UNAUTHORIZED_ACCESS_ROLE_INVALID_FORMAT,
    ERR_UNAUTHORIZED_ACCESS_SUB_404,
    ERR_UNAUTHORIZED_SESSION_NOT_FOUND,
)


class Authenticator(ABC):
    """Checks tokens and records issued claims."""

    @abstractmethod
    def check(self, ctx: Context, token: str) -> JwtClaim:
        """Return the claim carried by ``token``; raise when it is not accepted."""

    @abstractmethod
    def persist(self, ctx: Context, claim: JwtClaim, now: datetime) -> None:
        """Record a freshly issued claim."""


class JwtSigner(ABC):
    """Verifies signed tokens."""

    @abstractmethod
    def validate(self, ctx: Context, token: str) -> Mapping[str, Any]:
        """Return the claims of a valid token; raise when it is not valid."""


class _CacheRepo(Protocol):
    def get(self, ctx: Context, key: str) -> bytes | None: ...

    def store(self, ctx: Context, key: str, value: bytes, expires_in: float) -> None: ...


class AuthenticatorHttpClient(Authenticator):
    """Delegates token checks to a remote authentication service."""

    def __init__(self, http_client: httpx.Client, auth_service_base_url: str, token_validate_endpoint_path: str) -> None:
        self._http_client = http_client
        self._auth_service_base_url = auth_service_base_url
        self._token_validate_endpoint_path = token_validate_endpoint_path

    def persist(self, ctx: Context, claim: JwtClaim, now: datetime) -> None:
        return None

    def check(self, ctx: Context, token: str) -> JwtClaim:
        """Post the token to the service and return a claim with the subject it reports."""
        request_ctx = new_http_client_context(ctx)
        response = self._http_client.post(
            f"{self._auth_service_base_url}/{self._token_validate_endpoint_path}",
            json={"token": token},
            headers={
                "Content-Type": "application/json",
                X_REQUEST_ID_CONTEXT: request_ctx.value(X_REQUEST_ID_CONTEXT),
            },
        )
        response.raise_for_status()
        body = response.json()
        if not isinstance(body, dict):
            raise ValueError("auth service response is not a JSON object")
        sub = body.get("sub")
        if sub is None:
            sub = ""
        if not isinstance(sub, str):
            raise ValueError("auth service response field sub is not a string")
        return JwtClaim(sub=sub)


def _lookup(obj: Mapping[str, Any], name: str) -> Any:
    if name in obj:
        return obj[name]
    for key, value in obj.items():
        if isinstance(key, str) and key.lower() == name:
            return value
    return None


def _decode_role(value: Any) -> Role:
    if value is None:
        return Role()
    if not isinstance(value, Mapping):
        raise ValueError("role is not an object")
    raw_id = _lookup(value, "id")
    raw_code = _lookup(value, "code")
    role_id = 0
    if raw_id is not None:
        if isinstance(raw_id, float) and raw_id.is_integer():
            raw_id = int(raw_id)
        if isinstance(raw_id, bool) or not isinstance(raw_id, int):
            raise ValueError("role id is not an integer")
        role_id = raw_id
    code = ""
    if raw_code is not None:
        if not isinstance(raw_code, str):
            raise ValueError("role code is not a string")
        code = raw_code
    return Role(id=role_id, code=code)


def _privileges(value: Any) -> list[str]:
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ERR_UNAUTHORIZED_ACCESS_PRIVILEGES_INVALID_FORMAT.get_code_err_entity()
    return list(value)


class AuthenticatorJwt(Authenticator):
    """Validates signed JWTs and reads the subject, id, privileges and role."""

    def __init__(self, signer: JwtSigner) -> None:
        self._signer = signer

    def persist(self, ctx: Context, claim: JwtClaim, now: datetime) -> None:
        return None

    def check(self, ctx: Context, token: str) -> JwtClaim:
        try:
            claims = self._signer.validate(ctx, token)
        except Exception as exc:
            raise ERR_UNAUTHORIZED_ACCESS.with_error(exc) from exc

        if "sub" not in claims:
            raise ERR_UNAUTHORIZED_ACCESS_SUB_404.get_code_err_entity()
        if "jti" not in claims:
            raise ERR_UNAUTHORIZED_ACCESS_JTI_404.get_code_err_entity()
        if "privileges" not in claims:
            raise ERR_UNAUTHORIZED_ACCESS_PRIVILEGES_404.get_code_err_entity()
        privileges = _privileges(claims["privileges"])

        if "role" not in claims:
            raise ERR_UNAUTHORIZED_ACCESS_ROLE_INVALID_FORMAT.get_code_err_entity()
        try:
            role = _decode_role(claims["role"])
        except ValueError as exc:
            raise ERR_UNAUTHORIZED_ACCESS_ROLE_INVALID_FORMAT.get_code_err_entity() from exc

        sub, jti = claims["sub"], claims["jti"]
        if not isinstance(sub, str) or not isinstance(jti, str):
            raise TypeError("token claims sub and jti must be strings")
        return JwtClaim(sub=sub, jti=jti, privileges=privileges, role=role)


class AuthenticatorJwtSingleSession(Authenticator):
    """Accepts only the most recently issued token per platform and user."""

    def __init__(self, authenticator: AuthenticatorJwt, cache: _CacheRepo, whitelist_jti: Iterable[str] = ()) -> None:
        self._authenticator = authenticator
        self._cache = cache
        self._whitelist_jti = frozenset(whitelist_jti)

    @staticmethod
    def _session_key(claim: JwtClaim) -> str:
        return f"login:session:{claim.platform}:{claim.sub}"

    def persist(self, ctx: Context, claim: JwtClaim, now: datetime) -> None:
        """Remember ``claim`` as the active session until it expires."""
        ttl = claim.exp - math.floor(now.timestamp())
        self._cache.store(ctx, self._session_key(claim), claim.jti.encode(), ttl)

    def _check_session(self, ctx: Context, claim: JwtClaim) -> None:
        if claim.jti in self._whitelist_jti:
            return
        stored = self._cache.get(ctx, self._session_key(claim))
        if stored is None:
            raise ERR_UNAUTHORIZED_SESSION_NOT_FOUND.get_code_err_entity()
        if stored.decode() != claim.jti:
            raise ERR_FORBIDDEN_MULTIPLE_SESSION_DETECTED.get_code_err_entity()

    def check(self, ctx: Context, token: str) -> JwtClaim:
        claim = self._authenticator.check(ctx, token)
        self._check_session(ctx, claim)
        return claim