"""Request middleware: authentication, privileges, CORS, logging, rate limiting and request ids."""

from __future__ import annotations

import uuid
from typing import Any, Callable, Iterable, Protocol

import httpx

from .auth import Authenticator
from .context import CUSTOM_LOGGER, ContextBuilder, JwtClaim, LogEntry, new_session
from .errors import (
    ERR_FORBIDDEN_INVALID_ROLE,
    ERR_TOO_MANY_REQUESTS,
    ERR_UNAUTHORIZED_ACCESS,
)
from .web import Exchange, Request, get_copy_payload_from_request

Handler = Callable[[Exchange], Any]
Middleware = Callable[[Handler], Handler]

HEADER_AUTHORIZATION = "Authorization"
HEADER_ORIGIN = "Origin"
HEADER_VARY = "Vary"
HEADER_X_REQUEST_ID = "X-Request-Id"

CORS_ALLOW_ORIGINS = ("*",)
CORS_ALLOW_HEADERS = (
    HEADER_ORIGIN,
    "Content-Type",
    "Accept",
    HEADER_AUTHORIZATION,
    HEADER_X_REQUEST_ID,
)
CORS_ALLOW_METHODS = ("GET", "HEAD", "PUT", "PATCH", "POST", "DELETE")


class RateLimiterStore(Protocol):
    def allow(self, identifier: str) -> bool: ...


def _header(headers: httpx.Headers, name: str) -> str:
    """Return the first value of header ``name``, or an empty string."""
    values = headers.get_list(name)
    return values[0] if values else ""


def _bearer_token(request: Request) -> str:
    parts = _header(request.headers, HEADER_AUTHORIZATION).split(" ")
    if len(parts) != 2 or parts[0] != "Bearer":
        raise ERR_UNAUTHORIZED_ACCESS.get_code_err_entity()
    return parts[1]


def _attach_session(exchange: Exchange, claim: JwtClaim) -> None:
    request = exchange.request
    ctx = ContextBuilder(request.context).set_session(new_session(claim)).context()
    exchange.set_request(request.clone(ctx))


def auth_check_middleware(authenticator: Authenticator) -> Middleware:
    """Require a valid bearer token and store the user's session in the request context."""

    def middleware(next_handler: Handler) -> Handler:
        def handler(exchange: Exchange) -> Any:
            token = _bearer_token(exchange.request)
            claim = authenticator.check(exchange.request.context, token)
            _attach_session(exchange, claim)
            return next_handler(exchange)

        return handler

    return middleware


def auth_roles_check_middleware(authenticator: Authenticator, roles: Iterable[str]) -> Middleware:
    """Like the auth check, but also require the token's role code to be one of ``roles``."""
    allowed = tuple(roles)

    def middleware(next_handler: Handler) -> Handler:
        def handler(exchange: Exchange) -> Any:
            token = _bearer_token(exchange.request)
            claim = authenticator.check(exchange.request.context, token)
            if claim.role.code not in allowed:
                raise ERR_FORBIDDEN_INVALID_ROLE.get_code_err_entity()
            _attach_session(exchange, claim)
            return next_handler(exchange)

        return handler

    return middleware


def _add_vary(headers: httpx.Headers, value: str) -> None:
    existing = headers.get(HEADER_VARY)
    headers[HEADER_VARY] = f"{existing}, {value}" if existing else value


def cors_middleware(next_handler: Handler) -> Handler:
    """Allow cross-origin requests from any origin; answer preflight requests with 204."""

    def handler(exchange: Exchange) -> Any:
        request = exchange.request
        response = exchange.response
        origin = _header(request.headers, HEADER_ORIGIN)
        preflight = request.method == "OPTIONS"

        _add_vary(response.headers, HEADER_ORIGIN)
        if not origin:
            if not preflight:
                return next_handler(exchange)
            response.write_header(204)
            return None

        allow_origin = "*" if "*" in CORS_ALLOW_ORIGINS else (origin if origin in CORS_ALLOW_ORIGINS else "")
        if not allow_origin:
            if not preflight:
                return next_handler(exchange)
            response.write_header(204)
            return None

        if not preflight:
            response.headers["Access-Control-Allow-Origin"] = allow_origin
            return next_handler(exchange)

        _add_vary(response.headers, "Access-Control-Request-Method")
        _add_vary(response.headers, "Access-Control-Request-Headers")
        response.headers["Access-Control-Allow-Origin"] = allow_origin
        response.headers["Access-Control-Allow-Methods"] = ",".join(CORS_ALLOW_METHODS)
        response.headers["Access-Control-Allow-Headers"] = ",".join(CORS_ALLOW_HEADERS)
        response.write_header(204)
        return None

    return handler


def _canonical_header(name: str) -> str:
    return "-".join(part[:1].upper() + part[1:].lower() for part in name.split("-"))


def _format_headers(headers: httpx.Headers) -> str:
    grouped: dict[str, list[str]] = {}
    for name, value in headers.multi_items():
        grouped.setdefault(_canonical_header(name), []).append(value)
    body = " ".join(f"{name}:[{' '.join(grouped[name])}]" for name in sorted(grouped))
    return f"map[{body}]"


def logger_with_context_middleware(next_handler: Handler) -> Handler:
    """Log each request before handling it, then log either its error or "OK"."""

    def handler(exchange: Exchange) -> Any:
        request = exchange.request
        entry = ContextBuilder(request.context).get_logger()
        try:
            payload = get_copy_payload_from_request(request)
        except OSError:
            payload = None
        entry.with_fields(
            {
                "URI": request.uri,
                "method": request.method,
                "headers": _format_headers(request.headers),
                "payload": payload.decode("utf-8", errors="replace") if payload else "",
            }
        ).info("request")

        try:
            result = next_handler(exchange)
        except Exception as exc:
            ContextBuilder(exchange.request.context).get_logger().error(exc)
            raise
        ContextBuilder(exchange.request.context).get_logger().info("OK")
        return result

    return handler


def privilege_check_middleware(expected_privileges: Iterable[str]) -> Middleware:
    """Require the session in the request context to hold every expected privilege."""
    expected = tuple(expected_privileges)

    def middleware(next_handler: Handler) -> Handler:
        def handler(exchange: Exchange) -> Any:
            session = ContextBuilder(exchange.request.context).get_session()
            if session is None:
                raise ERR_UNAUTHORIZED_ACCESS.get_code_err_entity()
            session.check_privileges(expected)
            return next_handler(exchange)

        return handler

    return middleware


def _rate_limit_identifier(request: Request) -> str:
    client_ip = request.real_ip()
    auth_header = _header(request.headers, HEADER_AUTHORIZATION)
    if not auth_header:
        return client_ip
    parts = auth_header.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer":
        return client_ip
    return parts[1]


def rate_limit_middleware(store: RateLimiterStore, authenticator: Authenticator | None) -> Middleware:
    """Limit requests per bearer token, or per client address without one.

    ``authenticator`` is accepted but not consulted.
    """

    def middleware(next_handler: Handler) -> Handler:
        def handler(exchange: Exchange) -> Any:
            identifier = _rate_limit_identifier(exchange.request)
            try:
                allowed = store.allow(identifier)
            except Exception as exc:
                raise ERR_TOO_MANY_REQUESTS.get_code_err_entity() from exc
            if not allowed:
                raise ERR_TOO_MANY_REQUESTS.get_code_err_entity()
            return next_handler(exchange)

        return handler

    return middleware


def request_id_middleware(next_handler: Handler) -> Handler:
    """Give each request an id, echo it in the response and bind a logger to it."""

    def handler(exchange: Exchange) -> Any:
        request = exchange.request
        request_id = _header(request.headers, HEADER_X_REQUEST_ID) or str(uuid.uuid4())
        exchange.response.headers[HEADER_X_REQUEST_ID] = request_id
        entry = LogEntry(CUSTOM_LOGGER).with_field("request_id", request_id)
        ctx = ContextBuilder(request.context).set_request_id(request_id).set_logger(entry).context()
        exchange.set_request(request.clone(ctx))
        return next_handler(exchange)

    return handler