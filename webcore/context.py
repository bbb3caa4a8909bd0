"""Request-scoped context values, loggers and user sessions."""

from __future__ import annotations

import json
import logging
import re
import sys
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Iterable, Mapping

from .errors import ERR_FORBIDDEN_PRIVILEGE, ERR_UNAUTHORIZED_ACCESS

X_REQUEST_ID_CONTEXT = "X-Request-Id"

_REQUEST_ID_KEY = object()
_LOGGER_KEY = object()
_SESSION_KEY = object()

_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1
_INTEGER = re.compile(r"[+-]?[0-9]+")


class Context:
    """An immutable set of request-scoped values."""

    __slots__ = ("_values",)

    def __init__(self, values: Mapping[Any, Any] | None = None) -> None:
        self._values = MappingProxyType(dict(values or {}))

    def with_value(self, key: Any, value: Any) -> Context:
        """Return a new context that also maps ``key`` to ``value``."""
        return Context({**self._values, key: value})

    def value(self, key: Any) -> Any:
        """Return the value stored under ``key``, or None."""
        return self._values.get(key)


class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        data = dict(getattr(record, "fields", {}))
        data["level"] = record.levelname.lower()
        data["msg"] = record.getMessage()
        data["time"] = datetime.fromtimestamp(record.created, timezone.utc).astimezone().isoformat()
        return json.dumps(data, indent=2, default=str)


class _StdoutHandler(logging.Handler):
    def emit(self, record: logging.LogRecord) -> None:
        try:
            sys.stdout.write(self.format(record) + "\n")
        except Exception:
            self.handleError(record)


def _build_custom_logger() -> logging.Logger:
    logger = logging.getLogger("webcore")
    logger.setLevel(logging.INFO)
    logger.propagate = False
    if not logger.handlers:
        handler = _StdoutHandler()
        handler.setFormatter(_JsonFormatter())
        logger.addHandler(handler)
    return logger


CUSTOM_LOGGER = _build_custom_logger()


@dataclass(frozen=True)
class LogEntry:
    """A logger bound to a set of structured fields."""

    logger: logging.Logger = field(default_factory=lambda: CUSTOM_LOGGER)
    fields: Mapping[str, Any] = field(default_factory=dict)

    def with_field(self, key: str, value: Any) -> LogEntry:
        return LogEntry(self.logger, {**self.fields, key: value})

    def with_fields(self, fields: Mapping[str, Any]) -> LogEntry:
        return LogEntry(self.logger, {**self.fields, **fields})

    def info(self, message: Any) -> None:
        self.logger.info(str(message), extra={"fields": dict(self.fields)})

    def error(self, message: Any) -> None:
        self.logger.error(str(message), extra={"fields": dict(self.fields)})


@dataclass(frozen=True)
class Role:
    id: int = 0
    code: str = ""


@dataclass
class JwtClaim:
    iss: str = ""
    sub: str = ""
    exp: int = 0
    iat: int = 0
    jti: str = ""
    privileges: list[str] = field(default_factory=list)
    role: Role = field(default_factory=Role)
    platform: str = ""

    def to_jwt_claim(self) -> dict[str, Any]:
        """Return the claim as a mapping of registered and custom JWT claims."""
        return {
            "sub": self.sub,
            "iss": self.iss,
            "iat": self.iat,
            "exp": self.exp,
            "jti": self.jti,
            "privileges": list(self.privileges),
            "role": {"id": self.role.id, "code": self.role.code},
            "platform": self.platform,
        }


@dataclass(frozen=True)
class Session:
    """The authenticated user of a request."""

    user_id: str
    privileges: frozenset[str] = frozenset()
    role: Role = field(default_factory=Role)

    def get_user_id_int(self) -> int:
        """Parse the user id as a signed 64-bit integer; raise ValueError otherwise."""
        if not _INTEGER.fullmatch(self.user_id):
            raise ValueError(f"invalid integer user id: {self.user_id!r}")
        number = int(self.user_id)
        if not _INT64_MIN <= number <= _INT64_MAX:
            raise ValueError(f"user id out of range: {self.user_id!r}")
        return number

    def get_privileges(self) -> list[str]:
        return sorted(self.privileges)

    def check_privilege(self, privilege: str) -> None:
        """Raise the forbidden-privilege error unless the privilege is held."""
        if privilege not in self.privileges:
            raise ERR_FORBIDDEN_PRIVILEGE.get_code_err_entity()

    def check_privileges(self, privileges: Iterable[str]) -> None:
        """Raise the forbidden-privilege error unless every privilege is held."""
        for privilege in privileges:
            self.check_privilege(privilege)


def new_session(claim: JwtClaim) -> Session:
    return Session(user_id=claim.sub, privileges=frozenset(claim.privileges), role=claim.role)


class ContextBuilder:
    """Fluent helper that reads and writes the well-known context values."""

    def __init__(self, ctx: Context | None = None) -> None:
        self._ctx = ctx if ctx is not None else Context()

    def set_request_id(self, request_id: str) -> ContextBuilder:
        self._ctx = self._ctx.with_value(_REQUEST_ID_KEY, request_id)
        return self

    def set_logger(self, entry: LogEntry) -> ContextBuilder:
        self._ctx = self._ctx.with_value(_LOGGER_KEY, entry)
        return self

    def set_session(self, session: Session) -> ContextBuilder:
        self._ctx = self._ctx.with_value(_SESSION_KEY, session)
        return self

    def get_session(self) -> Session | None:
        session = self._ctx.value(_SESSION_KEY)
        return session if isinstance(session, Session) else None

    def get_logger(self) -> LogEntry:
        entry = self._ctx.value(_LOGGER_KEY)
        return entry if isinstance(entry, LogEntry) else LogEntry(CUSTOM_LOGGER)

    def get_request_id(self) -> str:
        """Return the stored request id, or a fresh random one."""
        value = self._ctx.value(_REQUEST_ID_KEY)
        return value if value is not None else str(uuid.uuid4())

    def context(self) -> Context:
        return self._ctx


def new_http_client_context(ctx: Context) -> Context:
    """Return a context carrying the request id for outgoing HTTP calls."""
    return ctx.with_value(X_REQUEST_ID_CONTEXT, ContextBuilder(ctx).get_request_id())


def get_user_id_from_session(ctx: Context) -> str:
    session = ContextBuilder(ctx).get_session()
    return session.user_id if session is not None else ""


def get_user_id_int_from_session(ctx: Context) -> int:
    session = ContextBuilder(ctx).get_session()
    if session is None:
        raise ERR_UNAUTHORIZED_ACCESS.get_code_err_entity()
    return session.get_user_id_int()


def get_role_from_session(ctx: Context) -> Role:
    session = ContextBuilder(ctx).get_session()
    return session.role if session is not None else Role()