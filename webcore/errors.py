"""Application error codes and the error entities they describe."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, replace
from http import HTTPStatus
from typing import Any

_VERB = re.compile(r"%([-+# 0]*)(\d*)(?:\.(\d+))?([a-zA-Z%])")


def _go_str(value: Any) -> str:
    if value is None:
        return "<nil>"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _bad_verb(verb: str, value: Any) -> str:
    return f"%!{verb}({type(value).__name__}={_go_str(value)})"


def _format_one(value: Any, flags: str, width: str, precision: str | None, verb: str) -> str:
    numeric = False
    if verb in "vs":
        text = _go_str(value)
    elif verb == "q":
        text = json.dumps(str(value), ensure_ascii=False)
    elif verb == "t":
        if not isinstance(value, bool):
            return _bad_verb(verb, value)
        text = _go_str(value)
    elif verb in "dxXob":
        if isinstance(value, bool) or not isinstance(value, int):
            if verb in "xX" and isinstance(value, (str, bytes)):
                raw = value.encode() if isinstance(value, str) else value
                text = raw.hex()
                return text.upper() if verb == "X" else text
            return _bad_verb(verb, value)
        spec = {"d": "d", "x": "x", "X": "X", "o": "o", "b": "b"}[verb]
        text = format(value, ("+" if "+" in flags else "") + spec)
        numeric = True
    elif verb in "feEgG":
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return _bad_verb(verb, value)
        digits = precision if precision is not None else "6"
        spec = verb if verb in "eEgG" and precision is None else f".{digits}{verb}"
        text = format(float(value), ("+" if "+" in flags else "") + spec)
        numeric = True
    else:
        return _bad_verb(verb, value)

    if precision is not None and verb in "vsq":
        text = text[: int(precision)]
    if width:
        size = int(width)
        if "-" in flags:
            text = text.ljust(size)
        elif "0" in flags and numeric:
            sign = text[0] if text[:1] in "+-" else ""
            text = sign + text[len(sign):].rjust(size - len(sign), "0")
        else:
            text = text.rjust(size)
    return text


def _sprintf(template: str, args: tuple[Any, ...]) -> str:
    """Format ``template`` with printf-style verbs such as %s, %v and %d."""
    remaining = iter(args)

    def substitute(match: re.Match[str]) -> str:
        flags, width, precision, verb = match.groups()
        if verb == "%":
            return "%"
        try:
            value = next(remaining)
        except StopIteration:
            return f"%!{verb}(MISSING)"
        return _format_one(value, flags, width, precision, verb)

    out = _VERB.sub(substitute, template)
    extra = list(remaining)
    if extra:
        rendered = ", ".join(f"{type(v).__name__}={_go_str(v)}" for v in extra)
        out += f"%!(EXTRA {rendered})"
    return out


@dataclass
class CodeErrEntity(Exception):
    """An error with a public code, an HTTP status and a user-facing message."""

    code: str = ""
    error_message: str = ""
    message: str = ""
    status: int = 0
    format_args: tuple[Any, ...] | None = None

    def __str__(self) -> str:
        return self.error_message


class CodeErr(int):
    """Numeric key into the table of known error entities."""

    def __repr__(self) -> str:
        return f"CodeErr({int(self)})"

    def __str__(self) -> str:
        entity = _CODE_ERR_MAP.get(self, CodeErrEntity())
        if entity.format_args is None:
            return entity.error_message
        return _sprintf(entity.message, entity.format_args)

    def get_code_err_entity(self) -> CodeErrEntity:
        """Return a copy of the entity registered for this code."""
        return replace(_CODE_ERR_MAP.get(self, CodeErrEntity()))

    def error(self) -> str:
        """Return the detailed error message registered for this code."""
        return _CODE_ERR_MAP.get(self, CodeErrEntity()).error_message

    def with_args(self, *args: Any) -> CodeErrEntity:
        """Return the entity with message formatting arguments attached."""
        return replace(self.get_code_err_entity(), format_args=args if args else None)

    def with_error(self, err: BaseException | str) -> CodeErrEntity:
        """Return the entity carrying the text of ``err`` as its detailed message."""
        return replace(self.get_code_err_entity(), error_message=str(err))


(
    ERR_GENERAL,
    ERR_UNAUTHORIZED_ACCESS,
    ERR_UNAUTHORIZED_ACCESS_SESSION_CONTEXT_NOT_FOUND,
    ERR_UNAUTHORIZED_ACCESS_SUB_404,
    ERR_UNAUTHORIZED_ACCESS_JTI_404,
    ERR_UNAUTHORIZED_ACCESS_PRIVILEGES_404,
    ERR_UNAUTHORIZED_ACCESS_PRIVILEGES_INVALID_FORMAT,
    ERR_UNAUTHORIZED_ACCESS_ROLE_INVALID_FORMAT,
    ERR_NOT_FOUND,
    ERR_VALIDATION,
    ERR_FORBIDDEN,
    ERR_FORBIDDEN_PRIVILEGE,
    ERR_TOO_MANY_REQUESTS,
    ERR_INVALID_CREDENTIALS,
    ERR_FORBIDDEN_STATUS,
    ERR_FORBIDDEN_MULTIPLE_SESSION_DETECTED,
    ERR_UNAUTHORIZED_SESSION_NOT_FOUND,
    ERR_FORBIDDEN_INVALID_ROLE,
) = (CodeErr(value) for value in range(18))

_UNAUTHORIZED = HTTPStatus.UNAUTHORIZED
_FORBIDDEN = HTTPStatus.FORBIDDEN

# Codes follow ERRXXX0YY: XXX is the HTTP status, 0 marks the core library,
# YY increments per error.
_CODE_ERR_MAP: dict[int, CodeErrEntity] = {
    ERR_GENERAL: CodeErrEntity(code="ERR500000", status=HTTPStatus.INTERNAL_SERVER_ERROR, message="Internal Server Error"),
    ERR_UNAUTHORIZED_ACCESS: CodeErrEntity(code="ERR401001", status=_UNAUTHORIZED, message="Unauthorized"),
    ERR_UNAUTHORIZED_ACCESS_SESSION_CONTEXT_NOT_FOUND: CodeErrEntity(code="ERR401002", status=_UNAUTHORIZED, message="Unauthorized"),
    ERR_UNAUTHORIZED_ACCESS_SUB_404: CodeErrEntity(code="ERR401003", status=_UNAUTHORIZED, message="Unauthorized"),
    ERR_UNAUTHORIZED_ACCESS_JTI_404: CodeErrEntity(code="ERR401004", status=_UNAUTHORIZED, message="Unauthorized"),
    ERR_UNAUTHORIZED_ACCESS_PRIVILEGES_404: CodeErrEntity(code="ERR401005", status=_UNAUTHORIZED, message="Unauthorized"),
    ERR_UNAUTHORIZED_ACCESS_PRIVILEGES_INVALID_FORMAT: CodeErrEntity(code="ERR401006", status=_UNAUTHORIZED, message="Unauthorized"),
    ERR_NOT_FOUND: CodeErrEntity(code="ERR404007", status=HTTPStatus.NOT_FOUND, message="Not Found"),
    ERR_VALIDATION: CodeErrEntity(code="ERR400008", status=HTTPStatus.BAD_REQUEST, message="Bad Request"),
    ERR_INVALID_CREDENTIALS: CodeErrEntity(code="ERR400009", status=HTTPStatus.BAD_REQUEST, message="Invalid Credentials"),
    ERR_FORBIDDEN: CodeErrEntity(code="ERR403010", status=_FORBIDDEN, message="Forbidden"),
    ERR_FORBIDDEN_PRIVILEGE: CodeErrEntity(code="ERR403011", status=_FORBIDDEN, message="Forbidden"),
    ERR_FORBIDDEN_STATUS: CodeErrEntity(code="ERR403012", status=_FORBIDDEN, message="Forbidden"),
    ERR_TOO_MANY_REQUESTS: CodeErrEntity(code="ERR429013", status=HTTPStatus.TOO_MANY_REQUESTS, message="Too Many Requests"),
    ERR_UNAUTHORIZED_ACCESS_ROLE_INVALID_FORMAT: CodeErrEntity(code="ERR401014", status=_UNAUTHORIZED, message="Unauthorized"),
    ERR_FORBIDDEN_MULTIPLE_SESSION_DETECTED: CodeErrEntity(code="ERR403015", status=_UNAUTHORIZED, message="Multiple Session detected."),
    ERR_UNAUTHORIZED_SESSION_NOT_FOUND: CodeErrEntity(code="ERR401016", status=_UNAUTHORIZED, message="Session not found."),
    ERR_FORBIDDEN_INVALID_ROLE: CodeErrEntity(code="ERR403017", status=_UNAUTHORIZED, message="Forbidden role not allowed."),
}


def append_code_err_map(err: int, entity: CodeErrEntity) -> None:
    """Register or replace the entity for an error code."""
    _CODE_ERR_MAP[CodeErr(err)] = entity