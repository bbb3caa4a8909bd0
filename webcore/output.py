"""Building error and success responses and writing them as JSON."""

from __future__ import annotations

import dataclasses
import json
import os
from http import HTTPStatus
from typing import Any, Iterable, Mapping

from .context import ContextBuilder
from .errors import ERR_GENERAL, ERR_VALIDATION, CodeErrEntity
from .locales import ValidationErrors, get_trans
from .response import Paginator, Response, Transformable, transform_list_any
from .web import Exchange, HTTPError

_CONTENT_TYPE_JSON = "application/json; charset=UTF-8"
_JSON_ESCAPES = (
    ("<", "\\u003c"),
    (">", "\\u003e"),
    ("&", "\\u0026"),
    ("\u2028", "\\u2028"),
    ("\u2029", "\\u2029"),
)


def _as_entity(err: BaseException) -> CodeErrEntity:
    if isinstance(err, CodeErrEntity):
        return err
    getter = getattr(err, "get_code_err_entity", None)
    if callable(getter):
        return getter()
    return ERR_GENERAL.with_error(err)


def response_err(err: Any) -> Response:
    """Turn any error into an error response, using its code entity when it has one."""
    entity = _as_entity(err)
    return (
        Response()
        .with_status_code(int(entity.status))
        .with_content_status(False)
        .with_message(entity.message, *(entity.format_args or ()))
        .with_error_code(entity.code)
        .with_error(entity)
    )


def response_err_validation(err: Any) -> Response:
    """Turn validation failures into a response with one message per field."""
    if isinstance(err, ValidationErrors):
        translator = get_trans()
        data = {error.field.lower(): error.translate(translator) for error in err}
        entity = ERR_VALIDATION.get_code_err_entity()
        return (
            Response()
            .with_status_code(int(entity.status))
            .with_content_status(False)
            .with_message(str(ERR_VALIDATION))
            .with_error_code(entity.code)
            .with_data(data)
        )
    return response_err(err)


def _json_default(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if isinstance(value, (set, frozenset)):
        return list(value)
    raise TypeError(f"object of type {type(value).__name__} is not JSON serializable")


def _sorted_maps(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {key: _sorted_maps(value[key]) for key in sorted(value, key=str)}
    if isinstance(value, (list, tuple)):
        return [_sorted_maps(item) for item in value]
    return value


def _encode(content: dict[str, Any]) -> bytes:
    for name in ("data", "metadata"):
        if name in content:
            content[name] = _sorted_maps(content[name])
    text = json.dumps(content, ensure_ascii=False, separators=(",", ":"), default=_json_default)
    for char, escaped in _JSON_ESCAPES:
        text = text.replace(char, escaped)
    return (text + "\n").encode("utf-8")


def write_json(response: Response, exchange: Exchange) -> None:
    """Write the response status, headers and JSON content to the exchange."""
    writer = exchange.response
    writer.headers["Content-Type"] = _CONTENT_TYPE_JSON
    for key, value in response.headers.items():
        writer.headers[key] = value
    writer.write_header(response.status_code)

    content = response.content.to_dict()
    if os.environ.get("APP_DEBUG") == "true":
        content.pop("error", None)
    writer.write(_encode(content))


def response_ok(status_code: int, data: Any, *args: Mapping[str, Any]) -> Response:
    """Build a successful response; transformable data is replaced by its public form."""
    response = (
        Response()
        .with_status_code(status_code)
        .with_content_status(True)
        .with_data(data)
        .with_metas(*args)
    )
    if isinstance(data, Transformable):
        response = response.with_data(data.transform())
    return response


def write_response_created(exchange: Exchange, status_code: int, data: Any) -> None:
    """Write ``data`` with status 201 Created."""
    write_json(response_ok(HTTPStatus.CREATED, data), exchange)


def write_response_ok(exchange: Exchange, data: Any) -> None:
    """Write ``data`` with status 200 OK."""
    write_json(response_ok(HTTPStatus.OK, data), exchange)


def write_paging(
    exchange: Exchange,
    status_code: int,
    items: Iterable[Any],
    paginator: Paginator,
    *args: Mapping[str, Any],
) -> None:
    """Write one page of items together with its paging metadata."""
    response = (
        Response()
        .with_status_code(status_code)
        .with_content_status(True)
        .with_data(transform_list_any(list(items)))
        .with_paginator(paginator)
        .with_metas(*args)
    )
    write_json(response, exchange)


def custom_http_error_handler(err: BaseException, exchange: Exchange) -> None:
    """Write an error as a JSON response and log it with its status."""
    if isinstance(err, Response):
        write_json(err, exchange)
        return

    ctx = exchange.request.context
    code = int(HTTPStatus.INTERNAL_SERVER_ERROR)
    try:
        if isinstance(err, HTTPError):
            code = err.code
            message = "" if err.message is None else str(err.message)
            write_json(Response().with_status_code(code).with_message(message), exchange)
            return

        response = response_err(err)
        code = response.status_code
        write_json(response, exchange)
    finally:
        ContextBuilder(ctx).get_logger().with_field("status", code).error(err)