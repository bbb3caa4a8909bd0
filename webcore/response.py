"""JSON response envelope and data transformers."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Iterable, Mapping, Protocol, runtime_checkable

from .errors import _sprintf


@dataclass
class Content:
    """The JSON body of a response."""

    status: bool = False
    message: str = ""
    error_code: str = ""
    error: str = ""
    data: Any = None
    meta_data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON form; empty optional fields are left out."""
        result: dict[str, Any] = {"status": self.status}
        if self.message:
            result["message"] = self.message
        if self.error_code:
            result["code"] = self.error_code
        if self.error:
            result["error"] = self.error
        if self.data is not None:
            result["data"] = self.data
        if self.meta_data:
            result["metadata"] = dict(self.meta_data)
        return result


@dataclass
class Paginator:
    page: int = 0
    per_page: int = 0
    total: int = 0


@dataclass
class Response(Exception):
    """An HTTP response that can also be raised as an error."""

    headers: dict[str, str] = field(default_factory=dict)
    content: Content = field(default_factory=Content)
    status_code: int = 0

    def __str__(self) -> str:
        c = self.content
        return f"map[error:{c.error} error_code:{c.error_code} message:{c.message}]"

    def _evolve(self, headers: Mapping[str, str] | None = None, status_code: int | None = None, **content_changes: Any) -> Response:
        changes = {"meta_data": dict(self.content.meta_data), **content_changes}
        return replace(
            self,
            headers=dict(self.headers if headers is None else headers),
            content=replace(self.content, **changes),
            status_code=self.status_code if status_code is None else status_code,
        )

    def with_headers(self, headers: Mapping[str, str]) -> Response:
        return self._evolve(headers={**self.headers, **headers})

    def with_data(self, data: Any) -> Response:
        """Set the data payload; None leaves it unchanged."""
        if data is None:
            return self._evolve()
        return self._evolve(data=data)

    def with_status_code(self, status_code: int) -> Response:
        return self._evolve(status_code=status_code)

    def with_content_status(self, status: bool) -> Response:
        return self._evolve(status=status)

    def with_message(self, message: str, *args: Any) -> Response:
        """Set the message, formatting printf-style verbs when args are given."""
        if not args:
            return self._evolve(message=message)
        return self._evolve(message=_sprintf(message, args))

    def with_error_code(self, error_code: str) -> Response:
        return self._evolve(error_code=error_code)

    def with_error(self, err: BaseException | str) -> Response:
        return self._evolve(error=str(err))

    def with_meta_data(self, meta: Mapping[str, Any]) -> Response:
        return self._evolve(meta_data={**self.content.meta_data, **meta})

    def with_paginator(self, paginator: Paginator) -> Response:
        return self.with_meta_data({"page": paginator.page, "per_page": paginator.per_page, "total": paginator.total})

    def with_metas(self, *args: Mapping[str, Any]) -> Response:
        merged = dict(self.content.meta_data)
        for meta in args:
            merged.update(meta)
        return self._evolve(meta_data=merged)


def new_response_entity() -> Response:
    return Response()


@runtime_checkable
class Transformable(Protocol):
    """An object that knows how to turn itself into its public form."""

    def transform(self) -> Any: ...


def transform_list(items: Iterable[Transformable]) -> list[Any]:
    return [item.transform() for item in items]


def transform_list_any(items: Iterable[Any]) -> list[Any]:
    """Transform the items that support it and keep the rest as they are."""
    return [item.transform() if isinstance(item, Transformable) else item for item in items]