"""Translators for validation messages and the validation error types they translate."""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Iterable, Iterator, Mapping

_EN_MESSAGES = {
    "required": "{0} is a required field",
    "email": "{0} must be a valid email address",
    "url": "{0} must be a valid URL",
    "uuid": "{0} must be a valid UUID",
    "numeric": "{0} must be a valid numeric value",
    "number": "{0} must be a valid number",
    "alpha": "{0} can only contain alphabetic characters",
    "alphanum": "{0} can only contain alphanumeric characters",
    "oneof": "{0} must be one of [{1}]",
    "min": "{0} must be at least {1}",
    "max": "{0} must be {1} or less",
    "len": "{0} must be {1} in length",
    "gte": "{0} must be {1} or greater",
    "lte": "{0} must be {1} or less",
    "gt": "{0} must be greater than {1}",
    "lt": "{0} must be less than {1}",
    "eqfield": "{0} must be equal to {1}",
    "datetime": "{0} does not match the {1} format",
}

_ID_MESSAGES = {
    "required": "{0} wajib diisi",
    "email": "{0} harus berupa alamat email yang valid",
    "url": "{0} harus berupa URL yang valid",
    "uuid": "{0} harus berupa UUID yang valid",
    "numeric": "{0} harus berupa nilai numerik yang valid",
    "number": "{0} harus berupa angka yang valid",
    "alpha": "{0} hanya dapat berisi karakter abjad",
    "alphanum": "{0} hanya dapat berisi karakter alfanumerik",
    "oneof": "{0} harus berupa salah satu dari [{1}]",
    "min": "{0} minimal {1}",
    "max": "{0} maksimal {1}",
    "len": "panjang {0} harus {1}",
    "gte": "{0} harus {1} atau lebih besar",
    "lte": "{0} harus {1} atau kurang",
    "gt": "{0} harus lebih besar dari {1}",
    "lt": "{0} harus kurang dari {1}",
    "eqfield": "{0} harus sama dengan {1}",
    "datetime": "format {0} tidak cocok dengan {1}",
}


@dataclass(frozen=True)
class Translator:
    """Validation messages for one locale."""

    locale: str
    messages: Mapping[str, str]

    def translate(self, tag: str, field: str, param: str = "") -> str:
        """Return the message for a failed ``tag`` on ``field``; KeyError if unknown."""
        try:
            template = self.messages[tag]
        except KeyError:
            raise KeyError(f"no translation for tag {tag!r} in locale {self.locale!r}") from None
        return template.format(field, param)


_TRANSLATORS = {
    "en": Translator("en", MappingProxyType(_EN_MESSAGES)),
    "id": Translator("id", MappingProxyType(_ID_MESSAGES)),
}

_trans: Translator | None = None


def init_id_trans() -> Translator:
    """Select the Indonesian translator unless one is already selected."""
    global _trans
    if _trans is None:
        _trans = _TRANSLATORS["id"]
    return _trans


def init_default_trans() -> Translator:
    """Select the English translator unless one is already selected."""
    global _trans
    if _trans is None:
        _trans = _TRANSLATORS["en"]
    return _trans


def get_trans() -> Translator:
    """Return the selected translator, selecting English by default."""
    if _trans is not None:
        return _trans
    return init_default_trans()


@dataclass(frozen=True)
class FieldError:
    """A single failed validation rule on one field."""

    field: str
    tag: str
    param: str = ""
    namespace: str = ""
    value: Any = None

    def __str__(self) -> str:
        key = self.namespace or self.field
        return f"Key: '{key}' Error:Field validation for '{self.field}' failed on the '{self.tag}' tag"

    def translate(self, translator: Translator) -> str:
        """Return the translated message, or the raw error text when no translation exists."""
        try:
            return translator.translate(self.tag, self.field, self.param)
        except KeyError:
            return str(self)


class ValidationErrors(Exception):
    """A collection of field validation failures."""

    def __init__(self, errors: Iterable[FieldError]) -> None:
        self.errors = tuple(errors)
        super().__init__(*self.errors)

    def __iter__(self) -> Iterator[FieldError]:
        return iter(self.errors)

    def __len__(self) -> int:
        return len(self.errors)

    def __str__(self) -> str:
        return "\n".join(str(error) for error in self.errors)