"""Errors attached to a request context, with type flags and JSON views."""

from __future__ import annotations

import dataclasses
import json as _json
from collections.abc import Mapping
from enum import IntFlag
from typing import Any


class ErrorType(IntFlag):
    """Bit flags classifying an error attached to a context."""

    PRIVATE = 1 << 0
    PUBLIC = 1 << 1
    RENDER = 1 << 62
    BIND = 1 << 63
    ANY = (1 << 64) - 1


def _json_default(value: Any) -> Any:
    if isinstance(value, ContextError):
        return value.json()
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    raise TypeError(f"object of type {type(value).__name__} is not JSON serializable")


def _marshal(value: Any) -> str:
    """Serialise compactly with sorted keys and HTML-sensitive characters escaped."""
    text = _json.dumps(
        value,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=_json_default,
    )
    return text.replace("<", "\\u003c").replace(">", "\\u003e").replace("&", "\\u0026")


def _format_value(value: Any) -> str:
    """Render a value the way the plain text error report shows it."""
    if value is None:
        return "<nil>"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Mapping):
        items = sorted(value.items(), key=lambda item: str(item[0]))
        return "map[" + " ".join(f"{k}:{_format_value(v)}" for k, v in items) + "]"
    if isinstance(value, (list, tuple)):
        return "[" + " ".join(_format_value(v) for v in value) + "]"
    return str(value)


class ContextError(Exception):
    """An error wrapped with a type and optional metadata."""

    def __init__(self, err: BaseException, type: ErrorType = ErrorType.PRIVATE, meta: Any = None):
        super().__init__(err)
        self.err = err
        self.type = ErrorType(type)
        self.meta = meta
        self.__cause__ = err

    def __str__(self) -> str:
        return str(self.err)

    def set_type(self, flags: ErrorType) -> ContextError:
        """Set the error's type and return the error."""
        self.type = ErrorType(flags)
        return self

    def set_meta(self, data: Any) -> ContextError:
        """Set the error's metadata and return the error."""
        self.meta = data
        return self

    def json(self) -> Any:
        """Return a JSON-ready view of the error."""
        data: dict[str, Any] = {}
        meta = self.meta
        if meta is not None:
            if dataclasses.is_dataclass(meta) and not isinstance(meta, type):
                return meta
            if isinstance(meta, Mapping):
                data.update((str(key), value) for key, value in meta.items())
            else:
                data["meta"] = meta
        data.setdefault("error", str(self))
        return data

    def to_json(self) -> str:
        """Serialise the error as JSON text."""
        return _marshal(self.json())

    def is_type(self, flags: ErrorType) -> bool:
        """Tell whether the error's type shares any bit with ``flags``."""
        return (int(self.type) & int(flags)) > 0


class ErrorList(list):
    """The errors collected while handling one request."""

    def by_type(self, typ: ErrorType) -> ErrorList:
        """Return the errors whose type matches ``typ``."""
        if not self:
            return ErrorList()
        if typ == ErrorType.ANY:
            return self
        return ErrorList(err for err in self if err.is_type(typ))

    def last(self) -> ContextError | None:
        """Return the last error, or None when there is none."""
        return self[-1] if self else None

    def errors(self) -> list[str]:
        """Return the messages of all errors."""
        return [str(err) for err in self]

    def json(self) -> Any:
        """Return None, a single error's view, or a list of views."""
        if not self:
            return None
        if len(self) == 1:
            return self[0].json()
        return [err.json() for err in self]

    def to_json(self) -> str:
        """Serialise the errors as JSON text."""
        return _marshal(self.json())

    def __str__(self) -> str:
        lines = []
        for number, err in enumerate(self, start=1):
            lines.append(f"Error #{number:02d}: {err.err}\n")
            if err.meta is not None:
                lines.append(f"     Meta: {_format_value(err.meta)}\n")
        return "".join(lines)