"""The per-request context: flow control, stored values, input and output."""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable
from datetime import datetime, timedelta
from typing import Any
from urllib.parse import quote_plus, unquote_plus

from .debug import debug_print
from .errors import ContextError, ErrorList, ErrorType
from .http import (
    Param,
    Params,
    Request,
    Response,
    SameSite,
    body_allowed_for_status,
    format_cookie,
)
from .negotiation import bracket_map, filter_flags, negotiate_format, parse_accept

CONTEXT_KEY = "_tonic/contextkey"
ABORT_INDEX = 127 >> 1

Handler = Callable[["Context"], Any]


def _name_of_function(func: Callable[..., Any] | None) -> str:
    if func is None:
        return ""
    module = getattr(func, "__module__", None) or ""
    name = getattr(func, "__qualname__", None) or getattr(func, "__name__", None) or repr(func)
    return f"{module}.{name}" if module else name


def _split_host_port(address: str) -> tuple[str, str]:
    """Split ``host:port`` or ``[host]:port``; ValueError when malformed."""
    if address.startswith("["):
        end = address.find("]")
        if end < 0:
            raise ValueError(f"missing ']' in address {address!r}")
        host, rest = address[1:end], address[end + 1:]
        if not rest.startswith(":"):
            raise ValueError(f"missing port in address {address!r}")
        if "[" in host or "]" in host:
            raise ValueError(f"unexpected bracket in address {address!r}")
        return host, rest[1:]
    colons = address.count(":")
    if colons == 0:
        raise ValueError(f"missing port in address {address!r}")
    if colons > 1:
        raise ValueError(f"too many colons in address {address!r}")
    host, _, port = address.partition(":")
    if "[" in host or "]" in host:
        raise ValueError(f"unexpected bracket in address {address!r}")
    return host, port


def _find_context_error(err: BaseException) -> ContextError | None:
    seen: set[int] = set()
    current: BaseException | None = err
    while current is not None and id(current) not in seen:
        if isinstance(current, ContextError):
            return current
        seen.add(id(current))
        current = current.__cause__
    return None


class Context:
    """Carries one request through its handler chain and builds the response."""

    def __init__(self, request: Request | None = None, response: Response | None = None):
        self.request = request
        self.response: Response | None = response if response is not None else Response()
        self.params = Params()
        self.handlers: list[Handler] = []
        self.index = -1
        self.full_path = ""
        self.keys: dict[str, Any] | None = None
        self.errors = ErrorList()
        self.accepted: list[str] | None = None
        self.same_site: SameSite | None = None
        # When set, value() falls back to the values carried by the request.
        self.context_with_fallback = False
        self._lock = threading.RLock()
        self._query_cache: dict[str, list[str]] | None = None
        self._form_cache: dict[str, list[str]] | None = None

    # -- creation -------------------------------------------------------

    def reset(self) -> None:
        """Clear every per-request field so the context can be reused."""
        self.params = Params()
        self.handlers = []
        self.index = -1
        self.full_path = ""
        self.keys = None
        self.errors = ErrorList()
        self.accepted = None
        self._query_cache = None
        self._form_cache = None
        self.same_site = None

    def copy(self) -> Context:
        """Return a detached copy that is safe to use outside the request."""
        cp = Context(self.request)
        cp.response = None
        cp.params = Params(Param(p.key, p.value) for p in self.params)
        cp.index = ABORT_INDEX
        cp.handlers = []
        cp.full_path = self.full_path
        cp.context_with_fallback = self.context_with_fallback
        with self._lock:
            cp.keys = dict(self.keys or {})
        return cp

    def handler_name(self) -> str:
        """Return the qualified name of the main (last) handler."""
        return _name_of_function(self.handler())

    def handler_names(self) -> list[str]:
        """Return the qualified names of all handlers in the chain."""
        return [_name_of_function(h) for h in self.handlers]

    def handler(self) -> Handler | None:
        """Return the main (last) handler, or None."""
        return self.handlers[-1] if self.handlers else None

    # -- flow control ---------------------------------------------------

    def next(self) -> None:
        """Run the pending handlers of the chain; call only from middleware."""
        self.index += 1
        while self.index < len(self.handlers):
            self.handlers[self.index](self)
            self.index += 1

    def is_aborted(self) -> bool:
        """Tell whether the chain was aborted."""
        return self.index >= ABORT_INDEX

    def abort(self) -> None:
        """Stop the pending handlers from being called."""
        self.index = ABORT_INDEX

    def abort_with_status(self, code: int) -> None:
        """Abort and send the headers with the given status."""
        self.status(code)
        self.response.write_header_now()
        self.abort()

    def abort_with_error(self, code: int, err: BaseException) -> ContextError:
        """Abort with a status and attach the error."""
        self.abort_with_status(code)
        return self.error(err)

    # -- errors ---------------------------------------------------------

    def error(self, err: BaseException | None) -> ContextError:
        """Attach an error to the context and return its wrapped form."""
        if err is None:
            raise ValueError("err is nil")
        parsed = _find_context_error(err)
        if parsed is None:
            parsed = ContextError(err, ErrorType.PRIVATE)
        self.errors.append(parsed)
        return parsed

    # -- stored values --------------------------------------------------

    def set(self, key: str, value: Any) -> None:
        """Store a value for the lifetime of this request."""
        with self._lock:
            if self.keys is None:
                self.keys = {}
            self.keys[key] = value

    def get(self, key: str) -> tuple[Any, bool]:
        """Return ``(value, True)`` for a stored key, else ``(None, False)``."""
        with self._lock:
            if self.keys is not None and key in self.keys:
                return self.keys[key], True
            return None, False

    def must_get(self, key: str) -> Any:
        """Return a stored value; KeyError when it does not exist."""
        value, exists = self.get(key)
        if not exists:
            raise KeyError(f'Key "{key}" does not exist')
        return value

    def _typed(self, key: str, check: Callable[[Any], bool], fallback: Any) -> Any:
        value, exists = self.get(key)
        return value if exists and value is not None and check(value) else fallback

    def get_string(self, key: str) -> str:
        """Return the stored value if it is a string, else ""."""
        return self._typed(key, lambda v: isinstance(v, str), "")

    def get_bool(self, key: str) -> bool:
        """Return the stored value if it is a bool, else False."""
        return self._typed(key, lambda v: isinstance(v, bool), False)

    def get_int(self, key: str) -> int:
        """Return the stored value if it is an int (not a bool), else 0."""
        return self._typed(key, lambda v: isinstance(v, int) and not isinstance(v, bool), 0)

    def get_float(self, key: str) -> float:
        """Return the stored value if it is a float, else 0.0."""
        return self._typed(key, lambda v: isinstance(v, float), 0.0)

    def get_datetime(self, key: str) -> datetime | None:
        """Return the stored value if it is a datetime, else None."""
        return self._typed(key, lambda v: isinstance(v, datetime), None)

    def get_duration(self, key: str) -> timedelta:
        """Return the stored value if it is a timedelta, else zero."""
        return self._typed(key, lambda v: isinstance(v, timedelta), timedelta(0))

    def get_string_list(self, key: str) -> list[str] | None:
        """Return the stored value if it is a list of strings, else None."""
        return self._typed(
            key, lambda v: isinstance(v, list) and all(isinstance(s, str) for s in v), None
        )

    def get_string_map(self, key: str) -> dict[str, Any] | None:
        """Return the stored value if it is a dict with string keys, else None."""
        return self._typed(
            key, lambda v: isinstance(v, dict) and all(isinstance(k, str) for k in v), None
        )

    # -- input ----------------------------------------------------------

    def param(self, key: str) -> str:
        """Return the value of a URL parameter, or ""."""
        return self.params.by_name(key)

    def add_param(self, key: str, value: str) -> None:
        """Append a URL parameter."""
        self.params.append(Param(key, value))

    def _queries(self) -> dict[str, list[str]]:
        if self._query_cache is None:
            self._query_cache = self.request.query_values() if self.request is not None else {}
        return self._query_cache

    def query(self, key: str) -> str:
        """Return the first query value for key, or ""."""
        return self.get_query(key)[0]

    def default_query(self, key: str, default_value: str) -> str:
        """Return the first query value for key, or the default."""
        value, ok = self.get_query(key)
        return value if ok else default_value

    def get_query(self, key: str) -> tuple[str, bool]:
        """Return ``(first value, True)`` when the key is in the query."""
        values, ok = self.get_query_array(key)
        return (values[0], True) if ok else ("", False)

    def query_array(self, key: str) -> list[str]:
        """Return all query values for key."""
        return self.get_query_array(key)[0]

    def get_query_array(self, key: str) -> tuple[list[str], bool]:
        """Return all query values for key and whether there were any."""
        queries = self._queries()
        return (queries[key], True) if key in queries else ([], False)

    def query_map(self, key: str) -> dict[str, str]:
        """Return the ``key[name]`` query entries as a dict."""
        return self.get_query_map(key)[0]

    def get_query_map(self, key: str) -> tuple[dict[str, str], bool]:
        """Return the ``key[name]`` query entries and whether there were any."""
        return bracket_map(self._queries(), key)

    def _forms(self) -> dict[str, list[str]]:
        if self._form_cache is None:
            self._form_cache = {}
            if self.request is not None:
                try:
                    self._form_cache = self.request.form_values()
                except ValueError as exc:
                    debug_print("error on parse multipart form array: %s", exc)
        return self._form_cache

    def post_form(self, key: str) -> str:
        """Return the first form value for key, or ""."""
        return self.get_post_form(key)[0]

    def default_post_form(self, key: str, default_value: str) -> str:
        """Return the first form value for key, or the default."""
        value, ok = self.get_post_form(key)
        return value if ok else default_value

    def get_post_form(self, key: str) -> tuple[str, bool]:
        """Return ``(first value, True)`` when the key is in the form."""
        values, ok = self.get_post_form_array(key)
        return (values[0], True) if ok else ("", False)

    def post_form_array(self, key: str) -> list[str]:
        """Return all form values for key."""
        return self.get_post_form_array(key)[0]

    def get_post_form_array(self, key: str) -> tuple[list[str], bool]:
        """Return all form values for key and whether there were any."""
        forms = self._forms()
        return (forms[key], True) if key in forms else ([], False)

    def post_form_map(self, key: str) -> dict[str, str]:
        """Return the ``key[name]`` form entries as a dict."""
        return self.get_post_form_map(key)[0]

    def get_post_form_map(self, key: str) -> tuple[dict[str, str], bool]:
        """Return the ``key[name]`` form entries and whether there were any."""
        return bracket_map(self._forms(), key)

    def remote_ip(self) -> str:
        """Return the host part of the request's remote address, or ""."""
        try:
            host, _ = _split_host_port(self.request.remote_addr.strip())
        except ValueError:
            return ""
        return host

    def content_type(self) -> str:
        """Return the request's media type without parameters."""
        return filter_flags(self._request_header("Content-Type"))

    def is_websocket(self) -> bool:
        """Tell whether the request asks for a websocket upgrade."""
        return (
            "upgrade" in self._request_header("Connection").lower()
            and self._request_header("Upgrade").lower() == "websocket"
        )

    def _request_header(self, key: str) -> str:
        return self.request.header(key) if self.request is not None else ""

    # -- output ---------------------------------------------------------

    def status(self, code: int) -> None:
        """Set the response status."""
        self.response.write_header(code)

    def header(self, key: str, value: str) -> None:
        """Set a response header; an empty value removes it."""
        if value == "":
            self.response.del_header(key)
        else:
            self.response.set_header(key, value)

    def get_header(self, key: str) -> str:
        """Return a request header, or ""."""
        return self._request_header(key)

    def get_raw_data(self) -> bytes:
        """Read the rest of the request body."""
        return self.request.read_body()

    def set_same_site(self, same_site: SameSite | None) -> None:
        """Set the SameSite attribute used by set_cookie."""
        self.same_site = same_site

    def set_cookie(
        self,
        name: str,
        value: str,
        max_age: int,
        path: str,
        domain: str,
        secure: bool,
        http_only: bool,
    ) -> None:
        """Add a Set-Cookie header; an invalid cookie is dropped."""
        cookie = format_cookie(
            name,
            quote_plus(value, safe=""),
            max_age,
            path or "/",
            domain,
            self.same_site,
            secure,
            http_only,
        )
        if cookie:
            self.response.add_header("Set-Cookie", cookie)

    def cookie(self, name: str) -> str:
        """Return the unescaped value of a request cookie; KeyError if absent."""
        return unquote_plus(self.request.cookie(name))

    def data(self, code: int, content_type: str, data: bytes) -> None:
        """Write raw bytes with a content type and status."""
        self.status(code)
        if not self.response.get_header("Content-Type"):
            self.response.set_header("Content-Type", content_type)
        if not body_allowed_for_status(code):
            self.response.write_header_now()
            return
        self.response.write(data)

    # -- negotiation ----------------------------------------------------

    def negotiate_format(self, *args: str) -> str:
        """Return the offered format the request accepts, or ""."""
        if self.accepted is None:
            self.accepted = parse_accept(self._request_header("Accept"))
        return negotiate_format(self.accepted, args)

    def set_accepted(self, *args: str) -> None:
        """Override the accepted formats."""
        self.accepted = list(args)

    def value(self, key: Any) -> Any:
        """Look a key up: 0 is the request, CONTEXT_KEY is the context itself."""
        if type(key) is int and key == 0:
            return self.request
        if key == CONTEXT_KEY:
            return self
        if isinstance(key, str):
            found, exists = self.get(key)
            if exists:
                return found
        if not self._has_request_context():
            return None
        try:
            return self.request.context.get(key)
        except TypeError:
            return None

    def _has_request_context(self) -> bool:
        return (
            self.context_with_fallback
            and self.request is not None
            and self.request.context is not None
        )


def _iter_names(handlers: Iterable[Handler]) -> list[str]:
    return [_name_of_function(h) for h in handlers]