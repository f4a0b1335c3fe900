"""Request and response primitives used by the request context."""

from __future__ import annotations

import io
import ipaddress
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any
from urllib.parse import parse_qs, urlsplit
from wsgiref.headers import Headers

from .debug import debug_print

_FORM_METHODS = frozenset({"POST", "PUT", "PATCH"})
_TOKEN_CHARS = frozenset("!#$%&'*+-.^_`|~0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ")
_DOMAIN_CHARS = frozenset("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789.-_")


@dataclass
class Param:
    """A single URL parameter: a key and its value."""

    key: str
    value: str


class Params(list):
    """The URL parameters of a matched route, in route order."""

    def get(self, name: str) -> str | None:
        """Return the value of the first parameter called ``name``, or None."""
        return next((param.value for param in self if param.key == name), None)

    def by_name(self, name: str) -> str:
        """Return the value of the first parameter called ``name``, or ""."""
        value = self.get(name)
        return "" if value is None else value


class SameSite(Enum):
    """The SameSite attribute of a cookie."""

    DEFAULT = 1
    LAX = 2
    STRICT = 3
    NONE = 4


def _to_headers(headers: Headers | Mapping[str, str] | Iterable[tuple[str, str]] | None) -> Headers:
    if headers is None:
        return Headers([])
    if isinstance(headers, Headers):
        return Headers(list(headers.items()))
    if isinstance(headers, Mapping):
        return Headers(list(headers.items()))
    return Headers(list(headers))


def _parse_media_type(value: str) -> tuple[str, dict[str, str]]:
    """Split a header such as ``text/html; charset=utf-8`` into type and parameters."""
    media, *rest = value.split(";")
    params: dict[str, str] = {}
    for part in rest:
        key, sep, val = part.partition("=")
        if sep:
            params[key.strip().lower()] = val.strip().strip('"')
    return media.strip().lower(), params


def _disposition(head: bytes) -> tuple[str | None, str | None]:
    for line in head.decode("utf-8", "replace").splitlines():
        key, _, value = line.partition(":")
        if key.strip().lower() == "content-disposition":
            _, params = _parse_media_type(value)
            return params.get("name"), params.get("filename")
    return None, None


def _parse_multipart(data: bytes, boundary: str) -> dict[str, list[str]]:
    """Collect the non-file fields of a multipart/form-data body."""
    sections = data.split(b"--" + boundary.encode("latin-1"))
    if len(sections) < 2:
        raise ValueError("multipart: no parts found")
    values: dict[str, list[str]] = {}
    for section in sections[1:]:
        if section.startswith(b"--"):
            return values
        if section.startswith(b"\r\n"):
            section = section[2:]
        elif section.startswith(b"\n"):
            section = section[1:]
        head, sep, content = section.partition(b"\r\n\r\n")
        if not sep:
            raise ValueError("multipart: malformed part")
        if content.endswith(b"\r\n"):
            content = content[:-2]
        name, filename = _disposition(head)
        if name is None or filename is not None:
            continue
        values.setdefault(name, []).append(content.decode("utf-8", "replace"))
    raise ValueError("multipart: missing closing boundary")


class Request:
    """An incoming HTTP request with its headers and body."""

    def __init__(
        self,
        method: str = "GET",
        url: str = "/",
        headers: Headers | Mapping[str, str] | Iterable[tuple[str, str]] | None = None,
        body: bytes | str = b"",
        remote_addr: str = "",
    ):
        self.method = method.upper()
        self.url = url
        self.headers = _to_headers(headers)
        self.remote_addr = remote_addr
        # Values carried along with the request; None means it has no context.
        self.context: dict[Any, Any] | None = {}
        raw = body.encode("utf-8") if isinstance(body, str) else bytes(body)
        self._body = io.BytesIO(raw)
        self._form: dict[str, list[str]] | None = None

    @property
    def path(self) -> str:
        """The path part of the URL."""
        return urlsplit(self.url).path

    def header(self, key: str) -> str:
        """Return the first value of a header, case-insensitively, or ""."""
        return self.headers.get(key) or ""

    def query_values(self) -> dict[str, list[str]]:
        """Parse the URL query into lists of values, keeping blank values."""
        return parse_qs(urlsplit(self.url).query, keep_blank_values=True)

    def form_values(self) -> dict[str, list[str]]:
        """Return the fields of a url-encoded or multipart body.

        The body is read once and the result kept. A malformed multipart
        body raises ValueError; later calls then see no fields.
        """
        if self._form is None:
            self._form = {}
            self._form = self._parse_form()
        return {key: list(values) for key, values in self._form.items()}

    def _parse_form(self) -> dict[str, list[str]]:
        media_type, params = _parse_media_type(self.header("Content-Type"))
        if media_type == "multipart/form-data":
            boundary = params.get("boundary")
            if not boundary:
                raise ValueError("no multipart boundary param in Content-Type")
            return _parse_multipart(self._body.read(), boundary)
        if self.method in _FORM_METHODS and media_type == "application/x-www-form-urlencoded":
            return parse_qs(self._body.read().decode("utf-8", "replace"), keep_blank_values=True)
        return {}

    def cookie(self, name: str) -> str:
        """Return the raw value of the named cookie; KeyError if absent."""
        for line in self.headers.get_all("Cookie"):
            for part in line.split(";"):
                key, _, value = part.strip().partition("=")
                if key == name:
                    if len(value) > 1 and value[0] == value[-1] == '"':
                        value = value[1:-1]
                    return value
        raise KeyError(f"named cookie not present: {name}")

    def read_body(self) -> bytes:
        """Read and consume the rest of the body."""
        return self._body.read()


class Response:
    """An outgoing response: status, headers and body."""

    def __init__(self) -> None:
        self.status = 200
        self.headers = Headers([])
        self._body = bytearray()
        self._written = False

    @property
    def written(self) -> bool:
        """Whether the status and headers have been sent."""
        return self._written

    @property
    def body(self) -> bytes:
        """The bytes written so far."""
        return bytes(self._body)

    @property
    def size(self) -> int:
        """The number of body bytes written."""
        return len(self._body)

    def write_header(self, code: int) -> None:
        """Set the status code unless the headers were already sent."""
        if code > 0 and self.status != code:
            if self._written:
                debug_print(
                    "[WARNING] Headers were already written. Wanted to override status code %d with %d",
                    self.status,
                    code,
                )
                return
            self.status = code

    def write_header_now(self) -> None:
        """Mark the status and headers as sent."""
        self._written = True

    def write(self, data: bytes | str) -> int:
        """Send the headers if needed and append data to the body."""
        self.write_header_now()
        chunk = data.encode("utf-8") if isinstance(data, str) else bytes(data)
        self._body.extend(chunk)
        return len(chunk)

    def set_header(self, key: str, value: str) -> None:
        """Replace every value of a header with ``value``."""
        self.headers[key] = value

    def get_header(self, key: str) -> str:
        """Return the first value of a header, or ""."""
        return self.headers.get(key) or ""

    def del_header(self, key: str) -> None:
        """Remove every value of a header, matching its name case-insensitively."""
        wanted = key.lower()
        remaining = [(name, value) for name, value in self.headers.items() if name.lower() != wanted]
        self.headers = Headers(remaining)

    def add_header(self, key: str, value: str) -> None:
        """Append a value to a header."""
        self.headers.add_header(key, value)


def body_allowed_for_status(status: int) -> bool:
    """Tell whether a response with this status may carry a body."""
    return not (100 <= status <= 199 or status in (204, 304))


def escape_quotes(s: str) -> str:
    """Escape backslashes and double quotes for a quoted header value."""
    return s.replace("\\", "\\\\").replace('"', '\\"')


def _sanitize(text: str, valid) -> str:
    return "".join(ch for ch in text if valid(ch))


def _valid_cookie_value_char(ch: str) -> bool:
    return 0x20 <= ord(ch) < 0x7F and ch not in '";\\'


def _valid_path_char(ch: str) -> bool:
    return 0x20 <= ord(ch) < 0x7F and ch != ";"


def _valid_domain(domain: str) -> bool:
    try:
        ipaddress.ip_address(domain)
        return True
    except ValueError:
        pass
    if not domain or len(domain) > 255 or not set(domain) <= _DOMAIN_CHARS:
        return False
    return all(label and not label.startswith("-") and not label.endswith("-") for label in domain.split("."))


def format_cookie(
    name: str,
    value: str,
    max_age: int,
    path: str,
    domain: str,
    same_site: SameSite | None,
    secure: bool,
    http_only: bool,
) -> str:
    """Build a Set-Cookie header value; "" when the name is not a valid token."""
    if not name or not set(name) <= _TOKEN_CHARS:
        return ""
    value = _sanitize(value, _valid_cookie_value_char)
    if " " in value or "," in value:
        value = f'"{value}"'
    parts = [f"{name}={value}"]
    if path:
        parts.append(f"Path={_sanitize(path, _valid_path_char)}")
    if domain:
        bare = domain[1:] if domain.startswith(".") else domain
        if _valid_domain(bare):
            parts.append(f"Domain={bare}")
    if max_age > 0:
        parts.append(f"Max-Age={max_age}")
    elif max_age < 0:
        parts.append("Max-Age=0")
    if http_only:
        parts.append("HttpOnly")
    if secure:
        parts.append("Secure")
    if same_site is SameSite.LAX:
        parts.append("SameSite=Lax")
    elif same_site is SameSite.STRICT:
        parts.append("SameSite=Strict")
    elif same_site is SameSite.NONE:
        parts.append("SameSite=None")
    return "; ".join(parts)