"""Run modes and debug output of the framework."""

from __future__ import annotations

import os
import platform
import sys
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any, TextIO

_SUPPORT_MIN_PYTHON_MINOR = 10
_PREFIX = "[TONIC-debug] "


class Mode(str, Enum):
    """The framework's run mode."""

    DEBUG = "debug"
    RELEASE = "release"
    TEST = "test"


def _initial_mode() -> Mode:
    try:
        return Mode(os.environ.get("TONIC_MODE") or Mode.DEBUG.value)
    except ValueError:
        return Mode.DEBUG


@dataclass
class _Settings:
    mode: Mode
    writer: TextIO | None = None
    error_writer: TextIO | None = None


_settings = _Settings(mode=_initial_mode())

# Optional hook called instead of the default route line:
# route_printer(http_method, absolute_path, handler_name, handler_count).
route_printer: Callable[[str, str, str, int], Any] | None = None


def set_mode(mode: Mode | str) -> None:
    """Switch the run mode; raises ValueError for an unknown mode."""
    try:
        _settings.mode = Mode(mode)
    except ValueError:
        raise ValueError(f"unknown mode: {mode!r}") from None


def is_debugging() -> bool:
    """Tell whether the framework runs in debug mode."""
    return _settings.mode is Mode.DEBUG


def set_writers(writer: TextIO | None, error_writer: TextIO | None) -> None:
    """Set the output streams; None selects standard output or error."""
    _settings.writer = writer
    _settings.error_writer = error_writer


def _out() -> TextIO:
    return _settings.writer if _settings.writer is not None else sys.stdout


def _err() -> TextIO:
    return _settings.error_writer if _settings.error_writer is not None else sys.stderr


def _name_of_function(func: Callable[..., Any] | None) -> str:
    if func is None:
        return ""
    module = getattr(func, "__module__", None) or ""
    name = getattr(func, "__qualname__", None) or getattr(func, "__name__", None) or repr(func)
    return f"{module}.{name}" if module else name


def debug_print(format: str, *args: Any) -> None:
    """Write a printf-style debug line when in debug mode."""
    if not is_debugging():
        return
    if not format.endswith("\n"):
        format += "\n"
    text = format % args if args else format
    _out().write(_PREFIX + text)


def debug_print_route(http_method: str, absolute_path: str, handlers: Sequence[Callable[..., Any]]) -> None:
    """Report a registered route when in debug mode."""
    if not is_debugging():
        return
    count = len(handlers)
    handler_name = _name_of_function(handlers[-1] if handlers else None)
    if route_printer is None:
        debug_print("%-6s %-25s --> %s (%d handlers)\n", http_method, absolute_path, handler_name, count)
    else:
        route_printer(http_method, absolute_path, handler_name, count)


def debug_print_error(err: BaseException | None) -> None:
    """Report an error on the error stream when in debug mode."""
    if err is not None and is_debugging():
        _err().write(f"{_PREFIX}[ERROR] {err}\n")


def get_min_ver(version: str) -> int:
    """Return the minor number of a dotted version such as ``3.12.1``."""
    first = version.find(".")
    last = version.rfind(".")
    part = version[first + 1:] if first == last else version[first + 1:last]
    if not (part.isascii() and part.isdigit()):
        raise ValueError(f"invalid minor version in {version!r}")
    return int(part)


def debug_print_warning_default() -> None:
    """Warn that a default engine comes with middleware attached."""
    try:
        minor = get_min_ver(platform.python_version())
    except ValueError:
        minor = None
    if minor is not None and minor < _SUPPORT_MIN_PYTHON_MINOR:
        debug_print("[WARNING] Now tonic requires Python 3.10+.\n\n")
    debug_print("[WARNING] Creating an Engine instance with the Logger and Recovery middleware already attached.\n\n")


def debug_print_warning_new() -> None:
    """Warn that the framework runs in debug mode."""
    debug_print(
        '[WARNING] Running in "debug" mode. Switch to "release" mode in production.\n'
        " - using env:\texport TONIC_MODE=release\n"
        " - using code:\ttonic.set_mode(tonic.Mode.RELEASE)\n\n"
    )


def debug_print_warning_set_html_template() -> None:
    """Warn that setting the HTML template is not thread-safe."""
    debug_print(
        "[WARNING] Since set_html_template() is NOT thread-safe. It should only be called\n"
        "at initialization. ie. before any route is registered or the router is listening in a socket:\n\n"
        "\trouter = tonic.default()\n"
        "\trouter.set_html_template(template)  # << good place\n\n"
    )