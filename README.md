# tonic

tonic holds the per-request core of an HTTP web framework. It uses only the
standard library.

## Modules

- **`tonic.context`**: `Context` is the object a handler receives.
  - Handler chain: `next`, `abort`, `is_aborted`, `abort_with_status`,
    `abort_with_error`, `handler`, `handler_name` and `handler_names`.
  - Per-request values: `set`, `get` (returns `(value, found)`), and
    `must_get`, which raises `KeyError`. Typed readers are `get_string`,
    `get_bool`, `get_int`, `get_float`, `get_datetime`, `get_duration`,
    `get_string_list` and `get_string_map`. Each returns a zero value when the
    key is missing or holds another type.
  - Errors: `error` attaches an exception to `errors`. It raises `ValueError`
    for `None`.
  - Input:
    - URL parameters: `param`, `add_param`.
    - Query: `query`, `default_query`, `get_query`, `query_array` and
      `query_map` (for `ids[a]=...` entries).
    - Form bodies, url-encoded or multipart: the matching `post_form...`
      methods.
    - Request details: `cookie`, `get_header`, `get_raw_data`, `remote_ip`,
      `content_type` and `is_websocket`.
  - Output: `status`, `header` (an empty value removes the header),
    `set_same_site`, `set_cookie`, and `data`. `data` writes no body for 1xx,
    204 and 304.
  - Negotiation and lookup: `negotiate_format` and `set_accepted`. `value`
    looks up `0` (the request), `CONTEXT_KEY` (the context itself) and stored
    keys.
  - `copy` returns a detached copy with the chain aborted and no response.
- **`tonic.errors`**:
  - `ContextError` wraps an exception. It adds an `ErrorType` flag
    (`PRIVATE`, `PUBLIC`, `RENDER`, `BIND`, `ANY`) and optional metadata, and
    offers `set_type`, `set_meta`, `is_type`, `json` and `to_json`.
  - `ErrorList` adds `by_type`, `last`, `errors`, `json`, `to_json` and a
    numbered text report through `str()`.
- **`tonic.debug`**:
  - Run modes: `Mode` (`DEBUG`, `RELEASE`, `TEST`), `set_mode` and
    `is_debugging`.
  - Output: `debug_print`, `debug_print_route`, `debug_print_error` and the
    `debug_print_warning_*` messages.
  - Streams: `set_writers` chooses them.
  - `get_min_ver` reads the minor number of a dotted version.
- **`tonic.fs`**: `directory(root, list_directory)` returns a `FileSystem`.
  Its `open` keeps names inside the root and returns a `ServedFile`. With
  listing turned off, `readdir()` on a directory returns an empty list.
- **`tonic.http`**:
  - Objects: `Request`, `Response`, `Param`, `Params` and `SameSite`.
  - Helpers: `body_allowed_for_status`, `escape_quotes` and `format_cookie`.
- **`tonic.negotiation`**: `parse_accept`, `filter_flags`,
  `negotiate_format` and `bracket_map`.

## Installing

```
pip install .
```

## Example

```python
from tonic.context import Context
from tonic.errors import ErrorType
from tonic.http import Request

c = Context(Request("GET", "/?name=Manu&ids[a]=hi"))
assert c.query("name") == "Manu"
assert c.query_map("ids") == {"a": "hi"}

c.set("user", "alice")
assert c.get_string("user") == "alice"

err = c.error(ValueError("bad input")).set_type(ErrorType.PUBLIC)
print(c.errors.errors())   # ['bad input']
print(err.json())          # {'error': 'bad input'}

c.set_accepted("application/json", "application/xml")
print(c.negotiate_format("application/xml", "text/html"))  # application/xml

c.data(201, "text/csv", b"foo,bar")
print(c.response.status, c.response.body)  # 201 b'foo,bar'
```

## Debug output

The run mode starts as `debug`. You can set it with the `TONIC_MODE`
environment variable (`debug`, `release` or `test`) or with `set_mode`. Debug
lines are written only in debug mode. They go to standard output, and errors
go to standard error, unless `set_writers` gives other streams.

```python
from tonic.debug import Mode, set_mode, debug_print

set_mode(Mode.DEBUG)
debug_print("loaded %d routes", 3)   # [TONIC-debug] loaded 3 routes
set_mode(Mode.RELEASE)
debug_print("not shown")
```

## What it does not do

tonic has no engine or router to register routes, and no server to listen on
a socket. The handler chain on a `Context` is a plain list that you fill
yourself.

The only response writer is `Context.data`. There are no JSON, XML, YAML,
HTML-template or file renderers. There is no binding of request bodies to
objects.

Client IP resolution through trusted proxies is not provided: `remote_ip`
returns the peer address only.

## Running the tests

```
pip install .[test]
pytest
```