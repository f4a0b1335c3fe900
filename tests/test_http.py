import io

import pytest

from tonic.debug import Mode, set_mode, set_writers
from tonic.http import (
    Param,
    Params,
    Request,
    Response,
    SameSite,
    body_allowed_for_status,
    escape_quotes,
    format_cookie,
)

BOUNDARY = "--testboundary"


def multipart_body(fields, files=()):
    chunks = []
    for name, value in fields:
        chunks.append(
            f'--{BOUNDARY}\r\nContent-Disposition: form-data; name="{name}"\r\n\r\n{value}\r\n'
        )
    for name, filename, content in files:
        chunks.append(
            f'--{BOUNDARY}\r\nContent-Disposition: form-data; name="{name}"; filename="{filename}"\r\n'
            f"Content-Type: application/octet-stream\r\n\r\n{content}\r\n"
        )
    chunks.append(f"--{BOUNDARY}--\r\n")
    return "".join(chunks).encode()


def multipart_request():
    fields = [
        ("foo", "bar"),
        ("bar", "10"),
        ("bar", "foo2"),
        ("array", "first"),
        ("array", "second"),
        ("id", ""),
        ("names[a]", "thinkerou"),
        ("names[b]", "tianou"),
    ]
    return Request(
        "POST",
        "/",
        {"Content-Type": f"multipart/form-data; boundary={BOUNDARY}"},
        multipart_body(fields, [("file", "test", "test")]),
    )


@pytest.fixture
def debug_output():
    out = io.StringIO()
    set_writers(out, out)
    set_mode(Mode.DEBUG)
    yield out
    set_mode(Mode.TEST)
    set_writers(None, None)


def test_params_lookup():
    params = Params([Param("foo", "bar"), Param("id", "1"), Param("foo", "other")])
    assert params.by_name("foo") == "bar"
    assert params.get("id") == "1"


def test_params_missing_key():
    params = Params([Param("id", "")])
    assert params.by_name("nope") == ""
    assert params.get("nope") is None
    assert params.get("id") == ""


@pytest.mark.parametrize(
    "status, allowed",
    [(100, False), (102, False), (199, False), (204, False), (304, False), (200, True), (500, True)],
)
def test_body_allowed_for_status(status, allowed):
    assert body_allowed_for_status(status) is allowed


def test_escape_quotes():
    malicious = 'tampering_field.sh"; \\"; dummy=.go'
    assert escape_quotes(malicious) == 'tampering_field.sh\\"; \\\\\\"; dummy=.go'
    assert escape_quotes("plain.go") == "plain.go"


def test_format_cookie_lax():
    header = format_cookie("user", "gin", 1, "/", "localhost", SameSite.LAX, True, True)
    assert header == "user=gin; Path=/; Domain=localhost; Max-Age=1; HttpOnly; Secure; SameSite=Lax"


def test_format_cookie_default_same_site_and_zero_age():
    assert format_cookie("user", "gin", 0, "", "", SameSite.DEFAULT, False, False) == "user=gin"
    assert format_cookie("user", "gin", 0, "", "", None, False, False) == "user=gin"


def test_format_cookie_negative_age_and_strict():
    header = format_cookie("a", "b", -1, "/x", "", SameSite.STRICT, False, False)
    assert header == "a=b; Path=/x; Max-Age=0; SameSite=Strict"


def test_format_cookie_quotes_value_with_space():
    assert format_cookie("a", 'hello world;"', 0, "", "", None, False, False) == 'a="hello world"'


def test_format_cookie_invalid_name():
    assert format_cookie("bad name", "v", 0, "", "", None, False, False) == ""


def test_format_cookie_strips_leading_dot_of_domain():
    assert format_cookie("a", "b", 0, "", ".example.com", None, False, False) == "a=b; Domain=example.com"


def test_query_values():
    req = Request("GET", "http://example.com/?foo=bar&page=10&id=")
    assert req.query_values() == {"foo": ["bar"], "page": ["10"], "id": [""]}


def test_query_values_keeps_order_of_repeats():
    req = Request("POST", "/?both=GET&id=main&id=omit&array[]=first&array[]=second&ids[a]=hi")
    values = req.query_values()
    assert values["id"] == ["main", "omit"]
    assert values["array[]"] == ["first", "second"]
    assert values["ids[a]"] == ["hi"]


def test_request_path():
    assert Request("GET", "http://example.com/some/path?x=1").path == "/some/path"


def test_urlencoded_form_values():
    req = Request(
        "POST",
        "/?both=GET",
        {"Content-Type": "application/x-www-form-urlencoded"},
        "foo=bar&page=11&both=&foo=second",
    )
    assert req.form_values() == {"foo": ["bar", "second"], "page": ["11"], "both": [""]}
    assert req.form_values()["page"] == ["11"]


def test_form_values_without_content_type_is_empty():
    req = Request("POST", "/?foo=bar", body="foo=unused")
    assert req.form_values() == {}


def test_form_values_ignored_for_get():
    req = Request("GET", "/", {"Content-Type": "application/x-www-form-urlencoded"}, "foo=bar")
    assert req.form_values() == {}


def test_multipart_form_values_skip_files():
    values = multipart_request().form_values()
    assert values["foo"] == ["bar"]
    assert values["bar"] == ["10", "foo2"]
    assert values["array"] == ["first", "second"]
    assert values["id"] == [""]
    assert values["names[a]"] == ["thinkerou"]
    assert "file" not in values


def test_multipart_without_boundary_raises():
    req = Request("POST", "/", {"Content-Type": "multipart/form-data"}, b"")
    with pytest.raises(ValueError):
        req.form_values()
    assert req.form_values() == {}


def test_multipart_unterminated_raises():
    body = f'--{BOUNDARY}\r\nContent-Disposition: form-data; name="a"\r\n\r\nb\r\n'.encode()
    req = Request("POST", "/", {"Content-Type": f"multipart/form-data; boundary={BOUNDARY}"}, body)
    with pytest.raises(ValueError):
        req.form_values()


def test_request_header_is_case_insensitive():
    req = Request("GET", "/chat", {"Gin-Version": "1.0.0"})
    assert req.header("gin-version") == "1.0.0"
    assert req.header("Connection") == ""


def test_request_cookie():
    req = Request("GET", "/get", {"Cookie": 'user=gin; other="quoted"'})
    assert req.cookie("user") == "gin"
    assert req.cookie("other") == "quoted"
    with pytest.raises(KeyError):
        req.cookie("nokey")


def test_read_body_consumes():
    req = Request("POST", "/", {"Content-Type": "application/x-www-form-urlencoded"}, "Fetch binary post data")
    assert req.read_body() == b"Fetch binary post data"
    assert req.read_body() == b""
    assert req.form_values() == {}


def test_response_defaults():
    res = Response()
    assert res.status == 200
    assert res.written is False
    assert res.body == b""


def test_response_write_header_then_write():
    res = Response()
    res.write_header(201)
    assert res.status == 201
    assert res.written is False
    assert res.write(b"foo,bar") == 7
    assert res.write("!") == 1
    assert res.written is True
    assert res.body == b"foo,bar!"
    assert res.size == 8


def test_response_status_fixed_after_write(debug_output):
    res = Response()
    res.write_header(401)
    res.write_header_now()
    res.write_header(500)
    assert res.status == 401
    assert "Headers were already written. Wanted to override status code 401 with 500" in debug_output.getvalue()


def test_response_ignores_non_positive_code():
    res = Response()
    res.write_header(-1)
    assert res.status == 200


def test_response_headers():
    res = Response()
    res.set_header("Content-Type", "text/plain")
    res.set_header("content-type", "text/html")
    assert res.get_header("Content-Type") == "text/html"
    res.add_header("X-Custom", "1")
    res.add_header("X-Custom", "2")
    assert res.headers.get_all("X-Custom") == ["1", "2"]
    res.del_header("X-Custom")
    assert res.get_header("X-Custom") == ""
    assert "X-Custom" not in res.headers