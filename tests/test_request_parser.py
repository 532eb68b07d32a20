import pytest

from webfuzzer.core.discovery import EndpointDiscovery
from webfuzzer.core.models import EndpointType as T
from webfuzzer.parsers.request import Request

FORM_REQUEST = (
    "POST /login?next=home HTTP/1.1\r\n"
    "Host: example.com\r\n"
    "Content-Type: application/x-www-form-urlencoded\r\n"
    "Content-Length: 21\r\n"
    "Cookie: session=abc; theme=dark\r\n"
    "Authorization: Bearer t0k\r\n"
    "\r\n"
    "user=admin&pass=hunter"
)

JSON_REQUEST = (
    "PUT /api/profile HTTP/1.1\n"
    "Host: api.example.com\n"
    "Content-Type: application/json\n"
    "\n"
    '{"name": "bob", "age": 3}'
)


def parsed(tmp_path, raw):
    path = tmp_path / "req.txt"
    path.write_text(raw, encoding="utf-8")
    req = Request(str(path))
    req.parse()
    return req


def test_parse_form_request(tmp_path):
    req = parsed(tmp_path, FORM_REQUEST)

    assert req.method == "POST"
    assert req.path == "/login"
    assert req.host == "example.com"
    assert req.parameters == {"next": ["home"]}
    assert req.body == {"user": ["admin"], "pass": ["hunter"]}
    assert req.cookies() == {"session": "abc", "theme": "dark"}
    assert req.replay_headers() == {
        "Content-Type": "application/x-www-form-urlencoded",
        "Authorization": "Bearer t0k",
    }
    assert req.url("http") == "http://example.com/login?next=home"


def test_form_request_as_page(tmp_path):
    page = parsed(tmp_path, FORM_REQUEST).to_page("https")

    assert page.url == "https://example.com/login?next=home"
    (form,) = page.forms
    assert form.method == "POST"
    assert form.action == "https://example.com/login"
    assert form.inputs == {"user": "admin", "pass": "hunter"}


@pytest.mark.asyncio
async def test_request_page_discovery(tmp_path):
    page = parsed(tmp_path, FORM_REQUEST).to_page("https")
    endpoints = await EndpointDiscovery(page).discover()
    found = {(e.type, e.name) for e in endpoints}

    assert found == {
        (T.URL_PARAMETER, "next"),
        (T.FORM_FIELD, "user"),
        (T.FORM_FIELD, "pass"),
        (T.COOKIE, "session"),
        (T.COOKIE, "theme"),
    }


def test_json_body_becomes_json_form(tmp_path):
    req = parsed(tmp_path, JSON_REQUEST)
    assert req.body == {"name": "bob", "age": 3}

    (form,) = req.to_page().forms
    assert form.method == "PUT"
    assert form.inputs == {"name": "bob", "age": "3"}
    assert "json" in form.enctype


def test_invalid_json_is_kept_raw(tmp_path):
    req = parsed(tmp_path, JSON_REQUEST.replace('"age": 3}', '"age": '))
    assert isinstance(req.body, str)
    assert req.to_page().forms == []


@pytest.mark.parametrize("raw", ["", "\n\nbody", "GET\nHost: x\n\n", "GET / HTTP/1.1\nAccept: */*\n\n"])
def test_malformed_requests(tmp_path, raw):
    with pytest.raises(ValueError):
        parsed(tmp_path, raw)
