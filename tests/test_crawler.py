import httpx
import pytest

from webfuzzer.core.crawler import (
    Crawler, Page, is_same_origin, normalize_url, page_key, parse_page, should_skip_url,
)
from webfuzzer.core.csrf import detect_csrf_fields, extract_hidden_inputs, fetch_csrf_tokens

SITE = {
    "/": '<a href="/a">a</a><a href="/b?x=1">b</a><a href="http://other/">x</a>'
         '<a href="/style.css">css</a><a href="mailto:me@t">m</a>',
    "/a": '<a href="/a/deep">deep</a><a href="/">home</a>',
    "/b": "<p>b</p>",
    "/a/deep": "<p>deep</p>",
}


def site(request):
    if request.url.path == "/json":
        return httpx.Response(200, json={"a": 1})
    body = SITE.get(request.url.path)
    if body is None:
        return httpx.Response(404, html="<p>missing</p>")
    return httpx.Response(200, html=body)


@pytest.mark.asyncio
async def test_bfs_respects_depth_and_origin(mock_client):
    pages = await Crawler(mock_client(site), max_depth=1).crawl("http://t/")
    assert [p.url for p in pages] == ["http://t/", "http://t/a", "http://t/b?x=1"]


@pytest.mark.asyncio
async def test_deeper_crawl_and_page_cap(mock_client):
    client = mock_client(site)
    assert len(await Crawler(client, max_depth=2).crawl("http://t/")) == 4
    assert len(await Crawler(client, max_depth=2, max_pages=2).crawl("http://t/")) == 2


@pytest.mark.asyncio
async def test_non_html_and_failures_are_skipped(mock_client, log):
    def handler(request):
        if request.url.path == "/down":
            raise httpx.ConnectError("down", request=request)
        return site(request)

    crawler = Crawler(mock_client(handler), log, max_depth=0)
    assert await crawler.crawl("http://t/json") == []
    assert await crawler.crawl("http://t/down") == []
    assert any("down" in m for m in log.messages("warn"))


def test_parse_page_collects_surfaces():
    parsed = parse_page("""
      <form action="/go" method="post" enctype="application/json">
        <input name="a" value="1"><input type="hidden" name="t" value="z"><select name="s"></select>
      </form>
      <input name="loose"><div contenteditable="false"></div><p contenteditable>x</p>
      <script>var a = 1;</script><style>p{}</style>
      <img onerror="x()" data-id="7" v-if="ok">
    """)

    (form,) = parsed.forms
    assert (form.action, form.method, form.enctype) == ("/go", "POST", "application/json")
    assert form.inputs == {"a": "1", "t": "z", "s": ""}
    assert form.hidden == {"t"}
    assert parsed.loose_inputs == [("input", "loose", "")]
    assert parsed.editables == ["p[1]"]
    assert parsed.scripts == ["var a = 1;"]
    assert parsed.handlers == [("img", "onerror", "x()")]
    assert parsed.data_attrs == [("img", "data-id", "7")]
    assert parsed.framework_attrs == ["v-if"]
    assert not any("p{}" in t for t in parsed.text)


def test_page_parses_once():
    page = Page(url="http://t/", html='<a href="/x">x</a>')
    assert page.parsed is page.parsed
    assert page.parsed.links == ["/x"]


def test_url_helpers():
    assert is_same_origin("http://t/a", "http://t/b?c=1")
    assert not is_same_origin("http://t/", "https://t/")
    assert normalize_url("http://t/a/?q=1#f") == "http://t/a"
    assert page_key("http://t/a/?q=1") == "http://t/a?q=1"
    assert should_skip_url("http://t/app.js")
    assert should_skip_url("javascript:void(0)")
    assert not should_skip_url("http://t/page.php?id=1")


def test_csrf_helpers():
    assert detect_csrf_fields({"csrf_token": "", "user": "", "authenticity_token": ""}) == [
        "csrf_token", "authenticity_token"]
    html = '<form><input type="hidden" name="csrf" value="v1"><input name="q"></form>'
    assert extract_hidden_inputs(html) == {"csrf": "v1"}


@pytest.mark.asyncio
async def test_fetch_csrf_tokens(mock_client):
    def handler(request):
        if request.url.path == "/gone":
            return httpx.Response(500)
        return httpx.Response(200, html='<form><input type="hidden" name="csrf" value="new"></form>')

    client = mock_client(handler)
    assert await fetch_csrf_tokens(client, "http://t/form", ["csrf", "nonce"]) == {"csrf": "new"}
    assert await fetch_csrf_tokens(client, "http://t/gone", ["csrf"]) == {}
    assert await fetch_csrf_tokens(client, "http://t/form", []) == {}
