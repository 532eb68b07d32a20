import pytest

from webfuzzer.core.config import DiscoveryConfig
from webfuzzer.core.crawler import Page
from webfuzzer.core.discovery import EndpointDiscovery, apply_filters, dedupe, enrich
from webfuzzer.core.errors import ConfigurationError
from webfuzzer.core.models import Context, EndpointType as T, RawCandidate, Risk


async def discover(page, log=None, **cfg):
    return await EndpointDiscovery(page, log).discover(DiscoveryConfig(**cfg))


@pytest.mark.asyncio
async def test_query_parameters_only_page():
    endpoints = await discover(Page(url="http://t/page?q=test&id=5"))

    assert sorted(e.name for e in endpoints) == ["id", "q"]
    assert {e.type for e in endpoints} == {T.URL_PARAMETER}
    assert {e.location for e in endpoints} == {"http://t/page"}
    q = next(e for e in endpoints if e.name == "q")
    assert q.value == "test"
    assert q.testable and q.risk is Risk.HIGH and q.category == "navigation"


@pytest.mark.asyncio
async def test_same_parameter_via_link_is_deduplicated():
    page = Page(url="http://t/page?q=test",
                html='<a href="/page?q=other">again</a><a href="http://evil/page?x=1">out</a>')
    endpoints = await discover(page)

    assert [(e.name, e.value) for e in endpoints] == [("q", "test")]


@pytest.mark.asyncio
async def test_form_fields_and_csrf_token():
    html = """
    <form action="/login" method="post">
      <input name="user" value="admin">
      <input type="hidden" name="csrf_token" value="abc">
      <input type="submit" name="go" value="Go">
    </form>"""
    endpoints = await discover(Page(url="http://t/", html=html), testable_only=False)
    fields = {e.name: e for e in endpoints if e.type is T.FORM_FIELD}

    assert set(fields) == {"user", "csrf_token"}
    assert fields["user"].testable
    assert not fields["csrf_token"].testable
    assert fields["user"].location == "POST http://t/login"
    assert fields["user"].attributes["fields"] == {"user": "admin", "csrf_token": "abc"}
    assert fields["user"].attributes["page"] == "http://t/"


@pytest.mark.asyncio
async def test_mutable_content_and_storage():
    html = '<textarea name="note"></textarea><div contenteditable id="bio"></div>'
    page = Page(url="http://t/p", html=html, cookies={"sid": "1"}, storage={"prefs": '{"a":1}'})
    endpoints = {(e.type, e.name): e for e in await discover(page)}

    assert (T.INPUT_FIELD, "note") in endpoints
    assert (T.CONTENT_EDITABLE, "bio") in endpoints
    assert endpoints[(T.COOKIE, "sid")].context is Context.STORAGE
    assert endpoints[(T.STORAGE_KEY, "prefs")].context is Context.JSON


@pytest.mark.asyncio
async def test_script_surfaces_are_discovered_but_not_testable():
    html = """
    <script>
      window.parent.postMessage({a: 1}, "*");
      window.addEventListener("message", function (e) { render(e.data); });
      var ws = new WebSocket("wss://t/live");
      var h = location.hash;
      fetch('/api/items?id=3');
    </script>
    <button onclick="go()" data-role="x">b</button>
    <p>Hello {{ user.name }}</p>"""
    endpoints = await discover(Page(url="http://t/app", html=html), testable_only=False)
    by_type = {}
    for e in endpoints:
        by_type.setdefault(e.type, []).append(e)

    assert {e.name for e in by_type[T.MESSAGE_CHANNEL]} == {"window.parent", "message-listener"}
    assert by_type[T.WEBSOCKET][0].name == "wss://t/live"
    assert by_type[T.EVENT_HANDLER][0].name == "button.onclick"
    assert by_type[T.DATA_ATTRIBUTE][0].name == "data-role"
    assert by_type[T.TEMPLATE_EXPRESSION][0].name == "user.name"
    assert by_type[T.DOM_SOURCE][0].name == "location.hash"
    api = by_type[T.API_ENDPOINT][0]
    assert (api.name, api.location, api.testable) == ("id", "http://t/api/items", True)

    for t in (T.MESSAGE_CHANNEL, T.WEBSOCKET, T.EVENT_HANDLER, T.TEMPLATE_EXPRESSION):
        assert not any(e.testable for e in by_type[t])


@pytest.mark.asyncio
async def test_hash_parameters():
    endpoints = await discover(Page(url="http://t/app#tab=home&view=list"))
    assert {(e.type, e.name) for e in endpoints} == {
        (T.HASH_PARAMETER, "tab"), (T.HASH_PARAMETER, "view")}


@pytest.mark.asyncio
async def test_failing_method_is_isolated(log):
    async def boom(config):
        raise RuntimeError("parser exploded")

    disc = EndpointDiscovery(Page(url="http://t/?q=1", cookies={"sid": "2"}), log)
    disc.methods["storage"] = boom
    endpoints = await disc.discover()

    assert [e.name for e in endpoints] == ["q"]
    warnings = log.messages("warn")
    assert len(warnings) == 1
    assert "storage" in warnings[0] and "parser exploded" in warnings[0]


@pytest.mark.asyncio
async def test_filters():
    page = Page(url="http://t/?q=1&id=2", cookies={"sid": "3"})

    assert {e.name for e in await discover(page, min_risk="high")} == {"q", "id"}
    assert {e.name for e in await discover(page, categories=["storage"])} == {"sid"}
    assert {e.name for e in await discover(page, targets=["q", "cookie"])} == {"q", "sid"}
    assert {e.name for e in await discover(page, exclude=["url-parameter"])} == {"sid"}


@pytest.mark.asyncio
@pytest.mark.parametrize("cfg", [{"min_risk": "extreme"}, {"categories": ["bogus"]}])
async def test_unknown_filter_values_raise(cfg):
    with pytest.raises(ConfigurationError):
        await discover(Page(url="http://t/?q=1"), **cfg)


def test_dedupe_keeps_first_occurrence():
    a = RawCandidate(T.URL_PARAMETER, "q", "http://t/", value="first")
    b = RawCandidate(T.URL_PARAMETER, "q", "http://t/", value="second")
    c = RawCandidate(T.COOKIE, "q", "http://t/")
    assert dedupe([a, b, c]) == [a, c]


def test_enrich_assigns_metadata_and_priority():
    ep = enrich(RawCandidate(T.TEMPLATE_EXPRESSION, "x", "http://t/"))
    assert ep.risk is Risk.CRITICAL
    assert ep.context is Context.TEMPLATE
    assert not ep.testable
    assert ep.priority == 100


def test_filter_order_targets_before_testable():
    eps = [enrich(RawCandidate(T.WEBSOCKET, "ws", "http://t/")),
           enrich(RawCandidate(T.URL_PARAMETER, "q", "http://t/"))]
    assert apply_filters(eps, DiscoveryConfig(targets=["ws"])) == []
    assert [e.name for e in apply_filters(eps, DiscoveryConfig(targets=["ws"],
                                                               testable_only=False))] == ["ws"]


@pytest.mark.asyncio
async def test_context_follows_where_the_value_is_echoed():
    html = """
    <a href="/page?lang=en-GB">english</a>
    <script>var user = "guest42";</script>
    <div style="color: crimson">x</div>
    <img alt="banner-7">
    <p>Hello visitor99</p>"""
    page = Page(url="http://t/page?user=guest42&theme=crimson&pic=banner-7&who=visitor99",
                html=html, cookies={"sid": "nothing-echoed"})
    endpoints = {e.name: e for e in await discover(page)}

    assert endpoints["user"].context is Context.JAVASCRIPT
    assert endpoints["theme"].context is Context.CSS
    assert endpoints["pic"].context is Context.ATTRIBUTE
    assert endpoints["who"].context is Context.HTML
    assert endpoints["who"].attributes["reflected"]
    assert endpoints["who"].attributes["reflections"][0]["context"] == "html"

    # only present in its own link: not a reflection
    assert endpoints["lang"].context is Context.URL
    assert "reflected" not in endpoints["lang"].attributes
    assert endpoints["sid"].context is Context.STORAGE
    assert endpoints["user"].priority > endpoints["who"].priority
