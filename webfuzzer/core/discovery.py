"""Endpoint discovery.

Nine discovery methods, one per surface category, run concurrently over a
Page. A method that raises is reported as a DiscoveryMethodFailure and
contributes nothing; the others are unaffected. Candidates are deduplicated
on (type, name, location), enriched from ENDPOINT_METADATA and filtered.
"""

import asyncio
import re
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple, TypeVar
from urllib.parse import parse_qs, urljoin, urlsplit, urlunsplit

from webfuzzer.core.config import DiscoveryConfig, discovery_errors
from webfuzzer.core.context import dominant_context, find_reflections
from webfuzzer.core.crawler import Page, is_same_origin, should_skip_url
from webfuzzer.core.csrf import is_csrf_field
from webfuzzer.core.errors import ConfigurationError, DiscoveryMethodFailure
from webfuzzer.core.models import (
    Context, Endpoint, EndpointType as T, RawCandidate, Risk, new_id,
)
from webfuzzer.core.scheduler import priority
from webfuzzer.reporters.console import NullLog


# ── Type → metadata table ──────────────────────────────────────
# (category, risk, default context, testable, recommended payload categories)

ENDPOINT_METADATA: Dict[T, tuple] = {
    T.URL_PARAMETER:       ("navigation", Risk.HIGH, Context.URL, True, ("base", "waf-bypass")),
    T.HASH_PARAMETER:      ("platform", Risk.MEDIUM, Context.URL, True, ("base", "advanced")),
    T.FORM_FIELD:          ("form", Risk.HIGH, Context.HTML, True, ("base", "advanced", "waf-bypass")),
    T.INPUT_FIELD:         ("mutable-content", Risk.MEDIUM, Context.HTML, True, ("base", "mutation")),
    T.CONTENT_EDITABLE:    ("mutable-content", Risk.MEDIUM, Context.HTML, True, ("mutation", "advanced")),
    T.COOKIE:              ("storage", Risk.MEDIUM, Context.STORAGE, True, ("base",)),
    T.STORAGE_KEY:         ("storage", Risk.LOW, Context.STORAGE, True, ("base", "blind")),
    T.MESSAGE_CHANNEL:     ("messaging", Risk.HIGH, Context.JAVASCRIPT, False, ("advanced", "obfuscated")),
    T.WEBSOCKET:           ("messaging", Risk.MEDIUM, Context.JAVASCRIPT, False, ("advanced",)),
    T.EVENT_HANDLER:       ("advanced", Risk.HIGH, Context.JAVASCRIPT, False, ("advanced", "obfuscated")),
    T.DATA_ATTRIBUTE:      ("advanced", Risk.LOW, Context.ATTRIBUTE, False, ("base",)),
    T.API_ENDPOINT:        ("api", Risk.HIGH, Context.URL, True, ("base", "waf-bypass")),
    T.TEMPLATE_EXPRESSION: ("template", Risk.CRITICAL, Context.TEMPLATE, False, ("advanced",)),
    T.DOM_SOURCE:          ("platform", Risk.MEDIUM, Context.JAVASCRIPT, False, ("advanced",)),
}


# ── Script patterns ────────────────────────────────────────────

_POST_MESSAGE = re.compile(r"([\w$][\w$.]*)\.postMessage\s*\(")
_MESSAGE_LISTENER = re.compile(r"addEventListener\(\s*['\"]message['\"]|\bonmessage\s*=")
_WEBSOCKET = re.compile(r"new\s+WebSocket\(\s*['\"`]([^'\"`]+)")
_BROADCAST = re.compile(r"new\s+BroadcastChannel\(\s*['\"`]([^'\"`]+)")

_API_CALLS = [
    (re.compile(r"\bfetch\(\s*['\"`]([^'\"`]+)"), "GET"),
    (re.compile(r"\baxios\.(get|post|put|delete|patch)\(\s*['\"`]([^'\"`]+)"), None),
    (re.compile(r"\baxios\(\s*['\"`]([^'\"`]+)"), "GET"),
    (re.compile(r"\.open\(\s*['\"](GET|POST|PUT|DELETE|PATCH)['\"]\s*,\s*['\"`]([^'\"`]+)", re.I), None),
    (re.compile(r"\$\.(get|post|getJSON|ajax)\(\s*['\"]([^'\"]+)"), None),
]
_API_ATTRS = ("data-api", "data-url", "data-endpoint", "data-action")

_TEMPLATE_EXPR = [
    re.compile(r"\{\{\s*(.+?)\s*\}\}"),
    re.compile(r"\$\{\s*(.+?)\s*\}"),
    re.compile(r"<%=?\s*(.+?)\s*%>"),
]
_FRAMEWORKS = {"ng-": "angular", "data-ng-": "angular", "v-": "vue", ":": "vue",
               "@": "vue", "x-": "alpine"}

_DOM_SOURCES = ("location.hash", "location.search", "location.href", "document.URL",
                "document.documentURI", "document.referrer", "window.name")


# ── Helpers ────────────────────────────────────────────────────

def _location(url: str) -> str:
    """Scheme, host and path; query and fragment dropped."""
    p = urlsplit(url)
    return urlunsplit((p.scheme, p.netloc, p.path, "", "")) or "/"


def _value_context(value: str) -> Optional[Context]:
    if "{{" in value or "${" in value:
        return Context.TEMPLATE
    if value[:1] in ("{", "["):
        return Context.JSON
    return None


K = TypeVar("K")


def dedupe(items: Iterable[K]) -> List[K]:
    """Drop later items sharing (type, name, location) with an earlier one."""
    seen = set()
    out = []
    for item in items:
        if item.key in seen:
            continue
        seen.add(item.key)
        out.append(item)
    return out


def enrich(candidate: RawCandidate) -> Endpoint:
    category, risk, default_ctx, testable, recommended = ENDPOINT_METADATA[candidate.type]
    context = candidate.context or default_ctx
    return Endpoint(
        id=new_id("ep_"),
        type=candidate.type,
        name=candidate.name,
        value=candidate.value,
        context=context,
        risk=risk,
        testable=testable if candidate.testable is None else candidate.testable,
        location=candidate.location,
        category=category,
        priority=priority(risk, context, ""),
        recommended=recommended,
        attributes=dict(candidate.attributes),
    )


def apply_filters(endpoints: List[Endpoint], cfg: DiscoveryConfig) -> List[Endpoint]:
    out = endpoints
    if cfg.targets:
        out = [e for e in out if e.name in cfg.targets or e.type.value in cfg.targets]
    if cfg.exclude:
        out = [e for e in out if e.name not in cfg.exclude and e.type.value not in cfg.exclude]
    if cfg.min_risk:
        floor = Risk(cfg.min_risk).rank
        out = [e for e in out if e.risk.rank >= floor]
    if cfg.testable_only:
        out = [e for e in out if e.testable]
    if cfg.categories:
        out = [e for e in out if e.category in cfg.categories]
    return out


# ── Discovery ──────────────────────────────────────────────────

Method = Callable[[DiscoveryConfig], Awaitable[List[RawCandidate]]]


class EndpointDiscovery:
    """
    Usage:
        endpoints = await EndpointDiscovery(page, logger).discover(DiscoveryConfig())
    """

    def __init__(self, page: Page, logger=None):
        self.page = page
        self.logger = logger or NullLog()
        self.location = _location(page.url)
        self.methods: Dict[str, Method] = {
            "navigation": self._discover_url_parameters,
            "form": self._discover_forms,
            "mutable-content": self._discover_mutable_content,
            "storage": self._discover_storage,
            "messaging": self._discover_messaging,
            "advanced": self._discover_advanced_vectors,
            "api": self._discover_api_surfaces,
            "template": self._discover_templates,
            "platform": self._discover_platform_sources,
        }

    async def discover(self, config: Optional[DiscoveryConfig] = None) -> List[Endpoint]:
        config = config or DiscoveryConfig()
        errors = discovery_errors(config)
        if errors:
            raise ConfigurationError("; ".join(errors))

        parts = await asyncio.gather(*(self._run(name, config) for name in self.methods))
        candidates = [c for part in parts for c in part]
        unique = dedupe(candidates)
        endpoints = apply_filters([enrich(c) for c in unique], config)

        self.logger.info(
            f"Discovery on {self.location}: {len(candidates)} candidates, "
            f"{len(unique)} unique, {len(endpoints)} after filters")
        return endpoints

    async def _run(self, name: str, config: DiscoveryConfig) -> List[RawCandidate]:
        try:
            found = await self.methods[name](config)
        except Exception as exc:
            failure = DiscoveryMethodFailure(name, exc)
            self.logger.warn(str(failure))
            return []
        self.logger.debug(f"  {name}: {len(found)} candidates")
        return found

    def _refine(self, value: str, ignore: Tuple[Context, ...] = ()
                ) -> Tuple[Optional[Context], Dict[str, Any]]:
        """Context for *value* from its own shape, else from where the page echoes it."""
        reflections = [r for r in find_reflections(self.page.html, value)
                       if r.context not in ignore]
        if not reflections:
            return _value_context(value), {}
        context = _value_context(value) or dominant_context(reflections)
        return context, {"reflected": True,
                         "reflections": [r.to_dict() for r in reflections]}

    # ── navigation ─────────────────────────────────────────────

    async def _discover_url_parameters(self, config) -> List[RawCandidate]:
        urls = [self.page.url]
        for href in self.page.parsed.links:
            abs_url = urljoin(self.page.url, href)
            if not should_skip_url(abs_url) and is_same_origin(self.page.url, abs_url):
                urls.append(abs_url)

        out = []
        for url in urls:
            query = urlsplit(url).query
            if not query:
                continue
            for name, values in parse_qs(query, keep_blank_values=True).items():
                context, seen = self._refine(values[0], ignore=(Context.URL,))
                out.append(RawCandidate(
                    T.URL_PARAMETER, name, _location(url),
                    value=values[0], context=context,
                    attributes={"url": url, **seen},
                ))
        return out

    # ── forms ──────────────────────────────────────────────────

    async def _discover_forms(self, config) -> List[RawCandidate]:
        out = []
        for form in self.page.parsed.forms + self.page.forms:
            action = urljoin(self.page.url, form.action or self.page.url)
            location = f"{form.method} {_location(action)}"
            for name, value in form.inputs.items():
                out.append(RawCandidate(
                    T.FORM_FIELD, name, location,
                    value=value, context=_value_context(value),
                    testable=False if is_csrf_field(name) else None,
                    attributes={"action": action, "method": form.method,
                                "fields": dict(form.inputs), "page": self.page.url,
                                "enctype": form.enctype},
                ))
        return out

    # ── mutable content ────────────────────────────────────────

    async def _discover_mutable_content(self, config) -> List[RawCandidate]:
        attrs = {"action": self.page.url, "method": "GET"}
        out = [
            RawCandidate(T.INPUT_FIELD, name, self.location, value=value,
                         context=_value_context(value), attributes=dict(attrs, tag=tag))
            for tag, name, value in self.page.parsed.loose_inputs
        ]
        out += [
            RawCandidate(T.CONTENT_EDITABLE, label, self.location, attributes=dict(attrs))
            for label in self.page.parsed.editables
        ]
        return out

    # ── storage ────────────────────────────────────────────────

    async def _discover_storage(self, config) -> List[RawCandidate]:
        out = []
        for kind, items in ((T.COOKIE, self.page.cookies), (T.STORAGE_KEY, self.page.storage)):
            for name, value in items.items():
                context, seen = self._refine(value)
                out.append(RawCandidate(kind, name, self.location, value=value, context=context,
                                        attributes={"url": self.page.url, **seen}))
        return out

    # ── cross-context messaging ────────────────────────────────

    async def _discover_messaging(self, config) -> List[RawCandidate]:
        out = []
        for script in self.page.parsed.scripts:
            for m in _POST_MESSAGE.finditer(script):
                out.append(RawCandidate(T.MESSAGE_CHANNEL, m.group(1), self.location))
            if _MESSAGE_LISTENER.search(script):
                checks_origin = ".origin" in script
                out.append(RawCandidate(
                    T.MESSAGE_CHANNEL, "message-listener", self.location,
                    attributes={"origin_check": checks_origin},
                ))
            for m in _BROADCAST.finditer(script):
                out.append(RawCandidate(T.MESSAGE_CHANNEL, m.group(1), self.location))
            for m in _WEBSOCKET.finditer(script):
                out.append(RawCandidate(T.WEBSOCKET, m.group(1), self.location))
        return out

    # ── advanced vectors ───────────────────────────────────────

    async def _discover_advanced_vectors(self, config) -> List[RawCandidate]:
        out = [
            RawCandidate(T.EVENT_HANDLER, f"{tag}.{attr}", self.location, value=code)
            for tag, attr, code in self.page.parsed.handlers
        ]
        out += [
            RawCandidate(T.DATA_ATTRIBUTE, attr, self.location, value=value)
            for tag, attr, value in self.page.parsed.data_attrs
            if attr not in _API_ATTRS
        ]
        return out

    # ── API surfaces ───────────────────────────────────────────

    async def _discover_api_surfaces(self, config) -> List[RawCandidate]:
        calls = []  # (method, raw url)
        for script in self.page.parsed.scripts:
            for rx, fixed_method in _API_CALLS:
                for m in rx.finditer(script):
                    if fixed_method:
                        calls.append((fixed_method, m.group(1)))
                    else:
                        verb = m.group(1).upper()
                        calls.append(("GET" if verb in ("GETJSON", "AJAX") else verb, m.group(2)))
        for tag, attr, value in self.page.parsed.data_attrs:
            if attr in _API_ATTRS and value:
                calls.append(("GET", value))

        out = []
        for method, raw in calls:
            if raw.startswith(("ws:", "wss:", "data:", "blob:")):
                continue
            url = urljoin(self.page.url, raw)
            parts = urlsplit(url)
            params = parse_qs(parts.query, keep_blank_values=True)
            if params:
                for name, values in params.items():
                    out.append(RawCandidate(
                        T.API_ENDPOINT, name, _location(url), value=values[0],
                        attributes={"url": url, "method": method},
                    ))
            else:
                out.append(RawCandidate(
                    T.API_ENDPOINT, parts.path or "/", _location(url),
                    context=Context.JSON if "json" in parts.path.lower() else None,
                    attributes={"url": url, "method": method, "mode": "path"},
                ))
        return out

    # ── template engines ───────────────────────────────────────

    async def _discover_templates(self, config) -> List[RawCandidate]:
        out = []
        for chunk in self.page.parsed.text:
            for rx in _TEMPLATE_EXPR:
                for m in rx.finditer(chunk):
                    out.append(RawCandidate(
                        T.TEMPLATE_EXPRESSION, m.group(1)[:60], self.location,
                        value=m.group(0)))
        for attr in self.page.parsed.framework_attrs:
            for prefix, framework in _FRAMEWORKS.items():
                if attr.startswith(prefix):
                    out.append(RawCandidate(
                        T.TEMPLATE_EXPRESSION, f"framework:{framework}", self.location,
                        value=attr))
                    break
        return out

    # ── platform APIs ──────────────────────────────────────────

    async def _discover_platform_sources(self, config) -> List[RawCandidate]:
        out = []
        fragment = urlsplit(self.page.url).fragment
        if "=" in fragment:
            for name, values in parse_qs(fragment.lstrip("!/"), keep_blank_values=True).items():
                context, seen = self._refine(values[0], ignore=(Context.URL,))
                out.append(RawCandidate(
                    T.HASH_PARAMETER, name, self.location, value=values[0], context=context,
                    attributes={"url": self.page.url, **seen},
                ))
        scripts = "\n".join(self.page.parsed.scripts)
        for source in _DOM_SOURCES:
            if source in scripts:
                out.append(RawCandidate(T.DOM_SOURCE, source, self.location))
        return out
