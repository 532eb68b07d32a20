"""Dispatcher: inject one test unit, let it settle, ask the detector."""

import asyncio
import re
import time
from typing import Awaitable, Callable, Dict, Optional
from urllib.parse import parse_qs, quote, urlencode, urlsplit, urlunsplit

import httpx

from webfuzzer.core.csrf import detect_csrf_fields, fetch_csrf_tokens
from webfuzzer.core.detection import Detector
from webfuzzer.core.errors import DispatchError
from webfuzzer.core.models import (
    DispatchOutcome, Endpoint, EndpointType as T, Observation, TestUnit, UnitStatus,
)
from webfuzzer.reporters.console import NullLog

MARKER_TOKEN = "FUZZMARK"
MARKER_HEADER = "X-Fuzz-Marker"

_MARKER_RX = re.compile(re.escape(MARKER_TOKEN), re.I)

NAVIGATE_TYPES = {T.URL_PARAMETER, T.HASH_PARAMETER, T.API_ENDPOINT}
FORM_TYPES = {T.FORM_FIELD, T.INPUT_FIELD, T.CONTENT_EDITABLE}
STORAGE_TYPES = {T.COOKIE, T.STORAGE_KEY}


def render_payload(content: str, marker: str) -> str:
    return _MARKER_RX.sub(lambda _: marker, content)


def with_query_param(url: str, name: str, value: str) -> str:
    """Rewrite (or add) one query parameter, keeping the others."""
    parts = urlsplit(url)
    params = parse_qs(parts.query, keep_blank_values=True)
    params[name] = [value]
    return urlunsplit((parts.scheme, parts.netloc, parts.path,
                       urlencode(params, doseq=True), parts.fragment))


def with_fragment_param(url: str, name: str, value: str) -> str:
    parts = urlsplit(url)
    params = parse_qs(parts.fragment, keep_blank_values=True)
    params[name] = [value]
    return urlunsplit((parts.scheme, parts.netloc, parts.path, parts.query,
                       urlencode(params, doseq=True)))


class HttpTransport:
    """The network primitive: one request, httpx failures surface as DispatchError."""

    def __init__(self, client: httpx.AsyncClient, timeout: float = 10.0):
        self.client = client
        self.timeout = timeout

    async def request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            return await self.client.request(method, url, timeout=self.timeout, **kwargs)
        except httpx.HTTPError as exc:
            raise DispatchError(f"{method} {url}: {type(exc).__name__}: {exc}") from exc


Strategy = Callable[[Endpoint, str, str], Awaitable[str]]


class Dispatcher:
    """
    Usage:
        outcome = await dispatcher.inject_and_observe(unit, config)
    """

    def __init__(self, transport: HttpTransport, detector: Optional[Detector] = None,
                 logger=None):
        self.transport = transport
        self.detector = detector or Detector()
        self.logger = logger or NullLog()
        self.strategies: Dict[T, Strategy] = {}
        for t in NAVIGATE_TYPES:
            self.strategies[t] = self._navigate
        for t in FORM_TYPES:
            self.strategies[t] = self._submit_form
        for t in STORAGE_TYPES:
            self.strategies[t] = self._write_storage

    async def inject_and_observe(self, unit: TestUnit, config) -> DispatchOutcome:
        started = time.perf_counter()
        rendered = render_payload(unit.payload.content, unit.marker)
        registered = False
        url = ""

        def elapsed():
            return time.perf_counter() - started

        try:
            self.detector.register(unit.marker, unit.payload.target, rendered)
            registered = True

            strategy = self.strategies.get(unit.endpoint.type)
            if strategy is None:
                return DispatchOutcome(
                    UnitStatus.ERROR, elapsed(),
                    f"no injection strategy for {unit.endpoint.type.value}",
                    retryable=False)

            self.logger.debug(f"→ {unit.endpoint.type.value} {unit.endpoint.name}="
                              f"{self.logger.PAY}{rendered}")
            url = await strategy(unit.endpoint, rendered, unit.marker)

            if config.settle_delay:
                await asyncio.sleep(config.settle_delay)

            detection = self.detector.query(unit.marker)
            status = (UnitStatus.VULNERABLE if detection.vulnerable or detection.reflected
                      else UnitStatus.SAFE)
            detail = ", ".join(detection.matched_signatures)
            if detection.reflected:
                detail = f"reflected; {detail}" if detail else "reflected"
            return DispatchOutcome(status, elapsed(), detail, detection, url=url)

        except Exception as exc:
            return DispatchOutcome(UnitStatus.ERROR, elapsed(),
                                   f"{type(exc).__name__}: {exc}", url=url)
        finally:
            if registered:
                self.detector.release(unit.marker)

    # ── strategies ─────────────────────────────────────────────

    async def _send(self, marker: str, method: str, url: str, target: str, **kwargs) -> None:
        headers = {MARKER_HEADER: marker, **kwargs.pop("headers", {})}
        resp = await self.transport.request(method, url, headers=headers, **kwargs)
        self.detector.observe(Observation(marker, target, "status", None, str(resp.status_code)))
        self.detector.observe(Observation(marker, target, "response", None, resp.text))

    async def _navigate(self, endpoint: Endpoint, value: str, marker: str) -> str:
        """Rewrite the URL around the endpoint and load it."""
        base = endpoint.attributes.get("url") or endpoint.location
        method = endpoint.attributes.get("method", "GET")
        if endpoint.attributes.get("mode") == "path":
            url = base.rstrip("/") + "/" + value
        elif endpoint.type is T.HASH_PARAMETER:
            url = with_fragment_param(base, endpoint.name, value)
        else:
            url = with_query_param(base, endpoint.name, value)
        await self._send(marker, method, url, endpoint.name)
        return url

    async def _submit_form(self, endpoint: Endpoint, value: str, marker: str) -> str:
        """Set the field and submit it along with its siblings."""
        action = endpoint.attributes.get("action") or endpoint.location
        method = endpoint.attributes.get("method", "GET").upper()
        fields = dict(endpoint.attributes.get("fields") or {endpoint.name: endpoint.value})

        csrf = [f for f in detect_csrf_fields(fields) if f != endpoint.name]
        if csrf:
            page = endpoint.attributes.get("page") or action
            fields.update(await fetch_csrf_tokens(self.transport.client, page, csrf))

        fields[endpoint.name] = value
        if method == "GET":
            url = action
            for name, field_value in fields.items():
                url = with_query_param(url, name, field_value)
            await self._send(marker, "GET", url, endpoint.name)
            return url
        if "json" in endpoint.attributes.get("enctype", ""):
            await self._send(marker, method, action, endpoint.name, json=fields)
        else:
            await self._send(marker, method, action, endpoint.name, data=fields)
        return action

    async def _write_storage(self, endpoint: Endpoint, value: str, marker: str) -> str:
        """Write the value straight into the cookie jar of the request."""
        url = endpoint.attributes.get("url") or endpoint.location
        cookie = f"{endpoint.name}={quote(value, safe='')}"
        await self._send(marker, "GET", url, endpoint.name, headers={"Cookie": cookie})
        return url
