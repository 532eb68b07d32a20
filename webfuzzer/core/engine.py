from typing import Dict, List, Optional, Sequence

import httpx

from webfuzzer.core.config import ScanConfig
from webfuzzer.core.crawler import Crawler, Page
from webfuzzer.core.detection import Detector
from webfuzzer.core.discovery import EndpointDiscovery, dedupe
from webfuzzer.core.dispatcher import Dispatcher, HttpTransport
from webfuzzer.core.events import EventKind
from webfuzzer.core.generator import PayloadGenerator
from webfuzzer.core.library import PayloadLibrary
from webfuzzer.core.models import Endpoint, Payload, ScanReport
from webfuzzer.core.registry import ComponentRegistry
from webfuzzer.core.scheduler import Scheduler
from webfuzzer.core.session import Session
from webfuzzer.core.storage import KeyValueStore, MemoryStore
from webfuzzer.reporters.console import NullLog


class Engine:
    """
    Wires crawler, discovery, generator, scheduler and dispatcher together.

    Usage:
        engine = Engine(ScanConfig.from_profile("quick"), logger=Log())
        report = await engine.scan("http://target/page?q=1")
        await engine.aclose()
    """

    def __init__(self, config: Optional[ScanConfig] = None, logger=None,
                 store: Optional[KeyValueStore] = None,
                 client: Optional[httpx.AsyncClient] = None,
                 headers: Optional[Dict[str, str]] = None):
        self.name = "WebFuzzer"
        self.version = "1.0.0"
        self.config = config or ScanConfig()
        self.logger = logger or NullLog()
        self.store = store or MemoryStore()
        self.headers = headers or {}
        self._owns_client = client is None

        self.registry = ComponentRegistry()
        self.registry.register("client", lambda: client or self._new_client())
        self.registry.register("transport", lambda: HttpTransport(
            self.registry.get("client"), self.config.request_timeout))
        self.registry.register("detector", Detector)
        self.registry.register("generator", lambda: PayloadGenerator(self.store, self.logger))
        self.registry.register("dispatcher", lambda: Dispatcher(
            self.registry.get("transport"), self.registry.get("detector"), self.logger))
        self.registry.register("scheduler", lambda: Scheduler(
            self.registry.get("dispatcher"), self.logger))
        self.registry.register("crawler", lambda: Crawler(
            self.registry.get("client"), self.logger, max_depth=self.config.crawl_depth))

    def _new_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            verify=self.config.verify_tls, proxy=self.config.proxy, follow_redirects=True,
            timeout=self.config.request_timeout, headers=self.headers)

    # ── stages ─────────────────────────────────────────────────

    async def discover(self, url: Optional[str] = None, pages: Optional[Sequence[Page]] = None,
                       session: Optional[Session] = None) -> List[Endpoint]:
        """Crawl from *url* (or use the given pages) and discover endpoints on every page."""
        if pages is None:
            pages = await self.registry.get("crawler").crawl(url)

        found: List[Endpoint] = []
        for page in pages:
            found.extend(await EndpointDiscovery(page, self.logger).discover(self.config.discovery))
        endpoints = dedupe(found)

        self.logger.info(f"Discovered {len(endpoints)} endpoints across {len(pages)} pages")
        for ep in endpoints:
            self.logger.debug(f"  {ep}")
        if session is not None:
            session.events.publish(EventKind.DISCOVERY_COMPLETE, pages=len(pages),
                                   endpoints=len(endpoints))
        return endpoints

    def build_payloads(self, endpoints: Sequence[Endpoint]) -> Dict[str, List[Payload]]:
        """Payloads per context; path contexts also get traversal vectors for every target file."""
        generator: PayloadGenerator = self.registry.get("generator")
        contexts = dict.fromkeys(e.context.value for e in endpoints if e.testable)

        by_context: Dict[str, List[Payload]] = {}
        for context in contexts:
            payloads = generator.generate_payloads(context, self.config.generator)
            if context in self.config.path_contexts:
                for target in self.config.target_files:
                    payloads += generator.generate_payloads(target, self.config.generator)
            by_context[context] = payloads
            self.logger.debug(f"{len(payloads)} payloads for context {context!r}")
        return by_context

    @property
    def library(self) -> PayloadLibrary:
        return self.registry.get("generator").library

    def new_session(self) -> Session:
        return Session(logger=self.logger)

    async def scan(self, url: Optional[str] = None, session: Optional[Session] = None,
                   pages: Optional[Sequence[Page]] = None) -> ScanReport:
        self.config.validate()
        session = session or self.new_session()
        scheduler: Scheduler = self.registry.get("scheduler")

        endpoints = await self.discover(url, pages, session)
        if not any(e.testable for e in endpoints):
            self.logger.fail("No testable endpoints found")
            session.finish_empty()
            return session.report()

        queue = scheduler.build(endpoints, self.build_payloads(endpoints), self.config)
        self.logger.info(f"Fuzzing {len(endpoints)} endpoints with {len(queue)} test units "
                         f"(concurrency {self.config.max_concurrent})")
        session.start(self.config, queue)
        await scheduler.run(session, self.config)

        report = session.report()
        if report.vulnerable:
            self.logger.ok(f"{len(report.vulnerable)} vulnerable of {report.tested} tests")
        else:
            self.logger.fail(f"No findings in {report.tested} tests")
        return report

    async def aclose(self) -> None:
        if self._owns_client and "client" in self.registry.built():
            await self.registry.get("client").aclose()
