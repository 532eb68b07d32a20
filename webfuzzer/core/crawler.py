"""Crawler: BFS page collection plus the HTML parsing discovery relies on."""

from html.parser import HTMLParser
from urllib.parse import urljoin, urlsplit
from typing import List, Dict, Optional, Set, Tuple
from dataclasses import dataclass, field

import httpx

from webfuzzer.reporters.console import NullLog


# ── Page model ─────────────────────────────────────────────────

@dataclass
class FormData:
    """Represents an HTML <form> with its inputs."""
    action: str = ""
    method: str = "GET"
    inputs: Dict[str, str] = field(default_factory=dict)  # name → default value
    hidden: Set[str] = field(default_factory=set)
    enctype: str = "application/x-www-form-urlencoded"


@dataclass
class ParsedPage:
    links: List[str] = field(default_factory=list)
    forms: List[FormData] = field(default_factory=list)
    loose_inputs: List[Tuple[str, str, str]] = field(default_factory=list)  # (tag, name, value)
    editables: List[str] = field(default_factory=list)
    scripts: List[str] = field(default_factory=list)
    handlers: List[Tuple[str, str, str]] = field(default_factory=list)      # (tag, attr, code)
    data_attrs: List[Tuple[str, str, str]] = field(default_factory=list)    # (tag, attr, value)
    framework_attrs: List[str] = field(default_factory=list)
    text: List[str] = field(default_factory=list)


@dataclass
class Page:
    """One snapshot of the target surface."""
    url: str
    html: str = ""
    headers: Dict[str, str] = field(default_factory=dict)
    cookies: Dict[str, str] = field(default_factory=dict)
    storage: Dict[str, str] = field(default_factory=dict)
    forms: List[FormData] = field(default_factory=list)   # known without markup (raw requests)
    _parsed: Optional[ParsedPage] = field(default=None, repr=False, compare=False)

    @property
    def parsed(self) -> ParsedPage:
        if self._parsed is None:
            self._parsed = parse_page(self.html)
        return self._parsed


# ── HTML parser ────────────────────────────────────────────────

_FRAMEWORK_PREFIXES = ("ng-", "v-", "x-", ":", "@", "data-ng-")


class _PageParser(HTMLParser):
    """Single pass over the markup collecting every raw surface."""

    def __init__(self):
        super().__init__()
        self.out = ParsedPage()
        self._current_form: Optional[FormData] = None
        self._raw: Optional[str] = None          # "script" / "style" while inside one
        self._script_buf: List[str] = []
        self._editable_count = 0

    def handle_starttag(self, tag, attrs):
        attr_dict = {k: (v or "") for k, v in attrs}

        for name, value in attr_dict.items():
            if name.startswith("on") and len(name) > 2:
                self.out.handlers.append((tag, name, value))
            elif name.startswith("data-"):
                self.out.data_attrs.append((tag, name, value))
            elif name.startswith(_FRAMEWORK_PREFIXES):
                self.out.framework_attrs.append(name)

        if "contenteditable" in attr_dict and attr_dict["contenteditable"].lower() != "false":
            self._editable_count += 1
            label = attr_dict.get("id") or attr_dict.get("name") or f"{tag}[{self._editable_count}]"
            self.out.editables.append(label)

        if tag == "a" and attr_dict.get("href"):
            self.out.links.append(attr_dict["href"])

        elif tag == "form":
            self._current_form = FormData(
                action=attr_dict.get("action", ""),
                method=(attr_dict.get("method") or "GET").upper(),
                enctype=attr_dict.get("enctype") or "application/x-www-form-urlencoded",
            )

        elif tag in ("input", "textarea", "select"):
            name = attr_dict.get("name", "")
            input_type = attr_dict.get("type", "text").lower()
            if not name or input_type in ("submit", "button", "image", "reset"):
                return
            value = attr_dict.get("value", "") if tag == "input" else ""
            if self._current_form is not None:
                self._current_form.inputs[name] = value
                if input_type == "hidden":
                    self._current_form.hidden.add(name)
            else:
                self.out.loose_inputs.append((tag, name, value))

        elif tag in ("script", "style"):
            self._raw = tag
            self._script_buf = []

    def handle_endtag(self, tag):
        if tag == "form" and self._current_form is not None:
            self.out.forms.append(self._current_form)
            self._current_form = None
        elif tag == self._raw:
            if tag == "script":
                self.out.scripts.append("".join(self._script_buf))
            self._raw = None

    def handle_data(self, data):
        if self._raw == "script":
            self._script_buf.append(data)
        elif self._raw is None and data.strip():
            self.out.text.append(data)


# ── Helper functions ───────────────────────────────────────────

def parse_page(html: str) -> ParsedPage:
    parser = _PageParser()
    if html:
        parser.feed(html)
        parser.close()
    return parser.out


def is_same_origin(base_url: str, target_url: str) -> bool:
    """Check if target_url is same-origin as base_url."""
    base = urlsplit(base_url)
    target = urlsplit(target_url)
    return base.scheme == target.scheme and base.netloc == target.netloc


def normalize_url(url: str) -> str:
    """Normalize URL by removing query, fragment and trailing slashes on path."""
    parts = urlsplit(url)
    path = parts.path.rstrip("/") or "/"
    return f"{parts.scheme}://{parts.netloc}{path}"


def page_key(url: str) -> str:
    """Like normalize_url but keeps the query: ?id=1 and ?id=2 are distinct pages."""
    parts = urlsplit(url)
    return normalize_url(url) + (f"?{parts.query}" if parts.query else "")


def should_skip_url(url: str) -> bool:
    """Skip non-HTTP URLs and static assets."""
    lower = url.lower()
    # Skip non-HTTP
    if any(lower.startswith(s) for s in ("javascript:", "mailto:", "tel:", "data:", "#")):
        return True
    # Skip static files
    skip_ext = (".css", ".js", ".png", ".jpg", ".jpeg", ".gif", ".svg",
                ".ico", ".woff", ".woff2", ".ttf", ".eot", ".pdf",
                ".zip", ".tar", ".gz", ".mp4", ".mp3", ".webp")
    path = urlsplit(url).path.lower()
    return any(path.endswith(ext) for ext in skip_ext)


# ── Crawler class ──────────────────────────────────────────────

class Crawler:
    """
    BFS crawler that collects same-origin HTML pages.

    Usage:
        crawler = Crawler(client, logger, max_depth=2)
        pages = await crawler.crawl("http://example.com/")
    """

    def __init__(self, client: httpx.AsyncClient, logger=None, max_depth: int = 2,
                 max_pages: int = 50):
        self.client = client
        self.logger = logger or NullLog()
        self.max_depth = max_depth
        self.max_pages = max_pages

    async def crawl(self, start_url: str) -> List[Page]:
        visited: Set[str] = set()
        pages: List[Page] = []

        # BFS queue: (url, depth)
        queue: List[Tuple[str, int]] = [(start_url, 0)]

        self.logger.info(f"Crawling {start_url} (max depth: {self.max_depth})")

        while queue and len(pages) < self.max_pages:
            url, depth = queue.pop(0)

            key = page_key(url)
            if key in visited:
                continue
            visited.add(key)

            self.logger.debug(f"Visiting [{depth}] {url}")

            page = await self._fetch(url)
            if page is None:
                continue
            pages.append(page)

            if depth < self.max_depth:
                for href in page.parsed.links:
                    abs_url = urljoin(url, href)
                    if should_skip_url(abs_url):
                        continue
                    if not is_same_origin(start_url, abs_url):
                        continue
                    if page_key(abs_url) not in visited:
                        queue.append((abs_url, depth + 1))

        self.logger.ok(f"Crawl complete: {len(visited)} URLs visited, {len(pages)} pages kept")
        return pages

    async def _fetch(self, url: str) -> Optional[Page]:
        """GET a URL and wrap it as a Page, or None on error / non-HTML."""
        try:
            resp = await self.client.get(url, follow_redirects=True)
        except httpx.HTTPError as exc:
            self.logger.warn(f"Crawl fetch failed: {url} ({exc})")
            return None
        ctype = resp.headers.get("content-type", "").lower()
        if ctype and "text/html" not in ctype and "application/xhtml" not in ctype:
            return None
        return Page(
            url=str(resp.url),
            html=resp.text,
            headers=dict(resp.headers),
            cookies=dict(resp.cookies),
        )
