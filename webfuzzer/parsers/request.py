from typing import Dict
from urllib.parse import parse_qs, urlencode, urlsplit
import json

from webfuzzer.core.crawler import FormData, Page

# Left to the HTTP client, never replayed
_STOP_HDRS = {"host", "content-length", "transfer-encoding", "content-encoding", "cookie"}


class Request:
    def __init__(self, requestFilename: str) -> None:
        """
        POST /login?next=/home HTTP/1.1
        Host: example.com
        Content-Type: application/x-www-form-urlencoded
        Cookie: session=abc

        user=admin&pass=x
        """

        self.method = ""
        self.path = ""
        self.parameters = {}
        self.headers = {}
        self.body = {}
        self.host = ""

        self.requestFilename = requestFilename

    def parse(self) -> Dict:

        with open(self.requestFilename, 'r', encoding='utf-8', errors='ignore') as f:
            raw = f.read().replace("\r\n", "\n")

        head, _, body_raw = raw.partition("\n\n")
        if not head.strip():
            raise ValueError("Request file is empty.")

        lines = [l for l in head.split("\n") if l.strip()]

        # Request line: METHOD SP PATH [SP HTTP/x.y]
        parts0 = lines[0].split()
        if len(parts0) < 2:
            raise ValueError(f"Invalid request line: {lines[0]!r}")
        self.method = parts0[0].upper()
        raw_path = parts0[1]

        url_parts = urlsplit(raw_path)
        self.path = url_parts.path or "/"
        self.parameters = dict(
            parse_qs(url_parts.query, keep_blank_values=True))

        self.headers = {}
        for line in lines[1:]:
            if ':' in line:
                k, v = line.split(':', 1)
                self.headers[k.strip()] = v.strip()

        self.body = {}
        ctype = self.content_type
        body_raw = body_raw.strip()
        if body_raw:
            if "application/json" in ctype:
                try:
                    self.body = json.loads(body_raw)
                except ValueError:
                    self.body = body_raw  # keep raw when not valid JSON
            elif "application/x-www-form-urlencoded" in ctype:
                self.body = dict(parse_qs(body_raw, keep_blank_values=True))
            else:
                self.body = body_raw

        self.host = self.header('Host')
        if not self.host:
            raise ValueError("Host header missing from the request.")

        return {
            'host': self.host,
            'method': self.method,
            'path': self.path,
            'parameters': self.parameters,
            'headers': self.headers,
            'body': self.body
        }

    def header(self, name: str) -> str:
        for k, v in self.headers.items():
            if k.lower() == name.lower():
                return v
        return ""

    @property
    def content_type(self) -> str:
        return self.header("Content-Type").lower()

    def url(self, protocol: str = "https") -> str:
        query = urlencode(self.parameters, doseq=True)
        return f"{protocol}://{self.host}{self.path}" + (f"?{query}" if query else "")

    def replay_headers(self) -> Dict[str, str]:
        """Headers to send with every injected request (auth, UA, ...)."""
        return {k: v for k, v in self.headers.items() if k.lower() not in _STOP_HDRS}

    def cookies(self) -> Dict[str, str]:
        jar = {}
        for pair in self.header("Cookie").split(";"):
            name, sep, value = pair.strip().partition("=")
            if sep and name:
                jar[name] = value
        return jar

    def to_page(self, protocol: str = "https") -> Page:
        """The request as a discovery surface: query params, body form, cookies."""
        url = self.url(protocol)
        forms = []
        if isinstance(self.body, dict) and self.body:
            inputs = {}
            for k, v in self.body.items():
                if isinstance(v, list):
                    v = v[0] if v else ""
                inputs[k] = v if isinstance(v, str) else json.dumps(v)
            forms.append(FormData(
                action=f"{protocol}://{self.host}{self.path}",
                method=self.method if self.method != "GET" else "POST",
                inputs=inputs,
                enctype=self.content_type or "application/x-www-form-urlencoded",
            ))
        return Page(url=url, headers=dict(self.headers), cookies=self.cookies(), forms=forms)

    def __str__(self) -> str:
        return f"Method: {self.method}\nPath: {self.path}\nHost: {self.host}\nParameters: {self.parameters}\nHeaders: {self.headers}\nBody: {self.body}"
