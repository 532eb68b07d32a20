import httpx
import pytest

from webfuzzer.core.models import (
    Context, Endpoint, EndpointType, Payload, Risk, TestUnit,
)
from webfuzzer.reporters.console import NullLog

PASSWD = (
    "root:x:0:0:root:/root:/bin/bash\n"
    "daemon:x:1:1:daemon:/usr/sbin:/usr/sbin/nologin\n"
)


class RecordingLog(NullLog):
    """Keeps (level, message) pairs instead of printing them."""

    def __init__(self):
        super().__init__()
        self.records = []
        self.findings = []

    def info(self, msg):
        self.records.append(("info", msg))

    def warn(self, msg):
        self.records.append(("warn", msg))

    def ok(self, msg):
        self.records.append(("ok", msg))

    def fail(self, msg):
        self.records.append(("fail", msg))

    def debug(self, msg):
        self.records.append(("debug", msg))

    def finding(self, *args, **kwargs):
        self.findings.append(args)

    def messages(self, level):
        return [m for lvl, m in self.records if lvl == level]


def make_endpoint(name="q", type=EndpointType.URL_PARAMETER, context=Context.URL,
                  risk=Risk.HIGH, testable=True, location="http://t/", **attributes):
    return Endpoint(id=f"ep_{name}", type=type, name=name, value="", context=context,
                    risk=risk, testable=testable, location=location, attributes=attributes)


def make_unit(marker, endpoint=None, content="x", priority=50):
    return TestUnit(endpoint=endpoint or make_endpoint(), payload=Payload(content),
                    marker=marker, priority=priority)


@pytest.fixture
def log():
    return RecordingLog()


@pytest.fixture
def mock_client():
    """Factory: mock_client(handler) -> AsyncClient served by *handler*."""
    def build(handler):
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return build
