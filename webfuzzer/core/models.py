"""Shared data models for the fuzzer."""

import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class EndpointType(str, Enum):
    URL_PARAMETER = "url-parameter"
    HASH_PARAMETER = "hash-parameter"
    FORM_FIELD = "form-field"
    INPUT_FIELD = "input-field"
    CONTENT_EDITABLE = "content-editable"
    COOKIE = "cookie"
    STORAGE_KEY = "storage-key"
    MESSAGE_CHANNEL = "message-channel"
    WEBSOCKET = "websocket"
    EVENT_HANDLER = "event-handler"
    DATA_ATTRIBUTE = "data-attribute"
    API_ENDPOINT = "api-endpoint"
    TEMPLATE_EXPRESSION = "template-expression"
    DOM_SOURCE = "dom-source"


class Context(str, Enum):
    HTML = "html"
    JAVASCRIPT = "javascript"
    CSS = "css"
    ATTRIBUTE = "attribute"
    URL = "url"
    TEMPLATE = "template"
    STORAGE = "storage"
    JSON = "json"
    SVG = "svg"


class Risk(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _RISK_RANK[self]


_RISK_RANK = {Risk.LOW: 0, Risk.MEDIUM: 1, Risk.HIGH: 2, Risk.CRITICAL: 3}


class PayloadCategory(str, Enum):
    BASE = "base"
    ADVANCED = "advanced"
    WAF_BYPASS = "waf-bypass"
    MUTATION = "mutation"
    OBFUSCATED = "obfuscated"
    BLIND = "blind"
    CUSTOM = "custom"


class UnitStatus(str, Enum):
    PENDING = "pending"
    VULNERABLE = "vulnerable"
    SAFE = "safe"
    ERROR = "error"

    @property
    def terminal(self) -> bool:
        return self is not UnitStatus.PENDING


def new_id(prefix: str = "") -> str:
    return f"{prefix}{uuid.uuid4().hex[:12]}"


# ── Discovery ──────────────────────────────────────────────────

@dataclass
class RawCandidate:
    """What a discovery method sees before enrichment."""
    type: EndpointType
    name: str
    location: str
    value: str = ""
    context: Optional[Context] = None     # overrides the type default
    testable: Optional[bool] = None       # idem
    attributes: Dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> Tuple[str, str, str]:
        return (self.type.value, self.name, self.location)


@dataclass(frozen=True)
class Endpoint:
    """A discovered injection surface. Never mutated after discovery."""
    id: str
    type: EndpointType
    name: str
    value: str
    context: Context
    risk: Risk
    testable: bool
    location: str
    category: str = ""
    priority: int = 0
    recommended: Tuple[str, ...] = ()
    attributes: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @property
    def key(self) -> Tuple[str, str, str]:
        return (self.type.value, self.name, self.location)

    def __str__(self):
        return f"{self.type.value}:{self.name} @ {self.location} [{self.risk.value}/{self.context.value}]"


# ── Payloads and test units ────────────────────────────────────

@dataclass(frozen=True)
class Payload:
    content: str
    category: PayloadCategory = PayloadCategory.BASE
    contexts: Tuple[str, ...] = ()
    severity: Risk = Risk.MEDIUM
    target: str = ""                      # file a path payload aims at
    id: str = field(default_factory=lambda: new_id("p_"), compare=False)


@dataclass
class TestUnit:
    __test__ = False  # not a pytest class

    endpoint: Endpoint
    payload: Payload
    marker: str
    priority: int
    status: UnitStatus = UnitStatus.PENDING
    attempts: int = 0
    created_at: float = field(default_factory=time.time)
    not_before: float = 0.0               # monotonic time, set by retry backoff


# ── Detection ──────────────────────────────────────────────────

@dataclass
class SensitiveFinding:
    type: str
    count: int
    samples: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {"type": self.type, "count": self.count, "samples": list(self.samples)}


@dataclass
class DetectionResult:
    vulnerable: bool = False
    confidence: float = 0.0
    matched_signatures: List[str] = field(default_factory=list)
    file_type: Optional[str] = None
    sensitive_data: List[SensitiveFinding] = field(default_factory=list)
    reflected: bool = False


@dataclass
class Observation:
    """One record of the event-sourced observation log."""
    marker: str
    target: str
    change_kind: str                      # "response", "header", "attribute", ...
    old_value: Optional[str]
    new_value: Optional[str]
    timestamp: float = field(default_factory=time.time)


@dataclass
class DispatchOutcome:
    status: UnitStatus
    duration: float
    detail: str = ""
    detection: Optional[DetectionResult] = None
    retryable: bool = True
    url: str = ""


# ── Reporting ──────────────────────────────────────────────────

def iso_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


@dataclass
class VulnRecord:
    url: str
    endpoint_name: str
    payload: str
    target_file: str
    confidence: float
    matched_signatures: List[str]
    sensitive_data: List[SensitiveFinding]
    timestamp_iso: str = field(default_factory=iso_now)

    def to_dict(self) -> Dict:
        return {
            "url": self.url,
            "endpointName": self.endpoint_name,
            "payload": self.payload,
            "targetFile": self.target_file,
            "confidence": self.confidence,
            "matchedSignatures": list(self.matched_signatures),
            "sensitiveData": [s.to_dict() for s in self.sensitive_data],
            "timestampIso": self.timestamp_iso,
        }

    def __str__(self):
        return (f"{self.endpoint_name} @ {self.url} - payload={self.payload!r} "
                f"({self.confidence:.2f}% {', '.join(self.matched_signatures)})")


@dataclass
class ScanReport:
    tested: int = 0
    vulnerable: List[VulnRecord] = field(default_factory=list)
    errors: int = 0
    duration_ms: int = 0

    def to_dict(self) -> Dict:
        return {
            "tested": self.tested,
            "vulnerable": [v.to_dict() for v in self.vulnerable],
            "errors": self.errors,
            "durationMs": self.duration_ms,
        }
