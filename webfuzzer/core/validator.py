"""Signature-based response validation.

validate(text, target) is a pure function: it never touches the network and
the same inputs always give the same DetectionResult.
"""

import re
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from webfuzzer.core.models import DetectionResult, SensitiveFinding

# Error pages would otherwise match generic signatures
NEGATIVE_INDICATORS = ("404", "403", "500", "not found", "forbidden", "access denied")

SIGNATURES: Dict[str, List[str]] = {
    # Unix
    "passwd": ["root:", "daemon:", "bin:", "sys:", "/bin/bash", "/bin/sh",
               "/sbin/nologin", "nobody:", "www-data:"],
    "shadow": ["root:$", "root:!", "daemon:*", ":$1$", ":$6$", "::0:0:99999:"],
    "apache_log": ["GET /", "POST /", "HTTP/1.", "Mozilla/", "User-Agent:",
                   '" 200 ', '" 404 '],
    "php_config": ["<?php", "define(", "DB_HOST", "DB_USER", "DB_PASSWORD",
                   "DB_NAME", "$db_host", "$db_user", "$db_pass"],
    # Windows
    "win.ini": ["[fonts]", "[extensions]", "[mci extensions]", "[files]", "[Mail]"],
    "boot.ini": ["[boot loader]", "[operating systems]", "multi(", "partition(", "rdisk("],
    "web.config": ["<configuration>", "<appSettings>", "<connectionStrings>",
                   "add key=", "add name="],
    # Generic
    "config_file": ["password", "passwd", "secret", "api_key", "apikey", "token",
                    "database", "connection", "credentials"],
    "source_code": ["function ", "class ", "import ", "require(", "include(",
                    "namespace ", "use "],
}

# (needles in target, signature sets, file type); first match wins
FILE_TYPES: List[Tuple[Tuple[str, ...], Tuple[str, ...], str]] = [
    (("passwd",), ("passwd",), "passwd"),
    (("shadow",), ("shadow",), "shadow"),
    (("win.ini",), ("win.ini",), "win.ini"),
    (("boot.ini",), ("boot.ini",), "boot.ini"),
    (("web.config",), ("web.config",), "web.config"),
    (("log",), ("apache_log",), "log"),
    ((".php", "config"), ("php_config",), "config"),
]
GENERIC = (("config_file", "source_code"), "generic")

SENSITIVE_PATTERNS: Dict[str, re.Pattern] = {
    "password": re.compile(r"password[\"\s:=]+([^\s\"'<>]+)", re.I),
    "api_key": re.compile(r"api[_-]?key[\"\s:=]+([^\s\"'<>]+)", re.I),
    "secret": re.compile(r"secret[\"\s:=]+([^\s\"'<>]+)", re.I),
    "token": re.compile(r"token[\"\s:=]+([^\s\"'<>]+)", re.I),
    "database": re.compile(r"db[_-]?(host|user|pass|name)[\"\s:=]+([^\s\"'<>]+)", re.I),
    "email": re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}"),
    "ip_address": re.compile(r"\b(?:\d{1,3}\.){3}\d{1,3}\b"),
    "private_key": re.compile(r"-----BEGIN (RSA |DSA )?PRIVATE KEY-----", re.I),
}

MAX_SAMPLES = 3

ConfidenceFn = Callable[[int, int], float]


def ratio_confidence(matched: int, total: int) -> float:
    """Fraction of the selected signatures present, as a percentage."""
    if not matched or not total:
        return 0.0
    return min(matched / total * 100, 100.0)


class Validator:
    def __init__(self,
                 negative_indicators: Sequence[str] = NEGATIVE_INDICATORS,
                 signatures: Optional[Dict[str, List[str]]] = None,
                 confidence: ConfidenceFn = ratio_confidence,
                 threshold: float = 0.0):
        self.negative_indicators = tuple(i.lower() for i in negative_indicators)
        self.signatures = signatures or SIGNATURES
        self.confidence = confidence
        self.threshold = threshold

    def select(self, target: str) -> Tuple[str, List[str]]:
        """Pick (file_type, signatures) for *target*."""
        lowered = (target or "").lower()
        for needles, sets, file_type in FILE_TYPES:
            if any(n in lowered for n in needles):
                return file_type, [s for name in sets for s in self.signatures[name]]
        sets, file_type = GENERIC
        return file_type, [s for name in sets for s in self.signatures[name]]

    def validate(self, text: str, target: str) -> DetectionResult:
        folded = (text or "").lower()
        if any(ind in folded for ind in self.negative_indicators):
            return DetectionResult()

        file_type, signatures = self.select(target)
        matched = [sig for sig in signatures if sig.lower() in folded]
        confidence = self.confidence(len(matched), len(signatures)) if matched else 0.0
        confidence = max(0.0, min(confidence, 100.0))

        return DetectionResult(
            vulnerable=bool(matched) and confidence > self.threshold,
            confidence=confidence,
            matched_signatures=matched,
            file_type=file_type,
            sensitive_data=extract_sensitive(text or ""),
        )


def extract_sensitive(text: str) -> List[SensitiveFinding]:
    findings = []
    for kind, rx in SENSITIVE_PATTERNS.items():
        matches = [m.group(0) for m in rx.finditer(text)]
        if matches:
            findings.append(SensitiveFinding(kind, len(matches), matches[:MAX_SAMPLES]))
    return findings


_default = Validator()


def validate(text: str, target: str) -> DetectionResult:
    return _default.validate(text, target)
