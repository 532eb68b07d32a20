import json

from webfuzzer.core.models import (
    Payload, PayloadCategory, ScanReport, SensitiveFinding, TestUnit, UnitStatus, VulnRecord,
)
from webfuzzer.reporters.export import payload_stats, to_json, to_markdown
from conftest import make_endpoint


def sample_report():
    record = VulnRecord(
        url="http://t/view?file=..%2Fetc%2Fpasswd", endpoint_name="file",
        payload="../etc/passwd", target_file="/etc/passwd", confidence=55.5,
        matched_signatures=["root:", "/bin/bash"],
        sensitive_data=[SensitiveFinding("email", 2, ["a@b.io", "c@d.io"])],
        timestamp_iso="2024-01-01T00:00:00+00:00",
    )
    return ScanReport(tested=40, vulnerable=[record], errors=1, duration_ms=1234)


def test_json_report():
    doc = json.loads(to_json(sample_report()))

    assert doc["tested"] == 40
    assert doc["errors"] == 1
    assert doc["durationMs"] == 1234
    (vuln,) = doc["vulnerable"]
    assert vuln["endpointName"] == "file"
    assert vuln["targetFile"] == "/etc/passwd"
    assert vuln["matchedSignatures"] == ["root:", "/bin/bash"]
    assert vuln["sensitiveData"][0] == {"type": "email", "count": 2, "samples": ["a@b.io", "c@d.io"]}
    assert vuln["timestampIso"] == "2024-01-01T00:00:00+00:00"


def test_markdown_report():
    md = to_markdown(sample_report())

    assert md.startswith("# Fuzzing Results")
    assert "**Tested:** 40" in md
    assert "**Vulnerable:** 1" in md
    assert "**Duration:** 1234ms" in md
    assert "- **URL:** http://t/view?file=..%2Fetc%2Fpasswd" in md
    assert "- **Payload:** `../etc/passwd`" in md
    assert "- **Confidence:** 55.50%" in md
    assert "root:, /bin/bash" in md
    assert "  - email: 2" in md


def test_markdown_without_findings():
    md = to_markdown(ScanReport(tested=3))
    assert "**Vulnerable:** 0" in md
    assert "## Vulnerability" not in md


def test_payload_stats():
    def unit(category, status):
        return TestUnit(make_endpoint(), Payload("x", category=category), "fz", 0, status=status)

    stats = payload_stats([
        unit(PayloadCategory.BASE, UnitStatus.VULNERABLE),
        unit(PayloadCategory.BASE, UnitStatus.SAFE),
        unit(PayloadCategory.BASE, UnitStatus.SAFE),
        unit(PayloadCategory.WAF_BYPASS, UnitStatus.ERROR),
        unit(PayloadCategory.MUTATION, UnitStatus.PENDING),
    ])

    assert stats == {
        "base": {"vulnerable": 1, "safe": 2, "error": 0},
        "waf-bypass": {"vulnerable": 0, "safe": 0, "error": 1},
    }
