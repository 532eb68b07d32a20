"""Report serialisers: JSON document, markdown summary, per-category stats."""

import json
from typing import Dict, Iterable

from webfuzzer.core.models import ScanReport, TestUnit, UnitStatus


def to_json(report: ScanReport) -> str:
    return json.dumps(report.to_dict(), indent=2)


def to_markdown(report: ScanReport) -> str:
    lines = [
        "# Fuzzing Results",
        "",
        f"**Tested:** {report.tested}",
        f"**Vulnerable:** {len(report.vulnerable)}",
        f"**Errors:** {report.errors}",
        f"**Duration:** {report.duration_ms}ms",
        "",
    ]
    for i, vuln in enumerate(report.vulnerable, 1):
        lines += [
            f"## Vulnerability {i}",
            "",
            f"- **URL:** {vuln.url}",
            f"- **Parameter:** {vuln.endpoint_name}",
            f"- **Payload:** `{vuln.payload}`",
        ]
        if vuln.target_file:
            lines.append(f"- **Target file:** {vuln.target_file}")
        lines.append(f"- **Confidence:** {vuln.confidence:.2f}%")
        if vuln.matched_signatures:
            lines.append(f"- **Signatures:** {', '.join(vuln.matched_signatures)}")
        if vuln.sensitive_data:
            lines.append("- **Sensitive data:**")
            for finding in vuln.sensitive_data:
                lines.append(f"  - {finding.type}: {finding.count}")
        lines.append("")
    return "\n".join(lines)


def payload_stats(units: Iterable[TestUnit]) -> Dict[str, Dict[str, int]]:
    """vulnerable/safe/error counts per payload category, for terminal units only."""
    stats: Dict[str, Dict[str, int]] = {}
    for unit in units:
        if not unit.status.terminal:
            continue
        row = stats.setdefault(unit.payload.category.value,
                               {s.value: 0 for s in UnitStatus if s.terminal})
        row[unit.status.value] += 1
    return stats
