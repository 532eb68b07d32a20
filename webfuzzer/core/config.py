"""Scan configuration, named profiles and validation."""

from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Tuple

from webfuzzer.core.errors import ConfigurationError
from webfuzzer.core.models import Risk


@dataclass
class DiscoveryConfig:
    """Filters applied after discovery, in declaration order."""
    targets: List[str] = field(default_factory=list)      # names or type values
    exclude: List[str] = field(default_factory=list)
    min_risk: Optional[str] = None
    testable_only: bool = True
    categories: List[str] = field(default_factory=list)


@dataclass
class GeneratorOptions:
    base: bool = True
    mutations: Optional[List[str]] = None   # None → every mutation
    encodings: List[str] = field(default_factory=lambda: ["url", "html"])
    obfuscation: bool = False
    path_vectors: bool = True
    max_depth: int = 8
    null_bytes: bool = True
    wrappers: bool = True
    blind_callback: Optional[str] = None
    max_payloads: Optional[int] = None
    sample: bool = False
    seed: int = 1337

    def cache_key(self) -> str:
        muts = "all" if self.mutations is None else ",".join(self.mutations)
        return "|".join(str(x) for x in (
            self.base, muts, ",".join(self.encodings), self.obfuscation,
            self.path_vectors, self.max_depth, self.null_bytes, self.wrappers,
            self.blind_callback, self.max_payloads, self.sample, self.seed,
        ))


@dataclass
class ScanConfig:
    max_concurrent: int = 5
    test_delay: float = 0.1          # seconds between batches
    settle_delay: float = 0.0        # seconds between injection and detection query
    request_timeout: float = 10.0
    max_retries: int = 3
    retry_backoff: float = 0.0       # 0 → retried units are re-dispatched right away
    max_tests: Optional[int] = None
    crawl_depth: int = 1
    verify_tls: bool = False
    proxy: Optional[str] = None
    target_files: List[str] = field(default_factory=lambda: ["/etc/passwd", "/etc/shadow"])
    path_contexts: Tuple[str, ...] = ("url",)
    discovery: DiscoveryConfig = field(default_factory=DiscoveryConfig)
    generator: GeneratorOptions = field(default_factory=GeneratorOptions)

    @classmethod
    def from_profile(cls, name: str, **overrides) -> "ScanConfig":
        if name not in PROFILES:
            raise ConfigurationError(
                f"unknown profile {name!r} (choose from {', '.join(PROFILES)})")
        return replace(cls(), **{**PROFILES[name], **overrides})

    def validate(self) -> None:
        """Raise ConfigurationError listing every problem found."""
        errors: List[str] = []
        if not 1 <= self.max_concurrent <= 20:
            errors.append("max_concurrent must be between 1 and 20")
        if self.test_delay < 0:
            errors.append("test_delay must be >= 0")
        if self.settle_delay < 0:
            errors.append("settle_delay must be >= 0")
        if self.retry_backoff < 0:
            errors.append("retry_backoff must be >= 0")
        if self.request_timeout <= 0:
            errors.append("request_timeout must be > 0")
        if self.max_retries < 1:
            errors.append("max_retries must be >= 1")
        if self.max_tests is not None and self.max_tests < 1:
            errors.append("max_tests must be >= 1")
        if self.generator.max_depth < 1:
            errors.append("generator.max_depth must be >= 1")
        errors.extend(discovery_errors(self.discovery))
        if errors:
            raise ConfigurationError("; ".join(errors))


def discovery_errors(cfg: DiscoveryConfig) -> List[str]:
    errors: List[str] = []
    if cfg.min_risk is not None and cfg.min_risk not in {r.value for r in Risk}:
        errors.append(f"unknown min_risk {cfg.min_risk!r}")
    known = set(CATEGORIES)
    for cat in cfg.categories:
        if cat not in known:
            errors.append(f"unknown endpoint category {cat!r}")
    return errors


# ── Profiles ───────────────────────────────────────────────────

CATEGORIES = (
    "navigation", "form", "mutable-content", "storage", "messaging",
    "advanced", "api", "template", "platform",
)

PROFILES: Dict[str, Dict] = {
    "quick": {"max_concurrent": 10, "test_delay": 0.05, "max_tests": 100,
              "crawl_depth": 0},
    "deep": {"max_concurrent": 5, "test_delay": 0.1, "crawl_depth": 2},
    "stealth": {"max_concurrent": 1, "test_delay": 1.0, "crawl_depth": 1},
    "aggressive": {"max_concurrent": 20, "test_delay": 0.0, "crawl_depth": 3},
}
