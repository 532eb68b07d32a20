"""Payload generator and mutator.

generate() walks a fixed pipeline (base selection, mutation, encoding,
obfuscation, path vectors, blind) and returns the merged variants in
generation order with duplicates removed. Stages are toggled through
GeneratorOptions.
"""

import random
import re
from dataclasses import replace
from typing import Callable, Dict, List, Optional, Tuple

from webfuzzer.core.config import GeneratorOptions
from webfuzzer.core.errors import PayloadEncodingFailure
from webfuzzer.core.library import PayloadLibrary
from webfuzzer.core.models import Payload, PayloadCategory as C, Risk
from webfuzzer.core.storage import KeyValueStore, MemoryStore
from webfuzzer.core.transforms import ENCODERS, MUTATIONS, OBFUSCATIONS
from webfuzzer.payloads import lfi, ssti, xss
from webfuzzer.payloads.blind import blind_payloads
from webfuzzer.reporters.console import NullLog

LIBRARY: Dict[str, List[str]] = {
    "basic": xss.BASIC,
    "advanced": xss.ADVANCED,
    "polyglot": xss.POLYGLOT,
    "mxss": xss.MXSS,
    "template": ssti.TEMPLATE,
}

GROUP_CATEGORY = {
    "basic": C.BASE,
    "advanced": C.ADVANCED,
    "polyglot": C.ADVANCED,
    "mxss": C.MUTATION,
    "template": C.ADVANCED,
}

CONTEXT_GROUPS: Dict[str, Tuple[str, ...]] = {
    "html": ("basic", "advanced", "mxss"),
    "attribute": ("basic", "advanced"),
    "javascript": ("advanced", "polyglot"),
    "json": ("advanced", "polyglot"),
    "css": ("advanced",),
    "svg": ("advanced",),
    "url": ("basic",),
    "storage": ("basic",),
    "template": ("template",),
}

SEVERITY = {
    C.BASE: Risk.MEDIUM,
    C.MUTATION: Risk.MEDIUM,
    C.ADVANCED: Risk.HIGH,
    C.WAF_BYPASS: Risk.HIGH,
    C.OBFUSCATED: Risk.HIGH,
    C.BLIND: Risk.HIGH,
    C.CUSTOM: Risk.HIGH,
}

_BARE_FILE = re.compile(r"[\w.-]+\.\w{1,8}")

Variant = Tuple[str, C]


def is_path_target(value: str) -> bool:
    """True when *value* names a file rather than an injection context."""
    if value in CONTEXT_GROUPS:
        return False
    if "/" in value or "\\" in value or lfi.is_windows_path(value):
        return True
    return bool(_BARE_FILE.fullmatch(value))


class PayloadGenerator:
    """
    Usage:
        gen = PayloadGenerator(store=MemoryStore())
        gen.generate("html", GeneratorOptions(encodings=["url"]))
        gen.generate("/etc/passwd", max_depth=2)
    """

    def __init__(self, store: Optional[KeyValueStore] = None, logger=None,
                 encoders: Optional[Dict[str, Callable[[str], str]]] = None,
                 library: Optional[PayloadLibrary] = None):
        self.store = store or MemoryStore()
        self.logger = logger or NullLog()
        self.library = library or PayloadLibrary(self.store, self.logger)
        self.encoders = {**ENCODERS, **(encoders or {})}
        self.failures: List[PayloadEncodingFailure] = []

    # ── public API ─────────────────────────────────────────────

    def generate(self, context_or_target: str, options: Optional[GeneratorOptions] = None,
                 **overrides) -> List[str]:
        return [p.content for p in self.generate_payloads(context_or_target, options, **overrides)]

    def generate_payloads(self, context_or_target: str,
                          options: Optional[GeneratorOptions] = None,
                          **overrides) -> List[Payload]:
        options = replace(options or GeneratorOptions(), **overrides)
        key = (f"payloads:{context_or_target}:{options.cache_key()}"
               f":{self.library.fingerprint()}")

        cached = self.store.get(key)
        if cached is not None:
            variants = [(content, C(cat)) for content, cat in cached]
        else:
            variants = self._cap(self._dedupe(self._pipeline(context_or_target, options)), options)
            self.store.set(key, [[content, cat.value] for content, cat in variants])
            self.logger.debug(f"Generated {len(variants)} payloads for {context_or_target!r}")

        path = is_path_target(context_or_target)
        contexts = () if path else (context_or_target,)
        target = context_or_target if path else ""
        return [
            Payload(content=content, category=cat, contexts=contexts,
                    severity=self.library.severity(content) if cat is C.CUSTOM else SEVERITY[cat],
                    target=target)
            for content, cat in variants
        ]

    # ── pipeline ───────────────────────────────────────────────

    def _pipeline(self, value: str, options: GeneratorOptions) -> List[Variant]:
        rng = random.Random(options.seed)
        path = is_path_target(value)

        bases = self._bases(value, path) if options.base else []
        out: List[Variant] = list(bases)

        names = list(MUTATIONS) if options.mutations is None else options.mutations
        for content, _ in bases:
            for name in names:
                for variant in MUTATIONS[name](content, rng):
                    out.append((variant, C.MUTATION))

        for content, _ in bases:
            for scheme in options.encodings:
                encoded = self._encode(scheme, content)
                if encoded is not None:
                    out.append((encoded, C.WAF_BYPASS))

        if options.obfuscation:
            for content, _ in bases:
                for name, fn in OBFUSCATIONS.items():
                    obfuscated = self._apply(name, fn, content)
                    if obfuscated is not None:
                        out.append((obfuscated, C.OBFUSCATED))

        if path and options.path_vectors:
            out.extend(self._path_vectors(value, options))

        if options.blind_callback:
            out.extend((p, C.BLIND) for p in blind_payloads(options.blind_callback))

        return out

    def _bases(self, value: str, path: bool) -> List[Variant]:
        if path:
            return [(value, C.BASE)]
        groups = CONTEXT_GROUPS.get(value)
        if groups is None:
            self.logger.warn(f"Unknown context {value!r}, falling back to basic payloads")
            groups = ("basic",)
        out = [(p, GROUP_CATEGORY[g]) for g in groups for p in LIBRARY[g]]
        out += [(e.content, C.CUSTOM) for e in self.library.for_context(value)]
        return out

    def _path_vectors(self, target: str, options: GeneratorOptions) -> List[Variant]:
        out: List[Variant] = []
        if lfi.is_windows_path(target):
            rel = target[2:].lstrip("/\\")
        else:
            rel = target.lstrip("/\\")

        # Traversal: token × depth, bare and with a leading separator
        for depth in range(1, options.max_depth + 1):
            for token in lfi.TRAVERSAL_TOKENS:
                backslash = "\\" in token or token.endswith("5c")
                rel_t = rel.replace("/", "\\") if backslash else rel
                category = C.BASE if token in ("../", "..\\") else C.WAF_BYPASS
                prefix = token * depth
                out.append((prefix + rel_t, category))
                out.append(("/" + prefix + rel_t, category))

        if options.null_bytes:
            for nb in lfi.NULL_BYTES:
                for ext in lfi.NULL_BYTE_EXTENSIONS:
                    out.append((f"{target}{nb}{ext}", C.WAF_BYPASS))
                out.append(("../" * options.max_depth + rel + nb, C.WAF_BYPASS))

        if options.wrappers:
            for wrapper in lfi.WRAPPERS:
                out.append((wrapper + target, C.WAF_BYPASS))

        for confusion in lfi.WAF_CONFUSION:
            out.append((confusion + rel, C.WAF_BYPASS))

        if lfi.is_windows_path(target):
            out.append((target.replace("/", "\\"), C.WAF_BYPASS))
            out.append((target.replace("\\", "/"), C.WAF_BYPASS))

        for lead in ("/", "//", "///"):
            out.append((lead + rel, C.BASE))
        return out

    # ── helpers ────────────────────────────────────────────────

    def _encode(self, scheme: str, content: str) -> Optional[str]:
        encoder = self.encoders.get(scheme)
        if encoder is None:
            failure = PayloadEncodingFailure(scheme, content, KeyError(scheme))
            self.failures.append(failure)
            self.logger.warn(str(failure))
            return None
        return self._apply(scheme, encoder, content)

    def _apply(self, name: str, fn: Callable[[str], str], content: str) -> Optional[str]:
        try:
            return fn(content)
        except Exception as exc:
            failure = PayloadEncodingFailure(name, content, exc)
            self.failures.append(failure)
            self.logger.debug(str(failure))
            return None

    @staticmethod
    def _dedupe(variants: List[Variant]) -> List[Variant]:
        seen = set()
        uniq = []
        for content, cat in variants:
            if content and content not in seen:
                seen.add(content)
                uniq.append((content, cat))
        return uniq

    @staticmethod
    def _cap(variants: List[Variant], options: GeneratorOptions) -> List[Variant]:
        limit = options.max_payloads
        if not limit or len(variants) <= limit:
            return variants
        if options.sample:
            picked = sorted(random.Random(options.seed).sample(range(len(variants)), limit))
            return [variants[i] for i in picked]
        return variants[:limit]
