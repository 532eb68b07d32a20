"""String transforms used by the payload generator.

Every function here is pure: str in, str (or list of str) out. Mutations
take a seeded random.Random so a generation run is reproducible.
"""

import base64
import random
import re
from typing import Callable, Dict, List
from urllib.parse import quote


# ── Encoders ───────────────────────────────────────────────────

def url_encode(s: str) -> str:
    return quote(s, safe="")


def double_url_encode(s: str) -> str:
    return quote(quote(s, safe=""), safe="")


def hex_encode(s: str) -> str:
    return "".join(f"%{b:02x}" for b in s.encode("utf-8"))


def base64_encode(s: str) -> str:
    return base64.b64encode(s.encode("utf-8")).decode("ascii")


def unicode_escape(s: str) -> str:
    out = []
    for ch in s:
        code = ord(ch)
        if code > 0xFFFF:
            # JS escapes are UTF-16 code units
            code -= 0x10000
            out.append(f"\\u{0xD800 + (code >> 10):04x}\\u{0xDC00 + (code & 0x3FF):04x}")
        else:
            out.append(f"\\u{code:04x}")
    return "".join(out)


def html_entity_encode(s: str) -> str:
    return "".join(f"&#{ord(ch)};" for ch in s)


def mixed_encode(s: str) -> str:
    """Rotate between %XX, &#NN; and the raw character."""
    out = []
    for i, ch in enumerate(s):
        if i % 3 == 0:
            out.append(quote(ch, safe=""))
        elif i % 3 == 1:
            out.append(f"&#{ord(ch)};")
        else:
            out.append(ch)
    return "".join(out)


ENCODERS: Dict[str, Callable[[str], str]] = {
    "url": url_encode,
    "double-url": double_url_encode,
    "hex": hex_encode,
    "base64": base64_encode,
    "unicode": unicode_escape,
    "html": html_entity_encode,
    "mixed": mixed_encode,
}


# ── Mutations ──────────────────────────────────────────────────

_TAG_OPEN = re.compile(r"<(\w+)")


def random_case(s: str, rng: random.Random) -> str:
    return "".join(c.upper() if rng.random() > 0.5 else c.lower() for c in s)


def case_variants(s: str, rng: random.Random) -> List[str]:
    return [s.lower(), s.upper(), random_case(s, rng)]


def whitespace_variants(s: str, rng: random.Random) -> List[str]:
    return [re.sub(r"\s", sub, s) for sub in ("", "/**/", "%20", "\t", "\n")]


def quote_variants(s: str, rng: random.Random) -> List[str]:
    return [
        s.replace('"', "'"),
        s.replace("'", '"'),
        re.sub(r"[\"']", "`", s),
        s.replace('"', "&quot;"),
        s.replace("'", "&#39;"),
    ]


def tag_variants(s: str, rng: random.Random) -> List[str]:
    return [
        _TAG_OPEN.sub("<\\1\x00", s),
        _TAG_OPEN.sub("<\\1<!---->", s),
        _TAG_OPEN.sub('<\\1 x="y"', s),
    ]


MUTATIONS: Dict[str, Callable[[str, random.Random], List[str]]] = {
    "case": case_variants,
    "whitespace": whitespace_variants,
    "quote": quote_variants,
    "tag": tag_variants,
}


# ── Obfuscation ────────────────────────────────────────────────

def string_concatenation(code: str) -> str:
    return re.sub(r"'([^']+)'", lambda m: "+".join(f"'{c}'" for c in m.group(1)), code)


def char_code_array(code: str) -> str:
    return f"String.fromCharCode({','.join(str(ord(c)) for c in code)})"


def eval_base64(code: str) -> str:
    return f"eval(atob('{base64_encode(code)}'))"


OBFUSCATIONS: Dict[str, Callable[[str], str]] = {
    "concat": string_concatenation,
    "charcode": char_code_array,
    "eval-base64": eval_base64,
}
