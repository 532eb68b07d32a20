"""Where a value lands in a page.

find_reflections() locates every verbatim occurrence of a value in the raw
markup and tags each one with the context enclosing it:

  inside <script>...</script>       -> javascript
  inside <style>...</style>         -> css
  inside an on* attribute           -> javascript
  inside a style attribute          -> css
  inside href/src/action/...        -> url
  inside any other tag attribute    -> attribute
  anywhere else                     -> html
"""

import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from webfuzzer.core.models import Context

MIN_REFLECTION_LEN = 3
SNIPPET_RADIUS = 50

URL_ATTRS = ("href", "src", "action", "formaction", "data", "poster", "srcset")

# Most telling first. URL comes last: a parameter value always shows up in
# the link that carries it.
PRECEDENCE = (Context.JAVASCRIPT, Context.CSS, Context.ATTRIBUTE, Context.HTML, Context.URL)

_RAW_TEXT = re.compile(r"<(script|style)\b[^>]*>(.*?)</\1\s*>", re.I | re.S)
_OPEN_ATTR = re.compile(r"""([\w:.-]+)\s*=\s*(?:"[^"]*|'[^']*|[^\s"'>]*)$""")


@dataclass
class Reflection:
    position: int
    context: Context
    snippet: str

    def to_dict(self) -> Dict:
        return {"position": self.position, "context": self.context.value,
                "snippet": self.snippet}


def attribute_context(name: str) -> Context:
    name = name.lower()
    if name.startswith("on"):
        return Context.JAVASCRIPT
    if name == "style":
        return Context.CSS
    if name in URL_ATTRS:
        return Context.URL
    return Context.ATTRIBUTE


def context_at(html: str, pos: int) -> Context:
    """Context of the markup enclosing offset *pos*."""
    for m in _RAW_TEXT.finditer(html):
        if m.start(2) <= pos < m.end(2):
            return Context.JAVASCRIPT if m.group(1).lower() == "script" else Context.CSS
        if m.start() > pos:
            break

    tag_open = html.rfind("<", 0, pos)
    if tag_open != -1 and tag_open > html.rfind(">", 0, pos):
        attr = _OPEN_ATTR.search(html, tag_open, pos)
        return attribute_context(attr.group(1)) if attr else Context.ATTRIBUTE
    return Context.HTML


def find_reflections(html: str, value: str) -> List[Reflection]:
    """Every verbatim occurrence of *value* in *html* with its context."""
    if not html or not value or len(value) < MIN_REFLECTION_LEN:
        return []
    out = []
    start = html.find(value)
    while start != -1:
        end = start + len(value)
        out.append(Reflection(
            start, context_at(html, start),
            html[max(0, start - SNIPPET_RADIUS):end + SNIPPET_RADIUS]))
        start = html.find(value, end)
    return out


def dominant_context(reflections: Iterable[Reflection]) -> Optional[Context]:
    found = {r.context for r in reflections}
    for context in PRECEDENCE:
        if context in found:
            return context
    return None
