"""Anti-CSRF token handling for form injection.

  1. Form fields that look like CSRF tokens are discovered as non-testable.
  2. Before a form is submitted with a payload, fresh token values are
     fetched from the page that hosts the form.
"""

import re
from typing import Dict, List

import httpx

from webfuzzer.core.crawler import parse_page


# ── Token field name patterns ──────────────────────────────────

_CSRF_PATTERNS = [
    re.compile(r"csrf", re.I),
    re.compile(r"xsrf", re.I),
    re.compile(r"token", re.I),
    re.compile(r"nonce", re.I),
    re.compile(r"authenticity", re.I),
    re.compile(r"__RequestVerificationToken", re.I),
    re.compile(r"csrfmiddlewaretoken", re.I),   # Django
    re.compile(r"form_key", re.I),              # Magento
    re.compile(r"anti[-_]?forgery", re.I),
]

# Field names that are NOT CSRF tokens even if they match patterns above
_CSRF_EXCLUSIONS = [
    re.compile(r"^(username|password|email|search|query|q|s|id|name|url)$", re.I),
    re.compile(r"^(file|host|lang|page|action|submit|button|type)$", re.I),
]


def is_csrf_field(field_name: str) -> bool:
    """Check if a form field name looks like an anti-CSRF token."""
    if any(excl.search(field_name) for excl in _CSRF_EXCLUSIONS):
        return False
    return any(pat.search(field_name) for pat in _CSRF_PATTERNS)


def detect_csrf_fields(params: Dict) -> List[str]:
    """Return list of parameter names that look like CSRF tokens."""
    return [name for name in params if is_csrf_field(name)]


def extract_hidden_inputs(html: str) -> Dict[str, str]:
    """Hidden input name→value pairs across every form of the page."""
    hidden: Dict[str, str] = {}
    for form in parse_page(html).forms:
        for name in form.hidden:
            hidden[name] = form.inputs.get(name, "")
    return hidden


async def fetch_csrf_tokens(
    client: httpx.AsyncClient,
    page_url: str,
    csrf_fields: List[str],
) -> Dict[str, str]:
    """Fetch the page and extract fresh CSRF token values.

    Returns a dict of field_name → fresh_token_value; fields that could not
    be refreshed are left out so the caller keeps its previous value.
    Network errors propagate to the caller.
    """
    if not csrf_fields:
        return {}

    resp = await client.get(page_url, follow_redirects=True)
    if resp.status_code != 200:
        return {}
    hidden = extract_hidden_inputs(resp.text or "")
    return {name: hidden[name] for name in csrf_fields if name in hidden}
