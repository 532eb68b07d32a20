import pytest

from webfuzzer.core.context import (
    context_at, dominant_context, find_reflections,
)
from webfuzzer.core.models import Context


@pytest.mark.parametrize("html, context", [
    ("<script>var a = 'VAL';</script>", Context.JAVASCRIPT),
    ("<style>p { color: VAL }</style>", Context.CSS),
    ('<img src="x" onerror="go(\'VAL\')">', Context.JAVASCRIPT),
    ('<p style="width: VAL">', Context.CSS),
    ('<a title="t" href="/x?y=VAL">', Context.URL),
    ('<input value="VAL">', Context.ATTRIBUTE),
    ("<input VAL>", Context.ATTRIBUTE),
    ("<p>VAL</p>", Context.HTML),
    ("<script>1</script><p>VAL</p>", Context.HTML),
])
def test_context_at(html, context):
    assert context_at(html, html.index("VAL")) is context


def test_find_reflections_lists_every_occurrence():
    html = "<p>needle</p><script>x = 'needle'</script>"
    found = find_reflections(html, "needle")

    assert [r.context for r in found] == [Context.HTML, Context.JAVASCRIPT]
    assert found[0].position == 3
    assert "needle" in found[1].snippet
    assert dominant_context(found) is Context.JAVASCRIPT


def test_short_or_missing_values_are_not_searched():
    assert find_reflections("<p>ab</p>", "ab") == []
    assert find_reflections("", "needle") == []
    assert dominant_context([]) is None
