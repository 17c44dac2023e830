"""Inline markup rendering for post content.

Posts are written with a small inline markup and stored already rendered:

    **bold**   -> <strong>bold</strong>
    *italic*   -> <em>italic</em>
    __under__  -> <u>under</u>

The replacements run once, left to right, in exactly this order. Nested or
adjacent markers are not balanced; e.g. ``*a **b** c*`` renders the bold pair
first. Clients depend on this output, so the order must not change.
"""

from __future__ import annotations

import re

_RULES: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"\*\*(.*?)\*\*"), r"<strong>\1</strong>"),
    (re.compile(r"\*(.*?)\*"), r"<em>\1</em>"),
    (re.compile(r"__(.*?)__"), r"<u>\1</u>"),
)


def render_markup(raw: str) -> str:
    """Render raw post markup into the stored HTML form."""
    rendered = raw
    for pattern, replacement in _RULES:
        rendered = pattern.sub(replacement, rendered)
    return rendered
