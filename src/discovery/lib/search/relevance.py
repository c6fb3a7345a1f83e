"""Query matching, relevance tiers and result highlights.

An item matches a query when the text occurs (case-insensitively) in its
title, description, category or tags.  Its relevance is the score of the
first matching tier::

    tier 1  title        0.9
    tier 2  description  0.7
    tier 3  category     0.6
    tier 4  other        0.3   (tags only, or an empty query)
"""

from ...models import Item

TIER_SCORES: dict[int, float] = {1: 0.9, 2: 0.7, 3: 0.6, 4: 0.3}

# Characters of context kept on each side of a description match.
EXCERPT_CONTEXT = 40


def _contains(field: str | None, needle: str) -> bool:
    return bool(field) and needle in field.lower()


def match_tier(item: Item, text: str) -> int | None:
    """Relevance tier of *item* for *text*, or ``None`` when it does not match."""
    needle = text.strip().lower()
    if not needle:
        return 4
    if _contains(item.title, needle):
        return 1
    if _contains(item.description, needle):
        return 2
    if _contains(item.category, needle):
        return 3
    if any(needle in tag.lower() for tag in item.tags):
        return 4
    return None


def excerpt(text: str, needle: str, context: int = EXCERPT_CONTEXT) -> str:
    idx = text.lower().find(needle)
    if idx < 0:
        return text[: context * 2]
    start = max(0, idx - context)
    end = min(len(text), idx + len(needle) + context)
    snippet = text[start:end]
    if start > 0:
        snippet = "..." + snippet
    if end < len(text):
        snippet += "..."
    return snippet


def highlights(item: Item, text: str) -> list[str]:
    needle = text.strip().lower()
    if not needle:
        return []
    out: list[str] = []
    if _contains(item.title, needle):
        out.append(f"**{item.title}**")
    if _contains(item.description, needle):
        out.append(excerpt(item.description, needle))
    if _contains(item.category, needle):
        out.append(f"Category: {item.category}")
    out.extend(f"Tag: {tag}" for tag in item.tags if needle in tag.lower())
    return out
