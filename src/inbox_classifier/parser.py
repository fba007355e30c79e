"""Model response parsing.

Objective:
    Map unconstrained model text back onto exactly one
    :class:`inbox_classifier.taxonomy.EmailCategory`.

Parsing strategy (first match wins):
    1. Clean: delete ``.,!?;:`` and newlines/tabs, collapse whitespace runs to
       one space, trim.
    2. Exact case-insensitive match against a label.
    3. Substring match: the cleaned text contains a label (labels tried in
       taxonomy order). Catches verbose replies such as
       "This looks Important to me".
    4. Token match: a whitespace-separated token equals a label.
    5. Fallback: General, flagged as unmatched and logged.

The order is load-bearing. Exact match runs before substring match so a
reply that is exactly one label is never shadowed by another label embedded
in it.

High-level call tree:
    - :func:`parse_category`
        - :func:`parse_response`
            - :func:`clean_response`
"""

import logging
import re
from typing import NamedTuple, Optional

from .taxonomy import CATEGORIES, FALLBACK_CATEGORY, EmailCategory

logger = logging.getLogger(__name__)

_STRIP_PATTERN = re.compile(r"[.,!?;:\n\r\t]")
_WHITESPACE_PATTERN = re.compile(r"\s+")


class ParseOutcome(NamedTuple):
    """Parsed category plus how it was found.

    Attributes:
        category: Parsed category (General when unmatched).
        matched: False when the text matched no label.
        strategy: ``exact``, ``substring``, ``token`` or ``fallback``.
    """

    category: EmailCategory
    matched: bool
    strategy: str


def clean_response(text: Optional[str]) -> str:
    """Strip punctuation and normalize whitespace in a model reply.

    Args:
        text: Raw model text.

    Returns:
        str: Cleaned text.
    """
    if not isinstance(text, str):
        return ""
    cleaned = _STRIP_PATTERN.sub("", text)
    cleaned = _WHITESPACE_PATTERN.sub(" ", cleaned)
    return cleaned.strip()


def parse_response(text: Optional[str]) -> ParseOutcome:
    """
    Parse model text into a category and report the matching strategy.

    This function is total: it never raises and always returns a member of
    the taxonomy.

    Args:
        text: Raw model text (None is treated as empty).

    Returns:
        ParseOutcome: Category, match flag and strategy.
    """
    cleaned = clean_response(text).lower()

    for category in CATEGORIES:
        if cleaned == category.value.lower():
            return ParseOutcome(category, True, "exact")

    for category in CATEGORIES:
        if category.value.lower() in cleaned:
            return ParseOutcome(category, True, "substring")

    tokens = cleaned.split()
    for category in CATEGORIES:
        if category.value.lower() in tokens:
            return ParseOutcome(category, True, "token")

    snippet = (text if isinstance(text, str) else "")[:100].replace("\n", "\\n")
    logger.warning(
        "Could not match category from response; defaulting to %s (response=%r)",
        FALLBACK_CATEGORY.value,
        snippet,
    )
    return ParseOutcome(FALLBACK_CATEGORY, False, "fallback")


def parse_category(text: Optional[str]) -> EmailCategory:
    """Parse model text into a category, falling back to General."""
    return parse_response(text).category
