"""Fixed category taxonomy.

The six labels are referenced by:
    - the LLM prompt (labels and their definitions)
    - the response parser (matching model text back to a label)
    - result grouping in the CLI and web API

Order matters: it is the display order, and the parser tries labels in this
order when looking for substring matches.
"""

from enum import Enum
from typing import Optional


class EmailCategory(str, Enum):
    """Canonical set of categories. Values are the user-facing labels."""

    IMPORTANT = "Important"
    PROMOTIONAL = "Promotional"
    SOCIAL = "Social"
    MARKETING = "Marketing"
    SPAM = "Spam"
    GENERAL = "General"


CATEGORIES: tuple[EmailCategory, ...] = tuple(EmailCategory)

# Assigned when parsing or the provider call does not yield a label
FALLBACK_CATEGORY = EmailCategory.GENERAL

CATEGORY_DESCRIPTIONS: dict[EmailCategory, str] = {
    EmailCategory.IMPORTANT: "Certifications, exams, payments, security alerts, urgent work/personal matters",
    EmailCategory.PROMOTIONAL: "Sales, discounts, shopping deals from retailers",
    EmailCategory.SOCIAL: "Facebook, LinkedIn, Twitter, Instagram, friend/family messages",
    EmailCategory.MARKETING: "Tech company updates, newsletters, product announcements, tips",
    EmailCategory.SPAM: "Phishing, scams, suspicious content",
    EmailCategory.GENERAL: "Welcome emails, account setup, generic notifications",
}

_BY_LOWER = {category.value.lower(): category for category in CATEGORIES}


def category_labels() -> list[str]:
    """Return the category labels in display order."""
    return [category.value for category in CATEGORIES]


def lookup_category(label: Optional[str]) -> Optional[EmailCategory]:
    """Find a category by label, ignoring case and surrounding whitespace.

    Args:
        label: Candidate label.

    Returns:
        Optional[EmailCategory]: Matching category, or None.
    """
    if not label:
        return None
    return _BY_LOWER.get(label.strip().lower())


def is_category(label: Optional[str]) -> bool:
    """Case-insensitive membership test against the taxonomy."""
    return lookup_category(label) is not None
