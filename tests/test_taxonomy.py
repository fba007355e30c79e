from inbox_classifier.taxonomy import (
    CATEGORIES,
    CATEGORY_DESCRIPTIONS,
    FALLBACK_CATEGORY,
    EmailCategory,
    category_labels,
    is_category,
    lookup_category,
)


def test_taxonomy_has_six_labels_in_display_order() -> None:
    assert category_labels() == [
        "Important",
        "Promotional",
        "Social",
        "Marketing",
        "Spam",
        "General",
    ]
    assert FALLBACK_CATEGORY is EmailCategory.GENERAL
    assert set(CATEGORY_DESCRIPTIONS) == set(CATEGORIES)


def test_lookup_is_case_insensitive() -> None:
    assert lookup_category(" social ") is EmailCategory.SOCIAL
    assert lookup_category("MARKETING") is EmailCategory.MARKETING
    assert lookup_category("Newsletter") is None
    assert lookup_category(None) is None


def test_is_category() -> None:
    assert is_category("spam")
    assert not is_category("")
    assert not is_category("Junk")
