"""
Tests for batch classification.
"""

import threading
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest

from inbox_classifier.batch import BatchClassifier
from inbox_classifier.classifier import EmailClassifier
from inbox_classifier.config import AIProvider, Settings
from inbox_classifier.errors import CredentialError, RateLimitError, ValidationError
from inbox_classifier.models import Message
from inbox_classifier.taxonomy import EmailCategory


def _make_message(message_id: str) -> Message:
    """Create a minimal Message for batch tests."""
    return Message(
        id=message_id,
        sender=f"{message_id}@example.com",
        subject=f"Subject {message_id}",
        preview="Preview",
        sent_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        classification_concurrency=4,
        classification_timeout_seconds=5,
    )


def _batch_with(settings, classify_with) -> tuple[BatchClassifier, MagicMock]:
    """Build a BatchClassifier whose provider replies come from ``classify_with``."""
    classifier = MagicMock(spec=EmailClassifier)
    chat = MagicMock()
    chat.provider = AIProvider.OPENAI
    classifier.open_provider.return_value = chat
    classifier.classify_with.side_effect = classify_with
    return BatchClassifier(settings, classifier=classifier), classifier


def test_single_failure_keeps_every_message(settings) -> None:
    def classify_with(chat, message):
        if message.id == "m2":
            raise RateLimitError("slow down", provider="OpenAI")
        return "Social"

    batch, _ = _batch_with(settings, classify_with)
    messages = [_make_message(f"m{i}") for i in range(1, 5)]

    result = batch.classify_batch(messages, "openai", "sk-test")

    assert [item.id for item in result.classified] == ["m1", "m2", "m3", "m4"]
    assert result.partial_failure_count == 1
    assert result.classified[1].category is EmailCategory.GENERAL
    assert {item.category for i, item in enumerate(result.classified) if i != 1} == {
        EmailCategory.SOCIAL
    }
    assert result.failures[0].message_id == "m2"
    assert result.failures[0].kind == "quota"


def test_unexpected_exception_is_a_partial_failure(settings) -> None:
    def classify_with(chat, message):
        raise KeyError("boom")

    batch, _ = _batch_with(settings, classify_with)

    result = batch.classify_batch([_make_message("m1")], "openai", "sk-test")

    assert result.classified[0].category is EmailCategory.GENERAL
    assert result.partial_failure_count == 1
    assert result.failures[0].kind == "unknown"


def test_output_order_matches_input_when_calls_finish_out_of_order(settings) -> None:
    last_done = threading.Event()

    def classify_with(chat, message):
        if message.id == "m0":
            # Finish only after the last message has completed.
            last_done.wait(timeout=5)
            return "Important"
        if message.id == "m2":
            last_done.set()
            return "Spam"
        return "Marketing"

    batch, _ = _batch_with(settings, classify_with)
    messages = [_make_message(f"m{i}") for i in range(3)]

    result = batch.classify_batch(messages, "openai", "sk-test")

    assert [item.id for item in result.classified] == ["m0", "m1", "m2"]
    assert [item.category for item in result.classified] == [
        EmailCategory.IMPORTANT,
        EmailCategory.MARKETING,
        EmailCategory.SPAM,
    ]


def test_unparseable_reply_is_not_a_partial_failure(settings) -> None:
    replies = {"a": "Promotional", "b": "SPAM!!", "c": ""}
    batch, _ = _batch_with(settings, lambda chat, message: replies[message.id])

    result = batch.classify_batch(
        [_make_message("a"), _make_message("b"), _make_message("c")],
        "openai",
        "sk-test",
    )

    assert [item.category for item in result.classified] == [
        EmailCategory.PROMOTIONAL,
        EmailCategory.SPAM,
        EmailCategory.GENERAL,
    ]
    assert result.partial_failure_count == 0
    assert result.unparsed_ids == ["c"]


def test_classified_messages_keep_message_fields(settings) -> None:
    batch, _ = _batch_with(settings, lambda chat, message: "Social")
    message = _make_message("m1")

    result = batch.classify_batch([message], "openai", "sk-test")

    classified = result.classified[0]
    assert classified.sender == message.sender
    assert classified.sent_at == message.sent_at
    assert classified.body == message.body


def test_deadline_marks_unfinished_calls_as_failed(settings) -> None:
    release = threading.Event()

    def classify_with(chat, message):
        if message.id == "slow":
            release.wait(timeout=5)
        return "Important"

    batch, _ = _batch_with(settings, classify_with)

    try:
        result = batch.classify_batch(
            [_make_message("fast"), _make_message("slow")],
            "openai",
            "sk-test",
            timeout=0.2,
        )
    finally:
        release.set()

    assert [item.id for item in result.classified] == ["fast", "slow"]
    assert result.classified[0].category is EmailCategory.IMPORTANT
    assert result.classified[1].category is EmailCategory.GENERAL
    assert result.partial_failure_count == 1
    assert result.failures[0].kind == "timeout"


def test_rejected_credential_aborts_batch(settings) -> None:
    def classify_with(chat, message):
        raise CredentialError("Invalid OpenAI API key.", provider="OpenAI")

    batch, _ = _batch_with(settings, classify_with)

    with pytest.raises(CredentialError) as exc_info:
        batch.classify_batch(
            [_make_message("m1"), _make_message("m2")], "openai", "bad-key"
        )

    assert exc_info.value.status_code == 401


def test_missing_credential_fails_before_any_call(settings) -> None:
    batch = BatchClassifier(settings)

    with patch("inbox_classifier.providers.OpenAI") as mock_openai:
        with pytest.raises(ValidationError) as exc_info:
            batch.classify_batch([_make_message("m1")], "openai", "")

    assert exc_info.value.message == "OpenAI API key is required"
    mock_openai.assert_not_called()


def test_empty_batch_returns_empty_result(settings) -> None:
    batch, classifier = _batch_with(settings, lambda chat, message: "Spam")

    result = batch.classify_batch([], "openai", "sk-test")

    assert result.classified == []
    assert result.partial_failure_count == 0
    classifier.classify_with.assert_not_called()


def test_end_to_end_with_patched_sdk(settings) -> None:
    """Real classifier and parser with the OpenAI SDK patched at the import site."""
    with patch("inbox_classifier.providers.OpenAI") as mock_openai:
        mock_openai.return_value.chat.completions.create.return_value = MagicMock(
            choices=[MagicMock(message=MagicMock(content="  social. "))]
        )
        batch = BatchClassifier(settings)

        result = batch.classify_batch([_make_message("m1")], "openai", "sk-test")

    assert result.classified[0].category is EmailCategory.SOCIAL
    mock_openai.assert_called_once_with(api_key="sk-test", max_retries=0, timeout=30.0)


class _TooManyRequests(Exception):
    status_code = 429


def test_rate_limited_reply_is_sent_once(settings) -> None:
    """A 429 from the SDK is reported as a quota failure after a single request."""
    with patch("inbox_classifier.providers.OpenAI") as mock_openai:
        create = mock_openai.return_value.chat.completions.create
        create.side_effect = _TooManyRequests("Too Many Requests")
        batch = BatchClassifier(settings)

        result = batch.classify_batch([_make_message("m1")], "openai", "sk-test")

    assert create.call_count == 1
    assert mock_openai.call_args.kwargs["max_retries"] == 0
    assert result.classified[0].category is EmailCategory.GENERAL
    assert result.partial_failure_count == 1
    assert result.failures[0].kind == "quota"
