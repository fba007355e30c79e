"""Pydantic data models used across the application.

Objective:
    Centralize all strongly-typed data structures representing:
    - Raw message payloads returned by the Gmail API
    - Normalized messages handed to the classifier
    - Classification outputs and batch results
    - Fetch and pipeline results returned to callers

Design notes:
    - Raw Gmail models use Pydantic aliases to match Gmail field names
      (e.g. ``mimeType`` -> :attr:`MessagePart.mime_type`) and are lenient:
      every field has a default so partial payloads still validate.
    - :class:`Message` serializes ``preview`` as ``snippet`` and ``sent_at``
      as ``date``, the field names used by the JSON API.
    - ``model_config = ConfigDict(populate_by_name=True)`` is used to allow
      constructing models with either alias names or pythonic field names.

High-level structure:
    - Gmail primitives:
        - :class:`MessagePartHeader`
        - :class:`MessagePartBody`
        - :class:`MessagePart`
        - :class:`GmailMessage`
    - Pipeline primitives:
        - :class:`Message`
        - :class:`ClassifiedMessage`
        - :class:`ClassificationRequest`
        - :class:`ClassificationFailure`
        - :class:`BatchResult`
    - Caller-facing results:
        - :class:`FetchResult`
        - :class:`PipelineResult`

Call tree usage:
    - :class:`inbox_classifier.normalizer.MessageNormalizer`:
        - validates Gmail payloads into :class:`GmailMessage`, returns :class:`Message`
    - :class:`inbox_classifier.batch.BatchClassifier`:
        - returns :class:`BatchResult`
    - :class:`inbox_classifier.orchestrator.PipelineOrchestrator`:
        - returns :class:`FetchResult` and :class:`PipelineResult`
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .config import AIProvider
from .taxonomy import CATEGORIES, EmailCategory


class MessagePartHeader(BaseModel):
    """Single MIME header: ``{"name": "From", "value": "..."}``."""

    name: str = ""
    value: str = ""


class MessagePartBody(BaseModel):
    """Body of a MIME part. ``data`` is base64url encoded when present."""

    data: Optional[str] = None
    size: int = 0
    attachment_id: Optional[str] = Field(default=None, alias="attachmentId")

    model_config = ConfigDict(populate_by_name=True)


class MessagePart(BaseModel):
    """
    A node of the MIME tree.

    Leaf parts carry a :attr:`body`; multipart containers carry child
    :attr:`parts`. The top-level ``payload`` of a Gmail message is itself a
    part.

    Attributes:
        part_id: Gmail part identifier.
        mime_type: MIME type, e.g. ``text/plain`` or ``multipart/alternative``.
        filename: Attachment file name (empty for inline parts).
        headers: MIME headers of this part.
        body: Part body.
        parts: Child parts.
    """

    part_id: str = Field(default="", alias="partId")
    mime_type: str = Field(default="", alias="mimeType")
    filename: str = ""
    headers: list[MessagePartHeader] = Field(default_factory=list)
    body: MessagePartBody = Field(default_factory=MessagePartBody)
    parts: list[MessagePart] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("headers", "parts", mode="before")
    @classmethod
    def _none_as_empty_list(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("body", mode="before")
    @classmethod
    def _none_as_empty_body(cls, value: Any) -> Any:
        return {} if value is None else value

    def header(self, name: str) -> Optional[str]:
        """Get a header value by name, case-insensitively.

        Args:
            name: Header name.

        Returns:
            Optional[str]: First matching value, or None when absent.
        """
        name_lower = name.lower()
        for header in self.headers:
            if header.name.lower() == name_lower:
                return header.value
        return None


class GmailMessage(BaseModel):
    """
    Message resource returned by ``users.messages.get``.

    Attributes:
        id: Provider-assigned id. Payloads without one are skipped.
        thread_id: Thread id.
        snippet: Short plain-text preview generated by Gmail.
        payload: Root MIME part.
        label_ids: Gmail label ids.
    """

    id: Optional[str] = None
    thread_id: Optional[str] = Field(default=None, alias="threadId")
    snippet: str = ""
    payload: MessagePart = Field(default_factory=MessagePart)
    label_ids: list[str] = Field(default_factory=list, alias="labelIds")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("payload", mode="before")
    @classmethod
    def _none_as_empty_payload(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("snippet", mode="before")
    @classmethod
    def _none_as_empty_snippet(cls, value: Any) -> Any:
        return "" if value is None else value


class Message(BaseModel):
    """
    Flat, immutable message record produced by the normalizer.

    Attributes:
        id: Provider-assigned message id.
        sender: Raw ``From`` header value.
        subject: Subject line.
        preview: Short preview text (``snippet`` on the wire).
        sent_at: Send timestamp (``date`` on the wire).
        body: Extracted body text; defaults to the preview.
    """

    id: str = Field(min_length=1)
    sender: str
    subject: str
    preview: str = Field(default="", alias="snippet")
    sent_at: datetime = Field(alias="date")
    body: str = ""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @model_validator(mode="before")
    @classmethod
    def _default_body_to_preview(cls, data: Any) -> Any:
        """Fill an empty body with the preview text."""
        if isinstance(data, dict) and not data.get("body"):
            preview = data.get("preview", data.get("snippet"))
            if preview:
                data = {**data, "body": preview}
        return data


class ClassifiedMessage(Message):
    """A :class:`Message` with its assigned category."""

    category: EmailCategory

    @classmethod
    def from_message(cls, message: Message, category: EmailCategory) -> ClassifiedMessage:
        """Attach a category to a message.

        Args:
            message: Normalized message.
            category: Assigned category.

        Returns:
            ClassifiedMessage: New classified record.
        """
        return cls(**message.model_dump(), category=category)


class ClassificationRequest(BaseModel):
    """
    Validated input of one classify call.

    The credential is excluded from ``repr`` and serialization so it can
    never end up in logs or stored results.
    """

    provider: AIProvider
    credential: str = Field(min_length=1, repr=False, exclude=True)
    messages: list[Message] = Field(default_factory=list)


class ClassificationFailure(BaseModel):
    """
    A per-message classification failure.

    Attributes:
        message_id: Id of the message that fell back to General.
        kind: Failure kind (``auth``, ``quota``, ``timeout``...).
        reason: Human-readable description.
    """

    message_id: str
    kind: str
    reason: str = ""


class BatchResult(BaseModel):
    """
    Result of classifying one batch.

    Attributes:
        classified: One entry per input message, in input order.
        partial_failure_count: Number of messages whose provider call failed.
        failures: Details of each partial failure.
        unparsed_ids: Messages whose model output matched no label.
    """

    classified: list[ClassifiedMessage] = Field(default_factory=list)
    partial_failure_count: int = 0
    failures: list[ClassificationFailure] = Field(default_factory=list)
    unparsed_ids: list[str] = Field(default_factory=list)

    def grouped(self) -> dict[EmailCategory, list[ClassifiedMessage]]:
        return group_by_category(self.classified)


class FetchResult(BaseModel):
    """
    Result of fetching messages from the mailbox.

    Attributes:
        success: Whether the fetch succeeded.
        messages: Normalized messages, most recent first.
        error: Error message if failed.
        status_code: HTTP-style status for callers exposing this over a network.
    """

    success: bool = True
    messages: list[Message] = Field(default_factory=list)
    error: Optional[str] = None
    status_code: int = 200


class PipelineResult(BaseModel):
    """
    Result of a classify or fetch-and-classify run.

    This is the primary output type returned to the CLI and web API.

    Attributes:
        success: Whether the run succeeded.
        classified: Classified messages in input order.
        partial_failure_count: Messages that fell back to General because their
            provider call failed.
        error: Error message if failed.
        status_code: HTTP-style status.
    """

    success: bool = True
    classified: list[ClassifiedMessage] = Field(default_factory=list)
    partial_failure_count: int = 0
    error: Optional[str] = None
    status_code: int = 200

    def grouped(self) -> dict[EmailCategory, list[ClassifiedMessage]]:
        return group_by_category(self.classified)


def group_by_category(
    items: list[ClassifiedMessage],
) -> dict[EmailCategory, list[ClassifiedMessage]]:
    """Group classified messages by category in display order.

    Every category is present as a key, possibly with an empty list. Input
    order is kept within each group.

    Args:
        items: Classified messages.

    Returns:
        dict[EmailCategory, list[ClassifiedMessage]]: Grouped messages.
    """
    groups: dict[EmailCategory, list[ClassifiedMessage]] = {
        category: [] for category in CATEGORIES
    }
    for item in items:
        groups[item.category].append(item)
    return groups
