"""Raw Gmail payload normalization.

Objective:
    Convert a ``users.messages.get`` response into a flat
    :class:`inbox_classifier.models.Message` (sender, subject, preview,
    timestamp, body text).

Body extraction order (first hit wins):
    1. A single inline body on the root payload is decoded.
    2. Otherwise the part tree is walked depth-first and the first
       ``text/plain`` part with data is decoded.
    3. Otherwise the first ``text/html`` part is decoded, its markup stripped
       and its whitespace collapsed.
    4. Otherwise the Gmail snippet is used.

High-level call tree:
    - :class:`MessageNormalizer`
        - :meth:`MessageNormalizer.normalize_all`
            - :meth:`MessageNormalizer.normalize`
                - :meth:`MessageNormalizer.extract_body`
                    - :func:`find_part`
                    - :func:`inbox_classifier.sanitizer.decode_body_data`
                    - :func:`inbox_classifier.sanitizer.html_to_text`
                - :func:`inbox_classifier.sanitizer.parse_header_date`

Operational notes:
    - Normalization never raises. A payload without an id, or one that is not
      shaped like a message at all, is skipped (``None``) with a log entry.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Optional, Union

from pydantic import ValidationError

from .models import GmailMessage, Message, MessagePart
from .sanitizer import decode_body_data, html_to_text, parse_header_date

logger = logging.getLogger(__name__)

DEFAULT_SENDER = "Unknown Sender"
DEFAULT_SUBJECT = "(No Subject)"

RawPayload = Union[GmailMessage, dict[str, Any]]


def find_part(parts: Iterable[MessagePart], mime_type: str) -> Optional[MessagePart]:
    """Depth-first search for the first part of a MIME type that has data.

    Args:
        parts: Parts to search.
        mime_type: MIME type to look for (compared case-insensitively).

    Returns:
        Optional[MessagePart]: First matching part, or None.
    """
    for part in parts:
        if part.mime_type.lower() == mime_type and part.body.data:
            return part
        found = find_part(part.parts, mime_type)
        if found is not None:
            return found
    return None


class MessageNormalizer:
    """
    Normalizes raw Gmail message payloads.

    The normalizer is stateless apart from its clock, which tests replace to
    pin the default timestamp.

    Attributes:
        clock: Callable returning the current time, used when the ``Date``
            header is missing or unparseable.
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None) -> None:
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def _coerce(self, raw: RawPayload) -> Optional[GmailMessage]:
        if isinstance(raw, GmailMessage):
            return raw
        try:
            return GmailMessage.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"Skipping malformed message payload: {e}")
            return None

    def extract_body(self, payload: MessagePart) -> str:
        """
        Extract body text from a MIME tree.

        Args:
            payload: Root MIME part.

        Returns:
            str: Body text, or an empty string if nothing was extractable.
        """
        if payload.body.data:
            return decode_body_data(payload.body.data)

        plain = find_part(payload.parts, "text/plain")
        if plain is not None:
            return decode_body_data(plain.body.data or "")

        html = find_part(payload.parts, "text/html")
        if html is not None:
            return html_to_text(decode_body_data(html.body.data or ""))

        return ""

    def normalize(self, raw: RawPayload) -> Optional[Message]:
        """
        Normalize one payload.

        Args:
            raw: Gmail message resource (dict or validated model).

        Returns:
            Optional[Message]: Normalized message, or None when the payload
            must be skipped.
        """
        gmail_message = self._coerce(raw)
        if gmail_message is None:
            return None

        if not gmail_message.id:
            logger.warning("Skipping message payload without an id")
            return None

        payload = gmail_message.payload
        sender = payload.header("From") or DEFAULT_SENDER
        subject = payload.header("Subject") or DEFAULT_SUBJECT

        sent_at = parse_header_date(payload.header("Date"))
        if sent_at is None:
            logger.debug(f"No usable Date header on {gmail_message.id}; using current time")
            sent_at = self.clock()

        snippet = gmail_message.snippet or ""
        body = self.extract_body(payload) or snippet

        return Message(
            id=gmail_message.id,
            sender=sender,
            subject=subject,
            preview=snippet,
            sent_at=sent_at,
            body=body,
        )

    def normalize_all(self, raws: Iterable[RawPayload]) -> list[Message]:
        """
        Normalize a batch of payloads, preserving order.

        Skipped payloads produce no entry. A repeated id keeps only its first
        occurrence so ids stay unique within the batch.

        Args:
            raws: Raw payloads in provider order.

        Returns:
            list[Message]: Normalized messages.
        """
        seen: set[str] = set()
        messages = []
        for raw in raws:
            message = self.normalize(raw)
            if message is None:
                continue
            if message.id in seen:
                logger.warning(f"Dropping duplicate message id {message.id}")
                continue
            seen.add(message.id)
            messages.append(message)

        logger.debug(f"Normalized {len(messages)} messages")
        return messages
