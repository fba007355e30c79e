"""Email body decoding and text cleanup.

Objective:
    Convert raw MIME body data returned by the Gmail API (base64url encoded,
    often HTML) into compact plain text for display and LLM prompting.

Responsibilities:
    - Decode base64url part data without ever raising.
    - Strip HTML markup (including ``<script>``/``<style>`` content).
    - Normalize and compress whitespace.
    - Parse RFC 2822 ``Date`` headers.

High-level call tree:
    - :func:`decode_body_data`
    - :func:`html_to_text`
        - :func:`extract_text_from_html`
        - :func:`collapse_whitespace`
    - :func:`parse_header_date`
    - :func:`truncate`
"""

import base64
import binascii
import logging
import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Optional

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)


def decode_body_data(data: str) -> str:
    """Decode base64url MIME body data to text.

    Gmail strips the ``=`` padding, so padding is restored before decoding.
    Bytes that are not valid UTF-8 are replaced rather than rejected.

    A decoding failure never raises: the raw, undecoded string is returned so
    that one broken part cannot abort extraction of the others.

    Args:
        data: base64url encoded data.

    Returns:
        str: Decoded text, or ``data`` unchanged if it cannot be decoded.
    """
    if not data:
        return ""

    try:
        padded = data + "=" * (-len(data) % 4)
        raw = base64.b64decode(padded.encode("ascii"), altchars=b"-_", validate=True)
        return raw.decode("utf-8", errors="replace")
    except (binascii.Error, ValueError, UnicodeError) as e:
        logger.debug("Failed to decode body data, keeping raw content: %s", e)
        return data


def collapse_whitespace(text: str) -> str:
    """Replace every whitespace run with a single space and trim."""
    if not text:
        return ""
    return re.sub(r"\s+", " ", text).strip()


def extract_text_from_html(html_content: str) -> str:
    """Extract plain text from HTML.

    Removes non-content elements and returns the visible text, with a space
    between elements so adjacent words do not run together.

    Args:
        html_content: Raw HTML string.

    Returns:
        str: Extracted plain text.
    """
    if not html_content:
        return ""

    soup = BeautifulSoup(html_content, "html.parser")

    # Remove script and style elements
    for element in soup(["script", "style", "head", "meta", "link"]):
        element.decompose()

    return soup.get_text(separator=" ")


def html_to_text(html_content: str) -> str:
    """Strip markup from an HTML body and collapse whitespace.

    Args:
        html_content: Raw HTML string.

    Returns:
        str: Single-line plain text.
    """
    return collapse_whitespace(extract_text_from_html(html_content))


def parse_header_date(value: Optional[str]) -> Optional[datetime]:
    """Parse an RFC 2822 ``Date`` header.

    Naive results (``-0000`` zone) are treated as UTC.

    Args:
        value: Raw header value.

    Returns:
        Optional[datetime]: Timezone-aware datetime, or None if missing or
        unparseable.
    """
    if not value or not value.strip():
        return None

    try:
        parsed = parsedate_to_datetime(value.strip())
    except (TypeError, ValueError, IndexError):
        return None

    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def truncate(text: str, max_length: int) -> str:
    """Truncate text to ``max_length`` characters, adding an ellipsis."""
    if len(text) <= max_length:
        return text
    return text[:max_length] + "..."
