from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from email.utils import parsedate_to_datetime
from typing import Any, Dict, Mapping, Optional, Sequence

import html2text

from models.email_message import EmailMessage, StoredMessage

LOGGER = logging.getLogger(__name__)

PLAINTEXT = "plaintext"
HTML = "html"
UNKNOWN = "unknown"

MIME_TO_CONTENT_TYPE: Dict[str, str] = {
    "text/plain": PLAINTEXT,
    "text/html": HTML,
}

# Searched top-down when picking the part that holds the body.
PREFERRED_MIMETYPES = ("text/plain", "text/html")

# A body containing one of these is treated as HTML.
HTML_MARKERS = ("<html>", "<head>", "<body>", "<table>")


@dataclass(slots=True)
class Content:
    kind: str
    body: str


def decode_base64(data: str) -> str:
    """Decode Gmail's URL-safe base64 body data into text."""

    padded = data + "=" * (-len(data) % 4)
    try:
        raw = base64.urlsafe_b64decode(padded)
    except ValueError:
        LOGGER.debug("Body data was not valid base64")
        return ""
    return raw.decode("utf-8", errors="replace")


def content_type_for(mime_type: Optional[str]) -> str:
    if not mime_type:
        return UNKNOWN
    return MIME_TO_CONTENT_TYPE.get(mime_type, UNKNOWN)


def categorize(body: str) -> str:
    haystack = body.lower()
    if any(marker in haystack for marker in HTML_MARKERS):
        return HTML
    return PLAINTEXT


def select_part(parts: Sequence[Mapping[str, Any]]) -> Mapping[str, Any]:
    """Pick the message part we prefer to read the body from.

    A ``multipart/alternative`` container holds the real alternatives, so we
    descend into it first. Otherwise the first part with data is taken in
    ``PREFERRED_MIMETYPES`` order, falling back to the first part.
    """

    for part in parts:
        if part.get("mimeType") == "multipart/alternative" and part.get("parts"):
            return select_part(part["parts"])

    for preferred in PREFERRED_MIMETYPES:
        for part in parts:
            if part.get("mimeType") == preferred and _part_data(part):
                return part
    return parts[0]


def extract_content(message: Mapping[str, Any]) -> Optional[Content]:
    """Extract the most useful text content from a Gmail message resource.

    The payload body is preferred, then the parts.
    """

    payload = message.get("payload")
    if not payload:
        return None

    body_data = _part_data(payload)
    if body_data:
        body = decode_base64(body_data)
        return Content(kind=categorize(body), body=body)

    parts = payload.get("parts")
    if not parts:
        return None
    preferred = select_part(parts)
    part_data = _part_data(preferred)
    if not part_data:
        return None
    return Content(kind=content_type_for(preferred.get("mimeType")), body=decode_base64(part_data))


def extract_plaintext_content(message: Mapping[str, Any]) -> Optional[str]:
    """Return plaintext content for a message, stripping HTML if that is all there is."""

    content = extract_content(message)
    if content is None:
        return None
    if content.kind == PLAINTEXT:
        return content.body
    return strip_html(content.body)


def strip_html(html: str) -> str:
    if not html:
        return ""
    converter = html2text.HTML2Text()
    converter.ignore_links = True
    converter.ignore_images = True
    converter.ignore_emphasis = True
    converter.body_width = 0
    converter.unicode_snob = True
    return converter.handle(html).strip()


def headers_to_dict(headers: Sequence[Mapping[str, str]]) -> Dict[str, str]:
    mapped: Dict[str, str] = {}
    for header in headers:
        name = header.get("name", "").lower()
        mapped[name] = header.get("value", "")
    return mapped


def simplify(stored: StoredMessage) -> EmailMessage:
    """Build a display view of a stored message."""

    data = stored.data
    headers = headers_to_dict((data.get("payload") or {}).get("headers", []))
    received_at = stored.received_at
    if received_at is None and (date_header := headers.get("date")):
        try:
            received_at = parsedate_to_datetime(date_header)
        except (TypeError, ValueError):
            LOGGER.debug("Unable to parse date header: %s", date_header)
    return EmailMessage(
        id=stored.id,
        gmail_id=stored.gmail_id,
        subject=headers.get("subject", "(no subject)"),
        body=extract_plaintext_content(data),
        snippet=data.get("snippet", ""),
        sender=headers.get("from"),
        tags=list(stored.tags or []),
        received_at=received_at,
    )


def _part_data(part: Mapping[str, Any]) -> Optional[str]:
    body = part.get("body") or {}
    return body.get("data") or None
