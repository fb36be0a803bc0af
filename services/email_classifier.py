from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping

from models.keyword_list import KeywordConfig
from services.content_service import extract_plaintext_content
from utils.classify import relative_frequencies, tag

LOGGER = logging.getLogger(__name__)

# Applied when no plaintext body could be pulled out of a message.
UNTAGGABLE = "untaggable"


class EmailClassifier:
    """Tag Gmail message resources against a fixed set of keyword lists."""

    def __init__(self, keywords: KeywordConfig):
        self.keywords = keywords

    def classify(self, message: Mapping[str, Any]) -> List[str]:
        body = extract_plaintext_content(message)
        if not body:
            LOGGER.warning("Could not extract plaintext body for %s", message.get("id"))
            return [UNTAGGABLE]
        tags = tag(body, self.keywords.lists)
        LOGGER.debug("Message %s classified as %s", message.get("id"), tags)
        return tags

    def classify_text(self, text: str) -> List[str]:
        return tag(text, self.keywords.lists)

    def frequencies(self, text: str) -> Dict[str, float]:
        return relative_frequencies(text, self.keywords.lists)
