from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from services.gmail_service import GmailResource, GmailService
from services.persistence_service import MessageStore

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class IngestResult:
    listed: int
    saved: int


class IngestService:
    """Download messages that are not yet in the local store."""

    def __init__(self, gmail: GmailService, store: MessageStore, max_pages: int = 10):
        self._gmail = gmail
        self._store = store
        self._max_pages = max_pages

    def persist_unseen(self, query: Optional[str] = None) -> IngestResult:
        """List the inbox, then fetch and store every message we have not seen.

        ``listed`` counts sparse messages returned by the list endpoint and
        ``saved`` the full messages retrieved and stored.
        """

        sparse = self._gmail.list_all_messages(query=query, max_pages=self._max_pages)
        unseen = self.omit_known(sparse)
        saved = 0
        for message in unseen:
            full = self._gmail.get_message(message["id"])
            self._store.save_message(full)
            saved += 1
        LOGGER.info("Listed %s messages, saved %s new", len(sparse), saved)
        return IngestResult(listed=len(sparse), saved=saved)

    def omit_known(self, sparse: List[GmailResource]) -> List[GmailResource]:
        for message in sparse:
            if not message.get("id"):
                raise ValueError("message lacks id")
        known = self._store.known_ids(message["id"] for message in sparse)
        seen = set(known)
        unseen: List[GmailResource] = []
        for message in sparse:
            # the list endpoint can repeat an id across pages
            if message["id"] in seen:
                continue
            seen.add(message["id"])
            unseen.append(message)
        return unseen
