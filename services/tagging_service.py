from __future__ import annotations

import logging
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from models.email_message import StoredMessage
from services.email_classifier import UNTAGGABLE, EmailClassifier
from services.gmail_service import GmailService
from services.persistence_service import MessageStore

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class TaggingResult:
    tagged: int = 0
    batches: int = 0
    tag_counts: Counter[str] = field(default_factory=Counter)


class TaggingService:
    """Classify untagged stored messages in batches and persist their tags."""

    def __init__(
        self,
        classifier: EmailClassifier,
        store: MessageStore,
        batch_size: int = 10,
        max_workers: int = 4,
        max_batches: int = 1000,
        gmail: Optional[GmailService] = None,
        label_prefix: str = "inbox-tagger/",
    ):
        self._classifier = classifier
        self._store = store
        self._batch_size = batch_size
        self._max_workers = max_workers
        self._max_batches = max_batches
        self._gmail = gmail
        self._label_prefix = label_prefix
        self._label_cache: Dict[str, str] = {}

    def tag_untagged(self) -> TaggingResult:
        """Drain untagged messages batch by batch until none remain or ``max_batches`` is hit."""

        result = TaggingResult()
        with ThreadPoolExecutor(max_workers=self._max_workers) as pool:
            for _ in range(self._max_batches):
                batch = self._store.untagged(self._batch_size)
                if not batch:
                    break
                all_tags = list(pool.map(lambda message: self._classifier.classify(message.data), batch))
                for message, tags in zip(batch, all_tags):
                    self._persist(message, tags)
                    result.tag_counts.update(tags)
                result.tagged += len(batch)
                result.batches += 1
            else:
                LOGGER.warning("Stopped after %s batches; untagged messages may remain", self._max_batches)
        LOGGER.info("Tagged %s messages in %s batches", result.tagged, result.batches)
        return result

    def _persist(self, message: StoredMessage, tags: Sequence[str]) -> None:
        self._store.save_tags(message.id, tags)
        LOGGER.info("Tagged %s with %s", message.gmail_id, ", ".join(tags) if tags else "<no tags>")
        if self._gmail is not None:
            self._apply_labels(message.gmail_id, tags)

    def _apply_labels(self, gmail_id: str, tags: Sequence[str]) -> None:
        names = [f"{self._label_prefix}{name}" for name in tags if name != UNTAGGABLE]
        if not names:
            return
        missing = [name for name in names if name not in self._label_cache]
        if missing:
            for name, label in self._gmail.ensure_labels(missing).items():
                self._label_cache[name] = label["id"]
        label_ids: List[str] = [self._label_cache[name] for name in names]
        self._gmail.label_message(gmail_id, label_ids)
