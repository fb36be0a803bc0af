from __future__ import annotations

from typing import Any, Dict, List, Optional

import pytest

from models.keyword_list import KeywordConfig
from services.email_classifier import UNTAGGABLE, EmailClassifier
from services.ingest_service import IngestService
from services.persistence_service import MessageStore
from services.tagging_service import TaggingService

THEFT = "Corporate espionage to steal IP is theft of intellectual property."
CLEAN = "Lunch on Friday? The usual place works for me."


class FakeGmail:
    def __init__(self, listed: List[Dict[str, Any]], full: Dict[str, Dict[str, Any]]):
        self.listed = listed
        self.full = full
        self.fetched: List[str] = []
        self.labelled: List[tuple] = []
        self.ensured: List[List[str]] = []

    def list_all_messages(self, query: Optional[str] = None, max_pages: int = 10) -> List[Dict[str, Any]]:
        return list(self.listed)

    def get_message(self, message_id: str) -> Dict[str, Any]:
        self.fetched.append(message_id)
        return self.full[message_id]

    def ensure_labels(self, names: List[str]) -> Dict[str, Dict[str, str]]:
        self.ensured.append(list(names))
        return {name: {"id": f"id:{name}", "name": name} for name in names}

    def label_message(self, message_id: str, label_ids: List[str]) -> Dict[str, Any]:
        self.labelled.append((message_id, list(label_ids)))
        return {}


@pytest.fixture
def store(tmp_path) -> MessageStore:
    return MessageStore(tmp_path / "messages.db")


def test_persist_unseen_skips_known_messages(store, make_message):
    full = {gid: make_message(gid, CLEAN) for gid in ("a", "b", "c")}
    store.save_message(full["a"])
    gmail = FakeGmail([{"id": "a"}, {"id": "b"}, {"id": "c"}, {"id": "b"}], full)

    result = IngestService(gmail, store).persist_unseen()

    assert (result.listed, result.saved) == (4, 2)
    assert gmail.fetched == ["b", "c"]
    assert store.count() == 3


def test_persist_unseen_rejects_sparse_message_without_id(store):
    gmail = FakeGmail([{"threadId": "t"}], {})
    with pytest.raises(ValueError):
        IngestService(gmail, store).persist_unseen()


def test_tag_untagged_drains_every_batch(store, keyword_config: KeywordConfig, make_message):
    for i in range(7):
        store.save_message(make_message(f"theft{i}", THEFT))
    store.save_message(make_message("clean", CLEAN))
    store.save_message(make_message("empty"))

    service = TaggingService(EmailClassifier(keyword_config), store, batch_size=2, max_workers=2)
    result = service.tag_untagged()

    assert result.tagged == 9
    assert result.batches == 5
    assert result.tag_counts == {"theft": 7, UNTAGGABLE: 1}
    assert store.count("untagged") == 0
    assert store.count("clean") == 1
    assert store.count("suspicious") == 8


def test_tag_untagged_stops_at_max_batches(store, keyword_config: KeywordConfig, make_message):
    for i in range(5):
        store.save_message(make_message(f"m{i}", CLEAN))

    service = TaggingService(EmailClassifier(keyword_config), store, batch_size=2, max_batches=2)
    result = service.tag_untagged()

    assert result.tagged == 4
    assert store.count("untagged") == 1


def test_tag_untagged_with_nothing_to_do(store, keyword_config: KeywordConfig):
    result = TaggingService(EmailClassifier(keyword_config), store).tag_untagged()
    assert result.tagged == 0
    assert result.batches == 0


def test_retagging_overwrites_previous_tags(store, keyword_config: KeywordConfig, make_message):
    row_id = store.save_message(make_message("a", THEFT))
    store.save_tags(row_id, ["fraud", "conspiracy"])
    store.clear_tags()

    TaggingService(EmailClassifier(keyword_config), store).tag_untagged()

    assert store.get(row_id).tags == ["theft"]


def test_tags_become_gmail_labels(store, keyword_config: KeywordConfig, make_message):
    store.save_message(make_message("a", THEFT))
    store.save_message(make_message("b", THEFT))
    store.save_message(make_message("c"))
    gmail = FakeGmail([], {})

    TaggingService(EmailClassifier(keyword_config), store, gmail=gmail, label_prefix="tags/").tag_untagged()

    assert gmail.ensured == [["tags/theft"]]
    assert gmail.labelled == [("a", ["id:tags/theft"]), ("b", ["id:tags/theft"])]
