from __future__ import annotations

import json
import logging
from collections import Counter
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Mapping

LOGGER = logging.getLogger(__name__)


class StatisticsService:
    """JSON-backed counters for ingest and tagging runs, globally and per account."""

    def __init__(self, stats_file: Path):
        self._stats_file = stats_file
        self._stats_file.parent.mkdir(parents=True, exist_ok=True)
        if not self._stats_file.exists() or not self._stats_file.read_text(encoding="utf-8").strip():
            self._write({})

    def _read(self) -> Dict:
        try:
            return json.loads(self._stats_file.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            LOGGER.warning("Stats file was corrupt, resetting %s", self._stats_file)
            self._write({})
            return {}

    def _write(self, payload: Dict) -> None:
        self._stats_file.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")

    def record_fetch(self, account: str, listed: int, saved: int) -> None:
        stats = self._read()
        for bucket in (stats, self._account_bucket(stats, account)):
            bucket["fetch_runs"] = bucket.get("fetch_runs", 0) + 1
            bucket["messages_listed"] = bucket.get("messages_listed", 0) + listed
            bucket["messages_saved"] = bucket.get("messages_saved", 0) + saved
        stats["last_fetch"] = _now()
        self._write(stats)

    def record_tagging(self, account: str, tagged: int, tag_counts: Mapping[str, int]) -> None:
        stats = self._read()
        for bucket in (stats, self._account_bucket(stats, account)):
            bucket["tag_runs"] = bucket.get("tag_runs", 0) + 1
            bucket["messages_tagged"] = bucket.get("messages_tagged", 0) + tagged
            tags = Counter(bucket.get("tags", {}))
            tags.update(tag_counts)
            bucket["tags"] = dict(tags)
        stats["last_tagging"] = _now()
        self._write(stats)

    def snapshot(self) -> Dict:
        return self._read()

    def _account_bucket(self, stats: Dict, account: str) -> Dict:
        accounts = stats.setdefault("accounts", {})
        return accounts.setdefault(account, {})


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()
