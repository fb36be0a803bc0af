from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple


@dataclass(frozen=True, slots=True)
class KeywordList:
    """Named collection of stemmed words and literal phrases used to score a document."""

    name: str
    threshold: float
    words: Tuple[str, ...] = ()
    phrases: Tuple[str, ...] = ()
    description: str = ""
    # phrases are regular expressions unless this is set
    literal_phrases: bool = False


@dataclass(frozen=True, slots=True)
class KeywordConfig:
    """Parsed keyword lists, built once and shared read-only by the workers."""

    lists: Tuple[KeywordList, ...]
    source: Optional[Path] = None

    def names(self) -> List[str]:
        return [lst.name for lst in self.lists]

    def __len__(self) -> int:
        return len(self.lists)


@dataclass(slots=True)
class WordCountProfile:
    body: str
    words: List[str] = field(default_factory=list)
    word_counts: Dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class Evaluation:
    hits: int
    frequency: float
