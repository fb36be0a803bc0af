from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, List, Mapping

import yaml

from models.keyword_list import KeywordConfig, KeywordList
from utils.text import stem

LOGGER = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s")

_BOOL_TAG = "tag:yaml.org,2002:bool"


class _KeywordLoader(yaml.SafeLoader):
    """SafeLoader that only reads true/false as booleans, so keywords like ``off`` or ``yes`` stay strings."""


_KeywordLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag != _BOOL_TAG]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}
_KeywordLoader.add_implicit_resolver(
    _BOOL_TAG,
    re.compile(r"^(?:true|True|TRUE|false|False|FALSE)$"),
    list("tTfF"),
)


class ParseError(ValueError):
    """Raised when a keyword lists document cannot be turned into KeywordLists."""


def is_phrase(item: str) -> bool:
    return _WHITESPACE.search(item) is not None


def parse_keyword_lists(raw_yaml: str, literal_phrases: bool = False) -> List[KeywordList]:
    """Parse a keywords YAML document into KeywordLists.

    Every keyword is lowercased. Entries containing whitespace are kept as
    phrases, everything else is stemmed and kept as a word. Phrases are used
    as case-insensitive regular expressions when matching; pass
    ``literal_phrases=True`` to have them matched as plain text instead.
    """

    try:
        raw = yaml.load(raw_yaml, Loader=_KeywordLoader)
    except yaml.YAMLError as exc:
        raise ParseError(f"Keyword lists are not valid YAML: {exc}") from exc

    if raw is None:
        return []
    if not isinstance(raw, Mapping):
        raise ParseError(f"Keyword lists must be a mapping of name to details, got {type(raw).__name__}")

    lists: List[KeywordList] = []
    for name, details in raw.items():
        lists.append(_parse_one(str(name), details, literal_phrases))
    LOGGER.debug("Parsed %s keyword lists", len(lists))
    return lists


def load_keyword_lists(path: Path, literal_phrases: bool = False) -> KeywordConfig:
    if not path.exists():
        raise FileNotFoundError(f"Missing keywords file: {path}")
    lists = parse_keyword_lists(path.read_text(encoding="utf-8"), literal_phrases=literal_phrases)
    LOGGER.info("Loaded %s keyword lists from %s", len(lists), path)
    return KeywordConfig(lists=tuple(lists), source=path)


def _parse_one(name: str, details: Any, literal_phrases: bool) -> KeywordList:
    if not isinstance(details, Mapping):
        raise ParseError(f"Keyword list '{name}' must be a mapping")

    if "threshold" not in details:
        raise ParseError(f"Keyword list '{name}' is missing 'threshold'")
    threshold = details["threshold"]
    # bool is an int subclass; "threshold: true" is a typo, not a number
    if isinstance(threshold, bool) or not isinstance(threshold, (int, float)):
        raise ParseError(f"Keyword list '{name}' has a non-numeric threshold: {threshold!r}")

    if "keywords" not in details:
        raise ParseError(f"Keyword list '{name}' is missing 'keywords'")
    keywords = details["keywords"]
    if keywords is None:
        keywords = []
    if not isinstance(keywords, list):
        raise ParseError(f"Keyword list '{name}' must define 'keywords' as a list")

    words: List[str] = []
    phrases: List[str] = []
    for raw_item in keywords:
        if not isinstance(raw_item, str):
            raise ParseError(f"Keyword list '{name}' contains a non-string keyword: {raw_item!r}")
        lowered = raw_item.lower()
        if is_phrase(lowered):
            if not literal_phrases:
                _check_pattern(name, lowered)
            phrases.append(lowered)
        else:
            words.append(stem(lowered))

    return KeywordList(
        name=name,
        threshold=float(threshold),
        words=tuple(words),
        phrases=tuple(phrases),
        description=str(details.get("description") or ""),
        literal_phrases=literal_phrases,
    )


def _check_pattern(name: str, phrase: str) -> None:
    try:
        re.compile(phrase)
    except re.error as exc:
        raise ParseError(f"Keyword list '{name}' has an invalid phrase pattern {phrase!r}: {exc}") from exc
