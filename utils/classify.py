"""Keyword-frequency tagging of document bodies.

A body is tokenized and stemmed once into a :class:`WordCountProfile`; each
:class:`KeywordList` is then scored against that profile. Word hits come from
stem counts, phrase hits from case-insensitive pattern matches over the raw
body. A list's name becomes a tag when ``hits / word_count`` reaches its
threshold.
"""

from __future__ import annotations

import re
from collections import Counter
from functools import lru_cache
from typing import Dict, Iterable, List, Pattern

from models.keyword_list import Evaluation, KeywordList, WordCountProfile
from utils.text import extract_words, stem


def analyze_body(body: str) -> WordCountProfile:
    """Extract the words in ``body``, stem each one, and count instances of each stem."""

    words = [w for w in (stem(token) for token in extract_words(body)) if w]
    return WordCountProfile(body=body, words=words, word_counts=dict(Counter(words)))


def evaluate_list_words(profile: WordCountProfile, keyword_list: KeywordList) -> int:
    """Return the word hits for a list. Keywords listed twice are counted twice."""

    counts = profile.word_counts
    return sum(counts.get(word, 0) for word in keyword_list.words)


def evaluate_list_phrases(profile: WordCountProfile, keyword_list: KeywordList) -> int:
    """Return the phrase hits for a list, counting every non-overlapping match."""

    total = 0
    for phrase in keyword_list.phrases:
        matcher = _phrase_matcher(phrase, keyword_list.literal_phrases)
        total += sum(1 for _ in matcher.finditer(profile.body))
    return total


def evaluate_list(profile: WordCountProfile, keyword_list: KeywordList) -> Evaluation:
    hits = evaluate_list_words(profile, keyword_list) + evaluate_list_phrases(profile, keyword_list)
    if hits == 0 or not profile.words:
        return Evaluation(hits=hits, frequency=0.0)
    return Evaluation(hits=hits, frequency=hits / len(profile.words))


def tag(body: str, lists: Iterable[KeywordList]) -> List[str]:
    """Tag a document with every list whose hit frequency meets its threshold.

    Tags come back in the order of ``lists``. A list with zero frequency
    never applies, so a zero threshold tags any document with at least one
    hit and an empty document is never tagged.
    """

    profile = analyze_body(body)
    return [lst.name for lst in lists if _applies(evaluate_list(profile, lst), lst)]


def relative_frequencies(body: str, lists: Iterable[KeywordList]) -> Dict[str, float]:
    profile = analyze_body(body)
    return {lst.name: evaluate_list(profile, lst).frequency for lst in lists}


def _applies(evaluation: Evaluation, keyword_list: KeywordList) -> bool:
    return evaluation.frequency > 0 and evaluation.frequency >= keyword_list.threshold


@lru_cache(maxsize=1024)
def _phrase_matcher(phrase: str, literal: bool) -> Pattern[str]:
    return re.compile(re.escape(phrase) if literal else phrase, re.IGNORECASE)
