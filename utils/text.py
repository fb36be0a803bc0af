"""Whitespace tokenizer and Porter2 stemmer shared by the keyword parser and the classifier."""

from __future__ import annotations

import re
from typing import List

from nltk.stem.snowball import SnowballStemmer

PUNCTUATION = ".,/#!$%^&*;:{}=-_`~()"

_WHITESPACE = re.compile(r"\s+")
_LEADING_PUNC = re.compile(f"^[{re.escape(PUNCTUATION)}]+")
_TRAILING_PUNC = re.compile(rf"[{re.escape(PUNCTUATION)}]+\Z")

# Snowball "english" is the Porter2 algorithm; the stemmer holds no per-call state.
_STEMMER = SnowballStemmer("english")


def stem(word: str) -> str:
    return _STEMMER.stem(word)


def trim_punc(s: str) -> str:
    """Trim punctuation from the start and end of a string, leaving inner characters alone."""

    return _TRAILING_PUNC.sub("", _LEADING_PUNC.sub("", s))


def extract_words(text: str) -> List[str]:
    """Split text on whitespace into lowercase, punctuation-trimmed tokens.

    Tokens made only of punctuation come back as empty strings; consumers that
    count words are expected to drop them.
    """

    return [trim_punc(piece.lower()) for piece in _WHITESPACE.split(text)]
