from __future__ import annotations

import base64
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from models.keyword_list import KeywordConfig
from utils.keyword_lists import load_keyword_lists

FIXTURES = Path(__file__).parent / "fixtures"


def encode(text: str) -> str:
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii").rstrip("=")


def _make_message(
    gmail_id: str,
    body: Optional[str] = None,
    *,
    mime_type: str = "text/plain",
    parts: Optional[List[Dict[str, Any]]] = None,
    subject: str = "Hello",
    sender: str = "alice@example.com",
    internal_date: Optional[str] = "1700000000000",
) -> Dict[str, Any]:
    """Build a Gmail ``format=full`` message resource."""

    payload: Dict[str, Any] = {
        "mimeType": mime_type,
        "headers": [
            {"name": "Subject", "value": subject},
            {"name": "From", "value": sender},
            {"name": "Date", "value": "Tue, 14 Nov 2023 22:13:20 +0000"},
        ],
        "body": {"size": 0},
    }
    if body is not None:
        payload["body"] = {"size": len(body), "data": encode(body)}
    if parts is not None:
        payload["parts"] = parts
    message: Dict[str, Any] = {"id": gmail_id, "threadId": f"t-{gmail_id}", "snippet": (body or "")[:40], "payload": payload}
    if internal_date is not None:
        message["internalDate"] = internal_date
    return message


def _make_part(mime_type: str, text: Optional[str] = None, parts: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    part: Dict[str, Any] = {"mimeType": mime_type, "body": {"size": 0}}
    if text is not None:
        part["body"] = {"size": len(text), "data": encode(text)}
    if parts is not None:
        part["parts"] = parts
    return part


@pytest.fixture
def keywords_path() -> Path:
    return FIXTURES / "keywords.yaml"


@pytest.fixture
def keyword_config(keywords_path: Path) -> KeywordConfig:
    return load_keyword_lists(keywords_path)


@pytest.fixture
def make_message():
    return _make_message


@pytest.fixture
def make_part():
    return _make_part
