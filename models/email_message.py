from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass(slots=True)
class StoredMessage:
    """A Gmail message resource as persisted in the local message store."""

    id: int
    gmail_id: str
    data: Dict[str, Any]
    tags: Optional[List[str]] = None
    tagged_at: datetime | None = None
    received_at: datetime | None = None

    @property
    def is_tagged(self) -> bool:
        return self.tags is not None


@dataclass(slots=True)
class EmailMessage:
    """Simplified, display-oriented view of a stored Gmail message."""

    id: int
    gmail_id: str
    subject: str
    body: str | None
    snippet: str
    sender: str | None = None
    tags: List[str] = field(default_factory=list)
    received_at: datetime | None = None
