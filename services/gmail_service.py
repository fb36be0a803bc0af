from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from services.auth_service import AuthService
from utils.config import AccountConfig

LOGGER = logging.getLogger(__name__)

GmailResource = Dict[str, Any]


class GmailService:
    """Wrapper around the Gmail API for the operations we need."""

    def __init__(self, account: AccountConfig, auth_service: AuthService, client: Any = None):
        self._account = account
        if client is None:
            creds = auth_service.authenticate()
            client = build("gmail", "v1", credentials=creds, cache_discovery=False)
        self._client = client

    @property
    def user_id(self) -> str:
        return self._account.user_id

    def list_messages(
        self, query: Optional[str] = None, page_token: Optional[str] = None
    ) -> Tuple[List[GmailResource], Optional[str]]:
        """Return one page of sparse messages (``{"id", "threadId"}``) and the next page token."""

        params: Dict[str, Any] = {"userId": self.user_id}
        if query:
            params["q"] = query
        if page_token:
            params["pageToken"] = page_token
        try:
            response = self._client.users().messages().list(**params).execute()
        except HttpError as exc:
            LOGGER.error("Failed to list messages: %s", exc)
            raise
        return response.get("messages", []), response.get("nextPageToken") or None

    def list_all_messages(self, query: Optional[str] = None, max_pages: int = 10) -> List[GmailResource]:
        messages: List[GmailResource] = []
        page_token: Optional[str] = None
        for page in range(max_pages):
            batch, page_token = self.list_messages(query, page_token)
            messages.extend(batch)
            LOGGER.debug("Listed page %s with %s messages", page + 1, len(batch))
            if not page_token:
                break
        else:
            if page_token:
                LOGGER.warning("Stopped listing after %s pages; more messages remain", max_pages)
        LOGGER.info("Listed %s message headers", len(messages))
        return messages

    def get_message(self, message_id: str) -> GmailResource:
        try:
            return (
                self._client.users()
                .messages()
                .get(userId=self.user_id, id=message_id, format="full")
                .execute()
            )
        except HttpError as exc:
            LOGGER.error("Failed to fetch message %s: %s", message_id, exc)
            raise

    def list_labels(self) -> List[GmailResource]:
        response = self._client.users().labels().list(userId=self.user_id).execute()
        return response.get("labels", [])

    def create_label(self, label_name: str) -> GmailResource:
        body = {"name": label_name, "labelListVisibility": "labelShow", "messageListVisibility": "show"}
        response = self._client.users().labels().create(userId=self.user_id, body=body).execute()
        LOGGER.info("Created label %s with id %s", label_name, response["id"])
        return response

    def ensure_labels(self, names: Sequence[str]) -> Dict[str, GmailResource]:
        """Get existing labels by name, creating the ones that are missing."""

        existing = {label["name"].lower(): label for label in self.list_labels()}
        ensured: Dict[str, GmailResource] = {}
        for name in names:
            label = existing.get(name.lower())
            if label is None:
                label = self.create_label(name)
                existing[name.lower()] = label
            ensured[name] = label
        return ensured

    def label_message(self, message_id: str, label_ids: Sequence[str]) -> GmailResource:
        if not label_ids:
            LOGGER.debug("No labels supplied for message %s", message_id)
            return {}
        body = {"addLabelIds": list(label_ids)}
        response = (
            self._client.users()
            .messages()
            .modify(userId=self.user_id, id=message_id, body=body)
            .execute()
        )
        LOGGER.info("Applied labels %s to message %s", label_ids, message_id)
        return response
