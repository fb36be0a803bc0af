from __future__ import annotations

import json
import logging
from typing import Optional, Sequence

from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow

from utils.config import AccountConfig

LOGGER = logging.getLogger(__name__)

# modify covers reading messages and adding tag labels to them
SCOPES: Sequence[str] = ("https://www.googleapis.com/auth/gmail.modify",)


class AuthService:
    """Obtain Gmail OAuth2 credentials for one account, caching the token on disk."""

    def __init__(self, account: AccountConfig, scopes: Sequence[str] = SCOPES):
        self._account = account
        self._scopes = list(scopes)

    def authenticate(self) -> Credentials:
        creds = self.cached_credentials()
        if creds and creds.valid:
            return creds

        if creds and creds.expired and creds.refresh_token:
            LOGGER.info("Refreshing expired Gmail token for %s", self._account.name)
            creds.refresh(Request())
        else:
            creds = self._run_consent_flow()
        self._store(creds)
        return creds

    def cached_credentials(self) -> Optional[Credentials]:
        token_path = self._account.token_file
        if not token_path.exists():
            return None
        LOGGER.debug("Loading cached token from %s", token_path)
        info = json.loads(token_path.read_text(encoding="utf-8"))
        return Credentials.from_authorized_user_info(info, self._scopes)

    def _run_consent_flow(self) -> Credentials:
        secrets = self._account.credentials_file
        if not secrets.exists():
            raise FileNotFoundError(
                f"Missing OAuth client secrets for account '{self._account.name}': {secrets}"
            )
        LOGGER.info("Starting OAuth consent flow using %s", secrets)
        flow = InstalledAppFlow.from_client_secrets_file(str(secrets), scopes=self._scopes)
        return flow.run_local_server(port=0)

    def _store(self, creds: Credentials) -> None:
        token_path = self._account.token_file
        token_path.parent.mkdir(parents=True, exist_ok=True)
        token_path.write_text(creds.to_json(), encoding="utf-8")
        LOGGER.debug("Saved OAuth token to %s", token_path)
