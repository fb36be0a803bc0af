from __future__ import annotations

import base64
import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

from dotenv import load_dotenv


PROJECT_ROOT = Path(__file__).resolve().parent.parent

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


@dataclass(slots=True)
class AccountConfig:
    name: str
    credentials_file: Path
    token_file: Path
    user_id: str


@dataclass(slots=True)
class AppConfig:
    keywords_file: Path
    literal_phrases: bool
    log_dir: Path
    log_level: str
    db_path: Path
    stats_file: Path
    gmail_query: Optional[str]
    gmail_max_pages: int
    classify_batch_size: int
    classify_max_workers: int
    classify_max_batches: int
    label_prefix: str
    schedule_interval: int
    accounts: Dict[str, AccountConfig]
    default_account: AccountConfig
    accounts_file: Path

    def get_account(self, account_name: Optional[str]) -> AccountConfig:
        if not account_name:
            return self.default_account
        if account_name not in self.accounts:
            available = ", ".join(sorted(self.accounts))
            raise KeyError(f"Unknown account '{account_name}'. Available accounts: {available}")
        return self.accounts[account_name]


def _resolve_path(value: str | None, fallback: str) -> Path:
    candidate = Path(value or fallback)
    if not candidate.is_absolute():
        candidate = PROJECT_ROOT / candidate
    return candidate


def _env_int(name: str, default: int, minimum: int = 1) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc
    if value < minimum:
        raise ValueError(f"{name} must be at least {minimum}, got {value}")
    return value


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    lowered = raw.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


def _maybe_write_secret_file(target: Path, inline_value: str | None, b64_value: str | None) -> None:
    if not inline_value and not b64_value:
        return
    target.parent.mkdir(parents=True, exist_ok=True)
    if inline_value:
        target.write_text(inline_value, encoding="utf-8")
        return
    try:
        decoded = base64.b64decode(b64_value or "", validate=True)
    except ValueError as exc:
        raise ValueError("Failed to decode base64 secret payload") from exc
    target.write_bytes(decoded)


def _load_accounts(accounts_file: Path, default_account: AccountConfig) -> Dict[str, AccountConfig]:
    accounts: Dict[str, AccountConfig] = {default_account.name: default_account}
    if not accounts_file.exists():
        return accounts
    data = json.loads(accounts_file.read_text(encoding="utf-8"))
    for item in data.get("accounts", []):
        name = item.get("name")
        if not name:
            continue
        accounts[name] = AccountConfig(
            name=name,
            credentials_file=_resolve_path(item.get("credentials_file"), "credentials.json"),
            token_file=_resolve_path(item.get("token_file"), f"tokens/{name}.json"),
            user_id=item.get("user_id", "me"),
        )
    return accounts


def load_config(env_file: str | os.PathLike[str] | None = None) -> AppConfig:
    """Load configuration values from a .env file and environment variables."""

    if env_file:
        load_dotenv(env_file, override=False)
    else:
        load_dotenv(override=False)

    credentials_file = _resolve_path(os.getenv("GOOGLE_CLIENT_SECRETS"), "credentials.json")
    token_file = _resolve_path(os.getenv("GOOGLE_TOKEN_PATH"), "token.json")
    keywords_file = _resolve_path(os.getenv("KEYWORDS_FILE"), "resources/keywords.yaml")
    log_dir = _resolve_path(os.getenv("LOG_DIR"), "logs")
    stats_file = _resolve_path(os.getenv("STATS_FILE"), "data/stats.json")
    db_path = _resolve_path(os.getenv("DB_PATH"), "data/inbox_tagger.db")
    accounts_file = _resolve_path(os.getenv("GMAIL_ACCOUNTS_FILE"), "accounts.json")

    log_dir.mkdir(parents=True, exist_ok=True)
    stats_file.parent.mkdir(parents=True, exist_ok=True)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    _maybe_write_secret_file(
        credentials_file,
        os.getenv("GOOGLE_CLIENT_SECRETS_JSON"),
        os.getenv("GOOGLE_CLIENT_SECRETS_B64"),
    )
    _maybe_write_secret_file(
        token_file,
        os.getenv("GOOGLE_TOKEN_JSON"),
        os.getenv("GOOGLE_TOKEN_B64"),
    )

    default_account = AccountConfig(
        name="default",
        credentials_file=credentials_file,
        token_file=token_file,
        user_id=os.getenv("GMAIL_USER_ID", "me"),
    )

    return AppConfig(
        keywords_file=keywords_file,
        literal_phrases=_env_bool("KEYWORDS_LITERAL_PHRASES", False),
        log_dir=log_dir,
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        db_path=db_path,
        stats_file=stats_file,
        gmail_query=os.getenv("GMAIL_QUERY") or None,
        gmail_max_pages=_env_int("GMAIL_MAX_PAGES", 10),
        classify_batch_size=_env_int("CLASSIFY_BATCH_SIZE", 10),
        classify_max_workers=_env_int("CLASSIFY_MAX_WORKERS", 4),
        classify_max_batches=_env_int("CLASSIFY_MAX_BATCHES", 1000),
        label_prefix=os.getenv("LABEL_PREFIX", "inbox-tagger/"),
        schedule_interval=_env_int("SCHEDULE_INTERVAL_MINUTES", 5),
        accounts=_load_accounts(accounts_file, default_account),
        default_account=default_account,
        accounts_file=accounts_file,
    )
