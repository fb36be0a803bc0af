from __future__ import annotations

import json

import pytest

from utils.config import load_config

ENV_VARS = (
    "KEYWORDS_FILE",
    "KEYWORDS_LITERAL_PHRASES",
    "CLASSIFY_BATCH_SIZE",
    "CLASSIFY_MAX_WORKERS",
    "CLASSIFY_MAX_BATCHES",
    "GMAIL_MAX_PAGES",
    "GMAIL_QUERY",
    "GMAIL_USER_ID",
    "LABEL_PREFIX",
    "SCHEDULE_INTERVAL_MINUTES",
    "GOOGLE_CLIENT_SECRETS_JSON",
    "GOOGLE_CLIENT_SECRETS_B64",
    "GOOGLE_TOKEN_JSON",
    "GOOGLE_TOKEN_B64",
)


@pytest.fixture
def isolated_env(tmp_path, monkeypatch):
    for name in ENV_VARS:
        # load_dotenv writes straight into os.environ; registering each name
        # first makes monkeypatch remove whatever a test loaded
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    monkeypatch.setenv("LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("DB_PATH", str(tmp_path / "data" / "db.sqlite"))
    monkeypatch.setenv("STATS_FILE", str(tmp_path / "data" / "stats.json"))
    monkeypatch.setenv("GOOGLE_CLIENT_SECRETS", str(tmp_path / "credentials.json"))
    monkeypatch.setenv("GOOGLE_TOKEN_PATH", str(tmp_path / "token.json"))
    monkeypatch.setenv("GMAIL_ACCOUNTS_FILE", str(tmp_path / "accounts.json"))
    return tmp_path


def test_defaults(isolated_env):
    config = load_config(isolated_env / "missing.env")
    assert config.keywords_file.name == "keywords.yaml"
    assert config.literal_phrases is False
    assert config.classify_batch_size == 10
    assert config.gmail_max_pages == 10
    assert config.gmail_query is None
    assert config.label_prefix == "inbox-tagger/"
    assert config.default_account.user_id == "me"
    assert (isolated_env / "logs").is_dir()


def test_reads_env_file(isolated_env):
    env_file = isolated_env / ".env"
    env_file.write_text(
        "CLASSIFY_BATCH_SIZE=25\nKEYWORDS_LITERAL_PHRASES=yes\nGMAIL_QUERY=newer_than:7d\n",
        encoding="utf-8",
    )
    config = load_config(env_file)
    assert config.classify_batch_size == 25
    assert config.literal_phrases is True
    assert config.gmail_query == "newer_than:7d"


@pytest.mark.parametrize(
    ("name", "value"),
    [("CLASSIFY_BATCH_SIZE", "ten"), ("CLASSIFY_MAX_WORKERS", "0"), ("KEYWORDS_LITERAL_PHRASES", "maybe")],
)
def test_invalid_values_name_the_variable(isolated_env, monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(ValueError, match=name):
        load_config(isolated_env / "missing.env")


def test_inline_secrets_are_written(isolated_env, monkeypatch):
    monkeypatch.setenv("GOOGLE_CLIENT_SECRETS_JSON", '{"installed": {}}')
    load_config(isolated_env / "missing.env")
    assert (isolated_env / "credentials.json").read_text(encoding="utf-8") == '{"installed": {}}'


def test_accounts_file(isolated_env):
    (isolated_env / "accounts.json").write_text(
        json.dumps({"accounts": [{"name": "work", "user_id": "me@work.example"}, {"user_id": "nameless"}]}),
        encoding="utf-8",
    )
    config = load_config(isolated_env / "missing.env")
    assert sorted(config.accounts) == ["default", "work"]
    assert config.get_account("work").user_id == "me@work.example"
    assert config.get_account(None) is config.default_account
    with pytest.raises(KeyError, match="Available accounts: default, work"):
        config.get_account("home")
