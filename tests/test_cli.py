from __future__ import annotations

import pytest
from click.testing import CliRunner

from main import cli
from services.persistence_service import MessageStore


@pytest.fixture
def env(tmp_path, monkeypatch, keywords_path):
    monkeypatch.setenv("KEYWORDS_FILE", str(keywords_path))
    monkeypatch.setenv("LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("DB_PATH", str(tmp_path / "db.sqlite"))
    monkeypatch.setenv("STATS_FILE", str(tmp_path / "stats.json"))
    monkeypatch.setenv("GMAIL_ACCOUNTS_FILE", str(tmp_path / "accounts.json"))
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    monkeypatch.setenv("COLUMNS", "200")
    monkeypatch.delenv("KEYWORDS_LITERAL_PHRASES", raising=False)
    return tmp_path


def _invoke(env, *args, **kwargs):
    runner = CliRunner()
    return runner.invoke(cli, ["--env-file", str(env / "missing.env"), *args], **kwargs)


def test_keywords_command(env):
    result = _invoke(env, "keywords")
    assert result.exit_code == 0, result.output
    assert "espionag" in result.output
    assert "under the table" in result.output


def test_tag_text_from_stdin(env):
    result = _invoke(env, "tag-text", "-", input="A Ponzi and a pyramid scheme.")
    assert result.exit_code == 0, result.output
    assert "fraud" in result.output
    assert "0.3333" in result.output


def test_classify_and_list_stored_messages(env, make_message):
    store = MessageStore(env / "db.sqlite")
    store.save_message(make_message("g1", "Corporate espionage to steal IP is theft.", subject="Secrets"))

    result = _invoke(env, "classify")
    assert result.exit_code == 0, result.output
    assert "Tagged 1 message" in result.output

    listed = _invoke(env, "messages", "--filter", "suspicious")
    assert listed.exit_code == 0, listed.output
    assert "Secrets" in listed.output

    counted = _invoke(env, "count", "--filter", "clean")
    assert counted.output.strip().splitlines()[-1] == "0"


def test_unknown_account(env):
    result = _invoke(env, "--account", "nobody", "stats")
    assert result.exit_code != 0
    assert "Unknown account" in result.output


def test_broken_keywords_file(env, monkeypatch):
    broken = env / "broken.yaml"
    broken.write_text("- not\n- a mapping\n", encoding="utf-8")
    monkeypatch.setenv("KEYWORDS_FILE", str(broken))
    result = _invoke(env, "keywords")
    assert result.exit_code == 1
    assert "mapping" in result.output
