import base64
import json
from unittest.mock import MagicMock, patch

import pytest

from inbox_classifier.cli import FileMailbox, main
from inbox_classifier.config import AIProvider, Settings
from inbox_classifier.storage import JsonFileStore, ResultStore
from inbox_classifier.taxonomy import EmailCategory


def _raw(message_id: str, subject: str) -> dict:
    body = base64.urlsafe_b64encode(b"Body text").decode("ascii").rstrip("=")
    return {
        "id": message_id,
        "snippet": "snippet",
        "payload": {
            "mimeType": "text/plain",
            "headers": [
                {"name": "From", "value": "bob@example.com"},
                {"name": "Subject", "value": subject},
                {"name": "Date", "value": "Mon, 15 Jan 2024 10:00:00 +0000"},
            ],
            "body": {"data": body},
        },
    }


@pytest.fixture
def inbox_file(tmp_path):
    path = tmp_path / "inbox.json"
    path.write_text(
        json.dumps([_raw("m1", "Flash sale"), _raw("m2", "Login alert")]),
        encoding="utf-8",
    )
    return path


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        openai_api_key="sk-env",
        gmail_access_token=None,
        store_path=tmp_path / "store.json",
    )


def _openai_replies(mock_openai, *replies):
    mock_openai.return_value.chat.completions.create.side_effect = [
        MagicMock(choices=[MagicMock(message=MagicMock(content=reply))]) for reply in replies
    ]


def test_main_classifies_input_file_and_saves(inbox_file, settings, capsys) -> None:
    with patch("inbox_classifier.cli.get_settings", return_value=settings), patch(
        "inbox_classifier.providers.OpenAI"
    ) as mock_openai:
        _openai_replies(mock_openai, "Promotional", "Promotional")
        exit_code = main(["--input", str(inbox_file), "--provider", "openai"])

    assert exit_code == 0
    mock_openai.assert_called_once_with(api_key="sk-env", max_retries=0, timeout=30.0)
    assert "Promotional (2 emails)" in capsys.readouterr().out

    results = ResultStore(JsonFileStore(settings.store_path))
    stored = results.get_classified()
    assert [m.id for m in stored] == ["m1", "m2"]
    assert {m.category for m in stored} == {EmailCategory.PROMOTIONAL}
    assert results.get_provider() is AIProvider.OPENAI
    assert results.get_last_fetch_time() is not None


def test_main_prefers_stored_api_key(inbox_file, settings) -> None:
    ResultStore(JsonFileStore(settings.store_path)).save_api_key(AIProvider.OPENAI, "sk-stored")

    with patch("inbox_classifier.cli.get_settings", return_value=settings), patch(
        "inbox_classifier.providers.OpenAI"
    ) as mock_openai:
        _openai_replies(mock_openai, "Spam")
        exit_code = main(["--input", str(inbox_file), "--limit", "1", "--no-save"])

    assert exit_code == 0
    mock_openai.assert_called_once_with(api_key="sk-stored", max_retries=0, timeout=30.0)
    assert ResultStore(JsonFileStore(settings.store_path)).get_classified() is None


def test_main_fails_without_api_key(inbox_file, tmp_path, capsys) -> None:
    settings = Settings(_env_file=None, gemini_api_key=None, store_path=tmp_path / "store.json")

    with patch("inbox_classifier.cli.get_settings", return_value=settings):
        exit_code = main(["--input", str(inbox_file), "--provider", "gemini"])

    assert exit_code == 1
    assert "Gemini API key is required" in capsys.readouterr().out


def test_main_without_token_is_unauthorized(settings, capsys) -> None:
    with patch("inbox_classifier.cli.get_settings", return_value=settings):
        exit_code = main([])

    assert exit_code == 1
    assert "401" in capsys.readouterr().out


def test_file_mailbox_accepts_object_with_messages(tmp_path) -> None:
    path = tmp_path / "inbox.json"
    path.write_text(json.dumps({"messages": [{"id": "a"}, "junk", {"id": "b"}]}), encoding="utf-8")

    assert FileMailbox(path).fetch_recent("ignored", 5) == [{"id": "a"}, {"id": "b"}]
    assert FileMailbox(path).fetch_recent("ignored", 1) == [{"id": "a"}]


@pytest.mark.parametrize("value", ["0", "-1", "two"])
def test_limit_must_be_positive(value, capsys) -> None:
    with pytest.raises(SystemExit) as exc_info:
        main(["--limit", value])

    assert exc_info.value.code == 2
    assert "--limit" in capsys.readouterr().err


def test_save_key_stores_key_for_selected_provider(settings, capsys) -> None:
    with patch("inbox_classifier.cli.get_settings", return_value=settings), patch(
        "inbox_classifier.providers.Groq"
    ) as mock_groq:
        exit_code = main(["--provider", "groq", "--save-key", " gsk-saved "])

    assert exit_code == 0
    assert "Saved Groq API key" in capsys.readouterr().out
    mock_groq.assert_not_called()
    results = ResultStore(JsonFileStore(settings.store_path))
    assert results.get_api_key(AIProvider.GROQ) == "gsk-saved"
    assert results.get_api_key(AIProvider.OPENAI) is None


def test_save_key_rejects_blank_key(settings) -> None:
    with patch("inbox_classifier.cli.get_settings", return_value=settings):
        exit_code = main(["--save-key", "  "])

    assert exit_code == 1
    assert ResultStore(JsonFileStore(settings.store_path)).get_api_key(AIProvider.OPENAI) is None


def test_saved_key_is_used_by_next_run(inbox_file, settings) -> None:
    with patch("inbox_classifier.cli.get_settings", return_value=settings):
        assert main(["--save-key", "sk-cli"]) == 0

    with patch("inbox_classifier.cli.get_settings", return_value=settings), patch(
        "inbox_classifier.providers.OpenAI"
    ) as mock_openai:
        _openai_replies(mock_openai, "Spam")
        exit_code = main(["--input", str(inbox_file), "--limit", "1"])

    assert exit_code == 0
    assert mock_openai.call_args.kwargs["api_key"] == "sk-cli"


def test_remove_key_only_affects_selected_provider(settings) -> None:
    results = ResultStore(JsonFileStore(settings.store_path))
    results.save_api_key(AIProvider.OPENAI, "sk-stored")
    results.save_api_key(AIProvider.GEMINI, "g-stored")

    with patch("inbox_classifier.cli.get_settings", return_value=settings):
        exit_code = main(["--remove-key"])

    assert exit_code == 0
    assert results.get_api_key(AIProvider.OPENAI) is None
    assert results.get_api_key(AIProvider.GEMINI) == "g-stored"


def test_show_last_prints_saved_batch(inbox_file, settings, capsys) -> None:
    with patch("inbox_classifier.cli.get_settings", return_value=settings), patch(
        "inbox_classifier.providers.OpenAI"
    ) as mock_openai:
        _openai_replies(mock_openai, "Social", "Important")
        assert main(["--input", str(inbox_file)]) == 0
    capsys.readouterr()

    with patch("inbox_classifier.cli.get_settings", return_value=settings), patch(
        "inbox_classifier.providers.OpenAI"
    ) as mock_openai:
        exit_code = main(["--show-last"])

    out = capsys.readouterr().out
    assert exit_code == 0
    mock_openai.assert_not_called()
    assert "Last fetch:" in out
    assert "Social (1 emails)" in out
    assert "Important (1 emails)" in out
    assert "Starting Inbox Classifier" not in out


def test_show_last_without_saved_results(settings, capsys) -> None:
    with patch("inbox_classifier.cli.get_settings", return_value=settings):
        exit_code = main(["--show-last"])

    assert exit_code == 0
    assert "No saved results." in capsys.readouterr().out


def test_clear_keeps_api_keys_and_provider(inbox_file, settings) -> None:
    results = ResultStore(JsonFileStore(settings.store_path))
    results.save_api_key(AIProvider.OPENAI, "sk-stored")
    with patch("inbox_classifier.cli.get_settings", return_value=settings), patch(
        "inbox_classifier.providers.OpenAI"
    ) as mock_openai:
        _openai_replies(mock_openai, "Spam")
        assert main(["--input", str(inbox_file), "--limit", "1"]) == 0

    with patch("inbox_classifier.cli.get_settings", return_value=settings):
        exit_code = main(["--clear"])

    assert exit_code == 0
    assert results.get_classified() is None
    assert results.get_last_fetch_time() is None
    assert results.get_api_key(AIProvider.OPENAI) == "sk-stored"
    assert results.get_provider() is AIProvider.OPENAI


def test_clear_all_removes_api_keys(settings) -> None:
    results = ResultStore(JsonFileStore(settings.store_path))
    results.save_api_key(AIProvider.GEMINI, "g-stored")
    results.save_provider(AIProvider.GEMINI)

    with patch("inbox_classifier.cli.get_settings", return_value=settings):
        exit_code = main(["--clear-all"])

    assert exit_code == 0
    assert results.get_api_key(AIProvider.GEMINI) is None
    assert results.get_provider() is None


def test_store_options_are_mutually_exclusive() -> None:
    with pytest.raises(SystemExit) as exc_info:
        main(["--clear", "--show-last"])

    assert exc_info.value.code == 2
