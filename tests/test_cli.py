"""Unit tests for the command-line layer."""

import json
from unittest.mock import Mock, patch

import pytest
from imapclient.exceptions import IMAPClientError

from imap_mail_steps.main import build_params, parse_args
from imap_mail_steps.modules.cli import (
    execute_operation,
    flag_changes_from_names,
    load_items,
    run_operation,
    run_parse_date,
    run_render_date,
)
from imap_mail_steps.modules.config import AccountConfig, AppConfig
from imap_mail_steps.modules.context import ExecutionContext
from imap_mail_steps.modules.email_actions import delete_email_operation


def _config(tmp_path, *names):
    accounts = {
        name: AccountConfig(name=name, host="imap.test.com", port=993, username="u", password="p")
        for name in names or ("main",)
    }
    return AppConfig(output_dir=str(tmp_path / "out"), accounts=accounts)


def test_flag_changes_from_names():
    assert flag_changes_from_names(["Seen", "\\flagged", "$done"], ["Draft", "$todo", "$old"]) == {
        "\\Seen": True,
        "\\Flagged": True,
        "\\Draft": False,
        "setFlags": "$done",
        "removeFlags": "$todo $old",
    }
    assert flag_changes_from_names(None, None) == {}


def test_load_items_without_file():
    assert load_items(None, {"mailbox": "INBOX"}) == [{"mailbox": "INBOX"}]


def test_load_items_merges_file_over_params(tmp_path):
    path = tmp_path / "items.json"
    path.write_text(json.dumps([{"emailUid": "1"}, {"emailUid": "2", "mailbox": "Archive"}]), encoding="utf-8")
    assert load_items(str(path), {"mailbox": "INBOX"}) == [
        {"mailbox": "INBOX", "emailUid": "1"},
        {"mailbox": "Archive", "emailUid": "2"},
    ]


def test_load_items_rejects_non_objects(tmp_path):
    path = tmp_path / "items.json"
    path.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(SystemExit):
        load_items(str(path), {})


def test_execute_operation_continue_on_fail():
    client = Mock()
    client.find_by_message_id.return_value = []
    client.delete.side_effect = [IMAPClientError("NO expunge failed"), None]
    context = ExecutionContext(
        delete_email_operation,
        items=[{"emailUid": "1"}, {"emailUid": "2"}],
        continue_on_fail=True,
    )
    results = execute_operation(context, client)

    assert results[0]["json"]["error"] == "Unable to delete email"
    assert "expunge failed" in results[0]["json"]["description"]
    assert results[0]["pairedItem"] == {"item": 0}
    assert results[1]["json"] == {"uid": "2", "deleted": True}


def test_execute_operation_stops_without_continue_on_fail():
    client = Mock()
    client.delete.side_effect = IMAPClientError("NO")
    context = ExecutionContext(delete_email_operation, items=[{"emailUid": "1"}])
    with pytest.raises(Exception, match="Unable to delete email"):
        execute_operation(context, client)


def test_run_operation(tmp_path, capsys):
    imap = Mock()
    imap.delete.return_value = None
    with patch("imap_mail_steps.modules.cli.ImapClient", return_value=imap) as factory:
        results = run_operation(_config(tmp_path), None, "deleteEmail", [{"emailUid": "3"}])

    factory.assert_called_once()
    imap.connect.assert_called_once()
    imap.disconnect.assert_called_once()
    assert results == [{"json": {"uid": "3", "deleted": True}, "pairedItem": {"item": 0}}]
    assert json.loads(capsys.readouterr().out) == results


def test_run_operation_failure_exits_and_disconnects(tmp_path):
    imap = Mock()
    imap.delete.side_effect = IMAPClientError("NO")
    with patch("imap_mail_steps.modules.cli.ImapClient", return_value=imap):
        with pytest.raises(SystemExit):
            run_operation(_config(tmp_path), None, "deleteEmail", [{"emailUid": "3"}])
    imap.disconnect.assert_called_once()


def test_run_operation_connect_failure(tmp_path):
    imap = Mock()
    imap.connect.side_effect = OSError("connection refused")
    with patch("imap_mail_steps.modules.cli.ImapClient", return_value=imap):
        with pytest.raises(SystemExit):
            run_operation(_config(tmp_path), None, "deleteEmail", [{"emailUid": "3"}])


@pytest.mark.parametrize("account, operation", [(None, "deleteEmail"), ("other", "deleteEmail"), ("a", "nope")])
def test_run_operation_bad_selection(tmp_path, account, operation):
    with patch("imap_mail_steps.modules.cli.ImapClient") as factory:
        with pytest.raises(SystemExit):
            run_operation(_config(tmp_path, "a", "b"), account, operation, [{}])
    factory.assert_not_called()


def test_run_parse_date(capsys):
    run_parse_date(["Wed Dec 03  7:56:11 2025", "garbage"])
    lines = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
    assert lines[0] == {
        "input": "Wed Dec 03  7:56:11 2025",
        "parsed": "2025-12-03T07:56:11.000Z",
        "rendered": "Wed, 03 Dec 2025 08:56:11 +0100 (CET)",
    }
    assert lines[1] == {"input": "garbage", "parsed": "garbage", "rendered": None}


def test_run_render_date(capsys):
    run_render_date(["2025-07-15T10:00:00.000Z"])
    assert json.loads(capsys.readouterr().out)["rendered"] == "Tue, 15 Jul 2025 12:00:00 +0200 (CEST)"


# ------------------------------------------------------------------
# argument parsing
# ------------------------------------------------------------------


def test_build_params_list():
    args = parse_args(
        [
            "list",
            "--mailbox",
            "Archive",
            "--since",
            "2025-12-01",
            "--no-seen",
            "--subject",
            "Objednávka",
            "--include",
            "flags",
            "--headers",
            "received",
        ]
    )
    assert build_params(args) == {
        "mailbox": "Archive",
        "includeParts": ["flags"],
        "emailDateRange": {"since": "2025-12-01"},
        "emailFlags": {"seen": False},
        "emailSearchFilters": {"subject": "Objednávka"},
        "includeAllHeaders": False,
        "headersToInclude": "received",
    }


def test_build_params_move():
    args = parse_args(["-a", "work", "move", "--source", "INBOX", "--destination", "Sent", "--uid", "1", "--mark-as-seen"])
    assert args.account == "work"
    assert build_params(args) == {
        "emailUid": "1",
        "sourceMailbox": "INBOX",
        "destinationMailbox": "Sent",
        "markAsSeen": True,
    }


def test_build_params_set_flags():
    args = parse_args(["set-flags", "--uid", "4", "--set", "Seen", "--remove", "$old"])
    assert build_params(args) == {"emailUid": "4", "flags": {"\\Seen": True, "removeFlags": "$old"}}


def test_build_params_download_as_text():
    args = parse_args(["download", "--uid", "4", "--as-text"])
    assert build_params(args) == {"emailUid": "4", "outputToBinary": False}
