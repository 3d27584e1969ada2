"""Unit tests for UID / Message-ID resolution."""

from unittest.mock import Mock

import pytest
from imapclient.exceptions import IMAPClientError

from imap_mail_steps.modules.context import ExecutionContext
from imap_mail_steps.modules.email_actions import delete_email_operation
from imap_mail_steps.modules.uid_resolver import (
    find_emails_by_message_id,
    resolve_email_uids,
    resolve_target_uids,
)


@pytest.fixture
def client():
    client = Mock()
    found = {"<a@example.com>": [11], "@example.com": [11, 12]}
    client.find_by_message_id.side_effect = lambda pattern: found.get(pattern, [])
    return client


def test_find_emails_by_message_id(client):
    results = find_emails_by_message_id(client, [" <a@example.com> ", "<missing@x>", ""])
    assert [(r.message_id_pattern, r.found, r.uids) for r in results] == [
        ("<a@example.com>", True, ["11"]),
        ("<missing@x>", False, []),
        ("", False, []),
    ]


def test_search_error_is_reported_as_not_found(client):
    client.find_by_message_id.side_effect = IMAPClientError("SEARCH failed")
    results = find_emails_by_message_id(client, ["<a@example.com>"])
    assert not results[0].found


def test_resolve_combines_and_dedupes(client):
    resolved = resolve_email_uids(client, "10, 11", "@example.com,<missing@x>")
    assert resolved.uids == ["10", "11", "12"]
    assert resolved.not_found_message_ids == ["<missing@x>"]
    assert resolved.used_message_id


def test_resolve_without_message_id(client):
    resolved = resolve_email_uids(client, "5", "")
    assert resolved.uids == ["5"]
    assert not resolved.used_message_id
    client.find_by_message_id.assert_not_called()


def test_resolve_target_uids_reports_not_found(client):
    context = ExecutionContext(delete_email_operation, items=[{"messageId": "<missing@x>"}])
    uids, items = resolve_target_uids(context, 0, client, "delete")
    assert uids == []
    assert items == [
        {
            "json": {
                "messageIdFound": False,
                "messageId": "<missing@x>",
                "message": "Email with specified Message-ID not found",
            }
        }
    ]


def test_resolve_target_uids_nothing_given(client):
    context = ExecutionContext(delete_email_operation, items=[{}])
    uids, items = resolve_target_uids(context, 0, client, "delete")
    assert uids == []
    assert items[0]["json"]["message"] == "No emails found to delete"


def test_resolve_target_uids_found(client):
    context = ExecutionContext(delete_email_operation, items=[{"emailUid": "7", "messageId": "<a@example.com>"}])
    uids, items = resolve_target_uids(context, 0, client, "delete")
    assert uids == ["7", "11"]
    assert items == []
