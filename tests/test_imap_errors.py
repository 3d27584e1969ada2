"""Unit tests for IMAP error collection."""

import logging

import pytest
from imapclient.exceptions import IMAPClientError

from imap_mail_steps.modules.imap_errors import (
    ImapErrorCatcher,
    ImapErrorsList,
    ImapOperationError,
    catch_imap_errors,
)


def test_empty_errors_list_description():
    assert str(ImapErrorsList()) == "No additional details were provided by the IMAP server."
    assert ImapOperationError("Boom").description == "No additional details were provided by the IMAP server."


def test_errors_list_description():
    errors = ImapErrorsList()
    errors.add_entry({"err": "NO [TRYCREATE] Mailbox doesn't exist"})
    assert len(errors) == 1
    assert str(errors).startswith("The following errors were reported by the IMAP server: \n")
    assert "TRYCREATE" in str(errors)


def test_catch_imap_errors_wraps_library_errors():
    with pytest.raises(ImapOperationError) as exc_info:
        with catch_imap_errors("Unable to move email"):
            raise IMAPClientError("MOVE command error: BAD")
    error = exc_info.value
    assert error.message == "Unable to move email"
    assert isinstance(error.__cause__, IMAPClientError)
    assert error.errors_list.caught_entries == [{"err": "MOVE command error: BAD", "type": "IMAPClientError"}]


def test_catch_imap_errors_collects_library_warnings():
    library_logger = logging.getLogger("imapclient.imaplib")
    with pytest.raises(ImapOperationError) as exc_info:
        with catch_imap_errors("Unable to list emails"):
            library_logger.warning("untagged BYE: server shutting down")
            raise IMAPClientError("connection closed")
    entries = exc_info.value.errors_list.caught_entries
    assert entries[0]["msg"] == "untagged BYE: server shutting down"
    assert entries[0]["level"] == "WARNING"
    assert entries[1]["err"] == "connection closed"


def test_catch_imap_errors_passes_other_exceptions():
    with pytest.raises(KeyError):
        with catch_imap_errors("irrelevant"):
            raise KeyError("x")


def test_catching_stops_after_other_exceptions():
    with pytest.raises(OSError):
        with catch_imap_errors("Unable to list emails"):
            raise OSError("connection reset")
    logging.getLogger("imapclient").warning("late warning from another command")
    assert len(ImapErrorCatcher.get_instance().stop_and_get_errors_list()) == 0


def test_records_outside_a_command_are_ignored():
    catcher = ImapErrorCatcher.get_instance()
    logging.getLogger("imapclient").warning("idle noise")
    with catch_imap_errors("nothing fails"):
        pass
    assert len(catcher.stop_and_get_errors_list()) == 0


def test_catcher_is_a_singleton():
    assert ImapErrorCatcher.get_instance() is ImapErrorCatcher.get_instance()
