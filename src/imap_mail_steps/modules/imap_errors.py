"""Collection of IMAP server errors reported while a command runs.

imapclient raises exceptions carrying only the tagged response text, while
warnings about untagged responses and connection problems go to the
``imapclient`` logger. :class:`ImapErrorCatcher` listens on that logger so a
failed step can report everything the server said.
"""

import json
import logging
from contextlib import contextmanager

from imapclient.exceptions import IMAPClientError

_IMAPCLIENT_LOGGER = "imapclient"


class ImapErrorsList:
    """Errors and warnings caught from the IMAP library during one command."""

    def __init__(self):
        self.caught_entries = []

    def add_entry(self, entry):
        self.caught_entries.append(entry)

    def combine_full_entries_to_string(self):
        return json.dumps(self.caught_entries, indent=2, default=str)

    def __len__(self):
        return len(self.caught_entries)

    def __str__(self):
        if not self.caught_entries:
            return "No additional details were provided by the IMAP server."
        return "The following errors were reported by the IMAP server: \n" + self.combine_full_entries_to_string()


class ImapOperationError(Exception):
    """An IMAP operation was refused or failed on the server side."""

    def __init__(self, message, errors_list=None):
        super().__init__(message)
        self.message = message
        self.errors_list = errors_list if errors_list is not None else ImapErrorsList()
        self.description = str(self.errors_list)

    def __str__(self):
        return f"{self.message}\n{self.description}"


class ImapErrorCatcher(logging.Handler):
    """Process-wide handler collecting WARNING+ records from the IMAP library.

    Call :meth:`start_error_catching` before a command that may fail and
    :meth:`stop_and_get_errors_list` once it has failed.
    """

    _instance = None

    def __init__(self):
        super().__init__(level=logging.WARNING)
        self._errors_list = ImapErrorsList()
        self._is_catching = False

    @classmethod
    def get_instance(cls):
        if cls._instance is None:
            cls._instance = cls()
            logging.getLogger(_IMAPCLIENT_LOGGER).addHandler(cls._instance)
        return cls._instance

    def start_error_catching(self):
        # earlier entries belong to a previous command
        self._errors_list = ImapErrorsList()
        self._is_catching = True

    def stop_and_get_errors_list(self):
        self._is_catching = False
        errors_list = self._errors_list
        self._errors_list = ImapErrorsList()
        return errors_list

    def add_exception(self, exc):
        """Record an exception raised by the IMAP library as an entry."""
        if self._is_catching:
            self._errors_list.add_entry({"err": str(exc), "type": type(exc).__name__})

    def emit(self, record):
        if not self._is_catching:
            return
        entry = {"level": record.levelname, "src": record.name, "msg": record.getMessage()}
        if record.exc_info and record.exc_info[1] is not None:
            entry["err"] = str(record.exc_info[1])
        self._errors_list.add_entry(entry)


@contextmanager
def catch_imap_errors(message):
    """Run an IMAP command, turning library errors into :class:`ImapOperationError`.

    Usage::

        with catch_imap_errors("Unable to delete email"):
            client.delete(uids)
    """
    catcher = ImapErrorCatcher.get_instance()
    catcher.start_error_catching()
    try:
        yield catcher
    except IMAPClientError as exc:
        catcher.add_exception(exc)
        raise ImapOperationError(message, catcher.stop_and_get_errors_list()) from exc
    finally:
        catcher.stop_and_get_errors_list()
