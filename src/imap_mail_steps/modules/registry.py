"""Registry of available mailbox steps, keyed by operation value."""

from .email_actions import (
    copy_email_operation,
    delete_email_operation,
    move_email_operation,
    set_email_flags_operation,
)
from .email_download import download_attachment_operation, download_eml_operation
from .email_list import get_emails_list_operation

OPERATIONS = {
    op.value: op
    for op in (
        get_emails_list_operation,
        copy_email_operation,
        move_email_operation,
        delete_email_operation,
        set_email_flags_operation,
        download_eml_operation,
        download_attachment_operation,
    )
}


def get_operation(value):
    """Return the :class:`ResourceOperation` registered as *value*.

    Raises
    ------
    KeyError
        If no operation is registered under *value*.
    """
    try:
        return OPERATIONS[value]
    except KeyError:
        raise KeyError(f"Unknown operation '{value}'. Available: {', '.join(sorted(OPERATIONS))}") from None
