"""Steps that change messages: copy, move, delete and set flags."""

import logging

from .context import Parameter, ResourceOperation, output_item
from .imap_errors import catch_imap_errors
from .uid_resolver import EMAIL_UID_PARAMETER, MESSAGE_ID_PARAMETER, resolve_target_uids

logger = logging.getLogger(__name__)

FLAG_ANSWERED = "\\Answered"
FLAG_FLAGGED = "\\Flagged"
FLAG_DELETED = "\\Deleted"
FLAG_SEEN = "\\Seen"
FLAG_DRAFT = "\\Draft"
STANDARD_FLAGS = (FLAG_ANSWERED, FLAG_DELETED, FLAG_DRAFT, FLAG_FLAGGED, FLAG_SEEN)

KEY_SET_CUSTOM_FLAGS = "setFlags"
KEY_REMOVE_CUSTOM_FLAGS = "removeFlags"

MAILBOX_PARAMETER = Parameter(name="mailbox", display_name="Mailbox", default="INBOX", required=True)
SOURCE_MAILBOX_PARAMETER = Parameter(
    name="sourceMailbox",
    display_name="Source Mailbox",
    default="INBOX",
    required=True,
    description="Select the source mailbox",
)
DESTINATION_MAILBOX_PARAMETER = Parameter(
    name="destinationMailbox",
    display_name="Destination Mailbox",
    required=True,
    description="Select the destination mailbox",
)


# ------------------------------------------------------------------
# Copy / Move
# ------------------------------------------------------------------


def execute_copy_email(context, item_index, client):
    source = context.get_parameter("sourceMailbox", item_index)
    destination = context.get_parameter("destinationMailbox", item_index)

    client.open_mailbox(source, readonly=False)
    uids, results = resolve_target_uids(context, item_index, client, "copy")
    if not uids:
        return results

    uid_list = ",".join(uids)
    logger.info('Copying email(s) "%s" from "%s" to "%s"', uid_list, source, destination)

    with catch_imap_errors("Email copy operation failed"):
        response = client.copy(uids, destination)

    results.append(output_item(response))
    return results


def execute_move_email(context, item_index, client):
    source = context.get_parameter("sourceMailbox", item_index)
    destination = context.get_parameter("destinationMailbox", item_index)
    mark_as_seen = context.get_parameter("markAsSeen", item_index, False)

    client.open_mailbox(source, readonly=False)
    uids, results = resolve_target_uids(context, item_index, client, "move")
    if not uids:
        return results

    uid_list = ",".join(uids)
    logger.info('Moving email(s) "%s" from "%s" to "%s"', uid_list, source, destination)

    with catch_imap_errors("Unable to move email"):
        response = client.move(uids, destination)

    marked_as_seen = False
    if mark_as_seen:
        new_uids = list(response["uidMap"].values())
        if new_uids:
            with catch_imap_errors("Unable to mark moved email as seen"):
                client.open_mailbox(destination, readonly=False)
                client.add_flags(new_uids, [FLAG_SEEN])
            marked_as_seen = True
        else:
            logger.warning("Server returned no UID mapping; cannot mark moved email(s) as seen")

    response["markedAsSeen"] = marked_as_seen
    results.append(output_item(response))
    return results


# ------------------------------------------------------------------
# Delete
# ------------------------------------------------------------------


def execute_delete_email(context, item_index, client):
    mailbox = context.get_parameter("mailbox", item_index)

    client.open_mailbox(mailbox, readonly=False)
    uids, results = resolve_target_uids(context, item_index, client, "delete")
    if not uids:
        return results

    uid_list = ",".join(uids)
    logger.info('Deleting email(s) "%s" from "%s"', uid_list, mailbox)

    with catch_imap_errors("Unable to delete email"):
        client.delete(uids)

    results.append(output_item({"uid": uid_list, "deleted": True}))
    return results


# ------------------------------------------------------------------
# Set flags
# ------------------------------------------------------------------


def _split_space_separated(text):
    return (text or "").split()


def split_flag_changes(flags):
    """Split a flags collection into ``(flags_to_set, flags_to_remove)``.

    Standard flags map ``True`` to set and ``False`` to remove; the custom
    keys hold space separated keywords. A flag present in both lists is set.
    """
    to_set = []
    to_remove = []
    for key, value in (flags or {}).items():
        if key == KEY_SET_CUSTOM_FLAGS:
            to_set.extend(_split_space_separated(value))
        elif key == KEY_REMOVE_CUSTOM_FLAGS:
            to_remove.extend(_split_space_separated(value))
        elif value:
            to_set.append(key)
        else:
            to_remove.append(key)

    to_set = list(dict.fromkeys(to_set))
    to_remove = [flag for flag in dict.fromkeys(to_remove) if flag not in to_set]
    return to_set, to_remove


def execute_set_email_flags(context, item_index, client):
    mailbox = context.get_parameter("mailbox", item_index)
    flags = context.get_parameter("flags", item_index)

    client.open_mailbox(mailbox, readonly=False)
    uids, results = resolve_target_uids(context, item_index, client, "set flags")
    if not uids:
        return results

    flags_to_set, flags_to_remove = split_flag_changes(flags)
    uid_list = ",".join(uids)
    logger.info(
        'Setting flags "%s" and removing flags "%s" on email(s) "%s"',
        ",".join(flags_to_set),
        ",".join(flags_to_remove),
        uid_list,
    )

    if flags_to_set:
        with catch_imap_errors("Unable to set flags"):
            client.add_flags(uids, flags_to_set)
    if flags_to_remove:
        with catch_imap_errors("Unable to remove flags"):
            client.remove_flags(uids, flags_to_remove)

    results.append(output_item({"uid": uid_list}))
    return results


copy_email_operation = ResourceOperation(
    name="Copy",
    value="copyEmail",
    description="Copy one or more emails to another mailbox",
    parameters=[SOURCE_MAILBOX_PARAMETER, EMAIL_UID_PARAMETER, MESSAGE_ID_PARAMETER, DESTINATION_MAILBOX_PARAMETER],
    execute=execute_copy_email,
)

move_email_operation = ResourceOperation(
    name="Move",
    value="moveEmail",
    description="Move one or more emails to another mailbox",
    parameters=[
        SOURCE_MAILBOX_PARAMETER,
        EMAIL_UID_PARAMETER,
        MESSAGE_ID_PARAMETER,
        DESTINATION_MAILBOX_PARAMETER,
        Parameter(
            name="markAsSeen",
            display_name="Mark as Seen",
            type="boolean",
            default=False,
            description="Whether to mark the moved email(s) as seen in the destination mailbox",
        ),
    ],
    execute=execute_move_email,
)

delete_email_operation = ResourceOperation(
    name="Delete",
    value="deleteEmail",
    description="Permanently delete one or more emails from a mailbox",
    parameters=[MAILBOX_PARAMETER, EMAIL_UID_PARAMETER, MESSAGE_ID_PARAMETER],
    execute=execute_delete_email,
)

set_email_flags_operation = ResourceOperation(
    name="Set Flags",
    value="setEmailFlags",
    description='Set flags on an email like "Seen" or "Flagged"',
    parameters=[
        MAILBOX_PARAMETER,
        EMAIL_UID_PARAMETER,
        MESSAGE_ID_PARAMETER,
        Parameter(
            name="flags",
            display_name="Flags",
            type="collection",
            default={},
            required=True,
            description=(
                f"Standard flags ({', '.join(STANDARD_FLAGS)}) as booleans, plus "
                f"'{KEY_SET_CUSTOM_FLAGS}' / '{KEY_REMOVE_CUSTOM_FLAGS}' space separated keywords"
            ),
        ),
    ],
    execute=execute_set_email_flags,
)
