"""Resolve target messages from UIDs and/or partial Message-ID patterns."""

import logging
from dataclasses import dataclass, field

from imapclient.exceptions import IMAPClientError

from .context import Parameter, output_item

logger = logging.getLogger(__name__)

EMAIL_UID_PARAMETER = Parameter(
    name="emailUid",
    display_name="Email UID",
    default="",
    description="UID of the email",
    hint="You can use a comma separated list of UIDs",
)

MESSAGE_ID_PARAMETER = Parameter(
    name="messageId",
    display_name="Email Message-ID (Optional)",
    default="",
    description="Message-ID from email header to identify the email (alternative to UID)",
    hint="You can use a comma separated list of Message-IDs. Supports partial matching (e.g. @example.com)",
)


@dataclass
class MessageIdSearchResult:
    """UIDs found for one Message-ID pattern."""

    message_id_pattern: str
    found: bool
    uids: list[str] = field(default_factory=list)


@dataclass
class ResolvedUids:
    uids: list[str]
    not_found_message_ids: list[str]
    used_message_id: bool


def _split_csv(text):
    return [value.strip() for value in (text or "").split(",") if value.strip()]


def find_emails_by_message_id(client, message_id_patterns):
    """Search the open mailbox for each Message-ID pattern.

    Returns one :class:`MessageIdSearchResult` per pattern; a failed search
    is logged and reported as not found.
    """
    results = []
    for pattern in message_id_patterns:
        trimmed = pattern.strip()
        if not trimmed:
            results.append(MessageIdSearchResult(pattern, False))
            continue

        logger.debug('Searching for emails with Message-ID containing: "%s"', trimmed)
        try:
            found = [str(uid) for uid in client.find_by_message_id(trimmed)]
        except IMAPClientError as exc:
            logger.warning('Error searching for Message-ID "%s": %s', trimmed, exc)
            results.append(MessageIdSearchResult(trimmed, False))
            continue

        logger.debug('Found %d email(s) matching Message-ID pattern "%s"', len(found), trimmed)
        results.append(MessageIdSearchResult(trimmed, bool(found), found))
    return results


def resolve_email_uids(client, email_uid, message_id):
    """Combine comma separated UIDs with UIDs found by Message-ID patterns.

    Duplicates are dropped, keeping first-seen order.
    """
    uids = _split_csv(email_uid)
    not_found = []
    used_message_id = bool(message_id and message_id.strip())

    patterns = _split_csv(message_id)
    if patterns:
        for result in find_emails_by_message_id(client, patterns):
            if result.found:
                uids.extend(result.uids)
            else:
                not_found.append(result.message_id_pattern)

    return ResolvedUids(
        uids=list(dict.fromkeys(uids)),
        not_found_message_ids=not_found,
        used_message_id=used_message_id,
    )


def resolve_target_uids(context, item_index, client, action):
    """Resolve the step's target UIDs and the items to report for missing ones.

    Returns
    -------
    tuple[list[str], list[dict]]
        ``(uids, items)``. When *uids* is empty the step should return
        *items* as its whole output.
    """
    email_uid = context.get_parameter("emailUid", item_index)
    message_id = context.get_parameter("messageId", item_index, "")
    resolved = resolve_email_uids(client, email_uid, message_id)

    items = []
    if resolved.used_message_id:
        for not_found_id in resolved.not_found_message_ids:
            items.append(
                output_item(
                    {
                        "messageIdFound": False,
                        "messageId": not_found_id,
                        "message": "Email with specified Message-ID not found",
                    }
                )
            )

    if not resolved.uids and not items:
        items.append(
            output_item(
                {
                    "messageIdFound": False,
                    "messageId": message_id or "",
                    "message": f"No emails found to {action}",
                }
            )
        )
    return resolved.uids, items
