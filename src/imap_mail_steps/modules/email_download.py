"""Steps that download message data: the full EML source and attachments."""

import logging

from .body_parts import get_email_parts_info
from .context import Parameter, ResourceOperation, output_item, prepare_binary_data
from .email_actions import MAILBOX_PARAMETER
from .imap_errors import ImapOperationError, catch_imap_errors
from .uid_resolver import EMAIL_UID_PARAMETER, MESSAGE_ID_PARAMETER, resolve_target_uids

logger = logging.getLogger(__name__)


def execute_download_eml(context, item_index, client):
    mailbox = context.get_parameter("mailbox", item_index)
    client.open_mailbox(mailbox, readonly=True)

    output_to_binary = context.get_parameter("outputToBinary", item_index, True)
    binary_property_name = context.get_parameter("binaryPropertyName", item_index, "data")

    uids, results = resolve_target_uids(context, item_index, client, "download")
    if not uids:
        return results

    for uid in uids:
        logger.info('Downloading email "%s" as EML', uid)
        with catch_imap_errors(f"Failed to fetch email UID {uid}") as catcher:
            source = client.fetch_source(uid)
            if source is None:
                raise ImapOperationError(f"Failed to fetch email UID {uid}", catcher.stop_and_get_errors_list())

        json_data = {"uid": uid}
        binary = None
        if output_to_binary:
            binary = {
                binary_property_name: prepare_binary_data(source, f"{mailbox}_{uid}.eml", "message/rfc822"),
            }
        else:
            json_data["emlContent"] = source.decode("utf-8", errors="replace")
        results.append(output_item(json_data, binary=binary, item_index=item_index))
    return results


def _attachment_part_ids(client, uid, include_inline):
    """Part IDs of all attachments (and inline parts if requested) of one message."""
    with catch_imap_errors(f"Failed to fetch email UID {uid}"):
        bodystructure = client.fetch_bodystructure(uid)

    if not bodystructure:
        logger.warning('IMAP server has not returned email body structure for email "%s"', uid)
        return [], None

    part_ids = []
    for part_info in get_email_parts_info(bodystructure):
        logger.debug("Attachment part info: %s", part_info.to_dict())
        if part_info.disposition == "attachment":
            part_ids.append(part_info.part_id)
        elif part_info.disposition == "inline" and include_inline:
            part_ids.append(part_info.part_id)

    if part_ids:
        logger.info('Downloading all attachments from email "%s": %s', uid, ", ".join(part_ids))
    else:
        logger.warning('Email "%s" does not have any attachments', uid)
    return part_ids, bodystructure


def execute_download_attachment(context, item_index, client):
    mailbox = context.get_parameter("mailbox", item_index)
    client.open_mailbox(mailbox, readonly=True)

    all_attachments = context.get_parameter("allAttachments", item_index)

    uids, results = resolve_target_uids(context, item_index, client, "download attachments from")
    if not uids:
        return results

    for uid in uids:
        bodystructure = None
        if all_attachments:
            include_inline = context.get_parameter("includeInlineAttachments", item_index)
            part_ids, bodystructure = _attachment_part_ids(client, uid, include_inline)
        else:
            part_id_text = context.get_parameter("partId", item_index)
            part_ids = [part.strip() for part in str(part_id_text).split(",") if part.strip()]
            logger.info('Downloading some attachments from email "%s": %s', uid, ", ".join(part_ids))

        binary = {}
        attachments = []
        for counter, part_id in enumerate(part_ids):
            logger.info('Downloading attachment "%s" from email "%s"', part_id, uid)
            message = f'Unable to download attachment partId "{part_id}" of email "{uid}"'
            with catch_imap_errors(message) as catcher:
                content, meta = client.download_part(uid, part_id, bodystructure)
                if meta is None:
                    raise ImapOperationError(message, catcher.stop_and_get_errors_list())

            binary_data = prepare_binary_data(content, meta["filename"], meta["contentType"])
            logger.info("Attachment downloaded: %d bytes", binary_data.file_size)

            field_name = f"attachment_{counter}"
            attachments.append({"partId": part_id, "binaryFieldName": field_name, **meta})
            binary[field_name] = binary_data

        results.append(output_item({"uid": uid, "attachments": attachments}, binary=binary, item_index=item_index))
    return results


download_eml_operation = ResourceOperation(
    name="Download as EML",
    value="downloadEml",
    description="Download the full source of one or more emails",
    parameters=[
        MAILBOX_PARAMETER,
        EMAIL_UID_PARAMETER,
        MESSAGE_ID_PARAMETER,
        Parameter(
            name="outputToBinary",
            display_name="Output to Binary Data",
            type="boolean",
            default=True,
            description="Whether to output the email as binary data or JSON as text",
        ),
        Parameter(
            name="binaryPropertyName",
            display_name="Put Output File in Field",
            default="data",
            required=True,
            hint="The name of the output binary field to put the file in",
        ),
    ],
    execute=execute_download_eml,
)

download_attachment_operation = ResourceOperation(
    name="Download Attachment",
    value="downloadAttachment",
    description="Download attachments of one or more emails",
    parameters=[
        MAILBOX_PARAMETER,
        EMAIL_UID_PARAMETER,
        MESSAGE_ID_PARAMETER,
        Parameter(
            name="allAttachments",
            display_name="All Attachments",
            type="boolean",
            default=False,
            description="Whether to download all attachments",
        ),
        Parameter(
            name="partId",
            display_name="Attachment Part IDs",
            default="",
            description="Comma-separated list of attachment part IDs to download",
            hint='Part IDs can be found in the email "attachmentsInfo" property',
        ),
        Parameter(
            name="includeInlineAttachments",
            display_name="Include Inline Attachments",
            type="boolean",
            default=False,
            description="Whether to include inline attachments (e.g. images embedded in HTML)",
        ),
    ],
    execute=execute_download_attachment,
)
