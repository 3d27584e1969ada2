"""``getEmailsList`` step: search a mailbox and describe the matching messages."""

import logging

from .body_parts import bodystructure_to_json, get_email_parts_info
from .context import Parameter, ResourceOperation, output_item
from .imap_errors import catch_imap_errors
from .search import EMAIL_SEARCH_PARAMETERS, get_email_search_from_context, matches_client_side_filters
from ..utils.date_utils import parse_email_date, render_regional_civiltime
from ..utils.email_utils import decode_header_value, decode_text, extract_date_header, parse_headers

logger = logging.getLogger(__name__)

PART_BODY_STRUCTURE = "bodyStructure"
PART_FLAGS = "flags"
PART_SIZE = "size"
PART_ATTACHMENTS_INFO = "attachmentsInfo"
PART_TEXT_CONTENT = "textContent"
PART_HTML_CONTENT = "htmlContent"
PART_HEADERS = "headers"

EMAIL_PARTS = (
    PART_BODY_STRUCTURE,
    PART_FLAGS,
    PART_SIZE,
    PART_ATTACHMENTS_INFO,
    PART_TEXT_CONTENT,
    PART_HTML_CONTENT,
    PART_HEADERS,
)


def _decode_bytes(value):
    if value is None:
        return None
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def _address_list(addresses):
    result = []
    for addr in addresses or ():
        mailbox = _decode_bytes(addr.mailbox) or ""
        host = _decode_bytes(addr.host) or ""
        result.append(
            {
                "name": decode_header_value(addr.name) if addr.name else "",
                "address": f"{mailbox}@{host}" if host else mailbox,
            }
        )
    return result


def envelope_to_dict(envelope):
    """Decode an imapclient ``Envelope`` into plain JSON-able values."""
    if envelope is None:
        return {}
    return {
        "date": envelope.date.isoformat() if envelope.date else None,
        "subject": decode_header_value(envelope.subject) if envelope.subject else "",
        "from": _address_list(envelope.from_),
        "sender": _address_list(envelope.sender),
        "replyTo": _address_list(envelope.reply_to),
        "to": _address_list(envelope.to),
        "cc": _address_list(envelope.cc),
        "bcc": _address_list(envelope.bcc),
        "inReplyTo": _decode_bytes(envelope.in_reply_to),
        "messageId": _decode_bytes(envelope.message_id),
    }


def apply_date_fields(item_json, raw_date):
    """Attach the normalized date fields to an output record.

    ``envelope.dateOriginal`` always keeps *raw_date*. When the date could be
    normalized, ``envelope.date`` is the UTC instant and ``date`` its Central
    European rendering; otherwise both carry *raw_date* as-is.
    """
    if not raw_date or not raw_date.strip():
        return
    envelope = item_json.setdefault("envelope", {})
    envelope["dateOriginal"] = raw_date

    parsed = parse_email_date(raw_date)
    if parsed and parsed.strip() and parsed != raw_date:
        envelope["date"] = parsed
        item_json["date"] = render_regional_civiltime(parsed) or raw_date
    else:
        envelope["date"] = raw_date
        item_json["date"] = raw_date


def _header_fetch_item(context, item_index, include_parts):
    if PART_HEADERS not in include_parts:
        return "BODY.PEEK[HEADER.FIELDS (DATE)]"
    if context.get_parameter("includeAllHeaders", item_index):
        return "BODY.PEEK[HEADER]"

    headers_to_include = context.get_parameter("headersToInclude", item_index)
    names = [name.strip() for name in (headers_to_include or "").split(",") if name.strip()]
    if not any(name.lower() == "date" for name in names):
        names.append("Date")
    logger.info("Including headers: %s", ", ".join(names))
    return f"BODY.PEEK[HEADER.FIELDS ({' '.join(names)})]"


def _find_header_block(data):
    for key, value in data.items():
        if isinstance(key, bytes) and key.upper().startswith(b"BODY[HEADER"):
            return value
    return None


def _download_text(client, uid, part_info, bodystructure):
    content, meta = client.download_part(uid, part_info.part_id, bodystructure)
    if meta is None or content is None:
        return None
    return decode_text(content, part_info.charset)


def _build_item(client, mailbox_path, uid, data, include_parts):  # pylint: disable=too-many-locals
    item_json = {"uid": uid, "mailboxPath": mailbox_path, "envelope": envelope_to_dict(data.get(b"ENVELOPE"))}

    if PART_FLAGS in include_parts:
        item_json["flags"] = [_decode_bytes(flag) for flag in data.get(b"FLAGS", ())]
    if PART_SIZE in include_parts:
        item_json["size"] = data.get(b"RFC822.SIZE")

    header_block = _find_header_block(data)
    raw_date = extract_date_header(header_block) or item_json["envelope"].get("date")
    apply_date_fields(item_json, raw_date)

    if PART_HEADERS in include_parts:
        item_json["headers"] = parse_headers(header_block)

    bodystructure = data.get(b"BODYSTRUCTURE")
    if PART_BODY_STRUCTURE in include_parts:
        item_json["bodyStructure"] = bodystructure_to_json(bodystructure)

    include_text = PART_TEXT_CONTENT in include_parts
    include_html = PART_HTML_CONTENT in include_parts
    include_attachments = PART_ATTACHMENTS_INFO in include_parts

    text_part = None
    html_part = None
    attachments_info = []
    if bodystructure and (include_text or include_html or include_attachments):
        for part_info in get_email_parts_info(bodystructure):
            if part_info.disposition == "attachment":
                attachments_info.append(
                    {
                        "partId": part_info.part_id,
                        "filename": part_info.filename,
                        "type": part_info.type,
                        "encoding": part_info.encoding,
                        "size": part_info.size,
                    }
                )
            elif part_info.type == "text/plain":
                text_part = part_info
            elif part_info.type == "text/html":
                html_part = part_info

    if include_attachments:
        item_json["attachmentsInfo"] = attachments_info
    if include_text:
        item_json["textContent"] = _download_text(client, uid, text_part, bodystructure) if text_part else None
    if include_html:
        item_json["htmlContent"] = _download_text(client, uid, html_part, bodystructure) if html_part else None
    return item_json


def execute_get_emails_list(context, item_index, client):  # pylint: disable=too-many-locals
    mailbox_path = context.get_parameter("mailbox", item_index)
    logger.info("Getting emails list from %s", mailbox_path)

    include_parts = context.get_parameter("includeParts", item_index) or []
    search = get_email_search_from_context(context, item_index)

    fetch_items = ["ENVELOPE", _header_fetch_item(context, item_index, include_parts)]
    if PART_FLAGS in include_parts:
        fetch_items.append("FLAGS")
    if PART_SIZE in include_parts:
        fetch_items.append("RFC822.SIZE")
    if {PART_BODY_STRUCTURE, PART_ATTACHMENTS_INFO, PART_TEXT_CONTENT, PART_HTML_CONTENT} & set(include_parts):
        fetch_items.append("BODYSTRUCTURE")
    if "text" in search.client_side_filters:
        fetch_items.append("BODY.PEEK[TEXT]")

    logger.debug("Search criteria: %s", search.criteria)
    logger.debug("Fetch items: %s", fetch_items)

    with catch_imap_errors(f"Unable to list emails in {mailbox_path}"):
        client.open_mailbox(mailbox_path, readonly=True)
        uids = client.search(search.criteria)
        fetched = client.fetch(uids, fetch_items) if uids else {}
    logger.info("Found %d emails", len(fetched))

    results = []
    for uid in sorted(fetched):
        data = fetched[uid]
        body_text = None
        if b"BODY[TEXT]" in data:
            body_text = decode_text(data[b"BODY[TEXT]"] or b"", None)

        if search.needs_client_side_filtering:
            envelope = envelope_to_dict(data.get(b"ENVELOPE"))
            if not matches_client_side_filters(envelope, search.client_side_filters, body_text):
                logger.debug("  %s skipped by client-side filter", uid)
                continue

        logger.info("  %s", uid)
        with catch_imap_errors(f"Unable to fetch content of email {uid}"):
            item_json = _build_item(client, mailbox_path, uid, data, include_parts)
        results.append(output_item(item_json, item_index=item_index))
    return results


get_emails_list_operation = ResourceOperation(
    name="Get Many",
    value="getEmailsList",
    description="List emails in a mailbox matching search criteria",
    parameters=[
        Parameter(name="mailbox", display_name="Mailbox", default="INBOX", required=True),
        *EMAIL_SEARCH_PARAMETERS,
        Parameter(
            name="includeParts",
            display_name="Include Message Parts",
            type="multiOptions",
            default=[],
            description=", ".join(EMAIL_PARTS),
        ),
        Parameter(
            name="includeAllHeaders",
            display_name="Include All Headers",
            type="boolean",
            default=True,
            description="Whether to include all headers in the output",
        ),
        Parameter(
            name="headersToInclude",
            display_name="Headers to Include",
            default="",
            description="Comma-separated list of headers to include",
            hint="received,authentication-results,return-path",
        ),
    ],
    execute=execute_get_emails_list,
)
