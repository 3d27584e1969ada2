"""Email header and body decoding utilities."""

import base64
import binascii
import quopri
import re
import unicodedata

from email.header import decode_header as _decode_header
from email.parser import BytesHeaderParser

_RE_DATE_HEADER = re.compile(r"^Date:\s*([^\r\n]+)", re.IGNORECASE | re.MULTILINE)
_RE_NON_ASCII = re.compile(r"[^\x00-\x7F]")


def decode_header_value(value):
    """Decode a MIME-encoded email header value."""
    if not value:
        return ""
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    decoded_parts = []
    for part, charset in _decode_header(value):
        if isinstance(part, bytes):
            charset = charset or "utf-8"
            try:
                decoded_parts.append(part.decode(charset, errors="replace"))
            except (LookupError, UnicodeDecodeError):
                decoded_parts.append(part.decode("utf-8", errors="replace"))
        else:
            decoded_parts.append(part)
    return "".join(decoded_parts)


def parse_headers(header_bytes):
    """Parse a raw header block into a dict keyed by lower-cased header name.

    Repeated headers (e.g. ``Received``) are collected into a list.
    """
    if not header_bytes:
        return {}
    msg = BytesHeaderParser().parsebytes(header_bytes)
    headers = {}
    for name, value in msg.items():
        key = name.lower()
        decoded = decode_header_value(value)
        if key not in headers:
            headers[key] = decoded
        elif isinstance(headers[key], list):
            headers[key].append(decoded)
        else:
            headers[key] = [headers[key], decoded]
    return headers


def extract_date_header(header_bytes):
    """Return the raw ``Date:`` header value from a header block, or None."""
    if not header_bytes:
        return None
    text = header_bytes.decode("utf-8", errors="replace") if isinstance(header_bytes, bytes) else header_bytes
    match = _RE_DATE_HEADER.search(text)
    if match:
        return match.group(1).strip()
    return None


def decode_transfer_encoding(payload, encoding):
    """Undo a Content-Transfer-Encoding (base64 / quoted-printable) on *payload*."""
    if not payload:
        return b""
    encoding = (encoding or "").lower()
    if encoding == "base64":
        try:
            return base64.b64decode(payload)
        except (binascii.Error, ValueError):
            return payload
    if encoding == "quoted-printable":
        return quopri.decodestring(payload)
    return payload


def decode_text(payload, charset):
    """Decode a byte payload using *charset*, falling back to UTF-8."""
    charset = charset or "utf-8"
    try:
        return payload.decode(charset, errors="replace")
    except (LookupError, UnicodeDecodeError):
        return payload.decode("utf-8", errors="replace")


def has_non_ascii(text):
    """Return True if *text* contains characters outside 7-bit ASCII."""
    return bool(_RE_NON_ASCII.search(text or ""))


def remove_diacritics(text):
    """Strip combining marks, e.g. ``Objednávka`` -> ``Objednavka``.

    Some IMAP servers reject non-ASCII SEARCH arguments.
    """
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))
