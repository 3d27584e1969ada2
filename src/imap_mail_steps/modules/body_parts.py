"""BODYSTRUCTURE walking: part IDs, types and dispositions of message parts."""

from dataclasses import asdict, dataclass
from email.utils import decode_rfc2231
from urllib.parse import unquote

from ..utils.email_utils import decode_header_value

# Position of the disposition field in a non-multipart BODYSTRUCTURE,
# which depends on the media type (RFC 3501, section 7.4.2).
_DISPOSITION_INDEX_TEXT = 9
_DISPOSITION_INDEX_MESSAGE = 11
_DISPOSITION_INDEX_OTHER = 8


@dataclass
class EmailPartInfo:  # pylint: disable=too-many-instance-attributes
    """Single leaf part of a message."""

    part_id: str
    type: str
    encoding: str
    size: int
    disposition: str | None = None
    filename: str | None = None
    charset: str | None = None

    def to_dict(self):
        return asdict(self)


def _text(value):
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def _params_to_dict(params):
    """``(b"charset", b"utf-8", b"name", b"a.pdf")`` -> ``{"charset": "utf-8", "name": "a.pdf"}``"""
    if not params or not isinstance(params, (list, tuple)):
        return {}
    it = iter(params)
    return {_text(key).lower(): _text(value) for key, value in zip(it, it)}


def _decode_filename(params):
    if "filename*" in params:
        _, _, value = decode_rfc2231(params["filename*"])
        return unquote(value)
    for key in ("filename", "name"):
        if params.get(key):
            return decode_header_value(params[key])
    if "name*" in params:
        _, _, value = decode_rfc2231(params["name*"])
        return unquote(value)
    return None


def _leaf_info(part, part_id):
    main_type = _text(part[0]).lower()
    sub_type = _text(part[1]).lower()
    params = _params_to_dict(part[2])

    if main_type == "text":
        index = _DISPOSITION_INDEX_TEXT
    elif (main_type, sub_type) == ("message", "rfc822"):
        index = _DISPOSITION_INDEX_MESSAGE
    else:
        index = _DISPOSITION_INDEX_OTHER

    disposition = None
    disposition_params = {}
    raw_disposition = part[index] if len(part) > index else None
    if isinstance(raw_disposition, (list, tuple)) and raw_disposition:
        disposition = _text(raw_disposition[0]).lower()
        if len(raw_disposition) > 1:
            disposition_params = _params_to_dict(raw_disposition[1])

    size = part[6] if len(part) > 6 and isinstance(part[6], int) else 0

    return EmailPartInfo(
        part_id=part_id,
        type=f"{main_type}/{sub_type}",
        encoding=_text(part[5]).lower() if len(part) > 5 else "",
        size=size,
        disposition=disposition,
        filename=_decode_filename({**params, **disposition_params}),
        charset=params.get("charset"),
    )


def _is_multipart(part):
    return bool(part) and isinstance(part[0], list)


def get_email_parts_info(bodystructure, prefix=""):
    """Return :class:`EmailPartInfo` for every leaf part of *bodystructure*.

    Parts are numbered the way ``BODY[<part>]`` expects: ``1``, ``2``,
    ``1.2``; a single-part message has the one part ``1``.
    """
    if not bodystructure:
        return []
    if not _is_multipart(bodystructure):
        return [_leaf_info(bodystructure, prefix or "1")]

    parts = []
    for index, child in enumerate(bodystructure[0], start=1):
        child_id = f"{prefix}{index}"
        if _is_multipart(child):
            parts.extend(get_email_parts_info(child, prefix=f"{child_id}."))
        else:
            parts.append(_leaf_info(child, child_id))
    return parts


def find_part(bodystructure, part_id):
    """Return the :class:`EmailPartInfo` for *part_id*, or None."""
    for info in get_email_parts_info(bodystructure):
        if info.part_id == part_id:
            return info
    return None


def bodystructure_to_json(bodystructure):
    """Convert imapclient's nested bytes/tuple BODYSTRUCTURE into JSON-able lists."""
    if isinstance(bodystructure, bytes):
        return bodystructure.decode("utf-8", errors="replace")
    if isinstance(bodystructure, (list, tuple)):
        return [bodystructure_to_json(item) for item in bodystructure]
    return bodystructure
