"""IMAP SEARCH criteria built from step search parameters."""

import logging
from dataclasses import dataclass, field
from datetime import datetime

from .context import Parameter
from ..utils.date_utils import parse_date, parse_email_date
from ..utils.email_utils import has_non_ascii, remove_diacritics

logger = logging.getLogger(__name__)

# flag name -> (criterion when true, criterion when false)
_FLAG_CRITERIA = {
    "answered": ("ANSWERED", "UNANSWERED"),
    "deleted": ("DELETED", "UNDELETED"),
    "draft": ("DRAFT", "UNDRAFT"),
    "flagged": ("FLAGGED", "UNFLAGGED"),
    "recent": ("RECENT", "OLD"),
    "seen": ("SEEN", "UNSEEN"),
}

# filter name -> SEARCH key; text filters may need client-side matching
_TEXT_FILTERS = {
    "bcc": "BCC",
    "cc": "CC",
    "from": "FROM",
    "subject": "SUBJECT",
    "text": "BODY",
    "to": "TO",
}

EMAIL_SEARCH_PARAMETERS = [
    Parameter(
        name="emailDateRange",
        display_name="Date Range",
        type="collection",
        default={},
        description="Since / before dates of the search",
    ),
    Parameter(
        name="emailFlags",
        display_name="Flags",
        type="collection",
        default={},
        description="answered, deleted, draft, flagged, recent, seen",
        hint="If seen is false, only unseen emails will be returned.",
    ),
    Parameter(
        name="emailSearchFilters",
        display_name="Search Filters",
        type="collection",
        default={},
        description="bcc, cc, from, subject, text, to, uid",
        hint="Search filters are case-insensitive and combined with AND (must match all).",
    ),
]


@dataclass
class EmailSearch:
    """SEARCH criteria plus filters that must be re-checked locally.

    ``client_side_filters`` keeps the original non-ASCII text of filters whose
    server-side criterion had its diacritics stripped.
    """

    criteria: list = field(default_factory=list)
    client_side_filters: dict[str, str] = field(default_factory=dict)

    @property
    def needs_client_side_filtering(self):
        return bool(self.client_side_filters)


def to_search_date(text):
    """Parse a SINCE/BEFORE value: a plain date or anything :func:`parse_email_date` normalizes."""
    try:
        return parse_date(text)
    except ValueError:
        pass
    canonical = parse_email_date(text)
    if not canonical or canonical == text:
        raise ValueError(f"Invalid date: '{text}'")
    return datetime.fromisoformat(canonical.replace("Z", "+00:00")).date()


def build_email_search(date_range=None, flags=None, filters=None):
    """Translate step search parameters into an :class:`EmailSearch`."""
    search = EmailSearch()
    date_range = date_range or {}
    flags = flags or {}
    filters = filters or {}

    if date_range.get("since"):
        search.criteria += ["SINCE", to_search_date(date_range["since"])]
    if date_range.get("before"):
        search.criteria += ["BEFORE", to_search_date(date_range["before"])]

    for name, (when_true, when_false) in _FLAG_CRITERIA.items():
        if name in flags:
            search.criteria.append(when_true if flags[name] else when_false)

    for name, key in _TEXT_FILTERS.items():
        value = filters.get(name)
        if not value:
            continue
        if has_non_ascii(value):
            search.criteria += [key, remove_diacritics(value)]
            search.client_side_filters[name] = value
            logger.debug("Non-ASCII %s filter; searching server with ASCII text", name)
        else:
            search.criteria += [key, value]

    if filters.get("uid"):
        search.criteria += ["UID", str(filters["uid"]).replace(" ", "")]

    if not search.criteria:
        search.criteria = ["ALL"]
    return search


def get_email_search_from_context(context, item_index):
    return build_email_search(
        context.get_parameter("emailDateRange", item_index),
        context.get_parameter("emailFlags", item_index),
        context.get_parameter("emailSearchFilters", item_index),
    )


def _addresses_text(addresses):
    return " ".join(f"{addr.get('name', '')} {addr.get('address', '')}" for addr in addresses or [])


def matches_client_side_filters(envelope, filters, body_text=None):
    """Case-insensitive substring match of *filters* against a decoded envelope.

    The ``text`` filter is checked against *body_text* and is skipped when no
    body was fetched.
    """
    for name, expected in filters.items():
        if name == "subject":
            haystack = envelope.get("subject") or ""
        elif name == "text":
            if body_text is None:
                continue
            haystack = body_text
        else:
            haystack = _addresses_text(envelope.get(name))
        if expected.lower() not in haystack.lower():
            return False
    return True
