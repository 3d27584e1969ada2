"""Unit tests for SEARCH criteria building and client-side filtering."""

from datetime import date

import pytest

from imap_mail_steps.modules.search import (
    build_email_search,
    matches_client_side_filters,
    to_search_date,
)


def test_empty_search_is_all():
    search = build_email_search()
    assert search.criteria == ["ALL"]
    assert not search.needs_client_side_filtering


def test_date_range():
    search = build_email_search(date_range={"since": "2025-12-01", "before": "Wed, 03 Dec 2025 14:42:50 +0100"})
    assert search.criteria == ["SINCE", date(2025, 12, 1), "BEFORE", date(2025, 12, 3)]


def test_to_search_date_rejects_garbage():
    with pytest.raises(ValueError, match="Invalid date"):
        to_search_date("whenever")


def test_flags():
    search = build_email_search(flags={"seen": False, "flagged": True, "recent": False})
    assert "UNSEEN" in search.criteria
    assert "FLAGGED" in search.criteria
    assert "OLD" in search.criteria


def test_ascii_filters_go_to_server():
    search = build_email_search(filters={"from": "alice@example.com", "subject": "Invoice", "uid": "1:10, 15"})
    assert search.criteria == ["FROM", "alice@example.com", "SUBJECT", "Invoice", "UID", "1:10,15"]
    assert search.client_side_filters == {}


def test_non_ascii_filter_is_stripped_and_kept_for_client_side():
    search = build_email_search(filters={"subject": "Objednávka", "text": "žluťoučký"})
    assert search.criteria == ["SUBJECT", "Objednavka", "BODY", "zlutoucky"]
    assert search.client_side_filters == {"subject": "Objednávka", "text": "žluťoučký"}
    assert search.needs_client_side_filtering


ENVELOPE = {
    "subject": "Objednávka č. 42",
    "from": [{"name": "Jiří Novák", "address": "jiri@example.cz"}],
    "to": [{"name": "", "address": "shop@example.com"}],
}


def test_matches_client_side_filters():
    assert matches_client_side_filters(ENVELOPE, {"subject": "objednávka"})
    assert matches_client_side_filters(ENVELOPE, {"from": "Novák"})
    assert not matches_client_side_filters(ENVELOPE, {"subject": "Faktura"})
    assert not matches_client_side_filters(ENVELOPE, {"cc": "anyone"})


def test_text_filter_needs_body():
    assert matches_client_side_filters(ENVELOPE, {"text": "žluť"})
    assert matches_client_side_filters(ENVELOPE, {"text": "žluť"}, body_text="Kůň je žlutý a žluťoučký")
    assert not matches_client_side_filters(ENVELOPE, {"text": "žluť"}, body_text="nothing here")
