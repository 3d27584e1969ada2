"""Unit tests for header and body decoding helpers."""

import base64

from imap_mail_steps.utils.email_utils import (
    decode_header_value,
    decode_text,
    decode_transfer_encoding,
    extract_date_header,
    has_non_ascii,
    parse_headers,
    remove_diacritics,
)

HEADER_BLOCK = (
    b"Received: from a.example.com\r\n"
    b"Received: from b.example.com\r\n"
    b"Date: Wed, 03 Dec 2025 14:42:50 +0100\r\n"
    b"Subject: =?utf-8?q?Objedn=C3=A1vka?=\r\n"
    b"\r\n"
)


def test_decode_header_value_encoded_word():
    assert decode_header_value("=?utf-8?q?Objedn=C3=A1vka?=") == "Objednávka"


def test_decode_header_value_plain_and_empty():
    assert decode_header_value("Hello") == "Hello"
    assert decode_header_value(b"Hello") == "Hello"
    assert decode_header_value(None) == ""


def test_parse_headers_lowercases_and_collects_repeats():
    headers = parse_headers(HEADER_BLOCK)
    assert headers["received"] == ["from a.example.com", "from b.example.com"]
    assert headers["date"] == "Wed, 03 Dec 2025 14:42:50 +0100"
    assert headers["subject"] == "Objednávka"


def test_parse_headers_empty():
    assert parse_headers(b"") == {}
    assert parse_headers(None) == {}


def test_extract_date_header():
    assert extract_date_header(HEADER_BLOCK) == "Wed, 03 Dec 2025 14:42:50 +0100"
    assert extract_date_header(b"date:   3 Dec 2025 07:56:11\r\n\r\n") == "3 Dec 2025 07:56:11"
    assert extract_date_header(b"Subject: hi\r\n\r\n") is None
    assert extract_date_header(None) is None


def test_decode_transfer_encoding():
    assert decode_transfer_encoding(base64.b64encode(b"hello"), "BASE64") == b"hello"
    assert decode_transfer_encoding(b"caf=C3=A9", "quoted-printable") == "café".encode()
    assert decode_transfer_encoding(b"raw", "7bit") == b"raw"
    assert decode_transfer_encoding(None, "base64") == b""


def test_decode_text_falls_back_to_utf8_for_unknown_charset():
    assert decode_text("žluť".encode("utf-8"), "x-unknown") == "žluť"
    assert decode_text("žluť".encode("iso-8859-2"), "iso-8859-2") == "žluť"


def test_non_ascii_helpers():
    assert has_non_ascii("Objednávka")
    assert not has_non_ascii("Order")
    assert not has_non_ascii(None)
    assert remove_diacritics("Objednávka č. 5") == "Objednavka c. 5"
