"""
Message Codec Tests
===================

Fetch-response parsing: envelopes, body structures, previews.
"""

from datetime import datetime, timezone

from imapclient.response_types import Address, Envelope

from fakes import make_raw_email
from mailbox_mcp.codec import (
    decode_header_value,
    extract_email_address,
    extract_preview,
    format_addresses,
    has_attachment_part,
    html_to_text,
    parse_detail,
    parse_summary,
    split_addresses,
)


def _envelope(**overrides):
    values = {
        "date": datetime(2026, 2, 1, 8, 0, tzinfo=timezone.utc),
        "subject": b"=?utf-8?b?5Y+R56Wo?=",
        "from_": (Address(b"Alice", None, b"alice", b"example.com"),),
        "sender": None,
        "reply_to": None,
        "to": (Address(None, None, b"me", b"example.com"), Address(b"Bob", None, b"bob", b"example.com")),
        "cc": None,
        "bcc": None,
        "in_reply_to": None,
        "message_id": b"<env-1@example.com>",
    }
    values.update(overrides)
    return Envelope(**values)


class TestAddresses:

    def test_format_addresses(self):
        addresses = (
            Address(b"Alice", None, b"alice", b"example.com"),
            Address(None, None, b"bob", b"example.com"),
            Address(None, None, b"undisclosed-recipients", None),  # group start
            Address(None, None, None, None),  # group end
        )

        assert format_addresses(addresses) == "Alice <alice@example.com>, bob@example.com"
        assert format_addresses(None) == ""

    def test_format_addresses_quotes_special_names(self):
        addresses = (
            Address(b"Doe, John", None, b"john", b"example.com"),
            Address(b"J. \"JJ\" Smith", None, b"jj", b"example.com"),
            Address("张三".encode(), None, b"zhang", b"example.com"),
        )

        formatted = format_addresses(addresses)

        assert formatted == (
            '"Doe, John" <john@example.com>, '
            '"J. \\"JJ\\" Smith" <jj@example.com>, '
            "张三 <zhang@example.com>"
        )
        assert split_addresses(formatted) == ["john@example.com", "jj@example.com", "zhang@example.com"]

    def test_decode_header_value(self):
        assert decode_header_value(b"=?utf-8?b?5Y+R56Wo?=") == "发票"
        assert decode_header_value("plain") == "plain"
        assert decode_header_value(None) == ""

    def test_extract_email_address(self):
        assert extract_email_address("Alice <alice@example.com>") == "alice@example.com"
        assert extract_email_address("  bob@example.com ") == "bob@example.com"
        assert extract_email_address('"Doe, <John>" <john@example.com>') == "john@example.com"


class TestBodyStructure:

    def test_has_attachment_part(self):
        text_part = (b"text", b"plain", (b"charset", b"utf-8"), None, None, b"7bit", 12, 1)
        pdf_part = (
            b"application", b"pdf", (b"name", b"r.pdf"), None, None, b"base64", 2048,
            None, (b"attachment", (b"filename", b"r.pdf")), None,
        )
        inline_part = (
            b"text", b"html", (b"charset", b"utf-8"), None, None, b"7bit", 40, 2,
            None, (b"inline", None), None,
        )

        assert has_attachment_part(([text_part, pdf_part], b"mixed")) is True
        assert has_attachment_part(([text_part, inline_part], b"alternative")) is False
        assert has_attachment_part(([([text_part, pdf_part], b"mixed")], b"mixed")) is True
        assert has_attachment_part(text_part) is False
        assert has_attachment_part(None) is False


class TestBodies:

    def test_html_to_text(self):
        html = "<style>p {color: red}</style><p>Hello&amp;welcome</p><p>A<br/>B</p>"

        assert html_to_text(html) == "Hello&welcome\n\nA\nB"

    def test_extract_preview_collapses_and_truncates(self):
        raw = make_raw_email(body="word   " * 100)

        preview = extract_preview(raw)

        assert len(preview) == 200
        assert "  " not in preview

    def test_extract_preview_prefers_plain_and_falls_back_to_html(self):
        raw = make_raw_email(body="plain text", html="<p>html text</p>")

        assert extract_preview(raw) == "plain text"
        assert extract_preview(b"") == ""


class TestParse:

    def test_parse_summary_from_envelope(self):
        data = {
            b"ENVELOPE": _envelope(),
            b"FLAGS": (b"\\Seen", b"\\Flagged"),
            b"BODYSTRUCTURE": None,
            b"BODY[]<0>": make_raw_email(body="Preview body")[:1000],
        }

        summary = parse_summary(9, data)

        assert summary.uid == 9
        assert summary.subject == "发票"
        assert summary.from_addr == "Alice <alice@example.com>"
        assert summary.to_addrs == "me@example.com, Bob <bob@example.com>"
        assert summary.date == "2026-02-01T08:00:00+00:00"
        assert summary.seen is True
        assert summary.flagged is True
        assert summary.preview == "Preview body"

    def test_parse_summary_without_subject(self):
        summary = parse_summary(1, {b"ENVELOPE": _envelope(subject=None), b"FLAGS": ()})

        assert summary.subject == "(no subject)"
        assert summary.seen is False
        assert summary.preview == ""

    def test_parse_detail_requires_source(self):
        assert parse_detail(1, {b"FLAGS": ()}) is None

    def test_parse_detail_html_only(self):
        raw = (
            b"From: a@example.com\r\nTo: b@example.com\r\nSubject: Hi\r\n"
            b"Content-Type: text/html; charset=utf-8\r\n\r\n<p>Only <b>html</b></p>\r\n"
        )

        detail = parse_detail(3, {b"BODY[]": raw, b"FLAGS": ()})

        assert detail.text_body == "Only html"
        assert "<b>html</b>" in detail.html_body
        assert detail.attachments == []
