"""
Composer and SMTP Session Tests
===============================

CL12-E TRACEABILITY: Every test cites specific contract clause IDs.
"""

import base64
import smtplib
import ssl
from dataclasses import replace

import pytest
from imapclient.response_types import Address

from contracts import AttachmentInput, EmailDetail, OutgoingEmail
from mailbox_mcp.codec import format_addresses
from mailbox_mcp.composer import (
    FORWARD_HEADER,
    build_forward,
    build_reply,
    compose_message,
    prefix_subject,
)
from mailbox_mcp.smtp_session import SMTP_TIMEOUT, SmtpSession


@pytest.fixture
def original():
    return EmailDetail(
        uid=42,
        from_addr="Alice <alice@example.com>",
        to_addrs="Me <ME@example.com>, Bob <bob@example.com>",
        subject="Hello",
        date="2026-01-15T09:30:00+00:00",
        seen=True,
        flagged=False,
        has_attachments=False,
        preview="Line one",
        cc_addrs="carol@example.com, alice@example.com, bob@example.com",
        bcc_addrs="",
        message_id="<orig-1@example.com>",
        text_body="Line one\nLine two",
        html_body="",
        attachments=[],
    )


class TestComposerContract:
    """Tests for ComposerContract."""

    def test_reply_threading_headers(self, original):
        """
        Contract: ComposerContract
        Enforces: POST-REPLY-01, POST-REPLY-04, INV-COMPOSE-01
        """
        reply = build_reply(original, "me@example.com", "Thanks!")

        assert reply.to == ["alice@example.com"]
        assert reply.cc == []
        assert reply.in_reply_to == "<orig-1@example.com>"
        assert reply.references == "<orig-1@example.com>"
        assert reply.body == (
            "Thanks!\n\n"
            "On 2026-01-15T09:30:00+00:00, Alice <alice@example.com> wrote:\n"
            "> Line one\n"
            "> Line two"
        )

        message = compose_message("me@example.com", reply)
        assert message["In-Reply-To"] == "<orig-1@example.com>"
        assert message["References"] == "<orig-1@example.com>"

    def test_reply_html_quotes_in_blockquote(self, original):
        """
        Contract: ComposerContract
        Enforces: POST-REPLY-04
        """
        reply = build_reply(original, "me@example.com", "<p>Thanks!</p>", is_html=True)

        assert reply.is_html is True
        assert reply.body == (
            "<p>Thanks!</p><br><br><blockquote>"
            "On 2026-01-15T09:30:00+00:00, Alice &lt;alice@example.com&gt; wrote:<br>"
            "Line one<br>Line two</blockquote>"
        )

    def test_reply_all_excludes_self_and_primary(self, original):
        """
        Contract: ComposerContract
        Enforces: POST-REPLY-02, POST-REPLY-03
        """
        reply = build_reply(original, "me@example.com", "Thanks all", reply_all=True)

        assert reply.to == ["alice@example.com"]
        assert reply.cc == ["bob@example.com", "carol@example.com"]
        everyone = [addr.lower() for addr in reply.to + reply.cc]
        assert "me@example.com" not in everyone
        assert len(everyone) == len(set(everyone))

    def test_reply_all_with_comma_in_display_name(self):
        """
        Contract: ComposerContract
        Enforces: POST-REPLY-02, POST-REPLY-03
        """
        to_addrs = format_addresses((
            Address(b"Doe, John", None, b"john", b"example.com"),
            Address(b"Me", None, b"me", b"example.com"),
        ))
        original = EmailDetail(
            uid=7, from_addr="Alice <alice@example.com>", to_addrs=to_addrs, subject="Plans",
            date="", seen=True, flagged=False, has_attachments=False, preview="",
            cc_addrs="", bcc_addrs="", message_id="<plans@example.com>",
            text_body="", html_body="", attachments=[],
        )

        reply = build_reply(original, "me@example.com", "Count me in", reply_all=True)

        assert reply.to == ["alice@example.com"]
        assert reply.cc == ["john@example.com"]

    def test_subject_prefixes(self, original):
        """
        Contract: ComposerContract
        Enforces: POST-SUBJECT-01, POST-SUBJECT-02
        """
        assert build_reply(original, "me@example.com", "x").subject == "Re: Hello"
        assert build_reply(replace(original, subject="Re: Hello"), "me@example.com", "x").subject == "Re: Hello"
        assert build_reply(replace(original, subject="RE: Hello"), "me@example.com", "x").subject == "RE: Hello"
        assert build_forward(original, ["dan@example.com"]).subject == "Fwd: Hello"
        assert build_forward(replace(original, subject="fwd: Hello"), ["dan@example.com"]).subject == "fwd: Hello"
        assert prefix_subject("Fw: Hello", "Fwd: ") == "Fwd: Fw: Hello"

    def test_forward_block(self, original):
        """
        Contract: ComposerContract
        Enforces: POST-FORWARD-01
        """
        plain = build_forward(original, ["dan@example.com"])
        commented = build_forward(original, ["dan@example.com"], comment="FYI")

        expected_block = "\n".join([
            FORWARD_HEADER,
            "From: Alice <alice@example.com>",
            "Date: 2026-01-15T09:30:00+00:00",
            "Subject: Hello",
            "To: Me <ME@example.com>, Bob <bob@example.com>",
            "Cc: carol@example.com, alice@example.com, bob@example.com",
            "",
            "Line one\nLine two",
        ])
        assert plain.body == expected_block
        assert commented.body == "FYI\n\n" + expected_block
        assert commented.is_html is False
        assert commented.to == ["dan@example.com"]
        assert commented.in_reply_to is None

    def test_forward_omits_empty_cc(self, original):
        """
        Contract: ComposerContract
        Enforces: POST-FORWARD-01
        """
        forward = build_forward(replace(original, cc_addrs=""), ["dan@example.com"])

        assert "Cc:" not in forward.body

    def test_compose_html_alternative(self):
        """
        Contract: ComposerContract
        Enforces: POST-COMPOSE-01
        """
        outgoing = OutgoingEmail(
            to=["bob@example.com"],
            cc=["carol@example.com"],
            bcc=["hidden@example.com"],
            subject="Report",
            body="<p>Hello&nbsp;<b>Bob</b></p><p>Bye<br>Me</p>",
            is_html=True,
            attachments=[AttachmentInput(filename="data.csv", content=base64.b64encode(b"a,b").decode())],
        )

        message = compose_message("Me <me@example.com>", outgoing)

        assert message.get_content_type() == "multipart/mixed"
        plain = message.get_body(preferencelist=("plain",))
        html = message.get_body(preferencelist=("html",))
        assert plain.get_content().strip() == "Hello\xa0Bob\n\nBye\nMe"
        assert "<b>Bob</b>" in html.get_content()

        attachment = next(message.iter_attachments())
        assert attachment.get_filename() == "data.csv"
        assert attachment.get_content_type() == "text/csv"
        assert message["Message-ID"].endswith("@example.com>")
        assert message["Bcc"] == "hidden@example.com"


class TestSmtpSessionContract:
    """Tests for SmtpSessionContract."""

    def _outgoing(self, **overrides):
        values = {"to": ["bob@example.com"], "subject": "Hi", "body": "Hello Bob", "bcc": ["x@example.com"]}
        values.update(overrides)
        return OutgoingEmail(**values)

    def test_smtp_send_success(self, mock_smtp, resolved_account):
        """
        Contract: SmtpSessionContract
        Enforces: POST-SMTP-01, POST-SMTP-02, INV-SMTP-01, INV-SMTP-02
        """
        result = SmtpSession(resolved_account).send(self._outgoing())

        factory = mock_smtp["ssl"]
        factory.assert_called_once()
        assert factory.call_args.args == ("smtp.example.com", 465)
        assert factory.call_args.kwargs["timeout"] == SMTP_TIMEOUT
        assert isinstance(factory.call_args.kwargs["context"], ssl.SSLContext)
        mock_smtp["plain"].assert_not_called()

        connection = factory.return_value
        connection.login.assert_called_once_with("me@example.com", "secret123")
        connection.send_message.assert_called_once()
        sent, = connection.send_message.call_args.args
        assert connection.send_message.call_args.kwargs["to_addrs"] == ["bob@example.com", "x@example.com"]
        connection.__exit__.assert_called_once()

        assert result.success is True
        assert result.message_id == sent["Message-ID"]
        assert result.error is None
        assert result.refused_recipients == []

    def test_smtp_send_starttls(self, mock_smtp, resolved_account):
        """
        Contract: SmtpSessionContract
        Enforces: POST-SMTP-02
        """
        account = replace(resolved_account, smtp_port=587, smtp_secure=False)

        result = SmtpSession(account).send(self._outgoing())

        mock_smtp["ssl"].assert_not_called()
        connection = mock_smtp["plain"].return_value
        connection.starttls.assert_called_once()
        connection.login.assert_called_once()
        assert result.success is True

    def test_smtp_send_failure(self, mock_smtp, resolved_account):
        """
        Contract: SmtpSessionContract
        Enforces: POST-SMTP-03, INV-SMTP-01
        """
        connection = mock_smtp["ssl"].return_value
        connection.login.side_effect = smtplib.SMTPAuthenticationError(535, b"5.7.8 bad credentials")

        result = SmtpSession(resolved_account).send(self._outgoing())

        assert result.success is False
        assert "bad credentials" in result.error
        assert result.message_id is None
        connection.send_message.assert_not_called()
        connection.__exit__.assert_called_once()

        mock_smtp["ssl"].side_effect = OSError("Connection refused")
        refused = SmtpSession(resolved_account).send(self._outgoing())
        assert refused.success is False
        assert "Connection refused" in refused.error

    def test_smtp_send_partial_refusal(self, mock_smtp, resolved_account):
        """
        Contract: SmtpSessionContract
        Enforces: POST-SMTP-04
        """
        connection = mock_smtp["ssl"].return_value
        connection.send_message.return_value = {"x@example.com": (550, b"5.1.1 No such user")}

        result = SmtpSession(resolved_account).send(self._outgoing())

        assert result.success is True
        assert result.message_id is not None
        assert result.refused_recipients == ["x@example.com"]

    def test_smtp_send_rejects_bad_attachment(self, mock_smtp, resolved_account):
        """
        Contract: SmtpSessionContract
        Enforces: POST-SMTP-03
        """
        outgoing = self._outgoing(attachments=[AttachmentInput(filename="x.bin", content="***not base64***")])

        result = SmtpSession(resolved_account).send(outgoing)

        assert result.success is False
        mock_smtp["ssl"].assert_not_called()

    def test_smtp_test_connection(self, mock_smtp, resolved_account):
        """
        Contract: ConnectionTestContract
        Enforces: INV-TEST-01
        """
        ok = SmtpSession(resolved_account).test_connection()
        assert ok.success is True
        mock_smtp["ssl"].return_value.send_message.assert_not_called()

        mock_smtp["ssl"].side_effect = smtplib.SMTPConnectError(421, b"try later")
        failed = SmtpSession(resolved_account).test_connection()
        assert failed.success is False
        assert "try later" in failed.error
