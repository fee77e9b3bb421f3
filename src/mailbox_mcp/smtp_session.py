"""
SMTP Session
============

One SMTP submission per call. Implicit TLS when the account says
``smtp_secure``, STARTTLS otherwise. Failures come back as results, never
as exceptions.
"""

from __future__ import annotations

import logging
import smtplib
import ssl
from typing import TYPE_CHECKING

from contracts import ConnectionTestResult, OutgoingEmail, SendResult
from mailbox_mcp.composer import compose_message, recipients_of

if TYPE_CHECKING:
    from contracts import ResolvedAccount

logger = logging.getLogger("mailbox-mcp.smtp")

SMTP_TIMEOUT = 30.0


class SmtpSession:
    """SMTP transport bound to one ResolvedAccount."""

    def __init__(self, account: ResolvedAccount) -> None:
        self._account = account

    def _open(self) -> smtplib.SMTP:
        account = self._account
        context = ssl.create_default_context()

        if account.smtp_secure:
            return smtplib.SMTP_SSL(
                account.smtp_server, account.smtp_port, timeout=SMTP_TIMEOUT, context=context
            )

        smtp = smtplib.SMTP(account.smtp_server, account.smtp_port, timeout=SMTP_TIMEOUT)
        try:
            smtp.starttls(context=context)
        except (smtplib.SMTPException, OSError):
            smtp.close()
            raise
        return smtp

    def send(self, outgoing: OutgoingEmail) -> SendResult:
        """
        Compose and submit exactly one message.

        POST-SMTP-01: success carries the generated Message-ID
        POST-SMTP-03: every transport or encoding failure is a failed SendResult
        POST-SMTP-04: partially refused recipients reported, message still sent
        INV-SMTP-01: transport closed on every path
        """
        account = self._account
        try:
            message = compose_message(account.email, outgoing)
        except ValueError as e:
            return SendResult(success=False, error=f"Invalid message: {e}")

        try:
            with self._open() as smtp:
                smtp.login(account.email, account.password)
                refused = smtp.send_message(message, from_addr=account.email, to_addrs=recipients_of(outgoing))
        except (smtplib.SMTPException, OSError) as e:
            logger.warning("SMTP send for account %s failed: %s", account.id, e)
            return SendResult(success=False, error=str(e))

        if refused:
            logger.warning("SMTP server refused %d recipient(s) for account %s", len(refused), account.id)

        message_id = str(message["Message-ID"])
        logger.info("Sent message %s for account %s", message_id, account.id)
        return SendResult(success=True, message_id=message_id, refused_recipients=sorted(refused or {}))

    def test_connection(self) -> ConnectionTestResult:
        """
        Handshake, authenticate and NOOP without submitting anything.

        INV-TEST-01: failures are returned in the result
        """
        account = self._account
        try:
            with self._open() as smtp:
                smtp.login(account.email, account.password)
                code, _ = smtp.noop()
        except (smtplib.SMTPException, OSError) as e:
            logger.warning("SMTP connection test for account %s failed: %s", account.id, e)
            return ConnectionTestResult(success=False, error=str(e))

        if code != 250:
            return ConnectionTestResult(success=False, error=f"NOOP returned {code}")
        return ConnectionTestResult(success=True)
