"""Shared fixtures: accounts, a mocked IMAPClient and the in-memory backend."""

from unittest.mock import MagicMock, patch

import pytest

from contracts import EmailProvider, ResolvedAccount
from fakes import FakeIMAPBackend
from mailbox_mcp.accounts import Account


@pytest.fixture
def resolved_account():
    """Custom-provider account with every field concrete."""
    return ResolvedAccount(
        id="work",
        email="me@example.com",
        password="secret123",
        provider=EmailProvider.CUSTOM,
        imap_server="imap.example.com",
        imap_port=993,
        smtp_server="smtp.example.com",
        smtp_port=465,
        smtp_secure=True,
        trash_folder="Trash",
    )


@pytest.fixture
def account_records():
    return [
        Account(
            id="work",
            email="me@example.com",
            password="secret123",
            provider="custom",
            imap_server="imap.example.com",
            smtp_server="smtp.example.com",
        ),
        Account(id="personal", email="me@gmail.com", password="app-token", provider="gmail"),
    ]


@pytest.fixture
def mock_imap_client():
    """Mock IMAPClient for testing without a real IMAP server."""
    with patch("mailbox_mcp.imap_session.IMAPClient") as mock:
        client = MagicMock()
        mock.return_value = client

        client.list_folders.return_value = [
            ((b"\\HasNoChildren",), b"/", "INBOX"),
            ((b"\\HasNoChildren",), b"/", "Sent"),
        ]
        client.folder_status.return_value = {b"MESSAGES": 10, b"UNSEEN": 3}
        client.select_folder.return_value = {b"EXISTS": 10}
        client.search.return_value = []
        client.fetch.return_value = {}
        client.has_capability.return_value = True

        yield client


@pytest.fixture
def imap_constructor():
    """The patched IMAPClient class itself (for constructor assertions)."""
    with patch("mailbox_mcp.imap_session.IMAPClient") as mock:
        mock.return_value = MagicMock()
        yield mock


@pytest.fixture
def backend():
    """In-memory mail store wired in place of IMAPClient."""
    store = FakeIMAPBackend()
    store.add_folder("Trash")
    with patch("mailbox_mcp.imap_session.IMAPClient", side_effect=store.connect):
        yield store


@pytest.fixture
def mock_smtp():
    """Patched smtplib.SMTP and SMTP_SSL; each yields a MagicMock connection."""
    with patch("mailbox_mcp.smtp_session.smtplib.SMTP") as plain, \
            patch("mailbox_mcp.smtp_session.smtplib.SMTP_SSL") as implicit:
        for factory in (plain, implicit):
            connection = MagicMock()
            connection.__enter__.return_value = connection
            connection.send_message.return_value = {}
            connection.noop.return_value = (250, b"OK")
            factory.return_value = connection
        yield {"plain": plain, "ssl": implicit}
