"""
Mailbox MCP Server
==================

Multi-account IMAP/SMTP mailbox gateway for AI agents over MCP.
"""

__version__ = "0.1.0"

from mailbox_mcp.accounts import Account, find_account, load_accounts, load_accounts_from_env, resolve_account
from mailbox_mcp.imap_session import MailSession, build_search_query
from mailbox_mcp.server import MailboxMCPServer, create_server, get_server
from mailbox_mcp.smtp_session import SmtpSession

__all__ = [
    "MailboxMCPServer",
    "get_server",
    "create_server",
    "MailSession",
    "SmtpSession",
    "build_search_query",
    "Account",
    "load_accounts",
    "load_accounts_from_env",
    "find_account",
    "resolve_account",
]
