"""
Mailbox MCP Server
==================

MCP server exposing multi-account IMAP/SMTP mailbox operations as tools.

CONSTITUTIONAL INVARIANTS ENFORCED:
- INV-GLOBAL-01: Every tool call opens (and closes) its own session
- INV-GLOBAL-02: No logging of message bodies, attachments or credentials
- INV-GLOBAL-03: No mailbox state kept between tool calls
- INV-GLOBAL-04: A failing tool call returns an error result; the server keeps running
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from dataclasses import asdict
from typing import Any

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from contracts import (
    AttachmentInput,
    MailboxMCPError,
    OutgoingEmail,
    ResolvedAccount,
    SearchCriteria,
    SearchScope,
    UidNotFoundError,
)
from mailbox_mcp.accounts import Account, find_account, load_accounts_from_env, resolve_account
from mailbox_mcp.composer import build_forward, build_reply
from mailbox_mcp.imap_session import (
    DEFAULT_FOLDER,
    MAX_LIMIT,
    MailSession,
    check_date_range,
    parse_search_date,
)
from mailbox_mcp.smtp_session import SmtpSession

LOG_LEVEL_ENV_VAR = "MAILBOX_MCP_LOG_LEVEL"


def _log_level() -> int:
    level = logging.getLevelName(os.environ.get(LOG_LEVEL_ENV_VAR, "INFO").upper())
    return level if isinstance(level, int) else logging.INFO


# Configure logging to NEVER include message content (INV-GLOBAL-02)
logging.basicConfig(
    level=_log_level(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("mailbox-mcp")


# =============================================================================
# TOOL SCHEMAS
# =============================================================================

_ACCOUNT_ID = {"type": "string", "description": "Account ID (see list_accounts)"}
_FOLDER = {"type": "string", "description": "Folder path (default: INBOX)", "default": DEFAULT_FOLDER}
_UID = {"type": "integer", "description": "Message UID", "minimum": 1}
_UIDS = {"type": "array", "items": {"type": "integer"}, "description": "Message UIDs", "minItems": 1}
_ADDRESSES = {"type": "array", "items": {"type": "string"}}


def _limit(default: int) -> dict:
    return {
        "type": "integer",
        "description": f"Maximum emails to return (1-{MAX_LIMIT}, default: {default})",
        "minimum": 1,
        "maximum": MAX_LIMIT,
        "default": default,
    }


def _schema(properties: dict, required: list[str] | None = None) -> dict:
    return {
        "type": "object",
        "properties": {"account_id": _ACCOUNT_ID, **properties},
        "required": ["account_id", *(required or [])],
    }


TOOLS = [
    Tool(
        name="list_accounts",
        description="List configured email accounts",
        inputSchema={"type": "object", "properties": {}},
    ),
    Tool(
        name="list_folders",
        description="List mailbox folders with message and unread counts",
        inputSchema=_schema({}),
    ),
    Tool(
        name="list_emails",
        description="List the newest emails in a folder",
        inputSchema=_schema({
            "folder": _FOLDER,
            "limit": _limit(20),
            "unread_only": {"type": "boolean", "description": "Only unread emails", "default": False},
        }),
    ),
    Tool(
        name="get_email_detail",
        description="Get the full content of one email",
        inputSchema=_schema({
            "uid": _UID,
            "folder": _FOLDER,
            "include_attachment_content": {
                "type": "boolean",
                "description": "Include base64 attachment content",
                "default": False,
            },
        }, ["uid"]),
    ),
    Tool(
        name="get_attachments",
        description="Get the attachments of one email with base64 content",
        inputSchema=_schema({"uid": _UID, "folder": _FOLDER}, ["uid"]),
    ),
    Tool(
        name="search_emails",
        description="Search emails by keyword, date range and flags",
        inputSchema=_schema({
            "query": {"type": "string", "description": "Keyword to search for"},
            "search_in": {
                "type": "string",
                "enum": [scope.value for scope in SearchScope],
                "description": "Field to match the keyword against (default: all)",
                "default": SearchScope.ALL.value,
            },
            "folder": _FOLDER,
            "date_from": {"type": "string", "description": "YYYY-MM-DD - emails on or after this date"},
            "date_to": {"type": "string", "description": "YYYY-MM-DD - emails before this date"},
            "unread_only": {"type": "boolean", "default": False},
            "flagged_only": {"type": "boolean", "default": False},
            "limit": _limit(50),
        }),
    ),
    Tool(
        name="mark_emails",
        description="Mark emails as read or unread",
        inputSchema=_schema({
            "uids": _UIDS,
            "mark_as": {"type": "string", "enum": ["read", "unread"]},
            "folder": _FOLDER,
        }, ["uids", "mark_as"]),
    ),
    Tool(
        name="flag_email",
        description="Star or unstar an email (\\Flagged)",
        inputSchema=_schema({
            "uid": _UID,
            "set_flag": {"type": "boolean", "description": "True to flag, False to unflag"},
            "folder": _FOLDER,
        }, ["uid", "set_flag"]),
    ),
    Tool(
        name="delete_emails",
        description="Delete emails (move to trash, or permanently)",
        inputSchema=_schema({
            "uids": _UIDS,
            "folder": _FOLDER,
            "permanent": {"type": "boolean", "description": "Expunge instead of moving to trash", "default": False},
        }, ["uids"]),
    ),
    Tool(
        name="move_emails",
        description="Move emails to another folder",
        inputSchema=_schema({
            "uids": _UIDS,
            "target_folder": {"type": "string", "description": "Destination folder path"},
            "source_folder": _FOLDER,
        }, ["uids", "target_folder"]),
    ),
    Tool(
        name="send_email",
        description="Send a new email",
        inputSchema=_schema({
            "to": {**_ADDRESSES, "minItems": 1, "description": "Recipient addresses"},
            "subject": {"type": "string"},
            "body": {"type": "string"},
            "is_html": {"type": "boolean", "description": "Body is HTML", "default": False},
            "cc": {**_ADDRESSES, "description": "CC recipients"},
            "bcc": {**_ADDRESSES, "description": "BCC recipients"},
            "attachments": {
                "type": "array",
                "description": "Attachments with base64 content",
                "items": {
                    "type": "object",
                    "properties": {
                        "filename": {"type": "string"},
                        "content": {"type": "string", "description": "Base64 encoded content"},
                        "content_type": {"type": "string", "description": "MIME type"},
                    },
                    "required": ["filename", "content"],
                },
            },
        }, ["to", "subject", "body"]),
    ),
    Tool(
        name="reply_email",
        description="Reply to an email with threading headers and the original quoted",
        inputSchema=_schema({
            "uid": _UID,
            "body": {"type": "string"},
            "reply_all": {"type": "boolean", "default": False},
            "is_html": {"type": "boolean", "default": False},
            "folder": _FOLDER,
        }, ["uid", "body"]),
    ),
    Tool(
        name="forward_email",
        description="Forward an email to other recipients",
        inputSchema=_schema({
            "uid": _UID,
            "to": {**_ADDRESSES, "minItems": 1, "description": "Recipient addresses"},
            "comment": {"type": "string", "description": "Text placed before the forwarded message"},
            "include_attachments": {"type": "boolean", "default": False},
            "folder": _FOLDER,
        }, ["uid", "to"]),
    ),
    Tool(
        name="test_connection",
        description="Check IMAP and SMTP connectivity for an account",
        inputSchema=_schema({}),
    ),
]


# =============================================================================
# SERVER
# =============================================================================

class MailboxMCPServer:
    """
    Mailbox MCP Server - multi-account email access for AI agents.

    Holds only the account list. Each operation resolves its account and
    opens fresh sessions (INV-GLOBAL-01, INV-GLOBAL-03).
    """

    def __init__(self, accounts: list[Account]) -> None:
        self._accounts = list(accounts)
        self._server = Server("mailbox-mcp")
        self._handlers = {
            "list_accounts": self.list_accounts,
            "list_folders": self.list_folders,
            "list_emails": self.list_emails,
            "get_email_detail": self.get_email_detail,
            "get_attachments": self.get_attachments,
            "search_emails": self.search_emails,
            "mark_emails": self.mark_emails,
            "flag_email": self.flag_email,
            "delete_emails": self.delete_emails,
            "move_emails": self.move_emails,
            "send_email": self.send_email,
            "reply_email": self.reply_email,
            "forward_email": self.forward_email,
            "test_connection": self.test_connection,
        }
        self._setup_tools()

    def _setup_tools(self) -> None:
        """Register MCP tools."""

        @self._server.list_tools()
        async def list_tools() -> list[Tool]:
            return TOOLS

        @self._server.call_tool()
        async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
            return [TextContent(type="text", text=await self.dispatch(name, arguments))]

    async def dispatch(self, name: str, arguments: dict[str, Any] | None) -> str:
        """Run one tool call off the event loop and render its result as text."""
        handler = self._handlers.get(name)
        if handler is None:
            return f"Unknown tool: {name}"

        try:
            result = await asyncio.to_thread(handler, **(arguments or {}))
        except (MailboxMCPError, TypeError, ValueError) as e:
            logger.warning("Tool %s failed: %s", name, e.__class__.__name__)
            return f"Error: {e.__class__.__name__}: {e}"

        return self._serialize_result(result)

    def _resolve(self, account_id: str) -> ResolvedAccount:
        return resolve_account(find_account(self._accounts, account_id))

    # -------------------------------------------------------------------------
    # Accounts
    # -------------------------------------------------------------------------

    def list_accounts(self) -> dict:
        """Configured accounts without credentials."""
        return {
            "accounts": [
                {"id": account.id, "email": account.email, "provider": account.provider}
                for account in self._accounts
            ]
        }

    # -------------------------------------------------------------------------
    # Reading
    # -------------------------------------------------------------------------

    def list_folders(self, *, account_id: str) -> dict:
        account = self._resolve(account_id)
        logger.info("Listing folders for account %s", account_id)
        with MailSession(account) as session:
            return {"folders": session.list_folders()}

    def list_emails(
        self,
        *,
        account_id: str,
        folder: str = DEFAULT_FOLDER,
        limit: int = 20,
        unread_only: bool = False,
    ) -> dict:
        account = self._resolve(account_id)
        with MailSession(account) as session:
            emails = session.list_emails(folder=folder, limit=limit, unread_only=unread_only)
        return {"emails": emails, "count": len(emails)}

    def get_email_detail(
        self,
        *,
        account_id: str,
        uid: int,
        folder: str = DEFAULT_FOLDER,
        include_attachment_content: bool = False,
    ) -> dict:
        """Not-found is {"email": null}, not an error."""
        account = self._resolve(account_id)
        with MailSession(account) as session:
            detail = session.get_email_detail(uid, folder, include_attachment_content)
        return {"email": detail}

    def get_attachments(self, *, account_id: str, uid: int, folder: str = DEFAULT_FOLDER) -> dict:
        account = self._resolve(account_id)
        with MailSession(account) as session:
            attachments = session.get_attachments(uid, folder)
        return {"attachments": attachments, "count": len(attachments)}

    def search_emails(
        self,
        *,
        account_id: str,
        query: str | None = None,
        search_in: str = SearchScope.ALL.value,
        folder: str = DEFAULT_FOLDER,
        date_from: str | None = None,
        date_to: str | None = None,
        unread_only: bool = False,
        flagged_only: bool = False,
        limit: int = 50,
    ) -> dict:
        """
        Search one folder.

        Raises InvalidRangeError for malformed dates or date_from > date_to.
        """
        criteria = SearchCriteria(
            query=query or None,
            search_in=SearchScope(search_in),
            date_from=parse_search_date(date_from),
            date_to=parse_search_date(date_to),
            unread_only=unread_only,
            flagged_only=flagged_only,
        )
        check_date_range(criteria)
        account = self._resolve(account_id)
        with MailSession(account) as session:
            emails = session.search_emails(criteria, folder=folder, limit=limit)
        return {"emails": emails, "count": len(emails)}

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def mark_emails(self, *, account_id: str, uids: list[int], mark_as: str, folder: str = DEFAULT_FOLDER) -> dict:
        account = self._resolve(account_id)
        with MailSession(account) as session:
            count = session.mark_emails(uids, mark_as, folder)
        return {"success": True, "count": count, "mark_as": mark_as}

    def flag_email(self, *, account_id: str, uid: int, set_flag: bool, folder: str = DEFAULT_FOLDER) -> dict:
        account = self._resolve(account_id)
        with MailSession(account) as session:
            session.flag_email(uid, set_flag, folder)
        return {"success": True, "uid": uid, "flagged": set_flag}

    def delete_emails(
        self,
        *,
        account_id: str,
        uids: list[int],
        folder: str = DEFAULT_FOLDER,
        permanent: bool = False,
    ) -> dict:
        account = self._resolve(account_id)
        with MailSession(account) as session:
            count = session.delete_emails(uids, folder, permanent)
        return {"success": True, "count": count, "permanent": permanent}

    def move_emails(
        self,
        *,
        account_id: str,
        uids: list[int],
        target_folder: str,
        source_folder: str = DEFAULT_FOLDER,
    ) -> dict:
        account = self._resolve(account_id)
        with MailSession(account) as session:
            count = session.move_emails(uids, target_folder, source_folder)
        return {"success": True, "count": count, "target_folder": target_folder}

    # -------------------------------------------------------------------------
    # Sending
    # -------------------------------------------------------------------------

    def send_email(
        self,
        *,
        account_id: str,
        to: list[str],
        subject: str,
        body: str,
        is_html: bool = False,
        cc: list[str] | None = None,
        bcc: list[str] | None = None,
        attachments: list[dict] | None = None,
    ) -> dict:
        account = self._resolve(account_id)
        outgoing = OutgoingEmail(
            to=list(to),
            subject=subject,
            body=body,
            is_html=is_html,
            cc=list(cc or []),
            bcc=list(bcc or []),
            attachments=[AttachmentInput(**attachment) for attachment in attachments or []],
        )
        logger.info("Sending email for account %s to %d recipient(s)", account_id, len(outgoing.to))
        return asdict(SmtpSession(account).send(outgoing))

    def reply_email(
        self,
        *,
        account_id: str,
        uid: int,
        body: str,
        reply_all: bool = False,
        is_html: bool = False,
        folder: str = DEFAULT_FOLDER,
    ) -> dict:
        """
        Reply to UID in folder.

        Raises UidNotFoundError when the original no longer exists.
        """
        account = self._resolve(account_id)
        with MailSession(account) as session:
            original = session.get_email_detail(uid, folder)
        if original is None:
            raise UidNotFoundError(f"Original email with UID {uid} not found in {folder}")

        outgoing = build_reply(original, account.email, body, reply_all=reply_all, is_html=is_html)
        logger.info("Replying to UID %d for account %s", uid, account_id)
        return asdict(SmtpSession(account).send(outgoing))

    def forward_email(
        self,
        *,
        account_id: str,
        uid: int,
        to: list[str],
        comment: str | None = None,
        include_attachments: bool = False,
        folder: str = DEFAULT_FOLDER,
    ) -> dict:
        """
        Forward UID in folder, optionally with its attachments.

        Raises UidNotFoundError when the original no longer exists.
        """
        account = self._resolve(account_id)
        with MailSession(account) as session:
            original = session.get_email_detail(uid, folder, include_attachment_content=include_attachments)
        if original is None:
            raise UidNotFoundError(f"Original email with UID {uid} not found in {folder}")

        attachments = []
        if include_attachments:
            attachments = [
                AttachmentInput(filename=a.filename, content=a.content, content_type=a.content_type)
                for a in original.attachments
                if a.content is not None
            ]

        outgoing = build_forward(original, to, comment=comment, attachments=attachments)
        logger.info("Forwarding UID %d for account %s with %d attachment(s)", uid, account_id, len(attachments))
        return asdict(SmtpSession(account).send(outgoing))

    # -------------------------------------------------------------------------
    # Health
    # -------------------------------------------------------------------------

    def test_connection(self, *, account_id: str) -> dict:
        """IMAP and SMTP probed independently; never raises for transport errors."""
        account = self._resolve(account_id)
        return {
            "imap": MailSession(account).test_connection(),
            "smtp": SmtpSession(account).test_connection(),
        }

    def _serialize_result(self, result: Any) -> str:
        """Serialize result to JSON string."""

        def default_serializer(obj: Any) -> Any:
            if hasattr(obj, "__dataclass_fields__"):
                return asdict(obj)
            if hasattr(obj, "value"):  # Enum
                return obj.value
            raise TypeError(f"Cannot serialize {type(obj)}")

        return json.dumps(result, default=default_serializer, indent=2, ensure_ascii=False)

    async def run(self) -> None:
        """Run the MCP server."""
        async with stdio_server() as (read_stream, write_stream):
            await self._server.run(
                read_stream, write_stream, self._server.create_initialization_options()
            )


# Singleton for process lifetime
_server_instance: MailboxMCPServer | None = None


def get_server() -> MailboxMCPServer:
    """Get or create the server singleton from EMAIL_ACCOUNTS."""
    global _server_instance
    if _server_instance is None:
        _server_instance = MailboxMCPServer(load_accounts_from_env())
    return _server_instance


def create_server(accounts: list[Account]) -> MailboxMCPServer:
    """Create a new server instance (for testing)."""
    return MailboxMCPServer(accounts)


def main() -> None:
    """Console entry point: load accounts, serve MCP over stdio."""
    server = get_server()
    logger.info("Starting mailbox-mcp with %d account(s)", len(server.list_accounts()["accounts"]))
    asyncio.run(server.run())


if __name__ == "__main__":
    main()
