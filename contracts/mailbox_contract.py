"""
Mailbox Gateway Contract
========================

Multi-account IMAP/SMTP gateway exposed to AI agents as MCP tools.

This contract defines the behavioral specification for all public interfaces.
Implementation SHALL perform ONLY declared behaviors.

CONVENTIONS:
- Every clause has an ID (PRE/POST/INV/ERRORS) that tests cite.
- Domain types are frozen value objects scoped to a single operation.
- Errors carry a stable ``code`` for tool-level reporting.

AUTHORITY: This file is the SINGLE authoritative source for mailbox gateway behavior.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from types import MappingProxyType
from typing import Protocol, runtime_checkable


# =============================================================================
# PROVIDERS
# =============================================================================

@dataclass(frozen=True)
class ProviderPreset:
    """Fixed connection defaults for a well-known mail service."""
    imap_server: str
    imap_port: int
    smtp_server: str
    smtp_port: int
    smtp_secure: bool  # True = implicit TLS, False = STARTTLS
    trash_folder: str
    requires_imap_id: bool = False


class EmailProvider(str, Enum):
    """Closed set of supported providers. CUSTOM carries no preset."""
    GMAIL = "gmail"
    QQ = "qq"
    NETEASE_163 = "163"
    OUTLOOK = "outlook"
    CUSTOM = "custom"

    @property
    def preset(self) -> "ProviderPreset | None":
        return PROVIDER_PRESETS.get(self)


PROVIDER_PRESETS = MappingProxyType({
    EmailProvider.GMAIL: ProviderPreset(
        imap_server="imap.gmail.com",
        imap_port=993,
        smtp_server="smtp.gmail.com",
        smtp_port=587,
        smtp_secure=False,
        trash_folder="[Gmail]/Trash",
    ),
    EmailProvider.QQ: ProviderPreset(
        imap_server="imap.qq.com",
        imap_port=993,
        smtp_server="smtp.qq.com",
        smtp_port=465,
        smtp_secure=True,
        trash_folder="Deleted Messages",
    ),
    EmailProvider.NETEASE_163: ProviderPreset(
        imap_server="imap.163.com",
        imap_port=993,
        smtp_server="smtp.163.com",
        smtp_port=465,
        smtp_secure=True,
        trash_folder="已删除",
        # Rejects SELECT from clients that skip the IMAP ID exchange
        requires_imap_id=True,
    ),
    EmailProvider.OUTLOOK: ProviderPreset(
        imap_server="outlook.office365.com",
        imap_port=993,
        smtp_server="smtp.office365.com",
        smtp_port=587,
        smtp_secure=False,
        trash_folder="Deleted",
    ),
})

DEFAULT_IMAP_PORT = 993
DEFAULT_SMTP_PORT = 465
DEFAULT_SMTP_SECURE = True
DEFAULT_TRASH_FOLDER = "Trash"


# =============================================================================
# DOMAIN TYPES
# =============================================================================

@dataclass(frozen=True)
class ResolvedAccount:
    """Account with every connection parameter resolved to a concrete value."""
    id: str
    email: str
    password: str = field(repr=False)
    provider: EmailProvider
    imap_server: str
    imap_port: int
    smtp_server: str
    smtp_port: int
    smtp_secure: bool
    trash_folder: str
    requires_imap_id: bool = False


@dataclass(frozen=True)
class AttachmentInfo:
    """Attachment metadata. ``content`` is base64 and only set on request."""
    filename: str
    content_type: str
    size: int
    content: str | None = None


@dataclass(frozen=True)
class EmailSummary:
    """Listing/search representation of a message."""
    uid: int
    from_addr: str
    to_addrs: str
    subject: str
    date: str  # ISO8601, "" when the server has no date
    seen: bool
    flagged: bool
    has_attachments: bool
    preview: str


@dataclass(frozen=True)
class EmailDetail(EmailSummary):
    """Fully parsed message."""
    cc_addrs: str
    bcc_addrs: str
    message_id: str
    text_body: str
    html_body: str
    attachments: list[AttachmentInfo]


@dataclass(frozen=True)
class FolderInfo:
    """Mailbox folder metadata."""
    path: str
    name: str
    total: int
    unseen: int


class SearchScope(str, Enum):
    """Header/body field a keyword is matched against."""
    ALL = "all"
    SUBJECT = "subject"
    FROM = "from"
    TO = "to"
    BODY = "body"


@dataclass(frozen=True)
class SearchCriteria:
    """Structured search request, mapped to an IMAP SEARCH query."""
    query: str | None = None
    search_in: SearchScope = SearchScope.ALL
    date_from: date | None = None
    date_to: date | None = None
    unread_only: bool = False
    flagged_only: bool = False


@dataclass(frozen=True)
class AttachmentInput:
    """Outgoing attachment; ``content`` is base64 encoded."""
    filename: str
    content: str
    content_type: str | None = None


@dataclass(frozen=True)
class OutgoingEmail:
    """Composed payload handed to the SMTP session."""
    to: list[str]
    subject: str
    body: str
    is_html: bool = False
    cc: list[str] = field(default_factory=list)
    bcc: list[str] = field(default_factory=list)
    reply_to: str | None = None
    attachments: list[AttachmentInput] = field(default_factory=list)
    in_reply_to: str | None = None
    references: str | None = None


@dataclass(frozen=True)
class SendResult:
    """Outcome of one SMTP submission."""
    success: bool
    message_id: str | None = None
    error: str | None = None
    # Addresses the server refused while still accepting the message
    refused_recipients: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ConnectionTestResult:
    """Outcome of a connectivity probe. Counts are IMAP INBOX only."""
    success: bool
    error: str | None = None
    total: int | None = None
    unseen: int | None = None


# =============================================================================
# ERROR TYPES
# =============================================================================

class MailboxMCPError(Exception):
    """Base error for all mailbox gateway operations."""
    code: str = "MAILBOX_ERROR"


class AccountConfigError(MailboxMCPError):
    """
    ERRORS-CONFIG-01: Account list malformed, or custom provider missing hosts.

    RECOVERY: Operator must fix EMAIL_ACCOUNTS. Nothing is partially applied.
    """
    code = "ACCOUNT_CONFIG"


class AccountNotFoundError(MailboxMCPError):
    """
    ERRORS-CONFIG-02: Tool call referenced an unknown account id.

    RECOVERY: Agent should call list_accounts to get valid ids.
    """
    code = "ACCOUNT_NOT_FOUND"


class InvalidRangeError(MailboxMCPError):
    """
    ERRORS-CONFIG-03: date_from is later than date_to, or a date is malformed.

    RECOVERY: Agent must correct date parameters.
    """
    code = "INVALID_RANGE"


class ConnectionFailedError(MailboxMCPError):
    """
    ERRORS-CONNECT-01: Network unreachable, host not found, or timeout.

    RECOVERY: No retry is attempted. Caller may retry the whole operation.
    """
    code = "CONNECTION_FAILED"


class AuthFailedError(MailboxMCPError):
    """
    ERRORS-CONNECT-02: Server rejected the account credentials.

    RECOVERY: Operator must update the stored password or app token.
    """
    code = "AUTH_FAILED"


class NotConnectedError(MailboxMCPError):
    """
    ERRORS-CONNECT-03: Session primitive used outside its ``with`` block.

    RECOVERY: Programming error; open a new session.
    """
    code = "NOT_CONNECTED"


class FolderNotFoundError(MailboxMCPError):
    """
    ERRORS-NOTFOUND-01: Folder could not be selected for a mutation.

    RECOVERY: Agent should call list_folders to get valid folder paths.
    """
    code = "FOLDER_NOT_FOUND"


class UidNotFoundError(MailboxMCPError):
    """
    ERRORS-NOTFOUND-02: Reply/forward source message no longer exists.

    RECOVERY: Agent should refresh message list; UIDs may have been
    expunged by another client.
    """
    code = "UID_NOT_FOUND"


class OperationFailedError(MailboxMCPError):
    """
    ERRORS-BATCH-01: Server rejected a flag/move/delete batch.

    RECOVERY: Whole batch reported as failed; no per-UID outcome exists.
    """
    code = "OPERATION_FAILED"


# =============================================================================
# ACCOUNT CONTRACTS
# =============================================================================

@runtime_checkable
class AccountResolverContract(Protocol):
    """
    Function: resolve_account

    Merge a user-supplied account with its provider preset.

    PRE-RESOLVE-01: account passed schema validation

    POST-RESOLVE-01: imap_server, smtp_server, trash_folder are non-empty and
                     both ports are set
    POST-RESOLVE-02: each field resolves override > preset > hard default
                     (993 / 465 / secure / "Trash")
    POST-RESOLVE-03: requires_imap_id comes from the preset, False for custom

    INV-RESOLVE-01 (Idempotent): resolving an account whose overrides equal
                   the resolved values yields an identical ResolvedAccount
    INV-RESOLVE-02 (Pure): no I/O, no mutation of the input

    ERRORS:
    - ACCOUNT_CONFIG: provider is custom and imap_server or smtp_server missing
    """

    def resolve_account(self, account) -> ResolvedAccount:
        ...


@runtime_checkable
class AccountLoadingContract(Protocol):
    """
    Function: load_accounts

    Parse the EMAIL_ACCOUNTS JSON collection.

    POST-LOAD-01: Returns accounts in input order
    POST-LOAD-02: find_account returns the account with the given id

    INV-LOAD-01 (All Errors): one AccountConfigError lists every validation
                error, not just the first
    INV-LOAD-02 (All or Nothing): a single bad entry fails the entire load

    ERRORS:
    - ACCOUNT_CONFIG: invalid JSON, empty list, or invalid entry
    - ACCOUNT_NOT_FOUND: find_account with unknown id
    """

    def load_accounts(self, raw: str) -> list:
        ...


# =============================================================================
# MAIL SESSION CONTRACTS
# =============================================================================

@runtime_checkable
class MailSessionContract(Protocol):
    """
    Class: MailSession (context manager)

    One authenticated IMAP connection for the duration of one operation.

    PRE-SESSION-01: account is a ResolvedAccount

    POST-SESSION-01: inside ``with`` the connection is authenticated
    POST-SESSION-02: IMAP ID sent right after login iff requires_imap_id

    INV-SESSION-01 (Release): the mailbox lock is released and the connection
                   logged out on every exit path, success or failure
    INV-SESSION-02 (Bounded): connect and read timeouts are always set
    INV-SESSION-03 (Scoped Lock): mailbox-state commands run only while the
                   mailbox lock is held

    ERRORS:
    - CONNECTION_FAILED: dial or greeting failed
    - AUTH_FAILED: login rejected
    - NOT_CONNECTED: primitive used outside the session
    """

    def __enter__(self):
        ...

    def __exit__(self, exc_type, exc, tb) -> None:
        ...


@runtime_checkable
class ListFoldersContract(Protocol):
    """
    Operation: list_folders

    POST-FOLDERS-01: every selectable folder is returned; \\Noselect skipped

    INV-FOLDERS-01 (Best Effort): a folder whose STATUS fails is reported
                   with zero counts; the listing continues
    """

    def list_folders(self) -> list[FolderInfo]:
        ...


@runtime_checkable
class ListEmailsContract(Protocol):
    """
    Operation: list_emails

    PRE-LIST-01: 1 <= limit <= 100 (callers clamp)

    POST-LIST-01: summaries ordered by strictly descending UID
    POST-LIST-02: len(result) <= limit
    POST-LIST-03: unread_only=True returns only summaries with seen=False

    INV-LIST-01 (Peek): listing never sets \\Seen (BODY.PEEK)
    INV-LIST-02 (Lazy): summaries carry no attachment content
    INV-LIST-03 (Not Found): missing folder yields an empty list
    """

    def list_emails(self, folder: str = "INBOX", limit: int = 20,
                    unread_only: bool = False) -> list[EmailSummary]:
        ...


@runtime_checkable
class SearchEmailsContract(Protocol):
    """
    Operation: search_emails / build_search_query

    POST-SEARCH-01: keyword with scope subject|from|to|body matches that field only
    POST-SEARCH-02: scope all ORs the keyword across subject/from/to/body
    POST-SEARCH-03: no criteria matches every message (ALL)
    POST-SEARCH-04: all supplied predicates are conjoined
    POST-SEARCH-05: ordering and truncation as POST-LIST-01/02

    ERRORS:
    - INVALID_RANGE: date_from later than date_to
    """

    def search_emails(self, criteria: SearchCriteria, folder: str = "INBOX",
                      limit: int = 50) -> list[EmailSummary]:
        ...


@runtime_checkable
class EmailDetailContract(Protocol):
    """
    Operation: get_email_detail / get_attachments

    POST-DETAIL-01: returns EmailDetail with bodies, cc/bcc and message id
    POST-DETAIL-02: unknown UID or missing folder returns None (not an error)
    POST-ATTACH-01: get_attachments always populates content
    POST-ATTACH-02: get_attachments on unknown UID returns []

    INV-DETAIL-01 (Lazy): attachment content only when explicitly requested
    INV-DETAIL-02 (Peek): reading never sets \\Seen
    """

    def get_email_detail(self, uid: int, folder: str = "INBOX",
                         include_attachment_content: bool = False) -> EmailDetail | None:
        ...


@runtime_checkable
class MailboxMutationContract(Protocol):
    """
    Operations: mark_emails / flag_email / delete_emails / move_emails

    POST-MARK-01: \\Seen added (read) or removed (unread); returns len(uids)
    POST-FLAG-01: \\Flagged added or removed on exactly one UID
    POST-DELETE-01: permanent=False moves UIDs to the resolved trash folder
    POST-DELETE-02: permanent=True sets \\Deleted then expunges
    POST-MOVE-01: UIDs moved under a lock on the source folder

    INV-MUTATE-01 (Aggregate): a failing batch raises one error for all UIDs

    ERRORS:
    - FOLDER_NOT_FOUND: source folder cannot be selected
    - OPERATION_FAILED: server rejected the command
    """

    def mark_emails(self, uids: list[int], mark_as: str, folder: str = "INBOX") -> int:
        ...


@runtime_checkable
class ConnectionTestContract(Protocol):
    """
    Operation: test_connection (IMAP and SMTP)

    POST-TEST-01: success=True includes INBOX total/unseen (IMAP)

    INV-TEST-01 (Never Raises): failures are reported in the result
    """

    def test_connection(self) -> ConnectionTestResult:
        ...


# =============================================================================
# OUTGOING CONTRACTS
# =============================================================================

@runtime_checkable
class ComposerContract(Protocol):
    """
    Functions: build_reply / build_forward / compose_message

    POST-REPLY-01: In-Reply-To and References equal the original message id
    POST-REPLY-02: reply_all never includes the acting account in to/cc
    POST-REPLY-03: reply_all never duplicates the primary recipient into cc
    POST-REPLY-04: body is new text, attribution line, quoted original
    POST-SUBJECT-01: "Re: " prefixed unless leading token already "re:"
    POST-SUBJECT-02: "Fwd: " prefixed unless leading token already "fwd:"
    POST-FORWARD-01: body is optional comment plus forwarded-message block
    POST-COMPOSE-01: HTML body always carries a plain-text alternative

    INV-COMPOSE-01 (Pure): composing performs no I/O
    """

    def build_reply(self, original: EmailDetail, account_email: str, body: str,
                    reply_all: bool = False, is_html: bool = False) -> OutgoingEmail:
        ...


@runtime_checkable
class SmtpSessionContract(Protocol):
    """
    Class: SmtpSession

    POST-SMTP-01: success returns SendResult(success=True, message_id=...)
    POST-SMTP-02: implicit TLS when smtp_secure, STARTTLS otherwise
    POST-SMTP-03: any transport failure returns SendResult(success=False, error=...)
    POST-SMTP-04: recipients refused by the server are listed in refused_recipients

    INV-SMTP-01 (Teardown): transport closed after every attempt
    INV-SMTP-02 (Single Payload): exactly one message submitted per send
    """

    def send(self, outgoing: OutgoingEmail) -> SendResult:
        ...


# =============================================================================
# GLOBAL INVARIANTS (Apply to ALL operations)
# =============================================================================

"""
INV-GLOBAL-01 (Fresh Session): every tool call opens its own authenticated
             connection and closes it before returning. No pooling.

INV-GLOBAL-02 (No Content Logging): message bodies, attachment content and
             credentials MUST NOT appear in logs.

INV-GLOBAL-03 (No Cache): no mailbox state survives a tool call.

INV-GLOBAL-04 (Local Failure): a failing tool call returns an error result;
             the server process keeps running.
"""

GLOBAL_INVARIANTS = (
    "INV-GLOBAL-01",
    "INV-GLOBAL-02",
    "INV-GLOBAL-03",
    "INV-GLOBAL-04",
)

CONTRACTS = (
    AccountResolverContract,
    AccountLoadingContract,
    MailSessionContract,
    ListFoldersContract,
    ListEmailsContract,
    SearchEmailsContract,
    EmailDetailContract,
    MailboxMutationContract,
    ConnectionTestContract,
    ComposerContract,
    SmtpSessionContract,
)


# =============================================================================
# TEST CASE INDEX
# =============================================================================

TEST_CASES = {
    # Accounts
    "test_resolve_builtin_presets": {
        "contract": "AccountResolverContract",
        "enforces": ["PRE-RESOLVE-01", "POST-RESOLVE-01", "POST-RESOLVE-02", "POST-RESOLVE-03"],
    },
    "test_resolve_overrides_win": {
        "contract": "AccountResolverContract",
        "enforces": ["POST-RESOLVE-02"],
    },
    "test_resolve_custom_defaults": {
        "contract": "AccountResolverContract",
        "enforces": ["POST-RESOLVE-01", "POST-RESOLVE-02", "POST-RESOLVE-03"],
    },
    "test_resolve_custom_missing_host": {
        "contract": "AccountResolverContract",
        "enforces": ["ERRORS: ACCOUNT_CONFIG"],
    },
    "test_resolve_idempotent": {
        "contract": "AccountResolverContract",
        "enforces": ["INV-RESOLVE-01", "INV-RESOLVE-02"],
    },
    "test_load_accounts_basic": {
        "contract": "AccountLoadingContract",
        "enforces": ["POST-LOAD-01", "POST-LOAD-02"],
    },
    "test_load_accounts_reports_every_error": {
        "contract": "AccountLoadingContract",
        "enforces": ["INV-LOAD-01", "INV-LOAD-02", "ERRORS: ACCOUNT_CONFIG"],
    },
    "test_find_account_unknown": {
        "contract": "AccountLoadingContract",
        "enforces": ["ERRORS: ACCOUNT_NOT_FOUND"],
    },

    # Session lifecycle
    "test_session_connects_with_timeouts": {
        "contract": "MailSessionContract",
        "enforces": ["PRE-SESSION-01", "POST-SESSION-01", "INV-SESSION-02"],
    },
    "test_session_sends_imap_id": {
        "contract": "MailSessionContract",
        "enforces": ["POST-SESSION-02"],
    },
    "test_session_logs_out_on_error": {
        "contract": "MailSessionContract",
        "enforces": ["INV-SESSION-01", "INV-SESSION-03"],
        "adversarial": True,
        "description": "Lock released and logout issued when a command raises",
    },
    "test_session_auth_failed": {
        "contract": "MailSessionContract",
        "enforces": ["ERRORS: AUTH_FAILED"],
    },
    "test_session_connection_failed": {
        "contract": "MailSessionContract",
        "enforces": ["ERRORS: CONNECTION_FAILED"],
    },
    "test_session_requires_context": {
        "contract": "MailSessionContract",
        "enforces": ["ERRORS: NOT_CONNECTED"],
    },

    # Reading
    "test_list_folders_skips_noselect": {
        "contract": "ListFoldersContract",
        "enforces": ["POST-FOLDERS-01"],
    },
    "test_list_folders_status_failure_zero_counts": {
        "contract": "ListFoldersContract",
        "enforces": ["INV-FOLDERS-01"],
    },
    "test_list_emails_unread_scenario": {
        "contract": "ListEmailsContract",
        "enforces": ["POST-LIST-01", "POST-LIST-03"],
    },
    "test_list_emails_truncates_to_limit": {
        "contract": "ListEmailsContract",
        "enforces": ["PRE-LIST-01", "POST-LIST-01", "POST-LIST-02"],
    },
    "test_list_emails_uses_peek": {
        "contract": "ListEmailsContract",
        "enforces": ["INV-LIST-01", "INV-LIST-02"],
        "adversarial": True,
        "description": "Verify \\Seen flag unchanged and no attachment bytes fetched",
    },
    "test_list_emails_missing_folder": {
        "contract": "ListEmailsContract",
        "enforces": ["INV-LIST-03"],
    },
    "test_search_scope_single_field": {
        "contract": "SearchEmailsContract",
        "enforces": ["POST-SEARCH-01"],
    },
    "test_search_scope_all_matches_any_field": {
        "contract": "SearchEmailsContract",
        "enforces": ["POST-SEARCH-02"],
    },
    "test_search_no_criteria_matches_all": {
        "contract": "SearchEmailsContract",
        "enforces": ["POST-SEARCH-03"],
    },
    "test_search_predicates_conjoined": {
        "contract": "SearchEmailsContract",
        "enforces": ["POST-SEARCH-04", "POST-SEARCH-05"],
    },
    "test_search_invalid_range": {
        "contract": "SearchEmailsContract",
        "enforces": ["ERRORS: INVALID_RANGE"],
    },
    "test_get_email_detail": {
        "contract": "EmailDetailContract",
        "enforces": ["POST-DETAIL-01", "INV-DETAIL-01", "INV-DETAIL-02"],
    },
    "test_get_email_detail_missing_uid": {
        "contract": "EmailDetailContract",
        "enforces": ["POST-DETAIL-02"],
    },
    "test_get_attachments_populates_content": {
        "contract": "EmailDetailContract",
        "enforces": ["POST-ATTACH-01", "POST-ATTACH-02"],
    },

    # Mutations
    "test_mark_emails_read_and_unread": {
        "contract": "MailboxMutationContract",
        "enforces": ["POST-MARK-01"],
    },
    "test_flag_email": {
        "contract": "MailboxMutationContract",
        "enforces": ["POST-FLAG-01"],
    },
    "test_delete_moves_to_trash": {
        "contract": "MailboxMutationContract",
        "enforces": ["POST-DELETE-01"],
    },
    "test_delete_permanent_expunges": {
        "contract": "MailboxMutationContract",
        "enforces": ["POST-DELETE-02"],
    },
    "test_move_emails": {
        "contract": "MailboxMutationContract",
        "enforces": ["POST-MOVE-01"],
    },
    "test_mutation_batch_failure": {
        "contract": "MailboxMutationContract",
        "enforces": ["INV-MUTATE-01", "ERRORS: OPERATION_FAILED"],
    },
    "test_mutation_missing_folder": {
        "contract": "MailboxMutationContract",
        "enforces": ["ERRORS: FOLDER_NOT_FOUND"],
    },
    "test_imap_test_connection": {
        "contract": "ConnectionTestContract",
        "enforces": ["POST-TEST-01", "INV-TEST-01"],
    },

    # Outgoing
    "test_reply_threading_headers": {
        "contract": "ComposerContract",
        "enforces": ["POST-REPLY-01", "POST-REPLY-04", "INV-COMPOSE-01"],
    },
    "test_reply_all_excludes_self_and_primary": {
        "contract": "ComposerContract",
        "enforces": ["POST-REPLY-02", "POST-REPLY-03"],
    },
    "test_subject_prefixes": {
        "contract": "ComposerContract",
        "enforces": ["POST-SUBJECT-01", "POST-SUBJECT-02"],
    },
    "test_forward_block": {
        "contract": "ComposerContract",
        "enforces": ["POST-FORWARD-01"],
    },
    "test_compose_html_alternative": {
        "contract": "ComposerContract",
        "enforces": ["POST-COMPOSE-01"],
    },
    "test_smtp_send_success": {
        "contract": "SmtpSessionContract",
        "enforces": ["POST-SMTP-01", "POST-SMTP-02", "INV-SMTP-01", "INV-SMTP-02"],
    },
    "test_smtp_send_failure": {
        "contract": "SmtpSessionContract",
        "enforces": ["POST-SMTP-03", "INV-SMTP-01"],
    },
    "test_smtp_send_partial_refusal": {
        "contract": "SmtpSessionContract",
        "enforces": ["POST-SMTP-04"],
    },
    "test_smtp_test_connection": {
        "contract": "ConnectionTestContract",
        "enforces": ["INV-TEST-01"],
    },

    # Global
    "test_global_fresh_session_per_call": {
        "contract": "INV-GLOBAL-01",
        "enforces": ["INV-GLOBAL-01", "INV-GLOBAL-03"],
        "adversarial": True,
        "description": "Two tool calls open two independent connections",
    },
    "test_global_no_content_logging": {
        "contract": "INV-GLOBAL-02",
        "enforces": ["INV-GLOBAL-02"],
        "adversarial": True,
        "description": "Body text and password never reach log output",
    },
    "test_global_failure_is_local": {
        "contract": "INV-GLOBAL-04",
        "enforces": ["INV-GLOBAL-04"],
    },
}
