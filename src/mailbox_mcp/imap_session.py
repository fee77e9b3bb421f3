"""
IMAP Session
============

One authenticated IMAP connection per operation.

A MailSession is a context manager: entering dials and logs in, leaving
logs out. Mailbox-scoped commands run under ``mailbox(folder)``, which holds
an exclusive lock on the connection while the folder is selected.

INVARIANTS:
- INV-SESSION-01: Lock released and connection logged out on every exit path
- INV-SESSION-02: Connect and read timeouts always set
- INV-LIST-01: Read paths select folders read-only and fetch with BODY.PEEK
- INV-GLOBAL-02: No logging of message bodies or attachments
"""

from __future__ import annotations

import contextlib
import logging
import threading
from collections.abc import Iterator
from datetime import date, datetime
from typing import TYPE_CHECKING

from imapclient import IMAPClient, SocketTimeout
from imapclient.exceptions import IMAPClientAbortError, IMAPClientError, LoginError

from contracts import (
    AttachmentInfo,
    AuthFailedError,
    ConnectionFailedError,
    ConnectionTestResult,
    EmailDetail,
    EmailSummary,
    FolderInfo,
    FolderNotFoundError,
    InvalidRangeError,
    MailboxMCPError,
    NotConnectedError,
    OperationFailedError,
    SearchCriteria,
    SearchScope,
)
from mailbox_mcp.codec import (
    extract_attachments,
    fetched_source,
    parse_detail,
    parse_source,
    parse_summary,
)

if TYPE_CHECKING:
    from contracts import ResolvedAccount

logger = logging.getLogger("mailbox-mcp.imap")

CONNECT_TIMEOUT = 30.0  # dial + server greeting
SOCKET_TIMEOUT = 60.0  # every later round trip
PREVIEW_SOURCE_BYTES = 1000
MAX_LIMIT = 100
DEFAULT_FOLDER = "INBOX"

CLIENT_ID = {
    "name": "mailbox-mcp",
    "version": "0.1.0",
    "vendor": "mailbox-mcp",
}

SEEN = b"\\Seen"
FLAGGED = b"\\Flagged"

SUMMARY_FETCH = ["ENVELOPE", "FLAGS", "BODYSTRUCTURE", f"BODY.PEEK[]<0.{PREVIEW_SOURCE_BYTES}>"]
DETAIL_FETCH = ["ENVELOPE", "FLAGS", "BODY.PEEK[]"]
SOURCE_FETCH = ["BODY.PEEK[]"]

_UNSELECTABLE = {b"\\noselect", b"\\nonexistent"}

_SCOPE_KEYS = {
    SearchScope.SUBJECT: "SUBJECT",
    SearchScope.FROM: "FROM",
    SearchScope.TO: "TO",
    SearchScope.BODY: "BODY",
}


# =============================================================================
# QUERY HELPERS
# =============================================================================

def clamp_limit(limit: int | None, default: int) -> int:
    """Clamp a caller-supplied limit into 1..MAX_LIMIT; None or 0 means ``default``."""
    if not limit:
        limit = default
    return max(1, min(int(limit), MAX_LIMIT))


def newest_first(uids, limit: int) -> list[int]:
    """Sort UIDs descending (recency heuristic) and keep the first ``limit``."""
    return sorted(set(uids), reverse=True)[:limit]


def parse_search_date(value: str | date | None) -> date | None:
    """Parse YYYY-MM-DD (or an ISO8601 datetime) into a date."""
    if value is None or isinstance(value, date):
        return value
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
    except ValueError as e:
        raise InvalidRangeError(f"Invalid date: {value!r} (expected YYYY-MM-DD)") from e


def check_date_range(criteria: SearchCriteria) -> None:
    """Reject a window whose start lies after its end."""
    if criteria.date_from and criteria.date_to and criteria.date_from > criteria.date_to:
        raise InvalidRangeError("date_from cannot be later than date_to")


def build_search_query(criteria: SearchCriteria) -> list:
    """
    Translate SearchCriteria into an imapclient SEARCH criteria list.

    POST-SEARCH-01: scoped keyword -> single field key
    POST-SEARCH-02: scope all -> OR OR SUBJECT q FROM q OR TO q BODY q
    POST-SEARCH-03: nothing supplied -> ALL
    POST-SEARCH-04: top-level keys are implicitly ANDed by IMAP

    ERRORS:
    - InvalidRangeError: date_from later than date_to
    """
    check_date_range(criteria)

    query: list = []

    if criteria.query:
        keyword = criteria.query
        scope = SearchScope(criteria.search_in or SearchScope.ALL)
        if scope is SearchScope.ALL:
            # Prefix OR keeps the list flat so the search charset applies to every keyword
            query += [
                "OR", "OR", "SUBJECT", keyword, "FROM", keyword,
                "OR", "TO", keyword, "BODY", keyword,
            ]
        else:
            query += [_SCOPE_KEYS[scope], keyword]

    if criteria.date_from:
        query += ["SINCE", criteria.date_from]
    if criteria.date_to:
        query += ["BEFORE", criteria.date_to]
    if criteria.unread_only:
        query.append("UNSEEN")
    if criteria.flagged_only:
        query.append("FLAGGED")

    return query or ["ALL"]


def _normalise_flags(flags) -> set[bytes]:
    return {(f if isinstance(f, bytes) else str(f).encode()).lower() for f in flags}


def _display_name(path: str, delimiter) -> str:
    if isinstance(delimiter, bytes):
        delimiter = delimiter.decode("ascii", errors="replace")
    if not delimiter:
        return path
    return path.rsplit(delimiter, 1)[-1]


# =============================================================================
# SESSION
# =============================================================================

class MailSession:
    """
    Scoped IMAP session bound to one ResolvedAccount.

    Never reused across tool calls: construct, enter, run one operation, exit.
    """

    def __init__(self, account: ResolvedAccount) -> None:
        self._account = account
        self._client: IMAPClient | None = None
        self._lock = threading.Lock()
        self._selected: str | None = None

    def __enter__(self) -> MailSession:
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.disconnect()

    @property
    def connected(self) -> bool:
        return self._client is not None

    @property
    def selected_folder(self) -> str | None:
        return self._selected

    def connect(self) -> None:
        """
        Dial, authenticate and (if the provider needs it) identify.

        POST-SESSION-01: IMAP connection established and authenticated
        POST-SESSION-02: ID sent iff account.requires_imap_id
        """
        account = self._account
        try:
            client = IMAPClient(
                account.imap_server,
                port=account.imap_port,
                ssl=True,
                timeout=SocketTimeout(connect=CONNECT_TIMEOUT, read=SOCKET_TIMEOUT),
            )
        except (IMAPClientError, OSError) as e:
            raise ConnectionFailedError(
                f"Failed to connect to {account.imap_server}:{account.imap_port}: {e}"
            ) from e

        try:
            client.login(account.email, account.password)
            if account.requires_imap_id:
                self._identify(client)
        except LoginError as e:
            self._shutdown(client)
            raise AuthFailedError(f"Authentication failed for {account.email}: {e}") from e
        except (IMAPClientError, OSError) as e:
            self._shutdown(client)
            raise ConnectionFailedError(f"Connection lost during handshake: {e}") from e

        self._client = client
        logger.info("IMAP session opened for account %s", account.id)

    def disconnect(self) -> None:
        """Log out; transport errors during logout are logged, not raised."""
        if self._client is None:
            return

        client, self._client = self._client, None
        self._selected = None
        try:
            client.logout()
        except (IMAPClientError, OSError) as e:
            logger.warning("IMAP logout for account %s failed: %s", self._account.id, e)
            self._shutdown(client)
        logger.info("IMAP session closed for account %s", self._account.id)

    def _identify(self, client: IMAPClient) -> None:
        """A rejected ID is not fatal; a dropped socket is."""
        try:
            client.id_(CLIENT_ID)
        except IMAPClientAbortError:
            raise
        except IMAPClientError as e:
            logger.warning("IMAP ID rejected by %s: %s", self._account.imap_server, e)

    @staticmethod
    def _shutdown(client: IMAPClient) -> None:
        with contextlib.suppress(OSError):
            client.shutdown()

    def _require_connection(self) -> IMAPClient:
        """Ensure connected, raise NotConnectedError if not."""
        if self._client is None:
            raise NotConnectedError("IMAP session is not open")
        return self._client

    @contextlib.contextmanager
    def mailbox(self, folder: str, readonly: bool = False) -> Iterator[IMAPClient]:
        """
        Hold the mailbox lock with ``folder`` selected.

        INV-SESSION-03: the lock is held for the whole command sequence
        INV-SESSION-01: released on every exit path
        """
        client = self._require_connection()
        with self._lock:
            try:
                client.select_folder(folder, readonly=readonly)
            except IMAPClientAbortError:
                raise
            except IMAPClientError as e:
                raise FolderNotFoundError(f"Folder not found: {folder}") from e

            self._selected = folder
            try:
                yield client
            finally:
                self._selected = None

    @contextlib.contextmanager
    def _guard(self, action: str) -> Iterator[None]:
        """Translate transport failures into contract errors."""
        try:
            yield
        except MailboxMCPError:
            raise
        except (IMAPClientAbortError, OSError) as e:
            raise ConnectionFailedError(f"{action} failed, connection lost: {e}") from e
        except IMAPClientError as e:
            raise OperationFailedError(f"{action} failed: {e}") from e

    # -------------------------------------------------------------------------
    # Reading
    # -------------------------------------------------------------------------

    def list_folders(self) -> list[FolderInfo]:
        """
        List every selectable folder with message and unseen counts.

        INV-FOLDERS-01: STATUS failure for one folder yields zero counts
        """
        client = self._require_connection()

        folders = []
        with self._guard("list_folders"):
            for flags, delimiter, name in client.list_folders():
                if _normalise_flags(flags) & _UNSELECTABLE:
                    continue

                total = unseen = 0
                try:
                    status = client.folder_status(name, ["MESSAGES", "UNSEEN"])
                    total = status.get(b"MESSAGES", 0)
                    unseen = status.get(b"UNSEEN", 0)
                except IMAPClientAbortError:
                    raise
                except IMAPClientError as e:
                    logger.warning("STATUS failed for folder %s: %s", name, e)

                folders.append(
                    FolderInfo(path=name, name=_display_name(name, delimiter), total=total, unseen=unseen)
                )

        return folders

    def _fetch_summaries(self, client: IMAPClient, uids, limit: int) -> list[EmailSummary]:
        selected = newest_first(uids, limit)
        if not selected:
            return []

        response = client.fetch(selected, SUMMARY_FETCH)
        return [parse_summary(uid, response[uid]) for uid in selected if uid in response]

    def list_emails(
        self,
        folder: str = DEFAULT_FOLDER,
        limit: int = 20,
        unread_only: bool = False,
    ) -> list[EmailSummary]:
        """
        Newest-first summaries of a folder.

        POST-LIST-01: descending UID order
        POST-LIST-02: at most ``limit`` entries
        INV-LIST-03: missing folder returns []
        """
        limit = clamp_limit(limit, 20)
        try:
            with self._guard("list_emails"), self.mailbox(folder, readonly=True) as client:
                uids = client.search(["UNSEEN"] if unread_only else ["ALL"])
                summaries = self._fetch_summaries(client, uids, limit)
        except FolderNotFoundError:
            logger.info("Folder %s not found, no emails listed", folder)
            return []

        logger.info("Listed %d email(s) from %s", len(summaries), folder)
        return summaries

    def search_emails(
        self,
        criteria: SearchCriteria,
        folder: str = DEFAULT_FOLDER,
        limit: int = 50,
    ) -> list[EmailSummary]:
        """
        Search a folder; same ordering and truncation as list_emails.

        ERRORS:
        - InvalidRangeError: date_from later than date_to
        """
        limit = clamp_limit(limit, 50)
        query = build_search_query(criteria)
        charset = "UTF-8" if criteria.query and not criteria.query.isascii() else None

        try:
            with self._guard("search_emails"), self.mailbox(folder, readonly=True) as client:
                uids = client.search(query, charset=charset)
                summaries = self._fetch_summaries(client, uids, limit)
        except FolderNotFoundError:
            logger.info("Folder %s not found, no emails searched", folder)
            return []

        logger.info("Search in %s matched %d email(s)", folder, len(summaries))
        return summaries

    def get_email_detail(
        self,
        uid: int,
        folder: str = DEFAULT_FOLDER,
        include_attachment_content: bool = False,
    ) -> EmailDetail | None:
        """
        Fully parsed message, or None when the UID (or folder) is gone.

        POST-DETAIL-02: not-found is a None result, not an error
        """
        try:
            with self._guard("get_email_detail"), self.mailbox(folder, readonly=True) as client:
                response = client.fetch([uid], DETAIL_FETCH)
        except FolderNotFoundError:
            return None

        data = response.get(uid)
        if data is None:
            logger.info("UID %d not found in %s", uid, folder)
            return None
        return parse_detail(uid, data, include_attachment_content)

    def get_attachments(self, uid: int, folder: str = DEFAULT_FOLDER) -> list[AttachmentInfo]:
        """
        Attachments of one message with content always populated.

        POST-ATTACH-02: unknown UID returns []
        """
        try:
            with self._guard("get_attachments"), self.mailbox(folder, readonly=True) as client:
                response = client.fetch([uid], SOURCE_FETCH)
        except FolderNotFoundError:
            return []

        raw = fetched_source(response.get(uid, {}))
        if raw is None:
            return []

        attachments = extract_attachments(parse_source(raw), include_content=True)
        logger.info("Extracted %d attachment(s) from UID %d", len(attachments), uid)
        return attachments

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def mark_emails(self, uids: list[int], mark_as: str, folder: str = DEFAULT_FOLDER) -> int:
        """
        Add (read) or remove (unread) the \\Seen flag.

        POST-MARK-01: returns len(uids)
        INV-MUTATE-01: failure is one error for the batch
        """
        if mark_as not in ("read", "unread"):
            raise ValueError(f"mark_as must be 'read' or 'unread', got {mark_as!r}")
        if not uids:
            return 0

        with self._guard("mark_emails"), self.mailbox(folder) as client:
            if mark_as == "read":
                client.add_flags(uids, [SEEN])
            else:
                client.remove_flags(uids, [SEEN])

        logger.info("Marked %d email(s) as %s in %s", len(uids), mark_as, folder)
        return len(uids)

    def flag_email(self, uid: int, set_flag: bool, folder: str = DEFAULT_FOLDER) -> bool:
        """Add or remove \\Flagged on exactly one UID."""
        with self._guard("flag_email"), self.mailbox(folder) as client:
            if set_flag:
                client.add_flags([uid], [FLAGGED])
            else:
                client.remove_flags([uid], [FLAGGED])

        logger.info("%s UID %d in %s", "Flagged" if set_flag else "Unflagged", uid, folder)
        return True

    def delete_emails(self, uids: list[int], folder: str = DEFAULT_FOLDER, permanent: bool = False) -> int:
        """
        Delete UIDs: purge when permanent, else move to the account's trash.

        POST-DELETE-01: soft delete targets the resolved trash folder
        POST-DELETE-02: permanent sets \\Deleted then expunges
        """
        if not uids:
            return 0

        with self._guard("delete_emails"), self.mailbox(folder) as client:
            if permanent:
                client.delete_messages(uids)
                self._expunge(client, uids)
            else:
                self._move(client, uids, self._account.trash_folder)

        logger.info(
            "Deleted %d email(s) from %s (%s)",
            len(uids), folder, "permanent" if permanent else f"moved to {self._account.trash_folder}",
        )
        return len(uids)

    def move_emails(self, uids: list[int], target_folder: str, source_folder: str = DEFAULT_FOLDER) -> int:
        """POST-MOVE-01: move UIDs under a lock on the source folder."""
        if not uids:
            return 0

        with self._guard("move_emails"), self.mailbox(source_folder) as client:
            self._move(client, uids, target_folder)

        logger.info("Moved %d email(s) from %s to %s", len(uids), source_folder, target_folder)
        return len(uids)

    @staticmethod
    def _expunge(client: IMAPClient, uids: list[int]) -> None:
        # UID EXPUNGE limits the purge to our UIDs; plain EXPUNGE purges every \Deleted message
        if client.has_capability("UIDPLUS"):
            client.expunge(uids)
        else:
            client.expunge()

    def _move(self, client: IMAPClient, uids: list[int], target_folder: str) -> None:
        if client.has_capability("MOVE"):
            client.move(uids, target_folder)
            return
        client.copy(uids, target_folder)
        client.delete_messages(uids)
        self._expunge(client, uids)

    # -------------------------------------------------------------------------
    # Health
    # -------------------------------------------------------------------------

    def test_connection(self) -> ConnectionTestResult:
        """
        Open a session, STATUS INBOX, close. Never raises.

        INV-TEST-01: failures are returned in the result
        """
        try:
            with self:
                client = self._require_connection()
                status = client.folder_status(DEFAULT_FOLDER, ["MESSAGES", "UNSEEN"])
        except (MailboxMCPError, IMAPClientError, OSError) as e:
            logger.warning("IMAP connection test for account %s failed: %s", self._account.id, e)
            return ConnectionTestResult(success=False, error=str(e))

        return ConnectionTestResult(
            success=True,
            total=status.get(b"MESSAGES", 0),
            unseen=status.get(b"UNSEEN", 0),
        )
