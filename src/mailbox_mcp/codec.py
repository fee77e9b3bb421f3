"""
Message Codec
=============

Pure transforms from IMAP fetch data into EmailSummary / EmailDetail.

Summaries are built from ENVELOPE, FLAGS, BODYSTRUCTURE and a short prefix
of the raw source, so listing never pays for a full MIME parse. Details and
attachments parse the complete source.

INV-LIST-02: summaries never carry attachment content.
INV-DETAIL-01: attachment content is base64 encoded only on request.
"""

from __future__ import annotations

import base64
import email.utils
import re
from email import policy
from email.errors import HeaderParseError
from email.header import decode_header, make_header
from email.message import EmailMessage
from email.parser import BytesParser
from html import unescape

from contracts import AttachmentInfo, EmailDetail, EmailSummary

PREVIEW_LENGTH = 200
NO_SUBJECT = "(no subject)"
DEFAULT_ATTACHMENT_NAME = "attachment"

# RFC 5322 specials that force a display name into a quoted-string
_NAME_SPECIALS = re.compile(r"[][\\()<>@,:;\".]")
_HIDDEN_BLOCK = re.compile(r"<(style|script)\b.*?</\1\s*>", re.IGNORECASE | re.DOTALL)
_LINE_BREAK = re.compile(r"<br\s*/?>", re.IGNORECASE)
_PARAGRAPH_END = re.compile(r"</p\s*>", re.IGNORECASE)
_TAG = re.compile(r"<[^>]+>")

_parser = BytesParser(policy=policy.default)


# =============================================================================
# HEADERS & ADDRESSES
# =============================================================================

def decode_header_value(value: bytes | str | None) -> str:
    """Decode an RFC 2047 encoded header value."""
    if value is None:
        return ""
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    try:
        return str(make_header(decode_header(value)))
    except (HeaderParseError, LookupError, UnicodeDecodeError):
        return value


def _format_one(name: str, address: str) -> str:
    if name and address:
        if _NAME_SPECIALS.search(name):
            name = f'"{email.utils.quote(name)}"'
        return f"{name} <{address}>"
    return address or name


def format_addresses(addresses) -> str:
    """
    Format envelope addresses as "Name <addr>" or bare "addr", comma joined.

    Accepts imapclient Address tuples (name, route, mailbox, host).
    """
    if not addresses:
        return ""

    formatted = []
    for addr in addresses:
        name = decode_header_value(addr.name)
        mailbox = decode_header_value(addr.mailbox)
        host = decode_header_value(addr.host)
        # mailbox without host marks an RFC 2822 group boundary
        if mailbox and not host:
            continue
        address = f"{mailbox}@{host}" if mailbox else ""
        text = _format_one(name, address)
        if text:
            formatted.append(text)
    return ", ".join(formatted)


def _format_header_addresses(header) -> str:
    if header is None:
        return ""
    pairs = email.utils.getaddresses([str(header)])
    return ", ".join(text for text in (_format_one(name, addr) for name, addr in pairs) if text)


def extract_email_address(value: str) -> str:
    """Return the bare address of a "Name <addr>" string, or the trimmed value."""
    _name, address = email.utils.parseaddr(value)
    return address or value.strip()


def split_addresses(value: str) -> list[str]:
    """Split a formatted address list into bare addresses."""
    if not value:
        return []
    return [addr for _name, addr in email.utils.getaddresses([value]) if addr]


# =============================================================================
# BODY STRUCTURE
# =============================================================================

def _is_attachment_disposition(item) -> bool:
    return (
        isinstance(item, tuple)
        and len(item) > 0
        and isinstance(item[0], bytes)
        and item[0].lower() == b"attachment"
    )


def has_attachment_part(structure) -> bool:
    """
    Scan a BODYSTRUCTURE tree for any part with an attachment disposition.

    Multipart nodes carry their children as a list in position 0.
    """
    if not structure:
        return False

    if isinstance(structure[0], list):
        if any(has_attachment_part(child) for child in structure[0]):
            return True
        extension = structure[1:]
    else:
        extension = structure[2:]

    return any(_is_attachment_disposition(item) for item in extension)


# =============================================================================
# BODIES
# =============================================================================

def html_to_text(html: str) -> str:
    """Crude HTML to plain text: line breaks kept, tags dropped, entities unescaped."""
    text = _HIDDEN_BLOCK.sub("", html)
    text = _LINE_BREAK.sub("\n", text)
    text = _PARAGRAPH_END.sub("\n\n", text)
    text = _TAG.sub("", text)
    return unescape(text).strip()


def _part_text(part: EmailMessage) -> str:
    try:
        return part.get_content()
    except (LookupError, ValueError):
        payload = part.get_payload(decode=True) or b""
        return payload.decode("utf-8", errors="replace")


def extract_bodies(message: EmailMessage) -> tuple[str, str]:
    """Return (plain, html). Plain falls back to the text of the HTML part."""
    plain_part = message.get_body(preferencelist=("plain",))
    html_part = message.get_body(preferencelist=("html",))

    text_body = _part_text(plain_part) if plain_part is not None else ""
    html_body = _part_text(html_part) if html_part is not None else ""

    if not text_body and html_body:
        text_body = html_to_text(html_body)
    return text_body, html_body


def _collapse(text: str, length: int = PREVIEW_LENGTH) -> str:
    return " ".join(text.split())[:length]


def extract_preview(raw: bytes | None, length: int = PREVIEW_LENGTH) -> str:
    """
    Plain-text preview from a (possibly truncated) message source.

    Truncation may cut a part or its boundary; whatever text parses is used.
    """
    if not raw:
        return ""

    message = _parser.parsebytes(raw)
    part = message.get_body(preferencelist=("plain", "html"))
    if part is None:
        return ""

    text = _part_text(part)
    if part.get_content_subtype() == "html":
        text = html_to_text(text)
    return _collapse(text, length)


# =============================================================================
# ATTACHMENTS
# =============================================================================

def _is_attachment(part: EmailMessage) -> bool:
    if part.is_attachment():
        return True
    # Named inline parts that are not body text (inline images, calendar files)
    return bool(part.get_filename()) and part.get_content_maintype() != "text"


def extract_attachments(message: EmailMessage, include_content: bool = False) -> list[AttachmentInfo]:
    """Collect attachment metadata; base64 content only when include_content."""
    attachments = []
    for part in message.walk():
        if part.is_multipart() or not _is_attachment(part):
            continue

        payload = part.get_payload(decode=True) or b""
        filename = decode_header_value(part.get_filename()) or DEFAULT_ATTACHMENT_NAME
        attachments.append(
            AttachmentInfo(
                filename=filename,
                content_type=part.get_content_type(),
                size=len(payload),
                content=base64.b64encode(payload).decode("ascii") if include_content else None,
            )
        )
    return attachments


# =============================================================================
# FETCH DATA
# =============================================================================

def parse_source(raw: bytes) -> EmailMessage:
    """Parse raw RFC 822 bytes into an EmailMessage."""
    return _parser.parsebytes(raw)


def fetched_source(data: dict) -> bytes | None:
    """Return the BODY[...] literal from a fetch response, whatever its section suffix."""
    for key, value in data.items():
        if isinstance(key, bytes) and key.startswith(b"BODY[") and isinstance(value, bytes):
            return value
    return None


def _flag_set(flags) -> set[bytes]:
    return {
        (flag if isinstance(flag, bytes) else str(flag).encode()).lower()
        for flag in flags or ()
    }


def _iso_date(value) -> str:
    if value is None:
        return ""
    return value.isoformat()


def _envelope_fields(envelope) -> dict:
    return {
        "from_addr": format_addresses(envelope.from_),
        "to_addrs": format_addresses(envelope.to),
        "cc_addrs": format_addresses(envelope.cc),
        "bcc_addrs": format_addresses(envelope.bcc),
        "subject": decode_header_value(envelope.subject) or NO_SUBJECT,
        "date": _iso_date(envelope.date),
        "message_id": decode_header_value(envelope.message_id),
    }


def _header_fields(message: EmailMessage | None) -> dict:
    if message is None:
        return {
            "from_addr": "", "to_addrs": "", "cc_addrs": "", "bcc_addrs": "",
            "subject": NO_SUBJECT, "date": "", "message_id": "",
        }

    date = ""
    raw_date = message.get("Date")
    if raw_date:
        try:
            date = email.utils.parsedate_to_datetime(str(raw_date)).isoformat()
        except (TypeError, ValueError):
            date = ""

    return {
        "from_addr": _format_header_addresses(message.get("From")),
        "to_addrs": _format_header_addresses(message.get("To")),
        "cc_addrs": _format_header_addresses(message.get("Cc")),
        "bcc_addrs": _format_header_addresses(message.get("Bcc")),
        "subject": str(message.get("Subject", "")) or NO_SUBJECT,
        "date": date,
        "message_id": str(message.get("Message-ID", "")).strip(),
    }


def _fields(data: dict, message: EmailMessage | None) -> dict:
    envelope = data.get(b"ENVELOPE")
    if envelope is not None:
        return _envelope_fields(envelope)
    return _header_fields(message)


def parse_summary(uid: int, data: dict) -> EmailSummary:
    """Build an EmailSummary from ENVELOPE/FLAGS/BODYSTRUCTURE and a source prefix."""
    raw = fetched_source(data)
    message = parse_source(raw) if raw else None
    fields = _fields(data, message)
    flags = _flag_set(data.get(b"FLAGS"))

    return EmailSummary(
        uid=uid,
        from_addr=fields["from_addr"],
        to_addrs=fields["to_addrs"],
        subject=fields["subject"],
        date=fields["date"],
        seen=b"\\seen" in flags,
        flagged=b"\\flagged" in flags,
        has_attachments=has_attachment_part(data.get(b"BODYSTRUCTURE")),
        preview=extract_preview(raw),
    )


def parse_detail(uid: int, data: dict, include_attachment_content: bool = False) -> EmailDetail | None:
    """Build an EmailDetail from a full fetch. None when no source was returned."""
    raw = fetched_source(data)
    if raw is None:
        return None

    message = parse_source(raw)
    fields = _fields(data, message)
    flags = _flag_set(data.get(b"FLAGS"))
    text_body, html_body = extract_bodies(message)
    attachments = extract_attachments(message, include_attachment_content)

    return EmailDetail(
        uid=uid,
        from_addr=fields["from_addr"],
        to_addrs=fields["to_addrs"],
        subject=fields["subject"],
        date=fields["date"],
        seen=b"\\seen" in flags,
        flagged=b"\\flagged" in flags,
        has_attachments=bool(attachments),
        preview=_collapse(text_body),
        cc_addrs=fields["cc_addrs"],
        bcc_addrs=fields["bcc_addrs"],
        message_id=fields["message_id"],
        text_body=text_body,
        html_body=html_body,
        attachments=attachments,
    )
