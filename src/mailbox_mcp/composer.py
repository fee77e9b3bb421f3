"""
Composer
========

Pure construction of outgoing messages: replies, forwards and the final
MIME document handed to SMTP. Nothing here touches the network.
"""

from __future__ import annotations

import base64
import html
import mimetypes
from email.message import EmailMessage
from email.utils import formatdate, make_msgid

from contracts import AttachmentInput, EmailDetail, OutgoingEmail
from mailbox_mcp.codec import extract_email_address, html_to_text, split_addresses

REPLY_PREFIX = "Re: "
FORWARD_PREFIX = "Fwd: "
FORWARD_HEADER = "---------- Forwarded message ----------"


def prefix_subject(subject: str, prefix: str) -> str:
    """Prefix unless the subject already starts with it (case-insensitive)."""
    token = prefix.strip().lower()
    if subject.lower().startswith(token):
        return subject
    return f"{prefix}{subject}"


def _attribution(original: EmailDetail) -> str:
    return f"On {original.date}, {original.from_addr} wrote:"


def quote_reply(original: EmailDetail, body: str, is_html: bool = False) -> str:
    """New text, blank line, attribution, then the quoted original body."""
    header = _attribution(original)

    if is_html:
        quoted = html.escape(original.text_body).replace("\n", "<br>")
        return f"{body}<br><br><blockquote>{html.escape(header)}<br>{quoted}</blockquote>"

    quoted = "\n".join(f"> {line}" for line in original.text_body.split("\n"))
    return f"{body}\n\n{header}\n{quoted}"


def reply_recipients(original: EmailDetail, account_email: str, reply_all: bool = False) -> tuple[list[str], list[str]]:
    """
    (to, cc) for a reply.

    The original sender is the only direct recipient. Reply-all copies the
    original To and Cc, minus the acting account and any repeated address.
    """
    primary = extract_email_address(original.from_addr)
    to = [primary] if primary else []
    cc: list[str] = []

    if reply_all:
        seen = {primary.lower(), account_email.lower()}
        for address in split_addresses(original.to_addrs) + split_addresses(original.cc_addrs):
            key = address.lower()
            if key in seen:
                continue
            seen.add(key)
            cc.append(address)

    return to, cc


def build_reply(
    original: EmailDetail,
    account_email: str,
    body: str,
    reply_all: bool = False,
    is_html: bool = False,
) -> OutgoingEmail:
    """Reply threaded on the original Message-ID."""
    to, cc = reply_recipients(original, account_email, reply_all)
    message_id = original.message_id or None

    return OutgoingEmail(
        to=to,
        cc=cc,
        subject=prefix_subject(original.subject, REPLY_PREFIX),
        body=quote_reply(original, body, is_html),
        is_html=is_html,
        in_reply_to=message_id,
        references=message_id,
    )


def forward_block(original: EmailDetail, comment: str | None = None) -> str:
    lines = [
        FORWARD_HEADER,
        f"From: {original.from_addr}",
        f"Date: {original.date}",
        f"Subject: {original.subject}",
        f"To: {original.to_addrs}",
    ]
    if original.cc_addrs:
        lines.append(f"Cc: {original.cc_addrs}")
    lines += ["", original.text_body]

    block = "\n".join(lines)
    if comment:
        return f"{comment}\n\n{block}"
    return block


def build_forward(
    original: EmailDetail,
    to: list[str],
    comment: str | None = None,
    attachments: list[AttachmentInput] | None = None,
) -> OutgoingEmail:
    """Plain-text forward; attachments are passed through when supplied."""
    return OutgoingEmail(
        to=list(to),
        subject=prefix_subject(original.subject, FORWARD_PREFIX),
        body=forward_block(original, comment),
        attachments=list(attachments or []),
    )


def _sender_domain(sender: str) -> str | None:
    _, _, domain = extract_email_address(sender).rpartition("@")
    return domain or None


def _attachment_type(attachment: AttachmentInput) -> tuple[str, str]:
    content_type = attachment.content_type or mimetypes.guess_type(attachment.filename)[0]
    if not content_type or "/" not in content_type:
        content_type = "application/octet-stream"
    maintype, subtype = content_type.split("/", 1)
    return maintype, subtype


def compose_message(sender: str, outgoing: OutgoingEmail) -> EmailMessage:
    """
    Build the MIME message for an OutgoingEmail.

    HTML bodies get a text/plain alternative. Attachment content is base64
    decoded here; malformed base64 raises binascii.Error (a ValueError).
    """
    message = EmailMessage()
    message["From"] = sender
    message["To"] = ", ".join(outgoing.to)
    if outgoing.cc:
        message["Cc"] = ", ".join(outgoing.cc)
    if outgoing.bcc:
        message["Bcc"] = ", ".join(outgoing.bcc)
    message["Subject"] = outgoing.subject
    if outgoing.reply_to:
        message["Reply-To"] = outgoing.reply_to
    if outgoing.in_reply_to:
        message["In-Reply-To"] = outgoing.in_reply_to
    if outgoing.references:
        message["References"] = outgoing.references
    message["Date"] = formatdate(localtime=True)
    message["Message-ID"] = make_msgid(domain=_sender_domain(sender))

    if outgoing.is_html:
        message.set_content(html_to_text(outgoing.body))
        message.add_alternative(outgoing.body, subtype="html")
    else:
        message.set_content(outgoing.body)

    for attachment in outgoing.attachments:
        maintype, subtype = _attachment_type(attachment)
        message.add_attachment(
            base64.b64decode(attachment.content),
            maintype=maintype,
            subtype=subtype,
            filename=attachment.filename,
        )

    return message


def recipients_of(outgoing: OutgoingEmail) -> list[str]:
    """Envelope recipients: to + cc + bcc."""
    return [*outgoing.to, *outgoing.cc, *outgoing.bcc]
