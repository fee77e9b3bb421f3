"""
Account Configuration
=====================

Loading and resolution of mail accounts.

Accounts arrive as one JSON collection (EMAIL_ACCOUNTS). Each entry is
validated, then resolved against its provider preset into a ResolvedAccount
right before an operation opens a session.

INV-LOAD-01: Every validation error is reported, not just the first.
INV-RESOLVE-02: Resolution is pure; nothing is cached between calls.
"""

from __future__ import annotations

import os
from collections import Counter

from pydantic import BaseModel, ConfigDict, EmailStr, Field, TypeAdapter, ValidationError

from contracts import (
    DEFAULT_IMAP_PORT,
    DEFAULT_SMTP_PORT,
    DEFAULT_SMTP_SECURE,
    DEFAULT_TRASH_FOLDER,
    AccountConfigError,
    AccountNotFoundError,
    EmailProvider,
    ResolvedAccount,
)

ACCOUNTS_ENV_VAR = "EMAIL_ACCOUNTS"


class Account(BaseModel):
    """User-supplied account record. Optional fields override the provider preset."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    email: EmailStr
    password: str = Field(min_length=1, repr=False)
    provider: EmailProvider
    imap_server: str | None = None
    imap_port: int | None = Field(default=None, gt=0, lt=65536)
    smtp_server: str | None = None
    smtp_port: int | None = Field(default=None, gt=0, lt=65536)
    smtp_secure: bool | None = None
    trash_folder: str | None = None


_ACCOUNT_LIST = TypeAdapter(list[Account])


def _first_set(*values):
    for value in values:
        if value is not None:
            return value
    return None


def resolve_account(account: Account | ResolvedAccount) -> ResolvedAccount:
    """
    Fill every connection parameter: override > preset > hard default.

    PRE-RESOLVE-01: account passed schema validation

    POST-RESOLVE-01: hosts, ports and trash folder are concrete
    POST-RESOLVE-03: requires_imap_id from preset, False for custom

    INV-RESOLVE-01: resolve_account(resolve_account(a)) == resolve_account(a)

    ERRORS:
    - AccountConfigError: custom provider without imap_server or smtp_server
    """
    provider = EmailProvider(account.provider)
    preset = provider.preset

    if preset is None:
        missing = [name for name in ("imap_server", "smtp_server") if not getattr(account, name)]
        if missing:
            raise AccountConfigError(
                f'Account "{account.id}" uses custom provider but is missing {", ".join(missing)}'
            )
        return ResolvedAccount(
            id=account.id,
            email=account.email,
            password=account.password,
            provider=provider,
            imap_server=account.imap_server,
            imap_port=_first_set(account.imap_port, DEFAULT_IMAP_PORT),
            smtp_server=account.smtp_server,
            smtp_port=_first_set(account.smtp_port, DEFAULT_SMTP_PORT),
            smtp_secure=_first_set(account.smtp_secure, DEFAULT_SMTP_SECURE),
            trash_folder=account.trash_folder or DEFAULT_TRASH_FOLDER,
            requires_imap_id=False,
        )

    return ResolvedAccount(
        id=account.id,
        email=account.email,
        password=account.password,
        provider=provider,
        imap_server=account.imap_server or preset.imap_server,
        imap_port=_first_set(account.imap_port, preset.imap_port),
        smtp_server=account.smtp_server or preset.smtp_server,
        smtp_port=_first_set(account.smtp_port, preset.smtp_port),
        smtp_secure=_first_set(account.smtp_secure, preset.smtp_secure),
        trash_folder=account.trash_folder or preset.trash_folder,
        requires_imap_id=preset.requires_imap_id,
    )


def _format_errors(error: ValidationError) -> str:
    messages = []
    for detail in error.errors():
        location = ".".join(str(part) for part in detail["loc"]) or "accounts"
        messages.append(f"{location}: {detail['msg']}")
    return ", ".join(messages)


def load_accounts(raw: str) -> list[Account]:
    """
    Parse and validate a JSON array of account records.

    POST-LOAD-01: Returns accounts in input order

    INV-LOAD-02: one bad entry fails the whole load

    ERRORS:
    - AccountConfigError: invalid JSON, empty list, invalid entry, duplicate id
    """
    try:
        accounts = _ACCOUNT_LIST.validate_json(raw)
    except ValidationError as e:
        raise AccountConfigError(f"Invalid account configuration: {_format_errors(e)}") from e

    if not accounts:
        raise AccountConfigError("Invalid account configuration: at least one account is required")

    duplicates = sorted(acc_id for acc_id, count in Counter(a.id for a in accounts).items() if count > 1)
    if duplicates:
        raise AccountConfigError(
            f"Invalid account configuration: duplicate account id {', '.join(duplicates)}"
        )

    return accounts


def load_accounts_from_env(environ: dict[str, str] | None = None) -> list[Account]:
    """Load accounts from the EMAIL_ACCOUNTS environment variable."""
    env = os.environ if environ is None else environ
    raw = env.get(ACCOUNTS_ENV_VAR)
    if not raw:
        raise AccountConfigError(f"{ACCOUNTS_ENV_VAR} environment variable is required")
    return load_accounts(raw)


def find_account(accounts: list[Account], account_id: str) -> Account:
    """Look up an account by id, raising AccountNotFoundError when absent."""
    for account in accounts:
        if account.id == account_id:
            return account
    raise AccountNotFoundError(f'Account "{account_id}" not found')
