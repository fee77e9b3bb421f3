"""
Mailbox Gateway Contract Index
==============================

AUTHORITY: This file is the SINGLE authoritative entrypoint for all
mailbox gateway contracts. Import from here, not from individual contract files.
"""

import inspect
import re

from contracts.mailbox_contract import (
    CONTRACTS,
    DEFAULT_IMAP_PORT,
    DEFAULT_SMTP_PORT,
    DEFAULT_SMTP_SECURE,
    DEFAULT_TRASH_FOLDER,
    GLOBAL_INVARIANTS,
    PROVIDER_PRESETS,
    # Test Case Index
    TEST_CASES,
    AccountConfigError,
    AccountLoadingContract,
    AccountNotFoundError,
    # Contracts (Protocols)
    AccountResolverContract,
    AttachmentInfo,
    AttachmentInput,
    AuthFailedError,
    ComposerContract,
    ConnectionFailedError,
    ConnectionTestContract,
    ConnectionTestResult,
    EmailDetail,
    EmailDetailContract,
    # Domain Types
    EmailProvider,
    EmailSummary,
    FolderInfo,
    FolderNotFoundError,
    InvalidRangeError,
    ListEmailsContract,
    ListFoldersContract,
    MailboxMutationContract,
    # Error Types
    MailboxMCPError,
    MailSessionContract,
    NotConnectedError,
    OperationFailedError,
    OutgoingEmail,
    ProviderPreset,
    ResolvedAccount,
    SearchCriteria,
    SearchEmailsContract,
    SearchScope,
    SendResult,
    SmtpSessionContract,
    UidNotFoundError,
)

__all__ = [
    # Domain Types
    "EmailProvider",
    "ProviderPreset",
    "PROVIDER_PRESETS",
    "DEFAULT_IMAP_PORT",
    "DEFAULT_SMTP_PORT",
    "DEFAULT_SMTP_SECURE",
    "DEFAULT_TRASH_FOLDER",
    "ResolvedAccount",
    "AttachmentInfo",
    "EmailSummary",
    "EmailDetail",
    "FolderInfo",
    "SearchScope",
    "SearchCriteria",
    "AttachmentInput",
    "OutgoingEmail",
    "SendResult",
    "ConnectionTestResult",
    # Error Types
    "MailboxMCPError",
    "AccountConfigError",
    "AccountNotFoundError",
    "InvalidRangeError",
    "ConnectionFailedError",
    "AuthFailedError",
    "NotConnectedError",
    "FolderNotFoundError",
    "UidNotFoundError",
    "OperationFailedError",
    # Contracts
    "AccountResolverContract",
    "AccountLoadingContract",
    "MailSessionContract",
    "ListFoldersContract",
    "ListEmailsContract",
    "SearchEmailsContract",
    "EmailDetailContract",
    "MailboxMutationContract",
    "ConnectionTestContract",
    "ComposerContract",
    "SmtpSessionContract",
    "CONTRACTS",
    "GLOBAL_INVARIANTS",
    # Test Traceability
    "TEST_CASES",
    # Functions
    "contract_clauses",
    "audit_contract_coverage",
]

_CLAUSE_PATTERN = re.compile(r"\b(?:PRE|POST|INV)-[A-Z]+-\d{2}\b")
_ERROR_PATTERN = re.compile(r"^\s*-\s+([A-Z_]+):", re.MULTILINE)


def contract_clauses() -> set[str]:
    """
    Collect every clause ID declared in the contract docstrings.

    ERRORS lines are reported as "ERRORS: <CODE>", matching TEST_CASES.
    """
    clauses = set(GLOBAL_INVARIANTS)
    for contract in CONTRACTS:
        doc = inspect.getdoc(contract) or ""
        clauses.update(_CLAUSE_PATTERN.findall(doc))
        _, _, errors = doc.partition("ERRORS:")
        clauses.update(f"ERRORS: {code}" for code in _ERROR_PATTERN.findall(errors))
    return clauses


def audit_contract_coverage() -> dict:
    """
    Audit which contract clauses have test coverage.

    Returns dict with:
    - covered: clauses with at least one test
    - uncovered: clauses with no tests
    - test_count: total tests defined
    - coverage_pct: share of declared clauses covered
    """
    covered_clauses = set()
    for test_info in TEST_CASES.values():
        covered_clauses.update(test_info.get("enforces", []))

    all_clauses = contract_clauses()
    uncovered = all_clauses - covered_clauses

    return {
        "covered": sorted(covered_clauses & all_clauses),
        "uncovered": sorted(uncovered),
        "test_count": len(TEST_CASES),
        "coverage_pct": round(len(covered_clauses & all_clauses) / len(all_clauses) * 100, 1),
    }
