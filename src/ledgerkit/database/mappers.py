"""Mapper functions to convert between domain models and SQLAlchemy models.

This layer isolates the conversion logic: money is stored as integer minor
units, timestamps as naive UTC, metadata as canonical JSON text.
"""

from datetime import UTC, datetime

from ledgerkit.domain import entities as domain
from ledgerkit.domain.metadata import Metadata
from ledgerkit.domain.money import Money
from ledgerkit.database.models import (
    Account as ORMAccount,
    JournalEntry as ORMJournalEntry,
    JournalLine as ORMJournalLine,
)
from ledgerkit.utils.date_parser import ensure_utc


def to_naive_utc(value: datetime) -> datetime:
    return ensure_utc(value).replace(tzinfo=None)


def from_naive_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=UTC) if value.tzinfo is None else value.astimezone(UTC)


def account_to_domain(orm_account: ORMAccount) -> domain.Account:
    """Convert SQLAlchemy Account model to domain Account entity."""
    return domain.Account(
        id=orm_account.id,
        user_id=orm_account.user_id,
        name=orm_account.name,
        currency=orm_account.currency,
        type=domain.AccountType(orm_account.type),
        group=orm_account.group,
        vendor=orm_account.vendor,
        metadata=Metadata.from_json(orm_account.metadata_json),
        system=orm_account.system,
        active=orm_account.active,
        created_at=from_naive_utc(orm_account.created_at) if orm_account.created_at else None,
    )


def account_to_orm(account: domain.Account) -> ORMAccount:
    """Build a new SQLAlchemy Account row from a domain Account."""
    row = ORMAccount(id=account.id, user_id=account.user_id, type=account.type.value)
    apply_account(row, account)
    if account.created_at is not None:
        row.created_at = to_naive_utc(account.created_at)
    return row


def apply_account(row: ORMAccount, account: domain.Account) -> None:
    """Copy the mutable fields of a domain Account onto an existing row."""
    row.name = account.name
    row.currency = account.currency
    row.group = account.group
    row.vendor = account.vendor
    row.path = account.path
    row.metadata_json = account.metadata.to_json()
    row.system = account.system
    row.active = account.active


def line_to_domain(orm_line: ORMJournalLine, currency: str) -> domain.JournalLine:
    """Convert SQLAlchemy JournalLine model to domain JournalLine entity."""
    return domain.JournalLine(
        id=orm_line.id,
        entry_id=orm_line.entry_id,
        account_id=orm_line.account_id,
        side=domain.Side(orm_line.side),
        amount=Money(orm_line.amount_minor, currency),
    )


def entry_to_domain(orm_entry: ORMJournalEntry) -> domain.JournalEntry:
    """Convert SQLAlchemy JournalEntry model to domain JournalEntry entity."""
    return domain.JournalEntry(
        id=orm_entry.id,
        user_id=orm_entry.user_id,
        date=from_naive_utc(orm_entry.date),
        currency=orm_entry.currency,
        memo=orm_entry.memo,
        category=domain.EntryCategory(orm_entry.category),
        metadata=Metadata.from_json(orm_entry.metadata_json),
        is_reversed=orm_entry.is_reversed,
        lines=domain.JournalLines(
            line_to_domain(line, orm_entry.currency) for line in orm_entry.lines
        ),
    )


def entry_to_orm(entry: domain.JournalEntry) -> ORMJournalEntry:
    """Build a new SQLAlchemy JournalEntry row (with lines) from a domain entry."""
    return ORMJournalEntry(
        id=entry.id,
        user_id=entry.user_id,
        date=to_naive_utc(entry.date),
        currency=entry.currency,
        memo=entry.memo,
        category=entry.category.value,
        metadata_json=entry.metadata.to_json(),
        is_reversed=entry.is_reversed,
        lines=[
            ORMJournalLine(
                id=line.id,
                account_id=line.account_id,
                side=line.side.value,
                amount_minor=line.amount.minor_units,
                position=position,
            )
            for position, line in enumerate(entry.lines)
        ],
    )
