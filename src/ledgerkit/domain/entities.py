"""Domain model entities for ledgerkit.

These are pure data classes representing bookkeeping concepts, independent of
any storage schema. Both the in-memory store and the SQLAlchemy store hand
these objects to the services, so the business rules never see ORM rows.
"""

from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from ledgerkit.domain.errors import ValidationError
from ledgerkit.domain.metadata import Metadata, coerce_metadata
from ledgerkit.domain.money import Money
from ledgerkit.utils.date_parser import ensure_utc
from ledgerkit.utils.slug import slugify

OPENING_BALANCES_GROUP = "opening_balances"
OPENING_BALANCES_PATH = "equity:opening_balances"
OPENING_BALANCES_NAME = "Opening Balances"
SYSTEM_VENDOR = "System"


class AccountType(str, Enum):
    """Broad classification of a ledger account."""

    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"


class Side(str, Enum):
    """Accounting position of a journal line."""

    DEBIT = "debit"
    CREDIT = "credit"

    def flipped(self) -> "Side":
        return Side.CREDIT if self is Side.DEBIT else Side.DEBIT


class EntryCategory(str, Enum):
    """Informational tag describing what a journal entry is for."""

    UNCATEGORIZED = "uncategorized"
    GENERAL = "general"
    EATING_OUT = "eating_out"
    GROCERIES = "groceries"
    TRANSPORT = "transport"
    SHOPPING = "shopping"
    ENTERTAINMENT = "entertainment"
    BILLS = "bills"
    TRAVEL = "travel"
    EXPENSES = "expenses"
    INCOME = "income"
    TRANSFERS = "transfers"
    SAVINGS = "savings"
    CHARITY = "charity"
    FAMILY = "family"
    GIFTS = "gifts"
    PERSONAL_CARE = "personal_care"
    BUSINESS = "business"


def parse_category(value: "EntryCategory | str | None") -> EntryCategory:
    """Coerce a category tag, defaulting to uncategorized."""
    if value is None or value == "":
        return EntryCategory.UNCATEGORIZED
    try:
        return EntryCategory(value)
    except ValueError:
        raise ValidationError(f"Unknown category '{value}'")


def parse_account_type(value: "AccountType | str") -> AccountType:
    try:
        return AccountType(value)
    except ValueError:
        raise ValidationError(f"Invalid account type '{value}'")


def is_opening_balances(account_type: "AccountType | str", group: str) -> bool:
    return account_type == AccountType.EQUITY and (group or "").strip().lower() == OPENING_BALANCES_GROUP


def account_path(account_type: "AccountType | str", group: str, vendor: str) -> str:
    """Return the normalized ``type:group:vendor`` path.

    The reserved opening balances account always maps to
    ``equity:opening_balances`` regardless of vendor.
    """
    if is_opening_balances(account_type, group):
        return OPENING_BALANCES_PATH
    type_value = account_type.value if isinstance(account_type, AccountType) else str(account_type)
    return f"{type_value.lower()}:{(group or '').strip().lower()}:{slugify(vendor)}"


@dataclass(frozen=True)
class Account:
    """Ledger account owned by a single user."""

    id: UUID
    user_id: UUID
    name: str
    currency: str
    type: AccountType
    group: str
    vendor: str
    metadata: Metadata = field(default_factory=Metadata)
    system: bool = False
    active: bool = True
    created_at: Optional[datetime] = None

    @property
    def path(self) -> str:
        return account_path(self.type, self.group, self.vendor)


@dataclass(frozen=True)
class JournalLine:
    """One side of a journal entry against a single account."""

    id: UUID
    entry_id: UUID
    account_id: UUID
    side: Side
    amount: Money


class JournalLines:
    """Lines of one entry: a tuple of lines plus an id -> position index.

    Iteration follows insertion order. Use :meth:`sorted` wherever a stable
    display order is needed.
    """

    __slots__ = ("_lines", "_index")

    def __init__(self, lines: Iterable[JournalLine] = ()):
        self._lines: tuple[JournalLine, ...] = tuple(lines)
        self._index: dict[UUID, int] = {}
        for position, line in enumerate(self._lines):
            if line.id in self._index:
                raise ValueError(f"Duplicate journal line id {line.id}")
            self._index[line.id] = position

    def __iter__(self) -> Iterator[JournalLine]:
        return iter(self._lines)

    def __len__(self) -> int:
        return len(self._lines)

    def __contains__(self, line_id: object) -> bool:
        return line_id in self._index

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, JournalLines):
            return NotImplemented
        return self.sorted() == other.sorted()

    def __hash__(self) -> int:
        return hash(tuple(self.sorted()))

    def __repr__(self) -> str:
        return f"JournalLines({list(self._lines)!r})"

    def get(self, line_id: UUID) -> Optional[JournalLine]:
        position = self._index.get(line_id)
        if position is None:
            return None
        return self._lines[position]

    def sorted(self) -> list[JournalLine]:
        """Return lines ordered by line id."""
        return sorted(self._lines, key=lambda line: str(line.id))

    def total(self, side: Side, currency: str) -> Money:
        result = Money.zero(currency)
        for line in self._lines:
            if line.side == side:
                result = result + line.amount
        return result


@dataclass(frozen=True)
class JournalEntry:
    """A balanced set of journal lines posted on one date."""

    id: UUID
    user_id: UUID
    date: datetime
    currency: str
    lines: JournalLines
    memo: str = ""
    category: EntryCategory = EntryCategory.UNCATEGORIZED
    metadata: Metadata = field(default_factory=Metadata)
    is_reversed: bool = False

    def sort_key(self) -> tuple[datetime, str]:
        return (self.date, str(self.id))

    def debit_total(self) -> Money:
        return self.lines.total(Side.DEBIT, self.currency)

    def credit_total(self) -> Money:
        return self.lines.total(Side.CREDIT, self.currency)


@dataclass(frozen=True)
class LineDraft:
    """Caller-supplied journal line awaiting validation."""

    account_id: Optional[UUID]
    side: "Side | str"
    amount_minor: int


@dataclass(frozen=True)
class EntryDraft:
    """Caller-supplied journal entry awaiting validation.

    Any ids the caller might hold are never carried over; the posting engine
    assigns fresh entry and line ids.
    """

    user_id: Optional[UUID]
    currency: str
    lines: Sequence[LineDraft]
    date: Optional[datetime] = None
    memo: str = ""
    category: "EntryCategory | str | None" = EntryCategory.UNCATEGORIZED
    metadata: Mapping[str, str] = field(default_factory=Metadata)

    def __post_init__(self):
        object.__setattr__(self, "lines", tuple(self.lines))
        object.__setattr__(self, "currency", (self.currency or "").strip().upper())
        object.__setattr__(self, "category", parse_category(self.category))
        object.__setattr__(self, "metadata", coerce_metadata(self.metadata))
        if self.date is not None:
            object.__setattr__(self, "date", ensure_utc(self.date))


@dataclass(frozen=True)
class AccountDraft:
    """Caller-supplied account awaiting validation."""

    user_id: Optional[UUID]
    name: str
    currency: str
    type: "AccountType | str"
    group: str
    vendor: str
    metadata: Mapping[str, str] = field(default_factory=Metadata)

    def __post_init__(self):
        object.__setattr__(self, "name", (self.name or "").strip())
        object.__setattr__(self, "currency", (self.currency or "").strip().upper())
        object.__setattr__(self, "group", (self.group or "").strip())
        object.__setattr__(self, "vendor", (self.vendor or "").strip())
        object.__setattr__(self, "metadata", coerce_metadata(self.metadata))

    @property
    def path(self) -> str:
        return account_path(self.type, self.group, self.vendor)
