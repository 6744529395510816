"""Balance domain service: trial balance, account balance and ledger."""

from dataclasses import dataclass
from datetime import datetime
import logging
from typing import Optional
from uuid import UUID

from ledgerkit.database.base import Repo
from ledgerkit.domain.cancellation import CancelToken, check
from ledgerkit.domain.entities import (
    Account,
    EntryCategory,
    JournalEntry,
    JournalLine,
    Side,
)
from ledgerkit.domain.errors import (
    ForbiddenError,
    NotFoundError,
    ValidationError,
    account_forbidden,
    account_not_found,
)
from ledgerkit.domain.money import Money
from ledgerkit.domain.pagination import paginate
from ledgerkit.utils.date_parser import ensure_utc

logger = logging.getLogger(__name__)


def signed_amount(line: JournalLine) -> Money:
    """Return the line amount, negated for credits."""
    return line.amount if line.side == Side.DEBIT else -line.amount


@dataclass(frozen=True)
class TrialBalanceRow:
    """Debit and credit totals of one account."""

    account: Account
    debit: Money
    credit: Money

    @property
    def balance(self) -> Money:
        return self.debit - self.credit


@dataclass(frozen=True)
class TrialBalanceGroup:
    """Trial balance rows sharing one currency."""

    currency: str
    rows: list[TrialBalanceRow]
    total_debit: Money
    total_credit: Money


@dataclass(frozen=True)
class LedgerItem:
    """One line of an account ledger with the balance after it."""

    entry_id: UUID
    line_id: UUID
    date: datetime
    memo: str
    category: EntryCategory
    side: Side
    amount: Money
    running_balance: Money


@dataclass(frozen=True)
class LedgerPage:
    """A page of an account ledger."""

    account: Account
    items: list[LedgerItem]
    next_cursor: Optional[str] = None


class BalanceService:
    """Service for balance and ledger queries."""

    def __init__(self, repo: Repo):
        """Initialize balance service.

        Args:
            repo: Read-side storage
        """
        self.repo = repo

    def _entries(
        self,
        user_id: UUID,
        as_of: Optional[datetime] = None,
        ctx: Optional[CancelToken] = None,
    ) -> list[JournalEntry]:
        if user_id is None:
            raise ValidationError("user_id is required")
        check(ctx)
        entries = self.repo.list_entries(user_id)
        if as_of is None:
            return entries
        as_of = ensure_utc(as_of)
        return [e for e in entries if e.date <= as_of]

    def _owned_account(
        self, user_id: UUID, account_id: UUID, ctx: Optional[CancelToken] = None
    ) -> Account:
        if user_id is None or account_id is None:
            raise ValidationError("user_id and account_id are required")
        check(ctx)
        account = self.repo.get_account(account_id)
        if account is None:
            raise NotFoundError(account_not_found(account_id))
        if account.user_id != user_id:
            raise ForbiddenError(account_forbidden(account_id))
        return account

    def trial_balance(
        self,
        user_id: UUID,
        as_of: Optional[datetime] = None,
        include_zero: bool = False,
        ctx: Optional[CancelToken] = None,
    ) -> dict[UUID, Money]:
        """Compute the net balance of every account of a user.

        Debits add and credits subtract. Balances are kept in each
        account's own currency and never netted across currencies.

        Args:
            user_id: Owner
            as_of: Only count entries dated at or before this instant
            include_zero: Also report accounts whose net balance is zero
            ctx: Optional cancellation token

        Returns:
            Mapping of account id to net balance
        """
        balances: dict[UUID, Money] = {}
        for entry in self._entries(user_id, as_of, ctx):
            check(ctx)
            for line in entry.lines:
                signed = signed_amount(line)
                current = balances.get(line.account_id)
                balances[line.account_id] = signed if current is None else current + signed

        if include_zero:
            check(ctx)
            for account in self.repo.list_accounts(user_id):
                balances.setdefault(account.id, Money.zero(account.currency))
            return balances
        return {account_id: amount for account_id, amount in balances.items() if not amount.is_zero()}

    def trial_balance_report(
        self,
        user_id: UUID,
        as_of: Optional[datetime] = None,
        ctx: Optional[CancelToken] = None,
    ) -> list[TrialBalanceGroup]:
        """Build a trial balance grouped by currency.

        Every account with at least one line is reported with its debit and
        credit totals. Within a currency the debit and credit totals agree.

        Returns:
            Groups ordered by currency, rows ordered by account path
        """
        debits: dict[UUID, Money] = {}
        credits: dict[UUID, Money] = {}
        for entry in self._entries(user_id, as_of, ctx):
            check(ctx)
            for line in entry.lines:
                totals = debits if line.side == Side.DEBIT else credits
                current = totals.get(line.account_id)
                totals[line.account_id] = line.amount if current is None else current + line.amount

        touched = set(debits) | set(credits)
        if not touched:
            return []
        check(ctx)
        accounts = self.repo.accounts_by_ids(user_id, touched)

        by_currency: dict[str, list[TrialBalanceRow]] = {}
        for account_id in touched:
            account = accounts.get(account_id)
            if account is None:
                continue
            zero = Money.zero(account.currency)
            by_currency.setdefault(account.currency, []).append(
                TrialBalanceRow(
                    account=account,
                    debit=debits.get(account_id, zero),
                    credit=credits.get(account_id, zero),
                )
            )

        groups = []
        for currency in sorted(by_currency):
            rows = sorted(by_currency[currency], key=lambda r: (r.account.path, str(r.account.id)))
            total_debit = Money.zero(currency)
            total_credit = Money.zero(currency)
            for row in rows:
                total_debit = total_debit + row.debit
                total_credit = total_credit + row.credit
            groups.append(
                TrialBalanceGroup(
                    currency=currency,
                    rows=rows,
                    total_debit=total_debit,
                    total_credit=total_credit,
                )
            )
        return groups

    def account_balance(
        self,
        user_id: UUID,
        account_id: UUID,
        as_of: Optional[datetime] = None,
        ctx: Optional[CancelToken] = None,
    ) -> Money:
        """Get the net balance of one account in its own currency.

        Raises:
            NotFoundError: If the account does not exist
            ForbiddenError: If the account belongs to another user
        """
        account = self._owned_account(user_id, account_id, ctx)
        balance = Money.zero(account.currency)
        for entry in self._entries(user_id, as_of, ctx):
            check(ctx)
            for line in entry.lines:
                if line.account_id == account.id:
                    balance = balance + signed_amount(line)
        return balance

    def ledger(
        self,
        user_id: UUID,
        account_id: UUID,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: Optional[int] = None,
        cursor: Optional[str] = None,
        ctx: Optional[CancelToken] = None,
    ) -> LedgerPage:
        """List the lines posted to an account with a running balance.

        Lines are ordered by (date, entry id, line id). The running balance
        starts from every line of the account that precedes the page,
        including lines dated before ``start``.

        Args:
            user_id: Owner
            account_id: Account to list
            start: Optional inclusive lower date bound
            end: Optional inclusive upper date bound
            limit: Page size (default 50, at most 200)
            cursor: Cursor returned with the previous page
            ctx: Optional cancellation token

        Returns:
            LedgerPage for the account

        Raises:
            NotFoundError: If the account does not exist
            ForbiddenError: If the account belongs to another user
        """
        account = self._owned_account(user_id, account_id, ctx)
        if start is not None:
            start = ensure_utc(start)

        postings: list[tuple[JournalEntry, JournalLine]] = []
        for entry in self._entries(user_id, end, ctx):
            check(ctx)
            for line in entry.lines:
                if line.account_id == account.id:
                    postings.append((entry, line))
        postings.sort(key=lambda p: (p[0].date, str(p[0].id), str(p[1].id)))

        balance = Money.zero(account.currency)
        window = []
        for entry, line in postings:
            if start is not None and entry.date < start:
                balance = balance + signed_amount(line)
            else:
                window.append((entry, line))

        offset, page = paginate(
            window,
            key=lambda p: (p[0].date, p[0].id, p[1].id),
            limit=limit,
            cursor=cursor,
        )
        for _, line in window[:offset]:
            check(ctx)
            balance = balance + signed_amount(line)

        items = []
        for entry, line in page.items:
            balance = balance + signed_amount(line)
            items.append(
                LedgerItem(
                    entry_id=entry.id,
                    line_id=line.id,
                    date=entry.date,
                    memo=entry.memo,
                    category=entry.category,
                    side=line.side,
                    amount=line.amount,
                    running_balance=balance,
                )
            )
        logger.debug("Ledger page for account %s: %d items", account.id, len(items))
        return LedgerPage(account=account, items=items, next_cursor=page.next_cursor)
