"""Journal entry validation.

Checks run in a fixed order and stop at the first failure, so callers get
the most specific error for the earliest problem:

1. user id present
2. currency present
3. at least two lines
4. per line: account id, positive amount, debit/credit side
5. debits equal credits
6. every referenced account resolves for the user (one batched lookup)
7. every account belongs to the user and matches the entry currency
"""

from typing import Optional

from ledgerkit.database.base import Repo
from ledgerkit.domain.cancellation import CancelToken, check
from ledgerkit.domain.entities import EntryDraft, Side
from ledgerkit.domain.errors import (
    CurrencyMismatchError,
    ForbiddenError,
    InvalidAmountError,
    TooFewLinesError,
    UnbalancedEntryError,
    ValidationError,
    line_error,
)


def validate_entry(repo: Repo, candidate: EntryDraft, ctx: Optional[CancelToken] = None) -> None:
    """Validate a candidate journal entry against the user's accounts.

    Has no side effects.

    Args:
        repo: Read-side storage used to resolve accounts
        candidate: Entry to validate
        ctx: Optional cancellation token

    Raises:
        ValidationError: Missing user/currency/account id, bad side, unknown account
        TooFewLinesError: Fewer than two lines
        InvalidAmountError: A line amount is not strictly positive
        UnbalancedEntryError: Debits and credits differ
        ForbiddenError: An account belongs to another user
        CurrencyMismatchError: An account currency differs from the entry currency
    """
    if candidate.user_id is None:
        raise ValidationError("user_id is required")
    currency = (candidate.currency or "").strip().upper()
    if not currency:
        raise ValidationError("currency is required")
    if len(candidate.lines) < 2:
        raise TooFewLinesError("at least 2 lines are required")

    debits = 0
    credits = 0
    account_ids = []
    for i, line in enumerate(candidate.lines):
        if line.account_id is None:
            raise ValidationError(line_error(i, "account_id is required"))
        if isinstance(line.amount_minor, bool) or not isinstance(line.amount_minor, int):
            raise InvalidAmountError(line_error(i, "amount must be an integer number of minor units"))
        if line.amount_minor <= 0:
            raise InvalidAmountError(line_error(i, "amount must be > 0"))
        if line.side == Side.DEBIT:
            debits += line.amount_minor
        elif line.side == Side.CREDIT:
            credits += line.amount_minor
        else:
            raise ValidationError(line_error(i, "side must be debit or credit"))
        account_ids.append(line.account_id)

    if debits != credits:
        raise UnbalancedEntryError(
            f"sum(debits) must equal sum(credits): {debits} != {credits}"
        )

    check(ctx)
    accounts = repo.accounts_by_ids(candidate.user_id, account_ids)
    if len(accounts) != len(set(account_ids)):
        raise ValidationError("unknown or unauthorized accounts")

    for i, line in enumerate(candidate.lines):
        account = accounts[line.account_id]
        if account.user_id != candidate.user_id:
            raise ForbiddenError(line_error(i, "account does not belong to user"))
        if account.currency != currency:
            raise CurrencyMismatchError(
                line_error(i, f"account currency {account.currency} does not match entry currency {currency}")
            )
