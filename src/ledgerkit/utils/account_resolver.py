"""Utility for resolving account references to accounts."""

from typing import Optional
from uuid import UUID

from ledgerkit.domain.account import AccountService
from ledgerkit.domain.entities import Account


def resolve_account(
    account_service: AccountService,
    user_id: UUID,
    reference: str,
    currency: Optional[str] = None,
) -> Account:
    """Resolve an account id or path to one of the user's accounts.

    A reference is either an account UUID, a path such as
    ``asset:bank:monzo``, or a path qualified with a currency such as
    ``asset:bank:monzo@USD`` when the path exists in several currencies.

    Args:
        account_service: AccountService instance
        user_id: Owner of the account
        reference: Account id or path
        currency: Default currency for a path without an @ qualifier

    Returns:
        The matching account

    Raises:
        ValueError: If no account or more than one account matches
    """
    reference = (reference or "").strip()
    try:
        account_id = UUID(reference)
    except ValueError:
        pass
    else:
        return account_service.get_account(user_id, account_id)

    path, _, qualifier = reference.partition("@")
    path = path.strip().lower()
    currency = (qualifier or currency or "").strip().upper()
    matches = [
        acc
        for acc in account_service.list_accounts(user_id)
        if acc.path == path and (not currency or acc.currency == currency)
    ]
    if not matches:
        raise ValueError(f"Account '{reference}' not found")
    if len(matches) > 1:
        currencies = ", ".join(sorted(acc.currency for acc in matches))
        raise ValueError(
            f"Account '{reference}' exists in several currencies ({currencies}); "
            f"use {path}@<CURRENCY>"
        )
    return matches[0]
