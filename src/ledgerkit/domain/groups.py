"""Curated account group dictionary."""

from dataclasses import dataclass
from typing import Optional

from ledgerkit.domain.entities import AccountType, OPENING_BALANCES_GROUP


@dataclass(frozen=True)
class GroupDef:
    """A suggested group code for an account type."""

    code: str
    label: str
    reserved: bool = False


CURATED_GROUPS: dict[AccountType, tuple[GroupDef, ...]] = {
    AccountType.ASSET: (
        GroupDef("bank", "Bank"),
        GroupDef("cash", "Cash"),
        GroupDef("wallet", "Wallet"),
        GroupDef("savings", "Savings"),
        GroupDef("investment", "Investment"),
        GroupDef("receivable", "Receivable"),
    ),
    AccountType.LIABILITY: (
        GroupDef("credit_card", "Credit Card"),
        GroupDef("loan", "Loan"),
        GroupDef("payable", "Payable"),
    ),
    AccountType.EQUITY: (
        GroupDef(OPENING_BALANCES_GROUP, "Opening Balances", reserved=True),
        GroupDef("owner_equity", "Owner Equity"),
    ),
    AccountType.REVENUE: (
        GroupDef("salary", "Salary"),
        GroupDef("interest", "Interest"),
        GroupDef("refund", "Refund"),
        GroupDef("other_income", "Other Income"),
    ),
    AccountType.EXPENSE: (
        GroupDef("groceries", "Groceries"),
        GroupDef("eating_out", "Eating Out"),
        GroupDef("rent", "Rent"),
        GroupDef("utilities", "Utilities"),
        GroupDef("transport", "Transport"),
        GroupDef("shopping", "Shopping"),
        GroupDef("entertainment", "Entertainment"),
        GroupDef("general", "General"),
    ),
}


def groups_for(account_type: Optional[AccountType] = None) -> list[GroupDef]:
    """Return curated groups for one account type, or for all types."""
    if account_type is None:
        return [group for groups in CURATED_GROUPS.values() for group in groups]
    return list(CURATED_GROUPS.get(AccountType(account_type), ()))


def is_reserved(account_type: AccountType, group: str) -> bool:
    """Return True if group is reserved for system accounts of account_type."""
    return any(
        g.code == group.lower() and g.reserved for g in CURATED_GROUPS.get(account_type, ())
    )
