"""JSON-ready representations of domain objects."""

from typing import Any

from ledgerkit.domain.balance import LedgerItem, TrialBalanceGroup
from ledgerkit.domain.entities import Account, JournalEntry, JournalLine
from ledgerkit.domain.money import Money


def money_fields(amount: Money, prefix: str = "amount") -> dict[str, Any]:
    return {f"{prefix}_minor": amount.minor_units, prefix: str(amount)}


def account_to_dict(account: Account) -> dict[str, Any]:
    return {
        "id": str(account.id),
        "user_id": str(account.user_id),
        "name": account.name,
        "currency": account.currency,
        "type": account.type.value,
        "group": account.group,
        "vendor": account.vendor,
        "path": account.path,
        "metadata": account.metadata.to_dict(),
        "system": account.system,
        "active": account.active,
    }


def line_to_dict(line: JournalLine) -> dict[str, Any]:
    return {
        "id": str(line.id),
        "account_id": str(line.account_id),
        "side": line.side.value,
        **money_fields(line.amount),
    }


def entry_to_dict(entry: JournalEntry) -> dict[str, Any]:
    """Render an entry with its lines sorted by line id."""
    return {
        "id": str(entry.id),
        "user_id": str(entry.user_id),
        "date": entry.date.isoformat(),
        "currency": entry.currency,
        "memo": entry.memo,
        "category": entry.category.value,
        "metadata": entry.metadata.to_dict(),
        "is_reversed": entry.is_reversed,
        "lines": [line_to_dict(line) for line in entry.lines.sorted()],
    }


def ledger_item_to_dict(item: LedgerItem) -> dict[str, Any]:
    return {
        "entry_id": str(item.entry_id),
        "line_id": str(item.line_id),
        "date": item.date.isoformat(),
        "memo": item.memo,
        "category": item.category.value,
        "side": item.side.value,
        **money_fields(item.amount),
        **money_fields(item.running_balance, "running_balance"),
    }


def trial_balance_group_to_dict(group: TrialBalanceGroup) -> dict[str, Any]:
    """Render one currency group of a trial balance report."""
    return {
        "currency": group.currency,
        "accounts": [
            {
                "account_id": str(row.account.id),
                "name": row.account.name,
                "path": row.account.path,
                "type": row.account.type.value,
                **money_fields(row.debit, "debit"),
                **money_fields(row.credit, "credit"),
                **money_fields(row.balance, "balance"),
            }
            for row in group.rows
        ],
        **money_fields(group.total_debit, "total_debit"),
        **money_fields(group.total_credit, "total_credit"),
    }
