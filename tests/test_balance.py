"""Tests for BalanceService."""

from datetime import datetime, UTC
from uuid import uuid4

import pytest

from ledgerkit.domain.entities import AccountDraft, Side
from ledgerkit.domain.errors import ForbiddenError, NotFoundError
from ledgerkit.domain.money import Money


def day(n, month=1):
    return datetime(2024, month, n, 12, 0, tzinfo=UTC)


class TestAccountBalance:
    """Tests for single-account balances."""

    def test_salary_scenario(self, balance_service, sample_accounts, post, user_id):
        """Test debit-positive, credit-negative balances after one posting."""
        cash, income = sample_accounts["cash"], sample_accounts["income"]
        post((cash, "debit", 1500), (income, "credit", 1500))

        assert balance_service.account_balance(user_id, cash.id) == Money(1500, "USD")
        assert balance_service.account_balance(user_id, income.id) == Money(-1500, "USD")
        assert str(balance_service.account_balance(user_id, income.id)) == "-15.00"

    def test_reversal_restores_zero(self, balance_service, journal_service, sample_accounts, post, user_id):
        cash, income = sample_accounts["cash"], sample_accounts["income"]
        entry = post((cash, "debit", 1500), (income, "credit", 1500))
        journal_service.reverse_entry(user_id, entry.id, date=day(20))

        assert balance_service.account_balance(user_id, cash.id).is_zero()
        assert balance_service.account_balance(user_id, income.id).is_zero()

    def test_as_of(self, balance_service, sample_accounts, post, user_id):
        cash, income = sample_accounts["cash"], sample_accounts["income"]
        post((cash, "debit", 100), (income, "credit", 100), date=day(1))
        post((cash, "debit", 200), (income, "credit", 200), date=day(10))

        assert balance_service.account_balance(user_id, cash.id, as_of=day(5)) == Money(100, "USD")
        assert balance_service.account_balance(user_id, cash.id, as_of=day(10)) == Money(300, "USD")
        assert balance_service.account_balance(user_id, cash.id, as_of=datetime(2023, 12, 1, tzinfo=UTC)).is_zero()

    def test_naive_bounds_are_taken_as_utc(self, balance_service, sample_accounts, post, user_id):
        """Test that bounds without a timezone compare as UTC in every query."""
        cash, income = sample_accounts["cash"], sample_accounts["income"]
        post((cash, "debit", 1500), (income, "credit", 1500))

        year_end = datetime(2024, 12, 31)
        assert balance_service.account_balance(user_id, cash.id, as_of=year_end) == Money(1500, "USD")
        assert balance_service.account_balance(user_id, cash.id, as_of=datetime(2024, 1, 15, 11, 0)).is_zero()
        assert balance_service.trial_balance(user_id, as_of=year_end) == {
            cash.id: Money(1500, "USD"),
            income.id: Money(-1500, "USD"),
        }
        assert len(balance_service.trial_balance_report(user_id, as_of=year_end)) == 1

        page = balance_service.ledger(user_id, cash.id, start=datetime(2024, 1, 1), end=year_end)
        assert [item.running_balance for item in page.items] == [Money(1500, "USD")]
        assert balance_service.ledger(user_id, cash.id, start=datetime(2024, 2, 1)).items == []

    def test_unused_account_is_zero(self, balance_service, sample_accounts, user_id):
        balance = balance_service.account_balance(user_id, sample_accounts["groceries"].id)
        assert balance == Money.zero("USD")

    def test_missing_account(self, balance_service, user_id):
        with pytest.raises(NotFoundError):
            balance_service.account_balance(user_id, uuid4())

    def test_foreign_account(self, balance_service, sample_accounts, other_user_id):
        with pytest.raises(ForbiddenError):
            balance_service.account_balance(other_user_id, sample_accounts["cash"].id)


class TestTrialBalance:
    """Tests for the trial balance."""

    def test_omits_zero_balances(self, balance_service, sample_accounts, post, user_id):
        cash, income = sample_accounts["cash"], sample_accounts["income"]
        post((cash, "debit", 1500), (income, "credit", 1500))

        balances = balance_service.trial_balance(user_id)

        assert balances == {cash.id: Money(1500, "USD"), income.id: Money(-1500, "USD")}

    def test_include_zero_lists_every_account(self, balance_service, account_service, sample_accounts, post, user_id):
        cash, income = sample_accounts["cash"], sample_accounts["income"]
        post((cash, "debit", 1500), (income, "credit", 1500))

        balances = balance_service.trial_balance(user_id, include_zero=True)

        every_account = {a.id for a in account_service.list_accounts(user_id)}
        assert set(balances) == every_account
        assert balances[sample_accounts["groceries"].id].is_zero()

    def test_sums_to_zero_per_currency(self, balance_service, account_service, sample_accounts, post, user_id):
        """Test that balances net to zero within each currency."""
        cash, income, groceries = (sample_accounts[k] for k in ("cash", "income", "groceries"))
        euro_cash, euro_food = (
            account_service.create_account(
                AccountDraft(user_id=user_id, name=n, currency="EUR", type=t, group=g, vendor=v)
            )
            for n, t, g, v in (("Purse", "asset", "cash", "Purse"), ("Food", "expense", "groceries", "Lidl"))
        )
        post((cash, "debit", 5000), (income, "credit", 5000))
        post((groceries, "debit", 1250), (cash, "credit", 1250))
        post((euro_food, "debit", 300), (euro_cash, "credit", 300), currency="EUR")

        totals = {}
        for amount in balance_service.trial_balance(user_id).values():
            totals[amount.currency] = totals.get(amount.currency, Money.zero(amount.currency)) + amount
        assert all(total.is_zero() for total in totals.values())
        assert set(totals) == {"USD", "EUR"}

    def test_empty_user(self, balance_service, user_id):
        assert balance_service.trial_balance(user_id) == {}
        assert balance_service.trial_balance_report(user_id) == []

    def test_report_groups_and_totals(self, balance_service, sample_accounts, post, user_id):
        cash, income, groceries = (sample_accounts[k] for k in ("cash", "income", "groceries"))
        post((cash, "debit", 5000), (income, "credit", 5000), date=day(1))
        post((groceries, "debit", 1250), (cash, "credit", 1250), date=day(2))

        groups = balance_service.trial_balance_report(user_id)

        assert len(groups) == 1
        group = groups[0]
        assert group.currency == "USD"
        assert group.total_debit == group.total_credit == Money(6250, "USD")
        paths = [row.account.path for row in group.rows]
        assert paths == sorted(paths)
        cash_row = next(row for row in group.rows if row.account.id == cash.id)
        assert cash_row.debit == Money(5000, "USD")
        assert cash_row.credit == Money(1250, "USD")
        assert cash_row.balance == Money(3750, "USD")

    def test_report_as_of(self, balance_service, sample_accounts, post, user_id):
        cash, income, groceries = (sample_accounts[k] for k in ("cash", "income", "groceries"))
        post((cash, "debit", 5000), (income, "credit", 5000), date=day(1))
        post((groceries, "debit", 1250), (cash, "credit", 1250), date=day(2))

        groups = balance_service.trial_balance_report(user_id, as_of=day(1))
        assert {row.account.id for row in groups[0].rows} == {cash.id, income.id}


class TestLedger:
    """Tests for account ledgers."""

    def test_running_balance_matches_account_balance(self, balance_service, sample_accounts, post, user_id):
        cash, income, groceries = (sample_accounts[k] for k in ("cash", "income", "groceries"))
        post((cash, "debit", 5000), (income, "credit", 5000), date=day(1))
        post((groceries, "debit", 1250), (cash, "credit", 1250), date=day(3))
        post((groceries, "debit", 250), (cash, "credit", 250), date=day(2))

        page = balance_service.ledger(user_id, cash.id)

        assert [item.date for item in page.items] == [day(1), day(2), day(3)]
        assert [item.running_balance.minor_units for item in page.items] == [5000, 4750, 3500]
        assert [item.side for item in page.items] == [Side.DEBIT, Side.CREDIT, Side.CREDIT]
        assert page.items[-1].running_balance == balance_service.account_balance(user_id, cash.id)
        assert page.next_cursor is None
        assert page.account.id == cash.id

    def test_start_carries_opening_balance(self, balance_service, sample_accounts, post, user_id):
        """Test that lines before start feed the running balance but are not listed."""
        cash, income = sample_accounts["cash"], sample_accounts["income"]
        post((cash, "debit", 1000), (income, "credit", 1000), date=day(1))
        post((cash, "debit", 200), (income, "credit", 200), date=day(5))

        page = balance_service.ledger(user_id, cash.id, start=day(2))

        assert len(page.items) == 1
        assert page.items[0].amount == Money(200, "USD")
        assert page.items[0].running_balance == Money(1200, "USD")

    def test_end_bound(self, balance_service, sample_accounts, post, user_id):
        cash, income = sample_accounts["cash"], sample_accounts["income"]
        post((cash, "debit", 1000), (income, "credit", 1000), date=day(1))
        post((cash, "debit", 200), (income, "credit", 200), date=day(5))

        page = balance_service.ledger(user_id, cash.id, end=day(2))
        assert [item.amount.minor_units for item in page.items] == [1000]

    def test_pages_continue_running_balance(self, balance_service, sample_accounts, post, user_id):
        cash, income = sample_accounts["cash"], sample_accounts["income"]
        for n in range(1, 6):
            post((cash, "debit", n * 100), (income, "credit", n * 100), date=day(n))

        first = balance_service.ledger(user_id, cash.id, limit=2)
        second = balance_service.ledger(user_id, cash.id, limit=2, cursor=first.next_cursor)
        third = balance_service.ledger(user_id, cash.id, limit=2, cursor=second.next_cursor)

        balances = [item.running_balance.minor_units for page in (first, second, third) for item in page.items]
        assert balances == [100, 300, 600, 1000, 1500]
        assert third.next_cursor is None

    def test_ledger_memo_and_category(self, balance_service, sample_accounts, post, user_id):
        cash, income = sample_accounts["cash"], sample_accounts["income"]
        entry = post((cash, "debit", 1), (income, "credit", 1), memo="Pay", category="income")

        item = balance_service.ledger(user_id, income.id).items[0]
        assert item.entry_id == entry.id
        assert item.memo == "Pay"
        assert item.category.value == "income"
        assert item.running_balance == Money(-1, "USD")

    def test_foreign_ledger(self, balance_service, sample_accounts, other_user_id):
        with pytest.raises(ForbiddenError):
            balance_service.ledger(other_user_id, sample_accounts["cash"].id)
