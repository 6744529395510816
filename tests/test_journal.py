"""Tests for JournalService."""

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, UTC
import threading
from uuid import uuid4

import pytest

from ledgerkit.domain.cancellation import CancelToken, OperationCancelledError
from ledgerkit.domain.entities import EntryCategory, EntryDraft, LineDraft, Side
from ledgerkit.domain.errors import (
    AlreadyReversedError,
    ForbiddenError,
    NotFoundError,
    UnbalancedEntryError,
    ValidationError,
)
from ledgerkit.domain.journal import JournalService
from ledgerkit.domain.money import Money


class TestPostEntry:
    """Tests for posting entries."""

    def test_post_assigns_ids_and_persists(self, journal_service, sample_accounts, post, user_id):
        cash, income = sample_accounts["cash"], sample_accounts["income"]
        entry = post((cash, "debit", 1500), (income, "credit", 1500), memo="Salary", category="income")

        assert entry.id is not None
        assert len(entry.lines) == 2
        assert all(line.entry_id == entry.id for line in entry.lines)
        assert entry.category == EntryCategory.INCOME
        assert entry.debit_total() == Money(1500, "USD")

        stored = journal_service.get_entry(user_id, entry.id)
        assert stored.id == entry.id
        assert stored.memo == "Salary"
        assert stored.lines == entry.lines
        assert stored.date == datetime(2024, 1, 15, 12, 0, tzinfo=UTC)

    def test_post_rejects_invalid_without_writing(self, journal_service, sample_accounts, post, user_id):
        cash, income = sample_accounts["cash"], sample_accounts["income"]
        with pytest.raises(UnbalancedEntryError):
            post((cash, "debit", 1500), (income, "credit", 1000))
        assert journal_service.list_entries(user_id).items == []

    def test_post_rejects_oversized_metadata(self, sample_accounts, post):
        cash, income = sample_accounts["cash"], sample_accounts["income"]
        with pytest.raises(ValidationError):
            post((cash, "debit", 1), (income, "credit", 1), metadata={"k": "v" * 1000})

    def test_missing_date_defaults_to_now(self, journal_service, sample_accounts, user_id):
        cash, income = sample_accounts["cash"], sample_accounts["income"]
        draft = EntryDraft(
            user_id=user_id,
            currency="USD",
            lines=[LineDraft(cash.id, "debit", 1), LineDraft(income.id, "credit", 1)],
        )
        before = datetime.now(UTC)
        entry = journal_service.post_entry(draft)
        assert before <= entry.date <= datetime.now(UTC) + timedelta(seconds=1)

    def test_idempotent_post_replays(self, journal_service, sample_accounts, make_draft, user_id):
        """Test that reusing a key returns the first entry without writing again."""
        cash, income = sample_accounts["cash"], sample_accounts["income"]
        draft = make_draft((cash, "debit", 500), (income, "credit", 500))

        first = journal_service.post_entry(draft, idempotency_key="abc")
        second = journal_service.post_entry(draft, idempotency_key="abc")

        assert second.id == first.id
        assert len(journal_service.list_entries(user_id).items) == 1

    def test_idempotency_keys_are_per_user(
        self, journal_service, account_service, sample_accounts, make_draft, other_user_id
    ):
        from ledgerkit.domain.entities import AccountDraft

        cash, income = sample_accounts["cash"], sample_accounts["income"]
        theirs = [
            account_service.create_account(
                AccountDraft(user_id=other_user_id, name=n, currency="USD", type=t, group=g, vendor=v)
            )
            for n, t, g, v in (("Cash", "asset", "cash", "Wallet"), ("Pay", "revenue", "salary", "Boss"))
        ]
        mine = journal_service.post_entry(
            make_draft((cash, "debit", 1), (income, "credit", 1)), idempotency_key="same"
        )
        other = journal_service.post_entry(
            make_draft((theirs[0], "debit", 1), (theirs[1], "credit", 1), user=other_user_id),
            idempotency_key="same",
        )
        assert mine.id != other.id

    def test_idempotency_requires_store(self, db, sample_accounts, make_draft):
        service = JournalService(db, db)
        cash, income = sample_accounts["cash"], sample_accounts["income"]
        with pytest.raises(ValidationError):
            service.post_entry(make_draft((cash, "debit", 1), (income, "credit", 1)), idempotency_key="k")

    def test_cancelled_post_writes_nothing(self, journal_service, sample_accounts, make_draft, user_id):
        cash, income = sample_accounts["cash"], sample_accounts["income"]
        token = CancelToken()
        token.cancel()
        with pytest.raises(OperationCancelledError):
            journal_service.post_entry(make_draft((cash, "debit", 1), (income, "credit", 1)), ctx=token)
        assert journal_service.list_entries(user_id).items == []


class TestGetAndList:
    """Tests for reading entries."""

    def test_list_with_naive_bounds(self, journal_service, sample_accounts, post, user_id):
        cash, income = sample_accounts["cash"], sample_accounts["income"]
        entry = post((cash, "debit", 1), (income, "credit", 1))

        page = journal_service.list_entries(user_id, start=datetime(2024, 1, 1), end=datetime(2024, 1, 15, 12, 0))
        assert [e.id for e in page.items] == [entry.id]
        assert journal_service.list_entries(user_id, end=datetime(2024, 1, 15, 11, 59)).items == []

    def test_get_unknown_entry(self, journal_service, user_id):
        with pytest.raises(NotFoundError):
            journal_service.get_entry(user_id, uuid4())

    def test_get_foreign_entry(self, journal_service, sample_accounts, post, other_user_id):
        cash, income = sample_accounts["cash"], sample_accounts["income"]
        entry = post((cash, "debit", 1), (income, "credit", 1))
        with pytest.raises(ForbiddenError):
            journal_service.get_entry(other_user_id, entry.id)

    def test_list_is_ordered_and_filtered(self, journal_service, sample_accounts, post, user_id):
        cash, income = sample_accounts["cash"], sample_accounts["income"]
        dates = [datetime(2024, 1, d, tzinfo=UTC) for d in (20, 5, 12)]
        for when in dates:
            post((cash, "debit", 1), (income, "credit", 1), date=when)

        all_entries = journal_service.list_entries(user_id).items
        assert [e.date for e in all_entries] == sorted(dates)

        window = journal_service.list_entries(
            user_id, start=datetime(2024, 1, 5, tzinfo=UTC), end=datetime(2024, 1, 12, tzinfo=UTC)
        ).items
        assert [e.date.day for e in window] == [5, 12]

    def test_list_pages_are_complete(self, journal_service, sample_accounts, post, user_id):
        """Test that walking cursors returns every entry exactly once."""
        cash, income = sample_accounts["cash"], sample_accounts["income"]
        same_day = datetime(2024, 2, 1, tzinfo=UTC)
        posted = {post((cash, "debit", n), (income, "credit", n), date=same_day).id for n in range(1, 8)}

        seen = []
        cursor = None
        while True:
            page = journal_service.list_entries(user_id, limit=3, cursor=cursor)
            seen.extend(e.id for e in page.items)
            cursor = page.next_cursor
            if cursor is None:
                break
        assert len(seen) == 7
        assert set(seen) == posted

    def test_list_rejects_bad_cursor(self, journal_service, user_id):
        with pytest.raises(ValidationError):
            journal_service.list_entries(user_id, cursor="garbage!")


class TestReverseEntry:
    """Tests for reversing entries."""

    def test_reverse_flips_sides(self, journal_service, sample_accounts, post, user_id):
        cash, income = sample_accounts["cash"], sample_accounts["income"]
        original = post((cash, "debit", 1500), (income, "credit", 1500), memo="Pay", category="income")

        reversal = journal_service.reverse_entry(user_id, original.id, date=datetime(2024, 2, 1, tzinfo=UTC))

        assert reversal.id != original.id
        assert reversal.memo == f"Reversal of {original.id}: Pay"
        assert reversal.category == EntryCategory.INCOME
        sides = {line.account_id: line.side for line in reversal.lines}
        assert sides == {cash.id: Side.CREDIT, income.id: Side.DEBIT}
        assert all(line.amount == Money(1500, "USD") for line in reversal.lines)
        assert journal_service.get_entry(user_id, original.id).is_reversed is True
        assert journal_service.get_entry(user_id, reversal.id).is_reversed is False

    def test_reverse_memo_without_original_memo(self, journal_service, sample_accounts, post, user_id):
        cash, income = sample_accounts["cash"], sample_accounts["income"]
        original = post((cash, "debit", 1), (income, "credit", 1))
        reversal = journal_service.reverse_entry(user_id, original.id)
        assert reversal.memo == f"Reversal of {original.id}"

    def test_reverse_twice_fails(self, journal_service, sample_accounts, post, user_id):
        cash, income = sample_accounts["cash"], sample_accounts["income"]
        original = post((cash, "debit", 1), (income, "credit", 1))
        journal_service.reverse_entry(user_id, original.id)
        with pytest.raises(AlreadyReversedError):
            journal_service.reverse_entry(user_id, original.id)
        assert len(journal_service.list_entries(user_id).items) == 2

    def test_concurrent_reversals_post_one_mirror(
        self, journal_service, balance_service, sample_accounts, post, user_id
    ):
        """Test that racing reversals of one entry store exactly one mirror entry."""
        cash, income = sample_accounts["cash"], sample_accounts["income"]
        original = post((cash, "debit", 1500), (income, "credit", 1500))
        barrier = threading.Barrier(4, timeout=10)

        def attempt(_):
            barrier.wait()
            try:
                return journal_service.reverse_entry(user_id, original.id)
            except AlreadyReversedError:
                return None

        with ThreadPoolExecutor(max_workers=4) as pool:
            results = list(pool.map(attempt, range(4)))

        assert len([r for r in results if r is not None]) == 1
        assert len(journal_service.list_entries(user_id).items) == 2
        assert balance_service.account_balance(user_id, cash.id).is_zero()

    def test_reverse_foreign_entry(self, journal_service, sample_accounts, post, other_user_id):
        cash, income = sample_accounts["cash"], sample_accounts["income"]
        original = post((cash, "debit", 1), (income, "credit", 1))
        with pytest.raises(ForbiddenError):
            journal_service.reverse_entry(other_user_id, original.id)

    def test_reverse_missing_entry(self, journal_service, user_id):
        with pytest.raises(NotFoundError):
            journal_service.reverse_entry(user_id, uuid4())


class TestReclassify:
    """Tests for reclassifying entries."""

    def test_reclassify_moves_amount(self, journal_service, sample_accounts, post, user_id):
        """Test that the original is reversed and the corrected entry posted."""
        cash, income, groceries = (sample_accounts[k] for k in ("cash", "income", "groceries"))
        original = post((groceries, "debit", 800), (cash, "credit", 800), category="groceries")

        corrected = journal_service.reclassify(
            user_id,
            original.id,
            [LineDraft(income.id, "debit", 800), LineDraft(cash.id, "credit", 800)],
            memo="Refund",
        )

        assert corrected.memo == "Refund"
        assert corrected.category == EntryCategory.GROCERIES
        assert corrected.currency == "USD"
        assert journal_service.get_entry(user_id, original.id).is_reversed is True
        assert len(journal_service.list_entries(user_id).items) == 3

    def test_reclassify_category_override(self, journal_service, sample_accounts, post, user_id):
        cash, income = sample_accounts["cash"], sample_accounts["income"]
        original = post((cash, "debit", 1), (income, "credit", 1))
        corrected = journal_service.reclassify(
            user_id,
            original.id,
            [LineDraft(cash.id, "debit", 2), LineDraft(income.id, "credit", 2)],
            category="business",
        )
        assert corrected.category == EntryCategory.BUSINESS

    def test_invalid_correction_writes_nothing(self, journal_service, sample_accounts, post, user_id):
        cash, income = sample_accounts["cash"], sample_accounts["income"]
        original = post((cash, "debit", 1), (income, "credit", 1))
        with pytest.raises(UnbalancedEntryError):
            journal_service.reclassify(
                user_id,
                original.id,
                [LineDraft(cash.id, "debit", 2), LineDraft(income.id, "credit", 1)],
            )
        assert journal_service.get_entry(user_id, original.id).is_reversed is False
        assert len(journal_service.list_entries(user_id).items) == 1

    def test_reclassify_reversed_entry_fails(self, journal_service, sample_accounts, post, user_id):
        cash, income = sample_accounts["cash"], sample_accounts["income"]
        original = post((cash, "debit", 1), (income, "credit", 1))
        journal_service.reverse_entry(user_id, original.id)
        with pytest.raises(AlreadyReversedError):
            journal_service.reclassify(
                user_id,
                original.id,
                [LineDraft(cash.id, "debit", 1), LineDraft(income.id, "credit", 1)],
            )
