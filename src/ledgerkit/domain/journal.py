"""Journal domain service: posting, reversal and reclassification."""

from collections.abc import Sequence
from datetime import UTC, datetime
import logging
from typing import Optional
from uuid import UUID, uuid4

from ledgerkit.database.base import Database, IdempotencyStore, Repo, Writer
from ledgerkit.domain.cancellation import CancelToken, check
from ledgerkit.domain.entities import (
    EntryCategory,
    EntryDraft,
    JournalEntry,
    JournalLine,
    JournalLines,
    LineDraft,
    Side,
)
from ledgerkit.domain.errors import (
    AlreadyReversedError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
    entry_already_reversed,
    entry_forbidden,
    entry_not_found,
)
from ledgerkit.domain.metadata import Metadata
from ledgerkit.domain.money import Money, normalize_currency
from ledgerkit.domain.pagination import Page, paginate
from ledgerkit.domain.validation import validate_entry
from ledgerkit.utils.date_parser import ensure_utc

logger = logging.getLogger(__name__)

REVERSAL_MEMO_PREFIX = "Reversal of"

EntryPage = Page[JournalEntry]


def reversal_memo(entry: JournalEntry) -> str:
    memo = f"{REVERSAL_MEMO_PREFIX} {entry.id}"
    if entry.memo:
        memo = f"{memo}: {entry.memo}"
    return memo


class JournalService:
    """Service for posting and correcting journal entries."""

    def __init__(
        self,
        repo: Repo,
        writer: Writer,
        idempotency: Optional[IdempotencyStore] = None,
    ):
        """Initialize journal service.

        Args:
            repo: Read-side storage
            writer: Write-side storage
            idempotency: Optional store for single-entry idempotency keys
        """
        self.repo = repo
        self.writer = writer
        self.idempotency = idempotency

    @classmethod
    def from_database(cls, db: Database) -> "JournalService":
        return cls(db, db, db)

    def validate_entry(self, draft: EntryDraft, ctx: Optional[CancelToken] = None) -> None:
        """Run the entry validation checks plus the metadata limits.

        Raises:
            ValidationError: Or one of its specific subclasses
            ForbiddenError: If an account belongs to another user
        """
        validate_entry(self.repo, draft, ctx)
        draft.metadata.validate()

    def build_entry(self, draft: EntryDraft) -> JournalEntry:
        """Materialize a validated draft with fresh entry and line ids."""
        entry_id = uuid4()
        currency = normalize_currency(draft.currency)
        lines = JournalLines(
            JournalLine(
                id=uuid4(),
                entry_id=entry_id,
                account_id=line.account_id,
                side=Side(line.side),
                amount=Money(line.amount_minor, currency),
            )
            for line in draft.lines
        )
        return JournalEntry(
            id=entry_id,
            user_id=draft.user_id,
            date=draft.date or datetime.now(UTC),
            currency=currency,
            lines=lines,
            memo=draft.memo or "",
            category=draft.category,
            metadata=draft.metadata,
        )

    def create_entry(self, draft: EntryDraft, ctx: Optional[CancelToken] = None) -> JournalEntry:
        """Persist an entry that has already been validated.

        The draft is not validated again; callers run :meth:`validate_entry`
        first so they can report failures precisely.

        Returns:
            The stored entry
        """
        entry = self.build_entry(draft)
        check(ctx)
        saved = self.writer.create_entry(entry)
        logger.info(
            "Posted journal entry %s for user %s (%d lines, %s)",
            saved.id,
            saved.user_id,
            len(saved.lines),
            saved.currency,
        )
        return saved

    def post_entry(
        self,
        draft: EntryDraft,
        idempotency_key: Optional[str] = None,
        ctx: Optional[CancelToken] = None,
    ) -> JournalEntry:
        """Validate and create an entry, optionally under an idempotency key.

        When the key was already used by the same user, the entry stored
        under it is returned and nothing new is written.

        Args:
            draft: Entry to post
            idempotency_key: Optional caller-supplied retry key
            ctx: Optional cancellation token

        Returns:
            The created (or previously created) entry
        """
        self.validate_entry(draft, ctx)
        if not idempotency_key:
            return self.create_entry(draft, ctx)
        if self.idempotency is None:
            raise ValidationError("idempotency keys are not supported by this store")

        with self.idempotency.key_lock(f"entry:{draft.user_id}", idempotency_key):
            check(ctx)
            existing_id = self.idempotency.get_entry_id(draft.user_id, idempotency_key)
            if existing_id is not None:
                check(ctx)
                existing = self.repo.get_entry(existing_id)
                if existing is not None:
                    logger.debug("Replaying entry %s for key %s", existing.id, idempotency_key)
                    return existing
            saved = self.create_entry(draft, ctx)
            self.idempotency.save_entry_id(draft.user_id, idempotency_key, saved.id)
            return saved

    def get_entry(
        self, user_id: UUID, entry_id: UUID, ctx: Optional[CancelToken] = None
    ) -> JournalEntry:
        """Get a user's entry.

        Raises:
            NotFoundError: If the entry does not exist
            ForbiddenError: If the entry belongs to another user
        """
        if user_id is None or entry_id is None:
            raise ValidationError("user_id and entry_id are required")
        check(ctx)
        entry = self.repo.get_entry(entry_id)
        if entry is None:
            raise NotFoundError(entry_not_found(entry_id))
        if entry.user_id != user_id:
            raise ForbiddenError(entry_forbidden(entry_id))
        return entry

    def list_entries(
        self,
        user_id: UUID,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: Optional[int] = None,
        cursor: Optional[str] = None,
        ctx: Optional[CancelToken] = None,
    ) -> EntryPage:
        """List a user's entries in ascending (date, id) order, one page at a time.

        Args:
            user_id: Owner
            start: Optional inclusive lower date bound
            end: Optional inclusive upper date bound
            limit: Page size (default 50, at most 200)
            cursor: Cursor returned with the previous page

        Returns:
            Page of entries; next_cursor is None on the last page
        """
        if user_id is None:
            raise ValidationError("user_id is required")
        check(ctx)
        start = ensure_utc(start) if start is not None else None
        end = ensure_utc(end) if end is not None else None
        entries = sorted(self.repo.list_entries(user_id), key=lambda e: e.sort_key())
        window = [
            e
            for e in entries
            if (start is None or e.date >= start) and (end is None or e.date <= end)
        ]
        _, page = paginate(window, key=lambda e: (e.date, e.id), limit=limit, cursor=cursor)
        return page

    def reverse_entry(
        self,
        user_id: UUID,
        entry_id: UUID,
        date: Optional[datetime] = None,
        ctx: Optional[CancelToken] = None,
    ) -> JournalEntry:
        """Post the mirror image of an entry and flag the original as reversed.

        Every line keeps its account and amount with the side flipped. The
        memo references the original id. The mirror entry and the flag are
        written in one transaction, and the flag only flips from unset to
        set, so of two concurrent reversals exactly one is stored.

        Args:
            user_id: Owner of the entry
            entry_id: Entry to reverse
            date: Date of the reversal (defaults to now)
            ctx: Optional cancellation token

        Returns:
            The reversing entry

        Raises:
            NotFoundError: If the entry does not exist
            ForbiddenError: If the entry belongs to another user
            AlreadyReversedError: If the entry was already reversed
        """
        original = self.get_entry(user_id, entry_id, ctx)
        if original.is_reversed:
            raise AlreadyReversedError(entry_already_reversed(entry_id))

        reversal = self.build_entry(self._reversal_draft(original, date or datetime.now(UTC)))
        check(ctx)
        with self.writer.begin() as tx:
            tx.mark_entry_reversed(original.id)
            tx.create_entry(reversal)
        logger.info("Reversed journal entry %s with %s", original.id, reversal.id)
        return reversal

    def reclassify(
        self,
        user_id: UUID,
        entry_id: UUID,
        lines: Sequence[LineDraft],
        date: Optional[datetime] = None,
        memo: str = "",
        category: Optional[EntryCategory | str] = None,
        metadata: Optional[Metadata | dict[str, str]] = None,
        ctx: Optional[CancelToken] = None,
    ) -> JournalEntry:
        """Replace an entry by reversing it and posting corrected lines.

        The corrected entry keeps the original currency. It is validated
        before anything is written, so a rejected correction leaves the
        original untouched. The reversal, the flag and the corrected entry
        commit together.

        Returns:
            The corrected entry

        Raises:
            AlreadyReversedError: If the original was already reversed
        """
        original = self.get_entry(user_id, entry_id, ctx)
        if original.is_reversed:
            raise AlreadyReversedError(entry_already_reversed(entry_id))

        when = date or datetime.now(UTC)
        corrected = EntryDraft(
            user_id=user_id,
            currency=original.currency,
            lines=lines,
            date=when,
            memo=memo,
            category=category if category is not None else original.category,
            metadata=metadata or {},
        )
        self.validate_entry(corrected, ctx)

        reversal = self.build_entry(self._reversal_draft(original, when))
        saved = self.build_entry(corrected)
        check(ctx)
        with self.writer.begin() as tx:
            tx.mark_entry_reversed(original.id)
            tx.create_entry(reversal)
            tx.create_entry(saved)
        logger.info("Reversed journal entry %s with %s", original.id, reversal.id)
        logger.info("Reclassified journal entry %s as %s", entry_id, saved.id)
        return saved

    def _reversal_draft(self, original: JournalEntry, date: datetime) -> EntryDraft:
        return EntryDraft(
            user_id=original.user_id,
            currency=original.currency,
            lines=[
                LineDraft(
                    account_id=line.account_id,
                    side=line.side.flipped(),
                    amount_minor=line.amount.minor_units,
                )
                for line in original.lines.sorted()
            ],
            date=date,
            memo=reversal_memo(original),
            category=original.category,
            metadata=original.metadata,
        )
