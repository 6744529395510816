"""Batch domain service: all-or-nothing creates with idempotent replay.

A batch either commits every item in one transaction (status 201, body
``{"accounts": [...]}`` or ``{"entries": [...]}``) or commits nothing and
reports one record per failing item (status 422, body ``{"errors": [...]}``).
The response is stored under the caller's idempotency key together with a
hash of the normalized request, so a retry with the same body gets the same
bytes back without re-running anything.
"""

from collections.abc import Callable, Sequence
from dataclasses import dataclass, replace
import json
import logging
from typing import Any, Optional
from uuid import UUID

from ledgerkit.database.base import Database, IdempotencyStore, Repo, StoredResponse, Writer
from ledgerkit.domain.account import AccountService, account_from_draft, opening_balance_account
from ledgerkit.domain.cancellation import CancelToken, check
from ledgerkit.domain.entities import AccountDraft, EntryDraft, OPENING_BALANCES_PATH
from ledgerkit.domain.errors import (
    BatchTooLargeError,
    ConflictError,
    DomainError,
    IdempotencyMismatchError,
    ValidationError,
    duplicate_account_path,
)
from ledgerkit.domain.journal import JournalService
from ledgerkit.domain.serialization import account_to_dict, entry_to_dict
from ledgerkit.utils.hashing import canonicalize_json, hash_payload

logger = logging.getLogger(__name__)

ACCOUNTS_SCOPE = "accounts:batch"
ENTRIES_SCOPE = "entries:batch"
MAX_BATCH_ACCOUNTS = 100
MAX_BATCH_ENTRIES = 500

STATUS_CREATED = 201
STATUS_UNPROCESSABLE = 422


@dataclass(frozen=True)
class ItemError:
    """Failure of one batch item."""

    index: int
    code: str
    error: str

    def to_dict(self) -> dict[str, Any]:
        return {"index": self.index, "code": self.code, "error": self.error}


@dataclass(frozen=True)
class BatchResult:
    """Status code and serialized body of a batch call."""

    status: int
    payload: str

    @property
    def ok(self) -> bool:
        return self.status == STATUS_CREATED

    @property
    def data(self) -> dict[str, Any]:
        return json.loads(self.payload)


def _value(obj: Any) -> Any:
    return getattr(obj, "value", obj)


def normalize_account_batch(user_id: UUID, drafts: Sequence[AccountDraft]) -> dict[str, Any]:
    """Return the hashable form of an account batch request."""
    return {
        "user_id": str(user_id),
        "accounts": [
            {
                "user_id": str(user_id),
                "name": d.name,
                "currency": d.currency,
                "group": d.group,
                "vendor": d.vendor,
                "type": _value(d.type),
                "metadata": d.metadata.to_dict(),
            }
            for d in drafts
        ],
    }


def normalize_entry_batch(drafts: Sequence[EntryDraft]) -> dict[str, Any]:
    """Return the hashable form of an entry batch request."""
    return {
        "entries": [
            {
                "user_id": str(d.user_id) if d.user_id is not None else None,
                "date": d.date.isoformat() if d.date is not None else None,
                "currency": d.currency,
                "memo": d.memo,
                "category": _value(d.category),
                "metadata": d.metadata.to_dict(),
                "lines": [
                    {
                        "account_id": str(line.account_id) if line.account_id is not None else None,
                        "side": _value(line.side),
                        "amount_minor": line.amount_minor,
                    }
                    for line in d.lines
                ],
            }
            for d in drafts
        ],
    }


def _check_request(idempotency_key: Optional[str], count: int, cap: int, noun: str) -> str:
    key = (idempotency_key or "").strip()
    if not key:
        raise ValidationError("idempotency key is required for batch requests")
    if count > cap:
        raise BatchTooLargeError(f"too many {noun}: {count} > {cap}")
    if count == 0:
        raise ValidationError(f"{noun} is required")
    return key


def _unprocessable(errors: list[ItemError]) -> tuple[int, dict[str, Any]]:
    return STATUS_UNPROCESSABLE, {"errors": [e.to_dict() for e in sorted(errors, key=lambda e: e.index)]}


def rejected(errors: Sequence[ItemError]) -> BatchResult:
    """Build a 422 result for items that could not be read; nothing is cached."""
    status, body = _unprocessable(list(errors))
    return BatchResult(status=status, payload=canonicalize_json(body))


class BatchService:
    """Service for atomic batch creation of accounts and journal entries."""

    def __init__(self, repo: Repo, writer: Writer, idempotency: IdempotencyStore):
        """Initialize batch service.

        Args:
            repo: Read-side storage
            writer: Write-side storage providing transactions
            idempotency: Store for cached batch responses
        """
        self.repo = repo
        self.writer = writer
        self.idempotency = idempotency
        self.accounts = AccountService(repo, writer)
        self.journal = JournalService(repo, writer)

    @classmethod
    def from_database(cls, db: Database) -> "BatchService":
        return cls(db, db, db)

    def create_accounts(
        self,
        user_id: UUID,
        drafts: Sequence[AccountDraft],
        idempotency_key: Optional[str],
        ctx: Optional[CancelToken] = None,
    ) -> BatchResult:
        """Create up to 100 accounts for one user, all or nothing.

        Opening balances accounts for currencies the user does not have yet
        are created in the same transaction.

        Args:
            user_id: Owner of every account in the batch
            drafts: Accounts to create
            idempotency_key: Required retry key
            ctx: Optional cancellation token

        Returns:
            BatchResult with status 201 or 422

        Raises:
            ValidationError: If the key or items are missing
            BatchTooLargeError: If more than 100 accounts are submitted
            IdempotencyMismatchError: If the key was used with another body
        """
        drafts = list(drafts)
        key = _check_request(idempotency_key, len(drafts), MAX_BATCH_ACCOUNTS, "accounts")
        if user_id is None:
            raise ValidationError("user_id is required")
        drafts = [replace(d, user_id=user_id) for d in drafts]
        body_hash = hash_payload(normalize_account_batch(user_id, drafts))
        return self._execute_once(
            ACCOUNTS_SCOPE, key, body_hash, lambda: self._apply_accounts(user_id, drafts, ctx), ctx
        )

    def create_entries(
        self,
        drafts: Sequence[EntryDraft],
        idempotency_key: Optional[str],
        ctx: Optional[CancelToken] = None,
    ) -> BatchResult:
        """Post up to 500 journal entries, all or nothing.

        Args:
            drafts: Entries to post; each carries its own user id
            idempotency_key: Required retry key
            ctx: Optional cancellation token

        Returns:
            BatchResult with status 201 or 422

        Raises:
            ValidationError: If the key or items are missing
            BatchTooLargeError: If more than 500 entries are submitted
            IdempotencyMismatchError: If the key was used with another body
        """
        drafts = list(drafts)
        key = _check_request(idempotency_key, len(drafts), MAX_BATCH_ENTRIES, "entries")
        body_hash = hash_payload(normalize_entry_batch(drafts))
        return self._execute_once(
            ENTRIES_SCOPE, key, body_hash, lambda: self._apply_entries(drafts, ctx), ctx
        )

    def _execute_once(
        self,
        scope: str,
        key: str,
        body_hash: str,
        execute: Callable[[], tuple[int, dict[str, Any]]],
        ctx: Optional[CancelToken],
    ) -> BatchResult:
        with self.idempotency.key_lock(scope, key):
            check(ctx)
            stored = self.idempotency.get_response(scope, key)
            if stored is not None:
                if stored.body_hash != body_hash:
                    logger.debug("Idempotency key %s reused with a different body", key)
                    raise IdempotencyMismatchError(f"idempotency key '{key}' was used with a different request")
                logger.debug("Replaying %s response for key %s", scope, key)
                return BatchResult(status=stored.status, payload=stored.payload)

            status, body = execute()
            response = StoredResponse(body_hash=body_hash, status=status, payload=canonicalize_json(body))
            saved = self.idempotency.save_response(scope, key, response)
            return BatchResult(status=saved.status, payload=saved.payload)

    def _apply_accounts(
        self, user_id: UUID, drafts: list[AccountDraft], ctx: Optional[CancelToken]
    ) -> tuple[int, dict[str, Any]]:
        errors = []
        for i, draft in enumerate(drafts):
            check(ctx)
            try:
                self.accounts.validate_create(draft)
            except DomainError as e:
                errors.append(ItemError(i, e.code, str(e)))
        if errors:
            logger.debug("Rejected account batch: %d invalid items", len(errors))
            return _unprocessable(errors)

        check(ctx)
        existing = self.repo.list_accounts(user_id)
        anchored = {a.currency for a in existing if a.path == OPENING_BALANCES_PATH}
        created = [account_from_draft(d) for d in drafts]
        anchors = []
        for currency in dict.fromkeys(a.currency for a in created):
            if currency not in anchored:
                anchors.append(opening_balance_account(user_id, currency))

        taken = {(a.path, a.currency) for a in existing + anchors}
        first_index: dict[tuple[str, str], int] = {}
        conflicts: dict[int, str] = {}
        for i, account in enumerate(created):
            slot = (account.path, account.currency)
            message = duplicate_account_path(account.path, account.currency)
            if slot in first_index:
                conflicts.setdefault(first_index[slot], message)
                conflicts.setdefault(i, message)
                continue
            first_index[slot] = i
            if slot in taken:
                conflicts.setdefault(i, message)
        if conflicts:
            logger.debug("Rejected account batch: %d conflicting items", len(conflicts))
            return _unprocessable(
                [ItemError(i, ConflictError.code, message) for i, message in conflicts.items()]
            )

        check(ctx)
        with self.writer.begin() as tx:
            for account in anchors:
                tx.create_account(account)
            for account in created:
                check(ctx)
                tx.create_account(account)
        logger.info(
            "Committed account batch for user %s: %d accounts (%d opening balances)",
            user_id,
            len(created),
            len(anchors),
        )
        return STATUS_CREATED, {"accounts": [account_to_dict(a) for a in created]}

    def _apply_entries(
        self, drafts: list[EntryDraft], ctx: Optional[CancelToken]
    ) -> tuple[int, dict[str, Any]]:
        errors = []
        for i, draft in enumerate(drafts):
            check(ctx)
            try:
                self.journal.validate_entry(draft, ctx)
            except DomainError as e:
                errors.append(ItemError(i, e.code, str(e)))
        if errors:
            logger.debug("Rejected entry batch: %d invalid items", len(errors))
            return _unprocessable(errors)

        entries = [self.journal.build_entry(d) for d in drafts]
        check(ctx)
        with self.writer.begin() as tx:
            for entry in entries:
                check(ctx)
                tx.create_entry(entry)
        logger.info("Committed entry batch: %d entries", len(entries))
        return STATUS_CREATED, {"entries": [entry_to_dict(e) for e in entries]}
