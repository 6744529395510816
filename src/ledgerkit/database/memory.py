"""In-memory database implementation.

Keeps everything in dictionaries behind a single reader-writer lock per
store instance. Used by the tests and for scratch sessions; it honours the
same contracts as the SQLAlchemy backend, including (path, currency)
uniqueness and all-or-nothing batch commits.
"""

import bisect
from contextlib import contextmanager
import dataclasses
import threading
from typing import Iterable, Iterator, Optional
from uuid import UUID

from ledgerkit.database.base import Database, StoredResponse, WriterTransaction
from ledgerkit.domain.entities import Account, JournalEntry
from ledgerkit.domain.errors import (
    AlreadyReversedError,
    ConflictError,
    NotFoundError,
    account_not_found,
    duplicate_account_path,
    entry_already_reversed,
    entry_not_found,
)


class ReadWriteLock:
    """Many concurrent readers or one writer."""

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._readers:
                self._cond.wait()
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class InMemoryTransaction(WriterTransaction):
    """Buffers creates and applies them under one write lock on commit."""

    def __init__(self, db: "InMemoryDatabase"):
        self._db = db
        self._accounts: list[Account] = []
        self._entries: list[JournalEntry] = []
        self._reversals: list[UUID] = []
        self._closed = False

    def create_account(self, account: Account) -> Account:
        self._ensure_open()
        self._accounts.append(account)
        return account

    def create_entry(self, entry: JournalEntry) -> JournalEntry:
        self._ensure_open()
        self._entries.append(entry)
        return entry

    def mark_entry_reversed(self, entry_id: UUID) -> None:
        self._ensure_open()
        self._reversals.append(entry_id)

    def commit(self) -> None:
        self._ensure_open()
        self._closed = True
        with self._db._lock.write():
            staged: list[Account] = []
            for account in self._accounts:
                self._db._check_unique_locked(account, extra=staged)
                staged.append(account)
            for entry_id in self._reversals:
                self._db._check_reversible_locked(entry_id)
            for account in self._accounts:
                self._db._accounts[account.id] = account
            for entry in self._entries:
                self._db._insert_entry_locked(entry)
            for entry_id in self._reversals:
                self._db._flag_reversed_locked(entry_id)

    def rollback(self) -> None:
        self._closed = True
        self._accounts.clear()
        self._entries.clear()
        self._reversals.clear()

    def _ensure_open(self) -> None:
        if self._closed:
            raise RuntimeError("Transaction already closed")


class InMemoryDatabase(Database):
    """Dictionary-backed implementation of the Database interface."""

    def __init__(self):
        self._lock = ReadWriteLock()
        self._accounts: dict[UUID, Account] = {}
        self._entries: dict[UUID, JournalEntry] = {}
        # Per-user entry ids sorted by (date, id)
        self._entry_index: dict[UUID, list[tuple]] = {}
        self._responses: dict[tuple[str, str], StoredResponse] = {}
        self._entry_keys: dict[tuple[UUID, str], UUID] = {}
        self._key_locks: dict[tuple[str, str], threading.Lock] = {}
        self._key_locks_guard = threading.Lock()

    def connect(self) -> None:
        pass

    def disconnect(self) -> None:
        pass

    def initialize_schema(self) -> None:
        pass

    # Account operations
    def accounts_by_ids(self, user_id: UUID, ids: Iterable[UUID]) -> dict[UUID, Account]:
        with self._lock.read():
            found = {}
            for account_id in set(ids):
                account = self._accounts.get(account_id)
                if account is not None and account.user_id == user_id:
                    found[account_id] = account
            return found

    def list_accounts(self, user_id: UUID) -> list[Account]:
        with self._lock.read():
            return [a for a in self._accounts.values() if a.user_id == user_id]

    def get_account(self, account_id: UUID) -> Optional[Account]:
        with self._lock.read():
            return self._accounts.get(account_id)

    def create_account(self, account: Account) -> Account:
        with self._lock.write():
            self._check_unique_locked(account)
            self._accounts[account.id] = account
            return account

    def update_account(self, account: Account) -> Account:
        with self._lock.write():
            if account.id not in self._accounts:
                raise NotFoundError(account_not_found(account.id))
            self._check_unique_locked(account)
            self._accounts[account.id] = account
            return account

    # Journal entry operations
    def list_entries(self, user_id: UUID) -> list[JournalEntry]:
        with self._lock.read():
            return [self._entries[key[-1]] for key in self._entry_index.get(user_id, [])]

    def get_entry(self, entry_id: UUID) -> Optional[JournalEntry]:
        with self._lock.read():
            return self._entries.get(entry_id)

    def create_entry(self, entry: JournalEntry) -> JournalEntry:
        with self._lock.write():
            self._insert_entry_locked(entry)
            return entry

    def mark_entry_reversed(self, entry_id: UUID) -> None:
        with self._lock.write():
            self._check_reversible_locked(entry_id)
            self._flag_reversed_locked(entry_id)

    def begin(self) -> InMemoryTransaction:
        return InMemoryTransaction(self)

    # Idempotency operations
    def key_lock(self, scope: str, key: str) -> threading.Lock:
        with self._key_locks_guard:
            return self._key_locks.setdefault((scope, key), threading.Lock())

    def get_response(self, scope: str, key: str) -> Optional[StoredResponse]:
        with self._lock.read():
            return self._responses.get((scope, key))

    def save_response(self, scope: str, key: str, response: StoredResponse) -> StoredResponse:
        with self._lock.write():
            return self._responses.setdefault((scope, key), response)

    def get_entry_id(self, user_id: UUID, key: str) -> Optional[UUID]:
        with self._lock.read():
            return self._entry_keys.get((user_id, key))

    def save_entry_id(self, user_id: UUID, key: str, entry_id: UUID) -> UUID:
        with self._lock.write():
            return self._entry_keys.setdefault((user_id, key), entry_id)

    # Helpers; callers must hold the write lock
    def _check_unique_locked(self, account: Account, extra: Iterable[Account] = ()) -> None:
        for other in [*self._accounts.values(), *extra]:
            if (
                other.id != account.id
                and other.user_id == account.user_id
                and other.currency == account.currency
                and other.path == account.path
            ):
                raise ConflictError(duplicate_account_path(account.path, account.currency))

    def _check_reversible_locked(self, entry_id: UUID) -> None:
        entry = self._entries.get(entry_id)
        if entry is None:
            raise NotFoundError(entry_not_found(entry_id))
        if entry.is_reversed:
            raise AlreadyReversedError(entry_already_reversed(entry_id))

    def _flag_reversed_locked(self, entry_id: UUID) -> None:
        self._entries[entry_id] = dataclasses.replace(self._entries[entry_id], is_reversed=True)

    def _insert_entry_locked(self, entry: JournalEntry) -> None:
        self._entries[entry.id] = entry
        index = self._entry_index.setdefault(entry.user_id, [])
        bisect.insort(index, (entry.date, str(entry.id), entry.id))
