"""Abstract storage interfaces.

The services depend on two narrow interfaces: :class:`Repo` for reads and
:class:`Writer` for writes (with :class:`WriterTransaction` for batches).
:class:`IdempotencyStore` caches batch responses and single-entry keys.
:class:`Database` bundles all three for concrete backends.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from dataclasses import dataclass
from typing import Iterable, Optional
from uuid import UUID

# Import entities directly to avoid circular import through domain/__init__.py
from ledgerkit.domain.entities import Account, JournalEntry


@dataclass(frozen=True)
class StoredResponse:
    """A batch response cached under an idempotency key."""

    body_hash: str
    status: int
    payload: str


class Repo(ABC):
    """Read-side storage interface."""

    @abstractmethod
    def accounts_by_ids(self, user_id: UUID, ids: Iterable[UUID]) -> dict[UUID, Account]:
        """Resolve the user's accounts among ids. Unknown or foreign ids are omitted."""
        pass

    @abstractmethod
    def list_accounts(self, user_id: UUID) -> list[Account]:
        """List all accounts of a user, active or not."""
        pass

    @abstractmethod
    def get_account(self, account_id: UUID) -> Optional[Account]:
        """Get account by ID regardless of owner."""
        pass

    @abstractmethod
    def list_entries(self, user_id: UUID) -> list[JournalEntry]:
        """List all journal entries of a user ordered by (date, id)."""
        pass

    @abstractmethod
    def get_entry(self, entry_id: UUID) -> Optional[JournalEntry]:
        """Get journal entry by ID regardless of owner."""
        pass


class WriterTransaction(AbstractContextManager, ABC):
    """A unit of work that is committed or rolled back as a whole.

    Used as a context manager it commits on normal exit and rolls back if
    the block raises.
    """

    @abstractmethod
    def create_account(self, account: Account) -> Account:
        pass

    @abstractmethod
    def create_entry(self, entry: JournalEntry) -> JournalEntry:
        pass

    @abstractmethod
    def mark_entry_reversed(self, entry_id: UUID) -> None:
        """Flag an entry as reversed on commit; see :meth:`Writer.mark_entry_reversed`."""
        pass

    @abstractmethod
    def commit(self) -> None:
        pass

    @abstractmethod
    def rollback(self) -> None:
        pass

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            self.commit()
        else:
            self.rollback()


class Writer(ABC):
    """Write-side storage interface."""

    @abstractmethod
    def create_account(self, account: Account) -> Account:
        """Persist a new account atomically."""
        pass

    @abstractmethod
    def update_account(self, account: Account) -> Account:
        """Persist the descriptive fields and active flag of an account."""
        pass

    @abstractmethod
    def create_entry(self, entry: JournalEntry) -> JournalEntry:
        """Persist a journal entry with all of its lines atomically."""
        pass

    @abstractmethod
    def mark_entry_reversed(self, entry_id: UUID) -> None:
        """Set the is_reversed flag of an entry exactly once.

        Raises:
            NotFoundError: If the entry does not exist
            AlreadyReversedError: If the flag is already set
        """
        pass

    @abstractmethod
    def begin(self) -> WriterTransaction:
        """Start a transaction for a batch of writes."""
        pass


class IdempotencyStore(ABC):
    """Storage for idempotency keys."""

    @abstractmethod
    def key_lock(self, scope: str, key: str) -> AbstractContextManager:
        """Return a context manager holding the critical section for (scope, key)."""
        pass

    @abstractmethod
    def get_response(self, scope: str, key: str) -> Optional[StoredResponse]:
        pass

    @abstractmethod
    def save_response(self, scope: str, key: str, response: StoredResponse) -> StoredResponse:
        """Store response unless the key is taken. Returns whichever response is stored."""
        pass

    @abstractmethod
    def get_entry_id(self, user_id: UUID, key: str) -> Optional[UUID]:
        pass

    @abstractmethod
    def save_entry_id(self, user_id: UUID, key: str, entry_id: UUID) -> UUID:
        """Map key to entry_id unless already mapped. Returns the stored entry id."""
        pass


class Database(Repo, Writer, IdempotencyStore):
    """Full storage backend used by the CLI and tests."""

    @abstractmethod
    def connect(self) -> None:
        """Connect to the database."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the database."""
        pass

    @abstractmethod
    def initialize_schema(self) -> None:
        """Initialize database schema (create tables)."""
        pass
