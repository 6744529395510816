"""Shared domain error messages and error types."""

from uuid import UUID


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling. Each category carries a stable
    ``code`` that callers can render or map to a transport status.
    """

    code = "error"


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic."""

    code = "invalid"


class NotFoundError(DomainError):
    """Requested domain entity does not exist or is not visible."""

    code = "not_found"


class ForbiddenError(DomainError):
    """Entity exists but belongs to another user."""

    code = "forbidden"


class ConflictError(DomainError):
    """Domain conflict, such as uniqueness violations."""

    code = "conflict"


class IdempotencyMismatchError(ConflictError):
    """Idempotency key reused with a different request body."""

    code = "idempotency_mismatch"


class SystemAccountError(DomainError):
    """Mutation attempted on a reserved system account."""

    code = "system_account"


class ImmutableFieldError(DomainError):
    """Attempted change to an identity field (type, currency, system flag)."""

    code = "immutable"


class TooFewLinesError(ValidationError):
    """Journal entry has fewer than two lines."""

    code = "too_few_lines"


class InvalidAmountError(ValidationError):
    """Journal line amount is not strictly positive."""

    code = "invalid_amount"


class CurrencyMismatchError(ValidationError):
    """Account or amount currency differs from the entry currency."""

    code = "currency_mismatch"


class UnbalancedEntryError(ValidationError):
    """Sum of debits differs from sum of credits."""

    code = "unbalanced_entry"


class AlreadyReversedError(DomainError):
    """Reversal or reclassification attempted on a reversed entry."""

    code = "already_reversed"


class BatchTooLargeError(ValidationError):
    """Batch request exceeds the item cap."""

    code = "too_many_items"


def account_not_found(account_id: UUID) -> str:
    """Return message for missing account."""
    return f"Account {account_id} not found"


def account_forbidden(account_id: UUID) -> str:
    """Return message for an account owned by someone else."""
    return f"Account {account_id} does not belong to user"


def entry_not_found(entry_id: UUID) -> str:
    """Return message for missing journal entry."""
    return f"Journal entry {entry_id} not found"


def entry_forbidden(entry_id: UUID) -> str:
    """Return message for a journal entry owned by someone else."""
    return f"Journal entry {entry_id} does not belong to user"


def entry_already_reversed(entry_id: UUID) -> str:
    """Return message for an entry that was already reversed."""
    return f"Journal entry {entry_id} is already reversed"


def duplicate_account_path(path: str, currency: str) -> str:
    """Return message for a duplicate (path, currency) pair."""
    return f"Account path '{path}' already exists for currency {currency}"


def system_account_locked(account_id: UUID) -> str:
    """Return message when a system account mutation is attempted."""
    return f"Account {account_id} is a system account and cannot be modified"


def immutable_field(field: str) -> str:
    """Return message for a change to an identity field."""
    return f"Account {field} cannot be changed"


def line_error(index: int, message: str) -> str:
    """Return message scoped to a journal line."""
    return f"line[{index}]: {message}"
