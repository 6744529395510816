"""Account domain service."""

import dataclasses
from datetime import UTC, datetime
import logging
from typing import Mapping, Optional
from uuid import UUID, uuid4

from ledgerkit.database.base import Repo, Writer
from ledgerkit.domain.cancellation import CancelToken, check
from ledgerkit.domain.entities import (
    Account,
    AccountDraft,
    AccountType,
    OPENING_BALANCES_GROUP,
    OPENING_BALANCES_NAME,
    OPENING_BALANCES_PATH,
    SYSTEM_VENDOR,
    is_opening_balances,
    parse_account_type,
)
from ledgerkit.domain.errors import (
    ConflictError,
    ForbiddenError,
    ImmutableFieldError,
    NotFoundError,
    SystemAccountError,
    ValidationError,
    account_forbidden,
    account_not_found,
    duplicate_account_path,
    immutable_field,
    system_account_locked,
)
from ledgerkit.domain.groups import is_reserved
from ledgerkit.domain.metadata import coerce_metadata
from ledgerkit.domain.money import normalize_currency
from ledgerkit.utils.slug import is_slug

logger = logging.getLogger(__name__)


def path_conflicts(
    accounts: list[Account], path: str, currency: str, exclude_id: Optional[UUID] = None
) -> bool:
    """Return True if another account already uses (path, currency)."""
    return any(
        a.id != exclude_id and a.path == path and a.currency == currency for a in accounts
    )


def opening_balance_account(user_id: UUID, currency: str) -> Account:
    """Build the system opening balances account for a currency."""
    return Account(
        id=uuid4(),
        user_id=user_id,
        name=OPENING_BALANCES_NAME,
        currency=currency,
        type=AccountType.EQUITY,
        group=OPENING_BALANCES_GROUP,
        vendor=SYSTEM_VENDOR,
        system=True,
        active=True,
        created_at=datetime.now(UTC),
    )


def account_from_draft(draft: AccountDraft) -> Account:
    """Build a new active account from a validated draft.

    A draft in the opening balances group becomes the system account.
    """
    account_type = parse_account_type(draft.type)
    system = is_opening_balances(account_type, draft.group)
    return Account(
        id=uuid4(),
        user_id=draft.user_id,
        name=draft.name,
        currency=normalize_currency(draft.currency),
        type=account_type,
        group=draft.group.lower(),
        vendor=SYSTEM_VENDOR if system else draft.vendor,
        metadata=draft.metadata,
        system=system,
        active=True,
        created_at=datetime.now(UTC),
    )


class AccountService:
    """Service for managing ledger accounts."""

    def __init__(self, repo: Repo, writer: Writer):
        """Initialize account service.

        Args:
            repo: Read-side storage
            writer: Write-side storage
        """
        self.repo = repo
        self.writer = writer

    def validate_create(self, draft: AccountDraft) -> None:
        """Validate an account draft without touching storage.

        Raises:
            ValidationError: If a required field is missing or malformed
        """
        if draft.user_id is None:
            raise ValidationError("user_id is required")
        if not draft.name:
            raise ValidationError("name is required")
        if not draft.currency:
            raise ValidationError("currency is required")
        normalize_currency(draft.currency)
        if not draft.group:
            raise ValidationError("group is required")
        if not is_slug(draft.group.lower()):
            raise ValidationError(f"invalid group slug '{draft.group}'")
        if not draft.vendor:
            raise ValidationError("vendor is required")
        account_type = parse_account_type(draft.type)
        if not is_reserved(account_type, draft.group) and any(is_reserved(t, draft.group) for t in AccountType):
            raise ValidationError(f"group '{draft.group.lower()}' is reserved for another account type")
        draft.metadata.validate()

    def ensure_opening_balance_account(
        self, user_id: UUID, currency: str, ctx: Optional[CancelToken] = None
    ) -> Account:
        """Return the user's opening balances account for currency, creating it if missing.

        Args:
            user_id: Owner
            currency: ISO currency code
            ctx: Optional cancellation token

        Returns:
            The existing or newly created system account
        """
        if user_id is None or not currency:
            raise ValidationError("user_id and currency are required")
        currency = normalize_currency(currency)
        check(ctx)
        for account in self.repo.list_accounts(user_id):
            if account.currency == currency and account.path == OPENING_BALANCES_PATH:
                return account

        check(ctx)
        created = self.writer.create_account(opening_balance_account(user_id, currency))
        logger.info("Created opening balances account %s (%s) for user %s", created.id, currency, user_id)
        return created

    def create_account(self, draft: AccountDraft, ctx: Optional[CancelToken] = None) -> Account:
        """Create a new account.

        The user's opening balances account for the draft currency is
        provisioned first, so every currency in use has its equity anchor.

        Args:
            draft: Account to create
            ctx: Optional cancellation token

        Returns:
            The created account

        Raises:
            ValidationError: If the draft is invalid
            ConflictError: If (path, currency) is already taken
        """
        self.validate_create(draft)
        self.ensure_opening_balance_account(draft.user_id, draft.currency, ctx)

        account = account_from_draft(draft)
        check(ctx)
        if path_conflicts(self.repo.list_accounts(draft.user_id), account.path, account.currency):
            raise ConflictError(duplicate_account_path(account.path, account.currency))

        check(ctx)
        created = self.writer.create_account(account)
        logger.info("Created account %s (%s, %s)", created.id, created.path, created.currency)
        return created

    def get_account(
        self, user_id: UUID, account_id: UUID, ctx: Optional[CancelToken] = None
    ) -> Account:
        """Get a user's account.

        Raises:
            NotFoundError: If the account does not exist
            ForbiddenError: If the account belongs to another user
        """
        if user_id is None or account_id is None:
            raise ValidationError("user_id and account_id are required")
        check(ctx)
        account = self.repo.get_account(account_id)
        if account is None:
            raise NotFoundError(account_not_found(account_id))
        if account.user_id != user_id:
            raise ForbiddenError(account_forbidden(account_id))
        return account

    def list_accounts(
        self,
        user_id: UUID,
        account_type: Optional[AccountType | str] = None,
        group: Optional[str] = None,
        vendor: Optional[str] = None,
        active: Optional[bool] = None,
        ctx: Optional[CancelToken] = None,
    ) -> list[Account]:
        """List a user's accounts ordered by path.

        Args:
            user_id: Owner
            account_type: Optional type filter
            group: Optional group filter (case-insensitive)
            vendor: Optional vendor filter (case-insensitive)
            active: Optional active flag filter

        Returns:
            List of accounts
        """
        if user_id is None:
            raise ValidationError("user_id is required")
        wanted_type = parse_account_type(account_type) if account_type else None
        check(ctx)
        accounts = self.repo.list_accounts(user_id)
        result = [
            a
            for a in accounts
            if (wanted_type is None or a.type == wanted_type)
            and (group is None or a.group.lower() == group.strip().lower())
            and (vendor is None or a.vendor.lower() == vendor.strip().lower())
            and (active is None or a.active == active)
        ]
        return sorted(result, key=lambda a: (a.path, a.currency, a.name))

    def update_account(
        self,
        user_id: UUID,
        account_id: UUID,
        name: Optional[str] = None,
        group: Optional[str] = None,
        vendor: Optional[str] = None,
        metadata: Optional[Mapping[str, str]] = None,
        account_type: Optional[AccountType | str] = None,
        currency: Optional[str] = None,
        system: Optional[bool] = None,
        ctx: Optional[CancelToken] = None,
    ) -> Account:
        """Update the descriptive fields of an account.

        Type, currency and the system flag are identity fields. Passing them
        is allowed only when the value is unchanged.

        Args:
            user_id: Owner
            account_id: Account to update
            name: New name
            group: New group slug
            vendor: New vendor
            metadata: Replacement metadata
            account_type: Must equal the current type if given
            currency: Must equal the current currency if given
            system: Must equal the current system flag if given
            ctx: Optional cancellation token

        Returns:
            The updated account

        Raises:
            SystemAccountError: If the account is a system account
            ImmutableFieldError: If an identity field would change
            ConflictError: If the new path is already taken
        """
        current = self.get_account(user_id, account_id, ctx)
        if current.system:
            raise SystemAccountError(system_account_locked(account_id))
        if account_type is not None and parse_account_type(account_type) != current.type:
            raise ImmutableFieldError(immutable_field("type"))
        if currency is not None and currency.strip().upper() != current.currency:
            raise ImmutableFieldError(immutable_field("currency"))
        if system is not None and system != current.system:
            raise ImmutableFieldError(immutable_field("system"))

        changes = {}
        if name is not None:
            if not name.strip():
                raise ValidationError("name is required")
            changes["name"] = name.strip()
        if group is not None:
            group = group.strip().lower()
            if not is_slug(group):
                raise ValidationError(f"invalid group slug '{group}'")
            if is_reserved(current.type, group):
                raise ValidationError("opening_balances group is reserved for system accounts")
            changes["group"] = group
        if vendor is not None:
            if not vendor.strip():
                raise ValidationError("vendor is required")
            changes["vendor"] = vendor.strip()
        if metadata is not None:
            changes["metadata"] = coerce_metadata(metadata)
            changes["metadata"].validate()

        updated = dataclasses.replace(current, **changes)
        if updated.path != current.path:
            check(ctx)
            if path_conflicts(
                self.repo.list_accounts(user_id), updated.path, updated.currency, exclude_id=current.id
            ):
                raise ConflictError(duplicate_account_path(updated.path, updated.currency))

        check(ctx)
        saved = self.writer.update_account(updated)
        logger.info("Updated account %s (%s)", saved.id, saved.path)
        return saved

    def deactivate_account(
        self, user_id: UUID, account_id: UUID, ctx: Optional[CancelToken] = None
    ) -> Account:
        """Deactivate an account. Accounts are never deleted.

        Raises:
            SystemAccountError: If the account is a system account
        """
        current = self.get_account(user_id, account_id, ctx)
        if current.system:
            raise SystemAccountError(system_account_locked(account_id))
        if not current.active:
            return current
        check(ctx)
        saved = self.writer.update_account(dataclasses.replace(current, active=False))
        logger.info("Deactivated account %s (%s)", saved.id, saved.path)
        return saved

