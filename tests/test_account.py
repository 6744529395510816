"""Tests for AccountService."""

from uuid import uuid4

import pytest

from ledgerkit.domain.entities import AccountDraft, AccountType, OPENING_BALANCES_PATH
from ledgerkit.domain.errors import (
    ConflictError,
    ForbiddenError,
    ImmutableFieldError,
    NotFoundError,
    SystemAccountError,
    ValidationError,
)


def draft(user_id, name="Monzo", currency="GBP", account_type="asset", group="bank", vendor="Monzo", **kwargs):
    return AccountDraft(
        user_id=user_id,
        name=name,
        currency=currency,
        type=account_type,
        group=group,
        vendor=vendor,
        **kwargs,
    )


class TestCreateAccount:
    """Tests for account creation."""

    def test_create_account(self, account_service, user_id):
        account = account_service.create_account(draft(user_id))

        assert account.id is not None
        assert account.path == "asset:bank:monzo"
        assert account.currency == "GBP"
        assert account.type == AccountType.ASSET
        assert account.active is True
        assert account.system is False
        assert account_service.get_account(user_id, account.id) == account

    def test_duplicate_path_conflicts(self, account_service, user_id):
        """Test that (path, currency) is unique per user."""
        account_service.create_account(draft(user_id))
        with pytest.raises(ConflictError):
            account_service.create_account(draft(user_id, name="Monzo joint", vendor="monzo"))

    def test_same_path_other_currency(self, account_service, user_id):
        account_service.create_account(draft(user_id))
        other = account_service.create_account(draft(user_id, currency="EUR"))
        assert other.path == "asset:bank:monzo"

    def test_same_path_other_user(self, account_service, user_id, other_user_id):
        account_service.create_account(draft(user_id))
        theirs = account_service.create_account(draft(other_user_id))
        assert theirs.user_id == other_user_id

    def test_opening_balance_account_provisioned(self, account_service, user_id):
        account_service.create_account(draft(user_id))

        anchors = [a for a in account_service.list_accounts(user_id) if a.path == OPENING_BALANCES_PATH]
        assert len(anchors) == 1
        anchor = anchors[0]
        assert anchor.currency == "GBP"
        assert anchor.system is True
        assert anchor.type == AccountType.EQUITY
        assert anchor.vendor == "System"

    def test_one_anchor_per_currency(self, account_service, user_id):
        account_service.create_account(draft(user_id))
        account_service.create_account(draft(user_id, name="Cash", group="cash", vendor="Wallet"))
        account_service.create_account(draft(user_id, currency="EUR"))

        anchors = [a for a in account_service.list_accounts(user_id) if a.system]
        assert sorted(a.currency for a in anchors) == ["EUR", "GBP"]

    def test_ensure_opening_balance_is_idempotent(self, account_service, user_id):
        first = account_service.ensure_opening_balance_account(user_id, "usd")
        second = account_service.ensure_opening_balance_account(user_id, "USD")
        assert first.id == second.id
        assert first.name == "Opening Balances"

    def test_explicit_opening_balances_draft_conflicts(self, account_service, user_id):
        """Test that the reserved path cannot be created a second time."""
        with pytest.raises(ConflictError):
            account_service.create_account(
                draft(user_id, name="Opening", account_type="equity", group="opening_balances", vendor="Me")
            )

    def test_opening_balances_must_be_equity(self, account_service, user_id):
        with pytest.raises(ValidationError, match="reserved"):
            account_service.create_account(draft(user_id, group="opening_balances"))

    @pytest.mark.parametrize(
        "overrides,message",
        [
            ({"name": " "}, "name"),
            ({"currency": ""}, "currency"),
            ({"currency": "POUNDS"}, "currenc"),
            ({"group": ""}, "group"),
            ({"group": "Bank-Accounts"}, "group"),
            ({"vendor": ""}, "vendor"),
            ({"account_type": "piggybank"}, "type"),
            ({"metadata": {"k" * 100: "v"}}, ""),
        ],
    )
    def test_invalid_drafts(self, account_service, user_id, overrides, message):
        with pytest.raises(ValidationError, match=message):
            account_service.create_account(draft(user_id, **overrides))
        assert account_service.list_accounts(user_id) == []

    def test_missing_user(self, account_service):
        with pytest.raises(ValidationError):
            account_service.create_account(draft(None))


class TestReadAccounts:
    """Tests for fetching and listing accounts."""

    def test_get_missing(self, account_service, user_id):
        with pytest.raises(NotFoundError):
            account_service.get_account(user_id, uuid4())

    def test_get_foreign(self, account_service, user_id, other_user_id):
        account = account_service.create_account(draft(user_id))
        with pytest.raises(ForbiddenError):
            account_service.get_account(other_user_id, account.id)

    def test_list_sorted_by_path(self, account_service, user_id):
        account_service.create_account(draft(user_id, name="Tesco", account_type="expense", group="groceries", vendor="Tesco"))
        account_service.create_account(draft(user_id))
        account_service.create_account(draft(user_id, name="Cash", group="cash", vendor="Wallet"))

        paths = [a.path for a in account_service.list_accounts(user_id)]
        assert paths == sorted(paths)

    def test_list_filters(self, account_service, user_id):
        monzo = account_service.create_account(draft(user_id))
        tesco = account_service.create_account(
            draft(user_id, name="Tesco", account_type="expense", group="groceries", vendor="Tesco")
        )
        account_service.deactivate_account(user_id, tesco.id)

        assert [a.id for a in account_service.list_accounts(user_id, account_type="asset")] == [monzo.id]
        assert [a.id for a in account_service.list_accounts(user_id, group="GROCERIES")] == [tesco.id]
        assert [a.id for a in account_service.list_accounts(user_id, vendor="monzo")] == [monzo.id]
        inactive = account_service.list_accounts(user_id, active=False)
        assert [a.id for a in inactive] == [tesco.id]

    def test_list_bad_type(self, account_service, user_id):
        with pytest.raises(ValidationError):
            account_service.list_accounts(user_id, account_type="nope")


class TestUpdateAccount:
    """Tests for account updates."""

    def test_update_descriptive_fields(self, account_service, user_id):
        account = account_service.create_account(draft(user_id))

        updated = account_service.update_account(
            user_id, account.id, name="Monzo Joint", group="savings", vendor="Monzo Bank", metadata={"sort": "1"}
        )

        assert updated.name == "Monzo Joint"
        assert updated.path == "asset:savings:monzo_bank"
        assert updated.metadata == {"sort": "1"}
        assert account_service.get_account(user_id, account.id).path == "asset:savings:monzo_bank"

    def test_update_same_identity_values_allowed(self, account_service, user_id):
        account = account_service.create_account(draft(user_id))
        updated = account_service.update_account(
            user_id, account.id, name="Renamed", account_type="asset", currency="gbp", system=False
        )
        assert updated.name == "Renamed"

    @pytest.mark.parametrize(
        "changes",
        [{"account_type": "liability"}, {"currency": "EUR"}, {"system": True}],
    )
    def test_identity_fields_are_immutable(self, account_service, user_id, changes):
        account = account_service.create_account(draft(user_id))
        with pytest.raises(ImmutableFieldError):
            account_service.update_account(user_id, account.id, **changes)

    def test_system_account_locked(self, account_service, user_id):
        anchor = account_service.ensure_opening_balance_account(user_id, "GBP")
        with pytest.raises(SystemAccountError):
            account_service.update_account(user_id, anchor.id, name="Mine now")
        with pytest.raises(SystemAccountError):
            account_service.deactivate_account(user_id, anchor.id)

    def test_update_path_conflict(self, account_service, user_id):
        account_service.create_account(draft(user_id))
        cash = account_service.create_account(draft(user_id, name="Cash", group="cash", vendor="Monzo"))
        with pytest.raises(ConflictError):
            account_service.update_account(user_id, cash.id, group="bank")

    def test_update_into_reserved_group(self, account_service, user_id):
        equity = account_service.create_account(
            draft(user_id, name="Capital", account_type="equity", group="capital", vendor="Me")
        )
        with pytest.raises(ValidationError):
            account_service.update_account(user_id, equity.id, group="opening_balances")

    def test_update_rejects_blank_name(self, account_service, user_id):
        account = account_service.create_account(draft(user_id))
        with pytest.raises(ValidationError):
            account_service.update_account(user_id, account.id, name="  ")

    def test_update_foreign(self, account_service, user_id, other_user_id):
        account = account_service.create_account(draft(user_id))
        with pytest.raises(ForbiddenError):
            account_service.update_account(other_user_id, account.id, name="Stolen")


class TestDeactivateAccount:
    """Tests for deactivation."""

    def test_deactivate(self, account_service, user_id):
        account = account_service.create_account(draft(user_id))

        result = account_service.deactivate_account(user_id, account.id)

        assert result.active is False
        assert account_service.get_account(user_id, account.id).active is False

    def test_deactivate_twice_is_noop(self, account_service, user_id):
        account = account_service.create_account(draft(user_id))
        account_service.deactivate_account(user_id, account.id)
        again = account_service.deactivate_account(user_id, account.id)
        assert again.active is False
