"""Tests for resolving account references."""

from uuid import uuid4

import pytest

from ledgerkit.domain.entities import AccountDraft
from ledgerkit.domain.errors import NotFoundError
from ledgerkit.utils.account_resolver import resolve_account


@pytest.fixture
def monzo(account_service, user_id):
    """Create the same Monzo path in GBP and EUR."""
    return {
        currency: account_service.create_account(
            AccountDraft(
                user_id=user_id, name="Monzo", currency=currency, type="asset", group="bank", vendor="Monzo"
            )
        )
        for currency in ("GBP", "EUR")
    }


def test_resolve_by_id(account_service, user_id, monzo):
    account = resolve_account(account_service, user_id, str(monzo["GBP"].id))
    assert account == monzo["GBP"]


def test_resolve_unknown_id(account_service, user_id):
    with pytest.raises(NotFoundError):
        resolve_account(account_service, user_id, str(uuid4()))


def test_resolve_by_qualified_path(account_service, user_id, monzo):
    account = resolve_account(account_service, user_id, "asset:bank:monzo@eur")
    assert account.id == monzo["EUR"].id


def test_resolve_path_with_default_currency(account_service, user_id, monzo):
    account = resolve_account(account_service, user_id, "Asset:Bank:Monzo", currency="GBP")
    assert account.id == monzo["GBP"].id


def test_ambiguous_path(account_service, user_id, monzo):
    """Test that a path in several currencies needs a qualifier."""
    with pytest.raises(ValueError, match="EUR, GBP"):
        resolve_account(account_service, user_id, "asset:bank:monzo")


def test_resolve_opening_balances_account(account_service, user_id, monzo):
    account = resolve_account(account_service, user_id, "equity:opening_balances@GBP")
    assert account.system is True


def test_unknown_path(account_service, user_id):
    with pytest.raises(ValueError, match="not found"):
        resolve_account(account_service, user_id, "asset:bank:nowhere")
