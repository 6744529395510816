"""Shared pytest fixtures for ledgerkit tests."""

from datetime import datetime, UTC
import os
import tempfile
from uuid import uuid4

import pytest

from ledgerkit.database.factories import create_memory_database, create_sqlite_database
from ledgerkit.domain.account import AccountService
from ledgerkit.domain.balance import BalanceService
from ledgerkit.domain.batch import BatchService
from ledgerkit.domain.entities import AccountDraft, EntryDraft, LineDraft
from ledgerkit.domain.journal import JournalService


@pytest.fixture
def temp_db():
    """Create a temporary SQLite database for testing."""
    # Create a temporary file for the database
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    # Create database
    db = create_sqlite_database(database_path=db_path)
    # Store the path for tests that need it
    db.database_path = db_path
    db.connect()
    db.initialize_schema()

    yield db

    # Cleanup
    db.disconnect()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def memory_db():
    """Create an empty in-memory database."""
    db = create_memory_database()
    db.connect()
    db.initialize_schema()
    return db


@pytest.fixture(params=["memory", "sqlite"])
def db(request):
    """Run the test once against each storage backend."""
    if request.param == "memory":
        return request.getfixturevalue("memory_db")
    return request.getfixturevalue("temp_db")


@pytest.fixture
def user_id():
    return uuid4()


@pytest.fixture
def other_user_id():
    return uuid4()


@pytest.fixture
def account_service(db):
    """Create an AccountService over the parametrized database."""
    return AccountService(db, db)


@pytest.fixture
def journal_service(db):
    """Create a JournalService over the parametrized database."""
    return JournalService.from_database(db)


@pytest.fixture
def balance_service(db):
    """Create a BalanceService over the parametrized database."""
    return BalanceService(db)


@pytest.fixture
def batch_service(db):
    """Create a BatchService over the parametrized database."""
    return BatchService.from_database(db)


@pytest.fixture
def sample_accounts(account_service, user_id):
    """Create Cash, Income and Groceries USD accounts for the test user."""
    specs = {
        "cash": ("Cash", "asset", "cash", "Wallet"),
        "income": ("Income", "revenue", "salary", "Employer"),
        "groceries": ("Groceries", "expense", "groceries", "Tesco"),
    }
    accounts = {}
    for key, (name, account_type, group, vendor) in specs.items():
        accounts[key] = account_service.create_account(
            AccountDraft(
                user_id=user_id,
                name=name,
                currency="USD",
                type=account_type,
                group=group,
                vendor=vendor,
            )
        )
    return accounts


@pytest.fixture
def make_draft(user_id):
    """Return a builder for entry drafts from (account, side, amount_minor) tuples."""

    def _make(*lines, currency="USD", date=None, memo="", category=None, user=None, metadata=None):
        return EntryDraft(
            user_id=user or user_id,
            currency=currency,
            lines=[LineDraft(account_id=acc.id, side=side, amount_minor=amount) for acc, side, amount in lines],
            date=date or datetime(2024, 1, 15, 12, 0, tzinfo=UTC),
            memo=memo,
            category=category,
            metadata=metadata or {},
        )

    return _make


@pytest.fixture
def post(journal_service, make_draft):
    """Return a helper that validates and posts an entry."""

    def _post(*lines, **kwargs):
        return journal_service.post_entry(make_draft(*lines, **kwargs))

    return _post


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()
