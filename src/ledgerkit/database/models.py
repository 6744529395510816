"""SQLAlchemy models for ledgerkit database."""

from datetime import datetime, UTC
from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    PrimaryKeyConstraint,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    create_engine,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker, Session

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


class Account(Base):
    """Ledger account model."""

    __tablename__ = "accounts"

    id = Column(Uuid, primary_key=True)
    user_id = Column(Uuid, nullable=False, index=True)
    name = Column(String, nullable=False)
    currency = Column(String(3), nullable=False)
    type = Column(String, nullable=False)
    group = Column("group", String, nullable=False)
    vendor = Column(String, nullable=False)
    # Normalized type:group:vendor, stored so the unique constraint can use it
    path = Column(String, nullable=False)
    metadata_json = Column("metadata", Text, nullable=False, default="{}")
    system = Column(Boolean, default=False, nullable=False)
    active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "path", "currency", name="uq_accounts_user_path_currency"),
        CheckConstraint(
            "type in ('asset','liability','equity','revenue','expense')",
            name="ck_accounts_type",
        ),
    )

    lines = relationship("JournalLine", back_populates="account")


class JournalEntry(Base):
    """Journal entry model."""

    __tablename__ = "entries"

    id = Column(Uuid, primary_key=True)
    user_id = Column(Uuid, nullable=False)
    # Naive UTC
    date = Column(DateTime, nullable=False)
    currency = Column(String(3), nullable=False)
    memo = Column(String, nullable=False, default="")
    category = Column(String, nullable=False, default="uncategorized")
    metadata_json = Column("metadata", Text, nullable=False, default="{}")
    is_reversed = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    __table_args__ = (Index("ix_entries_user_date_id", "user_id", "date", "id"),)

    lines = relationship(
        "JournalLine",
        back_populates="entry",
        cascade="all, delete-orphan",
        order_by="JournalLine.position",
    )


class JournalLine(Base):
    """Journal line model."""

    __tablename__ = "entry_lines"

    id = Column(Uuid, primary_key=True)
    entry_id = Column(Uuid, ForeignKey("entries.id"), nullable=False, index=True)
    account_id = Column(Uuid, ForeignKey("accounts.id"), nullable=False, index=True)
    side = Column(String, nullable=False)
    amount_minor = Column(BigInteger, nullable=False)
    position = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        CheckConstraint("amount_minor > 0", name="ck_entry_lines_amount_positive"),
        CheckConstraint("side in ('debit','credit')", name="ck_entry_lines_side"),
    )

    entry = relationship("JournalEntry", back_populates="lines")
    account = relationship("Account", back_populates="lines")


class EntryIdempotency(Base):
    """Single-entry idempotency key model."""

    __tablename__ = "entry_idempotency"

    user_id = Column(Uuid, nullable=False)
    key = Column(String, nullable=False)
    entry_id = Column(Uuid, ForeignKey("entries.id"), nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    __table_args__ = (PrimaryKeyConstraint("user_id", "key"),)


class BatchIdempotency(Base):
    """Cached batch response model."""

    __tablename__ = "batch_idempotency"

    scope = Column(String, nullable=False)
    key = Column(String, nullable=False)
    body_hash = Column(String(64), nullable=False)
    status = Column(Integer, nullable=False)
    payload = Column(Text, nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    __table_args__ = (PrimaryKeyConstraint("scope", "key"),)


def create_session_factory(database_url: str) -> sessionmaker[Session]:
    """Create a SQLAlchemy session factory."""
    engine = create_engine(database_url, echo=False)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine)
