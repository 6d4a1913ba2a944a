"""
auth/store.py -- SQLAlchemy Core persistence layer for Account records.

Pattern: Repository + Data Mapper. CredentialStore is the repository;
_row_to_account is the mapper. Lifecycle and route code never touches SQL
directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

Uniqueness:
  There is deliberately NO unique index on accounts.email. One Account per
  email is a cooperative invariant kept by the lifecycle manager's
  check-then-create. Two concurrent sign-ups for a fresh email can both pass
  the check and both insert; count_by_email() exists so that race can be
  observed. Adding a constraint would turn the losing sign-up into a
  CreateError instead of a second record.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import Column, Index, MetaData, String, Table, Text, create_engine, event, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from auth.errors import CreateError
from auth.models import Account
from auth.tokens import unique_id

logger = logging.getLogger("vaultpro.auth.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_accounts = Table(
    "accounts",
    _metadata,
    Column("id", String(36), primary_key=True),
    Column("email", String(320), nullable=False),  # not unique, see module docstring
    Column("full_name", Text, nullable=False),
    Column("avatar_url", Text, nullable=False),
    Column("account_id", String(36), nullable=False),
    Column("created_at", String(32), nullable=False),
    Index("ix_accounts_email", "email"),
)


# ---------------------------------------------------------------------------
# Engine helpers
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def make_engine(db_url: str) -> Engine:
    """Create an engine usable from FastAPI's threadpool."""
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_wal_mode)
    return engine


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class CredentialStore:
    """Repository for Account records.

    Usage:
        store = CredentialStore("sqlite:///vaultpro_identity.db")
        store.create("ann@example.com", "Ann", avatar_url, account_id)
        account = store.find_by_email("ann@example.com")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        self.engine: Engine = make_engine(db_url)
        _metadata.create_all(self.engine)

    def find_by_email(self, email: str) -> Account | None:
        """Return the first Account whose email equals `email` exactly, or None."""
        with self.engine.connect() as conn:
            row = conn.execute(
                _accounts.select().where(_accounts.c.email == email).order_by(_accounts.c.created_at).limit(1)
            ).fetchone()
        return _row_to_account(row) if row is not None else None

    def count_by_email(self, email: str) -> int:
        """Number of Account records for `email`. More than one means the sign-up race was hit."""
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_accounts).where(_accounts.c.email == email)).scalar()
        return result or 0

    def create(self, email: str, full_name: str, avatar_url: str, account_id: str) -> Account:
        """Insert a new Account and return it.

        Raises CreateError if the database rejects the write. No retry -- the
        caller decides what a failed write means for its flow.
        """
        account = Account(
            id=unique_id(),
            email=email,
            full_name=full_name,
            avatar_url=avatar_url,
            account_id=account_id,
            created_at=_now_iso(),
        )
        try:
            with self.engine.connect() as conn:
                conn.execute(
                    _accounts.insert().values(
                        id=account.id,
                        email=account.email,
                        full_name=account.full_name,
                        avatar_url=account.avatar_url,
                        account_id=account.account_id,
                        created_at=account.created_at,
                    )
                )
                conn.commit()
        except SQLAlchemyError as exc:
            logger.exception("Account insert failed for %s", email)
            raise CreateError() from exc
        return account

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_account(row) -> Account:
    return Account(
        id=row.id,
        email=row.email,
        full_name=row.full_name,
        avatar_url=row.avatar_url,
        account_id=row.account_id,
        created_at=row.created_at,
    )
