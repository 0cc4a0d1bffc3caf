"""
The relational store shared by every synchronization phase.
"""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import Table, func, inspect, text
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine, select

from intentsync.core.exceptions import IntentSyncError
from intentsync.core.models import (
    DepositTransactionRow,
    EvmDepositEventRow,
    EvmFillEventRow,
    FillTransactionRow,
    IntentRow,
)
from intentsync.utils.log import get_default_logger

_LOG = get_default_logger(__name__)
_LOG.setLevel(logging.INFO)


class MirrorDatabase:
    """
    Owns the engine for the mirror store
    and the dialect-specific pieces the repositories need for upserts.
    """

    def __init__(
        self,
        db_url: str | None = None,
        engine_kwargs: dict | None = None,
        engine: Engine | None = None,
    ):
        if engine is None:
            if engine_kwargs is None:
                engine_kwargs = {}
            engine = create_engine(db_url, **engine_kwargs)

        self.db_engine = engine

    @staticmethod
    def create_instance_from_engine(engine: Engine) -> "MirrorDatabase":
        """
        Wrap an existing engine, typically an in-memory engine in tests.

        :param engine: The SQLAlchemy engine.
        :return: The database object.
        """
        return MirrorDatabase(engine=engine)

    @property
    def dialect_name(self) -> str:
        return self.db_engine.dialect.name

    @contextmanager
    def session_scope(self, session: Optional[Session] = None) -> Iterator[Session]:
        """
        Yield a session that commits on success and rolls back on error.
        An outer session is yielded as is so that callers can group
        several repository writes in one transaction.

        :param session: An optional session owned by the caller.
        """
        if session is not None:
            yield session
            return
        with Session(self.db_engine) as new_session:
            with new_session.begin():
                yield new_session

    def insert(self, table: Table):
        """
        Build an INSERT supporting ON CONFLICT clauses for the engine's dialect.

        :param table: The target table.
        :return: A dialect insert statement.
        """
        if self.dialect_name == "postgresql":
            return postgresql.insert(table)
        if self.dialect_name == "sqlite":
            return sqlite.insert(table)
        raise IntentSyncError(f"Unsupported database dialect: {self.dialect_name}")

    def greatest(self, left, right):
        """
        SQL expression for the greater of two values.
        SQLite spells GREATEST as the two-argument scalar MAX.
        """
        if self.dialect_name == "sqlite":
            return func.max(left, right)
        return func.greatest(left, right)

    def schema_exists(self) -> bool:
        return inspect(self.db_engine).has_table(IntentRow.__tablename__)

    def ensure_schema(self) -> bool:
        """
        Create the mirror schema if the intents table is missing.

        :return: True if the schema was created.
        """
        if self.schema_exists():
            return False
        _LOG.info("Database schema not initialized, creating tables")
        SQLModel.metadata.create_all(self.db_engine)
        return True

    def check_connection(self):
        """
        Run a trivial query to fail fast on a bad connection string.
        """
        with Session(self.db_engine) as session:
            session.execute(text("SELECT 1")).one()

    def get_stats(self) -> dict:
        """
        Summary counters for the mirror.

        :return: Dictionary of counts plus the max intent id
            and the most recent intent update time.
        """
        with Session(self.db_engine) as session:

            def count(model) -> int:
                return session.exec(select(func.count()).select_from(model)).one()

            max_intent_id = session.exec(select(func.max(IntentRow.id))).one()
            last_update = session.exec(select(func.max(IntentRow.updated_at))).one()
            return {
                "total_intents": count(IntentRow),
                "total_fills": count(FillTransactionRow),
                "total_deposits": count(DepositTransactionRow),
                "total_evm_fill_events": count(EvmFillEventRow),
                "total_evm_deposit_events": count(EvmDepositEventRow),
                "max_intent_id": max_intent_id or 0,
                "last_update": last_update,
            }

    def dispose(self):
        self.db_engine.dispose()
