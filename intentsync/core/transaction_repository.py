"""
Append-only Cosmos fill and deposit transactions.
"""

from dataclasses import asdict
from typing import Iterable, List, Optional, Set

from sqlalchemy import func
from sqlmodel import Session, select

from intentsync.core.database import MirrorDatabase
from intentsync.core.models import DepositTransactionRow, FillTransactionRow
from intentsync.core.types import DepositTransaction, FillTransaction


class TransactionRepository:
    """
    Stores settlement evidence keyed by Cosmos hash.
    Rows are never updated: a second insert of the same hash is a no-op.
    """

    def __init__(self, db: MirrorDatabase):
        self.db = db

    def _insert_ignore(self, model, values: List[dict], session: Optional[Session]) -> int:
        if not values:
            return 0
        table = model.__table__
        stmt = (
            self.db.insert(table)
            .values(values)
            .on_conflict_do_nothing(index_elements=[table.c.cosmos_hash])
        )
        with self.db.session_scope(session) as s:
            result = s.execute(stmt)
            return max(result.rowcount, 0)

    def insert_fill(self, fill: FillTransaction, session: Optional[Session] = None) -> bool:
        """
        Insert a fill transaction.

        :param fill: The fill transaction.
        :param session: An optional outer session.
        :return: True if a new row was written.
        """
        return self._insert_ignore(FillTransactionRow, [asdict(fill)], session) == 1

    def insert_deposit(
        self, deposit: DepositTransaction, session: Optional[Session] = None
    ) -> bool:
        """
        Insert a deposit transaction.

        :param deposit: The deposit transaction.
        :param session: An optional outer session.
        :return: True if a new row was written.
        """
        return self._insert_ignore(DepositTransactionRow, [asdict(deposit)], session) == 1

    def insert_fills(
        self, fills: Iterable[FillTransaction], session: Optional[Session] = None
    ) -> int:
        """
        Insert many fills in one statement.

        :return: Number of new rows.
        """
        values = list({f.cosmos_hash: asdict(f) for f in fills}.values())
        return self._insert_ignore(FillTransactionRow, values, session)

    def insert_deposits(
        self, deposits: Iterable[DepositTransaction], session: Optional[Session] = None
    ) -> int:
        """
        Insert many deposits in one statement.

        :return: Number of new rows.
        """
        values = list({d.cosmos_hash: asdict(d) for d in deposits}.values())
        return self._insert_ignore(DepositTransactionRow, values, session)

    def _existing_hashes(self, model, hashes: Iterable[str]) -> Set[str]:
        hashes = set(hashes)
        if not hashes:
            return set()
        with Session(self.db.db_engine) as session:
            statement = select(model.cosmos_hash).where(model.cosmos_hash.in_(hashes))
            return set(session.exec(statement).all())

    def get_existing_fill_hashes(self, hashes: Iterable[str]) -> Set[str]:
        return self._existing_hashes(FillTransactionRow, hashes)

    def get_existing_deposit_hashes(self, hashes: Iterable[str]) -> Set[str]:
        return self._existing_hashes(DepositTransactionRow, hashes)

    def get_fills_by_intent_id(self, intent_id: int) -> List[FillTransactionRow]:
        with Session(self.db.db_engine) as session:
            statement = select(FillTransactionRow).where(
                FillTransactionRow.intent_id == intent_id
            )
            return list(session.exec(statement).all())

    def get_deposits_by_intent_id(self, intent_id: int) -> List[DepositTransactionRow]:
        with Session(self.db.db_engine) as session:
            statement = select(DepositTransactionRow).where(
                DepositTransactionRow.intent_id == intent_id
            )
            return list(session.exec(statement).all())

    def count_fills(self) -> int:
        with Session(self.db.db_engine) as session:
            return session.exec(select(func.count()).select_from(FillTransactionRow)).one()

    def count_deposits(self) -> int:
        with Session(self.db.db_engine) as session:
            return session.exec(
                select(func.count()).select_from(DepositTransactionRow)
            ).one()
