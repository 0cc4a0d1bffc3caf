"""
EVM Fill / Deposit events and their link to intents.
"""

from dataclasses import asdict
from typing import Dict, Iterable, List, Optional

from sqlalchemy import func, update
from sqlmodel import Session, select

from intentsync.core.database import MirrorDatabase
from intentsync.core.models import EvmDepositEventRow, EvmFillEventRow
from intentsync.core.types import DepositEvent, FillEvent

UNLINKED_BATCH_LIMIT = 1000


class EvmEventRepository:
    """
    Stores normalized EVM events keyed by (tx_hash, log_index).
    The only mutation after insert is setting intent_id.
    """

    def __init__(self, db: MirrorDatabase):
        self.db = db

    def _upsert(
        self, model, values: List[dict], update_columns: List[str], session
    ) -> int:
        if not values:
            return 0
        # One statement may not touch the same conflict key twice.
        unique: Dict[tuple, dict] = {}
        for value in values:
            unique[(value["tx_hash"], value["log_index"])] = value
        table = model.__table__
        stmt = self.db.insert(table).values(list(unique.values()))
        set_ = {column: stmt.excluded[column] for column in update_columns}
        # A re-sync carries no intent_id and must not clear an existing link.
        set_["intent_id"] = func.coalesce(stmt.excluded.intent_id, table.c.intent_id)
        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c.tx_hash, table.c.log_index], set_=set_
        )
        with self.db.session_scope(session) as s:
            s.execute(stmt)
        return len(unique)

    def upsert_fill_events(
        self, events: Iterable[FillEvent], session: Optional[Session] = None
    ) -> int:
        """
        Insert or refresh fill events.

        :param events: The normalized events.
        :param session: An optional outer session.
        :return: Number of distinct events written.
        """
        return self._upsert(
            EvmFillEventRow,
            [asdict(e) for e in events],
            ["request_hash", "chain_id", "block_number", "from_address", "solver_address"],
            session,
        )

    def upsert_deposit_events(
        self, events: Iterable[DepositEvent], session: Optional[Session] = None
    ) -> int:
        """
        Insert or refresh deposit events.

        :param events: The normalized events.
        :param session: An optional outer session.
        :return: Number of distinct events written.
        """
        return self._upsert(
            EvmDepositEventRow,
            [asdict(e) for e in events],
            ["request_hash", "chain_id", "block_number", "from_address", "gas_refunded"],
            session,
        )

    def _get_unlinked(self, model, limit: int) -> list:
        statement = (
            select(model)
            .where(model.intent_id.is_(None))
            .order_by(model.created_at.desc(), model.id.desc())
            .limit(limit)
        )
        with Session(self.db.db_engine) as session:
            return list(session.exec(statement).all())

    def get_unlinked_fill_events(
        self, limit: int = UNLINKED_BATCH_LIMIT
    ) -> List[EvmFillEventRow]:
        return self._get_unlinked(EvmFillEventRow, limit)

    def get_unlinked_deposit_events(
        self, limit: int = UNLINKED_BATCH_LIMIT
    ) -> List[EvmDepositEventRow]:
        return self._get_unlinked(EvmDepositEventRow, limit)

    def _count_unlinked(self, model) -> int:
        with Session(self.db.db_engine) as session:
            return session.exec(
                select(func.count()).select_from(model).where(model.intent_id.is_(None))
            ).one()

    def count_unlinked_fill_events(self) -> int:
        return self._count_unlinked(EvmFillEventRow)

    def count_unlinked_deposit_events(self) -> int:
        return self._count_unlinked(EvmDepositEventRow)

    def _link(self, model, event_id: int, intent_id: int) -> None:
        with self.db.session_scope() as session:
            session.execute(
                update(model).where(model.id == event_id).values(intent_id=intent_id)
            )

    def link_fill_event(self, event_id: int, intent_id: int):
        self._link(EvmFillEventRow, event_id, intent_id)

    def link_deposit_event(self, event_id: int, intent_id: int):
        self._link(EvmDepositEventRow, event_id, intent_id)

    def get_fill_events_by_intent_id(self, intent_id: int) -> List[EvmFillEventRow]:
        with Session(self.db.db_engine) as session:
            statement = (
                select(EvmFillEventRow)
                .where(EvmFillEventRow.intent_id == intent_id)
                .order_by(EvmFillEventRow.block_number.desc())
            )
            return list(session.exec(statement).all())

    def get_deposit_events_by_intent_id(self, intent_id: int) -> List[EvmDepositEventRow]:
        with Session(self.db.db_engine) as session:
            statement = (
                select(EvmDepositEventRow)
                .where(EvmDepositEventRow.intent_id == intent_id)
                .order_by(EvmDepositEventRow.block_number.desc())
            )
            return list(session.exec(statement).all())

    def get_fill_event(self, tx_hash: str, log_index: int) -> Optional[EvmFillEventRow]:
        with Session(self.db.db_engine) as session:
            statement = select(EvmFillEventRow).where(
                EvmFillEventRow.tx_hash == tx_hash, EvmFillEventRow.log_index == log_index
            )
            return session.exec(statement).first()

    def count_fill_events(self) -> int:
        with Session(self.db.db_engine) as session:
            return session.exec(select(func.count()).select_from(EvmFillEventRow)).one()

    def count_deposit_events(self) -> int:
        with Session(self.db.db_engine) as session:
            return session.exec(select(func.count()).select_from(EvmDepositEventRow)).one()
