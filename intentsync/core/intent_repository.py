"""
Intent rows and their Source / Destination / SignatureData children.
"""

from typing import Dict, List, Optional

from sqlalchemy import delete, func
from sqlmodel import Session, select

from intentsync.core.database import MirrorDatabase
from intentsync.core.models import (
    IntentDestinationRow,
    IntentRow,
    IntentSignatureDataRow,
    IntentSourceRow,
)
from intentsync.core.types import (
    Intent,
    IntentDestination,
    IntentSource,
    SignatureDatum,
)

_CHILD_MODELS = (IntentSourceRow, IntentDestinationRow, IntentSignatureDataRow)


class IntentRepository:
    """
    Reads and writes intents.
    An upsert replaces the intent's children wholesale in the same transaction.
    """

    def __init__(self, db: MirrorDatabase):
        self.db = db

    def upsert_intent(self, intent: Intent, session: Optional[Session] = None):
        """
        Insert an intent or update its mutable status fields,
        then replace its sources, destinations and signature data.

        :param intent: The intent to store.
        :param session: An optional outer session; the caller commits it.
        """
        table = IntentRow.__table__
        stmt = self.db.insert(table).values(
            id=intent.id,
            user_address=intent.user,
            expiry=intent.expiry,
            creation_block=intent.creation_block,
            destination_chain_id=intent.destination_chain_id,
            destination_universe=intent.destination_universe,
            nonce=intent.nonce,
            deposited=intent.deposited,
            fulfilled=intent.fulfilled,
            refunded=intent.refunded,
            fulfilled_by=intent.fulfilled_by,
            fulfilled_at=intent.fulfilled_at,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c.id],
            set_={
                "deposited": stmt.excluded.deposited,
                "fulfilled": stmt.excluded.fulfilled,
                "refunded": stmt.excluded.refunded,
                "fulfilled_by": stmt.excluded.fulfilled_by,
                "fulfilled_at": stmt.excluded.fulfilled_at,
                "updated_at": func.now(),
            },
        )

        with self.db.session_scope(session) as s:
            s.execute(stmt)
            for model in _CHILD_MODELS:
                s.execute(delete(model).where(model.intent_id == intent.id))
            s.add_all(self._child_rows(intent))
            s.flush()

    @staticmethod
    def _child_rows(intent: Intent) -> list:
        rows: list = [
            IntentSourceRow(
                intent_id=intent.id,
                universe=source.universe,
                chain_id=source.chain_id,
                token_address=source.token_address,
                value=source.value,
                status=source.status,
                collection_fee_required=source.collection_fee_required,
            )
            for source in intent.sources
        ]
        rows.extend(
            IntentDestinationRow(
                intent_id=intent.id,
                token_address=destination.token_address,
                value=destination.value,
            )
            for destination in intent.destinations
        )
        rows.extend(
            IntentSignatureDataRow(
                intent_id=intent.id,
                universe=datum.universe,
                address=datum.address,
                signature=datum.signature,
                hash=datum.hash,
            )
            for datum in intent.signature_data
        )
        return rows

    def get_max_intent_id(self) -> int:
        """
        :return: The highest stored intent id, 0 when the table is empty.
        """
        with Session(self.db.db_engine) as session:
            max_id = session.exec(select(func.max(IntentRow.id))).one()
        return max_id or 0

    def count_intents(self) -> int:
        with Session(self.db.db_engine) as session:
            return session.exec(select(func.count()).select_from(IntentRow)).one()

    def get_intent_by_id(self, intent_id: int) -> Optional[Intent]:
        """
        Load one intent with its children.

        :param intent_id: The intent id.
        :return: The intent or None if it is not stored.
        """
        with Session(self.db.db_engine) as session:
            row = session.get(IntentRow, intent_id)
            if row is None:
                return None
            return self._to_intent(row, session)

    def get_pending_intents(self, now: int) -> List[Intent]:
        """
        Select intents that are neither fulfilled nor refunded and not yet expired.
        Children are not loaded; reconciliation only compares status fields.

        :param now: Current time, unix seconds.
        :return: Pending intents in increasing id order.
        """
        statement = (
            select(IntentRow)
            .where(IntentRow.fulfilled == False)  # noqa: E712 pylint: disable=singleton-comparison
            .where(IntentRow.refunded == False)  # noqa: E712 pylint: disable=singleton-comparison
            .where(IntentRow.expiry > now)
            .order_by(IntentRow.id)
        )
        with Session(self.db.db_engine) as session:
            rows = session.exec(statement).all()
            return [self._to_intent(row) for row in rows]

    def find_intent_id_by_hash(self, request_hash: str) -> Optional[int]:
        """
        Resolve a request hash to the intent owning a signature with that hash.

        :param request_hash: The 0x-prefixed content hash.
        :return: The intent id or None when no signature matches.
        """
        statement = (
            select(IntentSignatureDataRow.intent_id)
            .where(IntentSignatureDataRow.hash == request_hash)
            .limit(1)
        )
        with Session(self.db.db_engine) as session:
            return session.exec(statement).first()

    def find_intent_ids_by_hashes(self, request_hashes: List[str]) -> Dict[str, int]:
        """
        Bulk variant of find_intent_id_by_hash.

        :param request_hashes: The hashes to resolve.
        :return: Mapping of matched hash to intent id.
        """
        if not request_hashes:
            return {}
        statement = select(
            IntentSignatureDataRow.hash, IntentSignatureDataRow.intent_id
        ).where(IntentSignatureDataRow.hash.in_(set(request_hashes)))
        with Session(self.db.db_engine) as session:
            matches: Dict[str, int] = {}
            for request_hash, intent_id in session.exec(statement).all():
                matches.setdefault(request_hash, intent_id)
            return matches

    @staticmethod
    def _to_intent(row: IntentRow, session: Optional[Session] = None) -> Intent:
        intent = Intent(
            id=row.id,
            user=row.user_address,
            expiry=row.expiry,
            creation_block=row.creation_block,
            destination_chain_id=row.destination_chain_id,
            destination_universe=row.destination_universe,
            nonce=row.nonce,
            deposited=row.deposited,
            fulfilled=row.fulfilled,
            refunded=row.refunded,
            fulfilled_by=row.fulfilled_by,
            fulfilled_at=row.fulfilled_at,
        )
        if session is None:
            return intent

        sources = session.exec(
            select(IntentSourceRow)
            .where(IntentSourceRow.intent_id == row.id)
            .order_by(IntentSourceRow.id)
        ).all()
        destinations = session.exec(
            select(IntentDestinationRow)
            .where(IntentDestinationRow.intent_id == row.id)
            .order_by(IntentDestinationRow.id)
        ).all()
        signature_data = session.exec(
            select(IntentSignatureDataRow)
            .where(IntentSignatureDataRow.intent_id == row.id)
            .order_by(IntentSignatureDataRow.id)
        ).all()
        intent.sources = [
            IntentSource(
                universe=s.universe,
                chain_id=s.chain_id,
                token_address=s.token_address,
                value=s.value,
                status=s.status,
                collection_fee_required=s.collection_fee_required,
            )
            for s in sources
        ]
        intent.destinations = [
            IntentDestination(token_address=d.token_address, value=d.value)
            for d in destinations
        ]
        intent.signature_data = [
            SignatureDatum(
                universe=d.universe, address=d.address, signature=d.signature, hash=d.hash
            )
            for d in signature_data
        ]
        return intent
