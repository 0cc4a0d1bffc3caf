"""
Per-chain block cursors for the EVM log syncers.
"""

import logging
from typing import Dict, Optional

from sqlalchemy import func
from sqlmodel import Session, select

from intentsync.core.database import MirrorDatabase
from intentsync.core.models import EvmDepositEventRow, EvmFillEventRow, EvmSyncStateRow
from intentsync.utils.log import get_default_logger

_LOG = get_default_logger(__name__)
_LOG.setLevel(logging.INFO)


class EvmSyncStateRepository:
    """
    Reads and advances the per-chain cursor.
    Writes take the greater of the stored and the new block,
    so the cursor never regresses even with duplicate writers.
    """

    def __init__(self, db: MirrorDatabase):
        self.db = db

    def get_last_checked_block(self, chain_id: int) -> Optional[int]:
        """
        :param chain_id: The EVM chain id.
        :return: The last processed block, or None if the chain was never synced.
        """
        with Session(self.db.db_engine) as session:
            row = session.get(EvmSyncStateRow, chain_id)
            return None if row is None else row.last_checked_block

    def update_last_checked_block(
        self, chain_id: int, block_number: int, session: Optional[Session] = None
    ):
        """
        Advance the cursor for a chain.

        :param chain_id: The EVM chain id.
        :param block_number: The last block whose events are stored.
        :param session: An optional outer session, used to commit the cursor
            together with the batch's events.
        """
        table = EvmSyncStateRow.__table__
        stmt = self.db.insert(table).values(
            chain_id=chain_id, last_checked_block=block_number
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c.chain_id],
            set_={
                "last_checked_block": self.db.greatest(
                    table.c.last_checked_block, stmt.excluded.last_checked_block
                ),
                "updated_at": func.now(),
            },
        )
        with self.db.session_scope(session) as s:
            s.execute(stmt)

    def backfill_from_existing_events(self) -> int:
        """
        Seed cursors from events already in the store,
        for databases populated before cursors were tracked.

        :return: Number of chains whose cursor was written.
        """
        max_blocks: Dict[int, int] = {}
        with Session(self.db.db_engine) as session:
            for model in (EvmFillEventRow, EvmDepositEventRow):
                statement = select(model.chain_id, func.max(model.block_number)).group_by(
                    model.chain_id
                )
                for chain_id, max_block in session.exec(statement).all():
                    if max_block is None:
                        continue
                    max_blocks[chain_id] = max(max_blocks.get(chain_id, 0), max_block)

        with self.db.session_scope() as session:
            for chain_id, max_block in max_blocks.items():
                self.update_last_checked_block(chain_id, max_block, session=session)

        if max_blocks:
            _LOG.info(
                "Seeded EVM sync cursors for %d chain(s) from existing events",
                len(max_blocks),
            )
        return len(max_blocks)

    def get_all(self) -> Dict[int, int]:
        with Session(self.db.db_engine) as session:
            rows = session.exec(select(EvmSyncStateRow)).all()
            return {row.chain_id: row.last_checked_block for row in rows}
