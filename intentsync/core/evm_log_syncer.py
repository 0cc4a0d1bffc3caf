"""
Incremental Fill / Deposit event sync for one EVM chain.
"""

import time
from typing import Callable, Optional

from intentsync.core.database import MirrorDatabase
from intentsync.core.evm_chain_client import EvmChainClient
from intentsync.core.evm_chain_config import EvmChainConfig
from intentsync.core.evm_event_repository import EvmEventRepository
from intentsync.core.evm_sync_state_repository import EvmSyncStateRepository
from intentsync.core.types import EvmSyncResult
from intentsync.utils.log import get_context_logger

# Delay between consecutive block windows.
BATCH_DELAY_SECONDS = 0.1


class EvmLogSyncer:
    """
    Advances one chain's cursor from the last checked block to the head.

    Each block window is stored together with the cursor in one transaction
    before the next window is fetched, so a crash loses at most one window
    and a restart resumes at the stored cursor + 1.
    """

    def __init__(
        self,
        client: EvmChainClient,
        db: MirrorDatabase,
        network: str,
        event_repo: Optional[EvmEventRepository] = None,
        sync_state_repo: Optional[EvmSyncStateRepository] = None,
        batch_delay: float = BATCH_DELAY_SECONDS,
        sleep_fn: Callable[[float], None] = time.sleep,
    ):
        self.client = client
        self.db = db
        self.event_repo = event_repo or EvmEventRepository(db)
        self.sync_state_repo = sync_state_repo or EvmSyncStateRepository(db)
        self.batch_delay = batch_delay
        self.sleep_fn = sleep_fn
        self.log = get_context_logger(__name__, network, self.config.name)

    @property
    def config(self) -> EvmChainConfig:
        return self.client.config

    def get_start_block(self) -> int:
        """
        :return: The first block not yet processed, never before the deployment block.
        """
        last_checked = self.sync_state_repo.get_last_checked_block(self.config.chain_id)
        if last_checked is None:
            return self.config.deployment_block
        return max(last_checked + 1, self.config.deployment_block)

    def _store_window(self, fills, deposits, to_block: int):
        with self.db.session_scope() as session:
            self.event_repo.upsert_fill_events(fills, session=session)
            self.event_repo.upsert_deposit_events(deposits, session=session)
            self.sync_state_repo.update_last_checked_block(
                self.config.chain_id, to_block, session=session
            )

    def sync_once(self) -> EvmSyncResult:
        """
        Sync from the cursor to the current head in windows of batch_size blocks.
        Errors propagate; windows stored before the error stay stored.

        :return: Event counts and the block range covered.
        """
        from_block = self.get_start_block()
        to_block = self.client.get_current_block()
        if from_block > to_block:
            return EvmSyncResult(
                chain_id=self.config.chain_id,
                chain_name=self.config.name,
                fill_events=0,
                deposit_events=0,
                from_block=from_block,
                to_block=to_block,
            )

        self.log.info(
            "Syncing blocks %d to %d (%d blocks)",
            from_block,
            to_block,
            to_block - from_block + 1,
        )
        total_fills = 0
        total_deposits = 0
        window_start = from_block
        while window_start <= to_block:
            window_end = min(window_start + self.config.batch_size - 1, to_block)
            fills, deposits = self.client.fetch_batch(window_start, window_end)
            self._store_window(fills, deposits, window_end)
            if fills or deposits:
                self.log.info(
                    "Stored %d fills and %d deposits from blocks %d to %d",
                    len(fills),
                    len(deposits),
                    window_start,
                    window_end,
                )
            total_fills += len(fills)
            total_deposits += len(deposits)

            window_start = window_end + 1
            if window_start <= to_block:
                self.sleep_fn(self.batch_delay)

        self.log.info(
            "Synced %d fill events and %d deposit events", total_fills, total_deposits
        )
        return EvmSyncResult(
            chain_id=self.config.chain_id,
            chain_name=self.config.name,
            fill_events=total_fills,
            deposit_events=total_deposits,
            from_block=from_block,
            to_block=to_block,
        )
