"""
The polling loop that keeps the mirror of one network up to date.

Every tick runs five phases in order: new-intent backfill, pending intent
reconciliation, Cosmos transaction scan, EVM event sync and event linking.
A failing phase is logged and the tick continues with the next one.
"""

import asyncio
from typing import Callable, Dict, Iterable, List, Optional, TypeVar

from intentsync.core.config import MonitorSettings
from intentsync.core.cosmos_transaction_scanner import CosmosTransactionScanner
from intentsync.core.database import MirrorDatabase
from intentsync.core.event_linker import EventLinker
from intentsync.core.evm_chain_client import EvmChainClient
from intentsync.core.evm_event_repository import EvmEventRepository
from intentsync.core.evm_log_syncer import EvmLogSyncer
from intentsync.core.evm_sync_state_repository import EvmSyncStateRepository
from intentsync.core.exceptions import UnknownChainError
from intentsync.core.intent_backfill import IntentBackfillSynchronizer
from intentsync.core.intent_ledger_client import IntentLedgerClient
from intentsync.core.intent_repository import IntentRepository
from intentsync.core.pending_reconciler import PendingIntentReconciler
from intentsync.core.transaction_repository import TransactionRepository
from intentsync.core.tx_search_client import TransactionSearchClient
from intentsync.core.types import (
    BackfillResult,
    EvmChainSummary,
    EvmSyncResult,
    EvmSyncSummary,
    LinkResult,
    ReconcileResult,
    TransactionScanResult,
)
from intentsync.utils.error_utils import describe_error
from intentsync.utils.log import get_context_logger

T = TypeVar("T")


class Monitor:
    """
    Runs the synchronization phases for one network against one store.
    """

    # pylint: disable-msg=too-many-arguments
    def __init__(
        self,
        network: str,
        db: MirrorDatabase,
        ledger_client: IntentLedgerClient,
        search_client: TransactionSearchClient,
        evm_clients: Iterable[EvmChainClient] = (),
        poll_interval_seconds: float = 10,
        evm_sync_enabled: bool = True,
        refetch_missing: bool = False,
    ):
        """
        :param network: Network name, used for log context.
        :param db: The mirror store.
        :param ledger_client: Intent ledger client.
        :param search_client: Transaction search client.
        :param evm_clients: One client per monitored EVM chain.
        :param poll_interval_seconds: Delay between ticks.
        :param evm_sync_enabled: False to skip the EVM sync phase.
        :param refetch_missing: Look up pending intents missing from the
            reconciliation snapshot one by one.
        """
        self.network = network
        self.db = db
        self.poll_interval_seconds = poll_interval_seconds
        self.evm_sync_enabled = evm_sync_enabled
        self.log = get_context_logger(__name__, network)

        self.intent_repo = IntentRepository(db)
        self.transaction_repo = TransactionRepository(db)
        self.evm_event_repo = EvmEventRepository(db)
        self.sync_state_repo = EvmSyncStateRepository(db)

        self.backfill = IntentBackfillSynchronizer(ledger_client, self.intent_repo, network)
        self.reconciler = PendingIntentReconciler(
            ledger_client, self.intent_repo, network, refetch_missing=refetch_missing
        )
        self.scanner = CosmosTransactionScanner(
            search_client, self.transaction_repo, network
        )
        self.evm_syncers: Dict[int, EvmLogSyncer] = {
            client.config.chain_id: EvmLogSyncer(
                client,
                db,
                network,
                event_repo=self.evm_event_repo,
                sync_state_repo=self.sync_state_repo,
            )
            for client in evm_clients
        }
        self.linker = EventLinker(self.evm_event_repo, self.intent_repo, network)

        self._running = False
        self._stop_requested = False
        self._wakeup: Optional[asyncio.Event] = None

    @staticmethod
    def create_instance_from_settings(settings: MonitorSettings) -> "Monitor":
        """
        Build a monitor with real clients from settings.

        :param settings: The monitor settings.
        :return: The monitor.
        """
        return Monitor(
            network=settings.network,
            db=MirrorDatabase(settings.database_url, {"pool_pre_ping": True}),
            ledger_client=IntentLedgerClient(settings.grpc_url),
            search_client=TransactionSearchClient(settings.tx_search_url),
            evm_clients=[EvmChainClient(chain) for chain in settings.evm_chains],
            poll_interval_seconds=settings.poll_interval_seconds,
            evm_sync_enabled=settings.evm_sync_enabled,
        )

    @staticmethod
    def create_instance_from_env(dotenv_path: Optional[str] = ".env") -> "Monitor":
        return Monitor.create_instance_from_settings(
            MonitorSettings.create_instance_from_env(dotenv_path)
        )

    def initialize(self):
        """
        Check the store connection, create the schema if it is missing
        and seed EVM cursors from already stored events.
        Errors here are fatal to start-up.
        """
        self.db.check_connection()
        self.log.info("Connected to database")
        if self.db.ensure_schema():
            self.log.info("Database schema created")
        seeded = self.sync_state_repo.backfill_from_existing_events()
        if seeded:
            self.log.info("Seeded %d EVM sync cursor(s)", seeded)
        self.log.info(
            "Monitoring %d EVM chain(s): %s",
            len(self.evm_syncers),
            ", ".join(s.config.name for s in self.evm_syncers.values()) or "none",
        )

    # Individual phases.

    def compare_intent_ids(self) -> dict:
        """
        :return: Local and remote max intent ids, the gap and whether a sync is needed.
        """
        comparison = self.backfill.compare()
        self.log.info(
            "Intent ids: database max %d, network max %d, gap %d",
            comparison.local_max,
            comparison.remote_max,
            comparison.gap,
        )
        return {
            "database_max_id": comparison.local_max,
            "network_max_id": comparison.remote_max,
            "gap": comparison.gap,
            "needs_sync": comparison.needs_sync,
        }

    def get_stats(self) -> dict:
        return self.db.get_stats()

    def sync_new_intents(self) -> BackfillResult:
        return self.backfill.backfill()

    def sync_all_intents(self) -> BackfillResult:
        return self.backfill.sync_all()

    def update_pending_intents(self) -> ReconcileResult:
        return self.reconciler.reconcile()

    def update_transactions(self) -> TransactionScanResult:
        return self.scanner.scan()

    def sync_all_transactions(self) -> TransactionScanResult:
        return self.scanner.sync_all()

    def link_evm_events(self) -> LinkResult:
        return self.linker.link()

    def sync_evm_chain(self, chain_id: int) -> EvmSyncResult:
        """
        Run one chain's syncer.

        :param chain_id: The EVM chain id.
        :return: The chain's sync result.
        :raises UnknownChainError: If no syncer is configured for the chain.
        """
        syncer = self.evm_syncers.get(chain_id)
        if syncer is None:
            raise UnknownChainError(chain_id)
        return syncer.sync_once()

    async def sync_all_evm_chains(self) -> EvmSyncSummary:
        """
        Sync all chains concurrently; a failing chain does not affect the others.

        :return: Totals plus a per-chain summary in configuration order.
        """
        loop = asyncio.get_running_loop()
        chain_ids = list(self.evm_syncers)
        outcomes = await asyncio.gather(
            *[
                loop.run_in_executor(None, self.sync_evm_chain, chain_id)
                for chain_id in chain_ids
            ],
            return_exceptions=True,
        )

        results: List[EvmChainSummary] = []
        for chain_id, outcome in zip(chain_ids, outcomes):
            syncer = self.evm_syncers[chain_id]
            if isinstance(outcome, BaseException):
                syncer.log.error("Failed to sync: %s", outcome)
                results.append(
                    EvmChainSummary(
                        chain_id=chain_id,
                        chain_name=syncer.config.name,
                        fill_events=0,
                        deposit_events=0,
                        success=False,
                        error=describe_error(outcome),
                    )
                )
            else:
                results.append(
                    EvmChainSummary(
                        chain_id=chain_id,
                        chain_name=outcome.chain_name,
                        fill_events=outcome.fill_events,
                        deposit_events=outcome.deposit_events,
                        success=True,
                    )
                )

        summary = EvmSyncSummary(
            total_fill_events=sum(r.fill_events for r in results),
            total_deposit_events=sum(r.deposit_events for r in results),
            results=results,
        )
        failed = [r for r in results if not r.success]
        if failed:
            self.log.warning(
                "EVM sync: %d/%d chains failed", len(failed), len(results)
            )
        return summary

    # The loop.

    async def _run_phase(self, name: str, phase: Callable[[], T]) -> Optional[T]:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, phase)
        except Exception as e:  # pylint: disable=broad-except
            self.log.error("Phase %s failed: %s", name, e)
            return None

    async def run_once(self) -> Dict[str, object]:
        """
        Run one tick of all phases in order.
        A stop request skips the phases not yet started.

        :return: Phase name to result; None for a failed or skipped phase.
        """
        phases = [
            ("new_intents", self.sync_new_intents),
            ("pending_intents", self.update_pending_intents),
            ("transactions", self.update_transactions),
        ]
        results: Dict[str, object] = {}
        for name, phase in phases:
            if self._stop_requested:
                results[name] = None
                continue
            results[name] = await self._run_phase(name, phase)

        results["evm_events"] = None
        if self.evm_sync_enabled and self.evm_syncers and not self._stop_requested:
            try:
                results["evm_events"] = await self.sync_all_evm_chains()
            except Exception as e:  # pylint: disable=broad-except
                self.log.error("Phase evm_events failed: %s", e)

        results["link_events"] = (
            None
            if self._stop_requested
            else await self._run_phase("link_events", self.link_evm_events)
        )
        return results

    async def start_monitoring(self):
        """
        Run ticks until stop_monitoring() is called.
        Ticks never overlap: the interval starts after a tick completes.
        """
        if self._running:
            self.log.info("Monitor is already running")
            return

        self._running = True
        self._stop_requested = False
        self._wakeup = asyncio.Event()
        self.log.info(
            "Starting monitoring loop (every %ss)", self.poll_interval_seconds
        )
        try:
            while not self._stop_requested:
                await self.run_once()
                if self._stop_requested:
                    break
                try:
                    await asyncio.wait_for(
                        self._wakeup.wait(), timeout=self.poll_interval_seconds
                    )
                except asyncio.TimeoutError:
                    pass
        finally:
            self._running = False
            self.log.info("Monitoring loop stopped")

    def stop_monitoring(self):
        """
        Ask the loop to stop after the phase in progress.
        """
        self.log.info("Stopping monitoring loop")
        self._stop_requested = True
        if self._wakeup is not None:
            self._wakeup.set()

    def is_monitoring(self) -> bool:
        return self._running

    def set_poll_interval(self, seconds: float):
        if seconds <= 0:
            raise ValueError("Poll interval must be positive")
        self.poll_interval_seconds = seconds

    def close(self):
        self.db.dispose()
