"""intentsync

Mirrors cross-chain intents and their settlement events into a SQL database
"""

from intentsync.core.config import MonitorSettings
from intentsync.core.cosmos_transaction_scanner import CosmosTransactionScanner
from intentsync.core.database import MirrorDatabase
from intentsync.core.event_linker import EventLinker
from intentsync.core.evm_chain_client import EvmChainClient
from intentsync.core.evm_chain_config import EvmChainConfig, get_chains_for_network
from intentsync.core.evm_event_repository import EvmEventRepository
from intentsync.core.evm_log_syncer import EvmLogSyncer
from intentsync.core.evm_sync_state_repository import EvmSyncStateRepository
from intentsync.core.exceptions import (
    EvmLogDecodeError,
    IntentSyncError,
    LedgerClientError,
    UnknownChainError,
)
from intentsync.core.intent_backfill import IntentBackfillSynchronizer
from intentsync.core.intent_ledger_client import IntentLedgerClient
from intentsync.core.intent_repository import IntentRepository
from intentsync.core.models import derive_intent_status, is_intent_pending
from intentsync.core.monitor import Monitor
from intentsync.core.pending_reconciler import PendingIntentReconciler
from intentsync.core.transaction_repository import TransactionRepository
from intentsync.core.tx_search_client import TransactionSearchClient
from intentsync.core.types import Intent, IntentStatus
from intentsync.utils.log import get_default_logger

__all__ = [
    "Monitor",
    "MonitorSettings",
    "MirrorDatabase",
    "IntentRepository",
    "TransactionRepository",
    "EvmEventRepository",
    "EvmSyncStateRepository",
    "IntentLedgerClient",
    "TransactionSearchClient",
    "EvmChainClient",
    "EvmChainConfig",
    "get_chains_for_network",
    "IntentBackfillSynchronizer",
    "PendingIntentReconciler",
    "CosmosTransactionScanner",
    "EvmLogSyncer",
    "EventLinker",
    "Intent",
    "IntentStatus",
    "derive_intent_status",
    "is_intent_pending",
    "IntentSyncError",
    "LedgerClientError",
    "EvmLogDecodeError",
    "UnknownChainError",
    "get_default_logger",
]
