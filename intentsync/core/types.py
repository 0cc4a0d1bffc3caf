"""
Core types exchanged between the remote clients, the synchronizers and the store.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Union


class IntentStatus(str, Enum):
    """
    Display status of an intent.
    Derived on read from the stored flags and the expiry, never stored.
    """

    PENDING = "pending"
    DEPOSITED = "deposited"
    FULFILLED = "fulfilled"
    REFUNDED = "refunded"
    FAILED = "failed"


@dataclass(frozen=True)
class IntentSource:
    """
    One source leg of an intent.
    `value` is a decimal-string big integer.
    """

    universe: int
    chain_id: int
    token_address: str
    value: str
    status: int
    collection_fee_required: int


@dataclass(frozen=True)
class IntentDestination:
    """
    One destination leg of an intent.
    """

    token_address: str
    value: str


@dataclass(frozen=True)
class SignatureDatum:
    """
    Signature data of an intent.
    `hash` is the request hash emitted by the settlement contract's events.
    """

    universe: int
    address: str
    signature: str
    hash: str


@dataclass
class Intent:
    """
    An intent as returned by the intent ledger, normalized to store formats.
    """

    id: int
    user: str
    expiry: int
    creation_block: int
    destination_chain_id: int
    destination_universe: int
    nonce: str
    deposited: bool
    fulfilled: bool
    refunded: bool
    fulfilled_by: Optional[str]
    fulfilled_at: int
    sources: List[IntentSource] = field(default_factory=list)
    destinations: List[IntentDestination] = field(default_factory=list)
    signature_data: List[SignatureDatum] = field(default_factory=list)


@dataclass(frozen=True)
class CosmosTx:
    """
    A transaction returned by the transaction search endpoint.
    `tx` holds the base64-encoded signed envelope.
    """

    hash: str
    height: str
    tx: str


# Settlement packets carried by the Cosmos settlement message.
# Byte fields are raw; callers convert them to hex/decimal/address forms.


@dataclass(frozen=True)
class FillPacket:
    """
    Evidence that a solver filled an intent on its destination chain.
    """

    id: int
    filler_address: bytes
    transaction_hash: bytes


@dataclass(frozen=True)
class DepositPacket:
    """
    Evidence that a user deposited funds for an intent on a source chain.
    """

    id: int
    gas_refunded: bool


Packet = Union[FillPacket, DepositPacket]


@dataclass(frozen=True)
class SettlementMessage:
    """
    A decoded settlement message: exactly one packet plus envelope metadata.
    """

    tx_chain_id: bytes
    tx_universe: int
    packet: Packet


@dataclass(frozen=True)
class FillTransaction:
    """
    Cosmos-layer fill transaction, keyed by its immutable Cosmos hash.
    """

    cosmos_hash: str
    height: str
    intent_id: int
    filler_address: str
    evm_tx_hash: str
    chain_id: str
    universe: int


@dataclass(frozen=True)
class DepositTransaction:
    """
    Cosmos-layer deposit transaction, keyed by its immutable Cosmos hash.
    """

    cosmos_hash: str
    height: str
    intent_id: int
    chain_id: str
    universe: int
    gas_refunded: bool


@dataclass(frozen=True)
class FillEvent:
    """
    Normalized EVM Fill(bytes32 indexed requestHash, address from, address solver) log.
    """

    request_hash: str
    from_address: str
    solver_address: str
    tx_hash: str
    block_number: int
    log_index: int
    chain_id: int


@dataclass(frozen=True)
class DepositEvent:
    """
    Normalized EVM Deposit(bytes32 indexed requestHash, address from, bool gasRefunded) log.
    """

    request_hash: str
    from_address: str
    gas_refunded: bool
    tx_hash: str
    block_number: int
    log_index: int
    chain_id: int


@dataclass(frozen=True)
class IntentComparison:
    """
    Local vs. remote maximum intent id.
    """

    local_max: int
    remote_max: int

    @property
    def gap(self) -> int:
        return self.remote_max - self.local_max

    @property
    def needs_sync(self) -> bool:
        return self.gap > 0


@dataclass(frozen=True)
class BackfillResult:
    fetched: int = 0
    inserted: int = 0
    failed: int = 0


@dataclass(frozen=True)
class ReconcileResult:
    checked: int = 0
    updated: int = 0
    expired: int = 0
    not_found: int = 0


@dataclass(frozen=True)
class TransactionCounts:
    """
    Counts for one Cosmos transaction kind (fills or deposits).
    `failed` is only tracked by the full start-up sync.
    """

    checked: int = 0
    inserted: int = 0
    failed: int = 0


@dataclass(frozen=True)
class TransactionScanResult:
    fills: TransactionCounts = TransactionCounts()
    deposits: TransactionCounts = TransactionCounts()


@dataclass(frozen=True)
class EvmSyncResult:
    """
    Result of one sync pass over a single EVM chain.
    """

    chain_id: int
    chain_name: str
    fill_events: int
    deposit_events: int
    from_block: int
    to_block: int


@dataclass(frozen=True)
class EvmChainSummary:
    chain_id: int
    chain_name: str
    fill_events: int
    deposit_events: int
    success: bool
    error: Optional[str] = None


@dataclass(frozen=True)
class EvmSyncSummary:
    total_fill_events: int
    total_deposit_events: int
    results: List[EvmChainSummary]


@dataclass(frozen=True)
class LinkResult:
    linked_fills: int = 0
    linked_deposits: int = 0
    remaining_unlinked_fills: int = 0
    remaining_unlinked_deposits: int = 0
