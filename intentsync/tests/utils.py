"""
intentsync test utils
"""

import logging
from typing import Dict, List, Optional, Tuple

from sqlalchemy.pool import StaticPool
from sqlmodel import create_engine

from intentsync.core import ledger_proto
from intentsync.core.database import MirrorDatabase
from intentsync.core.evm_chain_config import EvmChainConfig
from intentsync.core.intent_ledger_client import IntentLedgerClient
from intentsync.core.types import (
    DepositEvent,
    DepositTransaction,
    FillEvent,
    FillTransaction,
    Intent,
    IntentDestination,
    IntentSource,
    SignatureDatum,
)
from intentsync.utils.log import get_default_logger

_LOG = get_default_logger(__name__)
_LOG.setLevel(logging.INFO)

TEST_NETWORK = "TEST"

# A fixed "now" far from any expiry used in tests.
NOW = 1_700_000_000
HOUR = 60 * 60

USER_ADDRESS = "0x00000000000000000000000000000000000000aa"
SOLVER_ADDRESS = "0x00000000000000000000000000000000000000bb"
TOKEN_ADDRESS = "0x00000000000000000000000000000000000000cc"


def create_test_database() -> MirrorDatabase:
    """
    Create an in-memory mirror with the schema in place.
    One shared connection so that executor threads see the same data.

    :return: The database object.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    db = MirrorDatabase.create_instance_from_engine(engine)
    db.ensure_schema()
    return db


def request_hash(intent_id: int) -> str:
    """
    Deterministic 32-byte request hash for an intent id.
    """
    return "0x" + f"{intent_id:064x}"


def tx_hash(n: int) -> str:
    return "0x" + f"{n:064x}"


def make_intent(
    intent_id: int,
    expiry: int = NOW + HOUR,
    deposited: bool = False,
    fulfilled: bool = False,
    refunded: bool = False,
    fulfilled_by: Optional[str] = None,
    fulfilled_at: int = 0,
    hashes: Optional[List[str]] = None,
) -> Intent:
    """
    Build an intent with one source, one destination and one signature per hash.
    """
    if hashes is None:
        hashes = [request_hash(intent_id)]
    return Intent(
        id=intent_id,
        user=USER_ADDRESS,
        expiry=expiry,
        creation_block=1000 + intent_id,
        destination_chain_id=8453,
        destination_universe=0,
        nonce="0x" + f"{intent_id:064x}",
        deposited=deposited,
        fulfilled=fulfilled,
        refunded=refunded,
        fulfilled_by=fulfilled_by,
        fulfilled_at=fulfilled_at,
        sources=[
            IntentSource(
                universe=0,
                chain_id=10,
                token_address=TOKEN_ADDRESS,
                value="1000000000000000000",
                status=0,
                collection_fee_required=0,
            )
        ],
        destinations=[
            IntentDestination(token_address=TOKEN_ADDRESS, value="999000000000000000")
        ],
        signature_data=[
            SignatureDatum(
                universe=0, address=USER_ADDRESS, signature="0x1234", hash=hash_
            )
            for hash_ in hashes
        ],
    )


def make_fill_event(
    n: int,
    intent_id: int,
    block_number: int = 100,
    chain_id: int = 1,
    log_index: int = 0,
) -> FillEvent:
    return FillEvent(
        request_hash=request_hash(intent_id),
        from_address=USER_ADDRESS,
        solver_address=SOLVER_ADDRESS,
        tx_hash=tx_hash(n),
        block_number=block_number,
        log_index=log_index,
        chain_id=chain_id,
    )


def make_deposit_event(
    n: int,
    intent_id: int,
    block_number: int = 100,
    chain_id: int = 1,
    log_index: int = 0,
    gas_refunded: bool = False,
) -> DepositEvent:
    return DepositEvent(
        request_hash=request_hash(intent_id),
        from_address=USER_ADDRESS,
        gas_refunded=gas_refunded,
        tx_hash=tx_hash(n),
        block_number=block_number,
        log_index=log_index,
        chain_id=chain_id,
    )


def make_chain_config(
    chain_id: int = 1,
    name: str = "TestChain",
    deployment_block: int = 100,
    batch_size: int = 10,
) -> EvmChainConfig:
    return EvmChainConfig(
        chain_id=chain_id,
        name=name,
        rpc_url="http://localhost:8545",
        contract_address="0x00000000000000000000000000000000000000dd",
        deployment_block=deployment_block,
        batch_size=batch_size,
        env_prefix="TEST",
    )


class FakeLedgerClient:
    """
    In-memory stand-in for IntentLedgerClient.
    Listings are served highest id first, like the ledger.
    """

    def __init__(self, intents: Optional[List[Intent]] = None):
        self.intents: Dict[int, Intent] = {i.id: i for i in intents or []}
        self.paged_calls: List[Tuple[int, int]] = []
        self.lookups: List[int] = []
        self.missing_ids: set = set()

    def put(self, intent: Intent):
        self.intents[intent.id] = intent

    def get_max_intent_id(self) -> int:
        return max(self.intents) if self.intents else 0

    def query_intents_paged(
        self, count: int, page_size: int = 100, page_delay: float = 0, min_id: int = 0
    ) -> List[Intent]:
        self.paged_calls.append((count, min_id))
        listing = [
            self.intents[i]
            for i in sorted(self.intents, reverse=True)
            if i not in self.missing_ids
        ]
        return listing[:count]

    def query_intent(self, intent_id: int) -> Optional[Intent]:
        self.lookups.append(intent_id)
        return self.intents.get(intent_id)


class GrowingLedgerClient(IntentLedgerClient):
    """
    Ledger client whose listing grows while it is being paged.
    Paging goes through the real IntentLedgerClient.query_intents_paged.

    :param intents: Intents on the ledger at the start.
    :param arrivals: Request number (1-based) to the intents
        created right after that request is served.
    """

    def __init__(
        self, intents: List[Intent], arrivals: Optional[Dict[int, List[Intent]]] = None
    ):
        super().__init__("https://ledger.test")
        self.intents: Dict[int, Intent] = {i.id: i for i in intents}
        self.arrivals = arrivals or {}
        self.requests: List[Tuple[int, int]] = []

    def query_intents(self, limit: int = 10, offset: int = 0) -> List[Intent]:
        self.requests.append((limit, offset))
        listing = [self.intents[i] for i in sorted(self.intents, reverse=True)]
        page = listing[offset : offset + limit]
        for intent in self.arrivals.get(len(self.requests), []):
            self.intents[intent.id] = intent
        return page


def make_fill_transaction(n: int, intent_id: int = 1) -> FillTransaction:
    return FillTransaction(
        cosmos_hash=f"FILL{n:04d}",
        height=str(n),
        intent_id=intent_id,
        filler_address=SOLVER_ADDRESS,
        evm_tx_hash=tx_hash(n),
        chain_id="8453",
        universe=0,
    )


def make_deposit_transaction(n: int, intent_id: int = 1) -> DepositTransaction:
    return DepositTransaction(
        cosmos_hash=f"DEPOSIT{n:04d}",
        height=str(n),
        intent_id=intent_id,
        chain_id="10",
        universe=0,
        gas_refunded=True,
    )


class FakeSearchClient:
    """
    In-memory stand-in for TransactionSearchClient.
    """

    def __init__(self, fills=None, deposits=None):
        self.fills = fills or []
        self.deposits = deposits or []
        self.limits = []

    def query_transactions(self, intent_id=None, limit=10000):
        self.limits.append(limit)
        return list(self.fills), list(self.deposits)


class FakeEvmChainClient:
    """
    In-memory stand-in for EvmChainClient serving pre-built events by block.
    """

    def __init__(
        self,
        config: EvmChainConfig,
        head: int,
        fills: Optional[List[FillEvent]] = None,
        deposits: Optional[List[DepositEvent]] = None,
        fail_from_block: Optional[int] = None,
    ):
        self.config = config
        self.head = head
        self.fills = fills or []
        self.deposits = deposits or []
        self.fail_from_block = fail_from_block
        self.windows: List[Tuple[int, int]] = []

    def get_current_block(self) -> int:
        return self.head

    def fetch_batch(
        self, from_block: int, to_block: int
    ) -> Tuple[List[FillEvent], List[DepositEvent]]:
        if self.fail_from_block is not None and from_block >= self.fail_from_block:
            raise ConnectionError(f"RPC unavailable at block {from_block}")
        self.windows.append((from_block, to_block))
        return (
            [e for e in self.fills if from_block <= e.block_number <= to_block],
            [e for e in self.deposits if from_block <= e.block_number <= to_block],
        )


# Signed settlement envelopes.

FILLER = bytes.fromhex("00" * 12 + "11" * 20)
EVM_TX_HASH = bytes.fromhex("22" * 32)
BASE_CHAIN_ID = (8453).to_bytes(32, byteorder="big")


def settlement_any(packet_field: Optional[str] = None, packet=None, universe: int = 0):
    message = ledger_proto.MsgDoubleCheckTx(
        creator="cosmos1creator", tx_universe=universe, tx_chain_id=BASE_CHAIN_ID
    )
    if packet_field is not None:
        getattr(message, packet_field).CopyFrom(packet)
    return ledger_proto.AnyMessage(
        type_url=ledger_proto.SETTLEMENT_MSG_TYPE_URL,
        value=message.SerializeToString(),
    )


def fill_any(intent_id: int):
    return settlement_any(
        "fill_packet",
        ledger_proto.FillPacketMessage(
            id=intent_id, filler_address=FILLER, transaction_hash=EVM_TX_HASH
        ),
    )


def deposit_any(intent_id: int, gas_refunded: bool = True):
    return settlement_any(
        "deposit_packet",
        ledger_proto.DepositPacketMessage(id=intent_id, gas_refunded=gas_refunded),
        universe=1,
    )


def build_envelope(*messages) -> bytes:
    """
    Serialize a TxRaw whose body carries the given Any messages.
    """
    body = ledger_proto.TxBody(memo="")
    body.messages.extend(messages)
    tx_raw = ledger_proto.TxRaw(
        body_bytes=body.SerializeToString(),
        auth_info_bytes=b"",
        signatures=[b"\x01" * 64],
    )
    return tx_raw.SerializeToString()
