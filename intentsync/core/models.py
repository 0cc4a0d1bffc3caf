"""SQL models for the intent mirror.

Column names and nullability are the contract with the explorer read path.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlmodel import Field, SQLModel

from intentsync.core.types import IntentStatus


def _created_at_column() -> Column:
    return Column(DateTime(timezone=True), server_default=func.now())


def _intent_fk_column(nullable: bool = False) -> Column:
    return Column(
        BigInteger,
        ForeignKey("intents.id", ondelete="CASCADE"),
        nullable=nullable,
        index=True,
    )


class IntentRow(SQLModel, table=True):
    """ORM model for the intents table, one row per remote-assigned intent id."""

    __tablename__ = "intents"
    id: int = Field(
        sa_column=Column(BigInteger, primary_key=True, autoincrement=False)
    )
    user_address: str = Field(sa_column=Column(String(255), nullable=False, index=True))
    expiry: int = Field(sa_column=Column(BigInteger, nullable=False, index=True))
    creation_block: int = Field(sa_column=Column(BigInteger, nullable=False, index=True))
    destination_chain_id: int = Field(
        sa_column=Column(BigInteger, nullable=False, index=True)
    )
    destination_universe: int = Field(sa_column=Column(Integer, nullable=False))
    nonce: str = Field(sa_column=Column(String(66), nullable=False, unique=True))
    deposited: bool = Field(default=False, index=True)
    fulfilled: bool = Field(default=False, index=True)
    refunded: bool = Field(default=False, index=True)
    fulfilled_by: Optional[str] = Field(default=None, sa_column=Column(String(42)))
    fulfilled_at: int = Field(default=0, sa_column=Column(BigInteger, default=0))
    created_at: Optional[datetime] = Field(default=None, sa_column=_created_at_column())
    updated_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), server_default=func.now(), index=True),
    )


class IntentSourceRow(SQLModel, table=True):
    """ORM model for the intent_sources table, ordered by insertion."""

    __tablename__ = "intent_sources"
    id: Optional[int] = Field(default=None, primary_key=True)
    intent_id: int = Field(sa_column=_intent_fk_column())
    universe: int = Field(sa_column=Column(Integer, nullable=False))
    chain_id: int = Field(sa_column=Column(BigInteger, nullable=False, index=True))
    token_address: str = Field(sa_column=Column(String(42), nullable=False, index=True))
    value: str = Field(sa_column=Column(String(78), nullable=False))
    status: int = Field(sa_column=Column(Integer, nullable=False))
    collection_fee_required: int = Field(sa_column=Column(BigInteger, nullable=False))
    created_at: Optional[datetime] = Field(default=None, sa_column=_created_at_column())


class IntentDestinationRow(SQLModel, table=True):
    """ORM model for the intent_destinations table."""

    __tablename__ = "intent_destinations"
    id: Optional[int] = Field(default=None, primary_key=True)
    intent_id: int = Field(sa_column=_intent_fk_column())
    token_address: str = Field(sa_column=Column(String(42), nullable=False, index=True))
    value: str = Field(sa_column=Column(String(78), nullable=False))
    created_at: Optional[datetime] = Field(default=None, sa_column=_created_at_column())


class IntentSignatureDataRow(SQLModel, table=True):
    """ORM model for the intent_signature_data table; `hash` is the event link key."""

    __tablename__ = "intent_signature_data"
    id: Optional[int] = Field(default=None, primary_key=True)
    intent_id: int = Field(sa_column=_intent_fk_column())
    universe: int = Field(sa_column=Column(Integer, nullable=False))
    address: str = Field(sa_column=Column(String(42), nullable=False, index=True))
    signature: str = Field(sa_column=Column(Text, nullable=False))
    hash: str = Field(sa_column=Column(String(66), nullable=False, index=True))
    created_at: Optional[datetime] = Field(default=None, sa_column=_created_at_column())


class FillTransactionRow(SQLModel, table=True):
    """ORM model for the fill_transactions table (append-only)."""

    __tablename__ = "fill_transactions"
    cosmos_hash: str = Field(sa_column=Column(String(66), primary_key=True))
    height: str = Field(sa_column=Column(String(100), nullable=False))
    intent_id: int = Field(sa_column=_intent_fk_column())
    filler_address: str = Field(sa_column=Column(String(42), nullable=False, index=True))
    evm_tx_hash: str = Field(sa_column=Column(String(66), nullable=False))
    chain_id: str = Field(sa_column=Column(String(100), nullable=False))
    universe: int = Field(sa_column=Column(Integer, nullable=False))
    created_at: Optional[datetime] = Field(default=None, sa_column=_created_at_column())


class DepositTransactionRow(SQLModel, table=True):
    """ORM model for the deposit_transactions table (append-only)."""

    __tablename__ = "deposit_transactions"
    cosmos_hash: str = Field(sa_column=Column(String(66), primary_key=True))
    height: str = Field(sa_column=Column(String(100), nullable=False))
    intent_id: int = Field(sa_column=_intent_fk_column())
    chain_id: str = Field(sa_column=Column(String(100), nullable=False))
    universe: int = Field(sa_column=Column(Integer, nullable=False))
    gas_refunded: bool = Field(default=False)
    created_at: Optional[datetime] = Field(default=None, sa_column=_created_at_column())


class EvmFillEventRow(SQLModel, table=True):
    """ORM model for the evm_fill_events table; intent_id is filled in by the linker."""

    __tablename__ = "evm_fill_events"
    __table_args__ = (UniqueConstraint("tx_hash", "log_index"),)
    id: Optional[int] = Field(default=None, primary_key=True)
    request_hash: str = Field(sa_column=Column(String(66), nullable=False, index=True))
    intent_id: Optional[int] = Field(default=None, sa_column=_intent_fk_column(True))
    chain_id: int = Field(sa_column=Column(BigInteger, nullable=False, index=True))
    tx_hash: str = Field(sa_column=Column(String(66), nullable=False, index=True))
    block_number: int = Field(sa_column=Column(BigInteger, nullable=False, index=True))
    log_index: int = Field(sa_column=Column(Integer, nullable=False))
    from_address: str = Field(sa_column=Column(String(42), nullable=False, index=True))
    solver_address: str = Field(sa_column=Column(String(42), nullable=False, index=True))
    created_at: Optional[datetime] = Field(default=None, sa_column=_created_at_column())


class EvmDepositEventRow(SQLModel, table=True):
    """ORM model for the evm_deposit_events table; intent_id is filled in by the linker."""

    __tablename__ = "evm_deposit_events"
    __table_args__ = (UniqueConstraint("tx_hash", "log_index"),)
    id: Optional[int] = Field(default=None, primary_key=True)
    request_hash: str = Field(sa_column=Column(String(66), nullable=False, index=True))
    intent_id: Optional[int] = Field(default=None, sa_column=_intent_fk_column(True))
    chain_id: int = Field(sa_column=Column(BigInteger, nullable=False, index=True))
    tx_hash: str = Field(sa_column=Column(String(66), nullable=False, index=True))
    block_number: int = Field(sa_column=Column(BigInteger, nullable=False, index=True))
    log_index: int = Field(sa_column=Column(Integer, nullable=False))
    from_address: str = Field(sa_column=Column(String(42), nullable=False, index=True))
    gas_refunded: bool = Field(default=False)
    created_at: Optional[datetime] = Field(default=None, sa_column=_created_at_column())


class EvmSyncStateRow(SQLModel, table=True):
    """ORM model for the evm_sync_state table, the per-chain block cursor."""

    __tablename__ = "evm_sync_state"
    chain_id: int = Field(
        sa_column=Column(BigInteger, primary_key=True, autoincrement=False)
    )
    last_checked_block: int = Field(sa_column=Column(BigInteger, nullable=False))
    updated_at: Optional[datetime] = Field(
        default=None, sa_column=Column(DateTime(timezone=True), server_default=func.now())
    )


def is_intent_expired(expiry: int, now: int) -> bool:
    """
    An intent expires at its expiry second.

    :param expiry: Intent expiry, unix seconds.
    :param now: Current time, unix seconds.
    """
    return now >= expiry


def is_intent_pending(fulfilled: bool, refunded: bool, expiry: int, now: int) -> bool:
    """
    An intent is open for reconciliation while neither fulfilled nor refunded
    and not yet expired.
    """
    return not fulfilled and not refunded and not is_intent_expired(expiry, now)


def derive_intent_status(
    deposited: bool, fulfilled: bool, refunded: bool, expiry: int, now: int
) -> IntentStatus:
    """
    Derive the display status of an intent.
    Priority: fulfilled > refunded > failed (expired) > deposited > pending.

    :param deposited: Deposit flag.
    :param fulfilled: Fulfilment flag.
    :param refunded: Refund flag.
    :param expiry: Intent expiry, unix seconds.
    :param now: Current time, unix seconds.
    :return: The derived status.
    """
    if fulfilled:
        return IntentStatus.FULFILLED
    if refunded:
        return IntentStatus.REFUNDED
    if is_intent_expired(expiry, now):
        return IntentStatus.FAILED
    if deposited:
        return IntentStatus.DEPOSITED
    return IntentStatus.PENDING
