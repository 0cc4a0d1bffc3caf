"""
Exceptions raised by the intent mirror.
"""

from typing import Optional


class IntentSyncError(Exception):
    """Base exception for intent mirror errors."""


class LedgerClientError(IntentSyncError):
    """A request to the intent ledger or the transaction search endpoint failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)

    def __str__(self):
        error_msg = f"{self.message}"
        if self.status_code:
            error_msg = f"[{self.status_code}] {error_msg}"
        return error_msg


class EvmLogDecodeError(IntentSyncError):
    """
    An EVM log returned for the settlement contract's Fill/Deposit topic
    does not decode against the expected event shape.
    """

    def __init__(self, chain_id: int, tx_hash: str, log_index: int, reason: str):
        self.chain_id = chain_id
        self.tx_hash = tx_hash
        self.log_index = log_index
        super().__init__(
            f"Cannot decode log {tx_hash}:{log_index} on chain {chain_id}: {reason}"
        )


class UnknownChainError(IntentSyncError):
    """An EVM sync was requested for a chain id with no configured syncer."""

    def __init__(self, chain_id: int):
        self.chain_id = chain_id
        super().__init__(f"No syncer found for chain ID {chain_id}")
