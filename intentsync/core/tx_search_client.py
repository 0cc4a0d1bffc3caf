"""
Transaction search client

Lists settlement transactions through the Tendermint JSON-RPC `tx_search`
method and turns their packets into fill / deposit records.
"""

import logging
from typing import List, Optional, Tuple

import requests

from intentsync.core import envelope_decoder, ledger_proto
from intentsync.core.exceptions import LedgerClientError
from intentsync.core.types import (
    CosmosTx,
    DepositPacket,
    DepositTransaction,
    FillPacket,
    FillTransaction,
)
from intentsync.utils.crypto_utils import bytes_to_int, clean_address, to_hex
from intentsync.utils.log import get_default_logger
from intentsync.utils.retries import with_retries

_LOG = get_default_logger(__name__)
_LOG.setLevel(logging.INFO)

SETTLEMENT_ACTION_QUERY = f"message.action='{ledger_proto.SETTLEMENT_MSG_TYPE_URL}'"
DEFAULT_SEARCH_LIMIT = 10000
MAX_PER_PAGE = 100
MAX_PAGES = 1000


class TransactionSearchClient:
    """
    Client for settlement transaction search.

    Args:
        rpc_url: Tendermint RPC endpoint
        session: Optional requests session (default: a new session)
        timeout: Request timeout in seconds (default: 30)
        max_attempts: Attempts per request before the error propagates
        retry_delay: Initial retry delay in seconds, doubled per attempt
    """

    def __init__(
        self,
        rpc_url: str,
        session: Optional[requests.Session] = None,
        timeout: int = 30,
        max_attempts: int = 5,
        retry_delay: float = 2,
    ):
        self.rpc_url = rpc_url.rstrip("/") + "/"
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.session = session if session is not None else requests.Session()

    def _handle_response(self, response: requests.Response) -> dict:
        """Handle the JSON-RPC response and raise on HTTP or RPC errors."""
        try:
            response.raise_for_status()
            payload = response.json()
        except requests.exceptions.HTTPError as e:
            raise LedgerClientError(str(e), response.status_code) from e
        except ValueError as e:
            raise LedgerClientError(f"Invalid JSON-RPC response: {e}") from e
        return payload

    def _search_page(self, page: int, per_page: int) -> dict:
        body = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "tx_search",
            "params": {
                "query": SETTLEMENT_ACTION_QUERY,
                "prove": False,
                "page": str(page),
                "per_page": str(per_page),
                "order_by": "desc",
            },
        }

        def post() -> dict:
            try:
                response = self.session.post(self.rpc_url, json=body, timeout=self.timeout)
            except requests.exceptions.RequestException as e:
                raise LedgerClientError(f"Request failed: {str(e)}") from e
            return self._handle_response(response)

        return with_retries(
            post,
            _LOG,
            max_attempts=self.max_attempts,
            delay=self.retry_delay,
            retry_on=(LedgerClientError,),
        )

    def search_transactions(self, limit: int = DEFAULT_SEARCH_LIMIT) -> List[CosmosTx]:
        """
        List settlement transactions, newest first.

        :param limit: Maximum number of transactions to return.
        :return: The transactions with their base64 envelopes.
        """
        per_page = min(limit, MAX_PER_PAGE)
        txs: List[CosmosTx] = []
        page = 1
        while len(txs) < limit:
            payload = self._search_page(page, per_page)
            if payload.get("error"):
                # Tendermint rejects pages past the end instead of returning none.
                if page > 1:
                    break
                raise LedgerClientError(f"tx_search failed: {payload['error']}")

            page_txs = (payload.get("result") or {}).get("txs") or []
            if not page_txs:
                break
            txs.extend(
                CosmosTx(hash=tx["hash"], height=str(tx["height"]), tx=tx["tx"])
                for tx in page_txs
            )
            if len(page_txs) < per_page:
                break

            page += 1
            if page > MAX_PAGES:
                _LOG.warning(
                    "Reached maximum page limit (%d), stopping pagination", MAX_PAGES
                )
                break

        return txs[:limit]

    def query_transactions(
        self, intent_id: Optional[int] = None, limit: int = DEFAULT_SEARCH_LIMIT
    ) -> Tuple[List[FillTransaction], List[DepositTransaction]]:
        """
        Fetch and decode settlement transactions once,
        returning both fills and deposits.

        :param intent_id: Only keep packets for this intent, if given.
        :param limit: Maximum number of transactions to scan.
        :return: (fills, deposits)
        """
        fills: List[FillTransaction] = []
        deposits: List[DepositTransaction] = []
        for tx in self.search_transactions(limit):
            for message in envelope_decoder.decode_base64(tx.tx):
                packet = message.packet
                if intent_id is not None and packet.id != intent_id:
                    continue
                chain_id = str(bytes_to_int(message.tx_chain_id))
                if isinstance(packet, FillPacket):
                    fills.append(
                        FillTransaction(
                            cosmos_hash=tx.hash,
                            height=tx.height,
                            intent_id=packet.id,
                            filler_address=(
                                clean_address(to_hex(packet.filler_address))
                                if packet.filler_address
                                else ""
                            ),
                            evm_tx_hash=(
                                to_hex(packet.transaction_hash)
                                if packet.transaction_hash
                                else ""
                            ),
                            chain_id=chain_id,
                            universe=message.tx_universe,
                        )
                    )
                elif isinstance(packet, DepositPacket):
                    deposits.append(
                        DepositTransaction(
                            cosmos_hash=tx.hash,
                            height=tx.height,
                            intent_id=packet.id,
                            chain_id=chain_id,
                            universe=message.tx_universe,
                            gas_refunded=packet.gas_refunded,
                        )
                    )
        return fills, deposits

    def query_fills(
        self, intent_id: Optional[int] = None, limit: int = DEFAULT_SEARCH_LIMIT
    ) -> List[FillTransaction]:
        """
        :param intent_id: Only return fills for this intent, if given.
        :param limit: Maximum number of transactions to scan.
        :return: Fill transactions, newest first.
        """
        return self.query_transactions(intent_id, limit)[0]

    def query_deposits(
        self, intent_id: Optional[int] = None, limit: int = DEFAULT_SEARCH_LIMIT
    ) -> List[DepositTransaction]:
        """
        :param intent_id: Only return deposits for this intent, if given.
        :param limit: Maximum number of transactions to scan.
        :return: Deposit transactions, newest first.
        """
        return self.query_transactions(intent_id, limit)[1]
