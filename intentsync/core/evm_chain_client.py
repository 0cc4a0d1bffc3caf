"""
EVM log client for one settlement contract deployment.
This implementation uses Web3.HTTPProvider.
"""

import json
import logging
import os
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Tuple

from hexbytes import HexBytes
from web3 import Web3

from intentsync.core.evm_chain_config import EvmChainConfig
from intentsync.core.exceptions import EvmLogDecodeError
from intentsync.core.types import DepositEvent, FillEvent
from intentsync.utils.crypto_utils import bytes_to_hex_str_auto
from intentsync.utils.log import get_default_logger
from intentsync.utils.retries import with_retries

_LOG = get_default_logger(__name__)
_LOG.setLevel(logging.INFO)

SETTLEMENT_EVENTS_JSON_FILE_NAME = "SettlementEvents.json"

# RPC transport settings.
_RPC_TIMEOUT = 30
_RPC_MAX_ATTEMPTS = 5
_RPC_RETRY_DELAY = 2


def load_settlement_events_abi(
    json_file_name: str = SETTLEMENT_EVENTS_JSON_FILE_NAME,
) -> list:
    """
    Load the settlement contract's event ABI shipped with the package.

    :param json_file_name: File name under intentsync/abi.
    :return: The ABI list.
    """
    abi_path = os.path.join(os.path.dirname(__file__), "..", "abi", json_file_name)
    with open(abi_path, encoding="utf-8") as f:
        return json.load(f)["abi"]


def _event_signature(event_abi: dict) -> str:
    arg_types = ",".join(arg["type"] for arg in event_abi["inputs"])
    return f"{event_abi['name']}({arg_types})"


class EvmChainClient:
    """
    Reads the chain head and Fill / Deposit logs of the settlement contract.
    All chains share this class; behaviour varies only by EvmChainConfig.
    """

    def __init__(self, config: EvmChainConfig, w3: Optional[Web3] = None):
        """
        :param config: The chain deployment.
        :param w3: Optional Web3 object; defaults to an HTTPProvider on config.rpc_url.
        """
        self.config = config
        if w3 is None:
            w3 = Web3(
                Web3.HTTPProvider(
                    config.rpc_url, request_kwargs={"timeout": _RPC_TIMEOUT}
                )
            )
        self.w3 = w3
        abi = load_settlement_events_abi()
        self.address = Web3.to_checksum_address(config.contract_address)
        self.contract = self.w3.eth.contract(address=self.address, abi=abi)
        events = {event["name"]: event for event in abi if event["type"] == "event"}
        self.fill_topic = HexBytes(Web3.keccak(text=_event_signature(events["Fill"])))
        self.deposit_topic = HexBytes(
            Web3.keccak(text=_event_signature(events["Deposit"]))
        )

    def _call(self, operation):
        return with_retries(
            operation, _LOG, max_attempts=_RPC_MAX_ATTEMPTS, delay=_RPC_RETRY_DELAY
        )

    def get_current_block(self) -> int:
        """
        :return: The chain head block number.
        """
        return self._call(lambda: self.w3.eth.block_number)

    def _get_logs(self, topic: HexBytes, from_block: int, to_block: int) -> list:
        params = {
            "address": self.address,
            "topics": [topic],
            "fromBlock": from_block,
            "toBlock": to_block,
        }
        return self._call(lambda: self.w3.eth.get_logs(params))

    def _decode(self, event, log):
        try:
            return event().process_log(log)
        except Exception as e:  # pylint: disable=broad-except
            raise EvmLogDecodeError(
                self.config.chain_id,
                bytes_to_hex_str_auto(log.get("transactionHash", b"")),
                log.get("logIndex", -1),
                str(e),
            ) from e

    def decode_fill_log(self, log) -> FillEvent:
        """
        Decode a Fill log into a normalized event.

        :param log: The raw log.
        :return: The fill event.
        :raises EvmLogDecodeError: If the log does not match the Fill event.
        """
        decoded = self._decode(self.contract.events.Fill, log)
        return FillEvent(
            request_hash=bytes_to_hex_str_auto(decoded["args"]["requestHash"]),
            from_address=decoded["args"]["from"].lower(),
            solver_address=decoded["args"]["solver"].lower(),
            tx_hash=bytes_to_hex_str_auto(decoded["transactionHash"]),
            block_number=decoded["blockNumber"],
            log_index=decoded["logIndex"],
            chain_id=self.config.chain_id,
        )

    def decode_deposit_log(self, log) -> DepositEvent:
        """
        Decode a Deposit log into a normalized event.

        :param log: The raw log.
        :return: The deposit event.
        :raises EvmLogDecodeError: If the log does not match the Deposit event.
        """
        decoded = self._decode(self.contract.events.Deposit, log)
        return DepositEvent(
            request_hash=bytes_to_hex_str_auto(decoded["args"]["requestHash"]),
            from_address=decoded["args"]["from"].lower(),
            gas_refunded=bool(decoded["args"]["gasRefunded"]),
            tx_hash=bytes_to_hex_str_auto(decoded["transactionHash"]),
            block_number=decoded["blockNumber"],
            log_index=decoded["logIndex"],
            chain_id=self.config.chain_id,
        )

    def fetch_batch(
        self, from_block: int, to_block: int
    ) -> Tuple[List[FillEvent], List[DepositEvent]]:
        """
        Fetch and decode Fill and Deposit logs for an inclusive block range.
        The two topics are queried concurrently.

        :param from_block: First block.
        :param to_block: Last block.
        :return: (fills, deposits)
        """
        with ThreadPoolExecutor(max_workers=2) as executor:
            fill_logs = executor.submit(
                self._get_logs, self.fill_topic, from_block, to_block
            )
            deposit_logs = executor.submit(
                self._get_logs, self.deposit_topic, from_block, to_block
            )
            fills = [self.decode_fill_log(log) for log in fill_logs.result()]
            deposits = [self.decode_deposit_log(log) for log in deposit_logs.result()]
        return fills, deposits
