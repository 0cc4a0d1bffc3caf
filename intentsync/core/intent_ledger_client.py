"""
Intent ledger client

Reads intents (request-for-funds records) from the ledger's grpc-web gateway.
Listings are reverse ordered: the first element of page 0 is the highest id.
"""

import logging
import struct
import time
from dataclasses import asdict
from typing import List, Optional, Set

import requests
from beeprint import pp

from intentsync.core import ledger_proto
from intentsync.core.exceptions import LedgerClientError
from intentsync.core.types import Intent, IntentDestination, IntentSource, SignatureDatum
from intentsync.utils.crypto_utils import (
    bytes_to_address,
    bytes_to_decimal_str,
    bytes_to_int,
    clean_address,
    to_hex,
)
from intentsync.utils.log import get_default_logger
from intentsync.utils.retries import with_retries

_LOG = get_default_logger(__name__)
_LOG.setLevel(logging.INFO)

# grpc-web frame: 1 flag byte + 4 byte big-endian length.
GRPC_WEB_HEADER_LEN = 5

# Single-intent lookup scans reverse pages of this size.
LOOKUP_PAGE_SIZE = 1000
LOOKUP_MAX_PAGES = 20

DEFAULT_PAGE_SIZE = 100
DEFAULT_PAGE_DELAY = 0.2


def frame_grpc_web_message(payload: bytes) -> bytes:
    """
    Wrap a serialized message in an uncompressed grpc-web data frame.

    :param payload: The serialized protobuf message.
    :return: The framed bytes.
    """
    return b"\x00" + struct.pack(">I", len(payload)) + payload


def unframe_grpc_web_message(body: bytes) -> bytes:
    """
    Extract the first data frame payload of a grpc-web response body.

    :param body: The raw response body.
    :return: The message bytes.
    """
    if len(body) < GRPC_WEB_HEADER_LEN:
        raise LedgerClientError(f"Truncated grpc-web response ({len(body)} bytes)")
    (length,) = struct.unpack(">I", body[1:GRPC_WEB_HEADER_LEN])
    return body[GRPC_WEB_HEADER_LEN : GRPC_WEB_HEADER_LEN + length]


def normalize_request_for_funds(message) -> Intent:
    """
    Convert a RequestForFunds message to an Intent in store formats:
    addresses cleaned, big integers as decimal strings, hashes as 0x hex.

    :param message: The decoded RequestForFunds message.
    :return: The normalized intent.
    """
    return Intent(
        id=message.id,
        user=message.user,
        expiry=message.expiry,
        creation_block=message.creation_block,
        destination_chain_id=bytes_to_int(message.destination_chain_id),
        destination_universe=message.destination_universe,
        nonce=to_hex(message.nonce),
        deposited=message.deposited,
        fulfilled=message.fulfilled,
        refunded=message.refunded,
        fulfilled_by=(
            clean_address(to_hex(message.fulfilled_by)) if message.fulfilled_by else None
        ),
        fulfilled_at=message.fulfilled_at,
        sources=[
            IntentSource(
                universe=s.universe,
                chain_id=bytes_to_int(s.chain_id),
                token_address=bytes_to_address(s.token_address),
                value=bytes_to_decimal_str(s.value),
                status=s.status,
                collection_fee_required=s.collection_fee_required,
            )
            for s in message.sources
        ],
        destinations=[
            IntentDestination(
                token_address=bytes_to_address(d.token_address),
                value=bytes_to_decimal_str(d.value),
            )
            for d in message.destinations
        ],
        signature_data=[
            SignatureDatum(
                universe=d.universe,
                address=bytes_to_address(d.address),
                signature=to_hex(d.signature),
                hash=to_hex(d.hash),
            )
            for d in message.signature_data
        ],
    )


class IntentLedgerClient:
    """
    Client for the intent ledger's RequestForFundsAll query.

    Args:
        grpc_url: Base URL of the grpc-web gateway
        session: Optional requests session (default: a new session)
        timeout: Request timeout in seconds (default: 30)
        max_attempts: Attempts per request before the error propagates
        retry_delay: Initial retry delay in seconds, doubled per attempt
    """

    def __init__(
        self,
        grpc_url: str,
        session: Optional[requests.Session] = None,
        timeout: int = 30,
        max_attempts: int = 5,
        retry_delay: float = 2,
    ):
        self.grpc_url = grpc_url.rstrip("/")
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.session = session if session is not None else requests.Session()
        self.session.headers.update(
            {
                "Content-Type": "application/grpc-web+proto",
                "X-Grpc-Web": "1",
            }
        )

    def _handle_response(self, response: requests.Response) -> bytes:
        """Check the HTTP status and return the raw body."""
        try:
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            raise LedgerClientError(str(e), response.status_code) from e
        return response.content

    def _post(self, path: str, payload: bytes) -> bytes:
        url = f"{self.grpc_url}{path}"

        def post() -> bytes:
            try:
                response = self.session.post(
                    url, data=frame_grpc_web_message(payload), timeout=self.timeout
                )
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

    def query_intents(self, limit: int = 10, offset: int = 0) -> List[Intent]:
        """
        Fetch one reverse-ordered page of intents.

        :param limit: Page size.
        :param offset: Number of intents to skip from the newest.
        :return: The intents, highest id first.
        """
        request = ledger_proto.QueryAllRequestForFundsRequest()
        request.pagination.limit = limit
        request.pagination.offset = offset
        request.pagination.reverse = True

        body = self._post(
            ledger_proto.REQUEST_FOR_FUNDS_ALL_PATH, request.SerializeToString()
        )
        try:
            response = ledger_proto.QueryAllRequestForFundsResponse.FromString(
                unframe_grpc_web_message(body)
            )
        except LedgerClientError:
            raise
        except Exception as e:  # pylint: disable=broad-except
            raise LedgerClientError(f"Cannot decode intent listing: {e}") from e

        intents = [normalize_request_for_funds(m) for m in response.request_for_funds]
        _LOG.debug(
            "Fetched %d intents (limit=%d, offset=%d)", len(intents), limit, offset
        )
        return intents

    def query_intents_paged(
        self,
        count: int,
        page_size: int = DEFAULT_PAGE_SIZE,
        page_delay: float = DEFAULT_PAGE_DELAY,
        min_id: int = 0,
    ) -> List[Intent]:
        """
        Fetch up to `count` of the newest intents in fixed-size reverse pages,
        sleeping between pages to stay under the gateway's rate limit.
        Intents created while paging shift later pages by the same amount;
        ids served twice are dropped and do not count towards `count`.

        :param count: Number of distinct intents above `min_id` to fetch.
        :param page_size: Intents per request.
        :param page_delay: Seconds to wait between requests.
        :param min_id: Stop once a page reaches ids at or below this value.
        :return: The intents, highest id first, without duplicates.
        """
        intents: List[Intent] = []
        seen_ids: Set[int] = set()
        wanted = 0
        offset = 0
        while wanted < count:
            if offset:
                time.sleep(page_delay)
            limit = min(page_size, count - wanted)
            page = self.query_intents(limit=limit, offset=offset)
            for intent in page:
                if intent.id in seen_ids:
                    continue
                seen_ids.add(intent.id)
                intents.append(intent)
                if intent.id > min_id:
                    wanted += 1
            if len(page) < limit or page[-1].id <= min_id:
                break
            offset += len(page)
        return intents

    def query_intent(self, intent_id: int) -> Optional[Intent]:
        """
        Look up a single intent by id.
        The ledger has no direct lookup, so reverse pages are scanned
        until the target id is passed.

        :param intent_id: The intent id.
        :return: The intent or None if it was not found.
        """
        for page in range(LOOKUP_MAX_PAGES):
            intents = self.query_intents(
                limit=LOOKUP_PAGE_SIZE, offset=page * LOOKUP_PAGE_SIZE
            )
            if not intents:
                break
            for intent in intents:
                if intent.id == intent_id:
                    _LOG.debug("Found intent:\n%s", pp(asdict(intent), output=False))
                    return intent
            if intents[-1].id < intent_id:
                break
        return None

    def get_max_intent_id(self) -> int:
        """
        :return: Highest intent id on the ledger, 0 when it has no intents.
        """
        intents = self.query_intents(limit=1)
        return intents[0].id if intents else 0
