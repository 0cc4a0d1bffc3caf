"""
Tests for the intent ledger client, with the HTTP session mocked
"""

import unittest
from unittest.mock import Mock, patch

import requests

from intentsync.core import ledger_proto
from intentsync.core.exceptions import LedgerClientError
from intentsync.core.intent_ledger_client import (
    IntentLedgerClient,
    frame_grpc_web_message,
    normalize_request_for_funds,
    unframe_grpc_web_message,
)
from intentsync.utils.crypto_utils import ZERO_ADDRESS

USER = "0x00000000000000000000000000000000000000aa"
TOKEN = bytes.fromhex("00" * 12 + "cc" * 20)
SOLVER = bytes.fromhex("00" * 12 + "bb" * 20)
REQUEST_HASH = bytes.fromhex("ab" * 32)


def request_for_funds(intent_id: int, **kwargs):
    message = ledger_proto.RequestForFunds(
        id=intent_id,
        destination_universe=0,
        destination_chain_id=(8453).to_bytes(32, byteorder="big"),
        nonce=intent_id.to_bytes(32, byteorder="big"),
        expiry=1_700_003_600,
        user=USER,
        creation_block=1000 + intent_id,
        **kwargs,
    )
    source = message.sources.add()
    source.universe = 0
    source.chain_id = (10).to_bytes(32, byteorder="big")
    source.token_address = TOKEN
    source.value = (10**18).to_bytes(32, byteorder="big")
    source.status = 1
    source.collection_fee_required = 5
    destination = message.destinations.add()
    destination.token_address = TOKEN
    destination.value = (999 * 10**15).to_bytes(32, byteorder="big")
    signature = message.signature_data.add()
    signature.universe = 0
    signature.address = bytes.fromhex(USER[2:])
    signature.signature = b"\x12\x34"
    signature.hash = REQUEST_HASH
    return message


def grpc_web_body(messages) -> bytes:
    response = ledger_proto.QueryAllRequestForFundsResponse()
    response.request_for_funds.extend(messages)
    # Data frame followed by a trailer frame.
    trailer = b"grpc-status:0\r\n"
    return (
        frame_grpc_web_message(response.SerializeToString())
        + b"\x80"
        + len(trailer).to_bytes(4, byteorder="big")
        + trailer
    )


class FakeLedgerGateway:
    """Serves reverse-ordered pages of intent ids 1..max_id."""

    def __init__(self, max_id: int):
        self.max_id = max_id
        self.requests = []

    def post(self, url, data=None, timeout=None):
        request = ledger_proto.QueryAllRequestForFundsRequest.FromString(
            unframe_grpc_web_message(data)
        )
        self.requests.append(
            (request.pagination.limit, request.pagination.offset, request.pagination.reverse)
        )
        ids = list(range(self.max_id, 0, -1))
        offset = request.pagination.offset
        page = ids[offset : offset + request.pagination.limit]
        response = Mock()
        response.status_code = 200
        response.content = grpc_web_body([request_for_funds(i) for i in page])
        return response


def make_client(gateway, **kwargs) -> IntentLedgerClient:
    session = requests.Session()
    session.post = gateway.post
    return IntentLedgerClient("https://ledger.test/", session=session, **kwargs)


class TestGrpcWebFraming(unittest.TestCase):
    def test_frame_and_unframe(self):
        framed = frame_grpc_web_message(b"payload")
        assert framed[:5] == b"\x00\x00\x00\x00\x07"
        assert unframe_grpc_web_message(framed) == b"payload"

    def test_trailer_is_ignored(self):
        body = grpc_web_body([request_for_funds(1)])
        response = ledger_proto.QueryAllRequestForFundsResponse.FromString(
            unframe_grpc_web_message(body)
        )
        assert [m.id for m in response.request_for_funds] == [1]

    def test_truncated_body(self):
        with self.assertRaises(LedgerClientError):
            unframe_grpc_web_message(b"\x00\x00")


class TestNormalizeRequestForFunds(unittest.TestCase):
    def test_store_formats(self):
        intent = normalize_request_for_funds(
            request_for_funds(
                5, deposited=True, fulfilled=True, fulfilled_by=SOLVER, fulfilled_at=99
            )
        )
        assert intent.id == 5
        assert intent.user == USER
        assert intent.destination_chain_id == 8453
        assert intent.nonce == "0x" + "00" * 31 + "05"
        assert intent.fulfilled_by == "0x" + "bb" * 20
        assert intent.fulfilled_at == 99
        assert intent.sources[0].chain_id == 10
        assert intent.sources[0].token_address == "0x" + "cc" * 20
        assert intent.sources[0].value == str(10**18)
        assert intent.sources[0].collection_fee_required == 5
        assert intent.destinations[0].value == str(999 * 10**15)
        assert intent.signature_data[0].hash == "0x" + "ab" * 32
        assert intent.signature_data[0].signature == "0x1234"

    def test_empty_fulfilled_by_is_none(self):
        intent = normalize_request_for_funds(request_for_funds(5))
        assert intent.fulfilled_by is None
        assert not intent.fulfilled

    def test_zero_address_fields(self):
        message = request_for_funds(5)
        message.destinations[0].token_address = b""
        intent = normalize_request_for_funds(message)
        assert intent.destinations[0].token_address == ZERO_ADDRESS


class TestIntentLedgerClient(unittest.TestCase):
    def test_query_intents_reverse_page(self):
        gateway = FakeLedgerGateway(max_id=25)
        intents = make_client(gateway).query_intents(limit=10, offset=5)
        assert [i.id for i in intents] == list(range(20, 10, -1))
        assert gateway.requests == [(10, 5, True)]

    def test_get_max_intent_id(self):
        assert make_client(FakeLedgerGateway(max_id=42)).get_max_intent_id() == 42
        assert make_client(FakeLedgerGateway(max_id=0)).get_max_intent_id() == 0

    @patch("intentsync.core.intent_ledger_client.time.sleep")
    def test_query_intents_paged(self, sleep):
        gateway = FakeLedgerGateway(max_id=250)
        intents = make_client(gateway).query_intents_paged(
            230, page_size=100, page_delay=0.2
        )
        assert [i.id for i in intents] == list(range(250, 20, -1))
        assert gateway.requests == [(100, 0, True), (100, 100, True), (30, 200, True)]
        assert sleep.call_count == 2

    @patch("intentsync.core.intent_ledger_client.time.sleep")
    def test_query_intents_paged_stops_at_min_id(self, sleep):
        gateway = FakeLedgerGateway(max_id=250)
        intents = make_client(gateway).query_intents_paged(
            1000, page_size=100, page_delay=0, min_id=180
        )
        assert len(gateway.requests) == 1
        assert intents[0].id == 250

    @patch("intentsync.core.intent_ledger_client.time.sleep")
    def test_query_intents_paged_skips_shifted_duplicates(self, sleep):
        """A new intent between pages shifts the offsets; every id is still reached once."""
        gateway = FakeLedgerGateway(max_id=103)
        serve = gateway.post

        def post(url, data=None, timeout=None):
            response = serve(url, data=data, timeout=timeout)
            if len(gateway.requests) == 1:
                gateway.max_id = 104
            return response

        gateway.post = post
        intents = make_client(gateway).query_intents_paged(
            3, page_size=2, page_delay=0, min_id=100
        )
        assert [i.id for i in intents] == [103, 102, 101]
        assert gateway.requests == [(2, 0, True), (1, 2, True), (1, 3, True)]

    @patch("intentsync.core.intent_ledger_client.time.sleep")
    def test_query_intents_paged_short_page(self, sleep):
        gateway = FakeLedgerGateway(max_id=30)
        intents = make_client(gateway).query_intents_paged(500, page_size=100)
        assert len(intents) == 30
        assert len(gateway.requests) == 1

    def test_query_intent(self):
        gateway = FakeLedgerGateway(max_id=1500)
        client = make_client(gateway)
        assert client.query_intent(300).id == 300
        assert gateway.requests[-1] == (1000, 1000, True)
        assert client.query_intent(2000) is None

    def test_http_error_is_retried_then_raised(self):
        session = requests.Session()
        response = Mock()
        response.status_code = 503
        response.raise_for_status.side_effect = requests.exceptions.HTTPError(
            "503 Server Error"
        )
        session.post = Mock(return_value=response)
        client = IntentLedgerClient(
            "https://ledger.test", session=session, max_attempts=2, retry_delay=0
        )

        with self.assertRaises(LedgerClientError) as cm:
            client.query_intents()
        assert cm.exception.status_code == 503
        assert session.post.call_count == 2

    def test_connection_error_is_wrapped(self):
        session = requests.Session()
        session.post = Mock(side_effect=requests.exceptions.ConnectionError("refused"))
        client = IntentLedgerClient(
            "https://ledger.test", session=session, max_attempts=1, retry_delay=0
        )
        with self.assertRaises(LedgerClientError):
            client.get_max_intent_id()

    def test_undecodable_body(self):
        session = requests.Session()
        response = Mock()
        response.status_code = 200
        response.content = frame_grpc_web_message(b"\xff\xff\xff")
        session.post = Mock(return_value=response)
        client = IntentLedgerClient("https://ledger.test", session=session)
        with self.assertRaises(LedgerClientError):
            client.query_intents()


if __name__ == "__main__":
    unittest.main()
