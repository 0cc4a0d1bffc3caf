"""
Decodes signed Cosmos transaction envelopes into settlement messages.
"""

import base64
import binascii
import logging
from dataclasses import asdict
from typing import List, Union

from beeprint import pp

from intentsync.core import ledger_proto
from intentsync.core.types import DepositPacket, FillPacket, SettlementMessage
from intentsync.utils.log import get_default_logger

_LOG = get_default_logger(__name__)
_LOG.setLevel(logging.INFO)


def _to_packet(message) -> Union[FillPacket, DepositPacket, None]:
    which = message.WhichOneof("packet")
    if which == "fill_packet":
        fill = message.fill_packet
        return FillPacket(
            id=fill.id,
            filler_address=bytes(fill.filler_address),
            transaction_hash=bytes(fill.transaction_hash),
        )
    if which == "deposit_packet":
        deposit = message.deposit_packet
        return DepositPacket(id=deposit.id, gas_refunded=deposit.gas_refunded)
    return None


def decode(envelope_bytes: bytes) -> List[SettlementMessage]:
    """
    Extract settlement messages from a signed transaction envelope.

    The transaction search feed is not filtered to the settlement type,
    so anything that does not parse yields an empty list instead of an error.
    Messages of other types, and settlement messages without a packet,
    are skipped.

    :param envelope_bytes: The raw TxRaw bytes.
    :return: The decoded settlement messages in envelope order.
    """
    try:
        tx_raw = ledger_proto.TxRaw.FromString(envelope_bytes)
        body = ledger_proto.TxBody.FromString(tx_raw.body_bytes)
        settlements = []
        for any_message in body.messages:
            if any_message.type_url != ledger_proto.SETTLEMENT_MSG_TYPE_URL:
                continue
            message = ledger_proto.MsgDoubleCheckTx.FromString(any_message.value)
            packet = _to_packet(message)
            if packet is None:
                continue
            settlements.append(
                SettlementMessage(
                    tx_chain_id=bytes(message.tx_chain_id),
                    tx_universe=message.tx_universe,
                    packet=packet,
                )
            )
    except Exception as e:  # pylint: disable=broad-except
        _LOG.debug("Skipping undecodable transaction envelope: %s", e)
        return []

    if settlements:
        _LOG.debug(
            "Decoded settlement messages:\n%s",
            pp([asdict(s) for s in settlements], output=False),
        )
    return settlements


def decode_base64(envelope_b64: str) -> List[SettlementMessage]:
    """
    Decode a base64-encoded envelope as returned by transaction search.

    :param envelope_b64: The base64 envelope.
    :return: The decoded settlement messages; empty on any failure.
    """
    try:
        envelope_bytes = base64.b64decode(envelope_b64, validate=True)
    except (binascii.Error, TypeError, ValueError):
        return []
    return decode(envelope_bytes)
