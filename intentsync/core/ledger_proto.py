"""
Protobuf wire schema for the intent ledger and the signed transaction envelope.

Only the messages the mirror reads are declared. They are built as descriptor
protos in a private pool and materialised with the message factory, so no
generated code has to be vendored.
"""

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory

FDP = descriptor_pb2.FieldDescriptorProto

LEDGER_PACKAGE = "xarchain.chainabstraction"
TX_PACKAGE = "cosmos.tx.v1beta1"
QUERY_PACKAGE = "cosmos.base.query.v1beta1"

SETTLEMENT_MSG_TYPE_URL = f"/{LEDGER_PACKAGE}.MsgDoubleCheckTx"
REQUEST_FOR_FUNDS_ALL_PATH = f"/{LEDGER_PACKAGE}.Query/RequestForFundsAll"


def _field(name, number, field_type, type_name=None, repeated=False, oneof_index=None):
    field = FDP(
        name=name,
        number=number,
        type=field_type,
        label=FDP.LABEL_REPEATED if repeated else FDP.LABEL_OPTIONAL,
    )
    if type_name is not None:
        field.type_name = type_name
    if oneof_index is not None:
        field.oneof_index = oneof_index
    return field


def _message(name, fields, oneofs=()):
    message = descriptor_pb2.DescriptorProto(name=name)
    message.field.extend(fields)
    for oneof in oneofs:
        message.oneof_decl.add(name=oneof)
    return message


def _file(name, package, messages, dependencies=()):
    file_proto = descriptor_pb2.FileDescriptorProto(
        name=name, package=package, syntax="proto3"
    )
    file_proto.dependency.extend(dependencies)
    file_proto.message_type.extend(messages)
    return file_proto


def _query_file():
    return _file(
        "cosmos/base/query/v1beta1/pagination.proto",
        QUERY_PACKAGE,
        [
            _message(
                "PageRequest",
                [
                    _field("key", 1, FDP.TYPE_BYTES),
                    _field("offset", 2, FDP.TYPE_UINT64),
                    _field("limit", 3, FDP.TYPE_UINT64),
                    _field("count_total", 4, FDP.TYPE_BOOL),
                    _field("reverse", 5, FDP.TYPE_BOOL),
                ],
            ),
            _message(
                "PageResponse",
                [
                    _field("next_key", 1, FDP.TYPE_BYTES),
                    _field("total", 2, FDP.TYPE_UINT64),
                ],
            ),
        ],
    )


def _tx_file():
    return _file(
        "cosmos/tx/v1beta1/tx.proto",
        TX_PACKAGE,
        [
            # Wire-compatible with google.protobuf.Any.
            _message(
                "Any",
                [
                    _field("type_url", 1, FDP.TYPE_STRING),
                    _field("value", 2, FDP.TYPE_BYTES),
                ],
            ),
            _message(
                "TxRaw",
                [
                    _field("body_bytes", 1, FDP.TYPE_BYTES),
                    _field("auth_info_bytes", 2, FDP.TYPE_BYTES),
                    _field("signatures", 3, FDP.TYPE_BYTES, repeated=True),
                ],
            ),
            _message(
                "TxBody",
                [
                    _field(
                        "messages",
                        1,
                        FDP.TYPE_MESSAGE,
                        f".{TX_PACKAGE}.Any",
                        repeated=True,
                    ),
                    _field("memo", 2, FDP.TYPE_STRING),
                    _field("timeout_height", 3, FDP.TYPE_UINT64),
                ],
            ),
        ],
    )


def _ledger_file():
    ledger = f".{LEDGER_PACKAGE}"
    return _file(
        "xarchain/chainabstraction/ledger.proto",
        LEDGER_PACKAGE,
        [
            _message(
                "FillPacket",
                [
                    _field("id", 1, FDP.TYPE_UINT64),
                    _field("filler_address", 2, FDP.TYPE_BYTES),
                    _field("transaction_hash", 3, FDP.TYPE_BYTES),
                ],
            ),
            _message(
                "DepositPacket",
                [
                    _field("id", 1, FDP.TYPE_UINT64),
                    _field("gas_refunded", 2, FDP.TYPE_BOOL),
                ],
            ),
            _message(
                "MsgDoubleCheckTx",
                [
                    _field("creator", 1, FDP.TYPE_STRING),
                    _field("tx_universe", 2, FDP.TYPE_INT32),
                    _field("tx_chain_id", 3, FDP.TYPE_BYTES),
                    _field(
                        "fill_packet",
                        4,
                        FDP.TYPE_MESSAGE,
                        f"{ledger}.FillPacket",
                        oneof_index=0,
                    ),
                    _field(
                        "deposit_packet",
                        5,
                        FDP.TYPE_MESSAGE,
                        f"{ledger}.DepositPacket",
                        oneof_index=0,
                    ),
                ],
                oneofs=["packet"],
            ),
            _message(
                "SourcePair",
                [
                    _field("universe", 1, FDP.TYPE_INT32),
                    _field("chain_id", 2, FDP.TYPE_BYTES),
                    _field("token_address", 3, FDP.TYPE_BYTES),
                    _field("value", 4, FDP.TYPE_BYTES),
                    _field("status", 5, FDP.TYPE_INT32),
                    _field("collection_fee_required", 6, FDP.TYPE_UINT64),
                ],
            ),
            _message(
                "DestinationPair",
                [
                    _field("token_address", 1, FDP.TYPE_BYTES),
                    _field("value", 2, FDP.TYPE_BYTES),
                ],
            ),
            _message(
                "SignatureData",
                [
                    _field("universe", 1, FDP.TYPE_INT32),
                    _field("address", 2, FDP.TYPE_BYTES),
                    _field("signature", 3, FDP.TYPE_BYTES),
                    _field("hash", 4, FDP.TYPE_BYTES),
                ],
            ),
            _message(
                "RequestForFunds",
                [
                    _field("id", 1, FDP.TYPE_UINT64),
                    _field(
                        "sources", 2, FDP.TYPE_MESSAGE, f"{ledger}.SourcePair", repeated=True
                    ),
                    _field("destination_universe", 3, FDP.TYPE_INT32),
                    _field("destination_chain_id", 4, FDP.TYPE_BYTES),
                    _field(
                        "destinations",
                        5,
                        FDP.TYPE_MESSAGE,
                        f"{ledger}.DestinationPair",
                        repeated=True,
                    ),
                    _field("nonce", 6, FDP.TYPE_BYTES),
                    _field("expiry", 7, FDP.TYPE_UINT64),
                    _field("user", 8, FDP.TYPE_STRING),
                    _field(
                        "signature_data",
                        9,
                        FDP.TYPE_MESSAGE,
                        f"{ledger}.SignatureData",
                        repeated=True,
                    ),
                    _field("deposited", 10, FDP.TYPE_BOOL),
                    _field("fulfilled", 11, FDP.TYPE_BOOL),
                    _field("refunded", 12, FDP.TYPE_BOOL),
                    _field("fulfilled_by", 13, FDP.TYPE_BYTES),
                    _field("fulfilled_at", 14, FDP.TYPE_UINT64),
                    _field("creation_block", 15, FDP.TYPE_UINT64),
                ],
            ),
            _message(
                "QueryAllRequestForFundsRequest",
                [
                    _field(
                        "pagination",
                        1,
                        FDP.TYPE_MESSAGE,
                        f".{QUERY_PACKAGE}.PageRequest",
                    ),
                ],
            ),
            _message(
                "QueryAllRequestForFundsResponse",
                [
                    _field(
                        "request_for_funds",
                        1,
                        FDP.TYPE_MESSAGE,
                        f"{ledger}.RequestForFunds",
                        repeated=True,
                    ),
                    _field(
                        "pagination",
                        2,
                        FDP.TYPE_MESSAGE,
                        f".{QUERY_PACKAGE}.PageResponse",
                    ),
                ],
            ),
        ],
        dependencies=["cosmos/base/query/v1beta1/pagination.proto"],
    )


_POOL = descriptor_pool.DescriptorPool()
for _file_proto in (_query_file(), _tx_file(), _ledger_file()):
    _POOL.Add(_file_proto)


def _message_class(full_name: str):
    return message_factory.GetMessageClass(_POOL.FindMessageTypeByName(full_name))


PageRequest = _message_class(f"{QUERY_PACKAGE}.PageRequest")
TxRaw = _message_class(f"{TX_PACKAGE}.TxRaw")
TxBody = _message_class(f"{TX_PACKAGE}.TxBody")
AnyMessage = _message_class(f"{TX_PACKAGE}.Any")
FillPacketMessage = _message_class(f"{LEDGER_PACKAGE}.FillPacket")
DepositPacketMessage = _message_class(f"{LEDGER_PACKAGE}.DepositPacket")
MsgDoubleCheckTx = _message_class(f"{LEDGER_PACKAGE}.MsgDoubleCheckTx")
RequestForFunds = _message_class(f"{LEDGER_PACKAGE}.RequestForFunds")
QueryAllRequestForFundsRequest = _message_class(
    f"{LEDGER_PACKAGE}.QueryAllRequestForFundsRequest"
)
QueryAllRequestForFundsResponse = _message_class(
    f"{LEDGER_PACKAGE}.QueryAllRequestForFundsResponse"
)
