"""
Common conversions between raw chain byte strings
and the hex / decimal-string forms stored in the mirror.
"""

from typing import Union

from eth_utils import add_0x_prefix, remove_0x_prefix
from hexbytes import HexBytes

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# An EVM address is 20 bytes, i.e. 40 hex digits.
_ADDRESS_HEX_LEN = 40


def to_hex(byte_arr: bytes) -> str:
    """
    Convert a byte array to a 0x-prefixed lowercase hex string.

    :param byte_arr: The byte array to convert.
    :return: The resulting hex string.
    """
    return "0x" + bytes(byte_arr).hex()


def bytes_to_hex_str_auto(byte_arr: Union[bytes, str]) -> str:
    """
    Convert a byte array to a hex string
    with intelligent conversion of bytes and string representations.
    RPC nodes may return byte strings as bytes, HexBytes, or a string.

    :param byte_arr: The byte array to convert.
    :return: The resulting lowercase hex string.
    """
    if isinstance(byte_arr, (bytes, bytearray, HexBytes)):
        hex_str = bytes(byte_arr).hex()
    else:
        hex_str = str(byte_arr)
    return add_0x_prefix(remove_0x_prefix(hex_str)).lower()


def bytes_to_int(byte_arr: bytes) -> int:
    """
    Interpret a big-endian byte array as an unsigned integer.

    :param byte_arr: The byte array to convert.
    :return: The integer; 0 for an empty or missing value.
    """
    if not byte_arr:
        return 0
    return int.from_bytes(bytes(byte_arr), byteorder="big", signed=False)


def bytes_to_decimal_str(byte_arr: bytes) -> str:
    """
    Convert a big-endian big-integer byte array to its decimal string form.

    :param byte_arr: The byte array to convert.
    :return: The decimal string.
    """
    return str(bytes_to_int(byte_arr))


def clean_address(hex_str: str) -> str:
    """
    Normalize a left-padded address hex string to a 20-byte address.

    Chain values are frequently padded to 32 bytes.
    Padding is stripped by keeping the last 40 hex digits,
    and any all-zero value maps to the canonical zero address.

    :param hex_str: The (possibly padded) hex string, with or without 0x.
    :return: The 0x-prefixed address.
    """
    if not hex_str or hex_str == "0x":
        return ZERO_ADDRESS
    cleaned = remove_0x_prefix(hex_str)
    if len(cleaned) > _ADDRESS_HEX_LEN:
        cleaned = cleaned[-_ADDRESS_HEX_LEN:]
    if cleaned == "0" * len(cleaned):
        return ZERO_ADDRESS
    return "0x" + cleaned


def bytes_to_address(byte_arr: bytes) -> str:
    """
    Convert a raw address byte string to a cleaned address.

    :param byte_arr: The raw address bytes.
    :return: The 0x-prefixed address.
    """
    return clean_address(to_hex(byte_arr)) if byte_arr else ZERO_ADDRESS
