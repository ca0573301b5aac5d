# Copyright 2025 DataStax Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License"); you may not
# use this file except in compliance with the License. You may obtain a copy of
# the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS, WITHOUT
# WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied. See the
# License for the specific language governing permissions and limitations under
# the License.

"""Turn response payloads into text.

Raw payloads are sniffed for the gzip magic bytes rather than trusting the
``Content-Encoding`` header, since some transports inflate the body before
the caller sees it while leaving the header in place.
"""

from __future__ import annotations

import logging
import zlib
from enum import Enum

from . import utf8
from .exceptions import DecodeError

logger = logging.getLogger(__name__)

GZIP_MAGIC = b"\x1f\x8b"


class DecodeMethod(str, Enum):
    """Strategy used to turn a byte payload into text."""

    AUTO = "auto"
    GZIP = "gzip"
    UTF8 = "utf-8"


def is_gzip(data: bytes | bytearray | memoryview) -> bool:
    """Whether ``data`` starts with the gzip magic bytes (RFC 1952)."""
    return len(data) > 1 and data[0] == 0x1F and data[1] == 0x8B


def sniff_method(data: bytes | bytearray | memoryview) -> DecodeMethod:
    """Pick the decode strategy for a raw payload."""
    return DecodeMethod.GZIP if is_gzip(data) else DecodeMethod.UTF8


def inflate(data: bytes | bytearray | memoryview) -> bytes:
    """Inflate a gzip stream, concatenated members included.

    Raises:
        DecodeError: If the stream is not valid gzip
    """
    # wbits=16+MAX_WBITS selects the gzip container
    decompressor = zlib.decompressobj(16 + zlib.MAX_WBITS)
    chunks = []
    remaining = bytes(data)
    try:
        while remaining:
            chunks.append(decompressor.decompress(remaining))
            if not decompressor.eof:
                raise DecodeError("Truncated gzip stream")
            remaining = decompressor.unused_data
            if remaining:
                decompressor = zlib.decompressobj(16 + zlib.MAX_WBITS)
    except zlib.error as e:
        raise DecodeError(f"Could not inflate gzip payload: {e}") from e
    return b"".join(chunks)


def byte_array_to_str(
    data: bytes | bytearray | memoryview,
    method: DecodeMethod | str = DecodeMethod.AUTO,
) -> str:
    """Decode a byte payload with the given strategy.

    Args:
        data: Raw payload bytes
        method: ``auto`` sniffs the gzip magic bytes; ``gzip`` and
            ``utf-8`` force a strategy

    Returns:
        Decoded text

    Raises:
        DecodeError: If the method is unknown or the gzip stream is invalid
    """
    try:
        actual = DecodeMethod(method)
    except ValueError as e:
        raise DecodeError(f"Invalid byte array to string method: {method}") from e

    if actual is DecodeMethod.AUTO:
        actual = sniff_method(data)
    logger.debug("Decoding %d byte payload as %s", len(data), actual.value)

    if actual is DecodeMethod.GZIP:
        return utf8.decode(inflate(data))
    return utf8.decode(data)


def decode_to_text(
    payload: bytes | bytearray | memoryview | str,
    content_encoding: str | None = None,
) -> str:
    """Decode a response payload to text.

    Text payloads were already decoded by the transport and pass through.
    For byte payloads the magic-byte sniff is authoritative; the
    ``Content-Encoding`` header only explains a mismatch in the logs.

    Raises:
        DecodeError: If a gzip payload cannot be inflated
    """
    if isinstance(payload, str):
        return payload

    if (
        content_encoding
        and content_encoding.strip().lower() == "gzip"
        and not is_gzip(payload)
    ):
        logger.debug(
            "Content-Encoding is gzip but payload has no gzip magic; "
            "assuming the transport already inflated it"
        )
    return byte_array_to_str(payload, DecodeMethod.AUTO)
