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

"""Lenient UTF-8 codec operating one byte at a time.

The decoder never raises: malformed input turns into U+FFFD. A byte that
interrupts a pending multi-byte sequence ends that sequence with a
replacement character and is then decoded again on its own.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

REPLACEMENT_CHARACTER = "\ufffd"
MAX_CODE_POINT = 0x10FFFF


class _Phase(Enum):
    IDLE = "idle"
    PENDING = "pending"


@dataclass
class _DecoderState:
    bytes_needed: int = 0
    bytes_seen: int = 0
    code_point: int = 0
    lower_boundary: int = 0

    @property
    def phase(self) -> _Phase:
        return _Phase.PENDING if self.bytes_needed else _Phase.IDLE

    def begin(self, bytes_needed: int, lower_boundary: int, partial: int) -> None:
        self.bytes_needed = bytes_needed
        self.bytes_seen = 0
        self.lower_boundary = lower_boundary
        self.code_point = partial << (6 * bytes_needed)

    def reset(self) -> None:
        self.bytes_needed = 0
        self.bytes_seen = 0
        self.code_point = 0
        self.lower_boundary = 0


def _is_surrogate(code_point: int) -> bool:
    return 0xD800 <= code_point <= 0xDFFF


class Utf8Decoder:
    """Incremental UTF-8 decoder.

    State carries over between ``decode`` calls made with ``final=False``,
    so a multi-byte sequence may be split across chunks.
    """

    def __init__(self) -> None:
        self._state = _DecoderState()

    @property
    def pending(self) -> bool:
        return self._state.phase is _Phase.PENDING

    def reset(self) -> None:
        self._state.reset()

    def decode(self, data: bytes | bytearray | memoryview, final: bool = True) -> str:
        """Decode ``data`` and return the text produced so far.

        Args:
            data: Raw bytes to decode
            final: When true, a sequence still pending at the end of
                ``data`` is flushed as a replacement character

        Returns:
            The decoded text
        """
        state = self._state
        out: list[str] = []
        pos = 0
        length = len(data)

        while pos < length:
            byte = data[pos]

            if state.phase is _Phase.IDLE:
                pos += 1
                if byte <= 0x7F:
                    out.append(chr(byte))
                elif 0xC2 <= byte <= 0xDF:
                    state.begin(1, 0x80, byte - 0xC0)
                elif 0xE0 <= byte <= 0xEF:
                    state.begin(2, 0x800, byte - 0xE0)
                elif 0xF0 <= byte <= 0xF4:
                    state.begin(3, 0x10000, byte - 0xF0)
                else:
                    # Stray continuation byte or a lead byte that can only
                    # start an overlong / out of range sequence
                    out.append(REPLACEMENT_CHARACTER)
                continue

            if not 0x80 <= byte <= 0xBF:
                # Do not advance: the byte starts a fresh decode step
                state.reset()
                out.append(REPLACEMENT_CHARACTER)
                continue

            pos += 1
            state.bytes_seen += 1
            state.code_point += (byte - 0x80) << (
                6 * (state.bytes_needed - state.bytes_seen)
            )
            if state.bytes_seen != state.bytes_needed:
                continue

            code_point = state.code_point
            lower_boundary = state.lower_boundary
            state.reset()
            if (
                lower_boundary <= code_point <= MAX_CODE_POINT
                and not _is_surrogate(code_point)
            ):
                out.append(chr(code_point))
            else:
                out.append(REPLACEMENT_CHARACTER)

        if final and state.phase is _Phase.PENDING:
            state.reset()
            out.append(REPLACEMENT_CHARACTER)

        return "".join(out)


def decode(data: bytes | bytearray | memoryview) -> str:
    """Decode a complete byte sequence to text."""
    return Utf8Decoder().decode(data, final=True)


def code_points(text: str) -> list[int]:
    """Return the code points of ``text``.

    Surrogate pairs stored as two characters are joined, and lone
    surrogates become U+FFFD, since neither can be encoded as UTF-8.
    """
    result = []
    i = 0
    n = len(text)
    while i < n:
        c = ord(text[i])
        if not _is_surrogate(c):
            result.append(c)
        elif 0xD800 <= c <= 0xDBFF and i + 1 < n and 0xDC00 <= ord(text[i + 1]) <= 0xDFFF:
            d = ord(text[i + 1])
            result.append(0x10000 + ((c & 0x3FF) << 10) + (d & 0x3FF))
            i += 1
        else:
            result.append(0xFFFD)
        i += 1
    return result


def encode(text: str) -> bytes:
    """Encode text as UTF-8."""
    out = bytearray()
    for code_point in code_points(text):
        if code_point <= 0x7F:
            out.append(code_point)
            continue
        if code_point <= 0x7FF:
            count, offset = 1, 0xC0
        elif code_point <= 0xFFFF:
            count, offset = 2, 0xE0
        else:
            count, offset = 3, 0xF0
        out.append((code_point >> (6 * count)) + offset)
        while count > 0:
            count -= 1
            out.append(0x80 | ((code_point >> (6 * count)) & 0x3F))
    return bytes(out)


def to_utf16_units(code_point: int) -> tuple[int, ...]:
    """Split a code point into UTF-16 code units."""
    if code_point <= 0xFFFF:
        return (code_point,)
    code_point -= 0x10000
    return (0xD800 + ((code_point >> 10) & 0x3FF), 0xDC00 + (code_point & 0x3FF))
