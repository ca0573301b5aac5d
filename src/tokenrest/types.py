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

"""Common types for the client core."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from functools import cached_property
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .urls import ApiLocation


# Sentinel for "no body", distinct from a JSON null body
class _Unset:
    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "UNSET"


UNSET = _Unset()


class Method(str, Enum):
    """HTTP methods exposed by the client."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"


class ResponseType(str, Enum):
    """How the transport hands the payload back."""

    TEXT = "text"
    BYTES = "bytes"


class TerminalEvent(str, Enum):
    """Terminal events a dispatched request can end with."""

    LOAD = "load"
    ERROR = "error"
    TIMEOUT = "timeout"
    ABORT = "abort"


Header = tuple[str, str]


@dataclass(frozen=True)
class RequestDescriptor:
    """Immutable description of a single HTTP request.

    Headers are kept as an ordered tuple of pairs so that duplicates and
    ordering survive onto the wire.
    """

    method: Method
    url: str
    headers: tuple[Header, ...] = ()
    body: Any = UNSET
    timeout: float = 0.0
    response_type: ResponseType = ResponseType.TEXT

    def __post_init__(self) -> None:
        object.__setattr__(self, "method", Method(self.method))
        object.__setattr__(self, "response_type", ResponseType(self.response_type))
        object.__setattr__(self, "headers", tuple(tuple(h) for h in self.headers))

    @property
    def has_body(self) -> bool:
        return not isinstance(self.body, _Unset)

    def header(self, name: str) -> str | None:
        """Return the first value of a header, matched case-insensitively."""
        lowered = name.lower()
        for key, value in self.headers:
            if key.lower() == lowered:
                return value
        return None

    def with_url(self, url: str) -> RequestDescriptor:
        return replace(self, url=url)

    def with_header(self, name: str, value: str) -> RequestDescriptor:
        """Set a header in place of its first occurrence, dropping any others.

        The header is appended when it is not present yet.
        """
        lowered = name.lower()
        headers = []
        found = False
        for key, current in self.headers:
            if key.lower() == lowered:
                if not found:
                    headers.append((key, value))
                    found = True
                continue
            headers.append((key, current))
        if not found:
            headers.append((name, value))
        return replace(self, headers=tuple(headers))


@dataclass
class ResponseEnvelope:
    """A completed HTTP exchange as seen by the client core.

    ``payload`` is ``bytes`` when the request ran in raw-byte mode and
    ``str`` when the transport already decoded it.
    """

    status_code: int
    status_text: str
    headers: dict[str, str]
    payload: bytes | str
    url: str = ""
    request: RequestDescriptor | None = field(default=None, repr=False)

    @property
    def is_success(self) -> bool:
        return self.status_code // 100 == 2

    @property
    def content_type(self) -> str:
        return self.headers.get("content-type", "")

    @property
    def content_encoding(self) -> str | None:
        return self.headers.get("content-encoding")

    @cached_property
    def text(self) -> str:
        """Payload decoded to text, computed at most once."""
        from .decoding import decode_to_text

        return decode_to_text(self.payload, self.content_encoding)

    @property
    def location(self) -> ApiLocation | None:
        from .urls import ApiLocation

        return ApiLocation.parse(self.url)
