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

"""Absolute URL decomposition and reassembly."""

from __future__ import annotations

import re
from dataclasses import dataclass
from urllib.parse import quote, unquote

_URL_RE = re.compile(
    r"^(?:([^:/?#]+):)?"  # protocol
    r"//([^/:?#]*)"  # host
    r"(?::(\d+))?"  # port
    r"([^?#]*)"  # path
    r"(?:\?([^#]*))?"  # query
    r"(?:#(.*))?$"  # fragment
)

_PARAM_RE = re.compile(r"([^&=]+)(?:=([^&]*))?")

_API_LOCATION_RE = re.compile(
    r"^(https?:)//"
    r"(([^:/?#]*)(?::([0-9]+))?)"
    r"(/api/v\d+)"
    r"(/[^?#]*)"
    r"(\?[^#]*|)"
    r"(#.*|)$"
)

# Characters left alone by JavaScript's encodeURIComponent
_COMPONENT_SAFE = "-_.!~*'()"


def encode_component(value: str) -> str:
    return quote(value, safe=_COMPONENT_SAFE)


@dataclass
class Url:
    """An absolute URL split into its components.

    Query parameters are decoded on parse and re-encoded one pair at a
    time on render, so only queries produced by the same encoder are
    guaranteed to round trip byte for byte.
    """

    protocol: str | None = None
    host: str | None = None
    port: int | None = None
    path: str | None = None
    query: str | None = None
    fragment: str | None = None

    @classmethod
    def parse(cls, url: str) -> Url:
        match = _URL_RE.match(url)
        if match is None:
            return cls()
        protocol, host, port, path, query, fragment = match.groups()
        return cls(
            protocol=protocol,
            host=host,
            port=int(port) if port else None,
            path=path,
            query=query,
            fragment=fragment,
        )

    @property
    def params(self) -> list[tuple[str, str | None]] | None:
        """Ordered query pairs; a key without ``=`` has a ``None`` value."""
        if not self.query:
            return None
        pairs = []
        for match in _PARAM_RE.finditer(self.query):
            key, value = match.group(1), match.group(2)
            pairs.append((unquote(key), unquote(value) if value is not None else None))
        return pairs

    def __str__(self) -> str:
        parts = []
        if self.protocol:
            parts.append(f"{self.protocol}:")
        parts.append(f"//{self.host or ''}")
        if self.port is not None:
            parts.append(f":{self.port}")
        parts.append(self.path or "")
        params = self.params
        if params:
            encoded = []
            for key, value in params:
                if value is None:
                    encoded.append(encode_component(key))
                else:
                    encoded.append(f"{encode_component(key)}={encode_component(value)}")
            parts.append("?" + "&".join(encoded))
        if self.fragment:
            parts.append(f"#{self.fragment}")
        return "".join(parts)


def parse(url: str) -> Url:
    return Url.parse(url)


@dataclass(frozen=True)
class ApiLocation:
    """Location of an API resource of the form ``/api/v<N>/<path>``."""

    href: str
    protocol: str
    host: str
    hostname: str
    port: str | None
    path_header: str
    path_name: str
    search: str
    hash: str

    @property
    def version(self) -> int:
        return int(self.path_header.rsplit("v", 1)[1])

    @classmethod
    def parse(cls, href: str) -> ApiLocation | None:
        """Split an API URL, or return ``None`` when it has another shape."""
        match = _API_LOCATION_RE.match(href or "")
        if match is None:
            return None
        protocol, host, hostname, port, path_header, path_name, search, hash_ = match.groups()
        return cls(
            href=href,
            protocol=protocol,
            host=host,
            hostname=hostname,
            port=port,
            path_header=path_header,
            path_name=path_name,
            search=search,
            hash=hash_,
        )
