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

"""Request headers derived from client credentials."""

from __future__ import annotations

from typing import Any

from .config import ClientConfig, Compression
from .forms import FormData
from .types import UNSET, Header, ResponseType

AUTHORIZATION = "Authorization"
CONTENT_TYPE = "Content-Type"
ACCEPT_ENCODING = "Accept-Encoding"
JSON_CONTENT_TYPE = "application/json"
MULTIPART_CONTENT_TYPE = "multipart/form-data"


def authorization_value(config: ClientConfig) -> str:
    value = f'Token token="{config.api_key}"'
    if config.session_token:
        value += f', session="{config.session_token}"'
    return value


def build_headers(config: ClientConfig, body: Any = UNSET) -> list[Header]:
    """Build the ordered header list for a request.

    Args:
        config: Current client configuration
        body: Request body, or ``UNSET`` when there is none

    Returns:
        ``Authorization`` always; ``Content-Type: application/json`` for a
        body that is not already form data; ``Accept-Encoding`` unless the
        compression preference is ``auto``
    """
    headers = [(AUTHORIZATION, authorization_value(config))]
    if body is not UNSET and not isinstance(body, FormData):
        headers.append((CONTENT_TYPE, JSON_CONTENT_TYPE))

    if config.compression is Compression.GZIP:
        headers.append((ACCEPT_ENCODING, "gzip"))
    elif config.compression is Compression.NONE:
        headers.append((ACCEPT_ENCODING, "identity"))
    return headers


def response_type_for(config: ClientConfig) -> ResponseType:
    """Raw bytes are only needed when gzip may have to be inflated here."""
    if config.compression is Compression.GZIP:
        return ResponseType.BYTES
    return ResponseType.TEXT
