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

"""Encoding-aware HTTP client core for token-authenticated, paginated REST APIs."""

from .client import ApiResponse, TokenRestClient
from .config import ClientConfig, Compression
from .decoding import DecodeMethod, byte_array_to_str, decode_to_text
from .exceptions import (
    ConfigError,
    DecodeError,
    HttpError,
    TokenRestError,
    TransportError,
)
from .forms import FormData, KeepAsObject, keep_as_object, to_form_fields
from .pagination import ContinuationSet, LinkName, LinkSet, build_continuations
from .transport import PendingRequest, Transport
from .types import (
    UNSET,
    Method,
    RequestDescriptor,
    ResponseEnvelope,
    ResponseType,
    TerminalEvent,
)
from .urls import ApiLocation, Url

__all__ = [
    "UNSET",
    "ApiLocation",
    "ApiResponse",
    "ClientConfig",
    "Compression",
    "ConfigError",
    "ContinuationSet",
    "DecodeError",
    "DecodeMethod",
    "FormData",
    "HttpError",
    "KeepAsObject",
    "LinkName",
    "LinkSet",
    "Method",
    "PendingRequest",
    "RequestDescriptor",
    "ResponseEnvelope",
    "ResponseType",
    "TerminalEvent",
    "TokenRestClient",
    "TokenRestError",
    "Transport",
    "TransportError",
    "Url",
    "build_continuations",
    "byte_array_to_str",
    "decode_to_text",
    "keep_as_object",
    "to_form_fields",
]
