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

"""Exceptions raised by the tokenrest client core."""

from __future__ import annotations

from .types import TerminalEvent


class TokenRestError(Exception):
    """Base exception for all tokenrest errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigError(TokenRestError):
    """Client configuration is invalid (e.g. missing API key)."""


class DecodeError(TokenRestError):
    """A response payload could not be decoded."""

    def __init__(self, message: str, body: str | None = None):
        super().__init__(message)
        self.body = body


class TransportError(TokenRestError):
    """The request never produced an HTTP response.

    Raised for network failures, native timeouts and aborts, including the
    fallback timer abort.
    """

    def __init__(
        self,
        message: str,
        event: TerminalEvent = TerminalEvent.ERROR,
        url: str = "",
        body: str = "",
        status_code: int = 0,
    ):
        super().__init__(message)
        self.event = event
        self.url = url
        self.body = body
        self.status_code = status_code


class HttpError(TokenRestError):
    """The server answered with a non-2xx status code.

    ``body`` holds the decoded response text so it can be shown as a
    diagnostic.
    """

    def __init__(
        self,
        status_code: int,
        status_text: str,
        body: str,
        url: str = "",
        headers: dict[str, str] | None = None,
    ):
        details = [f"Status code: {status_code}"]
        if status_text:
            details.append(f"Status: {status_text}")
        details.append(f"Response: {body}")
        super().__init__(f"({', '.join(details)})")
        self.status_code = status_code
        self.status_text = status_text
        self.body = body
        self.url = url
        self.headers = headers or {}
