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

"""Client for token-authenticated, paginated REST APIs.

Example:
    ```python
    async with TokenRestClient("secret", "https://api.example.com", "2") as client:
        page = await client.get("items", query=["per_page=50"])
        while page.continuations.next:
            page = await page.continuations.next()
    ```
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import AsyncIterator, Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

import httpx

from .auth import AUTHORIZATION, authorization_value, build_headers, response_type_for
from .config import ClientConfig, Compression
from .exceptions import DecodeError, HttpError
from .pagination import ContinuationSet, LinkSet, build_continuations
from .transport import Transport
from .types import UNSET, Method, RequestDescriptor, ResponseEnvelope
from .urls import encode_component

logger = logging.getLogger(__name__)

_JSON_CONTENT_TYPE_RE = re.compile(r"^application/json(;|$)", re.IGNORECASE)

Query = Sequence[str] | Mapping[str, Any]


def is_json_content_type(content_type: str | None) -> bool:
    return bool(content_type) and _JSON_CONTENT_TYPE_RE.match(content_type) is not None


def _query_string(query: Query | None) -> str:
    if not query:
        return ""
    if isinstance(query, Mapping):
        pairs = [f"{encode_component(str(k))}={encode_component(str(v))}" for k, v in query.items()]
    else:
        pairs = list(query)
    return "?" + "&".join(pairs)


@dataclass
class ApiResponse:
    """Result of a request made through :class:`TokenRestClient`.

    ``data`` is the parsed JSON body, or ``None`` for non-JSON responses.
    """

    envelope: ResponseEnvelope
    data: Any = None
    links: LinkSet | None = None
    continuations: ContinuationSet[ApiResponse] = field(default_factory=ContinuationSet)

    @property
    def status_code(self) -> int:
        return self.envelope.status_code

    @property
    def text(self) -> str:
        return self.envelope.text


class TokenRestClient:
    """Token-authenticated client with gzip-aware decoding and pagination.

    Entry points build a request descriptor, add headers from the current
    configuration, dispatch it, decode the body and attach continuations
    for any ``links`` in a JSON response.
    """

    def __init__(
        self,
        api_key: str | None = None,
        host: str = "",
        version: str | int = "1",
        compression: Compression | str = Compression.AUTO,
        *,
        session_token: str | None = None,
        default_timeout: float = 0.0,
        log_curl: bool = False,
        config: ClientConfig | None = None,
        transport: Transport | None = None,
        http_client: httpx.AsyncClient | None = None,
        on_unauthorized: Callable[[HttpError], None] | None = None,
    ):
        """Initialize the client.

        Args:
            api_key: API key; an empty key raises ``ConfigError``
            host: Scheme and host of the API, e.g. ``https://api.example.com``
            version: API version used in ``/api/v<version>/``
            compression: ``auto``, ``gzip`` or ``none``
            session_token: Session token from a prior authentication
            default_timeout: Timeout in seconds when a call gives none
            log_curl: Log curl equivalents of requests at DEBUG
            config: Ready-made configuration, replaces the arguments above
            transport: Transport to dispatch through
            http_client: httpx client for a transport created here
            on_unauthorized: Called with the error whenever a request
                fails with status 401, before the error is raised

        Raises:
            ConfigError: If the API key is missing
        """
        if config is None:
            config = ClientConfig(
                api_key=api_key,
                host=host,
                version=str(version),
                compression=compression,
                session_token=session_token,
                default_timeout=default_timeout,
                log_curl=log_curl,
            )
        self.config = config
        self._transport = transport or Transport(http_client, log_curl=config.log_curl)
        self.on_unauthorized = on_unauthorized

    @property
    def session_token(self) -> str | None:
        return self.config.session_token

    @session_token.setter
    def session_token(self, value: str | None) -> None:
        self.config.session_token = value

    @property
    def transport(self) -> Transport:
        return self._transport

    async def close(self) -> None:
        await self._transport.close()

    async def __aenter__(self) -> TokenRestClient:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def url_for(self, kind: str, query: Query | None = None) -> str:
        return f"{self.config.base_url}/{kind}{_query_string(query)}"

    def build_descriptor(
        self,
        method: Method | str,
        kind: str,
        query: Query | None = None,
        body: Any = UNSET,
        timeout: float | None = None,
    ) -> RequestDescriptor:
        """Describe a request against ``kind`` using the current configuration."""
        return RequestDescriptor(
            method=Method(method),
            url=self.url_for(kind, query),
            headers=tuple(build_headers(self.config, body)),
            body=body,
            timeout=self.config.default_timeout if timeout is None else timeout,
            response_type=response_type_for(self.config),
        )

    async def request(
        self,
        method: Method | str,
        kind: str,
        query: Query | None = None,
        body: Any = UNSET,
        timeout: float | None = None,
    ) -> ApiResponse:
        """Send a request to ``{host}/api/v{version}/{kind}``.

        Args:
            method: HTTP method
            kind: Resource path below the versioned API root
            query: ``key=value`` strings, or a mapping to encode
            body: Request body; ``UNSET`` sends none
            timeout: Seconds, 0 for none; defaults to the configured value

        Returns:
            The response, with parsed JSON and continuations when the
            response is JSON

        Raises:
            HttpError: Non-2xx status
            TransportError: Network error, timeout or abort
            DecodeError: A JSON response could not be decoded or parsed
        """
        descriptor = self.build_descriptor(method, kind, query, body, timeout)
        return await self._execute(descriptor)

    async def get(
        self, kind: str, query: Query | None = None, timeout: float | None = None
    ) -> ApiResponse:
        return await self.request(Method.GET, kind, query=query, timeout=timeout)

    async def post(self, kind: str, body: Any = UNSET, timeout: float | None = None) -> ApiResponse:
        return await self.request(Method.POST, kind, body=body, timeout=timeout)

    async def put(self, kind: str, body: Any = UNSET, timeout: float | None = None) -> ApiResponse:
        return await self.request(Method.PUT, kind, body=body, timeout=timeout)

    async def patch(self, kind: str, body: Any = UNSET, timeout: float | None = None) -> ApiResponse:
        return await self.request(Method.PATCH, kind, body=body, timeout=timeout)

    async def delete(self, kind: str, body: Any = UNSET, timeout: float | None = None) -> ApiResponse:
        return await self.request(Method.DELETE, kind, body=body, timeout=timeout)

    async def iter_pages(
        self, kind: str, query: Query | None = None, timeout: float | None = None
    ) -> AsyncIterator[ApiResponse]:
        """Yield the first page of ``kind`` and every page linked as ``next``."""
        page = await self.get(kind, query=query, timeout=timeout)
        yield page
        while page.continuations.next is not None:
            page = await page.continuations.next()
            yield page

    async def _execute(self, descriptor: RequestDescriptor) -> ApiResponse:
        try:
            envelope = await self._transport.dispatch(descriptor)
        except HttpError as e:
            if e.status_code == 401:
                logger.warning("Unauthorized response from %s", descriptor.url)
                if self.on_unauthorized is not None:
                    self.on_unauthorized(e)
            raise
        return self._to_response(envelope, descriptor)

    async def _follow(self, descriptor: RequestDescriptor) -> ApiResponse:
        # Credentials may have rotated since the original request
        refreshed = descriptor.with_header(AUTHORIZATION, authorization_value(self.config))
        return await self._execute(refreshed)

    def _to_response(self, envelope: ResponseEnvelope, descriptor: RequestDescriptor) -> ApiResponse:
        if not is_json_content_type(envelope.content_type):
            return ApiResponse(envelope=envelope)

        text = envelope.text
        try:
            data = json.loads(text)
        except ValueError as e:
            raise DecodeError(f"Could not parse JSON response: {e}", body=text) from e
        if data is None:
            raise DecodeError("Could not parse JSON response: empty document", body=text)

        return ApiResponse(
            envelope=envelope,
            data=data,
            links=LinkSet.from_body(data),
            continuations=build_continuations(data, descriptor, self._follow),
        )
