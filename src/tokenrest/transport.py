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

"""Dispatch request descriptors over httpx.

Each dispatched request owns a single-resolution future. The first
terminal event (load, error, timeout or abort) settles it and disarms the
fallback timer; later events are ignored.

The native httpx timeout is set from the descriptor. A fallback timer armed
for ``timeout * 1.1`` aborts the request in case the native timeout never
fires. A timeout of 0 disables both.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import httpx

from . import utf8
from .auth import CONTENT_TYPE, MULTIPART_CONTENT_TYPE
from .exceptions import DecodeError, HttpError, TransportError
from .forms import FormData, split_form_fields, to_form_fields
from .types import RequestDescriptor, ResponseEnvelope, ResponseType, TerminalEvent
from .urls import Url

logger = logging.getLogger(__name__)

FALLBACK_TIMEOUT_FACTOR = 1.1


def _json_default(value: Any) -> Any:
    if hasattr(value, "model_dump"):
        return value.model_dump(mode="json")
    if hasattr(value, "isoformat"):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def is_form_body(descriptor: RequestDescriptor) -> bool:
    content_type = descriptor.header(CONTENT_TYPE) or ""
    return isinstance(descriptor.body, FormData) or content_type.lower().startswith(
        MULTIPART_CONTENT_TYPE
    )


def serialize_body(descriptor: RequestDescriptor) -> dict[str, Any]:
    """Build the httpx body arguments for a descriptor.

    Strings and bytes pass through, form-shaped bodies become multipart
    fields, anything else is sent as JSON.
    """
    if not descriptor.has_body:
        return {}
    body = descriptor.body
    if is_form_body(descriptor):
        data, files = split_form_fields(to_form_fields(body))
        # (None, value) keeps plain fields in the multipart body
        return {"files": [(name, (None, value)) for name, value in data] + files}
    if isinstance(body, (str, bytes, bytearray)):
        return {"content": body}
    return {"content": json.dumps(body, default=_json_default)}


def _single_quote_escape(value: str) -> str:
    return value.replace("'", "\\'")


def curl_equivalent(descriptor: RequestDescriptor) -> str:
    """Render a curl command line equivalent to the descriptor."""
    parts = [f"curl -X {descriptor.method.value}"]
    for name, value in descriptor.headers:
        parts.append(f"-H '{_single_quote_escape(name)}: {_single_quote_escape(value)}'")
    if descriptor.has_body:
        body = descriptor.body
        if is_form_body(descriptor):
            fields = [
                [name, value if isinstance(value, str) else "<file>"]
                for name, value in to_form_fields(body)
            ]
            parts.append(f"-d '{json.dumps(fields)}'")
        else:
            if isinstance(body, (bytes, bytearray)):
                body_str = utf8.decode(body)
            elif isinstance(body, str):
                body_str = body
            else:
                body_str = json.dumps(body, default=_json_default)
            parts.append(f"-d '{_single_quote_escape(body_str)}'")
    parts.append(f'"{Url.parse(descriptor.url)}"')
    return " ".join(parts)


def diagnostic_text(envelope: ResponseEnvelope) -> str:
    """Decoded payload for error reporting; never raises."""
    try:
        return envelope.text
    except DecodeError:
        payload = envelope.payload
        return payload if isinstance(payload, str) else utf8.decode(payload)


class PendingRequest:
    """A dispatched request that has not necessarily finished yet.

    ``abort()`` and the fallback timer converge on the same ``abort``
    terminal event, which rejects like a network error.
    """

    def __init__(self, descriptor: RequestDescriptor, loop: asyncio.AbstractEventLoop):
        self.descriptor = descriptor
        self.event: TerminalEvent | None = None
        self._loop = loop
        self._future: asyncio.Future[ResponseEnvelope] = loop.create_future()
        self._task: asyncio.Task[None] | None = None
        self._timer: asyncio.TimerHandle | None = None

    @property
    def done(self) -> bool:
        return self._future.done()

    def settle(
        self,
        event: TerminalEvent,
        result: ResponseEnvelope | None = None,
        error: BaseException | None = None,
    ) -> bool:
        """Record a terminal event. Returns False if one was already recorded."""
        if self._future.done():
            return False
        self._disarm()
        self.event = event
        if error is not None:
            self._future.set_exception(error)
        else:
            self._future.set_result(result)
        return True

    def abort(self, reason: str = "Request aborted") -> None:
        """Abort the request. Does nothing once it has finished."""
        error = TransportError(reason, event=TerminalEvent.ABORT, url=self.descriptor.url)
        if self.settle(TerminalEvent.ABORT, error=error):
            # An aborted request may never be awaited
            self._future.exception()
            if self._task is not None and not self._task.done():
                self._task.cancel()

    async def wait(self) -> ResponseEnvelope:
        """Wait for the terminal event.

        Raises:
            HttpError: The server answered with a non-2xx status
            TransportError: Network error, timeout or abort
        """
        try:
            return await asyncio.shield(self._future)
        except asyncio.CancelledError:
            if not self._future.done():
                self.abort("Request cancelled by caller")
            raise

    def _start(self, task: asyncio.Task[None]) -> None:
        self._task = task
        timeout = self.descriptor.timeout
        if timeout > 0:
            self._timer = self._loop.call_later(
                timeout * FALLBACK_TIMEOUT_FACTOR, self._on_fallback_timeout
            )

    def _on_fallback_timeout(self) -> None:
        self._timer = None
        logger.debug(
            "Fallback timer fired after %.3fs for %s %s",
            self.descriptor.timeout * FALLBACK_TIMEOUT_FACTOR,
            self.descriptor.method.value,
            self.descriptor.url,
        )
        self.abort(f"Request aborted: no response within {self.descriptor.timeout}s")

    def _disarm(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None


class Transport:
    """Sends request descriptors and classifies their outcome."""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        log_curl: bool = False,
    ):
        """Initialize the transport.

        Args:
            client: httpx client to send through; one is created lazily
                (and owned) when omitted
            log_curl: Log a curl equivalent of every request at DEBUG
        """
        self._client = client
        self._owns_client = client is None
        self.log_curl = log_curl

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient()
            self._owns_client = True
        return self._client

    async def close(self) -> None:
        """Close the HTTP client if this transport created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> Transport:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def open(self, descriptor: RequestDescriptor) -> PendingRequest:
        """Start dispatching a descriptor without waiting for it.

        Must be called from a running event loop.
        """
        loop = asyncio.get_running_loop()
        pending = PendingRequest(descriptor, loop)
        logger.debug("Dispatching %s %s", descriptor.method.value, descriptor.url)
        if self.log_curl:
            logger.debug("%s", curl_equivalent(descriptor))
        pending._start(loop.create_task(self._run(pending)))
        return pending

    async def dispatch(self, descriptor: RequestDescriptor) -> ResponseEnvelope:
        """Send a descriptor and wait for a 2xx response.

        Raises:
            HttpError: Non-2xx status, with the decoded body
            TransportError: Network error, timeout or abort
        """
        return await self.open(descriptor).wait()

    async def _run(self, pending: PendingRequest) -> None:
        descriptor = pending.descriptor
        try:
            envelope = await self._perform(descriptor)
        except httpx.TimeoutException as e:
            failure = TransportError(
                f"Request timed out: {e}", event=TerminalEvent.TIMEOUT, url=descriptor.url
            )
            failure.__cause__ = e
            pending.settle(TerminalEvent.TIMEOUT, error=failure)
            return
        except (httpx.HTTPError, httpx.InvalidURL, OSError) as e:
            failure = TransportError(
                f"Request failed: {e}", event=TerminalEvent.ERROR, url=descriptor.url
            )
            failure.__cause__ = e
            pending.settle(TerminalEvent.ERROR, error=failure)
            return
        except Exception as e:
            pending.settle(TerminalEvent.ERROR, error=e)
            return

        if envelope.is_success:
            pending.settle(TerminalEvent.LOAD, result=envelope)
            return

        error = HttpError(
            envelope.status_code,
            envelope.status_text,
            diagnostic_text(envelope),
            url=envelope.url,
            headers=envelope.headers,
        )
        pending.settle(TerminalEvent.LOAD, error=error)

    def _build_request(self, descriptor: RequestDescriptor) -> httpx.Request:
        headers = list(descriptor.headers)
        body_kwargs = serialize_body(descriptor)
        if "files" in body_kwargs:
            # httpx adds the multipart boundary itself
            headers = [
                (name, value)
                for name, value in headers
                if not (
                    name.lower() == CONTENT_TYPE.lower()
                    and value.lower().startswith(MULTIPART_CONTENT_TYPE)
                )
            ]
        timeout = httpx.Timeout(descriptor.timeout if descriptor.timeout > 0 else None)
        return self._get_client().build_request(
            descriptor.method.value,
            descriptor.url,
            headers=headers,
            timeout=timeout,
            **body_kwargs,
        )

    async def _perform(self, descriptor: RequestDescriptor) -> ResponseEnvelope:
        request = self._build_request(descriptor)
        response = await self._get_client().send(request, stream=True)
        try:
            if descriptor.response_type is ResponseType.BYTES:
                if response.is_stream_consumed:
                    # Read (and inflated) before it reached us
                    payload: bytes | str = response.content
                else:
                    payload = b"".join([chunk async for chunk in response.aiter_raw()])
            else:
                await response.aread()
                payload = response.text
        finally:
            await response.aclose()

        return ResponseEnvelope(
            status_code=response.status_code,
            status_text=response.reason_phrase,
            headers={name.lower(): value for name, value in response.headers.items()},
            payload=payload,
            url=str(response.url),
            request=descriptor,
        )
