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

"""Tests for request dispatch, timeout emulation and result classification."""

import asyncio
import gc
import gzip
import json
import logging
import time

import httpx
import pytest
import respx

from tokenrest.exceptions import HttpError, TransportError
from tokenrest.forms import FormData
from tokenrest.transport import (
    FALLBACK_TIMEOUT_FACTOR,
    Transport,
    curl_equivalent,
    serialize_body,
)
from tokenrest.types import (
    Method,
    RequestDescriptor,
    ResponseType,
    TerminalEvent,
)

URL = "https://api.example.com/api/v1/items"


def _descriptor(**kwargs):
    values = {"method": Method.GET, "url": URL}
    values.update(kwargs)
    return RequestDescriptor(**values)


def _hanging_transport():
    async def handler(request):
        await asyncio.sleep(30)
        return httpx.Response(200)

    return Transport(httpx.AsyncClient(transport=httpx.MockTransport(handler)))


class TestSerializeBody:
    def test_no_body(self):
        assert serialize_body(_descriptor()) == {}

    def test_string_passthrough(self):
        assert serialize_body(_descriptor(body="raw text")) == {"content": "raw text"}

    def test_structured_body_is_json(self):
        kwargs = serialize_body(_descriptor(body={"a": [1, 2]}))
        assert json.loads(kwargs["content"]) == {"a": [1, 2]}

    def test_null_body_is_json_null(self):
        assert serialize_body(_descriptor(body=None)) == {"content": "null"}

    def test_multipart_content_type_flattens_body(self):
        descriptor = _descriptor(
            method=Method.POST,
            headers=[("Content-Type", "multipart/form-data")],
            body={"user": {"name": "Ada"}},
        )
        assert serialize_body(descriptor) == {"files": [("user[name]", (None, "Ada"))]}

    def test_form_data_body(self):
        descriptor = _descriptor(method=Method.POST, body=FormData([("a", "1"), ("f", b"xyz")]))
        assert serialize_body(descriptor) == {"files": [("a", (None, "1")), ("f", b"xyz")]}


class TestCurlEquivalent:
    def test_json_request(self):
        descriptor = _descriptor(
            method=Method.POST,
            url="https://api.example.com/api/v1/items?q=a b",
            headers=[("Authorization", 'Token token="k"'), ("X-Note", "it's")],
            body={"a": 1},
        )
        assert curl_equivalent(descriptor) == (
            "curl -X POST -H 'Authorization: Token token=\"k\"' "
            "-H 'X-Note: it\\'s' -d '{\"a\": 1}' "
            '"https://api.example.com/api/v1/items?q=a%20b"'
        )

    def test_without_body(self):
        assert curl_equivalent(_descriptor()) == f'curl -X GET "{URL}"'


class TestDispatch:
    @pytest.mark.asyncio
    @respx.mock
    async def test_success_resolves(self):
        route = respx.get(URL).mock(
            return_value=httpx.Response(200, json={"ok": True}, headers={"X-Trace": "1"})
        )

        async with Transport() as transport:
            envelope = await transport.dispatch(_descriptor())

        assert route.called
        assert envelope.status_code == 200
        assert envelope.status_text == "OK"
        assert envelope.headers["x-trace"] == "1"
        assert json.loads(envelope.text) == {"ok": True}

    @pytest.mark.asyncio
    @respx.mock
    async def test_headers_sent_in_order_with_duplicates(self):
        route = respx.get(URL).mock(return_value=httpx.Response(204))
        headers = [("X-One", "1"), ("X-Dup", "a"), ("X-Dup", "b")]

        async with Transport() as transport:
            await transport.dispatch(_descriptor(headers=headers))

        sent = route.calls.last.request.headers
        assert sent.get_list("X-Dup") == ["a", "b"]
        names = [name.lower() for name, _ in sent.multi_items()]
        assert names.index("x-one") < names.index("x-dup")

    @pytest.mark.asyncio
    @respx.mock
    async def test_json_body_is_sent(self):
        route = respx.post(URL).mock(return_value=httpx.Response(201))

        async with Transport() as transport:
            await transport.dispatch(
                _descriptor(
                    method=Method.POST,
                    headers=[("Content-Type", "application/json")],
                    body={"name": "widget"},
                )
            )

        assert json.loads(route.calls.last.request.content) == {"name": "widget"}

    @pytest.mark.asyncio
    @respx.mock
    async def test_multipart_body_is_sent(self):
        route = respx.post(URL).mock(return_value=httpx.Response(200))

        async with Transport() as transport:
            await transport.dispatch(
                _descriptor(
                    method=Method.POST,
                    headers=[("Content-Type", "multipart/form-data")],
                    body={"user": {"name": "Ada"}},
                )
            )

        request = route.calls.last.request
        assert request.headers["content-type"].startswith("multipart/form-data; boundary=")
        assert b'name="user[name]"' in request.content
        assert b"Ada" in request.content

    @pytest.mark.asyncio
    @respx.mock
    async def test_non_2xx_rejects_with_decoded_body(self):
        respx.get(URL).mock(return_value=httpx.Response(404, text="no such item"))

        async with Transport() as transport:
            with pytest.raises(HttpError) as exc_info:
                await transport.dispatch(_descriptor())

        error = exc_info.value
        assert error.status_code == 404
        assert error.status_text == "Not Found"
        assert error.body == "no such item"
        assert "Status code: 404" in str(error)
        assert "Response: no such item" in str(error)

    @pytest.mark.asyncio
    async def test_error_body_decoded_from_raw_gzip(self):
        def handler(request):
            return httpx.Response(
                500,
                headers={"Content-Encoding": "gzip"},
                stream=httpx.ByteStream(gzip.compress("überfehler".encode("utf-8"))),
            )

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        async with Transport(client) as transport:
            with pytest.raises(HttpError) as exc_info:
                await transport.dispatch(_descriptor(response_type=ResponseType.BYTES))
        await client.aclose()

        assert exc_info.value.body == "überfehler"

    @pytest.mark.asyncio
    @respx.mock
    async def test_network_error(self):
        respx.get(URL).mock(side_effect=httpx.ConnectError("Connection refused"))

        async with Transport() as transport:
            with pytest.raises(TransportError) as exc_info:
                await transport.dispatch(_descriptor())

        assert exc_info.value.event is TerminalEvent.ERROR
        assert exc_info.value.url == URL
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    @pytest.mark.asyncio
    @respx.mock
    async def test_native_timeout(self):
        respx.get(URL).mock(side_effect=httpx.ReadTimeout("Request timed out"))

        async with Transport() as transport:
            with pytest.raises(TransportError) as exc_info:
                await transport.dispatch(_descriptor(timeout=5))

        assert exc_info.value.event is TerminalEvent.TIMEOUT
        assert isinstance(exc_info.value.__cause__, httpx.ReadTimeout)


class TestRawBytesMode:
    @pytest.mark.asyncio
    async def test_gzip_payload_is_sniffed_and_inflated(self):
        body = json.dumps({"city": "Zürich"}).encode("utf-8")

        def handler(request):
            assert request.headers["accept-encoding"] == "gzip"
            return httpx.Response(
                200,
                headers={"Content-Encoding": "gzip", "Content-Type": "application/json"},
                stream=httpx.ByteStream(gzip.compress(body)),
            )

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        transport = Transport(client)
        envelope = await transport.dispatch(
            _descriptor(headers=[("Accept-Encoding", "gzip")], response_type=ResponseType.BYTES)
        )
        await client.aclose()

        assert isinstance(envelope.payload, bytes)
        assert envelope.payload[:2] == b"\x1f\x8b"
        assert json.loads(envelope.text) == {"city": "Zürich"}

    @pytest.mark.asyncio
    @respx.mock
    async def test_pre_inflated_payload(self):
        respx.get(URL).mock(
            return_value=httpx.Response(
                200,
                headers={"Content-Encoding": "gzip"},
                content=gzip.compress("déjà vu".encode("utf-8")),
            )
        )

        async with Transport() as transport:
            envelope = await transport.dispatch(_descriptor(response_type=ResponseType.BYTES))

        assert isinstance(envelope.payload, bytes)
        assert envelope.text == "déjà vu"

    @pytest.mark.asyncio
    async def test_text_mode_payload_is_str(self):
        def handler(request):
            return httpx.Response(200, text="héllo")

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        envelope = await Transport(client).dispatch(_descriptor())
        await client.aclose()

        assert envelope.payload == "héllo"
        assert envelope.text == "héllo"


class TestTimeoutEmulation:
    @pytest.mark.asyncio
    async def test_fallback_timer_aborts_hanging_request(self):
        transport = _hanging_transport()
        timeout = 0.1

        start = time.monotonic()
        with pytest.raises(TransportError) as exc_info:
            await transport.dispatch(_descriptor(timeout=timeout))
        elapsed = time.monotonic() - start
        await transport._client.aclose()

        assert exc_info.value.event is TerminalEvent.ABORT
        assert elapsed >= timeout
        assert elapsed < timeout * FALLBACK_TIMEOUT_FACTOR + 0.2

    @pytest.mark.asyncio
    async def test_zero_timeout_arms_no_timer(self):
        transport = _hanging_transport()

        pending = transport.open(_descriptor(timeout=0))
        assert pending._timer is None
        await asyncio.sleep(0.05)
        assert not pending.done

        pending.abort()
        with pytest.raises(TransportError) as exc_info:
            await pending.wait()
        await transport._client.aclose()

        assert exc_info.value.event is TerminalEvent.ABORT
        assert pending.event is TerminalEvent.ABORT

    @pytest.mark.asyncio
    @respx.mock
    async def test_timer_disarmed_after_load(self):
        respx.get(URL).mock(return_value=httpx.Response(200, text="done"))

        async with Transport() as transport:
            pending = transport.open(_descriptor(timeout=0.05))
            assert pending._timer is not None
            envelope = await pending.wait()
            assert pending._timer is None
            assert pending.event is TerminalEvent.LOAD

            # A late abort must not override the settled result
            await asyncio.sleep(0.1)
            pending.abort()
            assert pending.event is TerminalEvent.LOAD
            assert envelope.text == "done"

    @pytest.mark.asyncio
    async def test_abort_without_wait_logs_nothing(self, caplog):
        transport = _hanging_transport()

        pending = transport.open(_descriptor(timeout=10))
        await asyncio.sleep(0)
        with caplog.at_level(logging.ERROR, logger="asyncio"):
            pending.abort()
            await asyncio.sleep(0.01)
            del pending
            gc.collect()
        await transport._client.aclose()

        assert not any("never retrieved" in record.getMessage() for record in caplog.records)

    @pytest.mark.asyncio
    async def test_aborted_request_still_raises_when_awaited(self):
        transport = _hanging_transport()

        pending = transport.open(_descriptor(timeout=10))
        pending.abort()
        with pytest.raises(TransportError) as exc_info:
            await pending.wait()
        await transport._client.aclose()

        assert exc_info.value.event is TerminalEvent.ABORT

    @pytest.mark.asyncio
    async def test_caller_abort_is_transport_error(self):
        transport = _hanging_transport()

        pending = transport.open(_descriptor(timeout=10))
        await asyncio.sleep(0)
        pending.abort()
        with pytest.raises(TransportError) as exc_info:
            await pending.wait()
        await transport._client.aclose()

        assert exc_info.value.event is TerminalEvent.ABORT
        assert pending._timer is None

    @pytest.mark.asyncio
    async def test_concurrent_requests_resolve_independently(self):
        async def handler(request):
            delay = float(request.url.params["delay"])
            await asyncio.sleep(delay)
            return httpx.Response(200, text=str(delay))

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        transport = Transport(client)
        slow = transport.open(_descriptor(url=f"{URL}?delay=0.5", timeout=0.1))
        fast = transport.open(_descriptor(url=f"{URL}?delay=0.01", timeout=1))

        fast_envelope = await fast.wait()
        with pytest.raises(TransportError):
            await slow.wait()
        await client.aclose()

        assert fast_envelope.text == "0.01"
        assert slow.event is TerminalEvent.ABORT


class TestCurlLogging:
    @pytest.mark.asyncio
    @respx.mock
    async def test_logs_curl_when_enabled(self, caplog):
        respx.get(URL).mock(return_value=httpx.Response(200))

        with caplog.at_level(logging.DEBUG, logger="tokenrest.transport"):
            async with Transport(log_curl=True) as transport:
                await transport.dispatch(_descriptor())

        assert any(record.getMessage().startswith("curl -X GET") for record in caplog.records)
