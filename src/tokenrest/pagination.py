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

"""Hypermedia pagination links turned into continuation calls."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar
from urllib.parse import unquote

from pydantic import BaseModel, ConfigDict

from .types import RequestDescriptor

logger = logging.getLogger(__name__)

T = TypeVar("T")

Dispatcher = Callable[[RequestDescriptor], Awaitable[T]]
Continuation = Callable[[], Awaitable[T]]


class LinkName(str, Enum):
    """Pagination link names understood in a ``links`` record."""

    NEXT = "next"
    PREV = "prev"
    FIRST = "first"
    LAST = "last"


class LinkSet(BaseModel):
    """Pagination URLs found in a decoded response body."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    next: str | None = None
    prev: str | None = None
    first: str | None = None
    last: str | None = None

    @classmethod
    def from_body(cls, body: Any) -> LinkSet | None:
        """Extract the links of a decoded JSON body.

        Returns ``None`` when the body has no ``links`` record. Entries
        that are missing, empty or not strings are left unset.
        """
        if not isinstance(body, Mapping):
            return None
        links = body.get("links")
        if not isinstance(links, Mapping):
            return None
        return cls(
            **{
                name.value: links[name.value]
                for name in LinkName
                if isinstance(links.get(name.value), str) and links[name.value]
            }
        )

    def get(self, name: LinkName | str) -> str | None:
        return getattr(self, LinkName(name).value)


@dataclass(frozen=True)
class ContinuationSet(Generic[T]):
    """Zero-argument calls that fetch the linked pages.

    A link absent from the response is ``None`` here, never a call that
    fails.
    """

    next: Continuation[T] | None = None
    prev: Continuation[T] | None = None
    first: Continuation[T] | None = None
    last: Continuation[T] | None = None

    def get(self, name: LinkName | str) -> Continuation[T] | None:
        return getattr(self, LinkName(name).value)

    def __bool__(self) -> bool:
        return any(self.get(name) is not None for name in LinkName)


def follow_up_descriptor(original: RequestDescriptor, link: str) -> RequestDescriptor:
    """Same method, headers and body as ``original``, with the link's URL."""
    return original.with_url(unquote(link))


def _continuation(
    descriptor: RequestDescriptor, dispatch: Dispatcher[T]
) -> Continuation[T]:
    async def follow() -> T:
        return await dispatch(descriptor)

    return follow


def build_continuations(
    decoded_body: Any,
    original: RequestDescriptor,
    dispatch: Dispatcher[T],
) -> ContinuationSet[T]:
    """Build continuations for the links of a decoded response body.

    Args:
        decoded_body: Parsed JSON body; only its ``links`` record is read
        original: Descriptor of the request that produced the body
        dispatch: Runs a follow-up descriptor through the full pipeline

    Returns:
        A continuation for each present link
    """
    links = LinkSet.from_body(decoded_body)
    if links is None:
        return ContinuationSet()

    continuations: dict[str, Continuation[T]] = {}
    for name in LinkName:
        link = links.get(name)
        if link:
            descriptor = follow_up_descriptor(original, link)
            logger.debug("Continuation %s -> %s", name.value, descriptor.url)
            continuations[name.value] = _continuation(descriptor, dispatch)
    return ContinuationSet(**continuations)
