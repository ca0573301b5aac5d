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

"""Flatten nested values into multipart form fields.

``{"user": {"tags": ["a", "b"]}}`` becomes ``user[tags][0]=a`` and
``user[tags][1]=b``. Cyclic input is not detected.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from datetime import date, datetime, time, timezone
from typing import Any

KEEP_AS_OBJECT_KEY = "_keep_as_object"

FormField = tuple[str, Any]


class FormData(list):
    """An already flattened list of ``(name, value)`` form fields."""


class KeepAsObject(dict):
    """A mapping sent as a single field instead of being flattened."""


def keep_as_object(value: Mapping[str, Any]) -> KeepAsObject:
    return KeepAsObject(value)


def is_file_like(value: Any) -> bool:
    return isinstance(value, (bytes, bytearray)) or callable(getattr(value, "read", None))


def _is_opaque(value: Mapping[str, Any]) -> bool:
    return isinstance(value, KeepAsObject) or bool(value.get(KEEP_AS_OBJECT_KEY))


def _scalar_to_str(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    return str(value)


def _iso_8601(value: date | time) -> str:
    """ISO 8601 text; aware datetimes are given in UTC with milliseconds and ``Z``.

    Naive datetimes carry no zone to convert from and keep their local
    wall-clock value.
    """
    if isinstance(value, datetime) and value.utcoffset() is not None:
        utc = value.astimezone(timezone.utc).replace(tzinfo=None)
        return utc.isoformat(timespec="milliseconds") + "Z"
    return value.isoformat()


def _child_key(prefix: str, name: Any) -> str:
    return f"{prefix}[{name}]" if prefix else str(name)


def _as_mapping(value: Any) -> Mapping[str, Any] | None:
    if isinstance(value, Mapping):
        return value
    if hasattr(value, "model_dump"):
        return value.model_dump(mode="json")
    return None


def _flatten(value: Any, key: str, fields: list[FormField]) -> None:
    if isinstance(value, (datetime, date, time)):
        fields.append((key, _iso_8601(value)))
    elif is_file_like(value):
        fields.append((key, value))
    elif isinstance(value, (list, tuple)):
        for index, element in enumerate(value):
            _flatten(element, f"{key}[{index}]", fields)
    else:
        mapping = _as_mapping(value)
        if mapping is None:
            fields.append((key, _scalar_to_str(value)))
        elif _is_opaque(mapping):
            leaf = {k: v for k, v in mapping.items() if k != KEEP_AS_OBJECT_KEY}
            fields.append((key, json.dumps(leaf, default=str)))
        else:
            for name, child in mapping.items():
                _flatten(child, _child_key(key, name), fields)


def to_form_fields(value: Any, key_prefix: str = "") -> FormData:
    """Flatten ``value`` into an ordered list of form fields.

    Args:
        value: Mapping (or pydantic model) to flatten; a scalar is only
            accepted together with a ``key_prefix``
        key_prefix: Name of the enclosing field, if any

    Returns:
        Fields in traversal order. Values are strings, except file-like
        leaves (bytes or objects with ``read``) which pass through.
    """
    if isinstance(value, FormData):
        return value
    fields = FormData()
    if key_prefix:
        _flatten(value, key_prefix, fields)
        return fields
    mapping = _as_mapping(value)
    if mapping is not None:
        for name, child in mapping.items():
            if name != KEEP_AS_OBJECT_KEY:
                _flatten(child, str(name), fields)
    else:
        raise TypeError(f"Cannot build form fields from {type(value).__name__} without a key")
    return fields


def split_form_fields(
    fields: list[FormField],
) -> tuple[list[FormField], list[FormField]]:
    """Split flattened fields into plain data and file uploads."""
    data = []
    files = []
    for name, value in fields:
        if is_file_like(value):
            files.append((name, value))
        else:
            data.append((name, value))
    return data, files
