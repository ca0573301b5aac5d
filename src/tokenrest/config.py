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

"""Client configuration."""

from __future__ import annotations

import math
import os
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .exceptions import ConfigError

ENV_PREFIX = "TOKENREST_"


class Compression(str, Enum):
    """Response compression preference.

    ``auto`` leaves ``Accept-Encoding`` to the transport and reads the
    response as text; ``gzip`` asks for gzip and reads raw bytes so they
    can be sniffed and inflated; ``none`` asks for ``identity``.
    """

    AUTO = "auto"
    GZIP = "gzip"
    NONE = "none"


class ClientConfig(BaseModel):
    """Per-client settings read on every request.

    The session token may be rotated between requests; requests already
    dispatched keep the headers they were built with.
    """

    model_config = ConfigDict(validate_assignment=True)

    api_key: str | None = Field(default=None, description="API key sent in the Authorization header")
    host: str = Field(default="", description="Scheme and host, e.g. https://api.example.com")
    version: str = Field(default="1", description="API version used in /api/v<version>/")
    session_token: str | None = Field(default=None, description="Session token, if authenticated")
    compression: Compression = Field(default=Compression.AUTO)
    log_curl: bool = Field(default=False, description="Log a curl equivalent of each request")
    default_timeout: float = Field(default=0.0, description="Seconds; 0 disables timeouts")

    @field_validator("compression", mode="before")
    @classmethod
    def _check_compression(cls, value: Any) -> Any:
        if isinstance(value, Compression):
            return value
        try:
            return Compression(str(value).lower())
        except ValueError:
            raise ConfigError(f"Unknown compression parameter: {value}") from None

    @field_validator("default_timeout", mode="before")
    @classmethod
    def _check_timeout(cls, value: Any) -> float:
        try:
            timeout = float(value)
        except (TypeError, ValueError):
            raise ConfigError(f"Invalid timeout: {value!r}") from None
        if math.isnan(timeout) or timeout < 0:
            raise ConfigError(f"Timeout must be a non-negative number of seconds: {value!r}")
        return timeout

    @field_validator("host")
    @classmethod
    def _strip_host(cls, value: str) -> str:
        return value.rstrip("/")

    @model_validator(mode="after")
    def _require_api_key(self) -> ClientConfig:
        if not self.api_key:
            raise ConfigError("Endpoints need an API key")
        return self

    @property
    def base_url(self) -> str:
        return f"{self.host}/api/v{self.version}"

    @classmethod
    def from_env(cls, **overrides: Any) -> ClientConfig:
        """Build a config from ``TOKENREST_*`` environment variables.

        Keyword arguments that are not ``None`` take precedence.
        """
        values: dict[str, Any] = {
            "api_key": os.environ.get(f"{ENV_PREFIX}API_KEY", ""),
            "host": os.environ.get(f"{ENV_PREFIX}HOST", ""),
            "version": os.environ.get(f"{ENV_PREFIX}API_VERSION", "1"),
            "session_token": os.environ.get(f"{ENV_PREFIX}SESSION_TOKEN") or None,
            "compression": os.environ.get(f"{ENV_PREFIX}COMPRESSION", "auto"),
            "log_curl": os.environ.get(f"{ENV_PREFIX}LOG_CURL", "false").lower()
            in {"1", "true", "yes", "on"},
            "default_timeout": os.environ.get(f"{ENV_PREFIX}TIMEOUT", "0"),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
