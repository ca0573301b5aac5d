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

"""Command line entry point for tokenrest."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

import click
from dotenv import load_dotenv

from ..client import ApiResponse, TokenRestClient
from ..config import ClientConfig, Compression
from ..decoding import DecodeMethod, byte_array_to_str
from ..exceptions import TokenRestError
from ..pagination import LinkName
from ..types import UNSET, Method


def _render(response: ApiResponse) -> str:
    if response.data is not None:
        return json.dumps(response.data, indent=2, ensure_ascii=False)
    return response.text


async def _run_request(
    config: ClientConfig,
    method: Method,
    kind: str,
    query: list[str],
    body: Any,
    timeout: float | None,
    follow: str | None,
) -> str:
    async with TokenRestClient(config=config) as client:
        response = await client.request(method, kind, query=query or None, body=body, timeout=timeout)
        if follow:
            continuation = response.continuations.get(follow)
            if continuation is None:
                raise click.ClickException(f"Response has no '{follow}' link")
            response = await continuation()
        return _render(response)


@click.group()
@click.version_option(package_name="tokenrest")
@click.option(
    "--log-level",
    default="WARNING",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Logging level",
)
def main(log_level: str):
    """tokenrest REST client CLI."""
    # Load environment variables from .env file if it exists
    load_dotenv()
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


@main.command()
@click.argument("method", type=click.Choice([m.value for m in Method], case_sensitive=False))
@click.argument("kind")
@click.option("--query", "-q", multiple=True, help="Query parameter as key=value (repeatable)")
@click.option("--body", default=None, help="JSON request body")
@click.option(
    "--timeout", type=click.FloatRange(min=0), default=None, help="Timeout in seconds (0 for none)"
)
@click.option(
    "--follow",
    type=click.Choice([name.value for name in LinkName]),
    default=None,
    help="Fetch the linked page instead of the first one",
)
@click.option("--api-key", envvar="TOKENREST_API_KEY", default=None, help="API key")
@click.option("--host", envvar="TOKENREST_HOST", default=None, help="API host URL")
@click.option("--api-version", envvar="TOKENREST_API_VERSION", default=None, help="API version")
@click.option("--session-token", envvar="TOKENREST_SESSION_TOKEN", default=None, help="Session token")
@click.option(
    "--compression",
    envvar="TOKENREST_COMPRESSION",
    type=click.Choice([c.value for c in Compression]),
    default=None,
    help="Response compression preference",
)
@click.option("--curl", "log_curl", is_flag=True, default=False, help="Log curl equivalents")
def request(
    method: str,
    kind: str,
    query: tuple[str, ...],
    body: str | None,
    timeout: float | None,
    follow: str | None,
    api_key: str | None,
    host: str | None,
    api_version: str | None,
    session_token: str | None,
    compression: str | None,
    log_curl: bool,
):
    """Send METHOD to the API resource KIND and print the response.

    Environment variables:
        TOKENREST_API_KEY: API key (required)
        TOKENREST_HOST: API host, e.g. https://api.example.com
        TOKENREST_API_VERSION: API version
        TOKENREST_SESSION_TOKEN: Optional session token
        TOKENREST_COMPRESSION: auto, gzip or none
    """
    try:
        config = ClientConfig.from_env(
            api_key=api_key,
            host=host,
            version=api_version,
            session_token=session_token,
            compression=compression,
            log_curl=log_curl or None,
        )
        parsed_body = UNSET if body is None else json.loads(body)
        output = asyncio.run(
            _run_request(
                config,
                Method(method.upper()),
                kind,
                list(query),
                parsed_body,
                timeout,
                follow,
            )
        )
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"Invalid JSON: {e}", param_hint="--body") from e
    except TokenRestError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)

    click.echo(output)


@main.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--method",
    type=click.Choice([m.value for m in DecodeMethod]),
    default=DecodeMethod.AUTO.value,
    help="Decode strategy (auto sniffs gzip magic bytes)",
)
def decode(path: Path, method: str):
    """Decode a raw (optionally gzipped) UTF-8 file to text."""
    try:
        text = byte_array_to_str(path.read_bytes(), method)
    except TokenRestError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)
    click.echo(text, nl=False)


if __name__ == "__main__":
    main()
