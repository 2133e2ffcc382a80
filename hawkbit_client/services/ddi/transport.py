"""Authenticated HTTP access to the DDI API, shared by every action handle."""

import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TypeVar

import httpx
import structlog
from pydantic import BaseModel, ValidationError

from hawkbit_client.core.exceptions import InvalidResponseError, InvalidTokenError, TransportError

logger = structlog.get_logger()

ModelT = TypeVar("ModelT", bound=BaseModel)


def auth_headers(key_token: str) -> dict[str, str]:
    """Build the ``Authorization: TargetToken <key>`` header."""
    value = f"TargetToken {key_token}"
    if not key_token or not value.isascii() or not value.isprintable():
        raise InvalidTokenError(details={"reason": "token must be non-empty printable ASCII"})
    return {"Authorization": value}


def _status_error(e: httpx.HTTPStatusError) -> TransportError:
    return TransportError(
        f"Server returned error: {e.response.status_code}",
        details={"status_code": e.response.status_code, "url": str(e.request.url)},
    )


class Transport:
    """One ``httpx.AsyncClient`` plus the target's auth header.

    A single instance is shared by the client and all handles derived from it;
    connection-level concurrency is left to httpx.
    """

    def __init__(self, http_client: httpx.AsyncClient, key_token: str, owns_client: bool = False):
        self._client = http_client
        self._headers = auth_headers(key_token)
        self._owns_client = owns_client

    async def get_json(self, url: str, model: type[ModelT]) -> ModelT:
        """GET ``url`` and validate the JSON body against ``model``."""
        try:
            response = await self._client.get(url, headers=self._headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise _status_error(e)
        except httpx.HTTPError as e:
            raise TransportError(f"GET {url} failed: {e}", details={"url": url})

        try:
            return model.model_validate(response.json())
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise InvalidResponseError(f"Invalid JSON from {url}: {e}", details={"url": url})
        except ValidationError as e:
            raise InvalidResponseError(
                f"Unexpected {model.__name__} from {url}",
                details={"url": url, "errors": e.errors(include_url=False, include_context=False)},
            )

    async def put_json(self, url: str, body: dict) -> None:
        await self._send("PUT", url, body)

    async def post_json(self, url: str, body: dict) -> None:
        await self._send("POST", url, body)

    async def _send(self, method: str, url: str, body: dict) -> None:
        try:
            response = await self._client.request(method, url, json=body, headers=self._headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise _status_error(e)
        except httpx.HTTPError as e:
            raise TransportError(f"{method} {url} failed: {e}", details={"url": url})

    @asynccontextmanager
    async def stream(self, url: str) -> AsyncIterator[httpx.Response]:
        """Open a streamed GET; the body is read by the caller inside the block."""
        try:
            async with self._client.stream("GET", url, headers=self._headers) as response:
                response.raise_for_status()
                yield response
        except httpx.HTTPStatusError as e:
            raise _status_error(e)
        except httpx.HTTPError as e:
            raise TransportError(f"Download from {url} failed: {e}", details={"url": url})

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this transport created it."""
        if self._owns_client:
            await self._client.aclose()
