"""
HTTP transport for OpenAI-compatible ``/chat/completions`` endpoints.

Works with OpenAI itself, Azure OpenAI (``api-key`` header plus the
``api-version`` query parameter), OpenRouter and local servers that speak the
same wire protocol.

Dependencies: ``httpx`` (async HTTP client).  No ``openai`` SDK needed.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import AsyncIterator

import httpx

from parley.errors import ApiRejection, DecodeFailure, TransportFailure

logger = logging.getLogger(__name__)

CHAT_COMPLETIONS_ENDPOINT = "chat/completions"


@dataclass(frozen=True)
class Auth:
    """
    Credentials for the endpoint.

    ``Auth.token`` sends ``Authorization: Bearer <token>`` (OpenAI,
    OpenRouter); ``Auth.api_key`` sends ``api-key: <key>`` (Azure).
    """

    header: str
    value: str

    @classmethod
    def token(cls, token: str) -> Auth:
        return cls("Authorization", f"Bearer {token}")

    @classmethod
    def api_key(cls, key: str) -> Auth:
        return cls("api-key", key)

    def headers(self) -> dict[str, str]:
        return {self.header: self.value}

    def __repr__(self) -> str:
        return f"Auth(header={self.header!r}, value='***')"


def build_url(base_url: str, api_version: str | None = None) -> str:
    """Join *base_url* and the completions endpoint, appending ``api-version``."""
    if not base_url.endswith("/"):
        base_url += "/"
    url = f"{base_url}{CHAT_COMPLETIONS_ENDPOINT}"
    if api_version:
        url += f"?api-version={api_version}"
    return url


def extract_error_message(body: str) -> str:
    """Best-effort ``error.message`` from an error body, else the raw body."""
    try:
        data = json.loads(body)
    except json.JSONDecodeError:
        return body
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            return error["message"]
    return body


class ChatTransport:
    """
    Sends request bodies to a chat-completions endpoint.

    Parameters
    ----------
    base_url:
        Everything before ``chat/completions``, e.g.
        ``"https://api.openai.com/v1/"``.
    auth:
        Credentials, or ``None`` for unauthenticated local endpoints.
    api_version:
        Optional ``api-version`` query parameter (Azure).
    timeout:
        HTTP request timeout in seconds.
    client:
        Optional shared ``httpx.AsyncClient``.  When omitted the transport
        creates one and closes it in :meth:`aclose`.
    """

    def __init__(
        self,
        base_url: str = "https://api.openai.com/v1/",
        auth: Auth | None = None,
        api_version: str | None = None,
        timeout: float = 300.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = build_url(base_url, api_version)
        self._auth = auth
        self._timeout = timeout
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @property
    def url(self) -> str:
        return self._url

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> ChatTransport:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Request building
    # ------------------------------------------------------------------

    def _build_headers(self, stream: bool) -> dict[str, str]:
        headers: dict[str, str] = {
            "Content-Type": "application/json",
            "Accept": "text/event-stream" if stream else "application/json",
        }
        if self._auth is not None:
            headers.update(self._auth.headers())
        return headers

    def _log_request(self, body: dict, stream: bool) -> None:
        logger.info(
            "REQUEST: model=%s messages=%d stream=%s url=%s",
            body.get("model"),
            len(body.get("messages", ())),
            stream,
            self._url,
        )

    # ------------------------------------------------------------------
    # Non-streaming request
    # ------------------------------------------------------------------

    async def send(self, body: dict) -> dict:
        """POST *body* and return the decoded JSON completion."""
        self._log_request(body, stream=False)
        try:
            resp = await self._client.post(
                self._url,
                json=body,
                headers=self._build_headers(stream=False),
                timeout=self._timeout,
            )
        except httpx.HTTPError as exc:
            raise TransportFailure(f"Request error: {exc}") from exc

        if resp.is_error:
            raise ApiRejection(extract_error_message(resp.text), resp.status_code)

        try:
            data = resp.json()
        except json.JSONDecodeError as exc:
            raise DecodeFailure(f"Invalid completion JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise DecodeFailure("Completion response is not a JSON object")
        return data

    # ------------------------------------------------------------------
    # Streaming request
    # ------------------------------------------------------------------

    async def send_stream(self, body: dict) -> AsyncIterator[str]:
        """
        POST *body* and yield the ``data`` payload of every server-sent event.

        The ``[DONE]`` sentinel is yielded like any other payload; the caller
        decides what it means.
        """
        self._log_request(body, stream=True)
        try:
            async with self._client.stream(
                "POST",
                self._url,
                json=body,
                headers=self._build_headers(stream=True),
                timeout=self._timeout,
            ) as response:
                if response.is_error:
                    await response.aread()
                    raise ApiRejection(
                        extract_error_message(response.text), response.status_code
                    )

                async for payload in _parse_sse(response.aiter_lines()):
                    yield payload
        except httpx.HTTPError as exc:
            raise TransportFailure(f"Stream error: {exc}") from exc


async def _parse_sse(lines: AsyncIterator[str]) -> AsyncIterator[str]:
    """
    Parse Server-Sent Events into their ``data`` payloads.

    Each event has the form::

        data: {json}\\n\\n

    Multiple ``data:`` lines in one event are joined with ``\\n``.  Comment
    lines (``:``) and other fields (``event:``, ``id:``, ``retry:``) are
    ignored.
    """
    data_lines: list[str] = []
    async for line in lines:
        line = line.rstrip("\r")

        if not line:
            # Empty line -- SSE event boundary.
            if data_lines:
                yield "\n".join(data_lines)
                data_lines = []
            continue

        if line.startswith(":"):
            continue

        field, _, value = line.partition(":")
        if field != "data":
            continue
        if value.startswith(" "):
            value = value[1:]
        data_lines.append(value)

    if data_lines:
        yield "\n".join(data_lines)
