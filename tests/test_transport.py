"""Tests for the httpx transport, using httpx.MockTransport as the server."""

from __future__ import annotations

import json

import httpx
import pytest

from parley.errors import ApiRejection, DecodeFailure, TransportFailure
from parley.llm.transport import (
    Auth,
    ChatTransport,
    _parse_sse,
    build_url,
    extract_error_message,
)
from tests.mock_transport import completion_response, iterate


class Server:
    """Records requests and answers with a fixed response."""

    def __init__(self, response: httpx.Response | None = None, error: Exception | None = None):
        self.response = response or httpx.Response(200, json=completion_response("ok"))
        self.error = error
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.response


def make_transport(server: Server, **kwargs) -> ChatTransport:
    client = httpx.AsyncClient(transport=httpx.MockTransport(server))
    return ChatTransport(client=client, **kwargs)


def sse(*payloads: str) -> bytes:
    return "".join(f"data: {p}\n\n" for p in payloads).encode()


async def collect(iterator) -> list[str]:
    return [item async for item in iterator]


# ===================================================================
# URL and credentials
# ===================================================================


class TestBuildUrl:
    def test_trailing_slash(self):
        assert build_url("https://api.openai.com/v1/") == (
            "https://api.openai.com/v1/chat/completions"
        )

    def test_no_trailing_slash(self):
        assert build_url("https://api.openai.com/v1") == (
            "https://api.openai.com/v1/chat/completions"
        )

    def test_api_version(self):
        url = build_url("https://res.openai.azure.com/openai/v1/", "2025-04-01-preview")
        assert url.endswith("/chat/completions?api-version=2025-04-01-preview")


class TestAuth:
    def test_bearer_token(self):
        assert Auth.token("sk-1").headers() == {"Authorization": "Bearer sk-1"}

    def test_api_key(self):
        assert Auth.api_key("k").headers() == {"api-key": "k"}

    def test_repr_hides_secret(self):
        assert "sk-secret" not in repr(Auth.token("sk-secret"))


class TestExtractErrorMessage:
    def test_error_message(self):
        body = json.dumps({"error": {"message": "Invalid API key", "type": "auth"}})
        assert extract_error_message(body) == "Invalid API key"

    def test_plain_text(self):
        assert extract_error_message("Bad Gateway") == "Bad Gateway"

    def test_json_without_error(self):
        assert extract_error_message('{"detail": "x"}') == '{"detail": "x"}'


# ===================================================================
# Non-streaming requests
# ===================================================================


class TestSend:
    async def test_posts_body_with_bearer_token(self):
        server = Server()
        transport = make_transport(server, auth=Auth.token("sk-test"))

        data = await transport.send({"model": "m", "messages": []})

        assert data["choices"][0]["message"]["content"] == "ok"
        request = server.requests[0]
        assert request.method == "POST"
        assert str(request.url) == "https://api.openai.com/v1/chat/completions"
        assert request.headers["Authorization"] == "Bearer sk-test"
        assert json.loads(request.content) == {"model": "m", "messages": []}

    async def test_azure_headers_and_version(self):
        server = Server()
        transport = make_transport(
            server,
            base_url="https://res.openai.azure.com/openai/v1",
            auth=Auth.api_key("azure-key"),
            api_version="2024-10-21",
        )
        await transport.send({"model": "m", "messages": []})

        request = server.requests[0]
        assert request.headers["api-key"] == "azure-key"
        assert "Authorization" not in request.headers
        assert request.url.params["api-version"] == "2024-10-21"

    async def test_no_auth(self):
        server = Server()
        await make_transport(server).send({})
        assert "Authorization" not in server.requests[0].headers

    async def test_http_error_status(self):
        server = Server(
            httpx.Response(401, json={"error": {"message": "Incorrect API key"}})
        )
        with pytest.raises(ApiRejection) as info:
            await make_transport(server).send({})
        assert info.value.status == 401
        assert info.value.description == "Incorrect API key"
        assert str(info.value) == "API error: 401: Incorrect API key"

    async def test_connection_error(self):
        server = Server(error=httpx.ConnectError("refused"))
        with pytest.raises(TransportFailure):
            await make_transport(server).send({})

    async def test_invalid_json(self):
        server = Server(httpx.Response(200, content=b"<html>"))
        with pytest.raises(DecodeFailure):
            await make_transport(server).send({})

    async def test_non_object_json(self):
        server = Server(httpx.Response(200, json=[1, 2]))
        with pytest.raises(DecodeFailure):
            await make_transport(server).send({})


# ===================================================================
# Streaming requests
# ===================================================================


class TestSendStream:
    async def test_yields_payloads(self):
        server = Server(
            httpx.Response(
                200,
                content=sse('{"a": 1}', '{"b": 2}', "[DONE]"),
                headers={"Content-Type": "text/event-stream"},
            )
        )
        transport = make_transport(server, auth=Auth.token("t"))

        payloads = await collect(transport.send_stream({"stream": True}))

        assert payloads == ['{"a": 1}', '{"b": 2}', "[DONE]"]
        assert server.requests[0].headers["Accept"] == "text/event-stream"

    async def test_rejection_status(self):
        server = Server(
            httpx.Response(429, json={"error": {"message": "Rate limit reached"}})
        )
        with pytest.raises(ApiRejection) as info:
            await collect(make_transport(server).send_stream({}))
        assert info.value.status == 429
        assert "Rate limit reached" in str(info.value)

    async def test_connection_error(self):
        server = Server(error=httpx.ReadTimeout("timed out"))
        with pytest.raises(TransportFailure):
            await collect(make_transport(server).send_stream({}))

    async def test_nothing_sent_until_iterated(self):
        server = Server(httpx.Response(200, content=sse("[DONE]")))
        stream = make_transport(server).send_stream({})
        assert server.requests == []
        await collect(stream)
        assert len(server.requests) == 1


class TestParseSse:
    async def test_comments_and_other_fields_ignored(self):
        lines = [": keep-alive", "event: message", "id: 7", "data: {}", ""]
        assert await collect(_parse_sse(iterate(lines))) == ["{}"]

    async def test_multiline_data(self):
        lines = ["data: line one", "data: line two", ""]
        assert await collect(_parse_sse(iterate(lines))) == ["line one\nline two"]

    async def test_carriage_returns(self):
        lines = ["data: x\r", "\r"]
        assert await collect(_parse_sse(iterate(lines))) == ["x"]

    async def test_no_space_after_colon(self):
        assert await collect(_parse_sse(iterate(["data:x", ""]))) == ["x"]

    async def test_trailing_event_without_blank_line(self):
        assert await collect(_parse_sse(iterate(["data: last"]))) == ["last"]

    async def test_blank_lines_between_events(self):
        lines = ["", "", "data: a", "", "", "data: b", ""]
        assert await collect(_parse_sse(iterate(lines))) == ["a", "b"]
