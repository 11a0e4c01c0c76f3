"""Tests for request-body assembly."""

from __future__ import annotations

import pytest

from parley.llm.assembler import (
    FLAVOR_OPENROUTER,
    ModelConfig,
    build_request_body,
    part_to_wire,
    reasoning_options,
)
from parley.llm.types import FilePart, ImagePart, TextPart
from parley.session.context import ConversationContext


@pytest.fixture
def context() -> ConversationContext:
    ctx = ConversationContext("You are terse.", 3)
    ctx.push("hello", "hi", 2)
    return ctx


class TestBody:
    def test_basic_body(self, context):
        body = build_request_body(context, "again", ModelConfig(model="m"), stream=False)
        assert body == {
            "model": "m",
            "messages": [
                {"role": "system", "content": "You are terse."},
                {"role": "user", "content": "hello"},
                {"role": "assistant", "content": "hi"},
                {"role": "user", "content": "again"},
            ],
            "stream": False,
        }

    def test_streaming_requests_usage(self, context):
        body = build_request_body(context, "x", ModelConfig(), stream=True)
        assert body["stream"] is True
        assert body["stream_options"] == {"include_usage": True}

    def test_does_not_touch_context(self, context):
        build_request_body(context, "x", ModelConfig(), stream=False)
        assert len(context) == 1

    def test_verbosity(self, context):
        body = build_request_body(
            context, "x", ModelConfig(verbosity="low"), stream=False
        )
        assert body["verbosity"] == "low"

    def test_extra_params_merged(self, context):
        config = ModelConfig(extra_params={"temperature": 0.2, "top_p": 0.9})
        body = build_request_body(context, "x", config, stream=False)
        assert body["temperature"] == 0.2
        assert body["top_p"] == 0.9

    def test_extra_params_cannot_override_core_fields(self, context):
        config = ModelConfig(
            model="real",
            extra_params={"model": "other", "stream": True, "messages": []},
        )
        body = build_request_body(context, "x", config, stream=False)
        assert body["model"] == "real"
        assert body["stream"] is False
        assert len(body["messages"]) == 4

    def test_extra_params_override_reasoning(self, context):
        config = ModelConfig(
            reasoning_effort="low", extra_params={"reasoning_effort": "high"}
        )
        body = build_request_body(context, "x", config, stream=False)
        assert body["reasoning_effort"] == "high"


class TestMultimodal:
    def test_user_text_becomes_parts(self, context):
        body = build_request_body(
            context,
            [TextPart("look"), ImagePart("https://example.invalid/cat.png")],
            ModelConfig(),
            stream=False,
            multimodal=True,
        )
        messages = body["messages"]
        assert messages[0]["content"] == "You are terse."
        assert messages[1]["content"] == [{"type": "text", "text": "hello"}]
        assert messages[2]["content"] == "hi"
        assert messages[3]["content"] == [
            {"type": "text", "text": "look"},
            {"type": "image_url", "image_url": {"url": "https://example.invalid/cat.png"}},
        ]

    def test_image_detail(self):
        wire = part_to_wire(ImagePart("data:image/png;base64,AA", detail="high"))
        assert wire["image_url"] == {"url": "data:image/png;base64,AA", "detail": "high"}

    def test_file_part(self):
        wire = part_to_wire(FilePart("data:application/pdf;base64,JVBE", "paper.pdf"))
        assert wire == {
            "type": "file",
            "file": {"file_data": "data:application/pdf;base64,JVBE", "filename": "paper.pdf"},
        }

    def test_unknown_part(self):
        with pytest.raises(TypeError):
            part_to_wire("not a part")  # type: ignore[arg-type]


class TestReasoningOptions:
    def test_none(self):
        assert reasoning_options(ModelConfig()) == {}

    def test_openai_effort(self):
        assert reasoning_options(ModelConfig(reasoning_effort="high")) == {
            "reasoning_effort": "high"
        }

    def test_openrouter_effort(self):
        config = ModelConfig(flavor=FLAVOR_OPENROUTER, reasoning_effort="medium")
        assert reasoning_options(config) == {"reasoning": {"effort": "medium"}}

    def test_openrouter_budget(self):
        config = ModelConfig(flavor=FLAVOR_OPENROUTER, reasoning_budget=2048)
        assert reasoning_options(config) == {"reasoning": {"max_tokens": 2048}}

    def test_openrouter_nothing(self):
        assert reasoning_options(ModelConfig(flavor=FLAVOR_OPENROUTER)) == {}
