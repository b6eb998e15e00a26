"""
Tests for app/services/vision_service.py.

The Gemini client is replaced with a MagicMock; no network calls are made.

Covers:
  - structured mode: ClassificationList -> ClassificationReply
  - text mode: message content -> TextReply
  - image is sent as a base64 data URL next to the prompt text
  - verify_connection(): propagates client errors
"""
from __future__ import annotations

import base64
from unittest.mock import MagicMock, patch

import pytest

from app.models.schemas import (
    ClassificationList,
    ClassificationReply,
    EmptyReply,
    LabeledCategory,
    TextReply,
)
from app.prompt import build_prompt
from app.services import vision_service


@pytest.fixture
def llm_class():
    with patch.object(vision_service, "ChatGoogleGenerativeAI") as cls:
        yield cls


@pytest.fixture
def instruction():
    return build_prompt(["what brand"])


class TestStructuredMode:
    def test_classifications_returned(self, llm_class, instruction):
        structured = llm_class.return_value.with_structured_output.return_value
        structured.invoke.return_value = ClassificationList(classes=[
            LabeledCategory(category="what brand", class_label="Acme"),
            LabeledCategory(category="Price", class_label="null"),
        ])

        reply = vision_service.analyze_image(b"img", instruction, "image/png", mode="structured")

        assert isinstance(reply, ClassificationReply)
        assert [(c.category, c.class_label) for c in reply.classes] == [
            ("what brand", "Acme"),
            ("Price", "null"),
        ]
        llm_class.return_value.with_structured_output.assert_called_once_with(ClassificationList)

    def test_message_carries_prompt_and_image(self, llm_class, instruction):
        structured = llm_class.return_value.with_structured_output.return_value
        structured.invoke.return_value = ClassificationList(classes=[])

        vision_service.analyze_image(b"img", instruction, "image/png", mode="structured")

        message = structured.invoke.call_args.args[0][0]
        text_part, image_part = message.content
        assert text_part == {"type": "text", "text": instruction.text}
        expected = base64.b64encode(b"img").decode("utf-8")
        assert image_part["image_url"]["url"] == f"data:image/png;base64,{expected}"

    def test_no_classes_is_empty_reply(self, llm_class, instruction):
        llm_class.return_value.with_structured_output.return_value.invoke.return_value = None
        reply = vision_service.analyze_image(b"img", instruction, mode="structured")
        assert isinstance(reply, EmptyReply)

    def test_errors_propagate(self, llm_class, instruction):
        llm_class.return_value.with_structured_output.return_value.invoke.side_effect = RuntimeError("quota")
        with pytest.raises(RuntimeError, match="quota"):
            vision_service.analyze_image(b"img", instruction, mode="structured")


class TestTextMode:
    def test_string_content(self, llm_class, instruction):
        llm_class.return_value.invoke.return_value = MagicMock(content="Title: Mug\nColor: Red")
        reply = vision_service.analyze_image(b"img", instruction, mode="text")
        assert isinstance(reply, TextReply)
        assert reply.text == "Title: Mug\nColor: Red"

    def test_list_content(self, llm_class, instruction):
        llm_class.return_value.invoke.return_value = MagicMock(
            content=[{"type": "text", "text": "Title: Mug"}, {"type": "text", "text": "\nColor: Red"}]
        )
        reply = vision_service.analyze_image(b"img", instruction, mode="text")
        assert reply.text == "Title: Mug\nColor: Red"

    def test_blank_content_is_empty_reply(self, llm_class, instruction):
        llm_class.return_value.invoke.return_value = MagicMock(content="   ")
        reply = vision_service.analyze_image(b"img", instruction, mode="text")
        assert isinstance(reply, EmptyReply)


def test_unknown_mode_rejected(llm_class, instruction):
    with pytest.raises(ValueError, match="Unknown vision output mode"):
        vision_service.analyze_image(b"img", instruction, mode="xml")


class TestVerifyConnection:
    def test_uses_supplied_key(self, llm_class):
        vision_service.verify_connection("abc")
        assert llm_class.call_args.kwargs["google_api_key"] == "abc"
        llm_class.return_value.invoke.assert_called_once()

    def test_failure_raises(self, llm_class):
        llm_class.return_value.invoke.side_effect = RuntimeError("API key not valid")
        with pytest.raises(RuntimeError):
            vision_service.verify_connection("bad")


class TestImageUrl:
    def test_url_passed_through(self, llm_class, instruction):
        structured = llm_class.return_value.with_structured_output.return_value
        structured.invoke.return_value = ClassificationList(classes=[
            LabeledCategory(category="what brand", class_label="Acme"),
        ])

        reply = vision_service.analyze_image_url("https://cdn.example.com/mug.png", instruction, mode="structured")

        assert reply.classes[0].class_label == "Acme"
        message = structured.invoke.call_args.args[0][0]
        assert message.content[1] == {"type": "image_url", "image_url": {"url": "https://cdn.example.com/mug.png"}}


def test_null_class_label_accepted(llm_class, instruction):
    structured = llm_class.return_value.with_structured_output.return_value
    structured.invoke.return_value = ClassificationList.model_validate(
        {"classes": [{"category": "what brand", "classLabel": None}]}
    )

    reply = vision_service.analyze_image(b"img", instruction, mode="structured")

    assert reply.classes[0].class_label is None
