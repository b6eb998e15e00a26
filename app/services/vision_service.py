import base64
import logging
from typing import Optional
from langchain_google_genai import ChatGoogleGenerativeAI
from langchain_core.messages import HumanMessage
from app.core.config import settings
from app.models.schemas import (
    ClassificationItem,
    ClassificationList,
    ClassificationReply,
    EmptyReply,
    PromptInstruction,
    TextReply,
    VisionReply,
)

logger = logging.getLogger(__name__)

STRUCTURED_MODE = "structured"
TEXT_MODE = "text"


def _create_llm(api_key: Optional[str] = None) -> ChatGoogleGenerativeAI:
    return ChatGoogleGenerativeAI(
        model=settings.gemini_model,
        google_api_key=api_key or settings.google_api_key,
        temperature=settings.vision_temperature,
        timeout=settings.vision_timeout,
        max_retries=settings.vision_max_retries,
    )


def _data_url(image_data: bytes, mime_type: str) -> str:
    encoded = base64.b64encode(image_data).decode("utf-8")
    return f"data:{mime_type};base64,{encoded}"


def _image_message(instruction: PromptInstruction, image_url: str) -> HumanMessage:
    return HumanMessage(
        content=[
            {"type": "text", "text": instruction.text},
            {"type": "image_url", "image_url": {"url": image_url}},
        ]
    )


def _content_text(content) -> str:
    """Flatten a chat message content (string or list of parts) to text."""
    if isinstance(content, str):
        return content
    parts = []
    for part in content or []:
        if isinstance(part, str):
            parts.append(part)
        elif isinstance(part, dict) and part.get("type") == "text":
            parts.append(part.get("text", ""))
    return "".join(parts)


def _run(message: HumanMessage, mode: Optional[str]) -> VisionReply:
    mode = mode or settings.vision_output_mode

    if mode == TEXT_MODE:
        response = _create_llm().invoke([message])
        text = _content_text(response.content).strip()
        return TextReply(text=text) if text else EmptyReply()

    if mode != STRUCTURED_MODE:
        raise ValueError(f"Unknown vision output mode: {mode}")

    llm = _create_llm().with_structured_output(ClassificationList)
    result = llm.invoke([message])
    if result is None or not result.classes:
        logger.warning("Vision service returned no classifications")
        return EmptyReply()

    items = [
        ClassificationItem(category=entry.category, class_label=entry.class_label)
        for entry in result.classes
    ]
    return ClassificationReply(classes=items)


def analyze_image(
    image_data: bytes,
    instruction: PromptInstruction,
    mime_type: str = "image/jpeg",
    mode: Optional[str] = None,
) -> VisionReply:
    """
    Run one analysis instruction against one image on Gemini.

    Errors from the vision service propagate to the caller.
    """
    logger.info(
        "Sending %d byte %s image to %s (%d categories, mode=%s)",
        len(image_data), mime_type, settings.gemini_model, len(instruction.categories),
        mode or settings.vision_output_mode,
    )
    return _run(_image_message(instruction, _data_url(image_data, mime_type)), mode)


def analyze_image_url(image_url: str, instruction: PromptInstruction, mode: Optional[str] = None) -> VisionReply:
    """Same as analyze_image, for an image Gemini fetches from an http(s) URL."""
    logger.info(
        "Sending image %s to %s (%d categories, mode=%s)",
        image_url, settings.gemini_model, len(instruction.categories), mode or settings.vision_output_mode,
    )
    return _run(_image_message(instruction, image_url), mode)


def verify_connection(api_key: Optional[str] = None) -> None:
    """Verify vision credentials with a minimal request. Raises on failure."""
    _create_llm(api_key).invoke("Reply with OK.")
    logger.info("Vision connection verified for %s", settings.gemini_model)
