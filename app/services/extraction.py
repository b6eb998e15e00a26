"""
Vision reply extraction.

Turns the vision service's reply into canonical product fields. Structured
classifications are preferred; when they yield nothing, "Key: Value" lines
in the reply text are used instead.
"""

import logging
import re
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import ValidationError

from app.models.schemas import (
    ClassificationItem,
    ClassificationReply,
    EmptyReply,
    ExtractionResult,
    TextReply,
    VisionReply,
)

logger = logging.getLogger(__name__)

ReplyLike = Union[VisionReply, Mapping[str, Any]]

# Normalized category phrase -> canonical field key
FIELD_SYNONYMS = MappingProxyType({
    "product type": "product_type",
    "focus object": "focus_object",
    "product title": "product_title",
    "title": "product_title",
    "product name": "product_title",
    "name": "product_title",
    "product description": "product_description",
    "description": "product_description",
    "product details": "product_description",
    "details": "product_description",
    "color": "color_variant",
    "color variant": "color_variant",
    "color variants": "color_variant",
    "variant": "color_variant",
    "product color": "color_variant",
    "seo description": "seo_description",
    "seo": "seo_description",
    "meta description": "seo_description",
    "product tags": "product_tags",
    "tags": "product_tags",
    "keywords": "product_tags",
    "product keywords": "product_tags",
    "alt text": "alt_text",
    "alt": "alt_text",
    "image alt text": "alt_text",
    "image description": "alt_text",
    "price": "price",
    "product price": "price",
    "cost": "price",
    "amount": "price",
    "size": "size",
    "chest size": "chest_size",
})

UNKNOWN_FIELD = "unknown_field"
NULL_LABEL = "null"

_WHITESPACE_RE = re.compile(r"\s+")
_NON_KEY_CHARS_RE = re.compile(r"[^a-z0-9_]")
_TAG_SEPARATOR_RE = re.compile(r"[,;]")
_NON_PRICE_CHARS_RE = re.compile(r"[^\d.\-]")
_LEADING_NUMBER_RE = re.compile(r"-?(?:\d+(?:\.\d*)?|\.\d+)")
_KEY_VALUE_LINE_RE = re.compile(r"^([^:]+):\s*(.+)$")


def normalize_category(category: str) -> str:
    return _WHITESPACE_RE.sub(" ", category.lower().strip())


def field_key_for(category: str) -> str:
    """Map a category phrase to its canonical field key, synthesizing one when unmapped."""
    normalized = normalize_category(category)
    mapped = FIELD_SYNONYMS.get(normalized)
    if mapped:
        return mapped
    sanitized = _NON_KEY_CHARS_RE.sub("", normalized.replace(" ", "_"))
    return sanitized or UNKNOWN_FIELD


def split_tags(value: Union[str, List[str]]) -> List[str]:
    """Split a comma/semicolon separated tag string; lists are passed through."""
    if isinstance(value, list):
        return list(value)
    return [tag.strip() for tag in _TAG_SEPARATOR_RE.split(value) if tag.strip()]


def parse_price(value: str) -> Optional[float]:
    """Parse the leading number of a price string (e.g. '$1,299.00' -> 1299.0)."""
    cleaned = _NON_PRICE_CHARS_RE.sub("", value)
    match = _LEADING_NUMBER_RE.match(cleaned)
    if not match:
        return None
    return float(match.group(0))


def decode_reply(payload: Mapping[str, Any]) -> VisionReply:
    """Decode a raw reply mapping ({"classes": [...], "text": "..."}) into a tagged reply."""
    classes = payload.get("classes") or []
    if not isinstance(classes, (list, tuple)):
        logger.warning("Ignoring classes that are not a list: %r", classes)
        classes = []
    text = payload.get("text")
    if not isinstance(text, str) or not text:
        text = None

    if classes:
        items = []
        for item in classes:
            if not isinstance(item, (Mapping, ClassificationItem)):
                logger.warning("Dropping malformed classification item: %r", item)
                continue
            try:
                items.append(ClassificationItem.model_validate(item))
            except ValidationError as e:
                logger.warning("Dropping malformed classification item %r: %s", item, e)
        return ClassificationReply(classes=items, text=text)
    if text:
        return TextReply(text=text)
    return EmptyReply()


def _label_text(label: Union[str, List[str]]) -> str:
    if isinstance(label, list):
        return ", ".join(label)
    return label


def _extract_classes(items: List[ClassificationItem], log: logging.Logger):
    data: Dict[str, Any] = {}
    lines = []

    for item in items:
        if not item.category or not item.category.strip():
            log.warning("Skipping classification item without a category (classLabel=%r)", item.class_label)
            continue

        category = item.category
        key = field_key_for(category)
        label = item.class_label
        if isinstance(label, str) and label == NULL_LABEL:
            label = None

        if label is None:
            data[key] = None
            log.debug("Category %r -> %s: null", category, key)
        elif key == "product_tags":
            data[key] = split_tags(label)
        elif key == "price":
            raw = _label_text(label)
            price = parse_price(raw)
            if price is not None:
                data["price"] = price
            else:
                data["price_text"] = raw
                log.info("Could not parse price from %r, kept as price_text", raw)
        else:
            data[key] = label

        lines.append(f"{category}: {NULL_LABEL if label is None else _label_text(label)}")

    return data, "\n".join(lines).strip()


def _extract_text(text: str, data: Dict[str, Any]) -> None:
    for line in text.split("\n"):
        if not line.strip():
            continue
        match = _KEY_VALUE_LINE_RE.match(line)
        if not match:
            continue
        key = field_key_for(match.group(1).strip())
        if not data.get(key):
            data[key] = match.group(2).strip()


def extract(reply: ReplyLike, log: Optional[logging.Logger] = None) -> ExtractionResult:
    """
    Extract canonical product fields from a vision service reply.

    Args:
        reply: Decoded reply, or a raw {"classes": [...], "text": "..."} mapping
        log: Logger to report to (defaults to this module's logger)

    Returns:
        ExtractionResult: Extracted fields plus the combined "category: value" text.
            Both are empty when the reply carried nothing usable.
    """
    log = log or logger
    if isinstance(reply, Mapping):
        reply = decode_reply(reply)

    data: Dict[str, Any] = {}
    text = ""

    if isinstance(reply, ClassificationReply):
        data, text = _extract_classes(reply.classes, log)

    reply_text = getattr(reply, "text", None)
    if not data and reply_text:
        log.debug("No fields from classifications, parsing reply text")
        text = reply_text
        _extract_text(reply_text, data)

    if not data and not text:
        log.warning("No data extracted from vision reply (%s)", reply.kind)
    else:
        log.debug("Extracted fields: %s", sorted(data))
    return ExtractionResult(extracted_data=data, text=text)
