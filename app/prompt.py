"""
Analysis prompt construction.

The vision service receives one instruction per image. It lists every
category to analyze (product type, the merchant's own questions, then the
enabled content options) and asks for each value back as a classLabel.
"""

import logging
from types import MappingProxyType
from typing import Iterable, List, Optional

from app.models.schemas import AnalysisRequest, ContentOption, PromptInstruction

logger = logging.getLogger(__name__)


OPTION_PHRASES = MappingProxyType({
    ContentOption.PRODUCT_TITLE: "product title (compelling, SEO-friendly product title)",
    ContentOption.PRODUCT_DESCRIPTION: "product description (detailed description suitable for e-commerce listing)",
    ContentOption.COLOR_VARIANT: "color variants (primary colors and color variants visible)",
    ContentOption.SEO_DESCRIPTION: "SEO description (SEO-optimized meta description under 160 characters)",
    ContentOption.PRODUCT_TAGS: "product tags (5-10 relevant product tags and keywords, comma-separated)",
    ContentOption.ALT_TEXT: "alt text (descriptive alt text for accessibility)",
    ContentOption.AGE_RANGE: "Determine the age range of the person (report as range, ex. 20s)",
    ContentOption.GENDER: "Identify the gender (Male/Female)",
    ContentOption.FASHION_STYLE: "Identify the fashion style (Casual, Formal, Bohemian, Streetwear, Vintage, Chic, Sporty, Edgy)",
    ContentOption.OUTFIT_DESCRIPTION: "Describe their outfit in detail",
})

PERSON_OPTIONS = frozenset({
    ContentOption.AGE_RANGE,
    ContentOption.GENDER,
    ContentOption.FASHION_STYLE,
    ContentOption.OUTFIT_DESCRIPTION,
})

PROMPT_POSTAMBLE = (
    "Report the values of the categories as classLabels. "
    "Be very careful to place these values correctly. "
    "If you are unable to provide a category with a value then set its classLabel to null."
)

ANALYSIS_PROMPT = "Analyze the image provided and determine the categories of: {categories}. " + PROMPT_POSTAMBLE

PERSON_ANALYSIS_PROMPT = (
    "Analyze the image provided. "
    "For any people in the image, analyze: Age (report as range, ex. 20s), Gender (Male/Female), "
    "Fashion style (Casual, Formal, Bohemian, Streetwear, Vintage, Chic, Sporty, Edgy), "
    "and describe their outfit. "
    "Also determine the categories of: {categories}. " + PROMPT_POSTAMBLE
)


def product_type_category(product_type: str) -> str:
    return f"product type (this is a {product_type} product)"


def build_categories(
    questions: Iterable[str],
    product_type: Optional[str] = None,
    enabled_options: Iterable[ContentOption] = (),
) -> List[str]:
    """Assemble categories: product type, questions as given, then options in declaration order."""
    categories = []
    if product_type:
        categories.append(product_type_category(product_type))

    categories.extend(questions)

    enabled = {ContentOption(option) for option in enabled_options}
    categories.extend(OPTION_PHRASES[option] for option in ContentOption if option in enabled)
    return categories


def build_prompt(
    questions: Iterable[str],
    product_type: Optional[str] = None,
    enabled_options: Iterable[ContentOption] = (),
    log: Optional[logging.Logger] = None,
) -> PromptInstruction:
    """
    Build the instruction sent to the vision service for one image.

    Args:
        questions: Merchant questions, used verbatim as categories
        product_type: Optional product type label
        enabled_options: Content options to ask for
        log: Logger to report to (defaults to this module's logger)

    Returns:
        PromptInstruction: Prompt text and the categories it asks about
    """
    log = log or logger
    questions = list(questions)
    enabled = {ContentOption(option) for option in enabled_options}

    categories = build_categories(questions, product_type, enabled)
    person_mode = bool(enabled & PERSON_OPTIONS)
    template = PERSON_ANALYSIS_PROMPT if person_mode else ANALYSIS_PROMPT
    text = template.format(categories=", ".join(categories))

    if not categories:
        log.warning("Analysis prompt built with no categories")
    log.debug(
        "Built analysis prompt: %d categories (%d questions, product type %s, person mode %s)",
        len(categories), len(questions), product_type or "none", person_mode,
    )
    return PromptInstruction(text=text, categories=categories, person_mode=person_mode)


def build_prompt_for(request: AnalysisRequest, log: Optional[logging.Logger] = None) -> PromptInstruction:
    return build_prompt(
        request.questions,
        product_type=request.product_type,
        enabled_options=request.enabled_options,
        log=log,
    )
