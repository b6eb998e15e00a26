import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from app.models.schemas import AnalysisRequest, ExtractionResult, PromptInstruction
from app.prompt import build_prompt_for
from app.services.extraction import extract
from app.services.vision_service import analyze_image, analyze_image_url

logger = logging.getLogger(__name__)


@dataclass
class ImageUpload:
    """An uploaded image, or one referenced by URL when `url` is set."""
    file_name: str
    data: bytes = b""
    mime_type: str = "image/jpeg"
    url: Optional[str] = None


@dataclass
class BatchItem:
    file_name: str
    success: bool
    result: Optional[ExtractionResult] = None
    error: Optional[str] = None


def analyze(image: ImageUpload, instruction: PromptInstruction) -> ExtractionResult:
    """Run one image through the vision service and extract its fields."""
    if image.url:
        reply = analyze_image_url(image.url, instruction)
    else:
        reply = analyze_image(image.data, instruction, mime_type=image.mime_type)
    result = extract(reply, log=logger)
    if result.is_empty:
        logger.warning("No data extracted for %s", image.file_name)
    else:
        logger.info("Extracted %d fields for %s", len(result.extracted_data), image.file_name)
    return result


def analyze_batch(images: Iterable[ImageUpload], request: AnalysisRequest):
    """
    Analyze several images with the same request.

    A failure for one image is recorded on its BatchItem and the
    remaining images are still processed.

    Returns:
        tuple: (PromptInstruction, list of BatchItem in input order)
    """
    instruction = build_prompt_for(request, log=logger)
    items: List[BatchItem] = []

    for image in images:
        try:
            result = analyze(image, instruction)
            items.append(BatchItem(file_name=image.file_name, success=True, result=result))
        except Exception as e:
            logger.error("Analysis failed for %s: %s", image.file_name, e)
            items.append(BatchItem(file_name=image.file_name, success=False, error=str(e)))

    return instruction, items
