import json
import logging
from urllib.parse import urlparse
from fastapi import APIRouter, File, Form, UploadFile, HTTPException
from fastapi.concurrency import run_in_threadpool
from typing import List, Optional
from app.core.config import settings
from app.models.schemas import (
    AnalysisRequest,
    AnalysisResponse,
    BatchAnalysisResponse,
    BatchItemResponse,
    ConnectionTestResponse,
    ContentOption,
    ExportRequest,
    ExportResponse,
    HealthResponse,
)
from app.prompt import build_prompt_for
from app.services.analysis_service import ImageUpload, analyze, analyze_batch
from app.services.catalog_service import export_products, is_configured
from app.services.vision_service import verify_connection

logger = logging.getLogger(__name__)

router = APIRouter()

NO_DATA_MESSAGE = "No data could be extracted from the image."


def _parse_json_list(raw: Optional[str], field: str) -> List[str]:
    if not raw:
        return []
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        raise HTTPException(status_code=400, detail=f"Invalid JSON format for {field}.")
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise HTTPException(status_code=400, detail=f"{field} must be a JSON array of strings.")
    return value


def build_analysis_request(
    questions: Optional[str],
    product_type: Optional[str],
    options: Optional[str],
    focus_object: Optional[str] = None,
) -> AnalysisRequest:
    """Turn the submitted form fields into an AnalysisRequest."""
    question_list = [q.strip() for q in _parse_json_list(questions, "questions") if q.strip()]
    if focus_object and focus_object.strip():
        question_list.insert(0, f"Focus Object: {focus_object.strip()}")

    enabled = set()
    for option in _parse_json_list(options, "options"):
        try:
            enabled.add(ContentOption(option))
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Unknown content option: {option}")

    return AnalysisRequest(
        questions=tuple(question_list),
        product_type=(product_type or "").strip() or None,
        enabled_options=frozenset(enabled),
    )


async def _read_image(file: UploadFile) -> ImageUpload:
    if not file.content_type or not file.content_type.startswith('image/'):
        raise HTTPException(status_code=400, detail="File must be an image")

    content = await file.read()
    if len(content) > settings.max_file_size:
        raise HTTPException(
            status_code=400,
            detail=f"Image exceeds the maximum size of {settings.max_file_size} bytes"
        )
    return ImageUpload(file_name=file.filename or "uploaded-image", data=content, mime_type=file.content_type)


def _url_image(url: str) -> ImageUpload:
    url = url.strip()
    if urlparse(url).scheme not in ("http", "https"):
        raise HTTPException(status_code=400, detail=f"Image URL must be http or https: {url}")
    return ImageUpload(file_name=url, url=url)


@router.post("/analyze", response_model=AnalysisResponse)
async def analyze_product_image(
    file: Optional[UploadFile] = File(None),
    image_url: Optional[str] = Form(None),
    questions: Optional[str] = Form(None),
    product_type: Optional[str] = Form(None),
    options: Optional[str] = Form(None),
    focus_object: Optional[str] = Form(None),
):
    """Analyze one product image, uploaded or by URL, and return the generated product fields"""
    has_url = bool(image_url and image_url.strip())
    if (file is None) == (not has_url):
        raise HTTPException(status_code=400, detail="Provide either an image file or an image_url.")

    request = build_analysis_request(questions, product_type, options, focus_object)
    image = await _read_image(file) if file is not None else _url_image(image_url)
    instruction = build_prompt_for(request, log=logger)

    try:
        result = await run_in_threadpool(analyze, image, instruction)

        if result.is_empty:
            message = NO_DATA_MESSAGE
        else:
            count = len(result.extracted_data)
            message = f"Extracted {count} field{'s' if count != 1 else ''} from {image.file_name}."

        return AnalysisResponse(
            success=True,
            message=message,
            file_name=image.file_name,
            prompt=instruction.text,
            categories=instruction.categories,
            extracted_data=result.extracted_data,
            text=result.text
        )

    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Error analyzing %s", image.file_name)
        return AnalysisResponse(
            success=False,
            message=f"Error processing image: {str(e)}",
            file_name=image.file_name,
            prompt=instruction.text,
            categories=instruction.categories
        )


@router.post("/analyze-batch", response_model=BatchAnalysisResponse)
async def analyze_product_images(
    files: Optional[List[UploadFile]] = File(None),
    image_urls: Optional[str] = Form(None),
    questions: Optional[str] = Form(None),
    product_type: Optional[str] = Form(None),
    options: Optional[str] = Form(None),
    focus_object: Optional[str] = Form(None),
):
    """Analyze several product images, uploaded or by URL, with the same questions and options"""
    request = build_analysis_request(questions, product_type, options, focus_object)
    images = [await _read_image(f) for f in files or []]
    images.extend(_url_image(url) for url in _parse_json_list(image_urls, "image_urls"))
    if not images:
        raise HTTPException(status_code=400, detail="Provide at least one image file or image URL.")

    instruction, items = await run_in_threadpool(analyze_batch, images, request)
    results = [
        BatchItemResponse(
            file_name=item.file_name,
            success=item.success,
            extracted_data=item.result.extracted_data if item.result else {},
            text=item.result.text if item.result else "",
            error=item.error
        )
        for item in items
    ]

    processed = sum(1 for item in items if item.success)
    failed = len(items) - processed
    message = f"Processed {processed} of {len(items)} image{'s' if len(items) != 1 else ''}"
    if failed:
        message += f", {failed} failed"

    return BatchAnalysisResponse(
        success=processed > 0,
        message=message + ".",
        prompt=instruction.text,
        processed_count=processed,
        failed_count=failed,
        results=results
    )


@router.post("/export", response_model=ExportResponse)
def export_to_catalog(body: ExportRequest):
    """Create draft catalog products from analysis results"""
    if not body.analysis_results:
        raise HTTPException(status_code=400, detail="analysis_results must contain at least one item")
    if not is_configured():
        raise HTTPException(status_code=503, detail="Shopify store is not configured")

    return export_products(body.analysis_results)


@router.post("/test-connection", response_model=ConnectionTestResponse)
def check_vision_connection(api_key: str = Form(...)):
    """Check that the supplied vision API key works"""
    if not api_key.strip():
        raise HTTPException(status_code=400, detail="API key is required for testing connection.")

    try:
        verify_connection(api_key.strip())
    except Exception as e:
        logger.error("Connection test failed: %s", e)
        error = str(e).lower()
        if any(word in error for word in ("api key", "authentication", "unauthorized", "permission")):
            message = "Invalid credentials. Please check your API key."
        elif any(word in error for word in ("network", "timeout", "connection")):
            message = "Network error. Please check your internet connection."
        else:
            message = str(e) or "Connection test failed."
        raise HTTPException(status_code=401, detail=message)

    return ConnectionTestResponse(success=True, message="Connection test successful")


@router.get("/health", response_model=HealthResponse)
def health_check():
    """Health check endpoint"""
    return HealthResponse(
        status="healthy",
        service="Product Vision API",
        version="1.0.0"
    )


@router.get("/")
def root():
    """API information and documentation links"""
    return {
        "service": "Product Vision API",
        "version": "1.0.0",
        "description": "AI-generated product metadata from product photos",
        "docs": "/docs",
        "health": "/health"
    }
