"""
Catalog export to Shopify.

Creates one DRAFT product per analysis result through the Admin GraphQL
API. Fields missing from the extracted data fall back to fixed defaults.
"""

import base64
import binascii
import logging
import math
import re
import time
import requests
from typing import Any, Dict, List, Optional, Tuple
from app.core.config import settings
from app.models.schemas import ExportItem, ExportResponse, ExportResult, ExportSummary

logger = logging.getLogger(__name__)

DEFAULT_DESCRIPTION = "AI-generated product description."
AI_TAG = "AI-generated"
SEO_TITLE_LIMIT = 70
SEO_DESCRIPTION_LIMIT = 320
DEFAULT_PRICE = "0.00"

STAGED_UPLOAD_MUTATION = """
mutation stagedUploadsCreate($input: [StagedUploadInput!]!) {
  stagedUploadsCreate(input: $input) {
    stagedTargets { url resourceUrl parameters { name value } }
    userErrors { field message }
  }
}
"""

PRODUCT_CREATE_MUTATION = """
mutation productCreate($input: ProductInput!) {
  productCreate(input: $input) {
    product {
      id
      title
      handle
      status
      onlineStoreUrl
      variants(first: 1) { edges { node { id price } } }
    }
    userErrors { field message }
  }
}
"""

PRODUCT_MEDIA_MUTATION = """
mutation productCreateMedia($productId: ID!, $media: [CreateMediaInput!]!) {
  productCreateMedia(productId: $productId, media: $media) {
    media { id alt mediaContentType status }
    mediaUserErrors { field message }
  }
}
"""

VARIANT_PRICE_MUTATION = """
mutation productVariantsBulkUpdate($productId: ID!, $variants: [ProductVariantsBulkInput!]!) {
  productVariantsBulkUpdate(productId: $productId, variants: $variants) {
    productVariants { id price }
    userErrors { field message }
  }
}
"""

_DATA_URL_RE = re.compile(r"^data:([^;,]+)?(?:;[^,]*)?,(.*)$", re.DOTALL)


class CatalogExportError(Exception):
    """Raised when the Shopify Admin API rejects or fails a request."""


def is_configured() -> bool:
    return bool(settings.shopify_shop_domain and settings.shopify_access_token)


def _graphql_url() -> str:
    return f"https://{settings.shopify_shop_domain}/admin/api/{settings.shopify_api_version}/graphql.json"


def graphql(query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
    """Execute an Admin API GraphQL call and return its data payload."""
    headers = {
        'accept': 'application/json',
        'Content-Type': 'application/json',
        'X-Shopify-Access-Token': settings.shopify_access_token or '',
    }
    try:
        response = requests.post(
            _graphql_url(),
            headers=headers,
            json={"query": query, "variables": variables},
            timeout=settings.shopify_timeout
        )
        response.raise_for_status()
        body = response.json()
    except requests.exceptions.RequestException as e:
        raise CatalogExportError(f"Shopify request failed: {e}") from e
    except ValueError as e:
        raise CatalogExportError(f"Shopify returned invalid JSON: {e}") from e

    if body.get("errors"):
        messages = ", ".join(str(err.get("message", err)) for err in body["errors"])
        raise CatalogExportError(f"Shopify GraphQL errors: {messages}")
    return body.get("data") or {}


def _user_error_messages(errors: List[Dict[str, Any]]) -> str:
    return ", ".join(err.get("message", "") for err in errors)


def normalize_tags(tags: Any, product_type: str) -> List[str]:
    """Tags as a non-empty list; strings are split on ',' or ';'."""
    if isinstance(tags, str):
        tags = [tag.strip() for tag in re.split(r"[;,]", tags) if tag.strip()]
    if not isinstance(tags, list) or not tags:
        return [product_type, AI_TAG]
    return [str(tag) for tag in tags]


def resolve_price(value: Any) -> str:
    """Variant price as a string, DEFAULT_PRICE when missing or not numeric."""
    if value is None or isinstance(value, bool):
        return DEFAULT_PRICE
    try:
        price = float(value)
    except (TypeError, ValueError):
        return DEFAULT_PRICE
    if not math.isfinite(price):
        return DEFAULT_PRICE
    return str(price)


def description_html(description: str) -> str:
    return "<p>" + str(description).replace("\n", "</p><p>") + "</p>"


def export_file_name(item: ExportItem, index: int) -> str:
    return str(item.extracted_data.get("product_title") or item.id or f"Product {index + 1}")


def build_product_input(item: ExportItem, file_name: str) -> Tuple[Dict[str, Any], str, str]:
    """
    Map extracted fields to a Shopify ProductInput.

    Returns:
        tuple: (product input, variant price, image alt text)
    """
    data = item.extracted_data
    product_type = item.product_type or settings.default_product_type
    vendor = item.vendor or settings.default_vendor

    title = str(data.get("product_title") or f"AI Generated: {file_name}")
    description = str(data.get("product_description") or DEFAULT_DESCRIPTION)
    tags = normalize_tags(data.get("product_tags"), product_type)
    seo_description = str(data.get("seo_description") or description)
    alt_text = str(data.get("alt_text") or title)

    product_input = {
        "title": title,
        "descriptionHtml": description_html(description),
        "productType": product_type,
        "vendor": vendor,
        "tags": tags,
        "status": "DRAFT",
        "seo": {
            "title": title[:SEO_TITLE_LIMIT],
            "description": seo_description[:SEO_DESCRIPTION_LIMIT],
        },
    }
    return product_input, resolve_price(data.get("price")), alt_text


def parse_data_url(data_url: str) -> Tuple[bytes, str]:
    """Decode a base64 data URL into (bytes, mime type)."""
    match = _DATA_URL_RE.match(data_url)
    if not match:
        raise ValueError("Not a data URL")
    mime_type = match.group(1) or "image/jpeg"
    try:
        content = base64.b64decode(match.group(2), validate=False)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Invalid base64 image data: {e}") from e
    return content, mime_type


def upload_image(data_url: str) -> Optional[str]:
    """Upload a data URL image through a staged upload; returns the resource URL or None."""
    try:
        content, mime_type = parse_data_url(data_url)
        extension = mime_type.split("/")[-1] or "jpg"
        filename = f"product-image-{int(time.time() * 1000)}.{extension}"

        data = graphql(STAGED_UPLOAD_MUTATION, {
            "input": [{
                "resource": "IMAGE",
                "filename": filename,
                "mimeType": mime_type,
                "httpMethod": "POST",
                "fileSize": str(len(content)),
            }]
        })
        staged = data.get("stagedUploadsCreate") or {}
        if staged.get("userErrors"):
            logger.error("Staged upload creation failed: %s", _user_error_messages(staged["userErrors"]))
            return None
        targets = staged.get("stagedTargets") or []
        if not targets:
            logger.error("No staged upload target returned")
            return None
        target = targets[0]

        form = {param["name"]: param["value"] for param in target.get("parameters") or []}
        response = requests.post(
            target["url"],
            data=form,
            files={"file": (filename, content, mime_type)},
            timeout=settings.shopify_timeout
        )
        response.raise_for_status()
        logger.info("Uploaded %s (%d bytes) to staged target", filename, len(content))
        return target["resourceUrl"]

    except (ValueError, KeyError, CatalogExportError, requests.exceptions.RequestException) as e:
        logger.error("Image upload failed: %s", e)
        return None


def _attach_image(product_id: str, resource_url: str, alt_text: str) -> None:
    try:
        data = graphql(PRODUCT_MEDIA_MUTATION, {
            "productId": product_id,
            "media": [{"originalSource": resource_url, "alt": alt_text, "mediaContentType": "IMAGE"}],
        })
        errors = (data.get("productCreateMedia") or {}).get("mediaUserErrors")
        if errors:
            logger.warning("Image attachment had errors: %s", _user_error_messages(errors))
    except CatalogExportError as e:
        logger.error("Error attaching image to %s: %s", product_id, e)


def _update_price(product: Dict[str, Any], price: str) -> None:
    edges = ((product.get("variants") or {}).get("edges")) or []
    if not edges:
        return
    try:
        data = graphql(VARIANT_PRICE_MUTATION, {
            "productId": product["id"],
            "variants": [{"id": edges[0]["node"]["id"], "price": price}],
        })
        errors = (data.get("productVariantsBulkUpdate") or {}).get("userErrors")
        if errors:
            logger.warning("Variant price update had errors: %s", _user_error_messages(errors))
    except CatalogExportError as e:
        logger.error("Error updating price for %s: %s", product["id"], e)


def export_product(item: ExportItem, index: int = 0) -> ExportResult:
    """Create one DRAFT product from an analysis result."""
    file_name = export_file_name(item, index)

    try:
        product_input, price, alt_text = build_product_input(item, file_name)
        if price == DEFAULT_PRICE:
            logger.warning("Price missing or invalid for %s, defaulting to %s", file_name, DEFAULT_PRICE)

        uploaded_url = None
        if item.image_src and item.image_src.startswith("data:"):
            uploaded_url = upload_image(item.image_src)

        data = graphql(PRODUCT_CREATE_MUTATION, {"input": product_input})
        payload = data.get("productCreate") or {}
        if payload.get("userErrors"):
            return ExportResult(
                file_name=file_name,
                success=False,
                error=f"Product creation failed: {_user_error_messages(payload['userErrors'])}"
            )
        product = payload.get("product")
        if not product:
            return ExportResult(
                file_name=file_name,
                success=False,
                error="Product creation failed - no product returned"
            )

        if uploaded_url:
            _attach_image(product["id"], uploaded_url, alt_text)
        if price != DEFAULT_PRICE:
            _update_price(product, price)

        numeric_id = product["id"].split("/")[-1]
        logger.info("Created draft product %s (%s)", product["id"], product.get("title"))
        return ExportResult(
            file_name=file_name,
            success=True,
            product_id=product["id"],
            title=product.get("title"),
            handle=product.get("handle"),
            status=product.get("status"),
            admin_url=f"https://admin.shopify.com/products/{numeric_id}",
            public_url=product.get("onlineStoreUrl"),
            image_uploaded=bool(uploaded_url)
        )

    except CatalogExportError as e:
        logger.error("Export failed for %s: %s", file_name, e)
        return ExportResult(file_name=file_name, success=False, error=str(e))
    except Exception as e:
        logger.exception("Unexpected error exporting %s", file_name)
        return ExportResult(file_name=file_name, success=False, error=str(e))


def export_products(items: List[ExportItem]) -> ExportResponse:
    """Export every analysis result; failures are reported per item."""
    start = time.monotonic()
    results = [export_product(item, index) for index, item in enumerate(items)]

    successful = sum(1 for r in results if r.success)
    failed = len(results) - successful
    summary = ExportSummary(
        total=len(items),
        successful=successful,
        failed=failed,
        processing_time_ms=int((time.monotonic() - start) * 1000)
    )
    logger.info("Export completed: %d created, %d failed", successful, failed)

    return ExportResponse(
        success=True,
        message=f"Export completed: {successful} products created, {failed} errors",
        results=results,
        summary=summary
    )
