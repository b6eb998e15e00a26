from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Annotated, Any, Dict, FrozenSet, List, Literal, Optional, Tuple, Union


class ContentOption(str, Enum):
    """Optional content fields a merchant can ask for.

    Declaration order is the order their categories appear in a prompt.
    """
    PRODUCT_TITLE = "productTitle"
    PRODUCT_DESCRIPTION = "productDescription"
    COLOR_VARIANT = "colorVariant"
    SEO_DESCRIPTION = "seoDescription"
    PRODUCT_TAGS = "productTags"
    ALT_TEXT = "altText"
    AGE_RANGE = "ageRange"
    GENDER = "gender"
    FASHION_STYLE = "fashionStyle"
    OUTFIT_DESCRIPTION = "outfitDescription"


class AnalysisRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    questions: Tuple[str, ...] = ()
    product_type: Optional[str] = None
    enabled_options: FrozenSet[ContentOption] = frozenset()


class PromptInstruction(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str
    categories: List[str]
    person_mode: bool = False


# Vision service replies

class LabeledCategory(BaseModel):
    """Schema the vision model fills in for structured output."""
    model_config = ConfigDict(populate_by_name=True)

    category: str = Field(description="The category being reported, phrased as it was asked")
    class_label: Optional[str] = Field(
        default=None,
        alias="classLabel",
        description="Value found for the category, or null when it cannot be determined",
    )


class ClassificationList(BaseModel):
    classes: List[LabeledCategory] = Field(description="One entry per requested category")


class ClassificationItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    category: Optional[str] = None
    class_label: Optional[Union[List[str], str]] = Field(default=None, alias="classLabel")
    confidence: Optional[float] = None

    @field_validator("category", mode="before")
    @classmethod
    def _category_to_str(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return value
        return str(value)

    @field_validator("class_label", mode="before")
    @classmethod
    def _label_to_str(cls, value: Any) -> Any:
        if value is None or isinstance(value, (str, list)):
            return value
        return str(value)


class ClassificationReply(BaseModel):
    kind: Literal["classes"] = "classes"
    classes: List[ClassificationItem]
    text: Optional[str] = None


class TextReply(BaseModel):
    kind: Literal["text"] = "text"
    text: str


class EmptyReply(BaseModel):
    kind: Literal["empty"] = "empty"


VisionReply = Annotated[
    Union[ClassificationReply, TextReply, EmptyReply],
    Field(discriminator="kind"),
]


class ExtractionResult(BaseModel):
    extracted_data: Dict[str, Any] = Field(default_factory=dict)
    text: str = ""

    @property
    def is_empty(self) -> bool:
        return not self.extracted_data and not self.text


# API responses

class AnalysisResponse(BaseModel):
    success: bool
    message: str
    file_name: Optional[str] = None
    prompt: Optional[str] = None
    categories: List[str] = Field(default_factory=list)
    extracted_data: Dict[str, Any] = Field(default_factory=dict)
    text: str = ""


class BatchItemResponse(BaseModel):
    file_name: str
    success: bool
    extracted_data: Dict[str, Any] = Field(default_factory=dict)
    text: str = ""
    error: Optional[str] = None


class BatchAnalysisResponse(BaseModel):
    success: bool
    message: str
    prompt: Optional[str] = None
    processed_count: int
    failed_count: int
    results: List[BatchItemResponse]


class ConnectionTestResponse(BaseModel):
    success: bool
    message: str


# Catalog export

class ExportItem(BaseModel):
    id: Optional[str] = None
    extracted_data: Dict[str, Any] = Field(default_factory=dict)
    image_src: Optional[str] = None
    product_type: Optional[str] = None
    vendor: Optional[str] = None


class ExportRequest(BaseModel):
    analysis_results: List[ExportItem]


class ExportResult(BaseModel):
    file_name: str
    success: bool
    product_id: Optional[str] = None
    title: Optional[str] = None
    handle: Optional[str] = None
    status: Optional[str] = None
    admin_url: Optional[str] = None
    public_url: Optional[str] = None
    image_uploaded: bool = False
    error: Optional[str] = None


class ExportSummary(BaseModel):
    total: int
    successful: int
    failed: int
    processing_time_ms: int


class ExportResponse(BaseModel):
    success: bool
    message: str
    results: List[ExportResult]
    summary: ExportSummary


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str
