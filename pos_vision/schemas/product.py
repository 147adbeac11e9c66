"""Pydantic schemas for AI product recognition."""

from pydantic import AliasChoices, BaseModel, Field


class ProductAnalysisRequest(BaseModel):
    image: str = Field(
        ...,
        description="Base64-encoded product photo, optionally as a data:image/...;base64, URL.",
    )


class ProductAnalysisResponse(BaseModel):
    """Product identified from a photo, for pre-filling the add-product form.

    Model output is accepted in snake_case or camelCase; responses are always
    snake_case.
    """

    product_name: str = Field(
        ...,
        validation_alias=AliasChoices("product_name", "productName"),
        description="Name of the product identified in the image.",
    )
    confidence: float = Field(..., ge=0, le=1, description="Identification confidence (0-1).")
    description: str = Field("", description="Detailed description of the product.")
    suggested_category: str = Field(
        "",
        validation_alias=AliasChoices("suggested_category", "suggestedCategory"),
        description="Suggested catalog category.",
    )
    extracted_text: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("extracted_text", "extractedText"),
        description="Text visible on the product or packaging.",
    )
    estimated_price: float | None = Field(
        None,
        ge=0,
        validation_alias=AliasChoices("estimated_price", "estimatedPrice"),
        description="Estimated retail price for a mini-market.",
    )
    brand_name: str | None = Field(
        None,
        validation_alias=AliasChoices("brand_name", "brandName"),
        description="Brand name if visible.",
    )
    product_type: str | None = Field(
        None,
        validation_alias=AliasChoices("product_type", "productType"),
        description="Type of product (beverage, snack, ...).",
    )
    key_features: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("key_features", "keyFeatures"),
        description="Key features or characteristics visible in the image.",
    )
    cached: bool = Field(
        default=False,
        description="True if the response was returned from cache (same image analyzed before).",
    )
