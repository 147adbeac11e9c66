"""Product recognition from photos for catalog entry.

Identifies a product from a photo of it (name, brand, category, visible
text, rough price) so staff can add it to the catalog without typing.
Results are cached by image digest; a cache hit never touches the provider
throttle.
"""

import logging
from typing import Any

from pydantic import ValidationError

from pos_vision.adapters.llm.base import AbstractLLMClient
from pos_vision.core.errors import LLMAppError
from pos_vision.schemas.product import ProductAnalysisResponse
from pos_vision.utils.image_validators import decode_image
from pos_vision.utils.simple_cache import SimpleTTLCache, build_cache_key

logger = logging.getLogger(__name__)

# Bump to invalidate cached analyses when the prompt changes
PROMPT_VERSION = "v1"


def build_product_prompt() -> str:
    return """
Analyze this product image and identify the product. Focus on:

1. Product name and brand (look for text on packaging)
2. Product type and category
3. Key visual features and characteristics
4. Any text visible on the product or packaging
5. Estimated price based on product type and appearance

Be as specific as possible with the product name. If you can see brand names, product names,
or other text on the packaging, include them. Look for barcodes, nutritional information,
logos, and any other identifying features.

For confidence level:
- 0.9-1.0: Very clear product with visible text/branding
- 0.7-0.9: Clear product but some uncertainty
- 0.5-0.7: Recognizable product type but unclear specifics
- 0.3-0.5: General product category identifiable
- 0.0-0.3: Very unclear or unidentifiable

REQUIRED JSON STRUCTURE:
{
  "product_name": "...",
  "confidence": <number 0-1>,
  "description": "...",
  "suggested_category": "...",
  "extracted_text": ["...", ...],
  "estimated_price": <number or null>,
  "brand_name": "..." | null,
  "product_type": "..." | null,
  "key_features": ["...", ...]
}

Provide practical information that would help someone manage inventory for a mini-market.
""".strip()


class ProductAnalysisService:
    """Identifies products in photos via the LLM client, with caching.

    Attributes:
        llm: LLM client (normally throttled) used for recognition.
        cache: TTL cache of previous analyses keyed by image digest.
    """

    def __init__(self, llm: AbstractLLMClient, cache: SimpleTTLCache) -> None:
        self.llm = llm
        self.cache = cache

    def _cache_key(self, image_bytes: bytes) -> str:
        return build_cache_key(
            image_bytes,
            namespace=f"product:{PROMPT_VERSION}",
            salt=getattr(self.llm, "model", None),
        )

    def _get_from_cache(self, cache_key: str) -> ProductAnalysisResponse | None:
        cached = self.cache.get(cache_key)
        if not cached:
            return None
        return ProductAnalysisResponse.model_validate({**cached, "cached": True})

    async def analyze(self, image: str) -> ProductAnalysisResponse:
        """Identify the product shown in ``image``.

        Raises:
            ValidationAppError: If the image payload is invalid.
            LLMAppError: If the model call fails or returns an unusable shape.
        """
        decoded = decode_image(image)
        cache_key = self._cache_key(decoded.data)

        cached = self._get_from_cache(cache_key)
        if cached:
            logger.info("product.analysis_cached", extra={"cache_key": cache_key[:16]})
            return cached

        raw: dict[str, Any] = await self.llm.generate_json(
            build_product_prompt(),
            schema=ProductAnalysisResponse.model_json_schema(),
            images=[decoded.to_data_url()],
            temperature=0.3,
        )

        try:
            analysis = ProductAnalysisResponse.model_validate({**raw, "cached": False})
        except ValidationError as exc:
            raise LLMAppError(
                code="llm_invalid_output",
                message="Product analysis returned an unexpected response shape",
                details={"context": {"errors": exc.error_count()}},
            ) from exc

        self.cache.set(cache_key, analysis.model_dump())

        logger.info(
            "product.analysis_completed",
            extra={
                "confidence": analysis.confidence,
                "has_brand": analysis.brand_name is not None,
                "image_type": decoded.image_type,
            },
        )
        return analysis
