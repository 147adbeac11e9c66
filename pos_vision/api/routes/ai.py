from fastapi import APIRouter, Depends, HTTPException

from pos_vision.adapters.llm.factory import build_provider_throttle, create_llm_client
from pos_vision.core.auth import verify_api_key
from pos_vision.core.config import settings
from pos_vision.core.errors import (
    AppError,
    LLMAppError,
    UpstreamRateLimitAppError,
    ValidationAppError,
)
from pos_vision.core.exception_handlers import retry_after_header
from pos_vision.core.rate_limit import enforce_rate_limit
from pos_vision.schemas.barcode import BarcodeReadRequest, BarcodeReadResponse
from pos_vision.schemas.product import ProductAnalysisRequest, ProductAnalysisResponse
from pos_vision.services.barcode_service import BarcodeReaderService
from pos_vision.services.product_service import ProductAnalysisService
from pos_vision.utils.simple_cache import SimpleTTLCache

router = APIRouter(tags=["AI"])

# One throttle per process: every provider call from every endpoint queues here
_throttle = build_provider_throttle()
_llm_client = create_llm_client(throttle=_throttle)
_cache = SimpleTTLCache(
    ttl_seconds=settings.app.product_cache_ttl_seconds,
    max_entries=settings.app.product_cache_max_entries,
)
_barcode_service = BarcodeReaderService(llm=_llm_client)
_product_service = ProductAnalysisService(llm=_llm_client, cache=_cache)


def _to_http_exception(exc: AppError) -> HTTPException:
    if isinstance(exc, ValidationAppError):
        return HTTPException(status_code=400, detail=exc.message)
    if isinstance(exc, UpstreamRateLimitAppError):
        return HTTPException(
            status_code=429,
            detail=exc.message,
            headers=retry_after_header(exc) or None,
        )
    return HTTPException(status_code=500, detail=exc.message)


@router.post(
    "/ai/barcode-reader",
    response_model=BarcodeReadResponse,
    dependencies=[Depends(verify_api_key), Depends(enforce_rate_limit)],
)
async def read_barcode(payload: BarcodeReadRequest) -> BarcodeReadResponse:
    """Read a barcode number from a camera frame.

    ``realtime`` mode is meant for continuous scanning and only reports a
    reading as valid at 80%+ confidence; ``manual`` mode accepts 60%+.

    Raises:
        HTTPException: 400 for a bad image, 429 when the AI provider is
            rate limiting, 500 for other provider failures.
    """
    try:
        return await _barcode_service.read(payload.image, payload.mode)
    except (ValidationAppError, LLMAppError) as exc:
        raise _to_http_exception(exc) from exc
    except Exception as exc:
        raise HTTPException(
            status_code=500,
            detail="Failed to read barcode from image. Please try again.",
        ) from exc


@router.post(
    "/ai/product-analysis",
    response_model=ProductAnalysisResponse,
    dependencies=[Depends(verify_api_key), Depends(enforce_rate_limit)],
)
async def analyze_product(payload: ProductAnalysisRequest) -> ProductAnalysisResponse:
    """Identify a product from a photo.

    Returns name, brand, category, visible text and an estimated price to
    pre-fill the add-product form. Identical images are served from cache.

    Raises:
        HTTPException: 400 for a bad image, 429 when the AI provider is
            rate limiting, 500 for other provider failures.
    """
    try:
        return await _product_service.analyze(payload.image)
    except (ValidationAppError, LLMAppError) as exc:
        raise _to_http_exception(exc) from exc
    except Exception as exc:
        raise HTTPException(
            status_code=500,
            detail="Failed to analyze image. Please try again.",
        ) from exc
