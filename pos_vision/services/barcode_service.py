"""Barcode reading from camera frames using a vision model.

The model does the optical work; this service decides what the scanner
client may trust. A reading is only reported valid when the model agrees,
the digits form a standard retail barcode length, and the model's confidence
clears the threshold for the scan mode.
"""

from __future__ import annotations

import logging
import re

from pydantic import ValidationError

from pos_vision.adapters.llm.base import AbstractLLMClient
from pos_vision.core.config import settings
from pos_vision.core.errors import LLMAppError
from pos_vision.schemas.barcode import (
    BarcodeModelOutput,
    BarcodeReadResponse,
    ScanMode,
)
from pos_vision.utils.image_validators import decode_image

logger = logging.getLogger(__name__)

# EAN-8, UPC-A, EAN-13, GTIN-14
VALID_BARCODE_LENGTHS = frozenset({8, 12, 13, 14})

_NON_DIGITS_RE = re.compile(r"\D")

_REALTIME_GUIDANCE = """
REAL-TIME MODE - BE VERY CONSERVATIVE:
- Only return results with 80%+ confidence
- If you're not absolutely sure, set confidence below 0.8
- Focus on clear, unambiguous barcodes only
"""

_MANUAL_GUIDANCE = """
MANUAL MODE - BE THOROUGH BUT CAREFUL:
- Examine the image carefully for any barcode
- If you see partial or unclear digits, note this in confidence
- Only return results you're reasonably confident about
"""


def clean_barcode(raw: str | None) -> str:
    """Keep only the digits of a model-reported barcode."""
    return _NON_DIGITS_RE.sub("", raw or "")


def is_valid_barcode_length(barcode: str) -> bool:
    return len(barcode) in VALID_BARCODE_LENGTHS


def confidence_threshold_for(mode: ScanMode) -> float:
    """Minimum confidence for a reading to count as valid in ``mode``."""
    if mode == "realtime":
        return settings.app.barcode_realtime_confidence
    return settings.app.barcode_manual_confidence


def build_barcode_prompt(mode: ScanMode) -> str:
    """Build the barcode-reading instructions for the given scan mode."""
    guidance = _REALTIME_GUIDANCE if mode == "realtime" else _MANUAL_GUIDANCE
    return f"""
You are a specialized barcode reader AI. Analyze this image and extract the barcode number.
{guidance}
INSTRUCTIONS:
1. Look for vertical black and white lines (barcode pattern)
2. Find the numbers below or near the barcode lines
3. Read each digit carefully from left to right
4. Common formats: EAN-13 (13 digits), UPC-A (12 digits), EAN-8 (8 digits)
5. Ignore any other text that's not part of the barcode number

CONFIDENCE GUIDELINES:
- 0.9-1.0: Perfect clarity, all digits crystal clear
- 0.8-0.9: Very clear, minor lighting/angle issues
- 0.7-0.8: Clear but some digits slightly unclear
- 0.6-0.7: Readable but some uncertainty
- 0.5-0.6: Partially readable, several digits unclear
- Below 0.5: Too unclear to be reliable

REQUIRED JSON STRUCTURE:
{{
  "barcode": "digits only",
  "confidence": <number 0-1>,
  "barcode_type": "EAN-13" | "UPC-A" | "EAN-8" | ... | null,
  "is_valid": <true|false>,
  "extracted_digits": ["4", "0", ...],
  "reasoning": "Brief explanation of what was seen and why this confidence level"
}}

IMPORTANT:
- Only return actual barcode digits (numbers only)
- If multiple barcodes exist, choose the clearest one
- Be honest about confidence - better to be conservative
""".strip()


class BarcodeReaderService:
    """Reads barcodes from images through the (throttled) LLM client."""

    def __init__(self, llm: AbstractLLMClient) -> None:
        self.llm = llm

    async def read(self, image: str, mode: ScanMode = "manual") -> BarcodeReadResponse:
        """Read the barcode in ``image``.

        Args:
            image: Base64 image or data URL.
            mode: Scan mode; realtime uses the stricter threshold.

        Returns:
            BarcodeReadResponse with the cleaned barcode and validity verdict.

        Raises:
            ValidationAppError: If the image payload is invalid.
            LLMAppError: If the model call fails or returns an unusable shape.
        """
        decoded = decode_image(image)
        threshold = confidence_threshold_for(mode)

        raw = await self.llm.generate_json(
            build_barcode_prompt(mode),
            schema=BarcodeModelOutput.model_json_schema(),
            images=[decoded.to_data_url()],
            temperature=0.1,
        )

        try:
            output = BarcodeModelOutput.model_validate(raw)
        except ValidationError as exc:
            raise LLMAppError(
                code="llm_invalid_output",
                message="Barcode reader returned an unexpected response shape",
                details={"context": {"errors": exc.error_count()}},
            ) from exc

        barcode = clean_barcode(output.barcode)
        is_valid = (
            output.is_valid
            and is_valid_barcode_length(barcode)
            and output.confidence >= threshold
        )

        logger.info(
            "barcode.read",
            extra={
                "mode": mode,
                "barcode_length": len(barcode),
                "confidence": output.confidence,
                "threshold": threshold,
                "is_valid": is_valid,
                "image_type": decoded.image_type,
            },
        )

        return BarcodeReadResponse(
            barcode=barcode,
            confidence=output.confidence,
            barcode_type=output.barcode_type,
            is_valid=is_valid,
            extracted_digits=output.extracted_digits,
            reasoning=output.reasoning,
            mode=mode,
            confidence_threshold=threshold,
        )
