"""Pydantic schemas for AI barcode reading."""

from __future__ import annotations

from typing import Literal

from pydantic import AliasChoices, BaseModel, Field

ScanMode = Literal["manual", "realtime"]


class BarcodeReadRequest(BaseModel):
    """Camera frame submitted by a scanner client."""

    image: str = Field(
        ...,
        description="Base64-encoded image, optionally as a data:image/...;base64, URL.",
    )
    mode: ScanMode = Field(
        default="manual",
        description="'realtime' for continuous camera scanning (stricter), 'manual' for single shots.",
    )


class BarcodeModelOutput(BaseModel):
    """Shape the model is asked to return."""

    barcode: str = Field("", description="The barcode number detected in the image.")
    confidence: float = Field(0.0, ge=0, le=1, description="Detection confidence (0-1).")
    barcode_type: str | None = Field(
        None,
        validation_alias=AliasChoices("barcode_type", "barcodeType"),
        description="EAN-13, UPC-A, EAN-8, ...",
    )
    is_valid: bool = Field(
        False,
        validation_alias=AliasChoices("is_valid", "isValid"),
        description="Whether the model believes the barcode is valid.",
    )
    extracted_digits: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("extracted_digits", "extractedDigits"),
        description="Individual digits or characters detected.",
    )
    reasoning: str = Field("", description="What was seen and why this confidence level.")


class BarcodeReadResponse(BaseModel):
    """Post-processed barcode reading returned to the client."""

    barcode: str = Field(..., description="Digits only; empty when nothing was read.")
    confidence: float = Field(..., ge=0, le=1)
    barcode_type: str | None = None
    is_valid: bool = Field(
        ...,
        description="True only if the model agreed, the length is a standard barcode length, "
        "and confidence met the mode threshold.",
    )
    extracted_digits: list[str] = Field(default_factory=list)
    reasoning: str = ""
    mode: ScanMode
    confidence_threshold: float = Field(..., ge=0, le=1)
