"""OpenAPI schema customization.

Adds the ``X-API-Key`` security scheme, tag descriptions, and marks the
health probe as unauthenticated.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

API_KEY_SCHEME = "ApiKeyAuth"

TAGS_METADATA = [
    {
        "name": "AI",
        "description": (
            "Barcode reading and product recognition from photos. Calls to the "
            "AI provider are serialized and spaced out process-wide."
        ),
    },
    {
        "name": "Health",
        "description": "Liveness checks.",
    },
]


def apply_openapi_customizations(app: FastAPI) -> None:
    """Wrap ``app.openapi`` so the generated schema carries auth and tags."""

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        schema = original_openapi()

        security_schemes = schema.setdefault("components", {}).setdefault("securitySchemes", {})
        security_schemes.setdefault(
            API_KEY_SCHEME,
            {
                "type": "apiKey",
                "in": "header",
                "name": "X-API-Key",
                "description": "Provide your API key via the X-API-Key header.",
            },
        )
        schema.setdefault("security", [{API_KEY_SCHEME: []}])

        tags = schema.setdefault("tags", [])
        known = {tag.get("name") for tag in tags}
        tags.extend(tag for tag in TAGS_METADATA if tag["name"] not in known)

        for path, operations in schema.get("paths", {}).items():
            if not path.endswith("/health"):
                continue
            for operation in operations.values():
                if isinstance(operation, dict):
                    operation["security"] = []

        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
