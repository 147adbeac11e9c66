from __future__ import annotations

from pos_vision.api.routes.ai import router as ai_router
from pos_vision.api.routes.health import router as health_router

__all__ = ["ai_router", "health_router"]
