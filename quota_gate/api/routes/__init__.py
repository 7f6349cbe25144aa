from __future__ import annotations

from quota_gate.api.routes.health import router as health_router
from quota_gate.api.routes.quota import router as quota_router

__all__ = ["health_router", "quota_router"]
