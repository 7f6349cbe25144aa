"""OpenAPI metadata and customization utilities.

Enriches the generated schema with:
- Tags metadata
- The X-RateLimit-* response headers and the 403 quota response on every
  operation except health checks

This keeps documentation concerns decoupled from the app factory.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

from quota_gate.core.rate_limit import REJECT_MESSAGE

_RATE_LIMIT_HEADERS: Dict[str, Any] = {
    "X-RateLimit-Limit": {
        "description": "Requests allowed per window.",
        "schema": {"type": "integer"},
    },
    "X-RateLimit-Remaining": {
        "description": "Requests left in the current window.",
        "schema": {"type": "integer"},
    },
    "X-RateLimit-Reset": {
        "description": "UNIX epoch seconds when the window resets.",
        "schema": {"type": "integer"},
    },
}

_TAGS = [
    {"name": "Quota", "description": "Caller quota status (counted against the quota)."},
    {"name": "Health", "description": "Liveness checks, not rate limited."},
]


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to document quota behaviour."""

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        schema = original_openapi()

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        for tag in _TAGS:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        for path, methods in schema.get("paths", {}).items():
            if path.endswith("/health"):
                continue
            for method_obj in methods.values():
                if not isinstance(method_obj, dict):
                    continue
                responses = method_obj.setdefault("responses", {})
                for response in responses.values():
                    response.setdefault("headers", {}).update(_RATE_LIMIT_HEADERS)
                responses.setdefault(
                    "403",
                    {"description": REJECT_MESSAGE, "headers": dict(_RATE_LIMIT_HEADERS)},
                )

        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
