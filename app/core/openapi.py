"""OpenAPI customization utilities.

Enriches the generated OpenAPI schema with:
- Tags metadata
- The ``X-API-Key`` header as the quota identity scheme
- A documented 429 response (with rate limit headers) on every operation
  except health checks

This keeps documentation concerns decoupled from the app factory.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

_RATE_LIMIT_HEADERS = {
    "Retry-After": {
        "description": "Seconds until the oldest request leaves the window.",
        "schema": {"type": "integer"},
    },
    "X-RateLimit-Limit": {
        "description": "Max requests per sliding window.",
        "schema": {"type": "integer"},
    },
    "X-RateLimit-Remaining": {
        "description": "Requests left in the current window.",
        "schema": {"type": "integer"},
    },
    "X-RateLimit-Reset": {
        "description": "UNIX epoch seconds when quota frees up.",
        "schema": {"type": "integer"},
    },
}

_TAGS = [
    {
        "name": "Rate Limits",
        "description": "Sliding-window admit/reject decisions for arbitrary keys.",
    },
    {
        "name": "Health",
        "description": "Liveness checks (never rate limited).",
    },
]


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add tags, identity and 429 docs."""

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema

        schema = original_openapi()

        components = schema.setdefault("components", {})
        security_schemes = components.setdefault("securitySchemes", {})
        security_schemes.setdefault(
            "ApiKeyIdentity",
            {
                "type": "apiKey",
                "in": "header",
                "name": "X-API-Key",
                "description": (
                    "Optional. Quotas are tracked per X-API-Key when present, "
                    "otherwise per client IP."
                ),
            },
        )

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
                method_obj.setdefault("security", [{"ApiKeyIdentity": []}, {}])
                method_obj.setdefault("responses", {}).setdefault(
                    "429",
                    {
                        "description": "Rate limit exceeded",
                        "headers": _RATE_LIMIT_HEADERS,
                    },
                )

        app.openapi_schema = schema
        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
